"""
RadioTrack Backend — API Routes Package
=========================================

What:  HTTP endpoints of the service.
How:   Each module exposes an APIRouter that main.create_app() includes.
Who:   Clinic staff tools call /api/pacientes; patients open the status page;
       orchestrators probe /health.

Route Inventory:
    - patients.py:     /api/pacientes/...       (patients, radiographs, state changes)
    - status_page.py:  GET /                    (HTML status lookup)
    - health.py:       GET /health              (service health check)

Routes stay thin: they read the request, call PatientService, and let the
global handlers in main.py turn exceptions into responses.
"""
