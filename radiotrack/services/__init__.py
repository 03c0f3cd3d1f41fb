"""
RadioTrack Backend — Services Layer
=====================================

What:  Business logic between the routes (HTTP) and the database (persistence).
Why:   Routes handle HTTP; services own the rules about radiograph states and
       when a patient is told that a radiograph is ready.
How:   Services take an AsyncSession (and, for state changes, the
       notification dispatcher) from the caller and return response models.

Service Inventory:
    - PatientService:          patient records and the radiograph state transition
    - NotificationDispatcher:  "radiograph ready" messages over SMS / email / log

Collaboration on PUT .../radiografias/{idRad}:
    PatientService.update_radiograph_state
        └── NotificationDispatcher.notify_ready   (only on first "lista")
                ├── sms channel    (Twilio or log)
                └── email channel  (SMTP or log)
"""
