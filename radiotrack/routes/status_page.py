"""
RadioTrack Backend — Status Page
==================================

What:  GET / renders an HTML page where a patient looks up the state of
       their radiographs by idPaciente. Without a code it shows the form and
       a short description of the JSON API.
How:   Jinja2 template (templates/status.html) through FastAPI's
       Jinja2Templates; data comes from PatientService.
Who:   Patients and front-desk staff, from a browser.
When:  Read-only; nothing on this page changes a radiograph.

Responses:
    GET /                   → 200, lookup form and API summary
    GET /?idPaciente=P1     → 200, the patient's radiographs and their states
    GET /?idPaciente=NOPE   → 404, the form with "Paciente no encontrado"
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from radiotrack.database import get_db_session
from radiotrack.services.patient_service import patient_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Status page"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

STATE_LABELS = {
    "pendiente": "Pendiente",
    "en_proceso": "En proceso",
    "lista": "Lista para revisión",
    "revisada": "Revisada",
}


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def status_page(
    request: Request,
    id_paciente: Optional[str] = Query(default=None, alias="idPaciente"),
    db: AsyncSession = Depends(get_db_session),
) -> HTMLResponse:
    code = (id_paciente or "").strip()
    patient = None
    not_found = False

    if code:
        patient = await patient_service.find_patient(db, code)
        not_found = patient is None
        if not_found:
            logger.info("Status lookup for unknown patient code")

    return templates.TemplateResponse(
        request,
        "status.html",
        {
            "code": code,
            "patient": patient,
            "not_found": not_found,
            "state_labels": STATE_LABELS,
        },
        status_code=404 if not_found else 200,
    )
