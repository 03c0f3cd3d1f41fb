"""
RadioTrack Backend — Patient Route Handlers
=============================================

What:  The /api/pacientes resource: patients, their radiographs, and the
       radiograph state transition.
How:   Extracts path/body data, delegates to PatientService, returns JSON.
       Request bodies are validated by the Pydantic schemas; validation
       failures are turned into 400 responses by the global handler.

Routes:
    GET    /api/pacientes                                   list patients
    POST   /api/pacientes                                   create patient (201)
    GET    /api/pacientes/{id}                              get patient
    DELETE /api/pacientes/{id}                              delete patient (204)
    POST   /api/pacientes/{id}/radiografias                 add radiograph (201)
    GET    /api/pacientes/{id}/radiografias?estado=...      filter radiographs
    PUT    /api/pacientes/{id}/radiografias/{idRad}         change state
    GET    /api/pacientes/{id}/radiografias-listas          ready radiographs
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from radiotrack.database import get_db_session
from radiotrack.schemas.patient import (
    ErrorResponse,
    PatientCreate,
    PatientResponse,
    RadiographCreate,
    RadiographResponse,
    RadiographState,
    ReadyRadiographsResponse,
    StateUpdate,
)
from radiotrack.services.notification_service import NotificationDispatcher, get_dispatcher
from radiotrack.services.patient_service import patient_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pacientes", tags=["Pacientes"])

NOT_FOUND = {"description": "Patient or radiograph not found", "model": ErrorResponse}
BAD_REQUEST = {"description": "Invalid input", "model": ErrorResponse}


@router.get(
    "",
    response_model=List[PatientResponse],
    summary="List all patients",
)
async def list_patients(
    db: AsyncSession = Depends(get_db_session),
) -> List[PatientResponse]:
    return await patient_service.list_patients(db)


@router.post(
    "",
    status_code=201,
    response_model=PatientResponse,
    responses={400: BAD_REQUEST},
    summary="Create a patient",
    description=(
        "Creates a patient with its initial radiographs. The body is validated "
        "before anything is stored; a rejected body persists nothing."
    ),
)
async def create_patient(
    payload: PatientCreate,
    db: AsyncSession = Depends(get_db_session),
) -> PatientResponse:
    return await patient_service.create_patient(db, payload)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    responses={404: NOT_FOUND},
    summary="Get one patient by idPaciente or internal id",
)
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> PatientResponse:
    return await patient_service.get_patient(db, patient_id)


@router.delete(
    "/{patient_id}",
    status_code=204,
    responses={404: NOT_FOUND},
    summary="Delete a patient and its radiographs",
)
async def delete_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await patient_service.delete_patient(db, patient_id)
    return Response(status_code=204)


@router.post(
    "/{patient_id}/radiografias",
    status_code=201,
    response_model=PatientResponse,
    responses={400: BAD_REQUEST, 404: NOT_FOUND},
    summary="Add a radiograph to a patient",
)
async def add_radiograph(
    patient_id: str,
    payload: RadiographCreate,
    db: AsyncSession = Depends(get_db_session),
) -> PatientResponse:
    return await patient_service.add_radiograph(db, patient_id, payload)


@router.get(
    "/{patient_id}/radiografias",
    response_model=List[RadiographResponse],
    responses={400: BAD_REQUEST, 404: NOT_FOUND},
    summary="List a patient's radiographs, optionally filtered by state",
)
async def list_radiographs(
    patient_id: str,
    state: Optional[RadiographState] = Query(default=None, alias="estado"),
    db: AsyncSession = Depends(get_db_session),
) -> List[RadiographResponse]:
    if state is None:
        patient = await patient_service.get_patient(db, patient_id)
        return patient.radiographs
    return await patient_service.list_radiographs_by_state(db, patient_id, state)


@router.put(
    "/{patient_id}/radiografias/{radiograph_id}",
    response_model=PatientResponse,
    responses={400: BAD_REQUEST, 404: NOT_FOUND},
    summary="Change a radiograph's workflow state",
    description=(
        "Sets the radiograph's estado. Moving to 'lista' notifies the patient "
        "through their preferred channel(s) once; the radiograph is then marked "
        "notificado and later updates to 'lista' send nothing. A failed "
        "notification does not fail the update."
    ),
)
async def update_radiograph_state(
    patient_id: str,
    radiograph_id: str,
    payload: StateUpdate,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PatientResponse:
    return await patient_service.update_radiograph_state(
        db=db,
        dispatcher=dispatcher,
        patient_id=patient_id,
        radiograph_id=radiograph_id,
        state=payload.state,
    )


@router.get(
    "/{patient_id}/radiografias-listas",
    response_model=ReadyRadiographsResponse,
    responses={404: NOT_FOUND},
    summary="Radiographs ready for review",
)
async def ready_radiographs(
    patient_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> ReadyRadiographsResponse:
    return await patient_service.ready_radiographs(db, patient_id)
