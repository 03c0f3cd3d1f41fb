"""
RadioTrack Backend — Patient Service (Business Logic)
=======================================================

What:  Patient record operations and the radiograph state transition.
How:   Loads and saves Patient aggregates through the request's AsyncSession;
       the notification dispatcher is passed in by the caller.
Who:   Called by route handlers in routes/patients.py and routes/status_page.py.
When:  Once per request; the service itself is a stateless module singleton.

State Transition Flow (PUT /api/pacientes/{id}/radiografias/{idRad}):
    ┌──────────┐   ┌──────────────┐   ┌────────────┐   ┌─────────────┐   ┌───────┐
    │  Load    │──▶│ Find         │──▶│ Set state  │──▶│ Dispatch if │──▶│ Save  │
    │ patient  │   │ radiograph   │   │            │   │ lista and   │   │       │
    └──────────┘   └──────────────┘   └────────────┘   │ !notified   │   └───────┘
         │404            │404                          └─────────────┘
                                                          │ delivered → notified=True,
                                                          │             notified_at=now

    The patient is the unit of durability: radiographs are only written
    through their patient, and each command commits its own changes before
    returning. Concurrent updates to one patient are not serialized.

Identifiers:
    A patient id may be the external code (idPaciente) or the internal UUID.
    A radiograph id may be its code (idRadiografia) or its internal UUID.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from radiotrack.exceptions import DatabaseError, NotFoundError, ValidationError
from radiotrack.models.patient import (
    RADIOGRAPH_STATES,
    READY_STATE,
    Patient,
    Radiograph,
)
from radiotrack.schemas.patient import (
    PatientCreate,
    PatientResponse,
    RadiographCreate,
    RadiographResponse,
    ReadyRadiographsResponse,
)
from radiotrack.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

PATIENT_NOT_FOUND = "Paciente no encontrado"
RADIOGRAPH_NOT_FOUND = "Radiografía no encontrada"


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


def _check_state(state: str) -> None:
    if state not in RADIOGRAPH_STATES:
        raise ValidationError(
            message=(
                f"Estado '{state}' no válido. Debe ser uno de: {', '.join(RADIOGRAPH_STATES)}"
            ),
            field="estado",
        )


def _build_radiograph(payload: RadiographCreate) -> Radiograph:
    return Radiograph(
        id_radiografia=payload.id_radiografia,
        kind=payload.kind,
        performed_on=payload.performed_on,
        image_url=payload.image_url,
        state=payload.state,
        notified=False,
    )


class PatientService:
    """
    Business logic layer for patients and their radiographs.

    Responsibilities:
        - list / get / find / create / delete patients
        - add_radiograph(): append to a patient's collection
        - update_radiograph_state(): state change plus at-most-once
          ready notification
        - list_radiographs_by_state() / ready_radiographs(): filtered views

    Error Handling Strategy:
        SQLAlchemy errors are wrapped in DatabaseError; application errors
        (NotFoundError, ValidationError) propagate unchanged.
    """

    # ── Loading ───────────────────────────────────────────────────────────

    async def find_patient(self, db: AsyncSession, patient_id: str) -> Optional[Patient]:
        """
        Return the Patient ORM object for an internal UUID or external code,
        or None when nothing matches.

        Resolution order:
            1. internal id, when `patient_id` parses as a UUID
            2. external code (idPaciente)
        So a code that happens to look like another patient's UUID never
        shadows that patient.
        """
        internal_id = _parse_uuid(patient_id)
        if internal_id is not None:
            patient = await self._select_one(db, Patient.id == internal_id, patient_id)
            if patient is not None:
                return patient
        return await self._select_one(db, Patient.id_paciente == patient_id, patient_id)

    async def find_by_code(self, db: AsyncSession, code: str) -> Optional[Patient]:
        """Patient with this external code only (used for duplicate checks)."""
        return await self._select_one(db, Patient.id_paciente == code, code)

    async def _select_one(self, db: AsyncSession, condition, patient_id: str) -> Optional[Patient]:
        try:
            result = await db.execute(select(Patient).where(condition))
            return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Database error loading patient %s: %s", patient_id, e)
            raise DatabaseError(
                message="No se pudo consultar el paciente. Intente nuevamente.",
                context={"patient_id": patient_id, "original_error": str(e)},
            )

    async def _load_patient(self, db: AsyncSession, patient_id: str) -> Patient:
        patient = await self.find_patient(db, patient_id)
        if patient is None:
            raise NotFoundError(
                message=PATIENT_NOT_FOUND,
                resource="patient",
                resource_id=patient_id,
            )
        return patient

    async def _save(self, db: AsyncSession, patient: Patient) -> None:
        """
        Flush and commit the patient aggregate.

        The commit happens here, inside the handler, so a failed commit is
        answered with an error instead of being noticed after the response
        has been sent. The session dependency's own commit is then a no-op.
        """
        try:
            await db.flush()
            await db.commit()
        except IntegrityError as e:
            logger.warning("Integrity error saving patient %s: %s", patient.id_paciente, e.orig)
            raise ValidationError(
                message=f"No se pudo guardar el paciente: {e.orig}",
                context={"patient_id": patient.id_paciente},
            )
        except SQLAlchemyError as e:
            logger.error(
                "Database error saving patient %s: %s", patient.id_paciente, e, exc_info=True
            )
            raise DatabaseError(
                message=f"No se pudo guardar el paciente: {getattr(e, 'orig', None) or e}",
                context={"patient_id": patient.id_paciente, "error_type": type(e).__name__},
            )

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_patients(self, db: AsyncSession) -> List[PatientResponse]:
        """All patients, oldest first, each with its radiographs."""
        try:
            result = await db.execute(select(Patient).order_by(Patient.created_at))
            patients = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing patients: %s", e, exc_info=True)
            raise DatabaseError(
                message="No se pudo obtener la lista de pacientes.",
                context={"original_error": str(e)},
            )
        return [PatientResponse.model_validate(p) for p in patients]

    async def get_patient(self, db: AsyncSession, patient_id: str) -> PatientResponse:
        """
        Raises:
            NotFoundError: no patient with that code or id (→ 404)
        """
        patient = await self._load_patient(db, patient_id)
        return PatientResponse.model_validate(patient)

    async def list_radiographs_by_state(
        self, db: AsyncSession, patient_id: str, state: str
    ) -> List[RadiographResponse]:
        """Radiographs of one patient currently in `state`, in collection order."""
        _check_state(state)
        patient = await self._load_patient(db, patient_id)
        return [
            RadiographResponse.model_validate(r)
            for r in patient.radiographs
            if r.state == state
        ]

    async def ready_radiographs(
        self, db: AsyncSession, patient_id: str
    ) -> ReadyRadiographsResponse:
        patient = await self._load_patient(db, patient_id)
        ready = [RadiographResponse.model_validate(r) for r in patient.radiographs if r.is_ready]
        return ReadyRadiographsResponse(patient_name=patient.name, ready=ready, total=len(ready))

    # ── Commands ──────────────────────────────────────────────────────────

    async def create_patient(self, db: AsyncSession, payload: PatientCreate) -> PatientResponse:
        """
        Persist a new patient with its initial radiographs.

        The payload has already been validated by the schema; this adds the
        store-level check that the external code is not taken.

        Raises:
            ValidationError: idPaciente already exists (→ 400)
            DatabaseError:   insert failed (→ 500)
        """
        if await self.find_by_code(db, payload.id_paciente) is not None:
            raise ValidationError(
                message=f"Ya existe un paciente con idPaciente '{payload.id_paciente}'",
                field="idPaciente",
            )

        patient = Patient(
            id_paciente=payload.id_paciente,
            name=payload.name,
            birth_date=payload.birth_date,
            phone=payload.phone,
            email=payload.email,
            notification_preference=payload.notification_preference,
            radiographs=[],
        )
        for item in payload.radiographs:
            patient.add_radiograph(_build_radiograph(item))

        db.add(patient)
        await self._save(db, patient)
        logger.info(
            "Patient %s created with %d radiograph(s)",
            patient.id_paciente,
            len(patient.radiographs),
        )
        return PatientResponse.model_validate(patient)

    async def delete_patient(self, db: AsyncSession, patient_id: str) -> None:
        """Remove a patient; its radiographs go with it."""
        patient = await self._load_patient(db, patient_id)
        await db.delete(patient)
        await self._save(db, patient)
        logger.info("Patient %s deleted", patient.id_paciente)

    async def add_radiograph(
        self, db: AsyncSession, patient_id: str, payload: RadiographCreate
    ) -> PatientResponse:
        """
        Append a radiograph to an existing patient.

        Raises:
            NotFoundError:   unknown patient (→ 404)
            ValidationError: idRadiografia already used by this patient (→ 400)
        """
        patient = await self._load_patient(db, patient_id)
        if payload.id_radiografia in patient.radiograph_index():
            raise ValidationError(
                message=(
                    f"El paciente ya tiene una radiografía con idRadiografia "
                    f"'{payload.id_radiografia}'"
                ),
                field="idRadiografia",
            )

        patient.add_radiograph(_build_radiograph(payload))
        await self._save(db, patient)
        logger.info("Radiograph %s added to patient %s", payload.id_radiografia, patient.id_paciente)
        return PatientResponse.model_validate(patient)

    async def update_radiograph_state(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        patient_id: str,
        radiograph_id: str,
        state: str,
    ) -> PatientResponse:
        """
        Apply a workflow state to one radiograph and notify on "lista".

        The dispatcher runs only when the new state is "lista" and the
        radiograph has never been notified. It is awaited before the save;
        when at least one channel delivers, the radiograph is marked
        notified and timestamped. A failed dispatch leaves `notified` False
        and does not fail the update.

        Raises:
            ValidationError: unknown state (→ 400)
            NotFoundError:   unknown patient or radiograph (→ 404)
            DatabaseError:   save failed (→ 500)
        """
        _check_state(state)
        patient = await self._load_patient(db, patient_id)

        radiograph = patient.radiograph_index().get(radiograph_id)
        if radiograph is None:
            raise NotFoundError(
                message=RADIOGRAPH_NOT_FOUND,
                resource="radiograph",
                resource_id=radiograph_id,
                context={"patient_id": patient.id_paciente},
            )

        previous_state = radiograph.state
        radiograph.state = state
        logger.info(
            "Radiograph %s of patient %s: %s → %s",
            radiograph.id_radiografia,
            patient.id_paciente,
            previous_state,
            state,
        )

        if state == READY_STATE and not radiograph.notified:
            result = await dispatcher.notify_ready(patient, radiograph)
            if result.delivered:
                radiograph.mark_notified()
                logger.info(
                    "Patient %s notified about radiograph %s via %s",
                    patient.id_paciente,
                    radiograph.id_radiografia,
                    ", ".join(result.sent),
                )
            else:
                logger.warning(
                    "Radiograph %s is ready but no notification was delivered: %s",
                    radiograph.id_radiografia,
                    result.failed,
                )

        await self._save(db, patient)
        return PatientResponse.model_validate(patient)


# ── Singleton Instance ────────────────────────────────────────────────────
# PatientService holds no state; clients and sessions are passed per call.
patient_service = PatientService()
