"""
RadioTrack Backend — Patient and Radiograph SQLAlchemy Models
===============================================================

What:  ORM models for the `patients` and `radiographs` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads them for migrations.
Who:   Used by PatientService for every read and write.

Table Design:
    - A patient owns its radiographs: the relationship cascades
      "all, delete-orphan", so a radiograph never outlives its patient and is
      only ever saved through the patient.
    - `id_paciente` is the clinic's external patient code (unique).
    - `id_radiografia` is unique within one patient, enforced by
      uq_radiographs_patient_code; the same index serves radiograph lookups.
    - `position` keeps the collection in insertion order.
    - Timestamps are stored in UTC with timezone.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radiotrack.database import Base


# ── Workflow vocabulary ───────────────────────────────────────────────────
RADIOGRAPH_STATES = ("pendiente", "en_proceso", "lista", "revisada")
READY_STATE = "lista"

NOTIFICATION_PREFERENCES = ("sms", "email", "ambos")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Patient(Base):
    """
    A person with radiographs.

    Query Patterns:
        - By internal id:       primary key lookup
        - By external code:     uq index on id_paciente
        - List all:             ORDER BY created_at
    Radiographs load eagerly with "selectin" so a patient is always returned
    with its full collection (async sessions cannot lazy-load).
    """

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    id_paciente: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="External patient code assigned by the clinic",
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)

    # sms | email | ambos
    notification_preference: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="sms",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    radiographs: Mapped[List["Radiograph"]] = relationship(
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="Radiograph.position",
        lazy="selectin",
    )

    def radiograph_index(self) -> Dict[str, "Radiograph"]:
        """
        Mapping from radiograph identifier to radiograph.

        Both the external code (`id_radiografia`) and the internal UUID are
        keys, so callers may address a radiograph by either.
        """
        index: Dict[str, Radiograph] = {}
        for radiograph in self.radiographs:
            index[radiograph.id_radiografia] = radiograph
            if radiograph.id is not None:
                index[str(radiograph.id)] = radiograph
        return index

    def add_radiograph(self, radiograph: "Radiograph") -> None:
        """Append a radiograph at the end of the collection."""
        radiograph.position = len(self.radiographs)
        self.radiographs.append(radiograph)

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, id_paciente='{self.id_paciente}')>"


class Radiograph(Base):
    """
    An imaging record embedded in a patient's collection.

    Lifecycle:
        pendiente → en_proceso → lista → revisada
        The order is the intended usage only; any recognized state may be set.
        `notified` flips to True once, when the "lista" notification is
        delivered; `notified_at` records when.
    """

    __tablename__ = "radiographs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )

    id_radiografia: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(100), nullable=False)
    performed_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pendiente",
    )

    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    patient: Mapped[Patient] = relationship(back_populates="radiographs")

    __table_args__ = (
        UniqueConstraint("patient_id", "id_radiografia", name="uq_radiographs_patient_code"),
    )

    @property
    def is_ready(self) -> bool:
        return self.state == READY_STATE

    def mark_notified(self, when: Optional[datetime] = None) -> None:
        """Flag the radiograph as notified and timestamp it."""
        self.notified = True
        self.notified_at = when or _utcnow()

    def __repr__(self) -> str:
        return (
            f"<Radiograph(id_radiografia='{self.id_radiografia}', state='{self.state}', "
            f"notified={self.notified})>"
        )
