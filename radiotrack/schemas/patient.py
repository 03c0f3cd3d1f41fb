"""
RadioTrack Backend — Pydantic Request/Response Schemas
========================================================

What:  Pydantic models defining the API contract.
Why:   Invalid bodies are rejected before anything touches the database,
       so a 400 never leaves a half-created patient behind.
How:   FastAPI uses these models to validate request bodies, serialize
       responses, and generate the OpenAPI documentation.

Naming:
    Python attributes use the ORM's English names; the JSON contract uses
    the clinic's Spanish field names (idPaciente, nombre, radiografias, ...)
    through aliases. Responses are serialized by alias, and requests accept
    either spelling.
"""

import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RadiographState = Literal["pendiente", "en_proceso", "lista", "revisada"]
NotificationPreference = Literal["sms", "email", "ambos"]


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RadiographCreate(_Schema):
    """A radiograph as submitted inside a new patient, or on its own."""

    id_radiografia: str = Field(alias="idRadiografia", min_length=1, max_length=64)
    kind: str = Field(alias="tipo", min_length=1, max_length=100)
    performed_on: Optional[date] = Field(default=None, alias="fecha")
    image_url: Optional[str] = Field(default=None, alias="urlImagen", max_length=500)
    state: RadiographState = Field(default="pendiente", alias="estado")


class PatientCreate(_Schema):
    """
    Body of POST /api/pacientes.

    Every embedded radiograph is validated too; a missing idRadiografia
    rejects the whole patient. Radiograph codes must be unique within the
    submitted collection.
    """

    id_paciente: str = Field(alias="idPaciente", min_length=1, max_length=64)
    name: str = Field(alias="nombre", min_length=1, max_length=200)
    birth_date: Optional[date] = Field(default=None, alias="fechaNacimiento")
    phone: Optional[str] = Field(default=None, alias="telefono", max_length=32)
    email: Optional[str] = Field(default=None, max_length=254)
    notification_preference: NotificationPreference = Field(
        default="sms", alias="preferenciaNotificacion"
    )
    radiographs: List[RadiographCreate] = Field(default_factory=list, alias="radiografias")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Shape check only. Inner whitespace (CR/LF included) is rejected, since
        the address ends up in a mail header."""
        if v is None:
            return v
        v = v.strip()
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain or any(c.isspace() for c in v):
            raise ValueError(f"'{v}' is not a valid email address")
        return v

    @model_validator(mode="after")
    def check_unique_radiograph_codes(self) -> "PatientCreate":
        seen = set()
        for radiograph in self.radiographs:
            if radiograph.id_radiografia in seen:
                raise ValueError(
                    f"idRadiografia '{radiograph.id_radiografia}' is repeated"
                )
            seen.add(radiograph.id_radiografia)
        return self


class StateUpdate(_Schema):
    """Body of PUT /api/pacientes/{id}/radiografias/{idRad}."""

    state: RadiographState = Field(alias="estado")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RadiographResponse(_Schema):
    id: uuid.UUID
    id_radiografia: str = Field(alias="idRadiografia")
    kind: str = Field(alias="tipo")
    performed_on: Optional[date] = Field(default=None, alias="fecha")
    image_url: Optional[str] = Field(default=None, alias="urlImagen")
    state: str = Field(alias="estado")
    notified: bool = Field(default=False, alias="notificado")
    notified_at: Optional[datetime] = Field(default=None, alias="fechaNotificacion")


class PatientResponse(_Schema):
    """Full patient document, radiographs included, in collection order."""

    id: uuid.UUID
    id_paciente: str = Field(alias="idPaciente")
    name: str = Field(alias="nombre")
    birth_date: Optional[date] = Field(default=None, alias="fechaNacimiento")
    phone: Optional[str] = Field(default=None, alias="telefono")
    email: Optional[str] = None
    notification_preference: str = Field(alias="preferenciaNotificacion")
    radiographs: List[RadiographResponse] = Field(default_factory=list, alias="radiografias")
    created_at: Optional[datetime] = Field(default=None, alias="creadoEn")


class ReadyRadiographsResponse(_Schema):
    """GET /api/pacientes/{id}/radiografias-listas"""

    patient_name: str = Field(alias="paciente")
    ready: List[RadiographResponse] = Field(alias="radiografiasListas")
    total: int


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "Paciente no encontrado",
            "request_id": "1a2b3c4d"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    notifications: str = Field(description="Notification transport: console, live")
    uptime_seconds: float = Field(description="Seconds since service started")
