"""Agent record and command payload models.

The persisted column names (``nome``, ``posicao_fila`` ...) are the contract
of the hosted ``atendentes`` table. They are kept as aliases so the rest of
the code can use English attribute names while the wire shape stays intact.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.utils import normalize_phone

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_CONTACT_LENGTH = 1
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15


class Partition(str, Enum):
    """The three mutually exclusive groups an agent can be in."""

    QUEUED = "queued"
    BUSY = "busy"
    PAUSED = "paused"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Agent(BaseModel):
    """A call-center agent as stored in the roster.

    Records are immutable; engine actions return updated copies.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str = Field(alias="nome")
    contact_number: str = Field(default="", alias="numero")
    available: bool = Field(default=True, alias="status")
    in_session: bool = Field(default=False, alias="em_atendimento")
    client_name: Optional[str] = Field(default=None, alias="cliente_nome")
    client_contact: Optional[str] = Field(default=None, alias="cliente_numero")
    queue_position: int = Field(default=0, alias="posicao_fila")
    session_started_at: Optional[datetime] = Field(default=None, alias="inicio_atendimento")
    session_ended_at: Optional[datetime] = Field(default=None, alias="fim_atendimento")

    @field_validator("session_started_at", "session_ended_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def partition(self) -> Partition:
        if self.in_session:
            return Partition.BUSY
        if self.available:
            return Partition.QUEUED
        return Partition.PAUSED

    def to_record(self, include_id: bool = True) -> dict[str, Any]:
        """Serialize to the flat persisted record (column names, ISO timestamps)."""
        record = self.model_dump(mode="json", by_alias=True)
        if not include_id:
            record.pop("id")
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Agent":
        return cls.model_validate(record)


class AgentFields(BaseModel):
    """Administrative create/edit payload.

    Only fields that were explicitly provided are applied on edit.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(default=None, alias="nome")
    contact_number: Optional[str] = Field(default=None, alias="numero")
    available: Optional[bool] = Field(default=None, alias="status")

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = re.sub(r"\s+", " ", value).strip()
        if len(value) < MIN_NAME_LENGTH:
            raise ValueError(f"name must have at least {MIN_NAME_LENGTH} characters")
        return value

    @field_validator("contact_number")
    @classmethod
    def check_contact(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if len(value) < MIN_CONTACT_LENGTH:
            raise ValueError("contact number must not be empty")
        return value

    def provided(self) -> dict[str, Any]:
        """Fields the caller actually set, by attribute name."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class SessionRequest(BaseModel):
    """Client data supplied when an agent is dispatched."""

    client_name: str
    client_contact: Optional[str] = None

    @field_validator("client_name")
    @classmethod
    def check_client_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client name must not be empty")
        return value

    @field_validator("client_contact")
    @classmethod
    def check_client_contact(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        digits = normalize_phone(value).lstrip("+")
        if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            raise ValueError(f"client contact {value!r} is not a valid phone number")
        return value.strip()
