"""Pydantic models for job payloads."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..utils import parse_timestamp

SetMutation = Literal["created", "updated", "deleted"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str

    @field_validator("user_id", mode="before")
    @classmethod
    def user_id_not_empty(cls, v: Any) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("Missing user_id")
        return v


class SetMutationPayload(_Payload):
    """A workout set was created, updated or deleted.

    ``previous_performed_at`` is the set's timestamp before an update, so a
    set moved across days recomputes the day it left as well.
    """

    performed_at: datetime
    previous_performed_at: datetime | None = None
    set_id: str | None = None
    mutation: SetMutation = "updated"

    @field_validator("performed_at", mode="before")
    @classmethod
    def parse_performed_at(cls, v: Any) -> datetime:
        return parse_timestamp(v, field="performed_at")

    @field_validator("previous_performed_at", mode="before")
    @classmethod
    def parse_previous_performed_at(cls, v: Any) -> datetime | None:
        if v is None or v == "":
            return None
        return parse_timestamp(v, field="previous_performed_at")


class BackfillPayload(_Payload):
    pass


def parse_payload(model: type[_Payload], payload: dict[str, Any]) -> Any:
    """Validate a raw job payload, raising the worker's ValidationError."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"Invalid {model.__name__} ({loc}): {first['msg']}") from exc
