# common/schemas.py
import json
from types import MappingProxyType
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from common.errors import DecodeError


class TaskSignature(BaseModel):
    """
    Decoded unit of work.

    Wire form is a JSON object with the keys Name / Args / Kwargs / OnSuccess / OnError,
    where OnSuccess and OnError hold nested signatures of the same shape.

    Instances are immutable and hashable. kwargs is a read-only mapping; nested JSON
    values inside args or kwargs (lists, objects) are not frozen.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(default="", alias="Name")
    args: Tuple[Any, ...] = Field(default=(), alias="Args")
    kwargs: Dict[str, Any] = Field(default_factory=dict, alias="Kwargs", validate_default=True)
    on_success: Tuple["TaskSignature", ...] = Field(default=(), alias="OnSuccess")
    on_error: Tuple["TaskSignature", ...] = Field(default=(), alias="OnError")

    @field_validator("name", "args", "kwargs", "on_success", "on_error", mode="before")
    @classmethod
    def _null_as_empty(cls, value, info):
        # JSON null decodes like an omitted field
        if value is None:
            return {"name": "", "kwargs": {}}.get(info.field_name, ())
        return value

    @field_validator("kwargs")
    @classmethod
    def _read_only_kwargs(cls, value):
        return MappingProxyType(dict(value))

    @field_serializer("kwargs")
    def _plain_kwargs(self, value):
        return dict(value)

    def __hash__(self):
        return hash(self.to_payload())

    @classmethod
    def from_payload(cls, payload) -> "TaskSignature":
        """
        Decode raw delivery bytes.

        :raises DecodeError: empty body, invalid JSON or wrong shape
        """
        if not payload:
            raise DecodeError("Empty payload", payload or b"")
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"JSON error: {e}", payload) from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Invalid task signature: {e.error_count()} error(s)", payload) from e

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)


TaskSignature.model_rebuild()
