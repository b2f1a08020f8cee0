# common/config.py
import os
import socket
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# --- 1. Environment ---
project_root = Path(__file__).resolve().parent.parent
env_path = project_root / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _default_consumer_name() -> str:
    return f"worker-{socket.gethostname()}-{os.getpid()}"


class WorkerSettings(BaseModel):
    """
    Worker settings, read once at startup.

    Every field maps to an environment variable of the same name in upper case
    (REDIS_URL, DEFAULT_QUEUE, PREFETCH_COUNT, ...).
    """
    redis_url: str = "redis://127.0.0.1:6379/0"
    default_queue: str = "machinery_tasks"
    group_name: str = "machinery_workers_group"
    consumer_name: str = Field(default_factory=_default_consumer_name)

    # Max deliveries handed to this consumer and not yet acknowledged
    prefetch_count: int = Field(default=3, ge=1)
    # early: ack on receipt (default); late: ack after finalize
    ack_mode: Literal["early", "late"] = "early"
    # Seconds slept per "." in the payload before dispatch, 0 disables
    pace_unit: float = Field(default=1.0, ge=0)

    block_ms: int = Field(default=2000, ge=0)
    reconnect_delay: float = Field(default=5.0, ge=0)
    # Pending entries idle this long are taken over at startup, whichever consumer held them
    claim_idle_ms: int = Field(default=60000, ge=0)
    dlq_stream_key: str = "sys_dead_letters"

    database_url: str = ""
    log_level: str = "INFO"

    @field_validator("default_queue", "group_name", "consumer_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("ack_mode", "log_level", mode="before")
    @classmethod
    def _normalize_case(cls, value, info):
        if isinstance(value, str):
            return value.lower() if info.field_name == "ack_mode" else value.upper()
        return value

    @classmethod
    def from_env(cls, environ=None) -> "WorkerSettings":
        """Build settings from os.environ (or the given mapping); unset keys keep defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        # an explicitly empty DLQ_STREAM_KEY switches dead-lettering off
        if environ.get("DLQ_STREAM_KEY") == "":
            values["dlq_stream_key"] = ""
        return cls(**values)

    def masked_redis_url(self) -> str:
        """Redis URL with the password hidden, for logs."""
        if "@" not in self.redis_url or "://" not in self.redis_url:
            return self.redis_url
        scheme, rest = self.redis_url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        if ":" not in credentials:
            # username only, nothing secret
            return self.redis_url
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"
