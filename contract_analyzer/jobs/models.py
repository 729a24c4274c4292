"""Execution status records and dispatch payloads."""

import secrets
import string
import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ExecutionStatus(str, Enum):
    SUBMITTED = "submitted"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({ExecutionStatus.COMPLETED.value, ExecutionStatus.ERROR.value})
_STATUS_VALUES = frozenset(s.value for s in ExecutionStatus)


def is_terminal(status: Optional[str]) -> bool:
    """True for ``completed`` / ``error`` in any letter case."""
    return bool(status) and status.strip().lower() in TERMINAL_STATUSES


def new_execution_id() -> str:
    """Mint an opaque execution id: ``exec_<epoch ms>_<9 random base-36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"exec_{int(time.time() * 1000)}_{suffix}"


class StatusRecord(BaseModel):
    """Latest known progress/result snapshot for one execution."""
    title: str
    description: str
    progress: int = Field(default=0, ge=0, le=100)
    status: str = ExecutionStatus.PROCESSING.value
    results: Optional[List[Any]] = None

    @field_validator("progress", mode="before")
    @classmethod
    def _round_progress(cls, value):
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
        if value not in _STATUS_VALUES:
            raise ValueError(f"unknown status {value!r}")
        return value

    @property
    def terminal(self) -> bool:
        return is_terminal(self.status)

    def to_event(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Criterion(BaseModel):
    """One user-entered analysis criterion."""
    model_config = ConfigDict(extra="ignore")

    type: Literal["MUSS", "SOLL", "KANN", "ANALYSE"]
    value: str


class DispatchJob(BaseModel):
    """Everything the workflow engine needs for one execution."""
    execution_id: str
    filename: str
    content_type: str = "application/octet-stream"
    content: bytes
    callback_url: Optional[str] = None
    criteria: Optional[List[Criterion]] = None
