"""Value types exchanged between the relay link, the pipeline and devices."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ProtocolError


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class AgentIdentity:
    """Session identity issued by the relay's registration endpoint."""

    agent_id: str
    company_id: str
    device_name: str


class JobType(str, Enum):
    TICKET = "ticket"
    TEST = "test"


class JobStatus(str, Enum):
    """Lifecycle of a print job; values are the wire status strings."""

    QUEUED = "queued"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_STATUS_ORDER = {
    JobStatus.QUEUED: 0,
    JobStatus.PRINTING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


def _optional_dimension(payload: Mapping[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = payload.get(key)
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    return None


@dataclass(slots=True, frozen=True)
class PrintJob:
    """One unit of print work received from the relay.

    ``type`` is kept as the raw string so jobs of unknown types can still be
    tracked and failed with a meaningful reason.
    """

    id: str
    type: str
    html: Optional[str] = None
    paper_width_mm: Optional[float] = None
    paper_height_mm: Optional[float] = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PrintJob":
        """Build a job from a ``print_job`` message payload.

        Raises:
            ProtocolError: If the payload carries no job id.
        """
        job_id = payload.get("id")
        if job_id is None or str(job_id) == "":
            raise ProtocolError("print_job payload is missing 'id'")

        html = payload.get("html")
        known = {"id", "type", "html", "paperWidthMm", "paperHeightMm", "paperWidth", "paperHeight"}
        extra = {key: value for key, value in payload.items() if key not in known}

        return cls(
            id=str(job_id),
            type=str(payload.get("type") or ""),
            html=str(html) if html else None,
            paper_width_mm=_optional_dimension(payload, "paperWidthMm", "paperWidth"),
            paper_height_mm=_optional_dimension(payload, "paperHeightMm", "paperHeight"),
            fields=extra,
        )


@dataclass(slots=True)
class JobRecord:
    """Local status history entry for a single job."""

    job_id: str
    job_type: str
    status: JobStatus = JobStatus.QUEUED
    error: Optional[str] = None
    received_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    def advance(self, status: JobStatus, error: Optional[str] = None) -> None:
        """Move the job forward; terminal and backward moves are rejected."""
        if self.status.is_terminal:
            raise ValueError(
                f"Job {self.job_id} already settled as {self.status.value}"
            )
        if _STATUS_ORDER[status] < _STATUS_ORDER[self.status]:
            raise ValueError(
                f"Job {self.job_id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.error = error
        if status.is_terminal:
            self.finished_at = _utcnow()

    def as_dict(self) -> dict[str, object]:
        return {
            "jobId": self.job_id,
            "type": self.job_type,
            "status": self.status.value,
            "errorMessage": self.error,
            "receivedAt": self.received_at.isoformat(timespec="seconds"),
            "finishedAt": (
                self.finished_at.isoformat(timespec="seconds")
                if self.finished_at
                else None
            ),
        }


@dataclass(slots=True, frozen=True)
class PaperSize:
    width_mm: float
    height_mm: float


@dataclass(slots=True, frozen=True)
class RenderDocument:
    content: str
    content_type: str = "text/html"
    title: str = "print-relay job"


@dataclass(slots=True, frozen=True)
class RenderOptions:
    """Physical output settings; scaling and margins must stay disabled."""

    width_mm: float
    height_mm: float
    scale: int = 100
    margins: str = "none"
    settle_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class RenderResult:
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "RenderResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "RenderResult":
        return cls(ok=False, error=reason)


@dataclass(slots=True, frozen=True)
class DeviceInfo:
    name: str
    is_default: bool = False
