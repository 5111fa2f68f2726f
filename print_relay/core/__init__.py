"""Core primitives for print-relay."""

from .errors import (
    ConfigurationError,
    ProtocolError,
    RelayError,
    RenderError,
    TransportError,
)
from .models import (
    AgentIdentity,
    DeviceInfo,
    JobRecord,
    JobStatus,
    JobType,
    PaperSize,
    PrintJob,
    RenderDocument,
    RenderOptions,
    RenderResult,
)
from .protocols import DeviceLister, JobHandler, JobStatusReporter, RenderEngine

__all__ = [
    "AgentIdentity",
    "ConfigurationError",
    "DeviceInfo",
    "DeviceLister",
    "JobHandler",
    "JobRecord",
    "JobStatus",
    "JobStatusReporter",
    "JobType",
    "PaperSize",
    "PrintJob",
    "ProtocolError",
    "RelayError",
    "RenderDocument",
    "RenderEngine",
    "RenderError",
    "RenderOptions",
    "RenderResult",
    "TransportError",
]
