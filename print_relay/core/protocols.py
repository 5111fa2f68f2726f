"""Protocol definitions for the output device collaborators."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from .models import DeviceInfo, JobStatus, PrintJob, RenderDocument, RenderOptions, RenderResult

# Sends a job_status report; returns False when the report was dropped.
JobStatusReporter = Callable[[str, JobStatus, Optional[str]], Awaitable[bool]]

JobHandler = Callable[[PrintJob], object]


@runtime_checkable
class DeviceLister(Protocol):
    """Enumerates the output devices installed on this machine."""

    async def list_devices(self) -> list[DeviceInfo]:
        ...


@runtime_checkable
class RenderEngine(Protocol):
    """Renders a document and hands it to a named output device."""

    async def render_and_submit(
        self,
        document: RenderDocument,
        device_name: str,
        options: RenderOptions,
    ) -> RenderResult:
        """Render ``document`` at the exact physical size in ``options``.

        Implementations report device-level failures through the returned
        result; raising is treated the same as a failure by the caller.
        """
        ...
