"""Print job execution pipeline.

Jobs arrive from the relay link, are rendered one at a time on the
configured output device, and have their lifecycle reported back through the
link. Reporting is best effort: a report made while the relay transport is
down is dropped, never queued. Every failure below the job boundary ends as a
``failed`` status for that job and never propagates to the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Optional

from .config import PrintConfig
from .core import (
    DeviceLister,
    JobRecord,
    JobStatus,
    JobStatusReporter,
    JobType,
    PaperSize,
    PrintJob,
    RenderEngine,
    RenderError,
    RenderOptions,
    RenderResult,
)
from .documents import build_document, resolve_paper_size
from .status import StatusPublisher

LOGGER = logging.getLogger(__name__)

NO_DEVICE_REASON = "no device configured"


class JobPipeline:
    """Drives each print job from receipt to its terminal status report."""

    def __init__(
        self,
        *,
        engine: RenderEngine,
        report: JobStatusReporter,
        status: StatusPublisher,
        device_name: Callable[[], Optional[str]],
        lister: Optional[DeviceLister] = None,
        printing: Optional[PrintConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._engine = engine
        self._report = report
        self._status = status
        self._device_name = device_name
        self._lister = lister
        self._printing = printing or PrintConfig()
        self._clock = clock or datetime.now

        self._device_lock = asyncio.Lock()
        self._pending = 0
        self._tasks: set[asyncio.Task[JobRecord]] = set()
        self._history: Deque[JobRecord] = deque(maxlen=self._printing.history_size)

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def default_paper(self) -> PaperSize:
        return PaperSize(
            width_mm=self._printing.paper_width_mm,
            height_mm=self._printing.paper_height_mm,
        )

    def history(self) -> list[JobRecord]:
        return list(self._history)

    def submit(self, job: PrintJob) -> asyncio.Task[JobRecord]:
        """Accept a job; completion is reported asynchronously."""

        LOGGER.info("Received print job %s (type=%s)", job.id, job.type or "?")
        record = JobRecord(job_id=job.id, job_type=job.type)
        self._history.append(record)
        self._set_pending(self._pending + 1)

        task = asyncio.create_task(self._process(job, record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight jobs; cancel whatever is left after ``timeout``."""

        tasks = list(self._tasks)
        if not tasks:
            return

        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        for task in still_running:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if still_running:
            LOGGER.warning("Cancelled %d unfinished print job(s)", len(still_running))

    async def test_print(self) -> RenderResult:
        """Print a local test page and return the outcome directly."""

        job = PrintJob(
            id=f"local-test-{self._clock():%Y%m%d%H%M%S}",
            type=JobType.TEST.value,
        )
        LOGGER.info("Test print requested")
        try:
            return await self._execute(job)
        except Exception as exc:
            return RenderResult.failure(_describe(exc))

    async def _process(self, job: PrintJob, record: JobRecord) -> JobRecord:
        try:
            await self._advance(record, JobStatus.PRINTING)
            try:
                result = await self._execute(job)
            except asyncio.CancelledError:
                result = RenderResult.failure("job cancelled")
                await self._settle(record, result)
                raise
            except Exception as exc:
                LOGGER.exception("Print job %s raised", job.id)
                result = RenderResult.failure(_describe(exc))

            await self._settle(record, result)
            return record
        finally:
            self._set_pending(max(0, self._pending - 1))

    async def _execute(self, job: PrintJob) -> RenderResult:
        device = self._device_name()
        if not device:
            return RenderResult.failure(NO_DEVICE_REASON)

        paper = resolve_paper_size(job, self.default_paper)
        try:
            document = build_document(
                job, device_name=device, paper=paper, now=self._clock()
            )
        except RenderError as exc:
            return RenderResult.failure(str(exc))

        options = RenderOptions(
            width_mm=paper.width_mm,
            height_mm=paper.height_mm,
            settle_seconds=self._printing.settle_seconds,
        )

        async with self._device_lock:
            missing = await self._check_device(device)
            if missing is not None:
                return missing

            LOGGER.info(
                "Printing job %s to %s (%gx%g mm)",
                job.id,
                device,
                paper.width_mm,
                paper.height_mm,
            )
            timeout = self._printing.render_timeout_seconds
            try:
                async with asyncio.timeout(timeout):
                    return await self._engine.render_and_submit(
                        document, device, options
                    )
            except asyncio.TimeoutError:
                return RenderResult.failure(f"render timed out after {timeout:g}s")

    async def _check_device(self, device: str) -> Optional[RenderResult]:
        if self._lister is None:
            return None

        try:
            devices = await self._lister.list_devices()
        except Exception as exc:
            return RenderResult.failure(f"device enumeration failed: {_describe(exc)}")

        if not any(info.name == device for info in devices):
            return RenderResult.failure(f"device not found: {device}")
        return None

    async def _settle(self, record: JobRecord, result: RenderResult) -> None:
        if result.ok:
            LOGGER.info("Print job %s completed", record.job_id)
            await self._advance(record, JobStatus.COMPLETED)
        else:
            reason = result.error or "render failed"
            LOGGER.error("Print job %s failed: %s", record.job_id, reason)
            await self._advance(record, JobStatus.FAILED, reason)

    async def _advance(
        self, record: JobRecord, status: JobStatus, error: Optional[str] = None
    ) -> None:
        record.advance(status, error)
        try:
            delivered = await self._report(record.job_id, status, error)
        except Exception:
            LOGGER.exception("Failed to report %s for job %s", status.value, record.job_id)
            return
        if not delivered:
            LOGGER.warning(
                "Relay not connected; dropped %s report for job %s",
                status.value,
                record.job_id,
            )

    def _set_pending(self, value: int) -> None:
        self._pending = value
        self._status.update(pending_jobs=value)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
