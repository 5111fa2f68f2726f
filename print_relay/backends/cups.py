"""CUPS command-line backend for device enumeration and job submission."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..core import DeviceInfo, RenderDocument, RenderError, RenderOptions, RenderResult

LOGGER = logging.getLogger(__name__)

PdfRenderer = Callable[[str, RenderOptions], bytes]


def render_html(html: str, options: RenderOptions) -> bytes:
    # weasyprint loads Pango on import; only rendering needs it.
    from .pdf import render_pdf

    return render_pdf(html, options)


class CupsBackend:
    """Drives ``lpstat`` and ``lp`` through asyncio subprocesses.

    Implements both :class:`~print_relay.core.DeviceLister` and
    :class:`~print_relay.core.RenderEngine`. HTML documents are rendered to a
    PDF whose page is exactly the requested paper size, then submitted with
    scaling pinned to 100% and all page margins at zero, so that the device
    never shrinks receipts to fit a default page.
    """

    def __init__(
        self,
        *,
        lp_command: str = "lp",
        lpstat_command: str = "lpstat",
        command_timeout: float = 30.0,
        renderer: PdfRenderer = render_html,
    ) -> None:
        self._lp = lp_command
        self._lpstat = lpstat_command
        self._command_timeout = command_timeout
        self._renderer = renderer

    @property
    def is_available(self) -> bool:
        return all(shutil.which(command) for command in (self._lp, self._lpstat))

    async def list_devices(self) -> list[DeviceInfo]:
        code, stdout, stderr = await self._run([self._lpstat, "-p"])
        if code != 0:
            detail = stderr.strip()
            if "No destinations" in detail or "no destinations" in detail:
                return []
            raise RuntimeError(f"lpstat failed ({code}): {detail}")

        default = await self._default_device()
        devices: list[DeviceInfo] = []
        for line in stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "printer":
                name = parts[1]
                devices.append(DeviceInfo(name=name, is_default=name == default))
        return devices

    async def render_and_submit(
        self,
        document: RenderDocument,
        device_name: str,
        options: RenderOptions,
    ) -> RenderResult:
        if options.settle_seconds > 0:
            await asyncio.sleep(options.settle_seconds)

        try:
            data, suffix = await self._prepare(document, options)
        except RenderError as exc:
            return RenderResult.failure(str(exc))

        fd, name = tempfile.mkstemp(prefix="print-relay-", suffix=suffix)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as stream:
                stream.write(data)

            code, stdout, stderr = await self._run(
                lp_arguments(self._lp, device_name, options, document.title, path)
            )
        except (OSError, asyncio.TimeoutError) as exc:
            return RenderResult.failure(f"print submission failed: {exc}")
        finally:
            path.unlink(missing_ok=True)

        if code != 0:
            detail = stderr.strip() or stdout.strip() or f"lp exited with {code}"
            return RenderResult.failure(detail)

        LOGGER.debug("Submitted to %s: %s", device_name, stdout.strip())
        return RenderResult.success()

    async def _prepare(
        self, document: RenderDocument, options: RenderOptions
    ) -> tuple[bytes, str]:
        """Return the bytes handed to ``lp`` and their file suffix.

        Raises:
            RenderError: For unsupported content types or a failed conversion.
        """
        if document.content_type == "text/plain":
            return document.content.encode("utf-8"), ".txt"
        if document.content_type != "text/html":
            raise RenderError(f"unsupported content type: {document.content_type}")

        try:
            pdf = await asyncio.to_thread(self._renderer, document.content, options)
        except Exception as exc:
            raise RenderError(f"html rendering failed: {exc}") from exc
        return pdf, ".pdf"

    async def _default_device(self) -> Optional[str]:
        try:
            code, stdout, _ = await self._run([self._lpstat, "-d"])
        except (OSError, asyncio.TimeoutError):
            return None
        if code != 0 or ":" not in stdout:
            return None
        return stdout.split(":", 1)[1].strip() or None

    async def _run(self, argv: Sequence[str]) -> tuple[int, str, str]:
        """Run one command; the child never outlives a timeout or cancellation."""

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            async with asyncio.timeout(self._command_timeout):
                stdout, stderr = await process.communicate()
        except BaseException:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            raise
        return (
            process.returncode if process.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )


def lp_arguments(
    lp_command: str,
    device_name: str,
    options: RenderOptions,
    title: str,
    path: Path,
) -> list[str]:
    """Build the ``lp`` invocation for one document."""

    media = f"Custom.{options.width_mm:g}x{options.height_mm:g}mm"
    argv = [
        lp_command,
        "-d",
        device_name,
        "-t",
        title,
        "-o",
        f"media={media}",
        "-o",
        f"scaling={options.scale}",
        "-o",
        "fit-to-page=false",
    ]
    if options.margins == "none":
        for side in ("left", "right", "top", "bottom"):
            argv.extend(["-o", f"page-{side}=0"])
    argv.append(str(path))
    return argv
