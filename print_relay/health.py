"""Local HTTP status endpoint for print-relay."""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, Iterable, Optional

from aiohttp import web

from .core import JobRecord
from .status import StatusPublisher

LOGGER = logging.getLogger(__name__)


class HealthServer:
    """Minimal HTTP server exposing `/healthz` and `/jobs` for local tooling."""

    def __init__(
        self,
        publisher: StatusPublisher,
        host: str,
        port: int,
        *,
        job_history: Optional[Callable[[], Iterable[JobRecord]]] = None,
    ) -> None:
        self._publisher = publisher
        self._host = host
        self._port = port
        self._job_history = job_history
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was 0."""
        if self._runner is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple) and len(address) >= 2:
                    return int(address[1])
        return self._port

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/jobs", self._handle_jobs)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Status endpoint listening on http://%s:%s/healthz", self._host, self.port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = self._publisher.snapshot()
        status = 200 if snapshot.connected else 503
        return web.json_response(snapshot.as_dict(), status=status)

    async def _handle_jobs(self, request: web.Request) -> web.Response:
        records = list(self._job_history()) if self._job_history else []
        return web.json_response({"jobs": [record.as_dict() for record in records]})
