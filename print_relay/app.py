"""Main application entry-point for print-relay."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from .backends import CupsBackend
from .config import AgentConfig, load_config
from .connection import RelayLink
from .core import DeviceLister, RenderEngine, RenderResult
from .health import HealthServer
from .logging import configure_logging
from .pipeline import JobPipeline
from .registration import RegistrationClient
from .status import StatusPublisher

LOGGER = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


class PrintRelayApp:
    """Coordinates application startup and shutdown.

    Wires the registration client, relay link, job pipeline and status
    publisher together. The render engine and device lister can be injected
    for testing or to support output stacks other than CUPS.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        *,
        engine: Optional[RenderEngine] = None,
        lister: Optional[DeviceLister] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config or load_config()
        backend = CupsBackend() if engine is None or lister is None else None
        self._engine: RenderEngine = engine or backend  # type: ignore[assignment]
        self._lister: DeviceLister = lister or backend  # type: ignore[assignment]

        self.status = StatusPublisher()
        self.link = RelayLink(
            self._config,
            status=self.status,
            registrar=RegistrationClient(self._config, session=session),
            session=session,
        )
        self.pipeline = JobPipeline(
            engine=self._engine,
            report=self.link.send_job_status,
            status=self.status,
            device_name=lambda: self._config.device.name or None,
            lister=self._lister,
            printing=self._config.printing,
        )
        self.link.set_job_handler(self.pipeline.submit)

        self._health_server: Optional[HealthServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def config(self) -> AgentConfig:
        return self._config

    async def run(self) -> None:
        """Run until cancelled or :meth:`request_shutdown` is called."""

        self._shutdown_event = asyncio.Event()
        LOGGER.info("print-relay starting with config: %s", self._config.path)

        await self._start_services()
        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("print-relay received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def connect(self) -> bool:
        """Operator-triggered connect; the link handles retries from here."""

        return await self.link.connect()

    async def disconnect(self) -> None:
        await self.link.disconnect()

    async def test_print(self) -> RenderResult:
        return await self.pipeline.test_print()

    async def refresh_device_status(self) -> bool:
        """Check the configured device against the installed devices."""

        name = self._config.device.name or None
        ready = False
        if name:
            try:
                devices = await self._lister.list_devices()
            except Exception as exc:
                LOGGER.warning("Could not enumerate output devices: %s", exc)
            else:
                ready = any(device.name == name for device in devices)
                if not ready:
                    LOGGER.warning("Configured printer %s is not installed", name)
        self.status.update(device_name=name, device_ready=ready)
        return ready

    @classmethod
    def start(cls, config: Optional[AgentConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
            secrets=[instance._config.relay.token],
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("print-relay received shutdown signal")

    async def _start_services(self) -> None:
        await self.refresh_device_status()

        resilience = self._config.resilience
        if resilience.health_enabled:
            server = HealthServer(
                self.status,
                resilience.health_host,
                resilience.health_port,
                job_history=self.pipeline.history,
            )
            try:
                await server.start()
            except OSError as exc:
                LOGGER.error("Status endpoint could not start: %s", exc)
            else:
                self._health_server = server

        if self._config.device.auto_connect and self._config.relay.company_id:
            LOGGER.info("Auto-connecting...")
            await self.link.connect()
        else:
            LOGGER.info("Auto-connect disabled or no company configured; waiting")

    async def _stop_services(self) -> None:
        await self.link.disconnect()
        await self.pipeline.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
        await self.link.close()
        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None
