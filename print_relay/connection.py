"""Relay connection management.

This module owns the single authenticated websocket to the relay: it runs the
registration/auth handshake, the heartbeat ticker, inbound dispatch and the
fixed-delay reconnect timer. All connection state lives in one
:class:`LinkSession` and is only mutated through :class:`RelayLink` methods.

Failures below the connection boundary become a state transition plus a
scheduled reconnect; nothing is raised past the link.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

import aiohttp

from . import protocol
from .config import AgentConfig, RelayConfig
from .core import (
    AgentIdentity,
    ConfigurationError,
    JobHandler,
    JobStatus,
    PrintJob,
    ProtocolError,
    TransportError,
)
from .registration import RegistrationClient
from .status import StatusPublisher

LOGGER = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Current state of the relay connection."""

    DISCONNECTED = "disconnected"
    """No transport; nothing scheduled unless a reconnect is pending."""

    CONNECTING = "connecting"
    """Registering and opening the websocket."""

    AUTHENTICATING = "authenticating"
    """Websocket open, ``auth`` sent, waiting for the relay's verdict."""

    CONNECTED = "connected"
    """Authenticated; heartbeats running and jobs accepted."""

    RECONNECTING = "reconnecting"
    """A reconnect timer is pending."""


@dataclass(slots=True)
class LinkSession:
    """Handles owned by the link for the current connection epoch."""

    ws: Optional[aiohttp.ClientWebSocketResponse] = None
    reader_task: Optional[asyncio.Task[None]] = None
    heartbeat_task: Optional[asyncio.Task[None]] = None
    reconnect_handle: Optional[asyncio.TimerHandle] = None
    connect_task: Optional[asyncio.Task[bool]] = None
    epoch: int = 0


class RelayLink:
    """Durable, authenticated connection to the print relay."""

    def __init__(
        self,
        config: AgentConfig,
        *,
        status: StatusPublisher,
        registrar: Optional[RegistrationClient] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config
        self._status = status
        self._http: Optional[aiohttp.ClientSession] = session
        self._owns_http = session is None
        self._registrar = registrar or RegistrationClient(config, session=session)

        self._state = ConnectionState.DISCONNECTED
        self._session = LinkSession()
        self._identity: Optional[AgentIdentity] = None
        self._job_handler: Optional[JobHandler] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def identity(self) -> Optional[AgentIdentity]:
        return self._identity

    @property
    def reconnect_pending(self) -> bool:
        return self._session.reconnect_handle is not None

    @property
    def heartbeat_active(self) -> bool:
        task = self._session.heartbeat_task
        return task is not None and not task.done()

    def set_job_handler(self, handler: Optional[JobHandler]) -> None:
        self._job_handler = handler

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def connect(self) -> bool:
        """Run the connect sequence once.

        Returns True when the websocket was opened and ``auth`` sent; the
        transition to ``connected`` follows when the relay answers. Returns
        False on configuration problems (no retry) or transport failures (a
        reconnect is scheduled).
        """

        self._cancel_reconnect()
        epoch = self._new_epoch()
        self._stop_heartbeat()
        await self._teardown_transport()

        relay = self._config.relay
        try:
            _require_credentials(relay)
        except ConfigurationError as exc:
            reason = f"Cannot connect: {exc}"
            LOGGER.warning(reason)
            self._transition(ConnectionState.DISCONNECTED, last_error=reason)
            return False

        self._transition(ConnectionState.CONNECTING, last_error=None)

        identity = self._identity
        if identity is None:
            identity = await self._registrar.register()
            if epoch != self._session.epoch:
                return False
            if identity is None:
                self._connection_failed("registration failed")
                return False
            self._identity = identity

        try:
            ws = await self._open_transport(relay.ws_url)
        except TransportError as exc:
            if epoch == self._session.epoch:
                self._connection_failed(str(exc))
            return False

        if epoch != self._session.epoch:
            await ws.close()
            return False

        LOGGER.info("Connected to relay server")
        self._session.ws = ws
        self._transition(ConnectionState.AUTHENTICATING)
        self._session.reader_task = asyncio.create_task(self._receive_loop(ws, epoch))

        sent = await self.send_message(
            protocol.AUTH,
            {
                "token": relay.token,
                "companyId": identity.company_id,
                "agentId": identity.agent_id,
                "deviceName": identity.device_name,
            },
        )
        if not sent:
            LOGGER.warning("Could not send auth message; waiting for transport close")
        return True

    async def disconnect(self) -> None:
        """Close the transport and cancel every timer. Safe to call repeatedly."""

        self._cancel_reconnect()
        self._new_epoch()
        self._stop_heartbeat()

        connect_task = self._session.connect_task
        self._session.connect_task = None
        if connect_task is not None and connect_task is not asyncio.current_task():
            connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await connect_task

        await self._teardown_transport()
        if self._state != ConnectionState.DISCONNECTED:
            LOGGER.info("Disconnected from relay server")
        self._transition(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        """Disconnect and release the HTTP session if the link created it."""

        await self.disconnect()
        if self._owns_http and self._http is not None:
            await self._http.close()
            self._http = None

    async def send_message(
        self, message_type: str, payload: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """Send one frame if the transport is open; False when dropped."""

        ws = self._session.ws
        if ws is None or ws.closed:
            return False
        try:
            await ws.send_str(protocol.encode_message(message_type, payload))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            LOGGER.debug("Dropping %s message: %s", message_type, exc)
            return False
        return True

    async def send_job_status(
        self, job_id: str, status: JobStatus, error: Optional[str] = None
    ) -> bool:
        """Report a job transition; dropped unless the relay has authenticated us."""

        if self._state is not ConnectionState.CONNECTED:
            return False
        return await self.send_message(
            protocol.JOB_STATUS,
            {"jobId": job_id, "status": status.value, "errorMessage": error},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _ensure_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession()
            self._owns_http = True
        return self._http

    async def _open_transport(self, url: str) -> aiohttp.ClientWebSocketResponse:
        LOGGER.info("Connecting to relay server: %s", url)
        timeout = self._config.resilience.connect_timeout_seconds
        http = await self._ensure_http()
        try:
            async with asyncio.timeout(timeout):
                return await http.ws_connect(url)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"connect timed out after {timeout:g}s") from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise TransportError(f"connect failed: {exc}") from exc

    def _new_epoch(self) -> int:
        self._session.epoch += 1
        return self._session.epoch

    def _transition(self, state: ConnectionState, **changes: Any) -> None:
        if state != self._state:
            LOGGER.debug("Relay link %s -> %s", self._state.value, state.value)
        self._state = state
        self._status.update(
            state=state.value,
            connected=state == ConnectionState.CONNECTED,
            **changes,
        )

    def _connection_failed(self, reason: str) -> None:
        LOGGER.error("Failed to connect to relay: %s", reason)
        self._transition(ConnectionState.DISCONNECTED, last_error=reason)
        self._schedule_reconnect()

    async def _receive_loop(
        self, ws: aiohttp.ClientWebSocketResponse, epoch: int
    ) -> None:
        try:
            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    await self._dispatch(message.data)
                elif message.type == aiohttp.WSMsgType.BINARY:
                    await self._dispatch(message.data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    LOGGER.error("Relay connection error: %s", ws.exception())
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Relay connection error: %s", exc)

        if epoch == self._session.epoch:
            await self._handle_transport_closed()

    async def _handle_transport_closed(self) -> None:
        LOGGER.warning("Relay connection closed")
        self._stop_heartbeat()
        ws = self._session.ws
        self._session.ws = None
        self._session.reader_task = None
        if ws is not None and not ws.closed:
            with contextlib.suppress(Exception):
                await ws.close()
        self._transition(ConnectionState.DISCONNECTED)
        self._schedule_reconnect()

    async def _dispatch(self, data: str | bytes) -> None:
        try:
            message = protocol.decode_message(data)
        except ProtocolError as exc:
            LOGGER.error("Failed to parse relay message: %s", exc)
            return

        LOGGER.debug("Relay message: %s", message.type)

        if message.type == protocol.AUTH_SUCCESS:
            self._handle_auth_success(message.payload)
        elif message.type == protocol.AUTH_ERROR:
            await self._handle_auth_error(message.payload)
        elif message.type == protocol.PRINT_JOB:
            self._handle_print_job(message.payload)
        elif message.type == protocol.PING:
            await self.send_message(protocol.PONG)
        else:
            LOGGER.warning("Unknown message type: %s", message.type)

    def _handle_auth_success(self, payload: Mapping[str, Any]) -> None:
        if self._state != ConnectionState.AUTHENTICATING:
            LOGGER.debug("Ignoring auth_success in state %s", self._state.value)
            return

        agent_id = payload.get("agentId")
        if self._identity is not None and agent_id and agent_id != self._identity.agent_id:
            LOGGER.warning(
                "Relay acknowledged agent %s but registered as %s",
                agent_id,
                self._identity.agent_id,
            )

        LOGGER.info("Authentication successful")
        self._transition(ConnectionState.CONNECTED, last_error=None)
        self._start_heartbeat()

    async def _handle_auth_error(self, payload: Mapping[str, Any]) -> None:
        reason = str(payload.get("error") or "authentication rejected")
        LOGGER.error("Authentication failed: %s", reason)
        self._identity = None

        if self._config.resilience.retry_on_auth_error:
            self._status.update(last_error=f"authentication failed: {reason}")
            ws = self._session.ws
            if ws is not None:
                await ws.close()  # receive loop takes the reconnect path
            return

        self._new_epoch()
        self._stop_heartbeat()
        await self._teardown_transport()
        self._transition(
            ConnectionState.DISCONNECTED, last_error=f"authentication failed: {reason}"
        )

    def _handle_print_job(self, payload: Mapping[str, Any]) -> None:
        try:
            job = PrintJob.from_payload(payload)
        except ProtocolError as exc:
            LOGGER.error("Ignoring malformed print job: %s", exc)
            return

        handler = self._job_handler
        if handler is None:
            LOGGER.warning("No job handler registered; ignoring print job %s", job.id)
            return
        try:
            handler(job)
        except Exception:
            LOGGER.exception("Job handler failed for print job %s", job.id)

    # -- heartbeat ------------------------------------------------------
    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._session.heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(self._session.epoch)
        )

    def _stop_heartbeat(self) -> None:
        task = self._session.heartbeat_task
        self._session.heartbeat_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _heartbeat_loop(self, epoch: int) -> None:
        interval = self._config.resilience.heartbeat_interval_seconds
        while True:
            await asyncio.sleep(interval)
            if epoch != self._session.epoch or self._state != ConnectionState.CONNECTED:
                return
            if await self.send_message(protocol.HEARTBEAT, self._heartbeat_payload()):
                self._status.update(last_heartbeat_at=datetime.now(timezone.utc))

    def _heartbeat_payload(self) -> dict[str, Any]:
        snapshot = self._status.snapshot()
        ready = bool(snapshot.device_name) and snapshot.device_ready
        return {
            "agentId": self._identity.agent_id if self._identity else None,
            "status": "online" if ready else "error",
            "deviceName": snapshot.device_name,
        }

    # -- reconnect ------------------------------------------------------
    def _schedule_reconnect(self) -> None:
        if self._session.reconnect_handle is not None:
            return

        delay = self._config.resilience.reconnect_delay_seconds
        LOGGER.info("Reconnecting in %gs...", delay)
        loop = asyncio.get_running_loop()
        self._session.reconnect_handle = loop.call_later(delay, self._on_reconnect_timer)
        self._transition(ConnectionState.RECONNECTING)

    def _cancel_reconnect(self) -> None:
        handle = self._session.reconnect_handle
        self._session.reconnect_handle = None
        if handle is not None:
            handle.cancel()

    def _on_reconnect_timer(self) -> None:
        self._session.reconnect_handle = None
        task = asyncio.create_task(self.connect())
        self._session.connect_task = task
        task.add_done_callback(self._connect_task_done)

    def _connect_task_done(self, task: asyncio.Task[bool]) -> None:
        if self._session.connect_task is task:
            self._session.connect_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Reconnect attempt failed unexpectedly: %s", exc)
            self._connection_failed(str(exc))

    async def _teardown_transport(self) -> None:
        ws = self._session.ws
        reader = self._session.reader_task
        self._session.ws = None
        self._session.reader_task = None

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if ws is not None and not ws.closed:
            with contextlib.suppress(Exception):
                await ws.close()


def _require_credentials(relay: RelayConfig) -> None:
    missing = []
    if not relay.company_id:
        missing.append("company id")
    if not relay.token:
        missing.append("token")
    if missing:
        raise ConfigurationError(f"no {' or '.join(missing)} configured")
