"""Agent registration against the relay."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any, Callable, Mapping, Optional

import aiohttp

from . import constants
from .config import AgentConfig, apply_settings, save_config
from .core import AgentIdentity

LOGGER = logging.getLogger(__name__)


def local_device_name() -> str:
    """Name this machine reports to the relay."""
    return socket.gethostname()


class RegistrationClient:
    """Exchanges the persisted credential for a session identity.

    A single request/response round trip, bounded by
    ``resilience.registration_timeout_seconds``. Every failure is logged and
    reported as ``None``; retry timing belongs to the relay link.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
        persist: Callable[[AgentConfig], None] = save_config,
    ) -> None:
        self._config = config
        self._session = session
        self._timeout = (
            timeout
            if timeout is not None
            else config.resilience.registration_timeout_seconds
        )
        self._persist = persist

    @property
    def url(self) -> str:
        return self._config.relay.http_url + constants.REGISTER_PATH

    async def register(self) -> Optional[AgentIdentity]:
        relay = self._config.relay
        request = {
            "token": relay.token,
            "companyId": relay.company_id,
            "deviceName": local_device_name(),
            "printerName": self._config.device.name,
            "capabilities": {
                "thermalPrint": True,
                "paperWidth": self._config.printing.paper_width_mm,
            },
        }

        owns_session = self._session is None
        session = self._session or aiohttp.ClientSession()

        try:
            async with asyncio.timeout(self._timeout):
                async with session.post(self.url, json=request) as response:
                    if response.status < 200 or response.status >= 300:
                        detail = (await response.text()).strip()
                        LOGGER.error(
                            "Registration failed with status %s: %s",
                            response.status,
                            detail[:200],
                        )
                        return None
                    body = await response.json(content_type=None)
        except asyncio.TimeoutError:
            LOGGER.error("Registration timed out after %.1fs", self._timeout)
            return None
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            LOGGER.error("Registration error: %s", exc)
            return None
        finally:
            if owns_session:
                await session.close()

        identity = self._parse_identity(body)
        if identity is None:
            return None

        LOGGER.info("Agent registered: %s (company %s)", identity.agent_id, identity.company_id)
        self._store(identity, body)
        return identity

    def _parse_identity(self, body: Any) -> Optional[AgentIdentity]:
        if not isinstance(body, Mapping):
            LOGGER.error("Registration response is not a JSON object")
            return None

        agent_id = body.get("agentId") or body.get("id")
        if not agent_id:
            LOGGER.error("Registration response missing agent id")
            return None

        return AgentIdentity(
            agent_id=str(agent_id),
            company_id=str(body.get("companyId") or self._config.relay.company_id),
            device_name=str(body.get("deviceName") or local_device_name()),
        )

    def _store(self, identity: AgentIdentity, body: Mapping[str, Any]) -> None:
        token = body.get("authToken")
        changed_company = identity.company_id != self._config.relay.company_id
        changed_token = bool(token) and str(token) != self._config.relay.token
        if not changed_company and not changed_token:
            return

        apply_settings(
            self._config,
            company_id=identity.company_id if changed_company else None,
            token=str(token) if changed_token else None,
        )
        try:
            self._persist(self._config)
        except OSError as exc:
            LOGGER.warning("Could not persist registration details: %s", exc)
