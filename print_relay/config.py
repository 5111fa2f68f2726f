"""Configuration loader for print-relay."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse, urlunparse

from . import constants


@dataclass(slots=True)
class RelayConfig:
    server_url: str = constants.DEFAULT_SERVER_URL
    company_id: str = ""
    token: str = ""
    servers: Dict[str, str] = field(
        default_factory=lambda: dict(constants.DEFAULT_SERVERS)
    )

    @property
    def http_url(self) -> str:
        """HTTP(S) form of ``server_url`` for request/response endpoints."""
        parsed = urlparse(self.server_url)
        scheme = {"ws": "http", "wss": "https"}.get(parsed.scheme, parsed.scheme)
        return urlunparse((scheme, parsed.netloc, parsed.path.rstrip("/"), "", "", ""))

    @property
    def ws_url(self) -> str:
        parsed = urlparse(self.server_url)
        scheme = {"http": "ws", "https": "wss"}.get(parsed.scheme, parsed.scheme)
        path = parsed.path.rstrip("/") + constants.RELAY_WS_PATH
        return urlunparse((scheme, parsed.netloc, path, "", "", ""))


@dataclass(slots=True)
class DeviceConfig:
    name: str = ""
    auto_connect: bool = True


@dataclass(slots=True)
class PrintConfig:
    paper_width_mm: float = constants.DEFAULT_PAPER_WIDTH_MM
    paper_height_mm: float = constants.DEFAULT_PAPER_HEIGHT_MM
    settle_seconds: float = 1.0  # Lets embedded images load before submission
    render_timeout_seconds: float = 60.0
    history_size: int = 50


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class ResilienceConfig:
    heartbeat_interval_seconds: float = constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS
    reconnect_delay_seconds: float = constants.DEFAULT_RECONNECT_DELAY_SECONDS
    connect_timeout_seconds: float = 15.0
    registration_timeout_seconds: float = 15.0
    retry_on_auth_error: bool = False
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class AgentConfig:
    relay: RelayConfig
    device: DeviceConfig
    printing: PrintConfig
    logging: LoggingConfig
    resilience: ResilienceConfig
    raw: ConfigParser
    path: Path


def load_config(path: Optional[Path] = None) -> AgentConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "relay": {
                "server_url": constants.DEFAULT_SERVER_URL,
                "company_id": "",
                "token": "",
            },
            "servers": dict(constants.DEFAULT_SERVERS),
            "device": {
                "name": "",
                "auto_connect": "true",
            },
            "printing": {
                "paper_width_mm": str(constants.DEFAULT_PAPER_WIDTH_MM),
                "paper_height_mm": str(constants.DEFAULT_PAPER_HEIGHT_MM),
                "settle_seconds": "1.0",
                "render_timeout_seconds": "60",
                "history_size": "50",
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
            "resilience": {
                "heartbeat_interval_seconds": str(
                    constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS
                ),
                "reconnect_delay_seconds": str(
                    constants.DEFAULT_RECONNECT_DELAY_SECONDS
                ),
                "connect_timeout_seconds": "15",
                "registration_timeout_seconds": "15",
                "retry_on_auth_error": "false",
                "health_enabled": "false",
                "health_host": "127.0.0.1",
                "health_port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    relay = RelayConfig(
        server_url=parser.get("relay", "server_url").strip(),
        company_id=parser.get("relay", "company_id", fallback="").strip(),
        token=parser.get("relay", "token", fallback="").strip(),
        servers={key: value.strip() for key, value in parser.items("servers")},
    )

    device = DeviceConfig(
        name=parser.get("device", "name", fallback="").strip(),
        auto_connect=parser.getboolean("device", "auto_connect", fallback=True),
    )

    print_defaults = PrintConfig()
    printing = PrintConfig(
        paper_width_mm=_positive_float(
            parser, "printing", "paper_width_mm", print_defaults.paper_width_mm
        ),
        paper_height_mm=_positive_float(
            parser, "printing", "paper_height_mm", print_defaults.paper_height_mm
        ),
        settle_seconds=_bounded_float(
            parser, "printing", "settle_seconds", print_defaults.settle_seconds, 0.0
        ),
        render_timeout_seconds=_positive_float(
            parser,
            "printing",
            "render_timeout_seconds",
            print_defaults.render_timeout_seconds,
        ),
        history_size=_bounded_int(
            parser, "printing", "history_size", print_defaults.history_size, 1
        ),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(
            parser.get("logging", "path", fallback=str(constants.DEFAULT_LOG_PATH))
        ).expanduser(),
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    resilience_defaults = ResilienceConfig()
    resilience = ResilienceConfig(
        heartbeat_interval_seconds=_positive_float(
            parser,
            "resilience",
            "heartbeat_interval_seconds",
            resilience_defaults.heartbeat_interval_seconds,
        ),
        reconnect_delay_seconds=_positive_float(
            parser,
            "resilience",
            "reconnect_delay_seconds",
            resilience_defaults.reconnect_delay_seconds,
        ),
        connect_timeout_seconds=_positive_float(
            parser,
            "resilience",
            "connect_timeout_seconds",
            resilience_defaults.connect_timeout_seconds,
        ),
        registration_timeout_seconds=_positive_float(
            parser,
            "resilience",
            "registration_timeout_seconds",
            resilience_defaults.registration_timeout_seconds,
        ),
        retry_on_auth_error=parser.getboolean(
            "resilience", "retry_on_auth_error", fallback=False
        ),
        health_enabled=parser.getboolean(
            "resilience", "health_enabled", fallback=False
        ),
        health_host=parser.get("resilience", "health_host", fallback="127.0.0.1"),
        health_port=_bounded_int(
            parser, "resilience", "health_port", resilience_defaults.health_port, 0, 65535
        ),
    )

    return AgentConfig(
        relay=relay,
        device=device,
        printing=printing,
        logging=logging_config,
        resilience=resilience,
        raw=parser,
        path=config_path,
    )


def _positive_float(
    parser: ConfigParser, section: str, option: str, default: float
) -> float:
    try:
        value = parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default
    return value if value > 0 else default


def _bounded_float(
    parser: ConfigParser, section: str, option: str, default: float, minimum: float
) -> float:
    try:
        value = parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default
    return value if value >= minimum else default


def _bounded_int(
    parser: ConfigParser,
    section: str,
    option: str,
    default: int,
    minimum: int,
    maximum: Optional[int] = None,
) -> int:
    try:
        value = parser.getint(section, option, fallback=default)
    except ValueError:
        return default
    if value < minimum or (maximum is not None and value > maximum):
        return default
    return value


def save_config(config: AgentConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)


def apply_settings(
    config: AgentConfig,
    *,
    server_url: Optional[str] = None,
    company_id: Optional[str] = None,
    token: Optional[str] = None,
    device_name: Optional[str] = None,
    auto_connect: Optional[bool] = None,
) -> None:
    """Update operator-editable settings in memory and in ``config.raw``.

    Only arguments that are not ``None`` are applied; call :func:`save_config`
    to persist them.
    """

    if server_url is not None:
        config.relay.server_url = server_url.strip()
        config.raw.set("relay", "server_url", config.relay.server_url)
    if company_id is not None:
        config.relay.company_id = company_id.strip()
        config.raw.set("relay", "company_id", config.relay.company_id)
    if token is not None:
        config.relay.token = token.strip()
        config.raw.set("relay", "token", config.relay.token)
    if device_name is not None:
        config.device.name = device_name.strip()
        config.raw.set("device", "name", config.device.name)
    if auto_connect is not None:
        config.device.auto_connect = auto_connect
        config.raw.set("device", "auto_connect", "true" if auto_connect else "false")


def select_server(config: AgentConfig, name: str) -> str:
    """Point ``server_url`` at one of the named presets in ``[servers]``."""

    try:
        url = config.relay.servers[name]
    except KeyError:
        known = ", ".join(sorted(config.relay.servers)) or "none"
        raise ValueError(f"Unknown server {name!r} (known: {known})") from None

    apply_settings(config, server_url=url)
    return url
