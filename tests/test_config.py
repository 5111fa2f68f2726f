from pathlib import Path

import pytest

from print_relay.config import apply_settings, load_config, save_config, select_server


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "print-relay.cfg"
    config = load_config(config_path)

    assert config.relay.server_url.startswith("ws")
    assert config.relay.company_id == ""
    assert config.relay.token == ""
    assert config.device.name == ""
    assert config.device.auto_connect is True
    assert config.printing.paper_width_mm == 80.0
    assert config.printing.paper_height_mm == 150.0
    assert config.resilience.heartbeat_interval_seconds == 30.0
    assert config.resilience.reconnect_delay_seconds == 5.0
    assert config.resilience.retry_on_auth_error is False
    assert config.resilience.health_port == 0
    assert "production" in config.relay.servers


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "print-relay.cfg"
    config_file.write_text(
        """
[relay]
server_url = wss://relay.example.com
company_id = acme
token = abc123

[device]
name = TM-T20
auto_connect = false

[printing]
paper_width_mm = 58
settle_seconds = 0.5

[resilience]
heartbeat_interval_seconds = 10
reconnect_delay_seconds = 2
retry_on_auth_error = true
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.relay.server_url == "wss://relay.example.com"
    assert config.relay.company_id == "acme"
    assert config.relay.token == "abc123"
    assert config.device.name == "TM-T20"
    assert config.device.auto_connect is False
    assert config.printing.paper_width_mm == 58.0
    assert config.printing.paper_height_mm == 150.0
    assert config.printing.settle_seconds == 0.5
    assert config.resilience.heartbeat_interval_seconds == 10.0
    assert config.resilience.reconnect_delay_seconds == 2.0
    assert config.resilience.retry_on_auth_error is True


def test_non_positive_values_fall_back_to_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "print-relay.cfg"
    config_file.write_text(
        "[printing]\npaper_width_mm = 0\n\n[resilience]\nreconnect_delay_seconds = -1\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.printing.paper_width_mm == 80.0
    assert config.resilience.reconnect_delay_seconds == 5.0


def test_relay_urls_are_derived_from_server_url(tmp_path: Path) -> None:
    config = load_config(tmp_path / "print-relay.cfg")

    apply_settings(config, server_url="wss://relay.example.com/")
    assert config.relay.http_url == "https://relay.example.com"
    assert config.relay.ws_url == "wss://relay.example.com/ws/print-agent"

    apply_settings(config, server_url="http://127.0.0.1:8080/")
    assert config.relay.http_url == "http://127.0.0.1:8080"
    assert config.relay.ws_url == "ws://127.0.0.1:8080/ws/print-agent"


def test_apply_settings_round_trips_through_disk(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "print-relay.cfg"
    config = load_config(config_path)

    apply_settings(
        config,
        server_url="wss://relay.example.com",
        company_id=" acme ",
        token="tok",
        device_name="TM-T20",
        auto_connect=False,
    )
    save_config(config)

    reloaded = load_config(config_path)
    assert reloaded.relay.server_url == "wss://relay.example.com"
    assert reloaded.relay.company_id == "acme"
    assert reloaded.relay.token == "tok"
    assert reloaded.device.name == "TM-T20"
    assert reloaded.device.auto_connect is False


def test_apply_settings_ignores_unset_arguments(tmp_path: Path) -> None:
    config = load_config(tmp_path / "print-relay.cfg")
    apply_settings(config, company_id="acme", device_name="TM-T20")

    apply_settings(config, token="new")

    assert config.relay.company_id == "acme"
    assert config.device.name == "TM-T20"
    assert config.relay.token == "new"


def test_select_server_switches_to_preset(tmp_path: Path) -> None:
    config_path = tmp_path / "print-relay.cfg"
    config_path.write_text(
        "[servers]\nlab = wss://lab.example.com\n", encoding="utf-8"
    )
    config = load_config(config_path)

    url = select_server(config, "lab")

    assert url == "wss://lab.example.com"
    assert config.relay.server_url == url
    assert config.raw.get("relay", "server_url") == url


def test_select_server_rejects_unknown_name(tmp_path: Path) -> None:
    config = load_config(tmp_path / "print-relay.cfg")

    with pytest.raises(ValueError, match="Unknown server"):
        select_server(config, "nowhere")


def test_malformed_numbers_fall_back_to_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "print-relay.cfg"
    config_file.write_text(
        "[printing]\n"
        "settle_seconds = soon\n"
        "history_size = lots\n"
        "paper_height_mm = tall\n"
        "\n"
        "[resilience]\n"
        "health_port = http\n"
        "heartbeat_interval_seconds = often\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.printing.settle_seconds == 1.0
    assert config.printing.history_size == 50
    assert config.printing.paper_height_mm == 150.0
    assert config.resilience.health_port == 0
    assert config.resilience.heartbeat_interval_seconds == 30.0


def test_out_of_range_numbers_fall_back_to_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "print-relay.cfg"
    config_file.write_text(
        "[printing]\nsettle_seconds = -2\nhistory_size = 0\n\n"
        "[resilience]\nhealth_port = 70000\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.printing.settle_seconds == 1.0
    assert config.printing.history_size == 50
    assert config.resilience.health_port == 0
