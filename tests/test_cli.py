from configparser import ConfigParser
from pathlib import Path

from print_relay.cli import main


def read_config(path: Path) -> ConfigParser:
    parser = ConfigParser()
    parser.read(path)
    return parser


def test_configure_saves_settings(tmp_path: Path, capsys):
    config_path = tmp_path / "print-relay.cfg"

    code = main(
        [
            "-c",
            str(config_path),
            "configure",
            "--server-url",
            "wss://relay.example.com",
            "--company-id",
            "acme",
            "--token",
            "tok",
            "--printer",
            "TM-T20",
            "--no-auto-connect",
        ]
    )

    assert code == 0
    assert "Configuration saved" in capsys.readouterr().out
    parser = read_config(config_path)
    assert parser.get("relay", "server_url") == "wss://relay.example.com"
    assert parser.get("relay", "company_id") == "acme"
    assert parser.get("relay", "token") == "tok"
    assert parser.get("device", "name") == "TM-T20"
    assert parser.getboolean("device", "auto_connect") is False


def test_show_config_masks_token(tmp_path: Path, capsys):
    config_path = tmp_path / "print-relay.cfg"
    main(["-c", str(config_path), "configure", "--token", "super-secret"])
    capsys.readouterr()

    assert main(["-c", str(config_path), "show-config"]) == 0

    out = capsys.readouterr().out
    assert "super-secret" not in out
    assert "token = ********" in out
    assert "[relay]" in out


def test_servers_lists_presets_and_marks_current(tmp_path: Path, capsys):
    config_path = tmp_path / "print-relay.cfg"
    config_path.write_text(
        "[relay]\nserver_url = wss://lab.example.com\n\n"
        "[servers]\nlab = wss://lab.example.com\n",
        encoding="utf-8",
    )

    assert main(["-c", str(config_path), "servers"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert "* lab: wss://lab.example.com" in lines


def test_use_server_switches_and_persists(tmp_path: Path, capsys):
    config_path = tmp_path / "print-relay.cfg"
    config_path.write_text(
        "[servers]\nlab = wss://lab.example.com\n", encoding="utf-8"
    )

    assert main(["-c", str(config_path), "use-server", "lab"]) == 0

    assert "wss://lab.example.com" in capsys.readouterr().out
    assert read_config(config_path).get("relay", "server_url") == "wss://lab.example.com"


def test_use_server_rejects_unknown_name(tmp_path: Path):
    config_path = tmp_path / "print-relay.cfg"

    assert main(["-c", str(config_path), "use-server", "nowhere"]) == 1
    assert not config_path.exists()
