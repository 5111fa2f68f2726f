import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from print_relay.logging import SecretFilter, configure_logging


def test_secret_filter_masks_token_in_formatted_message():
    record = logging.LogRecord(
        "print_relay", logging.INFO, __file__, 1, "auth with %s", ("tok-123",), None
    )

    assert SecretFilter(["tok-123", ""]).filter(record) is True

    assert record.getMessage() == "auth with ********"


def test_secret_filter_leaves_other_messages_untouched():
    record = logging.LogRecord(
        "print_relay", logging.INFO, __file__, 1, "job %s done", ("J1",), None
    )

    SecretFilter(["tok-123"]).filter(record)

    assert record.args == ("J1",)
    assert record.getMessage() == "job J1 done"


def test_configure_logging_writes_masked_file(tmp_path: Path):
    log_path = tmp_path / "logs" / "print-relay.log"
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level

    try:
        configure_logging("DEBUG", log_path=log_path, secrets=["tok-123"])
        logging.getLogger("print_relay.test").info("token is %s", "tok-123")

        file_handlers = [
            handler for handler in root.handlers if isinstance(handler, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        file_handlers[0].flush()
        assert logging.getLogger("aiohttp.client").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
        for name in ("aiohttp.access", "aiohttp.client", "aiohttp.websocket"):
            logging.getLogger(name).setLevel(logging.NOTSET)

    content = log_path.read_text(encoding="utf-8")
    assert "token is ********" in content
    assert "tok-123" not in content
