import json

import pytest

from print_relay import protocol
from print_relay.core import ProtocolError


def test_encode_message_wraps_payload():
    raw = protocol.encode_message(protocol.AUTH, {"token": "t", "companyId": "C1"})

    assert json.loads(raw) == {
        "type": "auth",
        "payload": {"token": "t", "companyId": "C1"},
    }


def test_encode_message_without_payload_omits_it():
    assert json.loads(protocol.encode_message(protocol.PONG)) == {"type": "pong"}


def test_decode_message_reads_nested_payload():
    message = protocol.decode_message(
        '{"type": "print_job", "payload": {"id": "J1", "type": "test"}}'
    )

    assert message.type == protocol.PRINT_JOB
    assert message.payload == {"id": "J1", "type": "test"}


def test_decode_message_accepts_top_level_fields():
    message = protocol.decode_message(b'{"type": "auth_error", "error": "bad token"}')

    assert message.type == protocol.AUTH_ERROR
    assert message.payload["error"] == "bad token"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"payload": {}}',
        '{"type": ""}',
        '{"type": "print_job", "payload": "J1"}',
    ],
)
def test_decode_message_rejects_malformed_frames(raw):
    with pytest.raises(ProtocolError):
        protocol.decode_message(raw)
