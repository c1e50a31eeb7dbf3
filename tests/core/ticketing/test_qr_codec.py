"""
Unit tests for QRSecurityCodec.
"""

import hashlib
import hmac
import json

import pytest

from src.core.shared.exceptions import InvalidSignatureError, QRSigningError
from src.core.ticketing.qr_codec import QRSecurityCodec


@pytest.fixture
def codec(clock):
    return QRSecurityCodec(secret="test-qr-secret", clock=clock)


@pytest.fixture
def payload_text(codec):
    return codec.encode("t1", "e1", "u1", "TKT12345604217")


def _flip_hex(char):
    return "0" if char != "0" else "1"


class TestEncode:

    def test_payload_fields(self, payload_text, now):
        data = json.loads(payload_text)

        assert data["type"] == "EVENT_TICKET"
        assert data["ticketId"] == "t1"
        assert data["eventId"] == "e1"
        assert data["userId"] == "u1"
        assert data["ticketNumber"] == "TKT12345604217"
        assert data["issuedAt"] == int(now.timestamp() * 1000)
        assert data["version"] == "1.0"

    def test_signature_is_truncated_hmac(self, payload_text):
        expected = hmac.new(b"test-qr-secret", b"t1:e1:u1", hashlib.sha256).hexdigest()[:16]

        assert json.loads(payload_text)["signature"] == expected

    def test_missing_secret_fails_loudly(self):
        with pytest.raises(QRSigningError):
            QRSecurityCodec(secret="").encode("t1", "e1", "u1", "TKT")

    def test_none_secret_fails_loudly(self):
        with pytest.raises(QRSigningError):
            QRSecurityCodec(secret=None).sign("t1", "e1", "u1")


class TestVerify:

    def test_round_trip(self, codec, payload_text):
        payload = codec.verify(payload_text)

        assert (payload.ticket_id, payload.event_id, payload.user_id) == ("t1", "e1", "u1")

    @pytest.mark.parametrize("position", [0, 7, 15])
    def test_single_hex_change_is_rejected(self, codec, payload_text, position):
        data = json.loads(payload_text)
        signature = data["signature"]
        data["signature"] = signature[:position] + _flip_hex(signature[position]) + signature[position + 1:]

        with pytest.raises(InvalidSignatureError):
            codec.verify(json.dumps(data))

    def test_changed_identifier_is_rejected(self, codec, payload_text):
        data = json.loads(payload_text)
        data["userId"] = "u2"

        with pytest.raises(InvalidSignatureError):
            codec.verify(json.dumps(data))

    def test_other_secret_is_rejected(self, payload_text):
        with pytest.raises(InvalidSignatureError):
            QRSecurityCodec(secret="another-secret").verify(payload_text)

    @pytest.mark.parametrize("text", [
        "not json",
        "[1, 2]",
        '{"type": "COUPON", "ticketId": "t1", "eventId": "e1", "userId": "u1", "signature": "ab"}',
        '{"type": "EVENT_TICKET", "ticketId": "t1", "eventId": "e1", "userId": "u1"}',
    ])
    def test_malformed_payloads(self, codec, text):
        with pytest.raises(InvalidSignatureError):
            codec.decode(text)
