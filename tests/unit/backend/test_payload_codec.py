"""
Unit tests for PayloadCodec.

Tests:
- Round trip of structured records
- Envelope shape (16-byte IV, base64 parts)
- Tamper detection and malformed envelopes
- Key loading from configuration
"""

import base64
import json
import os

import pytest

from resq.errors import ConfigurationError, DecryptionError
from resq.services.payload_codec import (
    EncryptedEnvelope,
    PayloadCodec,
    IV_SIZE,
    TAG_SIZE,
    load_key,
)


RECORD = {
    "bloodType": "O+",
    "allergies": ["penicillin", "latex"],
    "medications": [{"name": "Metformin", "dosage": "500mg", "frequency": "2x daily"}],
    "conditions": ["type 2 diabetes"],
    "emergencyContact": {"name": "Sam", "relationship": "sibling", "phone": "+1 555 0100"},
    "notes": "Prefers German: Ärztin",
}


def _flip_bit(data: bytes, index: int) -> bytes:
    mutated = bytearray(data)
    mutated[index] ^= 0x01
    return bytes(mutated)


def _decode_body(envelope: str) -> dict:
    return json.loads(base64.b64decode(envelope))


def _encode_body(body: dict) -> str:
    return base64.b64encode(json.dumps(body).encode()).decode()


# =============================================================================
# Round trip
# =============================================================================

class TestRoundTrip:
    """Tests for encrypt/decrypt."""

    def test_decrypt_returns_saved_record(self, codec):
        """decrypt(encrypt(R)) should equal R."""
        assert codec.decrypt(codec.encrypt(RECORD)) == RECORD

    def test_empty_record_round_trips(self, codec):
        """An empty record is still a record."""
        assert codec.decrypt(codec.encrypt({})) == {}

    def test_fresh_iv_per_encryption(self, codec):
        """Encrypting the same record twice should give different envelopes."""
        first = _decode_body(codec.encrypt(RECORD))
        second = _decode_body(codec.encrypt(RECORD))
        assert first["iv"] != second["iv"]
        assert first["ciphertext"] != second["ciphertext"]

    def test_envelope_has_three_base64_parts(self, codec):
        """Envelope should carry iv, ciphertext and authTag."""
        body = _decode_body(codec.encrypt(RECORD))
        assert set(body) == {"iv", "ciphertext", "authTag"}
        assert len(base64.b64decode(body["iv"])) == IV_SIZE
        assert len(base64.b64decode(body["authTag"])) == TAG_SIZE

    def test_plaintext_not_visible_in_envelope(self, codec):
        """No field value should leak into the envelope."""
        envelope = codec.encrypt(RECORD)
        assert "penicillin" not in base64.b64decode(envelope).decode()


# =============================================================================
# Tamper detection
# =============================================================================

class TestTamperDetection:
    """Tests that decryption fails closed."""

    @pytest.mark.parametrize("part", ["ciphertext", "authTag", "iv"])
    def test_flipped_bit_raises(self, codec, part):
        """Flipping a bit in any part should raise DecryptionError."""
        body = _decode_body(codec.encrypt(RECORD))
        raw = base64.b64decode(body[part])
        for index in (0, len(raw) - 1):
            body_copy = dict(body)
            body_copy[part] = base64.b64encode(_flip_bit(raw, index)).decode()
            with pytest.raises(DecryptionError):
                codec.decrypt(_encode_body(body_copy))

    def test_wrong_key_raises(self, codec):
        """A different key should not decrypt the envelope."""
        other = PayloadCodec(os.urandom(32))
        with pytest.raises(DecryptionError):
            other.decrypt(codec.encrypt(RECORD))

    def test_missing_field_raises(self, codec):
        body = _decode_body(codec.encrypt(RECORD))
        del body["authTag"]
        with pytest.raises(DecryptionError):
            codec.decrypt(_encode_body(body))

    def test_wrong_iv_length_raises(self, codec):
        body = _decode_body(codec.encrypt(RECORD))
        body["iv"] = base64.b64encode(os.urandom(12)).decode()
        with pytest.raises(DecryptionError):
            codec.decrypt(_encode_body(body))

    @pytest.mark.parametrize("envelope", ["", "not base64!", base64.b64encode(b"[1, 2]").decode(), "e30="])
    def test_garbage_envelope_raises(self, codec, envelope):
        with pytest.raises(DecryptionError):
            codec.decrypt(envelope)

    def test_envelope_parts_parse(self, codec):
        parts = EncryptedEnvelope.from_string(codec.encrypt(RECORD))
        assert len(parts.iv) == IV_SIZE
        assert len(parts.auth_tag) == TAG_SIZE


# =============================================================================
# Keys
# =============================================================================

class TestKeys:
    """Tests for key configuration."""

    def test_load_base64_key(self):
        assert load_key(base64.b64encode(b"x" * 32).decode()) == b"x" * 32

    def test_load_urlsafe_base64_key(self):
        raw = bytes(range(250, 256)) * 5 + b"\xff\xfe"
        assert load_key(base64.urlsafe_b64encode(raw).decode()) == raw

    def test_load_hex_key(self):
        assert load_key("ab" * 32) == b"\xab" * 32

    @pytest.mark.parametrize("value", ["", None])
    def test_missing_key_is_configuration_error(self, value):
        with pytest.raises(ConfigurationError):
            load_key(value)

    def test_short_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            load_key(base64.b64encode(b"short").decode())

    def test_codec_rejects_wrong_key_size(self):
        with pytest.raises(ConfigurationError):
            PayloadCodec(b"k" * 16)

    def test_repr_does_not_expose_key(self):
        key = b"s" * 32
        assert repr(key) not in repr(PayloadCodec(key))
