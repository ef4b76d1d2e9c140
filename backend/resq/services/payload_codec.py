"""
PayloadCodec: authenticated encryption of medical record payloads.

AES-256-GCM via the ``cryptography`` package. A record is serialized to
canonical JSON, encrypted under a fresh 16-byte IV, and wrapped as

    base64( {"iv": b64, "ciphertext": b64, "authTag": b64} )

so the whole envelope travels as one opaque string. Decryption fails
closed: any tampering or malformation raises DecryptionError.
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from resq.errors import ConfigurationError, DecryptionError


KEY_SIZE = 32  # 256-bit
IV_SIZE = 16
TAG_SIZE = 16


def load_key(value: str) -> bytes:
    """Decode a configured key (hex or base64) into exactly 32 raw bytes."""
    if not value:
        raise ConfigurationError("Encryption key is not configured")
    value = value.strip()
    try:
        if len(value) == KEY_SIZE * 2 and all(c in "0123456789abcdefABCDEF" for c in value):
            key = bytes.fromhex(value)
        else:
            key = base64.b64decode(value.replace("-", "+").replace("_", "/"), validate=True)
    except (binascii.Error, ValueError):
        raise ConfigurationError("Encryption key must be hex or base64 encoded") from None
    if len(key) != KEY_SIZE:
        raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes")
    return key


def canonical_bytes(record: Dict[str, Any]) -> bytes:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True)
class EncryptedEnvelope:
    """The three parts of an AES-GCM output, as raw bytes."""

    iv: bytes
    ciphertext: bytes
    auth_tag: bytes

    def to_string(self) -> str:
        body = {
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "authTag": base64.b64encode(self.auth_tag).decode("ascii"),
        }
        return base64.b64encode(json.dumps(body, separators=(",", ":")).encode("ascii")).decode("ascii")

    @classmethod
    def from_string(cls, envelope: str) -> "EncryptedEnvelope":
        try:
            body = json.loads(base64.b64decode(envelope, validate=True))
            parts = {
                name: base64.b64decode(body[name], validate=True)
                for name in ("iv", "ciphertext", "authTag")
            }
        except (binascii.Error, ValueError, KeyError, TypeError) as e:
            raise DecryptionError("Malformed envelope") from e

        if len(parts["iv"]) != IV_SIZE:
            raise DecryptionError("Malformed envelope")
        if len(parts["authTag"]) != TAG_SIZE:
            raise DecryptionError("Malformed envelope")
        return cls(iv=parts["iv"], ciphertext=parts["ciphertext"], auth_tag=parts["authTag"])


class PayloadCodec:
    """
    Encrypts and decrypts record payloads under one process-wide key.

    Usage:
        codec = PayloadCodec(load_key(config.ENCRYPTION_KEY))
        envelope = codec.encrypt({"bloodType": "O+"})
        record = codec.decrypt(envelope)
    """

    def __init__(self, key: bytes):
        if not isinstance(key, bytes) or len(key) != KEY_SIZE:
            raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes")
        self._aesgcm = AESGCM(key)

    def __repr__(self) -> str:
        return "PayloadCodec(key=<redacted>)"

    def encrypt(self, record: Dict[str, Any]) -> str:
        iv = os.urandom(IV_SIZE)
        sealed = self._aesgcm.encrypt(iv, canonical_bytes(record), None)
        envelope = EncryptedEnvelope(
            iv=iv,
            ciphertext=sealed[:-TAG_SIZE],
            auth_tag=sealed[-TAG_SIZE:],
        )
        return envelope.to_string()

    def decrypt(self, envelope: str) -> Dict[str, Any]:
        parts = EncryptedEnvelope.from_string(envelope)
        try:
            plaintext = self._aesgcm.decrypt(parts.iv, parts.ciphertext + parts.auth_tag, None)
        except InvalidTag as e:
            raise DecryptionError() from e
        try:
            record = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecryptionError() from e
        if not isinstance(record, dict):
            raise DecryptionError("Decrypted payload is not a record")
        return record
