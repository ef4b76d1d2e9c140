"""
AccessTokenService: short-lived, single-purpose medical access grants.

A grant is an HS256 JWT (PyJWT) over the claim set

    {"type": "medical_access", "record_id", "subject_id", "iat", "exp"}

with ``exp == iat + ttl``. There is no revocation list; expiry is the
only way a grant stops working, and rotating the signing key invalidates
every outstanding grant.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

from resq.errors import (
    ConfigurationError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
    WrongTokenTypeError,
)


TOKEN_TYPE = "medical_access"
TOKEN_ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(hours=24)
REQUIRED_CLAIMS = ["type", "record_id", "subject_id", "iat", "exp"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccessClaims:
    """Verified claims of a medical access grant."""
    record_id: str
    subject_id: str
    issued_at: int
    expires_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": TOKEN_TYPE,
            "record_id": self.record_id,
            "subject_id": self.subject_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }


class AccessTokenService:
    """Mints and verifies medical access grants."""

    def __init__(
        self,
        signing_key: str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not signing_key:
            raise ConfigurationError("Signing key is not configured")
        if ttl <= timedelta(0):
            raise ConfigurationError("Access token TTL must be positive")
        self._signing_key = signing_key
        self.ttl = ttl
        self._clock = clock
        self.logger = logging.getLogger("service.AccessTokenService")

    def __repr__(self) -> str:
        return f"AccessTokenService(ttl={self.ttl}, signing_key=<redacted>)"

    def _now(self) -> int:
        return int(self._clock().timestamp())

    def mint(self, record_id: str, subject_id: str, ttl: Optional[timedelta] = None) -> str:
        """Sign a grant for one record, valid for ``ttl`` (default: configured TTL)."""
        if ttl is None:
            ttl = self.ttl
        if ttl <= timedelta(0):
            raise ConfigurationError("Access token TTL must be positive")
        issued_at = self._now()
        claims = AccessClaims(
            record_id=str(record_id),
            subject_id=str(subject_id),
            issued_at=issued_at,
            expires_at=issued_at + int(ttl.total_seconds()),
        )
        token = jwt.encode(claims.to_dict(), self._signing_key, algorithm=TOKEN_ALGORITHM)
        self.logger.info(f"Minted access grant for record {claims.record_id} (exp={claims.expires_at})")
        return token

    def verify(self, token: str) -> AccessClaims:
        """
        Verify signature, purpose and expiry of a grant.

        Raises:
            InvalidSignatureError: signature does not match the signing key
            MalformedTokenError: not a JWT, or claims missing/ill-typed
            WrongTokenTypeError: signed by us, but not a medical access grant
            TokenExpiredError: now >= exp
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError()

        # Time claims are checked below against the injected clock
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[TOKEN_ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise InvalidSignatureError() from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError() from e

        if payload.get("type") != TOKEN_TYPE:
            raise WrongTokenTypeError()

        record_id = payload.get("record_id")
        subject_id = payload.get("subject_id")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not isinstance(record_id, str) or not record_id:
            raise MalformedTokenError()
        if not isinstance(subject_id, str) or not subject_id:
            raise MalformedTokenError()
        if not isinstance(issued_at, int) or not isinstance(expires_at, int) or expires_at <= issued_at:
            raise MalformedTokenError()

        if self._now() >= expires_at:
            raise TokenExpiredError()

        return AccessClaims(
            record_id=record_id,
            subject_id=subject_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )
