"""
Authenticated principals.

The identity layer (login, password hashing, sessions) is external. It
issues HS256 bearer tokens with ``type == "access"``; this module only
turns such a token into a Principal.
"""

from dataclasses import dataclass
from typing import Optional

import jwt

from resq.config import config
from resq.errors import ConfigurationError, UnverifiedError


IDENTITY_TOKEN_TYPE = "access"
IDENTITY_ALGORITHM = "HS256"

ADMIN_ROLE = "admin"
CLINICIAN_ROLES = frozenset({"admin", "doctor", "nurse"})


@dataclass(frozen=True)
class Principal:
    """An already-authenticated caller."""
    id: str
    role: str
    name: Optional[str] = None
    is_verified: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_clinician(self) -> bool:
        return self.role in CLINICIAN_ROLES


class PrincipalResolver:
    """Resolves ``Authorization: Bearer`` credentials into principals."""

    def __init__(self, secret: str):
        if not secret:
            raise ConfigurationError("Identity token secret is not configured")
        self._secret = secret

    def resolve(self, token: Optional[str]) -> Principal:
        if not token:
            raise UnverifiedError()
        try:
            payload = jwt.decode(token, self._secret, algorithms=[IDENTITY_ALGORITHM])
        except jwt.InvalidTokenError as e:
            raise UnverifiedError() from e

        if payload.get("type") != IDENTITY_TOKEN_TYPE:
            raise UnverifiedError()
        subject = payload.get("sub")
        role = payload.get("role")
        if not subject or not role:
            raise UnverifiedError()

        return Principal(
            id=str(subject),
            role=str(role),
            name=payload.get("name"),
            is_verified=payload.get("is_verified") is True,
        )

    def resolve_header(self, auth_header: str) -> Principal:
        """Resolve a raw Authorization header value."""
        if not auth_header or not auth_header.startswith("Bearer "):
            raise UnverifiedError()
        return self.resolve(auth_header[7:])  # Remove "Bearer " prefix


# Singleton instance
_principal_resolver = None


def get_principal_resolver() -> PrincipalResolver:
    """Get the singleton resolver, built from IDENTITY_TOKEN_SECRET."""
    global _principal_resolver
    if _principal_resolver is None:
        _principal_resolver = PrincipalResolver(config.IDENTITY_TOKEN_SECRET)
    return _principal_resolver
