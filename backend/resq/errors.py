"""
Error taxonomy for the emergency access core.

Every error carries a stable ``code`` and the HTTP status the boundary
layer should answer with. Only StorageUnavailableError is retryable.
"""

from typing import Any, Dict


class ResqError(Exception):
    """Base class for all typed core errors."""

    code = "resq_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return "Request could not be completed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        body = {"ok": False, "error": self.message, "code": self.code}
        if self.retryable:
            body["retryable"] = True
        return body


class ConfigurationError(ResqError):
    """Missing or invalid keys. Fatal at startup."""

    code = "configuration_error"


class InvalidRequestError(ResqError):
    """Malformed input at the boundary (bad decision value, bad body)."""

    code = "invalid_request"
    http_status = 400


# =============================================================================
# Access credentials
# =============================================================================

class TokenError(ResqError):
    code = "invalid_token"
    http_status = 400

    @classmethod
    def default_message(cls) -> str:
        return "Invalid access token"


class TokenExpiredError(TokenError):
    code = "token_expired"
    http_status = 401

    @classmethod
    def default_message(cls) -> str:
        return "Access token has expired"


class InvalidSignatureError(TokenError):
    code = "invalid_signature"
    http_status = 401


class MalformedTokenError(TokenError):
    code = "malformed_token"


class WrongTokenTypeError(TokenError):
    """Validly signed, but minted for some other purpose."""

    code = "wrong_token_type"


# =============================================================================
# Authorization
# =============================================================================

class AuthorizationError(ResqError):
    code = "authorization_error"
    http_status = 403

    @classmethod
    def default_message(cls) -> str:
        return "Access denied"


class ForbiddenError(AuthorizationError):
    code = "forbidden"


class UnverifiedError(AuthorizationError):
    """No usable authenticated principal."""

    code = "unverified"
    http_status = 401

    @classmethod
    def default_message(cls) -> str:
        return "Unauthorized"


# =============================================================================
# Storage and payload
# =============================================================================

class NotFoundError(ResqError):
    code = "not_found"
    http_status = 404

    @classmethod
    def default_message(cls) -> str:
        return "Not found"


class ConflictError(ResqError):
    code = "conflict"
    http_status = 409

    @classmethod
    def default_message(cls) -> str:
        return "Entry already exists"


class DecryptionError(ResqError):
    code = "decryption_error"

    @classmethod
    def default_message(cls) -> str:
        return "Payload could not be decrypted"


class StorageUnavailableError(ResqError):
    """Transient store failure; the caller may retry."""

    code = "storage_unavailable"
    http_status = 503
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Storage temporarily unavailable"
