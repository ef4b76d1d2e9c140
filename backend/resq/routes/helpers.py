"""Request helpers shared by the blueprints."""

from flask import request

from resq.services.principal import Principal, get_principal_resolver


def get_current_principal() -> Principal:
    """Resolve the caller from the Authorization header or raise UnverifiedError."""
    return get_principal_resolver().resolve_header(request.headers.get("Authorization", ""))
