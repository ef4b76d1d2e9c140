"""
Medical record routes.

Endpoints:
- POST   /api/v1/medical/               - Create or update own record
- GET    /api/v1/medical/me             - Get own record
- DELETE /api/v1/medical/               - Delete own record
- POST   /api/v1/medical/access-grants  - Mint a QR access grant for own record
- GET    /api/v1/medical/scan/<id>      - Approved staff scan of a bare record id
- GET    /api/v1/medical/access/<token> - Clinician redemption of an access grant
"""

from flask import Blueprint, request, jsonify

from resq.errors import InvalidRequestError
from resq.routes.helpers import get_current_principal
from resq.services.access_gateway import get_access_gateway


bp = Blueprint("medical", __name__, url_prefix="/api/v1/medical")


# =============================================================================
# Own record
# =============================================================================

@bp.route("/", methods=["POST"])
def save_record():
    """Create or replace the caller's medical record."""
    principal = get_current_principal()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    view = get_access_gateway().records.save(principal, data)
    return jsonify({"ok": True, "record": view.to_dict()})


@bp.route("/me", methods=["GET"])
def my_record():
    """Get the caller's own medical record."""
    principal = get_current_principal()
    view = get_access_gateway().records.get_for_subject(principal.id)
    return jsonify({"ok": True, "record": view.to_dict()})


@bp.route("/", methods=["DELETE"])
def delete_record():
    """Delete the caller's own medical record."""
    principal = get_current_principal()
    get_access_gateway().records.delete_for_subject(principal.id)
    return jsonify({"ok": True, "message": "Medical information deleted"})


@bp.route("/access-grants", methods=["POST"])
def mint_grant():
    """Mint a time-boxed access grant to embed in the caller's QR code."""
    principal = get_current_principal()
    gateway = get_access_gateway()
    token = gateway.qr_payload(principal)
    return jsonify({
        "ok": True,
        "token": token,
        "qr_payload": token,
        "expires_in": int(gateway.grant_ttl.total_seconds()),
    })


# =============================================================================
# Redemption
# =============================================================================

@bp.route("/scan/<record_id>", methods=["GET"])
def scan(record_id):
    """Approved staff lookup by bare record identifier."""
    principal = get_current_principal()
    view = get_access_gateway().redeem_by_identifier(principal, record_id)
    return jsonify({"ok": True, "record": view.to_dict()})


@bp.route("/access/<token>", methods=["GET"])
def access(token):
    """Clinician lookup through a medical access grant."""
    principal = get_current_principal()
    view = get_access_gateway().redeem_by_token(principal, token)
    return jsonify({"ok": True, "record": view.to_dict()})
