"""
Staff access ledger routes.

Endpoints:
- POST /api/v1/staff/access-request       - Ensure the caller's ledger entry
- GET  /api/v1/staff/<staff_id>/status    - Approval status of a staff member
- POST /api/v1/staff/<staff_id>/approval  - Approve/reject (admin)
- GET  /api/v1/staff/?status=pending      - List ledger entries (admin)
"""

from flask import Blueprint, request, jsonify

from resq.errors import ForbiddenError, InvalidRequestError
from resq.routes.helpers import get_current_principal
from resq.services.access_gateway import get_access_gateway


bp = Blueprint("staff", __name__, url_prefix="/api/v1/staff")


def _json_object() -> dict:
    """Request body as a dict; an absent body counts as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return data


def _optional_text(data: dict, field: str):
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{field} must be a string")
    return value.strip() or None


@bp.route("/access-request", methods=["POST"])
def access_request():
    """Create the caller's ledger entry if it does not exist yet."""
    principal = get_current_principal()
    data = _json_object()
    entry = get_access_gateway().request_staff_access(
        principal,
        specialization=_optional_text(data, "specialization"),
        department=_optional_text(data, "department"),
    )
    return jsonify({"ok": True, "entry": entry.to_dict()})


@bp.route("/<staff_id>/status", methods=["GET"])
def status(staff_id):
    """Approval status; staff may read their own, admins anyone's."""
    principal = get_current_principal()
    if principal.id != staff_id and not principal.is_admin:
        raise ForbiddenError()
    entry = get_access_gateway().get_approval_status(staff_id)
    return jsonify({
        "ok": True,
        "is_approved": entry.is_approved,
        "status": entry.status,
        "role": entry.role,
    })


@bp.route("/<staff_id>/approval", methods=["POST"])
def approval(staff_id):
    """Approve or reject a staff member.

    Expected payload:
    {
        "decision": "approved" | "rejected"
    }
    """
    principal = get_current_principal()
    data = _json_object()
    entry = get_access_gateway().set_approval(principal, staff_id, data.get("decision") or "")
    return jsonify({"ok": True, "entry": entry.to_dict()})


@bp.route("/", methods=["GET"])
def list_staff():
    """List ledger entries, newest first."""
    principal = get_current_principal()
    entries = get_access_gateway().list_staff(principal, status=request.args.get("status"))
    return jsonify({"ok": True, "entries": [e.to_dict() for e in entries]})
