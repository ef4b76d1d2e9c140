"""
AuthorizationLedger: per-staff approval state machine.

    pending  --admin--> approved | rejected
    approved --admin--> rejected
    rejected --admin--> approved

Only admins move an entry. Unknown principals are never approved.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from resq.db.postgres import get_db_session, storage_guard, dialect_insert
from resq.errors import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from resq.models import StaffAccess, LedgerStatus, STAFF_ROLES
from resq.services.principal import Principal


AUTO_APPROVER = "policy:auto_approve_verified"

DECISIONS = (LedgerStatus.APPROVED.value, LedgerStatus.REJECTED.value)


@dataclass(frozen=True)
class LedgerView:
    """The only serialized form of a ledger entry."""
    staff_id: str
    role: str
    status: str
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    specialization: Optional[str] = None
    department: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == LedgerStatus.APPROVED.value

    @classmethod
    def from_model(cls, entry: StaffAccess) -> "LedgerView":
        return cls(
            staff_id=entry.staff_id,
            role=entry.role,
            status=entry.status,
            approved_by=entry.approved_by,
            approval_date=entry.approval_date,
            specialization=entry.specialization,
            department=entry.department,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "staff_id": self.staff_id,
            "role": self.role,
            "status": self.status,
            "is_approved": self.is_approved,
            "approved_by": self.approved_by,
            "approval_date": self.approval_date.isoformat() if self.approval_date else None,
            "specialization": self.specialization,
            "department": self.department,
        }


class AuthorizationLedger:
    """
    Staff access ledger backed by the ``staff_access`` table.

    The unique constraint on staff_id is what enforces one entry per
    principal; application checks are never relied on for that.
    """

    def __init__(self, db_session: Optional[DbSession] = None, auto_approve_verified: bool = False):
        self._explicit_db = db_session  # Only set if explicitly passed
        self.auto_approve_verified = auto_approve_verified
        self.logger = logging.getLogger("service.AuthorizationLedger")

    @property
    def db(self) -> DbSession:
        if self._explicit_db is not None:
            return self._explicit_db
        return get_db_session()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_entry(
        self,
        staff_id: str,
        role: str,
        status: str = LedgerStatus.PENDING.value,
        specialization: Optional[str] = None,
        department: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> LedgerView:
        """Create the ledger entry for a staff principal.

        Raises ConflictError if the principal already has one.
        """
        _check_role(role)
        if status not in {s.value for s in LedgerStatus}:
            raise InvalidRequestError(f"Unknown ledger status: {status}")

        session = self.db
        entry = StaffAccess(
            staff_id=staff_id,
            role=role,
            status=status,
            specialization=specialization,
            department=department,
            notes=notes,
        )
        with storage_guard(session, "create_entry"):
            session.add(entry)
            try:
                session.commit()
            except IntegrityError as e:
                self.logger.warning(f"Duplicate ledger entry rejected for staff {staff_id}")
                raise ConflictError("Staff access entry already exists") from e
        self.logger.info(f"Created ledger entry for staff {staff_id} ({role}, {status})")
        return LedgerView.from_model(entry)

    def ensure_entry(
        self,
        principal: Principal,
        specialization: Optional[str] = None,
        department: Optional[str] = None,
    ) -> LedgerView:
        """Idempotent find-or-create for the calling staff principal.

        New entries start ``pending`` unless the auto-approve policy is on
        and the identity layer marked the principal verified.
        """
        _check_role(principal.role, error=ForbiddenError)

        now = datetime.utcnow()
        auto_approve = self.auto_approve_verified and principal.is_verified
        values = {
            "staff_id": principal.id,
            "role": principal.role,
            "status": LedgerStatus.PENDING.value,
            "specialization": specialization,
            "department": department,
            "created_at": now,
            "updated_at": now,
        }
        if auto_approve:
            values.update(
                status=LedgerStatus.APPROVED.value,
                approved_by=AUTO_APPROVER,
                approval_date=now,
            )

        session = self.db
        with storage_guard(session, "ensure_entry"):
            stmt = dialect_insert(session, StaffAccess).values(**values)
            result = session.execute(stmt.on_conflict_do_nothing(index_elements=["staff_id"]))
            session.commit()
            if result.rowcount:
                self.logger.info(
                    f"Created ledger entry for staff {principal.id} "
                    f"({values['status']}{', auto-approved' if auto_approve else ''})"
                )
            entry = self._find(principal.id)
        return LedgerView.from_model(entry)

    # =========================================================================
    # Transitions
    # =========================================================================

    def set_status(self, admin: Principal, staff_id: str, decision: str) -> LedgerView:
        """Approve or reject a staff principal. Admin only."""
        if not admin.is_admin:
            self.logger.warning(f"Non-admin {admin.id} attempted ledger change for {staff_id}")
            raise ForbiddenError()
        if decision not in DECISIONS:
            raise InvalidRequestError("Decision must be 'approved' or 'rejected'")

        session = self.db
        with storage_guard(session, "set_status"):
            entry = (
                session.query(StaffAccess)
                .filter(StaffAccess.staff_id == staff_id)
                .with_for_update()
                .first()
            )
            if entry is None:
                session.rollback()
                raise NotFoundError("Staff access entry not found")

            previous = entry.status
            entry.status = decision
            entry.approved_by = admin.id
            entry.approval_date = datetime.utcnow()
            session.commit()

        self.logger.info(f"Ledger {staff_id}: {previous} -> {decision} by {admin.id}")
        return LedgerView.from_model(entry)

    # =========================================================================
    # Queries
    # =========================================================================

    def is_approved(self, staff_id: str) -> bool:
        """True only for an existing entry in the approved state."""
        if not staff_id:
            return False
        session = self.db
        with storage_guard(session, "is_approved"):
            status = (
                session.query(StaffAccess.status)
                .filter(StaffAccess.staff_id == staff_id)
                .scalar()
            )
        return status == LedgerStatus.APPROVED.value

    def get_status(self, staff_id: str) -> LedgerView:
        session = self.db
        with storage_guard(session, "get_status"):
            entry = self._find(staff_id)
        if entry is None:
            raise NotFoundError("Staff access entry not found")
        return LedgerView.from_model(entry)

    def list_entries(self, admin: Principal, status: Optional[str] = None) -> List[LedgerView]:
        """All ledger entries, newest first, optionally filtered by status."""
        if not admin.is_admin:
            raise ForbiddenError()
        if status is not None and status not in {s.value for s in LedgerStatus}:
            raise InvalidRequestError(f"Unknown ledger status: {status}")

        session = self.db
        with storage_guard(session, "list_entries"):
            query = session.query(StaffAccess)
            if status is not None:
                query = query.filter(StaffAccess.status == status)
            entries = query.order_by(StaffAccess.created_at.desc()).all()
        return [LedgerView.from_model(e) for e in entries]

    def _find(self, staff_id: str) -> Optional[StaffAccess]:
        return self.db.query(StaffAccess).filter(StaffAccess.staff_id == staff_id).first()


def _check_role(role: str, error=InvalidRequestError) -> None:
    if role not in STAFF_ROLES:
        raise error(f"Role '{role}' cannot hold staff access")
