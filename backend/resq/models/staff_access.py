"""
Staff access ledger model.

One entry per staff principal. ``status`` is the only stored state;
``is_approved`` is derived from it so the two can never disagree.
"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Uuid, CheckConstraint

from resq.db.postgres import Base


STAFF_ROLES = ("doctor", "nurse", "admin")


class LedgerStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StaffAccess(Base):
    """Approval state of a staff principal."""

    __tablename__ = "staff_access"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_staff_access_status"),
        CheckConstraint("role IN ('doctor', 'nurse', 'admin')", name="ck_staff_access_role"),
    )

    entry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_id = Column(String(64), nullable=False, unique=True)
    role = Column(String(20), nullable=False)  # doctor | nurse | admin
    status = Column(String(20), default=LedgerStatus.PENDING.value, nullable=False)

    approved_by = Column(String(64), nullable=True)
    approval_date = Column(DateTime, nullable=True)

    specialization = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def is_approved(self) -> bool:
        return self.status == LedgerStatus.APPROVED.value
