"""
Disclosure audit model.

Append-only ledger of record disclosures. Rows are inserted by
DisclosureAuditService and never updated or deleted. record_id carries no
foreign key so the trail outlives a deleted record.
"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Uuid

from resq.db.postgres import Base


class DisclosureAction(str, enum.Enum):
    SCAN = "scan"  # bare record identifier
    VIEW = "view"  # token-mediated


class DisclosureAuditEntry(Base):
    """One disclosure of one record to one principal."""

    __tablename__ = "disclosure_audit"

    entry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    record_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    principal_id = Column(String(64), nullable=False)
    principal_role = Column(String(20), nullable=True)
    action = Column(String(10), nullable=False)  # scan | view
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
