"""
SQLAlchemy models for the ResQ core.

These are the authoritative tables.
"""

from .medical_record import MedicalRecord
from .staff_access import StaffAccess, LedgerStatus, STAFF_ROLES
from .disclosure_audit import DisclosureAuditEntry, DisclosureAction

__all__ = [
    # Records
    "MedicalRecord",
    # Ledger
    "StaffAccess",
    "LedgerStatus",
    "STAFF_ROLES",
    # Audit
    "DisclosureAuditEntry",
    "DisclosureAction",
]
