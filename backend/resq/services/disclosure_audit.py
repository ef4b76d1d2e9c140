"""
DisclosureAuditService: append-only record disclosure trail.

INSERT-only; entries are never updated or deleted, and the record read
path never returns them.
"""

import logging
import uuid
from typing import List, Optional
from sqlalchemy.orm import Session as DbSession

from resq.db.postgres import get_db_session, storage_guard
from resq.errors import InvalidRequestError
from resq.models import DisclosureAuditEntry, DisclosureAction
from resq.services.principal import Principal


class DisclosureAuditService:
    """
    Append-only disclosure logging.

    Actions:
    - scan: disclosure through a bare record identifier
    - view: disclosure through a medical access grant
    """

    SCAN = DisclosureAction.SCAN.value
    VIEW = DisclosureAction.VIEW.value

    def __init__(self, db_session: Optional[DbSession] = None):
        self._explicit_db = db_session  # Only set if explicitly passed
        self.logger = logging.getLogger("service.DisclosureAudit")

    @property
    def db(self) -> DbSession:
        # Always get a fresh session unless explicitly passed
        if self._explicit_db is not None:
            return self._explicit_db
        return get_db_session()

    def append(
        self,
        record_id: uuid.UUID,
        principal: Principal,
        action: str,
        commit: bool = True,
    ) -> DisclosureAuditEntry:
        """
        Append a disclosure entry.

        With ``commit=False`` the entry is only flushed, so it lands or
        disappears together with the caller's transaction.
        """
        if action not in (self.SCAN, self.VIEW):
            raise InvalidRequestError(f"Unknown disclosure action: {action}")

        session = self.db
        entry = DisclosureAuditEntry(
            record_id=record_id,
            principal_id=principal.id,
            principal_role=principal.role,
            action=action,
        )
        with storage_guard(session, "audit_append"):
            session.add(entry)
            if not commit:
                session.flush()
                return entry
            session.commit()
        self.logger.info(f"Disclosure {action}: record {record_id} to {principal.role} {principal.id}")
        return entry

    def entries_for_record(self, record_id: uuid.UUID) -> List[DisclosureAuditEntry]:
        """Audit-query helper; never used on the record read path."""
        session = self.db
        with storage_guard(session, "audit_query"):
            return (
                session.query(DisclosureAuditEntry)
                .filter(DisclosureAuditEntry.record_id == record_id)
                .order_by(DisclosureAuditEntry.accessed_at.asc())
                .all()
            )
