"""
AccessGateway: the disclosure workflow.

Two ways to redeem a QR code, both ending in the same disclosure path
(read, decrypt, audit, commit):

- redeem_by_token (primary): the QR carries a signed medical access
  grant. Token verified, then role allow-set, then (optionally) ledger.
- redeem_by_identifier: the QR carries a bare record id and the scanning
  staff session is trusted. Ledger approval required.

Denials are always decided before the record is looked up, so a denied
caller learns nothing about which identifiers exist.
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Optional, Union

from sqlalchemy.orm import Session as DbSession

from resq.config import config
from resq.db.postgres import get_db_session, storage_guard
from resq.errors import ForbiddenError, NotFoundError
from resq.services.access_token import AccessTokenService
from resq.services.authorization_ledger import AuthorizationLedger, LedgerView
from resq.services.disclosure_audit import DisclosureAuditService
from resq.services.medical_record import MedicalRecordService, RecordView
from resq.services.payload_codec import PayloadCodec, load_key
from resq.services.principal import Principal


class AccessGateway:
    """
    Composes tokens, ledger, record store and audit trail.

    Usage:
        gateway = get_access_gateway()
        token = gateway.mint_access_grant(record_id, subject_id)
        view = gateway.redeem_by_token(principal, token)
    """

    def __init__(
        self,
        tokens: AccessTokenService,
        codec: PayloadCodec,
        db_session: Optional[DbSession] = None,
        auto_approve_verified: bool = False,
        require_approval_for_token: bool = False,
    ):
        self._explicit_db = db_session
        self.tokens = tokens
        self.records = MedicalRecordService(codec, db_session=db_session)
        self.ledger = AuthorizationLedger(db_session=db_session, auto_approve_verified=auto_approve_verified)
        self.audit = DisclosureAuditService(db_session=db_session)
        self.require_approval_for_token = require_approval_for_token
        self.logger = logging.getLogger("service.AccessGateway")

    @property
    def db(self) -> DbSession:
        if self._explicit_db is not None:
            return self._explicit_db
        return get_db_session()

    # =========================================================================
    # Grants
    # =========================================================================

    def mint_access_grant(self, record_id: Union[str, uuid.UUID], subject_id: str) -> str:
        return self.tokens.mint(str(record_id), subject_id)

    def grant_for_subject(self, subject: Principal) -> str:
        """Mint a grant for the caller's own record."""
        record = self.records.find_for_subject(subject.id)
        if record is None:
            raise NotFoundError("Medical information not found")
        return self.mint_access_grant(record.record_id, record.subject_id)

    def qr_payload(self, subject: Principal) -> str:
        """String to encode into the subject's QR symbol (a fresh grant)."""
        return self.grant_for_subject(subject)

    @property
    def grant_ttl(self) -> timedelta:
        return self.tokens.ttl

    # =========================================================================
    # Redemption
    # =========================================================================

    def redeem_by_identifier(self, principal: Principal, record_id: Union[str, uuid.UUID]) -> RecordView:
        """Protocol A: approved staff scanning a bare record identifier."""
        if not self.ledger.is_approved(principal.id):
            self.logger.warning(f"Scan denied: {principal.id} is not approved staff")
            raise ForbiddenError()
        return self._disclose(principal, record_id, self.audit.SCAN)

    def redeem_by_token(self, principal: Principal, token: str) -> RecordView:
        """Protocol B: any clinician presenting a valid medical access grant."""
        claims = self.tokens.verify(token)

        if not principal.is_clinician:
            self.logger.warning(f"Grant redemption denied: role {principal.role} ({principal.id})")
            raise ForbiddenError()
        if self.require_approval_for_token and not self.ledger.is_approved(principal.id):
            self.logger.warning(f"Grant redemption denied: {principal.id} is not approved staff")
            raise ForbiddenError()

        return self._disclose(
            principal,
            claims.record_id,
            self.audit.VIEW,
            expected_subject=claims.subject_id,
        )

    def _disclose(
        self,
        principal: Principal,
        record_id: Union[str, uuid.UUID],
        action: str,
        expected_subject: Optional[str] = None,
    ) -> RecordView:
        """Read, decrypt and audit as one unit; nothing is returned unless the audit commits."""
        session = self.db
        try:
            record = self.records.find(record_id)
            if record is None or (expected_subject is not None and record.subject_id != expected_subject):
                raise NotFoundError("Medical information not found")

            view = self.records.to_view(record)
            self.audit.append(record.record_id, principal, action, commit=False)
            with storage_guard(session, "disclose"):
                session.commit()
        except Exception:
            session.rollback()
            raise
        self.logger.info(f"Disclosure {action}: record {view.record_id} to {principal.role} {principal.id}")
        return view

    # =========================================================================
    # Ledger
    # =========================================================================

    def set_approval(self, admin: Principal, staff_id: str, decision: str) -> LedgerView:
        return self.ledger.set_status(admin, staff_id, decision)

    def get_approval_status(self, staff_id: str) -> LedgerView:
        return self.ledger.get_status(staff_id)

    def request_staff_access(self, principal: Principal, **details) -> LedgerView:
        return self.ledger.ensure_entry(principal, **details)

    def list_staff(self, admin: Principal, status: Optional[str] = None) -> List[LedgerView]:
        return self.ledger.list_entries(admin, status=status)


# Singleton instance
_access_gateway = None


def build_access_gateway(db_session: Optional[DbSession] = None) -> AccessGateway:
    """Build a gateway from process configuration. Raises ConfigurationError."""
    config.require_keys()
    tokens = AccessTokenService(
        config.SIGNING_KEY,
        ttl=timedelta(hours=config.access_token_ttl_hours()),
    )
    codec = PayloadCodec(load_key(config.ENCRYPTION_KEY))
    return AccessGateway(
        tokens,
        codec,
        db_session=db_session,
        auto_approve_verified=config.AUTO_APPROVE_VERIFIED_STAFF,
        require_approval_for_token=config.TOKEN_REDEEM_REQUIRES_APPROVAL,
    )


def get_access_gateway() -> AccessGateway:
    """Get the singleton access gateway instance."""
    global _access_gateway
    if _access_gateway is None:
        _access_gateway = build_access_gateway()
    return _access_gateway


def reset_access_gateway() -> None:
    """Drop the singleton so the next call rebuilds from configuration."""
    global _access_gateway
    _access_gateway = None
