"""
Core services for ResQ.

- PayloadCodec: AES-256-GCM record envelopes
- AccessTokenService: signed, short-lived medical access grants
- AuthorizationLedger: staff approval state machine
- DisclosureAuditService: append-only disclosure trail
- MedicalRecordService: encrypted, subject-owned record store
- AccessGateway: redemption workflow composing all of the above
"""

from .payload_codec import PayloadCodec, EncryptedEnvelope, load_key
from .access_token import AccessTokenService, AccessClaims
from .principal import Principal, PrincipalResolver, get_principal_resolver
from .authorization_ledger import AuthorizationLedger, LedgerView
from .disclosure_audit import DisclosureAuditService
from .medical_record import MedicalRecordService, RecordView
from .access_gateway import AccessGateway, build_access_gateway, get_access_gateway

__all__ = [
    "PayloadCodec",
    "EncryptedEnvelope",
    "load_key",
    "AccessTokenService",
    "AccessClaims",
    "Principal",
    "PrincipalResolver",
    "get_principal_resolver",
    "AuthorizationLedger",
    "LedgerView",
    "DisclosureAuditService",
    "MedicalRecordService",
    "RecordView",
    "AccessGateway",
    "build_access_gateway",
    "get_access_gateway",
]
