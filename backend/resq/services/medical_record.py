"""
MedicalRecordService: the subject-owned record store.

Records are encrypted at rest with the PayloadCodec. Saving is a single
atomic upsert keyed on subject_id, so concurrent first saves for one
subject still leave exactly one row.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session as DbSession

from resq.db.postgres import get_db_session, storage_guard, dialect_insert
from resq.errors import InvalidRequestError, NotFoundError
from resq.models import MedicalRecord
from resq.services.payload_codec import PayloadCodec
from resq.services.principal import Principal


@dataclass(frozen=True)
class RecordView:
    """
    The only serialized form of a medical record.

    Built from the decrypted payload; has no access to audit entries.
    """
    record_id: uuid.UUID
    subject_id: str
    subject_name: Optional[str]
    last_updated: datetime
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "record_id": str(self.record_id),
            "subject": {
                "id": self.subject_id,
                "name": self.subject_name,
            },
            "fields": self.fields,
            "last_updated": self.last_updated.isoformat(),
        }


def clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Drop blank entries from list-valued fields; leave everything else as-is."""
    cleaned = {}
    for key, value in fields.items():
        if isinstance(value, list):
            value = [
                item for item in value
                if item is not None
                and not (isinstance(item, str) and not item.strip())
                and not (isinstance(item, dict) and not item)
            ]
        cleaned[key] = value
    return cleaned


def parse_record_id(record_id: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(record_id, uuid.UUID):
        return record_id
    try:
        return uuid.UUID(str(record_id))
    except (ValueError, TypeError):
        return None


class MedicalRecordService:
    """Create, read and delete encrypted medical records."""

    def __init__(self, codec: PayloadCodec, db_session: Optional[DbSession] = None):
        self.codec = codec
        self._explicit_db = db_session  # Only set if explicitly passed
        self.logger = logging.getLogger("service.MedicalRecordService")

    @property
    def db(self) -> DbSession:
        if self._explicit_db is not None:
            return self._explicit_db
        return get_db_session()

    def save(self, subject: Principal, fields: Dict[str, Any]) -> RecordView:
        """Create or replace the subject's own record."""
        if not isinstance(fields, dict):
            raise InvalidRequestError("Medical record must be an object")

        cleaned = clean_fields(fields)
        envelope = self.codec.encrypt(cleaned)
        now = datetime.utcnow()

        session = self.db
        with storage_guard(session, "save_record"):
            stmt = dialect_insert(session, MedicalRecord).values(
                record_id=uuid.uuid4(),
                subject_id=subject.id,
                subject_name=subject.name,
                payload_envelope=envelope,
                created_at=now,
                last_updated=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["subject_id"],
                set_={
                    "payload_envelope": stmt.excluded.payload_envelope,
                    "subject_name": stmt.excluded.subject_name,
                    "last_updated": stmt.excluded.last_updated,
                },
            )
            session.execute(stmt)
            session.commit()
            record = self._find_for_subject(subject.id)
            session.refresh(record)

        self.logger.info(f"Saved medical record {record.record_id} for subject {subject.id}")
        return RecordView(
            record_id=record.record_id,
            subject_id=record.subject_id,
            subject_name=record.subject_name,
            last_updated=record.last_updated,
            fields=cleaned,
        )

    def find(self, record_id: Union[str, uuid.UUID]) -> Optional[MedicalRecord]:
        """Look up a record by id; unparseable ids simply do not exist."""
        parsed = parse_record_id(record_id)
        if parsed is None:
            return None
        session = self.db
        with storage_guard(session, "find_record"):
            return session.query(MedicalRecord).filter(MedicalRecord.record_id == parsed).first()

    def find_for_subject(self, subject_id: str) -> Optional[MedicalRecord]:
        session = self.db
        with storage_guard(session, "find_record"):
            return self._find_for_subject(subject_id)

    def get(self, record_id: Union[str, uuid.UUID]) -> RecordView:
        record = self.find(record_id)
        if record is None:
            raise NotFoundError("Medical information not found")
        return self.to_view(record)

    def get_for_subject(self, subject_id: str) -> RecordView:
        record = self.find_for_subject(subject_id)
        if record is None:
            raise NotFoundError("Medical information not found")
        return self.to_view(record)

    def delete_for_subject(self, subject_id: str) -> None:
        """Delete the subject's record. Its disclosure trail is kept."""
        session = self.db
        with storage_guard(session, "delete_record"):
            record = self._find_for_subject(subject_id)
            if record is None:
                raise NotFoundError("Medical information not found")
            session.delete(record)
            session.commit()
        self.logger.info(f"Deleted medical record for subject {subject_id}")

    def to_view(self, record: MedicalRecord) -> RecordView:
        """Decrypt a stored record into its view. Raises DecryptionError."""
        return RecordView(
            record_id=record.record_id,
            subject_id=record.subject_id,
            subject_name=record.subject_name,
            last_updated=record.last_updated,
            fields=self.codec.decrypt(record.payload_envelope),
        )

    def _find_for_subject(self, subject_id: str) -> Optional[MedicalRecord]:
        return self.db.query(MedicalRecord).filter(MedicalRecord.subject_id == subject_id).first()
