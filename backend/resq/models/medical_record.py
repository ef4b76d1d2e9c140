"""
Medical record model.

One live record per subject (unique subject_id). The clinical fields are
stored only as an encrypted envelope; the core never reads them in SQL.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Uuid

from resq.db.postgres import Base


class MedicalRecord(Base):
    """Encrypted medical record owned by exactly one subject."""

    __tablename__ = "medical_record"

    record_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subject_id = Column(String(64), nullable=False, unique=True)
    subject_name = Column(String(255), nullable=True)

    # PayloadCodec envelope string
    payload_envelope = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)
