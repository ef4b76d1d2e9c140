"""
Unit tests for MedicalRecordService.

Tests:
- Encrypted-at-rest upsert keyed on subject
- Blank list entry cleaning
- One record per subject under concurrent first saves
"""

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from resq.db.postgres import Base
from resq.errors import InvalidRequestError, NotFoundError
from resq.models import MedicalRecord
from resq.services.medical_record import MedicalRecordService, clean_fields
from resq.services.principal import Principal


@pytest.fixture
def records(codec, db_session):
    return MedicalRecordService(codec, db_session=db_session)


class TestSave:
    """Tests for saving records."""

    def test_first_save_creates_record(self, records, patient, db_session):
        view = records.save(patient, {"bloodType": "A+"})

        assert view.subject_id == patient.id
        assert view.subject_name == patient.name
        assert view.fields == {"bloodType": "A+"}
        assert db_session.query(MedicalRecord).count() == 1

    def test_payload_is_encrypted_at_rest(self, records, patient, db_session):
        records.save(patient, {"allergies": ["peanuts"]})
        stored = db_session.query(MedicalRecord).one()
        assert "peanuts" not in stored.payload_envelope

    def test_second_save_updates_same_record(self, records, patient, db_session):
        first = records.save(patient, {"bloodType": "A+"})
        second = records.save(patient, {"bloodType": "B-"})

        assert first.record_id == second.record_id
        assert second.last_updated >= first.last_updated
        assert db_session.query(MedicalRecord).count() == 1
        assert records.get_for_subject(patient.id).fields == {"bloodType": "B-"}

    def test_non_object_rejected(self, records, patient):
        with pytest.raises(InvalidRequestError):
            records.save(patient, ["not", "a", "record"])

    def test_clean_fields_drops_blank_list_entries(self):
        cleaned = clean_fields({
            "allergies": ["latex", " ", "", None],
            "medications": [{}, {"name": "Aspirin"}],
            "bloodType": "",
        })
        assert cleaned == {
            "allergies": ["latex"],
            "medications": [{"name": "Aspirin"}],
            "bloodType": "",
        }


class TestReadDelete:
    """Tests for lookups and deletion."""

    def test_find_unparseable_id_returns_none(self, records):
        assert records.find("not-a-uuid") is None

    def test_get_by_record_id(self, records, patient):
        saved = records.save(patient, {"bloodType": "O-"})
        assert records.get(str(saved.record_id)).fields == {"bloodType": "O-"}
        with pytest.raises(NotFoundError):
            records.get("not-a-uuid")

    def test_get_for_unknown_subject_raises(self, records):
        with pytest.raises(NotFoundError):
            records.get_for_subject("nobody")

    def test_view_never_contains_audit(self, records, patient):
        view = records.save(patient, {"bloodType": "O-"})
        data = view.to_dict()
        assert set(data) == {"record_id", "subject", "fields", "last_updated"}

    def test_delete_for_subject(self, records, patient):
        records.save(patient, {"bloodType": "O-"})
        records.delete_for_subject(patient.id)
        with pytest.raises(NotFoundError):
            records.get_for_subject(patient.id)

    def test_delete_unknown_raises(self, records):
        with pytest.raises(NotFoundError):
            records.delete_for_subject("nobody")


class TestConcurrentSave:
    """Two racing first saves for one subject must leave one record."""

    def test_one_record_per_subject_under_race(self, codec, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        subject = Principal(id="P1", role="patient", name="Pat")
        barrier = threading.Barrier(2)
        results, errors = [], []

        def save(blood_type):
            session = factory()
            try:
                service = MedicalRecordService(codec, db_session=session)
                barrier.wait()
                results.append(service.save(subject, {"bloodType": blood_type}))
            except Exception as e:  # surfaced via the errors list
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=save, args=(bt,)) for bt in ("A+", "B+")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 2
        assert results[0].record_id == results[1].record_id

        session = factory()
        try:
            assert session.query(MedicalRecord).filter(MedicalRecord.subject_id == "P1").count() == 1
        finally:
            session.close()
            engine.dispose()
