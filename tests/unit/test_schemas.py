"""Tests for core schemas: JobDraft validation, strict status decoding, ChangeSet, Actor."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from pydantic import ValidationError

from studwerk.core.errors import DataIntegrityError, PermissionDeniedError
from studwerk.core.schemas import (
    Actor,
    Application,
    ApplicationStatus,
    ChangeSet,
    Job,
    JobDraft,
    JobStatus,
    UserRole,
    decode_application_status,
    decode_job_status,
    parse_amount,
)


def _draft(**overrides: object) -> JobDraft:
    defaults: dict[str, object] = {
        "title": "Garden Cleaning",
        "description": "Rake leaves and trim hedges",
        "payment": "50",
        "date": date(2026, 1, 15),
        "start_time": time(14, 0),
        "end_time": time(17, 0),
        "category": "General",
        "location": "Charlottenburg, Berlin",
    }
    defaults.update(overrides)
    return JobDraft(**defaults)  # type: ignore[arg-type]


def _job_doc(**overrides: object) -> dict[str, object]:
    doc: dict[str, object] = {
        "employer_id": "emp-1",
        "title": "Wall Painting",
        "description": "Paint one room",
        "payment": "120",
        "date": "2026-01-16",
        "start_time": "10:00:00",
        "end_time": "16:00:00",
        "category": "General",
        "location": "Mitte, Berlin",
        "created_at": "2026-01-10T09:00:00",
        "status": "open",
    }
    doc.update(overrides)
    return doc


class TestParseAmount:
    def test_plain_integer(self) -> None:
        assert parse_amount("50") == Decimal("50")

    def test_currency_prefix(self) -> None:
        assert parse_amount("€120") == Decimal("120")

    def test_decimal_comma(self) -> None:
        assert parse_amount("15,50") == Decimal("15.50")

    def test_per_hour_suffix(self) -> None:
        assert parse_amount("€15/hour") == Decimal("15")

    def test_numeric_types(self) -> None:
        assert parse_amount(12) == Decimal("12")
        assert parse_amount(Decimal("9.99")) == Decimal("9.99")

    def test_no_number(self) -> None:
        with pytest.raises(ValueError):
            parse_amount("negotiable")


class TestJobDraft:
    def test_valid(self) -> None:
        d = _draft()
        assert d.payment == Decimal("50")
        assert d.title == "Garden Cleaning"

    def test_fields_stripped(self) -> None:
        d = _draft(title="  Office Cleaning  ", location=" Potsdamer Platz ")
        assert d.title == "Office Cleaning"
        assert d.location == "Potsdamer Platz"

    @pytest.mark.parametrize("field", ["title", "description", "location"])
    def test_blank_required_field(self, field: str) -> None:
        with pytest.raises(ValidationError):
            _draft(**{field: "   "})

    def test_payment_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _draft(payment="0")

    def test_payment_without_number(self) -> None:
        with pytest.raises(ValidationError):
            _draft(payment="free")

    def test_end_before_start(self) -> None:
        with pytest.raises(ValidationError):
            _draft(start_time=time(17, 0), end_time=time(14, 0))

    def test_end_equal_start(self) -> None:
        with pytest.raises(ValidationError):
            _draft(start_time=time(14, 0), end_time=time(14, 0))


class TestStatusDecoding:
    def test_known_values(self) -> None:
        assert decode_job_status("closed") is JobStatus.CLOSED
        assert decode_application_status("accepted") is ApplicationStatus.ACCEPTED

    def test_unknown_job_status(self) -> None:
        with pytest.raises(DataIntegrityError):
            decode_job_status("filled")

    def test_unknown_application_status_not_coerced(self) -> None:
        """A capitalized legacy value is not silently read as pending."""
        with pytest.raises(DataIntegrityError):
            decode_application_status("Pending")


class TestJobFromDocument:
    def test_valid_document(self) -> None:
        job = Job.from_document("j1", _job_doc())
        assert job is not None
        assert job.id == "j1"
        assert job.payment == Decimal("120")
        assert job.date == date(2026, 1, 16)
        assert job.created_at == datetime(2026, 1, 10, 9, 0)
        assert job.status is JobStatus.OPEN

    def test_missing_field_returns_none(self) -> None:
        doc = _job_doc()
        del doc["title"]
        assert Job.from_document("j1", doc) is None

    def test_missing_status_returns_none(self) -> None:
        doc = _job_doc()
        del doc["status"]
        assert Job.from_document("j1", doc) is None

    def test_unknown_status_raises(self) -> None:
        with pytest.raises(DataIntegrityError):
            Job.from_document("j1", _job_doc(status="archived"))

    def test_document_round_trip_keeps_fields(self) -> None:
        job = Job.from_document("j1", _job_doc())
        assert job is not None
        doc = job.to_document()
        assert "id" not in doc
        assert doc["payment"] == "120"
        assert doc["status"] == "open"


class TestApplicationFromDocument:
    def test_missing_snapshot_returns_none(self) -> None:
        doc = {
            "student_id": "stu-1",
            "job_id": "j1",
            "employer_id": "emp-1",
            "status": "pending",
            "applied_at": "2026-01-10T10:00:00",
        }
        assert Application.from_document("a1", doc) is None

    def test_unknown_status_raises(self) -> None:
        with pytest.raises(DataIntegrityError):
            Application.from_document("a1", {"status": "withdrawn"})


class TestChangeSet:
    def test_empty(self) -> None:
        assert ChangeSet().is_empty is True

    def test_merge(self) -> None:
        a = ChangeSet(applications_updated=frozenset({"a1"}))
        b = ChangeSet(applications_updated=frozenset({"a2"}), jobs_updated=frozenset({"j1"}))
        merged = a.merge(b)
        assert merged.applications_updated == {"a1", "a2"}
        assert merged.jobs_updated == {"j1"}
        assert merged.is_empty is False

    def test_frozen(self) -> None:
        c = ChangeSet()
        with pytest.raises(ValidationError):
            c.jobs_updated = frozenset({"x"})  # type: ignore[misc]


class TestActor:
    def test_owner_allowed(self) -> None:
        actor = Actor(user_id="emp-1", role=UserRole.EMPLOYER)
        actor.require_owner(UserRole.EMPLOYER, "emp-1", "edit job")

    def test_other_user_denied(self) -> None:
        actor = Actor(user_id="emp-2", role=UserRole.EMPLOYER)
        with pytest.raises(PermissionDeniedError):
            actor.require_owner(UserRole.EMPLOYER, "emp-1", "edit job")

    def test_wrong_role_denied(self) -> None:
        actor = Actor(user_id="emp-1", role=UserRole.STUDENT)
        with pytest.raises(PermissionDeniedError):
            actor.require_owner(UserRole.EMPLOYER, "emp-1", "edit job")

    def test_empty_user_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Actor(user_id="", role=UserRole.STUDENT)
