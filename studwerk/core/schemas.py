"""Core data models for the marketplace: jobs, applications, and change sets."""

import logging
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from studwerk.core.errors import DataIntegrityError, PermissionDeniedError

logger = logging.getLogger(__name__)

_AMOUNT_RE = re.compile(r"\d+(?:[.,]\d+)?")


class JobStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    COMPLETED = "completed"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class UserRole(str, Enum):
    STUDENT = "student"
    EMPLOYER = "employer"


# Allowed forward moves. Anything not listed is an invalid transition.
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.CLOSED, JobStatus.COMPLETED}),
    JobStatus.CLOSED: frozenset({JobStatus.COMPLETED}),
    JobStatus.COMPLETED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.ACCEPTED: frozenset({ApplicationStatus.COMPLETED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.COMPLETED: frozenset(),
}


def decode_job_status(raw: Any) -> JobStatus:
    """Strictly decode a stored job status. Unknown values are a data-integrity error."""
    try:
        return JobStatus(raw)
    except ValueError as e:
        msg = f"Unrecognized job status in store: {raw!r}"
        raise DataIntegrityError(msg) from e


def decode_application_status(raw: Any) -> ApplicationStatus:
    """Strictly decode a stored application status."""
    try:
        return ApplicationStatus(raw)
    except ValueError as e:
        msg = f"Unrecognized application status in store: {raw!r}"
        raise DataIntegrityError(msg) from e


def parse_amount(value: Any) -> Decimal:
    """Extract a decimal amount from user input such as ``"50"``, ``"15,50"`` or ``"€120"``."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    match = _AMOUNT_RE.search(str(value))
    if match is None:
        msg = f"payment must contain a number, got '{value}'"
        raise ValueError(msg)
    try:
        return Decimal(match.group(0).replace(",", "."))
    except InvalidOperation as e:
        msg = f"payment is not a valid amount: '{value}'"
        raise ValueError(msg) from e


class Actor(BaseModel):
    """The current user as reported by the identity provider. Trusted verbatim."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    role: UserRole

    def require_owner(self, role: UserRole, owner_id: str, action: str) -> None:
        """Raise PermissionDeniedError unless this actor is ``owner_id`` acting as ``role``."""
        if self.role != role or self.user_id != owner_id:
            msg = f"{self.role.value} {self.user_id} may not {action}"
            raise PermissionDeniedError(msg)


class JobDraft(BaseModel):
    """Editable job fields, validated before create/update."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    payment: Decimal = Field(gt=0)
    date: date
    start_time: time
    end_time: time
    category: str = "General"
    location: str

    @field_validator("title", "description", "location", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("payment", mode="before")
    @classmethod
    def payment_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @model_validator(mode="after")
    def end_after_start(self) -> "JobDraft":
        if self.end_time <= self.start_time:
            msg = "end_time must be after start_time"
            raise ValueError(msg)
        return self


class Job(BaseModel):
    """A posted short-term job, as read back from the store."""

    model_config = ConfigDict(frozen=True)

    id: str
    employer_id: str = Field(min_length=1)
    title: str
    description: str
    payment: Decimal
    date: date
    start_time: time
    end_time: time
    category: str
    location: str
    created_at: datetime
    status: JobStatus

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Job | None":
        """Build a Job from stored data.

        Returns None for records missing required fields. Raises
        DataIntegrityError when the stored status is not a known value.
        """
        if "status" in data:
            decode_job_status(data["status"])
        try:
            return cls.model_validate({**data, "id": doc_id})
        except ValidationError as e:
            logger.warning("Skipping malformed job %s: %d field error(s)", doc_id, e.error_count())
            return None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class JobSnapshot(BaseModel):
    """Copy of job fields taken when a student applies.

    Kept on the application so it stays displayable after the job is edited
    or deleted.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    payment: Decimal
    location: str
    date: date
    start_time: time
    end_time: time
    category: str

    @classmethod
    def of(cls, job: Job) -> "JobSnapshot":
        return cls(
            title=job.title,
            payment=job.payment,
            location=job.location,
            date=job.date,
            start_time=job.start_time,
            end_time=job.end_time,
            category=job.category,
        )


class Application(BaseModel):
    """A student's request to be hired for one job."""

    model_config = ConfigDict(frozen=True)

    id: str
    student_id: str = Field(min_length=1)
    job_id: str = Field(min_length=1)
    employer_id: str = Field(min_length=1)
    status: ApplicationStatus
    applied_at: datetime
    job: JobSnapshot

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Application | None":
        """Same contract as Job.from_document."""
        if "status" in data:
            decode_application_status(data["status"])
        try:
            return cls.model_validate({**data, "id": doc_id})
        except ValidationError as e:
            logger.warning(
                "Skipping malformed application %s: %d field error(s)", doc_id, e.error_count(),
            )
            return None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class ChangeSet(BaseModel):
    """Which entities an operation changed, so callers know what to refetch."""

    model_config = ConfigDict(frozen=True)

    jobs_updated: frozenset[str] = frozenset()
    applications_updated: frozenset[str] = frozenset()
    jobs_deleted: frozenset[str] = frozenset()
    applications_deleted: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (
            self.jobs_updated or self.applications_updated
            or self.jobs_deleted or self.applications_deleted
        )

    def merge(self, other: "ChangeSet") -> "ChangeSet":
        return ChangeSet(
            jobs_updated=self.jobs_updated | other.jobs_updated,
            applications_updated=self.applications_updated | other.applications_updated,
            jobs_deleted=self.jobs_deleted | other.jobs_deleted,
            applications_deleted=self.applications_deleted | other.applications_deleted,
        )
