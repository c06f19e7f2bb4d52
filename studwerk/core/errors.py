"""Marketplace error taxonomy.

Store-layer errors propagate unchanged through the stores and the lifecycle
coordinator; the CLI is the only place that turns them into user messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from studwerk.core.schemas import ChangeSet


class MarketplaceError(Exception):
    """Base class for every error the marketplace core raises."""


class NotFoundError(MarketplaceError):
    """A referenced job or application does not exist."""


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ApplicationNotFoundError(NotFoundError):
    def __init__(self, application_id: str) -> None:
        self.application_id = application_id
        super().__init__(f"Application not found: {application_id}")


class AlreadyAppliedError(MarketplaceError):
    def __init__(self, job_id: str, student_id: str) -> None:
        self.job_id = job_id
        self.student_id = student_id
        super().__init__("You have already applied to this job")


class JobNotAvailableError(MarketplaceError):
    def __init__(self, job_id: str, status: str) -> None:
        self.job_id = job_id
        self.status = status
        super().__init__(f"This job is no longer available (status: {status})")


class InvalidTransitionError(MarketplaceError):
    """An illegal status change was requested."""

    def __init__(self, entity: str, entity_id: str, current: str, requested: str, reason: str = "") -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        msg = f"Cannot move {entity} {entity_id} from '{current}' to '{requested}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class PartialFailureError(MarketplaceError):
    """A multi-step operation failed after some of its writes were applied.

    ``applied`` lists what is already visible in the store so the caller can
    reconcile or retry the remaining step.
    """

    def __init__(self, operation: str, applied: ChangeSet, cause: BaseException) -> None:
        self.operation = operation
        self.applied = applied
        self.cause = cause
        super().__init__(f"{operation} partially applied: {cause}")


class TransientStoreError(MarketplaceError):
    """The backing store is unavailable. Safe to retry."""


class DataIntegrityError(MarketplaceError):
    """A stored record holds a value the marketplace does not recognize."""


class PermissionDeniedError(MarketplaceError):
    """The acting user does not own the record they tried to change."""


class InvalidJobError(MarketplaceError, ValueError):
    """Job fields failed validation."""
