"""Application store: apply, withdraw, list and status changes for applications.

One application per (student, job): the existence check and the create run
in one transaction when the backend supports it, so a double submit cannot
produce two records.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from studwerk.core.errors import (
    AlreadyAppliedError,
    ApplicationNotFoundError,
    InvalidTransitionError,
    JobNotAvailableError,
    JobNotFoundError,
)
from studwerk.core.schemas import (
    APPLICATION_TRANSITIONS,
    Actor,
    Application,
    ApplicationStatus,
    ChangeSet,
    JobSnapshot,
    JobStatus,
    UserRole,
)
from studwerk.marketplace.jobs import JobStore
from studwerk.storage.base import (
    DocumentStore,
    Query,
    Snapshot,
    Transaction,
    WriteBatch,
    query_with_fallback,
    transaction_if_supported,
)

logger = logging.getLogger(__name__)

APPLICATIONS = "applications"

Clock = Callable[[], datetime]


class ApplicationStore:
    """Applications in the ``applications`` collection."""

    def __init__(self, store: DocumentStore, jobs: JobStore, clock: Clock = datetime.now) -> None:
        self._store = store
        self._jobs = jobs
        self._clock = clock

    def has_applied(self, job_id: str, student_id: str, tx: Transaction | None = None) -> bool:
        """Return True if the student already has an application for the job."""
        reader = tx if tx is not None else self._store
        query = Query(filters={"job_id": job_id, "student_id": student_id}, limit=1)
        return bool(reader.query(APPLICATIONS, query))

    def apply_to_job(self, job_id: str, student_id: str, actor: Actor | None = None) -> str:
        """Create a pending application with a snapshot of the job. Returns its id.

        Checks run in this order: prior application, job exists, job is open.

        Raises:
            AlreadyAppliedError: The student already applied to this job.
            JobNotFoundError: The job does not exist.
            JobNotAvailableError: The job is no longer open.
        """
        if actor is not None:
            actor.require_owner(UserRole.STUDENT, student_id, f"apply as {student_id}")
        logger.debug("Student %s applying to job %s", student_id, job_id)

        with transaction_if_supported(self._store) as tx:
            app_id = self._apply(tx, job_id, student_id)

        logger.info("Created application %s (job %s, student %s)", app_id, job_id, student_id)
        return app_id

    def get_application(self, application_id: str, tx: Transaction | None = None) -> Application | None:
        """Return the application, or None if it is missing or malformed."""
        reader = tx if tx is not None else self._store
        snap = reader.get(APPLICATIONS, application_id)
        if snap is None:
            return None
        return Application.from_document(snap.id, snap.data)

    def list_by_student(self, student_id: str, status: ApplicationStatus | None = None) -> list[Application]:
        filters: dict[str, str] = {"student_id": student_id}
        if status is not None:
            filters["status"] = status.value
        return self._list(filters)

    def list_by_job(self, job_id: str) -> list[Application]:
        return self._list({"job_id": job_id})

    def list_by_employer(self, employer_id: str, status: ApplicationStatus | None = None) -> list[Application]:
        filters: dict[str, str] = {"employer_id": employer_id}
        if status is not None:
            filters["status"] = status.value
        return self._list(filters)

    def for_job(self, job_id: str, tx: Transaction | None = None) -> list[Application]:
        """All applications for a job, unordered. Used for sibling checks."""
        reader = tx if tx is not None else self._store
        snapshots = reader.query(APPLICATIONS, Query(filters={"job_id": job_id}))
        return _decode_all(snapshots)

    def withdraw(self, application_id: str, actor: Actor | None = None) -> ChangeSet:
        """Delete a pending application.

        A missing application is treated as already withdrawn.

        Raises:
            InvalidTransitionError: The application is no longer pending.
        """
        with transaction_if_supported(self._store) as tx:
            app = self.get_application(application_id, tx)
            if app is None:
                logger.debug("Application %s already gone, nothing to withdraw", application_id)
                return ChangeSet()
            if actor is not None:
                actor.require_owner(UserRole.STUDENT, app.student_id, f"withdraw application {application_id}")
            if app.status != ApplicationStatus.PENDING:
                raise InvalidTransitionError(
                    "application", application_id, app.status.value, "withdrawn",
                    "only pending applications can be withdrawn",
                )
            writer = tx if tx is not None else self._store
            writer.delete(APPLICATIONS, application_id)
        logger.info("Withdrew application %s", application_id)
        return ChangeSet(applications_deleted=frozenset({application_id}))

    def set_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        *,
        current: ApplicationStatus | None = None,
        tx: WriteBatch | None = None,
    ) -> None:
        """Move an application to ``status`` if the transition is allowed.

        This is the low-level primitive: it checks only the transition table.
        Requests for ACCEPTED must come from ``LifecycleCoordinator.accept``,
        which also enforces one accepted application per job.
        """
        if current is None and tx is None and self._store.supports_transactions:
            with self._store.transaction() as own:
                self.set_status(application_id, status, tx=own)
            return
        if current is None:
            reader_tx = tx if isinstance(tx, Transaction) else None
            app = self.get_application(application_id, reader_tx)
            if app is None:
                raise ApplicationNotFoundError(application_id)
            current = app.status
        if status not in APPLICATION_TRANSITIONS[current]:
            raise InvalidTransitionError("application", application_id, current.value, status.value)
        writer = tx if tx is not None else self._store
        writer.update(APPLICATIONS, application_id, {"status": status.value})
        logger.debug("Application %s: %s -> %s", application_id, current.value, status.value)

    def delete_all_for_job(self, job_id: str, tx: Transaction | None = None) -> list[str]:
        """Delete every application for a job and return the deleted ids.

        Without ``tx`` the deletes go out as one atomic batch.
        """
        reader = tx if tx is not None else self._store
        ids = [s.id for s in reader.query(APPLICATIONS, Query(filters={"job_id": job_id}))]
        writer: WriteBatch = tx if tx is not None else self._store.batch()
        for app_id in ids:
            writer.delete(APPLICATIONS, app_id)
        if tx is None:
            writer.commit()
        logger.debug("Deleted %d application(s) for job %s", len(ids), job_id)
        return ids

    def _apply(self, tx: Transaction | None, job_id: str, student_id: str) -> str:
        if self.has_applied(job_id, student_id, tx):
            raise AlreadyAppliedError(job_id, student_id)

        job = self._jobs.get_job(job_id, tx)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JobStatus.OPEN:
            raise JobNotAvailableError(job_id, job.status.value)

        app = Application(
            id="",
            student_id=student_id,
            job_id=job_id,
            employer_id=job.employer_id,
            status=ApplicationStatus.PENDING,
            applied_at=self._clock(),
            job=JobSnapshot.of(job),
        )
        writer = tx if tx is not None else self._store
        return writer.add(APPLICATIONS, app.to_document())

    def _list(self, filters: dict[str, str]) -> list[Application]:
        query = Query(filters=filters, order_by="applied_at", descending=True)
        snapshots = query_with_fallback(self._store, APPLICATIONS, query)
        logger.debug("Application query %s returned %d document(s)", filters, len(snapshots))
        apps = _decode_all(snapshots)
        apps.sort(key=lambda a: a.applied_at, reverse=True)
        return apps


def _decode_all(snapshots: list[Snapshot]) -> list[Application]:
    apps = [Application.from_document(s.id, s.data) for s in snapshots]
    return [a for a in apps if a is not None]
