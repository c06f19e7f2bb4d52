"""Lifecycle coordinator: keeps job and application statuses consistent.

  accept   -> application accepted, every pending sibling rejected
  reject   -> application rejected
  complete -> application completed, job completed
  delete   -> job deleted together with all of its applications

With a transactional backend each operation is one transaction, re-checked
against the stored state (compare-and-swap), so two employers' devices
cannot both accept a candidate for the same job. Without transactions the
steps run in sequence and a failure after the first write raises
PartialFailureError carrying what was already applied.
"""

import logging

from studwerk.core.errors import (
    ApplicationNotFoundError,
    InvalidTransitionError,
    JobNotAvailableError,
    JobNotFoundError,
    MarketplaceError,
    PartialFailureError,
)
from studwerk.core.schemas import (
    JOB_TRANSITIONS,
    Actor,
    Application,
    ApplicationStatus,
    ChangeSet,
    JobStatus,
    UserRole,
)
from studwerk.marketplace.applications import ApplicationStore
from studwerk.marketplace.jobs import JobStore
from studwerk.storage.base import (
    DocumentStore,
    StoreError,
    Transaction,
    WriteBatch,
    transaction_if_supported,
)

logger = logging.getLogger(__name__)

_HIRED = (ApplicationStatus.ACCEPTED, ApplicationStatus.COMPLETED)


class LifecycleCoordinator:
    """Cross-entity status rules for jobs and their applications.

    Usage::

        coordinator = LifecycleCoordinator(store, jobs, applications)
        changes = coordinator.accept(application_id, actor=employer)
        refresh(changes.applications_updated)
    """

    def __init__(self, store: DocumentStore, jobs: JobStore, applications: ApplicationStore) -> None:
        self._store = store
        self._jobs = jobs
        self._applications = applications

    def accept(self, application_id: str, actor: Actor | None = None) -> ChangeSet:
        """Accept one candidate and reject the job's other pending applications.

        Raises:
            ApplicationNotFoundError: The application does not exist.
            InvalidTransitionError: It is not pending, or a sibling is already hired.
            JobNotAvailableError: The job is no longer open.
            PartialFailureError: (non-transactional backend) the acceptance was
                written but rejecting the siblings failed; no sibling changed.
        """
        with transaction_if_supported(self._store) as tx:
            app = self._load(application_id, actor, "accept", tx)
            if app.status != ApplicationStatus.PENDING:
                raise InvalidTransitionError(
                    "application", application_id, app.status.value, ApplicationStatus.ACCEPTED.value,
                )

            siblings = [s for s in self._applications.for_job(app.job_id, tx) if s.id != app.id]
            hired = [s.id for s in siblings if s.status in _HIRED]
            if hired:
                raise InvalidTransitionError(
                    "application", application_id, app.status.value, ApplicationStatus.ACCEPTED.value,
                    f"job {app.job_id} already has an accepted application ({hired[0]})",
                )

            job = self._jobs.get_job(app.job_id, tx)
            if job is None:
                raise JobNotFoundError(app.job_id)
            if job.status != JobStatus.OPEN:
                raise JobNotAvailableError(app.job_id, job.status.value)

            pending = [s.id for s in siblings if s.status == ApplicationStatus.PENDING]
            accepted = ChangeSet(applications_updated=frozenset({application_id}))

            if tx is not None:
                self._applications.set_status(
                    application_id, ApplicationStatus.ACCEPTED, current=app.status, tx=tx,
                )
                self._reject_all(pending, tx)
            else:
                self._applications.set_status(application_id, ApplicationStatus.ACCEPTED, current=app.status)
                batch = self._store.batch()
                self._reject_all(pending, batch)
                try:
                    batch.commit()
                except (StoreError, MarketplaceError) as e:
                    logger.error(
                        "Accepted %s but rejecting %d sibling(s) failed: %s",
                        application_id, len(pending), e,
                    )
                    raise PartialFailureError("accept", accepted, e) from e

        logger.info(
            "Accepted application %s for job %s, rejected %d sibling(s)",
            application_id, app.job_id, len(pending),
        )
        return ChangeSet(applications_updated=frozenset({application_id, *pending}))

    def reject(self, application_id: str, actor: Actor | None = None) -> ChangeSet:
        """Reject a pending application. No cascade."""
        with transaction_if_supported(self._store) as tx:
            app = self._load(application_id, actor, "reject", tx)
            self._applications.set_status(
                application_id, ApplicationStatus.REJECTED, current=app.status, tx=tx,
            )
        logger.info("Rejected application %s", application_id)
        return ChangeSet(applications_updated=frozenset({application_id}))

    def complete(self, application_id: str, actor: Actor | None = None) -> ChangeSet:
        """Mark an accepted application and its job as completed.

        Raises:
            InvalidTransitionError: The application is not accepted, or the job
                cannot move to completed.
            PartialFailureError: (non-transactional backend) the application was
                completed but the job write failed.
        """
        with transaction_if_supported(self._store) as tx:
            app = self._load(application_id, actor, "complete", tx)
            job = self._jobs.get_job(app.job_id, tx)
            if job is None:
                raise JobNotFoundError(app.job_id)
            if JobStatus.COMPLETED not in JOB_TRANSITIONS[job.status]:
                raise InvalidTransitionError(
                    "job", job.id, job.status.value, JobStatus.COMPLETED.value,
                )

            self._applications.set_status(
                application_id, ApplicationStatus.COMPLETED, current=app.status, tx=tx,
            )
            try:
                self._jobs.set_status(job.id, JobStatus.COMPLETED, current=job.status, tx=tx)
            except (StoreError, MarketplaceError) as e:
                if tx is not None:
                    raise
                applied = ChangeSet(applications_updated=frozenset({application_id}))
                logger.error(
                    "Completed application %s but job %s was not completed: %s",
                    application_id, job.id, e,
                )
                raise PartialFailureError("complete", applied, e) from e

        logger.info("Completed application %s and job %s", application_id, job.id)
        return ChangeSet(
            applications_updated=frozenset({application_id}),
            jobs_updated=frozenset({job.id}),
        )

    def delete_job(self, job_id: str, actor: Actor | None = None) -> ChangeSet:
        """Delete a job and every application that references it.

        Raises:
            JobNotFoundError: The job does not exist.
            PartialFailureError: (non-transactional backend) the applications
                were deleted but the job delete failed.
        """
        with transaction_if_supported(self._store) as tx:
            job = self._jobs.get_job(job_id, tx)
            if job is None:
                raise JobNotFoundError(job_id)
            if actor is not None:
                actor.require_owner(UserRole.EMPLOYER, job.employer_id, f"delete job {job_id}")

            deleted = self._applications.delete_all_for_job(job_id, tx)
            try:
                self._jobs.delete_job(job_id, tx)
            except (StoreError, MarketplaceError) as e:
                if tx is not None:
                    raise
                applied = ChangeSet(applications_deleted=frozenset(deleted))
                logger.error("Deleted %d application(s) but job %s remains: %s", len(deleted), job_id, e)
                raise PartialFailureError("delete_job", applied, e) from e

        logger.info("Deleted job %s and %d application(s)", job_id, len(deleted))
        return ChangeSet(jobs_deleted=frozenset({job_id}), applications_deleted=frozenset(deleted))

    def _load(self, application_id: str, actor: Actor | None, action: str, tx: Transaction | None) -> Application:
        app = self._applications.get_application(application_id, tx)
        if app is None:
            raise ApplicationNotFoundError(application_id)
        if actor is not None:
            actor.require_owner(UserRole.EMPLOYER, app.employer_id, f"{action} application {application_id}")
        return app

    def _reject_all(self, application_ids: list[str], tx: WriteBatch) -> None:
        for app_id in application_ids:
            self._applications.set_status(
                app_id, ApplicationStatus.REJECTED, current=ApplicationStatus.PENDING, tx=tx,
            )
