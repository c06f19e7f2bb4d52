"""Job store: create, read, list, edit and status changes for job postings."""

import logging
from collections.abc import Callable
from datetime import datetime

from studwerk.core.config import MarketplaceConfig
from studwerk.core.errors import InvalidJobError, InvalidTransitionError, JobNotFoundError
from studwerk.core.schemas import (
    JOB_TRANSITIONS,
    Actor,
    ChangeSet,
    Job,
    JobDraft,
    JobStatus,
    UserRole,
)
from studwerk.storage.base import (
    DocumentStore,
    Query,
    Transaction,
    WriteBatch,
    query_with_fallback,
    transaction_if_supported,
)

logger = logging.getLogger(__name__)

JOBS = "jobs"

Clock = Callable[[], datetime]


class JobStore:
    """Job postings in the ``jobs`` collection.

    Methods that take ``tx`` read and write through that transaction (or
    batch) instead of the store, so the lifecycle coordinator can group
    them with application writes.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: MarketplaceConfig | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._store = store
        self._config = config or MarketplaceConfig()
        self._clock = clock

    def create_job(self, employer_id: str, draft: JobDraft) -> str:
        """Persist a new open job and return its generated id."""
        if not employer_id.strip():
            msg = "You must be logged in as an employer to create a job"
            raise InvalidJobError(msg)
        self._check_category(draft.category)
        job = Job(
            id="",
            employer_id=employer_id,
            created_at=self._clock(),
            status=JobStatus.OPEN,
            **draft.model_dump(),
        )
        job_id = self._store.add(JOBS, job.to_document())
        logger.info("Created job %s for employer %s", job_id, employer_id)
        return job_id

    def get_job(self, job_id: str, tx: Transaction | None = None) -> Job | None:
        """Return the job, or None if it is missing or malformed."""
        reader = tx if tx is not None else self._store
        snap = reader.get(JOBS, job_id)
        if snap is None:
            return None
        return Job.from_document(snap.id, snap.data)

    def list_jobs(
        self,
        status: JobStatus | None = JobStatus.OPEN,
        limit: int | None = None,
    ) -> list[Job]:
        """List jobs newest first, optionally filtered by status."""
        filters = {} if status is None else {"status": status.value}
        return self._list(filters, limit if limit is not None else self._config.default_list_limit)

    def list_jobs_by_employer(self, employer_id: str, status: JobStatus | None = None) -> list[Job]:
        """List one employer's jobs newest first."""
        filters: dict[str, str] = {"employer_id": employer_id}
        if status is not None:
            filters["status"] = status.value
        return self._list(filters, None)

    def update_job(self, job_id: str, draft: JobDraft, actor: Actor | None = None) -> ChangeSet:
        """Overwrite a job's editable fields. Only open jobs can be edited.

        Snapshots already copied into applications are left as they are.
        """
        with transaction_if_supported(self._store) as tx:
            job = self._require(job_id, tx)
            if actor is not None:
                actor.require_owner(UserRole.EMPLOYER, job.employer_id, f"edit job {job_id}")
            if job.status != JobStatus.OPEN:
                raise InvalidTransitionError(
                    "job", job_id, job.status.value, "edited", "only open jobs can be edited",
                )
            self._check_category(draft.category)
            writer = tx if tx is not None else self._store
            writer.update(JOBS, job_id, draft.model_dump(mode="json"))
        logger.info("Updated job %s", job_id)
        return ChangeSet(jobs_updated=frozenset({job_id}))

    def close_job(self, job_id: str, actor: Actor | None = None) -> ChangeSet:
        """Stop accepting applications for a job."""
        with transaction_if_supported(self._store) as tx:
            job = self._require(job_id, tx)
            if actor is not None:
                actor.require_owner(UserRole.EMPLOYER, job.employer_id, f"close job {job_id}")
            self.set_status(job_id, JobStatus.CLOSED, current=job.status, tx=tx)
        return ChangeSet(jobs_updated=frozenset({job_id}))

    def set_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        current: JobStatus | None = None,
        tx: WriteBatch | None = None,
    ) -> None:
        """Move a job to ``status`` if the transition is allowed.

        ``current`` skips the read when the caller already holds the job.
        """
        if current is None and tx is None and self._store.supports_transactions:
            with self._store.transaction() as own:
                self.set_status(job_id, status, tx=own)
            return
        if current is None:
            current = self._require(job_id, tx if isinstance(tx, Transaction) else None).status
        if status not in JOB_TRANSITIONS[current]:
            raise InvalidTransitionError("job", job_id, current.value, status.value)
        writer = tx if tx is not None else self._store
        writer.update(JOBS, job_id, {"status": status.value})
        logger.info("Job %s: %s -> %s", job_id, current.value, status.value)

    def delete_job(self, job_id: str, tx: WriteBatch | None = None) -> None:
        """Delete the job document only. Applications are removed by the caller first."""
        writer = tx if tx is not None else self._store
        writer.delete(JOBS, job_id)
        logger.debug("Deleted job %s", job_id)

    def _require(self, job_id: str, tx: Transaction | None = None) -> Job:
        job = self.get_job(job_id, tx)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _check_category(self, category: str) -> None:
        if category not in self._config.categories:
            valid = ", ".join(self._config.categories)
            msg = f"Unknown category '{category}'. Available: {valid}"
            raise InvalidJobError(msg)

    def _list(self, filters: dict[str, str], limit: int | None) -> list[Job]:
        query = Query(filters=filters, order_by="created_at", descending=True, limit=limit)
        snapshots = query_with_fallback(self._store, JOBS, query)
        logger.debug("Job query %s returned %d document(s)", filters, len(snapshots))
        jobs = [job for s in snapshots if (job := Job.from_document(s.id, s.data)) is not None]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs
