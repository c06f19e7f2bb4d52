"""Home-screen figures for employers and students.

Payments are summed from the application snapshots, so totals do not move
when a job is edited after the fact.
"""

from collections import Counter
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from studwerk.core.config import MarketplaceConfig
from studwerk.core.schemas import Application, ApplicationStatus, Job, JobStatus
from studwerk.marketplace.applications import ApplicationStore
from studwerk.marketplace.jobs import JobStore

_HIRED = {ApplicationStatus.ACCEPTED, ApplicationStatus.COMPLETED}


class EmployerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    active_jobs: int
    pending_applications: int
    hired_students: int
    total_spend: Decimal
    applications_per_job: dict[str, int]
    recent_applications: list[Application]
    open_pipeline: list[Application]


class StudentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    pending_applications: int
    completed_jobs: int
    total_earnings: Decimal
    featured_jobs: list[Job]


def summarize_employer(
    jobs: list[Job],
    applications: list[Application],
    config: MarketplaceConfig | None = None,
) -> EmployerSummary:
    """Build the employer summary from the employer's jobs and applications.

    ``open_pipeline`` drops applications whose job is closed or completed.
    """
    config = config or MarketplaceConfig()
    finished = {j.id for j in jobs if j.status != JobStatus.OPEN}
    newest = sorted(applications, key=lambda a: a.applied_at, reverse=True)
    return EmployerSummary(
        active_jobs=sum(1 for j in jobs if j.status == JobStatus.OPEN),
        pending_applications=_count(applications, ApplicationStatus.PENDING),
        hired_students=sum(1 for a in applications if a.status in _HIRED),
        total_spend=_completed_total(applications),
        applications_per_job=dict(Counter(a.job_id for a in applications)),
        recent_applications=newest[: config.recent_applications_count],
        open_pipeline=[a for a in applications if a.job_id not in finished],
    )


def summarize_student(
    open_jobs: list[Job],
    applications: list[Application],
    config: MarketplaceConfig | None = None,
) -> StudentSummary:
    """Build the student summary; featured jobs skip anything already applied to."""
    config = config or MarketplaceConfig()
    applied = {a.job_id for a in applications}
    candidates = sorted(
        (j for j in open_jobs if j.id not in applied and j.status == JobStatus.OPEN),
        key=lambda j: j.created_at,
        reverse=True,
    )
    return StudentSummary(
        pending_applications=_count(applications, ApplicationStatus.PENDING),
        completed_jobs=_count(applications, ApplicationStatus.COMPLETED),
        total_earnings=_completed_total(applications),
        featured_jobs=candidates[: config.featured_count],
    )


def employer_dashboard(
    employer_id: str,
    jobs: JobStore,
    applications: ApplicationStore,
    config: MarketplaceConfig | None = None,
) -> EmployerSummary:
    """Fetch an employer's jobs and applications and summarize them."""
    return summarize_employer(
        jobs.list_jobs_by_employer(employer_id),
        applications.list_by_employer(employer_id),
        config,
    )


def student_dashboard(
    student_id: str,
    jobs: JobStore,
    applications: ApplicationStore,
    config: MarketplaceConfig | None = None,
) -> StudentSummary:
    return summarize_student(
        jobs.list_jobs(JobStatus.OPEN),
        applications.list_by_student(student_id),
        config,
    )


def _count(applications: list[Application], status: ApplicationStatus) -> int:
    return sum(1 for a in applications if a.status == status)


def _completed_total(applications: list[Application]) -> Decimal:
    return sum(
        (a.job.payment for a in applications if a.status == ApplicationStatus.COMPLETED),
        Decimal("0"),
    )
