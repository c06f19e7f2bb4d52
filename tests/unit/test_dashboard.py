"""Tests for the employer and student dashboard summaries."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from studwerk.core.config import MarketplaceConfig
from studwerk.core.schemas import (
    Application,
    ApplicationStatus,
    Job,
    JobDraft,
    JobSnapshot,
    JobStatus,
)
from studwerk.marketplace.container import Marketplace
from studwerk.marketplace.dashboard import (
    employer_dashboard,
    student_dashboard,
    summarize_employer,
    summarize_student,
)
from studwerk.storage.memory import MemoryDocumentStore

BASE = datetime(2026, 1, 10, 9, 0)


def _job(job_id: str, status: JobStatus = JobStatus.OPEN, minutes: int = 0, **kw: object) -> Job:
    defaults: dict[str, object] = {
        "id": job_id,
        "employer_id": "emp-1",
        "title": f"Job {job_id}",
        "description": "-",
        "payment": Decimal("50"),
        "date": date(2026, 1, 15),
        "start_time": time(14, 0),
        "end_time": time(17, 0),
        "category": "General",
        "location": "Berlin",
        "created_at": BASE + timedelta(minutes=minutes),
        "status": status,
    }
    defaults.update(kw)
    return Job(**defaults)  # type: ignore[arg-type]


def _app(app_id: str, job: Job, status: ApplicationStatus, minutes: int = 0,
         student_id: str = "stu-1") -> Application:
    return Application(
        id=app_id,
        student_id=student_id,
        job_id=job.id,
        employer_id=job.employer_id,
        status=status,
        applied_at=BASE + timedelta(hours=1, minutes=minutes),
        job=JobSnapshot.of(job),
    )


class TestSummarizeEmployer:
    def test_counts(self) -> None:
        open_job = _job("open")
        done_job = _job("done", JobStatus.COMPLETED, payment=Decimal("120"))
        closed_job = _job("closed", JobStatus.CLOSED)
        apps = [
            _app("p1", open_job, ApplicationStatus.PENDING, 1),
            _app("p2", open_job, ApplicationStatus.PENDING, 2),
            _app("r1", open_job, ApplicationStatus.REJECTED, 3),
            _app("c1", done_job, ApplicationStatus.COMPLETED, 4),
            _app("a1", closed_job, ApplicationStatus.ACCEPTED, 5),
        ]

        summary = summarize_employer([open_job, done_job, closed_job], apps)

        assert summary.active_jobs == 1
        assert summary.pending_applications == 2
        assert summary.hired_students == 2
        assert summary.total_spend == Decimal("120")
        assert summary.applications_per_job == {"open": 3, "done": 1, "closed": 1}
        assert [a.id for a in summary.open_pipeline] == ["p1", "p2", "r1"]

    def test_recent_applications_newest_first_and_capped(self) -> None:
        job = _job("j")
        apps = [_app(f"a{i}", job, ApplicationStatus.PENDING, i) for i in range(4)]
        summary = summarize_employer([job], apps, MarketplaceConfig(recent_applications_count=2))
        assert [a.id for a in summary.recent_applications] == ["a3", "a2"]

    def test_empty(self) -> None:
        summary = summarize_employer([], [])
        assert summary.active_jobs == 0
        assert summary.total_spend == Decimal("0")
        assert summary.recent_applications == []


class TestSummarizeStudent:
    def test_counts_and_earnings(self) -> None:
        j1 = _job("j1", payment=Decimal("50"))
        j2 = _job("j2", payment=Decimal("15.50"))
        j3 = _job("j3")
        apps = [
            _app("c1", j1, ApplicationStatus.COMPLETED),
            _app("c2", j2, ApplicationStatus.COMPLETED),
            _app("p1", j3, ApplicationStatus.PENDING),
        ]
        summary = summarize_student([], apps)
        assert summary.pending_applications == 1
        assert summary.completed_jobs == 2
        assert summary.total_earnings == Decimal("65.50")

    def test_earnings_use_snapshot_payment(self) -> None:
        job = _job("j", payment=Decimal("50"))
        app = _app("c", job, ApplicationStatus.COMPLETED)
        summary = summarize_student([_job("j", payment=Decimal("999"))], [app])
        assert summary.total_earnings == Decimal("50")

    def test_featured_skips_applied_and_caps(self) -> None:
        jobs = [_job(f"j{i}", minutes=i) for i in range(6)]
        apps = [_app("a", jobs[5], ApplicationStatus.PENDING)]
        summary = summarize_student(jobs, apps)
        assert [j.id for j in summary.featured_jobs] == ["j4", "j3", "j2"]

    def test_featured_count_from_config(self) -> None:
        jobs = [_job(f"j{i}", minutes=i) for i in range(6)]
        summary = summarize_student(jobs, [], MarketplaceConfig(featured_count=1))
        assert [j.id for j in summary.featured_jobs] == ["j5"]


class TestDashboardsFromStores:
    def test_employer_and_student(self) -> None:
        market = Marketplace(MemoryDocumentStore())
        draft = JobDraft(
            title="Inventory Count", description="Count stock", payment="80",
            date=date(2026, 2, 1), start_time=time(8, 0), end_time=time(12, 0),
            category="Retail", location="Alexanderplatz",
        )
        job_id = market.jobs.create_job("emp-1", draft)
        app_id = market.applications.apply_to_job(job_id, "stu-1")
        market.lifecycle.accept(app_id)
        market.lifecycle.complete(app_id)

        employer = employer_dashboard("emp-1", market.jobs, market.applications)
        student = student_dashboard("stu-1", market.jobs, market.applications)

        assert employer.active_jobs == 0
        assert employer.hired_students == 1
        assert employer.total_spend == Decimal("80")
        assert employer.open_pipeline == []
        assert student.completed_jobs == 1
        assert student.total_earnings == Decimal("80")
        assert student.featured_jobs == []
