"""CLI entry point for the StudWerk marketplace core."""

import argparse
import logging
import sys
from datetime import date, time
from pathlib import Path

from pydantic import ValidationError

from studwerk.core.config import Settings
from studwerk.core.errors import JobNotFoundError, MarketplaceError, PartialFailureError
from studwerk.core.schemas import (
    Actor,
    Application,
    ApplicationStatus,
    ChangeSet,
    Job,
    JobDraft,
    JobStatus,
    UserRole,
)
from studwerk.marketplace.container import Marketplace
from studwerk.marketplace.dashboard import employer_dashboard, student_dashboard
from studwerk.marketplace.search import SearchCriteria, SortOption, search_jobs

DEFAULT_CONFIG = "config/settings.yaml"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG})",
    )
    common.add_argument("--user", required=True, help="Acting user id from the identity provider")
    common.add_argument("--role", required=True, choices=["student", "employer"], help="Acting user's role")
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser = argparse.ArgumentParser(
        description="StudWerk marketplace - post short-term jobs, apply, and hire",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- employer: job postings ---
    post_parser = subparsers.add_parser("post-job", parents=[common], help="Post a new job")
    _add_job_fields(post_parser)

    update_parser = subparsers.add_parser("update-job", parents=[common], help="Edit an open job")
    update_parser.add_argument("job_id")
    _add_job_fields(update_parser)

    for name, help_text in (("close-job", "Stop accepting applications"),
                            ("delete-job", "Delete a job and all its applications")):
        p = subparsers.add_parser(name, parents=[common], help=help_text)
        p.add_argument("job_id")

    jobs_parser = subparsers.add_parser("jobs", parents=[common], help="List jobs, newest first")
    jobs_parser.add_argument(
        "--status",
        default="open",
        choices=[s.value for s in JobStatus] + ["any"],
        help="Status filter (default: open)",
    )
    jobs_parser.add_argument("--limit", type=int, default=None)
    jobs_parser.add_argument("--mine", action="store_true", help="Only jobs posted by --user")

    # --- student: applying ---
    apply_parser = subparsers.add_parser("apply", parents=[common], help="Apply to an open job")
    apply_parser.add_argument("job_id")

    withdraw_parser = subparsers.add_parser("withdraw", parents=[common], help="Withdraw a pending application")
    withdraw_parser.add_argument("application_id")

    apps_parser = subparsers.add_parser("applications", parents=[common], help="List applications")
    apps_parser.add_argument("--job", help="Applications for this job instead of the acting user's")
    apps_parser.add_argument("--status", choices=[s.value for s in ApplicationStatus])

    # --- employer: decisions ---
    for name, help_text in (("accept", "Accept a candidate (rejects the other pending ones)"),
                            ("reject", "Reject a candidate"),
                            ("complete", "Mark the hired candidate's job as done")):
        p = subparsers.add_parser(name, parents=[common], help=help_text)
        p.add_argument("application_id")

    search_parser = subparsers.add_parser("search", parents=[common], help="Search open jobs")
    search_parser.add_argument("--text", default="")
    search_parser.add_argument("--category", default="General")
    search_parser.add_argument("--date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    search_parser.add_argument("--sort", default="relevance", choices=[s.value for s in SortOption])

    subparsers.add_parser("dashboard", parents=[common], help="Show summary figures")

    return parser.parse_args(argv)


def _add_job_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--title", required=True)
    parser.add_argument("--description", required=True)
    parser.add_argument("--payment", required=True, help="Amount, e.g. 50 or 15.50")
    parser.add_argument("--date", required=True, type=date.fromisoformat, help="YYYY-MM-DD")
    parser.add_argument("--start", required=True, type=time.fromisoformat, help="HH:MM")
    parser.add_argument("--end", required=True, type=time.fromisoformat, help="HH:MM")
    parser.add_argument("--category", default="General")
    parser.add_argument("--location", required=True)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Load settings; a missing default config file means built-in defaults."""
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return Settings()
    return Settings.from_yaml(path)


def format_job(job: Job) -> str:
    return (
        f"{job.id}  [{job.status.value}] {job.title} - €{job.payment} - {job.location} - "
        f"{job.date.isoformat()} {job.start_time:%H:%M}-{job.end_time:%H:%M} ({job.category})"
    )


def format_application(app: Application) -> str:
    return (
        f"{app.id}  [{app.status.value}] {app.job.title} - €{app.job.payment} - "
        f"student {app.student_id} - applied {app.applied_at:%Y-%m-%d %H:%M}"
    )


def print_changes(changes: ChangeSet) -> None:
    for label, ids in (
        ("updated job", changes.jobs_updated),
        ("updated application", changes.applications_updated),
        ("deleted job", changes.jobs_deleted),
        ("deleted application", changes.applications_deleted),
    ):
        for entity_id in sorted(ids):
            print(f"  {label} {entity_id}")


def _draft(args: argparse.Namespace) -> JobDraft:
    return JobDraft(
        title=args.title,
        description=args.description,
        payment=args.payment,
        date=args.date,
        start_time=args.start,
        end_time=args.end,
        category=args.category,
        location=args.location,
    )


def run_command(args: argparse.Namespace, market: Marketplace) -> None:
    """Dispatch one subcommand against the marketplace."""
    actor = Actor(user_id=args.user, role=args.role)
    cmd = args.command

    if cmd == "post-job":
        actor.require_owner(UserRole.EMPLOYER, actor.user_id, "post jobs")
        job_id = market.jobs.create_job(actor.user_id, _draft(args))
        print(f"Job posted: {job_id}")
    elif cmd == "update-job":
        print_changes(market.jobs.update_job(args.job_id, _draft(args), actor=actor))
    elif cmd == "close-job":
        print_changes(market.jobs.close_job(args.job_id, actor=actor))
    elif cmd == "delete-job":
        print_changes(market.lifecycle.delete_job(args.job_id, actor=actor))
    elif cmd == "jobs":
        status = None if args.status == "any" else JobStatus(args.status)
        if args.mine:
            jobs = market.jobs.list_jobs_by_employer(actor.user_id, status)
        else:
            jobs = market.jobs.list_jobs(status, args.limit)
        print(f"{len(jobs)} job(s)")
        for job in jobs:
            print(format_job(job))
    elif cmd == "apply":
        app_id = market.applications.apply_to_job(args.job_id, actor.user_id, actor=actor)
        print(f"Application submitted: {app_id}")
    elif cmd == "withdraw":
        print_changes(market.applications.withdraw(args.application_id, actor=actor))
    elif cmd == "applications":
        status = ApplicationStatus(args.status) if args.status else None
        if args.job:
            job = market.jobs.get_job(args.job)
            if job is None:
                raise JobNotFoundError(args.job)
            actor.require_owner(UserRole.EMPLOYER, job.employer_id, f"view applications for job {args.job}")
            apps = market.applications.list_by_job(args.job)
            if status is not None:
                apps = [a for a in apps if a.status == status]
        elif actor.role is UserRole.STUDENT:
            apps = market.applications.list_by_student(actor.user_id, status)
        else:
            apps = market.applications.list_by_employer(actor.user_id, status)
        print(f"{len(apps)} application(s)")
        for app in apps:
            print(format_application(app))
    elif cmd in ("accept", "reject", "complete"):
        operation = getattr(market.lifecycle, cmd)
        print_changes(operation(args.application_id, actor=actor))
    elif cmd == "search":
        applied = frozenset(a.job_id for a in market.applications.list_by_student(actor.user_id))
        criteria = SearchCriteria(
            text=args.text,
            category=args.category,
            selected_date=args.date,
            sort=SortOption(args.sort),
            exclude_job_ids=applied,
        )
        hits = search_jobs(market.jobs.list_jobs(JobStatus.OPEN), criteria, market.settings.relevance)
        print(f"{len(hits)} job(s) found")
        for job in hits:
            print(format_job(job))
    elif cmd == "dashboard":
        if actor.role is UserRole.EMPLOYER:
            summary = employer_dashboard(actor.user_id, market.jobs, market.applications,
                                         market.settings.marketplace)
            print(f"Active jobs: {summary.active_jobs}")
            print(f"Pending applications: {summary.pending_applications}")
            print(f"Hired students: {summary.hired_students}")
            print(f"Total spend: €{summary.total_spend}")
        else:
            student = student_dashboard(actor.user_id, market.jobs, market.applications,
                                        market.settings.marketplace)
            print(f"Pending applications: {student.pending_applications}")
            print(f"Completed jobs: {student.completed_jobs}")
            print(f"Total earnings: €{student.total_earnings}")
            for job in student.featured_jobs:
                print(f"  featured: {format_job(job)}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    market = Marketplace.from_settings(settings)
    try:
        run_command(args, market)
    except PartialFailureError as e:
        print(f"Error: {e}", file=sys.stderr)
        print_changes(e.applied)
        sys.exit(1)
    except (MarketplaceError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        market.close()


if __name__ == "__main__":
    main()
