"""Student-side job search over already-fetched open jobs.

Filter order:
  1. TextFilter       - case-insensitive, title/location/description/category
  2. CategoryFilter   - "General"/"All" means no filter
  3. DateFilter       - only when the selected date is after today
  4. NotAppliedFilter - hides jobs the student already applied to
Then one sort: relevance, pay (either direction) or job date.
"""

import logging
from collections.abc import Callable
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from studwerk.core.config import RelevanceConfig
from studwerk.core.schemas import Job

logger = logging.getLogger(__name__)

# A filter is a callable that takes jobs and returns a subset.
Filter = Callable[[list[Job]], list[Job]]

_ANY_CATEGORY = {"", "general", "all"}


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    PAY_DESC = "pay_desc"
    PAY_ASC = "pay_asc"
    DATE = "date"


class SearchCriteria(BaseModel):
    """What the student typed and picked on the search screen."""

    text: str = ""
    category: str = "General"
    selected_date: date | None = None
    sort: SortOption = SortOption.RELEVANCE
    exclude_job_ids: frozenset[str] = Field(default_factory=frozenset)


class TextFilter:
    """Keep jobs whose title, location, description or category contains the text."""

    def __init__(self, text: str) -> None:
        self._text = text.strip().lower()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if not self._text:
            return jobs
        result = [j for j in jobs if _matches_text(j, self._text)]
        logger.debug("TextFilter: kept %d of %d", len(result), len(jobs))
        return result


class CategoryFilter:
    def __init__(self, category: str) -> None:
        self._category = category.strip()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if self._category.lower() in _ANY_CATEGORY:
            return jobs
        return [j for j in jobs if j.category == self._category]


class DateFilter:
    """Keep jobs on or after the selected date, but only for a future selection."""

    def __init__(self, selected: date | None, today: date | None = None) -> None:
        self._selected = selected
        self._today = today or date.today()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if self._selected is None or self._selected <= self._today:
            return jobs
        return [j for j in jobs if j.date >= self._selected]


class NotAppliedFilter:
    def __init__(self, applied_job_ids: frozenset[str]) -> None:
        self._applied = applied_job_ids

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if not self._applied:
            return jobs
        return [j for j in jobs if j.id not in self._applied]


def relevance_score(job: Job, text: str, config: RelevanceConfig) -> int:
    """Weight where the search text hit: title beats location beats category beats description."""
    needle = text.strip().lower()
    if not needle:
        return 0
    score = 0
    if needle in job.title.lower():
        score += config.title_weight
    if needle in job.location.lower():
        score += config.location_weight
    if needle in job.category.lower():
        score += config.category_weight
    if needle in job.description.lower():
        score += config.description_weight
    return score


def run_filter_chain(jobs: list[Job], filters: list[Filter]) -> list[Job]:
    """Apply filters in order, returning the surviving jobs."""
    result = jobs
    for f in filters:
        result = f(result)
    return result


def search_jobs(
    jobs: list[Job],
    criteria: SearchCriteria,
    relevance: RelevanceConfig | None = None,
    today: date | None = None,
) -> list[Job]:
    """Filter and sort jobs for the search screen.

    Relevance sorting only reorders when there is search text; otherwise the
    incoming order (newest first from the store) is kept. All sorts are stable.
    """
    relevance = relevance or RelevanceConfig()
    filters: list[Filter] = [
        TextFilter(criteria.text),
        CategoryFilter(criteria.category),
        DateFilter(criteria.selected_date, today),
        NotAppliedFilter(criteria.exclude_job_ids),
    ]
    result = run_filter_chain(jobs, filters)

    if criteria.sort is SortOption.PAY_DESC:
        result = sorted(result, key=lambda j: j.payment, reverse=True)
    elif criteria.sort is SortOption.PAY_ASC:
        result = sorted(result, key=lambda j: j.payment)
    elif criteria.sort is SortOption.DATE:
        result = sorted(result, key=lambda j: j.date, reverse=True)
    elif criteria.text.strip():
        result = sorted(result, key=lambda j: relevance_score(j, criteria.text, relevance), reverse=True)

    logger.debug("Search '%s' matched %d of %d jobs", criteria.text, len(result), len(jobs))
    return result


def _matches_text(job: Job, needle: str) -> bool:
    fields = (job.title, job.location, job.description, job.category)
    return any(needle in f.lower() for f in fields)
