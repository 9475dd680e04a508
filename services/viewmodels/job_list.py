"""Payment-eligible job list with search, sort and server pagination."""
import asyncio
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from services.viewmodels.base import ViewModel, ViewState
from shared import settings
from shared.models import EPOCH, DashboardStats, Job, Pagination, as_utc

logger = logging.getLogger(__name__)

DEFAULT_SORT = "date-desc"
SORT_OPTIONS = {
    "date-desc": "Newest first",
    "date-asc": "Oldest first",
    "client-asc": "Client A-Z",
    "client-desc": "Client Z-A",
    "service-asc": "Service A-Z",
    "service-desc": "Service Z-A",
}
MAX_PAGE_BUTTONS = 5


def _job_date(job: Job) -> datetime:
    return as_utc(job.created_at or job.updated_at) or EPOCH


def _text(value: Optional[str]) -> str:
    return (value or "").casefold()


def sort_jobs(jobs: Iterable[Job], key: str) -> List[Job]:
    """Stable sort by one of SORT_OPTIONS; unknown keys fall back to date-desc."""
    if key not in SORT_OPTIONS:
        key = DEFAULT_SORT
    field, direction = key.rsplit("-", 1)
    if field == "date":
        sort_key = _job_date
    elif field == "client":
        sort_key = lambda job: _text(job.client_name)
    else:
        sort_key = lambda job: _text(job.service_type)
    return sorted(jobs, key=sort_key, reverse=direction == "desc")


def filter_jobs(jobs: Iterable[Job], query: str) -> List[Job]:
    """Case-insensitive substring match over id, client name, service type and email."""
    needle = query.strip().lower()
    if not needle:
        return list(jobs)
    return [
        job for job in jobs
        if any(needle in (value or "").lower()
               for value in (job.id, job.client_name, job.service_type, job.gmail))
    ]


def page_window(current: int, total: int, size: int = MAX_PAGE_BUTTONS) -> List[int]:
    """Page numbers to show: at most ``size``, centred on ``current`` where possible."""
    if total < 1:
        return []
    size = min(size, total)
    start = max(1, min(current - size // 2, total - size + 1))
    return list(range(start, start + size))


class JobListViewModel(ViewModel):
    """Dashboard stats plus one page of payment-eligible jobs."""

    def __init__(self, gateway, page_size: Optional[int] = None):
        super().__init__(gateway)
        self.jobs: List[Job] = []
        self.query = ""
        self.sort_key = DEFAULT_SORT
        self.pagination = Pagination(items_per_page=page_size or settings.default_page_size)
        self.stats = DashboardStats()

    def set_query(self, query: str):
        self.query = query
        self.pagination.current_page = 1

    def set_sort(self, key: str):
        self.sort_key = key if key in SORT_OPTIONS else DEFAULT_SORT

    async def search(self, query: str):
        self.set_query(query)
        await self.load()

    async def load(self):
        generation = self._begin()
        self.state = ViewState.LOADING
        page = self.pagination.current_page
        limit = self.pagination.items_per_page

        stats, result = await asyncio.gather(
            self._call(self.gateway.get_dashboard_stats),
            self._call(self.gateway.get_payment_eligible_jobs, page, limit, self.query.strip(), raise_errors=True),
            return_exceptions=True,
        )
        if self._is_stale(generation):
            return

        if isinstance(stats, DashboardStats):
            self.stats = stats
        else:
            logger.error(f"Error fetching dashboard stats: {stats}")

        if isinstance(result, Exception):
            logger.error(f"Error fetching jobs (page {page}): {result}")
            self.jobs = []
            self.error = "Failed to fetch jobs. Please try again."
            self.state = ViewState.ERROR
            return

        self.jobs = result.jobs
        self.pagination = result.pagination
        self.error = None
        self.state = ViewState.CONTENT
        logger.info(f"Loaded {len(self.jobs)} jobs (page {self.pagination.current_page}/{self.pagination.total_pages})")

    async def refresh(self):
        await self.load()

    async def go_to_page(self, page: int):
        target = max(1, min(page, self.pagination.total_pages))
        if target == self.pagination.current_page:
            return
        self.pagination.current_page = target
        await self.load()

    async def first_page(self):
        await self.go_to_page(1)

    async def previous_page(self):
        await self.go_to_page(self.pagination.current_page - 1)

    async def next_page(self):
        await self.go_to_page(self.pagination.current_page + 1)

    def page_numbers(self) -> List[int]:
        return page_window(self.pagination.current_page, self.pagination.total_pages)

    @property
    def show_pagination(self) -> bool:
        return self.pagination.total_pages > 1

    @property
    def visible_jobs(self) -> List[Job]:
        """Current page re-filtered by the query and sorted; pagination counts are untouched."""
        return sort_jobs(filter_jobs(self.jobs, self.query), self.sort_key)
