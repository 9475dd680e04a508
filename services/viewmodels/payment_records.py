"""All payment records across jobs, with search, year filter and reports."""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from services.gateway.client import ApiError
from services.viewmodels.base import ViewModel, ViewState
from services.viewmodels.job_list import page_window
from shared import settings
from shared.models import Pagination, PaymentRecord, PaymentReport

logger = logging.getLogger(__name__)


class PaymentRecordsViewModel(ViewModel):

    def __init__(self, gateway, page_size: Optional[int] = None, year: Optional[int] = None):
        super().__init__(gateway)
        self.payments: List[PaymentRecord] = []
        self.query = ""
        self.year = year
        self.pagination = Pagination(items_per_page=page_size or settings.default_page_size)
        self.expanded_payment: Optional[str] = None
        self.report: Optional[PaymentReport] = None

    @staticmethod
    def year_choices(today: Optional[date] = None) -> List[int]:
        year = (today or date.today()).year
        return [year, year - 1, year - 2]

    def set_query(self, query: str):
        self.query = query
        self.pagination.current_page = 1

    def set_year(self, year: Optional[int]):
        self.year = year
        self.pagination.current_page = 1

    async def load(self):
        generation = self._begin()
        self.state = ViewState.LOADING
        try:
            page = await self._call(
                self.gateway.get_all_payment_records,
                self.pagination.current_page,
                self.pagination.items_per_page,
                self.query.strip(),
                self.year,
                raise_errors=True,
            )
        except ApiError as e:
            if self._is_stale(generation):
                return
            logger.error(f"Error fetching payment records: {e}")
            self.payments = []
            self.error = "Failed to load payment records. Please try again."
            self.state = ViewState.ERROR
            return
        if self._is_stale(generation):
            return
        self.payments = page.payments
        self.pagination = page.pagination
        self.error = None
        self.state = ViewState.CONTENT

    async def go_to_page(self, page: int):
        target = max(1, min(page, self.pagination.total_pages))
        if target != self.pagination.current_page:
            self.pagination.current_page = target
            await self.load()

    def page_numbers(self) -> List[int]:
        return page_window(self.pagination.current_page, self.pagination.total_pages)

    @property
    def show_pagination(self) -> bool:
        return self.pagination.total_pages > 1

    def toggle_expand(self, payment_id: str):
        self.expanded_payment = None if self.expanded_payment == payment_id else payment_id

    async def load_report(self, filters: Optional[Dict[str, Any]] = None) -> PaymentReport:
        generation = self._begin("report")
        report = await self._call(self.gateway.get_payment_reports, filters or {})
        if not self._is_stale(generation, "report"):
            self.report = report
        return report
