"""Payment history for a single job, plus the per-job payment fan-out."""
import asyncio
import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from services.gateway.client import ApiError
from services.viewmodels.base import ViewModel, ViewState
from shared.models import Invoice, Job, PaymentRecord, PaymentStatus, as_utc

logger = logging.getLogger(__name__)

ALL_YEARS = "All Years"


class PaymentStats(BaseModel):
    total_amount: float = 0.0
    paid_amount: float = 0.0
    pending_amount: float = 0.0
    last_payment_date: Optional[datetime] = None


class InvoicePartition(NamedTuple):
    payment_invoices: List[Invoice]
    document_invoices: List[Invoice]


class JobPayments(BaseModel):
    payments: List[PaymentRecord] = Field(default_factory=list)
    has_payments: bool = False


def compute_stats(records: Iterable[PaymentRecord]) -> PaymentStats:
    """Derive totals from records. ``total_amount`` on each record is authoritative."""
    records = list(records)
    total = math.fsum(r.total_amount for r in records)
    paid = math.fsum(r.total_amount for r in records if r.status == PaymentStatus.PAID.value)
    dates = [as_utc(r.created_at) for r in records if r.created_at is not None]
    return PaymentStats(
        total_amount=total,
        paid_amount=paid,
        pending_amount=total - paid,
        last_payment_date=max(dates) if dates else None,
    )


def classify_invoices(invoices: Optional[Iterable[Invoice]]) -> InvoicePartition:
    payment_invoices, document_invoices = [], []
    for invoice in invoices or []:
        (document_invoices if invoice.is_document else payment_invoices).append(invoice)
    return InvoicePartition(payment_invoices, document_invoices)


def has_document(record: PaymentRecord) -> bool:
    return bool(classify_invoices(record.invoices).document_invoices)


def document_for(record: PaymentRecord) -> Optional[Invoice]:
    """The supporting document shown for a payment month.

    Only one document is surfaced per payment even if the backend holds more;
    replacing always targets this first one.
    """
    documents = classify_invoices(record.invoices).document_invoices
    return documents[0] if documents else None


def sort_records(records: Iterable[PaymentRecord]) -> List[PaymentRecord]:
    # reverse=True keeps ties in input order
    return sorted(records, key=lambda r: (r.year, r.month), reverse=True)


class PaymentHistoryViewModel(ViewModel):
    """Payment records of one job with derived stats and UI state."""

    def __init__(self, gateway, job_id: Optional[str] = None):
        super().__init__(gateway)
        self.job_id = job_id
        self.records: List[PaymentRecord] = []
        self.stats = PaymentStats()
        self.selected_year = ALL_YEARS
        self.expanded_payment: Optional[str] = None
        self.job_payments: Dict[str, JobPayments] = {}

    def _apply(self, records: List[PaymentRecord]):
        self.records = sort_records(records)
        self.stats = compute_stats(self.records)
        if self.selected_year != ALL_YEARS and self.selected_year not in {r.year for r in self.records}:
            self.selected_year = ALL_YEARS

    async def load(self, job_id: Optional[str] = None):
        """Fetch history; a failure clears data and shows the error state."""
        if job_id is not None:
            self.job_id = job_id
        if not self.job_id:
            return
        generation = self._begin()
        self.state = ViewState.LOADING
        try:
            records = await self._call(self.gateway.get_payment_history, self.job_id, raise_errors=True)
        except ApiError as e:
            if self._is_stale(generation):
                return
            logger.error(f"Error fetching payment history for job {self.job_id}: {e}")
            self.records = []
            self.stats = PaymentStats()
            self.error = "Failed to load payment history. Please try again."
            self.state = ViewState.ERROR
            return
        if self._is_stale(generation):
            return
        self._apply(records)
        self.error = None
        self.state = ViewState.CONTENT

    async def refresh(self):
        """Re-fetch; keeps the last good records if the refresh fails."""
        if not self.records:
            await self.load()
            return
        generation = self._begin()
        try:
            records = await self._call(self.gateway.get_payment_history, self.job_id, raise_errors=True)
        except ApiError as e:
            if self._is_stale(generation):
                return
            logger.warning(f"Refresh failed for job {self.job_id}, keeping {len(self.records)} records: {e}")
            self.notice = "Failed to refresh payment history."
            return
        if self._is_stale(generation):
            return
        self._apply(records)
        self.error = None
        self.state = ViewState.CONTENT
        self.notice = "Payment history refreshed"

    def years(self) -> List:
        return [ALL_YEARS] + sorted({r.year for r in self.records}, reverse=True)

    @property
    def filtered_records(self) -> List[PaymentRecord]:
        if self.selected_year == ALL_YEARS:
            return self.records
        return [r for r in self.records if str(r.year) == str(self.selected_year)]

    def toggle_expand(self, payment_id: str):
        self.expanded_payment = None if self.expanded_payment == payment_id else payment_id

    async def update_status(self, payment_id: str, status: str, notes: Optional[str] = None):
        if status not in {s.value for s in PaymentStatus}:
            raise ValueError(f"Unknown payment status: {status}")
        result = await self._call(self.gateway.update_payment_status, payment_id, status, notes)
        logger.info(f"Payment {payment_id} marked {status}")
        await self.refresh()
        return result

    async def delete_payment(self, payment_id: str):
        result = await self._call(self.gateway.delete_monthly_payment, payment_id)
        logger.info(f"Payment {payment_id} deleted")
        if self.expanded_payment == payment_id:
            self.expanded_payment = None
        await self.refresh()
        return result

    async def load_for_jobs(self, jobs: Iterable[Job]) -> Dict[str, JobPayments]:
        """Fetch every job's history concurrently and join by job id.

        A failed job maps to an empty, no-payments entry instead of failing
        the batch.
        """
        generation = self._begin("fanout")

        async def fetch(job: Job):
            try:
                payments = await self._call(self.gateway.get_payment_history, job.id, raise_errors=True)
            except Exception as e:
                logger.info(f"No payment data for job {job.id}: {e}")
                return job.id, JobPayments()
            return job.id, JobPayments(payments=payments, has_payments=bool(payments))

        results = await asyncio.gather(*(fetch(job) for job in jobs))
        if self._is_stale(generation, "fanout"):
            return self.job_payments
        self.job_payments = dict(results)
        return self.job_payments
