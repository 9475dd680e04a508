"""Per-client payment page: profile, completed jobs, history and uploads."""
import asyncio
import logging
from typing import List, Optional

from services.gateway.client import ApiError
from services.viewmodels.base import ViewModel, ViewState
from services.viewmodels.invoice_upload import InvoiceUploadFlow, UploadState
from services.viewmodels.payment_entry import PaymentEntryForm
from services.viewmodels.payment_history import PaymentHistoryViewModel, has_document
from shared.models import Client, Job, PaymentRecord

logger = logging.getLogger(__name__)

CLIENT_JOB_LIMIT = 100
COMPLETED_STATUSES = {"om_completed", "completed"}


def is_payment_eligible(job: Job) -> bool:
    status = job.status or ""
    return status in COMPLETED_STATUSES or "kyc" in status or "bra" in status


def matches_client(job: Job, email: str) -> bool:
    """Jobs carry the client email in any of three places; one match is enough."""
    return email in (job.gmail, job.client_email, job.client_id_email)


class ClientPaymentPage(ViewModel):

    def __init__(self, gateway, email: str):
        super().__init__(gateway)
        self.email = email
        self.client: Optional[Client] = None
        self.jobs: List[Job] = []
        self.selected_job_id: Optional[str] = None
        self.history = PaymentHistoryViewModel(gateway)
        self.upload: Optional[InvoiceUploadFlow] = None

    @property
    def selected_job(self) -> Optional[Job]:
        return next((job for job in self.jobs if job.id == self.selected_job_id), None)

    async def _fetch_jobs(self) -> List[Job]:
        try:
            page = await self._call(self.gateway.get_payment_eligible_jobs, 1, CLIENT_JOB_LIMIT,
                                    self.email, raise_errors=True)
            jobs = page.jobs
        except ApiError as e:
            logger.warning(f"Payment-eligible lookup failed for {self.email}, falling back to job search: {e}")
            jobs = await self._call(self.gateway.get_client_jobs, self.email, raise_errors=True)

        client_jobs = [job for job in jobs if matches_client(job, self.email)]
        logger.info(f"Found {len(client_jobs)} jobs for client {self.email}")
        return [job for job in client_jobs if is_payment_eligible(job)]

    async def load(self):
        """Fetch profile and jobs; keeps the selected job when it is still listed."""
        generation = self._begin()
        self.state = ViewState.LOADING
        client, jobs = await asyncio.gather(
            self._call(self.gateway.get_client_details, self.email),
            self._fetch_jobs(),
            return_exceptions=True,
        )
        if self._is_stale(generation):
            return

        self.client = client if isinstance(client, Client) else Client.stub(self.email)
        if isinstance(jobs, Exception):
            logger.error(f"Error fetching client data for {self.email}: {jobs}")
            self.jobs = []
            self.error = "Failed to load client information. Please try again."
            self.state = ViewState.ERROR
            return

        self.jobs = jobs
        previous = self.selected_job_id
        if self.selected_job is None:
            self.selected_job_id = jobs[0].id if jobs else None
        self.error = None
        self.state = ViewState.CONTENT

        if self.selected_job_id is None:
            self.history = PaymentHistoryViewModel(self.gateway)
            return
        if self.selected_job_id == previous and self.history.job_id == previous:
            history_task = self.history.refresh()
        else:
            history_task = self.history.load(self.selected_job_id)
        await asyncio.gather(history_task, self._mark_payments())

    async def refresh(self):
        await self.load()

    async def _mark_payments(self):
        payments = await self.history.load_for_jobs(self.jobs)
        for job in self.jobs:
            if job.id in payments:
                job.has_payments = payments[job.id].has_payments

    async def select_job(self, job_id: str):
        if not any(job.id == job_id for job in self.jobs):
            logger.warning(f"Job {job_id} is not listed for client {self.email}")
            return
        self.selected_job_id = job_id
        self.upload = None
        await self.history.load(job_id)

    def open_upload(self, record: PaymentRecord) -> InvoiceUploadFlow:
        """Upload flow for a payment; replaces the document when one exists."""
        self.upload = InvoiceUploadFlow(self.gateway, record, replacing=has_document(record))
        return self.upload

    def close_upload(self):
        self.upload = None

    async def finish_upload(self):
        if self.upload is None or self.upload.state is not UploadState.SUCCESS:
            return
        self.notice = self.upload.success_message
        self.upload = None
        await self.history.refresh()

    def open_entry_form(self) -> Optional[PaymentEntryForm]:
        job = self.selected_job
        if job is None:
            return None
        return PaymentEntryForm(self.gateway, job_id=job.id, job_type=job.service_type or "")
