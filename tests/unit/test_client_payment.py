"""Unit tests for the per-client payment page."""
import pytest

from services.gateway.client import ApiError
from services.viewmodels.base import ViewState
from services.viewmodels.client_payment import ClientPaymentPage, is_payment_eligible, matches_client
from services.viewmodels.invoice_upload import UploadState
from shared.models import Client, DocumentFile, JobPage, Pagination

EMAIL = "jane@x.com"


@pytest.fixture
def client_jobs(make_job):
    return [
        make_job("j1", gmail=EMAIL, created_at="2024-01-01T00:00:00Z"),
        make_job("j2", clientEmail=EMAIL, status="om_completed"),
        make_job("j3", clientId={"_id": "c1", "gmail": EMAIL}, status="kyc_review"),
        make_job("j4", gmail="someone@else.com"),
        make_job("j5", gmail=EMAIL, status="in_progress"),
    ]


@pytest.fixture
def page_gateway(gateway, client_jobs):
    gateway.get_client_details.return_value = Client(name="Jane", email=EMAIL)
    gateway.get_payment_eligible_jobs.return_value = JobPage(jobs=client_jobs, pagination=Pagination())
    return gateway


class TestJobMatching:

    def test_any_of_three_fields(self, client_jobs):
        assert [j.id for j in client_jobs if matches_client(j, EMAIL)] == ["j1", "j2", "j3", "j5"]

    def test_eligibility(self, client_jobs):
        assert [j.id for j in client_jobs if is_payment_eligible(j)] == ["j1", "j2", "j3", "j4"]


class TestClientPaymentPage:

    @pytest.mark.asyncio
    async def test_load_selects_first_job(self, page_gateway):
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        assert page.state is ViewState.CONTENT
        assert page.client.name == "Jane"
        assert [j.id for j in page.jobs] == ["j1", "j2", "j3"]
        assert page.selected_job_id == "j1"
        assert page.history.job_id == "j1"
        page_gateway.get_payment_eligible_jobs.assert_called_once_with(1, 100, EMAIL, raise_errors=True)

    @pytest.mark.asyncio
    async def test_client_failure_uses_stub(self, page_gateway):
        page_gateway.get_client_details.side_effect = RuntimeError("boom")
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        assert page.client.name == "jane"
        assert page.client.phone == "N/A"
        assert page.state is ViewState.CONTENT

    @pytest.mark.asyncio
    async def test_falls_back_to_job_search(self, page_gateway, client_jobs):
        page_gateway.get_payment_eligible_jobs.side_effect = ApiError("not supported")
        page_gateway.get_client_jobs.return_value = client_jobs[:2]
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        page_gateway.get_client_jobs.assert_called_once_with(EMAIL, raise_errors=True)
        assert [j.id for j in page.jobs] == ["j1", "j2"]

    @pytest.mark.asyncio
    async def test_both_job_sources_down_shows_error(self, page_gateway):
        page_gateway.get_payment_eligible_jobs.side_effect = ApiError("503 Service Unavailable")
        page_gateway.get_client_jobs.side_effect = ApiError("503 Service Unavailable")
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        assert page.state is ViewState.ERROR
        assert page.error == "Failed to load client information. Please try again."
        assert page.jobs == []
        assert page.client.name == "Jane"

    @pytest.mark.asyncio
    async def test_refresh_keeps_selection(self, page_gateway):
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()
        await page.select_job("j2")

        await page.refresh()

        assert page.selected_job_id == "j2"

    @pytest.mark.asyncio
    async def test_refresh_drops_vanished_selection(self, page_gateway, client_jobs):
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()
        await page.select_job("j3")

        page_gateway.get_payment_eligible_jobs.return_value = JobPage(jobs=client_jobs[:2], pagination=Pagination())
        await page.refresh()

        assert page.selected_job_id == "j1"

    @pytest.mark.asyncio
    async def test_no_jobs(self, page_gateway):
        page_gateway.get_payment_eligible_jobs.return_value = JobPage(pagination=Pagination())
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        assert page.jobs == []
        assert page.selected_job_id is None
        assert page.open_entry_form() is None

    @pytest.mark.asyncio
    async def test_select_unknown_job_ignored(self, page_gateway):
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()

        await page.select_job("nope")

        assert page.selected_job_id == "j1"

    @pytest.mark.asyncio
    async def test_marks_jobs_with_payments(self, page_gateway, make_record):
        def history(job_id, raise_errors=False):
            return [make_record("p1", 2024, 0, 10, job_id=job_id)] if job_id == "j2" else []

        page_gateway.get_payment_history.side_effect = history
        page = ClientPaymentPage(page_gateway, EMAIL)

        await page.load()

        assert {j.id: j.has_payments for j in page.jobs} == {"j1": False, "j2": True, "j3": False}

    @pytest.mark.asyncio
    async def test_upload_then_refresh(self, page_gateway, make_record, document_invoice):
        record = make_record("p1", 2024, 1, 10, invoices=[document_invoice])
        page_gateway.get_payment_history.return_value = [record]
        page_gateway.upload_invoice_document.return_value = {"success": True}
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()

        flow = page.open_upload(record)
        assert flow.replacing
        flow.select_file(DocumentFile(name="new.pdf", content_type="application/pdf", size=10))
        await flow.submit()
        assert flow.state is UploadState.SUCCESS
        calls_before = page_gateway.get_payment_history.call_count

        await page.finish_upload()

        assert page.upload is None
        assert page.pop_notice() == "Invoice replaced successfully for February 2024!"
        assert page_gateway.get_payment_history.call_count == calls_before + 1

    @pytest.mark.asyncio
    async def test_failed_upload_stays_open(self, page_gateway, make_record):
        record = make_record("p1", 2024, 1, 10)
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()
        flow = page.open_upload(record)

        await page.finish_upload()

        assert page.upload is flow
        assert not flow.replacing

    @pytest.mark.asyncio
    async def test_entry_form_for_selected_job(self, page_gateway):
        page = ClientPaymentPage(page_gateway, EMAIL)
        await page.load()

        form = page.open_entry_form()

        assert form.job_id == "j1"
        assert form.job_type == "Audit"
