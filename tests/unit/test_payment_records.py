"""Unit tests for the all-payments listing."""
from datetime import date

import pytest

from services.gateway.client import ApiError
from services.viewmodels.base import ViewState
from services.viewmodels.payment_records import PaymentRecordsViewModel
from shared.models import Pagination, PaymentPage, PaymentReport


class TestPaymentRecordsViewModel:

    @pytest.mark.asyncio
    async def test_load(self, gateway, sample_records):
        gateway.get_all_payment_records.return_value = PaymentPage(
            payments=sample_records, pagination=Pagination(totalPages=2, totalItems=13))
        view = PaymentRecordsViewModel(gateway, page_size=10, year=2024)

        await view.load()

        gateway.get_all_payment_records.assert_called_once_with(1, 10, "", 2024, raise_errors=True)
        assert view.state is ViewState.CONTENT
        assert len(view.payments) == 3
        assert view.show_pagination

    @pytest.mark.asyncio
    async def test_load_failure(self, gateway):
        gateway.get_all_payment_records.side_effect = ApiError("down")
        view = PaymentRecordsViewModel(gateway)

        await view.load()

        assert view.state is ViewState.ERROR
        assert view.error == "Failed to load payment records. Please try again."

    def test_filters_reset_page(self, gateway):
        view = PaymentRecordsViewModel(gateway)
        view.pagination.current_page = 3

        view.set_year(2023)
        assert view.pagination.current_page == 1

        view.pagination.current_page = 2
        view.set_query("acme")
        assert view.pagination.current_page == 1

    def test_year_choices(self):
        assert PaymentRecordsViewModel.year_choices(date(2025, 1, 1)) == [2025, 2024, 2023]

    @pytest.mark.asyncio
    async def test_report(self, gateway):
        gateway.get_payment_reports.return_value = PaymentReport(summary={"totalPaid": 10})
        view = PaymentRecordsViewModel(gateway)

        report = await view.load_report({"year": 2024})

        gateway.get_payment_reports.assert_called_once_with({"year": 2024})
        assert view.report is report
        assert report.summary["totalPaid"] == 10
