"""Unit tests for the monthly payment entry form."""
from datetime import date

import pytest

from services.gateway.client import ApiError
from services.viewmodels.payment_entry import PaymentEntryForm
from shared.models import DocumentFile


@pytest.fixture
def form(gateway):
    return PaymentEntryForm(gateway, job_id="j1", job_type="Audit", today=date(2024, 6, 15))


def fill(form, index=0, **overrides):
    fields = {"description": "Retainer", "amount": "250", "payment_method": "Bank Transfer"}
    fields.update(overrides)
    form.update_row(index, **fields)


class TestPaymentEntryForm:

    def test_defaults(self, form):
        assert form.year == 2024
        assert form.month == 5
        assert form.year_options() == [2024, 2023, 2022]
        assert len(form.rows) == 1
        assert form.rows[0].invoice_date == "2024-06-15"

    def test_cannot_remove_last_row(self, form):
        assert not form.remove_row(0)
        assert form.error == "You must have at least one invoice row"
        assert len(form.rows) == 1

    def test_add_and_remove_rows(self, form):
        form.add_row()
        assert len(form.rows) == 2
        assert form.remove_row(1)
        assert len(form.rows) == 1

    def test_missing_fields(self, form):
        assert form.validate() == "Invoice row 1 has missing required fields"

    def test_invalid_amounts(self, form):
        fill(form, amount="-5")
        assert form.validate() == "Invoice row 1 has a negative amount"
        fill(form, amount="abc")
        assert form.validate() == "Invoice row 1 has an invalid amount"

    def test_unknown_method(self, form):
        fill(form, payment_method="Cheque")
        assert form.validate() == "Invoice row 1 has an unknown payment method"

    def test_payload_tracks_file_rows(self, form):
        attachment = DocumentFile(name="r.pdf", content_type="application/pdf", size=1, content=b"x")
        fill(form)
        form.add_row()
        fill(form, 1, description="Expenses", amount="12.5", file=attachment)
        form.notes = "June"

        payment_data, files = form.build_payload()

        assert payment_data["jobId"] == "j1"
        assert payment_data["month"] == 5
        assert payment_data["notes"] == "June"
        assert [i["amount"] for i in payment_data["invoices"]] == [250.0, 12.5]
        assert payment_data["fileIndices"] == [1]
        assert files == [attachment]
        assert "paymentId" not in payment_data

    @pytest.mark.asyncio
    async def test_submit(self, form, gateway):
        gateway.create_update_payment_record.return_value = {"_id": "p1"}
        fill(form)

        result = await form.submit()

        assert result == {"_id": "p1"}
        assert not form.submitting
        payment_data, files = gateway.create_update_payment_record.call_args.args
        assert payment_data["jobType"] == "Audit"
        assert files == []

    @pytest.mark.asyncio
    async def test_submit_invalid_skips_gateway(self, form, gateway):
        assert await form.submit() is None
        gateway.create_update_payment_record.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_duplicate_month(self, form, gateway):
        gateway.create_update_payment_record.side_effect = ApiError(
            "Payment record already exists for this month")
        fill(form)

        assert await form.submit() is None
        assert form.error == "Payment record already exists for this month"
        assert not form.submitting
