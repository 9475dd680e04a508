"""Monthly payment entry: one record per (job, year, month) with invoice rows."""
import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from services.gateway.client import ApiError
from shared.models import PAYMENT_METHODS, DocumentFile

logger = logging.getLogger(__name__)


class InvoiceRow(BaseModel):
    invoice_date: str
    description: str = ""
    amount: Union[str, float] = ""
    option: str = ""
    payment_method: str = ""
    file: Optional[DocumentFile] = None


class PaymentEntryForm:
    """Form state for creating (or, with ``payment_id``, updating) a payment record."""

    def __init__(self, gateway, job_id: str, job_type: str, payment_id: Optional[str] = None,
                 today: Optional[date] = None):
        self.gateway = gateway
        self.job_id = job_id
        self.job_type = job_type
        self.payment_id = payment_id
        self.today = today or date.today()
        self.year = self.today.year
        self.month = self.today.month - 1  # backend months are 0-based
        self.status: Optional[str] = None
        self.notes = ""
        self.rows: List[InvoiceRow] = [self._new_row()]
        self.error: Optional[str] = None
        self.submitting = False
        self.result: Any = None

    def _new_row(self) -> InvoiceRow:
        return InvoiceRow(invoice_date=self.today.isoformat())

    def year_options(self) -> List[int]:
        return [self.today.year - offset for offset in range(3)]

    def add_row(self) -> InvoiceRow:
        row = self._new_row()
        self.rows.append(row)
        return row

    def remove_row(self, index: int) -> bool:
        if len(self.rows) <= 1:
            self.error = "You must have at least one invoice row"
            return False
        del self.rows[index]
        return True

    def update_row(self, index: int, **fields):
        row = self.rows[index]
        self.rows[index] = row.model_copy(update=fields)

    def validate(self) -> Optional[str]:
        if not 0 <= self.month <= 11:
            return "Month must be between January and December"
        for i, row in enumerate(self.rows, start=1):
            if not row.invoice_date or not row.description or row.amount in ("", None) or not row.payment_method:
                return f"Invoice row {i} has missing required fields"
            if row.payment_method not in PAYMENT_METHODS:
                return f"Invoice row {i} has an unknown payment method"
            try:
                if float(row.amount) < 0:
                    return f"Invoice row {i} has a negative amount"
            except (TypeError, ValueError):
                return f"Invoice row {i} has an invalid amount"
        return None

    def build_payload(self) -> Tuple[Dict[str, Any], List[DocumentFile]]:
        invoices, files, file_indices = [], [], []
        for index, row in enumerate(self.rows):
            invoices.append({
                "invoiceDate": row.invoice_date,
                "description": row.description,
                "amount": float(row.amount),
                "option": row.option or "",
                "paymentMethod": row.payment_method,
                "fileIndex": index,
            })
            if row.file is not None:
                files.append(row.file)
                file_indices.append(index)

        payment_data: Dict[str, Any] = {
            "jobId": self.job_id,
            "jobType": self.job_type,
            "year": self.year,
            "month": self.month,
            "invoices": invoices,
            "fileIndices": file_indices,
        }
        if self.payment_id:
            payment_data["paymentId"] = self.payment_id
        if self.status:
            payment_data["status"] = self.status
        if self.notes:
            payment_data["notes"] = self.notes
        return payment_data, files

    async def submit(self) -> Any:
        problem = self.validate()
        if problem:
            self.error = problem
            return None

        self.submitting = True
        self.error = None
        payment_data, files = self.build_payload()
        try:
            result = await asyncio.to_thread(self.gateway.create_update_payment_record, payment_data, files)
        except ApiError as e:
            self.error = e.message or "Error adding monthly payment record"
            logger.error(f"Error submitting payment for job {self.job_id}: {self.error}")
            return None
        finally:
            self.submitting = False

        self.result = result
        logger.info(f"Payment record saved for job {self.job_id} ({self.year}-{self.month + 1:02d})")
        return result
