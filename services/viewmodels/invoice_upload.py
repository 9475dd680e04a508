"""Upload (or replace) the supporting document of a monthly payment."""
import asyncio
import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from services.viewmodels.payment_history import document_for
from shared import settings
from shared.models import DOCUMENT_ONLY, DocumentFile, PaymentRecord

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {
    "application/pdf": "PDF",
    "application/msword": "DOC",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "application/vnd.ms-excel": "XLS",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "XLSX",
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}
# The upload endpoint requires one of the schema's payment methods even for documents.
PLACEHOLDER_PAYMENT_METHOD = "Bank Transfer"
GENERIC_UPLOAD_ERROR = "Failed to upload invoice. Please try again."


class UploadState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"


def upload_error_message(exc: Exception) -> str:
    """Server ``message``, then server ``error``, then the exception text."""
    payload = getattr(exc, "payload", None)
    if isinstance(payload, dict):
        for key in ("message", "error"):
            if payload.get(key):
                return str(payload[key])
    return str(exc) or GENERIC_UPLOAD_ERROR


class InvoiceUploadFlow:
    """Idle -> FileSelected -> Uploading -> Success | Failed.

    A failed upload keeps every user-entered field so it can be retried.
    """

    def __init__(self, gateway, payment: PaymentRecord, replacing: bool = False,
                 max_bytes: Optional[int] = None, today: Optional[date] = None):
        self.gateway = gateway
        self.payment = payment
        self.max_bytes = max_bytes or settings.max_upload_bytes
        self.state = UploadState.IDLE
        self.file: Optional[DocumentFile] = None
        self.error: Optional[str] = None
        self.result: Any = None

        self.invoice_date = (today or date.today()).isoformat()
        self.description = f"Invoice for {payment.display_month} {payment.year}"
        self.is_incorrect_invoice = False
        self.incorrect_reason = ""

        self.existing_invoice = document_for(payment)
        self.replacing = replacing and self.existing_invoice is not None
        if self.replacing:
            existing = self.existing_invoice
            if existing.invoice_date:
                self.invoice_date = existing.invoice_date.date().isoformat()
            if existing.description:
                self.description = existing.description
            self.is_incorrect_invoice = existing.is_incorrect_invoice
            self.incorrect_reason = existing.incorrect_reason or ""

    def select_file(self, file: DocumentFile) -> bool:
        if file.content_type not in ALLOWED_TYPES:
            self.error = "Invalid file type. Please upload a PDF, Word, Excel, or image file."
            self._clear_file()
            return False
        if file.size > self.max_bytes:
            self.error = f"File is too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB."
            self._clear_file()
            return False

        self.file = file
        if not self.description:
            self.description = file.name
        self.error = None
        self.state = UploadState.FILE_SELECTED
        return True

    def _clear_file(self):
        self.file = None
        self.state = UploadState.IDLE

    def update_fields(self, **fields):
        for name in ("invoice_date", "description", "is_incorrect_invoice", "incorrect_reason"):
            if fields.get(name) is not None:
                setattr(self, name, fields[name])

    def validate(self) -> Optional[str]:
        if self.file is None:
            return "Please select a file to upload."
        if not self.invoice_date:
            return "Invoice date is required."
        if not self.description:
            return "Description is required."
        return None

    def build_form(self) -> Dict[str, str]:
        form = {
            "paymentId": self.payment.id,
            "invoiceDate": self.invoice_date,
            "description": self.description,
            "paymentMethod": PLACEHOLDER_PAYMENT_METHOD,
            "amount": "0",
            "option": DOCUMENT_ONLY,
        }
        if self.is_incorrect_invoice:
            form["isIncorrectInvoice"] = "true"
            if self.incorrect_reason.strip():
                form["incorrectReason"] = self.incorrect_reason.strip()
        if self.replacing:
            form["replaceExisting"] = "true"
            if self.existing_invoice.id:
                form["existingInvoiceId"] = self.existing_invoice.id
        return form

    async def submit(self, **fields) -> Any:
        """Upload; returns the server response, or None on validation/upload failure."""
        if self.state is UploadState.UPLOADING:
            return None
        self.update_fields(**fields)
        problem = self.validate()
        if problem:
            self.error = problem
            return None

        self.state = UploadState.UPLOADING
        self.error = None
        try:
            result = await asyncio.to_thread(self.gateway.upload_invoice_document, self.build_form(), self.file)
        except Exception as e:
            self.error = upload_error_message(e)
            self.state = UploadState.FAILED
            logger.error(f"Error uploading invoice for payment {self.payment.id}: {self.error}")
            return None

        self.result = result
        self.state = UploadState.SUCCESS
        logger.info(f"Invoice {'replaced' if self.replacing else 'uploaded'} for payment {self.payment.id}")
        return result

    @property
    def success_message(self) -> str:
        verb = "replaced" if self.replacing else "uploaded"
        return f"Invoice {verb} successfully for {self.payment.display_month} {self.payment.year}!"
