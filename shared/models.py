"""Pydantic models for backend payment-tracking entities.

The backend speaks camelCase JSON with Mongo-style ``_id`` keys. Every model
accepts either the backend names or the Python field names.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

DOCUMENT_ONLY = "DOCUMENT_ONLY"
DOCUMENT_ONLY_METHOD = "Document Only"
PAYMENT_METHODS = ["Bank Transfer", "Cash", "Credit Card", DOCUMENT_ONLY_METHOD]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so mixed inputs stay comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    OVERDUE = "Overdue"


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _object_id(value: Any) -> Any:
    """Collapse a populated reference ({"_id": ...}) to its id."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


class DocumentFile(BaseModel):
    """A file picked by the user, ready for multipart upload."""
    name: str
    content_type: str
    size: int
    content: bytes = b""

    @classmethod
    def from_upload(cls, uploaded) -> "DocumentFile":
        """Build from a Streamlit ``UploadedFile``."""
        content = uploaded.getvalue()
        return cls(name=uploaded.name, content_type=uploaded.type or "", size=len(content), content=content)


class Pagination(ApiModel):
    current_page: int = Field(1, alias="currentPage")
    total_pages: int = Field(1, alias="totalPages")
    total_items: int = Field(0, alias="totalItems")
    items_per_page: int = Field(10, alias="itemsPerPage")


class Job(ApiModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    client_name: Optional[str] = Field(None, alias="clientName")
    gmail: Optional[str] = None
    client_email: Optional[str] = Field(None, alias="clientEmail")
    client_id: Optional[Any] = Field(None, alias="clientId")
    service_type: Optional[str] = Field(None, alias="serviceType")
    status: str = ""
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    has_payments: bool = Field(False, alias="hasPayments")

    @property
    def client_id_email(self) -> Optional[str]:
        if isinstance(self.client_id, dict):
            return self.client_id.get("gmail")
        return None


class Invoice(ApiModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("_id", "id"))
    description: str = ""
    invoice_date: Optional[datetime] = Field(None, alias="invoiceDate")
    amount: float = 0.0
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    file_url: Optional[str] = Field(None, alias="fileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")
    option: Optional[str] = None
    is_incorrect_invoice: bool = Field(False, alias="isIncorrectInvoice")
    incorrect_reason: Optional[str] = Field(None, alias="incorrectReason")

    @property
    def is_document(self) -> bool:
        return self.option == DOCUMENT_ONLY or self.payment_method == DOCUMENT_ONLY_METHOD


class PaymentRecord(ApiModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    job_id: Optional[str] = Field(None, alias="jobId")
    job_type: Optional[str] = Field(None, alias="jobType")
    year: int
    month: int
    month_name: Optional[str] = Field(None, alias="monthName")
    total_amount: float = Field(0.0, alias="totalAmount")
    status: str = PaymentStatus.PENDING.value
    notes: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    invoices: List[Invoice] = Field(default_factory=list)

    @field_validator("job_id", mode="before")
    @classmethod
    def _collapse_job(cls, value):
        return _object_id(value)

    @field_validator("invoices", mode="before")
    @classmethod
    def _none_invoices(cls, value):
        return value or []

    @property
    def display_month(self) -> str:
        if self.month_name:
            return self.month_name
        if 0 <= self.month < len(MONTH_NAMES):
            return MONTH_NAMES[self.month]
        return "Unknown"


class Client(ApiModel):
    name: str = ""
    email: str = Field("", validation_alias=AliasChoices("email", "gmail"))
    phone: str = "N/A"
    company: str = "N/A"

    @classmethod
    def stub(cls, email: str) -> "Client":
        """Minimal profile used when the client lookup fails."""
        return cls(name=email.split("@")[0], email=email, phone="N/A", company="N/A")


class DashboardStats(ApiModel):
    jobs_requiring_payment: int = Field(0, alias="jobsRequiringPayment")
    jobs_with_payments: int = Field(0, alias="jobsWithPayments")
    total_payments: int = Field(0, alias="totalPayments")
    pending_payments: int = Field(0, alias="pendingPayments")
    paid_payments: int = Field(0, alias="paidPayments")
    overdue_payments: int = Field(0, alias="overduePayments")
    total_amount_paid: float = Field(0.0, alias="totalAmountPaid")
    total_amount_pending: float = Field(0.0, alias="totalAmountPending")
    monthly_trend: List[Dict[str, Any]] = Field(default_factory=list, alias="monthlyTrend")


class JobPage(ApiModel):
    jobs: List[Job] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class PaymentPage(ApiModel):
    payments: List[PaymentRecord] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class PaymentReport(ApiModel):
    payments: List[PaymentRecord] = Field(default_factory=list)
    pagination: Optional[Pagination] = None
    summary: Dict[str, Any] = Field(default_factory=dict)
