"""HTTP gateway to the account-management backend.

Read calls never raise by default: transport or server failures are logged
and a safe default is returned so a view can keep rendering. Primary list
fetches pass ``raise_errors=True`` to get an ``ApiError`` instead. Mutations
always raise ``ApiError`` with the most specific message the server gave.
"""
import json
import logging
import math
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import quote

import requests

from shared import settings
from shared.models import (
    Client,
    DashboardStats,
    DocumentFile,
    Job,
    JobPage,
    Pagination,
    PaymentPage,
    PaymentRecord,
    PaymentReport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_UPLOAD_FIELDS = {
    "paymentMethod": "Bank Transfer",
    "amount": "0",
    "option": "DOCUMENT_ONLY",
}


class ApiError(Exception):
    """A failed backend call, carrying the most specific message available."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @classmethod
    def from_exception(cls, exc: Exception) -> "ApiError":
        if isinstance(exc, ApiError):
            return exc
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)
        payload = None
        if response is not None:
            try:
                payload = response.json()
            except ValueError:
                payload = None
        message = None
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
        return cls(str(message) if message else str(exc), status_code=status_code, payload=payload)


class ListShape(str, Enum):
    """Shapes a list endpoint may answer with."""
    BARE = "bare"          # [...]
    ENVELOPE = "envelope"  # {"<collection>": [...], "pagination": {...}}
    UNKNOWN = "unknown"


def classify_listing(payload: Any, collection: str) -> ListShape:
    if isinstance(payload, list):
        return ListShape.BARE
    if isinstance(payload, dict) and isinstance(payload.get(collection), list):
        return ListShape.ENVELOPE
    return ListShape.UNKNOWN


def normalize_listing(payload: Any, collection: str, page: int, limit: int) -> Tuple[List[Dict], Pagination]:
    """Reduce either list shape to (items, pagination)."""
    shape = classify_listing(payload, collection)
    if shape is ListShape.BARE:
        total = len(payload)
        return payload, Pagination(
            current_page=page,
            total_pages=max(1, math.ceil(total / limit)) if limit else 1,
            total_items=total,
            items_per_page=limit,
        )
    if shape is ListShape.ENVELOPE:
        items = payload[collection]
        raw = payload.get("pagination")
        if isinstance(raw, dict) and raw:
            pagination = Pagination.model_validate({"currentPage": page, "itemsPerPage": limit, **raw})
        else:
            pagination = Pagination(
                current_page=page,
                total_pages=max(1, math.ceil(len(items) / limit)) if limit else 1,
                total_items=len(items),
                items_per_page=limit,
            )
        return items, pagination

    logger.warning(f"Unexpected response format for {collection}: {type(payload).__name__}")
    return [], empty_pagination(limit)


def empty_pagination(limit: int) -> Pagination:
    return Pagination(current_page=1, total_pages=1, total_items=0, items_per_page=limit)


class AccountGateway:
    """One method per backend operation, over a shared ``requests.Session``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.upload_timeout = upload_timeout or settings.upload_timeout
        self.session = session or requests.Session()
        token = token or settings.api_token
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    # -- transport -----------------------------------------------------

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            timeout=timeout or self.timeout,
            **kwargs
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return None

    def _read(self, description: str, fetch: Callable[[], T], default: T, raise_errors: bool = False) -> T:
        try:
            return fetch()
        except Exception as e:
            logger.error(f"Error fetching {description}: {e}")
            if raise_errors:
                raise ApiError.from_exception(e) from e
            return default

    def _mutate(self, description: str, method: str, path: str, **kwargs) -> Any:
        try:
            return self._request(method, path, **kwargs)
        except requests.RequestException as e:
            error = ApiError.from_exception(e)
            logger.error(f"Error {description}: {error.message}")
            raise error from e

    # -- reads ---------------------------------------------------------

    def get_dashboard_stats(self) -> DashboardStats:
        return self._read(
            "dashboard statistics",
            lambda: DashboardStats.model_validate(self._request("GET", "/account/dashboard") or {}),
            DashboardStats(),
        )

    def get_payment_eligible_jobs(self, page: int = 1, limit: int = 10, search: str = "",
                                  raise_errors: bool = False) -> JobPage:
        params = {"page": page, "limit": limit}
        if search:
            params["search"] = search

        def fetch() -> JobPage:
            data = self._request("GET", "/account/jobs/payment-eligible", params=params)
            items, pagination = normalize_listing(data, "jobs", page, limit)
            return JobPage(jobs=[Job.model_validate(item) for item in items], pagination=pagination)

        return self._read("payment eligible jobs", fetch,
                          JobPage(pagination=empty_pagination(limit)), raise_errors)

    def get_all_payment_records(self, page: int = 1, limit: int = 10, search: str = "",
                                year: Optional[int] = None, raise_errors: bool = False) -> PaymentPage:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        if year:
            params["year"] = year

        def fetch() -> PaymentPage:
            data = self._request("GET", "/account/payments", params=params)
            items, pagination = normalize_listing(data, "payments", page, limit)
            return PaymentPage(payments=[PaymentRecord.model_validate(item) for item in items],
                               pagination=pagination)

        return self._read("payment records", fetch,
                          PaymentPage(pagination=empty_pagination(limit)), raise_errors)

    def get_payment_history(self, job_id: str, raise_errors: bool = False) -> List[PaymentRecord]:
        def fetch() -> List[PaymentRecord]:
            data = self._request("GET", f"/monthlypayment/history/{job_id}")
            items, _ = normalize_listing(data if data is not None else [], "payments", 1, settings.default_page_size)
            return [PaymentRecord.model_validate(item) for item in items]

        return self._read(f"payment history for job {job_id}", fetch, [], raise_errors)

    def get_payment_reports(self, filters: Optional[Dict[str, Any]] = None) -> PaymentReport:
        return self._read(
            "payment reports",
            lambda: PaymentReport.model_validate(
                self._request("GET", "/account/reports", params=filters or {}) or {}
            ),
            PaymentReport(),
        )

    def get_client_details(self, email: str) -> Client:
        def fetch() -> Client:
            data = self._request("GET", f"/clients/{quote(email, safe='@')}") or {}
            # {"client": {...}, "jobs": [...], "engagementLetter": ...}
            if isinstance(data.get("client"), dict):
                data = data["client"]
            client = Client.model_validate(data)
            if not client.email:
                client.email = email
            if not client.name:
                client.name = Client.stub(email).name
            return client

        return self._read(f"client details for {email}", fetch, Client.stub(email))

    def get_client_jobs(self, email: str, raise_errors: bool = False) -> List[Job]:
        def fetch() -> List[Job]:
            data = self._request("GET", "/jobs", params={"search": email})
            items, _ = normalize_listing(data, "jobs", 1, settings.default_page_size)
            return [Job.model_validate(item) for item in items]

        return self._read(f"jobs for client {email}", fetch, [], raise_errors)

    # -- mutations -----------------------------------------------------

    def create_update_payment_record(self, payment_data: Dict[str, Any],
                                     files: Optional[List[DocumentFile]] = None) -> Any:
        """Create (or update, when ``paymentId`` is set) a monthly payment record."""
        form: Dict[str, Any] = {}
        if payment_data.get("paymentId"):
            form["paymentId"] = payment_data["paymentId"]
        for key in ("jobId", "jobType", "year", "month"):
            form[key] = str(payment_data[key])
        for key in ("status", "notes"):
            if payment_data.get(key):
                form[key] = payment_data[key]
        form["invoices"] = json.dumps(payment_data.get("invoices", []))

        file_indices = payment_data.get("fileIndices") or []
        multipart = []
        for i, document in enumerate(files or []):
            multipart.append(("invoiceFiles", (document.name, document.content, document.content_type)))
            if i < len(file_indices):
                form[f"fileIndex_{i}"] = str(file_indices[i])

        return self._mutate(
            "creating/updating payment record", "POST", "/account/payments",
            data=form, files=multipart or None, timeout=self.upload_timeout,
        )

    def upload_invoice_document(self, form: Dict[str, str], file: Optional[DocumentFile] = None) -> Any:
        """Attach a supporting document to an existing payment record."""
        data = dict(form)
        for key, value in DEFAULT_UPLOAD_FIELDS.items():
            data.setdefault(key, value)
        logger.info(f"Uploading invoice document for payment {data.get('paymentId')}: fields={sorted(data)}")

        files = None
        if file is not None:
            files = {"invoiceFile": (file.name, file.content, file.content_type)}
        return self._mutate(
            "uploading invoice document", "POST", "/account/payments/upload-invoice",
            data=data, files=files, timeout=self.upload_timeout,
        )

    def update_payment_status(self, payment_id: str, status: str, notes: Optional[str] = None) -> Any:
        return self._mutate(
            f"updating payment status for {payment_id}", "PATCH",
            f"/account/payments/{payment_id}/status",
            json={"status": status, "notes": notes},
        )

    def delete_monthly_payment(self, payment_id: str) -> Any:
        return self._mutate(f"deleting payment {payment_id}", "DELETE", f"/monthlypayment/{payment_id}")
