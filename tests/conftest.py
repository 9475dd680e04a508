"""Pytest configuration and fixtures."""
import pytest
from unittest.mock import MagicMock

from shared.models import DashboardStats, Job, JobPage, Pagination, PaymentRecord


def _record(record_id, year, month, total, status="Pending", created_at=None, invoices=None, **extra):
    data = {
        "_id": record_id,
        "jobId": extra.pop("job_id", "job-1"),
        "year": year,
        "month": month,
        "totalAmount": total,
        "status": status,
        "invoices": invoices or [],
    }
    if created_at:
        data["createdAt"] = created_at
    data.update(extra)
    return PaymentRecord.model_validate(data)


def _job(job_id, client_name="Client", service_type="Audit", created_at=None, **extra):
    data = {"_id": job_id, "clientName": client_name, "serviceType": service_type, "status": "completed"}
    if created_at:
        data["createdAt"] = created_at
    data.update(extra)
    return Job.model_validate(data)


@pytest.fixture
def make_record():
    """Factory for PaymentRecords built from backend-shaped JSON."""
    return _record


@pytest.fixture
def make_job():
    """Factory for Jobs built from backend-shaped JSON."""
    return _job


@pytest.fixture
def gateway():
    """Mock account gateway with empty, successful defaults."""
    gateway = MagicMock()
    gateway.get_dashboard_stats.return_value = DashboardStats()
    gateway.get_payment_eligible_jobs.return_value = JobPage(pagination=Pagination())
    gateway.get_payment_history.return_value = []
    gateway.get_client_jobs.return_value = []
    return gateway


@pytest.fixture
def document_invoice():
    return {
        "_id": "inv-doc",
        "description": "Signed statement",
        "invoiceDate": "2024-03-05T00:00:00Z",
        "amount": 0,
        "paymentMethod": "Document Only",
        "option": "DOCUMENT_ONLY",
        "fileUrl": "https://files.example.com/statement.pdf",
        "isIncorrectInvoice": True,
        "incorrectReason": "Wrong amount",
    }


@pytest.fixture
def payment_invoice():
    return {
        "_id": "inv-pay",
        "description": "Consulting",
        "invoiceDate": "2024-03-01T00:00:00Z",
        "amount": 100.0,
        "paymentMethod": "Bank Transfer",
    }


@pytest.fixture
def sample_records():
    """Three records for one job, deliberately out of order."""
    return [
        _record("p1", 2024, 0, 100.0, "Paid", "2024-01-15T10:00:00Z"),
        _record("p2", 2024, 2, 50.0, "Pending", "2024-03-10T10:00:00Z"),
        _record("p3", 2023, 11, 25.5, "Paid", "2023-12-20T10:00:00Z"),
    ]
