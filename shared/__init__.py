"""Shared utilities and configuration."""
from shared.config import settings, Settings
from shared.models import (
    Client,
    DashboardStats,
    Invoice,
    Job,
    JobPage,
    Pagination,
    PaymentPage,
    PaymentRecord,
    PaymentReport,
    PaymentStatus,
)

__all__ = [
    "settings",
    "Settings",
    "Client",
    "DashboardStats",
    "Invoice",
    "Job",
    "JobPage",
    "Pagination",
    "PaymentPage",
    "PaymentRecord",
    "PaymentReport",
    "PaymentStatus",
]
