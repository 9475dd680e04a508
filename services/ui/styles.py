"""Shared styling and formatting for the account-management pages."""
import asyncio
from datetime import datetime
from typing import Optional

import streamlit as st

STATUS_CLASSES = {
    "Paid": "status-paid",
    "Pending": "status-pending",
    "Overdue": "status-overdue",
}


def apply_custom_css():
    """Apply the clean white theme plus payment status badges."""
    css_content = """
    <style>
        @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap');

        :root {
            --primary: #4F46E5;
            --paid: #047857;
            --pending: #B45309;
            --overdue: #B91C1C;
            --border-light: #E5E7EB;
        }

        .stApp {
            background: #FFFFFF !important;
            font-family: 'Inter', sans-serif;
        }

        .main .block-container {
            padding-top: 2rem;
            padding-bottom: 3rem;
        }

        /* Stat cards */
        [data-testid="stMetric"] {
            border: 1px solid var(--border-light);
            border-radius: 12px;
            padding: 1rem;
        }

        /* Payment status badges */
        .status-badge {
            display: inline-block;
            padding: 0.15rem 0.6rem;
            border-radius: 9999px;
            font-size: 0.75rem;
            font-weight: 600;
        }
        .status-paid { background: #D1FAE5; color: var(--paid); }
        .status-pending { background: #FEF3C7; color: var(--pending); }
        .status-overdue { background: #FEE2E2; color: var(--overdue); }
        .status-other { background: #F3F4F6; color: #374151; }

        .stButton > button {
            font-weight: 600;
            border-radius: 8px;
        }
    </style>
    """
    st.markdown(css_content, unsafe_allow_html=True)


def status_badge(status: str) -> str:
    css_class = STATUS_CLASSES.get(status, "status-other")
    return f'<span class="status-badge {css_class}">{status}</span>'


def format_currency(amount: Optional[float]) -> str:
    return f"${amount or 0:,.2f}"


def format_date(value: Optional[datetime]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%Y-%m-%d")


def run(coro):
    """Drive a view-model coroutine from a Streamlit script run."""
    return asyncio.run(coro)
