"""Streamlit UI - payment-eligible jobs and dashboard statistics."""
import logging

import pandas as pd
import streamlit as st

from services.gateway.client import AccountGateway
from services.ui.client_payments import get_gateway, render_client_page
from services.ui.styles import apply_custom_css, format_currency, format_date, run, status_badge
from services.viewmodels.base import ViewState
from services.viewmodels.job_list import SORT_OPTIONS, JobListViewModel
from services.viewmodels.payment_records import PaymentRecordsViewModel
from shared import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def get_job_list() -> JobListViewModel:
    if "job_list" not in st.session_state:
        view = JobListViewModel(get_gateway())
        with st.spinner("Loading jobs..."):
            run(view.load())
        st.session_state.job_list = view
    return st.session_state.job_list


def get_payment_records() -> PaymentRecordsViewModel:
    if "payment_records" not in st.session_state:
        view = PaymentRecordsViewModel(get_gateway())
        run(view.load())
        st.session_state.payment_records = view
    return st.session_state.payment_records


def render_stats(view: JobListViewModel):
    stats = view.stats
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Pending Jobs", stats.jobs_requiring_payment)
    with col2:
        st.metric("Paid Invoices", stats.paid_payments)
    with col3:
        st.metric("Pending Payments", stats.pending_payments, help=f"{stats.overdue_payments} overdue")
    with col4:
        st.metric("Total Paid", format_currency(stats.total_amount_paid),
                  help=f"{format_currency(stats.total_amount_pending)} pending")


def render_pagination(view, key_prefix: str):
    if not view.show_pagination:
        return
    numbers = view.page_numbers()
    cols = st.columns(len(numbers) + 3)
    current = view.pagination.current_page
    if cols[0].button("« First", key=f"{key_prefix}_first", disabled=current == 1):
        run(view.go_to_page(1))
        st.rerun()
    if cols[1].button("‹ Prev", key=f"{key_prefix}_prev", disabled=current == 1):
        run(view.go_to_page(current - 1))
        st.rerun()
    for col, number in zip(cols[2:], numbers):
        if col.button(str(number), key=f"{key_prefix}_page_{number}",
                      type="primary" if number == current else "secondary"):
            run(view.go_to_page(number))
            st.rerun()
    if cols[-1].button("Next ›", key=f"{key_prefix}_next", disabled=current >= view.pagination.total_pages):
        run(view.go_to_page(current + 1))
        st.rerun()
    st.caption(f"Page {current} of {view.pagination.total_pages} · {view.pagination.total_items} total")


def render_jobs(view: JobListViewModel):
    if view.state is ViewState.ERROR:
        st.error(view.error)
        if st.button("Try Again", key="jobs_retry"):
            run(view.refresh())
            st.rerun()
        return

    jobs = view.visible_jobs
    if not jobs:
        st.info("No jobs requiring payment found.")
        return

    table = pd.DataFrame([
        {
            "Client": job.client_name or "Unknown",
            "Email": job.gmail or job.client_email or "",
            "Service": job.service_type or "",
            "Status": job.status,
            "Completed": format_date(job.updated_at or job.created_at),
            "Job ID": job.id,
        }
        for job in jobs
    ])
    st.dataframe(table, use_container_width=True, hide_index=True)

    emails = sorted(email for email in table["Email"].unique() if email)
    if emails:
        col_select, col_open = st.columns([3, 1])
        with col_select:
            email = st.selectbox("Client", emails, key="client_pick")
        with col_open:
            if st.button("💳 View Payments", type="primary", use_container_width=True):
                st.session_state.client_email = email
                st.rerun()

    render_pagination(view, "jobs")


def render_payment_records(view: PaymentRecordsViewModel):
    col_search, col_year = st.columns([3, 1])
    with col_search:
        query = st.text_input("Search payments", value=view.query, key="payments_search")
    with col_year:
        years = [None] + PaymentRecordsViewModel.year_choices()
        year = st.selectbox("Year", years, index=years.index(view.year) if view.year in years else 0,
                            format_func=lambda y: "All Years" if y is None else str(y))
    if query != view.query or year != view.year:
        view.set_query(query)
        view.set_year(year)
        run(view.load())
        st.rerun()

    if view.state is ViewState.ERROR:
        st.error(view.error)
        if st.button("Try Again", key="payments_retry"):
            run(view.load())
            st.rerun()
        return
    if not view.payments:
        st.info("No payment records found.")
        return

    for payment in view.payments:
        expanded = view.expanded_payment == payment.id
        label = f"{'▾' if expanded else '▸'} {payment.display_month} {payment.year} · " \
                f"{format_currency(payment.total_amount)}"
        col_label, col_status = st.columns([4, 1])
        with col_label:
            if st.button(label, key=f"expand_{payment.id}"):
                view.toggle_expand(payment.id)
                st.rerun()
        with col_status:
            st.markdown(status_badge(payment.status), unsafe_allow_html=True)
        if expanded:
            st.write(f"**Job:** {payment.job_id} ({payment.job_type or 'N/A'})")
            if payment.notes:
                st.write(f"**Notes:** {payment.notes}")
            for invoice in payment.invoices:
                link = f" · [View]({invoice.file_url})" if invoice.file_url else ""
                st.markdown(f"- {invoice.description} · {format_currency(invoice.amount)}{link}")
        st.divider()
    render_pagination(view, "payments")


def main():
    """Main account management app."""
    st.set_page_config(page_title="Account Management", layout="wide", initial_sidebar_state="expanded")
    apply_custom_css()

    if st.session_state.get("client_email"):
        if st.sidebar.button("← Back to Account Management"):
            st.session_state.client_email = None
            st.rerun()
        render_client_page(get_gateway(), st.session_state.client_email)
        return

    st.title("💼 Account Management")
    st.markdown("Manage payment records for completed operations")

    view = get_job_list()

    # Sidebar
    st.sidebar.header("Search Options")
    query = st.sidebar.text_input("Search jobs", value=view.query,
                                  placeholder="Client, email, service or job ID")
    if query != view.query:
        run(view.search(query))
        st.rerun()

    sort_key = st.sidebar.selectbox(
        "Sort by",
        list(SORT_OPTIONS),
        index=list(SORT_OPTIONS).index(view.sort_key),
        format_func=SORT_OPTIONS.get,
    )
    view.set_sort(sort_key)

    if st.sidebar.button("🔄 Refresh", type="primary"):
        with st.spinner("Refreshing..."):
            run(view.refresh())
        st.rerun()

    render_stats(view)

    tab_jobs, tab_payments = st.tabs(["📋 Jobs Requiring Payment", "🧾 All Payment Records"])
    with tab_jobs:
        render_jobs(view)
    with tab_payments:
        render_payment_records(get_payment_records())


if __name__ == "__main__":
    main()
