"""Streamlit UI - payment history and invoice documents for one client."""
import logging

import pandas as pd
import streamlit as st

from services.gateway.client import AccountGateway, ApiError
from services.ui.styles import apply_custom_css, format_currency, format_date, run, status_badge
from services.viewmodels.base import ViewState
from services.viewmodels.client_payment import ClientPaymentPage
from services.viewmodels.invoice_upload import UploadState
from services.viewmodels.payment_history import classify_invoices, document_for, has_document
from shared import settings
from shared.models import MONTH_NAMES, PAYMENT_METHODS, DocumentFile, PaymentStatus

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def get_gateway() -> AccountGateway:
    """One gateway, and so one HTTP session, per browser session."""
    if "gateway" not in st.session_state:
        st.session_state.gateway = AccountGateway()
    return st.session_state.gateway


def get_page(gateway: AccountGateway, email: str) -> ClientPaymentPage:
    page = st.session_state.get("client_page")
    if page is None or page.email != email:
        page = ClientPaymentPage(gateway, email)
        with st.spinner("Loading payment information..."):
            run(page.load())
        st.session_state.client_page = page
        st.session_state.entry_form = None
    return page


def render_history_stats(page: ClientPaymentPage):
    stats = page.history.stats
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Billed", format_currency(stats.total_amount))
    with col2:
        st.metric("Paid Amount", format_currency(stats.paid_amount))
    with col3:
        st.metric("Pending", format_currency(stats.pending_amount))
    with col4:
        last = stats.last_payment_date
        st.metric("Last Payment", format_date(last) if last else "No payments")


def render_upload(page: ClientPaymentPage):
    flow = page.upload
    action = "Replace" if flow.replacing else "Upload"
    st.subheader(f"📎 {action} Invoice · {flow.payment.display_month} {flow.payment.year}")
    if flow.replacing and flow.existing_invoice:
        st.warning(f"This will replace the existing document: {flow.existing_invoice.description}")

    uploaded = st.file_uploader(
        "Invoice document (PDF, Word, Excel or image, max 5MB)",
        type=["pdf", "doc", "docx", "xls", "xlsx", "jpg", "jpeg", "png"],
        key=f"upload_file_{flow.payment.id}",
    )
    if uploaded is not None and (flow.file is None or flow.file.name != uploaded.name):
        flow.select_file(DocumentFile.from_upload(uploaded))

    invoice_date = st.text_input("Invoice date (YYYY-MM-DD)", value=flow.invoice_date, key="upload_date")
    description = st.text_input("Description", value=flow.description, key="upload_description")
    incorrect = st.checkbox("Mark as incorrect invoice", value=flow.is_incorrect_invoice)
    reason = st.text_input("Reason", value=flow.incorrect_reason) if incorrect else flow.incorrect_reason

    if flow.error:
        st.error(flow.error)

    col_submit, col_cancel = st.columns(2)
    with col_submit:
        if st.button(f"⬆️ {action}", type="primary", disabled=flow.state is UploadState.UPLOADING):
            with st.spinner("Uploading..."):
                run(flow.submit(invoice_date=invoice_date, description=description,
                                is_incorrect_invoice=incorrect, incorrect_reason=reason))
            if flow.state is UploadState.SUCCESS:
                run(page.finish_upload())
            st.rerun()
    with col_cancel:
        if st.button("Cancel", key="upload_cancel"):
            page.close_upload()
            st.rerun()


def render_payment(page: ClientPaymentPage, payment):
    history = page.history
    expanded = history.expanded_payment == payment.id
    col_month, col_amount, col_status, col_action = st.columns([3, 2, 1, 2])
    with col_month:
        if st.button(f"{'▾' if expanded else '▸'} {payment.display_month} {payment.year}", key=f"toggle_{payment.id}"):
            history.toggle_expand(payment.id)
            st.rerun()
    with col_amount:
        st.write(format_currency(payment.total_amount))
    with col_status:
        st.markdown(status_badge(payment.status), unsafe_allow_html=True)
    with col_action:
        label = "🔁 Replace Invoice" if has_document(payment) else "📎 Upload Invoice"
        if st.button(label, key=f"upload_{payment.id}"):
            page.open_upload(payment)
            st.rerun()

    if not expanded:
        return

    partition = classify_invoices(payment.invoices)
    if partition.payment_invoices:
        st.dataframe(pd.DataFrame([
            {
                "Date": format_date(invoice.invoice_date),
                "Description": invoice.description,
                "Amount": format_currency(invoice.amount),
                "Method": invoice.payment_method or "",
                "Incorrect": "⚠️ " + (invoice.incorrect_reason or "") if invoice.is_incorrect_invoice else "",
            }
            for invoice in partition.payment_invoices
        ]), use_container_width=True, hide_index=True)
    document = document_for(payment)
    if document:
        link = f"[View document]({document.file_url})" if document.file_url else "No file"
        st.markdown(f"**Supporting document:** {document.description} · {link}")
    if payment.notes:
        st.caption(payment.notes)

    statuses = [s.value for s in PaymentStatus]
    col_status, col_save, col_delete = st.columns([2, 1, 1])
    with col_status:
        new_status = st.selectbox("Status", statuses, key=f"status_{payment.id}",
                                  index=statuses.index(payment.status) if payment.status in statuses else 0)
    with col_save:
        if st.button("Save status", key=f"save_status_{payment.id}") and new_status != payment.status:
            try:
                run(history.update_status(payment.id, new_status, payment.notes))
                st.rerun()
            except ApiError as e:
                st.error(f"Failed to update status: {e.message}")
    with col_delete:
        if st.button("🗑️ Delete", key=f"delete_{payment.id}"):
            try:
                run(history.delete_payment(payment.id))
                st.rerun()
            except ApiError as e:
                st.error(f"Failed to delete payment: {e.message}")


def render_entry_form(page: ClientPaymentPage):
    form = st.session_state.get("entry_form")
    if form is None:
        return
    st.subheader("➕ Add Monthly Payment")
    col_year, col_month = st.columns(2)
    with col_year:
        form.year = st.selectbox("Year", form.year_options(), key="entry_year")
    with col_month:
        form.month = st.selectbox("Month", list(range(12)), index=form.month, key="entry_month",
                                  format_func=lambda m: MONTH_NAMES[m])
    form.notes = st.text_area("Notes", value=form.notes, key="entry_notes")

    for index, row in enumerate(form.rows):
        st.markdown(f"**Invoice {index + 1}**")
        cols = st.columns([2, 3, 2, 2, 1])
        invoice_date = cols[0].text_input("Date", value=row.invoice_date, key=f"row_date_{index}")
        description = cols[1].text_input("Description", value=row.description, key=f"row_desc_{index}")
        amount = cols[2].text_input("Amount", value=str(row.amount), key=f"row_amount_{index}")
        method = cols[3].selectbox("Method", [""] + PAYMENT_METHODS, key=f"row_method_{index}",
                                   index=([""] + PAYMENT_METHODS).index(row.payment_method)
                                   if row.payment_method in PAYMENT_METHODS else 0)
        uploaded = st.file_uploader("Attachment", key=f"row_file_{index}",
                                    type=["pdf", "doc", "docx", "xls", "xlsx", "jpg", "jpeg", "png"])
        form.update_row(index, invoice_date=invoice_date, description=description, amount=amount,
                        payment_method=method,
                        file=DocumentFile.from_upload(uploaded) if uploaded is not None else None)
        if cols[4].button("✖", key=f"row_remove_{index}"):
            form.remove_row(index)
            st.rerun()

    if form.error:
        st.error(form.error)

    col_add, col_submit, col_cancel = st.columns(3)
    if col_add.button("Add invoice row"):
        form.add_row()
        st.rerun()
    if col_submit.button("💾 Save Payment", type="primary", disabled=form.submitting):
        with st.spinner("Saving payment record..."):
            result = run(form.submit())
        if result is not None:
            st.session_state.entry_form = None
            page.notice = "Payment record added successfully!"
            run(page.history.refresh())
        st.rerun()
    if col_cancel.button("Close form"):
        st.session_state.entry_form = None
        st.rerun()


def render_client_page(gateway: AccountGateway, email: str):
    page = get_page(gateway, email)

    st.title("💳 Client Payment Management")
    client = page.client
    if client:
        st.markdown(f"**{client.name}** · {client.email} · {client.phone} · {client.company}")

    if st.sidebar.button("🔄 Refresh", type="primary"):
        with st.spinner("Refreshing..."):
            run(page.refresh())
        st.rerun()

    for notice in (page.pop_notice(), page.history.pop_notice()):
        if notice:
            st.toast(notice)

    if page.state is ViewState.ERROR:
        st.error(page.error)
        if st.button("Try Again"):
            run(page.refresh())
            st.rerun()
        return

    if not page.jobs:
        st.info("No completed jobs found for this client.")
        return

    job_ids = [job.id for job in page.jobs]
    labels = {job.id: f"{job.service_type or 'Service'} · {job.id}" + (" 💰" if job.has_payments else "")
              for job in page.jobs}
    selected = st.selectbox("Job", job_ids, index=job_ids.index(page.selected_job_id)
                            if page.selected_job_id in job_ids else 0, format_func=labels.get)
    if selected != page.selected_job_id:
        run(page.select_job(selected))
        st.session_state.entry_form = None
        st.rerun()

    history = page.history
    if history.state is ViewState.ERROR:
        st.error(history.error)
        if st.button("Try Again", key="history_retry"):
            run(history.load())
            st.rerun()
        return

    render_history_stats(page)

    if page.upload is not None:
        render_upload(page)
        st.divider()

    if st.session_state.get("entry_form") is None:
        if st.button("➕ Add Monthly Payment"):
            st.session_state.entry_form = page.open_entry_form()
            st.rerun()
    else:
        render_entry_form(page)
        st.divider()

    if not history.records:
        st.info("No monthly payment records have been added for this job yet.")
        return

    years = history.years()
    history.selected_year = st.selectbox("Year", years, key="history_year", index=years.index(history.selected_year)
                                         if history.selected_year in years else 0)
    for payment in history.filtered_records:
        render_payment(page, payment)
        st.divider()


def main():
    """Standalone client payment app; pass ?client=<email>."""
    st.set_page_config(page_title="Client Payments", layout="wide")
    apply_custom_css()
    email = st.query_params.get("client") or st.sidebar.text_input("Client email")
    if not email:
        st.info("Enter a client email to view their payments.")
        return
    render_client_page(get_gateway(), email)


if __name__ == "__main__":
    main()
