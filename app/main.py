"""
Streamlit Frontend for the Shared Ledger

The page everyone in the group opens to log what they paid for.

DESIGN PRINCIPLES:
1. Simple form, explicit "Save" button
2. Clear error messages before anything is written
3. Paid entries are shown as settled and cannot be edited
4. All ledger logic lives in the ledger package; this file only renders

Edit widgets are keyed by entry id, so their buffers live in st.session_state.
Nothing reaches the ledger until "Save changes" is pressed.
"""

import asyncio

import streamlit as st

from ledger.audit import create_correlation_id
from ledger.config import validate_all_settings
from ledger.core.settlement import TransactionLockedError
from ledger.models.transaction import TransactionForm, TransactionRecord
from ledger.orchestrator import LedgerFlow, create_app_components
from ledger.services.storage import StorageError


NEW_PAYER = "+ New payer..."
NEW_CATEGORY = "+ New category..."


st.set_page_config(
    page_title="Shared Ledger",
    page_icon="📒",
    layout="centered",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def main():
    """Main application entry point."""
    flow, sheets_client = get_components()

    try:
        run_async(flow.refresh())
    except StorageError as e:
        st.warning(f"Could not load the latest entries: {e}")

    st.sidebar.title("📒 Shared Ledger")
    if sheets_client is None:
        st.sidebar.caption("Running without a spreadsheet: entries are kept in memory only.")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Entry", "📝 Entries", "📊 Summary", "📤 Export", "⚙️ Settings"],
        index=0,
    )

    if page == "➕ Add Entry":
        render_add_page(flow)
    elif page == "📝 Entries":
        render_entries_page(flow)
    elif page == "📊 Summary":
        render_summary_page(flow)
    elif page == "📤 Export":
        render_export_page(flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def _pick_or_type(label: str, options: list[str], new_option: str, key: str, current: str = "") -> str:
    """Select from known names, or type a new one."""
    choices = options + [new_option]
    index = choices.index(current) if current in options else 0
    choice = st.selectbox(label, choices, index=index, key=f"{key}_select")
    if choice == new_option:
        return st.text_input(f"New {label.lower()}", value="", key=f"{key}_new")
    return choice


def _entry_form(flow: LedgerFlow, key: str, record: TransactionRecord = None) -> TransactionForm:
    vocabulary = flow.view.vocabulary

    col1, col2 = st.columns([2, 1])
    with col1:
        item = st.text_input("Item *", value=record.item if record else "", key=f"{key}_item")
    with col2:
        unit = st.text_input("Unit", value=record.unit if record else "", key=f"{key}_unit")

    col1, col2 = st.columns(2)
    with col1:
        amount = st.text_input(
            "Amount *",
            value=str(record.amount) if record else "",
            placeholder="0",
            key=f"{key}_amount",
        )
        category = _pick_or_type(
            "Category", vocabulary.categories, NEW_CATEGORY, f"{key}_category",
            current=record.category if record else "",
        )
    with col2:
        payer = _pick_or_type(
            "Payer", vocabulary.payers, NEW_PAYER, f"{key}_payer",
            current=record.payer if record else "",
        )

    note = st.text_input("Note", value=record.note if record else "", key=f"{key}_note")

    return TransactionForm(
        item=item, unit=unit, amount=amount, category=category, payer=payer, note=note,
    )


def render_add_page(flow: LedgerFlow):
    """Render the new-entry form."""
    st.title("➕ Add Entry")

    form = _entry_form(flow, key="add")

    if st.button("💾 Save", type="primary"):
        try:
            record, result = run_async(
                flow.add_transaction(form, correlation_id=create_correlation_id())
            )
        except StorageError as e:
            st.error(f"Saving failed, please check your connection and try again. ({e})")
            return

        if record is None:
            st.error(flow.describe_validation(result))
            return

        st.success(f"Saved: {record.item} - {record.amount} ({record.payer})")
        for warning in result.warnings:
            st.warning(warning)


def render_entries_page(flow: LedgerFlow):
    """Render the ordered entry list with settlement and edit controls."""
    st.title("📝 Entries")
    view = flow.view

    if view.is_empty:
        st.info("No entries yet. Add the first one on the 'Add Entry' page.")
        return

    income = flow.settings.income_category
    for record in view.records:
        sign = "+" if record.category == income else "-"
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                title = f"**{record.item}**"
                if record.unit:
                    title += f" ({record.unit})"
                st.markdown(title)
                caption = f"{record.category} · Payer: {record.payer}"
                if record.note:
                    caption += f" · {record.note}"
                st.caption(caption)
            with col2:
                st.markdown(f"**{sign}{record.amount}**")
                if record.is_paid:
                    st.button("✅ Paid", key=f"paid_{record.id}", disabled=True)
                elif st.button("Mark paid", key=f"pay_{record.id}"):
                    try:
                        run_async(flow.mark_paid(record.id))
                    except StorageError as e:
                        st.error(f"Update failed: {e}")
                    st.rerun()

            if not record.is_paid:
                with st.expander("Edit"):
                    form = _entry_form(flow, key=f"edit_{record.id}", record=record)
                    if st.button("Save changes", key=f"save_{record.id}"):
                        try:
                            accepted, result = run_async(flow.edit_transaction(record.id, form))
                        except TransactionLockedError:
                            st.error("This entry was settled in the meantime and can no longer be edited.")
                            continue
                        except StorageError as e:
                            st.error(f"Update failed: {e}")
                            continue
                        if not accepted:
                            st.error(flow.describe_validation(result))
                        else:
                            st.rerun()


def render_summary_page(flow: LedgerFlow):
    """Render totals per payer and overall balance."""
    st.title("📊 Summary")
    summary = flow.view.summary

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", f"{summary.total_income:,}")
    col2.metric("Expenses", f"{summary.total_expense:,}")
    col3.metric("Balance", f"{summary.net_balance:,}")

    st.markdown("### Handled per person")
    if not summary.payer_handled:
        st.caption("No data yet")
        return

    for payer, total in summary.payer_handled.items():
        col1, col2 = st.columns([3, 1])
        col1.write(payer)
        col2.write(f"{total:,}")

    st.markdown("---")
    col1, col2, col3 = st.columns(3)
    col1.metric("Total handled", f"{summary.grand_total:,}")
    col2.metric("Paid", f"{summary.paid_total:,}")
    col3.metric("Unpaid", f"{summary.unpaid_total:,}")


def render_export_page(flow: LedgerFlow):
    """Render CSV download and spreadsheet export."""
    st.title("📤 Export")

    rows = flow.export_rows()
    st.caption(f"{len(rows)} rows, in the same order as the entry list.")

    st.download_button(
        "⬇️ Download CSV",
        data=flow.export_csv(),
        file_name="ledger.csv",
        mime="text/csv",
    )

    if st.button("📄 Write to spreadsheet"):
        try:
            written = run_async(flow.export_to_sheet())
            st.success(f"Wrote {written} rows to the Export sheet.")
        except StorageError as e:
            st.error(f"Export failed: {e}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    groups = [
        ("Ledger (categories & labels)", "ledger"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in groups:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
