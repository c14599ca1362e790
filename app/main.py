"""
Streamlit Frontend for Cashbook

The screens an office bookkeeper uses daily: dashboard, transaction
entry, categories, reports and storage settings.

DESIGN PRINCIPLES:
1. Nothing renders until a storage backend is connected
2. Clear error messages naming what was tried
3. A way out of every error screen (retry or switch backend)
4. Visual feedback for all operations

The UI never talks to a storage adapter directly; every read and write
goes through the FinanceService.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st

from cashbook.config import get_settings, validate_all_settings
from cashbook.models.finance import Transaction, TransactionType
from cashbook.models.storage import ConnectionState, StorageType
from cashbook.orchestrator import AppComponents, RETRY_OFFER, create_app_components
from cashbook.services.finance import CategoryInUseError, FinanceError, FinanceService, same_id


# Page configuration
st.set_page_config(
    page_title="Cashbook",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol} {amount:,.2f}"


def load_finance_data(components: AppComponents) -> bool:
    """Mirror the connected backend. A failed read is kept for the error screen."""
    try:
        run_async(components.finance.load())
    except FinanceError as e:
        st.session_state["load_error"] = str(e)
        return False
    st.session_state.pop("load_error", None)
    return True


def ensure_storage(components: AppComponents) -> bool:
    """Connect on first run. Returns True once a backend is connected and loaded."""
    initializer = components.initializer
    if initializer.status.state == ConnectionState.LOADING:
        with st.spinner("Connecting to storage..."):
            status = run_async(initializer.connect())
            if status.is_connected:
                load_finance_data(components)

    status = initializer.status
    if not status.is_connected:
        render_storage_error(components)
        return False
    if "load_error" in st.session_state:
        render_load_error(components)
        return False
    return True


def switch_and_load(components: AppComponents, action, *args) -> None:
    with st.spinner("Connecting..."):
        new_status = run_async(action(*args))
        if new_status.is_connected:
            load_finance_data(components)
        else:
            st.session_state.pop("load_error", None)
    st.rerun()


def render_storage_error(components: AppComponents):
    """Error screen with retry and switch-backend actions."""
    status = components.initializer.status
    st.title("⚠️ Storage Unavailable")
    st.markdown("#### Could not start the cashbook")
    st.error(status.error_message or "Unknown storage error")

    columns = st.columns(len(status.offers))
    for column, offer in zip(columns, status.offers):
        with column:
            if offer == RETRY_OFFER:
                if st.button("🔄 Retry", type="primary"):
                    switch_and_load(components, components.initializer.retry)
            elif st.button(f"Use {StorageType(offer).label}"):
                switch_and_load(components, components.initializer.switch_storage, offer)


def render_load_error(components: AppComponents):
    """The backend connected but its data could not be read."""
    current = components.selector.get_storage_type()
    st.title("⚠️ Data Unavailable")
    st.markdown(f"#### Connected to {current.label}, but the data could not be loaded")
    st.error(st.session_state["load_error"])

    others = [t for t in StorageType if t != current]
    columns = st.columns(len(others) + 1)
    with columns[0]:
        if st.button("🔄 Reload", type="primary"):
            load_finance_data(components)
            st.rerun()
    for column, storage_type in zip(columns[1:], others):
        with column:
            if st.button(f"Use {storage_type.label}"):
                switch_and_load(components, components.initializer.switch_storage, storage_type)


def main():
    """Main application entry point."""
    components = get_components()

    if not ensure_storage(components):
        return

    finance = components.finance

    # Sidebar navigation
    st.sidebar.title("💰 Cashbook")
    st.sidebar.caption(f"Storage: {finance.storage_type.label}")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "💸 Transactions", "🏷️ Categories", "📄 Reports", "⚙️ Settings"],
        index=0,
    )

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(finance)
    elif page == "💸 Transactions":
        render_transactions_page(finance)
    elif page == "🏷️ Categories":
        render_categories_page(finance)
    elif page == "📄 Reports":
        render_reports_page(components)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_dashboard_page(finance: FinanceService):
    """Summary cards plus the most recent transactions."""
    st.title("📊 Dashboard")
    summary = finance.summary

    col1, col2 = st.columns(2)
    col1.metric("Bank Balance", money(summary.bank_balance))
    col2.metric("Cash in Hand", money(summary.cash_in_hand))

    col1, col2, col3 = st.columns(3)
    col1.metric("Deposits", money(summary.total_deposit))
    col2.metric("Withdrawals", money(summary.total_withdrawal))
    col3.metric("Petty Cash", money(summary.total_petty_cash))

    st.markdown("---")
    st.subheader("Recent Transactions")
    recent = finance.recent_transactions
    if not recent:
        st.info("No transactions yet. Add one from the Transactions page.")
        return

    st.dataframe(
        [
            {
                "Date": t.date.strftime("%d/%m/%Y"),
                "Type": t.type.label,
                "Category": finance.get_category_name(t.category_id) or "Uncategorized",
                "Description": t.description,
                "Amount": money(t.amount),
            }
            for t in recent
        ],
        use_container_width=True,
    )


def render_transactions_page(finance: FinanceService):
    """Tabs per transaction type, each with an entry form and a list."""
    st.title("💸 Transactions")
    categories = finance.categories
    if not categories:
        st.warning("Create a category before recording transactions.")
        return

    tabs = st.tabs([t.label for t in TransactionType])
    for tab, transaction_type in zip(tabs, TransactionType):
        with tab:
            render_transaction_form(finance, transaction_type)
            render_transaction_list(finance, transaction_type)


def editing_transaction(finance: FinanceService, transaction_type: TransactionType) -> Optional[Transaction]:
    """The transaction picked for editing on this tab, if it still exists."""
    state_key = f"editing_{transaction_type.value}"
    editing_id = st.session_state.get(state_key)
    if editing_id is None:
        return None
    for t in finance.get_transactions_by_type(transaction_type):
        if same_id(t.id, editing_id):
            return t
    st.session_state.pop(state_key, None)
    return None


def render_transaction_form(finance: FinanceService, transaction_type: TransactionType):
    """Entry form. Pre-filled and saving as an update while a transaction is being edited."""
    reference_label = {
        TransactionType.DEPOSIT: "Ref Number",
        TransactionType.WITHDRAWAL: "Cheque Number",
        TransactionType.PETTY_CASH: "Voucher Number",
    }[transaction_type]
    reference_field = transaction_type.reference_field
    editing = editing_transaction(finance, transaction_type)
    # Widget keys change with the edited id so each edit starts from fresh defaults
    suffix = f"{transaction_type.value}_{editing.id if editing else 'new'}"
    categories = finance.categories
    category_index = 0
    if editing:
        st.info(f"Editing: {editing.description}")
        category_index = next(
            (i for i, c in enumerate(categories) if same_id(c.id, editing.category_id)), 0
        )

    with st.form(f"transaction_{suffix}", clear_on_submit=editing is None):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input(
                "Amount *",
                min_value=0.0,
                step=0.01,
                format="%.2f",
                value=float(editing.amount) if editing else 0.0,
                key=f"amount_{suffix}",
            )
            entry_date = st.date_input(
                "Date *",
                value=editing.date if editing else date.today(),
                key=f"date_{suffix}",
            )
        with col2:
            category = st.selectbox(
                "Category *",
                options=categories,
                index=category_index,
                format_func=lambda c: c.name,
                key=f"category_{suffix}",
            )
            reference = st.text_input(
                reference_label,
                value=(getattr(editing, reference_field) or "") if editing else "",
                key=f"reference_{suffix}",
            )
        description = st.text_input(
            "Description *",
            value=editing.description if editing else "",
            key=f"description_{suffix}",
        )
        submitted = st.form_submit_button("💾 Update" if editing else "➕ Add", type="primary")

    if editing and st.button("✖️ Cancel edit", key=f"cancel_{suffix}"):
        st.session_state.pop(f"editing_{transaction_type.value}", None)
        st.rerun()

    if not submitted:
        return
    if not description.strip():
        st.error("Please enter a description")
        return

    entry = {
        "amount": Decimal(str(amount)),
        "date": entry_date,
        "category_id": category.id,
        "description": description,
        reference_field: reference or None,
    }
    try:
        if editing:
            if not run_async(finance.update_transaction(editing.id, entry)):
                st.error("Transaction no longer exists")
                return
            st.session_state.pop(f"editing_{transaction_type.value}", None)
            st.rerun()
        run_async(finance.add_transaction({"type": transaction_type, **entry}))
        st.success("Transaction recorded")
    except (FinanceError, ValueError) as e:
        st.error(f"Failed to save: {e}")


def render_transaction_list(finance: FinanceService, transaction_type: TransactionType):
    transactions = finance.get_transactions_by_type(transaction_type)
    if not transactions:
        st.info(f"No {transaction_type.label.lower()} entries yet.")
        return

    for t in transactions:
        col1, col2, col3, col4, col5 = st.columns([2, 4, 2, 1, 1])
        col1.write(t.date.strftime("%d/%m/%Y"))
        col2.write(f"{t.description} ({finance.get_category_name(t.category_id) or 'Uncategorized'})")
        col3.write(money(t.amount))
        if col4.button("✏️", key=f"edit_txn_{t.id}"):
            st.session_state[f"editing_{transaction_type.value}"] = t.id
            st.rerun()
        if col5.button("🗑️", key=f"delete_txn_{t.id}"):
            try:
                run_async(finance.delete_transaction(t.id))
                st.rerun()
            except FinanceError as e:
                st.error(str(e))


def render_categories_page(finance: FinanceService):
    """Add, rename and delete categories."""
    st.title("🏷️ Categories")

    with st.form("add_category", clear_on_submit=True):
        name = st.text_input("New category name")
        if st.form_submit_button("➕ Add Category", type="primary") and name.strip():
            try:
                run_async(finance.add_category(name))
                st.success(f"Added '{name.strip()}'")
            except (FinanceError, ValueError) as e:
                st.error(f"Failed to add: {e}")

    st.markdown("---")
    for category in finance.categories:
        col1, col2, col3 = st.columns([4, 1, 1])
        new_name = col1.text_input(
            "Name",
            value=category.name,
            key=f"category_name_{category.id}",
            label_visibility="collapsed",
        )
        if col2.button("💾", key=f"rename_{category.id}") and new_name.strip() != category.name:
            try:
                run_async(finance.update_category(category.id, new_name))
                st.rerun()
            except (FinanceError, ValueError) as e:
                st.error(str(e))
        if col3.button("🗑️", key=f"delete_category_{category.id}"):
            try:
                run_async(finance.delete_category(category.id))
                st.rerun()
            except CategoryInUseError as e:
                st.warning(str(e))
            except FinanceError as e:
                st.error(str(e))


def render_reports_page(components: AppComponents):
    """Per-type report over a date range, plus a category breakdown."""
    st.title("📄 Reports")
    today = date.today()

    col1, col2, col3 = st.columns(3)
    with col1:
        transaction_type = st.selectbox(
            "Report type",
            options=list(TransactionType),
            format_func=lambda t: t.label,
        )
    with col2:
        date_from = st.date_input("From", value=today.replace(day=1))
    with col3:
        date_to = st.date_input("To", value=today)

    try:
        report = components.reports.build(transaction_type, date_from, date_to)
    except ValueError as e:
        st.error(str(e))
        return

    st.subheader(report.title)
    if report.is_empty:
        st.info("No transactions in this range.")
    else:
        st.dataframe(
            [
                {
                    "Date": row.date.strftime("%d/%m/%Y"),
                    report.reference_header: row.reference,
                    "Category": row.category,
                    "Description": row.description,
                    "Amount": money(row.amount),
                }
                for row in report.rows
            ],
            use_container_width=True,
        )
        st.markdown(f"**Total:** {money(report.total)}")

    st.markdown("---")
    st.subheader("By Category")
    breakdown = components.reports.category_breakdown(date_from, date_to)
    if breakdown:
        st.dataframe(
            [
                {
                    "Category": entry.category,
                    "Deposits": money(entry.deposits),
                    "Withdrawals": money(entry.withdrawals),
                    "Petty Cash": money(entry.petty_cash),
                }
                for entry in breakdown
            ],
            use_container_width=True,
        )


def render_settings_page(components: AppComponents):
    """Storage selection, configuration status and recent audit events."""
    st.title("⚙️ Settings")

    st.markdown("### Storage Backend")
    current = components.selector.get_storage_type()
    st.success(f"✅ Connected to {current.label}")
    st.caption("Switching does not copy data between backends.")

    choice = st.selectbox(
        "Switch to",
        options=[t for t in StorageType if t != current],
        format_func=lambda t: t.label,
    )
    if st.button("🔁 Switch Storage"):
        switch_and_load(components, components.initializer.switch_storage, choice)

    st.markdown("---")
    st.markdown("### Configuration")
    status = validate_all_settings()
    for name in ("storage", "embedded", "mongodb", "app"):
        if status.get(name, False):
            st.success(f"✅ {name} settings valid")
        else:
            st.error(f"❌ {name} settings - {status.get(f'{name}_error', 'invalid')}")

    st.markdown("---")
    st.markdown("### Recent Activity")
    for event in components.audit_logger.get_recent_events(limit=20):
        st.markdown(f"- `{event.timestamp:%d/%m %H:%M}` {event.description}")


if __name__ == "__main__":
    main()
