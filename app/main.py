"""
Streamlit Frontend for Tamerun

The screens a household uses day to day: record income and expenses,
look back over a month on a calendar, and keep an eye on savings goals.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is deleted
3. Clear error messages in simple language
4. Every number on screen is recomputed from stored rows

The UI only talks to the flows in tamerun.orchestrator. It never calls
a storage directly and never does its own arithmetic on amounts.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from tamerun.audit import configure_logging
from tamerun.calculators import round_up_to_unit
from tamerun.config import get_settings, validate_all_settings
from tamerun.models.finance import Category, GoalWithProgress, Transaction, TransactionType
from tamerun.orchestrator import (
    AppComponents,
    AppStorages,
    HistoryView,
    create_app_components,
    create_storages,
)


# Page configuration
st.set_page_config(
    page_title="Tamerun",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .income {
        color: #1e8e3e;
    }
    .expense {
        color: #d93025;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_storages() -> AppStorages:
    """Storages are shared by every session of the process (cached)."""
    try:
        configure_logging(get_settings().app.log_level)
        return create_storages(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_storages(use_storage=False)


def get_components() -> AppComponents:
    """Flows for this browser session; each session signs in on its own."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(storages=get_storages())
    return st.session_state.components


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol}{amount:,.0f}"


def category_label(category: Category) -> str:
    return f"{category.icon} {category.name}"


def main():
    """Main application entry point."""
    components = get_components()

    if "session" not in st.session_state:
        st.session_state.session = None

    if st.session_state.session is None:
        render_login_page(components)
        return

    session = st.session_state.session

    st.sidebar.title("💰 Tamerun")
    st.sidebar.caption(session.email)
    if components.sheets_client is None:
        st.sidebar.warning("Demo mode: data is kept in memory only")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard", "✏️ Add Entry", "📅 History", "🎯 Goals", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Sign out"):
        run_async(components.auth_flow.sign_out())
        st.session_state.clear()
        st.rerun()

    if page == "🏠 Dashboard":
        render_dashboard_page(components, session.user_id)
    elif page == "✏️ Add Entry":
        render_entry_page(components, session.user_id)
    elif page == "📅 History":
        render_history_page(components, session.user_id)
    elif page == "🎯 Goals":
        render_goals_page(components, session.user_id)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_login_page(components: AppComponents):
    """Sign in, sign up and email confirmation."""
    st.title("💰 Tamerun")
    st.markdown("Keep track of your household money and savings goals.")

    sign_in_tab, sign_up_tab = st.tabs(["Sign in", "Create account"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")
        if submitted:
            result = run_async(components.auth_flow.sign_in(email, password))
            if result.success:
                st.session_state.session = result.data
                st.rerun()
            else:
                st.error(result.message)

    with sign_up_tab:
        with st.form("sign_up"):
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password")
            submitted = st.form_submit_button("Create account")
        if submitted:
            result = run_async(components.auth_flow.sign_up(email, password))
            if not result.success:
                st.error(result.message)
            elif result.data.pending_confirmation:
                st.success(result.message)
                # No mail is sent; the link is handed over on screen
                st.markdown(f"[Confirm your email address]({result.data.confirmation_link})")
            else:
                st.success(result.message)

    result = run_async(components.auth_flow.confirm_from_link(st.query_params))
    if result is not None:
        if result.success:
            st.success(result.message)
        else:
            st.error(result.message)


def render_dashboard_page(components: AppComponents, user_id):
    """This month's totals."""
    st.title("🏠 Dashboard")

    result = run_async(components.dashboard_flow.month_summary(user_id))
    if not result.success:
        st.error(result.message)
        return
    summary = result.data

    st.subheader(f"{summary.window.year}-{summary.window.month:02d}")
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(summary.income_total))
    col2.metric("Expense", money(summary.expense_total))
    col3.metric("Balance", money(summary.net))

    if summary.expense_by_category:
        categories = run_async(components.transaction_flow.categories_for(TransactionType.EXPENSE))
        names = {c.category_id: category_label(c) for c in (categories.data or [])}
        st.markdown("### Spending by category")
        for category_id, amount in sorted(
            summary.expense_by_category.items(), key=lambda item: item[1], reverse=True
        ):
            st.write(f"{names.get(category_id, 'Uncategorized')}: {money(amount)}")


def render_entry_page(components: AppComponents, user_id):
    """Record one income or expense."""
    st.title("✏️ Add Entry")

    type_choice = st.radio(
        "Type",
        options=list(TransactionType),
        format_func=lambda t: "Expense" if t is TransactionType.EXPENSE else "Income",
        horizontal=True,
    )
    categories = run_async(components.transaction_flow.categories_for(type_choice))
    if not categories.success:
        st.error(categories.message)
        return

    with st.form("new_transaction", clear_on_submit=True):
        amount = st.text_input("Amount")
        category = st.selectbox(
            "Category",
            options=[None] + categories.data,
            format_func=lambda c: "Select a category" if c is None else category_label(c),
        )
        on_date = st.date_input("Date", value=date.today())
        memo = st.text_input("Memo (optional)")
        submitted = st.form_submit_button("Save", type="primary")

    if submitted:
        result = run_async(components.transaction_flow.create(
            user_id=user_id,
            transaction_type=type_choice,
            amount=amount,
            category_id=category.category_id if category else None,
            on_date=on_date,
            memo=memo,
        ))
        if result.success:
            st.success(result.message)
        else:
            st.error(result.message)


def _history_view(components: AppComponents, user_id) -> HistoryView:
    if "history_view" not in st.session_state:
        st.session_state.history_view = components.history_view(user_id)
    return st.session_state.history_view


def render_history_page(components: AppComponents, user_id):
    """Calendar of daily totals plus the transaction list."""
    st.title("📅 History")
    view = _history_view(components, user_id)

    col_prev, col_title, col_next = st.columns([1, 3, 1])
    if col_prev.button("◀ Previous"):
        view.set_window(view.window.previous())
    if col_next.button("Next ▶"):
        view.set_window(view.window.next())
    col_title.markdown(f"### {view.window.year}-{view.window.month:02d}")

    # Entries may have changed on another page since the last visit
    run_async(view.refresh())
    if view.error:
        st.error(view.error)

    render_calendar(view)

    if view.selected_date is not None:
        st.markdown(f"Showing **{view.selected_date.isoformat()}**")
        if st.button("Show whole month"):
            view.select_date(None)
            st.rerun()

    categories = run_async(components.transaction_flow.categories_by_type())
    if not categories.success:
        st.error(categories.message)
        return

    groups = view.grouped_transactions
    if not groups:
        st.info("No entries for this period.")
    for day, transactions in groups:
        st.markdown(f"#### {day.isoformat()}")
        for transaction in transactions:
            render_transaction_row(components, user_id, transaction, categories.data[transaction.type])


def render_calendar(view: HistoryView):
    header = st.columns(7)
    for column, label in zip(header, WEEKDAY_LABELS):
        column.markdown(f"**{label}**")

    cells = view.calendar_cells
    for week_start in range(0, len(cells), 7):
        columns = st.columns(7)
        for column, day in zip(columns, cells[week_start:week_start + 7]):
            if day is None:
                continue
            total = view.total_for(day)
            if column.button(str(day.day), key=f"day-{day.isoformat()}"):
                view.select_date(None if view.selected_date == day else day)
                st.rerun()
            if total is not None:
                if total.income:
                    column.markdown(f"<span class='income'>+{total.income:,.0f}</span>", unsafe_allow_html=True)
                if total.expense:
                    column.markdown(f"<span class='expense'>-{total.expense:,.0f}</span>", unsafe_allow_html=True)


def render_transaction_row(
    components: AppComponents,
    user_id,
    transaction: Transaction,
    options: list[Category],
):
    flow = components.transaction_flow
    names = {c.category_id: category_label(c) for c in options}

    label = (
        f"{transaction.type.sign}{money(transaction.amount)}  "
        f"{names.get(transaction.category_id, 'Uncategorized')}"
        f"{'  - ' + transaction.memo if transaction.memo else ''}"
    )
    with st.expander(label):
        with st.form(f"edit-{transaction.transaction_id}"):
            amount = st.text_input("Amount", value=str(transaction.amount))
            current = next(
                (i for i, c in enumerate(options) if c.category_id == transaction.category_id), 0
            )
            category = st.selectbox(
                "Category",
                options=options,
                index=current if options else None,
                format_func=category_label,
            )
            on_date = st.date_input("Date", value=transaction.date)
            saved = st.form_submit_button("Save changes")
        if saved:
            result = run_async(flow.update(
                user_id,
                transaction.transaction_id,
                amount,
                category.category_id if category else None,
                on_date,
            ))
            if result.success:
                st.rerun()
            st.error(result.message)

        confirm = st.checkbox("Yes, delete this entry", key=f"confirm-{transaction.transaction_id}")
        if st.button("Delete", key=f"delete-{transaction.transaction_id}", disabled=not confirm):
            result = run_async(flow.delete(user_id, transaction.transaction_id))
            if result.success:
                st.rerun()
            st.error(result.message)


def render_goals_page(components: AppComponents, user_id):
    """Savings goals with progress."""
    st.title("🎯 Savings Goals")
    flow = components.goal_flow

    with st.expander("➕ New goal"):
        with st.form("new_goal", clear_on_submit=True):
            goal_name = st.text_input("Goal name")
            target = st.text_input("Target amount")
            deadline = st.text_input("Deadline (YYYY-MM-DD, optional)")
            submitted = st.form_submit_button("Create goal", type="primary")
        if submitted:
            result = run_async(flow.create(user_id, goal_name, target, deadline))
            if result.success:
                st.success(result.message)
            else:
                st.error(result.message)

    result = run_async(flow.list_goals(user_id))
    if not result.success:
        st.error(result.message)
        return
    if not result.data:
        st.info("No savings goals yet.")
    for item in result.data:
        render_goal_card(components, user_id, item)


def render_goal_card(components: AppComponents, user_id, item: GoalWithProgress):
    flow = components.goal_flow
    goal, progress = item.goal, item.progress

    st.markdown("---")
    title = f"### {goal.goal_name}"
    if not goal.is_active:
        title += " (paused)"
    st.markdown(title)
    if progress.is_achieved:
        st.success("🎉 Goal achieved!")

    st.progress(progress.progress_percentage / 100)
    st.write(
        f"{money(goal.current_amount)} / {money(goal.target_amount)} "
        f"({progress.progress_percentage:.1f}%)"
    )
    if item.deadline:
        line = f"Deadline: {item.deadline}"
        if item.show_days_remaining:
            line += f" ({progress.days_remaining} days left)"
        st.write(line)
    if item.show_monthly_required:
        st.info(f"Save {money(round_up_to_unit(progress.monthly_required_amount))} per month to reach it")

    col_edit, col_toggle, col_delete = st.columns(3)
    with col_edit.popover("Edit"):
        with st.form(f"edit-goal-{goal.goal_id}"):
            goal_name = st.text_input("Goal name", value=goal.goal_name)
            target = st.text_input("Target amount", value=str(goal.target_amount))
            current = st.text_input("Current amount", value=str(goal.current_amount))
            deadline = st.text_input("Deadline (YYYY-MM-DD, optional)", value=item.deadline)
            saved = st.form_submit_button("Save changes")
        if saved:
            result = run_async(flow.update(user_id, goal.goal_id, goal_name, target, current, deadline))
            if result.success:
                st.rerun()
            st.error(result.message)

    if col_toggle.button("Pause" if goal.is_active else "Resume", key=f"toggle-{goal.goal_id}"):
        result = run_async(flow.toggle_active(user_id, goal.goal_id))
        if result.success:
            st.rerun()
        st.error(result.message)

    confirm = col_delete.checkbox("Confirm delete", key=f"confirm-goal-{goal.goal_id}")
    if col_delete.button("Delete", key=f"delete-goal-{goal.goal_id}", disabled=not confirm):
        result = run_async(flow.delete(user_id, goal.goal_id))
        if result.success:
            st.rerun()
        st.error(result.message)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("app") and get_settings().app.debug_mode:
        app_settings = get_settings().app
        st.markdown("### Diagnostics")
        st.json({
            "environment": app_settings.app_environment,
            "log_level": app_settings.log_level,
            "storage": "google_sheets" if get_components().sheets_client else "in_memory",
        })

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
