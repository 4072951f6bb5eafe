"""
Streamlit Frontend for Loan Tracker

The owner's view of who owes what, plus the read-only page a shared
link opens.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every change is an explicit button press
3. Clear error messages in simple language
4. Warnings are shown, never hidden, but do not block
5. No hidden actions

Opening the app with ?share=<id> in the URL shows only the shared
snapshot; the owner's pages are not reachable from there.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import streamlit as st

from loan_tracker.config import get_settings, validate_all_settings
from loan_tracker.models.ledger import (
    PersonalInfo,
    PersonStatus,
    TransactionDraft,
    TransactionKind,
)
from loan_tracker.models.sharing import ShareStatus
from loan_tracker.orchestrator import LedgerFlow, ShareFlow, create_app_components
from loan_tracker.services.storage import NotFoundError, StorageError
from loan_tracker.validation import (
    PersonRejectedError,
    TransactionRejectedError,
    summarize_issues,
)


# Page configuration
st.set_page_config(
    page_title="Loan Tracker",
    page_icon="💸",
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
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    ledger_flow, share_flow, audit_logger = create_app_components()
    ledger_flow.ensure_seeded()
    return ledger_flow, share_flow, audit_logger


def money(amount: Decimal) -> str:
    symbol = get_settings().app.currency_symbol
    return f"{symbol}{amount:,.0f}"


def main():
    """Main application entry point."""
    ledger_flow, share_flow, audit_logger = get_components()

    share_id = st.query_params.get("share")
    if share_id:
        render_shared_view(share_flow, share_id)
        return

    # Sidebar navigation
    st.sidebar.title("💸 Loan Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["👥 People", "👤 Person Detail", "📊 Summary", "🔗 Shared Links", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add the people you lend money to
        2. Record every loan and payment
        3. Share a read-only link so they can check their balance

        Mark future installments with "(Programada)" or "(Scheduled)"
        to see them among upcoming payments.
        """
    )

    # Route to appropriate page
    if page == "👥 People":
        render_people_page(ledger_flow)
    elif page == "👤 Person Detail":
        render_person_page(ledger_flow, share_flow)
    elif page == "📊 Summary":
        render_summary_page(ledger_flow)
    elif page == "🔗 Shared Links":
        render_links_page(share_flow)
    elif page == "⚙️ Settings":
        render_settings_page(audit_logger)


def render_people_page(ledger_flow: LedgerFlow):
    """Render the people list with the add form."""
    st.title("👥 People")

    people = ledger_flow.list_people()

    if not people:
        st.info("No people yet. Add the first one below.")

    for person in people:
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        with col1:
            st.markdown(f"**{person.initials}** · {person.name}")
        with col2:
            st.markdown(f"Balance: {money(person.balance)}")
        with col3:
            icon = "🟡" if person.status == PersonStatus.PENDING else "🟢"
            st.markdown(f"{icon} {person.status.value}")
        with col4:
            if st.button("🗑️", key=f"delete_person_{person.id}", help="Delete person"):
                try:
                    ledger_flow.delete_person(person.id)
                except StorageError as e:
                    st.error(f"Could not delete: {e}")
                else:
                    st.rerun()

    st.markdown("---")
    st.subheader("➕ Add Person")

    with st.form("add_person", clear_on_submit=True):
        name = st.text_input("Name")
        with st.expander("Personal information (optional)"):
            email = st.text_input("Email")
            phone = st.text_input("Phone")
            address = st.text_input("Address")
            notes = st.text_area("Notes")
        submitted = st.form_submit_button("Add", type="primary")

    if submitted:
        try:
            person = ledger_flow.add_person(
                name,
                personal_info=PersonalInfo(
                    email=email or None,
                    phone=phone or None,
                    address=address or None,
                    notes=notes or None,
                ),
            )
            st.success(f"✅ {person.name} added")
            st.rerun()
        except PersonRejectedError as e:
            st.error(summarize_issues(e.result))
        except StorageError as e:
            st.error(f"Could not save: {e}")


def render_person_page(ledger_flow: LedgerFlow, share_flow: ShareFlow):
    """Render one person's ledger, the transaction form and link sharing."""
    st.title("👤 Person Detail")

    people = ledger_flow.list_people()
    if not people:
        st.info("Add a person first.")
        return

    person = st.selectbox("Person", options=people, format_func=lambda p: p.name)
    view = ledger_flow.get_person_view(person.id)
    if view is None:
        st.error("This person's data could not be loaded.")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Loaned", money(view.person.total_loaned))
    col2.metric("Paid", money(view.person.total_paid))
    col3.metric("Balance", money(view.person.balance), help=view.person.status.value)
    st.progress(view.progress_percent / 100, text=f"{view.progress_percent}% repaid")

    if view.upcoming_payments:
        st.subheader("📅 Upcoming Payments")
        for transaction in view.upcoming_payments:
            st.markdown(
                f"- {transaction.date:%d/%m/%Y} · {money(transaction.amount)} "
                f"· {transaction.description}"
            )

    st.subheader("📜 Transactions")
    if not view.transactions:
        st.info("No transactions yet.")
    for transaction in sorted(view.transactions, key=lambda t: t.date, reverse=True):
        col1, col2, col3, col4 = st.columns([2, 2, 4, 1])
        col1.markdown(f"{transaction.date:%d/%m/%Y}")
        col2.markdown(
            f"{'➕' if transaction.kind == TransactionKind.LOAN else '➖'} "
            f"{money(transaction.amount)}"
        )
        col3.markdown(transaction.description or "-")
        if col4.button("🗑️", key=f"delete_tx_{transaction.id}", help="Delete transaction"):
            try:
                ledger_flow.delete_transaction(person.id, transaction.id)
            except StorageError as e:
                st.error(f"Could not delete: {e}")
            else:
                st.rerun()

    st.markdown("---")
    st.subheader("➕ New Transaction")

    with st.form("new_transaction", clear_on_submit=True):
        kind = st.radio(
            "Type",
            options=list(TransactionKind),
            format_func=lambda k: k.value,
            horizontal=True,
        )
        amount = st.number_input("Amount", min_value=0.0, step=1000.0)
        day = st.date_input("Date", value=date.today())
        description = st.text_input("Description")
        submitted = st.form_submit_button("Save", type="primary")

    if submitted:
        draft = TransactionDraft(
            kind=kind,
            amount=Decimal(str(amount)),
            date=datetime.combine(day, time(12, 0), tzinfo=timezone.utc),
            description=description,
        )
        try:
            outcome = ledger_flow.record_transaction(person.id, draft)
            st.success(f"✅ Saved. New balance: {money(outcome.person.balance)}")
            for warning in outcome.warnings:
                st.warning(warning)
        except TransactionRejectedError as e:
            st.error(summarize_issues(e.result))
        except (NotFoundError, StorageError) as e:
            st.error(f"Could not save: {e}")

    st.markdown("---")
    render_share_form(share_flow, person.id)


def render_share_form(share_flow: ShareFlow, person_id: str):
    """Create a share link for one person."""
    st.subheader("🔗 Share")
    sharing = get_settings().sharing

    with st.form("share_link"):
        include_transactions = st.checkbox("Include transactions")
        include_personal_info = st.checkbox("Include personal information")
        password_protected = st.checkbox("Protect with a password")
        days = st.slider(
            "Valid for (days)",
            min_value=1,
            max_value=sharing.max_expiry_days,
            value=sharing.default_expiry_days,
        )
        submitted = st.form_submit_button("Create link")

    if submitted:
        try:
            created = share_flow.create_link(
                person_id,
                include_transactions=include_transactions,
                include_personal_info=include_personal_info,
                password_protected=password_protected,
                expires_in=timedelta(days=days),
            )
        except (NotFoundError, StorageError, ValueError) as e:
            st.error(f"Could not create the link: {e}")
            return

        st.code(created.link.url)
        if created.password:
            st.markdown(f"""
            <div class="warning-box">
                <h4>🔑 Password: {created.password}</h4>
                <p>This is the only time it is shown. Send it separately from the link.</p>
            </div>
            """, unsafe_allow_html=True)


def render_summary_page(ledger_flow: LedgerFlow):
    """Render the portfolio summary and the export button."""
    st.title("📊 Summary")

    summary = ledger_flow.portfolio_summary()

    col1, col2, col3 = st.columns(3)
    col1.metric("Total loaned", money(summary.total_loaned))
    col2.metric("Total paid", money(summary.total_paid))
    col3.metric("Outstanding", money(summary.balance))

    col1, col2, col3 = st.columns(3)
    col1.metric("People", summary.people_count)
    col2.metric("Pending", summary.pending_count)
    col3.metric("Paid", summary.paid_count)

    st.markdown("---")
    if st.button("📥 Prepare export"):
        filename, document = ledger_flow.export_people()
        st.download_button(
            "Download JSON",
            data=document,
            file_name=filename,
            mime="application/json",
        )


def render_links_page(share_flow: ShareFlow):
    """Render every share link with its stats."""
    st.title("🔗 Shared Links")

    stats = share_flow.stats()
    col1, col2, col3 = st.columns(3)
    col1.metric("Links", stats.total_links)
    col2.metric("Active", stats.active_links)
    col3.metric("Views", stats.total_views)

    st.markdown("---")
    now = datetime.now(timezone.utc)
    links = share_flow.list_links()
    if not links:
        st.info("No links yet. Create one from a person's page.")

    for link in links:
        col1, col2, col3, col4 = st.columns([3, 3, 2, 1])
        col1.markdown(f"**{link.person_name}**")
        col2.markdown(
            f"{'⌛ Expired' if link.is_expired(now) else '✅ Active'} "
            f"until {link.expires_at:%d/%m/%Y %H:%M}"
            f"{' · 🔒' if link.is_password_protected else ''}"
        )
        col3.markdown(f"👁️ {link.views}")
        if col4.button("🗑️", key=f"delete_link_{link.id}", help="Delete link"):
            try:
                share_flow.delete_link(link.id)
            except StorageError as e:
                st.error(f"Could not delete: {e}")
            else:
                st.rerun()
        st.caption(link.url)


def render_shared_view(share_flow: ShareFlow, share_id: str):
    """Render what a share link discloses."""
    st.title("💸 Loan Status")

    password = st.session_state.get(f"share_password_{share_id}")
    resolution = share_flow.resolve(share_id, password=password)

    if resolution.status in (ShareStatus.PASSWORD_REQUIRED, ShareStatus.PASSWORD_REJECTED):
        if resolution.status == ShareStatus.PASSWORD_REJECTED:
            st.error(resolution.message)
        with st.form("share_password"):
            entered = st.text_input("Password", type="password")
            if st.form_submit_button("Open"):
                st.session_state[f"share_password_{share_id}"] = entered
                st.rerun()
        return

    if not resolution.is_resolved:
        st.markdown(f"""
        <div class="error-box">
            <h4>Link unavailable</h4>
            <p>{resolution.message}</p>
        </div>
        """, unsafe_allow_html=True)
        return

    snapshot = resolution.snapshot
    st.subheader(snapshot.name)

    col1, col2, col3 = st.columns(3)
    col1.metric("Loaned", money(snapshot.total_loaned))
    col2.metric("Paid", money(snapshot.total_paid))
    col3.metric("Balance", money(snapshot.balance), help=snapshot.status.value)
    st.progress(snapshot.progress_percent / 100, text=f"{snapshot.progress_percent}% repaid")

    if snapshot.personal_info is not None and not snapshot.personal_info.is_empty:
        st.markdown("### Contact")
        info = snapshot.personal_info
        for label, value in (
            ("Email", info.email),
            ("Phone", info.phone),
            ("Address", info.address),
            ("Notes", info.notes),
        ):
            if value:
                st.markdown(f"**{label}:** {value}")

    if snapshot.transactions is not None:
        st.markdown("### Transactions")
        for transaction in sorted(snapshot.transactions, key=lambda t: t.date, reverse=True):
            st.markdown(
                f"- {transaction.date:%d/%m/%Y} · {transaction.kind.value} "
                f"· {money(transaction.amount)} · {transaction.description}"
            )


def render_settings_page(audit_logger):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Application", "app"),
        ("Storage", "storage"),
        ("Sharing", "sharing"),
        ("Google Sheets", "google_sheets"),
    ]

    for name, key in sections:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent Activity")
    if audit_logger.storage is None:
        st.info("Audit events are only written to the local log.")
    else:
        try:
            events = audit_logger.storage.get_recent_events(limit=20)
        except StorageError as e:
            st.error(f"The audit log could not be read: {e}")
            events = []
        for event in events:
            st.markdown(
                f"- `{event.timestamp:%Y-%m-%d %H:%M:%S}` "
                f"{event.severity.value.upper()} · {event.description}"
            )

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
