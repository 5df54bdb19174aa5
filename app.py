"""
ManualFolio - Streamlit Application
Manual portfolio tracker: record trades, dividends and cash movements,
then review holdings, allocation and history.
"""

import streamlit as st
import logging
from datetime import date
from dotenv import load_dotenv

from config import get_settings
from db_engine import init_db
from models import ASSET_CATEGORIES, CATEGORY_DISPLAY_NAMES, TRANSACTION_TYPES, MOVEMENT_TYPES
from repositories import (
    AssetRepository,
    TransactionRepository,
    DividendRepository,
    CashMovementRepository,
    PriceRepository,
    PortfolioSnapshotRepository,
    UserRepository,
)
from services import AuthService, PortfolioService, round_display

# Load environment variables
load_dotenv()

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Configure Streamlit page
st.set_page_config(
    page_title=f"{settings.app_title} - Portfolio Tracker",
    page_icon="📈",
    layout="wide"
)

# Initialize database
init_db()


# ==================== SESSION STATE ====================
if "user_id" not in st.session_state:
    st.session_state.user_id = None

if "username" not in st.session_state:
    st.session_state.username = None


# ==================== HELPER FUNCTIONS ====================
def money(value) -> str:
    """Format a Decimal amount for display."""
    return f"${round_display(value, settings.display_decimals):,}"


def percent(value) -> str:
    """Format a percentage for display."""
    return f"{round_display(value, settings.display_decimals)}%"


def asset_label(asset) -> str:
    return f"{asset.name} ({asset.ticker})"


# ==================== AUTH ====================
def render_login():
    """Render login and registration forms."""
    st.title(f"📈 {settings.app_title}")
    st.markdown("*Manual investment portfolio tracker*")

    login_tab, register_tab = st.tabs(["🔑 Login", "📝 Register"])

    with login_tab:
        with st.form("login_form"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Login", use_container_width=True)

            if submitted:
                user = AuthService.authenticate(username, password)
                if user:
                    st.session_state.user_id = user.id
                    st.session_state.username = user.username
                    st.rerun()
                else:
                    st.error("❌ Invalid credentials")

    with register_tab:
        with st.form("register_form"):
            username = st.text_input("Username", key="register_username")
            password = st.text_input("Password", type="password", key="register_password")
            portfolio_name = st.text_input("Portfolio Name (Optional)", key="register_portfolio")
            submitted = st.form_submit_button("Create Account", use_container_width=True)

            if submitted:
                try:
                    user = AuthService.register(username, password, portfolio_name or None)
                    st.session_state.user_id = user.id
                    st.session_state.username = user.username
                    st.rerun()
                except ValueError as e:
                    st.error(f"❌ {e}")


# ==================== SIDEBAR ====================
def render_sidebar(user_id: int):
    """Render the sidebar with account settings."""
    st.sidebar.title("⚙️ Settings")
    st.sidebar.markdown(f"Logged in as **{st.session_state.username}**")

    user = UserRepository.get_by_id(user_id)
    new_name = st.sidebar.text_input(
        "Portfolio Name",
        value=(user.portfolio_name or "") if user else "",
    )
    if st.sidebar.button("Save Name", use_container_width=True):
        UserRepository.update_portfolio_name(user_id, new_name or None)
        st.sidebar.success("✅ Portfolio name saved!")

    if st.sidebar.button("Logout", use_container_width=True):
        st.session_state.user_id = None
        st.session_state.username = None
        st.rerun()


# ==================== MAIN CONTENT ====================
def render_dashboard(user_id: int):
    """Render portfolio overview and allocation."""
    st.subheader("📊 Portfolio Overview")

    dashboard = PortfolioService.get_dashboard(user_id)
    overview = dashboard.overview

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Value", money(overview.total_current_value))
    with col2:
        st.metric("Cost Basis", money(overview.total_cost_basis))
    with col3:
        st.metric(
            "Unrealized P&L",
            money(overview.unrealized_gain),
            delta=percent(overview.unrealized_gain_percent)
        )
    with col4:
        st.metric("Cash Balance", money(overview.cash_balance))

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Net Cash Contributed", money(overview.net_cash_contributed))
    with col2:
        st.metric("Dividends (All Time)", money(overview.total_dividend_income))
    with col3:
        st.metric("Dividends YTD", money(dashboard.dividend_summary.year_to_date))
    with col4:
        st.metric("Positions", f"{overview.holdings_count}")

    st.markdown("### Allocation by Category")
    if dashboard.allocation:
        frame = PortfolioService.allocation_frame(dashboard.allocation)
        frame['Category'] = frame['Category'].map(lambda c: CATEGORY_DISPLAY_NAMES.get(c, c))
        col1, col2 = st.columns([2, 3])
        with col1:
            st.dataframe(frame, use_container_width=True, hide_index=True)
        with col2:
            st.bar_chart(frame.set_index('Category')['Value'])
    else:
        st.info("No holdings yet. Record a buy in the Transactions tab.")

    st.markdown("### Monthly Snapshots")
    if st.button("📸 Save Snapshot for This Month"):
        snapshot = PortfolioService.create_snapshot(user_id)
        st.success(f"✅ Snapshot saved for {snapshot.year}-{snapshot.month:02d}")

    snapshots = PortfolioSnapshotRepository.get_all(user_id)
    for snapshot in snapshots:
        cols = st.columns([3, 3, 3, 1])
        cols[0].text(f"{snapshot.year}-{snapshot.month:02d}")
        cols[1].text(f"Value {money(snapshot.total_value)}")
        cols[2].text(f"P&L {money(snapshot.total_pl)} ({percent(snapshot.total_pl_percent)})")
        if cols[3].button("🗑️", key=f"del_snapshot_{snapshot.id}"):
            PortfolioSnapshotRepository.delete(snapshot.id, user_id)
            st.rerun()


def render_asset_editor(user_id: int, asset):
    """Edit form for one asset."""
    with st.form(f"edit_asset_{asset.id}"):
        col1, col2 = st.columns(2)
        with col1:
            ticker = st.text_input("Ticker", value=asset.ticker)
            name = st.text_input("Name", value=asset.name)
        with col2:
            category = st.selectbox(
                "Category", ASSET_CATEGORIES,
                index=ASSET_CATEGORIES.index(asset.category) if asset.category in ASSET_CATEGORIES else 0,
                format_func=lambda c: CATEGORY_DISPLAY_NAMES.get(c, c)
            )
            currency = st.text_input("Currency", value=asset.currency)
        notes = st.text_input("Notes", value=asset.notes or "")
        if st.form_submit_button("Save Asset"):
            if not ticker.strip() or not name.strip():
                st.error("❌ Ticker and name are required")
            else:
                try:
                    AssetRepository.update(
                        asset.id, user_id,
                        ticker=ticker, name=name, category=category,
                        currency=currency, notes=notes
                    )
                    st.rerun()
                except ValueError as e:
                    st.error(f"❌ {e}")


def render_price_editor(user_id: int, mark):
    """Inline edit and delete controls for one price mark."""
    with st.form(f"edit_price_{mark.id}"):
        col1, col2, col3, col4 = st.columns([3, 3, 2, 2])
        price_date = col1.date_input("Date", value=mark.price_date)
        close_price = col2.number_input("Price", min_value=0.0, step=0.01, value=float(mark.close_price))
        save = col3.form_submit_button("Save")
        remove = col4.form_submit_button("🗑️ Delete")
        if save:
            try:
                PriceRepository.update(mark.id, user_id, price_date=price_date, close_price=str(close_price))
                st.rerun()
            except ValueError as e:
                st.error(f"❌ {e}")
        if remove:
            PriceRepository.delete(mark.id, user_id)
            st.rerun()


def render_holdings(user_id: int):
    """Render holdings, price marks and closed positions."""
    st.subheader("📈 Holdings")

    holdings = PortfolioService.get_holdings(user_id)
    if holdings:
        st.dataframe(PortfolioService.holdings_frame(holdings), use_container_width=True, hide_index=True)
    else:
        st.info("No open positions.")

    assets = AssetRepository.get_all(user_id)

    st.markdown("### ➕ Add Asset")
    with st.form("add_asset_form"):
        col1, col2 = st.columns(2)
        with col1:
            ticker = st.text_input("Ticker", placeholder="e.g., VWCE, BTC")
            name = st.text_input("Name", placeholder="e.g., Vanguard FTSE All-World")
        with col2:
            category = st.selectbox(
                "Category", ASSET_CATEGORIES,
                format_func=lambda c: CATEGORY_DISPLAY_NAMES.get(c, c)
            )
            currency = st.text_input("Currency", value="USD")
        submitted = st.form_submit_button("Add Asset", use_container_width=True)

        if submitted:
            try:
                AssetRepository.add(user_id, ticker, name, category, currency=currency)
                st.success(f"✅ Added {ticker.upper()}!")
                st.rerun()
            except ValueError as e:
                st.error(f"❌ {e}")

    if assets:
        st.markdown("### 💲 Record Price")
        with st.form("add_price_form"):
            options = {asset_label(a): a for a in assets}
            selected = st.selectbox("Asset", list(options.keys()))
            close_price = st.number_input("Price per Unit", min_value=0.0, step=0.01)
            price_date = st.date_input("Date", value=date.today())
            if st.form_submit_button("Save Price", use_container_width=True):
                try:
                    PriceRepository.add(user_id, options[selected].id, price_date, str(close_price))
                    st.success("✅ Price saved!")
                    st.rerun()
                except ValueError as e:
                    st.error(f"❌ {e}")

        st.markdown("### 🗂️ Assets")
        prices = PriceRepository.get_all(user_id)
        for asset in assets:
            with st.expander(f"**{asset.name}** ({asset.ticker}) - {CATEGORY_DISPLAY_NAMES.get(asset.category, asset.category)}"):
                render_asset_editor(user_id, asset)

                latest = PriceRepository.get_latest_by_asset(asset.id, user_id)
                if latest:
                    st.text(f"Latest price mark: {money(latest.close_price)} on {latest.price_date}")
                for mark in [p for p in prices if p.asset_id == asset.id]:
                    render_price_editor(user_id, mark)

                if st.button("Delete Asset", key=f"del_asset_{asset.id}"):
                    AssetRepository.delete(asset.id, user_id)
                    st.rerun()

    st.markdown("### ✅ Closed Positions")
    closed = PortfolioService.get_closed_positions(user_id)
    if not closed:
        st.info("No closed positions yet.")
    for position in closed:
        st.text(
            f"{position.ticker} | {position.first_buy_date} → {position.last_sell_date} "
            f"({position.holding_period_days}d) | P&L {money(position.realized_pl)} "
            f"({percent(position.realized_pl_percent)})"
        )


def render_transactions(user_id: int):
    """Render transaction entry form and list."""
    st.subheader("💱 Transactions")

    assets = AssetRepository.get_all(user_id)
    if not assets:
        st.info("No assets available. Add an asset first in the Holdings tab.")
        return

    options = {asset_label(a): a for a in assets}

    with st.form("add_transaction_form"):
        col1, col2 = st.columns(2)
        with col1:
            selected = st.selectbox("Asset*", list(options.keys()))
            transaction_type = st.selectbox("Type*", TRANSACTION_TYPES)
            transaction_date = st.date_input("Date", value=date.today())
        with col2:
            quantity = st.number_input("Quantity*", min_value=0.0, step=0.01, value=1.0, format="%.6f")
            unit_price = st.number_input("Unit Price*", min_value=0.0, step=0.01)
            fees = st.number_input("Fees", min_value=0.0, step=0.01)

        submitted = st.form_submit_button("Record Transaction", use_container_width=True)
        if submitted:
            try:
                TransactionRepository.add(
                    user_id=user_id,
                    asset_id=options[selected].id,
                    transaction_date=transaction_date,
                    transaction_type=transaction_type,
                    quantity=str(quantity),
                    unit_price=str(unit_price),
                    fees=str(fees)
                )
                st.success("✅ Transaction recorded!")
                st.rerun()
            except ValueError as e:
                st.error(f"❌ {e}")

    assets_by_id = {a.id: a for a in assets}
    st.markdown("---")
    for tx in TransactionRepository.get_all(user_id):
        asset = assets_by_id.get(tx.asset_id)
        title = (
            f"{tx.transaction_date} | {tx.transaction_type.upper()} "
            f"{asset.ticker if asset else '?'} | {tx.quantity.normalize():f} @ {money(tx.unit_price)}"
        )
        with st.expander(title):
            labels = list(options.keys())
            current_label = asset_label(asset) if asset else labels[0]
            with st.form(f"edit_tx_{tx.id}"):
                col1, col2, col3 = st.columns(3)
                new_asset = col1.selectbox(
                    "Asset", labels,
                    index=labels.index(current_label) if current_label in labels else 0
                )
                new_type = col2.selectbox(
                    "Type", TRANSACTION_TYPES, index=TRANSACTION_TYPES.index(tx.transaction_type)
                )
                new_date = col3.date_input("Date", value=tx.transaction_date)
                col1, col2, col3 = st.columns(3)
                new_quantity = col1.number_input("Quantity", min_value=0.0, value=float(tx.quantity), format="%.6f")
                new_price = col2.number_input("Unit Price", min_value=0.0, value=float(tx.unit_price))
                new_fees = col3.number_input("Fees", min_value=0.0, value=float(tx.fees))
                if st.form_submit_button("Save Changes"):
                    try:
                        TransactionRepository.update(
                            tx.id, user_id,
                            asset_id=options[new_asset].id,
                            transaction_type=new_type,
                            transaction_date=new_date,
                            quantity=str(new_quantity),
                            unit_price=str(new_price),
                            fees=str(new_fees)
                        )
                        st.rerun()
                    except ValueError as e:
                        st.error(f"❌ {e}")
            if st.button("Delete Transaction", key=f"del_tx_{tx.id}"):
                try:
                    TransactionRepository.delete(tx.id, user_id)
                    st.rerun()
                except ValueError as e:
                    st.error(f"❌ {e}")


def render_dividends(user_id: int):
    """Render dividend summary, entry form and list."""
    st.subheader("💵 Dividends")

    summary = PortfolioService.get_dividend_summary(user_id)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Year to Date", money(summary.year_to_date))
    with col2:
        st.metric("This Month", money(summary.this_month))
    with col3:
        st.metric("Monthly Average (12m)", money(summary.average_monthly))

    assets = AssetRepository.get_all(user_id)
    if not assets:
        st.info("No assets available. Add an asset first in the Holdings tab.")
        return

    options = {asset_label(a): a for a in assets}
    with st.form("add_dividend_form"):
        selected = st.selectbox("Asset*", list(options.keys()))
        amount = st.number_input("Amount*", min_value=0.0, step=0.01)
        payment_date = st.date_input("Payment Date", value=date.today())
        notes = st.text_input("Notes")
        if st.form_submit_button("Record Dividend", use_container_width=True):
            try:
                DividendRepository.add(user_id, options[selected].id, payment_date, str(amount), notes=notes or None)
                st.success("✅ Dividend recorded!")
                st.rerun()
            except ValueError as e:
                st.error(f"❌ {e}")

    assets_by_id = {a.id: a for a in assets}
    st.markdown("---")
    labels = list(options.keys())
    for dividend in DividendRepository.get_all(user_id):
        asset = assets_by_id.get(dividend.asset_id)
        with st.expander(f"{dividend.payment_date} | {asset.ticker if asset else '?'} | {money(dividend.amount)}"):
            current_label = asset_label(asset) if asset else labels[0]
            with st.form(f"edit_div_{dividend.id}"):
                col1, col2, col3 = st.columns(3)
                new_asset = col1.selectbox(
                    "Asset", labels,
                    index=labels.index(current_label) if current_label in labels else 0
                )
                new_amount = col2.number_input("Amount", min_value=0.0, step=0.01, value=float(dividend.amount))
                new_date = col3.date_input("Payment Date", value=dividend.payment_date)
                new_notes = st.text_input("Notes", value=dividend.notes or "")
                if st.form_submit_button("Save Changes"):
                    try:
                        DividendRepository.update(
                            dividend.id, user_id,
                            asset_id=options[new_asset].id,
                            payment_date=new_date,
                            amount=str(new_amount),
                            notes=new_notes
                        )
                        st.rerun()
                    except ValueError as e:
                        st.error(f"❌ {e}")
            if st.button("Delete Dividend", key=f"del_div_{dividend.id}"):
                DividendRepository.delete(dividend.id, user_id)
                st.rerun()


def render_cash(user_id: int):
    """Render cash movement entry form and list."""
    st.subheader("🏦 Cash")

    with st.form("add_cash_form"):
        col1, col2 = st.columns(2)
        with col1:
            movement_type = st.selectbox("Type*", MOVEMENT_TYPES)
            amount = st.number_input("Amount*", min_value=0.0, step=0.01)
        with col2:
            movement_date = st.date_input("Date", value=date.today())
        if st.form_submit_button("Record Movement", use_container_width=True):
            try:
                CashMovementRepository.add(user_id, movement_type, str(amount), movement_date)
                st.success("✅ Cash movement recorded!")
                st.rerun()
            except ValueError as e:
                st.error(f"❌ {e}")

    st.markdown("---")
    for movement in CashMovementRepository.get_all(user_id):
        with st.expander(f"{movement.movement_date} | {movement.movement_type.upper()} | {money(movement.amount)}"):
            with st.form(f"edit_cash_{movement.id}"):
                col1, col2, col3 = st.columns(3)
                new_type = col1.selectbox(
                    "Type", MOVEMENT_TYPES, index=MOVEMENT_TYPES.index(movement.movement_type)
                )
                new_amount = col2.number_input("Amount", min_value=0.0, step=0.01, value=float(movement.amount))
                new_date = col3.date_input("Date", value=movement.movement_date)
                if st.form_submit_button("Save Changes"):
                    try:
                        CashMovementRepository.update(
                            movement.id, user_id,
                            movement_type=new_type,
                            amount=str(new_amount),
                            movement_date=new_date
                        )
                        st.rerun()
                    except ValueError as e:
                        st.error(f"❌ {e}")
            if st.button("Delete Movement", key=f"del_cash_{movement.id}"):
                CashMovementRepository.delete(movement.id, user_id)
                st.rerun()


def render_history(user_id: int):
    """Render the chronological timeline."""
    st.subheader("🕑 History")

    events = PortfolioService.get_history(user_id)
    if not events:
        st.info("Nothing recorded yet.")
        return
    st.dataframe(PortfolioService.history_frame(events), use_container_width=True, hide_index=True)


# ==================== MAIN APP ====================
def main():
    """Main application entry point."""
    user_id = st.session_state.user_id
    if user_id is None:
        render_login()
        return

    st.title(f"📈 {settings.app_title}")
    render_sidebar(user_id)

    tab1, tab2, tab3, tab4, tab5, tab6 = st.tabs([
        "📊 Dashboard", "📈 Holdings", "💱 Transactions",
        "💵 Dividends", "🏦 Cash", "🕑 History"
    ])

    with tab1:
        render_dashboard(user_id)

    with tab2:
        render_holdings(user_id)

    with tab3:
        render_transactions(user_id)

    with tab4:
        render_dividends(user_id)

    with tab5:
        render_cash(user_id)

    with tab6:
        render_history(user_id)

    # Footer
    st.markdown("---")
    st.markdown(
        "<div style='text-align: center; color: gray;'>"
        "All figures are computed from manually entered data.</div>",
        unsafe_allow_html=True
    )


if __name__ == "__main__":
    main()
