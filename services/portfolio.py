"""
Portfolio service for ManualFolio.
Loads a user's ledger through the repositories and hands it to the valuation
engine. The user is always passed in explicitly; nothing here reads session state.
"""

import logging
from typing import List, Optional
from datetime import date
from dataclasses import dataclass, field

import pandas as pd
from sqlmodel import Session

from config import get_settings
from db_engine import get_engine
from models import Asset, Transaction, Dividend, CashMovement, Price, PortfolioSnapshot
from repositories import (
    AssetRepository,
    TransactionRepository,
    DividendRepository,
    CashMovementRepository,
    PriceRepository,
    PortfolioSnapshotRepository,
)
from services.valuation import (
    AllocationSlice,
    ClosedPosition,
    DividendSummary,
    HistoryEvent,
    Holding,
    PortfolioOverview,
    compute_allocation,
    compute_closed_positions,
    compute_history,
    compute_holdings,
    compute_overview,
    round_display,
    summarize_dividends,
)

logger = logging.getLogger(__name__)


@dataclass
class PortfolioLedger:
    """All raw records of one user, read in a single session."""
    user_id: int
    assets: List[Asset] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    dividends: List[Dividend] = field(default_factory=list)
    cash_movements: List[CashMovement] = field(default_factory=list)
    prices: List[Price] = field(default_factory=list)


@dataclass
class PortfolioDashboard:
    """Everything the dashboard view needs, computed from one ledger read."""
    overview: PortfolioOverview
    holdings: List[Holding]
    allocation: List[AllocationSlice]
    dividend_summary: DividendSummary


class PortfolioService:
    """
    Service for portfolio aggregates.
    Every read recomputes from the current ledger; nothing is cached.
    """

    @staticmethod
    def load_ledger(user_id: int) -> PortfolioLedger:
        """Read every collection the valuation engine consumes."""
        with Session(get_engine()) as session:
            ledger = PortfolioLedger(
                user_id=user_id,
                assets=AssetRepository.get_all(user_id, session=session),
                transactions=TransactionRepository.get_all(user_id, session=session),
                dividends=DividendRepository.get_all(user_id, session=session),
                cash_movements=CashMovementRepository.get_all(user_id, session=session),
                prices=PriceRepository.get_all(user_id, session=session),
            )
        logger.debug(
            f"Loaded ledger for user {user_id}: {len(ledger.assets)} assets, "
            f"{len(ledger.transactions)} transactions, {len(ledger.dividends)} dividends, "
            f"{len(ledger.cash_movements)} cash movements"
        )
        return ledger

    @staticmethod
    def get_holdings(user_id: int) -> List[Holding]:
        """Current holdings of a user, largest first."""
        ledger = PortfolioService.load_ledger(user_id)
        return compute_holdings(ledger.transactions, ledger.assets, ledger.prices)

    @staticmethod
    def get_overview(user_id: int) -> PortfolioOverview:
        """Portfolio totals of a user."""
        ledger = PortfolioService.load_ledger(user_id)
        holdings = compute_holdings(ledger.transactions, ledger.assets, ledger.prices)
        return compute_overview(holdings, ledger.cash_movements, ledger.dividends, ledger.assets)

    @staticmethod
    def get_allocation(user_id: int) -> List[AllocationSlice]:
        """Allocation of current value by asset category."""
        return compute_allocation(PortfolioService.get_holdings(user_id))

    @staticmethod
    def get_history(user_id: int) -> List[HistoryEvent]:
        """Chronological timeline of all ledger records."""
        ledger = PortfolioService.load_ledger(user_id)
        return compute_history(ledger.transactions, ledger.dividends, ledger.cash_movements, ledger.assets)

    @staticmethod
    def get_closed_positions(user_id: int) -> List[ClosedPosition]:
        """Completed buy/sell cycles, most recent first."""
        ledger = PortfolioService.load_ledger(user_id)
        return compute_closed_positions(ledger.transactions, ledger.assets)

    @staticmethod
    def get_dividend_summary(user_id: int, as_of: Optional[date] = None) -> DividendSummary:
        """Dividend income totals relative to as_of (default: today)."""
        return summarize_dividends(DividendRepository.get_all(user_id), as_of or date.today())

    @staticmethod
    def get_dashboard(user_id: int, as_of: Optional[date] = None) -> PortfolioDashboard:
        """
        Compute overview, holdings, allocation and dividend summary together.

        Args:
            user_id: User whose portfolio to value
            as_of: Reference date for the dividend summary (default: today)

        Returns:
            PortfolioDashboard built from a single ledger read
        """
        ledger = PortfolioService.load_ledger(user_id)
        holdings = compute_holdings(ledger.transactions, ledger.assets, ledger.prices)
        return PortfolioDashboard(
            overview=compute_overview(holdings, ledger.cash_movements, ledger.dividends, ledger.assets),
            holdings=holdings,
            allocation=compute_allocation(holdings),
            dividend_summary=summarize_dividends(ledger.dividends, as_of or date.today()),
        )

    @staticmethod
    def create_snapshot(user_id: int, year: Optional[int] = None, month: Optional[int] = None) -> PortfolioSnapshot:
        """
        Persist the current overview as the snapshot for a month.

        Args:
            user_id: Owning user ID
            year: Snapshot year (default: current year)
            month: Snapshot month (default: current month)

        Returns:
            Stored PortfolioSnapshot
        """
        today = date.today()
        dashboard = PortfolioService.get_dashboard(user_id)
        overview = dashboard.overview
        return PortfolioSnapshotRepository.add(
            user_id=user_id,
            year=year or today.year,
            month=month or today.month,
            total_value=round_display(overview.total_current_value),
            total_cost_basis=round_display(overview.total_cost_basis),
            total_pl=round_display(overview.unrealized_gain),
            total_pl_percent=round_display(overview.unrealized_gain_percent),
            category_values={s.category: round_display(s.value) for s in dashboard.allocation},
        )

    # ==================== Display frames ====================

    @staticmethod
    def holdings_frame(holdings: List[Holding]) -> pd.DataFrame:
        """Holdings as a display table with values rounded half-up."""
        places = get_settings().display_decimals
        columns = ['Ticker', 'Name', 'Category', 'Quantity', 'Avg Cost', 'Cost Basis',
                   'Price', 'Value', 'P&L', 'P&L %']
        rows = [{
            'Ticker': h.ticker,
            'Name': h.name,
            'Category': h.category,
            'Quantity': float(round_display(h.quantity, 6)),
            'Avg Cost': float(round_display(h.average_cost, places)),
            'Cost Basis': float(round_display(h.cost_basis, places)),
            'Price': float(round_display(h.current_price, places)),
            'Value': float(round_display(h.current_value, places)),
            'P&L': float(round_display(h.unrealized_pl, places)),
            'P&L %': float(round_display(h.unrealized_pl_percent, places)),
        } for h in holdings]
        return pd.DataFrame(rows, columns=columns)

    @staticmethod
    def allocation_frame(slices: List[AllocationSlice]) -> pd.DataFrame:
        """Allocation slices as a display table."""
        places = get_settings().display_decimals
        rows = [{
            'Category': s.category,
            'Value': float(round_display(s.value, places)),
            'Percentage': float(round_display(s.percentage, places)),
        } for s in slices]
        return pd.DataFrame(rows, columns=['Category', 'Value', 'Percentage'])

    @staticmethod
    def history_frame(events: List[HistoryEvent]) -> pd.DataFrame:
        """Timeline as a display table, oldest first."""
        places = get_settings().display_decimals
        rows = [{
            'Date': e.event_date,
            'Type': e.event_type,
            'Ticker': e.ticker or '',
            'Description': e.description,
            'Amount': float(round_display(e.amount, places)),
        } for e in events]
        return pd.DataFrame(rows, columns=['Date', 'Type', 'Ticker', 'Description', 'Amount'])
