"""
Services package for ManualFolio.
Provides core business logic separated from presentation and data layers.
"""

from services.valuation import (
    Holding,
    PortfolioOverview,
    AllocationSlice,
    HistoryEvent,
    ClosedPosition,
    DividendSummary,
    compute_holdings,
    compute_overview,
    compute_allocation,
    compute_history,
    compute_closed_positions,
    summarize_dividends,
    held_quantity,
    first_oversold_date,
    round_display,
)
from services.auth import AuthService, AuthError
from services.portfolio import PortfolioService, PortfolioDashboard, PortfolioLedger

__all__ = [
    # Valuation engine
    'Holding',
    'PortfolioOverview',
    'AllocationSlice',
    'HistoryEvent',
    'ClosedPosition',
    'DividendSummary',
    'compute_holdings',
    'compute_overview',
    'compute_allocation',
    'compute_history',
    'compute_closed_positions',
    'summarize_dividends',
    'held_quantity',
    'first_oversold_date',
    'round_display',
    # Services
    'AuthService',
    'AuthError',
    'PortfolioService',
    'PortfolioDashboard',
    'PortfolioLedger',
]
