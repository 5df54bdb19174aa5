from datetime import date
from decimal import Decimal

from conftest import make_asset, make_cash, make_dividend, make_tx
from services.valuation import (
    Holding,
    compute_allocation,
    compute_holdings,
    compute_overview,
    round_display,
)


def _holding(asset_id: int, category: str, value) -> Holding:
    value = Decimal(str(value))
    return Holding(
        asset_id=asset_id,
        ticker=f"T{asset_id}",
        name=f"T{asset_id}",
        category=category,
        quantity=Decimal("1"),
        average_cost=value,
        cost_basis=value,
        current_price=value,
        current_value=value,
        unrealized_pl=Decimal("0"),
        unrealized_pl_percent=Decimal("0"),
    )


# =============================================================================
# Overview
# =============================================================================

def test_cash_only_portfolio():
    overview = compute_overview([], [make_cash(1, "deposit", 1000)], [])

    assert overview.total_cost_basis == Decimal("0")
    assert overview.net_cash_contributed == Decimal("1000")
    assert overview.cash_balance == Decimal("1000")
    assert overview.total_current_value == Decimal("1000")
    assert overview.unrealized_gain == Decimal("0")
    assert overview.unrealized_gain_percent == Decimal("0")
    assert overview.holdings_count == 0


def test_uninvested_cash_is_not_counted_as_gain():
    holdings = compute_holdings([make_tx(1, "buy", 1, 100)], [make_asset()])
    overview = compute_overview(holdings, [make_cash(1, "deposit", 10000)], [])

    assert overview.cash_balance == Decimal("9900")
    assert overview.total_current_value == Decimal("10000")
    assert overview.unrealized_gain == Decimal("0")
    assert overview.unrealized_gain_percent == Decimal("0")


def test_gain_matches_sum_of_holding_gains():
    assets = [make_asset(1, "AAA"), make_asset(2, "BBB")]
    txs = [
        make_tx(1, "buy", 2, 50, asset_id=1, on=date(2024, 1, 1)),
        make_tx(2, "buy", 1, 100, asset_id=2, on=date(2024, 1, 1)),
        make_tx(3, "buy", 1, 80, asset_id=1, on=date(2024, 2, 1)),
        make_tx(4, "sell", 1, 70, asset_id=2, on=date(2024, 2, 1)),
    ]
    holdings = compute_holdings(txs, assets)
    overview = compute_overview(holdings, [make_cash(1, "deposit", 5000)], [])

    assert overview.unrealized_gain == sum(h.unrealized_pl for h in holdings)
    assert overview.unrealized_gain == overview.holdings_value - overview.total_cost_basis


def test_empty_portfolio_is_all_zero():
    overview = compute_overview([], [], [])

    assert overview.total_current_value == Decimal("0")
    assert overview.unrealized_gain == Decimal("0")
    assert overview.unrealized_gain_percent == Decimal("0")
    assert overview.total_dividend_income == Decimal("0")


def test_overview_exposes_both_invested_figures():
    txs = [
        make_tx(1, "buy", 10, 100, fees=1, on=date(2024, 1, 1)),
        make_tx(2, "buy", 10, 120, fees=1, on=date(2024, 2, 1)),
        make_tx(3, "sell", 5, 150, on=date(2024, 3, 1)),
    ]
    holdings = compute_holdings(txs, [make_asset()])
    cash = [make_cash(1, "deposit", 3000), make_cash(2, "withdraw", 500)]
    overview = compute_overview(holdings, cash, [])

    assert overview.net_cash_contributed == Decimal("2500")
    assert overview.total_cost_basis == Decimal("1651.5")
    assert overview.holdings_value == Decimal("2250")
    assert overview.cash_balance == Decimal("848.5")
    assert overview.total_current_value == Decimal("3098.5")
    assert overview.unrealized_gain == Decimal("598.5")
    assert overview.holdings_count == 1


def test_dividend_income_sums_all_time():
    dividends = [
        make_dividend(1, "12.50", on=date(2020, 5, 1)),
        make_dividend(2, "7.25", on=date(2024, 5, 1)),
    ]
    overview = compute_overview([], [], dividends)
    assert overview.total_dividend_income == Decimal("19.75")


def test_dividends_on_unknown_assets_skipped_when_assets_given():
    dividends = [make_dividend(1, 10, asset_id=1), make_dividend(2, 99, asset_id=42)]

    assert compute_overview([], [], dividends, [make_asset(id=1)]).total_dividend_income == Decimal("10")
    assert compute_overview([], [], dividends).total_dividend_income == Decimal("109")


def test_malformed_cash_movements_are_skipped():
    cash = [
        make_cash(1, "deposit", 100),
        make_cash(2, "transfer", 50),
        make_cash(3, "withdraw", -20),
    ]
    assert compute_overview([], cash, []).net_cash_contributed == Decimal("100")


# =============================================================================
# Allocation
# =============================================================================

def test_allocation_groups_by_category():
    holdings = [
        _holding(1, "stock", 200),
        _holding(2, "etf", 500),
        _holding(3, "stock", 300),
    ]
    slices = compute_allocation(holdings)

    assert [(s.category, s.value, s.percentage) for s in slices] == [
        ("etf", Decimal("500"), Decimal("50")),
        ("stock", Decimal("500"), Decimal("50")),
    ]


def test_allocation_of_thirds_sums_to_hundred_before_rounding():
    holdings = [_holding(1, "stock", 1), _holding(2, "etf", 1), _holding(3, "crypto", 1)]
    slices = compute_allocation(holdings)

    assert abs(sum(s.percentage for s in slices) - Decimal("100")) < Decimal("1e-20")
    assert [s.display_percentage for s in slices] == [Decimal("33.33")] * 3


def test_allocation_empty_when_nothing_held():
    assert compute_allocation([]) == []


def test_allocation_omits_zero_value_categories():
    holdings = [_holding(1, "stock", 100), _holding(2, "bond", 0)]
    slices = compute_allocation(holdings)
    assert [s.category for s in slices] == ["stock"]
    assert slices[0].percentage == Decimal("100")


# =============================================================================
# Display rounding
# =============================================================================

def test_round_display_is_half_up():
    assert round_display(Decimal("2.345")) == Decimal("2.35")
    assert round_display(Decimal("2.344")) == Decimal("2.34")
    assert round_display(Decimal("-2.345")) == Decimal("-2.35")
    assert round_display(Decimal("0.5"), places=0) == Decimal("1")


def test_round_display_handles_missing_values():
    assert round_display(None) == Decimal("0.00")
    assert round_display("not a number") == Decimal("0.00")
    assert round_display(1.005) == Decimal("1.01")
