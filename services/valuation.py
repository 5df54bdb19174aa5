"""
Valuation engine for ManualFolio.
Turns a user's raw ledger records (transactions, dividends, cash movements,
price marks) into holdings, portfolio totals, allocation and a history timeline.

Every function here is a pure function of its inputs: no database access,
no session state. Records are read by attribute name, so SQLModel rows and
plain objects with the same fields both work. Numbers are coerced to Decimal
before any arithmetic.
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Tie-break between event kinds sharing a date and id
_KIND_ORDER = {"transaction": 0, "dividend": 1, "cash": 2}


@dataclass
class Holding:
    """Derived point-in-time position in one asset. Never persisted."""
    asset_id: int
    ticker: str
    name: str
    category: str
    quantity: Decimal
    average_cost: Decimal  # Fees included
    cost_basis: Decimal  # Cost attributable to the held units
    current_price: Decimal
    current_value: Decimal
    unrealized_pl: Decimal
    unrealized_pl_percent: Decimal
    price_date: Optional[date] = None  # Date of the price used for current_price


@dataclass
class PortfolioOverview:
    """Portfolio-wide totals for the dashboard."""
    net_cash_contributed: Decimal  # deposits - withdrawals
    total_cost_basis: Decimal  # sum of holding cost bases
    holdings_value: Decimal  # sum of holding current values
    cash_balance: Decimal  # uninvested cash
    total_current_value: Decimal  # holdings_value + cash_balance
    unrealized_gain: Decimal  # holdings_value - total_cost_basis
    unrealized_gain_percent: Decimal
    total_dividend_income: Decimal
    holdings_count: int = 0


@dataclass
class AllocationSlice:
    """Share of portfolio value held in one asset category."""
    category: str
    value: Decimal
    percentage: Decimal  # Unrounded

    @property
    def display_percentage(self) -> Decimal:
        return round_display(self.percentage)


@dataclass
class HistoryEvent:
    """One dated entry in the portfolio timeline."""
    event_date: date
    kind: str  # "transaction", "dividend" or "cash"
    entity_id: int
    event_type: str  # "buy", "sell", "dividend", "deposit", "withdraw"
    amount: Decimal  # Signed cash effect on the portfolio
    asset_id: Optional[int] = None
    ticker: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    description: str = ""


@dataclass
class ClosedPosition:
    """A buy/sell cycle of one asset whose held quantity returned to zero."""
    cycle_id: str
    asset_id: int
    ticker: str
    name: str
    quantity: Decimal
    average_buy_price: Decimal  # Fees included
    average_sell_price: Decimal
    total_cost: Decimal
    net_proceeds: Decimal  # Sell value minus sell fees
    realized_pl: Decimal
    realized_pl_percent: Decimal
    first_buy_date: date
    last_sell_date: date
    holding_period_days: int


@dataclass
class DividendSummary:
    """Dividend income figures relative to a reference date."""
    total: Decimal
    year_to_date: Decimal
    this_month: Decimal
    average_monthly: Decimal  # Over the trailing 12 months, per month with payments
    payments_count: int = 0


# ==================== Number helpers ====================

def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a number or numeric string to Decimal.
    Floats go through str() so 0.1 stays 0.1. Returns None when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    return result if result.is_finite() else None


def round_display(value: Any, places: int = 2) -> Decimal:
    """Round half-up for display. Unparseable values display as zero."""
    number = to_decimal(value)
    if number is None:
        number = ZERO
    return number.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, or 0 when whole is 0."""
    if whole == 0:
        return ZERO
    return part / whole * HUNDRED


def _id_key(record: Any) -> int:
    record_id = getattr(record, "id", None)
    return record_id if record_id is not None else 0


def _index_assets(assets: Iterable[Any]) -> Dict[int, Any]:
    return {asset.id: asset for asset in assets if getattr(asset, "id", None) is not None}


# ==================== Trade normalization ====================

@dataclass
class _Trade:
    """A transaction that passed validation, with numbers as Decimal."""
    record_id: int
    asset_id: int
    trade_date: date
    trade_type: str
    quantity: Decimal
    unit_price: Decimal
    fees: Decimal


def _normalize_trade(tx: Any) -> Optional[_Trade]:
    trade_type = str(getattr(tx, "transaction_type", "") or "").lower()
    quantity = to_decimal(getattr(tx, "quantity", None))
    unit_price = to_decimal(getattr(tx, "unit_price", None))
    fees = to_decimal(getattr(tx, "fees", None))
    if fees is None:
        fees = ZERO
    trade_date = getattr(tx, "transaction_date", None)

    if trade_type not in ("buy", "sell"):
        logger.debug(f"Skipping transaction {getattr(tx, 'id', None)}: unknown type {trade_type!r}")
        return None
    if quantity is None or quantity <= 0 or unit_price is None or unit_price <= 0 or fees < 0:
        logger.debug(f"Skipping transaction {getattr(tx, 'id', None)}: malformed amounts")
        return None
    if trade_date is None:
        logger.debug(f"Skipping transaction {getattr(tx, 'id', None)}: missing date")
        return None

    return _Trade(
        record_id=_id_key(tx),
        asset_id=getattr(tx, "asset_id", None),
        trade_date=trade_date,
        trade_type=trade_type,
        quantity=quantity,
        unit_price=unit_price,
        fees=fees,
    )


def _trades_by_asset(
    transactions: Iterable[Any],
    assets_by_id: Optional[Dict[int, Any]] = None
) -> Dict[int, List[_Trade]]:
    """Group valid trades per asset, each list in (date, id) order."""
    grouped: Dict[int, List[_Trade]] = defaultdict(list)
    for tx in transactions:
        trade = _normalize_trade(tx)
        if trade is None:
            continue
        if assets_by_id is not None and trade.asset_id not in assets_by_id:
            logger.debug(f"Skipping transaction {trade.record_id}: unknown asset {trade.asset_id}")
            continue
        grouped[trade.asset_id].append(trade)

    for trades in grouped.values():
        trades.sort(key=lambda t: (t.trade_date, t.record_id))
    return grouped


class _Position:
    """
    Running weighted-average-cost position.

    Quantity follows sum(buys) - sum(sells) and may go negative on bad data;
    units oversold are netted against later buys. Cost basis is zero whenever
    the quantity is not positive.
    """

    def __init__(self):
        self.quantity = ZERO
        self.cost_basis = ZERO
        self.average_cost = ZERO

    def buy(self, quantity: Decimal, unit_price: Decimal, fees: Decimal) -> None:
        cost = quantity * unit_price + fees
        previous = self.quantity
        self.quantity = previous + quantity

        if self.quantity <= 0:
            return
        if previous >= 0:
            self.cost_basis += cost
        else:
            # Only the units left after covering the deficit are held
            self.cost_basis = cost / quantity * self.quantity
        self.average_cost = self.cost_basis / self.quantity

    def sell(self, quantity: Decimal) -> None:
        self.quantity -= quantity
        if self.quantity <= 0:
            self.cost_basis = ZERO
            self.average_cost = ZERO
        else:
            self.cost_basis = self.average_cost * self.quantity

    @property
    def held(self) -> Decimal:
        return self.quantity if self.quantity > 0 else ZERO


def _latest_price_marks(prices: Iterable[Any]) -> Dict[int, Tuple[date, Decimal]]:
    """Most recent valid price mark per asset, by (price_date, id)."""
    latest: Dict[int, Tuple[date, int, Decimal]] = {}
    for mark in prices:
        close_price = to_decimal(getattr(mark, "close_price", None))
        mark_date = getattr(mark, "price_date", None)
        if close_price is None or close_price <= 0 or mark_date is None:
            continue
        asset_id = getattr(mark, "asset_id", None)
        key = (mark_date, _id_key(mark))
        current = latest.get(asset_id)
        if current is None or key >= current[:2]:
            latest[asset_id] = (mark_date, _id_key(mark), close_price)
    return {asset_id: (entry[0], entry[2]) for asset_id, entry in latest.items()}


# ==================== Engine operations ====================

def compute_holdings(
    transactions: Iterable[Any],
    assets: Iterable[Any],
    prices: Optional[Iterable[Any]] = None
) -> List[Holding]:
    """
    Compute current holdings with weighted-average cost.

    Args:
        transactions: Buy/sell records (any order)
        assets: Asset records the transactions reference
        prices: Optional manual price marks; a mark dated on or after the
            asset's last trade overrides the last trade price

    Returns:
        Holdings with a positive quantity, largest current value first
    """
    assets_by_id = _index_assets(assets)
    marks = _latest_price_marks(prices or [])
    holdings: List[Holding] = []

    for asset_id, trades in _trades_by_asset(transactions, assets_by_id).items():
        position = _Position()
        for trade in trades:
            if trade.trade_type == "buy":
                position.buy(trade.quantity, trade.unit_price, trade.fees)
            else:
                position.sell(trade.quantity)

        if position.held <= 0:
            continue

        last_trade = trades[-1]
        current_price = last_trade.unit_price
        price_date = last_trade.trade_date
        mark = marks.get(asset_id)
        if mark is not None and mark[0] >= price_date:
            price_date, current_price = mark

        asset = assets_by_id[asset_id]
        current_value = position.held * current_price
        unrealized_pl = current_value - position.cost_basis

        holdings.append(Holding(
            asset_id=asset_id,
            ticker=asset.ticker,
            name=asset.name,
            category=str(asset.category or "").lower(),
            quantity=position.held,
            average_cost=position.average_cost,
            cost_basis=position.cost_basis,
            current_price=current_price,
            current_value=current_value,
            unrealized_pl=unrealized_pl,
            unrealized_pl_percent=_percent(unrealized_pl, position.cost_basis),
            price_date=price_date,
        ))

    holdings.sort(key=lambda h: (-h.current_value, h.asset_id))
    return holdings


def held_quantity(
    transactions: Iterable[Any],
    asset_id: int,
    as_of: Optional[date] = None
) -> Decimal:
    """
    Net quantity bought minus sold for one asset, up to and including as_of.
    Not clamped: a negative result means the ledger is oversold.
    """
    total = ZERO
    for tx in transactions:
        trade = _normalize_trade(tx)
        if trade is None or trade.asset_id != asset_id:
            continue
        if as_of is not None and trade.trade_date > as_of:
            continue
        total += trade.quantity if trade.trade_type == "buy" else -trade.quantity
    return total


def first_oversold_date(
    transactions: Iterable[Any],
    asset_id: int,
    since: Optional[date] = None
) -> Optional[date]:
    """
    Earliest date, on or after since, whose end-of-day held quantity is negative.

    Trades on the same date are netted before the check, so their order
    within the day does not matter. Returns None when the ledger never
    goes short from since onward.
    """
    daily: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        trade = _normalize_trade(tx)
        if trade is None or trade.asset_id != asset_id:
            continue
        daily[trade.trade_date] += trade.quantity if trade.trade_type == "buy" else -trade.quantity

    running = ZERO
    for day in sorted(daily):
        running += daily[day]
        if running < 0 and (since is None or day >= since):
            return day
    return None


def compute_overview(
    holdings: Sequence[Holding],
    cash_movements: Iterable[Any],
    dividends: Iterable[Any],
    assets: Optional[Iterable[Any]] = None
) -> PortfolioOverview:
    """
    Compute portfolio totals.

    Both definitions of invested capital are exposed: net_cash_contributed
    (deposits minus withdrawals) and total_cost_basis (cost of held units).
    The difference between them is the uninvested cash balance.
    """
    net_cash = ZERO
    for movement in cash_movements:
        amount = to_decimal(getattr(movement, "amount", None))
        movement_type = str(getattr(movement, "movement_type", "") or "").lower()
        if amount is None or amount < 0:
            logger.debug(f"Skipping cash movement {getattr(movement, 'id', None)}: malformed amount")
            continue
        if movement_type == "deposit":
            net_cash += amount
        elif movement_type == "withdraw":
            net_cash -= amount
        else:
            logger.debug(f"Skipping cash movement {getattr(movement, 'id', None)}: unknown type {movement_type!r}")

    asset_ids = set(_index_assets(assets)) if assets is not None else None
    dividend_income = ZERO
    for dividend in dividends:
        if asset_ids is not None and getattr(dividend, "asset_id", None) not in asset_ids:
            continue
        amount = to_decimal(getattr(dividend, "amount", None))
        if amount is None:
            continue
        dividend_income += amount

    total_cost_basis = sum((h.cost_basis for h in holdings), ZERO)
    holdings_value = sum((h.current_value for h in holdings), ZERO)
    cash_balance = net_cash - total_cost_basis
    total_current_value = holdings_value + cash_balance
    # Uninvested cash is neither cost nor gain
    unrealized_gain = holdings_value - total_cost_basis

    return PortfolioOverview(
        net_cash_contributed=net_cash,
        total_cost_basis=total_cost_basis,
        holdings_value=holdings_value,
        cash_balance=cash_balance,
        total_current_value=total_current_value,
        unrealized_gain=unrealized_gain,
        unrealized_gain_percent=_percent(unrealized_gain, total_cost_basis),
        total_dividend_income=dividend_income,
        holdings_count=len(holdings),
    )


def compute_allocation(holdings: Sequence[Holding]) -> List[AllocationSlice]:
    """
    Group holdings by category and compute each category's share of value.

    Percentages come from unrounded sums; display_percentage rounds each
    slice on its own, so displayed shares may not add up to exactly 100.
    """
    values: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for holding in holdings:
        values[holding.category] += holding.current_value

    values = {category: value for category, value in values.items() if value > 0}
    total = sum(values.values(), ZERO)
    if total == 0:
        return []

    slices = [
        AllocationSlice(category=category, value=value, percentage=_percent(value, total))
        for category, value in values.items()
    ]
    slices.sort(key=lambda s: (-s.value, s.category))
    return slices


def compute_history(
    transactions: Iterable[Any],
    dividends: Iterable[Any],
    cash_movements: Iterable[Any],
    assets: Optional[Iterable[Any]] = None
) -> List[HistoryEvent]:
    """
    Merge all ledger records into one chronological timeline.
    Ordered by date, then record id, then kind.
    """
    assets_by_id = _index_assets(assets) if assets is not None else None
    events: List[HistoryEvent] = []

    def ticker_for(asset_id: Optional[int]) -> Optional[str]:
        if assets_by_id is None or asset_id not in assets_by_id:
            return None
        return assets_by_id[asset_id].ticker

    for tx in transactions:
        trade = _normalize_trade(tx)
        if trade is None:
            continue
        if assets_by_id is not None and trade.asset_id not in assets_by_id:
            continue
        gross = trade.quantity * trade.unit_price
        amount = -(gross + trade.fees) if trade.trade_type == "buy" else gross - trade.fees
        ticker = ticker_for(trade.asset_id)
        events.append(HistoryEvent(
            event_date=trade.trade_date,
            kind="transaction",
            entity_id=trade.record_id,
            event_type=trade.trade_type,
            amount=amount,
            asset_id=trade.asset_id,
            ticker=ticker,
            quantity=trade.quantity,
            unit_price=trade.unit_price,
            description=(
                f"{trade.trade_type.upper()} {trade.quantity.normalize():f} "
                f"{ticker or f'asset {trade.asset_id}'} @ {trade.unit_price}"
            ),
        ))

    for dividend in dividends:
        asset_id = getattr(dividend, "asset_id", None)
        amount = to_decimal(getattr(dividend, "amount", None))
        payment_date = getattr(dividend, "payment_date", None)
        if amount is None or payment_date is None:
            continue
        if assets_by_id is not None and asset_id not in assets_by_id:
            continue
        ticker = ticker_for(asset_id)
        events.append(HistoryEvent(
            event_date=payment_date,
            kind="dividend",
            entity_id=_id_key(dividend),
            event_type="dividend",
            amount=amount,
            asset_id=asset_id,
            ticker=ticker,
            description=f"Dividend {ticker}" if ticker else "Dividend",
        ))

    for movement in cash_movements:
        movement_type = str(getattr(movement, "movement_type", "") or "").lower()
        amount = to_decimal(getattr(movement, "amount", None))
        movement_date = getattr(movement, "movement_date", None)
        if movement_type not in ("deposit", "withdraw") or amount is None or amount < 0 or movement_date is None:
            logger.debug(f"Skipping cash movement {getattr(movement, 'id', None)} in history: malformed record")
            continue
        events.append(HistoryEvent(
            event_date=movement_date,
            kind="cash",
            entity_id=_id_key(movement),
            event_type=movement_type,
            amount=amount if movement_type == "deposit" else -amount,
            description=movement_type.capitalize(),
        ))

    events.sort(key=lambda e: (e.event_date, e.entity_id, _KIND_ORDER[e.kind]))
    return events


def compute_closed_positions(
    transactions: Iterable[Any],
    assets: Iterable[Any]
) -> List[ClosedPosition]:
    """
    Find completed buy/sell cycles.

    A cycle starts with a buy while nothing is held and closes when sells
    bring the held quantity back to zero. Sells with nothing held are ignored
    and the part of a sell above the held quantity is not counted.

    Returns:
        Closed positions, most recently closed first
    """
    assets_by_id = _index_assets(assets)
    closed: List[ClosedPosition] = []

    for asset_id, trades in _trades_by_asset(transactions, assets_by_id).items():
        asset = assets_by_id[asset_id]
        position = ZERO
        cycle_count = 0
        first_buy_date: Optional[date] = None
        bought = cost = sold = sell_value = sell_fees = ZERO

        for trade in trades:
            if trade.trade_type == "buy":
                if position <= 0:
                    cycle_count += 1
                    first_buy_date = trade.trade_date
                    position = ZERO
                    bought = cost = sold = sell_value = sell_fees = ZERO
                position += trade.quantity
                bought += trade.quantity
                cost += trade.quantity * trade.unit_price + trade.fees
                continue

            if position <= 0:
                logger.debug(f"Ignoring sell {trade.record_id}: nothing held in asset {asset_id}")
                continue

            closed_quantity = min(trade.quantity, position)
            sold += closed_quantity
            sell_value += closed_quantity * trade.unit_price
            sell_fees += trade.fees * closed_quantity / trade.quantity
            position -= closed_quantity

            if position > 0:
                continue

            net_proceeds = sell_value - sell_fees
            realized_pl = net_proceeds - cost
            closed.append(ClosedPosition(
                cycle_id=f"{asset_id}-{cycle_count}-{first_buy_date.isoformat()}",
                asset_id=asset_id,
                ticker=asset.ticker,
                name=asset.name,
                quantity=sold,
                average_buy_price=cost / bought,
                average_sell_price=sell_value / sold,
                total_cost=cost,
                net_proceeds=net_proceeds,
                realized_pl=realized_pl,
                realized_pl_percent=_percent(realized_pl, cost),
                first_buy_date=first_buy_date,
                last_sell_date=trade.trade_date,
                holding_period_days=(trade.trade_date - first_buy_date).days,
            ))

    closed.sort(key=lambda c: (c.last_sell_date, c.asset_id), reverse=True)
    return closed


def _months_before(as_of: date, months: int) -> date:
    month_index = as_of.year * 12 + (as_of.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(as_of.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def summarize_dividends(dividends: Iterable[Any], as_of: date) -> DividendSummary:
    """
    Summarize dividend income relative to as_of.

    The monthly average covers payments after the same day twelve months
    earlier, divided by the number of distinct months that had a payment.
    """
    window_start = _months_before(as_of, 12)
    total = ytd = this_month = window_total = ZERO
    window_months = set()
    count = 0

    for dividend in dividends:
        amount = to_decimal(getattr(dividend, "amount", None))
        payment_date = getattr(dividend, "payment_date", None)
        if amount is None or payment_date is None:
            continue
        count += 1
        total += amount
        if payment_date > as_of:
            continue
        if payment_date.year == as_of.year:
            ytd += amount
            if payment_date.month == as_of.month:
                this_month += amount
        if payment_date > window_start:
            window_total += amount
            window_months.add((payment_date.year, payment_date.month))

    average = window_total / len(window_months) if window_months else ZERO
    return DividendSummary(
        total=total,
        year_to_date=ytd,
        this_month=this_month,
        average_monthly=average,
        payments_count=count,
    )
