from datetime import date
from decimal import Decimal

import pytest

from models import User
from repositories import (
    AssetRepository,
    CashMovementRepository,
    DividendRepository,
    OversellError,
    PortfolioSnapshotRepository,
    PriceRepository,
    TransactionRepository,
    UserRepository,
)


@pytest.fixture
def asset(user):
    return AssetRepository.add(user_id=user.id, ticker=" vwce ", name="FTSE All-World", category="ETF")


# =============================================================================
# Assets
# =============================================================================

def test_asset_is_normalized_on_add(asset):
    assert asset.ticker == "VWCE"
    assert asset.category == "etf"
    assert asset.currency == "USD"


def test_asset_requires_known_category(user):
    with pytest.raises(ValueError):
        AssetRepository.add(user_id=user.id, ticker="X", name="X", category="art")


def test_asset_requires_ticker_and_name(user):
    with pytest.raises(ValueError):
        AssetRepository.add(user_id=user.id, ticker="  ", name="X", category="stock")


def test_assets_are_scoped_to_their_owner(asset, user, other_user):
    assert [a.id for a in AssetRepository.get_all(user.id)] == [asset.id]
    assert AssetRepository.get_all(other_user.id) == []
    assert AssetRepository.get_by_id(asset.id, other_user.id) is None
    assert AssetRepository.update(asset.id, other_user.id, name="Hijacked") is None
    assert AssetRepository.delete(asset.id, other_user.id) is False


def test_find_by_ticker_is_case_insensitive(asset, user):
    assert AssetRepository.find_by_ticker(user.id, "vwce").id == asset.id


def test_delete_asset_removes_its_records(asset, user):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 100)
    DividendRepository.add(user.id, asset.id, date(2024, 2, 1), 3)
    PriceRepository.add(user.id, asset.id, date(2024, 3, 1), 110)

    assert AssetRepository.delete(asset.id, user.id) is True
    assert TransactionRepository.get_all(user.id) == []
    assert DividendRepository.get_all(user.id) == []
    assert PriceRepository.get_all(user.id) == []


def test_asset_update_normalizes_and_validates(asset, user, other_user):
    updated = AssetRepository.update(asset.id, user.id, ticker=" iwda ", category="Stock", currency="eur")
    assert (updated.ticker, updated.category, updated.currency) == ("IWDA", "stock", "EUR")
    assert updated.name == "FTSE All-World"

    with pytest.raises(ValueError):
        AssetRepository.update(asset.id, user.id, category="art")
    assert AssetRepository.update(asset.id, other_user.id, name="Hijacked") is None
    assert AssetRepository.get_by_id(asset.id, user.id).category == "stock"


# =============================================================================
# Transactions
# =============================================================================

def test_transaction_round_trips_decimals(asset, user):
    tx = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "BUY", "1.5", "100.25", "0.99")
    stored = TransactionRepository.get_by_id(tx.id, user.id)

    assert stored.transaction_type == "buy"
    assert stored.quantity == Decimal("1.5")
    assert stored.unit_price == Decimal("100.25")
    assert stored.fees == Decimal("0.99")


@pytest.mark.parametrize("quantity,unit_price,fees", [
    (0, 100, 0),
    (-1, 100, 0),
    (1, 0, 0),
    (1, 100, -1),
    ("abc", 100, 0),
])
def test_transaction_rejects_invalid_numbers(asset, user, quantity, unit_price, fees):
    with pytest.raises(ValueError):
        TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", quantity, unit_price, fees)
    assert TransactionRepository.get_all(user.id) == []


def test_transaction_rejects_unknown_type(asset, user):
    with pytest.raises(ValueError):
        TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "transfer", 1, 1)


def test_transaction_on_foreign_asset_is_refused(asset, other_user):
    with pytest.raises(ValueError):
        TransactionRepository.add(other_user.id, asset.id, date(2024, 1, 1), "buy", 1, 1)


def test_transactions_listed_newest_first(asset, user):
    first = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 10)
    second = TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "buy", 1, 10)

    assert [t.id for t in TransactionRepository.get_all(user.id)] == [second.id, first.id]
    assert [t.id for t in TransactionRepository.get_by_asset(asset.id, user.id)] == [first.id, second.id]


def test_oversell_is_stored_under_clamp_policy(asset, user):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 8, 10)
    assert len(TransactionRepository.get_all(user.id)) == 2


def test_oversell_is_refused_under_reject_policy(asset, user, reject_oversell):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)

    with pytest.raises(OversellError):
        TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 8, 10)
    # a sell dated before the buy has nothing to sell
    with pytest.raises(OversellError):
        TransactionRepository.add(user.id, asset.id, date(2023, 12, 1), "sell", 1, 10)

    TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 5, 10)
    assert len(TransactionRepository.get_all(user.id)) == 2


def test_update_rechecks_oversell_under_reject_policy(asset, user, reject_oversell):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    sell = TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 3, 10)

    with pytest.raises(OversellError):
        TransactionRepository.update(sell.id, user.id, quantity=6)

    assert TransactionRepository.get_by_id(sell.id, user.id).quantity == Decimal("3")
    updated = TransactionRepository.update(sell.id, user.id, quantity=5)
    assert updated.quantity == Decimal("5")


def test_update_and_delete_transaction(asset, user, other_user):
    tx = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 10)

    assert TransactionRepository.update(tx.id, user.id, unit_price="12.5").unit_price == Decimal("12.5")
    assert TransactionRepository.delete(tx.id, other_user.id) is False
    assert TransactionRepository.delete(tx.id, user.id) is True
    assert TransactionRepository.get_by_id(tx.id, user.id) is None


def test_backdated_sell_cannot_uncover_a_later_sell(asset, user, reject_oversell):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 10, 100)
    TransactionRepository.add(user.id, asset.id, date(2024, 3, 1), "sell", 10, 100)

    # 5 are still held on Feb 1, but the March sell would end up 5 short
    with pytest.raises(OversellError):
        TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 5, 100)
    assert len(TransactionRepository.get_all(user.id)) == 2


def test_shrinking_a_buy_below_later_sells_is_refused(asset, user, reject_oversell):
    buy = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 3, 10)

    with pytest.raises(OversellError):
        TransactionRepository.update(buy.id, user.id, quantity=2)
    with pytest.raises(OversellError):
        TransactionRepository.update(buy.id, user.id, transaction_type="sell")
    with pytest.raises(OversellError):
        TransactionRepository.update(buy.id, user.id, transaction_date=date(2024, 3, 1))

    stored = TransactionRepository.get_by_id(buy.id, user.id)
    assert (stored.transaction_type, stored.quantity) == ("buy", Decimal("5"))
    assert stored.transaction_date == date(2024, 1, 1)


def test_moving_a_buy_to_another_asset_rechecks_the_old_one(asset, user, reject_oversell):
    other = AssetRepository.add(user_id=user.id, ticker="BTC", name="Bitcoin", category="crypto")
    buy = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 3, 10)

    with pytest.raises(OversellError):
        TransactionRepository.update(buy.id, user.id, asset_id=other.id)
    assert TransactionRepository.get_by_id(buy.id, user.id).asset_id == asset.id
    assert TransactionRepository.get_by_asset(other.id, user.id) == []


def test_deleting_a_covering_buy_is_refused_under_reject_policy(asset, user, reject_oversell):
    buy = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    sell = TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 3, 10)

    with pytest.raises(OversellError):
        TransactionRepository.delete(buy.id, user.id)
    assert TransactionRepository.get_by_id(buy.id, user.id) is not None

    assert TransactionRepository.delete(sell.id, user.id) is True
    assert TransactionRepository.delete(buy.id, user.id) is True


def test_deleting_a_covering_buy_is_allowed_under_clamp_policy(asset, user):
    buy = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 5, 10)
    TransactionRepository.add(user.id, asset.id, date(2024, 2, 1), "sell", 3, 10)

    assert TransactionRepository.delete(buy.id, user.id) is True
    assert len(TransactionRepository.get_all(user.id)) == 1


def test_edit_can_change_type_and_asset(asset, user):
    other = AssetRepository.add(user_id=user.id, ticker="BTC", name="Bitcoin", category="crypto")
    tx = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 10)

    updated = TransactionRepository.update(tx.id, user.id, asset_id=other.id, transaction_type="sell")
    assert (updated.asset_id, updated.transaction_type) == (other.id, "sell")


# =============================================================================
# Dividends, cash movements, price marks
# =============================================================================

def test_dividend_crud(asset, user):
    dividend = DividendRepository.add(user.id, asset.id, date(2024, 3, 1), "4.20", currency="eur")
    assert dividend.currency == "EUR"

    updated = DividendRepository.update(dividend.id, user.id, amount="5")
    assert updated.amount == Decimal("5")
    assert DividendRepository.delete(dividend.id, user.id) is True
    assert DividendRepository.get_all(user.id) == []


def test_dividend_amount_must_be_positive(asset, user):
    with pytest.raises(ValueError):
        DividendRepository.add(user.id, asset.id, date(2024, 3, 1), 0)


def test_cash_movements_scoped_and_validated(user, other_user):
    CashMovementRepository.add(user.id, "Deposit", 1000, date(2024, 1, 1))

    with pytest.raises(ValueError):
        CashMovementRepository.add(user.id, "loan", 10, date(2024, 1, 1))
    with pytest.raises(ValueError):
        CashMovementRepository.add(user.id, "withdraw", -10, date(2024, 1, 1))

    movements = CashMovementRepository.get_all(user.id)
    assert [m.movement_type for m in movements] == ["deposit"]
    assert CashMovementRepository.get_all(other_user.id) == []


def test_latest_price_mark(asset, user):
    PriceRepository.add(user.id, asset.id, date(2024, 1, 1), 100)
    latest = PriceRepository.add(user.id, asset.id, date(2024, 2, 1), 105)
    PriceRepository.add(user.id, asset.id, date(2023, 12, 1), 90)

    assert PriceRepository.get_latest_by_asset(asset.id, user.id).id == latest.id


def test_cash_movement_update_and_delete(user, other_user):
    movement = CashMovementRepository.add(user.id, "deposit", 1000, date(2024, 1, 1))

    assert CashMovementRepository.update(movement.id, other_user.id, amount=1) is None
    updated = CashMovementRepository.update(
        movement.id, user.id, movement_type="Withdraw", amount="250.50", movement_date=date(2024, 2, 1)
    )
    assert (updated.movement_type, updated.amount) == ("withdraw", Decimal("250.50"))
    assert updated.movement_date == date(2024, 2, 1)

    with pytest.raises(ValueError):
        CashMovementRepository.update(movement.id, user.id, amount=0)

    assert CashMovementRepository.delete(movement.id, other_user.id) is False
    assert CashMovementRepository.delete(movement.id, user.id) is True
    assert CashMovementRepository.get_all(user.id) == []


def test_price_mark_update_and_delete(asset, user, other_user):
    mark = PriceRepository.add(user.id, asset.id, date(2024, 1, 1), 100)

    assert PriceRepository.update(mark.id, other_user.id, close_price=1) is None
    updated = PriceRepository.update(mark.id, user.id, price_date=date(2024, 1, 2), close_price="101.25")
    assert (updated.price_date, updated.close_price) == (date(2024, 1, 2), Decimal("101.25"))

    with pytest.raises(ValueError):
        PriceRepository.update(mark.id, user.id, close_price=-1)

    assert PriceRepository.delete(mark.id, other_user.id) is False
    assert PriceRepository.delete(mark.id, user.id) is True
    assert PriceRepository.get_latest_by_asset(asset.id, user.id) is None


# =============================================================================
# Snapshots and users
# =============================================================================

def test_snapshot_stores_category_values(user):
    snapshot = PortfolioSnapshotRepository.add(
        user_id=user.id,
        year=2024,
        month=5,
        total_value=Decimal("1500"),
        total_cost_basis=Decimal("1200"),
        total_pl=Decimal("300"),
        total_pl_percent=Decimal("25"),
        category_values={"stock": Decimal("1000.50"), "etf": Decimal("499.50")},
    )
    stored = PortfolioSnapshotRepository.get_all(user.id)[0]

    assert stored.id == snapshot.id
    assert PortfolioSnapshotRepository.category_values(stored) == {
        "etf": Decimal("499.50"),
        "stock": Decimal("1000.50"),
    }


def test_snapshot_month_is_validated(user):
    with pytest.raises(ValueError):
        PortfolioSnapshotRepository.add(
            user_id=user.id, year=2024, month=13,
            total_value=0, total_cost_basis=0, total_pl=0, total_pl_percent=0,
            category_values={},
        )


def test_username_lookup_and_portfolio_name(user):
    assert UserRepository.get_by_username("alice").id == user.id
    assert UserRepository.get_by_username("nobody") is None
    assert UserRepository.update_portfolio_name(user.id, "Retirement").portfolio_name == "Retirement"


def test_deleting_user_removes_everything_it_owns(asset, user, other_user):
    TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 10)
    DividendRepository.add(user.id, asset.id, date(2024, 2, 1), 1)
    CashMovementRepository.add(user.id, "deposit", 100, date(2024, 1, 1))
    other_asset = AssetRepository.add(user_id=other_user.id, ticker="BTC", name="Bitcoin", category="crypto")

    assert UserRepository.delete(user.id) is True

    assert UserRepository.get_by_id(user.id) is None
    assert AssetRepository.get_all(user.id) == []
    assert TransactionRepository.get_all(user.id) == []
    assert CashMovementRepository.get_all(user.id) == []
    assert [a.id for a in AssetRepository.get_all(other_user.id)] == [other_asset.id]


def test_created_at_is_timezone_aware(asset, user):
    assert User(username="carol", password_hash="x").created_at.tzinfo is not None
    tx = TransactionRepository.add(user.id, asset.id, date(2024, 1, 1), "buy", 1, 10)
    assert tx.created_at is not None
