"""
Pytest configuration and shared fixtures for ManualFolio tests.

Usage:
    Engine tests build records with the make_* helpers (plain dataclasses,
    no database). Repository and service tests request the `db` fixture,
    which swaps in a fresh in-memory SQLite engine.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

import db_engine
from config import reload_settings


# =============================================================================
# Plain record stand-ins
# =============================================================================

@dataclass
class FakeAsset:
    id: int
    ticker: str
    name: str
    category: str


@dataclass
class FakeTransaction:
    id: int
    asset_id: int
    transaction_type: str
    quantity: Decimal
    unit_price: Decimal
    fees: Decimal
    transaction_date: date


@dataclass
class FakeDividend:
    id: int
    asset_id: int
    amount: Decimal
    payment_date: date


@dataclass
class FakeCashMovement:
    id: int
    movement_type: str
    amount: Decimal
    movement_date: date


@dataclass
class FakePrice:
    id: int
    asset_id: int
    close_price: Decimal
    price_date: date


def make_asset(id: int = 1, ticker: str = "ETF-A", category: str = "etf", name: Optional[str] = None) -> FakeAsset:
    return FakeAsset(id=id, ticker=ticker, name=name or ticker, category=category)


def make_tx(
    id: int,
    transaction_type: str,
    quantity,
    unit_price,
    fees=0,
    asset_id: int = 1,
    on: date = date(2024, 1, 1),
) -> FakeTransaction:
    return FakeTransaction(
        id=id,
        asset_id=asset_id,
        transaction_type=transaction_type,
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
        fees=Decimal(str(fees)),
        transaction_date=on,
    )


def make_dividend(id: int, amount, asset_id: int = 1, on: date = date(2024, 1, 1)) -> FakeDividend:
    return FakeDividend(id=id, asset_id=asset_id, amount=Decimal(str(amount)), payment_date=on)


def make_cash(id: int, movement_type: str, amount, on: date = date(2024, 1, 1)) -> FakeCashMovement:
    return FakeCashMovement(id=id, movement_type=movement_type, amount=Decimal(str(amount)), movement_date=on)


def make_price(id: int, close_price, asset_id: int = 1, on: date = date(2024, 1, 1)) -> FakePrice:
    return FakePrice(id=id, asset_id=asset_id, close_price=Decimal(str(close_price)), price_date=on)


# =============================================================================
# Database fixtures
# =============================================================================

@pytest.fixture
def db(monkeypatch):
    """Fresh in-memory database with all tables created."""
    monkeypatch.delenv("OVERSELL_POLICY", raising=False)
    reload_settings()
    engine = db_engine.create_db_engine("sqlite://")
    db_engine.set_engine(engine)
    db_engine.init_db()
    yield engine
    db_engine.set_engine(None)
    engine.dispose()
    reload_settings()


@pytest.fixture
def user(db):
    """A stored user; the hash is a placeholder since these tests do not log in."""
    from repositories import UserRepository
    return UserRepository.add(username="alice", password_hash="not-a-real-hash")


@pytest.fixture
def other_user(db):
    from repositories import UserRepository
    return UserRepository.add(username="bob", password_hash="not-a-real-hash")


@pytest.fixture
def reject_oversell(monkeypatch):
    """Switch the oversell policy to reject for one test."""
    monkeypatch.setenv("OVERSELL_POLICY", "reject")
    settings = reload_settings()
    yield settings
    monkeypatch.delenv("OVERSELL_POLICY", raising=False)
    reload_settings()
