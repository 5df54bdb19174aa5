"""
Repositories package for ManualFolio.
Provides the data access layer; every operation is scoped to a user id.
"""

from repositories.validation import OversellError
from repositories.user_repository import UserRepository
from repositories.asset_repository import AssetRepository
from repositories.transaction_repository import TransactionRepository
from repositories.dividend_repository import DividendRepository
from repositories.cash_movement_repository import CashMovementRepository
from repositories.price_repository import PriceRepository
from repositories.snapshot_repository import PortfolioSnapshotRepository

__all__ = [
    'OversellError',
    'UserRepository',
    'AssetRepository',
    'TransactionRepository',
    'DividendRepository',
    'CashMovementRepository',
    'PriceRepository',
    'PortfolioSnapshotRepository',
]
