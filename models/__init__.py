"""
Database models for ManualFolio.
All SQLModel table definitions are centralized here.
"""

from models.user import User
from models.asset import Asset, ASSET_CATEGORIES, CATEGORY_DISPLAY_NAMES
from models.transaction import Transaction, TRANSACTION_TYPES
from models.dividend import Dividend
from models.cash_movement import CashMovement, MOVEMENT_TYPES
from models.price import Price
from models.portfolio_snapshot import PortfolioSnapshot

__all__ = [
    'User',
    'Asset',
    'Transaction',
    'Dividend',
    'CashMovement',
    'Price',
    'PortfolioSnapshot',
    'ASSET_CATEGORIES',
    'CATEGORY_DISPLAY_NAMES',
    'TRANSACTION_TYPES',
    'MOVEMENT_TYPES',
]
