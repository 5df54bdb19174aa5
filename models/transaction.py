"""
Transaction model - represents a buy/sell trade for an asset.
"""

from typing import Optional
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlmodel import SQLModel, Field

TRANSACTION_TYPES = ("buy", "sell")


class Transaction(SQLModel, table=True):
    """Represents a buy/sell transaction for an asset."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    asset_id: int = Field(foreign_key="asset.id", index=True, ondelete="CASCADE")
    transaction_date: date = Field(index=True)
    transaction_type: str  # "buy" or "sell"
    quantity: Decimal = Field(max_digits=21, decimal_places=6)
    unit_price: Decimal = Field(max_digits=17, decimal_places=2)  # Price per unit at trade time
    fees: Decimal = Field(default=Decimal("0"), max_digits=17, decimal_places=2)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
