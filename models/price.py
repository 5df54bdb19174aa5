"""
Price model - a manually entered price mark for an asset.
"""

from typing import Optional
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlmodel import SQLModel, Field


class Price(SQLModel, table=True):
    """Closing price the user recorded for an asset on a given date."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    asset_id: int = Field(foreign_key="asset.id", index=True, ondelete="CASCADE")
    price_date: date = Field(index=True)
    close_price: Decimal = Field(max_digits=17, decimal_places=2)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
