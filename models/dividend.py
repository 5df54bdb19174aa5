"""
Dividend model - cash received attributable to an asset.
"""

from typing import Optional
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlmodel import SQLModel, Field


class Dividend(SQLModel, table=True):
    """A dividend or distribution payment."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    asset_id: int = Field(foreign_key="asset.id", index=True, ondelete="CASCADE")
    payment_date: date = Field(index=True)
    amount: Decimal = Field(max_digits=17, decimal_places=2)
    currency: str = Field(default="USD", max_length=3)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
