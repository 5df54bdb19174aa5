"""
CashMovement model - deposits and withdrawals of capital.
"""

from typing import Optional
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlmodel import SQLModel, Field

MOVEMENT_TYPES = ("deposit", "withdraw")


class CashMovement(SQLModel, table=True):
    """A capital flow independent of any asset."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    movement_type: str  # "deposit" or "withdraw"
    amount: Decimal = Field(max_digits=17, decimal_places=2)
    movement_date: date = Field(index=True)
    currency: str = Field(default="USD", max_length=3)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
