"""
PortfolioSnapshot model - monthly record of the computed portfolio overview.
"""

from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal
from sqlmodel import SQLModel, Field


class PortfolioSnapshot(SQLModel, table=True):
    """
    Persisted copy of the overview for a given month.
    Category breakdown is kept as a JSON object keyed by category.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    year: int = Field(index=True)
    month: int  # 1-12
    total_value: Decimal = Field(max_digits=17, decimal_places=2)
    total_cost_basis: Decimal = Field(max_digits=17, decimal_places=2)
    total_pl: Decimal = Field(max_digits=17, decimal_places=2)
    total_pl_percent: Decimal = Field(max_digits=9, decimal_places=2)
    category_values: str = Field(default="{}")  # JSON: {"etf": "1234.50", ...}
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
