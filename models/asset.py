"""
Asset model - represents an instrument the user tracks.
"""

from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

ASSET_CATEGORIES = ("stock", "etf", "crypto", "bond", "fund", "cash")

CATEGORY_DISPLAY_NAMES = {
    "stock": "Stocks",
    "etf": "ETFs",
    "crypto": "Crypto",
    "bond": "Bonds",
    "fund": "Funds",
    "cash": "Cash",
}


class Asset(SQLModel, table=True):
    """Represents a stock/ETF/crypto/bond/fund position owned by a user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, ondelete="CASCADE")
    ticker: str = Field(index=True, max_length=20)  # e.g., "VWCE", "BTC"
    name: str = Field(max_length=100)
    category: str = Field(max_length=20)  # one of ASSET_CATEGORIES
    isin: Optional[str] = Field(default=None, max_length=12)
    sector: Optional[str] = Field(default=None, max_length=50)
    region: Optional[str] = Field(default=None, max_length=50)
    currency: str = Field(default="USD", max_length=3)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
