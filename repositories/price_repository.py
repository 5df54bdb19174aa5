"""
Price Repository - manually entered price marks.
"""

import logging
from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from db_engine import get_engine
from models import Price
from repositories.asset_repository import AssetRepository
from repositories.validation import require_decimal

logger = logging.getLogger(__name__)


class PriceRepository:
    """Repository for Price CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        asset_id: int,
        price_date: date,
        close_price,
        session: Optional[Session] = None
    ) -> Price:
        """
        Record a price mark for an asset.

        Args:
            user_id: Owning user ID
            asset_id: Asset the price applies to (must belong to the user)
            price_date: Date of the price
            close_price: Price per unit (positive)
            session: Optional existing session for transaction reuse

        Returns:
            Created Price object
        """
        close_price = require_decimal(close_price, "close_price")

        def _create_price(sess: Session) -> Price:
            AssetRepository.require_owned(asset_id, user_id, sess)
            price = Price(
                user_id=user_id,
                asset_id=asset_id,
                price_date=price_date,
                close_price=close_price
            )
            sess.add(price)
            sess.commit()
            sess.refresh(price)
            logger.info(f"Recorded price {close_price} for asset {asset_id} on {price_date}")
            return price

        if session is not None:
            return _create_price(session)
        else:
            with Session(get_engine()) as session:
                return _create_price(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[Price]:
        """Retrieve all price marks of a user, newest first."""
        def _get_all(sess: Session) -> List[Price]:
            statement = select(Price).where(
                Price.user_id == user_id
            ).order_by(Price.price_date.desc(), Price.id.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_latest_by_asset(asset_id: int, user_id: int, session: Optional[Session] = None) -> Optional[Price]:
        """Get the most recent price mark for an asset."""
        def _get_latest(sess: Session) -> Optional[Price]:
            statement = select(Price).where(
                Price.asset_id == asset_id,
                Price.user_id == user_id
            ).order_by(Price.price_date.desc(), Price.id.desc()).limit(1)
            return sess.exec(statement).first()

        if session is not None:
            return _get_latest(session)
        else:
            with Session(get_engine()) as session:
                return _get_latest(session)

    @staticmethod
    def update(
        price_id: int,
        user_id: int,
        price_date: Optional[date] = None,
        close_price=None,
        session: Optional[Session] = None
    ) -> Optional[Price]:
        """Update a price mark. Returns None if not found for this user."""
        if close_price is not None:
            close_price = require_decimal(close_price, "close_price")

        def _update(sess: Session) -> Optional[Price]:
            price = sess.get(Price, price_id)
            if price is None or price.user_id != user_id:
                return None
            if price_date is not None:
                price.price_date = price_date
            if close_price is not None:
                price.close_price = close_price
            sess.add(price)
            sess.commit()
            sess.refresh(price)
            return price

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(price_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """Delete a price mark. Returns True if it existed."""
        def _delete(sess: Session) -> bool:
            try:
                price = sess.get(Price, price_id)
                if price is None or price.user_id != user_id:
                    return False
                sess.delete(price)
                sess.commit()
                return True
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
