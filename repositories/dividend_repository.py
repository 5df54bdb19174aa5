"""
Dividend Repository - data access layer for Dividend model.
"""

import logging
from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from db_engine import get_engine
from models import Dividend
from repositories.asset_repository import AssetRepository
from repositories.validation import require_decimal

logger = logging.getLogger(__name__)


class DividendRepository:
    """Repository for Dividend CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        asset_id: int,
        payment_date: date,
        amount,
        currency: str = "USD",
        notes: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Dividend:
        """
        Record a dividend payment.

        Args:
            user_id: Owning user ID
            asset_id: Paying asset (must belong to the user)
            payment_date: Date the cash was received
            amount: Amount received (positive)
            currency: ISO currency code
            notes: Optional free text
            session: Optional existing session for transaction reuse

        Returns:
            Created Dividend object
        """
        amount = require_decimal(amount, "amount")

        def _create_dividend(sess: Session) -> Dividend:
            AssetRepository.require_owned(asset_id, user_id, sess)
            dividend = Dividend(
                user_id=user_id,
                asset_id=asset_id,
                payment_date=payment_date,
                amount=amount,
                currency=(currency or "USD").upper(),
                notes=notes
            )
            sess.add(dividend)
            sess.commit()
            sess.refresh(dividend)
            logger.info(f"Recorded dividend of {amount} for asset {asset_id} (user {user_id})")
            return dividend

        if session is not None:
            return _create_dividend(session)
        else:
            with Session(get_engine()) as session:
                return _create_dividend(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[Dividend]:
        """Retrieve all dividends of a user, most recent payment first."""
        def _get_all(sess: Session) -> List[Dividend]:
            statement = select(Dividend).where(
                Dividend.user_id == user_id
            ).order_by(Dividend.payment_date.desc(), Dividend.id.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(dividend_id: int, user_id: int, session: Optional[Session] = None) -> Optional[Dividend]:
        """Retrieve a dividend by ID, or None if not found for this user."""
        def _get_by_id(sess: Session) -> Optional[Dividend]:
            dividend = sess.get(Dividend, dividend_id)
            if dividend is None or dividend.user_id != user_id:
                return None
            return dividend

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def update(
        dividend_id: int,
        user_id: int,
        asset_id: Optional[int] = None,
        payment_date: Optional[date] = None,
        amount=None,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Optional[Dividend]:
        """
        Update an existing dividend.
        Only updates fields that are provided (not None).

        Returns:
            Updated Dividend object or None if not found
        """
        if amount is not None:
            amount = require_decimal(amount, "amount")

        def _update(sess: Session) -> Optional[Dividend]:
            dividend = DividendRepository.get_by_id(dividend_id, user_id, session=sess)
            if not dividend:
                return None
            if asset_id is not None:
                AssetRepository.require_owned(asset_id, user_id, sess)
                dividend.asset_id = asset_id
            if payment_date is not None:
                dividend.payment_date = payment_date
            if amount is not None:
                dividend.amount = amount
            if currency is not None:
                dividend.currency = currency.upper()
            if notes is not None:
                dividend.notes = notes
            sess.add(dividend)
            sess.commit()
            sess.refresh(dividend)
            return dividend

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(dividend_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """Delete a dividend. Returns True if it existed."""
        def _delete(sess: Session) -> bool:
            try:
                dividend = DividendRepository.get_by_id(dividend_id, user_id, session=sess)
                if dividend:
                    sess.delete(dividend)
                    sess.commit()
                    return True
                return False
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
