"""
CashMovement Repository - data access layer for deposits and withdrawals.
"""

import logging
from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from db_engine import get_engine
from models import CashMovement, MOVEMENT_TYPES
from repositories.validation import require_choice, require_decimal

logger = logging.getLogger(__name__)


class CashMovementRepository:
    """Repository for CashMovement CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        movement_type: str,
        amount,
        movement_date: date,
        currency: str = "USD",
        session: Optional[Session] = None
    ) -> CashMovement:
        """
        Record a deposit or withdrawal.

        Args:
            user_id: Owning user ID
            movement_type: 'deposit' or 'withdraw'
            amount: Amount moved (positive)
            movement_date: Date of the movement
            currency: ISO currency code
            session: Optional existing session for transaction reuse

        Returns:
            Created CashMovement object
        """
        movement_type = require_choice(movement_type, MOVEMENT_TYPES, "movement_type")
        amount = require_decimal(amount, "amount")

        def _create_movement(sess: Session) -> CashMovement:
            movement = CashMovement(
                user_id=user_id,
                movement_type=movement_type,
                amount=amount,
                movement_date=movement_date,
                currency=(currency or "USD").upper()
            )
            sess.add(movement)
            sess.commit()
            sess.refresh(movement)
            logger.info(f"Recorded {movement_type} of {amount} (user {user_id})")
            return movement

        if session is not None:
            return _create_movement(session)
        else:
            with Session(get_engine()) as session:
                return _create_movement(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[CashMovement]:
        """Retrieve all cash movements of a user, newest first."""
        def _get_all(sess: Session) -> List[CashMovement]:
            statement = select(CashMovement).where(
                CashMovement.user_id == user_id
            ).order_by(CashMovement.movement_date.desc(), CashMovement.id.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(movement_id: int, user_id: int, session: Optional[Session] = None) -> Optional[CashMovement]:
        """Retrieve a cash movement by ID, or None if not found for this user."""
        def _get_by_id(sess: Session) -> Optional[CashMovement]:
            movement = sess.get(CashMovement, movement_id)
            if movement is None or movement.user_id != user_id:
                return None
            return movement

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def update(
        movement_id: int,
        user_id: int,
        movement_type: Optional[str] = None,
        amount=None,
        movement_date: Optional[date] = None,
        currency: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Optional[CashMovement]:
        """
        Update an existing cash movement.
        Only updates fields that are provided (not None).
        """
        if movement_type is not None:
            movement_type = require_choice(movement_type, MOVEMENT_TYPES, "movement_type")
        if amount is not None:
            amount = require_decimal(amount, "amount")

        def _update(sess: Session) -> Optional[CashMovement]:
            movement = CashMovementRepository.get_by_id(movement_id, user_id, session=sess)
            if not movement:
                return None
            if movement_type is not None:
                movement.movement_type = movement_type
            if amount is not None:
                movement.amount = amount
            if movement_date is not None:
                movement.movement_date = movement_date
            if currency is not None:
                movement.currency = currency.upper()
            sess.add(movement)
            sess.commit()
            sess.refresh(movement)
            return movement

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(movement_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """Delete a cash movement. Returns True if it existed."""
        def _delete(sess: Session) -> bool:
            try:
                movement = CashMovementRepository.get_by_id(movement_id, user_id, session=sess)
                if movement:
                    sess.delete(movement)
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
