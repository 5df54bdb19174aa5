"""
Transaction Repository - data access layer for Transaction model.
Optimized with optional session parameter for transaction reuse.
With the oversell policy set to "reject", no add, edit or delete may leave
an asset with a negative held quantity on any date.
"""

import logging
from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from config import get_settings
from db_engine import get_engine
from models import Transaction, TRANSACTION_TYPES
from repositories.asset_repository import AssetRepository
from repositories.validation import OversellError, require_choice, require_decimal

logger = logging.getLogger(__name__)


def _check_oversell(
    sess: Session,
    user_id: int,
    asset_id: int,
    since: date,
    candidate: Optional[Transaction] = None,
    exclude_id: Optional[int] = None
) -> None:
    """
    Replay the asset's trades and raise OversellError if the held quantity
    drops below zero on any date from since onward.

    Args:
        sess: Session the ledger is read from
        user_id: Owning user ID
        asset_id: Asset to replay
        since: First date that must not end short
        candidate: Unsaved or edited row to include in the replay
        exclude_id: Stored row left out of the replay (the row being edited or deleted)
    """
    from services.valuation import first_oversold_date, held_quantity

    statement = select(Transaction).where(
        Transaction.user_id == user_id,
        Transaction.asset_id == asset_id
    )
    trades = [tx for tx in sess.exec(statement).all() if tx.id != exclude_id]
    if candidate is not None:
        trades.append(candidate)

    short_on = first_oversold_date(trades, asset_id, since=since)
    if short_on is not None:
        shortfall = -held_quantity(trades, asset_id, as_of=short_on)
        logger.warning(
            f"Rejected change to asset {asset_id} (user {user_id}): {shortfall} short on {short_on}"
        )
        raise OversellError(
            f"Holdings would drop below zero on {short_on} ({shortfall} units short)"
        )


class TransactionRepository:
    """Repository for Transaction CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        asset_id: int,
        transaction_date: date,
        transaction_type: str,
        quantity,
        unit_price,
        fees=0,
        session: Optional[Session] = None
    ) -> Transaction:
        """
        Add a new transaction to the database.

        Args:
            user_id: Owning user ID
            asset_id: Asset ID for the transaction (must belong to the user)
            transaction_date: Date of the transaction
            transaction_type: 'buy' or 'sell'
            quantity: Number of shares/units (positive)
            unit_price: Price per unit (positive)
            fees: Commission paid (zero or positive)
            session: Optional existing session for transaction reuse

        Returns:
            Created Transaction object

        Raises:
            ValueError: On invalid input or an asset the user does not own
            OversellError: If the policy rejects sells beyond the held quantity
        """
        transaction_type = require_choice(transaction_type, TRANSACTION_TYPES, "transaction_type")
        quantity = require_decimal(quantity, "quantity")
        unit_price = require_decimal(unit_price, "unit_price")
        fees = require_decimal(fees, "fees", allow_zero=True)

        def _create_transaction(sess: Session) -> Transaction:
            AssetRepository.require_owned(asset_id, user_id, sess)
            transaction = Transaction(
                user_id=user_id,
                asset_id=asset_id,
                transaction_date=transaction_date,
                transaction_type=transaction_type,
                quantity=quantity,
                unit_price=unit_price,
                fees=fees
            )
            if transaction_type == "sell" and get_settings().rejects_oversell:
                _check_oversell(sess, user_id, asset_id, transaction_date, candidate=transaction)

            sess.add(transaction)
            sess.commit()
            sess.refresh(transaction)
            logger.info(
                f"Recorded {transaction_type} of {quantity} @ {unit_price} for asset {asset_id} (user {user_id})"
            )
            return transaction

        if session is not None:
            return _create_transaction(session)
        else:
            with Session(get_engine()) as session:
                return _create_transaction(session)

    @staticmethod
    def get_by_asset(asset_id: int, user_id: int, session: Optional[Session] = None) -> List[Transaction]:
        """
        Retrieve all transactions for a specific asset, oldest first.

        Args:
            asset_id: Asset ID to look up
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            List of Transaction objects
        """
        def _get_by_asset(sess: Session) -> List[Transaction]:
            statement = select(Transaction).where(
                Transaction.asset_id == asset_id,
                Transaction.user_id == user_id
            ).order_by(Transaction.transaction_date, Transaction.id)
            results = sess.exec(statement)
            return list(results.all())

        if session is not None:
            return _get_by_asset(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_asset(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[Transaction]:
        """
        Retrieve all transactions of a user, newest first.

        Args:
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            List of all Transaction objects
        """
        def _get_all(sess: Session) -> List[Transaction]:
            statement = select(Transaction).where(
                Transaction.user_id == user_id
            ).order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            results = sess.exec(statement)
            return list(results.all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(transaction_id: int, user_id: int, session: Optional[Session] = None) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Args:
            transaction_id: Transaction ID to look up
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            Transaction object or None if not found
        """
        def _get_by_id(sess: Session) -> Optional[Transaction]:
            transaction = sess.get(Transaction, transaction_id)
            if transaction is None or transaction.user_id != user_id:
                return None
            return transaction

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def update(
        transaction_id: int,
        user_id: int,
        asset_id: Optional[int] = None,
        transaction_date: Optional[date] = None,
        transaction_type: Optional[str] = None,
        quantity=None,
        unit_price=None,
        fees=None,
        session: Optional[Session] = None
    ) -> Optional[Transaction]:
        """
        Update an existing transaction.
        Only updates fields that are provided (not None).

        Args:
            transaction_id: Transaction ID to update
            user_id: Owning user ID
            asset_id: New asset (must belong to the user)
            transaction_date: New transaction date (optional)
            transaction_type: New transaction type (optional)
            quantity: New quantity (optional)
            unit_price: New unit price (optional)
            fees: New fees (optional)
            session: Optional existing session for transaction reuse

        Returns:
            Updated Transaction object or None if not found

        Raises:
            ValueError: On invalid input or an asset the user does not own
            OversellError: If the edit leaves either affected asset short on some date
        """
        if transaction_type is not None:
            transaction_type = require_choice(transaction_type, TRANSACTION_TYPES, "transaction_type")
        if quantity is not None:
            quantity = require_decimal(quantity, "quantity")
        if unit_price is not None:
            unit_price = require_decimal(unit_price, "unit_price")
        if fees is not None:
            fees = require_decimal(fees, "fees", allow_zero=True)

        def _update(sess: Session) -> Optional[Transaction]:
            transaction = TransactionRepository.get_by_id(transaction_id, user_id, session=sess)
            if not transaction:
                return None
            original_asset_id = transaction.asset_id
            original_date = transaction.transaction_date

            if asset_id is not None:
                AssetRepository.require_owned(asset_id, user_id, sess)
                transaction.asset_id = asset_id
            if transaction_date is not None:
                transaction.transaction_date = transaction_date
            if transaction_type is not None:
                transaction.transaction_type = transaction_type
            if quantity is not None:
                transaction.quantity = quantity
            if unit_price is not None:
                transaction.unit_price = unit_price
            if fees is not None:
                transaction.fees = fees

            if get_settings().rejects_oversell:
                try:
                    if transaction.asset_id == original_asset_id:
                        since = min(original_date, transaction.transaction_date)
                    else:
                        since = transaction.transaction_date
                        _check_oversell(sess, user_id, original_asset_id, original_date, exclude_id=transaction.id)
                    _check_oversell(
                        sess, user_id, transaction.asset_id, since,
                        candidate=transaction, exclude_id=transaction.id
                    )
                except OversellError:
                    sess.rollback()
                    raise

            sess.add(transaction)
            sess.commit()
            sess.refresh(transaction)
            return transaction

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(transaction_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete a transaction by its ID.

        Args:
            transaction_id: Transaction ID to delete
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            True if successful, False otherwise

        Raises:
            OversellError: If removing a buy leaves later sells uncovered
        """
        def _delete(sess: Session) -> bool:
            try:
                transaction = TransactionRepository.get_by_id(transaction_id, user_id, session=sess)
                if transaction:
                    if transaction.transaction_type == "buy" and get_settings().rejects_oversell:
                        _check_oversell(
                            sess, user_id, transaction.asset_id, transaction.transaction_date,
                            exclude_id=transaction.id
                        )
                    sess.delete(transaction)
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
