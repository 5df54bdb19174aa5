"""
User Repository - data access layer for User model.
"""

import logging
from typing import Optional
from sqlmodel import Session, select

from db_engine import get_engine
from models import User, Asset, Transaction, Dividend, CashMovement, Price, PortfolioSnapshot

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for User CRUD operations."""

    @staticmethod
    def add(
        username: str,
        password_hash: str,
        portfolio_name: Optional[str] = None,
        session: Optional[Session] = None
    ) -> User:
        """
        Add a new user.

        Args:
            username: Unique login name
            password_hash: bcrypt hash of the password
            portfolio_name: Optional display name for the portfolio
            session: Optional existing session for transaction reuse

        Returns:
            Created User object
        """
        def _create_user(sess: Session) -> User:
            user = User(
                username=username,
                password_hash=password_hash,
                portfolio_name=portfolio_name
            )
            sess.add(user)
            sess.commit()
            sess.refresh(user)
            logger.info(f"Created user {user.id} ({username})")
            return user

        if session is not None:
            return _create_user(session)
        else:
            with Session(get_engine()) as session:
                return _create_user(session)

    @staticmethod
    def get_by_id(user_id: int, session: Optional[Session] = None) -> Optional[User]:
        """Retrieve a user by ID."""
        def _get_by_id(sess: Session) -> Optional[User]:
            return sess.get(User, user_id)

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def get_by_username(username: str, session: Optional[Session] = None) -> Optional[User]:
        """Retrieve a user by exact username."""
        def _get_by_username(sess: Session) -> Optional[User]:
            statement = select(User).where(User.username == username)
            return sess.exec(statement).first()

        if session is not None:
            return _get_by_username(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_username(session)

    @staticmethod
    def update_portfolio_name(
        user_id: int,
        portfolio_name: Optional[str],
        session: Optional[Session] = None
    ) -> Optional[User]:
        """Rename the user's portfolio. Returns None if the user does not exist."""
        def _update(sess: Session) -> Optional[User]:
            user = sess.get(User, user_id)
            if user:
                user.portfolio_name = portfolio_name
                sess.add(user)
                sess.commit()
                sess.refresh(user)
                return user
            return None

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(user_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete a user and every row it owns.
        Children are removed first so the cascade does not depend on the
        database enforcing foreign keys.

        Args:
            user_id: User ID to delete
            session: Optional existing session for transaction reuse

        Returns:
            True if the user existed and was deleted
        """
        def _delete(sess: Session) -> bool:
            try:
                user = sess.get(User, user_id)
                if not user:
                    return False
                for model in (Transaction, Dividend, Price, CashMovement, PortfolioSnapshot, Asset):
                    rows = sess.exec(select(model).where(model.user_id == user_id)).all()
                    for row in rows:
                        sess.delete(row)
                    sess.flush()
                sess.delete(user)
                sess.commit()
                logger.info(f"Deleted user {user_id} and all owned records")
                return True
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
