"""
PortfolioSnapshot Repository - monthly overview snapshots.
"""

import json
import logging
from typing import Dict, Optional, List
from decimal import Decimal
from sqlmodel import Session, select

from db_engine import get_engine
from models import PortfolioSnapshot

logger = logging.getLogger(__name__)


class PortfolioSnapshotRepository:
    """Repository for PortfolioSnapshot CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        year: int,
        month: int,
        total_value: Decimal,
        total_cost_basis: Decimal,
        total_pl: Decimal,
        total_pl_percent: Decimal,
        category_values: Dict[str, Decimal],
        session: Optional[Session] = None
    ) -> PortfolioSnapshot:
        """
        Store a snapshot of the portfolio overview.

        Args:
            user_id: Owning user ID
            year: Snapshot year
            month: Snapshot month (1-12)
            total_value: Total current value
            total_cost_basis: Cost basis of held units
            total_pl: Unrealized gain
            total_pl_percent: Unrealized gain percent
            category_values: Current value per asset category
            session: Optional existing session for transaction reuse

        Returns:
            Created PortfolioSnapshot object
        """
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")

        def _create_snapshot(sess: Session) -> PortfolioSnapshot:
            snapshot = PortfolioSnapshot(
                user_id=user_id,
                year=year,
                month=month,
                total_value=total_value,
                total_cost_basis=total_cost_basis,
                total_pl=total_pl,
                total_pl_percent=total_pl_percent,
                category_values=json.dumps({k: str(v) for k, v in category_values.items()}, sort_keys=True)
            )
            sess.add(snapshot)
            sess.commit()
            sess.refresh(snapshot)
            logger.info(f"Stored snapshot {snapshot.id} for {year}-{month:02d} (user {user_id})")
            return snapshot

        if session is not None:
            return _create_snapshot(session)
        else:
            with Session(get_engine()) as session:
                return _create_snapshot(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[PortfolioSnapshot]:
        """Retrieve a user's snapshots, most recent month first."""
        def _get_all(sess: Session) -> List[PortfolioSnapshot]:
            statement = select(PortfolioSnapshot).where(
                PortfolioSnapshot.user_id == user_id
            ).order_by(PortfolioSnapshot.year.desc(), PortfolioSnapshot.month.desc(), PortfolioSnapshot.id.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def delete(snapshot_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """Delete a snapshot. Returns True if it existed."""
        def _delete(sess: Session) -> bool:
            try:
                snapshot = sess.get(PortfolioSnapshot, snapshot_id)
                if snapshot is None or snapshot.user_id != user_id:
                    return False
                sess.delete(snapshot)
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

    @staticmethod
    def category_values(snapshot: PortfolioSnapshot) -> Dict[str, Decimal]:
        """Decode the stored category breakdown."""
        raw = json.loads(snapshot.category_values or "{}")
        return {category: Decimal(value) for category, value in raw.items()}
