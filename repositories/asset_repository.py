"""
Asset Repository - data access layer for Asset model.
Every query is scoped to the owning user; rows of other users are invisible.
"""

import logging
from typing import Optional, List
from sqlmodel import Session, select

from db_engine import get_engine
from models import Asset, ASSET_CATEGORIES
from repositories.validation import require_choice

logger = logging.getLogger(__name__)


class AssetRepository:
    """Repository for Asset CRUD operations."""

    @staticmethod
    def add(
        user_id: int,
        ticker: str,
        name: str,
        category: str,
        isin: Optional[str] = None,
        sector: Optional[str] = None,
        region: Optional[str] = None,
        currency: str = "USD",
        notes: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Asset:
        """
        Add a new asset for a user.

        Args:
            user_id: Owning user ID
            ticker: Ticker symbol (stored upper case)
            name: Asset name
            category: One of stock, etf, crypto, bond, fund, cash
            isin: Optional ISIN code
            sector: Optional sector label
            region: Optional region label
            currency: ISO currency code (default: USD)
            notes: Optional free text
            session: Optional existing session for transaction reuse

        Returns:
            Created Asset object

        Raises:
            ValueError: If ticker or name is empty or the category is unknown
        """
        if not ticker or not ticker.strip() or not name or not name.strip():
            raise ValueError("Ticker and name are required")
        category = require_choice(category, ASSET_CATEGORIES, "category")

        def _create_asset(sess: Session) -> Asset:
            asset = Asset(
                user_id=user_id,
                ticker=ticker.strip().upper(),
                name=name.strip(),
                category=category,
                isin=isin,
                sector=sector,
                region=region,
                currency=(currency or "USD").upper(),
                notes=notes
            )
            sess.add(asset)
            sess.commit()
            sess.refresh(asset)
            logger.info(f"Created asset {asset.id} ({asset.ticker}) for user {user_id}")
            return asset

        if session is not None:
            return _create_asset(session)
        else:
            with Session(get_engine()) as session:
                return _create_asset(session)

    @staticmethod
    def get_all(user_id: int, session: Optional[Session] = None) -> List[Asset]:
        """
        Retrieve all assets of a user, ordered by ticker.

        Args:
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            List of Asset objects
        """
        def _get_all(sess: Session) -> List[Asset]:
            statement = select(Asset).where(Asset.user_id == user_id).order_by(Asset.ticker, Asset.id)
            results = sess.exec(statement)
            return list(results.all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(asset_id: int, user_id: int, session: Optional[Session] = None) -> Optional[Asset]:
        """
        Retrieve an asset by its ID.

        Args:
            asset_id: Asset ID to look up
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            Asset object or None if not found or owned by someone else
        """
        def _get_by_id(sess: Session) -> Optional[Asset]:
            asset = sess.get(Asset, asset_id)
            if asset is None or asset.user_id != user_id:
                return None
            return asset

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def require_owned(asset_id: int, user_id: int, session: Session) -> Asset:
        """
        Fetch an asset that must belong to the user.

        Raises:
            ValueError: If the asset does not exist for this user
        """
        asset = AssetRepository.get_by_id(asset_id, user_id, session=session)
        if asset is None:
            logger.warning(f"User {user_id} referenced unknown asset {asset_id}")
            raise ValueError(f"Asset {asset_id} not found")
        return asset

    @staticmethod
    def find_by_ticker(user_id: int, ticker: str, session: Optional[Session] = None) -> Optional[Asset]:
        """
        Find a user's asset by ticker (case-insensitive exact match).

        Args:
            user_id: Owning user ID
            ticker: Ticker to search for
            session: Optional existing session for transaction reuse

        Returns:
            Asset object or None if not found
        """
        def _find_by_ticker(sess: Session) -> Optional[Asset]:
            assets = sess.exec(select(Asset).where(Asset.user_id == user_id)).all()
            for asset in assets:
                if asset.ticker.upper() == ticker.strip().upper():
                    return asset
            return None

        if session is not None:
            return _find_by_ticker(session)
        else:
            with Session(get_engine()) as session:
                return _find_by_ticker(session)

    @staticmethod
    def update(
        asset_id: int,
        user_id: int,
        ticker: Optional[str] = None,
        name: Optional[str] = None,
        category: Optional[str] = None,
        isin: Optional[str] = None,
        sector: Optional[str] = None,
        region: Optional[str] = None,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Optional[Asset]:
        """
        Update an existing asset.
        Only updates fields that are provided (not None).

        Returns:
            Updated Asset object or None if not found
        """
        if category is not None:
            category = require_choice(category, ASSET_CATEGORIES, "category")

        def _update(sess: Session) -> Optional[Asset]:
            asset = AssetRepository.get_by_id(asset_id, user_id, session=sess)
            if asset:
                if ticker is not None:
                    asset.ticker = ticker.strip().upper()
                if name is not None:
                    asset.name = name.strip()
                if category is not None:
                    asset.category = category
                if isin is not None:
                    asset.isin = isin
                if sector is not None:
                    asset.sector = sector
                if region is not None:
                    asset.region = region
                if currency is not None:
                    asset.currency = currency.upper()
                if notes is not None:
                    asset.notes = notes
                sess.add(asset)
                sess.commit()
                sess.refresh(asset)
                return asset
            return None

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(asset_id: int, user_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete an asset with its transactions, dividends and price marks.
        Dependent rows are deleted first because of the foreign keys.

        Args:
            asset_id: Asset ID to delete
            user_id: Owning user ID
            session: Optional existing session for transaction reuse

        Returns:
            True if successful, False if not found
        """
        from models import Transaction, Dividend, Price

        def _delete(sess: Session) -> bool:
            try:
                asset = AssetRepository.get_by_id(asset_id, user_id, session=sess)
                if not asset:
                    return False

                for model in (Transaction, Dividend, Price):
                    statement = select(model).where(model.asset_id == asset_id)
                    for row in sess.exec(statement).all():
                        sess.delete(row)
                sess.flush()

                sess.delete(asset)
                sess.commit()
                logger.info(f"Deleted asset {asset_id} for user {user_id}")
                return True
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
