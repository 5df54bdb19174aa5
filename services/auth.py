"""
Authentication service for ManualFolio.
Registration and credential checks backed by bcrypt password hashes.
"""

import logging
from typing import Optional

import bcrypt

from config import get_settings
from models import User
from repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class AuthError(ValueError):
    """Invalid registration input or duplicate username."""


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class AuthService:
    """Service for user registration and login."""

    @staticmethod
    def register(username: str, password: str, portfolio_name: Optional[str] = None) -> User:
        """
        Create a new user account.

        Args:
            username: Desired login name
            password: Plaintext password (at least min_password_length characters)
            portfolio_name: Optional display name for the portfolio

        Returns:
            Created User object

        Raises:
            AuthError: If the username is empty or taken, or the password is too short
        """
        username = (username or "").strip()
        min_length = get_settings().min_password_length

        if not username:
            raise AuthError("Username is required")
        if len(password or "") < min_length:
            raise AuthError(f"Password must be at least {min_length} characters")
        if UserRepository.get_by_username(username) is not None:
            logger.warning(f"Registration refused: username {username!r} already exists")
            raise AuthError("Username already exists")

        return UserRepository.add(
            username=username,
            password_hash=hash_password(password),
            portfolio_name=portfolio_name
        )

    @staticmethod
    def authenticate(username: str, password: str) -> Optional[User]:
        """
        Check credentials.

        Returns:
            The User on success, None on unknown user or wrong password
        """
        user = UserRepository.get_by_username((username or "").strip())
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info(f"Failed login for {username!r}")
            return None
        return user
