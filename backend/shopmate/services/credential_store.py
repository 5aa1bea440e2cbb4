# Overview: Service-layer operations for user credentials; owns the users table.

"""
Credential Store

Persists user records and checks username/password pairs.

SECURITY NOTES:
- Passwords hashed with bcrypt (work factor from BCRYPT_ROUNDS, default 10)
- verify_credentials gives the same answer, and does the same bcrypt work,
  for an unknown username and for a wrong password
- Duplicate usernames surface as Conflict whether caught by the pre-check
  or by the unique constraint on insert
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Conflict, InvalidInput, TransientStorageFailure, Unauthorized
from ..models import User, ROLES, ROLE_USER

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash password using bcrypt; returned as str for the password_hash column."""
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for a mismatch and for a malformed stored hash.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class CredentialStore:
    def __init__(self, session, *, bcrypt_rounds: int = 10):
        self._session = session
        self._rounds = bcrypt_rounds
        # Compared against when the username does not exist
        self._dummy_hash = hash_password("shopmate-dummy-password", rounds=bcrypt_rounds)

    def _find_by_username(self, username: str) -> User | None:
        return self._session.execute(
            select(User).where(User.username == username).limit(1)
        ).scalar_one_or_none()

    def create_user(self, username: str, password: str, role: str = ROLE_USER) -> User:
        """
        Create a user with a bcrypt-hashed password.

        Raises:
            InvalidInput: username or password missing, or unknown role
            Conflict: username already taken
            TransientStorageFailure: storage error
        """
        if not isinstance(username, str) or not isinstance(password, str):
            raise InvalidInput("Username and password required")
        username = username.strip()
        if not username or not password:
            raise InvalidInput("Username and password required")
        if len(username) > 64:
            raise InvalidInput("username exceeds max length 64")
        if role not in ROLES:
            raise InvalidInput(f"Unknown role: {role}")

        try:
            if self._find_by_username(username) is not None:
                raise Conflict("Username already taken")

            user = User(
                username=username,
                password_hash=hash_password(password, rounds=self._rounds),
                role=role,
            )
            self._session.add(user)
            self._session.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same name
            self._session.rollback()
            raise Conflict("Username already taken")
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to create user %r", username)
            raise TransientStorageFailure() from exc

        logger.info("Created user %s (id=%s, role=%s)", user.username, user.id, user.role)
        return user

    def verify_credentials(self, username: str, password: str) -> User:
        """
        Return the User whose password matches.

        Raises Unauthorized with one message for every kind of mismatch.
        """
        if not isinstance(username, str) or not isinstance(password, str):
            raise InvalidInput("Username and password required")
        # Same normalization as create_user
        username = username.strip()
        if not username or not password:
            raise InvalidInput("Username and password required")

        try:
            user = self._find_by_username(username)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to load user %r", username)
            raise TransientStorageFailure() from exc

        if user is None:
            verify_password(password, self._dummy_hash)
            raise Unauthorized(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            raise Unauthorized(INVALID_CREDENTIALS)

        return user

    def get_user(self, user_id: int) -> User | None:
        try:
            return self._session.get(User, user_id)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to load user id=%s", user_id)
            raise TransientStorageFailure() from exc

    def list_users(self) -> list[User]:
        try:
            return list(self._session.execute(select(User).order_by(User.id)).scalars())
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to list users")
            raise TransientStorageFailure() from exc
