# Overview: Service-layer operations for access/refresh tokens; owns the refresh_tokens table.

"""
Token Authority

Issues, verifies and revokes the two kinds of bearer token:

- Access token: JWT {sub, role, type="access"}, lifetime ACCESS_TOKEN_TTL_MINUTES
  (default 1 hour). Verified statelessly: signature + expiry only, no
  database lookup.
- Refresh token: JWT {sub, type="refresh", jti}, lifetime REFRESH_TOKEN_TTL_DAYS
  (default 7 days). Persisted (SHA-256 hash only) at login; a refresh is
  honoured only while its row exists.

Refresh token lifecycle:
    Issued -> Active -> Consumed | Expired | Revoked

SECURITY NOTES:
- Access and refresh tokens are signed with different secrets, and the
  "type" claim is checked as well.
- Revocation deletes the refresh row. Access tokens already handed out stay
  valid until their own expiry; keep ACCESS_TOKEN_TTL_MINUTES short.
- A user may hold any number of live refresh tokens (one per login).
- Refresh does not rotate the refresh token.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from jose import JWTError, jwt
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import Forbidden, InvalidInput, InvalidToken, NotFound, TransientStorageFailure
from ..models import RefreshToken
from .credential_store import CredentialStore
from shopmate.time_utils import to_timestamp, utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by a verified access token."""
    user_id: int
    role: str


@dataclass(frozen=True)
class IssuedSession:
    """Tokens handed to the client at login."""
    access_token: str
    refresh_token: str
    role: str

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "role": self.role,
        }


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast one-way hash is enough.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class TokenAuthority:
    def __init__(
        self,
        session,
        *,
        credentials: CredentialStore,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session = session
        self._credentials = credentials
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    # ------------------------------------------------------------------
    # Minting / decoding
    # ------------------------------------------------------------------

    def _mint_access(self, user_id: int, role: str) -> str:
        now = self._clock()
        claims = {
            "sub": str(user_id),
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": to_timestamp(now),
            "exp": to_timestamp(now + self.access_ttl),
        }
        return jwt.encode(claims, self._access_secret, algorithm=self._algorithm)

    def _mint_refresh(self, user_id: int) -> tuple[str, datetime]:
        now = self._clock()
        expires_at = now + self.refresh_ttl
        claims = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            # Two logins in the same second must still get distinct tokens
            "jti": secrets.token_hex(16),
            "iat": to_timestamp(now),
            "exp": to_timestamp(expires_at),
        }
        return jwt.encode(claims, self._refresh_secret, algorithm=self._algorithm), expires_at

    def _decode(self, token, secret: str, expected_type: str) -> dict:
        if not isinstance(token, str) or not token:
            raise InvalidToken()
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != expected_type:
            raise InvalidToken()
        try:
            payload["sub"] = int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc
        return payload

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def issue_session(self, user_id: int, role: str) -> IssuedSession:
        """
        Mint an access/refresh pair and persist the refresh token.

        Raises TransientStorageFailure if the refresh row can not be written.
        """
        access_token = self._mint_access(user_id, role)
        refresh_token, expires_at = self._mint_refresh(user_id)

        try:
            self._session.add(RefreshToken(
                user_id=user_id,
                token_hash=hash_token(refresh_token),
                expires_at=expires_at,
            ))
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to persist refresh token for user id=%s", user_id)
            raise TransientStorageFailure() from exc

        return IssuedSession(access_token=access_token, refresh_token=refresh_token, role=role)

    def verify_access(self, token: str) -> AccessClaims:
        """Stateless check of an access token. Raises InvalidToken."""
        payload = self._decode(token, self._access_secret, ACCESS_TOKEN_TYPE)
        role = payload.get("role")
        if not isinstance(role, str):
            raise InvalidToken()
        return AccessClaims(user_id=payload["sub"], role=role)

    def refresh_access(self, refresh_token: str) -> str:
        """
        Exchange a live refresh token for a new access token.

        Raises:
            InvalidToken: bad signature, expired, or not a refresh token
            Forbidden: token was revoked or never issued
            NotFound: the user it belongs to no longer exists
        """
        payload = self._decode(refresh_token, self._refresh_secret, REFRESH_TOKEN_TYPE)
        user_id = payload["sub"]

        try:
            row = self._session.execute(
                select(RefreshToken).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.token_hash == hash_token(refresh_token),
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to look up refresh token for user id=%s", user_id)
            raise TransientStorageFailure() from exc

        if row is None:
            raise Forbidden("Invalid refresh token")

        user = self._credentials.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        # Role comes from the user row, so a role change applies on next refresh
        return self._mint_access(user.id, user.role)

    def revoke(self, refresh_token: str) -> int:
        """
        Delete the stored refresh token. Idempotent.

        Returns the number of rows removed (0 when already gone).
        """
        if not isinstance(refresh_token, str) or not refresh_token:
            raise InvalidInput("No refresh token provided")

        try:
            result = self._session.execute(
                delete(RefreshToken).where(RefreshToken.token_hash == hash_token(refresh_token))
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to revoke refresh token")
            raise TransientStorageFailure() from exc

        return result.rowcount or 0

    def purge_expired(self, now: datetime | None = None) -> int:
        """
        Delete refresh token rows past their expiry.

        Expired rows are already useless (refresh rejects them on the JWT
        expiry), this only keeps the table small. Returns count deleted.
        """
        cutoff = now or self._clock()
        try:
            result = self._session.execute(
                delete(RefreshToken).where(RefreshToken.expires_at < cutoff)
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to purge expired refresh tokens")
            raise TransientStorageFailure() from exc

        deleted = result.rowcount or 0
        logger.info("Purged %d expired refresh token(s)", deleted)
        return deleted

