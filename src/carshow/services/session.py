"""Session management and identity resolution.

This module maps opaque session tokens to authenticated principals:
- Secure session token generation (only the SHA-256 hash is stored)
- Password login against bcrypt hashes
- Fail-closed resolution: missing, unknown, expired, revoked and disabled
  sessions all raise the same NotAuthenticatedError
- Logout (revocation)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from sqlalchemy import func, select, update

from carshow.services.authz import NotAuthenticatedError, Principal

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from carshow.db.models.auth import AdminUser

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DURATION_HOURS = 24
SESSION_TOKEN_BYTES = 32  # 256 bits of entropy

# One message for every resolution failure so callers cannot tell them apart
NOT_AUTHENTICATED_MESSAGE = "Authentication required"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


@dataclass(frozen=True, slots=True)
class SessionToken:
    """A freshly issued session token.

    Attributes:
        session_id: UUID of the session record
        access_token: The opaque token handed to the client (shown once)
        expires_at: When the token stops being accepted
    """

    session_id: UUID
    access_token: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Information about the client creating a session."""

    ip_address: str | None = None
    user_agent: str | None = None


def hash_password(password: str) -> str:
    """Hash a password with bcrypt for storage on AdminUser.password_hash."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Malformed hashes count as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Compared against when the account does not exist, to keep timing flat
    return hash_password(secrets.token_urlsafe(16))


class SessionService:
    """Server-side session store and identity resolver.

    Example:
        service = SessionService(db_session, session_duration_hours=24)

        user = await service.authenticate("gate@example.com", "secret")
        token = await service.create_session(user.admin_user_id)

        principal = await service.resolve(token.access_token)

        await service.revoke_session(token.access_token)
    """

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        session_duration_hours: int = DEFAULT_SESSION_DURATION_HOURS,
    ) -> None:
        """Initialize the session service.

        Args:
            db_session: SQLAlchemy async session for database operations.
            session_duration_hours: How long issued tokens stay valid.
        """
        self._db = db_session
        self._session_duration = timedelta(hours=session_duration_hours)

    async def authenticate(self, email: str, password: str) -> AdminUser:
        """Check login credentials.

        Unknown email, wrong password, missing password hash and disabled
        account all fail the same way.

        Args:
            email: Login email (case-insensitive).
            password: Plain-text password.

        Returns:
            The matching active AdminUser.

        Raises:
            NotAuthenticatedError: If the credentials are not accepted.
        """
        from carshow.db.models.auth import AdminUser

        result = await self._db.execute(
            select(AdminUser).where(func.lower(AdminUser.email) == email.strip().lower())
        )
        user = result.scalar_one_or_none()

        stored_hash = user.password_hash if user and user.password_hash else _dummy_hash()
        password_ok = await asyncio.to_thread(verify_password, password, stored_hash)

        if user is None or not user.password_hash or not password_ok or not user.is_active:
            logger.info("Login rejected: email_hash=%s", _hash_for_log(email))
            raise NotAuthenticatedError(INVALID_CREDENTIALS_MESSAGE)

        user.last_login_at = datetime.now(UTC)
        return user

    async def create_session(
        self,
        admin_user_id: UUID,
        *,
        device_info: DeviceInfo | None = None,
    ) -> SessionToken:
        """Create a new session for an admin user.

        Args:
            admin_user_id: ID of the authenticated admin user.
            device_info: Optional client information for security review.

        Returns:
            SessionToken carrying the opaque access token.
        """
        from carshow.db.models.session import Session

        access_token = self._generate_token()
        expires_at = datetime.now(UTC) + self._session_duration
        device = device_info or DeviceInfo()

        session = Session(
            token_hash=self._hash_token(access_token),
            admin_user_id=admin_user_id,
            is_active=True,
            expires_at=expires_at,
            ip_address=device.ip_address,
            user_agent=device.user_agent,
        )

        self._db.add(session)
        await self._db.flush()

        logger.info(
            "Session created: session_id=%s, admin_user_id=%s",
            session.session_id,
            admin_user_id,
        )

        return SessionToken(
            session_id=session.session_id,
            access_token=access_token,
            expires_at=expires_at,
        )

    async def resolve(self, token: str | None) -> Principal:
        """Resolve a session token to the principal it is bound to.

        Args:
            token: Opaque session token from the client, or None.

        Returns:
            The authenticated Principal.

        Raises:
            NotAuthenticatedError: For every kind of invalid session.
        """
        from carshow.db.models.auth import AdminUser
        from carshow.db.models.session import Session

        if not token:
            raise NotAuthenticatedError(NOT_AUTHENTICATED_MESSAGE)

        result = await self._db.execute(
            select(Session, AdminUser)
            .join(AdminUser, Session.admin_user_id == AdminUser.admin_user_id)
            .where(Session.token_hash == self._hash_token(token))
        )
        row = result.one_or_none()

        if row is None:
            logger.debug("Session resolution failed: token not found")
            raise NotAuthenticatedError(NOT_AUTHENTICATED_MESSAGE)

        session, user = row

        if not session.is_valid:
            logger.debug("Session resolution failed: session_id=%s not valid", session.session_id)
            raise NotAuthenticatedError(NOT_AUTHENTICATED_MESSAGE)

        if not user.is_active:
            logger.debug("Session resolution failed: admin_user_id=%s inactive", user.admin_user_id)
            raise NotAuthenticatedError(NOT_AUTHENTICATED_MESSAGE)

        return Principal(
            admin_user_id=user.admin_user_id,
            email=user.email,
            global_role=user.global_role,
            is_active=user.is_active,
            full_name=user.full_name,
        )

    async def revoke_session(self, token: str) -> bool:
        """Revoke the session identified by a token (logout).

        Args:
            token: Opaque session token.

        Returns:
            True if an active session was revoked, False otherwise.
        """
        from carshow.db.models.session import Session

        now = datetime.now(UTC)
        result = await self._db.execute(
            update(Session)
            .where(Session.token_hash == self._hash_token(token))
            .where(Session.revoked_at.is_(None))
            .values(is_active=False, revoked_at=now)
        )

        if result.rowcount > 0:
            logger.info("Session revoked")
            return True

        return False

    def _generate_token(self) -> str:
        """Generate a cryptographically secure URL-safe token."""
        return secrets.token_urlsafe(SESSION_TOKEN_BYTES)

    def _hash_token(self, token: str) -> str:
        """Hash a token for storage.

        Returns:
            Hex-encoded SHA-256 hash (64 characters).
        """
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _hash_for_log(value: str) -> str:
    """Hash value for privacy-safe logging."""
    return hashlib.sha256(value.strip().lower().encode()).hexdigest()[:8]
