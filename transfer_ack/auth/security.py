"""
Password hashing and the authentication dependencies used by the API.

Operators authenticate with HTTP Basic credentials checked against the bcrypt
hashes stored in app_users.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import bcrypt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.db.base import STORAGE_ERRORS, get_session_factory
from transfer_ack.db.models.app_user import ROLE_ADMIN
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

security = HTTPBasic()


@dataclass(frozen=True)
class Operator:
    """Authenticated identity attached to a request."""

    username: str
    role: str
    account_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except ValueError:
        return False


async def authenticate(
    session_factory: async_sessionmaker[AsyncSession], username: str, password: str
) -> Optional[Operator]:
    """
    Check credentials against app_users.

    Returns:
        The operator identity, or None if the user is unknown or the password
        does not match
    """
    username = username.strip()
    if not username or not password:
        return None

    async with UnitOfWork(session_factory=session_factory) as uow:
        user = await uow.users.get_by_username(username)

    if user is None or not user.password_hash:
        return None
    # bcrypt blocks for the whole hash, run it on a worker thread
    if not await asyncio.to_thread(verify_password, password, user.password_hash):
        return None
    return Operator(username=user.username, role=user.role, account_id=user.account_id)


async def get_current_operator(
    credentials: HTTPBasicCredentials = Depends(security),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> Operator:
    """
    Dependency to get the current authenticated operator.

    Raises 401 with a Basic challenge when the credentials are rejected.
    """
    try:
        operator = await authenticate(
            session_factory, credentials.username, credentials.password
        )
    except STORAGE_ERRORS as exc:
        logger.error("auth.storage_unavailable", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication store unavailable",
        ) from exc

    if operator is None:
        logger.info("auth.rejected", username=credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return operator


async def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    """
    Dependency to require admin role.
    Use this on admin-only routes.
    """
    if not operator.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return operator
