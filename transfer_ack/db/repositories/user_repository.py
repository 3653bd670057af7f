"""Operator (app user) repository."""

from typing import List, Optional
from sqlalchemy import select, update

from transfer_ack.db.models.app_user import AppUser, ROLE_ADMIN
from transfer_ack.db.repository import BaseRepository


class UserRepository(BaseRepository[AppUser]):
    """Repository for AppUser model."""

    async def get_by_username(self, username: str) -> Optional[AppUser]:
        return await self.get_by_field("username", username)

    async def list_operators(self) -> List[AppUser]:
        """Non-admin users ordered by username."""
        query = (
            select(self.model)
            .where(self.model.role != ROLE_ADMIN)
            .order_by(self.model.username)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def assign_account(self, username: str, account_id: Optional[int]) -> bool:
        """
        Point an operator at a provider account.

        Returns:
            True if the user exists and was updated
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.username == username)
            .values(account_id=account_id)
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    async def ensure_user(
        self, username: str, role: str, password_hash: str
    ) -> AppUser:
        """
        Create a user, or refresh the role of an existing one.

        An existing password hash is kept so re-seeding never resets
        passwords operators have changed.
        """
        existing = await self.get_by_username(username)
        if existing is None:
            return await self.create(
                username=username, role=role, password_hash=password_hash
            )
        existing.role = role
        if not existing.password_hash:
            existing.password_hash = password_hash
        await self.session.flush()
        return existing
