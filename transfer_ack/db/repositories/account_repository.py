"""Provider account repository."""

from typing import Iterable, List, Optional
from sqlalchemy import select, func

from transfer_ack.db.models.account import Account
from transfer_ack.db.repository import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Repository for Account model with specialized queries."""

    async def get_by_name(self, name: str) -> Optional[Account]:
        return await self.get_by_field("name", name)

    async def list_ordered(self) -> List[Account]:
        """All accounts ordered by id."""
        result = await self.session.execute(select(self.model).order_by(self.model.id))
        return list(result.scalars().all())

    async def list_pollable(self, placeholders: Iterable[str]) -> List[Account]:
        """
        Active accounts holding a real access token, ordered by id.

        Args:
            placeholders: Token values meaning "not configured"; compared
                case-insensitively after trimming

        Returns:
            Accounts the poller may query
        """
        blocked = [p.strip().lower() for p in placeholders if p.strip()]
        token = func.lower(func.trim(self.model.access_token))

        query = (
            select(self.model)
            .where(self.model.is_active.is_(True))
            .where(token != "")
            .order_by(self.model.id)
        )
        if blocked:
            query = query.where(token.notin_(blocked))

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def upsert(
        self,
        name: str,
        access_token: str,
        is_active: bool = True,
        alias: Optional[str] = None,
        cvu: Optional[str] = None,
    ) -> Account:
        """
        Create an account or update the existing one with the same name.

        Returns:
            The created or updated Account instance
        """
        existing = await self.get_by_name(name)
        if existing is None:
            return await self.create(
                name=name,
                access_token=access_token,
                is_active=is_active,
                alias=alias,
                cvu=cvu,
            )

        existing.access_token = access_token
        existing.is_active = is_active
        if alias is not None:
            existing.alias = alias
        if cvu is not None:
            existing.cvu = cvu
        await self.session.flush()
        return existing
