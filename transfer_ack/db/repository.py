"""Shared repository base for the transfer-ack models."""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_ack.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Model-bound helpers over one ``AsyncSession``.

    Repositories never commit; the owning ``UnitOfWork`` decides when the
    transaction ends.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """Add a row, flush it and return it with server defaults loaded."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        """First row whose ``field_name`` equals ``value``; meant for unique columns."""
        column = getattr(self.model, field_name)
        rows = await self.session.execute(select(self.model).where(column == value))
        return rows.scalar_one_or_none()

    async def count(self, **filters) -> int:
        """
        Count rows matching equality filters.

        Examples:
            await repo.count(account_id=7)
        """
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        return (await self.session.execute(stmt)).scalar() or 0

    def _insert(self):
        """
        Dialect-specific INSERT for this model.

        Both PostgreSQL and SQLite support ``ON CONFLICT DO NOTHING``, which is
        what makes insert-if-absent a single atomic statement.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(self.model)
        if dialect == "sqlite":
            return sqlite.insert(self.model)
        raise NotImplementedError(f"insert-if-absent not supported on {dialect}")

    async def insert_if_absent(
        self, conflict_columns: List[str], returning: Any, **values
    ) -> Optional[Any]:
        """
        Insert a row unless one already exists for the conflict columns.

        Args:
            conflict_columns: Columns of the unique constraint that decides
                whether the row already exists
            returning: Column to return for a newly inserted row
            **values: Field values for the new record

        Returns:
            The returning column's value if this call created the row,
            None if the row was already present
        """
        stmt = (
            self._insert()
            .values(**values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
            .returning(returning)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
