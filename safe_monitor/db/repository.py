"""Base repository class with common CRUD operations."""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from safe_monitor.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

_OPERATORS = {
    "eq": lambda field, value: field == value,
    "ne": lambda field, value: field != value,
    "lt": lambda field, value: field < value,
    "lte": lambda field, value: field <= value,
    "gt": lambda field, value: field > value,
    "gte": lambda field, value: field >= value,
}


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing common CRUD operations for all models.

    Repositories never commit; the surrounding UnitOfWork owns the transaction.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """Create, flush and refresh a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore
        )
        return result.scalar_one_or_none()

    async def get_all(
        self, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[ModelType]:
        query = select(self.model)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def filter(self, **filters) -> List[ModelType]:
        """
        Filter records by field values.

        Supports comparison operators using double underscore syntax
        (field__lt, field__lte, field__gt, field__gte, field__ne); a plain
        field name means equality.

        Examples:
            await repo.filter(chain_id=8453, enabled=True)
            await repo.filter(last_checked__lt=cutoff)
        """
        query = self._apply_filters(select(self.model), filters)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _apply_filters(self, query, filters: dict):
        """Apply double-underscore filters to a select or delete statement."""
        for filter_key, value in filters.items():
            if "__" in filter_key:
                field_name, operator = filter_key.rsplit("__", 1)
            else:
                field_name, operator = filter_key, "eq"

            field = getattr(self.model, field_name)
            compare = _OPERATORS.get(operator, _OPERATORS["eq"])
            query = query.where(compare(field, value))

        return query

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update a record by ID and return the refreshed instance."""
        await self.session.execute(
            update(self.model).where(self.model.id == id).values(**kwargs)  # type: ignore
        )
        await self.session.flush()
        instance = await self.get_by_id(id)
        if instance is not None:
            await self.session.refresh(instance)
        return instance

    async def delete(self, id: int) -> bool:
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)  # type: ignore
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore

    async def delete_all(self, **filters) -> int:
        """
        Delete all records matching the given filters.
        If no filters provided, deletes ALL records (use with caution!).
        """
        query = self._apply_filters(delete(self.model), filters)
        result = await self.session.execute(query)
        await self.session.flush()
        return result.rowcount or 0  # type: ignore

    async def count(self, **filters) -> int:
        query = self._apply_filters(
            select(func.count(self.model.id)),  # type: ignore
            filters,
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def exists(self, **filters) -> bool:
        return await self.count(**filters) > 0
