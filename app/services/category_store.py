from typing import Iterable, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.category import Category

# Sibling order: sort_order, then creation time, then id so duplicate
# sort_order values still order deterministically
SIBLING_ORDER = (Category.sort_order, Category.created_at, Category.id)


class CategoryStore:
    """Read primitives over the category table.

    One instance wraps the request's session and is shared by the path
    builder, navigator and filter builder. Database errors propagate.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, category_id: int) -> Optional[Category]:
        """Get a category by id, active or not."""
        stmt = select(Category).filter(Category.id == category_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_children(
        self, parent_id: Optional[int], active_only: bool = True
    ) -> list[Category]:
        """Direct children of ``parent_id``; ``None`` returns the roots."""
        if parent_id is None:
            stmt = select(Category).filter(Category.parent_id.is_(None))
        else:
            stmt = select(Category).filter(Category.parent_id == parent_id)
        if active_only:
            stmt = stmt.filter(Category.is_active.is_(True))
        stmt = stmt.order_by(*SIBLING_ORDER)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_children_of_many(
        self, parent_ids: Iterable[int], active_only: bool = True
    ) -> list[Category]:
        """Children of every id in ``parent_ids`` in a single query."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []

        stmt = select(Category).filter(Category.parent_id.in_(parent_ids))
        if active_only:
            stmt = stmt.filter(Category.is_active.is_(True))
        stmt = stmt.order_by(Category.parent_id, *SIBLING_ORDER)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_siblings(
        self, parent_id: Optional[int], exclude_id: int, active_only: bool = True
    ) -> list[Category]:
        """Categories sharing ``parent_id``, excluding ``exclude_id``."""
        if parent_id is None:
            condition = Category.parent_id.is_(None)
        else:
            condition = Category.parent_id == parent_id
        stmt = select(Category).filter(and_(condition, Category.id != exclude_id))
        if active_only:
            stmt = stmt.filter(Category.is_active.is_(True))
        stmt = stmt.order_by(*SIBLING_ORDER)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())
