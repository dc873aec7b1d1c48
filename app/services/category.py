from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import CategoryConflictError, CategoryCycleError
from app.models.category import Category
from app.models.service import Service, ServiceCategoryTag
from app.models.service_listing import ServiceListing
from app.schemas.category import Category as CategorySchema
from app.schemas.category import (
    CategoryChildrenCheck,
    CategoryCreate,
    CategoryDetail,
    CategoryParent,
    CategorySearchResult,
    CategorySummary,
    CategoryTreeNode,
    CategoryTreeStats,
    CategoryUpdate,
)
from app.services.category_navigator import walk_to_root
from app.services.category_paths import build_category_paths_from_ids
from app.services.category_store import SIBLING_ORDER, CategoryStore
from app.utils.validation import slugify_category_name, validate_and_raise

logger = structlog.get_logger(__name__)


class CategoryService:
    """Business logic for browsing and administering the category tree."""

    @staticmethod
    async def _child_counts(
        db: AsyncSession, parent_ids: list[int], active_only: bool = True
    ) -> dict[int, int]:
        if not parent_ids:
            return {}
        stmt = select(Category.parent_id, func.count(Category.id)).filter(
            Category.parent_id.in_(parent_ids)
        )
        if active_only:
            stmt = stmt.filter(Category.is_active.is_(True))
        stmt = stmt.group_by(Category.parent_id)

        result = await db.execute(stmt)
        return {parent_id: count for parent_id, count in result.all()}

    @staticmethod
    async def _summaries(
        db: AsyncSession, categories: list[Category]
    ) -> list[CategorySummary]:
        counts = await CategoryService._child_counts(db, [c.id for c in categories])
        return [
            CategorySummary(
                id=c.id,
                name=c.name,
                slug=c.slug,
                description=c.description,
                parent_id=c.parent_id,
                sort_order=c.sort_order,
                child_count=counts.get(c.id, 0),
            )
            for c in categories
        ]

    @staticmethod
    async def get_root_categories(db: AsyncSession) -> list[CategorySummary]:
        """Get active root categories with their active child counts."""
        roots = await CategoryStore(db).find_children(None)
        return await CategoryService._summaries(db, roots)

    @staticmethod
    async def get_children(db: AsyncSession, parent_id: int) -> list[CategorySummary]:
        """Get active direct children of a category."""
        children = await CategoryStore(db).find_children(parent_id)
        return await CategoryService._summaries(db, children)

    @staticmethod
    async def has_children(db: AsyncSession, category_id: int) -> CategoryChildrenCheck:
        """Check whether a category has active children."""
        counts = await CategoryService._child_counts(db, [category_id])
        child_count = counts.get(category_id, 0)
        return CategoryChildrenCheck(has_children=child_count > 0, child_count=child_count)

    @staticmethod
    async def get_category(db: AsyncSession, category_id: int) -> Optional[Category]:
        """Get a single category, active or not."""
        return await CategoryStore(db).find_by_id(category_id)

    @staticmethod
    async def get_category_detail(
        db: AsyncSession, category_id: int
    ) -> Optional[CategoryDetail]:
        """Get a category with its parent and usage counts."""
        store = CategoryStore(db)
        category = await store.find_by_id(category_id)
        if not category:
            return None

        parent = None
        if category.parent_id is not None:
            parent_category = await store.find_by_id(category.parent_id)
            if parent_category:
                parent = CategoryParent(
                    id=parent_category.id,
                    name=parent_category.name,
                    slug=parent_category.slug,
                )

        counts = await CategoryService._child_counts(
            db, [category_id], active_only=False
        )
        # Built field by field: the ORM ``parent`` relationship must not lazy-load
        return CategoryDetail(
            **CategorySchema.model_validate(category).model_dump(),
            parent=parent,
            child_count=counts.get(category_id, 0),
            service_count=await CategoryService._service_count(db, category_id),
        )

    @staticmethod
    async def _service_count(db: AsyncSession, category_id: int) -> int:
        stmt = (
            select(func.count(distinct(Service.id)))
            .select_from(Service)
            .outerjoin(ServiceCategoryTag, ServiceCategoryTag.service_id == Service.id)
            .filter(
                or_(
                    Service.category_id == category_id,
                    ServiceCategoryTag.category_id == category_id,
                )
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def get_all_flat(db: AsyncSession) -> list[CategorySummary]:
        """Get all active categories as a flat list for client-side trees."""
        stmt = (
            select(Category)
            .filter(Category.is_active.is_(True))
            .order_by(*SIBLING_ORDER)
        )
        result = await db.execute(stmt)
        return await CategoryService._summaries(db, list(result.scalars().all()))

    @staticmethod
    async def get_tree(db: AsyncSession) -> list[CategoryTreeNode]:
        """Get the active category tree, nested from the roots down.

        Built from a single query in O(n); subtrees under inactive
        categories are left out.
        """
        categories = await CategoryService.get_all_flat(db)
        nodes = {
            c.id: CategoryTreeNode(
                id=c.id,
                name=c.name,
                slug=c.slug,
                description=c.description,
                parent_id=c.parent_id,
                sort_order=c.sort_order,
                children=[],
            )
            for c in categories
        }

        roots = []
        for c in categories:
            node = nodes[c.id]
            if c.parent_id is None:
                roots.append(node)
            elif c.parent_id in nodes:
                nodes[c.parent_id].children.append(node)
        return roots

    @staticmethod
    async def get_tree_stats(db: AsyncSession) -> CategoryTreeStats:
        """Count categories and measure the deepest level of the tree."""
        result = await db.execute(select(Category.id, Category.parent_id))
        rows = result.all()

        children: dict[Optional[int], list[int]] = {}
        for category_id, parent_id in rows:
            children.setdefault(parent_id, []).append(category_id)

        max_depth = 0
        visited: set[int] = set()
        level = list(children.get(None, []))
        while level:
            max_depth += 1
            visited.update(level)
            level = [
                child
                for parent in level
                for child in children.get(parent, [])
                if child not in visited
            ]

        stats = CategoryTreeStats(
            total_categories=len(rows),
            root_categories=len(children.get(None, [])),
            max_depth=max_depth,
        )
        logger.info("Category tree statistics", **stats.model_dump())
        return stats

    @staticmethod
    async def search(
        db: AsyncSession, query: str, limit: Optional[int] = None
    ) -> list[CategorySearchResult]:
        """Search active categories by name or slug, with breadcrumb paths."""
        query = query.strip().lower()
        if not query:
            raise HTTPException(status_code=400, detail="Search query is required")

        # LIKE wildcards in the query match literally
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        stmt = (
            select(Category)
            .filter(
                and_(
                    Category.is_active.is_(True),
                    or_(
                        Category.name.ilike(pattern, escape="\\"),
                        Category.slug.ilike(pattern, escape="\\"),
                    ),
                )
            )
            .order_by(Category.sort_order, Category.name, Category.id)
            .limit(limit or settings.CATEGORY_SEARCH_LIMIT)
        )
        result = await db.execute(stmt)
        categories = list(result.scalars().all())

        # Hits whose chain is broken or cyclic fall back to the bare name
        paths = {
            path[-1].id: " > ".join(ref.name for ref in path)
            for path in await build_category_paths_from_ids(
                db, [c.id for c in categories]
            )
        }
        summaries = await CategoryService._summaries(db, categories)
        return [
            CategorySearchResult(
                **summary.model_dump(), path=paths.get(summary.id, summary.name)
            )
            for summary in summaries
        ]

    @staticmethod
    async def _slug_taken(
        db: AsyncSession,
        slug: str,
        parent_id: Optional[int],
        exclude_id: Optional[int] = None,
    ) -> bool:
        if parent_id is None:
            stmt = select(Category.id).filter(Category.parent_id.is_(None))
        else:
            stmt = select(Category.id).filter(Category.parent_id == parent_id)
        stmt = stmt.filter(Category.slug == slug)
        if exclude_id is not None:
            stmt = stmt.filter(Category.id != exclude_id)

        result = await db.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def create_category(db: AsyncSession, category_data: CategoryCreate) -> Category:
        """Create a new category."""
        slug = slugify_category_name(category_data.name)
        if not slug:
            raise HTTPException(status_code=400, detail="Category name must contain letters or digits")

        # Validate parent category exists
        if category_data.parent_id is not None:
            parent = await CategoryStore(db).find_by_id(category_data.parent_id)
            if not parent:
                raise HTTPException(status_code=400, detail="Parent category not found")

        if await CategoryService._slug_taken(db, slug, category_data.parent_id):
            raise HTTPException(
                status_code=400, detail="Category with this name already exists"
            )

        db_category = Category(**category_data.model_dump(), slug=slug)
        db.add(db_category)
        await db.commit()
        await db.refresh(db_category)

        logger.info(
            "Category created",
            category_id=db_category.id,
            parent_id=db_category.parent_id,
            slug=slug,
        )
        return db_category

    @staticmethod
    async def update_category(
        db: AsyncSession, category_id: int, category_data: CategoryUpdate
    ) -> Optional[Category]:
        """Update a category, keeping the tree acyclic."""
        store = CategoryStore(db)
        db_category = await store.find_by_id(category_id)
        if not db_category:
            return None

        # An explicit null on a required column leaves it unchanged
        update_data = {
            field: value
            for field, value in category_data.model_dump(exclude_unset=True).items()
            if value is not None or field in ("description", "parent_id")
        }
        target_parent_id = update_data.get("parent_id", db_category.parent_id)

        # Validate parent category if being updated
        if "parent_id" in update_data and target_parent_id is not None:
            parent_chain: list[int] = []
            if target_parent_id != category_id:
                parent = await store.find_by_id(target_parent_id)
                if not parent:
                    raise HTTPException(status_code=400, detail="Parent category not found")
                try:
                    chain, _ = await walk_to_root(store, parent)
                except CategoryCycleError as e:
                    raise HTTPException(status_code=400, detail=str(e))
                parent_chain = [c.id for c in chain]
            try:
                validate_and_raise(category_id, target_parent_id, parent_chain)
            except CategoryConflictError as e:
                raise HTTPException(status_code=400, detail="; ".join(e.errors))

        # Slug follows the name and must stay unique within the sibling group
        slug = db_category.slug
        if "name" in update_data and update_data["name"] != db_category.name:
            slug = slugify_category_name(update_data["name"])
            if not slug:
                raise HTTPException(
                    status_code=400, detail="Category name must contain letters or digits"
                )
        if (slug != db_category.slug or target_parent_id != db_category.parent_id) and (
            await CategoryService._slug_taken(db, slug, target_parent_id, exclude_id=category_id)
        ):
            raise HTTPException(
                status_code=400, detail="Category with this name already exists"
            )

        for field, value in update_data.items():
            setattr(db_category, field, value)
        db_category.slug = slug

        await db.commit()
        await db.refresh(db_category)

        logger.info(
            "Category updated", category_id=category_id, fields=sorted(update_data)
        )
        return db_category

    @staticmethod
    async def delete_category(db: AsyncSession, category_id: int) -> bool:
        """Delete a category that has no children and is not in use."""
        db_category = await CategoryStore(db).find_by_id(category_id)
        if not db_category:
            return False

        # Check for child categories, inactive ones included
        counts = await CategoryService._child_counts(db, [category_id], active_only=False)
        if counts.get(category_id, 0) > 0:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete category with subcategories. "
                "Please delete subcategories first.",
            )

        # Check for services and listings using this category
        listing_stmt = select(ServiceListing.id).filter(
            ServiceListing.category_id == category_id
        )
        listing_result = await db.execute(listing_stmt)
        if (
            await CategoryService._service_count(db, category_id) > 0
            or listing_result.first() is not None
        ):
            raise HTTPException(
                status_code=400,
                detail="Cannot delete category with services. "
                "Please move or delete services first.",
            )

        await db.delete(db_category)
        await db.commit()

        logger.info("Category deleted", category_id=category_id)
        return True
