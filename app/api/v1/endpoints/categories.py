from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.database import get_db
from app.schemas.category import (
    Category,
    CategoryChildrenCheck,
    CategoryCreate,
    CategoryDetail,
    CategoryIdSet,
    CategorySearchResult,
    CategorySummary,
    CategoryTreeNode,
    CategoryTreeStats,
    CategoryUpdate,
)
from app.services.category import CategoryService
from app.services.category_navigator import CategoryNavigator
from app.services.category_store import CategoryStore

router = APIRouter()


def get_navigator(db: AsyncSession = Depends(get_db)) -> CategoryNavigator:
    """Request-scoped navigator sharing the request's session."""
    return CategoryNavigator(CategoryStore(db))


# Static routes (must come before parameterized routes)
@router.get("/roots", response_model=list[CategorySummary])
async def get_root_categories(db: AsyncSession = Depends(get_db)):
    """Get root categories."""
    return await CategoryService.get_root_categories(db)


@router.get("/flat", response_model=list[CategorySummary])
async def get_all_categories_flat(db: AsyncSession = Depends(get_db)):
    """Get all active categories as a flat list."""
    return await CategoryService.get_all_flat(db)


@router.get("/tree", response_model=list[CategoryTreeNode])
async def get_category_tree(db: AsyncSession = Depends(get_db)):
    """Get the full nested category tree."""
    return await CategoryService.get_tree(db)


@router.get("/stats", response_model=CategoryTreeStats)
async def get_category_tree_stats(db: AsyncSession = Depends(get_db)):
    """Get category tree statistics."""
    return await CategoryService.get_tree_stats(db)


@router.get("/search", response_model=list[CategorySearchResult])
async def search_categories(
    q: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Search categories by name or slug."""
    return await CategoryService.search(db, q, limit)


@router.post("", response_model=Category, status_code=201)
async def create_category(
    category_data: CategoryCreate, db: AsyncSession = Depends(get_db)
):
    """Create category."""
    return await CategoryService.create_category(db, category_data)


# Single category endpoints
@router.get("/{category_id}", response_model=CategoryDetail)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single category with its parent."""
    category = await CategoryService.get_category_detail(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: int,
    category_data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update category."""
    category = await CategoryService.update_category(db, category_id, category_data)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.delete("/{category_id}")
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    """Delete category."""
    if not await CategoryService.delete_category(db, category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}


@router.get("/{category_id}/children", response_model=list[CategorySummary])
async def get_category_children(category_id: int, db: AsyncSession = Depends(get_db)):
    """Get active children of a category."""
    return await CategoryService.get_children(db, category_id)


@router.get("/{category_id}/has-children", response_model=CategoryChildrenCheck)
async def check_category_has_children(
    category_id: int, db: AsyncSession = Depends(get_db)
):
    """Check if category has children."""
    return await CategoryService.has_children(db, category_id)


# Hierarchy navigation; unknown ids return empty sets rather than 404
@router.get("/{category_id}/ancestors", response_model=CategoryIdSet)
async def get_category_ancestors(
    category_id: int, navigator: CategoryNavigator = Depends(get_navigator)
):
    """Get ancestor ids, root first."""
    ancestors = await navigator.ancestors(category_id)
    return CategoryIdSet(
        category_id=category_id, relation="ancestors", category_ids=ancestors
    )


@router.get("/{category_id}/descendants", response_model=CategoryIdSet)
async def get_category_descendants(
    category_id: int, navigator: CategoryNavigator = Depends(get_navigator)
):
    """Get all active descendant ids."""
    descendants = await navigator.descendants(category_id)
    return CategoryIdSet(
        category_id=category_id,
        relation="descendants",
        category_ids=sorted(descendants),
    )


@router.get("/{category_id}/siblings", response_model=CategoryIdSet)
async def get_category_siblings(
    category_id: int, navigator: CategoryNavigator = Depends(get_navigator)
):
    """Get active sibling ids."""
    siblings = await navigator.siblings(category_id)
    return CategoryIdSet(
        category_id=category_id, relation="siblings", category_ids=sorted(siblings)
    )


@router.get("/{category_id}/related", response_model=CategoryIdSet)
async def get_related_categories(
    category_id: int, navigator: CategoryNavigator = Depends(get_navigator)
):
    """Get the category with its ancestors, siblings and descendants."""
    related = await navigator.related(category_id)
    return CategoryIdSet(
        category_id=category_id, relation="related", category_ids=sorted(related)
    )


@router.get("/{category_id}/depth/{depth}", response_model=CategoryIdSet)
async def get_categories_at_depth(
    category_id: int,
    depth: int,
    navigator: CategoryNavigator = Depends(get_navigator),
):
    """Get active category ids exactly ``depth`` levels below."""
    if depth < 0:
        raise HTTPException(status_code=400, detail="Depth must be zero or positive")
    ids = await navigator.by_depth(category_id, depth)
    return CategoryIdSet(
        category_id=category_id, relation=f"depth:{depth}", category_ids=sorted(ids)
    )
