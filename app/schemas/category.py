from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

CATEGORY_NAME_PATTERN = r"^[a-zA-Z0-9\s\-&']+$"


class CategoryRef(BaseModel):
    """Minimal reference used inside materialized paths and breadcrumbs."""

    id: int
    name: str

    class Config:
        from_attributes = True


# Category Schemas
class CategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, pattern=CATEGORY_NAME_PATTERN)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    parent_id: Optional[int] = None
    sort_order: int = Field(0, ge=0, le=9999)
    is_active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(
        None, min_length=2, max_length=100, pattern=CATEGORY_NAME_PATTERN
    )
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    parent_id: Optional[int] = None
    sort_order: Optional[int] = Field(None, ge=0, le=9999)
    is_active: Optional[bool] = None


class Category(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    child_count: int = 0


class CategoryParent(BaseModel):
    id: int
    name: str
    slug: str


class CategoryDetail(Category):
    parent: Optional[CategoryParent] = None
    child_count: int = 0
    service_count: int = 0


class CategoryTreeNode(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    children: list["CategoryTreeNode"] = []


class CategorySearchResult(CategorySummary):
    path: str


class CategoryTreeStats(BaseModel):
    total_categories: int
    root_categories: int
    max_depth: int


class CategoryChildrenCheck(BaseModel):
    has_children: bool
    child_count: int


class CategoryIdSet(BaseModel):
    """Result of a hierarchy navigation call."""

    category_id: int
    relation: str
    category_ids: list[int]


CategoryTreeNode.model_rebuild()
