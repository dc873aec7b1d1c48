from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.service_listing import ListingStatus
from app.schemas.category import Category, CategoryRef


# Service Schemas
class ServiceBase(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    category_id: Optional[int] = None
    category_ids: list[int] = []
    is_active: bool = True

    @field_validator("category_ids")
    @classmethod
    def dedupe_category_ids(cls, v):
        # Ordered set: keep first occurrence
        return list(dict.fromkeys(v))


class ServiceCreate(ServiceBase):
    listing_id: int


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    category_id: Optional[int] = None
    category_ids: Optional[list[int]] = None
    is_active: Optional[bool] = None

    @field_validator("category_ids")
    @classmethod
    def dedupe_category_ids(cls, v):
        if v is None:
            return v
        return list(dict.fromkeys(v))


class Service(ServiceBase):
    id: int
    listing_id: int
    category_paths: list[list[CategoryRef]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Service Listing Schemas
class ServiceListingBase(BaseModel):
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    category_id: Optional[int] = None
    status: ListingStatus = ListingStatus.ACTIVE
    rating: float = Field(0.0, ge=0, le=5)


class ServiceListingCreate(ServiceListingBase):
    pass


class ServiceListing(ServiceListingBase):
    id: int
    category: Optional[Category] = None
    category_name: str = "General"
    services: list[Service] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ListingSearchQuery(BaseModel):
    """Listing search parameters; category_id also accepts "all"."""

    category_id: Optional[Union[int, str]] = None
    subcategory_ids: Optional[list[int]] = None
    status: Optional[ListingStatus] = ListingStatus.ACTIVE
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)

    @model_validator(mode="after")
    def validate_price_range(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot be greater than max_price")
        return self


class ListingSearchResponse(BaseModel):
    items: list[ServiceListing]
    total: int
    page: int
    page_size: int


# Category path rebuild
class CategoryPathsRequest(BaseModel):
    category_ids: list[int] = Field(..., min_length=1)


class CategoryPathsResponse(BaseModel):
    paths: list[list[CategoryRef]]
    missing_ids: list[int] = []
