from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.database import get_db
from app.core.config import settings
from app.models.service_listing import ListingStatus
from app.schemas.service import (
    CategoryPathsRequest,
    CategoryPathsResponse,
    ListingSearchQuery,
    ListingSearchResponse,
    Service,
    ServiceCreate,
    ServiceListing,
    ServiceListingCreate,
    ServiceUpdate,
)
from app.services.category_paths import CategoryPathBuilder
from app.services.category_store import CategoryStore
from app.services.service import ServiceListingService, ServiceManagementService

router = APIRouter()


# Listing endpoints (must come before parameterized routes)
@router.post("/listings", response_model=ServiceListing, status_code=201)
async def create_listing(
    listing_data: ServiceListingCreate, db: AsyncSession = Depends(get_db)
):
    """Create service listing."""
    listing = await ServiceListingService.create_listing(db, listing_data)
    return ServiceListingService.to_response(listing)


@router.get("/listings/search", response_model=ListingSearchResponse)
async def search_listings(
    category_id: Optional[str] = None,
    subcategory_ids: Optional[list[int]] = Query(None),
    status: Optional[ListingStatus] = ListingStatus.ACTIVE,
    min_rating: Optional[float] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    page: int = 1,
    page_size: int = Query(settings.CATEGORY_DEFAULT_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    """Search listings by category (deep) plus status, rating and price."""
    try:
        query = ListingSearchQuery(
            category_id=category_id,
            subcategory_ids=subcategory_ids,
            status=status,
            min_rating=min_rating,
            min_price=min_price,
            max_price=max_price,
            page=page,
            page_size=min(page_size, settings.CATEGORY_MAX_PAGE_SIZE),
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        )

    listings, total = await ServiceListingService.search(db, query)
    return ListingSearchResponse(
        items=[ServiceListingService.to_response(listing) for listing in listings],
        total=total,
        page=query.page,
        page_size=query.page_size,
    )


@router.post("/category-paths", response_model=CategoryPathsResponse)
async def build_category_paths(
    request: CategoryPathsRequest, db: AsyncSession = Depends(get_db)
):
    """Build root-to-leaf category paths for a set of category ids."""
    result = await CategoryPathBuilder(CategoryStore(db)).build_paths(
        request.category_ids
    )
    return CategoryPathsResponse(paths=result.paths, missing_ids=result.missing_ids)


# Service endpoints
@router.post("", response_model=Service, status_code=201)
async def create_service(
    service_data: ServiceCreate, db: AsyncSession = Depends(get_db)
):
    """Create service."""
    return await ServiceManagementService.create_service(db, service_data)


@router.get("/{service_id}", response_model=Service)
async def get_service(service_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single service."""
    service = await ServiceManagementService.get_service(db, service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.put("/{service_id}", response_model=Service)
async def update_service(
    service_id: int,
    service_data: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update service."""
    service = await ServiceManagementService.update_service(db, service_id, service_data)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service
