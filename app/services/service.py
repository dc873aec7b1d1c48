from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.service import Service, ServiceCategoryTag
from app.models.service_listing import ServiceListing
from app.schemas.service import ListingSearchQuery
from app.schemas.service import ServiceListing as ServiceListingSchema
from app.schemas.service import (
    ServiceCreate,
    ServiceListingCreate,
    ServiceUpdate,
)
from app.services.category_filter import build_category_filter
from app.services.category_navigator import CategoryNavigator
from app.services.category_paths import CategoryPathBuilder
from app.services.category_store import CategoryStore

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY_NAME = "General"


def resolve_display_category_name(listing: ServiceListing) -> str:
    """Category label for a listing card.

    Prefers the listing's own category, then the most specific entry of the
    first service's longest stored path.
    """
    if listing.category is not None and listing.category.name:
        return listing.category.name

    if listing.services and listing.services[0].category_paths:
        longest = max(listing.services[0].category_paths, key=len)
        if longest:
            return longest[-1].get("name") or DEFAULT_CATEGORY_NAME

    return DEFAULT_CATEGORY_NAME


async def _require_active_category(db: AsyncSession, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    category = await CategoryStore(db).find_by_id(category_id)
    if not category or not category.is_active:
        raise HTTPException(status_code=400, detail="Category not found")


class ServiceListingService:
    """Business logic for service listings and listing search."""

    @staticmethod
    async def get_listing(db: AsyncSession, listing_id: int) -> Optional[ServiceListing]:
        """Get a single listing with its category and services loaded."""
        stmt = (
            select(ServiceListing)
            .options(
                selectinload(ServiceListing.category),
                selectinload(ServiceListing.services),
            )
            .filter(ServiceListing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_listing(
        db: AsyncSession, listing_data: ServiceListingCreate
    ) -> ServiceListing:
        """Create a new listing."""
        # Validate category exists if provided
        await _require_active_category(db, listing_data.category_id)

        db_listing = ServiceListing(
            **listing_data.model_dump(exclude={"status"}),
            status=listing_data.status.value,
        )
        db.add(db_listing)
        await db.commit()
        return await ServiceListingService.get_listing(db, db_listing.id)

    @staticmethod
    async def search(
        db: AsyncSession, query: ListingSearchQuery
    ) -> tuple[list[ServiceListing], int]:
        """Search listings; the category filter is AND-merged with the rest."""
        navigator = CategoryNavigator(CategoryStore(db))
        category_filter = await build_category_filter(
            db, query.category_id, query.subcategory_ids, navigator=navigator
        )
        if category_filter.matches_nothing:
            logger.info(
                "Listing search short-circuited by category filter",
                category_id=query.category_id,
            )
            return [], 0

        conditions = [category_filter.clause()]
        if query.status is not None:
            conditions.append(ServiceListing.status == query.status.value)
        if query.min_rating is not None:
            conditions.append(ServiceListing.rating >= query.min_rating)

        price_conditions = []
        if query.min_price is not None:
            price_conditions.append(Service.price >= query.min_price)
        if query.max_price is not None:
            price_conditions.append(Service.price <= query.max_price)
        if price_conditions:
            conditions.append(ServiceListing.services.any(and_(*price_conditions)))

        where = and_(*conditions)
        count_stmt = select(func.count()).select_from(ServiceListing).where(where)
        total = (await db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ServiceListing)
            .options(
                selectinload(ServiceListing.category),
                selectinload(ServiceListing.services),
            )
            .where(where)
            .order_by(ServiceListing.rating.desc(), ServiceListing.id)
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        listings = list(result.scalars().all())

        logger.info(
            "Listing search completed",
            category_id=query.category_id,
            category_count=None
            if category_filter.is_unrestricted
            else len(category_filter.category_ids),
            total=total,
        )
        return listings, total

    @staticmethod
    def to_response(listing: ServiceListing) -> ServiceListingSchema:
        """Response DTO with the resolved display category name."""
        response = ServiceListingSchema.model_validate(listing)
        return response.model_copy(
            update={"category_name": resolve_display_category_name(listing)}
        )


class ServiceManagementService:
    """Business logic for services and their category tags."""

    @staticmethod
    async def get_service(db: AsyncSession, service_id: int) -> Optional[Service]:
        """Get a single service with its tags loaded."""
        stmt = (
            select(Service)
            .options(selectinload(Service.tags))
            .filter(Service.id == service_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_service(db: AsyncSession, service_data: ServiceCreate) -> Service:
        """Create a new service and materialize its category paths."""
        listing = await db.get(ServiceListing, service_data.listing_id)
        if not listing:
            raise HTTPException(status_code=400, detail="Listing not found")

        # Validate legacy category exists if provided
        await _require_active_category(db, service_data.category_id)

        category_paths = await CategoryPathBuilder(
            CategoryStore(db)
        ).build_paths_or_fallback(service_data.category_ids, fallback=[])

        db_service = Service(
            **service_data.model_dump(exclude={"category_ids"}),
            category_paths=category_paths,
            tags=[
                ServiceCategoryTag(category_id=category_id, position=position)
                for position, category_id in enumerate(service_data.category_ids)
            ],
        )
        db.add(db_service)
        await db.commit()

        logger.info(
            "Service created",
            service_id=db_service.id,
            category_ids=service_data.category_ids,
            path_count=len(category_paths),
        )
        return await ServiceManagementService.get_service(db, db_service.id)

    @staticmethod
    async def update_service(
        db: AsyncSession, service_id: int, service_data: ServiceUpdate
    ) -> Optional[Service]:
        """Update a service; changed category tags refresh its paths."""
        db_service = await ServiceManagementService.get_service(db, service_id)
        if not db_service:
            return None

        # Validate legacy category if being updated
        if service_data.category_id is not None:
            await _require_active_category(db, service_data.category_id)

        # An explicit null on a required column leaves it unchanged
        update_data = {
            field: value
            for field, value in service_data.model_dump(
                exclude_unset=True, exclude={"category_ids"}
            ).items()
            if value is not None or field in ("description", "category_id")
        }
        for field, value in update_data.items():
            setattr(db_service, field, value)

        if service_data.category_ids is not None:
            ServiceManagementService._assign_tags(db_service, service_data.category_ids)
            db_service.category_paths = await CategoryPathBuilder(
                CategoryStore(db)
            ).build_paths_or_fallback(
                service_data.category_ids, fallback=db_service.category_paths
            )

        await db.commit()

        logger.info(
            "Service updated", service_id=service_id, fields=sorted(service_data.model_fields_set)
        )
        return await ServiceManagementService.get_service(db, service_id)

    @staticmethod
    def _assign_tags(db_service: Service, category_ids: list[int]) -> None:
        # Reuse existing tag rows so unchanged links are updated, not re-inserted
        existing = {tag.category_id: tag for tag in db_service.tags}
        tags = []
        for position, category_id in enumerate(category_ids):
            tag = existing.get(category_id) or ServiceCategoryTag(category_id=category_id)
            tag.position = position
            tags.append(tag)
        db_service.tags = tags
