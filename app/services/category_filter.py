from dataclasses import dataclass
from typing import Iterable, Optional, Union

import structlog
from sqlalchemy import false, or_, true
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.service import Service, ServiceCategoryTag
from app.models.service_listing import ServiceListing
from app.services.category_navigator import CategoryNavigator
from app.services.category_store import CategoryStore

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "all"

CategorySelection = Union[int, str, None]


@dataclass(frozen=True)
class CategoryFilter:
    """Listing predicate "category is any of ``category_ids``".

    ``None`` means no category restriction; an empty set matches nothing.
    """

    category_ids: Optional[frozenset[int]] = None

    @classmethod
    def unrestricted(cls) -> "CategoryFilter":
        return cls(None)

    @classmethod
    def nothing(cls) -> "CategoryFilter":
        return cls(frozenset())

    @property
    def is_unrestricted(self) -> bool:
        return self.category_ids is None

    @property
    def matches_nothing(self) -> bool:
        return self.category_ids is not None and not self.category_ids

    def clause(self):
        """SQLAlchemy expression over ``ServiceListing``, safe to AND-merge.

        A listing matches through its own legacy ``category_id`` or through
        any of its services' legacy ``category_id`` or tagged categories.
        """
        if self.is_unrestricted:
            return true()
        if self.matches_nothing:
            return false()

        ids = sorted(self.category_ids)
        return or_(
            ServiceListing.category_id.in_(ids),
            ServiceListing.services.any(
                or_(
                    Service.category_id.in_(ids),
                    Service.tags.any(ServiceCategoryTag.category_id.in_(ids)),
                )
            ),
        )

    def matches(self, tagged_ids: Iterable[Optional[int]]) -> bool:
        """Evaluate the predicate against a listing's tagged category ids."""
        if self.is_unrestricted:
            return True
        return any(cid in self.category_ids for cid in tagged_ids if cid is not None)


def parse_category_id(value: CategorySelection) -> Optional[int]:
    """Integer id from a query value; ``None`` when it cannot be one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class CategoryFilterBuilder:
    """Turns a category selection into a ``CategoryFilter``."""

    def __init__(self, navigator: CategoryNavigator):
        self.navigator = navigator

    async def build(
        self,
        category_id: CategorySelection,
        subcategory_ids: Optional[Iterable[int]] = None,
    ) -> CategoryFilter:
        subcategory_ids = list(dict.fromkeys(subcategory_ids or []))

        # An explicit subcategory selection is matched as given, no expansion
        if subcategory_ids:
            logger.debug(
                "Explicit subcategory filtering",
                category_id=category_id,
                subcategory_ids=subcategory_ids,
            )
            return CategoryFilter(frozenset(subcategory_ids))

        if category_id is None or category_id == ALL_CATEGORIES:
            return CategoryFilter.unrestricted()

        parsed_id = parse_category_id(category_id)
        if parsed_id is None or await self.navigator.resolve(parsed_id) is None:
            logger.warning(
                "Unknown or inactive category in filter, matching nothing",
                category_id=category_id,
            )
            return CategoryFilter.nothing()

        expanded = {parsed_id} | await self.navigator.descendants(parsed_id)
        logger.debug(
            "Deep category filtering",
            category_id=parsed_id,
            category_count=len(expanded),
        )
        return CategoryFilter(frozenset(expanded))


async def build_category_filter(
    db: AsyncSession,
    category_id: CategorySelection,
    subcategory_ids: Optional[Iterable[int]] = None,
    navigator: Optional[CategoryNavigator] = None,
) -> CategoryFilter:
    """Filter for a listing search; pass ``navigator`` to reuse its caches."""
    navigator = navigator or CategoryNavigator(CategoryStore(db))
    return await CategoryFilterBuilder(navigator).build(category_id, subcategory_ids)
