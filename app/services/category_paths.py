"""Materialized category paths for tagged services.

A path is the list of ``CategoryRef`` from a root down to one tagged
category. Paths are a read-side convenience stored on ``Service`` and can
always be rebuilt from the ``parent_id`` chain, so building them is best
effort: a bad id is logged and skipped, never allowed to fail a write.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CategoryCycleError, CategoryNotFoundError
from app.schemas.category import CategoryRef
from app.services.category_navigator import walk_to_root
from app.services.category_store import CategoryStore

logger = structlog.get_logger(__name__)


@dataclass
class PathBuildResult:
    """Paths that could be built plus the ids that could not."""

    paths: list[list[CategoryRef]] = field(default_factory=list)
    missing_ids: list[int] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_ids

    def to_json(self) -> list[list[dict[str, Any]]]:
        """Storage format for ``Service.category_paths``."""
        return [[ref.model_dump() for ref in path] for path in self.paths]


class CategoryPathBuilder:
    """Builds root-to-leaf paths for a set of category ids."""

    def __init__(self, store: CategoryStore):
        self.store = store

    async def build_path(self, category_id: int) -> list[CategoryRef]:
        """Path for a single id, inactive ancestors included.

        Raises ``CategoryNotFoundError`` when the id or one of its parents
        does not resolve and ``CategoryCycleError`` on a parent loop.
        """
        category = await self.store.find_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)

        chain, reached_root = await walk_to_root(self.store, category)
        if not reached_root:
            raise CategoryNotFoundError(chain[0].parent_id)

        return [CategoryRef(id=c.id, name=c.name) for c in chain]

    async def build_paths(self, category_ids: Iterable[int]) -> PathBuildResult:
        """One path per id, in input order with duplicates dropped.

        Ids that fail are logged and reported in ``missing_ids``.
        """
        result = PathBuildResult()
        ordered_ids = list(dict.fromkeys(category_ids))

        for category_id in ordered_ids:
            try:
                result.paths.append(await self.build_path(category_id))
            except CategoryNotFoundError as e:
                logger.warning(
                    "Category not found while building path, skipping",
                    category_id=category_id,
                    unresolved_id=e.category_id,
                )
                result.missing_ids.append(category_id)
            except CategoryCycleError as e:
                logger.warning(
                    "Cycle in category tree while building path, skipping",
                    category_id=category_id,
                    chain=e.chain,
                )
                result.missing_ids.append(category_id)

        logger.info(
            "Built category paths",
            built=len(result.paths),
            requested=len(ordered_ids),
        )
        return result

    async def build_paths_or_fallback(
        self,
        category_ids: Iterable[int],
        fallback: Optional[list] = None,
    ) -> list[list[dict[str, Any]]]:
        """Refresh stored paths without ever failing the surrounding write.

        Returns the storage format. Any failure, including the database
        being unavailable, logs and returns ``fallback`` (or ``[]``).
        """
        category_ids = list(category_ids)
        try:
            result = await self.build_paths(category_ids)
        except Exception as e:
            logger.warning(
                "Failed to rebuild category paths, keeping previous value",
                category_ids=category_ids,
                exc_info=e,
            )
            return list(fallback or [])

        if not result.is_complete:
            logger.warning(
                "Some category paths could not be built",
                missing_ids=result.missing_ids,
            )
        return result.to_json()


async def build_category_paths_from_ids(
    db: AsyncSession, category_ids: Iterable[int]
) -> list[list[CategoryRef]]:
    """Paths for ``category_ids`` read through ``db``; bad ids are skipped."""
    result = await CategoryPathBuilder(CategoryStore(db)).build_paths(category_ids)
    return result.paths
