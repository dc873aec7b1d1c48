from typing import Iterable, Optional

import structlog

from app.core.exceptions import CategoryCycleError
from app.models.category import Category
from app.services.category_store import CategoryStore

logger = structlog.get_logger(__name__)


async def walk_to_root(
    store: CategoryStore, category: Category
) -> tuple[list[Category], bool]:
    """Follow ``parent_id`` pointers from ``category`` up to its root.

    Returns the chain root first, ending with ``category`` itself, and
    whether the walk reached a real root. A parent id that no longer
    resolves stops the walk early with ``False``. Revisiting a node raises
    ``CategoryCycleError``.
    """
    chain = [category]
    visited = {category.id}
    current = category

    while current.parent_id is not None:
        if current.parent_id in visited:
            raise CategoryCycleError(
                current.parent_id, [c.id for c in chain] + [current.parent_id]
            )
        parent = await store.find_by_id(current.parent_id)
        if parent is None:
            logger.warning(
                "Dangling parent reference in category tree",
                category_id=current.id,
                parent_id=current.parent_id,
            )
            chain.reverse()
            return chain, False
        visited.add(parent.id)
        chain.append(parent)
        current = parent

    chain.reverse()
    return chain, True


class CategoryNavigator:
    """Expands a category into related id sets for filtering and display.

    Intended to live for one request: chains and descendant expansions are
    memoized on the instance, so the cache never outlives the tree snapshot a
    request is working with. Unknown and inactive ids yield empty results, as
    do categories sitting under an inactive ancestor.
    """

    def __init__(self, store: CategoryStore):
        self.store = store
        self._chains: dict[int, list[Category]] = {}
        self._descendants: dict[int, set[int]] = {}

    async def _chain(self, category: Category) -> list[Category]:
        if category.id not in self._chains:
            chain, _ = await walk_to_root(self.store, category)
            self._chains[category.id] = chain
        return self._chains[category.id]

    async def resolve(self, category_id: int) -> Optional[Category]:
        """Get a reachable category, or ``None``.

        A category is reachable when it and every ancestor are active.
        """
        category = await self.store.find_by_id(category_id)
        if category is None or not category.is_active:
            return None
        if not all(c.is_active for c in await self._chain(category)):
            return None
        return category

    async def ancestors(self, category_id: int, active_only: bool = True) -> list[int]:
        """Ancestor ids, root first and immediate parent last.

        With ``active_only=False`` the full chain is returned whatever the
        status of the category or its ancestors.
        """
        if active_only:
            category = await self.resolve(category_id)
        else:
            category = await self.store.find_by_id(category_id)
        if category is None:
            return []

        return [c.id for c in (await self._chain(category))[:-1]]

    async def path(self, category_id: int) -> list[int]:
        """Root-to-node id path; empty for unknown ids."""
        if await self.resolve(category_id) is None:
            return []
        return await self.ancestors(category_id) + [category_id]

    async def descendants(self, category_id: int) -> set[int]:
        """Every active descendant id at any depth, excluding the category."""
        if category_id in self._descendants:
            return set(self._descendants[category_id])

        category = await self.resolve(category_id)
        if category is None:
            return set()

        found: set[int] = set()
        visited = {category.id}
        frontier = [category.id]
        while frontier:
            frontier = await self._next_level(frontier, visited)
            found.update(frontier)

        logger.debug(
            "Expanded category descendants",
            category_id=category_id,
            descendant_count=len(found),
        )
        self._descendants[category_id] = found
        return set(found)

    async def siblings(self, category_id: int) -> set[int]:
        """Active categories sharing the same parent, excluding the category."""
        category = await self.resolve(category_id)
        if category is None:
            return set()

        siblings = await self.store.find_siblings(category.parent_id, category.id)
        return {s.id for s in siblings}

    async def related(self, category_id: int) -> set[int]:
        """The category with its ancestors, siblings and descendants."""
        if await self.resolve(category_id) is None:
            return set()

        related = {category_id}
        related.update(await self.ancestors(category_id))
        related.update(await self.siblings(category_id))
        related.update(await self.descendants(category_id))
        return related

    async def by_depth(self, category_id: int, depth: int) -> set[int]:
        """Active ids exactly ``depth`` levels below the category."""
        if depth < 0:
            raise ValueError("depth must be zero or positive")

        category = await self.resolve(category_id)
        if category is None:
            return set()

        visited = {category.id}
        level = [category.id]
        for _ in range(depth):
            if not level:
                break
            level = await self._next_level(level, visited)
        return set(level)

    async def _next_level(self, frontier: Iterable[int], visited: set[int]) -> list[int]:
        children = await self.store.find_children_of_many(frontier)
        level = []
        for child in children:
            if child.id in visited:
                raise CategoryCycleError(child.id, [child.parent_id, child.id])
            visited.add(child.id)
            level.append(child.id)
        return level
