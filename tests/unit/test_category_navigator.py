import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CategoryCycleError
from app.models.category import Category
from app.services.category_navigator import CategoryNavigator, walk_to_root
from app.services.category_store import CategoryStore
from tests.fixtures.category_fixtures import add_category, category_tree


class CountingStore(CategoryStore):
    """Store that counts child lookups so cache hits can be observed."""

    def __init__(self, db):
        super().__init__(db)
        self.child_queries = 0

    async def find_children_of_many(self, parent_ids, active_only=True):
        self.child_queries += 1
        return await super().find_children_of_many(parent_ids, active_only)


def ids(tree, *names):
    return {tree[name].id for name in names}


class TestCategoryAncestors:
    """Test ancestor chains."""

    async def test_ancestors_root_first(self, db: AsyncSession, category_tree):
        """Test ancestors are ordered from the root to the immediate parent."""
        navigator = CategoryNavigator(CategoryStore(db))

        ancestors = await navigator.ancestors(category_tree["mens"].id)

        assert ancestors == [
            category_tree["beauty"].id,
            category_tree["hair"].id,
            category_tree["cutting"].id,
        ]

    async def test_root_has_no_ancestors(self, db: AsyncSession, category_tree):
        """Test a root category has an empty ancestor chain."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.ancestors(category_tree["beauty"].id) == []

    async def test_unknown_category(self, db: AsyncSession, category_tree):
        """Test unknown ids yield empty results instead of raising."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.ancestors(99999) == []
        assert await navigator.path(99999) == []
        assert await navigator.descendants(99999) == set()
        assert await navigator.siblings(99999) == set()
        assert await navigator.related(99999) == set()
        assert await navigator.by_depth(99999, 1) == set()

    async def test_inactive_category_is_treated_as_unknown(
        self, db: AsyncSession, category_tree
    ):
        """Test an inactive category expands to nothing."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.ancestors(category_tree["nails"].id) == []
        assert await navigator.descendants(category_tree["nails"].id) == set()

    async def test_inactive_ancestor_makes_category_unreachable(
        self, db: AsyncSession, category_tree
    ):
        """Test an active category under an inactive parent expands to nothing."""
        navigator = CategoryNavigator(CategoryStore(db))
        gel_id = category_tree["gel"].id

        assert await navigator.resolve(gel_id) is None
        assert await navigator.ancestors(gel_id) == []
        assert await navigator.path(gel_id) == []
        assert await navigator.siblings(gel_id) == set()
        assert await navigator.related(gel_id) == set()

    async def test_full_chain_on_request(self, db: AsyncSession, category_tree):
        """Test the unfiltered chain still lists inactive ancestors."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.ancestors(category_tree["gel"].id, active_only=False) == [
            category_tree["beauty"].id,
            category_tree["nails"].id,
        ]

    async def test_related_is_symmetric_around_inactive_branch(
        self, db: AsyncSession, category_tree
    ):
        """Test no reachable category relates to one under an inactive parent."""
        navigator = CategoryNavigator(CategoryStore(db))

        related = await navigator.related(category_tree["beauty"].id)

        assert category_tree["gel"].id not in related
        assert category_tree["beauty"].id not in await navigator.related(
            category_tree["gel"].id
        )

    async def test_path_ends_with_category(self, db: AsyncSession, category_tree):
        """Test the root-to-node path includes the category itself."""
        navigator = CategoryNavigator(CategoryStore(db))

        path = await navigator.path(category_tree["hot_stone"].id)

        assert path == [
            category_tree["beauty"].id,
            category_tree["massage"].id,
            category_tree["hot_stone"].id,
        ]


class TestCategoryDescendants:
    """Test descendant expansion."""

    async def test_descendants_all_depths(self, db: AsyncSession, category_tree):
        """Test every active descendant is found, the category excluded."""
        navigator = CategoryNavigator(CategoryStore(db))

        descendants = await navigator.descendants(category_tree["beauty"].id)

        assert descendants == ids(
            category_tree,
            "hair", "massage", "cutting", "coloring", "hot_stone", "mens", "womens",
        )
        assert category_tree["beauty"].id not in descendants

    async def test_descendants_skip_inactive_subtree(
        self, db: AsyncSession, category_tree
    ):
        """Test descendants do not pass through an inactive category."""
        navigator = CategoryNavigator(CategoryStore(db))

        descendants = await navigator.descendants(category_tree["beauty"].id)

        assert category_tree["nails"].id not in descendants
        assert category_tree["gel"].id not in descendants

    async def test_leaf_has_no_descendants(self, db: AsyncSession, category_tree):
        """Test a leaf expands to the empty set."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.descendants(category_tree["mens"].id) == set()

    async def test_deactivated_leaf_excluded_for_new_navigator(
        self, db: AsyncSession, category_tree
    ):
        """Test a deactivated category disappears from fresh expansions."""
        category_tree["womens"].is_active = False
        await db.commit()

        navigator = CategoryNavigator(CategoryStore(db))
        descendants = await navigator.descendants(category_tree["cutting"].id)

        assert descendants == {category_tree["mens"].id}

    async def test_descendants_memoized(self, db: AsyncSession, category_tree):
        """Test repeated expansion within one navigator reuses the result."""
        store = CountingStore(db)
        navigator = CategoryNavigator(store)

        first = await navigator.descendants(category_tree["beauty"].id)
        queries = store.child_queries
        second = await navigator.descendants(category_tree["beauty"].id)

        assert first == second
        assert store.child_queries == queries

    async def test_memoized_result_is_a_copy(self, db: AsyncSession, category_tree):
        """Test callers cannot corrupt the cache by mutating a result."""
        navigator = CategoryNavigator(CategoryStore(db))

        first = await navigator.descendants(category_tree["hair"].id)
        first.clear()

        assert await navigator.descendants(category_tree["hair"].id) == ids(
            category_tree, "cutting", "coloring", "mens", "womens"
        )


class TestCategorySiblingsAndRelated:
    """Test sibling and related expansions."""

    async def test_siblings_exclude_self_and_inactive(
        self, db: AsyncSession, category_tree
    ):
        """Test siblings share the parent and skip inactive categories."""
        navigator = CategoryNavigator(CategoryStore(db))

        siblings = await navigator.siblings(category_tree["hair"].id)

        assert siblings == {category_tree["massage"].id}

    async def test_root_siblings_are_other_roots(self, db: AsyncSession, category_tree):
        """Test siblings of a root are the other active roots."""
        navigator = CategoryNavigator(CategoryStore(db))

        assert await navigator.siblings(category_tree["beauty"].id) == {
            category_tree["home"].id
        }

    async def test_related(self, db: AsyncSession, category_tree):
        """Test related combines self, ancestors, siblings and descendants."""
        navigator = CategoryNavigator(CategoryStore(db))

        related = await navigator.related(category_tree["cutting"].id)

        assert related == ids(
            category_tree, "beauty", "hair", "coloring", "cutting", "mens", "womens"
        )


class TestCategoriesByDepth:
    """Test depth-limited expansion."""

    async def test_by_depth_levels(self, db: AsyncSession, category_tree):
        """Test each depth returns exactly that level."""
        navigator = CategoryNavigator(CategoryStore(db))
        beauty_id = category_tree["beauty"].id

        assert await navigator.by_depth(beauty_id, 0) == {beauty_id}
        assert await navigator.by_depth(beauty_id, 1) == ids(category_tree, "hair", "massage")
        assert await navigator.by_depth(beauty_id, 2) == ids(
            category_tree, "cutting", "coloring", "hot_stone"
        )
        assert await navigator.by_depth(beauty_id, 3) == ids(category_tree, "mens", "womens")
        assert await navigator.by_depth(beauty_id, 4) == set()

    async def test_negative_depth(self, db: AsyncSession, category_tree):
        """Test a negative depth is rejected."""
        navigator = CategoryNavigator(CategoryStore(db))

        with pytest.raises(ValueError):
            await navigator.by_depth(category_tree["beauty"].id, -1)


class TestCategoryCycles:
    """Test traversal over a corrupted parent chain."""

    @pytest.fixture
    async def cycle(self, db: AsyncSession) -> tuple[Category, Category]:
        first = await add_category(db, "Loop One")
        second = await add_category(db, "Loop Two", first)
        first.parent_id = second.id
        await db.commit()
        return first, second

    async def test_ancestors_raise_on_cycle(self, db: AsyncSession, cycle):
        """Test the upward walk detects a parent loop."""
        first, second = cycle
        navigator = CategoryNavigator(CategoryStore(db))

        with pytest.raises(CategoryCycleError) as exc_info:
            await navigator.ancestors(first.id)

        assert exc_info.value.chain == [first.id, second.id, first.id]

    async def test_descendants_raise_on_cycle(self, db: AsyncSession, cycle):
        """Test the downward expansion detects a revisit."""
        first, _ = cycle
        navigator = CategoryNavigator(CategoryStore(db))

        with pytest.raises(CategoryCycleError):
            await navigator.descendants(first.id)

    async def test_self_parent(self, db: AsyncSession):
        """Test a category pointing at itself is a cycle."""
        category = await add_category(db, "Self Loop")
        category.parent_id = category.id
        await db.commit()

        with pytest.raises(CategoryCycleError):
            await walk_to_root(CategoryStore(db), category)


class TestWalkToRoot:
    """Test the shared upward walk."""

    async def test_reaches_root(self, db: AsyncSession, category_tree):
        """Test a healthy chain reaches a root."""
        chain, reached_root = await walk_to_root(
            CategoryStore(db), category_tree["womens"]
        )

        assert reached_root is True
        assert [c.name for c in chain] == [
            "Beauty", "Hair Services", "Hair Cutting", "Women's Haircuts",
        ]

    async def test_dangling_parent(self, db: AsyncSession):
        """Test a parent id that no longer resolves stops the walk."""
        orphan = Category(name="Orphan", slug="orphan", parent_id=99999)
        db.add(orphan)
        await db.commit()

        chain, reached_root = await walk_to_root(CategoryStore(db), orphan)

        assert reached_root is False
        assert [c.id for c in chain] == [orphan.id]
