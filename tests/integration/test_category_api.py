import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from tests.fixtures.category_fixtures import category_tree, tagged_listings


@pytest.fixture
async def client():
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


class TestCategoryBrowsingAPI:
    """Test category read endpoints."""

    async def test_get_roots(self, client: AsyncClient, category_tree):
        """Test getting root categories via API."""
        response = await client.get("/api/v1/categories/roots")

        assert response.status_code == 200
        data = response.json()
        assert [c["name"] for c in data] == ["Beauty", "Home Services"]
        assert data[0]["child_count"] == 2

    async def test_get_tree(self, client: AsyncClient, category_tree):
        """Test getting the nested tree via API."""
        response = await client.get("/api/v1/categories/tree")

        assert response.status_code == 200
        beauty = response.json()[0]
        assert beauty["children"][0]["name"] == "Hair Services"
        assert beauty["children"][0]["children"][0]["name"] == "Hair Cutting"

    async def test_get_flat(self, client: AsyncClient, category_tree):
        """Test getting the flat active list via API."""
        response = await client.get("/api/v1/categories/flat")

        assert response.status_code == 200
        assert "Nail Services" not in [c["name"] for c in response.json()]

    async def test_get_stats(self, client: AsyncClient, category_tree):
        """Test tree statistics via API."""
        response = await client.get("/api/v1/categories/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total_categories": 12,
            "root_categories": 2,
            "max_depth": 4,
        }

    async def test_search(self, client: AsyncClient, category_tree):
        """Test category search returns breadcrumb paths."""
        response = await client.get("/api/v1/categories/search", params={"q": "stone"})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["path"] == "Beauty > Massage > Hot Stone Massage"

    async def test_search_requires_query(self, client: AsyncClient):
        """Test a missing query is rejected."""
        response = await client.get("/api/v1/categories/search")

        assert response.status_code == 422

    async def test_get_category(self, client: AsyncClient, category_tree, tagged_listings):
        """Test getting a single category with its parent."""
        response = await client.get(f"/api/v1/categories/{category_tree['mens'].id}")

        assert response.status_code == 200
        data = response.json()
        assert data["slug"] == "men-s-haircuts"
        assert data["parent"]["name"] == "Hair Cutting"
        assert data["child_count"] == 0

    async def test_get_category_not_found(self, client: AsyncClient):
        """Test getting an unknown category."""
        response = await client.get("/api/v1/categories/99999")

        assert response.status_code == 404
        assert response.json()["detail"] == "Category not found"

    async def test_get_children(self, client: AsyncClient, category_tree):
        """Test getting children via API."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['beauty'].id}/children"
        )

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Hair Services", "Massage"]

    async def test_has_children(self, client: AsyncClient, category_tree):
        """Test the children check via API."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['plumbing'].id}/has-children"
        )

        assert response.status_code == 200
        assert response.json() == {"has_children": False, "child_count": 0}


class TestCategoryNavigationAPI:
    """Test hierarchy navigation endpoints."""

    async def test_ancestors(self, client: AsyncClient, category_tree):
        """Test ancestors are returned root first."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['mens'].id}/ancestors"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["relation"] == "ancestors"
        assert data["category_ids"] == [
            category_tree["beauty"].id,
            category_tree["hair"].id,
            category_tree["cutting"].id,
        ]

    async def test_descendants(self, client: AsyncClient, category_tree):
        """Test descendants include every active level."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['hair'].id}/descendants"
        )

        assert response.status_code == 200
        assert response.json()["category_ids"] == sorted(
            category_tree[name].id for name in ("cutting", "coloring", "mens", "womens")
        )

    async def test_siblings(self, client: AsyncClient, category_tree):
        """Test siblings via API."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['mens'].id}/siblings"
        )

        assert response.json()["category_ids"] == [category_tree["womens"].id]

    async def test_related(self, client: AsyncClient, category_tree):
        """Test related categories via API."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['massage'].id}/related"
        )

        assert response.json()["category_ids"] == sorted(
            category_tree[name].id for name in ("beauty", "hair", "massage", "hot_stone")
        )

    async def test_by_depth(self, client: AsyncClient, category_tree):
        """Test categories at a fixed depth via API."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['beauty'].id}/depth/2"
        )

        data = response.json()
        assert data["relation"] == "depth:2"
        assert data["category_ids"] == sorted(
            category_tree[name].id for name in ("cutting", "coloring", "hot_stone")
        )

    async def test_by_negative_depth(self, client: AsyncClient, category_tree):
        """Test a negative depth is rejected."""
        response = await client.get(
            f"/api/v1/categories/{category_tree['beauty'].id}/depth/-1"
        )

        assert response.status_code == 400

    async def test_unknown_category_is_empty(self, client: AsyncClient):
        """Test navigation for an unknown id returns an empty set."""
        response = await client.get("/api/v1/categories/99999/descendants")

        assert response.status_code == 200
        assert response.json()["category_ids"] == []

    async def test_cycle_returns_conflict(self, client: AsyncClient, db, category_tree):
        """Test a corrupted tree surfaces as 409."""
        category_tree["beauty"].parent_id = category_tree["mens"].id
        await db.commit()

        response = await client.get(
            f"/api/v1/categories/{category_tree['hair'].id}/ancestors"
        )

        assert response.status_code == 409
        assert "Cycle detected" in response.json()["detail"]


class TestCategoryAdminAPI:
    """Test category write endpoints."""

    async def test_create_category(self, client: AsyncClient, category_tree):
        """Test creating a category via API."""
        category_data = {
            "name": "Kids Haircuts",
            "description": "Haircuts for children under twelve",
            "parent_id": category_tree["cutting"].id,
            "sort_order": 3,
        }

        response = await client.post("/api/v1/categories", json=category_data)

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "kids-haircuts"
        assert data["parent_id"] == category_tree["cutting"].id
        assert "id" in data
        assert "created_at" in data

    async def test_create_category_invalid_name(self, client: AsyncClient):
        """Test name validation via API."""
        response = await client.post("/api/v1/categories", json={"name": "Bad<Name>"})

        assert response.status_code == 422

    async def test_create_category_duplicate(self, client: AsyncClient, category_tree):
        """Test duplicate sibling names via API."""
        response = await client.post(
            "/api/v1/categories",
            json={"name": "Plumbing", "parent_id": category_tree["home"].id},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Category with this name already exists"

    async def test_update_category(self, client: AsyncClient, category_tree):
        """Test updating a category via API."""
        response = await client.put(
            f"/api/v1/categories/{category_tree['plumbing'].id}",
            json={"name": "Plumbing Repairs", "sort_order": 5},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["slug"] == "plumbing-repairs"
        assert data["sort_order"] == 5

    async def test_update_category_circular(self, client: AsyncClient, category_tree):
        """Test circular moves are rejected via API."""
        response = await client.put(
            f"/api/v1/categories/{category_tree['beauty'].id}",
            json={"parent_id": category_tree["hot_stone"].id},
        )

        assert response.status_code == 400
        assert "circular reference" in response.json()["detail"]

    async def test_update_category_null_name(self, client: AsyncClient, category_tree):
        """Test an explicit null name leaves the category untouched."""
        response = await client.put(
            f"/api/v1/categories/{category_tree['plumbing'].id}",
            json={"name": None, "sort_order": None, "is_active": None},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Plumbing"
        assert data["slug"] == "plumbing"
        assert data["is_active"] is True

    async def test_update_category_name_without_slug_characters(
        self, client: AsyncClient, category_tree
    ):
        """Test a rename that slugifies to nothing is rejected via API."""
        response = await client.put(
            f"/api/v1/categories/{category_tree['plumbing'].id}",
            json={"name": "&&"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Category name must contain letters or digits"

    async def test_update_category_not_found(self, client: AsyncClient):
        """Test updating an unknown category via API."""
        response = await client.put("/api/v1/categories/99999", json={"sort_order": 1})

        assert response.status_code == 404

    async def test_delete_category(self, client: AsyncClient, category_tree):
        """Test deleting a category via API."""
        response = await client.delete(
            f"/api/v1/categories/{category_tree['womens'].id}"
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Category deleted successfully"}

        response = await client.get(f"/api/v1/categories/{category_tree['womens'].id}")
        assert response.status_code == 404

    async def test_delete_category_with_children(self, client: AsyncClient, category_tree):
        """Test deleting a parent category via API."""
        response = await client.delete(f"/api/v1/categories/{category_tree['home'].id}")

        assert response.status_code == 400

    async def test_delete_category_not_found(self, client: AsyncClient):
        """Test deleting an unknown category via API."""
        response = await client.delete("/api/v1/categories/99999")

        assert response.status_code == 404


class TestHealthAPI:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
