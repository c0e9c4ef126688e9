"""Test public API endpoints."""

from unittest.mock import patch

from deals.store import StoreError


class TestDealsEndpoint:
    """Test GET /api/deals."""

    def test_lists_all_deals(self, client):
        response = client.get("/api/deals")
        assert response.status_code == 200
        data = response.json
        assert data["count"] == 3
        assert data["total"] == 3
        assert {d["model_number"] for d in data["deals"]} == {"S8-PRO", "AV2501AE", "V3"}

    def test_deal_fields(self, client):
        deals = client.get("/api/deals").json["deals"]
        s8 = next(d for d in deals if d["model_number"] == "S8-PRO")
        assert s8["features"] == ["Self-Empty", "Mopping"]
        assert s8["condition"] == "new"
        assert s8["price"] == 899.0
        assert s8["review_score"] is None

    def test_search(self, client):
        deals = client.get("/api/deals?q=shark").json["deals"]
        assert [d["model_number"] for d in deals] == ["AV2501AE"]

    def test_condition_used(self, client):
        deals = client.get("/api/deals?used=true").json["deals"]
        assert [d["model_number"] for d in deals] == ["V3"]

    def test_brand_filter_repeatable(self, client):
        deals = client.get("/api/deals?brand=roborock&brand=eufy").json["deals"]
        assert {d["model_number"] for d in deals} == {"S8-PRO", "V3"}

    def test_price_range(self, client):
        deals = client.get("/api/deals?min_price=200&max_price=500").json["deals"]
        assert [d["model_number"] for d in deals] == ["AV2501AE"]

    def test_sort_by_price_desc(self, client):
        deals = client.get("/api/deals?sort=price&direction=desc").json["deals"]
        assert [d["model_number"] for d in deals] == ["S8-PRO", "AV2501AE", "V3"]

    def test_invalid_sort_field(self, client):
        response = client.get("/api/deals?sort=title")
        assert response.status_code == 400
        assert "error" in response.json

    def test_invalid_direction(self, client):
        assert client.get("/api/deals?sort=price&direction=up").status_code == 400

    def test_empty_catalog(self, store):
        from web.app import create_app

        app = create_app(store=store)
        response = app.test_client().get("/api/deals")
        assert response.status_code == 200
        assert response.json["deals"] == []

    def test_store_failure_returns_502(self, client, seeded_store):
        with patch.object(seeded_store, "list_products", side_effect=StoreError("connection refused")):
            response = client.get("/api/deals")
        assert response.status_code == 502
        assert response.json["error"] == "Data store unavailable"


class TestBrandsEndpoint:
    def test_brands(self, client):
        response = client.get("/api/brands")
        assert response.status_code == 200
        assert set(response.json["brands"]) == {"ROBOROCK", "SHARK", "EUFY"}


class TestPostsEndpoint:
    """Test blog post listing and lookup."""

    def test_no_posts(self, client):
        assert client.get("/api/posts").json["posts"] == []

    def test_unknown_slug(self, client):
        response = client.get("/api/posts/missing")
        assert response.status_code == 404
        assert "error" in response.json

    def test_published_post(self, client, seeded_store):
        from deals.blog import build_post, publish_post

        publish_post(seeded_store, build_post("<h1>Mop Guide</h1><p>Mops.</p>"))

        posts = client.get("/api/posts").json["posts"]
        assert [p["slug"] for p in posts] == ["mop-guide"]

        post = client.get("/api/posts/mop-guide").json
        assert post["title"] == "Mop Guide"
        assert "<h1>Mop Guide</h1>" in post["html_content"]
        assert post["id"] is not None


class TestHealthEndpoint:
    def test_healthy(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json["status"] == "ok"

    def test_unreachable_store(self, client, seeded_store):
        with patch.object(seeded_store, "find_by_model_number", side_effect=StoreError("timeout")):
            response = client.get("/api/health")
        assert response.status_code == 502
        assert response.json["status"] == "error"


class TestErrors:
    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json == {"error": "Not found"}
