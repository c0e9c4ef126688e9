"""Tests for the SQLite and REST data stores."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from deals.config import POSTS_TABLE, PRODUCTS_TABLE, REQUEST_TIMEOUT
from deals.models import BlogPost, ProductRecord
from deals.store import RestDealStore, SQLiteDealStore, StoreError, create_store


def make_record(model_number: str = "Q7-MAX", **kwargs) -> ProductRecord:
    fields = dict(
        brand="Roborock",
        model_number=model_number,
        title=f"Roborock {model_number}",
        price=299.99,
        reviews=4.5,
        deal_url="https://www.amazon.com/dp/B0BXYZ1234?tag=ndmlabs-20",
    )
    fields.update(kwargs)
    return ProductRecord(**fields)


def make_post(slug: str = "best-robot-vacuums") -> BlogPost:
    return BlogPost(
        slug=slug,
        title="Best Robot Vacuums",
        date="2024-05-01",
        content="# Best Robot Vacuums\n\nIntro.",
        html_content="<h1>Best Robot Vacuums</h1>",
        excerpt="Intro.",
    )


class TestSQLiteDealStore:
    """Tests for the local SQLite store."""

    @pytest.fixture
    def store(self, tmp_path):
        return SQLiteDealStore(str(tmp_path / "nested" / "deals.db"))

    def test_init_creates_tables(self, store):
        with store.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row["name"] for row in cursor.fetchall()}
        assert PRODUCTS_TABLE in tables
        assert POSTS_TABLE in tables

    def test_insert_and_find(self, store):
        stored = store.insert_product(make_record(self_empty=True, suction_power=5500))

        assert stored["id"] is not None
        assert stored["self_empty"] is True
        assert stored["mopping"] is False
        assert stored["suction_power"] == 5500
        assert stored["created_at"]

        found = store.find_by_model_number("Q7-MAX")
        assert found["id"] == stored["id"]
        assert store.find_by_model_number("UNKNOWN") is None

    def test_list_products_newest_first(self, store):
        store.insert_product(make_record("A1"))
        store.insert_product(make_record("B2"))
        store.insert_product(make_record("C3"))

        assert [p["model_number"] for p in store.list_products()] == ["C3", "B2", "A1"]
        assert store.get_product_count() == 3

    def test_posts(self, store):
        stored = store.insert_post(make_post())

        assert stored.id is not None
        assert stored.created_at
        assert store.find_post_by_slug("best-robot-vacuums").title == "Best Robot Vacuums"
        assert store.find_post_by_slug("missing") is None
        assert [p.slug for p in store.list_posts()] == ["best-robot-vacuums"]

    def test_duplicate_slug_raises_store_error(self, store):
        store.insert_post(make_post())
        with pytest.raises(StoreError):
            store.insert_post(make_post())

    def test_sqlite_errors_are_wrapped(self, store):
        with store.get_connection() as conn:
            conn.execute(f"DROP TABLE {PRODUCTS_TABLE}")
            conn.commit()

        with pytest.raises(StoreError) as exc_info:
            store.find_by_model_number("Q7-MAX")
        assert exc_info.value.code == "OperationalError"

    def test_check_connection(self, store):
        assert store.check_connection() is True

    def test_check_connection_unopenable_path(self, store, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store.db_path = str(blocker / "deals.db")

        assert store.check_connection() is False
        with pytest.raises(StoreError):
            store.list_products()


def make_response(status: int = 200, body=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.content = json.dumps(body).encode() if body is not None else b""
    resp.json.return_value = body
    return resp


class TestRestDealStore:
    """Tests for the hosted REST store, with the HTTP session mocked."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def store(self, session):
        return RestDealStore("https://db.example.co/", "anon-key", session=session)

    def test_auth_headers(self, store, session):
        assert session.headers["apikey"] == "anon-key"
        assert session.headers["Authorization"] == "Bearer anon-key"

    def test_find_by_model_number(self, store, session):
        session.request.return_value = make_response(body=[{"id": 7, "model_number": "Q7-MAX"}])

        assert store.find_by_model_number("Q7-MAX") == {"id": 7, "model_number": "Q7-MAX"}
        session.request.assert_called_once_with(
            "GET",
            f"https://db.example.co/rest/v1/{PRODUCTS_TABLE}",
            timeout=REQUEST_TIMEOUT,
            params={"select": "*", "model_number": "eq.Q7-MAX", "limit": 1},
        )

    def test_find_returns_none_for_empty_result(self, store, session):
        session.request.return_value = make_response(body=[])
        assert store.find_by_model_number("Q7-MAX") is None

    def test_insert_product(self, store, session):
        session.request.return_value = make_response(201, body=[{"id": 9, "model_number": "Q7-MAX"}])

        stored = store.insert_product(make_record())

        assert stored["id"] == 9
        method, url = session.request.call_args[0]
        kwargs = session.request.call_args[1]
        assert method == "POST"
        assert kwargs["headers"] == {"Prefer": "return=representation"}
        assert kwargs["json"][0]["model_number"] == "Q7-MAX"

    def test_list_products_ordered(self, store, session):
        session.request.return_value = make_response(body=[])
        assert store.list_products() == []
        params = session.request.call_args[1]["params"]
        assert params["order"] == "created_at.desc"

    def test_error_response(self, store, session):
        session.request.return_value = make_response(
            409, body={"message": "duplicate key value", "code": "23505", "details": "Key exists"}
        )

        with pytest.raises(StoreError) as exc_info:
            store.insert_product(make_record())
        assert exc_info.value.message == "duplicate key value"
        assert exc_info.value.code == "23505"
        assert exc_info.value.details == "Key exists"

    def test_network_error(self, store, session):
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(StoreError):
            store.list_posts()
        assert store.check_connection() is False

    def test_posts(self, store, session):
        row = dict(make_post().to_dict(), id=3, created_at="2024-05-01T10:00:00+00:00")
        session.request.return_value = make_response(body=[row])

        post = store.find_post_by_slug("best-robot-vacuums")
        assert post.id == 3
        assert post.title == "Best Robot Vacuums"

        inserted = store.insert_post(make_post())
        assert inserted.id == 3
        assert "created_at" not in session.request.call_args[1]["json"]

    def test_requires_url_and_key(self):
        with pytest.raises(ValueError):
            RestDealStore("", "key")


class TestCreateStore:
    def test_sqlite_by_default(self, tmp_path):
        store = create_store(db_path=str(tmp_path / "deals.db"), store_url="")
        assert isinstance(store, SQLiteDealStore)

    def test_rest_when_url_set(self):
        store = create_store(store_url="https://db.example.co", store_key="anon-key")
        assert isinstance(store, RestDealStore)
