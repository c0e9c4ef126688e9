"""Shared test fixtures for the web test suite."""

import base64

import pytest

from deals.models import ProductRecord
from deals.store import SQLiteDealStore


def make_product(model_number, brand, price, **kwargs):
    """Build a ProductRecord with sensible defaults."""
    fields = {
        "brand": brand,
        "model_number": model_number,
        "title": f"{brand} {model_number}",
        "price": price,
        "reviews": 4.0,
        "deal_url": "https://www.amazon.com/dp/B0TEST0001?tag=ndmlabs-20",
    }
    fields.update(kwargs)
    return ProductRecord(**fields)


@pytest.fixture(autouse=True)
def no_admin_credentials(monkeypatch):
    """Admin auth is off unless a test turns it on."""
    monkeypatch.delenv("ADMIN_USER", raising=False)
    monkeypatch.delenv("ADMIN_PASS", raising=False)


@pytest.fixture
def store(tmp_path):
    """Empty SQLite store."""
    return SQLiteDealStore(str(tmp_path / "deals.db"))


@pytest.fixture
def seeded_store(store):
    """Store holding three deals."""
    store.insert_product(make_product(
        "S8-PRO", "Roborock", 899.0,
        deal_url="https://www.amazon.com/dp/B0S8PRO001?tag=ndmlabs-20",
        suction_power=6000, self_empty=True, mopping=True, cleaniq_score=9.5,
    ))
    store.insert_product(make_product(
        "AV2501AE", "Shark", 449.0,
        deal_url="https://www.amazon.com/dp/B0SHARK001?tag=ndmlabs-20",
        suction_power=2500, cleaniq_score=8.0,
    ))
    store.insert_product(make_product(
        "V3", "Eufy", 129.0,
        title="USED-Eufy RoboVac V3",
        deal_url="https://www.amazon.com/dp/B0EUFYV301?tag=ndmlabs-20",
    ))
    return store


@pytest.fixture
def app(seeded_store):
    from web.app import create_app

    app = create_app(store=seeded_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def auth_header():
    """Enable admin auth and return a matching Authorization header."""
    def _make(user="admin", password="secret"):
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        return {"Authorization": f"Basic {token}"}
    return _make
