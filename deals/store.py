"""Data store clients for products and blog posts.

The catalog lives in a hosted Postgres REST service in production and in a
local SQLite file for development and tests. Both expose the same small
interface: query-by-field, insert, and newest-first listing.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import requests  # type: ignore[import-untyped]

from deals.config import (
    BOOLEAN_FIELDS,
    DB_PATH,
    HEADERS,
    POSTS_TABLE,
    PRODUCTS_TABLE,
    REQUEST_TIMEOUT,
    SCORE_FIELDS,
    SPEC_INT_FIELDS,
    STORE_KEY,
    STORE_URL,
)
from deals.logging_config import get_logger
from deals.models import BlogPost, ProductRecord

__all__ = [
    "StoreError",
    "DealStore",
    "SQLiteDealStore",
    "RestDealStore",
    "create_store",
]

logger = get_logger("store")


class StoreError(Exception):
    """Raised when the data store rejects or fails a request."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class DealStore(ABC):
    """Interface to the product and blog post tables."""

    @abstractmethod
    def find_by_model_number(self, model_number: str) -> Optional[Dict[str, Any]]:
        """Return the stored product with this model number, or None."""

    @abstractmethod
    def insert_product(self, record: ProductRecord) -> Dict[str, Any]:
        """Insert a product and return the stored row."""

    @abstractmethod
    def list_products(self) -> List[Dict[str, Any]]:
        """All products, newest first."""

    @abstractmethod
    def find_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        """Return the post with this slug, or None."""

    @abstractmethod
    def insert_post(self, post: BlogPost) -> BlogPost:
        """Insert a blog post and return it with its ID set."""

    @abstractmethod
    def list_posts(self) -> List[BlogPost]:
        """All blog posts, newest first."""

    def check_connection(self) -> bool:
        """Run a one-row query to confirm the store is reachable."""
        try:
            self.find_by_model_number("__connection_check__")
        except StoreError as e:
            logger.error(f"Store connection test failed: {e.message}")
            return False
        logger.info("Store connection test successful")
        return True


# =============================================================================
# SQLite
# =============================================================================

def _product_columns_sql() -> str:
    columns = [
        "brand TEXT NOT NULL",
        "model_number TEXT NOT NULL",
        "title TEXT NOT NULL",
        "description TEXT",
        "price REAL NOT NULL",
        "reviews REAL NOT NULL",
        "image_url TEXT",
        "deal_url TEXT NOT NULL",
        "navigation_type TEXT",
    ]
    columns += [f"{name} INTEGER" for name in SPEC_INT_FIELDS]
    columns += [f"{name} INTEGER NOT NULL DEFAULT 0" for name in BOOLEAN_FIELDS]
    columns += [f"{name} REAL" for name in SCORE_FIELDS]
    return ",\n                ".join(columns)


class SQLiteDealStore(DealStore):
    """Local SQLite store using the same table layout as the hosted one."""

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self.init_db()

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = None
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except (sqlite3.Error, OSError) as e:
            raise StoreError(str(e), code=type(e).__name__) from e
        finally:
            if conn is not None:
                conn.close()

    def init_db(self) -> None:
        """Initialize the database schema."""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {PRODUCTS_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                {_product_columns_sql()},
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {POSTS_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    slug TEXT UNIQUE NOT NULL,
                    title TEXT NOT NULL,
                    date TEXT,
                    excerpt TEXT,
                    featured_image TEXT,
                    content TEXT NOT NULL,
                    html_content TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # model_number is checked before insert, not constrained
            cursor.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{PRODUCTS_TABLE}_model_number "
                f"ON {PRODUCTS_TABLE}(model_number)"
            )
            cursor.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{PRODUCTS_TABLE}_created_at "
                f"ON {PRODUCTS_TABLE}(created_at)"
            )

            conn.commit()

    @staticmethod
    def _product_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        product = dict(row)
        for name in BOOLEAN_FIELDS:
            product[name] = bool(product.get(name))
        return product

    def find_by_model_number(self, model_number: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM {PRODUCTS_TABLE} WHERE model_number = ? LIMIT 1",
                (model_number,),
            )
            row = cursor.fetchone()
            return self._product_from_row(row) if row else None

    def insert_product(self, record: ProductRecord) -> Dict[str, Any]:
        data = record.to_dict()
        cols = list(data.keys())
        placeholders = ", ".join("?" for _ in cols)
        values = [int(v) if isinstance(v, bool) else v for v in data.values()]

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {PRODUCTS_TABLE} ({', '.join(cols)}) VALUES ({placeholders})",
                values,
            )
            product_id = cursor.lastrowid
            conn.commit()

            cursor.execute(f"SELECT * FROM {PRODUCTS_TABLE} WHERE id = ?", (product_id,))
            return self._product_from_row(cursor.fetchone())

    def list_products(self) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM {PRODUCTS_TABLE} ORDER BY created_at DESC, id DESC")
            return [self._product_from_row(row) for row in cursor.fetchall()]

    def get_product_count(self) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) as count FROM {PRODUCTS_TABLE}")
            return cursor.fetchone()["count"]

    def find_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM {POSTS_TABLE} WHERE slug = ?", (slug,))
            row = cursor.fetchone()
            return BlogPost.from_dict(dict(row)) if row else None

    def insert_post(self, post: BlogPost) -> BlogPost:
        data = post.to_dict()
        if not data.get("created_at"):
            data.pop("created_at", None)
        cols = list(data.keys())
        placeholders = ", ".join("?" for _ in cols)

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {POSTS_TABLE} ({', '.join(cols)}) VALUES ({placeholders})",
                list(data.values()),
            )
            post_id = cursor.lastrowid
            conn.commit()

            cursor.execute(f"SELECT * FROM {POSTS_TABLE} WHERE id = ?", (post_id,))
            return BlogPost.from_dict(dict(cursor.fetchone()))

    def list_posts(self) -> List[BlogPost]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM {POSTS_TABLE} ORDER BY created_at DESC, id DESC")
            return [BlogPost.from_dict(dict(row)) for row in cursor.fetchall()]


# =============================================================================
# Hosted REST (PostgREST-style)
# =============================================================================

class RestDealStore(DealStore):
    """Client for the hosted database's REST interface.

    Filters use PostgREST syntax (``?model_number=eq.X``), inserts return the
    stored representation, and errors come back as JSON with ``message``,
    ``code`` and ``details``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        if not base_url or not api_key:
            raise ValueError("RestDealStore needs both a base URL and an API key")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        })

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, **kwargs) -> Any:
        url = self._table_url(table)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {table} failed: {e}")
            raise StoreError(f"Request to data store failed: {e}") from e

        if not resp.ok:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get("message") or f"HTTP {resp.status_code}"
            logger.error(f"{method} {table} returned {resp.status_code}: {message}")
            raise StoreError(message, code=body.get("code"), details=body.get("details"))

        if not resp.content:
            return None
        return resp.json()

    def find_by_model_number(self, model_number: str) -> Optional[Dict[str, Any]]:
        rows = self._request(
            "GET",
            PRODUCTS_TABLE,
            params={"select": "*", "model_number": f"eq.{model_number}", "limit": 1},
        )
        return rows[0] if rows else None

    def insert_product(self, record: ProductRecord) -> Dict[str, Any]:
        rows = self._request(
            "POST",
            PRODUCTS_TABLE,
            json=[record.to_dict()],
            headers={"Prefer": "return=representation"},
        )
        return rows[0] if rows else record.to_dict()

    def list_products(self) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            PRODUCTS_TABLE,
            params={"select": "*", "order": "created_at.desc"},
        ) or []

    def find_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        rows = self._request(
            "GET",
            POSTS_TABLE,
            params={"select": "*", "slug": f"eq.{slug}", "limit": 1},
        )
        return BlogPost.from_dict(rows[0]) if rows else None

    def insert_post(self, post: BlogPost) -> BlogPost:
        data = post.to_dict()
        if not data.get("created_at"):
            data.pop("created_at", None)
        rows = self._request(
            "POST",
            POSTS_TABLE,
            json=data,
            headers={"Prefer": "return=representation"},
        )
        return BlogPost.from_dict(rows[0]) if rows else post

    def list_posts(self) -> List[BlogPost]:
        rows = self._request(
            "GET",
            POSTS_TABLE,
            params={"select": "*", "order": "created_at.desc"},
        ) or []
        return [BlogPost.from_dict(row) for row in rows]


def create_store(
    db_path: str = DB_PATH,
    store_url: str = STORE_URL,
    store_key: str = STORE_KEY,
) -> DealStore:
    """Build the configured store: REST when a URL is set, SQLite otherwise."""
    if store_url:
        logger.info(f"Using hosted data store at {store_url}")
        return RestDealStore(store_url, store_key)
    logger.info(f"Using SQLite data store at {db_path}")
    return SQLiteDealStore(db_path)
