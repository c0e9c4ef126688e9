"""Robot vacuum deals catalog: CSV ingestion, affiliate links and blog posts."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from deals.config import (
    AFFILIATE_ID,
    CSV_FIELDS,
    DB_PATH,
    MARKETPLACE_DOMAIN,
)
from deals.csv_utils import export_products_to_csv
from deals.importer import CsvImporter, ImportLog, ImportReport, ImportState
from deals.models import BlogPost, ProductRecord, RowOutcome, UploadStats
from deals.redirect import build_redirect_plan, detect_platform, handle_view_deal
from deals.store import DealStore, SQLiteDealStore, RestDealStore, StoreError, create_store
from deals.url_validation import (
    URLValidationError,
    clean_deal_url,
    ensure_affiliate_tag,
    extract_product_id,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "AFFILIATE_ID",
    "CSV_FIELDS",
    "DB_PATH",
    "MARKETPLACE_DOMAIN",
    # Models
    "BlogPost",
    "ProductRecord",
    "RowOutcome",
    "UploadStats",
    # Ingestion
    "CsvImporter",
    "ImportLog",
    "ImportReport",
    "ImportState",
    "export_products_to_csv",
    # Store
    "DealStore",
    "SQLiteDealStore",
    "RestDealStore",
    "StoreError",
    "create_store",
    # Links
    "URLValidationError",
    "clean_deal_url",
    "ensure_affiliate_tag",
    "extract_product_id",
    "build_redirect_plan",
    "detect_platform",
    "handle_view_deal",
]
