"""Configuration and constants for the deals catalog."""

import os
from typing import Dict, FrozenSet, Tuple

from dotenv import load_dotenv

load_dotenv()

__all__ = [
    "AFFILIATE_ID",
    "MARKETPLACE_DOMAIN",
    "MARKETPLACE_HOST",
    "PRODUCT_ID_PATTERN",
    "DB_PATH",
    "STORE_URL",
    "STORE_KEY",
    "PRODUCTS_TABLE",
    "POSTS_TABLE",
    "REQUEST_TIMEOUT",
    "HEADERS",
    "REQUIRED_FIELDS",
    "TEXT_FIELDS",
    "SPEC_INT_FIELDS",
    "BOOLEAN_FIELDS",
    "FEATURE_LABELS",
    "SCORE_FIELDS",
    "CSV_FIELDS",
    "CSV_HEADER_ALIASES",
    "TRUTHY_TOKENS",
    "NOT_AVAILABLE",
    "TOP_BRANDS",
    "TOP_BRAND_BOOST",
    "HIGH_SUCTION_PA",
    "USED_PREFIX",
    "IOS_FALLBACK_DELAY",
    "IOS_CLEANUP_DELAY",
    "ANDROID_FALLBACK_DELAY",
    "ANDROID_CLEANUP_DELAY",
    "ANDROID_APP_PACKAGE",
    "EXCERPT_LENGTH",
    "SLUG_MAX_LENGTH",
]

# Affiliate tag appended to every outbound marketplace link.
# Set at deploy time; never taken from uploaded data.
AFFILIATE_ID = os.getenv("AFFILIATE_ID", "ndmlabs-20")

# Marketplace the deal links must point at
MARKETPLACE_DOMAIN = "amazon.com"
MARKETPLACE_HOST = "www.amazon.com"

# 10-character marketplace product identifier (ASIN)
PRODUCT_ID_PATTERN = r"^[A-Z0-9]{10}$"

# Storage
DB_PATH = os.getenv("DEALS_DB_PATH", "data/deals.db")
STORE_URL = os.getenv("DEALS_STORE_URL", "")
STORE_KEY = os.getenv("DEALS_STORE_KEY", "")
PRODUCTS_TABLE = os.getenv("DEALS_TABLE", "robot_vacuums")
POSTS_TABLE = os.getenv("POSTS_TABLE", "blog_posts")

REQUEST_TIMEOUT = 15

HEADERS = {
    "X-Client-Info": "robovac-deals/0.1.0",
}


# =============================================================================
# Product Schema
# =============================================================================

REQUIRED_FIELDS: Tuple[str, ...] = (
    "title",
    "brand",
    "model_number",
    "price",
    "reviews",
    "deal_url",
)

# Free-text columns copied through as-is
TEXT_FIELDS: Tuple[str, ...] = (
    "brand",
    "model_number",
    "title",
    "description",
    "image_url",
    "deal_url",
    "navigation_type",
)

# Technical specs stored as non-negative integers, mapped to their display names
SPEC_INT_FIELDS: Dict[str, str] = {
    "suction_power": "Suction power",
    "battery_minutes": "Battery minutes",
    "noise_level": "Noise level",
}

# Boolean feature flags, mapped to the label shown in the deal table.
# Only the first 22 have labels; maintenance indicators are not displayed.
FEATURE_LABELS: Dict[str, str] = {
    "self_empty": "Self-Empty",
    "mopping": "Mopping",
    "hepa_filter": "HEPA Filter",
    "edge_cleaning": "Edge Cleaning",
    "side_brush": "Side Brush",
    "dual_brush": "Dual Brush",
    "tangle_free": "Tangle-Free",
    "wifi": "Wi-Fi Connected",
    "app_control": "App Control",
    "voice_control": "Voice Control",
    "scheduling": "Scheduling",
    "zone_cleaning": "Zone Cleaning",
    "spot_cleaning": "Spot Cleaning",
    "no_go_zones": "No-Go Zones",
    "auto_boost": "Auto-Boost",
    "object_recognition": "Object Recognition",
    "furniture_recognition": "Furniture Recognition",
    "pet_recognition": "Pet Recognition",
    "three_d_mapping": "3D Mapping",
    "obstacle_avoidance": "Obstacle Avoidance",
    "uv_sterilization": "UV Sterilization",
    "maintenance_reminder": "Maintenance Reminder",
}

BOOLEAN_FIELDS: Tuple[str, ...] = tuple(FEATURE_LABELS) + (
    "filter_replacement_indicator",
    "brush_cleaning_indicator",
    "large_dustbin",
    "auto_empty_base",
    "washable_dustbin",
    "washable_filter",
    "easy_brush_removal",
    "self_cleaning_brushroll",
    "dustbin_full_indicator",
)

SCORE_FIELDS: Tuple[str, ...] = (
    "cleaning_score",
    "navigation_score",
    "smart_score",
    "maintenance_score",
    "battery_score",
    "pet_family_score",
    "review_score",
    "cleaniq_score",
)

# Every column the CSV upload understands, in export order
CSV_FIELDS: Tuple[str, ...] = (
    "brand",
    "model_number",
    "title",
    "description",
    "price",
    "reviews",
    "image_url",
    "deal_url",
    "suction_power",
    "battery_minutes",
    "navigation_type",
    "noise_level",
) + BOOLEAN_FIELDS + SCORE_FIELDS

# Normalized header text -> field name. Headers missing from this table are ignored.
CSV_HEADER_ALIASES: Dict[str, str] = {name: name for name in CSV_FIELDS}
CSV_HEADER_ALIASES.update({
    "imageurl": "image_url",
    "image url": "image_url",
    "dealurl": "deal_url",
    "deal url": "deal_url",
    "modelnumber": "model_number",
    "model": "model_number",
    "review": "reviews",
    "rating": "reviews",
})

TRUTHY_TOKENS: FrozenSet[str] = frozenset({"true", "1", "yes", "y"})

# Placeholder for "no value" in spreadsheets
NOT_AVAILABLE = "n/a"


# =============================================================================
# Catalog Browsing
# =============================================================================

TOP_BRANDS: Tuple[str, ...] = ("ROBOROCK", "IROBOT", "SHARK")
TOP_BRAND_BOOST = 1.2  # VER multiplier for top brands
HIGH_SUCTION_PA = 10000
USED_PREFIX = "USED-"


# =============================================================================
# Deal Redirects
# =============================================================================

# Seconds to wait for the shopping app before falling back to the browser
IOS_FALLBACK_DELAY = 2.0
IOS_CLEANUP_DELAY = 2.5
ANDROID_FALLBACK_DELAY = 1.5
ANDROID_CLEANUP_DELAY = 2.0
ANDROID_APP_PACKAGE = "com.amazon.mShop.android.shopping"


# =============================================================================
# Blog
# =============================================================================

EXCERPT_LENGTH = 200
SLUG_MAX_LENGTH = 60
