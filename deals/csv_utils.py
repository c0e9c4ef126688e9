"""CSV parsing, validation and export for product uploads."""

import csv
import math
import os
import re
from typing import Any, Dict, Iterable, List, Optional

from deals.config import (
    AFFILIATE_ID,
    BOOLEAN_FIELDS,
    CSV_FIELDS,
    CSV_HEADER_ALIASES,
    NOT_AVAILABLE,
    REQUIRED_FIELDS,
    SCORE_FIELDS,
    SPEC_INT_FIELDS,
    TRUTHY_TOKENS,
)
from deals.models import CsvRow, ProductRecord
from deals.url_validation import URLValidationError, clean_deal_url

__all__ = [
    "split_lines",
    "parse_csv_line",
    "normalize_headers",
    "build_row",
    "parse_number",
    "parse_int",
    "to_bool",
    "validate_row",
    "row_to_record",
    "record_to_row",
    "export_products_to_csv",
]

# Leading number, the way a spreadsheet user would type it ("4.5 stars" -> 4.5)
_LEADING_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def split_lines(text: str) -> List[str]:
    """Split upload text on newlines, dropping blank lines."""
    return [line for line in text.split("\n") if line.strip()]


def parse_csv_line(line: str) -> List[str]:
    """Split one CSV line into trimmed field values.

    Quoted fields may contain commas; a doubled quote inside a quoted
    field is a literal quote.
    """
    line = line.rstrip("\r")
    values = next(csv.reader([line], skipinitialspace=True), [])
    if not values:
        return [""]
    return [value.strip() for value in values]


def normalize_headers(headers: Iterable[str]) -> List[str]:
    """Lower-case headers, strip quotes and whitespace, and apply aliases.

    Unknown headers are returned as normalized text; ``build_row`` ignores them.
    """
    normalized = []
    for header in headers:
        key = re.sub(r"[\"']", "", header).strip().lower()
        normalized.append(CSV_HEADER_ALIASES.get(key, key))
    return normalized


def build_row(headers: List[str], values: List[str], row_number: int) -> CsvRow:
    """Map values onto headers. Caller checks that the lengths match."""
    row = CsvRow(row_number=row_number)
    known = set(CSV_FIELDS)
    for header, value in zip(headers, values):
        if header in known:
            row.fields[header] = value or ""
        else:
            row.ignored[header] = value or ""
    return row


def _is_missing(value: Optional[str]) -> bool:
    return value is None or not value.strip() or value.strip().lower() == NOT_AVAILABLE


def parse_number(value: Optional[str], default: Optional[float] = None) -> Optional[float]:
    """Parse a numeric cell.

    Strips ``$`` and ``,``; returns ``default`` for blank, ``N/A`` or
    unparseable values.

    Examples:
        >>> parse_number("$1,299.00")
        1299.0
        >>> parse_number("N/A", 0)
        0
    """
    if _is_missing(value):
        return default
    m = _LEADING_FLOAT_RE.match(value.replace("$", "").replace(",", ""))
    if not m:
        return default
    number = float(m.group(1))
    return number if math.isfinite(number) else default


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a cell, or None."""
    if value is None:
        return None
    m = _LEADING_INT_RE.match(value)
    return int(m.group(1)) if m else None


def to_bool(value: Optional[str]) -> bool:
    """Spreadsheet truthiness: true/1/yes/y (any case); everything else is False."""
    if _is_missing(value):
        return False
    return value.strip().lower() in TRUTHY_TOKENS


def validate_row(row: CsvRow, affiliate_id: str = AFFILIATE_ID) -> List[str]:
    """Check one row against the product schema.

    All problems are collected rather than stopping at the first.

    Returns:
        List of error messages, empty if the row is valid.
    """
    prefix = f"Row {row.row_number}"
    errors: List[str] = []

    for name in REQUIRED_FIELDS:
        if not row.get(name).strip():
            errors.append(f"{prefix}: {name} is required")

    price_text = row.get("price")
    if price_text:
        price = parse_number(price_text)
        if price is None or price <= 0:
            errors.append(f"{prefix}: Price must be a positive number")

    reviews_text = row.get("reviews")
    if reviews_text:
        reviews = parse_number(reviews_text)
        if reviews is None or reviews < 0 or reviews > 5:
            errors.append(f"{prefix}: Reviews must be between 0 and 5")

    deal_url = row.get("deal_url")
    if deal_url:
        try:
            clean_deal_url(deal_url, affiliate_id)
        except URLValidationError as e:
            errors.append(f"{prefix}: {e}")

    image_url = row.get("image_url")
    if image_url and not image_url.startswith("http"):
        errors.append(f"{prefix}: Image URL must be a valid URL")

    for name, label in SPEC_INT_FIELDS.items():
        text = row.get(name)
        if text and text.strip() != "N/A":
            number = parse_int(text)
            if number is None or number < 0:
                errors.append(f"{prefix}: {label} must be a positive number")

    for name in SCORE_FIELDS:
        text = row.get(name)
        if text and text.strip() != "N/A":
            score = parse_number(text)
            if score is None or score < 0 or score > 10:
                errors.append(f"{prefix}: {name.replace('_', ' ')} must be between 0 and 10")

    return errors


def row_to_record(row: CsvRow, affiliate_id: str = AFFILIATE_ID) -> ProductRecord:
    """Transform a validated row into a product record.

    Raises:
        URLValidationError: If the deal URL does not clean (rows should be
            validated first).
    """
    fields: Dict[str, Any] = {
        "brand": row.get("brand"),
        "model_number": row.get("model_number"),
        "title": row.get("title"),
        "description": row.get("description"),
        "price": parse_number(row.get("price"), 0) or 0,
        "reviews": parse_number(row.get("reviews"), 0) or 0,
        "image_url": row.get("image_url"),
        "deal_url": clean_deal_url(row.get("deal_url"), affiliate_id),
        "navigation_type": row.get("navigation_type"),
    }

    for name in SPEC_INT_FIELDS:
        number = parse_number(row.get(name))
        fields[name] = int(number) if number is not None else None

    for name in BOOLEAN_FIELDS:
        fields[name] = to_bool(row.get(name))

    for name in SCORE_FIELDS:
        fields[name] = parse_number(row.get(name))

    return ProductRecord(**fields)


def record_to_row(product: Dict[str, Any]) -> Dict[str, str]:
    """Convert a stored product into an upload-compatible CSV row."""
    row: Dict[str, str] = {}
    for name in CSV_FIELDS:
        value = product.get(name)
        if value is None:
            row[name] = ""
        elif isinstance(value, bool):
            row[name] = "true" if value else "false"
        else:
            row[name] = str(value)
    return row


# =============================================================================
# Database Export Functions
# =============================================================================

def export_products_to_csv(store, csv_path: str) -> int:
    """Export every stored product to a CSV the uploader accepts.

    Args:
        store: DealStore to read from
        csv_path: Path for the output CSV file

    Returns:
        Number of products exported
    """
    products = store.list_products()

    if not products:
        print("No products to export.")
        return 0

    rows = [record_to_row(p) for p in products]

    os.makedirs(os.path.dirname(csv_path) or ".", exist_ok=True)
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(CSV_FIELDS), extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

    print(f"Exported {len(rows)} products to {csv_path}")
    return len(rows)
