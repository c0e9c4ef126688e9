"""Deal listing, filtering and sorting.

Products come from the store newest first and are filtered as a pandas
DataFrame. Filters are combined with AND; an unset filter does nothing.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from deals.config import (
    CSV_FIELDS,
    FEATURE_LABELS,
    HIGH_SUCTION_PA,
    TOP_BRAND_BOOST,
    TOP_BRANDS,
    USED_PREFIX,
)
from deals.logging_config import get_logger

__all__ = [
    "SORT_FIELDS",
    "DealFilters",
    "deals_frame",
    "calculate_ver",
    "filter_deals",
    "sort_deals",
    "available_brands",
    "present_features",
    "frame_to_records",
]

logger = get_logger("catalog")

SORT_FIELDS = ("price", "cleaniq_score", "review_score", "suction_power")


@dataclass
class DealFilters:
    """Filter settings for the deal list.

    ``condition_new`` and ``condition_used`` only filter when exactly one is
    set. ``top_brands_only`` takes precedence over ``brands``.
    """

    search: str = ""
    condition_new: bool = False
    condition_used: bool = False
    brands: List[str] = field(default_factory=list)
    top_brands_only: bool = False
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    suction_power: List[int] = field(default_factory=list)
    self_emptying: bool = False
    has_mop: bool = False
    high_suction: bool = False
    best_value: bool = False

    @classmethod
    def from_args(cls, args) -> "DealFilters":
        """Build filters from request query args (a werkzeug MultiDict or dict)."""

        def flag(name: str) -> bool:
            return str(args.get(name, "")).strip().lower() in ("1", "true", "yes", "on")

        def number(name: str) -> Optional[float]:
            value = args.get(name)
            if value in (None, ""):
                return None
            try:
                return float(value)
            except (TypeError, ValueError):
                return None

        def many(name: str) -> List[str]:
            if hasattr(args, "getlist"):
                values = args.getlist(name)
            else:
                values = args.get(name) or []
                if isinstance(values, str):
                    values = [values]
            out: List[str] = []
            for value in values:
                out.extend(v.strip() for v in str(value).split(",") if v.strip())
            return out

        suction = []
        for value in many("suction_power"):
            try:
                suction.append(int(float(value)))
            except ValueError:
                logger.debug(f"Ignoring suction filter value: {value}")

        return cls(
            search=args.get("q", "") or "",
            condition_new=flag("new"),
            condition_used=flag("used"),
            brands=many("brand"),
            top_brands_only=flag("top_brands"),
            min_price=number("min_price"),
            max_price=number("max_price"),
            suction_power=suction,
            self_emptying=flag("self_emptying"),
            has_mop=flag("has_mop"),
            high_suction=flag("high_suction"),
            best_value=flag("best_value"),
        )


def deals_frame(products: List[Dict[str, Any]]) -> pd.DataFrame:
    """Build a DataFrame from stored products, keeping their order."""
    df = pd.DataFrame(products)
    for name in CSV_FIELDS:
        if name not in df.columns:
            df[name] = None
    for name in ("title", "brand", "model_number"):
        df[name] = df[name].fillna("").astype(str)
    return df


def calculate_ver(row: Dict[str, Any]) -> float:
    """Value Efficiency Ratio: CleanIQ score per unit price.

    Top brands get a 20% boost. Missing score or price gives 0.
    """
    score = row.get("cleaniq_score")
    price = row.get("price")
    if _missing(score) or _missing(price) or price <= 0:
        return 0.0

    ver = float(score) / float(price)
    if str(row.get("brand", "")).upper() in TOP_BRANDS:
        ver *= TOP_BRAND_BOOST
    return ver


def _missing(value: Any) -> bool:
    try:
        return value is None or pd.isna(value)
    except (TypeError, ValueError):
        return False


def filter_deals(df: pd.DataFrame, filters: DealFilters) -> pd.DataFrame:
    """Apply every set filter to the deal frame."""
    if df.empty:
        return df

    filtered = df
    is_used = filtered["title"].str.startswith(USED_PREFIX)
    if filters.condition_new and not filters.condition_used:
        filtered = filtered[~is_used]
    elif filters.condition_used and not filters.condition_new:
        filtered = filtered[is_used]

    if filters.search:
        query = filters.search.lower()
        mask = (
            filtered["title"].str.lower().str.contains(query, regex=False)
            | filtered["brand"].str.lower().str.contains(query, regex=False)
            | filtered["model_number"].str.lower().str.contains(query, regex=False)
        )
        filtered = filtered[mask]

    brands_upper = filtered["brand"].str.upper()
    if filters.top_brands_only:
        filtered = filtered[brands_upper.isin(TOP_BRANDS)]
    elif filters.brands:
        wanted = {b.upper() for b in filters.brands}
        filtered = filtered[brands_upper.isin(wanted)]

    price = pd.to_numeric(filtered["price"], errors="coerce")
    if filters.min_price:
        filtered = filtered[price >= filters.min_price]
        price = price[filtered.index]
    if filters.max_price:
        filtered = filtered[price <= filters.max_price]

    if filters.suction_power:
        # Any of the selected thresholds
        suction = pd.to_numeric(filtered["suction_power"], errors="coerce").fillna(0)
        filtered = filtered[(suction > 0) & (suction >= min(filters.suction_power))]

    if filters.self_emptying:
        filtered = filtered[filtered["self_empty"].map(_flag).astype(bool)]
    if filters.has_mop:
        filtered = filtered[filtered["mopping"].map(_flag).astype(bool)]
    if filters.high_suction:
        suction = pd.to_numeric(filtered["suction_power"], errors="coerce").fillna(0)
        filtered = filtered[suction >= HIGH_SUCTION_PA]

    if filters.best_value and not filtered.empty:
        ver = filtered.apply(lambda row: calculate_ver(row.to_dict()), axis=1)
        keep = math.ceil(len(filtered) / 3)
        top = ver.sort_values(ascending=False, kind="stable").index[:keep]
        filtered = filtered.loc[top]

    return filtered


def sort_deals(df: pd.DataFrame, sort_field: Optional[str], direction: Optional[str] = "asc") -> pd.DataFrame:
    """Sort by one of SORT_FIELDS; missing values count as 0.

    Raises:
        ValueError: If sort_field is not sortable
    """
    if not sort_field or not direction or df.empty:
        return df
    if sort_field not in SORT_FIELDS:
        raise ValueError(f"Cannot sort by {sort_field}. Choose from: {', '.join(SORT_FIELDS)}")

    key = pd.to_numeric(df[sort_field], errors="coerce").fillna(0)
    order = key.sort_values(ascending=(direction != "desc"), kind="stable").index
    return df.loc[order]


def available_brands(df: pd.DataFrame) -> List[str]:
    """Upper-cased brands, most frequent first."""
    if df.empty:
        return []
    counts = df["brand"].str.upper().value_counts(sort=False)
    # Stable on first appearance for equal counts
    return list(counts.sort_values(ascending=False, kind="stable").index)


def present_features(product: Dict[str, Any]) -> List[str]:
    """Labels of the displayed feature flags set on a product."""
    return [label for name, label in FEATURE_LABELS.items() if _flag(product.get(name))]


def _flag(value: Any) -> bool:
    return False if _missing(value) else bool(value)


def frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a deal frame to JSON-safe dicts (NaN becomes None)."""
    records = df.astype(object).where(pd.notna(df), None).to_dict(orient="records")
    for record in records:
        record["features"] = present_features(record)
        record["condition"] = "used" if str(record.get("title", "")).startswith(USED_PREFIX) else "new"
    return records
