"""Data models for products, upload rows and blog posts."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "ProductRecord",
    "CsvRow",
    "RowOutcome",
    "RowResult",
    "UploadStats",
    "LogEntry",
    "BlogPost",
]


@dataclass
class ProductRecord:
    """A robot vacuum deal as stored in the catalog.

    ``model_number`` is the unique key; uniqueness is checked before insert.
    """

    # Basic information
    brand: str
    model_number: str
    title: str
    price: float
    reviews: float
    deal_url: str
    description: str = ""
    image_url: str = ""

    # Technical specifications
    suction_power: Optional[int] = None
    battery_minutes: Optional[int] = None
    navigation_type: str = ""
    noise_level: Optional[int] = None

    # Core features
    self_empty: bool = False
    mopping: bool = False
    hepa_filter: bool = False
    edge_cleaning: bool = False
    side_brush: bool = False
    dual_brush: bool = False
    tangle_free: bool = False

    # Smart features
    wifi: bool = False
    app_control: bool = False
    voice_control: bool = False
    scheduling: bool = False
    zone_cleaning: bool = False
    spot_cleaning: bool = False
    no_go_zones: bool = False
    auto_boost: bool = False

    # Advanced features
    object_recognition: bool = False
    furniture_recognition: bool = False
    pet_recognition: bool = False
    three_d_mapping: bool = False
    obstacle_avoidance: bool = False
    uv_sterilization: bool = False

    # Maintenance features
    maintenance_reminder: bool = False
    filter_replacement_indicator: bool = False
    brush_cleaning_indicator: bool = False
    large_dustbin: bool = False
    auto_empty_base: bool = False
    washable_dustbin: bool = False
    washable_filter: bool = False
    easy_brush_removal: bool = False
    self_cleaning_brushroll: bool = False
    dustbin_full_indicator: bool = False

    # Scores (0-10)
    cleaning_score: Optional[float] = None
    navigation_score: Optional[float] = None
    smart_score: Optional[float] = None
    maintenance_score: Optional[float] = None
    battery_score: Optional[float] = None
    pet_family_score: Optional[float] = None
    review_score: Optional[float] = None
    cleaniq_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Insert payload for the data store."""
        return asdict(self)


@dataclass
class CsvRow:
    """One parsed CSV data row, keyed by canonical field name.

    Only columns known to the header lookup table land in ``fields``;
    anything else is kept in ``ignored`` for diagnostics.
    """

    row_number: int
    fields: Dict[str, str] = field(default_factory=dict)
    ignored: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        return self.fields.get(name, "")


class RowOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RowResult:
    """Result of submitting one candidate product to the store."""

    model_number: str
    title: str
    outcome: RowOutcome
    message: Optional[str] = None


@dataclass
class UploadStats:
    """Per-upload counters. Every data row ends up in exactly one bucket
    (valid_rows, duplicates or errors)."""

    total_rows: int = 0
    valid_rows: int = 0
    duplicates: int = 0
    errors: int = 0
    candidates: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class LogEntry:
    message: str
    level: str = "info"  # 'info' | 'error'
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class BlogPost:
    """A blog post converted from an uploaded HTML document."""

    slug: str
    title: str
    date: str
    content: str  # Markdown
    html_content: str = ""
    excerpt: str = ""
    featured_image: Optional[str] = None
    created_at: Optional[str] = None

    # Database ID (set after insert)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        row.pop("id", None)
        return row

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlogPost":
        return cls(
            slug=data["slug"],
            title=data["title"],
            date=data.get("date") or "",
            content=data.get("content") or "",
            html_content=data.get("html_content") or "",
            excerpt=data.get("excerpt") or "",
            featured_image=data.get("featured_image"),
            created_at=data.get("created_at"),
            id=data.get("id"),
        )

