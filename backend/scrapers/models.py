"""
Data structures shared by the scraper system.

Site configurations, scraped product records and per-run diagnostics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldSelector:
    """
    One candidate location for a product field inside an item node.

    An empty css selector means the item node itself. When attr is set
    the attribute value is read, otherwise the node text.
    """
    css: str
    attr: Optional[str] = None

    def describe(self) -> str:
        target = self.css or ':self'
        return f"{target}@{self.attr}" if self.attr else target


@dataclass
class SiteConfig:
    """Configuration for a storefront search source."""
    key: str                            # Source identifier (e.g., 'vinted')
    name: str                           # Retailer display name
    base_url: str                       # For resolving relative links
    search_url: str                     # Template with a {term} placeholder
    item_selector: str                  # Primary selector for product cards
    id_pattern: str                     # Regex with one group, applied to the detail URL
    fallback_item_selectors: List[str] = field(default_factory=list)
    consent_selectors: List[str] = field(default_factory=list)
    skeleton_selector: Optional[str] = None   # Cards still loading
    fields: Dict[str, List[FieldSelector]] = field(default_factory=dict)
    lazy_load: bool = True              # Run the scroll loop before extracting
    default_condition: Optional[str] = None
    wait_until: str = 'domcontentloaded'
    enabled: bool = True                # Whether to include in searches


@dataclass
class ScrapedProduct:
    """A product card as extracted from one storefront."""
    source: str
    external_id: str
    name: str
    brand: str
    price: str
    image_url: str
    detail_url: str
    size: Optional[str] = None
    condition: Optional[str] = None

    # True only when external_id was derived from detail_url
    id_derived: bool = False

    @property
    def is_valid(self) -> bool:
        return self.id_derived

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'id': self.external_id,
            'name': self.name,
            'brand': self.brand,
            'price': self.price,
            'size': self.size,
            'condition': self.condition,
            'image_url': self.image_url,
            'product_url': self.detail_url,
        }


@dataclass
class ScrapeResult:
    """Diagnostics for one adapter search."""
    source: str
    search_term: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    url: Optional[str] = None
    stage: str = 'init'
    selector_used: Optional[str] = None
    consent_selector: Optional[str] = None
    load_polls: int = 0
    total: int = 0                      # Records extracted, valid or not
    valid: int = 0
    returned: int = 0                   # After the per-source cap
    errors: int = 0
    error_details: List[Dict] = field(default_factory=list)
    selector_stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def record_error(self, details: Dict[str, Any]):
        self.errors += 1
        self.error_details.append(details)

    def to_dict(self) -> Dict:
        return {
            'source': self.source,
            'search_term': self.search_term,
            'url': self.url,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'stage': self.stage,
            'selector_used': self.selector_used,
            'consent_selector': self.consent_selector,
            'load_polls': self.load_polls,
            'total': self.total,
            'valid': self.valid,
            'returned': self.returned,
            'errors': self.errors,
            'error_details': self.error_details[:10],  # Limit error details
            'selector_stats': self.selector_stats,
            'success': self.success,
        }
