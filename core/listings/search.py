"""
Property Browse Filters

Filters applied to published listings on the public browse page:
- Listing type (rent / sale)
- Emirate and property type (exact match)
- Price range or price band
- Minimum bedrooms / bathrooms
- Free-text search over title and location
- Required amenities (all must be present)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from core.listings.schema import ListingType, Property


# =============================================================================
# Configuration Constants
# =============================================================================

# Price band boundaries (AED)
LOW_BAND_CEILING = 100_000
HIGH_BAND_FLOOR = 500_000


class PriceBand(Enum):
    """Coarse price buckets offered by the browse page."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"

    def contains(self, price: float) -> bool:
        if self is PriceBand.LOW:
            return price < LOW_BAND_CEILING
        if self is PriceBand.MID:
            return LOW_BAND_CEILING <= price < HIGH_BAND_FLOOR
        return price >= HIGH_BAND_FLOOR


class SortOrder(Enum):
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"


@dataclass
class PropertyFilters:
    """Browse criteria. Unset criteria match everything."""

    listing_type: Optional[ListingType] = None
    emirate: Optional[str] = None
    property_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    price_band: Optional[PriceBand] = None
    min_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    search: Optional[str] = None
    amenities: list[str] = field(default_factory=list)
    hot_deals_only: bool = False
    sort: SortOrder = SortOrder.NEWEST

    def __post_init__(self) -> None:
        if isinstance(self.listing_type, str):
            self.listing_type = ListingType(self.listing_type)
        if isinstance(self.price_band, str):
            self.price_band = PriceBand(self.price_band)
        if isinstance(self.sort, str):
            self.sort = SortOrder(self.sort)
        if self.search is not None:
            self.search = self.search.strip() or None

    def matches(self, prop: Property) -> bool:
        """Check a single property against every set criterion."""
        if self.listing_type is not None and prop.type != self.listing_type:
            return False

        if self.emirate and prop.emirate != self.emirate:
            return False

        if self.property_type and (prop.property_type or "").lower() != self.property_type.lower():
            return False

        price = prop.price or 0
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        if self.price_band is not None and not self.price_band.contains(price):
            return False

        if self.min_bedrooms is not None and (prop.bedrooms or 0) < self.min_bedrooms:
            return False
        if self.min_bathrooms is not None and (prop.bathrooms or 0) < self.min_bathrooms:
            return False

        if self.search:
            needle = self.search.lower()
            haystacks = (prop.title or "", prop.location or "")
            if not any(needle in h.lower() for h in haystacks):
                return False

        if self.amenities:
            available = {a.lower() for a in prop.amenities}
            if not all(a.lower() in available for a in self.amenities):
                return False

        if self.hot_deals_only and not prop.is_hot_deal:
            return False

        return True


def filter_properties(
    properties: Iterable[Property],
    filters: Optional[PropertyFilters] = None,
) -> list[Property]:
    """
    Select live properties matching the filters, in the requested order.

    Unapproved and archived properties never appear, whatever the filters.
    """
    filters = filters or PropertyFilters()
    result = [p for p in properties if p.is_live and filters.matches(p)]

    if filters.sort is SortOrder.PRICE_ASC:
        result.sort(key=lambda p: p.price or 0)
    elif filters.sort is SortOrder.PRICE_DESC:
        result.sort(key=lambda p: p.price or 0, reverse=True)
    else:
        result.sort(key=lambda p: p.created_at, reverse=True)
    return result
