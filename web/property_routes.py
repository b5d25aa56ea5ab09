"""
Public property browsing.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.listings import (
    Identity,
    ListingType,
    ListingWorkflow,
    PriceBand,
    PropertyFilters,
    SortOrder,
)
from web.auth import optional_identity
from web.deps import get_workflow


router = APIRouter(prefix="/api/properties", tags=["properties"])


@router.get("")
def browse_properties(
    type: Optional[ListingType] = None,
    emirate: Optional[str] = None,
    property_type: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    price_band: Optional[PriceBand] = None,
    min_bedrooms: Optional[int] = Query(None, ge=0),
    min_bathrooms: Optional[int] = Query(None, ge=0),
    q: Optional[str] = None,
    amenities: Optional[list[str]] = Query(None),
    hot_deals: bool = False,
    sort: SortOrder = SortOrder.NEWEST,
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """List live properties matching the filters."""
    filters = PropertyFilters(
        listing_type=type,
        emirate=emirate,
        property_type=property_type,
        min_price=min_price,
        max_price=max_price,
        price_band=price_band,
        min_bedrooms=min_bedrooms,
        min_bathrooms=min_bathrooms,
        search=q,
        amenities=amenities or [],
        hot_deals_only=hot_deals,
        sort=sort,
    )
    properties = workflow.browse(filters)
    return {"count": len(properties), "properties": [p.to_dict() for p in properties]}


@router.get("/{property_id}")
def property_detail(
    property_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.get_property(identity, property_id).to_dict()
