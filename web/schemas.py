"""
Request bodies for the JSON API.

Fields are deliberately loose (mostly optional); the listing validation
layer reports missing and invalid values with its own messages.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ListingBody(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area: Optional[float] = None
    emirate: Optional[str] = None
    property_type: Optional[str] = None
    type: Optional[str] = None
    amenities: Optional[list[str]] = None
    images: Optional[list[str]] = None
    videos: Optional[list[str]] = None
    qr_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    def values(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PropertyRequestBody(ListingBody):
    submitter_type: Optional[str] = None


class EditRequestBody(ListingBody):
    year_built: Optional[int] = None
    parking: Optional[int] = None
    user_message: Optional[str] = None

    def values(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"user_message"})


class DeletionBody(BaseModel):
    reason: Optional[str] = None


class ApproveBody(BaseModel):
    edited_fields: Optional[dict[str, Any]] = None
    admin_notes: Optional[str] = None


class RejectBody(BaseModel):
    reason: Optional[str] = None


class HotDealBody(BaseModel):
    hot: bool = True
