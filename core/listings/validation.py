"""
Listing Validation - Validation Logic for Property Requests and Edits

Submissions are checked field by field before anything is persisted.
String fields are trimmed and free text has script markup removed;
no other value is normalised or inferred.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final, Mapping, Optional

from core.listings.edits import PropertyPatch
from core.listings.errors import ValidationError
from core.listings.schema import (
    EMIRATES,
    ListingType,
    Property,
    PropertyRequest,
    SubmitterType,
)


# =============================================================================
# Constants
# =============================================================================

REQUIRED_REQUEST_FIELDS: Final[tuple[str, ...]] = (
    "title",
    "price",
    "type",
    "contact_name",
    "contact_email",
)

MAX_TITLE_LENGTH: Final[int] = 200
MAX_DESCRIPTION_LENGTH: Final[int] = 50000
MAX_PRICE: Final[int] = 999_999_999
MAX_ROOMS: Final[int] = 20

EMAIL_REGEX: Final = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_REGEX: Final = re.compile(r"^\+?[1-9]\d{0,15}$")

_STRING_FIELDS: Final[tuple[str, ...]] = (
    "title",
    "description",
    "location",
    "emirate",
    "property_type",
    "qr_code",
    "contact_name",
    "contact_email",
    "contact_phone",
)
_FREE_TEXT_FIELDS: Final[frozenset[str]] = frozenset({"title", "description", "location"})
_LIST_FIELDS: Final[tuple[str, ...]] = ("amenities", "images", "videos")

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_SCHEME = re.compile(r"(?<![\w-])javascript:", re.IGNORECASE)
# Handlers count only inside a tag; "condition=" in prose is left alone
_EVENT_HANDLER = re.compile(
    r"(<[^>]*?)\s+on\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+)", re.IGNORECASE
)
# A URI scheme followed by a MIME type, not the tail of a word like "Metadata:"
_DATA_URI = re.compile(r"(?<![\w-])data:(?!image/)(?=[\w.+-]+/[\w.+-]+[;,])", re.IGNORECASE)


# =============================================================================
# Validation Result
# =============================================================================


@dataclass(frozen=True)
class RequestValidationResult:
    """Outcome of validating raw listing data."""

    valid: bool
    missing_fields: tuple[str, ...]
    errors: tuple[str, ...]
    cleaned: Mapping[str, Any]

    @property
    def is_blocked(self) -> bool:
        return not self.valid

    def raise_for_errors(self) -> None:
        """Raise ValidationError if the data did not validate."""
        if not self.valid:
            raise ValidationError(self.errors[0], list(self.errors))

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "missing_fields": list(self.missing_fields),
            "errors": list(self.errors),
        }


# =============================================================================
# Field Helpers
# =============================================================================


def sanitize_input(text: str) -> str:
    """Strip script tags, javascript: URLs and inline event handlers."""
    text = _SCRIPT_TAG.sub("", text)
    text = _JS_SCHEME.sub("", text)
    # One handler per pass; a tag may carry several
    stripped = _EVENT_HANDLER.sub(r"\1", text)
    while stripped != text:
        text, stripped = stripped, _EVENT_HANDLER.sub(r"\1", stripped)
    text = _DATA_URI.sub("", text)
    return text.strip()


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_REGEX.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_REGEX.match(value.replace(" ", "").replace("-", "")))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _clean_strings(data: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = dict(data)
    for name in _STRING_FIELDS:
        value = cleaned.get(name)
        if isinstance(value, str):
            value = sanitize_input(value) if name in _FREE_TEXT_FIELDS else value.strip()
            cleaned[name] = value or None
    return cleaned


def _check_values(data: Mapping[str, Any], errors: list[str]) -> None:
    """Check every present field; absent fields are not an error here."""
    text: dict[str, str] = {}
    for name in _STRING_FIELDS:
        value = data.get(name)
        if value is None:
            continue
        if isinstance(value, str):
            text[name] = value
        else:
            errors.append(f"{name.replace('_', ' ').capitalize()} must be text")

    title = text.get("title")
    if title is not None and len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must be less than {MAX_TITLE_LENGTH} characters")

    description = text.get("description")
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append("Description is too long")

    price = data.get("price")
    if price is not None:
        if not _is_number(price):
            errors.append("Please enter a valid number for price")
        elif price <= 0:
            errors.append("Price must be greater than zero")
        elif price > MAX_PRICE:
            errors.append("Price is too high")

    for name in ("bedrooms", "bathrooms"):
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"Please enter a whole number for {name}")
        elif value < 0:
            errors.append(f"{name.capitalize()} cannot be negative")
        elif value > MAX_ROOMS:
            errors.append(f"{name.capitalize()} cannot exceed {MAX_ROOMS}")

    area = data.get("area")
    if area is not None and (not _is_number(area) or area <= 0):
        errors.append("Area must be a positive number")

    for name in ("year_built", "parking"):
        value = data.get(name)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            errors.append(f"{name.replace('_', ' ').capitalize()} must be a positive whole number")

    latitude = data.get("latitude")
    if latitude is not None and (not _is_number(latitude) or not -90 <= latitude <= 90):
        errors.append("Latitude must be between -90 and 90")

    longitude = data.get("longitude")
    if longitude is not None and (not _is_number(longitude) or not -180 <= longitude <= 180):
        errors.append("Longitude must be between -180 and 180")

    emirate = text.get("emirate")
    if emirate is not None and emirate not in EMIRATES:
        errors.append(f"Please select a valid emirate: {', '.join(EMIRATES)}")

    listing_type = data.get("type")
    if listing_type is not None and not isinstance(listing_type, ListingType):
        try:
            ListingType(listing_type)
        except (ValueError, TypeError):
            errors.append("Listing type must be 'rent' or 'sale'")

    email = text.get("contact_email")
    if email is not None and not is_valid_email(email):
        errors.append("Please enter a valid email address")

    phone = text.get("contact_phone")
    if phone is not None and not is_valid_phone(phone):
        errors.append("Please enter a valid phone number")

    for name in _LIST_FIELDS:
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            errors.append(f"{name.capitalize()} must be a list of strings")


# =============================================================================
# Validation Functions
# =============================================================================


def validate_request_data(data: Mapping[str, Any]) -> RequestValidationResult:
    """
    Validate raw submission data before creating a PropertyRequest.

    Args:
        data: Raw submission data dictionary

    Returns:
        RequestValidationResult with the cleaned data
    """
    cleaned = _clean_strings(data)
    errors: list[str] = []
    missing_fields: list[str] = []

    if not cleaned.get("title"):
        missing_fields.append("title")
        errors.append("Please provide a title")

    if cleaned.get("price") is None:
        missing_fields.append("price")
        errors.append("Please provide the price")

    if cleaned.get("type") is None:
        missing_fields.append("type")
        errors.append("Please select rent or sale")

    if not cleaned.get("contact_name"):
        missing_fields.append("contact_name")
        errors.append("Please provide a contact name")

    if not cleaned.get("contact_email"):
        missing_fields.append("contact_email")
        errors.append("Please provide a contact email")

    submitter_type = cleaned.get("submitter_type")
    if submitter_type is not None and not isinstance(submitter_type, SubmitterType):
        try:
            SubmitterType(submitter_type)
        except (ValueError, TypeError):
            errors.append("Submitter type must be owner, broker or referral")

    _check_values(cleaned, errors)

    return RequestValidationResult(
        valid=not errors,
        missing_fields=tuple(missing_fields),
        errors=tuple(errors),
        cleaned=cleaned,
    )


def validate_patch(changes: Mapping[str, Any]) -> PropertyPatch:
    """
    Validate an edit diff and build the patch.

    Raises:
        ValidationError: If the diff is empty or a value is invalid
    """
    cleaned = _clean_strings({k: v for k, v in changes.items() if v is not None})

    # Values are checked before the patch coerces any of them
    errors: list[str] = []
    _check_values(cleaned, errors)
    if errors:
        raise ValidationError(errors[0], errors)

    patch = PropertyPatch(cleaned)
    if not patch:
        raise ValidationError("Edit request must change at least one field")
    return patch


def build_property_request(data: Mapping[str, Any], user_id: Optional[str]) -> PropertyRequest:
    """
    Create a pending PropertyRequest from raw data.

    Raises:
        ValidationError: If the data does not validate
    """
    result = validate_request_data(data)
    result.raise_for_errors()

    values = {
        k: v
        for k, v in result.cleaned.items()
        if k not in ("id", "status", "approved_by", "approved_at", "property_id", "is_archived")
    }
    for name in _LIST_FIELDS:
        if values.get(name) is not None:
            values[name] = list(values[name])
    values["user_id"] = user_id
    return PropertyRequest.from_dict(values)


def build_property(data: Mapping[str, Any], owner_id: str) -> Property:
    """
    Create an unapproved Property for a direct owner listing.

    Raises:
        ValidationError: If the data does not validate
    """
    result = validate_request_data(data)
    result.raise_for_errors()

    values = {
        k: v
        for k, v in result.cleaned.items()
        if k not in ("id", "is_approved", "is_archived", "is_hot_deal", "request_id", "admin_notes")
    }
    for name in _LIST_FIELDS:
        if values.get(name) is not None:
            values[name] = list(values[name])
    values["owner_id"] = owner_id
    values["is_approved"] = False
    return Property.from_dict(values)
