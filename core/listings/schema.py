"""
Listing Schema - Property Requests, Published Properties and Review Records

Defines the canonical records of the listing lifecycle:
- PropertyRequest: a submission awaiting admin review
- Property: a published, browsable listing
- PropertyEditRequest: a sparse change-set against a Property
- DeletionRequest: a request to remove a PropertyRequest or Property

Records serialise to plain dicts whose keys match the database columns.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional

from core.listings.errors import ValidationError


# =============================================================================
# Enums
# =============================================================================


class ListingType(Enum):
    """Whether the property is offered for rent or for sale."""

    RENT = "rent"
    SALE = "sale"


class SubmitterType(Enum):
    """Who submitted the property request."""

    OWNER = "owner"
    BROKER = "broker"
    REFERRAL = "referral"


class RequestStatus(Enum):
    """Lifecycle status of a PropertyRequest."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETION_REQUESTED = "deletion_requested"


class ReviewStatus(Enum):
    """Lifecycle status of deletion and edit requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# =============================================================================
# Constants
# =============================================================================

EMIRATES: Final[tuple[str, ...]] = (
    "Abu Dhabi",
    "Dubai",
    "Sharjah",
    "Ajman",
    "Umm Al-Quwain",
    "Ras Al Khaimah",
    "Fujairah",
)

# Fields copied from a PropertyRequest onto the Property it materialises
DESCRIPTIVE_FIELDS: Final[tuple[str, ...]] = (
    "title",
    "description",
    "price",
    "location",
    "latitude",
    "longitude",
    "bedrooms",
    "bathrooms",
    "area",
    "emirate",
    "property_type",
    "type",
    "amenities",
    "images",
    "videos",
    "qr_code",
    "contact_name",
    "contact_email",
    "contact_phone",
)

# Fields an owner may change through a PropertyEditRequest
EDITABLE_FIELDS: Final[tuple[str, ...]] = DESCRIPTIVE_FIELDS + ("year_built", "parking")

_DATETIME_FIELDS: Final[frozenset[str]] = frozenset(
    {"created_at", "updated_at", "approved_at"}
)


# =============================================================================
# Helpers
# =============================================================================


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a new record identifier."""
    return str(uuid.uuid4())


def is_valid_uuid(value: Any) -> bool:
    """Check that value is a canonical UUID string."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_to_json(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    return value


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # Postgres emits a trailing "Z" on timestamptz values
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class _Record:
    """Shared dict conversion for the dataclass records below."""

    def to_dict(self) -> dict:
        """Convert to dictionary for serialisation."""
        return {f.name: _to_json(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict):
        """Create from dictionary, ignoring unknown columns."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def _coerce_datetimes(self) -> None:
        for name in _DATETIME_FIELDS:
            if hasattr(self, name):
                setattr(self, name, _parse_datetime(getattr(self, name)))


# =============================================================================
# Listing Fields
# =============================================================================


@dataclass
class ListingFields(_Record):
    """Descriptive fields shared by requests, properties and edit diffs."""

    title: str = ""
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
    type: ListingType = ListingType.SALE
    amenities: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    videos: list[str] = field(default_factory=list)
    qr_code: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.type, str):
            self.type = ListingType(self.type)
        for name in ("amenities", "images", "videos"):
            if getattr(self, name) is None:
                setattr(self, name, [])
        self._coerce_datetimes()

    def descriptive_values(self) -> dict[str, Any]:
        """Get the descriptive fields as a dict of Python values."""
        return {name: getattr(self, name) for name in DESCRIPTIVE_FIELDS}

    @property
    def has_qr_code(self) -> bool:
        """Check the legal-compliance QR code is present."""
        return bool(self.qr_code and str(self.qr_code).strip())


# =============================================================================
# Property Request
# =============================================================================


@dataclass
class PropertyRequest(ListingFields):
    """
    A submission awaiting admin review.

    Created with status PENDING; mutated only by admin actions or by the
    submitter requesting deletion.
    """

    id: str = field(default_factory=generate_id)
    user_id: Optional[str] = None
    submitter_type: SubmitterType = SubmitterType.OWNER
    status: RequestStatus = RequestStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    property_id: Optional[str] = None  # Set when approval materialises a Property
    is_archived: bool = False
    admin_notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if isinstance(self.submitter_type, str):
            self.submitter_type = SubmitterType(self.submitter_type)
        if isinstance(self.status, str):
            self.status = RequestStatus(self.status)


# =============================================================================
# Property
# =============================================================================


@dataclass
class Property(ListingFields):
    """
    A published listing.

    Created by approving a PropertyRequest, or directly by an owner
    (then unapproved until an admin publishes it).
    """

    id: str = field(default_factory=generate_id)
    owner_id: Optional[str] = None
    request_id: Optional[str] = None
    year_built: Optional[int] = None
    parking: Optional[int] = None
    is_approved: bool = False
    is_archived: bool = False
    is_hot_deal: bool = False
    admin_notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        """Check if the property is visible to browsing users."""
        return self.is_approved and not self.is_archived

    @classmethod
    def from_request(cls, request: PropertyRequest) -> "Property":
        """Materialise an approved listing from a request."""
        values = request.descriptive_values()
        for name in ("amenities", "images", "videos"):
            values[name] = list(values[name])
        return cls(
            **values,
            owner_id=request.user_id,
            request_id=request.id,
            is_approved=True,
            admin_notes=request.admin_notes,
        )


# =============================================================================
# Deletion Request
# =============================================================================


@dataclass
class DeletionRequest(_Record):
    """
    A request to remove a PropertyRequest or a Property.

    Exactly one of property_request_id / property_id is set.
    """

    user_id: str
    property_request_id: Optional[str] = None
    property_id: Optional[str] = None
    reason: Optional[str] = None
    id: str = field(default_factory=generate_id)
    status: ReviewStatus = ReviewStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if bool(self.property_request_id) == bool(self.property_id):
            raise ValidationError(
                "Exactly one of property_request_id or property_id must be set"
            )
        if isinstance(self.status, str):
            self.status = ReviewStatus(self.status)
        self._coerce_datetimes()

    @property
    def targets_request(self) -> bool:
        """Check if the deletion targets a PropertyRequest."""
        return self.property_request_id is not None
