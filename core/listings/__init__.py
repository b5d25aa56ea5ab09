"""
UAE Property Listings - Request Approval Workflow

Owners, brokers and referrers submit property requests; admins review
them and publish approved listings.

Principles:
1. Every status change goes through one transition table
2. Multi-row changes are atomic in the store
3. The QR code required by the regulator is checked before publishing
4. Deletion archives; hard delete is a separate admin action
5. Edits are sparse patches reviewed against the live listing
"""

from core.listings.errors import (
    ListingError,
    ValidationError,
    ConflictError,
    NotFoundError,
    TransientError,
    AuthorizationError,
)
from core.listings.schema import (
    ListingType,
    SubmitterType,
    RequestStatus,
    ReviewStatus,
    PropertyRequest,
    Property,
    DeletionRequest,
    EMIRATES,
    DESCRIPTIVE_FIELDS,
    EDITABLE_FIELDS,
)
from core.listings.edits import (
    FieldChange,
    PropertyPatch,
    PropertyEditRequest,
)
from core.listings.state_machine import (
    Event,
    StateMachine,
    REQUEST_MACHINE,
    REVIEW_MACHINE,
    transition,
)
from core.listings.identity import (
    Identity,
    UserRole,
    require_admin,
    require_owner,
    require_user,
)
from core.listings.validation import (
    RequestValidationResult,
    validate_request_data,
    validate_patch,
    build_property_request,
    build_property,
    sanitize_input,
)
from core.listings.repository import (
    ListingBackend,
    ListingStore,
    get_listing_store,
    reset_listing_store,
)
from core.listings.supabase_store import (
    SupabaseListingStore,
    create_supabase_client,
)
from core.listings.search import (
    PriceBand,
    SortOrder,
    PropertyFilters,
    filter_properties,
)
from core.listings.notify import (
    Notifier,
    NullNotifier,
    TelegramNotifier,
    format_request_message,
)
from core.listings.uploads import (
    MediaKind,
    UploadPolicy,
    POLICIES,
    RetryPolicy,
    BlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
    UploadItem,
    UploadOutcome,
    BatchResult,
    MediaUploader,
    validate_upload,
    build_storage_key,
)
from core.listings.workflow import (
    ListingWorkflow,
    EditReview,
    DashboardStats,
)

__all__ = [
    # Errors
    "ListingError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "TransientError",
    "AuthorizationError",
    # Schema
    "ListingType",
    "SubmitterType",
    "RequestStatus",
    "ReviewStatus",
    "PropertyRequest",
    "Property",
    "DeletionRequest",
    "EMIRATES",
    "DESCRIPTIVE_FIELDS",
    "EDITABLE_FIELDS",
    # Edits
    "FieldChange",
    "PropertyPatch",
    "PropertyEditRequest",
    # State machines
    "Event",
    "StateMachine",
    "REQUEST_MACHINE",
    "REVIEW_MACHINE",
    "transition",
    # Identity
    "Identity",
    "UserRole",
    "require_admin",
    "require_owner",
    "require_user",
    # Validation
    "RequestValidationResult",
    "validate_request_data",
    "validate_patch",
    "build_property_request",
    "build_property",
    "sanitize_input",
    # Storage
    "ListingBackend",
    "ListingStore",
    "get_listing_store",
    "reset_listing_store",
    "SupabaseListingStore",
    "create_supabase_client",
    # Search
    "PriceBand",
    "SortOrder",
    "PropertyFilters",
    "filter_properties",
    # Notifications
    "Notifier",
    "NullNotifier",
    "TelegramNotifier",
    "format_request_message",
    # Uploads
    "MediaKind",
    "UploadPolicy",
    "POLICIES",
    "RetryPolicy",
    "BlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "UploadItem",
    "UploadOutcome",
    "BatchResult",
    "MediaUploader",
    "validate_upload",
    "build_storage_key",
    # Workflow
    "ListingWorkflow",
    "EditReview",
    "DashboardStats",
]
