"""
UAE Property Listings - Core Business Logic

This module provides the listing approval pipeline:
1. Request intake (validated PropertyRequest, status pending)
2. Admin review (approve materialises a Property, or reject)
3. Deletion requests (archive on approval)
4. Edit requests (sparse patch, reviewed and merged)
5. Public browsing of live properties
"""

from .listings import (
    ListingWorkflow,
    ListingStore,
    SupabaseListingStore,
    PropertyRequest,
    Property,
    PropertyEditRequest,
    DeletionRequest,
    Identity,
    UserRole,
    ListingError,
    ValidationError,
    ConflictError,
    NotFoundError,
    TransientError,
    AuthorizationError,
)

__all__ = [
    "ListingWorkflow",
    "ListingStore",
    "SupabaseListingStore",
    "PropertyRequest",
    "Property",
    "PropertyEditRequest",
    "DeletionRequest",
    "Identity",
    "UserRole",
    "ListingError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "TransientError",
    "AuthorizationError",
]
