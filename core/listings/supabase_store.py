"""
Supabase Listing Store - Hosted Postgres Backend

Implements ListingBackend against the hosted database. The multi-row
transitions are delegated to the database's RPC functions, which run in a
single transaction and re-check status server-side:

    approve_property_request(request_id, admin_notes, edited_fields, admin_id)
        -> property_id
    request_property_deletion(property_request_id, property_id, reason) -> id
    approve_property_deletion(deletion_request_id)
    approve_property_edit_request(edit_request_id)
    reject_property_edit_request(edit_request_id, rejection_reason)

edited_fields is a jsonb object of column -> value merged into the request
in the same transaction that creates the property; admin_id is recorded as
approved_by. Each call is preceded by a client-side status check so an
already-resolved record fails fast with ConflictError.

Single-row changes use conditional updates (".eq('status', 'pending')")
so a lost race shows up as zero updated rows and becomes ConflictError.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Mapping, Optional, TypeVar

import httpx
from supabase import PostgrestAPIError, create_client

from core.listings.edits import PropertyEditRequest, PropertyPatch
from core.listings.errors import (
    AuthorizationError,
    ConflictError,
    ListingError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from core.listings.repository import FLAG_FIELDS, ListingBackend
from core.listings.schema import (
    DeletionRequest,
    Property,
    PropertyRequest,
    RequestStatus,
    ReviewStatus,
    _to_json,
    utcnow,
)
from core.listings.state_machine import Event, transition


logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUESTS_TABLE = "property_requests"
PROPERTIES_TABLE = "properties"
DELETIONS_TABLE = "property_deletion_requests"
EDITS_TABLE = "property_edit_requests"

# Postgres / PostgREST error codes
_NOT_FOUND_CODES = {"P0002", "PGRST116"}
_CONFLICT_CODES = {"23505", "40001"}
_FORBIDDEN_CODES = {"42501", "PGRST301", "PGRST302"}
_INVALID_CODES = {"22P02", "23502", "23514", "22023"}


def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None):
    """
    Create a Supabase client from arguments or the environment.

    Returns None when credentials are not configured.
    """
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    if not url or not key:
        logger.info("Supabase credentials not configured; skipping client creation")
        return None
    return create_client(url, key)


def translate_api_error(error: PostgrestAPIError) -> ListingError:
    """Map a database error onto the workflow's error types."""
    code = getattr(error, "code", None) or ""
    message = getattr(error, "message", None) or str(error)
    lowered = message.lower()

    if code in _NOT_FOUND_CODES or "not found" in lowered or "does not exist" in lowered:
        return NotFoundError(message)
    if code in _FORBIDDEN_CODES or "permission" in lowered or "not authorized" in lowered:
        return AuthorizationError(message)
    if code in _CONFLICT_CODES or "not pending" in lowered or "already" in lowered:
        return ConflictError(message)
    if code in _INVALID_CODES or code == "P0001":
        return ValidationError(message)
    if code.startswith("5") or code.startswith("08") or code.startswith("57"):
        return TransientError(message)
    return ListingError(message)


class SupabaseListingStore(ListingBackend):
    """ListingBackend backed by Supabase tables and RPC functions."""

    def __init__(self, client: Any):
        self._client = client

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _run(self, action: Callable[[], T]) -> T:
        try:
            return action()
        except PostgrestAPIError as e:
            raise translate_api_error(e) from e
        except httpx.TransportError as e:
            raise TransientError(f"Database unreachable: {e}") from e

    def _select(self, table: str, **filters: Any) -> list[dict]:
        def query():
            builder = self._client.table(table).select("*")
            for column, value in filters.items():
                builder = builder.eq(column, value)
            return builder.order("created_at", desc=True).execute()

        return self._run(query).data or []

    def _select_one(self, table: str, record_id: str) -> Optional[dict]:
        rows = self._select(table, id=record_id)
        return rows[0] if rows else None

    def _insert(self, table: str, row: dict) -> dict:
        response = self._run(lambda: self._client.table(table).insert(row).execute())
        if not response.data:
            raise ListingError(f"Insert into {table} returned no row")
        return response.data[0]

    def _update(self, table: str, values: dict, **conditions: Any) -> list[dict]:
        def query():
            builder = self._client.table(table).update(values)
            for column, value in conditions.items():
                builder = builder.eq(column, value)
            return builder.execute()

        return self._run(query).data or []

    def _rpc(self, name: str, params: dict) -> Any:
        logger.debug("RPC %s(%s)", name, ", ".join(params))
        return self._run(lambda: self._client.rpc(name, params).execute()).data

    # =========================================================================
    # Property Requests
    # =========================================================================

    def insert_request(self, request: PropertyRequest) -> PropertyRequest:
        return PropertyRequest.from_dict(self._insert(REQUESTS_TABLE, request.to_dict()))

    def get_request(self, request_id: str) -> Optional[PropertyRequest]:
        row = self._select_one(REQUESTS_TABLE, request_id)
        return PropertyRequest.from_dict(row) if row else None

    def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        user_id: Optional[str] = None,
    ) -> list[PropertyRequest]:
        filters: dict[str, Any] = {"is_archived": False}
        if status is not None:
            filters["status"] = status.value
        if user_id is not None:
            filters["user_id"] = user_id
        return [PropertyRequest.from_dict(r) for r in self._select(REQUESTS_TABLE, **filters)]

    def approve_property_request(
        self,
        request_id: str,
        admin_id: str,
        edited_fields: Optional[Mapping[str, Any]] = None,
        admin_notes: Optional[str] = None,
    ) -> Property:
        request = self.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Property request {request_id} not found")
        transition(request.status, Event.APPROVE, "property request")

        # Edits travel with the approval so they commit or roll back together
        patch = PropertyPatch(edited_fields or {})
        property_id = self._rpc(
            "approve_property_request",
            {
                "request_id": request_id,
                "admin_notes": admin_notes,
                "edited_fields": patch.to_dict() or None,
                "admin_id": admin_id,
            },
        )
        prop = self.get_property(property_id) if property_id else None
        if prop is None:
            raise ListingError(f"Approval of {request_id} did not return a property")
        logger.info("Approved property request %s as property %s (admin %s)", request_id, prop.id, admin_id)
        return prop

    def reject_property_request(self, request_id: str, admin_id: str) -> PropertyRequest:
        rows = self._update(
            REQUESTS_TABLE,
            {"status": RequestStatus.REJECTED.value, "updated_at": utcnow().isoformat()},
            id=request_id,
            status=RequestStatus.PENDING.value,
        )
        if not rows:
            current = self.get_request(request_id)
            if current is None:
                raise NotFoundError(f"Property request {request_id} not found")
            raise ConflictError(
                f"Cannot reject a property request with status '{current.status.value}'"
            )
        return PropertyRequest.from_dict(rows[0])

    # =========================================================================
    # Deletion Requests
    # =========================================================================

    def request_property_deletion(self, deletion: DeletionRequest) -> DeletionRequest:
        if deletion.targets_request:
            target_column, target_id = "property_request_id", deletion.property_request_id
            request = self.get_request(target_id)
            if request is None:
                raise NotFoundError(f"Property request {target_id} not found")
            if request.is_archived:
                raise ConflictError("Property request has already been deleted")
            if request.status in (RequestStatus.PENDING, RequestStatus.DELETION_REQUESTED):
                transition(request.status, Event.REQUEST_DELETION)
        else:
            target_column, target_id = "property_id", deletion.property_id
            prop = self.get_property(target_id)
            if prop is None:
                raise NotFoundError(f"Property {target_id} not found")
            if prop.is_archived:
                raise ConflictError("Property has already been deleted")

        if self._select(DELETIONS_TABLE, **{target_column: target_id, "status": ReviewStatus.PENDING.value}):
            raise ConflictError("A deletion request is already pending for this listing")

        deletion_id = self._rpc(
            "request_property_deletion",
            {
                "property_request_id": deletion.property_request_id,
                "property_id": deletion.property_id,
                "reason": deletion.reason,
            },
        )
        created = self.get_deletion_request(deletion_id) if deletion_id else None
        if created is None:
            raise ListingError("Deletion request was not created")
        return created

    def approve_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest:
        current = self.get_deletion_request(deletion_id)
        if current is None:
            raise NotFoundError(f"Deletion request {deletion_id} not found")
        transition(current.status, Event.APPROVE, "deletion request")

        self._rpc("approve_property_deletion", {"deletion_request_id": deletion_id})
        approved = self.get_deletion_request(deletion_id)
        if approved is None:
            raise NotFoundError(f"Deletion request {deletion_id} not found")
        return approved

    def reject_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest:
        now = utcnow().isoformat()
        rows = self._update(
            DELETIONS_TABLE,
            {"status": ReviewStatus.REJECTED.value, "updated_at": now},
            id=deletion_id,
            status=ReviewStatus.PENDING.value,
        )
        if not rows:
            current = self.get_deletion_request(deletion_id)
            if current is None:
                raise NotFoundError(f"Deletion request {deletion_id} not found")
            raise ConflictError(
                f"Cannot reject a deletion request with status '{current.status.value}'"
            )

        rejected = DeletionRequest.from_dict(rows[0])
        if rejected.targets_request:
            self._update(
                REQUESTS_TABLE,
                {"status": RequestStatus.PENDING.value, "updated_at": now},
                id=rejected.property_request_id,
                status=RequestStatus.DELETION_REQUESTED.value,
            )
        return rejected

    def get_deletion_request(self, deletion_id: str) -> Optional[DeletionRequest]:
        row = self._select_one(DELETIONS_TABLE, deletion_id)
        return DeletionRequest.from_dict(row) if row else None

    def list_deletion_requests(
        self, status: Optional[ReviewStatus] = None
    ) -> list[DeletionRequest]:
        filters = {"status": status.value} if status is not None else {}
        return [DeletionRequest.from_dict(r) for r in self._select(DELETIONS_TABLE, **filters)]

    # =========================================================================
    # Properties
    # =========================================================================

    def insert_property(self, prop: Property) -> Property:
        return Property.from_dict(self._insert(PROPERTIES_TABLE, prop.to_dict()))

    def get_property(self, property_id: str) -> Optional[Property]:
        row = self._select_one(PROPERTIES_TABLE, property_id)
        return Property.from_dict(row) if row else None

    def list_properties(
        self,
        include_archived: bool = False,
        approved_only: bool = True,
        owner_id: Optional[str] = None,
    ) -> list[Property]:
        filters: dict[str, Any] = {}
        if not include_archived:
            filters["is_archived"] = False
        if approved_only:
            filters["is_approved"] = True
        if owner_id is not None:
            filters["owner_id"] = owner_id
        return [Property.from_dict(r) for r in self._select(PROPERTIES_TABLE, **filters)]

    def update_property_flags(self, property_id: str, **flags: Any) -> Property:
        unknown = set(flags) - FLAG_FIELDS
        if unknown:
            raise ValueError(f"Not a property flag: {', '.join(sorted(unknown))}")

        values = {name: _to_json(value) for name, value in flags.items()}
        values["updated_at"] = utcnow().isoformat()
        rows = self._update(PROPERTIES_TABLE, values, id=property_id)
        if not rows:
            raise NotFoundError(f"Property {property_id} not found")
        return Property.from_dict(rows[0])

    def delete_property(self, property_id: str) -> None:
        response = self._run(
            lambda: self._client.table(PROPERTIES_TABLE).delete().eq("id", property_id).execute()
        )
        if not response.data:
            raise NotFoundError(f"Property {property_id} not found")
        logger.info("Hard deleted property %s", property_id)

    # =========================================================================
    # Edit Requests
    # =========================================================================

    def insert_edit_request(self, edit: PropertyEditRequest) -> PropertyEditRequest:
        return PropertyEditRequest.from_dict(self._insert(EDITS_TABLE, edit.to_dict()))

    def get_edit_request(self, edit_id: str) -> Optional[PropertyEditRequest]:
        row = self._select_one(EDITS_TABLE, edit_id)
        return PropertyEditRequest.from_dict(row) if row else None

    def list_edit_requests(
        self,
        status: Optional[ReviewStatus] = None,
        property_id: Optional[str] = None,
    ) -> list[PropertyEditRequest]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = status.value
        if property_id is not None:
            filters["property_id"] = property_id
        return [PropertyEditRequest.from_dict(r) for r in self._select(EDITS_TABLE, **filters)]

    def approve_property_edit_request(self, edit_id: str, admin_id: str) -> Property:
        edit = self.get_edit_request(edit_id)
        if edit is None:
            raise NotFoundError(f"Edit request {edit_id} not found")
        transition(edit.status, Event.APPROVE, "edit request")
        target = self.get_property(edit.property_id)
        if target is None or target.is_archived:
            raise NotFoundError(
                f"Property {edit.property_id} no longer exists; edit cannot be applied"
            )

        self._rpc("approve_property_edit_request", {"edit_request_id": edit_id})
        prop = self.get_property(edit.property_id)
        if prop is None:
            raise NotFoundError(f"Property {edit.property_id} no longer exists")
        return prop

    def reject_property_edit_request(
        self, edit_id: str, admin_id: str, reason: Optional[str] = None
    ) -> PropertyEditRequest:
        edit = self.get_edit_request(edit_id)
        if edit is None:
            raise NotFoundError(f"Edit request {edit_id} not found")
        transition(edit.status, Event.REJECT, "edit request")

        self._rpc(
            "reject_property_edit_request",
            {"edit_request_id": edit_id, "rejection_reason": reason},
        )
        rejected = self.get_edit_request(edit_id)
        if rejected is None:
            raise NotFoundError(f"Edit request {edit_id} not found")
        return rejected
