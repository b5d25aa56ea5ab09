"""
Listing Repository - Storage Backends for the Approval Workflow

ListingBackend is the persistence/RPC boundary. Each multi-row operation
(approve a request, resolve a deletion, merge an edit) is one atomic unit:
it re-reads the current status, applies the state machine, and commits
every write together or none at all.

ListingStore is the in-memory implementation with optional JSON file
persistence, used for development and tests. Operations are serialised
under a lock, which makes every status precondition a conditional write.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Optional

from core.listings.edits import PropertyEditRequest, PropertyPatch
from core.listings.errors import ConflictError, NotFoundError
from core.listings.schema import (
    DeletionRequest,
    Property,
    PropertyRequest,
    RequestStatus,
    ReviewStatus,
    utcnow,
)
from core.listings.state_machine import Event, transition


logger = logging.getLogger(__name__)


# =============================================================================
# Backend Interface
# =============================================================================


class ListingBackend(ABC):
    """Persistence boundary for requests, properties and review records."""

    # --- Property requests ---------------------------------------------------

    @abstractmethod
    def insert_request(self, request: PropertyRequest) -> PropertyRequest: ...

    @abstractmethod
    def get_request(self, request_id: str) -> Optional[PropertyRequest]: ...

    @abstractmethod
    def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        user_id: Optional[str] = None,
    ) -> list[PropertyRequest]: ...

    @abstractmethod
    def approve_property_request(
        self,
        request_id: str,
        admin_id: str,
        edited_fields: Optional[Mapping[str, Any]] = None,
        admin_notes: Optional[str] = None,
    ) -> Property:
        """Persist edits, create the Property and mark the request approved."""

    @abstractmethod
    def reject_property_request(self, request_id: str, admin_id: str) -> PropertyRequest: ...

    # --- Deletion requests ---------------------------------------------------

    @abstractmethod
    def request_property_deletion(self, deletion: DeletionRequest) -> DeletionRequest:
        """Record a pending deletion and flag a pending target request."""

    @abstractmethod
    def approve_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest:
        """Archive the target and mark the deletion approved."""

    @abstractmethod
    def reject_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest: ...

    @abstractmethod
    def get_deletion_request(self, deletion_id: str) -> Optional[DeletionRequest]: ...

    @abstractmethod
    def list_deletion_requests(
        self, status: Optional[ReviewStatus] = None
    ) -> list[DeletionRequest]: ...

    # --- Properties ----------------------------------------------------------

    @abstractmethod
    def insert_property(self, prop: Property) -> Property: ...

    @abstractmethod
    def get_property(self, property_id: str) -> Optional[Property]: ...

    @abstractmethod
    def list_properties(
        self,
        include_archived: bool = False,
        approved_only: bool = True,
        owner_id: Optional[str] = None,
    ) -> list[Property]: ...

    @abstractmethod
    def update_property_flags(self, property_id: str, **flags: Any) -> Property:
        """Set is_approved / is_archived / is_hot_deal / admin_notes."""

    @abstractmethod
    def delete_property(self, property_id: str) -> None:
        """Hard delete. Only reachable through the explicit admin operation."""

    # --- Edit requests -------------------------------------------------------

    @abstractmethod
    def insert_edit_request(self, edit: PropertyEditRequest) -> PropertyEditRequest: ...

    @abstractmethod
    def get_edit_request(self, edit_id: str) -> Optional[PropertyEditRequest]: ...

    @abstractmethod
    def list_edit_requests(
        self,
        status: Optional[ReviewStatus] = None,
        property_id: Optional[str] = None,
    ) -> list[PropertyEditRequest]: ...

    @abstractmethod
    def approve_property_edit_request(self, edit_id: str, admin_id: str) -> Property:
        """Merge the patch into the live Property and mark the edit approved."""

    @abstractmethod
    def reject_property_edit_request(
        self, edit_id: str, admin_id: str, reason: Optional[str] = None
    ) -> PropertyEditRequest: ...


# =============================================================================
# In-Memory Store
# =============================================================================

FLAG_FIELDS = frozenset({"is_approved", "is_archived", "is_hot_deal", "admin_notes"})


def _newest_first(records: list) -> list:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


class ListingStore(ListingBackend):
    """
    In-memory listing store with optional file persistence.

    Returned records are copies; callers never hold references into the
    store, so nothing outside it can change authoritative state.
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise store.

        Args:
            persist_path: Optional path to persist data to JSON file
        """
        self._requests: dict[str, PropertyRequest] = {}
        self._properties: dict[str, Property] = {}
        self._deletions: dict[str, DeletionRequest] = {}
        self._edits: dict[str, PropertyEditRequest] = {}
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    def _save_to_file(self) -> None:
        """Persist data to file."""
        if not self._persist_path:
            return

        data = {
            "property_requests": [r.to_dict() for r in self._requests.values()],
            "properties": [p.to_dict() for p in self._properties.values()],
            "deletion_requests": [d.to_dict() for d in self._deletions.values()],
            "edit_requests": [e.to_dict() for e in self._edits.values()],
            "saved_at": utcnow().isoformat(),
        }

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(json.dumps(data, indent=2))

    def _load_from_file(self) -> None:
        """Load data from file."""
        try:
            data = json.loads(self._persist_path.read_text())
            for row in data.get("property_requests", []):
                request = PropertyRequest.from_dict(row)
                self._requests[request.id] = request
            for row in data.get("properties", []):
                prop = Property.from_dict(row)
                self._properties[prop.id] = prop
            for row in data.get("deletion_requests", []):
                deletion = DeletionRequest.from_dict(row)
                self._deletions[deletion.id] = deletion
            for row in data.get("edit_requests", []):
                edit = PropertyEditRequest.from_dict(row)
                self._edits[edit.id] = edit
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            # Start fresh rather than refuse to boot
            logger.warning("Could not load listing data from %s: %s", self._persist_path, e)

    # =========================================================================
    # Lookups (callers must hold the lock)
    # =========================================================================

    def _require_request(self, request_id: str) -> PropertyRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise NotFoundError(f"Property request {request_id} not found")
        return request

    def _require_property(self, property_id: str) -> Property:
        prop = self._properties.get(property_id)
        if prop is None:
            raise NotFoundError(f"Property {property_id} not found")
        return prop

    def _require_deletion(self, deletion_id: str) -> DeletionRequest:
        deletion = self._deletions.get(deletion_id)
        if deletion is None:
            raise NotFoundError(f"Deletion request {deletion_id} not found")
        return deletion

    def _require_edit(self, edit_id: str) -> PropertyEditRequest:
        edit = self._edits.get(edit_id)
        if edit is None:
            raise NotFoundError(f"Edit request {edit_id} not found")
        return edit

    # =========================================================================
    # Property Requests
    # =========================================================================

    def insert_request(self, request: PropertyRequest) -> PropertyRequest:
        with self._lock:
            if request.id in self._requests:
                raise ConflictError(f"Property request {request.id} already exists")
            self._requests[request.id] = copy.deepcopy(request)
            self._save_to_file()
            return copy.deepcopy(request)

    def get_request(self, request_id: str) -> Optional[PropertyRequest]:
        with self._lock:
            return copy.deepcopy(self._requests.get(request_id))

    def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        user_id: Optional[str] = None,
    ) -> list[PropertyRequest]:
        with self._lock:
            result = [
                copy.deepcopy(r)
                for r in self._requests.values()
                if not r.is_archived
                and (status is None or r.status == status)
                and (user_id is None or r.user_id == user_id)
            ]
        return _newest_first(result)

    def approve_property_request(
        self,
        request_id: str,
        admin_id: str,
        edited_fields: Optional[Mapping[str, Any]] = None,
        admin_notes: Optional[str] = None,
    ) -> Property:
        with self._lock:
            current = self._require_request(request_id)
            new_status = transition(current.status, Event.APPROVE)

            request = copy.deepcopy(current)
            if edited_fields:
                PropertyPatch(edited_fields).apply(request)
            if admin_notes:
                request.admin_notes = admin_notes

            prop = Property.from_request(request)
            now = utcnow()
            request.status = new_status
            request.approved_by = admin_id
            request.approved_at = now
            request.updated_at = now
            request.property_id = prop.id

            # Both rows are committed together, after every check has passed
            self._properties[prop.id] = prop
            self._requests[request.id] = request
            self._save_to_file()

        logger.info("Approved property request %s as property %s", request_id, prop.id)
        return copy.deepcopy(prop)

    def reject_property_request(self, request_id: str, admin_id: str) -> PropertyRequest:
        with self._lock:
            request = self._require_request(request_id)
            request.status = transition(request.status, Event.REJECT)
            request.updated_at = utcnow()
            self._save_to_file()
            logger.info("Rejected property request %s by %s", request_id, admin_id)
            return copy.deepcopy(request)

    # =========================================================================
    # Deletion Requests
    # =========================================================================

    def _has_pending_deletion(self, deletion: DeletionRequest) -> bool:
        return any(
            d.status == ReviewStatus.PENDING
            and d.property_request_id == deletion.property_request_id
            and d.property_id == deletion.property_id
            for d in self._deletions.values()
        )

    def request_property_deletion(self, deletion: DeletionRequest) -> DeletionRequest:
        with self._lock:
            if self._has_pending_deletion(deletion):
                raise ConflictError("A deletion request is already pending for this listing")

            request = None
            if deletion.targets_request:
                request = self._require_request(deletion.property_request_id)
                if request.is_archived:
                    raise ConflictError("Property request has already been deleted")
                if request.status in (RequestStatus.PENDING, RequestStatus.DELETION_REQUESTED):
                    next_status = transition(request.status, Event.REQUEST_DELETION)
                else:
                    next_status = request.status
            else:
                prop = self._require_property(deletion.property_id)
                if prop.is_archived:
                    raise ConflictError("Property has already been deleted")

            if request is not None:
                request.status = next_status
                request.updated_at = utcnow()
            self._deletions[deletion.id] = copy.deepcopy(deletion)
            self._save_to_file()

        logger.info("Deletion request %s created by %s", deletion.id, deletion.user_id)
        return copy.deepcopy(deletion)

    def approve_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest:
        with self._lock:
            deletion = self._require_deletion(deletion_id)
            new_status = transition(deletion.status, Event.APPROVE, "deletion request")

            now = utcnow()
            target_property_id = deletion.property_id
            if deletion.targets_request:
                request = self._requests.get(deletion.property_request_id)
                if request is not None:
                    request.is_archived = True
                    request.updated_at = now
                    target_property_id = request.property_id

            prop = self._properties.get(target_property_id) if target_property_id else None
            if prop is not None:
                prop.is_archived = True
                prop.updated_at = now

            deletion.status = new_status
            deletion.approved_by = admin_id
            deletion.approved_at = now
            deletion.updated_at = now
            self._save_to_file()
            logger.info("Approved deletion request %s by %s", deletion_id, admin_id)
            return copy.deepcopy(deletion)

    def reject_property_deletion(self, deletion_id: str, admin_id: str) -> DeletionRequest:
        with self._lock:
            deletion = self._require_deletion(deletion_id)
            new_status = transition(deletion.status, Event.REJECT, "deletion request")

            now = utcnow()
            if deletion.targets_request:
                request = self._requests.get(deletion.property_request_id)
                if request is not None and request.status == RequestStatus.DELETION_REQUESTED:
                    request.status = transition(request.status, Event.CANCEL_DELETION)
                    request.updated_at = now

            deletion.status = new_status
            deletion.updated_at = now
            self._save_to_file()
            logger.info("Rejected deletion request %s by %s", deletion_id, admin_id)
            return copy.deepcopy(deletion)

    def get_deletion_request(self, deletion_id: str) -> Optional[DeletionRequest]:
        with self._lock:
            return copy.deepcopy(self._deletions.get(deletion_id))

    def list_deletion_requests(
        self, status: Optional[ReviewStatus] = None
    ) -> list[DeletionRequest]:
        with self._lock:
            result = [
                copy.deepcopy(d)
                for d in self._deletions.values()
                if status is None or d.status == status
            ]
        return _newest_first(result)

    # =========================================================================
    # Properties
    # =========================================================================

    def insert_property(self, prop: Property) -> Property:
        with self._lock:
            if prop.id in self._properties:
                raise ConflictError(f"Property {prop.id} already exists")
            self._properties[prop.id] = copy.deepcopy(prop)
            self._save_to_file()
            return copy.deepcopy(prop)

    def get_property(self, property_id: str) -> Optional[Property]:
        with self._lock:
            return copy.deepcopy(self._properties.get(property_id))

    def list_properties(
        self,
        include_archived: bool = False,
        approved_only: bool = True,
        owner_id: Optional[str] = None,
    ) -> list[Property]:
        with self._lock:
            result = [
                copy.deepcopy(p)
                for p in self._properties.values()
                if (include_archived or not p.is_archived)
                and (not approved_only or p.is_approved)
                and (owner_id is None or p.owner_id == owner_id)
            ]
        return _newest_first(result)

    def update_property_flags(self, property_id: str, **flags: Any) -> Property:
        unknown = set(flags) - FLAG_FIELDS
        if unknown:
            raise ValueError(f"Not a property flag: {', '.join(sorted(unknown))}")

        with self._lock:
            prop = self._require_property(property_id)
            for name, value in flags.items():
                setattr(prop, name, value)
            prop.updated_at = utcnow()
            self._save_to_file()
            return copy.deepcopy(prop)

    def delete_property(self, property_id: str) -> None:
        with self._lock:
            self._require_property(property_id)
            del self._properties[property_id]
            self._save_to_file()
        logger.info("Hard deleted property %s", property_id)

    # =========================================================================
    # Edit Requests
    # =========================================================================

    def insert_edit_request(self, edit: PropertyEditRequest) -> PropertyEditRequest:
        with self._lock:
            self._require_property(edit.property_id)
            self._edits[edit.id] = copy.deepcopy(edit)
            self._save_to_file()
            return copy.deepcopy(edit)

    def get_edit_request(self, edit_id: str) -> Optional[PropertyEditRequest]:
        with self._lock:
            return copy.deepcopy(self._edits.get(edit_id))

    def list_edit_requests(
        self,
        status: Optional[ReviewStatus] = None,
        property_id: Optional[str] = None,
    ) -> list[PropertyEditRequest]:
        with self._lock:
            result = [
                copy.deepcopy(e)
                for e in self._edits.values()
                if (status is None or e.status == status)
                and (property_id is None or e.property_id == property_id)
            ]
        return _newest_first(result)

    def approve_property_edit_request(self, edit_id: str, admin_id: str) -> Property:
        with self._lock:
            edit = self._require_edit(edit_id)
            new_status = transition(edit.status, Event.APPROVE, "edit request")

            current = self._properties.get(edit.property_id)
            if current is None or current.is_archived:
                raise NotFoundError(
                    f"Property {edit.property_id} no longer exists; edit cannot be applied"
                )

            prop = copy.deepcopy(current)
            edit.changes.apply(prop)
            now = utcnow()
            prop.updated_at = now

            self._properties[prop.id] = prop
            edit.status = new_status
            edit.approved_by = admin_id
            edit.approved_at = now
            edit.updated_at = now
            self._save_to_file()

        logger.info("Applied edit request %s to property %s", edit_id, prop.id)
        return copy.deepcopy(prop)

    def reject_property_edit_request(
        self, edit_id: str, admin_id: str, reason: Optional[str] = None
    ) -> PropertyEditRequest:
        with self._lock:
            edit = self._require_edit(edit_id)
            edit.status = transition(edit.status, Event.REJECT, "edit request")
            if reason:
                edit.admin_notes = reason
            edit.updated_at = utcnow()
            self._save_to_file()
            logger.info("Rejected edit request %s by %s", edit_id, admin_id)
            return copy.deepcopy(edit)


# =============================================================================
# Singleton Instance
# =============================================================================

_store_instance: Optional[ListingStore] = None


def get_listing_store(persist_path: Optional[str] = None) -> ListingStore:
    """
    Get the in-memory listing store singleton.

    Args:
        persist_path: Optional path for persistence (only used on first call)
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = ListingStore(persist_path or "data/listings.json")
    return _store_instance


def reset_listing_store() -> None:
    """Reset the singleton instance (for testing)."""
    global _store_instance
    _store_instance = None
