"""
Listing Workflow - Request Approval, Deletion and Edit Review

Single entry point for every user and admin action on listings. Each
operation checks the caller's identity and role, validates input, then
delegates the state change to the backend's atomic operation. Nothing is
cached between calls: every action re-reads current state.

Flow:
1. Submitter creates a PropertyRequest (status pending)
2. Admin approves (a Property is materialised) or rejects
3. Owner may request deletion; admin approves (archive) or rejects
4. Owner may propose edits to a live Property; admin merges or rejects
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from core.listings.edits import FieldChange, PropertyEditRequest, PropertyPatch
from core.listings.errors import ConflictError, NotFoundError, ValidationError
from core.listings.identity import Identity, require_admin, require_owner, require_user
from core.listings.notify import Notifier
from core.listings.repository import ListingBackend
from core.listings.schema import (
    DESCRIPTIVE_FIELDS,
    DeletionRequest,
    Property,
    PropertyRequest,
    RequestStatus,
    ReviewStatus,
    is_valid_uuid,
)
from core.listings.search import PropertyFilters, filter_properties
from core.listings.state_machine import Event, transition
from core.listings.validation import (
    build_property,
    build_property_request,
    sanitize_input,
    validate_patch,
)


logger = logging.getLogger(__name__)

QR_CODE_REQUIRED = "QR code required for legal compliance"


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class EditReview:
    """Side-by-side view of an edit request against the live Property."""

    edit: PropertyEditRequest
    property: Property
    changes: dict[str, FieldChange]

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict:
        return {
            "edit_request": self.edit.to_dict(),
            "property": self.property.to_dict(),
            "changes": [c.to_dict() for c in self.changes.values()],
        }


@dataclass(frozen=True)
class DashboardStats:
    """Counts shown on the admin dashboard."""

    requests_by_status: dict[str, int]
    pending_deletions: int
    pending_edits: int
    live_properties: int
    unpublished_properties: int
    archived_properties: int
    hot_deals: int

    @property
    def pending_requests(self) -> int:
        return self.requests_by_status.get(RequestStatus.PENDING.value, 0)

    def to_dict(self) -> dict:
        return {
            "requests_by_status": dict(self.requests_by_status),
            "pending_requests": self.pending_requests,
            "pending_deletions": self.pending_deletions,
            "pending_edits": self.pending_edits,
            "live_properties": self.live_properties,
            "unpublished_properties": self.unpublished_properties,
            "archived_properties": self.archived_properties,
            "hot_deals": self.hot_deals,
        }


def _check_id(value: Any, label: str) -> str:
    if not is_valid_uuid(value):
        raise ValidationError(f"Invalid {label} id: {value!r}")
    return value


# =============================================================================
# Workflow
# =============================================================================


class ListingWorkflow:
    """Coordinates identity checks, validation and atomic store operations."""

    def __init__(self, store: ListingBackend, notifier: Optional[Notifier] = None):
        self._store = store
        self._notifier = notifier

    @property
    def store(self) -> ListingBackend:
        return self._store

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_request(self, request_id: str) -> PropertyRequest:
        request = self._store.get_request(_check_id(request_id, "request"))
        if request is None:
            raise NotFoundError(f"Property request {request_id} not found")
        return request

    def _get_property(self, property_id: str) -> Property:
        prop = self._store.get_property(_check_id(property_id, "property"))
        if prop is None:
            raise NotFoundError(f"Property {property_id} not found")
        return prop

    def _get_deletion(self, deletion_id: str) -> DeletionRequest:
        deletion = self._store.get_deletion_request(_check_id(deletion_id, "deletion request"))
        if deletion is None:
            raise NotFoundError(f"Deletion request {deletion_id} not found")
        return deletion

    def _get_edit(self, edit_id: str) -> PropertyEditRequest:
        edit = self._store.get_edit_request(_check_id(edit_id, "edit request"))
        if edit is None:
            raise NotFoundError(f"Edit request {edit_id} not found")
        return edit

    # =========================================================================
    # Request Intake
    # =========================================================================

    def submit(self, identity: Optional[Identity], data: Mapping[str, Any]) -> PropertyRequest:
        """
        Create a pending PropertyRequest from submitted data.

        The admin chat is notified afterwards; a notification failure
        never fails the submission.

        Raises:
            ValidationError: If a required field is missing or invalid
            AuthorizationError: If the caller is not signed in
        """
        identity = require_user(identity)
        request = self._store.insert_request(build_property_request(data, identity.id))
        logger.info("Property request %s submitted by %s", request.id, identity.id)
        self._notify_submitted(request)
        return request

    def _notify_submitted(self, request: PropertyRequest) -> None:
        if self._notifier is None:
            return
        try:
            delivered = self._notifier.notify_request_submitted(request)
        except Exception:
            logger.exception("Notifier raised for request %s", request.id)
            return
        if not delivered:
            logger.warning("Admin notification not delivered for request %s", request.id)

    def my_requests(self, identity: Optional[Identity]) -> list[PropertyRequest]:
        identity = require_user(identity)
        return self._store.list_requests(user_id=identity.id)

    def get_request(self, identity: Optional[Identity], request_id: str) -> PropertyRequest:
        """Fetch one request; visible to its submitter and to admins."""
        request = self._get_request(request_id)
        require_owner(identity, request.user_id)
        return request

    def list_requests(
        self,
        identity: Optional[Identity],
        status: Optional[RequestStatus] = None,
    ) -> list[PropertyRequest]:
        require_admin(identity)
        return self._store.list_requests(status=status)

    # =========================================================================
    # Admin Review
    # =========================================================================

    def approve(
        self,
        identity: Optional[Identity],
        request_id: str,
        edited_fields: Optional[Mapping[str, Any]] = None,
        admin_notes: Optional[str] = None,
    ) -> Property:
        """
        Approve a pending request, materialising its Property.

        Args:
            edited_fields: Admin corrections applied before approval
            admin_notes: Free-text note stored on request and Property

        Raises:
            ValidationError: If the effective QR code is empty or an edit is invalid
            ConflictError: If the request is no longer pending
            NotFoundError: If the request does not exist
        """
        admin = require_admin(identity)
        request = self._get_request(request_id)
        transition(request.status, Event.APPROVE)

        patch = None
        if edited_fields:
            not_descriptive = sorted(set(edited_fields) - set(DESCRIPTIVE_FIELDS))
            if not_descriptive:
                raise ValidationError(
                    f"Fields cannot be edited on approval: {', '.join(not_descriptive)}"
                )
            patch = validate_patch(edited_fields)

        qr_code = patch.get("qr_code", request.qr_code) if patch else request.qr_code
        if not qr_code or not str(qr_code).strip():
            raise ValidationError(QR_CODE_REQUIRED, ["qr_code is required"])

        notes = admin_notes.strip() if admin_notes else None
        prop = self._store.approve_property_request(request.id, admin.id, patch, notes or None)
        logger.info("Request %s approved by %s", request.id, admin.email)
        return prop

    def reject(self, identity: Optional[Identity], request_id: str) -> PropertyRequest:
        """
        Reject a pending request. No Property is created.

        Raises:
            ConflictError: If the request is no longer pending
        """
        admin = require_admin(identity)
        request = self._get_request(request_id)
        rejected = self._store.reject_property_request(request.id, admin.id)
        logger.info("Request %s rejected by %s", request.id, admin.email)
        return rejected

    # =========================================================================
    # Deletion
    # =========================================================================

    def request_deletion(
        self,
        identity: Optional[Identity],
        property_request_id: Optional[str] = None,
        property_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> DeletionRequest:
        """
        Ask for a request or a published property to be removed.

        Exactly one target must be given. A pending target request moves
        to deletion_requested; a published Property is not changed until
        an admin approves.

        Raises:
            AuthorizationError: If the caller is neither owner nor admin
            ConflictError: If the target is already deleted or has a pending deletion
        """
        identity = require_user(identity)
        if bool(property_request_id) == bool(property_id):
            raise ValidationError("Specify either a property request or a property to delete")

        if property_request_id:
            target = self._get_request(property_request_id)
            require_owner(identity, target.user_id)
        else:
            target = self._get_property(property_id)
            require_owner(identity, target.owner_id)

        reason = sanitize_input(reason) if reason else None
        deletion = DeletionRequest(
            user_id=identity.id,
            property_request_id=property_request_id or None,
            property_id=property_id or None,
            reason=reason or None,
        )
        return self._store.request_property_deletion(deletion)

    def list_deletion_requests(
        self,
        identity: Optional[Identity],
        status: Optional[ReviewStatus] = ReviewStatus.PENDING,
    ) -> list[DeletionRequest]:
        require_admin(identity)
        return self._store.list_deletion_requests(status=status)

    def approve_deletion(self, identity: Optional[Identity], deletion_id: str) -> DeletionRequest:
        """
        Approve a pending deletion, archiving the target.

        Raises:
            ConflictError: If the deletion request is not pending
        """
        admin = require_admin(identity)
        deletion = self._get_deletion(deletion_id)
        transition(deletion.status, Event.APPROVE, "deletion request")
        return self._store.approve_property_deletion(deletion.id, admin.id)

    def reject_deletion(self, identity: Optional[Identity], deletion_id: str) -> DeletionRequest:
        """Reject a pending deletion; a flagged request returns to pending."""
        admin = require_admin(identity)
        deletion = self._get_deletion(deletion_id)
        return self._store.reject_property_deletion(deletion.id, admin.id)

    # =========================================================================
    # Properties
    # =========================================================================

    def create_listing(self, identity: Optional[Identity], data: Mapping[str, Any]) -> Property:
        """Insert an owner's property directly; it stays hidden until published."""
        identity = require_user(identity)
        prop = self._store.insert_property(build_property(data, identity.id))
        logger.info("Direct listing %s created by %s", prop.id, identity.id)
        return prop

    def publish_property(self, identity: Optional[Identity], property_id: str) -> Property:
        """
        Make an unapproved direct listing visible.

        Raises:
            ValidationError: If the property has no QR code
            ConflictError: If it is already published or archived
        """
        admin = require_admin(identity)
        prop = self._get_property(property_id)
        if prop.is_archived:
            raise ConflictError("Cannot publish an archived property")
        if prop.is_approved:
            raise ConflictError("Property is already published")
        if not prop.has_qr_code:
            raise ValidationError(QR_CODE_REQUIRED, ["qr_code is required"])

        published = self._store.update_property_flags(prop.id, is_approved=True)
        logger.info("Property %s published by %s", prop.id, admin.email)
        return published

    def archive_property(self, identity: Optional[Identity], property_id: str) -> Property:
        admin = require_admin(identity)
        prop = self._get_property(property_id)
        if prop.is_archived:
            raise ConflictError("Property is already archived")
        archived = self._store.update_property_flags(prop.id, is_archived=True)
        logger.info("Property %s archived by %s", prop.id, admin.email)
        return archived

    def unarchive_property(self, identity: Optional[Identity], property_id: str) -> Property:
        admin = require_admin(identity)
        prop = self._get_property(property_id)
        if not prop.is_archived:
            raise ConflictError("Property is not archived")
        restored = self._store.update_property_flags(prop.id, is_archived=False)
        logger.info("Property %s restored by %s", prop.id, admin.email)
        return restored

    def set_hot_deal(self, identity: Optional[Identity], property_id: str, hot: bool) -> Property:
        require_admin(identity)
        prop = self._get_property(property_id)
        return self._store.update_property_flags(prop.id, is_hot_deal=bool(hot))

    def hard_delete_property(self, identity: Optional[Identity], property_id: str) -> None:
        """Permanently remove a property. Admin only, never implied by deletion approval."""
        admin = require_admin(identity)
        prop = self._get_property(property_id)
        self._store.delete_property(prop.id)
        logger.warning("Property %s permanently deleted by %s", prop.id, admin.email)

    def get_property(self, identity: Optional[Identity], property_id: str) -> Property:
        """
        Fetch one property.

        Live properties are public; hidden ones are visible only to the
        owner and admins, and look missing to everyone else.
        """
        prop = self._get_property(property_id)
        if prop.is_live:
            return prop
        if identity is not None and (identity.is_admin or identity.id == prop.owner_id):
            return prop
        raise NotFoundError(f"Property {property_id} not found")

    def browse(self, filters: Optional[PropertyFilters] = None) -> list[Property]:
        """Public listing of live properties."""
        return filter_properties(self._store.list_properties(), filters)

    def my_properties(self, identity: Optional[Identity]) -> list[Property]:
        identity = require_user(identity)
        return self._store.list_properties(approved_only=False, owner_id=identity.id)

    def list_unpublished(self, identity: Optional[Identity]) -> list[Property]:
        require_admin(identity)
        return [p for p in self._store.list_properties(approved_only=False) if not p.is_approved]

    def list_archived(self, identity: Optional[Identity]) -> list[Property]:
        require_admin(identity)
        return [
            p
            for p in self._store.list_properties(include_archived=True, approved_only=False)
            if p.is_archived
        ]

    # =========================================================================
    # Edit Requests
    # =========================================================================

    def submit_edit(
        self,
        identity: Optional[Identity],
        property_id: str,
        changes: Mapping[str, Any],
        message: Optional[str] = None,
    ) -> PropertyEditRequest:
        """
        Propose changes to a live Property. Owner only.

        Null values in `changes` mean "no change" and are dropped.

        Raises:
            ValidationError: If nothing is changed or a value is invalid
        """
        identity = require_user(identity)
        prop = self._get_property(property_id)
        if prop.is_archived:
            raise NotFoundError(f"Property {property_id} not found")
        require_owner(identity, prop.owner_id, allow_admin=False)

        patch: PropertyPatch = validate_patch(changes)
        message = sanitize_input(message) if message else None
        edit = PropertyEditRequest(
            property_id=prop.id,
            user_id=identity.id,
            changes=patch,
            user_message=message or None,
        )
        edit = self._store.insert_edit_request(edit)
        logger.info("Edit request %s submitted for property %s", edit.id, prop.id)
        return edit

    def list_edit_requests(
        self,
        identity: Optional[Identity],
        status: Optional[ReviewStatus] = ReviewStatus.PENDING,
    ) -> list[PropertyEditRequest]:
        require_admin(identity)
        return self._store.list_edit_requests(status=status)

    def review_edit(self, identity: Optional[Identity], edit_id: str) -> EditReview:
        """
        Compare an edit request with the live Property.

        Only fields whose requested value differs are reported.
        """
        require_admin(identity)
        edit = self._get_edit(edit_id)
        prop = self._store.get_property(edit.property_id)
        if prop is None:
            raise NotFoundError(f"Property {edit.property_id} no longer exists")
        return EditReview(edit=edit, property=prop, changes=edit.changes.changed_fields(prop))

    def approve_edit(self, identity: Optional[Identity], edit_id: str) -> Property:
        """
        Merge a pending edit into its Property.

        Raises:
            ConflictError: If the edit is not pending
            NotFoundError: If the Property was deleted or archived
        """
        admin = require_admin(identity)
        edit = self._get_edit(edit_id)
        prop = self._store.approve_property_edit_request(edit.id, admin.id)
        logger.info("Edit request %s approved by %s", edit.id, admin.email)
        return prop

    def reject_edit(
        self,
        identity: Optional[Identity],
        edit_id: str,
        reason: Optional[str] = None,
    ) -> PropertyEditRequest:
        admin = require_admin(identity)
        edit = self._get_edit(edit_id)
        reason = reason.strip() if reason else None
        return self._store.reject_property_edit_request(edit.id, admin.id, reason or None)

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard_stats(self, identity: Optional[Identity]) -> DashboardStats:
        require_admin(identity)
        by_status = {status.value: 0 for status in RequestStatus}
        for request in self._store.list_requests():
            by_status[request.status.value] += 1

        properties = self._store.list_properties(include_archived=True, approved_only=False)
        return DashboardStats(
            requests_by_status=by_status,
            pending_deletions=len(self._store.list_deletion_requests(ReviewStatus.PENDING)),
            pending_edits=len(self._store.list_edit_requests(ReviewStatus.PENDING)),
            live_properties=sum(1 for p in properties if p.is_live),
            unpublished_properties=sum(1 for p in properties if not p.is_approved and not p.is_archived),
            archived_properties=sum(1 for p in properties if p.is_archived),
            hot_deals=sum(1 for p in properties if p.is_live and p.is_hot_deal),
        )
