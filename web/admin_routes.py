"""
Admin Routes - Review Dashboard API

Provides:
- Login/logout for admins
- Property request review (approve with optional edits, reject)
- Deletion request review
- Edit request review with a field-by-field comparison
- Property moderation (publish, archive, restore, hot deal, hard delete)
- Dashboard counts

All routes except login require an admin session.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import JSONResponse

from core.listings import (
    Identity,
    ListingWorkflow,
    RequestStatus,
    ReviewStatus,
)
from web.auth import (
    authenticate_admin,
    clear_session_cookie,
    is_admin_configured,
    require_admin,
    set_session_cookie,
    sign_session,
)
from web.deps import get_workflow
from web.schemas import ApproveBody, HotDealBody, RejectBody


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Login/Logout Routes
# =============================================================================


@router.post("/login")
def login(email: str = Form(...), password: str = Form(...)):
    """Authenticate an admin and set the session cookie."""
    if not is_admin_configured():
        raise HTTPException(status_code=503, detail="Admin login is not configured")

    session = authenticate_admin(email, password)
    if not session:
        logger.warning("Failed admin login for %s", email.strip().lower())
        raise HTTPException(status_code=401, detail="Invalid email or password")

    response = JSONResponse({
        "identity": session.identity.to_dict(),
        "token": sign_session(session),
        "expires_at": session.expires_at.isoformat(),
    })
    set_session_cookie(response, session)
    return response


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


# =============================================================================
# Property Requests
# =============================================================================


@router.get("/requests")
def list_requests(
    status: Optional[RequestStatus] = RequestStatus.PENDING,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    requests = workflow.list_requests(admin, status)
    return {"requests": [r.to_dict() for r in requests]}


@router.get("/requests/{request_id}")
def request_detail(
    request_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.get_request(admin, request_id).to_dict()


@router.post("/requests/{request_id}/approve")
def approve_request(
    request_id: str,
    body: Optional[ApproveBody] = None,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Approve a pending request, optionally correcting fields first."""
    body = body or ApproveBody()
    prop = workflow.approve(admin, request_id, body.edited_fields, body.admin_notes)
    return {"property_id": prop.id, "property": prop.to_dict()}


@router.post("/requests/{request_id}/reject")
def reject_request(
    request_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.reject(admin, request_id).to_dict()


# =============================================================================
# Deletion Requests
# =============================================================================


@router.get("/deletions")
def list_deletions(
    status: Optional[ReviewStatus] = ReviewStatus.PENDING,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    deletions = workflow.list_deletion_requests(admin, status)
    return {"deletion_requests": [d.to_dict() for d in deletions]}


@router.post("/deletions/{deletion_id}/approve")
def approve_deletion(
    deletion_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.approve_deletion(admin, deletion_id).to_dict()


@router.post("/deletions/{deletion_id}/reject")
def reject_deletion(
    deletion_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.reject_deletion(admin, deletion_id).to_dict()


# =============================================================================
# Edit Requests
# =============================================================================


@router.get("/edits")
def list_edits(
    status: Optional[ReviewStatus] = ReviewStatus.PENDING,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    edits = workflow.list_edit_requests(admin, status)
    return {"edit_requests": [e.to_dict() for e in edits]}


@router.get("/edits/{edit_id}")
def review_edit(
    edit_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Show the edit against the live property, changed fields only."""
    return workflow.review_edit(admin, edit_id).to_dict()


@router.post("/edits/{edit_id}/approve")
def approve_edit(
    edit_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.approve_edit(admin, edit_id).to_dict()


@router.post("/edits/{edit_id}/reject")
def reject_edit(
    edit_id: str,
    body: Optional[RejectBody] = None,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    reason = body.reason if body else None
    return workflow.reject_edit(admin, edit_id, reason).to_dict()


# =============================================================================
# Property Moderation
# =============================================================================


@router.get("/properties/unpublished")
def unpublished_properties(
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return {"properties": [p.to_dict() for p in workflow.list_unpublished(admin)]}


@router.get("/properties/archived")
def archived_properties(
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return {"properties": [p.to_dict() for p in workflow.list_archived(admin)]}


@router.post("/properties/{property_id}/publish")
def publish_property(
    property_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.publish_property(admin, property_id).to_dict()


@router.post("/properties/{property_id}/archive")
def archive_property(
    property_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.archive_property(admin, property_id).to_dict()


@router.post("/properties/{property_id}/unarchive")
def unarchive_property(
    property_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.unarchive_property(admin, property_id).to_dict()


@router.post("/properties/{property_id}/hot-deal")
def set_hot_deal(
    property_id: str,
    body: HotDealBody,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.set_hot_deal(admin, property_id, body.hot).to_dict()


@router.delete("/properties/{property_id}", status_code=204)
def hard_delete_property(
    property_id: str,
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Permanently delete a property."""
    workflow.hard_delete_property(admin, property_id)


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/stats")
def dashboard_stats(
    admin: Identity = Depends(require_admin),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.dashboard_stats(admin).to_dict()
