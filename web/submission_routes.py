"""
Submission Routes - Property Requests, Owner Listings, Deletions and Edits

Endpoints for signed-in users:
- Submit a property request and follow its status
- List a property directly (hidden until an admin publishes it)
- Request deletion of a request or property
- Propose edits to a published property
- Upload listing media
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from core.listings import (
    Identity,
    ListingWorkflow,
    MediaKind,
    MediaUploader,
    UploadItem,
)
from web.auth import require_user
from web.deps import get_uploader, get_workflow
from web.schemas import DeletionBody, EditRequestBody, ListingBody, PropertyRequestBody


router = APIRouter(prefix="/api", tags=["submission"])

MAX_FILES_PER_UPLOAD = 20


# =============================================================================
# Property Requests
# =============================================================================


@router.post("/requests", status_code=201)
def submit_request(
    body: PropertyRequestBody,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Submit a property for admin review."""
    request = workflow.submit(identity, body.values())
    return request.to_dict()


@router.get("/me/requests")
def my_requests(
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return {"requests": [r.to_dict() for r in workflow.my_requests(identity)]}


@router.get("/requests/{request_id}")
def get_request(
    request_id: str,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return workflow.get_request(identity, request_id).to_dict()


@router.post("/requests/{request_id}/deletion", status_code=201)
def request_request_deletion(
    request_id: str,
    body: Optional[DeletionBody] = None,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Ask an admin to remove one of my property requests."""
    reason = body.reason if body else None
    deletion = workflow.request_deletion(identity, property_request_id=request_id, reason=reason)
    return deletion.to_dict()


# =============================================================================
# Owner Properties
# =============================================================================


@router.post("/properties", status_code=201)
def create_listing(
    body: ListingBody,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """List a property directly; it stays hidden until published."""
    return workflow.create_listing(identity, body.values()).to_dict()


@router.get("/me/properties")
def my_properties(
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    return {"properties": [p.to_dict() for p in workflow.my_properties(identity)]}


@router.post("/properties/{property_id}/deletion", status_code=201)
def request_property_deletion(
    property_id: str,
    body: Optional[DeletionBody] = None,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    reason = body.reason if body else None
    deletion = workflow.request_deletion(identity, property_id=property_id, reason=reason)
    return deletion.to_dict()


@router.post("/properties/{property_id}/edits", status_code=201)
def submit_edit(
    property_id: str,
    body: EditRequestBody,
    identity: Identity = Depends(require_user),
    workflow: ListingWorkflow = Depends(get_workflow),
):
    """Propose changes to one of my published properties."""
    edit = workflow.submit_edit(identity, property_id, body.values(), body.user_message)
    return edit.to_dict()


# =============================================================================
# Media Upload
# =============================================================================


@router.post("/uploads")
async def upload_media(
    kind: str = Form("image"),
    files: list[UploadFile] = File(...),
    identity: Identity = Depends(require_user),
    uploader: MediaUploader = Depends(get_uploader),
):
    """
    Upload listing media.

    Each file succeeds or fails on its own; the response lists both.
    """
    try:
        media_kind = MediaKind(kind)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid media kind: {kind}")

    if len(files) > MAX_FILES_PER_UPLOAD:
        raise HTTPException(status_code=422, detail=f"At most {MAX_FILES_PER_UPLOAD} files per upload")

    items = []
    for upload in files:
        items.append(
            UploadItem(
                filename=upload.filename or "upload",
                content=await upload.read(),
                content_type=upload.content_type or "",
                kind=media_kind,
            )
        )

    result = uploader.upload_batch(identity.id, items)
    return result.to_dict()
