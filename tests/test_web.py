"""
Tests for the HTTP API.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from core.listings import Identity, LocalBlobStore, MediaUploader, RetryPolicy, UserRole
from web.app import create_app
from web.auth import SESSION_COOKIE_NAME, get_token_resolver, hash_password, issue_token
from web.deps import get_uploader, get_workflow


@pytest.fixture
def app(workflow, tmp_path):
    application = create_app()
    application.dependency_overrides[get_workflow] = lambda: workflow
    application.dependency_overrides[get_uploader] = lambda: MediaUploader(
        LocalBlobStore(str(tmp_path / "uploads")), RetryPolicy(max_attempts=1), sleep=lambda s: None
    )
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def auth(identity):
    return {"Authorization": f"Bearer {issue_token(identity)}"}


@pytest.fixture
def owner_headers(owner):
    return auth(owner)


@pytest.fixture
def admin_headers(admin):
    return auth(admin)


def submit(client, headers, data):
    response = client.post("/api/requests", json=data, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_api_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert "version" in body


# =============================================================================
# Submission
# =============================================================================


class TestSubmission:
    def test_requires_sign_in(self, client, sea_view_data):
        assert client.post("/api/requests", json=sea_view_data).status_code == 401

    def test_invalid_token_rejected(self, client, sea_view_data):
        response = client.post("/api/requests", json=sea_view_data, headers={"Authorization": "Bearer junk.sig"})
        assert response.status_code == 401

    def test_submit_and_list_mine(self, client, owner_headers, sea_view_data, notifier):
        created = submit(client, owner_headers, sea_view_data)

        assert created["status"] == "pending"
        assert notifier.notified == [created["id"]]

        mine = client.get("/api/me/requests", headers=owner_headers).json()["requests"]
        assert [r["id"] for r in mine] == [created["id"]]

    def test_validation_error_shape(self, client, owner_headers):
        response = client.post("/api/requests", json={"title": "No price"}, headers=owner_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert "Please provide the price" in body["fields"]

    def test_other_users_request_hidden(self, client, owner_headers, other_user, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        response = client.get(f"/api/requests/{created['id']}", headers=auth(other_user))
        assert response.status_code == 403

    def test_unknown_request_404(self, client, owner_headers):
        assert client.get(f"/api/requests/{uuid.uuid4()}", headers=owner_headers).status_code == 404

    def test_malformed_id_422(self, client, owner_headers):
        assert client.get("/api/requests/not-a-uuid", headers=owner_headers).status_code == 422

    def test_cookie_session(self, client, owner, sea_view_data):
        client.cookies.set(SESSION_COOKIE_NAME, issue_token(owner))
        assert client.post("/api/requests", json=sea_view_data).status_code == 201


class TestProviderTokens:
    """Access tokens issued by the auth provider."""

    @pytest.fixture
    def provider_user(self, app):
        user = Identity(id="7d1f2a90-provider-user", email="layla@example.ae")
        app.dependency_overrides[get_token_resolver] = lambda: {"provider-token": user}.get
        return user

    def test_submit_with_provider_token(self, client, provider_user, sea_view_data):
        headers = {"Authorization": "Bearer provider-token"}
        created = submit(client, headers, sea_view_data)

        mine = client.get("/api/me/requests", headers=headers).json()["requests"]
        assert [r["id"] for r in mine] == [created["id"]]
        assert mine[0]["user_id"] == provider_user.id

    def test_unknown_provider_token_rejected(self, client, provider_user, sea_view_data):
        response = client.post("/api/requests", json=sea_view_data, headers={"Authorization": "Bearer stolen"})
        assert response.status_code == 401

    def test_provider_user_is_not_admin(self, client, provider_user):
        response = client.get("/admin/stats", headers={"Authorization": "Bearer provider-token"})
        assert response.status_code == 403


# =============================================================================
# Admin Review
# =============================================================================


class TestAdminReview:
    """Approval flow over HTTP."""

    def test_user_cannot_approve(self, client, owner_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        response = client.post(f"/admin/requests/{created['id']}/approve", headers=owner_headers)
        assert response.status_code == 403

    def test_approve_then_browse(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)

        pending = client.get("/admin/requests", headers=admin_headers).json()["requests"]
        assert [r["id"] for r in pending] == [created["id"]]

        response = client.post(
            f"/admin/requests/{created['id']}/approve",
            json={"edited_fields": {"price": 480000}, "admin_notes": "Checked title deed"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["property"]["price"] == 480000
        assert body["property"]["admin_notes"] == "Checked title deed"

        listing = client.get("/api/properties").json()
        assert listing["count"] == 1
        assert listing["properties"][0]["id"] == body["property_id"]

        detail = client.get(f"/api/properties/{body['property_id']}")
        assert detail.status_code == 200

    def test_second_approval_conflicts(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        client.post(f"/admin/requests/{created['id']}/approve", headers=admin_headers)

        response = client.post(f"/admin/requests/{created['id']}/approve", headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_missing_qr_code_blocks_approval(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, {**sea_view_data, "qr_code": None})
        response = client.post(f"/admin/requests/{created['id']}/approve", headers=admin_headers)

        assert response.status_code == 422
        assert "QR code" in response.json()["detail"]

    @pytest.mark.parametrize("edited", [{"type": "lease"}, {"title": 5}, {"description": ["x"]}])
    def test_malformed_edited_fields_are_422(self, client, owner_headers, admin_headers, sea_view_data, edited):
        created = submit(client, owner_headers, sea_view_data)
        response = client.post(
            f"/admin/requests/{created['id']}/approve",
            json={"edited_fields": edited},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        detail = client.get(f"/admin/requests/{created['id']}", headers=admin_headers).json()
        assert detail["status"] == "pending"

    def test_reject(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        response = client.post(f"/admin/requests/{created['id']}/reject", headers=admin_headers)

        assert response.json()["status"] == "rejected"
        assert client.get("/api/properties").json()["count"] == 0

    def test_deletion_round_trip(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        deletion = client.post(
            f"/api/requests/{created['id']}/deletion", json={"reason": "Sold"}, headers=owner_headers
        )
        assert deletion.status_code == 201

        listed = client.get("/admin/deletions", headers=admin_headers).json()["deletion_requests"]
        assert [d["id"] for d in listed] == [deletion.json()["id"]]

        approved = client.post(f"/admin/deletions/{deletion.json()['id']}/approve", headers=admin_headers)
        assert approved.json()["status"] == "approved"

    def test_stats(self, client, owner_headers, admin_headers, sea_view_data):
        submit(client, owner_headers, sea_view_data)
        stats = client.get("/admin/stats", headers=admin_headers).json()
        assert stats["pending_requests"] == 1
        assert stats["live_properties"] == 0


class TestEdits:
    def test_owner_edit_reviewed_and_applied(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        property_id = client.post(
            f"/admin/requests/{created['id']}/approve", headers=admin_headers
        ).json()["property_id"]

        edit = client.post(
            f"/api/properties/{property_id}/edits",
            json={"price": 550000, "user_message": "Market moved"},
            headers=owner_headers,
        )
        assert edit.status_code == 201
        edit_id = edit.json()["id"]

        review = client.get(f"/admin/edits/{edit_id}", headers=admin_headers).json()
        assert review["changes"] == [{"field": "price", "current": 500000.0, "requested": 550000.0}]

        applied = client.post(f"/admin/edits/{edit_id}/approve", headers=admin_headers)
        assert applied.json()["price"] == 550000


# =============================================================================
# Property Moderation
# =============================================================================


class TestModeration:
    def test_direct_listing_hidden_until_published(self, client, owner_headers, admin_headers, sea_view_data):
        created = client.post("/api/properties", json=sea_view_data, headers=owner_headers)
        assert created.status_code == 201
        property_id = created.json()["id"]

        assert client.get(f"/api/properties/{property_id}").status_code == 404
        assert client.get(f"/api/properties/{property_id}", headers=owner_headers).status_code == 200

        published = client.post(f"/admin/properties/{property_id}/publish", headers=admin_headers)
        assert published.json()["is_approved"] is True
        assert client.get(f"/api/properties/{property_id}").status_code == 200

    def test_hot_deal_and_filters(self, client, owner_headers, admin_headers, sea_view_data):
        created = submit(client, owner_headers, sea_view_data)
        property_id = client.post(
            f"/admin/requests/{created['id']}/approve", headers=admin_headers
        ).json()["property_id"]

        client.post(f"/admin/properties/{property_id}/hot-deal", json={"hot": True}, headers=admin_headers)

        assert client.get("/api/properties", params={"hot_deals": "true"}).json()["count"] == 1
        assert client.get("/api/properties", params={"type": "rent"}).json()["count"] == 0
        assert client.get("/api/properties", params={"price_band": "high"}).json()["count"] == 1

    def test_bad_filter_rejected(self, client):
        assert client.get("/api/properties", params={"price_band": "luxury"}).status_code == 422

    def test_hard_delete(self, client, owner_headers, admin_headers, sea_view_data):
        property_id = client.post("/api/properties", json=sea_view_data, headers=owner_headers).json()["id"]

        assert client.delete(f"/admin/properties/{property_id}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/properties/{property_id}", headers=admin_headers).status_code == 404


# =============================================================================
# Admin Login
# =============================================================================


class TestAdminLogin:
    def test_not_configured(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAILS", raising=False)
        monkeypatch.delenv("ADMIN_PASSWORD_HASH", raising=False)
        response = client.post("/admin/login", data={"email": "a@b.ae", "password": "x"})
        assert response.status_code == 503

    def test_login_issues_admin_token(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "Boss@Example.ae")
        monkeypatch.setenv("ADMIN_PASSWORD_HASH", hash_password("s3cret"))

        assert client.post("/admin/login", data={"email": "boss@example.ae", "password": "wrong"}).status_code == 401

        response = client.post("/admin/login", data={"email": "boss@example.ae", "password": "s3cret"})
        assert response.status_code == 200
        body = response.json()
        assert body["identity"]["role"] == UserRole.ADMIN.value

        stats = client.get("/admin/stats", headers={"Authorization": f"Bearer {body['token']}"})
        assert stats.status_code == 200


# =============================================================================
# Uploads
# =============================================================================


class TestUploads:
    def test_batch_reports_each_file(self, client, owner_headers):
        response = client.post(
            "/api/uploads",
            data={"kind": "image"},
            files=[
                ("files", ("front.jpg", b"\xff\xd8jpeg", "image/jpeg")),
                ("files", ("notes.txt", b"hello", "text/plain")),
            ],
            headers=owner_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert [o["filename"] for o in body["succeeded"]] == ["front.jpg"]
        assert body["succeeded"][0]["url"].startswith("/media/")
        assert [o["filename"] for o in body["failed"]] == ["notes.txt"]

    def test_unknown_kind(self, client, owner_headers):
        response = client.post(
            "/api/uploads",
            data={"kind": "hologram"},
            files=[("files", ("a.jpg", b"x", "image/jpeg"))],
            headers=owner_headers,
        )
        assert response.status_code == 422

    def test_requires_sign_in(self, client):
        response = client.post("/api/uploads", files=[("files", ("a.jpg", b"x", "image/jpeg"))])
        assert response.status_code == 401
