"""
Shared fixtures for the listings test suite.
"""

from __future__ import annotations

import tempfile
import uuid
from pathlib import Path

import pytest

from core.listings import (
    Identity,
    ListingStore,
    ListingWorkflow,
    UserRole,
    reset_listing_store,
)


class RecordingNotifier:
    """Notifier double that records every request it is told about."""

    def __init__(self, result: bool = True, raises: bool = False):
        self.result = result
        self.raises = raises
        self.notified = []

    def notify_request_submitted(self, request) -> bool:
        self.notified.append(request.id)
        if self.raises:
            raise RuntimeError("notification channel down")
        return self.result


def make_identity(email: str, role: UserRole = UserRole.USER) -> Identity:
    return Identity(id=str(uuid.uuid4()), email=email, role=role)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_persist_path():
    """Create a temporary file path for persistence."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "listings.json")


@pytest.fixture
def store(temp_persist_path):
    """Create a fresh store for each test."""
    reset_listing_store()
    return ListingStore(persist_path=temp_persist_path)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(store, notifier):
    return ListingWorkflow(store, notifier)


@pytest.fixture
def owner():
    return make_identity("ana@x.com")


@pytest.fixture
def other_user():
    return make_identity("omar@example.ae")


@pytest.fixture
def admin():
    return make_identity("admin@example.ae", UserRole.ADMIN)


@pytest.fixture
def sea_view_data():
    """The canonical happy-path submission."""
    return {
        "title": "Sea View Flat",
        "price": 500000,
        "bedrooms": 2,
        "bathrooms": 2,
        "qr_code": "QR123",
        "contact_name": "Ana",
        "contact_email": "ana@x.com",
        "type": "sale",
    }


@pytest.fixture
def full_listing_data(sea_view_data):
    """A submission with every descriptive field set."""
    return {
        **sea_view_data,
        "description": "Bright two-bedroom apartment facing the marina.",
        "location": "Dubai Marina",
        "latitude": 25.08,
        "longitude": 55.14,
        "area": 120.5,
        "emirate": "Dubai",
        "property_type": "apartment",
        "amenities": ["pool", "gym"],
        "images": ["https://cdn.example.ae/a.jpg", "https://cdn.example.ae/b.jpg"],
        "videos": [],
        "contact_phone": "+971501234567",
    }
