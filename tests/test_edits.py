"""
Tests for property patches and edit request records.
"""

import pytest

from core.listings import (
    EDITABLE_FIELDS,
    ListingType,
    Property,
    PropertyEditRequest,
    PropertyPatch,
    ReviewStatus,
    ValidationError,
)


@pytest.fixture
def live_property():
    return Property(
        title="Sea View Flat",
        price=500000,
        bedrooms=2,
        bathrooms=2,
        type=ListingType.SALE,
        amenities=["pool", "gym"],
        images=["a.jpg"],
        qr_code="QR123",
        owner_id="owner-1",
        is_approved=True,
    )


class TestPropertyPatch:
    """Construction rules."""

    def test_none_values_dropped(self):
        patch = PropertyPatch(title="New", price=None)
        assert list(patch) == ["title"]
        assert len(patch) == 1

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            PropertyPatch(owner_id="someone-else")

    def test_type_string_coerced(self):
        assert PropertyPatch(type="rent")["type"] == ListingType.RENT

    def test_unknown_type_is_validation_error(self):
        with pytest.raises(ValidationError):
            PropertyPatch(type="lease")

    def test_kwargs_merge_with_mapping(self):
        patch = PropertyPatch({"title": "A"}, price=10)
        assert dict(patch) == {"title": "A", "price": 10}


class TestChangedFields:
    """Comparison against the live property."""

    def test_equal_values_not_reported(self, live_property):
        patch = PropertyPatch(title="Sea View Flat", price=600000)
        changes = patch.changed_fields(live_property)
        assert list(changes) == ["price"]
        assert changes["price"].current == 500000
        assert changes["price"].requested == 600000

    def test_lists_compared_deeply(self, live_property):
        assert PropertyPatch(amenities=["pool", "gym"]).changed_fields(live_property) == {}
        assert "amenities" in PropertyPatch(amenities=["gym", "pool"]).changed_fields(live_property)

    def test_enum_compared_by_value(self, live_property):
        assert PropertyPatch(type="sale").changed_fields(live_property) == {}
        assert "type" in PropertyPatch(type="rent").changed_fields(live_property)

    def test_change_serialises(self, live_property):
        change = PropertyPatch(type="rent").changed_fields(live_property)["type"]
        assert change.to_dict() == {"field": "type", "current": "sale", "requested": "rent"}


class TestApply:
    """Merging into a property."""

    def test_untouched_fields_preserved(self, live_property):
        written = PropertyPatch(price=750000).apply(live_property)
        assert written == ["price"]
        assert live_property.price == 750000
        assert live_property.title == "Sea View Flat"
        assert live_property.bedrooms == 2
        assert live_property.amenities == ["pool", "gym"]

    def test_list_values_copied(self, live_property):
        images = ["x.jpg", "y.jpg"]
        PropertyPatch(images=images).apply(live_property)
        images.append("z.jpg")
        assert live_property.images == ["x.jpg", "y.jpg"]


class TestEditRequestRecord:
    """Row conversion for edit requests."""

    def test_row_has_column_per_editable_field(self):
        edit = PropertyEditRequest(
            property_id="p-1",
            user_id="u-1",
            changes=PropertyPatch(price=750000, type="rent"),
        )
        row = edit.to_dict()
        assert "changes" not in row
        assert row["price"] == 750000
        assert row["type"] == "rent"
        assert row["title"] is None
        assert all(name in row for name in EDITABLE_FIELDS)
        assert row["status"] == "pending"

    def test_row_round_trip(self):
        edit = PropertyEditRequest(
            property_id="p-1",
            user_id="u-1",
            changes=PropertyPatch(amenities=["pool"], bedrooms=3),
            user_message="Added a bedroom",
        )
        restored = PropertyEditRequest.from_dict(edit.to_dict())
        assert dict(restored.changes) == {"amenities": ["pool"], "bedrooms": 3}
        assert restored.status == ReviewStatus.PENDING
        assert restored.user_message == "Added a bedroom"
        assert restored.created_at == edit.created_at

    def test_plain_dict_changes_wrapped(self):
        edit = PropertyEditRequest(property_id="p-1", user_id="u-1", changes={"title": "New"})
        assert isinstance(edit.changes, PropertyPatch)
