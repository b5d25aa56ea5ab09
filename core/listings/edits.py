"""
Property Edits - Sparse Patches and Edit Requests

An owner proposes changes to a published Property as a patch: a mapping
from field name to the requested value. Absent or null fields mean
"no change requested". Comparison and merge operate generically over the
mapping, never per-field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from core.listings.errors import ValidationError
from core.listings.schema import (
    EDITABLE_FIELDS,
    ListingType,
    ReviewStatus,
    _Record,
    _to_json,
    generate_id,
    utcnow,
)


# =============================================================================
# Patch
# =============================================================================


def _comparable(value: Any) -> Any:
    """Reduce a value to plain data for deep equality."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_comparable(v) for v in value]
    if isinstance(value, dict):
        return {k: _comparable(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class FieldChange:
    """One field that differs between the live Property and a patch."""

    field: str
    current: Any
    requested: Any

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "current": _to_json(self.current),
            "requested": _to_json(self.requested),
        }


class PropertyPatch(Mapping):
    """
    Immutable sparse change-set over the editable Property fields.

    Null values are dropped at construction, so every key present is an
    intended change.
    """

    def __init__(self, changes: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        merged = dict(changes or {})
        merged.update(kwargs)

        unknown = sorted(k for k in merged if k not in EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited: {', '.join(unknown)}",
                [f"{name} is not an editable field" for name in unknown],
            )

        self._changes: dict[str, Any] = {}
        for name, value in merged.items():
            if value is None:
                continue
            if name == "type" and not isinstance(value, ListingType):
                try:
                    value = ListingType(value)
                except (ValueError, TypeError):
                    raise ValidationError(
                        "Listing type must be 'rent' or 'sale'", [f"type: {value!r}"]
                    ) from None
            if isinstance(value, tuple):
                value = list(value)
            self._changes[name] = value

    def __getitem__(self, key: str) -> Any:
        return self._changes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __repr__(self) -> str:
        return f"PropertyPatch({self._changes!r})"

    def changed_fields(self, target: Any) -> dict[str, FieldChange]:
        """
        Compare the patch against a live record.

        Returns only the fields whose requested value differs from the
        current one, using deep equality for list and dict values.
        """
        changes: dict[str, FieldChange] = {}
        for name, requested in self._changes.items():
            current = getattr(target, name, None)
            if _comparable(current) != _comparable(requested):
                changes[name] = FieldChange(name, current, requested)
        return changes

    def apply(self, target: Any) -> list[str]:
        """
        Merge the patch into a record in place.

        Every patched field is overwritten; other fields are untouched.

        Returns:
            Names of the fields written
        """
        for name, value in self._changes.items():
            if isinstance(value, list):
                value = list(value)
            setattr(target, name, value)
        return list(self._changes)

    def to_dict(self) -> dict:
        return {name: _to_json(value) for name, value in self._changes.items()}


# =============================================================================
# Edit Request
# =============================================================================


@dataclass
class PropertyEditRequest(_Record):
    """
    Proposed change-set against an existing Property.

    Resolved exactly once by an admin; approval merges the patch into
    the Property and cannot be undone.
    """

    property_id: str
    user_id: str
    changes: PropertyPatch = field(default_factory=PropertyPatch)
    user_message: Optional[str] = None
    id: str = field(default_factory=generate_id)
    status: ReviewStatus = ReviewStatus.PENDING
    admin_notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not isinstance(self.changes, PropertyPatch):
            self.changes = PropertyPatch(self.changes)
        if isinstance(self.status, str):
            self.status = ReviewStatus(self.status)
        self._coerce_datetimes()

    def to_dict(self) -> dict:
        """Flatten the patch into the row, one column per editable field."""
        data = super().to_dict()
        data.pop("changes")
        for name in EDITABLE_FIELDS:
            data[name] = None
        data.update(self.changes.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PropertyEditRequest":
        changes = {name: data.get(name) for name in EDITABLE_FIELDS}
        row = {k: v for k, v in data.items() if k not in EDITABLE_FIELDS}
        row["changes"] = PropertyPatch(changes)
        return super().from_dict(row)
