"""Drive error taxonomy."""

from __future__ import annotations


class DriveError(Exception):
    """Base class for all drive errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DriveError):
    """Empty/duplicate name, reserved target, or invalid path segment."""

    status_code = 400


class DuplicatePathError(ValidationError):
    """Two folders claim the same identity path."""


class NotFoundError(DriveError):
    """Referenced id is absent from storage."""

    status_code = 404

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class CorruptedContentError(DriveError):
    """Stored payload is missing, empty, or not binary."""

    status_code = 422


class StorageFailure(DriveError):
    """Underlying table operation rejected (quota, I/O)."""

    status_code = 507
