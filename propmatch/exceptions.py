"""Exceptions raised by the matching pipeline."""


class PropertyMatchError(Exception):
    """Base exception for propmatch."""


class DuplicatePropertyError(PropertyMatchError):
    """Raised when an insert violates the normalized-address uniqueness constraint."""

    def __init__(self, address_key: str, existing_id=None):
        self.address_key = address_key
        self.existing_id = existing_id
        super().__init__(f"Property already exists for address key '{address_key}'")


class PhotoNotFoundError(PropertyMatchError):
    """Raised when a photo id is unknown to the photo store."""

    def __init__(self, photo_id):
        self.photo_id = photo_id
        super().__init__(f"Photo {photo_id} not found")


class QueueFullError(PropertyMatchError):
    """Raised when the worker pool queue is at capacity."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"Processing queue is full ({max_size} pending photos)")
