"""
Storage interfaces the matcher needs, plus in-memory implementations.

Production deployments back these with the application database; the
in-memory stores are used by the batch runner and the tests.
"""
import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from geopy.distance import geodesic

from propmatch.address_normalizer import normalize
from propmatch.exceptions import DuplicatePropertyError, PhotoNotFoundError
from propmatch.models import Coordinate, NewProperty, PhotoRecord, ProcessingStatus, PropertyCandidate


def address_key(address: str, city: str, state: str, postal_code: str) -> Tuple[str, str, str, str]:
    """Uniqueness key for a property: normalized address plus locality."""
    return (
        normalize(address),
        (city or "").strip().lower(),
        (state or "").strip().lower(),
        (postal_code or "").strip(),
    )


class PropertyStore(ABC):
    """Property table as seen by the matcher."""

    @abstractmethod
    async def find_within_radius(self, coord: Coordinate, radius_meters: float) -> List[PropertyCandidate]:
        """Non-deleted properties within ``radius_meters`` of ``coord``."""

    @abstractmethod
    async def find_by_locality(self, city: str, state: str, postal_code: str) -> List[PropertyCandidate]:
        """Non-deleted properties with exactly this city/state/postal code."""

    @abstractmethod
    async def find_by_address(self, address: str, city: str, state: str,
                              postal_code: str) -> Optional[PropertyCandidate]:
        """Non-deleted property whose normalized address and locality match."""

    @abstractmethod
    async def insert_property(self, new_property: NewProperty) -> int:
        """
        Insert a property and return its id.

        Raises:
            DuplicatePropertyError: When the normalized address tuple already exists.
        """


class PhotoStore(ABC):
    """Photo table as seen by the matcher."""

    @abstractmethod
    async def get_photo(self, photo_id: int) -> PhotoRecord:
        ...

    @abstractmethod
    async def load_image(self, photo_id: int) -> bytes:
        ...

    @abstractmethod
    async def update_photo(self, photo_id: int, **fields: Any) -> None:
        ...

    @abstractmethod
    async def list_photos(self, status: Optional[ProcessingStatus] = None) -> List[PhotoRecord]:
        ...


class InMemoryPropertyStore(PropertyStore):
    """Property store held in a dict, with the normalized-address uniqueness constraint."""

    def __init__(self, properties: Optional[List[PropertyCandidate]] = None):
        self._rows: Dict[int, PropertyCandidate] = {}
        self._keys: Dict[Tuple[str, str, str, str], int] = {}
        self._next_id = 1
        self.parcel_numbers: Dict[int, Optional[str]] = {}
        self.statuses: Dict[int, str] = {}
        for prop in properties or []:
            self._add(prop)

    def _add(self, prop: PropertyCandidate) -> None:
        self._rows[prop.id] = prop
        if not prop.is_deleted:
            self._keys[address_key(prop.address, prop.city, prop.state, prop.postal_code)] = prop.id
        self._next_id = max(self._next_id, prop.id + 1)

    @property
    def properties(self) -> List[PropertyCandidate]:
        return list(self._rows.values())

    async def find_within_radius(self, coord: Coordinate, radius_meters: float) -> List[PropertyCandidate]:
        origin = (coord.latitude, coord.longitude)
        return [
            copy.copy(prop) for prop in self._rows.values()
            if not prop.is_deleted
            and geodesic(origin, (prop.latitude, prop.longitude)).meters <= radius_meters
        ]

    async def find_by_locality(self, city: str, state: str, postal_code: str) -> List[PropertyCandidate]:
        return [
            copy.copy(prop) for prop in self._rows.values()
            if not prop.is_deleted
            and prop.city == city and prop.state == state and prop.postal_code == postal_code
        ]

    async def find_by_address(self, address: str, city: str, state: str,
                              postal_code: str) -> Optional[PropertyCandidate]:
        prop_id = self._keys.get(address_key(address, city, state, postal_code))
        if prop_id is None:
            return None
        return copy.copy(self._rows[prop_id])

    async def insert_property(self, new_property: NewProperty) -> int:
        key = address_key(new_property.address, new_property.city,
                          new_property.state, new_property.postal_code)
        # Yield like a real insert would, so concurrent creators can interleave.
        await asyncio.sleep(0)
        if key in self._keys:
            raise DuplicatePropertyError(key[0], self._keys[key])

        prop_id = self._next_id
        self._add(PropertyCandidate(
            id=prop_id,
            address=new_property.address,
            city=new_property.city,
            state=new_property.state,
            postal_code=new_property.postal_code,
            latitude=new_property.latitude,
            longitude=new_property.longitude,
        ))
        self.parcel_numbers[prop_id] = new_property.parcel_number
        self.statuses[prop_id] = new_property.status
        return prop_id


class InMemoryPhotoStore(PhotoStore):
    """Photo store held in a dict; images are kept as raw bytes."""

    def __init__(self):
        self._photos: Dict[int, PhotoRecord] = {}
        self._images: Dict[int, bytes] = {}

    def add_photo(self, photo: PhotoRecord, image_bytes: bytes = b"") -> None:
        self._photos[photo.id] = photo
        self._images[photo.id] = image_bytes

    async def get_photo(self, photo_id: int) -> PhotoRecord:
        if photo_id not in self._photos:
            raise PhotoNotFoundError(photo_id)
        return copy.deepcopy(self._photos[photo_id])

    async def load_image(self, photo_id: int) -> bytes:
        if photo_id not in self._images:
            raise PhotoNotFoundError(photo_id)
        return self._images[photo_id]

    async def update_photo(self, photo_id: int, **fields: Any) -> None:
        if photo_id not in self._photos:
            raise PhotoNotFoundError(photo_id)
        photo = self._photos[photo_id]
        for name, value in fields.items():
            if not hasattr(photo, name):
                raise AttributeError(f"PhotoRecord has no field '{name}'")
            setattr(photo, name, value)

    async def list_photos(self, status: Optional[ProcessingStatus] = None) -> List[PhotoRecord]:
        return [
            copy.deepcopy(photo) for photo in self._photos.values()
            if status is None or photo.processing_status == status
        ]
