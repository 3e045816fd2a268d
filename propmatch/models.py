"""
Typed data models for the photo-to-property matching pipeline.
All data structures used throughout the codebase should be defined here.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class MatchMethod(str, Enum):
    """How a photo was tied to a property."""
    EXACT_ADDRESS = "exact_address"
    FUZZY_ADDRESS = "fuzzy_address"
    PROXIMITY = "proximity"
    GEOCODE_CREATED = "geocode_created"
    NONE = "none"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(frozen=True)
class Coordinate:
    """Validated decimal-degree coordinate extracted from a photo."""
    latitude: float
    longitude: float
    altitude: Optional[float] = None


@dataclass
class ResolvedAddress:
    """Structured street address returned by reverse geocoding."""
    street_number: str = ""
    route: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    formatted: str = ""
    confidence: float = 0.0  # Geocoder precision: rooftop vs approximate


@dataclass
class ParcelRecord:
    """Parcel returned by the parcel-data service."""
    address: str
    boundary: Optional[List[Tuple[float, float]]] = None  # Closed ring of (lat, lng)
    parcel_id: Optional[str] = None
    confidence: float = 0.0
    city: str = ""
    state: str = ""
    postal_code: str = ""


@dataclass
class AddressLookup:
    """Combined output of reverse geocoding and parcel lookup for one coordinate."""
    geocoded: Optional[ResolvedAddress] = None
    parcel: Optional[ParcelRecord] = None


@dataclass
class PropertyCandidate:
    """Existing stored property, read-only input to scoring."""
    id: int
    address: str
    city: str
    state: str
    postal_code: str
    latitude: float
    longitude: float
    is_deleted: bool = False


@dataclass
class NewProperty:
    """Row to insert when no existing property matches."""
    address: str
    city: str
    state: str
    postal_code: str
    latitude: float
    longitude: float
    parcel_number: Optional[str] = None
    status: str = "processing"


@dataclass
class MatchResult:
    """Outcome of scoring a coordinate against its candidates."""
    property_id: Optional[int]
    confidence: float
    method: MatchMethod


@dataclass
class PhotoRecord:
    """Stored photo as seen by the matcher."""
    id: int
    file_path: Optional[str] = None
    batch_id: Optional[str] = None
    property_id: Optional[int] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
