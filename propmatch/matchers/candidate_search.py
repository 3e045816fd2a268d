from typing import Dict, List, Optional
from loguru import logger

from propmatch.config import MAX_DISTANCE_METERS
from propmatch.models import Coordinate, ParcelRecord, PropertyCandidate, ResolvedAddress
from propmatch.storage import PropertyStore


async def find_candidates(
    store: PropertyStore,
    coord: Coordinate,
    geocoded: Optional[ResolvedAddress] = None,
    parcel: Optional[ParcelRecord] = None,
    radius_meters: float = MAX_DISTANCE_METERS,
) -> List[PropertyCandidate]:
    """
    Retrieve existing properties that could own a photo taken at ``coord``.

    Properties within ``radius_meters`` are always searched. When geocoding
    succeeded and either nothing is nearby or there is no parcel boundary to
    anchor the distance check, properties sharing the geocoded
    city/state/postal code are added as well.

    Args:
        store (PropertyStore): Property storage.
        coord (Coordinate): Photo coordinate.
        geocoded (Optional[ResolvedAddress]): Reverse-geocoded address, if any.
        parcel (Optional[ParcelRecord]): Parcel record, if any.
        radius_meters (float): Proximity radius.

    Returns:
        List[PropertyCandidate]: Unordered, de-duplicated, non-deleted candidates.
            Empty when nothing matches.
    """
    nearby = await store.find_within_radius(coord, radius_meters)
    logger.debug(f"📍 {len(nearby)} properties within {radius_meters}m of {coord.latitude},{coord.longitude}")

    by_locality: List[PropertyCandidate] = []
    has_locality = geocoded is not None and (geocoded.city or geocoded.postal_code)
    if has_locality and (not nearby or parcel is None or not parcel.boundary):
        by_locality = await store.find_by_locality(geocoded.city, geocoded.state, geocoded.postal_code)
        logger.debug(f"🏘️ {len(by_locality)} properties in {geocoded.city}, {geocoded.state} {geocoded.postal_code}")

    candidates: Dict[int, PropertyCandidate] = {}
    for prop in nearby + by_locality:
        if not prop.is_deleted and prop.id not in candidates:
            candidates[prop.id] = prop
    return list(candidates.values())
