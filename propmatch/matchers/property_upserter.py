from typing import Optional
from loguru import logger

from propmatch.exceptions import DuplicatePropertyError
from propmatch.models import Coordinate, MatchResult, NewProperty, ParcelRecord, ResolvedAddress
from propmatch.storage import PropertyStore

UNKNOWN_LOCALITY = "Unknown"
UNKNOWN_POSTAL_CODE = "00000"


def coordinate_label(coord: Coordinate) -> str:
    """
    Address label for a property known only by its coordinate, e.g.
    "33.749000N,84.388000W".

    Hemisphere letters and the fixed six decimals keep the label distinct
    after normalization strips signs, dots and separators.
    """
    lat_hemisphere = "N" if coord.latitude >= 0 else "S"
    lng_hemisphere = "E" if coord.longitude >= 0 else "W"
    return f"{abs(coord.latitude):.6f}{lat_hemisphere},{abs(coord.longitude):.6f}{lng_hemisphere}"


def build_new_property(
    geocoded: Optional[ResolvedAddress],
    coord: Coordinate,
    parcel: Optional[ParcelRecord] = None,
) -> NewProperty:
    """
    Assemble the row for a property that no candidate matched.

    The address prefers the geocoder's formatted address, then its street
    components, then the parcel address, then a city/state/zip line; with no
    address data at all the coordinate itself becomes the label so that
    unrelated unlocated properties never collide on the uniqueness key.
    The stored coordinate is always the photo's own coordinate.
    """
    city = (geocoded.city if geocoded else "") or (parcel.city if parcel else "") or UNKNOWN_LOCALITY
    state = (geocoded.state if geocoded else "") or (parcel.state if parcel else "") or UNKNOWN_LOCALITY
    postal_code = (
        (geocoded.postal_code if geocoded else "") or (parcel.postal_code if parcel else "") or UNKNOWN_POSTAL_CODE
    )

    address = ""
    if geocoded:
        address = geocoded.formatted or f"{geocoded.street_number} {geocoded.route}".strip()
    if not address and parcel:
        address = parcel.address
    if not address and (geocoded or parcel):
        address = f"{city}, {state} {postal_code}"
    if not address:
        address = coordinate_label(coord)

    return NewProperty(
        address=address,
        city=city,
        state=state,
        postal_code=postal_code,
        latitude=coord.latitude,
        longitude=coord.longitude,
        parcel_number=parcel.parcel_id if parcel else None,
        status="processing",
    )


async def upsert(
    store: PropertyStore,
    match_result: MatchResult,
    geocoded: Optional[ResolvedAddress],
    coord: Coordinate,
    parcel: Optional[ParcelRecord] = None,
) -> int:
    """
    Return the matched property id, creating a property when there is none.

    Immediately before inserting, the store is re-queried for the same
    normalized address and locality so that concurrent uploads from one
    location converge on a single row. An insert rejected by the store's
    uniqueness constraint is resolved the same way.

    Args:
        store (PropertyStore): Property storage.
        match_result (MatchResult): Scorer output.
        geocoded (Optional[ResolvedAddress]): Reverse-geocoded address.
        coord (Coordinate): Photo coordinate; becomes the new property's coordinate.
        parcel (Optional[ParcelRecord]): Parcel record.

    Returns:
        int: Property id.

    Raises:
        DuplicatePropertyError: When the constraint fires and the existing row cannot be read back.
        Exception: Any other storage failure.
    """
    if match_result.property_id is not None:
        return match_result.property_id

    new_property = build_new_property(geocoded, coord, parcel)

    existing = await store.find_by_address(
        new_property.address, new_property.city, new_property.state, new_property.postal_code
    )
    if existing is not None:
        logger.info(f"♻️ Property {existing.id} already exists for '{new_property.address}'")
        return existing.id

    try:
        property_id = await store.insert_property(new_property)
    except DuplicatePropertyError:
        existing = await store.find_by_address(
            new_property.address, new_property.city, new_property.state, new_property.postal_code
        )
        if existing is None:
            raise
        logger.info(f"♻️ Concurrent insert detected, using property {existing.id} for '{new_property.address}'")
        return existing.id

    logger.info(f"🏠 Created property {property_id} '{new_property.address}' at "
                f"{coord.latitude},{coord.longitude}")
    return property_id
