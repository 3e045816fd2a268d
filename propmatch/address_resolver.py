import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple
from loguru import logger

from propmatch.config import (
    GEOCODER_DEFAULT_CONFIDENCE,
    GEOCODER_ROOFTOP_CONFIDENCE,
    PARCEL_BASE_CONFIDENCE,
)
from propmatch.models import AddressLookup, Coordinate, ParcelRecord, ResolvedAddress
from propmatch.clients import GoogleMapsClient, RegridClient


def parse_geocode_response(data: Dict[str, Any]) -> Optional[ResolvedAddress]:
    """
    Map a Google Geocoding API body onto a ResolvedAddress.

    Args:
        data (Dict[str, Any]): ``{"status": ..., "results": [...]}`` body.

    Returns:
        Optional[ResolvedAddress]: First result, or None when status is not OK or results are empty.
    """
    if not data or data.get("status") != "OK" or not data.get("results"):
        return None

    result = data["results"][0]
    components: Dict[str, str] = {}
    for component in result.get("address_components", []):
        types = component.get("types") or []
        if not types:
            continue
        components[types[0]] = component.get("long_name", "")
        components[f"{types[0]}_short"] = component.get("short_name", component.get("long_name", ""))

    location_type = (result.get("geometry") or {}).get("location_type")
    confidence = GEOCODER_ROOFTOP_CONFIDENCE if location_type == "ROOFTOP" else GEOCODER_DEFAULT_CONFIDENCE

    return ResolvedAddress(
        street_number=components.get("street_number", ""),
        route=components.get("route", ""),
        city=components.get("locality") or components.get("sublocality", ""),
        state=components.get("administrative_area_level_1_short", ""),
        postal_code=components.get("postal_code", ""),
        formatted=result.get("formatted_address", ""),
        confidence=confidence,
    )


def _boundary_ring(geometry: Optional[Dict[str, Any]]) -> Optional[List[Tuple[float, float]]]:
    """Exterior ring of a GeoJSON Polygon/MultiPolygon as (lat, lng) vertices."""
    if not geometry:
        return None
    coords = geometry.get("coordinates")
    if geometry.get("type") == "MultiPolygon" and coords:
        coords = coords[0]
    if geometry.get("type") not in ("Polygon", "MultiPolygon") or not coords or not coords[0]:
        return None
    ring = [(float(lat), float(lng)) for lng, lat, *_ in coords[0]]
    if len(ring) < 3:
        return None
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def parse_parcel_response(data: Dict[str, Any]) -> Optional[ParcelRecord]:
    """
    Map a Regrid point-lookup body onto a ParcelRecord.

    Both the v1 ``{"features": [...]}`` and v2 ``{"parcels": {"features": [...]}}``
    shapes are accepted; attributes may sit under ``properties.fields``.
    """
    if not data:
        return None
    features = data.get("features")
    if features is None:
        features = (data.get("parcels") or {}).get("features")
    if not features:
        return None

    feature = features[0]
    props = feature.get("properties") or {}
    props = props.get("fields") or props
    if not props:
        return None

    return ParcelRecord(
        address=props.get("address") or "",
        boundary=_boundary_ring(feature.get("geometry")),
        parcel_id=props.get("parcel_id") or props.get("parcelnumb") or props.get("ll_uuid"),
        confidence=PARCEL_BASE_CONFIDENCE,
        city=props.get("city") or props.get("scity") or "",
        state=props.get("state") or props.get("state2") or "",
        postal_code=props.get("zip") or props.get("szip") or "",
    )


async def reverse_geocode(coord: Coordinate) -> Optional[ResolvedAddress]:
    """Reverse-geocode a coordinate; None when disabled, empty or failed."""
    client = GoogleMapsClient()
    if not client.enabled:
        return None

    start = time.perf_counter()
    try:
        data = await client.reverse_geocode(coord.latitude, coord.longitude)
        geocoded = parse_geocode_response(data)
    except asyncio.TimeoutError:
        logger.warning(f"⏱️ Reverse geocode TIMEOUT for {coord.latitude},{coord.longitude}")
        return None
    except Exception as e:
        logger.warning(f"⚠️ Reverse geocode failed for {coord.latitude},{coord.longitude}: {e}")
        return None

    duration = time.perf_counter() - start
    logger.debug(f"✅ Reverse geocode for {coord.latitude},{coord.longitude} in {duration:.2f}s → "
                 f"{geocoded.formatted if geocoded else None}")
    return geocoded


async def lookup_parcel(coord: Coordinate) -> Optional[ParcelRecord]:
    """Fetch the parcel for a coordinate; None when disabled, empty or failed."""
    client = RegridClient()
    if not client.enabled:
        return None

    try:
        data = await client.parcel_lookup(coord.latitude, coord.longitude)
        parcel = parse_parcel_response(data)
    except asyncio.TimeoutError:
        logger.warning(f"⏱️ Parcel lookup TIMEOUT for {coord.latitude},{coord.longitude}")
        return None
    except Exception as e:
        logger.warning(f"⚠️ Parcel lookup failed for {coord.latitude},{coord.longitude}: {e}")
        return None

    logger.debug(f"🏁 Parcel lookup for {coord.latitude},{coord.longitude} → "
                 f"{parcel.parcel_id if parcel else None}")
    return parcel


async def resolve_address(coord: Coordinate) -> AddressLookup:
    """
    Resolve a coordinate to a geocoded address and a parcel record.

    The two lookups run in parallel and fail independently; either side of the
    result is None when its source is disabled, empty or unreachable.

    Args:
        coord (Coordinate): Photo coordinate.

    Returns:
        AddressLookup: Whatever the sources returned.
    """
    geocoded, parcel = await asyncio.gather(
        reverse_geocode(coord),
        lookup_parcel(coord),
    )
    return AddressLookup(geocoded=geocoded, parcel=parcel)
