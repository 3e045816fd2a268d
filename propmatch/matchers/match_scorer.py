from typing import List, Optional
from geopy.distance import geodesic
from loguru import logger
from shapely.geometry import Point, Polygon

from propmatch.address_normalizer import normalize, similarity
from propmatch.config import ADDRESS_MATCH_THRESHOLD, MAX_DISTANCE_METERS, MIN_CONFIDENCE_SCORE
from propmatch.models import (
    Coordinate,
    MatchMethod,
    MatchResult,
    ParcelRecord,
    PropertyCandidate,
    ResolvedAddress,
)


def _clamp(value: float) -> float:
    return max(0.0, min(float(value), 1.0))


def _resolved_keys(geocoded: Optional[ResolvedAddress], parcel: Optional[ParcelRecord]) -> List[str]:
    """Normalized forms of every address the lookup produced."""
    variants = []
    if geocoded:
        variants.append(geocoded.formatted)
        variants.append(f"{geocoded.street_number} {geocoded.route}")
    if parcel:
        variants.append(parcel.address)
    keys = [normalize(v) for v in variants if v and v.strip()]
    return [k for k in keys if k]


def _candidate_keys(candidate: PropertyCandidate) -> List[str]:
    full = f"{candidate.address}, {candidate.city}, {candidate.state} {candidate.postal_code}"
    keys = [normalize(candidate.address), normalize(full)]
    return [k for k in keys if k]


def address_score(candidate: PropertyCandidate, geocoded: Optional[ResolvedAddress],
                  parcel: Optional[ParcelRecord]) -> float:
    """
    Best Levenshtein similarity between the candidate's stored address and the
    resolved addresses. 0.0 when either side has nothing to compare.
    """
    resolved = _resolved_keys(geocoded, parcel)
    stored = _candidate_keys(candidate)
    if not resolved or not stored:
        return 0.0
    return max(similarity(a, b) for a in stored for b in resolved)


def distance_score(coord: Coordinate, parcel: Optional[ParcelRecord],
                   max_distance: float = MAX_DISTANCE_METERS) -> Optional[float]:
    """
    Score the photo's position against the parcel boundary.

    Returns:
        Optional[float]: None when there is no boundary (the factor is omitted),
            0.0 when the point lies outside the parcel, otherwise 1.0 at the
            centroid falling linearly to 0.0 at ``max_distance`` meters.
    """
    if parcel is None or not parcel.boundary or len(parcel.boundary) < 3:
        return None

    polygon = Polygon([(lng, lat) for lat, lng in parcel.boundary])
    if not polygon.is_valid or polygon.is_empty:
        logger.debug(f"Ignoring invalid parcel boundary for parcel {parcel.parcel_id}")
        return None

    point = Point(coord.longitude, coord.latitude)
    if not polygon.covers(point):
        return 0.0

    centroid = polygon.centroid
    distance = geodesic((coord.latitude, coord.longitude), (centroid.y, centroid.x)).meters
    return _clamp(1.0 - distance / max_distance)


def _method_for(address_similarity: float) -> MatchMethod:
    if address_similarity >= 1.0:
        return MatchMethod.EXACT_ADDRESS
    if address_similarity >= ADDRESS_MATCH_THRESHOLD:
        return MatchMethod.FUZZY_ADDRESS
    return MatchMethod.PROXIMITY


def score(
    candidates: List[PropertyCandidate],
    geocoded: Optional[ResolvedAddress],
    parcel: Optional[ParcelRecord],
    coord: Coordinate,
    min_confidence: float = MIN_CONFIDENCE_SCORE,
) -> MatchResult:
    """
    Pick the candidate property that best explains a photo.

    Each candidate's confidence is the mean of the factors that could be
    computed: address similarity, parcel distance score, geocoder confidence and
    parcel confidence. Missing factors shrink the denominator instead of
    counting as zero. An exact normalized address match scores 1.0 outright.

    Args:
        candidates (List[PropertyCandidate]): Properties returned by candidate search.
        geocoded (Optional[ResolvedAddress]): Reverse-geocoded address.
        parcel (Optional[ParcelRecord]): Parcel record.
        coord (Coordinate): Photo coordinate.
        min_confidence (float): Threshold a match must meet or exceed.

    Returns:
        MatchResult: Best candidate at or above ``min_confidence``, or
            ``property_id=None`` with the best confidence seen and method ``none``.
    """
    shared_factors = []
    dist = distance_score(coord, parcel)
    if dist is not None:
        shared_factors.append(dist)
    if geocoded is not None:
        shared_factors.append(_clamp(geocoded.confidence))
    if parcel is not None:
        shared_factors.append(_clamp(parcel.confidence))

    best: Optional[PropertyCandidate] = None
    best_confidence = 0.0
    best_similarity = 0.0

    for candidate in candidates:
        if candidate.is_deleted:
            continue
        addr_sim = _clamp(address_score(candidate, geocoded, parcel))
        if addr_sim >= 1.0:
            confidence = 1.0
        else:
            factors = [addr_sim] + shared_factors
            confidence = _clamp(sum(factors) / len(factors))

        logger.debug(f"🔎 Candidate {candidate.id} '{candidate.address}': "
                     f"address={addr_sim:.3f} distance={dist} confidence={confidence:.3f}")

        if best is None or confidence > best_confidence:
            best = candidate
            best_confidence = confidence
            best_similarity = addr_sim

    if best is not None and best_confidence >= min_confidence:
        return MatchResult(
            property_id=best.id,
            confidence=best_confidence,
            method=_method_for(best_similarity),
        )

    return MatchResult(property_id=None, confidence=best_confidence, method=MatchMethod.NONE)
