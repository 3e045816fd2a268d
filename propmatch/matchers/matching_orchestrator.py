# propmatch/matchers/matching_orchestrator.py

from loguru import logger

from propmatch.address_resolver import resolve_address
from propmatch.matchers.candidate_search import find_candidates
from propmatch.matchers.match_scorer import score
from propmatch.matchers.property_upserter import upsert
from propmatch.models import Coordinate, MatchMethod, MatchResult
from propmatch.storage import PropertyStore


async def match_photo(coord: Coordinate, store: PropertyStore) -> MatchResult:
    """
    Run the matching stages for one photo coordinate and produce its property.

    Args:
        coord (Coordinate): Photo coordinate.
        store (PropertyStore): Property storage.

    Returns:
        MatchResult: The matched property, or a newly created one with method
            ``geocode_created``.
    """
    # 1) Reverse geocode + parcel lookup
    lookup = await resolve_address(coord)

    # 2) Existing properties near the photo or in the same locality
    candidates = await find_candidates(store, coord, lookup.geocoded, lookup.parcel)

    # 3) Score candidates
    result = score(candidates, lookup.geocoded, lookup.parcel, coord)
    if result.property_id is not None:
        logger.info(f"✓ Matched property {result.property_id} ({result.method.value}, "
                    f"confidence {result.confidence:.3f})")
        return result

    # 4) Nothing confident enough: create (or re-find) the property
    logger.debug(f"× No candidate cleared the threshold (best {result.confidence:.3f}), creating property")
    property_id = await upsert(store, result, lookup.geocoded, coord, lookup.parcel)

    if lookup.geocoded is not None:
        confidence = lookup.geocoded.confidence
    elif lookup.parcel is not None:
        confidence = lookup.parcel.confidence
    else:
        confidence = 0.0

    return MatchResult(
        property_id=property_id,
        confidence=confidence,
        method=MatchMethod.GEOCODE_CREATED,
    )
