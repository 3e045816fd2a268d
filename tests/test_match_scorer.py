import pytest

from propmatch.matchers.match_scorer import address_score, distance_score, score
from propmatch.models import Coordinate, MatchMethod, ParcelRecord, PropertyCandidate, ResolvedAddress

COORD = Coordinate(latitude=33.749, longitude=-84.388)


def square_parcel(lat, lng, half_side=0.0002, confidence=0.9, address="100 MAIN ST"):
    ring = [
        (lat - half_side, lng - half_side),
        (lat - half_side, lng + half_side),
        (lat + half_side, lng + half_side),
        (lat + half_side, lng - half_side),
        (lat - half_side, lng - half_side),
    ]
    return ParcelRecord(address=address, boundary=ring, parcel_id="P-1", confidence=confidence)


def geocoded(formatted="100 Main St, Springfield, GA 30458", confidence=1.0):
    return ResolvedAddress(
        street_number="100", route="Main Street", city="Springfield", state="GA",
        postal_code="30458", formatted=formatted, confidence=confidence,
    )


def candidate(id, address, city="Springfield", state="GA", postal_code="30458", **kwargs):
    return PropertyCandidate(id=id, address=address, city=city, state=state, postal_code=postal_code,
                             latitude=COORD.latitude, longitude=COORD.longitude, **kwargs)


def test_empty_candidate_list_is_no_match():
    result = score([], geocoded(), None, COORD)
    assert result.property_id is None
    assert result.method == MatchMethod.NONE
    assert result.confidence == 0.0


@pytest.mark.parametrize("parcel", [
    None,
    square_parcel(COORD.latitude, COORD.longitude),
    square_parcel(COORD.latitude + 0.01, COORD.longitude),  # Photo outside the parcel
])
def test_exact_normalized_address_scores_one(parcel):
    candidates = [candidate(1, "7 Oak Avenue"), candidate(2, "100 Main Street"), candidate(3, "102 Main St")]
    result = score(candidates, geocoded(confidence=0.8), parcel, COORD)
    assert result.property_id == 2
    assert result.confidence == 1.0
    assert result.method == MatchMethod.EXACT_ADDRESS


def test_suite_number_difference_is_still_exact():
    candidates = [candidate(5, "100 Main St Suite 200")]
    result = score(candidates, geocoded(), None, COORD)
    assert result.property_id == 5
    assert result.method == MatchMethod.EXACT_ADDRESS


def test_fuzzy_address_uses_mean_of_available_factors():
    cand = candidate(1, "102 Main St")
    geo = geocoded(confidence=1.0)
    sim = address_score(cand, geo, None)
    assert 0.85 <= sim < 1.0

    result = score([cand], geo, None, COORD)
    assert result.property_id == 1
    assert result.method == MatchMethod.FUZZY_ADDRESS
    assert result.confidence == pytest.approx((sim + 1.0) / 2)


def test_proximity_match_carried_by_parcel_factors():
    cand = candidate(9, "5 Oak Ave")
    geo = geocoded(confidence=1.0)
    parcel = square_parcel(COORD.latitude, COORD.longitude, confidence=0.9)
    sim = address_score(cand, geo, parcel)
    assert sim < 0.85

    result = score([cand], geo, parcel, COORD)
    assert result.property_id == 9
    assert result.method == MatchMethod.PROXIMITY
    assert result.confidence == pytest.approx((sim + 1.0 + 1.0 + 0.9) / 4, abs=1e-3)


def test_below_threshold_reports_best_confidence():
    cand = candidate(3, "999 Elm Rd", city="Macon", postal_code="31201")
    geo = geocoded(confidence=0.8)
    result = score([cand], geo, None, COORD)
    assert result.property_id is None
    assert result.method == MatchMethod.NONE
    assert 0.0 < result.confidence < 0.75
    assert result.confidence == pytest.approx((address_score(cand, geo, None) + 0.8) / 2)


def test_threshold_is_inclusive_and_overridable():
    cand = candidate(1, "102 Main St")
    geo = geocoded(confidence=1.0)
    expected = (address_score(cand, geo, None) + 1.0) / 2
    assert score([cand], geo, None, COORD, min_confidence=expected).property_id == 1
    assert score([cand], geo, None, COORD, min_confidence=expected + 1e-9).property_id is None


def test_first_candidate_wins_ties():
    candidates = [candidate(11, "100 Main St"), candidate(12, "100 Main Street")]
    assert score(candidates, geocoded(), None, COORD).property_id == 11


def test_deleted_candidates_are_ignored():
    candidates = [candidate(1, "100 Main St", is_deleted=True)]
    assert score(candidates, geocoded(), None, COORD).property_id is None


def test_no_resolved_address_gives_zero_similarity():
    cand = candidate(1, "100 Main St")
    assert address_score(cand, None, None) == 0.0
    result = score([cand], None, None, COORD)
    assert result.property_id is None
    assert result.confidence == 0.0


def test_distance_score_omitted_without_boundary():
    assert distance_score(COORD, None) is None
    assert distance_score(COORD, ParcelRecord(address="100 Main St", boundary=None)) is None


def test_distance_score_outside_parcel_is_zero():
    parcel = square_parcel(COORD.latitude + 0.01, COORD.longitude)
    assert distance_score(COORD, parcel) == 0.0


def test_distance_score_scales_linearly_from_centroid():
    parcel = square_parcel(COORD.latitude, COORD.longitude)
    assert distance_score(COORD, parcel) == pytest.approx(1.0, abs=1e-6)

    # 0.00009 degrees of latitude is roughly 10 m
    offset = Coordinate(latitude=COORD.latitude + 0.00009, longitude=COORD.longitude)
    assert distance_score(offset, parcel) == pytest.approx(0.6, abs=0.02)


def test_confidence_always_within_unit_interval():
    parcel = square_parcel(COORD.latitude, COORD.longitude, confidence=1.7)
    geo = geocoded(confidence=-0.3)
    candidates = [candidate(i, addr) for i, addr in enumerate(["1 A St", "100 Main", "", "x"], start=1)]
    result = score(candidates, geo, parcel, COORD)
    assert 0.0 <= result.confidence <= 1.0
