import io
from fractions import Fraction

import pytest
from unittest.mock import AsyncMock, MagicMock
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from propmatch.clients import google_maps_client, regrid_client
from propmatch.gps_extractor import GPS_IFD_TAG


def geocode_body(street_number="100", route="Main Street", city="Springfield", state="GA",
                 postal_code="30458", formatted="100 Main St, Springfield, GA 30458",
                 location_type="ROOFTOP"):
    """Build a Google Geocoding API response body."""
    return {
        "status": "OK",
        "results": [{
            "formatted_address": formatted,
            "address_components": [
                {"long_name": street_number, "short_name": street_number, "types": ["street_number"]},
                {"long_name": route, "short_name": route, "types": ["route"]},
                {"long_name": city, "short_name": city, "types": ["locality", "political"]},
                {"long_name": "Georgia", "short_name": state,
                 "types": ["administrative_area_level_1", "political"]},
                {"long_name": postal_code, "short_name": postal_code, "types": ["postal_code"]},
            ],
            "geometry": {"location_type": location_type},
        }],
    }


def parcel_body(lat, lng, half_side=0.0002, address="100 MAIN ST", parcel_id="P-100"):
    """Build a Regrid point-lookup body with a square parcel centred on (lat, lng)."""
    ring = [
        [lng - half_side, lat - half_side],
        [lng + half_side, lat - half_side],
        [lng + half_side, lat + half_side],
        [lng - half_side, lat + half_side],
        [lng - half_side, lat - half_side],
    ]
    return {
        "features": [{
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [ring]},
            "properties": {"address": address, "city": "Springfield", "state": "GA",
                           "zip": "30458", "parcel_id": parcel_id},
        }]
    }


def gps_jpeg(lat_dms=(33, 44, 56.4), lat_ref="N", lng_dms=(84, 23, 16.8), lng_ref="W",
             altitude=12.5, altitude_ref=1):
    """Encode a small JPEG whose EXIF carries a GPS IFD, the way a camera writes it."""
    gps = {
        1: lat_ref,
        2: tuple(IFDRational(Fraction(str(v))) for v in lat_dms),
        3: lng_ref,
        4: tuple(IFDRational(Fraction(str(v))) for v in lng_dms),
        5: bytes([altitude_ref]),
        6: IFDRational(Fraction(str(altitude))),
    }
    exif = Image.Exif()
    exif[GPS_IFD_TAG] = gps
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8)).save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def reset_client_singletons():
    """Reset client singleton state between tests."""
    yield
    for module, cls_name in ((google_maps_client, "GoogleMapsClient"), (regrid_client, "RegridClient")):
        cls = getattr(module, cls_name)
        cls._instance = None
        cls._initialized = False


@pytest.fixture
def mock_clients(monkeypatch):
    """
    Patch both service clients at their point of use.

    Returns the (geocoder, parcel service) mock instances; by default the
    geocoder returns ZERO_RESULTS and the parcel service is disabled.
    """
    geocoder = MagicMock()
    geocoder.enabled = True
    geocoder.reverse_geocode = AsyncMock(return_value={"status": "ZERO_RESULTS", "results": []})

    parcels = MagicMock()
    parcels.enabled = False
    parcels.parcel_lookup = AsyncMock(return_value={"features": []})

    monkeypatch.setattr("propmatch.address_resolver.GoogleMapsClient", lambda: geocoder)
    monkeypatch.setattr("propmatch.address_resolver.RegridClient", lambda: parcels)
    return geocoder, parcels
