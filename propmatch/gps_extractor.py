"""
GPS extraction from image metadata.

Tag dictionaries differ between metadata readers: Pillow yields rational
triples keyed by GPS tag name, other readers wrap each tag in a
``{"value": ..., "description": ...}`` mapping, and uploads sometimes carry
plain decimal strings. Everything is reduced here to a validated
``Coordinate`` or ``None``.
"""
import io
import math
from numbers import Real
from typing import Any, Dict, Optional

from loguru import logger
from PIL import ExifTags, Image, UnidentifiedImageError

from propmatch.models import Coordinate

GPS_IFD_TAG = 0x8825


def read_exif_tags(image_bytes: bytes) -> Dict[str, Any]:
    """
    Read EXIF tags from raw image bytes, with the GPS sub-IFD flattened into
    the top level under its tag names (``GPSLatitude``, ``GPSLatitudeRef``...).

    Args:
        image_bytes (bytes): Raw image file contents.

    Returns:
        Dict[str, Any]: Tag name to value. Empty when the image cannot be parsed.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            exif = img.getexif()
            tags = {ExifTags.TAGS.get(k, str(k)): v for k, v in exif.items() if k != GPS_IFD_TAG}
            gps_ifd = exif.get_ifd(GPS_IFD_TAG)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        logger.debug(f"⚠️ Could not read image metadata: {e}")
        return {}

    for key, value in gps_ifd.items():
        tags[ExifTags.GPSTAGS.get(key, str(key))] = value
    return tags


def _rational(value: Any) -> float:
    """Convert one rational-like component to float."""
    if isinstance(value, dict):
        return value["numerator"] / value["denominator"]
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return value[0] / value[1]
    if hasattr(value, "numerator") and hasattr(value, "denominator") and not isinstance(value, Real):
        return value.numerator / value.denominator
    return float(value)


def _dms_to_decimal(parts) -> float:
    degrees, minutes, seconds = (list(parts) + [0, 0, 0])[:3]
    return _rational(degrees) + _rational(minutes) / 60.0 + _rational(seconds) / 3600.0


def _angle(tag: Any) -> Optional[float]:
    """
    Decode a latitude/longitude tag: a description string, a bare number,
    a DMS rational triple, or a reader mapping holding either.
    """
    if tag is None:
        return None
    try:
        if isinstance(tag, dict):
            description = tag.get("description")
            if description not in (None, ""):
                try:
                    return float(description)
                except (TypeError, ValueError):
                    pass
            return _angle(tag.get("value"))
        if isinstance(tag, bytes):
            tag = tag.decode("ascii", errors="ignore")
        if isinstance(tag, str):
            return float(tag.strip())
        if isinstance(tag, (tuple, list)):
            if not tag:
                return None
            return _dms_to_decimal(tag)
        return _rational(tag)
    except (TypeError, ValueError, KeyError, ZeroDivisionError):
        return None


def _ref(tag: Any) -> str:
    """First letter of a hemisphere reference tag, upper-cased."""
    if isinstance(tag, dict):
        tag = tag.get("value")
    if isinstance(tag, (tuple, list)):
        tag = tag[0] if tag else ""
    if isinstance(tag, bytes):
        tag = tag.decode("ascii", errors="ignore")
    return str(tag or "").strip()[:1].upper()


def _altitude(tags: Dict[str, Any]) -> Optional[float]:
    value = _angle(tags.get("GPSAltitude"))
    if value is None or not math.isfinite(value):
        return None
    ref = tags.get("GPSAltitudeRef")
    if isinstance(ref, dict):
        ref = ref.get("value")
    if isinstance(ref, bytes):
        ref = ref[0] if ref else 0
    if ref == 1 or ref == "1":
        value = -abs(value)
    return round(value, 2)


def make_coordinate(latitude, longitude, altitude=None) -> Optional[Coordinate]:
    """
    Build a validated coordinate rounded to 6 decimal places.

    Returns:
        Optional[Coordinate]: None when either value is missing, non-finite or out of range.
    """
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if abs(lat) > 90 or abs(lng) > 180:
        return None
    return Coordinate(latitude=round(lat, 6), longitude=round(lng, 6), altitude=altitude)


def extract_gps(tags: Optional[Dict[str, Any]]) -> Optional[Coordinate]:
    """
    Extract a decimal-degree coordinate from a metadata tag dictionary.

    Missing GPS is the common case and is not an error.

    Args:
        tags (Dict[str, Any]): Tags as produced by ``read_exif_tags`` or another reader.

    Returns:
        Optional[Coordinate]: Validated coordinate, or None when absent or invalid.
    """
    if not tags:
        return None

    latitude = _angle(tags.get("GPSLatitude"))
    longitude = _angle(tags.get("GPSLongitude"))
    if latitude is None or longitude is None:
        logger.debug("No GPS data found in metadata")
        return None

    if _ref(tags.get("GPSLatitudeRef")) == "S":
        latitude = -abs(latitude)
    if _ref(tags.get("GPSLongitudeRef")) == "W":
        longitude = -abs(longitude)

    coord = make_coordinate(latitude, longitude, _altitude(tags))
    if coord is None:
        logger.debug(f"Invalid GPS coordinates found: {latitude}, {longitude}")
    return coord
