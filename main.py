import os
import asyncio
import pandas as pd
import csv
from pathlib import Path
from typing import List
import sys
from loguru import logger

from propmatch.models import PhotoRecord, PropertyCandidate
from propmatch.processing import PhotoProcessor
from propmatch.storage import InMemoryPhotoStore, InMemoryPropertyStore
from propmatch.worker_pool import PhotoWorkerPool
from propmatch.exceptions import QueueFullError
from propmatch.config import INPUT_DIR, PROPERTIES_CSV, OUTPUT_CSV, LOG_LEVEL
from propmatch.clients import GoogleMapsClient, RegridClient

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".tif", ".tiff", ".png", ".heic"}


def load_properties_from_csv(file_path: str) -> List[PropertyCandidate]:
    """Load existing properties from CSV and convert to PropertyCandidate objects."""
    if not os.path.exists(file_path):
        logger.info(f"No properties file at {file_path}, starting with an empty property table")
        return []

    df = pd.read_csv(file_path, dtype={"zip_code": str})
    records = []
    for _, row in df.iterrows():
        # Helper to safely extract values from pandas Series, converting NaN to ""
        def safe_get(col):
            if col not in row.index or pd.isna(row[col]):
                return ""
            return str(row[col])

        if pd.isna(row.get("latitude")) or pd.isna(row.get("longitude")):
            logger.debug(f"Skipping property {row.get('id')} without coordinates")
            continue

        records.append(PropertyCandidate(
            id=int(row["id"]),
            address=safe_get("address"),
            city=safe_get("city"),
            state=safe_get("state"),
            postal_code=safe_get("zip_code"),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            is_deleted=safe_get("is_deleted").lower() in ("true", "1"),
        ))
    return records


def register_photos(photo_store: InMemoryPhotoStore, input_dir: str) -> List[PhotoRecord]:
    """Register every image file under ``input_dir`` as a pending photo."""
    photos = []
    paths = sorted(p for p in Path(input_dir).rglob("*") if p.suffix.lower() in IMAGE_SUFFIXES)
    for photo_id, path in enumerate(paths, start=1):
        photo = PhotoRecord(id=photo_id, file_path=str(path), batch_id=path.parent.name)
        photo_store.add_photo(photo, path.read_bytes())
        photos.append(photo)
    return photos


async def main():
    """
    Match every photo in INPUT_DIR to a property.

    - Seeds the property table from PROPERTIES_CSV.
    - Feeds photos through the bounded worker pool.
    - Writes one row per photo to OUTPUT_CSV.
    """
    # Initialize logs
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=LOG_LEVEL, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    property_store = InMemoryPropertyStore(load_properties_from_csv(PROPERTIES_CSV))
    photo_store = InMemoryPhotoStore()
    photos = register_photos(photo_store, INPUT_DIR)
    logger.info(f"Loaded {len(property_store.properties)} properties and {len(photos)} photos")

    processor = PhotoProcessor(property_store, photo_store)

    try:
        async with PhotoWorkerPool(processor.process_photo, on_timeout=processor.mark_failed) as pool:
            for photo in photos:
                while True:
                    try:
                        pool.submit(photo.id)
                        break
                    except QueueFullError:
                        # Back off until the workers drain some of the queue
                        await asyncio.sleep(1)
    finally:
        # Cleanup: close client sessions to prevent unclosed connector warnings
        await GoogleMapsClient().close()
        await RegridClient().close()

    output_path = OUTPUT_CSV
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["photo_id", "file_path", "property_id", "status", "method", "confidence", "error"])
        for photo in await photo_store.list_photos():
            match = photo.metadata.get("match_result", {})
            writer.writerow([
                photo.id,
                photo.file_path,
                photo.property_id,
                photo.processing_status.value,
                match.get("method", ""),
                match.get("confidence", ""),
                photo.metadata.get("error", ""),
            ])
    logger.info(f"Wrote {len(photos)} assignments to {output_path}")


if __name__ == "__main__":
    asyncio.run(main())
