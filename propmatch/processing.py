"""
Per-photo processing: read GPS, match to a property, write the outcome back.

``process_photo`` is the isolation boundary of the pipeline. Whatever goes
wrong for one photo ends up as a ``failed`` status with a readable reason in
its metadata; nothing is raised to the caller.
"""
import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger

from propmatch.config import DELAY_BETWEEN_PHOTOS
from propmatch.exceptions import PhotoNotFoundError
from propmatch.gps_extractor import extract_gps, make_coordinate, read_exif_tags
from propmatch.matchers.matching_orchestrator import match_photo
from propmatch.models import Coordinate, PhotoRecord, ProcessingStatus
from propmatch.storage import PhotoStore, PropertyStore

NO_GPS_REASON = "no valid GPS coordinates"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PhotoProcessor:
    """Matches stored photos to properties and records the result on each photo."""

    def __init__(self, property_store: PropertyStore, photo_store: PhotoStore,
                 delay_between_photos: float = DELAY_BETWEEN_PHOTOS):
        self.property_store = property_store
        self.photo_store = photo_store
        self.delay_between_photos = delay_between_photos

    async def _coordinate_for(self, photo: PhotoRecord) -> Optional[Coordinate]:
        image_bytes = await self.photo_store.load_image(photo.id)
        coord = None
        if image_bytes:
            # Pillow decoding is blocking; keep it off the event loop shared by the workers.
            tags = await asyncio.to_thread(read_exif_tags, image_bytes)
            coord = extract_gps(tags)
        if coord is None and photo.latitude is not None and photo.longitude is not None:
            coord = make_coordinate(photo.latitude, photo.longitude, photo.altitude)
        return coord

    async def process_photo(self, photo_id: int) -> None:
        """
        Match one photo to a property.

        The outcome is observable through the photo's ``processing_status``,
        ``property_id`` and ``metadata``.
        """
        logger.info(f"Processing photo {photo_id}")
        try:
            await self.photo_store.update_photo(photo_id, processing_status=ProcessingStatus.PROCESSING)
            photo = await self.photo_store.get_photo(photo_id)

            coord = await self._coordinate_for(photo)
            if coord is None:
                await self.mark_failed(photo_id, NO_GPS_REASON)
                return

            result = await match_photo(coord, self.property_store)

            await self.photo_store.update_photo(
                photo_id,
                property_id=result.property_id,
                processing_status=ProcessingStatus.PROCESSED,
                latitude=coord.latitude,
                longitude=coord.longitude,
                altitude=coord.altitude,
                metadata={
                    "match_result": {
                        "method": result.method.value,
                        "confidence": result.confidence,
                        "processed_at": _now(),
                    }
                },
            )
            logger.info(f"Photo {photo_id} assigned to property {result.property_id}")
        except PhotoNotFoundError:
            logger.warning(f"Photo {photo_id} not found, skipping")
        except Exception as e:
            logger.exception(f"Error processing photo {photo_id}: {e}")
            await self.mark_failed(photo_id, str(e) or e.__class__.__name__)

    async def mark_failed(self, photo_id: int, reason: str) -> None:
        """Mark a photo failed and unassigned, keeping it visible for manual review."""
        logger.info(f"Photo {photo_id} marked as failed: {reason}")
        try:
            await self.photo_store.update_photo(
                photo_id,
                property_id=None,
                processing_status=ProcessingStatus.FAILED,
                metadata={"error": reason, "failed_at": _now()},
            )
        except Exception as e:
            logger.exception(f"Could not record failure for photo {photo_id}: {e}")

    async def process_batch(self, photo_ids: List[int]) -> None:
        """
        Process photos one after another, pausing between them to stay within
        third-party rate limits. A failing photo never stops the batch.
        """
        logger.info(f"Processing batch of {len(photo_ids)} photos")
        for index, photo_id in enumerate(photo_ids):
            if index and self.delay_between_photos > 0:
                await asyncio.sleep(self.delay_between_photos)
            await self.process_photo(photo_id)

    async def process_pending_photos(self) -> None:
        pending = await self.photo_store.list_photos(ProcessingStatus.PENDING)
        await self.process_batch([photo.id for photo in pending])

    async def get_unassigned_photos(self) -> List[PhotoRecord]:
        """Photos without a property that are waiting or failed, i.e. the manual review queue."""
        photos = await self.photo_store.list_photos()
        return [
            photo for photo in photos
            if photo.property_id is None
            and photo.processing_status in (ProcessingStatus.PENDING, ProcessingStatus.FAILED)
        ]

    async def assign_photo_manually(self, photo_id: int, property_id: int) -> None:
        """Overwrite a photo's assignment from the review workflow."""
        await self.photo_store.get_photo(photo_id)
        await self.photo_store.update_photo(
            photo_id,
            property_id=property_id,
            processing_status=ProcessingStatus.PROCESSED,
            metadata={
                "match_result": {
                    "method": "manual_assignment",
                    "confidence": 1.0,
                    "manual_override": True,
                    "processed_at": _now(),
                }
            },
        )
        logger.info(f"Photo {photo_id} manually assigned to property {property_id}")
