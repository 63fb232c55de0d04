"""
Image record service.

Keeps the local image rows in step with the assets held by the media store:
a row is written only after an upload succeeds, and removed only after the
remote asset is destroyed.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from .database import BookRepository, ImageRepository
from .exceptions import MediaStoreError, MediaUploadError
from .media_store import CloudinaryClient
from .models import Image, MediaFile, OrphanReport

logger = structlog.get_logger(__name__)


class ImageService:
    """Uploads and deletes cover images, remotely and locally."""

    def __init__(
        self,
        media_store: CloudinaryClient,
        image_repository: ImageRepository,
        book_repository: Optional[BookRepository] = None,
        orphan_grace_period: timedelta = timedelta(minutes=60),
    ):
        self.media_store = media_store
        self.image_repository = image_repository
        self.book_repository = book_repository
        self.orphan_grace_period = orphan_grace_period

    async def upload_image(self, file: Optional[MediaFile]) -> Image:
        """
        Upload ``file`` and record it locally.

        Raises:
            MediaUploadError: If the file is missing or empty, or the remote
                upload fails; nothing is recorded in either case
        """
        if file is None or file.is_empty:
            raise MediaUploadError("File is empty or missing")

        result = await self.media_store.upload(file)
        image = Image(
            name=file.filename,
            image_url=result.get("url"),
            public_id=result.get("public_id"),
        )
        try:
            saved = await self.image_repository.save(image)
        except Exception:
            await self._discard_remote(image.public_id)
            raise
        logger.info("Stored image record", image_id=saved.id, public_id=saved.public_id)
        return saved

    async def delete_image(self, image: Image) -> None:
        """
        Destroy the remote asset, then drop the local row.

        If the remote call fails the row is kept, since the asset still exists.
        """
        await self.media_store.delete(image.public_id)
        await self.image_repository.delete_by_id(image.id)
        logger.info("Removed image record", image_id=image.id, public_id=image.public_id)

    async def _discard_remote(self, public_id: Optional[str]) -> None:
        try:
            await self.media_store.delete(public_id)
            logger.info("Discarded unrecorded upload", public_id=public_id)
        except MediaStoreError as e:
            logger.warning("Failed to discard unrecorded upload", public_id=public_id, error=str(e))

    async def find_orphaned_images(self) -> List[Image]:
        """
        Image rows that no book points at.

        Rows created within the grace period are skipped: a book that is
        being created or having its image replaced has not been saved yet.
        """
        if self.book_repository is None:
            raise RuntimeError("Orphan lookup needs a book repository")

        referenced = await self.book_repository.referenced_image_ids()
        cutoff = datetime.utcnow() - self.orphan_grace_period
        images = await self.image_repository.find_all(created_before=cutoff)
        return [image for image in images if image.id not in referenced]

    async def cleanup_orphaned_images(self) -> OrphanReport:
        """
        Delete every orphaned image, remotely and locally.

        Individual failures are logged and skipped so that one stubborn
        asset does not block the rest of the sweep.
        """
        orphans = await self.find_orphaned_images()
        report = OrphanReport(checked=len(orphans))

        for image in orphans:
            try:
                await self.delete_image(image)
                report.removed += 1
            except MediaStoreError as e:
                report.failed.append(image.id)
                logger.warning(
                    "Failed to remove orphaned image",
                    image_id=image.id,
                    public_id=image.public_id,
                    error=str(e),
                )

        logger.info(
            "Orphaned image cleanup finished",
            checked=report.checked,
            removed=report.removed,
            failed=len(report.failed),
        )
        return report
