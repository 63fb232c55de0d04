"""
Book catalog service.

Owns book CRUD and couples books to their cover images:
- uploads happen before the book is persisted
- on image replacement the new upload must succeed before the old image
  is touched
- deleting a book deletes its image first
"""

import math
from typing import Optional

import structlog

from .database import BookRepository
from .exceptions import BookNotFoundError, MediaStoreError, ValidationError
from .image_service import ImageService
from .models import Book, BookPage, BookSummary, Image, MediaFile, SortDirection, SortField

logger = structlog.get_logger(__name__)

# Largest skip a BSON int64 can carry
MAX_OFFSET = 2 ** 63 - 1


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def validate_book_fields(book: Book, require_id: bool = False) -> None:
    """
    Check the fields every stored book must carry.

    Raises:
        ValidationError: Naming the first offending field
    """
    if require_id and book.id is None:
        raise ValidationError("Book id is required")
    if _is_blank(book.title):
        raise ValidationError("Book title is required")
    if _is_blank(book.author):
        raise ValidationError("Book author is required")
    if book.pages is None or book.pages < 0:
        raise ValidationError("Book pages must be zero or greater")
    if book.price is None or book.price < 0:
        raise ValidationError("Book price must be zero or greater")


class BookService:
    """Book CRUD, listing and image lifecycle."""

    def __init__(self, book_repository: BookRepository, image_service: ImageService):
        self.book_repository = book_repository
        self.image_service = image_service

    async def create_book(self, book: Book, file: Optional[MediaFile] = None) -> Book:
        """
        Persist a new book, uploading its cover first when a file is given.

        Args:
            book: Draft to store; any id on it is ignored
            file: Optional cover image

        Returns:
            The stored book with its assigned id

        Raises:
            ValidationError: If required fields are missing or negative
            MediaUploadError: If the upload fails; nothing is stored
        """
        validate_book_fields(book)
        draft = book.model_copy(update={"id": None, "image": None})

        if file is not None and not file.is_empty:
            draft.image = await self.image_service.upload_image(file)

        try:
            saved = await self.book_repository.insert(draft)
        except Exception:
            if draft.image is not None:
                await self._discard_uploaded_image(draft.image)
            raise

        logger.info("Created book", book_id=saved.id, title=saved.title, has_image=saved.image is not None)
        return saved

    async def update_book(self, book: Book) -> Book:
        """
        Replace title, author, pages and price of an existing book.
        The image is never changed here.

        Raises:
            ValidationError: If a required field is missing or negative
            BookNotFoundError: If no book has this id
        """
        validate_book_fields(book, require_id=True)

        updated = await self.book_repository.update_fields(book)
        if updated is None:
            raise BookNotFoundError(book.id)

        logger.info("Updated book", book_id=updated.id)
        return updated

    async def replace_image(self, file: Optional[MediaFile], book: Book) -> Book:
        """
        Swap the cover image of ``book``.

        Order is upload new, delete old, save. A failed upload aborts
        with the old image intact. A failed delete of the old image is
        logged and the new image is attached anyway; the old row is then
        left unreferenced for the orphan cleanup.
        """
        new_image = await self.image_service.upload_image(file)

        old_image = book.image
        if old_image is not None:
            try:
                await self.image_service.delete_image(old_image)
            except MediaStoreError as e:
                logger.warning(
                    "Failed to delete previous image",
                    book_id=book.id,
                    image_id=old_image.id,
                    public_id=old_image.public_id,
                    error=str(e),
                )

        try:
            saved = await self.book_repository.set_image(book.id, new_image)
        except Exception:
            await self._discard_uploaded_image(new_image)
            raise

        if saved is None:
            await self._discard_uploaded_image(new_image)
            raise BookNotFoundError(book.id)

        logger.info(
            "Replaced book image",
            book_id=book.id,
            old_image_id=old_image.id if old_image else None,
            new_image_id=new_image.id,
        )
        return saved

    async def get_book_by_id(self, book_id: int) -> Optional[Book]:
        """Return the book, or None when it does not exist."""
        return await self.book_repository.find_by_id(book_id)

    async def list_books(
        self,
        page: int = 0,
        size: int = 10,
        sort_by: str = "title",
        sort_direction: str = "asc",
        query: Optional[str] = None,
    ) -> BookPage:
        """
        Get one page of book summaries.

        Args:
            page: Zero-based page number
            size: Page size, at least 1
            sort_by: Field to order by (id, title, author, pages, price)
            sort_direction: 'asc' or 'desc', case-insensitive
            query: Substring matched case-insensitively against title or
                author; empty or None lists every book

        Raises:
            ValidationError: On a negative or out-of-range page, a non-positive
                size or an unknown sort field/direction
        """
        if page < 0:
            raise ValidationError("Page index must not be less than zero")
        if size < 1:
            raise ValidationError("Page size must not be less than one")
        if page * size > MAX_OFFSET:
            raise ValidationError("Page index is too large")
        field = SortField.parse(sort_by)
        direction = SortDirection.parse(sort_direction)

        books, total = await self.book_repository.search(
            query, skip=page * size, limit=size, sort_field=field, sort_direction=direction
        )
        total_pages = math.ceil(total / size)

        return BookPage(
            content=[BookSummary.from_book(book) for book in books],
            page=page,
            size=size,
            total_elements=total,
            total_pages=total_pages,
            has_next=page + 1 < total_pages,
            has_prev=page > 0,
            sort_by=field,
            sort_direction=direction,
        )

    async def delete_book(self, book: Book) -> None:
        """
        Delete a book that is known to exist, together with its image.
        """
        if book.image is not None:
            await self.image_service.delete_image(book.image)

        await self.book_repository.delete_by_id(book.id)
        logger.info("Deleted book", book_id=book.id)

    async def _discard_uploaded_image(self, image: Image) -> None:
        """Best-effort removal of an upload whose book was never saved."""
        try:
            await self.image_service.delete_image(image)
            logger.info("Discarded unattached upload", image_id=image.id, public_id=image.public_id)
        except Exception as e:
            logger.error(
                "Failed to discard unattached upload",
                image_id=image.id,
                public_id=image.public_id,
                error=str(e),
            )
