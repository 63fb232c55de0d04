"""
Unit tests for the book catalog service.
Tests CRUD semantics, image lifecycle ordering and listing.
"""

import pytest
from unittest.mock import AsyncMock, call

from catalog.exceptions import (
    BookNotFoundError, MediaDeleteError, MediaUploadError, ValidationError
)
from catalog.models import Book, BookSummary, Image, SortDirection, SortField


class TestCreateBook:
    """Test cases for BookService.create_book."""

    @pytest.mark.asyncio
    async def test_create_without_file(self, book_service, mock_book_repository, mock_image_service):
        """A book without a file gets an id and no image."""
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        result = await book_service.create_book(draft, None)

        assert result.id == 1
        assert result.image is None
        assert result.title == "Dune"
        mock_book_repository.insert.assert_awaited_once()
        mock_image_service.upload_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_with_empty_file_skips_upload(
        self, book_service, mock_image_service, empty_media_file
    ):
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        result = await book_service.create_book(draft, empty_media_file)

        assert result.image is None
        mock_image_service.upload_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_with_file(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_image
    ):
        """The uploaded image is attached before the book is stored."""
        mock_image_service.upload_image.return_value = sample_image
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        result = await book_service.create_book(draft, media_file)

        assert result.image == sample_image
        mock_image_service.upload_image.assert_awaited_once_with(media_file)
        stored = mock_book_repository.insert.await_args.args[0]
        assert stored.image == sample_image

    @pytest.mark.asyncio
    async def test_create_ignores_client_supplied_id(self, book_service, mock_book_repository):
        draft = Book(id=42, title="Dune", author="Herbert", pages=412, price=9.99)

        await book_service.create_book(draft)

        stored = mock_book_repository.insert.await_args.args[0]
        assert stored.id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("draft", [
        Book(title=None, author="Herbert", pages=1, price=1.0),
        Book(title="  ", author="Herbert", pages=1, price=1.0),
        Book(title="Dune", author=None, pages=1, price=1.0),
        Book(title="Dune", author="Herbert", pages=-1, price=1.0),
        Book(title="Dune", author="Herbert", pages=1, price=-0.5),
    ])
    async def test_create_rejects_invalid_draft(
        self, book_service, mock_book_repository, mock_image_service, media_file, draft
    ):
        """Validation happens before any upload or persistence."""
        with pytest.raises(ValidationError):
            await book_service.create_book(draft, media_file)

        mock_image_service.upload_image.assert_not_called()
        mock_book_repository.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_upload_failure_persists_nothing(
        self, book_service, mock_book_repository, mock_image_service, media_file
    ):
        mock_image_service.upload_image.side_effect = MediaUploadError("Upload failed")
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        with pytest.raises(MediaUploadError):
            await book_service.create_book(draft, media_file)

        mock_book_repository.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_save_failure_discards_upload(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_image
    ):
        """An upload whose book cannot be stored is removed again."""
        mock_image_service.upload_image.return_value = sample_image
        mock_book_repository.insert.side_effect = RuntimeError("database down")
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        with pytest.raises(RuntimeError, match="database down"):
            await book_service.create_book(draft, media_file)

        mock_image_service.delete_image.assert_awaited_once_with(sample_image)

    @pytest.mark.asyncio
    async def test_create_save_failure_keeps_original_error_when_discard_fails(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_image
    ):
        mock_image_service.upload_image.return_value = sample_image
        mock_image_service.delete_image.side_effect = MediaDeleteError("Delete failed")
        mock_book_repository.insert.side_effect = RuntimeError("database down")
        draft = Book(title="Dune", author="Herbert", pages=412, price=9.99)

        with pytest.raises(RuntimeError, match="database down"):
            await book_service.create_book(draft, media_file)


class TestUpdateBook:
    """Test cases for BookService.update_book."""

    @pytest.mark.asyncio
    async def test_update_success(self, book_service, mock_book_repository, sample_book):
        mock_book_repository.update_fields.return_value = sample_book

        result = await book_service.update_book(sample_book)

        assert result.id == 1
        mock_book_repository.update_fields.assert_awaited_once_with(sample_book)
        mock_book_repository.set_image.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [
        {"id": None},
        {"title": None},
        {"author": None},
        {"author": ""},
        {"pages": None},
        {"pages": -1},
        {"price": None},
        {"price": -1.0},
    ])
    async def test_update_rejects_invalid_book(self, book_service, mock_book_repository, sample_book, changes):
        """Invalid input never reaches the repository."""
        book = sample_book.model_copy(update=changes)

        with pytest.raises(ValidationError):
            await book_service.update_book(book)

        mock_book_repository.update_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_unknown_book(self, book_service, mock_book_repository, sample_book):
        mock_book_repository.update_fields.return_value = None

        with pytest.raises(BookNotFoundError):
            await book_service.update_book(sample_book)


class TestReplaceImage:
    """Test cases for BookService.replace_image."""

    @pytest.mark.asyncio
    async def test_replace_without_previous_image(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_book
    ):
        new_image = Image(id=2, name="new.jpg", image_url="http://example.com/new.jpg", public_id="new_id")
        mock_image_service.upload_image.return_value = new_image
        mock_book_repository.set_image.return_value = sample_book.model_copy(update={"image": new_image})

        result = await book_service.replace_image(media_file, sample_book)

        assert result.image == new_image
        mock_image_service.upload_image.assert_awaited_once_with(media_file)
        mock_image_service.delete_image.assert_not_called()
        mock_book_repository.set_image.assert_awaited_once_with(1, new_image)

    @pytest.mark.asyncio
    async def test_replace_with_previous_image(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_book
    ):
        """Upload new, then delete old, then save."""
        old_image = Image(id=1, name="old.jpg", image_url="http://example.com/old.jpg", public_id="old_id")
        new_image = Image(id=2, name="new.jpg", image_url="http://example.com/new.jpg", public_id="new_id")
        book = sample_book.model_copy(update={"image": old_image})

        manager = AsyncMock()
        manager.attach_mock(mock_image_service.upload_image, "upload_image")
        manager.attach_mock(mock_image_service.delete_image, "delete_image")
        manager.attach_mock(mock_book_repository.set_image, "set_image")
        mock_image_service.upload_image.return_value = new_image
        mock_book_repository.set_image.return_value = book.model_copy(update={"image": new_image})

        result = await book_service.replace_image(media_file, book)

        assert result.image == new_image
        assert manager.mock_calls == [
            call.upload_image(media_file),
            call.delete_image(old_image),
            call.set_image(1, new_image),
        ]

    @pytest.mark.asyncio
    async def test_replace_upload_failure_keeps_old_image(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_book, sample_image
    ):
        book = sample_book.model_copy(update={"image": sample_image})
        mock_image_service.upload_image.side_effect = MediaUploadError("Upload failed")

        with pytest.raises(MediaUploadError):
            await book_service.replace_image(media_file, book)

        mock_image_service.delete_image.assert_not_called()
        mock_book_repository.set_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_replace_old_delete_failure_still_attaches_new_image(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_book, sample_image
    ):
        new_image = Image(id=2, name="new.jpg", image_url="http://example.com/new.jpg", public_id="new_id")
        book = sample_book.model_copy(update={"image": sample_image})
        mock_image_service.upload_image.return_value = new_image
        mock_image_service.delete_image.side_effect = MediaDeleteError("Delete failed")
        mock_book_repository.set_image.return_value = book.model_copy(update={"image": new_image})

        result = await book_service.replace_image(media_file, book)

        assert result.image == new_image
        mock_book_repository.set_image.assert_awaited_once_with(1, new_image)

    @pytest.mark.asyncio
    async def test_replace_on_vanished_book_discards_upload(
        self, book_service, mock_book_repository, mock_image_service, media_file, sample_book
    ):
        new_image = Image(id=2, name="new.jpg", image_url="http://example.com/new.jpg", public_id="new_id")
        mock_image_service.upload_image.return_value = new_image
        mock_book_repository.set_image.return_value = None

        with pytest.raises(BookNotFoundError):
            await book_service.replace_image(media_file, sample_book)

        mock_image_service.delete_image.assert_awaited_once_with(new_image)


class TestGetBook:
    """Test cases for BookService.get_book_by_id."""

    @pytest.mark.asyncio
    async def test_get_existing_book(self, book_service, mock_book_repository, sample_book):
        mock_book_repository.find_by_id.return_value = sample_book

        result = await book_service.get_book_by_id(1)

        assert result == sample_book
        mock_book_repository.find_by_id.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_get_missing_book_returns_none(self, book_service, mock_book_repository):
        mock_book_repository.find_by_id.return_value = None

        assert await book_service.get_book_by_id(1) is None


class TestListBooks:
    """Test cases for BookService.list_books."""

    @pytest.mark.asyncio
    async def test_list_without_query(self, book_service, mock_book_repository, sample_book):
        mock_book_repository.search.return_value = ([sample_book], 1)

        page = await book_service.list_books(page=0, size=10, sort_by="title", sort_direction="ASC")

        assert page.total_elements == 1
        assert page.total_pages == 1
        assert page.content[0].title == "Test Book"
        assert page.content[0].image_url is None
        assert not page.has_next
        assert not page.has_prev
        mock_book_repository.search.assert_awaited_once_with(
            None, skip=0, limit=10, sort_field=SortField.TITLE, sort_direction=SortDirection.ASC
        )

    @pytest.mark.asyncio
    async def test_list_passes_query_and_offset(self, book_service, mock_book_repository):
        mock_book_repository.search.return_value = ([], 25)

        page = await book_service.list_books(page=1, size=10, sort_by="price", sort_direction="desc", query="herb")

        assert page.total_pages == 3
        assert page.has_next
        assert page.has_prev
        assert page.sort_direction == SortDirection.DESC
        mock_book_repository.search.assert_awaited_once_with(
            "herb", skip=10, limit=10, sort_field=SortField.PRICE, sort_direction=SortDirection.DESC
        )

    @pytest.mark.asyncio
    async def test_list_includes_image_fields(self, book_service, mock_book_repository, sample_book, sample_image):
        mock_book_repository.search.return_value = ([sample_book.model_copy(update={"image": sample_image})], 1)

        page = await book_service.list_books()

        summary = page.content[0]
        assert isinstance(summary, BookSummary)
        assert summary.image_id == 1
        assert summary.image_name == "test.jpg"
        assert summary.image_url == sample_image.image_url
        assert summary.image_public_id == "test_id"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"page": -1},
        {"page": 2 ** 62, "size": 10},
        {"size": 0},
        {"size": -5},
        {"sort_direction": "sideways"},
        {"sort_by": "publisher"},
    ])
    async def test_list_rejects_invalid_parameters(self, book_service, mock_book_repository, kwargs):
        with pytest.raises(ValidationError):
            await book_service.list_books(**kwargs)

        mock_book_repository.search.assert_not_called()


class TestDeleteBook:
    """Test cases for BookService.delete_book."""

    @pytest.mark.asyncio
    async def test_delete_with_image(
        self, book_service, mock_book_repository, mock_image_service, sample_book, sample_image
    ):
        """The image goes first, then the book row."""
        book = sample_book.model_copy(update={"image": sample_image})
        manager = AsyncMock()
        manager.attach_mock(mock_image_service.delete_image, "delete_image")
        manager.attach_mock(mock_book_repository.delete_by_id, "delete_by_id")

        await book_service.delete_book(book)

        assert manager.mock_calls == [call.delete_image(sample_image), call.delete_by_id(1)]

    @pytest.mark.asyncio
    async def test_delete_without_image(self, book_service, mock_book_repository, mock_image_service, sample_book):
        await book_service.delete_book(sample_book)

        mock_image_service.delete_image.assert_not_called()
        mock_book_repository.delete_by_id.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_delete_image_failure_keeps_book(
        self, book_service, mock_book_repository, mock_image_service, sample_book, sample_image
    ):
        book = sample_book.model_copy(update={"image": sample_image})
        mock_image_service.delete_image.side_effect = MediaDeleteError("Delete failed")

        with pytest.raises(MediaDeleteError):
            await book_service.delete_book(book)

        mock_book_repository.delete_by_id.assert_not_called()
