"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import AsyncMock

from catalog.book_service import BookService
from catalog.database import BookRepository, ImageRepository
from catalog.image_service import ImageService
from catalog.media_store import CloudinaryClient
from catalog.models import Book, Image, MediaFile


@pytest.fixture
def sample_image():
    """Create a stored image record."""
    return Image(
        id=1,
        name="test.jpg",
        image_url="http://res.cloudinary.com/demo/image/upload/v1/test_id.jpg",
        public_id="test_id"
    )


@pytest.fixture
def sample_book():
    """Create a stored book without an image."""
    return Book(id=1, title="Test Book", author="Author", pages=100, price=10.0)


@pytest.fixture
def media_file():
    """Create a non-empty uploaded file."""
    return MediaFile(filename="test.jpg", content=b"\xff\xd8\xff\xe0 jpeg bytes", content_type="image/jpeg")


@pytest.fixture
def empty_media_file():
    """Create an uploaded file without content."""
    return MediaFile(filename="empty.jpg", content=b"", content_type="image/jpeg")


@pytest.fixture
def upload_result():
    """Payload returned by the media store for a successful upload."""
    return {
        "public_id": "test_id",
        "url": "http://res.cloudinary.com/demo/image/upload/v1/test_id.jpg",
        "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/test_id.jpg",
        "format": "jpg",
        "bytes": 20,
    }


@pytest.fixture
def mock_media_store():
    """Create a mock media store client."""
    store = AsyncMock(spec=CloudinaryClient)
    store.delete.return_value = {"result": "ok"}
    return store


@pytest.fixture
def mock_image_repository():
    """Create a mock image repository that assigns id 1 on save."""
    repository = AsyncMock(spec=ImageRepository)
    repository.save.side_effect = lambda image: image.model_copy(update={"id": 1})
    repository.delete_by_id.return_value = True
    return repository


@pytest.fixture
def mock_book_repository():
    """Create a mock book repository that assigns id 1 on insert."""
    repository = AsyncMock(spec=BookRepository)
    repository.insert.side_effect = lambda book: book.model_copy(update={"id": 1})
    repository.delete_by_id.return_value = True
    return repository


@pytest.fixture
def mock_image_service():
    """Create a mock image record service."""
    return AsyncMock(spec=ImageService)


@pytest.fixture
def book_service(mock_book_repository, mock_image_service):
    """Create a book service with mocked collaborators."""
    return BookService(mock_book_repository, mock_image_service)


@pytest.fixture
def image_service(mock_media_store, mock_image_repository, mock_book_repository):
    """Create an image service with mocked collaborators."""
    return ImageService(mock_media_store, mock_image_repository, mock_book_repository)
