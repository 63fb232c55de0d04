"""
Error taxonomy for catalog operations.

The HTTP layer maps each of these kinds to a status code; see
``api.errors``.
"""


class CatalogError(Exception):
    """Base class for every error raised by the catalog services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Input has the wrong shape or out-of-range values."""


class NotFoundError(CatalogError):
    """A requested record does not exist."""


class BookNotFoundError(NotFoundError):
    """No book is stored under the given id."""

    def __init__(self, book_id):
        super().__init__(f"Book with ID {book_id} not found")
        self.book_id = book_id


class MediaStoreError(CatalogError):
    """The remote media store could not complete a request."""


class MediaUploadError(MediaStoreError):
    """Uploading a file to the media store failed or was refused."""


class MediaDeleteError(MediaStoreError):
    """Destroying a remote asset failed."""


class UnexpectedError(CatalogError):
    """Anything the catalog cannot classify more precisely."""
