"""
Pydantic models for books, cover images and listing pages.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError


class SortDirection(str, Enum):
    """Sort order for book listings."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortDirection":
        """Resolve ``value`` case-insensitively to a direction."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid value '{value}' for sort direction; use 'ASC' or 'DESC'"
            ) from None

    @property
    def mongo_order(self) -> int:
        return 1 if self is SortDirection.ASC else -1


class SortField(str, Enum):
    """Book fields a listing can be ordered by."""
    ID = "id"
    TITLE = "title"
    AUTHOR = "author"
    PAGES = "pages"
    PRICE = "price"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortField":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip())
        except ValueError:
            allowed = ", ".join(field.value for field in cls)
            raise ValidationError(
                f"Invalid sort field '{value}'; expected one of: {allowed}"
            ) from None

    @property
    def document_key(self) -> str:
        """Name of the field in a stored book document."""
        return "_id" if self is SortField.ID else self.value


class Image(BaseModel):
    """
    Local record of a cover image hosted by the media store.
    """
    id: Optional[int] = Field(None, description="Store-assigned image identifier")
    name: Optional[str] = Field(None, description="Display name (uploaded filename)")
    image_url: Optional[str] = Field(None, description="URL of the hosted image")
    public_id: Optional[str] = Field(None, description="Media store identifier used for deletes")

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "image_url": self.image_url,
            "public_id": self.public_id,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Image":
        return cls(
            id=doc.get("_id", doc.get("id")),
            name=doc.get("name"),
            image_url=doc.get("image_url"),
            public_id=doc.get("public_id"),
        )


class Book(BaseModel):
    """
    A catalog record. Fields are optional at the model level so that
    incomplete drafts reach the service, which owns the validation rules.
    """
    id: Optional[int] = Field(None, description="Store-assigned book identifier")
    title: Optional[str] = Field(None, description="Book title")
    author: Optional[str] = Field(None, description="Book author")
    pages: Optional[int] = Field(None, description="Number of pages")
    price: Optional[float] = Field(None, description="Book price")
    image: Optional[Image] = Field(None, description="Cover image, if any")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Dune",
                "author": "Frank Herbert",
                "pages": 412,
                "price": 9.99,
                "image": {
                    "id": 3,
                    "name": "dune.jpg",
                    "image_url": "http://res.cloudinary.com/demo/image/upload/v1/abc123.jpg",
                    "public_id": "abc123",
                },
            }
        }
    )

    def to_document(self) -> Dict[str, Any]:
        """Stored representation; the id lives under ``_id``."""
        return {
            "_id": self.id,
            "title": self.title,
            "author": self.author,
            "pages": self.pages,
            "price": self.price,
            "image": self.image.to_document() if self.image else None,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Book":
        image_doc = doc.get("image")
        return cls(
            id=doc.get("_id"),
            title=doc.get("title"),
            author=doc.get("author"),
            pages=doc.get("pages"),
            price=doc.get("price"),
            image=Image.from_document(image_doc) if image_doc else None,
        )


class BookSummary(BaseModel):
    """Flattened listing row: a book plus its image fields."""
    id: int
    title: str
    author: str
    pages: int
    price: float
    image_id: Optional[int] = None
    image_name: Optional[str] = None
    image_url: Optional[str] = None
    image_public_id: Optional[str] = None

    @classmethod
    def from_book(cls, book: Book) -> "BookSummary":
        image = book.image
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            pages=book.pages,
            price=book.price,
            image_id=image.id if image else None,
            image_name=image.name if image else None,
            image_url=image.image_url if image else None,
            image_public_id=image.public_id if image else None,
        )


class BookPage(BaseModel):
    """One zero-indexed page of the book listing."""
    content: List[BookSummary] = Field(..., description="Books on this page")
    page: int = Field(..., description="Current page number (zero-based)")
    size: int = Field(..., description="Requested page size")
    total_elements: int = Field(..., description="Number of matching books")
    total_pages: int = Field(..., description="Number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")
    sort_by: SortField = Field(SortField.TITLE, description="Sort field")
    sort_direction: SortDirection = Field(SortDirection.ASC, description="Sort order")


class MediaFile(BaseModel):
    """An uploaded file on its way to the media store."""
    filename: Optional[str] = None
    content: bytes = b""
    content_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.content

    @property
    def size(self) -> int:
        return len(self.content)


class OrphanReport(BaseModel):
    """Outcome of an orphaned image sweep."""
    checked: int = 0
    removed: int = 0
    failed: List[int] = Field(default_factory=list)
    finished_at: datetime = Field(default_factory=datetime.utcnow)
