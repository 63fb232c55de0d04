"""
FastAPI main application for the Book Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import FastAPI, File, Form, Query, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError

from api.config import config as api_config
from api.errors import register_exception_handlers
from api.models import HealthResponse
from catalog.book_service import BookService
from catalog.database import CatalogDatabase
from catalog.exceptions import (
    BookNotFoundError, MediaStoreError, UnexpectedError, ValidationError
)
from catalog.image_service import ImageService
from catalog.media_store import CloudinaryClient
from catalog.models import Book, BookPage, MediaFile
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global services, wired at startup
catalog_db: Optional[CatalogDatabase] = None
book_service: Optional[BookService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global catalog_db, book_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Book Catalog API")

    try:
        catalog_db = CatalogDatabase(
            connection_url=config.mongodb_url,
            database_name=config.mongodb_database
        )
        await catalog_db.connect()
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    if not config.media_store_configured():
        logger.warning("Cloudinary credentials are not set; image uploads will fail")

    image_service = ImageService(
        media_store=CloudinaryClient.from_config(config),
        image_repository=catalog_db.images,
        book_repository=catalog_db.books,
        orphan_grace_period=timedelta(minutes=config.orphan_grace_period_minutes)
    )
    book_service = BookService(catalog_db.books, image_service)

    yield

    # Shutdown
    logger.info("Shutting down Book Catalog API")
    await catalog_db.disconnect()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    A REST API for managing books and their cover images.

    ## Features

    * **Books**: Create, read, update and delete book records
    * **Cover images**: Upload a cover with a new book or replace it later; images are hosted on Cloudinary
    * **Listing**: Zero-based pagination, sorting by any book field and case-insensitive search on title or author

    ## Errors

    Every failure returns `{status, error, message, timestamp}`.
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)

register_exception_handlers(app)


def _service() -> BookService:
    if book_service is None:
        raise UnexpectedError("Catalog service not available")
    return book_service


async def _read_upload(file: Optional[UploadFile]) -> Optional[MediaFile]:
    if file is None:
        return None
    try:
        content = await file.read()
    except OSError as e:
        raise ValidationError("Error processing file") from e
    return MediaFile(filename=file.filename, content=content, content_type=file.content_type)


async def _require_book(book_id: int) -> Book:
    book = await _service().get_book_by_id(book_id)
    if book is None:
        raise BookNotFoundError(book_id)
    return book


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if catalog_db:
        health_info = await catalog_db.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status,
        media_store_configured=config.media_store_configured()
    )


# Books endpoints
@app.post("/book", response_model=Book, tags=["Books"])
async def create_book(
    book: str = Form(..., description="Book as JSON"),
    file: Optional[UploadFile] = File(None, description="Optional cover image")
):
    """
    Create a book, optionally with a cover image.

    - **book**: JSON with title, author, pages and price
    - **file**: Cover image to upload before the book is stored
    """
    try:
        draft = Book.model_validate_json(book)
    except PydanticValidationError as e:
        raise ValidationError("Invalid book JSON format") from e

    media_file = await _read_upload(file)

    try:
        return await _service().create_book(draft, media_file)
    except MediaStoreError as e:
        raise ValidationError("Error processing file") from e


@app.put("/book/{book_id}/image", response_model=Book, tags=["Books"])
async def replace_book_image(
    book_id: int,
    file: UploadFile = File(..., description="New cover image")
):
    """
    Replace the cover image of a book.

    The new image is uploaded before the previous one is deleted.
    """
    book = await _require_book(book_id)

    media_file = await _read_upload(file)
    if media_file is None or media_file.is_empty:
        raise ValidationError("File is empty or missing")

    return await _service().replace_image(media_file, book)


@app.put("/book", response_model=Book, tags=["Books"])
async def update_book(book: Book):
    """
    Update the fields of an existing book.

    id, title, author, pages (>= 0) and price (>= 0) are all required.
    The cover image is not changed.
    """
    return await _service().update_book(book)


@app.get("/book", response_model=BookPage, tags=["Books"])
async def list_books(
    page: int = Query(0, description="Page number (starts from 0)"),
    size: int = Query(
        api_config.default_page_size,
        le=api_config.max_page_size,
        description="Items per page"
    ),
    query: Optional[str] = Query(None, description="Search in title or author"),
    sort_by: str = Query(
        api_config.default_sort_by,
        alias="sortBy",
        description="Sort field (id, title, author, pages, price)"
    ),
    sort_direction: str = Query(
        api_config.default_sort_direction,
        alias="sortDirection",
        description="Sort order (ASC, DESC)"
    )
):
    """
    Get books with search, sorting and pagination.
    """
    return await _service().list_books(
        page=page,
        size=size,
        sort_by=sort_by,
        sort_direction=sort_direction,
        query=query
    )


@app.get("/book/{book_id}", response_model=Book, tags=["Books"])
async def get_book(book_id: int):
    """Get a single book by ID."""
    return await _require_book(book_id)


@app.delete("/book/{book_id}", tags=["Books"])
async def delete_book(book_id: int):
    """Delete a book and its cover image."""
    book = await _require_book(book_id)
    await _service().delete_book(book)
    return Response(status_code=200)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
