"""
MongoDB persistence for the catalog.
Handles the connection, indexing, id sequences and CRUD operations for
books and image rows.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure

from .models import Book, Image, SortDirection, SortField

logger = structlog.get_logger(__name__)

BOOKS_COLLECTION = "books"
IMAGES_COLLECTION = "images"
COUNTERS_COLLECTION = "counters"


async def next_sequence(database: AsyncIOMotorDatabase, name: str) -> int:
    """
    Atomically increment and return the id sequence for ``name``.

    Sequences live in the counters collection, one document per
    collection, so identifiers are small integers assigned by the store.
    """
    counter = await database[COUNTERS_COLLECTION].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["seq"])


def build_search_filter(query: Optional[str]) -> Dict[str, Any]:
    """Case-insensitive literal substring match on title or author."""
    if not query:
        return {}
    pattern = {"$regex": re.escape(query), "$options": "i"}
    return {"$or": [{"title": pattern}, {"author": pattern}]}


class BookRepository:
    """Book documents keyed by integer id, with the cover image embedded."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection = database[BOOKS_COLLECTION]

    async def insert(self, book: Book) -> Book:
        """Store a new book and return it with its assigned id."""
        try:
            book_id = await next_sequence(self.database, BOOKS_COLLECTION)
            stored = book.model_copy(update={"id": book_id})
            await self.collection.insert_one(stored.to_document())
            logger.debug("Inserted book", book_id=book_id, title=stored.title)
            return stored
        except Exception as e:
            logger.error("Failed to insert book", title=book.title, error=str(e))
            raise

    async def update_fields(self, book: Book) -> Optional[Book]:
        """
        Replace title, author, pages and price of a stored book.

        The embedded image is left untouched.

        Returns:
            The updated book, or None if no book has this id
        """
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": book.id},
                {"$set": {
                    "title": book.title,
                    "author": book.author,
                    "pages": book.pages,
                    "price": book.price,
                }},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                logger.warning("Book not found for update", book_id=book.id)
                return None
            return Book.from_document(doc)
        except Exception as e:
            logger.error("Failed to update book", book_id=book.id, error=str(e))
            raise

    async def set_image(self, book_id: int, image: Optional[Image]) -> Optional[Book]:
        """Point a book at ``image`` and return the updated book."""
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": book_id},
                {"$set": {"image": image.to_document() if image else None}},
                return_document=ReturnDocument.AFTER,
            )
            return Book.from_document(doc) if doc else None
        except Exception as e:
            logger.error("Failed to set book image", book_id=book_id, error=str(e))
            raise

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        try:
            doc = await self.collection.find_one({"_id": book_id})
            return Book.from_document(doc) if doc else None
        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

    async def search(
        self,
        query: Optional[str],
        skip: int,
        limit: int,
        sort_field: SortField = SortField.TITLE,
        sort_direction: SortDirection = SortDirection.ASC,
    ) -> Tuple[List[Book], int]:
        """
        Get one slice of the books matching ``query``.

        Args:
            query: Substring to look for in title or author; empty for all
            skip: Number of matching books to skip
            limit: Maximum number of books to return
            sort_field: Field to order by
            sort_direction: Ascending or descending

        Returns:
            Tuple of (books in the slice, total number of matching books)
        """
        try:
            filter_query = build_search_filter(query)
            sort_query = [(sort_field.document_key, sort_direction.mongo_order)]
            if sort_field is not SortField.ID:
                # Keeps page boundaries stable when sort keys tie
                sort_query.append(("_id", 1))

            total = await self.collection.count_documents(filter_query)
            cursor = self.collection.find(filter_query).sort(sort_query).skip(skip).limit(limit)
            docs = await cursor.to_list(length=limit)

            return [Book.from_document(doc) for doc in docs], total
        except Exception as e:
            logger.error("Failed to search books", query=query, error=str(e))
            raise

    async def delete_by_id(self, book_id: int) -> bool:
        try:
            result = await self.collection.delete_one({"_id": book_id})
            if result.deleted_count > 0:
                logger.debug("Deleted book", book_id=book_id)
                return True
            logger.warning("Book not found for deletion", book_id=book_id)
            return False
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

    async def referenced_image_ids(self) -> Set[int]:
        """Ids of all image rows some book currently points at."""
        try:
            ids = await self.collection.distinct("image.id")
            return {int(i) for i in ids if i is not None}
        except Exception as e:
            logger.error("Failed to collect referenced image ids", error=str(e))
            raise

    async def count(self) -> int:
        return await self.collection.count_documents({})


class ImageRepository:
    """Local rows mirroring the assets stored in the media store."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection = database[IMAGES_COLLECTION]

    async def save(self, image: Image) -> Image:
        """Store a new image row and return it with its assigned id."""
        try:
            image_id = await next_sequence(self.database, IMAGES_COLLECTION)
            stored = image.model_copy(update={"id": image_id})
            await self.collection.insert_one({
                "_id": image_id,
                "name": stored.name,
                "image_url": stored.image_url,
                "public_id": stored.public_id,
                "created_at": datetime.utcnow(),
            })
            logger.debug("Saved image row", image_id=image_id, public_id=stored.public_id)
            return stored
        except Exception as e:
            logger.error("Failed to save image row", public_id=image.public_id, error=str(e))
            raise

    async def find_all(self, created_before: Optional[datetime] = None) -> List[Image]:
        """Every image row, oldest id first; optionally only rows created before a cutoff."""
        query = {"created_at": {"$lt": created_before}} if created_before else {}
        try:
            images = []
            async for doc in self.collection.find(query).sort("_id", 1):
                images.append(Image.from_document(doc))
            return images
        except Exception as e:
            logger.error("Failed to list image rows", error=str(e))
            raise

    async def delete_by_id(self, image_id: Optional[int]) -> bool:
        try:
            result = await self.collection.delete_one({"_id": image_id})
            if result.deleted_count > 0:
                logger.debug("Deleted image row", image_id=image_id)
                return True
            logger.warning("Image row not found for deletion", image_id=image_id)
            return False
        except Exception as e:
            logger.error("Failed to delete image row", image_id=image_id, error=str(e))
            raise

    async def count(self) -> int:
        return await self.collection.count_documents({})


class CatalogDatabase:
    """
    Async MongoDB manager for the catalog.
    Owns the client and hands out the book and image repositories.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize the manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.books: Optional[BookRepository] = None
        self.images: Optional[ImageRepository] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            self.books = BookRepository(self.database)
            self.images = ImageRepository(self.database)
            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        try:
            books = self.database[BOOKS_COLLECTION]
            await books.create_index("title")
            await books.create_index("author")
            await books.create_index("image.id")
            await self.database[IMAGES_COLLECTION].create_index("public_id")
            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "books_count": await self.books.count(),
                "images_count": await self.images.count(),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }
