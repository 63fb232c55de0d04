#!/usr/bin/env python3
"""
Image Management Utility

This script provides utilities to manage the local image records:
- List all image records
- List orphaned images (records no book points at)
- Clean up orphaned images, remotely and locally
- Show image statistics
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from datetime import timedelta

from catalog.database import CatalogDatabase
from catalog.image_service import ImageService
from catalog.media_store import CloudinaryClient
from utilities.config import config
from utilities.logger import setup_logging


@asynccontextmanager
async def open_catalog():
    """Connect to the database and yield (database, image service)."""
    db = CatalogDatabase(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database
    )
    await db.connect()
    try:
        yield db, ImageService(
            media_store=CloudinaryClient.from_config(config),
            image_repository=db.images,
            book_repository=db.books,
            orphan_grace_period=timedelta(minutes=config.orphan_grace_period_minutes)
        )
    finally:
        await db.disconnect()


def _print_image(index: int, image) -> None:
    print(f"{index:3d}. Image ID: {image.id}")
    print(f"     Name: {image.name}")
    print(f"     URL: {image.image_url}")
    print(f"     Public ID: {image.public_id}")
    print()


async def list_all_images():
    """List all image records in the database."""
    print("\n" + "=" * 80)
    print("📋 ALL IMAGES")
    print("=" * 80)

    try:
        async with open_catalog() as (db, _):
            images = await db.images.find_all()

            if not images:
                print("❌ No images found in database")
                return

            print(f"✅ Found {len(images)} images:")
            print()
            for i, image in enumerate(images, 1):
                _print_image(i, image)

    except Exception as e:
        print(f"❌ Error listing images: {e}")


async def list_orphaned_images():
    """List image records that no book references."""
    print("\n🔍 ORPHANED IMAGES")
    print("=" * 80)

    try:
        async with open_catalog() as (_, image_service):
            orphans = await image_service.find_orphaned_images()

            if not orphans:
                print("ℹ️  No orphaned images found")
                return

            print(f"⚠️  Found {len(orphans)} orphaned images:")
            print()
            for i, image in enumerate(orphans, 1):
                _print_image(i, image)

    except Exception as e:
        print(f"❌ Error finding orphaned images: {e}")


async def cleanup_orphaned_images():
    """Delete orphaned images from the media store and the database."""
    print("\n🧹 CLEANING UP ORPHANED IMAGES")
    print("=" * 80)

    if not config.media_store_configured():
        print("❌ Cloudinary credentials are not set; cannot delete remote images")
        return

    try:
        async with open_catalog() as (_, image_service):
            report = await image_service.cleanup_orphaned_images()

            print(f"📊 Orphaned images found: {report.checked}")
            print(f"🗑️  Images removed: {report.removed}")
            if report.failed:
                print(f"⚠️  Failed to remove: {', '.join(str(i) for i in report.failed)}")
            elif report.removed > 0:
                print("✅ Cleanup completed successfully")
            else:
                print("ℹ️  No orphaned images found")

    except Exception as e:
        print(f"❌ Error during cleanup: {e}")


async def show_statistics():
    """Show book and image statistics."""
    print("\n📊 IMAGE STATISTICS")
    print("=" * 80)

    try:
        async with open_catalog() as (db, image_service):
            book_count = await db.books.count()
            image_count = await db.images.count()
            with_image = len(await db.books.referenced_image_ids())
            orphan_count = len(await image_service.find_orphaned_images())

            print(f"📚 Total Books: {book_count}")
            print(f"🖼️  Total Images: {image_count}")
            print(f"🔗 Books with Images: {with_image}")
            print(f"🗑️  Orphaned Images: {orphan_count}")
            if book_count > 0:
                print(f"📈 Coverage: {with_image / book_count * 100:.1f}%")
            else:
                print("📈 Coverage: 0%")

            if orphan_count > 0:
                print(f"\n⚠️  Warning: {orphan_count} orphaned images found!")
                print("   Run cleanup to remove them.")

    except Exception as e:
        print(f"❌ Error getting statistics: {e}")


COMMANDS = {
    "list": list_all_images,
    "orphans": list_orphaned_images,
    "cleanup": cleanup_orphaned_images,
    "stats": show_statistics,
}


def print_usage():
    print("Usage: python manage_images.py [list|orphans|cleanup|stats]")
    print()
    print("Commands:")
    print("  list     - List all image records")
    print("  orphans  - List images no book references")
    print("  cleanup  - Delete orphaned images (media store and database)")
    print("  stats    - Show image statistics")


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()
    if command not in COMMANDS:
        print(f"❌ Unknown command: {command}")
        print(f"Available commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    await COMMANDS[command]()


if __name__ == "__main__":
    asyncio.run(main())
