"""
Catalog package: book records and their cover images.

This package contains:
- Domain models for books, images and listing pages
- MongoDB repositories for books and image rows
- Cloudinary media store client
- Image record and book catalog services
"""

__version__ = "1.0.0"
