"""
FastAPI RESTful API for the Book Catalog.

This module provides a REST API for:
- Creating, updating and deleting books
- Attaching and replacing cover images
- Paginated, sorted and searchable book listings
"""
