"""Repository modules for database operations."""

from chatpipe.db.repositories.store_repository import StoreRepository

__all__ = [
    "StoreRepository",
]
