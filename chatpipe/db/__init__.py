"""Database module for chatpipe."""

from chatpipe.db.database import Database
from chatpipe.db.stores import PersistentStores

__all__ = [
    "Database",
    "PersistentStores",
]
