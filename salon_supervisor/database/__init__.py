from .collection import SQLiteCollection, Filter

__all__ = [
    "SQLiteCollection",
    "Filter",
]
