"""Persistence layer.

Provides SQLite database management and the typed read/write store for
coin price submissions and calculation history.
"""

from gifter.data.database import GifterDatabase
from gifter.data.store import GifterStore

__all__ = [
    "GifterDatabase",
    "GifterStore",
]
