from .base import BackingStore
from .database import MongoConnection

__all__ = ["BackingStore", "MongoConnection"]
