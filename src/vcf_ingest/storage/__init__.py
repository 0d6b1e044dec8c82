"""Storage port and adapters for genes and variants."""

from .base import StoreSession, VariantStore
from .cached import CachedVariantStore, GeneCache
from .memory import InMemoryVariantStore
from .postgres import PostgresVariantStore
from .schema import SchemaManager

__all__ = [
    "CachedVariantStore",
    "GeneCache",
    "InMemoryVariantStore",
    "PostgresVariantStore",
    "SchemaManager",
    "StoreSession",
    "VariantStore",
]
