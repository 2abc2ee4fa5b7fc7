"""Error types shared by the index builder, search engine and query adapters."""

from typing import Optional


class ShopSearchError(Exception):
    """Base class for catalog search errors."""


class ConfigError(ShopSearchError):
    """Invalid or unknown field, facet, sort or virtual field reference. Not retried."""


class RecordComputeError(ShopSearchError):
    """A single record's virtual field source failed while building the index."""
    def __init__(self, record_id: object, field_name: str, cause: Optional[Exception] = None):
        self.record_id = record_id
        self.field_name = field_name
        self.cause = cause
        super().__init__(f"[{field_name}] record {record_id}: {cause}")


class AdapterError(ShopSearchError):
    """Backing store failure. Raised by query adapters and never masked by the core."""
