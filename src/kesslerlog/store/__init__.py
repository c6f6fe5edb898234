"""Remote store access."""

from kesslerlog.store.client import DEFAULT_SCHEMA, Query, StoreClient, StoreError

__all__ = ["DEFAULT_SCHEMA", "Query", "StoreClient", "StoreError"]
