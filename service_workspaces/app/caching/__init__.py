"""
Workspaces caching package.

Holds the named query cache shared by every view. Entries are never
edited optimistically; writes invalidate and the cache refetches.
"""

from .query_cache import (
    FreshnessPolicy,
    NamedQueryCache,
    QueryEntry,
    QueryResult,
    QueryStatus,
    QuerySubscription,
)

__all__ = [
    "FreshnessPolicy",
    "NamedQueryCache",
    "QueryEntry",
    "QueryResult",
    "QueryStatus",
    "QuerySubscription",
]
