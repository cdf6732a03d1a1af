"""
Cache package for the Order Service.

Provides the in-process order cache that the ingestion pipeline writes after
each persisted order and the read API consults before the database.
"""

from .order_cache import OrderCache

__all__ = ["OrderCache"]
