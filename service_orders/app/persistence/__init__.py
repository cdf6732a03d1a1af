"""
Persistence package for the Order Service.

Two interchangeable order stores: PostgreSQL (asyncpg) for production and an
in-memory store for local runs and tests.
"""

from .memory import InMemoryOrderStore
from .postgres import PostgreSQLOrderStore

__all__ = ["InMemoryOrderStore", "PostgreSQLOrderStore"]
