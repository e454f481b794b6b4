"""Identity repository implementations."""

from knolib_identity.adapters.auth.memory import InMemoryIdentityRepository
from knolib_identity.adapters.auth.postgres import PostgresIdentityRepository

__all__ = ["InMemoryIdentityRepository", "PostgresIdentityRepository"]
