"""
Runtime settings read from the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    environment: str = "dev"
    port: int = 8080
    database_url: str | None = None  # None = in-memory store
    lookup_timeout: float = 5.0  # seconds
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            port=int(os.environ.get("PORT", 8080)),
            database_url=os.environ.get("DATABASE_URL") or None,
            lookup_timeout=float(os.environ.get("LOOKUP_TIMEOUT", 5)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def create_store(settings: Settings):
    """Build the storage handle injected into the processor."""
    if settings.database_url:
        from .db import SqlStore

        return SqlStore.from_url(settings.database_url, timeout=settings.lookup_timeout)

    from .storage import InMemoryStore

    return InMemoryStore()
