"""Persistent store adapters."""

from newsletter_feed.adapters.storage.memory_store import InMemoryFeedStore
from newsletter_feed.config import Settings
from newsletter_feed.core import FeedStore


def build_store(settings: Settings) -> FeedStore:
    """Create the store selected by ``store.backend``."""
    backend = settings.store.backend.lower()

    if backend == "memory":
        return InMemoryFeedStore()

    if backend == "supabase":
        # Imported lazily so the memory backend works without supabase credentials
        from newsletter_feed.adapters.storage.supabase_store import SupabaseFeedStore
        return SupabaseFeedStore(settings)

    raise ValueError(f"Unknown store backend: {settings.store.backend}")


__all__ = ["InMemoryFeedStore", "build_store"]
