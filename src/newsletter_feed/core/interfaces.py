"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from newsletter_feed.core.entities import (
    ArticleSegmentLink,
    RawArticle,
    Segment,
    UserInteraction,
    UserPreferences,
    UserSegmentScore,
)


class ArticleFetcher(ABC):
    """Interface for fetching articles from a single source."""

    source: str

    @abstractmethod
    async def fetch(self) -> list[RawArticle]:
        """Fetch normalized articles. Must not raise."""
        pass


class SegmentationOracle(ABC):
    """Interface for the language model that clusters articles into segments."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send prompt and return the raw response text."""
        pass


class FeedStore(ABC):
    """Interface for the persistent table store."""

    @abstractmethod
    def upsert_raw_articles(self, articles: list[RawArticle]) -> int:
        """Insert articles, ignoring URL conflicts. Returns number inserted."""
        pass

    @abstractmethod
    def get_unprocessed_articles(self, fetched_since: datetime, limit: int) -> list[RawArticle]:
        """Get unprocessed articles fetched after ``fetched_since``, newest first."""
        pass

    @abstractmethod
    def commit_segmentation(
        self,
        segments: list[Segment],
        links: list[ArticleSegmentLink],
        article_ids: list[str],
    ) -> None:
        """Persist segments and links, then mark articles processed."""
        pass

    @abstractmethod
    def get_recent_segments(self, created_since: datetime, limit: int) -> list[Segment]:
        """Get segments created after ``created_since``, newest first."""
        pass

    @abstractmethod
    def list_user_preferences(self) -> list[UserPreferences]:
        """Get preferences of all users."""
        pass

    @abstractmethod
    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        """Get preferences of one user."""
        pass

    @abstractmethod
    def save_user_preferences(self, preferences: UserPreferences) -> None:
        """Create or replace preferences of one user."""
        pass

    @abstractmethod
    def record_interaction(self, interaction: UserInteraction) -> None:
        """Append an interaction event."""
        pass

    @abstractmethod
    def get_user_interactions(self, user_id: str) -> list[UserInteraction]:
        """Get all interactions of one user."""
        pass

    @abstractmethod
    def upsert_scores(self, scores: list[UserSegmentScore]) -> None:
        """Insert or replace scores keyed by (user_id, segment_id)."""
        pass

    @abstractmethod
    def get_user_scores(self, user_id: str) -> dict[str, float]:
        """Get stored scores of one user keyed by segment id."""
        pass
