"""In-process store used for local runs and tests."""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional

from newsletter_feed.core import (
    ArticleSegmentLink,
    FeedStore,
    RawArticle,
    Segment,
    StoreError,
    UserInteraction,
    UserPreferences,
    UserSegmentScore,
)

logger = logging.getLogger(__name__)


class InMemoryFeedStore(FeedStore):
    """Dictionary-backed store with the same contracts as the database tables."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.articles: dict[str, RawArticle] = {}
        self._article_ids_by_url: dict[str, str] = {}
        self.segments: list[Segment] = []
        self.links: list[ArticleSegmentLink] = []
        self.preferences: dict[str, UserPreferences] = {}
        self.interactions: list[UserInteraction] = []
        self.scores: dict[tuple[str, str], UserSegmentScore] = {}

    def upsert_raw_articles(self, articles: list[RawArticle]) -> int:
        """Insert articles, ignoring URL conflicts."""
        inserted = 0

        with self._lock:
            for article in articles:
                if article.url in self._article_ids_by_url:
                    continue

                article_id = str(uuid.uuid4())
                self.articles[article_id] = replace(article, id=article_id, processed=False)
                self._article_ids_by_url[article.url] = article_id
                inserted += 1

        return inserted

    def get_unprocessed_articles(self, fetched_since: datetime, limit: int) -> list[RawArticle]:
        with self._lock:
            candidates = [
                a for a in self.articles.values()
                if not a.processed and a.fetched_at >= fetched_since
            ]
        candidates.sort(key=lambda a: a.fetched_at, reverse=True)
        return candidates[:limit]

    def commit_segmentation(
        self,
        segments: list[Segment],
        links: list[ArticleSegmentLink],
        article_ids: list[str],
    ) -> None:
        """Apply segments, links and processed flags atomically."""
        with self._lock:
            # Validate everything before the first write
            existing_ids = {s.id for s in self.segments}
            new_ids = {s.id for s in segments}
            if len(new_ids) != len(segments) or existing_ids & new_ids:
                raise StoreError("Duplicate segment id in commit")

            for link in links:
                if link.segment_id not in new_ids:
                    raise StoreError(f"Link references segment {link.segment_id} outside this batch")
                if link.article_id not in self.articles:
                    raise StoreError(f"Link references unknown article {link.article_id}")

            for article_id in article_ids:
                article = self.articles.get(article_id)
                if article is None:
                    raise StoreError(f"Unknown article {article_id}")
                if article.processed:
                    raise StoreError(f"Article {article_id} was already processed")

            self.segments.extend(segments)
            self.links.extend(links)
            for article_id in article_ids:
                self.articles[article_id] = replace(self.articles[article_id], processed=True)

        logger.debug(f"Committed {len(segments)} segments, {len(links)} links")

    def get_recent_segments(self, created_since: datetime, limit: int) -> list[Segment]:
        with self._lock:
            recent = [s for s in self.segments if s.created_at >= created_since]
        recent.sort(key=lambda s: s.created_at, reverse=True)
        return recent[:limit]

    def list_user_preferences(self) -> list[UserPreferences]:
        with self._lock:
            return list(self.preferences.values())

    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        with self._lock:
            return self.preferences.get(user_id)

    def save_user_preferences(self, preferences: UserPreferences) -> None:
        with self._lock:
            self.preferences[preferences.id] = preferences

    def record_interaction(self, interaction: UserInteraction) -> None:
        with self._lock:
            self.interactions.append(interaction)

    def get_user_interactions(self, user_id: str) -> list[UserInteraction]:
        with self._lock:
            return [i for i in self.interactions if i.user_id == user_id]

    def upsert_scores(self, scores: list[UserSegmentScore]) -> None:
        with self._lock:
            for score in scores:
                self.scores[(score.user_id, score.segment_id)] = score

    def get_user_scores(self, user_id: str) -> dict[str, float]:
        with self._lock:
            return {
                segment_id: row.score
                for (owner, segment_id), row in self.scores.items()
                if owner == user_id
            }
