"""Supabase (PostgREST) backed store."""

import logging
from datetime import datetime
from typing import Any, Optional

from supabase import Client, create_client

from newsletter_feed.config import Settings
from newsletter_feed.core import (
    ArticleSegmentLink,
    FeedStore,
    InteractionType,
    RawArticle,
    ReadingTimePreference,
    Segment,
    StoreError,
    UserInteraction,
    UserPreferences,
    UserSegmentScore,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SupabaseFeedStore(FeedStore):
    """Store backed by the Supabase tables of the feed schema."""

    def __init__(self, settings: Settings, client: Optional[Client] = None) -> None:
        if client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
            client = create_client(settings.supabase_url, settings.supabase_key)

        self.supabase: Client = client
        logger.info("✅  SupabaseFeedStore initialized")

    def _execute(self, query: Any, action: str) -> Any:
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"❌  Supabase failed to {action}: {e}")
            raise StoreError(f"Failed to {action}: {e}") from e

    # Raw articles

    def upsert_raw_articles(self, articles: list[RawArticle]) -> int:
        rows_by_url: dict[str, dict] = {}
        for article in articles:
            rows_by_url.setdefault(article.url, {
                "source": article.source,
                "title": article.title,
                "content": article.content,
                "url": article.url,
                "published_at": article.published_at.isoformat() if article.published_at else None,
                "fetched_at": article.fetched_at.isoformat(),
                "processed": False,
            })

        if not rows_by_url:
            return 0

        response = self._execute(
            self.supabase.table("raw_articles").upsert(
                list(rows_by_url.values()), on_conflict="url", ignore_duplicates=True
            ),
            "insert raw articles",
        )
        return len(response.data or [])

    def get_unprocessed_articles(self, fetched_since: datetime, limit: int) -> list[RawArticle]:
        response = self._execute(
            self.supabase.table("raw_articles")
            .select("*")
            .eq("processed", False)
            .gte("fetched_at", fetched_since.isoformat())
            .order("fetched_at", desc=True)
            .limit(limit),
            "select unprocessed articles",
        )
        return [
            RawArticle(
                id=row["id"],
                source=row["source"],
                title=row["title"],
                content=row.get("content") or "",
                url=row["url"],
                published_at=_parse_timestamp(row.get("published_at")),
                fetched_at=_parse_timestamp(row["fetched_at"]),
                processed=row["processed"],
            )
            for row in response.data or []
        ]

    # Segments

    def commit_segmentation(
        self,
        segments: list[Segment],
        links: list[ArticleSegmentLink],
        article_ids: list[str],
    ) -> None:
        """Write segments, links and processed flags.

        PostgREST offers no multi-statement transaction, so a failure after
        the segment insert deletes the segments written by this call.
        """
        segment_ids = [s.id for s in segments]

        if segments:
            self._execute(
                self.supabase.table("segments").insert([self._segment_row(s) for s in segments]),
                "insert segments",
            )

        try:
            if links:
                self._execute(
                    self.supabase.table("article_segments").insert([
                        {"article_id": link.article_id, "segment_id": link.segment_id}
                        for link in links
                    ]),
                    "insert article links",
                )

            if article_ids:
                # Only unprocessed rows flip, so a concurrent run over the same batch loses here
                response = self._execute(
                    self.supabase.table("raw_articles")
                    .update({"processed": True})
                    .in_("id", article_ids)
                    .eq("processed", False),
                    "mark articles processed",
                )
                flipped = len(response.data or [])
                if flipped != len(article_ids):
                    raise StoreError(
                        f"Only {flipped} of {len(article_ids)} articles were still unprocessed"
                    )
        except StoreError:
            if segment_ids:
                logger.warning(f"🧹  Rolling back {len(segment_ids)} segments")
                self._execute(
                    self.supabase.table("article_segments").delete().in_("segment_id", segment_ids),
                    "roll back article links",
                )
                self._execute(
                    self.supabase.table("segments").delete().in_("id", segment_ids),
                    "roll back segments",
                )
            raise

    def get_recent_segments(self, created_since: datetime, limit: int) -> list[Segment]:
        response = self._execute(
            self.supabase.table("segments")
            .select("*")
            .gte("created_at", created_since.isoformat())
            .order("created_at", desc=True)
            .limit(limit),
            "select recent segments",
        )
        return [
            Segment(
                id=row["id"],
                title=row["title"],
                summary=row.get("summary") or "",
                content=row.get("content") or "",
                topics=tuple(row.get("topics") or []),
                importance_score=float(row["importance_score"]),
                source_urls=tuple(row.get("source_urls") or []),
                source_names=tuple(row.get("source_names") or []),
                created_at=_parse_timestamp(row["created_at"]),
            )
            for row in response.data or []
        ]

    @staticmethod
    def _segment_row(segment: Segment) -> dict:
        return {
            "id": segment.id,
            "title": segment.title,
            "summary": segment.summary,
            "content": segment.content,
            "topics": list(segment.topics),
            "importance_score": segment.importance_score,
            "source_urls": list(segment.source_urls),
            "source_names": list(segment.source_names),
            "created_at": segment.created_at.isoformat(),
        }

    # Users

    def list_user_preferences(self) -> list[UserPreferences]:
        response = self._execute(
            self.supabase.table("user_preferences").select("*"),
            "select user preferences",
        )
        return [self._preferences_from_row(row) for row in response.data or []]

    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        response = self._execute(
            self.supabase.table("user_preferences").select("*").eq("id", user_id),
            "select user preferences",
        )
        if response.data:
            return self._preferences_from_row(response.data[0])
        return None

    def save_user_preferences(self, preferences: UserPreferences) -> None:
        self._execute(
            self.supabase.table("user_preferences").upsert({
                "id": preferences.id,
                "display_name": preferences.display_name,
                "topics": sorted(preferences.topics),
                "sources": sorted(preferences.sources),
                "reading_time_preference": preferences.reading_time_preference.value,
            }),
            "save user preferences",
        )

    @staticmethod
    def _preferences_from_row(row: dict) -> UserPreferences:
        return UserPreferences(
            id=row["id"],
            display_name=row.get("display_name"),
            topics=frozenset(row.get("topics") or []),
            sources=frozenset(row.get("sources") or []),
            reading_time_preference=ReadingTimePreference(row.get("reading_time_preference") or "medium"),
        )

    def record_interaction(self, interaction: UserInteraction) -> None:
        self._execute(
            self.supabase.table("user_interactions").insert({
                "user_id": interaction.user_id,
                "segment_id": interaction.segment_id,
                "interaction_type": interaction.type.value,
                "duration_seconds": interaction.duration_seconds,
                "created_at": interaction.created_at.isoformat(),
            }),
            "record interaction",
        )

    def get_user_interactions(self, user_id: str) -> list[UserInteraction]:
        response = self._execute(
            self.supabase.table("user_interactions").select("*").eq("user_id", user_id),
            "select user interactions",
        )
        return [
            UserInteraction(
                user_id=row["user_id"],
                segment_id=row["segment_id"],
                type=InteractionType(row["interaction_type"]),
                created_at=_parse_timestamp(row["created_at"]),
                duration_seconds=row.get("duration_seconds"),
            )
            for row in response.data or []
        ]

    # Scores

    def upsert_scores(self, scores: list[UserSegmentScore]) -> None:
        if not scores:
            return

        self._execute(
            self.supabase.table("user_segment_scores").upsert(
                [
                    {
                        "user_id": s.user_id,
                        "segment_id": s.segment_id,
                        "score": s.score,
                        "updated_at": s.updated_at.isoformat(),
                    }
                    for s in scores
                ],
                on_conflict="user_id,segment_id",
            ),
            "upsert scores",
        )

    def get_user_scores(self, user_id: str) -> dict[str, float]:
        response = self._execute(
            self.supabase.table("user_segment_scores").select("segment_id, score").eq("user_id", user_id),
            "select user scores",
        )
        return {row["segment_id"]: float(row["score"]) for row in response.data or []}
