"""Business logic use cases."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from newsletter_feed.core import (
    TOPICS,
    ArticleBatch,
    ArticleFetcher,
    ContractViolation,
    FeedStore,
    FetchResult,
    InteractionType,
    OracleUnavailable,
    ProcessResult,
    RankedSegment,
    RawArticle,
    ScoringVariant,
    Segment,
    SegmentationOracle,
    UserInteraction,
    UserPreferences,
    UserSegmentScore,
)
from newsletter_feed.core.entities import utcnow
from newsletter_feed.core.ranking import rank_feed
from newsletter_feed.core.scoring import score_segments
from newsletter_feed.core.segmentation import (
    build_article_mapping,
    build_segmentation_prompt,
    build_segments,
    parse_segmentation_response,
    resolve_links,
)

logger = logging.getLogger(__name__)


class FetchAggregator:
    """Run all fetchers concurrently and flatten their results."""

    def __init__(self, fetchers: list[ArticleFetcher]) -> None:
        self.fetchers = fetchers

    async def fetch_all(self) -> list[RawArticle]:
        """Wait for every fetcher to settle; failed fetchers contribute nothing."""
        results = await asyncio.gather(
            *(fetcher.fetch() for fetcher in self.fetchers),
            return_exceptions=True,
        )

        articles: list[RawArticle] = []
        for fetcher, result in zip(self.fetchers, results):
            name = getattr(fetcher, "source", fetcher.__class__.__name__)
            if isinstance(result, BaseException):
                logger.error(f"Fetcher {name} failed: {result}")
                continue
            articles.extend(result)

        logger.info(f"Fetched {len(articles)} articles from {len(self.fetchers)} sources")
        return articles


class IngestionService:
    """Fetch all sources and store new raw articles."""

    def __init__(self, aggregator: FetchAggregator, store: FeedStore) -> None:
        self.aggregator = aggregator
        self.store = store

    async def fetch(self) -> FetchResult:
        articles = await self.aggregator.fetch_all()
        inserted = self.store.upsert_raw_articles(articles) if articles else 0
        logger.info(f"Stored {inserted} new articles ({len(articles) - inserted} already known)")
        return FetchResult(fetched=len(articles), inserted=inserted)


class ScoringService:
    """Compute and persist per-user segment scores."""

    def __init__(
        self,
        store: FeedStore,
        variant: ScoringVariant = ScoringVariant.AUTO,
    ) -> None:
        self.store = store
        self.variant = variant

    def _score_user(self, user: UserPreferences, segments: list[Segment]) -> list[UserSegmentScore]:
        interactions: list[UserInteraction] = []
        if self.variant is not ScoringVariant.BATCH:
            interactions = self.store.get_user_interactions(user.id)

        scores = score_segments(segments, user.topics, interactions, self.variant)
        now = utcnow()
        return [
            UserSegmentScore(user_id=user.id, segment_id=segment_id, score=score, updated_at=now)
            for segment_id, score in scores.items()
        ]

    def score_segments(
        self, segments: list[Segment], users: Optional[Iterable[UserPreferences]] = None
    ) -> int:
        """Score segments for every user, then upsert all rows at once.

        Returns:
            Number of users scored successfully
        """
        if not segments:
            return 0

        users = list(users) if users is not None else self.store.list_user_preferences()
        rows: list[UserSegmentScore] = []
        scored_users = 0

        for user in users:
            try:
                rows.extend(self._score_user(user, segments))
                scored_users += 1
            except Exception as e:
                logger.error(f"Scoring failed for user {user.id}: {e}")
                continue

        self.store.upsert_scores(rows)
        logger.info(f"Scored {len(segments)} segments for {scored_users}/{len(users)} users")
        return scored_users


class SegmentationService:
    """Collapse unprocessed articles into story segments via the oracle."""

    def __init__(
        self,
        store: FeedStore,
        oracle: SegmentationOracle,
        prompt_template: str,
        window_hours: int = 24,
        batch_limit: int = 50,
        oracle_timeout: Optional[float] = None,
        taxonomy: Iterable[str] = TOPICS,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.prompt_template = prompt_template
        self.window_hours = window_hours
        self.batch_limit = batch_limit
        self.oracle_timeout = oracle_timeout
        self.taxonomy = tuple(taxonomy)

    def select_batch(self, now: datetime) -> ArticleBatch:
        since = now - timedelta(hours=self.window_hours)
        articles = self.store.get_unprocessed_articles(since, self.batch_limit)
        return ArticleBatch(tuple(articles))

    async def _ask_oracle(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(self.oracle.complete(prompt), timeout=self.oracle_timeout)
        except asyncio.TimeoutError as e:
            raise OracleUnavailable(f"Oracle did not answer within {self.oracle_timeout}s") from e

    async def segment_pending(self, now: Optional[datetime] = None) -> tuple[ArticleBatch, list[Segment]]:
        """Segment the current batch and commit it.

        Nothing is written unless the oracle answer passes validation.

        Returns:
            Tuple of (batch, committed segments)
        """
        now = now or utcnow()
        batch = self.select_batch(now)

        if not len(batch):
            logger.info("No articles to process")
            return batch, []

        logger.info(f"🧩 Segmenting {len(batch)} articles")
        prompt = build_segmentation_prompt(self.prompt_template, batch)
        response_text = await self._ask_oracle(prompt)

        try:
            drafts = parse_segmentation_response(response_text, self.taxonomy)
        except ContractViolation as e:
            logger.error(f"Oracle contract violation: {e}\nRaw response: {e.raw_preview}")
            raise

        segments = build_segments(batch, drafts, created_at=now)
        links = resolve_links(batch, segments, build_article_mapping(drafts))

        self.store.commit_segmentation(segments, links, batch.article_ids)
        logger.info(f"✓ {len(batch)} articles → {len(segments)} segments, {len(links)} links")
        return batch, segments


class FeedService:
    """Read path: rank recent segments for a user."""

    def __init__(
        self,
        store: FeedStore,
        scoring_service: ScoringService,
        window_days: int = 7,
        limit: int = 50,
        hide_dismissed: bool = True,
    ) -> None:
        self.store = store
        self.scoring_service = scoring_service
        self.window_days = window_days
        self.limit = limit
        self.hide_dismissed = hide_dismissed

    def get_feed(
        self, user_id: str, now: Optional[datetime] = None, refresh: bool = False
    ) -> list[RankedSegment]:
        """Ranked segments from the trailing window.

        With ``refresh`` the user's scores for the window are recomputed first.
        """
        now = now or utcnow()
        segments = self.store.get_recent_segments(now - timedelta(days=self.window_days), self.limit)

        if refresh and segments:
            user = self.store.get_user_preferences(user_id)
            if user is not None:
                self.scoring_service.score_segments(segments, users=[user])

        hidden: set[str] = set()
        if self.hide_dismissed:
            hidden = {
                i.segment_id for i in self.store.get_user_interactions(user_id)
                if i.type is InteractionType.DISMISS
            }

        return rank_feed(segments, self.store.get_user_scores(user_id), hidden)

    def record_interaction(
        self,
        user_id: str,
        segment_id: str,
        interaction_type: InteractionType,
        duration_seconds: Optional[int] = None,
    ) -> UserInteraction:
        interaction = UserInteraction(
            user_id=user_id,
            segment_id=segment_id,
            type=interaction_type,
            duration_seconds=duration_seconds,
        )
        self.store.record_interaction(interaction)
        return interaction


class PipelineService:
    """Entry points invoked by the scheduler."""

    def __init__(
        self,
        ingestion: IngestionService,
        segmentation: SegmentationService,
        scoring: ScoringService,
    ) -> None:
        self.ingestion = ingestion
        self.segmentation = segmentation
        self.scoring = scoring

    async def fetch(self) -> FetchResult:
        return await self.ingestion.fetch()

    async def process(self, now: Optional[datetime] = None) -> ProcessResult:
        batch, segments = await self.segmentation.segment_pending(now)
        scored_users = self.scoring.score_segments(segments)
        return ProcessResult(processed=len(batch), segments=len(segments), scored_users=scored_users)
