"""Wire adapters and services from settings."""

from dataclasses import dataclass
from typing import Optional

from newsletter_feed.adapters.llm import ClaudeClient
from newsletter_feed.adapters.sources import build_fetchers
from newsletter_feed.adapters.storage import build_store
from newsletter_feed.config import Settings
from newsletter_feed.core import ArticleFetcher, FeedStore, ScoringVariant, SegmentationOracle
from newsletter_feed.use_cases import (
    FeedService,
    FetchAggregator,
    IngestionService,
    PipelineService,
    ScoringService,
    SegmentationService,
)


@dataclass
class Services:
    store: FeedStore
    pipeline: PipelineService
    feed: FeedService


def build_services(
    settings: Settings,
    store: Optional[FeedStore] = None,
    fetchers: Optional[list[ArticleFetcher]] = None,
    oracle: Optional[SegmentationOracle] = None,
) -> Services:
    """Build the service graph; explicit adapters override the configured ones."""
    store = store if store is not None else build_store(settings)
    fetchers = fetchers if fetchers is not None else build_fetchers(settings.sources)
    oracle = oracle if oracle is not None else ClaudeClient(settings)

    scoring = ScoringService(store, variant=ScoringVariant(settings.scoring.variant.lower()))
    segmentation = SegmentationService(
        store=store,
        oracle=oracle,
        prompt_template=settings.prompts.segmentation,
        window_hours=settings.pipeline.batch_window_hours,
        batch_limit=settings.pipeline.batch_limit,
        oracle_timeout=settings.claude.call_timeout,
    )
    ingestion = IngestionService(FetchAggregator(fetchers), store)

    return Services(
        store=store,
        pipeline=PipelineService(ingestion, segmentation, scoring),
        feed=FeedService(
            store,
            scoring,
            window_days=settings.feed.window_days,
            limit=settings.feed.limit,
            hide_dismissed=settings.feed.hide_dismissed,
        ),
    )
