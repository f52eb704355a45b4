"""Core domain layer."""

from newsletter_feed.core.entities import (
    TOPICS,
    ArticleBatch,
    ArticleSegmentLink,
    FetchResult,
    InteractionType,
    ProcessResult,
    RankedSegment,
    RawArticle,
    ReadingTimePreference,
    Segment,
    SegmentDraft,
    UserInteraction,
    UserPreferences,
    UserSegmentScore,
)
from newsletter_feed.core.errors import (
    ContractViolation,
    OracleRejected,
    OracleUnavailable,
    PipelineError,
    StoreError,
)
from newsletter_feed.core.interfaces import ArticleFetcher, FeedStore, SegmentationOracle
from newsletter_feed.core.scoring import ScoringVariant

__all__ = [
    "TOPICS",
    "RawArticle",
    "Segment",
    "SegmentDraft",
    "ArticleBatch",
    "ArticleSegmentLink",
    "UserPreferences",
    "UserInteraction",
    "UserSegmentScore",
    "InteractionType",
    "ReadingTimePreference",
    "RankedSegment",
    "FetchResult",
    "ProcessResult",
    "PipelineError",
    "ContractViolation",
    "OracleRejected",
    "OracleUnavailable",
    "StoreError",
    "ArticleFetcher",
    "SegmentationOracle",
    "FeedStore",
    "ScoringVariant",
]
