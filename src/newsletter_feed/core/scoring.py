"""Personalization scoring functions.

Two formulas are available as named variants:

- ``batch``: computed when a processing run creates new segments,
  ``importance * 0.6 + topic_match * 0.4``.
- ``engagement``: takes the user's interaction history into account,
  ``0.5 + topic_match * 0.4 + 0.2 (click/save) - 0.3 (dismiss)``.

All scores are clamped to [0, 1].
"""

from enum import Enum
from typing import Iterable

from newsletter_feed.core.entities import InteractionType, Segment, UserInteraction

BATCH_IMPORTANCE_WEIGHT = 0.6
BATCH_TOPIC_WEIGHT = 0.4

ENGAGEMENT_BASE = 0.5
ENGAGEMENT_TOPIC_WEIGHT = 0.4
POSITIVE_BOOST = 0.2
NEGATIVE_PENALTY = 0.3

POSITIVE_INTERACTIONS = frozenset({InteractionType.CLICK, InteractionType.SAVE})
NEGATIVE_INTERACTIONS = frozenset({InteractionType.DISMISS})


class ScoringVariant(str, Enum):
    """Which scoring formula to apply."""

    BATCH = "batch"
    ENGAGEMENT = "engagement"
    AUTO = "auto"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def topic_match_ratio(segment_topics: Iterable[str], user_topics: Iterable[str]) -> float:
    """Share of the segment's topics the user follows."""
    segment_topics = set(segment_topics)
    overlap = segment_topics & set(user_topics)
    return len(overlap) / max(len(segment_topics), 1)


def batch_score(segment: Segment, user_topics: Iterable[str]) -> float:
    """Blend of intrinsic importance and topic overlap."""
    ratio = topic_match_ratio(segment.topics, user_topics)
    return clamp(segment.importance_score * BATCH_IMPORTANCE_WEIGHT + ratio * BATCH_TOPIC_WEIGHT)


class EngagementHistory:
    """Segments a user engaged with positively or negatively."""

    def __init__(self, interactions: Iterable[UserInteraction]) -> None:
        self.positive: set[str] = set()
        self.negative: set[str] = set()

        for interaction in interactions:
            if interaction.type in POSITIVE_INTERACTIONS:
                self.positive.add(interaction.segment_id)
            elif interaction.type in NEGATIVE_INTERACTIONS:
                self.negative.add(interaction.segment_id)

    def __bool__(self) -> bool:
        return bool(self.positive or self.negative)


def engagement_score(
    segment: Segment, user_topics: Iterable[str], history: EngagementHistory
) -> float:
    """Topic overlap plus boosts/penalties from past interactions."""
    score = ENGAGEMENT_BASE + topic_match_ratio(segment.topics, user_topics) * ENGAGEMENT_TOPIC_WEIGHT

    if segment.id in history.positive:
        score += POSITIVE_BOOST
    if segment.id in history.negative:
        score -= NEGATIVE_PENALTY

    return clamp(score)


def resolve_variant(variant: ScoringVariant, interactions: list[UserInteraction]) -> ScoringVariant:
    """Pick the concrete formula for a user; ``auto`` depends on history."""
    if variant is not ScoringVariant.AUTO:
        return variant
    return ScoringVariant.ENGAGEMENT if interactions else ScoringVariant.BATCH


def score_segments(
    segments: Iterable[Segment],
    user_topics: Iterable[str],
    interactions: list[UserInteraction],
    variant: ScoringVariant = ScoringVariant.AUTO,
) -> dict[str, float]:
    """Score segments for one user, keyed by segment id."""
    user_topics = set(user_topics)

    if resolve_variant(variant, interactions) is ScoringVariant.ENGAGEMENT:
        history = EngagementHistory(interactions)
        return {
            segment.id: engagement_score(segment, user_topics, history)
            for segment in segments
        }

    return {segment.id: batch_score(segment, user_topics) for segment in segments}
