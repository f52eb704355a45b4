"""Feed ranking: merge personalization score with intrinsic importance."""

from typing import Iterable, Mapping

from newsletter_feed.core.entities import RankedSegment, Segment

SCORE_WEIGHT = 0.6
IMPORTANCE_WEIGHT = 0.4


def combined_score(score: float, importance_score: float) -> float:
    return score * SCORE_WEIGHT + importance_score * IMPORTANCE_WEIGHT


def rank_feed(
    segments: Iterable[Segment],
    user_scores: Mapping[str, float],
    hidden_segment_ids: Iterable[str] = (),
) -> list[RankedSegment]:
    """Order segments for a user, best first.

    Segments without a stored score fall back to their importance score.
    The sort is stable, so ties keep the order ``segments`` came in.
    """
    hidden = set(hidden_segment_ids)
    ranked: list[RankedSegment] = []

    for segment in segments:
        if segment.id in hidden:
            continue

        personalized = segment.id in user_scores
        score = user_scores[segment.id] if personalized else segment.importance_score
        ranked.append(RankedSegment(
            segment=segment,
            score=score,
            combined_score=combined_score(score, segment.importance_score),
            personalized=personalized,
        ))

    ranked.sort(key=lambda r: r.combined_score, reverse=True)
    return ranked
