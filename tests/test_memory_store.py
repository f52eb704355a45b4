"""Tests for the in-memory store."""

from datetime import datetime, timedelta, timezone

import pytest

from newsletter_feed.adapters.storage import InMemoryFeedStore
from newsletter_feed.core import (
    ArticleSegmentLink,
    RawArticle,
    Segment,
    StoreError,
    UserSegmentScore,
)

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def _article(url: str, fetched_at: datetime = NOW) -> RawArticle:
    return RawArticle(source="rundown", title=url, content="", url=url, fetched_at=fetched_at)


def _segment(segment_id: str, created_at: datetime = NOW) -> Segment:
    return Segment(
        id=segment_id,
        title=segment_id,
        summary="",
        content="",
        topics=(),
        importance_score=0.5,
        source_urls=(),
        source_names=(),
        created_at=created_at,
    )


@pytest.fixture
def store() -> InMemoryFeedStore:
    """Create empty store."""
    return InMemoryFeedStore()


def test_upsert_ignores_duplicate_urls(store: InMemoryFeedStore) -> None:
    """Test URL conflicts are ignored, within and across calls."""
    assert store.upsert_raw_articles([_article("https://a"), _article("https://a")]) == 1
    assert store.upsert_raw_articles([_article("https://a"), _article("https://b")]) == 1
    assert len(store.articles) == 2


def test_upsert_assigns_ids(store: InMemoryFeedStore) -> None:
    """Test stored articles get ids and start unprocessed."""
    store.upsert_raw_articles([_article("https://a")])

    article = store.get_unprocessed_articles(NOW - timedelta(hours=1), 10)[0]
    assert article.id
    assert article.processed is False


def test_unprocessed_respects_window_and_limit(store: InMemoryFeedStore) -> None:
    """Test selection is newest first within the window."""
    store.upsert_raw_articles([
        _article("https://old", NOW - timedelta(hours=30)),
        _article("https://mid", NOW - timedelta(hours=2)),
        _article("https://new", NOW - timedelta(hours=1)),
    ])

    selected = store.get_unprocessed_articles(NOW - timedelta(hours=24), 1)

    assert [a.url for a in selected] == ["https://new"]


def test_commit_marks_processed_and_links(store: InMemoryFeedStore) -> None:
    """Test commit writes segments, links and processed flags."""
    store.upsert_raw_articles([_article("https://a")])
    article_id = next(iter(store.articles))

    store.commit_segmentation(
        [_segment("s1")],
        [ArticleSegmentLink(article_id=article_id, segment_id="s1")],
        [article_id],
    )

    assert [s.id for s in store.segments] == ["s1"]
    assert store.links == [ArticleSegmentLink(article_id=article_id, segment_id="s1")]
    assert store.articles[article_id].processed is True
    assert store.get_unprocessed_articles(NOW - timedelta(hours=1), 10) == []


def test_commit_is_all_or_nothing(store: InMemoryFeedStore) -> None:
    """Test an invalid link leaves the store untouched."""
    store.upsert_raw_articles([_article("https://a")])
    article_id = next(iter(store.articles))

    with pytest.raises(StoreError):
        store.commit_segmentation(
            [_segment("s1")],
            [ArticleSegmentLink(article_id="missing", segment_id="s1")],
            [article_id],
        )

    assert store.segments == []
    assert store.links == []
    assert store.articles[article_id].processed is False


def test_commit_rejects_already_processed(store: InMemoryFeedStore) -> None:
    """Test a batch cannot be committed twice."""
    store.upsert_raw_articles([_article("https://a")])
    article_id = next(iter(store.articles))
    store.commit_segmentation([_segment("s1")], [], [article_id])

    with pytest.raises(StoreError, match="already processed"):
        store.commit_segmentation([_segment("s2")], [], [article_id])

    assert [s.id for s in store.segments] == ["s1"]


def test_recent_segments_window(store: InMemoryFeedStore) -> None:
    """Test segments are returned newest first inside the window."""
    store.commit_segmentation([
        _segment("old", NOW - timedelta(days=8)),
        _segment("older", NOW - timedelta(days=2)),
        _segment("newest", NOW),
    ], [], [])

    recent = store.get_recent_segments(NOW - timedelta(days=7), 50)

    assert [s.id for s in recent] == ["newest", "older"]


def test_scores_upsert_by_user_and_segment(store: InMemoryFeedStore) -> None:
    """Test the latest score per (user, segment) wins."""
    store.upsert_scores([
        UserSegmentScore(user_id="u1", segment_id="s1", score=0.2),
        UserSegmentScore(user_id="u2", segment_id="s1", score=0.9),
    ])
    store.upsert_scores([UserSegmentScore(user_id="u1", segment_id="s1", score=0.4)])

    assert store.get_user_scores("u1") == {"s1": 0.4}
    assert store.get_user_scores("u2") == {"s1": 0.9}
    assert store.get_user_scores("u3") == {}
