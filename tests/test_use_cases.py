"""Tests for use cases."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from newsletter_feed.adapters.storage import InMemoryFeedStore
from newsletter_feed.config import SEGMENTATION_PROMPT
from newsletter_feed.core import (
    ContractViolation,
    InteractionType,
    OracleUnavailable,
    RawArticle,
    ScoringVariant,
    Segment,
    StoreError,
    UserInteraction,
    UserPreferences,
)
from newsletter_feed.use_cases import (
    FeedService,
    FetchAggregator,
    IngestionService,
    PipelineService,
    ScoringService,
    SegmentationService,
)

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)

SCENARIO_RESPONSE = json.dumps({
    "segments": [
        {
            "title": "Model X launch",
            "summary": "Lab ships Model X.",
            "content": "Combined coverage of Model X.",
            "topics": ["AI & Machine Learning", "Product Launches"],
            "importance_score": 0.8,
            "source_indices": [0, 1],
        },
        {
            "title": "EU AI rules",
            "summary": "Regulators agree.",
            "content": "Policy coverage.",
            "topics": ["Policy & Regulation"],
            "importance_score": 0.3,
            "source_indices": [2],
        },
    ]
})


def _article(source: str, url: str, minutes_ago: int) -> RawArticle:
    return RawArticle(
        source=source,
        title=url.rsplit("/", 1)[-1],
        content="Body",
        url=url,
        fetched_at=NOW - timedelta(minutes=minutes_ago),
    )


def _fetcher(source: str, articles: list | None = None, error: Exception | None = None) -> AsyncMock:
    fetcher = AsyncMock()
    fetcher.source = source
    if error is not None:
        fetcher.fetch.side_effect = error
    else:
        fetcher.fetch.return_value = articles or []
    return fetcher


def _oracle(response: str = SCENARIO_RESPONSE) -> AsyncMock:
    oracle = AsyncMock()
    oracle.complete.return_value = response
    return oracle


def _scenario_store() -> InMemoryFeedStore:
    """Store with three articles; batch order is newest first."""
    store = InMemoryFeedStore()
    store.upsert_raw_articles([
        _article("rundown", "https://rundown.example/model-x", 1),
        _article("neuron", "https://neuron.example/model-x", 2),
        _article("neuron", "https://neuron.example/eu-rules", 3),
    ])
    return store


def _pipeline(store: InMemoryFeedStore, oracle: AsyncMock, fetchers: list | None = None,
              oracle_timeout: float | None = None) -> PipelineService:
    scoring = ScoringService(store)
    segmentation = SegmentationService(
        store=store,
        oracle=oracle,
        prompt_template=SEGMENTATION_PROMPT,
        oracle_timeout=oracle_timeout,
    )
    ingestion = IngestionService(FetchAggregator(fetchers or []), store)
    return PipelineService(ingestion, segmentation, scoring)


@pytest.mark.asyncio
async def test_aggregator_discards_failed_fetchers() -> None:
    """Test one failing fetcher does not affect the others."""
    aggregator = FetchAggregator([
        _fetcher("rundown", [_article("rundown", "https://a", 1)]),
        _fetcher("neuron", error=RuntimeError("boom")),
        _fetcher("tldr", [_article("tldr", "https://b", 1), _article("tldr", "https://a", 1)]),
    ])

    articles = await aggregator.fetch_all()

    assert [a.url for a in articles] == ["https://a", "https://b", "https://a"]


@pytest.mark.asyncio
async def test_fetch_is_idempotent() -> None:
    """Test re-fetching the same feed inserts nothing new."""
    store = InMemoryFeedStore()
    fetcher = _fetcher("rundown", [
        _article("rundown", "https://a", 1),
        _article("rundown", "https://b", 1),
    ])
    pipeline = _pipeline(store, _oracle(), [fetcher])

    first = await pipeline.fetch()
    second = await pipeline.fetch()

    assert (first.fetched, first.inserted) == (2, 2)
    assert (second.fetched, second.inserted) == (2, 0)
    assert len(store.articles) == 2


@pytest.mark.asyncio
async def test_process_end_to_end_scenario() -> None:
    """Test three articles become two segments with three links."""
    store = _scenario_store()
    oracle = _oracle()
    pipeline = _pipeline(store, oracle)

    result = await pipeline.process(now=NOW)

    assert (result.processed, result.segments) == (3, 2)
    assert len(store.segments) == 2
    assert all(a.processed for a in store.articles.values())

    model_x, eu_rules = store.segments
    links_by_segment = {
        s.id: {link.article_id for link in store.links if link.segment_id == s.id}
        for s in store.segments
    }
    assert len(links_by_segment[model_x.id]) == 2
    assert len(links_by_segment[eu_rules.id]) == 1
    assert set(model_x.source_names) == {"rundown", "neuron"}
    assert eu_rules.source_urls == ("https://neuron.example/eu-rules",)

    prompt = oracle.complete.call_args.args[0]
    assert prompt.startswith(SEGMENTATION_PROMPT)
    assert "[0] Source: rundown" in prompt
    assert "[2] Source: neuron" in prompt


@pytest.mark.asyncio
async def test_process_empty_batch_skips_oracle() -> None:
    """Test no oracle call when nothing is pending."""
    oracle = _oracle()
    pipeline = _pipeline(InMemoryFeedStore(), oracle)

    result = await pipeline.process(now=NOW)

    assert (result.processed, result.segments) == (0, 0)
    oracle.complete.assert_not_called()


@pytest.mark.asyncio
async def test_process_second_run_finds_nothing() -> None:
    """Test processed articles are not selected again."""
    store = _scenario_store()
    oracle = _oracle()
    pipeline = _pipeline(store, oracle)

    await pipeline.process(now=NOW)
    second = await pipeline.process(now=NOW)

    assert second.processed == 0
    assert oracle.complete.call_count == 1
    assert len(store.segments) == 2


@pytest.mark.asyncio
async def test_contract_violation_commits_nothing() -> None:
    """Test a malformed oracle answer leaves the store untouched."""
    store = _scenario_store()
    pipeline = _pipeline(store, _oracle("Sorry, I cannot help with that."))

    with pytest.raises(ContractViolation):
        await pipeline.process(now=NOW)

    assert store.segments == []
    assert store.links == []
    assert not any(a.processed for a in store.articles.values())


@pytest.mark.asyncio
async def test_oracle_failure_commits_nothing() -> None:
    """Test oracle errors propagate and nothing is flipped."""
    store = _scenario_store()
    oracle = AsyncMock()
    oracle.complete.side_effect = OracleUnavailable("down")
    pipeline = _pipeline(store, oracle)

    with pytest.raises(OracleUnavailable):
        await pipeline.process(now=NOW)

    assert store.segments == []
    assert not any(a.processed for a in store.articles.values())


@pytest.mark.asyncio
async def test_oracle_timeout_is_unavailable() -> None:
    """Test a slow oracle surfaces as OracleUnavailable."""
    store = _scenario_store()

    async def slow_complete(prompt: str) -> str:
        await asyncio.sleep(1)
        return SCENARIO_RESPONSE

    oracle = AsyncMock()
    oracle.complete.side_effect = slow_complete
    pipeline = _pipeline(store, oracle, oracle_timeout=0.01)

    with pytest.raises(OracleUnavailable, match="did not answer"):
        await pipeline.process(now=NOW)

    assert store.segments == []


@pytest.mark.asyncio
async def test_process_scores_every_user() -> None:
    """Test new segments are scored for each user."""
    store = _scenario_store()
    store.save_user_preferences(UserPreferences(id="u1", topics=frozenset({"Policy & Regulation"})))
    store.save_user_preferences(UserPreferences(id="u2"))
    pipeline = _pipeline(store, _oracle())

    result = await pipeline.process(now=NOW)

    assert result.scored_users == 2
    u1_scores = store.get_user_scores("u1")
    eu_rules = store.segments[1]
    assert u1_scores[eu_rules.id] == pytest.approx(0.3 * 0.6 + 1.0 * 0.4)
    assert len(store.get_user_scores("u2")) == 2


def test_scoring_isolates_user_failures() -> None:
    """Test one failing user does not block the others."""
    store = MagicMock(wraps=InMemoryFeedStore())

    def interactions(user_id: str) -> list:
        if user_id == "bad":
            raise StoreError("boom")
        return []

    store.get_user_interactions.side_effect = interactions
    segments = [
        Segment(id=f"s{i}", title="", summary="", content="", topics=("Industry News",),
                importance_score=0.5, source_urls=(), source_names=())
        for i in range(2)
    ]

    service = ScoringService(store, variant=ScoringVariant.AUTO)
    scored = service.score_segments(segments, users=[UserPreferences(id="bad"), UserPreferences(id="good")])

    assert scored == 1
    store.upsert_scores.assert_called_once()
    rows = store.upsert_scores.call_args.args[0]
    assert {row.user_id for row in rows} == {"good"}
    assert len(rows) == 2


def test_feed_ranks_and_hides_dismissed() -> None:
    """Test feed ranking uses stored scores and hides dismissed segments."""
    store = _scenario_store()
    store.save_user_preferences(UserPreferences(id="u1", topics=frozenset({"Policy & Regulation"})))
    asyncio.run(_pipeline(store, _oracle()).process(now=NOW))
    model_x, eu_rules = store.segments

    feed = FeedService(store, ScoringService(store))
    ranked = feed.get_feed("u1", now=NOW)

    # eu_rules: 0.58*0.6 + 0.3*0.4 = 0.468; model_x: 0.48*0.6 + 0.8*0.4 = 0.608
    assert [r.segment.id for r in ranked] == [model_x.id, eu_rules.id]
    assert all(r.personalized for r in ranked)

    feed.record_interaction("u1", model_x.id, InteractionType.DISMISS)
    ranked = feed.get_feed("u1", now=NOW)

    assert [r.segment.id for r in ranked] == [eu_rules.id]


def test_feed_refresh_uses_engagement_history() -> None:
    """Test refresh rescoring picks up recorded interactions."""
    store = _scenario_store()
    store.save_user_preferences(UserPreferences(id="u1"))
    asyncio.run(_pipeline(store, _oracle()).process(now=NOW))
    model_x, eu_rules = store.segments
    store.record_interaction(UserInteraction(user_id="u1", segment_id=eu_rules.id, type=InteractionType.SAVE))

    feed = FeedService(store, ScoringService(store), hide_dismissed=False)
    feed.get_feed("u1", now=NOW, refresh=True)

    scores = store.get_user_scores("u1")
    assert scores[eu_rules.id] == pytest.approx(0.7)
    assert scores[model_x.id] == pytest.approx(0.5)


def test_feed_window_excludes_old_segments() -> None:
    """Test segments older than the window are not returned."""
    store = _scenario_store()
    asyncio.run(_pipeline(store, _oracle()).process(now=NOW - timedelta(days=10)))

    feed = FeedService(store, ScoringService(store))

    assert feed.get_feed("u1", now=NOW) == []
