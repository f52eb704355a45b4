"""Segmentation contract: prompt construction, response parsing and index mapping."""

import json
import logging
import re
import uuid
from datetime import datetime
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, constr

from newsletter_feed.core.entities import (
    TOPICS,
    ArticleBatch,
    ArticleSegmentLink,
    Segment,
    SegmentDraft,
    utcnow,
)
from newsletter_feed.core.errors import ContractViolation

logger = logging.getLogger(__name__)


class SegmentPayload(BaseModel):
    """One segment as returned by the oracle."""

    title: constr(strict=True, strip_whitespace=True, min_length=1)
    summary: constr(strict=True, strip_whitespace=True)
    content: StrictStr
    topics: list[StrictStr]
    importance_score: float = Field(ge=0.0, le=1.0, strict=True)
    source_indices: list[StrictInt]


class SegmentationPayload(BaseModel):
    """Top-level oracle response object."""

    segments: list[SegmentPayload] = Field(min_length=1)


def format_article_list(batch: ArticleBatch) -> str:
    """Serialize the batch as an indexed list in batch order."""
    blocks = [
        f"[{i}] Source: {article.source}\n"
        f"Title: {article.title}\n"
        f"Content: {article.content}\n"
        f"URL: {article.url}"
        for i, article in enumerate(batch)
    ]
    return "\n\n---\n\n".join(blocks)


def build_segmentation_prompt(template: str, batch: ArticleBatch) -> str:
    """Embed the indexed article list into the instruction template."""
    return template + format_article_list(batch)


def _fix_json(text: str) -> str:
    """Remove trailing commas before } or ]."""
    return re.sub(r',(\s*[}\]])', r'\1', text)


def _balanced_object_end(text: str, start: int) -> Optional[int]:
    """Return index just past the object opened at ``start``, or None."""
    depth = 0
    in_string = False
    escaped = False

    for pos in range(start, len(text)):
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos + 1

    return None


def _load_candidate(candidate: str) -> Optional[object]:
    """Decode as-is; only repair trailing commas when strict decoding fails."""
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(_fix_json(candidate))
    except json.JSONDecodeError:
        return None


def extract_json_object(text: str) -> dict:
    """Extract the first balanced JSON object holding a ``segments`` key.

    Raises:
        ContractViolation: if no such object is present in ``text``.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end is not None:
            candidate = text[start:end]
            data = _load_candidate(candidate)

            if isinstance(data, dict) and "segments" in data:
                return data

        start = text.find("{", start + 1)

    raise ContractViolation("No JSON object with segments found in oracle response", raw_text=text)


def _normalize_topics(topics: Iterable[str], taxonomy: Iterable[str]) -> tuple[str, ...]:
    """Map topics onto the closed taxonomy, dropping unknown ones."""
    canonical = {topic.casefold(): topic for topic in taxonomy}
    normalized: list[str] = []

    for topic in topics:
        match = canonical.get(topic.strip().casefold())
        if match is None:
            logger.warning(f"Dropping topic outside taxonomy: {topic!r}")
            continue
        if match not in normalized:
            normalized.append(match)

    return tuple(normalized)


def parse_segmentation_response(
    text: str, taxonomy: Iterable[str] = TOPICS
) -> list[SegmentDraft]:
    """Parse and validate oracle output into segment drafts.

    Raises:
        ContractViolation: on missing JSON, schema mismatch or empty segment list.
    """
    data = extract_json_object(text)

    try:
        payload = SegmentationPayload.model_validate(data)
    except ValidationError as e:
        raise ContractViolation(f"Oracle response failed validation: {e}", raw_text=text) from e

    taxonomy = tuple(taxonomy)
    return [
        SegmentDraft(
            title=segment.title,
            summary=segment.summary,
            content=segment.content,
            topics=_normalize_topics(segment.topics, taxonomy),
            importance_score=segment.importance_score,
            source_indices=tuple(segment.source_indices),
        )
        for segment in payload.segments
    ]


def build_article_mapping(drafts: list[SegmentDraft]) -> dict[int, list[int]]:
    """Invert segment → article indices into article index → segment positions."""
    mapping: dict[int, list[int]] = {}

    for position, draft in enumerate(drafts):
        for article_index in draft.source_indices:
            positions = mapping.setdefault(article_index, [])
            if position not in positions:
                positions.append(position)

    return mapping


def build_segments(
    batch: ArticleBatch,
    drafts: list[SegmentDraft],
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    created_at: Optional[datetime] = None,
) -> list[Segment]:
    """Create segment records from drafts, preserving draft order."""
    created_at = created_at or utcnow()
    segments: list[Segment] = []

    for draft in drafts:
        contributors = [batch[i] for i in draft.source_indices if batch.contains_index(i)]
        dropped = len(draft.source_indices) - len(contributors)
        if dropped:
            logger.warning(
                f"Segment '{draft.title[:60]}' references {dropped} index(es) outside batch of {len(batch)}"
            )

        segments.append(Segment(
            id=id_factory(),
            title=draft.title,
            summary=draft.summary,
            content=draft.content,
            topics=draft.topics,
            importance_score=draft.importance_score,
            source_urls=tuple(article.url for article in contributors),
            source_names=tuple(article.source for article in contributors),
            created_at=created_at,
        ))

    return segments


def resolve_links(
    batch: ArticleBatch,
    segments: list[Segment],
    mapping: dict[int, list[int]],
) -> list[ArticleSegmentLink]:
    """Resolve (article index, segment position) pairs into id links.

    Pairs pointing outside the batch or the segment list are skipped.
    """
    links: list[ArticleSegmentLink] = []
    seen: set[tuple[str, str]] = set()

    for article_index, positions in mapping.items():
        if not batch.contains_index(article_index):
            logger.warning(f"Skipping link for article index {article_index} outside batch")
            continue

        article_id = batch[article_index].id
        if article_id is None:
            logger.warning(f"Skipping link for unsaved article at index {article_index}")
            continue

        for position in positions:
            if not 0 <= position < len(segments):
                logger.warning(f"Skipping link to segment position {position} outside inserted segments")
                continue

            key = (article_id, segments[position].id)
            if key in seen:
                continue
            seen.add(key)
            links.append(ArticleSegmentLink(article_id=article_id, segment_id=segments[position].id))

    return links
