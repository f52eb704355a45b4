"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


TOPICS = (
    "AI & Machine Learning",
    "Startups & Funding",
    "Product Launches",
    "Research & Papers",
    "Industry News",
    "Tools & Applications",
    "Policy & Regulation",
    "Tutorials & How-tos",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InteractionType(str, Enum):
    """Kind of user interaction with a segment."""

    VIEW = "view"
    CLICK = "click"
    SAVE = "save"
    SHARE = "share"
    DISMISS = "dismiss"


class ReadingTimePreference(str, Enum):
    """Preferred reading length."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


@dataclass
class RawArticle:
    """Article fetched from a single source feed."""

    source: str
    title: str
    content: str
    url: str
    published_at: Optional[datetime] = None
    fetched_at: datetime = field(default_factory=utcnow)
    processed: bool = False
    id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("URL cannot be empty")


@dataclass(frozen=True)
class Segment:
    """Deduplicated news story synthesized from one or more raw articles."""

    id: str
    title: str
    summary: str
    content: str
    topics: tuple[str, ...]
    importance_score: float
    source_urls: tuple[str, ...]
    source_names: tuple[str, ...]
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not 0.0 <= self.importance_score <= 1.0:
            raise ValueError("Importance score must be within [0, 1]")
        if len(self.source_urls) != len(self.source_names):
            raise ValueError("Source URLs and names must be aligned")


@dataclass(frozen=True)
class ArticleSegmentLink:
    """Provenance link between a raw article and a segment."""

    article_id: str
    segment_id: str


@dataclass
class UserPreferences:
    """Per-user topic and source preferences."""

    id: str
    display_name: Optional[str] = None
    topics: frozenset[str] = frozenset()
    sources: frozenset[str] = frozenset()
    reading_time_preference: ReadingTimePreference = ReadingTimePreference.MEDIUM


@dataclass(frozen=True)
class UserInteraction:
    """Append-only interaction event."""

    user_id: str
    segment_id: str
    type: InteractionType
    created_at: datetime = field(default_factory=utcnow)
    duration_seconds: Optional[int] = None


@dataclass(frozen=True)
class UserSegmentScore:
    """Personalization score of a segment for a user."""

    user_id: str
    segment_id: str
    score: float
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError("Score must be within [0, 1]")


@dataclass(frozen=True)
class ArticleBatch:
    """Ordered, immutable selection of articles for one segmentation run.

    The position of an article in ``articles`` is the index the oracle
    refers to in ``source_indices``.
    """

    articles: tuple[RawArticle, ...]

    def __len__(self) -> int:
        return len(self.articles)

    def __getitem__(self, index: int) -> RawArticle:
        return self.articles[index]

    def __iter__(self):
        return iter(self.articles)

    def contains_index(self, index: int) -> bool:
        return 0 <= index < len(self.articles)

    @property
    def article_ids(self) -> list[str]:
        return [article.id for article in self.articles if article.id is not None]


@dataclass(frozen=True)
class SegmentDraft:
    """Validated segment proposal returned by the oracle."""

    title: str
    summary: str
    content: str
    topics: tuple[str, ...]
    importance_score: float
    source_indices: tuple[int, ...]


@dataclass(frozen=True)
class RankedSegment:
    """Segment with the scores used to order a user's feed."""

    segment: Segment
    score: float
    combined_score: float
    personalized: bool


@dataclass
class FetchResult:
    """Outcome of a fetch run."""

    fetched: int
    inserted: int


@dataclass
class ProcessResult:
    """Outcome of a processing run."""

    processed: int
    segments: int
    scored_users: int = 0
