"""Syndication feed (RSS/Atom) source."""

import logging
from datetime import datetime, timezone

import feedparser
import httpx

from newsletter_feed.adapters.sources.feed_utils import DEFAULT_TITLE, parse_published, strip_html
from newsletter_feed.core import ArticleFetcher, RawArticle

logger = logging.getLogger(__name__)


class RSSFeedFetcher(ArticleFetcher):
    """Fetch articles from an RSS or Atom feed."""

    kind = "rss"

    def __init__(self, source: str, feed_url: str, timeout: float = 30.0) -> None:
        self.source = source
        self.feed_url = feed_url
        self.timeout = timeout

    async def fetch(self) -> list[RawArticle]:
        """Fetch and parse the feed. Returns [] on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(self.feed_url)

            if response.status_code != 200:
                logger.warning(f"{self.source}: HTTP {response.status_code} from {self.feed_url}")
                return []

            articles = self._parse_feed(response.text)
            logger.info(f"📰 {self.source}: {len(articles)} articles")
            return articles

        except Exception as e:
            logger.error(f"Failed to fetch RSS from {self.source}: {e}")
            return []

    def _parse_feed(self, xml_content: str) -> list[RawArticle]:
        """Parse feed document into raw articles."""
        feed = feedparser.parse(xml_content)
        if feed.bozo and not feed.entries:
            logger.warning(f"{self.source}: malformed feed ({feed.get('bozo_exception')})")
            return []

        fetched_at = datetime.now(timezone.utc)
        articles: list[RawArticle] = []

        for entry in feed.entries:
            try:
                url = (entry.get("link") or "").strip()
                if not url:
                    # URL is the unique key, skip items without one
                    continue

                articles.append(RawArticle(
                    source=self.source,
                    title=(entry.get("title") or "").strip() or DEFAULT_TITLE,
                    content=self._extract_content(entry),
                    url=url,
                    published_at=parse_published(
                        entry.get("published") or entry.get("updated"),
                        entry.get("published_parsed") or entry.get("updated_parsed"),
                    ),
                    fetched_at=fetched_at,
                ))
            except Exception as e:
                logger.warning(f"{self.source}: skipping malformed entry: {e}")
                continue

        return articles

    def _extract_content(self, entry: dict) -> str:
        """Prefer the short excerpt, fall back to full content."""
        excerpt = strip_html(entry.get("summary"))
        if excerpt:
            return excerpt

        for content in entry.get("content") or []:
            text = strip_html(content.get("value"))
            if text:
                return text

        return ""
