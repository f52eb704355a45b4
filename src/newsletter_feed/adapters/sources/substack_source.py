"""Hosted newsletter (Substack) source."""

import logging
from datetime import datetime, timezone
from xml.etree import ElementTree as ET

import httpx

from newsletter_feed.adapters.sources.feed_utils import DEFAULT_TITLE, parse_published, strip_html
from newsletter_feed.core import ArticleFetcher, RawArticle

logger = logging.getLogger(__name__)


class SubstackFetcher(ArticleFetcher):
    """Fetch posts from a Substack publication's RSS feed."""

    kind = "substack"

    def __init__(self, source: str, base_url: str, timeout: float = 30.0) -> None:
        self.source = source
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def feed_url(self) -> str:
        # Substack serves RSS at /feed
        return f"{self.base_url}/feed"

    async def fetch(self) -> list[RawArticle]:
        """Fetch and parse the publication feed. Returns [] on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(self.feed_url)

            if response.status_code != 200:
                logger.warning(f"{self.source}: HTTP {response.status_code} from {self.feed_url}")
                return []

            articles = self._parse_feed(response.text)
            logger.info(f"✉️  {self.source}: {len(articles)} articles")
            return articles

        except Exception as e:
            logger.error(f"Failed to fetch Substack from {self.source}: {e}")
            return []

    def _parse_feed(self, xml_content: str) -> list[RawArticle]:
        """Parse RSS 2.0 item list."""
        articles: list[RawArticle] = []

        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as e:
            logger.warning(f"{self.source}: XML parse error: {e}")
            return articles

        fetched_at = datetime.now(timezone.utc)

        for item in root.findall(".//item"):
            try:
                url = self._text(item, "link")
                if not url:
                    continue

                articles.append(RawArticle(
                    source=self.source,
                    title=self._text(item, "title") or DEFAULT_TITLE,
                    content=strip_html(self._text(item, "description")),
                    url=url,
                    published_at=parse_published(self._text(item, "pubDate")),
                    fetched_at=fetched_at,
                ))
            except Exception as e:
                # Skip malformed entries
                logger.warning(f"{self.source}: skipping malformed item: {e}")
                continue

        return articles

    @staticmethod
    def _text(item: ET.Element, tag: str) -> str:
        elem = item.find(tag)
        return elem.text.strip() if elem is not None and elem.text else ""
