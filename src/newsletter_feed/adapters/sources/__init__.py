"""Source adapters for fetching articles."""

from newsletter_feed.adapters.sources.rss_source import RSSFeedFetcher
from newsletter_feed.adapters.sources.substack_source import SubstackFetcher
from newsletter_feed.config import SourcesConfig
from newsletter_feed.core import ArticleFetcher


def build_fetchers(config: SourcesConfig) -> list[ArticleFetcher]:
    """Instantiate one fetcher per configured source."""
    fetchers: list[ArticleFetcher] = []

    for entry in config.rss:
        fetchers.append(RSSFeedFetcher(entry["name"], entry["url"], timeout=config.fetch_timeout))

    for entry in config.substack:
        fetchers.append(SubstackFetcher(entry["name"], entry["url"], timeout=config.fetch_timeout))

    return fetchers


__all__ = ["RSSFeedFetcher", "SubstackFetcher", "build_fetchers"]
