"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from newsletter_feed.core.entities import TOPICS


SEGMENTATION_PROMPT = """You are an AI news analyst. Given a list of articles from different AI newsletters, your job is to:

1. Identify unique news stories/topics across all articles
2. Group articles that cover the same story
3. For each unique story, create a segment with:
   - A clear, concise title
   - A summary (2-3 sentences)
   - The full combined content from all sources
   - Relevant topics (from: {topics})
   - An importance score (0.0-1.0) based on significance, novelty, and impact

Return JSON in this format:
{{
  "segments": [
    {{
      "title": "string",
      "summary": "string",
      "content": "string",
      "topics": ["string"],
      "importance_score": 0.0,
      "source_indices": [0, 1, 2]
    }}
  ]
}}

"source_indices" lists the [index] of every input article that covers the story.

Articles to process:
""".format(topics=", ".join(TOPICS))


@dataclass
class ClaudeConfig:
    """Claude API settings."""
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.2
    max_retries: int = 3
    initial_retry_delay: float = 2.0
    request_timeout: float = 120.0
    call_timeout: float = 300.0


@dataclass
class PipelineConfig:
    """Segmentation batch selection."""
    batch_window_hours: int = 24
    batch_limit: int = 50


@dataclass
class ScoringConfig:
    """Personalization scoring settings."""
    variant: str = "auto"


@dataclass
class FeedConfig:
    """Read-path feed settings."""
    window_days: int = 7
    limit: int = 50
    hide_dismissed: bool = True


@dataclass
class StoreConfig:
    """Persistent store settings."""
    backend: str = "memory"


@dataclass
class SourcesConfig:
    """Configured newsletter sources."""
    fetch_timeout: float = 30.0
    rss: list = field(default_factory=lambda: [
        {"name": "rundown", "url": "https://www.therundown.ai/rss"},
        {"name": "neuron", "url": "https://www.theneurondaily.com/feed"},
        {"name": "tldr", "url": "https://tldr.tech/ai/rss"},
    ])
    substack: list = field(default_factory=lambda: [
        {"name": "agplus", "url": "https://agplusai.substack.com"},
        {"name": "chatgpt_central", "url": "https://chatgptcentral.substack.com"},
    ])


@dataclass
class PromptsConfig:
    """Prompts for the segmentation oracle."""
    segmentation: str = SEGMENTATION_PROMPT


@dataclass
class Settings:
    """Application settings."""

    # Secrets (from environment only)
    anthropic_api_key: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    cron_secret: str = ""
    log_level: str = "INFO"

    # Config sections
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    load_dotenv()
    config = load_config(config_path)

    settings = Settings(
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
        cron_secret=os.getenv("CRON_SECRET", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    # Apply YAML config
    sections = {
        "claude": settings.claude,
        "pipeline": settings.pipeline,
        "scoring": settings.scoring,
        "feed": settings.feed,
        "store": settings.store,
    }
    for name, section in sections.items():
        for key, value in (config.get(name) or {}).items():
            setattr(section, key, value)

    if "sources" in config:
        settings.sources = SourcesConfig(**config["sources"])

    if "prompts" in config:
        settings.prompts = PromptsConfig(**config["prompts"])

    return settings
