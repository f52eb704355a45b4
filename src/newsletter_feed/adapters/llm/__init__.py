"""LLM adapters."""

from newsletter_feed.adapters.llm.claude_client import ClaudeClient

__all__ = ["ClaudeClient"]
