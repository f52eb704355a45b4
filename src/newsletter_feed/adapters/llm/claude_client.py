"""Claude API client acting as the segmentation oracle."""

import asyncio
import logging
from typing import Any

import httpx

from newsletter_feed.config import Settings
from newsletter_feed.core import ContractViolation, OracleRejected, OracleUnavailable, SegmentationOracle

logger = logging.getLogger(__name__)


class ClaudeClient(SegmentationOracle):
    """Claude Messages API client implementation."""

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.anthropic_api_key
        self.model = settings.claude.model
        self.max_tokens = settings.claude.max_tokens
        self.temperature = settings.claude.temperature
        self.max_retries = settings.claude.max_retries
        self.initial_retry_delay = settings.claude.initial_retry_delay
        self.request_timeout = settings.claude.request_timeout
        self.base_url = "https://api.anthropic.com/v1"

    async def complete(self, prompt: str) -> str:
        """Send a single-turn prompt and return the text of the reply."""
        if not self.api_key:
            raise OracleUnavailable("ANTHROPIC_API_KEY is not configured")

        data = await self._call_api(prompt)
        return self._extract_text(data)

    async def _call_api(self, prompt: str) -> dict[str, Any]:
        """Call Claude API with retry logic."""
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.request_timeout) as client:
                    response = await client.post(
                        f"{self.base_url}/messages",
                        headers={
                            "x-api-key": self.api_key,
                            "anthropic-version": "2023-06-01",
                            "content-type": "application/json",
                        },
                        json={
                            "model": self.model,
                            "max_tokens": self.max_tokens,
                            "temperature": self.temperature,
                            "messages": [
                                {"role": "user", "content": prompt}
                            ],
                        },
                    )

                    # Success case
                    if response.status_code == 200:
                        try:
                            return response.json()
                        except ValueError as e:
                            raise ContractViolation(
                                "Claude API returned a non-JSON body", raw_text=response.text[:2000]
                            ) from e

                    # Rate limit - retry with backoff
                    if response.status_code == 429:
                        retry_after = self._get_retry_delay(response, attempt)
                        logger.warning(
                            f"⏳ Rate limit hit, retrying after {retry_after:.1f}s "
                            f"(attempt {attempt + 1}/{self.max_retries})"
                        )
                        last_exception = OracleUnavailable("Rate limited by Claude API")
                        await asyncio.sleep(retry_after)
                        continue

                    # Server errors - retry with backoff
                    if response.status_code >= 500:
                        retry_delay = self.initial_retry_delay * (2 ** attempt)
                        logger.warning(f"Server error {response.status_code}, retrying after {retry_delay:.1f}s")
                        last_exception = OracleUnavailable(f"Claude API returned {response.status_code}")
                        await asyncio.sleep(retry_delay)
                        continue

                    # Other errors - raise immediately
                    response.raise_for_status()

            except httpx.HTTPStatusError as e:
                raise OracleRejected(f"Claude API rejected request: {e}") from e
            except httpx.RequestError as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    retry_delay = self.initial_retry_delay * (2 ** attempt)
                    logger.warning(f"Network error ({e}), retrying after {retry_delay:.1f}s")
                    await asyncio.sleep(retry_delay)
                    continue

        # If we exhausted all retries
        if isinstance(last_exception, OracleUnavailable):
            raise last_exception
        raise OracleUnavailable(
            f"Failed to call Claude API after {self.max_retries} attempts: {last_exception}"
        ) from last_exception

    def _get_retry_delay(self, response: httpx.Response, attempt: int) -> float:
        """Calculate retry delay from response headers or use exponential backoff."""
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass

        return self.initial_retry_delay * (2 ** attempt)

    def _extract_text(self, data: dict[str, Any]) -> str:
        """Return the first text block of a Messages API response."""
        for block in data.get("content") or []:
            if block.get("type", "text") == "text" and block.get("text"):
                return block["text"]

        raise ContractViolation("No text response from Claude", raw_text=str(data)[:2000])
