"""
Claude API Client for report generation

Provides a client for interacting with Claude API, including retry on
overload / rate limits and token usage tracking.
"""

import os
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass

import anthropic
import httpx

from briefdesk.analyzer.retry import invoke_with_retry
from briefdesk.errors import ParseError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def estimated_cost(self) -> float:
        """Estimate cost based on Claude Sonnet 4 pricing."""
        # Sonnet 4 pricing: $3/1M input, $15/1M output
        input_cost = (self.input_tokens / 1_000_000) * 3.0
        output_cost = (self.output_tokens / 1_000_000) * 15.0
        return input_cost + output_cost


@dataclass
class AnalysisResponse:
    """Response from a Claude call."""
    content: str
    usage: TokenUsage
    model: str
    stop_reason: str


class ClaudeClient:
    """
    Async client for Claude API used by report jobs.

    Features:
    - Retry with exponential backoff on overload / rate limits
    - Token usage tracking
    - Failures surface as UpstreamError, empty output as ParseError
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_TOKENS = 8000
    TEMPERATURE = 0.3

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to env var)
            model: Model to use (defaults to Sonnet 4)
            max_attempts: Attempts per call, first one included
            base_delay: Backoff before the second attempt, in seconds
            http_client: Custom httpx client (tests use httpx.MockTransport)
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not provided")

        self.model = model or self.DEFAULT_MODEL
        # invoke_with_retry is the only retry layer
        self.async_client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            max_retries=0,
            http_client=http_client,
        )
        self.max_attempts = max_attempts
        self.base_delay = base_delay

        # Track cumulative usage
        self.total_usage = TokenUsage()
        self.call_count = 0

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
    ) -> AnalysisResponse:
        """
        Send a prompt to Claude.

        Raises:
            UpstreamError: API call failed after retries
            ParseError: API answered without any text
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        async def _call():
            return await self.async_client.messages.create(**kwargs)

        try:
            response = await invoke_with_retry(
                _call,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                label="claude.messages.create",
            )
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise UpstreamError(
                f"Claude API call failed: {e}",
                details={"model": self.model},
            ) from e

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        if not content.strip():
            raise ParseError(
                "Claude returned an empty response",
                details={"stop_reason": response.stop_reason},
            )

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        self.total_usage.input_tokens += usage.input_tokens
        self.total_usage.output_tokens += usage.output_tokens
        self.call_count += 1

        logger.info(
            f"Claude call: {usage.input_tokens} in, {usage.output_tokens} out, "
            f"${usage.estimated_cost:.4f} "
            f"(session: {self.call_count} calls, ${self.total_usage.estimated_cost:.4f})"
        )

        return AnalysisResponse(
            content=content,
            usage=usage,
            model=self.model,
            stop_reason=response.stop_reason,
        )

