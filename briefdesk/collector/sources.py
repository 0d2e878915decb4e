"""
Source Document Fetcher

Fetches the articles an issue cites and reduces them to plain text for use
as report context. Every fetch is bounded by a timeout; a source that fails
or times out is reported as unavailable and the caller carries on with the
rest.
"""

import asyncio
import html
import logging
import re
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

MAX_SOURCES = 3
MAX_CHARS = 15000


def extract_text(page: str) -> str:
    """Extract readable text from HTML."""
    page = re.sub(r'<script[^>]*>.*?</script>', '', page, flags=re.DOTALL | re.IGNORECASE)
    page = re.sub(r'<style[^>]*>.*?</style>', '', page, flags=re.DOTALL | re.IGNORECASE)
    page = re.sub(r'<noscript[^>]*>.*?</noscript>', '', page, flags=re.DOTALL | re.IGNORECASE)

    text = re.sub(r'<[^>]+>', ' ', page)
    text = html.unescape(text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


class SourceFetcher:
    """Fetches source articles and extracts their text."""

    def __init__(
        self,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            headers={
                "User-Agent": (
                    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
                ),
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def fetch_document(self, url: str) -> Optional[str]:
        """Text of the page at url, or None when it is unavailable."""
        try:
            response = await asyncio.wait_for(self.client.get(url), timeout=self.timeout)
            response.raise_for_status()
        except asyncio.TimeoutError:
            logger.warning(f"[Sources] Timed out fetching {url}")
            return None
        except httpx.HTTPStatusError as e:
            logger.warning(f"[Sources] HTTP error fetching {url}: {e.response.status_code}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"[Sources] Request error fetching {url}: {e}")
            return None

        text = extract_text(response.text)
        return text[:MAX_CHARS] if text else None

    async def gather_context(self, urls: List[str], limit: int = MAX_SOURCES) -> str:
        """
        Fetch up to `limit` sources concurrently and join what succeeded.

        Returns an empty string when no source could be fetched.
        """
        targets = [url for url in urls if url][:limit]
        if not targets:
            return ""

        documents = await asyncio.gather(*(self.fetch_document(url) for url in targets))

        blocks = [
            f"---\nSource: {url}\nContent: {text}\n---"
            for url, text in zip(targets, documents)
            if text
        ]
        logger.info(f"[Sources] Fetched {len(blocks)}/{len(targets)} sources")
        return "\n".join(blocks)
