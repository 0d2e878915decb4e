"""Source document collection for report jobs."""

from .sources import SourceFetcher, extract_text

__all__ = ["SourceFetcher", "extract_text"]
