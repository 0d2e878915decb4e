"""
BriefDesk - Analysis

Claude-backed report steps and the retry wrapper every external call
goes through.
"""

from .retry import invoke_with_retry, is_retryable_error
from .client import ClaudeClient, AnalysisResponse, TokenUsage
from .trend import TrendAnalyst, IssueCluster

__all__ = [
    "invoke_with_retry",
    "is_retryable_error",
    "ClaudeClient",
    "AnalysisResponse",
    "TokenUsage",
    "TrendAnalyst",
    "IssueCluster",
]
