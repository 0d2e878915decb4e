"""
BriefDesk

Daily news brief archive with on-demand deep reports:
1. Stores analyzed daily briefs in a pluggable key-value backend
2. Runs long LLM report jobs outside the request cycle
3. Exposes job progress through an expiring, pollable record
"""

__version__ = "0.1.0"
