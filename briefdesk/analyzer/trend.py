"""
Trend Analyst

LLM-backed steps used by the report jobs:
- research: gather facts and counterpoints about one issue
- synthesize: turn research notes into the deep-dive report
- cluster_issues: group a week's issues by theme
- weekly_report: write the weekly trend report from those groups
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from briefdesk.analyzer.client import ClaudeClient
from briefdesk.errors import ParseError
from briefdesk.models import IssueItem

logger = logging.getLogger(__name__)

KST = ZoneInfo("Asia/Seoul")
URL_PATTERN = re.compile(r"https?://[^\s)\]>\"']+")
SOURCES_SECTION = re.compile(r"^#{1,3}\s*■?\s*Sources\b[\s\S]*", re.IGNORECASE | re.MULTILINE)

RESEARCH_SYSTEM = (
    "You are a senior industry analyst. Expand the given news issue with concrete, "
    "verifiable facts (names, figures, dates), counterarguments and value-chain effects. "
    "Cite the URL of every source you rely on."
)

SYNTHESIS_SYSTEM = (
    "You are a strategy consultant writing a deep-dive report for executives. "
    "Use only the research notes provided. Sections: Executive Summary, Key Developments, "
    "Core Themes, Implications, Risks & Uncertainties, Watchlist. Do not write a sources section."
)

WEEKLY_SYSTEM = (
    "You are an industry analyst writing a weekly trend report. For each cluster explain the "
    "shared theme, the most important developments and what to watch next week."
)


@dataclass
class IssueCluster:
    """A themed group of issues, referenced by index."""
    name: str
    theme: str
    issue_indices: List[int] = field(default_factory=list)


def format_issue(issue: IssueItem) -> str:
    sources = "\n".join(issue.sources) if issue.sources else "(no URLs)"
    return (
        f"- ISSUE_TITLE: {issue.headline}\n"
        f"- ISSUE_BULLETS: {', '.join(issue.key_facts)}\n"
        f"- ISSUE_URLS:\n{sources}"
    )


def extract_json_object(text: str) -> dict:
    """First {...} block in text, parsed."""
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise ParseError("No JSON object found in model output")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ParseError(f"Model output is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError("Model output JSON is not an object")
    return parsed


def render_sources(brief_sources: List[str], research_text: str, today: str) -> str:
    """
    Sources section: every brief URL first, then URLs the research added.
    """
    found = [url.rstrip(".,;") for url in URL_PATTERN.findall(research_text or "")]
    combined = list(dict.fromkeys([*brief_sources, *found]))

    lines = ["## ■ Sources"]
    for idx, url in enumerate(combined, start=1):
        host = urlparse(url).hostname or "source"
        host = host[4:] if host.startswith("www.") else host
        label = "Brief Origin" if url in brief_sources else "Deep Research"
        lines.append(f"- [{idx}] {host} | {today} | [{label}] {url}")

    added = len(combined) - len(brief_sources)
    if added > 0:
        lines.append(f"\n({len(brief_sources)} brief sources kept, {added} added by research.)")
    else:
        lines.append(f"\n(Based on the {len(brief_sources)} original brief sources.)")
    return "\n".join(lines) + "\n"


class TrendAnalyst:
    """Report-writing steps on top of ClaudeClient."""

    def __init__(self, client: ClaudeClient):
        self.client = client

    async def research(self, issue: IssueItem, context: str = "") -> str:
        """Research notes for one issue; context holds fetched source text."""
        prompt = f"# INPUTS\n{format_issue(issue)}\n"
        if context:
            prompt += f"\n# SOURCE ARTICLES\n{context}\n"
        else:
            prompt += "\n# SOURCE ARTICLES\n(none could be fetched; work from the brief)\n"

        response = await self.client.complete(prompt, system=RESEARCH_SYSTEM)
        logger.info(f"[Trend] Research complete for '{issue.headline}' ({len(response.content)} chars)")
        return response.content

    async def synthesize(
        self,
        issue: IssueItem,
        research: str,
        now: Optional[datetime] = None,
    ) -> str:
        """Final deep-dive report text, with a rebuilt sources section."""
        today = (now or datetime.now(KST)).astimezone(KST).strftime("%Y-%m-%d")
        prompt = (
            f"# INPUTS\n{format_issue(issue)}\n- TODAY_KST: {today}\n\n"
            f"# RESEARCH NOTES\n{research}\n"
        )

        response = await self.client.complete(prompt, system=SYNTHESIS_SYSTEM)
        body = SOURCES_SECTION.sub("", response.content).strip()
        if not body:
            raise ParseError("Synthesis produced no report body")

        return f"{body}\n\n{render_sources(issue.sources, research, today)}"

    async def cluster_issues(self, issues: List[IssueItem]) -> List[IssueCluster]:
        """
        Group issues by theme (at most 5 clusters).

        Unusable model output falls back to a single cluster holding every
        issue; API failures propagate.
        """
        if not issues:
            return []

        listing = "\n".join(
            f"[{idx}] {issue.headline}\n    Facts: {' | '.join(issue.key_facts[:2])}"
            for idx, issue in enumerate(issues)
        )
        prompt = (
            f"Group these {len(issues)} issues into at most 5 thematic clusters. "
            "Every issue must belong to a cluster. Answer with JSON only: "
            '{"clusters": [{"clusterName": "...", "themeDescription": "...", "issueIndices": [0, 2]}]}\n\n'
            f"{listing}"
        )

        response = await self.client.complete(prompt, temperature=0.0)
        try:
            clusters = self._parse_clusters(response.content, len(issues))
        except ParseError as e:
            logger.warning(f"[Weekly] Clustering output unusable, using one cluster: {e.message}")
            clusters = []

        if not clusters:
            return [IssueCluster(
                name="Weekly overview",
                theme="All notable developments of the last 7 days",
                issue_indices=list(range(len(issues))),
            )]
        return clusters

    @staticmethod
    def _parse_clusters(text: str, issue_count: int) -> List[IssueCluster]:
        data = extract_json_object(text)
        raw_clusters = data.get("clusters")
        if not isinstance(raw_clusters, list):
            raise ParseError("Clustering JSON has no 'clusters' list")

        clusters = []
        for raw in raw_clusters:
            if not isinstance(raw, dict):
                continue
            raw_indices = raw.get("issueIndices")
            if not isinstance(raw_indices, list):
                continue
            indices = [
                i for i in raw_indices
                if isinstance(i, int) and 0 <= i < issue_count
            ]
            if indices:
                clusters.append(IssueCluster(
                    name=str(raw.get("clusterName", "Untitled")),
                    theme=str(raw.get("themeDescription", "")),
                    issue_indices=indices,
                ))
        return clusters

    async def weekly_report(
        self,
        clusters: List[IssueCluster],
        issues: List[IssueItem],
        domain: str,
    ) -> str:
        """Weekly trend report text."""
        sections = []
        for cluster in clusters:
            members = "\n".join(
                f"  - {issues[i].headline}: {issues[i].insight}" for i in cluster.issue_indices
            )
            sections.append(f"## {cluster.name}\n{cluster.theme}\n{members}")

        prompt = (
            f"Domain: {domain}\nIssues analysed: {len(issues)}\n\n"
            + "\n\n".join(sections)
        )
        response = await self.client.complete(prompt, system=WEEKLY_SYSTEM)
        return response.content
