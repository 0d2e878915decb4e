"""
Tests for the brief archive and brief publishing.
"""

from datetime import datetime, timezone

import pytest

from briefdesk.briefing import KST, build_brief, build_markdown, day_of_week_label, publish_brief
from briefdesk.errors import StorageError, ValidationError
from briefdesk.models import BriefReport, split_date_key
from briefdesk.persistence import BRIEF_INDEX, BriefArchive, MemoryStorage, date_score
from briefdesk.persistence.archive import brief_key, date_key_for

from conftest import make_issue


def make_brief(date: str, issue_count: int = 1) -> BriefReport:
    _, day = split_date_key(date)
    moment = datetime.strptime(day, "%Y-%m-%d").replace(hour=9, tzinfo=KST)
    issues = [make_issue(n) for n in range(1, issue_count + 1)]
    return BriefReport(
        id=date,
        date=date,
        day_of_week=day_of_week_label(moment),
        generated_at=moment,
        total_issues=len(issues),
        issues=issues,
    )


# =============================================================================
# KEYS AND SCORES
# =============================================================================

class TestDateKeys:

    def test_score_is_epoch_ms_of_day(self):
        assert date_score("2026-02-22") == float(
            int(datetime(2026, 2, 22, tzinfo=timezone.utc).timestamp() * 1000)
        )

    def test_prefixed_key_scores_as_its_day(self):
        assert date_score("battery-2026-02-22") == date_score("2026-02-22")

    @pytest.mark.parametrize("bad", ["", "yesterday", "2026-2-22", "Battery-2026-02-22"])
    def test_malformed_date_rejected(self, bad):
        with pytest.raises(ValidationError):
            date_score(bad)

    def test_default_domain_is_unprefixed(self):
        assert date_key_for("ai", "2026-02-22") == "2026-02-22"
        assert date_key_for("battery", "2026-02-22") == "battery-2026-02-22"

    def test_record_key(self):
        assert brief_key("2026-02-22") == "brief:2026-02-22"

    def test_impossible_calendar_day_rejected(self):
        with pytest.raises(ValueError):
            make_brief("2026-02-30")


# =============================================================================
# ARCHIVE
# =============================================================================

class TestBriefArchive:

    @pytest.mark.asyncio
    async def test_save_and_read_back(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-22", issue_count=3))

        loaded = await archive.get_brief_by_date("2026-02-22")
        assert loaded is not None
        assert loaded.total_issues == 3
        assert [issue.headline for issue in loaded.issues] == [
            "Issue 1: model release", "Issue 2: model release", "Issue 3: model release",
        ]

    @pytest.mark.asyncio
    async def test_round_trip_is_lossless(self, backend):
        brief = make_brief("battery-2026-02-22", issue_count=2)
        await BriefArchive(backend).save_brief(brief)
        assert await BriefArchive(backend).get_brief_by_date("battery-2026-02-22") == brief

    @pytest.mark.asyncio
    async def test_record_stored_in_camel_case(self, clock):
        backend = MemoryStorage(clock=clock)
        await BriefArchive(backend).save_brief(make_brief("2026-02-22"))

        stored = await backend.get("brief:2026-02-22")
        assert {"dayOfWeek", "generatedAt", "totalIssues"} <= set(stored)
        assert stored["issues"][0]["keyFacts"] == ["fact 1.1", "fact 1.2"]

    @pytest.mark.asyncio
    async def test_every_saved_brief_is_indexed(self, backend):
        archive = BriefArchive(backend)
        for date in ("2026-02-20", "2026-02-21", "2026-02-22"):
            await archive.save_brief(make_brief(date))

        assert await backend.index_range_desc(BRIEF_INDEX, 0, 10) == [
            "2026-02-22", "2026-02-21", "2026-02-20",
        ]

    @pytest.mark.asyncio
    async def test_listing_returns_newest_first_up_to_limit(self, backend):
        archive = BriefArchive(backend)
        for day in range(1, 16):
            await archive.save_brief(make_brief(f"2026-01-{day:02d}"))

        briefs = await archive.get_all_briefs(limit=10)
        assert [b.date for b in briefs] == [f"2026-01-{day:02d}" for day in range(15, 5, -1)]

    @pytest.mark.asyncio
    async def test_latest_brief_follows_index_not_write_order(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-22"))
        await archive.save_brief(make_brief("2026-02-10"))

        latest = await archive.get_latest_brief()
        assert latest.date == "2026-02-22"

    @pytest.mark.asyncio
    async def test_empty_archive(self, backend):
        archive = BriefArchive(backend)
        assert await archive.get_latest_brief() is None
        assert await archive.get_all_briefs() == []
        assert await archive.get_brief_by_date("2026-02-22") is None

    @pytest.mark.asyncio
    async def test_overwrite_same_date_keeps_one_index_entry(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-22", issue_count=1))
        await archive.save_brief(make_brief("2026-02-22", issue_count=2))

        assert await backend.index_range_desc(BRIEF_INDEX, 0, 10) == ["2026-02-22"]
        assert (await archive.get_brief_by_date("2026-02-22")).total_issues == 2

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_index(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-21"))
        await archive.save_brief(make_brief("2026-02-22"))

        assert await archive.delete_brief("2026-02-22") is True
        assert await archive.get_brief_by_date("2026-02-22") is None
        assert (await archive.get_latest_brief()).date == "2026-02-21"
        assert await archive.delete_brief("2026-02-22") is False

    @pytest.mark.asyncio
    async def test_listing_skips_index_entries_without_record(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-21"))
        await archive.save_brief(make_brief("2026-02-22"))
        await backend.delete(brief_key("2026-02-22"))

        assert [b.date for b in await archive.get_all_briefs()] == ["2026-02-21"]

    @pytest.mark.asyncio
    async def test_unreadable_record_is_skipped(self, clock):
        backend = MemoryStorage(clock=clock)
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-21"))
        await backend.put(brief_key("2026-02-22"), {"garbage": True})
        await backend.index_add(BRIEF_INDEX, date_score("2026-02-22"), "2026-02-22")

        assert [b.date for b in await archive.get_all_briefs()] == ["2026-02-21"]

    @pytest.mark.asyncio
    async def test_invalid_date_lookup_rejected(self, backend):
        with pytest.raises(ValidationError):
            await BriefArchive(backend).get_brief_by_date("../secrets")

    @pytest.mark.asyncio
    async def test_index_failure_reported_as_partial_write(self, rest_storage, kv_server):
        archive = BriefArchive(rest_storage)
        kv_server.fail_commands = ["ZADD"]

        with pytest.raises(StorageError) as exc_info:
            await archive.save_brief(make_brief("2026-02-22"))

        assert exc_info.value.details == {"date": "2026-02-22", "partial": True}
        assert "brief:2026-02-22" in kv_server.values

    @pytest.mark.asyncio
    async def test_retention_ttl_only_on_native_backends(self, rest_storage, kv_server, clock):
        archive = BriefArchive(rest_storage, retention_days=90)
        assert archive.retention_seconds == 7_776_000

        await archive.save_brief(make_brief("2026-02-22"))
        assert kv_server.expiry["brief:2026-02-22"] == clock() + 7_776_000

        assert BriefArchive(MemoryStorage(clock=clock)).retention_seconds is None


# =============================================================================
# RECENT ISSUES
# =============================================================================

class TestRecentIssues:

    @pytest.mark.asyncio
    async def test_collects_issues_within_window(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-10", issue_count=2))
        await archive.save_brief(make_brief("2026-02-18", issue_count=2))
        await archive.save_brief(make_brief("2026-02-22", issue_count=3))

        now = datetime(2026, 2, 22, 12, tzinfo=timezone.utc)
        issues = await archive.get_recent_issues(days=7, now=now)
        assert len(issues) == 5

    @pytest.mark.asyncio
    async def test_domain_prefix_filters_briefs(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2026-02-22", issue_count=1))
        await archive.save_brief(make_brief("battery-2026-02-22", issue_count=2))

        now = datetime(2026, 2, 22, 12, tzinfo=timezone.utc)
        assert len(await archive.get_recent_issues(7, "battery", now=now)) == 2
        assert len(await archive.get_recent_issues(7, "ai", now=now)) == 1

    @pytest.mark.asyncio
    async def test_nothing_recent(self, backend):
        archive = BriefArchive(backend)
        await archive.save_brief(make_brief("2025-12-01"))
        now = datetime(2026, 2, 22, tzinfo=timezone.utc)
        assert await archive.get_recent_issues(7, now=now) == []


# =============================================================================
# PUBLISHING
# =============================================================================

class TestPublishBrief:

    def test_build_brief_uses_kst_date(self, sample_issues):
        # 23:30 UTC on the 21st is already the 22nd in Seoul
        now = datetime(2026, 2, 21, 23, 30, tzinfo=timezone.utc)
        brief = build_brief(sample_issues, now=now)

        assert brief.id == brief.date == "2026-02-22"
        assert brief.day_of_week == "일"
        assert brief.total_issues == 3
        assert "## Issue 1. Issue 1: model release" in brief.markdown

    def test_build_brief_prefixes_domain(self, sample_issues):
        now = datetime(2026, 2, 22, 9, tzinfo=KST)
        brief = build_brief(sample_issues, domain="battery", now=now)
        assert brief.date == "battery-2026-02-22"
        assert brief.markdown.startswith("# 🔋 Battery Daily Brief - 2026-02-22")

    def test_markdown_for_empty_day(self):
        md = build_markdown([], datetime(2026, 2, 22, tzinfo=KST))
        assert "No issues were collected" in md

    @pytest.mark.asyncio
    async def test_existing_brief_is_kept_without_force(self, clock, sample_issues):
        archive = BriefArchive(MemoryStorage(clock=clock))
        now = datetime(2026, 2, 22, 9, tzinfo=KST)

        first = await publish_brief(archive, sample_issues[:1], now=now)
        second = await publish_brief(archive, sample_issues, now=now)

        assert first.created is True
        assert second.created is False
        assert second.brief.total_issues == 1

    @pytest.mark.asyncio
    async def test_force_overwrites(self, clock, sample_issues):
        archive = BriefArchive(MemoryStorage(clock=clock))
        now = datetime(2026, 2, 22, 9, tzinfo=KST)

        await publish_brief(archive, sample_issues[:1], now=now)
        result = await publish_brief(archive, sample_issues, force=True, now=now)

        assert result.created is True
        assert (await archive.get_brief_by_date("2026-02-22")).total_issues == 3
