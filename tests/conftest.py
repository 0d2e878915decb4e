"""
Pytest Configuration and Shared Fixtures

Provides in-process fakes for every storage variant, a controllable clock
and a scripted analyst so no test needs network access or real waiting.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from briefdesk.analyzer.trend import IssueCluster
from briefdesk.models import IssueItem
from briefdesk.persistence import FileStorage, MemoryStorage, RedisStorage, RestKVStorage


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Key-value fakes
# ============================================================================

class _SortedSets:
    """Score map per index, read back like ZREVRANGE (ties by member, descending)."""

    def __init__(self):
        self.sets: Dict[str, Dict[str, float]] = {}

    def add(self, index: str, score: float, member: str) -> int:
        members = self.sets.setdefault(index, {})
        added = 0 if member in members else 1
        members[member] = float(score)
        return added

    def rev_range(self, index: str, start: int, stop: int) -> List[str]:
        members = self.sets.get(index, {})
        ordered = sorted(members.items(), key=lambda item: (item[1], item[0]), reverse=True)
        return [member for member, _ in ordered[start:stop + 1]]

    def remove(self, index: str, member: str) -> int:
        return 1 if self.sets.get(index, {}).pop(member, None) is not None else 0


class FakeKVServer:
    """
    REST key-value service answering the command-array protocol.

    Mount with `httpx.MockTransport(server.handle)`. Set `fail_commands`
    to make matching commands answer with an error body.
    """

    def __init__(self, clock: FakeClock, token: str = "test-token"):
        self.clock = clock
        self.token = token
        self.values: Dict[str, Any] = {}
        self.expiry: Dict[str, float] = {}
        self.zsets = _SortedSets()
        self.commands: List[List[str]] = []
        self.fail_commands: List[str] = []

    def _live(self, key: str) -> bool:
        expires_at = self.expiry.get(key)
        if expires_at is not None and expires_at <= self.clock():
            self.values.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.values

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"error": "Unauthorized"})

        args = json.loads(request.content)
        self.commands.append(args)
        command = args[0].upper()
        if command in self.fail_commands:
            return httpx.Response(500, json={"error": f"ERR {command} disabled"})

        if command == "SET":
            key, value = args[1], args[2]
            self.values[key] = value
            self.expiry.pop(key, None)
            if len(args) == 5 and args[3].upper() == "EX":
                self.expiry[key] = self.clock() + int(args[4])
            return httpx.Response(200, json={"result": "OK"})
        if command == "GET":
            key = args[1]
            return httpx.Response(200, json={"result": self.values[key] if self._live(key) else None})
        if command == "MGET":
            result = [self.values[key] if self._live(key) else None for key in args[1:]]
            return httpx.Response(200, json={"result": result})
        if command == "DEL":
            key = args[1]
            existed = self._live(key)
            self.values.pop(key, None)
            return httpx.Response(200, json={"result": 1 if existed else 0})
        if command == "ZADD":
            return httpx.Response(200, json={"result": self.zsets.add(args[1], float(args[2]), args[3])})
        if command == "ZRANGE":
            assert args[-1].upper() == "REV"
            members = self.zsets.rev_range(args[1], int(args[2]), int(args[3]))
            return httpx.Response(200, json={"result": members})
        if command == "ZREM":
            return httpx.Response(200, json={"result": self.zsets.remove(args[1], args[2])})

        return httpx.Response(400, json={"error": f"ERR unknown command {command}"})


class FakeRedis:
    """The subset of redis.asyncio.Redis used by RedisStorage."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.values: Dict[str, str] = {}
        self.expiry: Dict[str, float] = {}
        self.zsets = _SortedSets()
        self.closed = False

    def _live(self, key: str) -> bool:
        expires_at = self.expiry.get(key)
        if expires_at is not None and expires_at <= self.clock():
            self.values.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.values

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self.values[key] = value
        self.expiry.pop(key, None)
        if ex is not None:
            self.expiry[key] = self.clock() + ex
        return True

    async def get(self, key: str):
        return self.values[key] if self._live(key) else None

    async def mget(self, keys: List[str]):
        return [self.values[key] if self._live(key) else None for key in keys]

    async def delete(self, key: str) -> int:
        existed = self._live(key)
        self.values.pop(key, None)
        return 1 if existed else 0

    async def zadd(self, index: str, mapping: Dict[str, float]) -> int:
        return sum(self.zsets.add(index, score, member) for member, score in mapping.items())

    async def zrevrange(self, index: str, start: int, stop: int) -> List[str]:
        return self.zsets.rev_range(index, start, stop)

    async def zrem(self, index: str, member: str) -> int:
        return self.zsets.remove(index, member)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def kv_server(clock) -> FakeKVServer:
    return FakeKVServer(clock)


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def rest_storage(kv_server) -> RestKVStorage:
    return RestKVStorage(
        url="https://kv.test",
        token=kv_server.token,
        transport=httpx.MockTransport(kv_server.handle),
    )


@pytest.fixture(params=["memory", "file", "rest-kv", "redis"])
def backend(request, clock, tmp_path, kv_server, fake_redis):
    """Every storage variant, each driven by the same fake clock."""
    if request.param == "memory":
        return MemoryStorage(clock=clock)
    if request.param == "file":
        return FileStorage(str(tmp_path / "data"), clock=clock)
    if request.param == "rest-kv":
        return RestKVStorage(
            url="https://kv.test",
            token=kv_server.token,
            transport=httpx.MockTransport(kv_server.handle),
        )
    return RedisStorage(client=fake_redis)


# ============================================================================
# Domain fixtures
# ============================================================================

def make_issue(n: int, sources: Optional[List[str]] = None) -> IssueItem:
    return IssueItem(
        headline=f"Issue {n}: model release",
        key_facts=[f"fact {n}.1", f"fact {n}.2"],
        insight=f"insight {n}",
        framework="Value chain",
        sources=sources if sources is not None else [f"https://news.example.com/{n}"],
    )


@pytest.fixture
def sample_issues() -> List[IssueItem]:
    return [make_issue(n) for n in range(1, 4)]


class FakeAnalyst:
    """
    Scripted stand-in for TrendAnalyst.

    Set `fail_on` to a step name ("research", "synthesize", "cluster",
    "weekly") to make that step raise.
    """

    def __init__(self):
        self.fail_on: Optional[str] = None
        self.calls: List[str] = []
        self.contexts: List[str] = []

    def _step(self, name: str):
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    async def research(self, issue: IssueItem, context: str = "") -> str:
        self._step("research")
        self.contexts.append(context)
        return f"research notes for {issue.headline}"

    async def synthesize(self, issue: IssueItem, research: str, now=None) -> str:
        self._step("synthesize")
        return f"# Report\n\nbased on: {research}"

    async def cluster_issues(self, issues: List[IssueItem]) -> List[IssueCluster]:
        self._step("cluster")
        return [IssueCluster(name="All", theme="everything", issue_indices=list(range(len(issues))))]

    async def weekly_report(self, clusters, issues, domain: str) -> str:
        self._step("weekly")
        return f"weekly {domain}: {len(issues)} issues in {len(clusters)} clusters"


@pytest.fixture
def fake_analyst() -> FakeAnalyst:
    return FakeAnalyst()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
