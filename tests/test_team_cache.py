from __future__ import annotations

import threading
import time
from typing import Dict, Iterable, Optional

from tobac.core.models import Team, TeamLookup
from tobac.directory.cache import TeamDirectoryCache


class FakeDirectoryProvider:
    """Scripted directory: returns queued results in order, raising queued exceptions."""

    def __init__(self, results: Optional[Iterable[object]] = None) -> None:
        self.results = list(results or [])
        self.calls = 0
        self.timeouts = []

    def fetch_teams(self, *, timeout: float) -> Dict[str, Team]:
        self.calls += 1
        self.timeouts.append(timeout)
        if not self.results:
            raise RuntimeError("directory unavailable")
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return dict(result)  # type: ignore[call-overload]


def team(team_id: str, group_id: Optional[str] = None) -> Team:
    return Team(team_id=team_id, group_id=group_id if group_id is not None else f"group-{team_id}")


def _cache(provider: FakeDirectoryProvider, **kwargs) -> TeamDirectoryCache:
    kwargs.setdefault("interval_seconds", 60)
    kwargs.setdefault("timeout_seconds", 3)
    return TeamDirectoryCache(provider, **kwargs)


def test_cold_start_lookups_are_invalid() -> None:
    cache = _cache(FakeDirectoryProvider([{"foo": team("foo")}]))
    assert cache.synced is False
    assert cache.get("foo") == Team()
    assert cache.get("foo").valid is False
    assert len(cache) == 0


def test_cache_satisfies_team_lookup_protocol() -> None:
    assert isinstance(_cache(FakeDirectoryProvider()), TeamLookup)


def test_refresh_does_not_touch_snapshot() -> None:
    provider = FakeDirectoryProvider([{"foo": team("foo")}])
    cache = _cache(provider)
    teams = cache.refresh()
    assert set(teams) == {"foo"}
    assert cache.get("foo").valid is False
    assert provider.timeouts == [3.0]


def test_refresh_drops_invalid_teams() -> None:
    cache = _cache(FakeDirectoryProvider([{"foo": team("foo"), "bar": Team(team_id="bar")}]))
    assert set(cache.refresh()) == {"foo"}


def test_sync_once_replaces_snapshot() -> None:
    cache = _cache(FakeDirectoryProvider([{"foo": team("foo")}, {"bar": team("bar")}]))

    assert cache.sync_once() is True
    assert cache.synced is True
    assert cache.get("foo").group_id == "group-foo"
    assert cache.last_success_at is not None

    assert cache.sync_once() is True
    assert cache.get("foo").valid is False
    assert cache.get("bar").valid is True
    assert len(cache) == 1


def test_failed_refresh_keeps_previous_snapshot() -> None:
    provider = FakeDirectoryProvider([{"foo": team("foo")}, RuntimeError("boom")])
    cache = _cache(provider)
    assert cache.sync_once() is True
    before = cache.get("foo")

    assert cache.sync_once() is False
    assert cache.get("foo") == before
    assert cache.last_error == "boom"
    assert cache.synced is True

    # n consecutive failures behave exactly like one.
    for _ in range(5):
        assert cache.sync_once() is False
    assert cache.get("foo") == before
    assert len(cache) == 1


def test_recovery_after_failure_clears_error() -> None:
    cache = _cache(FakeDirectoryProvider([RuntimeError("down"), {"foo": team("foo")}]))
    assert cache.sync_once() is False
    assert cache.synced is False
    assert cache.sync_once() is True
    assert cache.last_error is None


def test_run_sync_loop_stops_on_event() -> None:
    provider = FakeDirectoryProvider([{"foo": team("foo")}])
    cache = _cache(provider, interval_seconds=0.01)
    stop = threading.Event()

    t = threading.Thread(target=cache.run_sync_loop, args=(stop,), daemon=True)
    t.start()
    deadline = time.monotonic() + 5
    while provider.calls < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    t.join(timeout=5)

    assert not t.is_alive()
    assert provider.calls >= 3
    assert cache.get("foo").valid is True


def test_run_sync_loop_survives_failures() -> None:
    provider = FakeDirectoryProvider([RuntimeError("down")])
    cache = _cache(provider, interval_seconds=0.01)
    stop = threading.Event()

    t = threading.Thread(target=cache.run_sync_loop, args=(stop,), daemon=True)
    t.start()
    deadline = time.monotonic() + 5
    while provider.calls < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    t.join(timeout=5)

    assert not t.is_alive()
    assert provider.calls >= 3
    assert cache.synced is False


def test_run_sync_loop_waits_full_interval_between_ticks() -> None:
    provider = FakeDirectoryProvider([{"foo": team("foo")}])
    cache = _cache(provider, interval_seconds=30)
    stop = threading.Event()

    t = threading.Thread(target=cache.run_sync_loop, args=(stop,), daemon=True)
    t.start()
    time.sleep(0.2)
    stop.set()
    t.join(timeout=5)

    assert not t.is_alive()
    assert provider.calls == 1


def test_start_and_stop_background_thread() -> None:
    provider = FakeDirectoryProvider([{"foo": team("foo")}])
    cache = _cache(provider, interval_seconds=30)
    cache.start()
    cache.start()  # idempotent
    deadline = time.monotonic() + 5
    while not cache.synced and time.monotonic() < deadline:
        time.sleep(0.01)
    cache.stop(timeout=5)

    assert cache.synced is True
    assert provider.calls == 1


def test_concurrent_readers_never_see_partial_snapshot() -> None:
    a = {f"team-{i}": team(f"team-{i}", "a") for i in range(50)}
    b = {f"team-{i}": team(f"team-{i}", "b") for i in range(50)}
    cache = _cache(FakeDirectoryProvider([a]))
    cache.replace(a)
    errors = []
    stop = threading.Event()

    def _reader() -> None:
        while not stop.is_set():
            t = cache.get("team-7")
            if not t.valid or t.group_id not in ("a", "b"):
                errors.append(t)

    readers = [threading.Thread(target=_reader, daemon=True) for _ in range(4)]
    for r in readers:
        r.start()
    for i in range(200):
        cache.replace(b if i % 2 else a)
    stop.set()
    for r in readers:
        r.join(timeout=5)

    assert errors == []
