"""
Team directory cache.

Holds the latest snapshot of valid teams and answers point lookups without blocking on
network I/O. A single background thread refreshes the snapshot on a fixed interval:

- success: the whole snapshot is swapped atomically
- failure: the error is logged and the previous snapshot is kept (no eviction, no TTL)

Before the first successful refresh every lookup returns the invalid zero-value `Team()`.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from tobac import metrics
from tobac.core.config import TobacConfig
from tobac.core.models import Team
from tobac.providers.base import DirectoryProvider

logger = logging.getLogger(__name__)

_EMPTY_TEAM = Team()


class TeamDirectoryCache:
    def __init__(
        self,
        provider: DirectoryProvider,
        *,
        interval_seconds: float = 600.0,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.provider = provider
        self.interval_seconds = float(interval_seconds)
        self.timeout_seconds = float(timeout_seconds)

        # Guards `_teams`; replaced whole, read one entry at a time.
        self._lock = threading.Lock()
        self._teams: Dict[str, Team] = {}

        self._synced = False
        self.last_success_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def get(self, team_id: str) -> Team:
        with self._lock:
            return self._teams.get(team_id, _EMPTY_TEAM)

    def __len__(self) -> int:
        with self._lock:
            return len(self._teams)

    @property
    def synced(self) -> bool:
        """True once at least one refresh has succeeded."""
        return self._synced

    def refresh(self) -> Dict[str, Team]:
        """Fetch a fresh directory. Does not touch the cached snapshot; raises on failure."""
        teams = self.provider.fetch_teams(timeout=self.timeout_seconds)
        return {team_id: t for team_id, t in teams.items() if t.valid}

    def replace(self, teams: Dict[str, Team]) -> None:
        snapshot = dict(teams)
        with self._lock:
            self._teams = snapshot
        self._synced = True
        self.last_success_at = datetime.now(timezone.utc)
        self.last_error = None
        metrics.TEAMS_CACHED.set(len(snapshot))

    def sync_once(self) -> bool:
        """One tick of the sync loop. Returns True when the snapshot was replaced."""
        logger.debug("Retrieving teams from the team directory")
        try:
            teams = self.refresh()
        except Exception as e:
            # The loop must outlive any provider failure; keep serving the old snapshot.
            self.last_error = str(e)
            metrics.TEAM_SYNC.labels(result="error").inc()
            logger.error("while retrieving teams: %s", e)
            return False

        self.replace(teams)
        metrics.TEAM_SYNC.labels(result="ok").inc()
        logger.info("Cached %d teams from the team directory", len(teams))
        return True

    def run_sync_loop(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Refresh forever (until `stop_event` is set).

        Tick starts are spaced by the interval: a slow fetch shortens the following wait.
        """
        stop = stop_event or self._stop
        while not stop.is_set():
            started = time.monotonic()
            self.sync_once()
            elapsed = time.monotonic() - started
            if stop.wait(max(0.0, self.interval_seconds - elapsed)):
                break
        logger.info("Team directory sync loop stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_sync_loop, name="team-directory-sync", daemon=True)
        self._thread.start()
        logger.info(
            "Team directory sync started (interval=%.0fs timeout=%.0fs)", self.interval_seconds, self.timeout_seconds
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None


def get_directory_provider(cfg: TobacConfig) -> DirectoryProvider:
    """File provider when TEAMS_FILE is set, Azure AD otherwise."""
    if cfg.teams_file:
        from tobac.providers.file_provider import FileDirectoryProvider

        logger.info("Using team directory file %s", cfg.teams_file)
        return FileDirectoryProvider(cfg.teams_file)

    from tobac.providers.azure_provider import AzureDirectoryProvider

    return AzureDirectoryProvider.from_config(cfg)


def build_team_cache(cfg: TobacConfig, provider: Optional[DirectoryProvider] = None) -> TeamDirectoryCache:
    return TeamDirectoryCache(
        provider if provider is not None else get_directory_provider(cfg),
        interval_seconds=cfg.sync_interval_seconds,
        timeout_seconds=cfg.sync_timeout_seconds,
    )
