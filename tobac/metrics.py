"""Prometheus metrics, served on the webhook's `/metrics` endpoint."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

ADMITTED = Counter("tobac_admitted_total", "Number of admission requests admitted", ["code"])
DENIED = Counter("tobac_denied_total", "Number of admission requests denied", ["code"])
TEAM_SYNC = Counter("tobac_team_sync_total", "Team directory refresh attempts", ["result"])
TEAMS_CACHED = Gauge("tobac_teams_cached", "Number of teams in the current directory snapshot")


def record_decision(allowed: bool, code: str) -> None:
    if allowed:
        ADMITTED.labels(code=code).inc()
    else:
        DENIED.labels(code=code).inc()
