from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol, runtime_checkable

from tobac.core.models import Team


class DirectoryError(RuntimeError):
    """The team directory could not be read."""


class ResolveError(RuntimeError):
    """A resource's prior state could not be fetched from the cluster."""


@runtime_checkable
class DirectoryProvider(Protocol):
    def fetch_teams(self, *, timeout: float) -> Dict[str, Team]:
        """
        Fetch the full team list, keyed by internal team ID.

        Must be idempotent and safe to retry. Raises DirectoryError on failure.
        """


@dataclass(frozen=True)
class ResourceRef:
    group: str
    version: str
    resource: str
    name: str
    namespace: Optional[str] = None

    def describe(self) -> str:
        gvr = "/".join(p for p in (self.group, self.version, self.resource) if p)
        return f"{gvr} {self.namespace}/{self.name}" if self.namespace else f"{gvr} {self.name}"


@runtime_checkable
class ResourceResolver(Protocol):
    def resolve(self, ref: ResourceRef) -> Dict[str, Any]:
        """Return the live object for `ref`. Raises ResolveError on failure."""


def index_teams(teams: Iterable[Team]) -> Dict[str, Team]:
    """Key valid teams by internal ID; invalid entries are dropped."""
    return {t.team_id: t for t in teams if t.valid}
