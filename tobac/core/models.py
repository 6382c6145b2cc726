"""Domain models shared by the decision engine, the team directory and the webhook.

Design note:
- `Team` is parsed from directory payloads, so it is a pydantic model that accepts the
  directory's wire aliases as well as its own field names.
- Everything built per admission call is a frozen dataclass: constructed once, never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, Optional, Protocol, Tuple, runtime_checkable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from tobac.authz.reasons import ReasonCode

TEAM_LABEL = "team"


class Team(BaseModel):
    """One directory-backed team. The zero value `Team()` is always invalid."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    team_id: str = Field(default="", validation_alias=AliasChoices("team_id", "mailnick_x002f_tag"))
    group_id: str = Field(default="", validation_alias=AliasChoices("group_id", "GruppeID", "azure_uuid"))
    display_name: str = Field(default="", validation_alias=AliasChoices("display_name", "Title", "title"))
    description: str = Field(default="", validation_alias=AliasChoices("description", "Beskrivelse"))

    @field_validator("team_id", "group_id", "display_name", "description", mode="before")
    @classmethod
    def _coerce_str(cls, v: Any) -> str:
        # Directory list columns may be null or numeric.
        return "" if v is None else str(v).strip()

    @property
    def valid(self) -> bool:
        return bool(self.team_id) and bool(self.group_id)


@runtime_checkable
class TeamLookup(Protocol):
    """Point lookup of a team by internal ID. Total: unknown teams yield `Team()`."""

    def get(self, team_id: str) -> Team: ...


@dataclass(frozen=True)
class Identity:
    username: str = ""
    groups: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, username: Optional[str], groups: Optional[Iterable[str]]) -> "Identity":
        return cls(username=str(username or ""), groups=frozenset(str(g) for g in (groups or []) if g is not None))


@dataclass(frozen=True)
class ResourceView:
    """The part of a Kubernetes object the engine cares about."""

    team: str = ""
    namespace: Optional[str] = None
    name: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def from_object(cls, obj: Optional[Dict[str, Any]]) -> "ResourceView":
        obj = obj if isinstance(obj, dict) else {}
        metadata = obj.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        labels = metadata.get("labels") or {}
        if not isinstance(labels, dict):
            labels = {}
        return cls(
            team=str(labels.get(TEAM_LABEL) or ""),
            namespace=metadata.get("namespace") or None,
            name=metadata.get("name") or None,
            kind=obj.get("kind") or None,
        )

    def describe(self) -> str:
        ref = f"{self.namespace}/{self.name}" if self.namespace else str(self.name or "<unnamed>")
        return f"{self.kind}/{ref}" if self.kind else ref


@dataclass(frozen=True)
class DecisionRequest:
    identity: Identity
    teams: TeamLookup
    submitted: Optional[ResourceView] = None
    existing: Optional[ResourceView] = None
    cluster_admins: Tuple[str, ...] = field(default_factory=tuple)
    service_user_templates: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    code: ReasonCode
    reason: str
