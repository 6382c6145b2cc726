from __future__ import annotations

from typing import FrozenSet, Literal, get_args

AllowCode = Literal[
    "cluster_admin",
    "owner_team_member",
    "owner_service_user",
    "unlabeled_existing",
    "team_member",
    "annexation",
    "service_user",
]

DenyCode = Literal[
    "missing_team_label",
    "team_not_found",
    "existing_team_not_found",
    "no_access_existing_team",
    "no_access_team",
]

ReasonCode = Literal[AllowCode, DenyCode]

ALLOW_CODES: FrozenSet[str] = frozenset(get_args(AllowCode))
DENY_CODES: FrozenSet[str] = frozenset(get_args(DenyCode))

# Message templates are stable: operators grep audit logs for them.
MSG_CLUSTER_ADMIN = "cluster administrator via group '{group}'"
MSG_OWNER_TEAM_MEMBER = "user '{user}' belongs to owner team '{team}'"
MSG_OWNER_SERVICE_USER = "user '{user}' matches a service user template for owner team '{team}'"
MSG_UNLABELED_EXISTING = "existing resource has no team label"
MSG_TEAM_MEMBER = "user '{user}' belongs to team '{team}'"
MSG_ANNEXATION = "resource had no team label; annexed by team '{team}'"
MSG_SERVICE_USER = "user '{user}' matches a service user template for team '{team}'"

MSG_MISSING_TEAM_LABEL = "object is not tagged with a team label"
MSG_TEAM_NOT_FOUND = "team '{team}' does not exist in the team directory"
MSG_EXISTING_TEAM_NOT_FOUND = "team '{team}' on existing resource does not exist in the team directory"
MSG_NO_ACCESS = "user '{user}' has no access to team '{team}'"
