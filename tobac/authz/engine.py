"""
Authorization decision engine.

`evaluate` answers one admission call: may this identity write this resource?
Rules are checked in order and the first terminal rule wins:

1. cluster administrators are always allowed
2. the submitted resource must carry a team label naming a known team
3. if the existing resource is labeled, its team must exist and the user must belong to it
   (directory group or service user template); for deletes this is the final answer
4. an unlabeled existing resource imposes no ownership constraint (annexation)
5. the user must belong to the submitted team (directory group or service user template)

Moving a resource between teams therefore requires access to both teams.

The engine performs no I/O and holds no state; the only external call is the injected
`TeamLookup`, which is expected to be total and non-blocking.
"""

from __future__ import annotations

from typing import Iterable, Optional

from tobac.authz.reasons import (
    MSG_ANNEXATION,
    MSG_CLUSTER_ADMIN,
    MSG_EXISTING_TEAM_NOT_FOUND,
    MSG_MISSING_TEAM_LABEL,
    MSG_NO_ACCESS,
    MSG_OWNER_SERVICE_USER,
    MSG_OWNER_TEAM_MEMBER,
    MSG_SERVICE_USER,
    MSG_TEAM_MEMBER,
    MSG_TEAM_NOT_FOUND,
    MSG_UNLABELED_EXISTING,
    ReasonCode,
)
from tobac.core.models import Decision, DecisionRequest, Identity, Team

TEMPLATE_SLOT = "%s"


def _allow(code: ReasonCode, reason: str) -> Decision:
    return Decision(allowed=True, code=code, reason=reason)


def _deny(code: ReasonCode, reason: str) -> Decision:
    return Decision(allowed=False, code=code, reason=reason)


def render_service_user(template: str, team_id: str) -> str:
    """Instantiate a service user template (one `%s` slot) for a team."""
    return template.replace(TEMPLATE_SLOT, team_id, 1)


def has_service_user_access(username: str, team_id: str, templates: Iterable[str]) -> bool:
    """Exact match of `username` against every template rendered for `team_id`."""
    if not username or not team_id:
        return False
    for template in templates:
        if username == render_service_user(template, team_id):
            return True
    return False


def cluster_admin_group(identity: Identity, cluster_admins: Iterable[str]) -> Optional[str]:
    """Return the first configured admin group the identity holds, if any."""
    for group in cluster_admins:
        if group and group in identity.groups:
            return group
    return None


def _is_member(identity: Identity, team: Team) -> bool:
    return team.valid and team.group_id in identity.groups


def evaluate(request: DecisionRequest) -> Decision:
    identity = request.identity

    # Cluster administrators bypass every ownership check, even on malformed objects.
    admin_group = cluster_admin_group(identity, request.cluster_admins)
    if admin_group is not None:
        return _allow("cluster_admin", MSG_CLUSTER_ADMIN.format(group=admin_group))

    submitted = request.submitted
    existing = request.existing

    team = Team()
    team_id = ""
    if submitted is not None:
        team_id = submitted.team
        if not team_id:
            return _deny("missing_team_label", MSG_MISSING_TEAM_LABEL)
        team = request.teams.get(team_id)
        if not team.valid:
            return _deny("team_not_found", MSG_TEAM_NOT_FOUND.format(team=team_id))

    annexing = False
    if existing is not None:
        existing_id = existing.team
        if existing_id:
            existing_team = request.teams.get(existing_id)
            if not existing_team.valid:
                return _deny("existing_team_not_found", MSG_EXISTING_TEAM_NOT_FOUND.format(team=existing_id))

            member = _is_member(identity, existing_team)
            service_user = not member and has_service_user_access(
                identity.username, existing_team.team_id, request.service_user_templates
            )
            if not member and not service_user:
                return _deny(
                    "no_access_existing_team",
                    MSG_NO_ACCESS.format(user=identity.username, team=existing_id),
                )

            if submitted is None:
                if service_user:
                    return _allow(
                        "owner_service_user",
                        MSG_OWNER_SERVICE_USER.format(user=identity.username, team=existing_id),
                    )
                return _allow(
                    "owner_team_member",
                    MSG_OWNER_TEAM_MEMBER.format(user=identity.username, team=existing_id),
                )
        elif submitted is None:
            return _allow("unlabeled_existing", MSG_UNLABELED_EXISTING)
        else:
            # No owner on record: anyone passing the submitted-team check may claim it.
            annexing = True

    if _is_member(identity, team):
        if annexing:
            return _allow("annexation", MSG_ANNEXATION.format(team=team_id))
        return _allow("team_member", MSG_TEAM_MEMBER.format(user=identity.username, team=team_id))

    if has_service_user_access(identity.username, team.team_id, request.service_user_templates):
        return _allow("service_user", MSG_SERVICE_USER.format(user=identity.username, team=team_id))

    # default deny
    return _deny("no_access_team", MSG_NO_ACCESS.format(user=identity.username, team=team_id))
