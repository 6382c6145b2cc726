"""
Runtime configuration (env/ConfigMap driven).

Recommended vars:
- TOBAC_CLUSTER_ADMINS=<group-id>,<group-id>
- TOBAC_SERVICE_USER_TEMPLATES=serviceuser-%s,system:serviceaccount:%s:deployer
- TEAM_SYNC_INTERVAL_SECONDS=600
- TEAM_SYNC_TIMEOUT_SECONDS=10
- AZURE_APP_ID / AZURE_PASSWORD / AZURE_TENANT
- TEAMS_FILE=./teams.yaml (local development instead of Azure AD)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from tobac.authz.engine import TEMPLATE_SLOT

logger = logging.getLogger(__name__)

DEFAULT_TEAMS_SITE_GROUP = "9f0d0ea1-0226-4aa9-9bf9-b6e75816fabf"
DEFAULT_TEAMS_LIST = "nytt team"


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _split_csv(raw: str) -> List[str]:
    return [x.strip() for x in (raw or "").split(",") if x.strip()]


def parse_service_user_templates(raw: str) -> Tuple[str, ...]:
    """Keep templates with exactly one `%s` slot; anything else is dropped with a warning."""
    out: List[str] = []
    for template in _split_csv(raw):
        if template.count(TEMPLATE_SLOT) != 1:
            logger.warning("Ignoring service user template %r: expected exactly one %s slot", template, TEMPLATE_SLOT)
            continue
        out.append(template)
    return tuple(out)


@dataclass(frozen=True)
class TobacConfig:
    # Policy inputs
    cluster_admins: Tuple[str, ...]
    service_user_templates: Tuple[str, ...]

    # Team directory sync
    sync_interval_seconds: int
    sync_timeout_seconds: int

    # Azure AD / Microsoft Graph
    azure_app_id: Optional[str]
    azure_password: Optional[str]
    azure_tenant: Optional[str]
    azure_teams_site_group: str
    azure_teams_list: str

    # Local development
    teams_file: Optional[str]

    log_level: str = "INFO"

    @property
    def azure_enabled(self) -> bool:
        return bool(self.azure_app_id and self.azure_password and self.azure_tenant)


def load_config() -> TobacConfig:
    return TobacConfig(
        cluster_admins=tuple(_split_csv(os.getenv("TOBAC_CLUSTER_ADMINS", ""))),
        service_user_templates=parse_service_user_templates(os.getenv("TOBAC_SERVICE_USER_TEMPLATES", "")),
        sync_interval_seconds=max(5, _env_int("TEAM_SYNC_INTERVAL_SECONDS", 600)),
        sync_timeout_seconds=max(1, _env_int("TEAM_SYNC_TIMEOUT_SECONDS", 10)),
        azure_app_id=_env_str("AZURE_APP_ID"),
        azure_password=_env_str("AZURE_PASSWORD"),
        azure_tenant=_env_str("AZURE_TENANT"),
        azure_teams_site_group=_env_str("AZURE_TEAMS_SITE_GROUP") or DEFAULT_TEAMS_SITE_GROUP,
        azure_teams_list=_env_str("AZURE_TEAMS_LIST") or DEFAULT_TEAMS_LIST,
        teams_file=_env_str("TEAMS_FILE"),
        log_level=(_env_str("LOG_LEVEL") or "info").upper(),
    )


@lru_cache(maxsize=1)
def get_config() -> TobacConfig:
    """Process-wide config, loaded once. Tests call `get_config.cache_clear()`."""
    return load_config()
