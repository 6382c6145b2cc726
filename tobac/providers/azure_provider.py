"""
Azure AD team directory provider.

Teams are maintained as a SharePoint list hosted under an Azure AD group and read through
the Microsoft Graph API. Each list item's `fields` carries one team:

- `mailnick_x002f_tag`: internal team ID (slug)
- `GruppeID`: Azure AD group object ID
- `Title` / `Beskrivelse`: display name and description

Authenticates with the OAuth2 client credentials flow. Tokens are cached and refreshed
shortly before expiry.

Environment variables:
- AZURE_APP_ID: application (client) ID
- AZURE_PASSWORD: client secret
- AZURE_TENANT: tenant ID
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from tobac.core.config import TobacConfig
from tobac.core.models import Team
from tobac.providers.base import DirectoryError, index_teams

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"

# Refresh tokens this many seconds before they expire.
TOKEN_EXPIRY_MARGIN_SECONDS = 120
# Guard against a misbehaving server returning the same nextLink forever.
MAX_PAGES = 100


def _time_left(deadline: float) -> float:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise DirectoryError("timed out reading team list")
    return remaining


class AzureDirectoryProvider:
    def __init__(
        self,
        *,
        app_id: str,
        password: str,
        tenant: str,
        site_group: str,
        list_name: str,
    ) -> None:
        self.app_id = app_id
        self.password = password
        self.tenant = tenant
        self.site_group = site_group
        self.list_name = list_name

        # Token cache
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_config(cls, cfg: TobacConfig) -> "AzureDirectoryProvider":
        if not cfg.azure_enabled:
            raise ValueError("AZURE_APP_ID, AZURE_PASSWORD and AZURE_TENANT required")
        return cls(
            app_id=cfg.azure_app_id or "",
            password=cfg.azure_password or "",
            tenant=cfg.azure_tenant or "",
            site_group=cfg.azure_teams_site_group,
            list_name=cfg.azure_teams_list,
        )

    @property
    def list_items_url(self) -> str:
        return f"{GRAPH_BASE_URL}/groups/{self.site_group}/sites/root/lists/{quote(self.list_name)}/items"

    def _get_access_token(self, timeout: float) -> str:
        if self._access_token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN_SECONDS:
            return self._access_token

        url = TOKEN_URL_TEMPLATE.format(tenant=self.tenant)
        payload = {
            "client_id": self.app_id,
            "client_secret": self.password,
            "grant_type": "client_credentials",
            "scope": GRAPH_SCOPE,
        }
        try:
            r = requests.post(url, data=payload, timeout=timeout)
        except requests.RequestException as e:
            raise DirectoryError(f"token request failed: {e}") from e
        if r.status_code >= 300:
            # Avoid leaking the response body; it may echo credentials.
            raise DirectoryError(f"token request failed (status={r.status_code})")

        data = r.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise DirectoryError("token response missing access_token")
        self._access_token = str(token)
        self._token_expires_at = time.time() + float(data.get("expires_in") or 3600)
        return self._access_token

    def _get(self, url: str, *, params: Optional[Dict[str, str]], deadline: float) -> Dict[str, Any]:
        token = self._get_access_token(_time_left(deadline))
        # The token request may have used up part of the budget.
        timeout = _time_left(deadline)
        try:
            r = requests.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise DirectoryError(f"GET {url}: {e}") from e
        if r.status_code > 299:
            raise DirectoryError(f"GET {url}: {r.status_code} {r.reason}: {r.text[:500]}")
        data = r.json()
        if not isinstance(data, dict):
            raise DirectoryError(f"GET {url}: expected a JSON object")
        return data

    def list_team_entries(self, *, timeout: float) -> List[Dict[str, Any]]:
        """Return the raw `fields` of every list item, following `@odata.nextLink`."""
        deadline = time.monotonic() + timeout
        url: Optional[str] = self.list_items_url
        params: Optional[Dict[str, str]] = {"expand": "fields"}
        entries: List[Dict[str, Any]] = []

        for _ in range(MAX_PAGES):
            if url is None:
                break
            page = self._get(url, params=params, deadline=deadline)
            for item in page.get("value") or []:
                fields = item.get("fields") if isinstance(item, dict) else None
                if isinstance(fields, dict):
                    entries.append(fields)
            # nextLink already carries the query string.
            url = page.get("@odata.nextLink") or None
            params = None
        else:
            if url is not None:
                raise DirectoryError(f"team list exceeds {MAX_PAGES} pages")

        return entries

    def fetch_teams(self, *, timeout: float) -> Dict[str, Team]:
        teams: List[Team] = []
        for fields in self.list_team_entries(timeout=timeout):
            team = Team.model_validate(fields)
            if not team.valid:
                logger.debug("azure: skip incomplete team entry %r", fields.get("Title"))
                continue
            logger.debug("azure: add team '%s' with id '%s'", team.team_id, team.group_id)
            teams.append(team)
        return index_teams(teams)
