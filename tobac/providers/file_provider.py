"""Team directory read from a local YAML file (development and air-gapped clusters).

Expected shape, either a list or a mapping under `teams`:

    teams:
      - team_id: aura
        group_id: 0a1b2c3d-...
        display_name: Aura
        description: Platform team
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from tobac.core.models import Team
from tobac.providers.base import DirectoryError, index_teams

logger = logging.getLogger(__name__)


class FileDirectoryProvider:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load_entries(self) -> List[Dict[str, Any]]:
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise DirectoryError(f"read teams file {self.path}: {e}") from e

        if isinstance(raw, dict):
            raw = raw.get("teams")
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise DirectoryError(f"teams file {self.path}: expected a list of teams")
        return [x for x in raw if isinstance(x, dict)]

    def fetch_teams(self, *, timeout: float) -> Dict[str, Team]:
        # Local reads are not bounded by `timeout`.
        teams: List[Team] = []
        for entry in self._load_entries():
            try:
                teams.append(Team.model_validate(entry))
            except ValidationError as e:
                logger.warning("teams file %s: skipping malformed entry: %s", self.path, e)
        return index_teams(teams)
