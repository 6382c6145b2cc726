from __future__ import annotations

import pytest

from tobac.core.config import DEFAULT_TEAMS_LIST, load_config, parse_service_user_templates
from tobac.directory.cache import build_team_cache, get_directory_provider
from tobac.providers.file_provider import FileDirectoryProvider


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "TOBAC_CLUSTER_ADMINS",
        "TOBAC_SERVICE_USER_TEMPLATES",
        "TEAM_SYNC_INTERVAL_SECONDS",
        "TEAM_SYNC_TIMEOUT_SECONDS",
        "AZURE_APP_ID",
        "AZURE_PASSWORD",
        "AZURE_TENANT",
        "AZURE_TEAMS_LIST",
        "TEAMS_FILE",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    cfg = load_config()
    assert cfg.cluster_admins == ()
    assert cfg.service_user_templates == ()
    assert cfg.sync_interval_seconds == 600
    assert cfg.sync_timeout_seconds == 10
    assert cfg.azure_enabled is False
    assert cfg.azure_teams_list == DEFAULT_TEAMS_LIST
    assert cfg.log_level == "INFO"


def test_parses_lists_and_clamps(clean_env) -> None:
    clean_env.setenv("TOBAC_CLUSTER_ADMINS", " admins-uuid , ,ops-uuid")
    clean_env.setenv("TOBAC_SERVICE_USER_TEMPLATES", "serviceuser-%s,system:serviceaccount:%s:deployer")
    clean_env.setenv("TEAM_SYNC_INTERVAL_SECONDS", "1")
    clean_env.setenv("TEAM_SYNC_TIMEOUT_SECONDS", "not-a-number")
    cfg = load_config()
    assert cfg.cluster_admins == ("admins-uuid", "ops-uuid")
    assert cfg.service_user_templates == ("serviceuser-%s", "system:serviceaccount:%s:deployer")
    assert cfg.sync_interval_seconds == 5
    assert cfg.sync_timeout_seconds == 10


def test_templates_without_exactly_one_slot_are_dropped() -> None:
    assert parse_service_user_templates("static-user,%s-%s,ok-%s") == ("ok-%s",)


def test_teams_file_selects_file_provider(clean_env, tmp_path) -> None:
    clean_env.setenv("TEAMS_FILE", str(tmp_path / "teams.yaml"))
    clean_env.setenv("TEAM_SYNC_INTERVAL_SECONDS", "30")
    cfg = load_config()
    assert isinstance(get_directory_provider(cfg), FileDirectoryProvider)
    cache = build_team_cache(cfg)
    assert cache.interval_seconds == 30


def test_azure_provider_requires_credentials(clean_env) -> None:
    with pytest.raises(ValueError, match="AZURE_APP_ID, AZURE_PASSWORD and AZURE_TENANT"):
        get_directory_provider(load_config())
