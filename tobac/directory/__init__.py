"""Team directory: an always-available, periodically refreshed snapshot of teams."""

from tobac.directory.cache import TeamDirectoryCache, build_team_cache, get_directory_provider

__all__ = ["TeamDirectoryCache", "build_team_cache", "get_directory_provider"]
