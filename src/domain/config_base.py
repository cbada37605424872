"""TOML configuration for the statistics service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any
import tomllib

from domain.stats.ranking import COUNTRY_LIMIT, LEADERBOARD_LIMIT

DEFAULT_DB_URL = "sqlite:///bullseye.db"
DB_URL_ENV = "BULLSEYE_DB_URL"
API_KEY_ENV = "BULLSEYE_API_KEY"


@dataclass(frozen=True)
class StatsConfig:
    """Service settings loaded from one TOML file."""

    file_path: Path | None
    db_url: str = DEFAULT_DB_URL
    api_key: str | None = None
    leaderboard_limit: int = LEADERBOARD_LIMIT
    country_limit: int = COUNTRY_LIMIT

    def as_config_json(self) -> dict[str, Any]:
        return {
            "db_url": self.db_url,
            "api_key_configured": self.api_key is not None,
            "leaderboard_limit": self.leaderboard_limit,
            "country_limit": self.country_limit,
        }


def load_stats_config(
    file_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> StatsConfig:
    """Load a TOML config (or defaults), then apply environment overrides."""
    if file_path is None:
        config = StatsConfig(file_path=None)
    else:
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")
        if not file_path.is_file():
            raise ValueError(f"Config path is not a file: {file_path}")
        with file_path.open("rb") as file:
            raw = tomllib.load(file)
        config = _parse_stats_config(raw, file_path)

    env = os.environ if environ is None else environ
    if env.get(DB_URL_ENV):
        config = replace(config, db_url=env[DB_URL_ENV])
    if env.get(API_KEY_ENV):
        config = replace(config, api_key=env[API_KEY_ENV])
    return config


def _parse_stats_config(raw: dict[str, Any], file_path: Path) -> StatsConfig:
    service_raw = raw.get("service", {})
    stats_raw = raw.get("stats", {})

    db_url = str(service_raw.get("db_url", DEFAULT_DB_URL)).strip()
    if not db_url:
        raise ValueError(f"{file_path}: [service].db_url must not be empty")

    api_key_value = service_raw.get("api_key")
    api_key = None if api_key_value in (None, "") else str(api_key_value)

    leaderboard_limit = int(stats_raw.get("leaderboard_limit", LEADERBOARD_LIMIT))
    if leaderboard_limit <= 0:
        raise ValueError(f"{file_path}: [stats].leaderboard_limit must be > 0")

    country_limit = int(stats_raw.get("country_limit", COUNTRY_LIMIT))
    if country_limit <= 0:
        raise ValueError(f"{file_path}: [stats].country_limit must be > 0")

    return StatsConfig(
        file_path=file_path,
        db_url=db_url,
        api_key=api_key,
        leaderboard_limit=leaderboard_limit,
        country_limit=country_limit,
    )


__all__ = ["StatsConfig", "load_stats_config"]
