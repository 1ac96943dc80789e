"""Centralized configuration and secrets management.

Configuration priority (highest to lowest):
1. Environment variables (``TALLY_*``), optionally loaded from ``.env``
2. Packaged defaults (``config/defaults.yaml``)

Routing targets (calendar and database IDs named by the source registry) are
read from the same environment snapshot and validated before any network
call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Mapping

import pytz
import yaml

__all__ = [
    "ConfigError",
    "Settings",
    "generate_example_env",
    "get_settings",
    "load_defaults",
    "load_env_file",
    "load_settings",
]


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


def load_defaults(defaults_path: Path | str | None = None) -> dict[str, Any]:
    """Load the defaults YAML document.

    Parameters
    ----------
    defaults_path
        Path to defaults file (default: packaged ``defaults.yaml``)

    Returns
    -------
    dict
        Parsed defaults

    Raises
    ------
    ConfigError
        If the file cannot be parsed
    """
    if defaults_path is None:
        defaults_path = Path(str(resources.files("tally.config").joinpath("defaults.yaml")))

    path = Path(defaults_path)
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse defaults {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Defaults file {path} must contain a mapping")

    return data


@dataclass
class Settings:
    """Settings for sync and recap runs.

    Attributes
    ----------
    data_dir : Path
        Directory with local exports (raw source items, events) and stores
    store_path : Path
        JSON file backing the local destination store
    calendar_path : Path
        JSON file backing the local calendar
    timezone : str
        Civil IANA timezone for UTC/unix timestamps
    wake_threshold_hour : float
        Wake-ups after this hour count as "Sleep In"
    backoff_ms : dict[str, int]
        Fixed inter-call delay per external service
    synced_property : str
        Checkbox property marking records exported to the calendar
    recap_env_vars : dict[str, str]
        Env var naming the recap collection, keyed by ``"<type>:<period>"``
    weeks_env_var : str
        Env var naming the weeks collection (persisted month → weeks relation)
    registry_path : Path | None
        Custom source registry YAML
    log_level : str
        Logging level
    log_dir : Path | None
        Directory for JSONL logs (console only when unset)
    env : dict[str, str]
        Environment snapshot used to resolve routing targets
    """

    data_dir: Path = field(default_factory=lambda: Path("data"))
    store_path: Path | None = None
    calendar_path: Path | None = None
    timezone: str = "America/New_York"
    wake_threshold_hour: float = 7
    backoff_ms: dict[str, int] = field(default_factory=dict)
    synced_property: str = "Calendar Created"
    recap_env_vars: dict[str, str] = field(
        default_factory=lambda: {
            "personal:week": "PERSONAL_WEEK_RECAP_DATABASE_ID",
            "work:week": "WORK_WEEK_RECAP_DATABASE_ID",
            "personal:month": "PERSONAL_MONTHLY_RECAP_DATABASE_ID",
            "work:month": "WORK_MONTHLY_RECAP_DATABASE_ID",
        }
    )
    weeks_env_var: str = "WEEKS_DATABASE_ID"
    registry_path: Path | None = None
    log_level: str = "INFO"
    log_dir: Path | None = None
    env: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)
        if isinstance(self.store_path, str):
            self.store_path = Path(self.store_path)
        if isinstance(self.calendar_path, str):
            self.calendar_path = Path(self.calendar_path)
        if isinstance(self.registry_path, str):
            self.registry_path = Path(self.registry_path)
        if isinstance(self.log_dir, str):
            self.log_dir = Path(self.log_dir)

        if self.store_path is None:
            self.store_path = self.data_dir / "store.json"
        if self.calendar_path is None:
            self.calendar_path = self.data_dir / "calendar.json"

        if self.timezone not in pytz.all_timezones_set:
            raise ConfigError(
                f"TALLY_TIMEZONE must be an IANA timezone name (e.g., America/New_York), got '{self.timezone}'"
            )

        if not 0 <= self.wake_threshold_hour < 24:
            raise ConfigError(f"TALLY_WAKE_THRESHOLD must be between 0 and 23, got {self.wake_threshold_hour}")

        for service, delay in self.backoff_ms.items():
            if delay < 0:
                raise ConfigError(f"Backoff for '{service}' must not be negative, got {delay}")

        self.log_level = self.log_level.upper()
        if self.log_level not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"TALLY_LOG_LEVEL is not a valid level: {self.log_level}")

    def backoff_seconds(self, service: str) -> float:
        """Inter-call delay for a service in seconds (0 when not configured)."""
        return self.backoff_ms.get(service, 0) / 1000

    def require(self, env_var: str, purpose: str = "") -> str:
        """Value of a required routing target.

        Raises
        ------
        ConfigError
            If the variable is unset or empty
        """
        value = self.env.get(env_var)
        if not value:
            hint = f" ({purpose})" if purpose else ""
            raise ConfigError(f"{env_var} is required{hint}. Set it in .env or the environment.")
        return value

    def recap_env_var(self, source_type: str, period: str) -> str:
        """Env var naming the recap collection for a recap type and period."""
        key = f"{source_type}:{period}"
        try:
            return self.recap_env_vars[key]
        except KeyError:
            raise ConfigError(f"No recap collection configured for {source_type} {period} recaps") from None

    @classmethod
    def from_env(
        cls,
        env_file: Path | str | None = None,
        *,
        defaults_path: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Load settings from defaults and environment.

        Loads ``.env`` into the process environment when present.

        Parameters
        ----------
        env_file
            Path to .env file (default: .env in current directory)
        defaults_path
            Defaults YAML (default: packaged defaults)
        environ
            Environment mapping (default: ``os.environ``)

        Returns
        -------
        Settings
            Loaded settings

        Raises
        ------
        ConfigError
            If settings are malformed
        """
        if env_file is None:
            env_file = Path(".env")

        if isinstance(env_file, str):
            env_file = Path(env_file)

        if env_file.exists():
            load_env_file(env_file)

        env = dict(os.environ if environ is None else environ)
        defaults = load_defaults(defaults_path)

        paths = defaults.get("paths", {})
        time_cfg = defaults.get("time", {})
        destination = defaults.get("destination", {})

        try:
            data_dir = Path(env.get("TALLY_DATA_DIR") or paths.get("data_dir", "data"))

            backoff = {service: int(value) for service, value in (defaults.get("backoff_ms") or {}).items()}
            for key, value in env.items():
                # TALLY_BACKOFF_<SERVICE>_MS, service name case-insensitive
                if key.startswith("TALLY_BACKOFF_") and key.endswith("_MS"):
                    service = key[len("TALLY_BACKOFF_") : -len("_MS")]
                    match = next((name for name in backoff if name.lower() == service.lower()), service.lower())
                    backoff[match] = int(value)

            recap_env_vars = {
                "personal:week": destination.get("personal_recap_env_var", "PERSONAL_WEEK_RECAP_DATABASE_ID"),
                "work:week": destination.get("work_recap_env_var", "WORK_WEEK_RECAP_DATABASE_ID"),
                "personal:month": destination.get(
                    "personal_monthly_recap_env_var", "PERSONAL_MONTHLY_RECAP_DATABASE_ID"
                ),
                "work:month": destination.get("work_monthly_recap_env_var", "WORK_MONTHLY_RECAP_DATABASE_ID"),
            }

            return cls(
                data_dir=data_dir,
                store_path=Path(env["TALLY_STORE_PATH"])
                if env.get("TALLY_STORE_PATH")
                else data_dir / paths.get("store_file", "store.json"),
                calendar_path=Path(env["TALLY_CALENDAR_PATH"])
                if env.get("TALLY_CALENDAR_PATH")
                else data_dir / paths.get("calendar_file", "calendar.json"),
                timezone=env.get("TALLY_TIMEZONE") or time_cfg.get("timezone", "America/New_York"),
                wake_threshold_hour=float(env.get("TALLY_WAKE_THRESHOLD") or time_cfg.get("wake_threshold_hour", 7)),
                backoff_ms=backoff,
                synced_property=env.get("TALLY_SYNCED_PROPERTY")
                or destination.get("synced_property", "Calendar Created"),
                recap_env_vars=recap_env_vars,
                weeks_env_var=destination.get("weeks_env_var", "WEEKS_DATABASE_ID"),
                registry_path=Path(env["TALLY_REGISTRY_PATH"]) if env.get("TALLY_REGISTRY_PATH") else None,
                log_level=env.get("TALLY_LOG_LEVEL") or defaults.get("logging", {}).get("level", "INFO"),
                log_dir=Path(env["TALLY_LOG_DIR"]) if env.get("TALLY_LOG_DIR") else None,
                env=env,
            )

        except (ValueError, TypeError) as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_env_file(env_file: Path) -> None:
    """Load environment variables from .env file.

    Existing variables are overwritten; ``#`` comments and blank lines are
    skipped and surrounding quotes are removed.

    Parameters
    ----------
    env_file
        Path to .env file
    """
    with open(env_file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()

                if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                    value = value[1:-1]

                os.environ[key] = value


# Global settings instance
_settings: Settings | None = None


def load_settings(env_file: Path | str | None = None) -> Settings:
    """Load settings and keep them as the current instance.

    Raises
    ------
    ConfigError
        If settings are malformed
    """
    global _settings
    _settings = Settings.from_env(env_file)
    return _settings


def get_settings() -> Settings:
    """Get current settings.

    Raises
    ------
    ConfigError
        If settings not loaded
    """
    if _settings is None:
        raise ConfigError("Settings not loaded. Call load_settings() first.")
    return _settings


def generate_example_env(output_path: Path | None = None) -> str:
    """Generate example .env file with all settings.

    Parameters
    ----------
    output_path
        Optional path to write .env file

    Returns
    -------
    str
        Example .env contents
    """
    example = """# tally configuration
# Copy this to .env and adjust values

# ====================
# Local data
# ====================

# Directory with raw exports (<source>.json) and events (events/<bucket>.json)
TALLY_DATA_DIR=data

# Local destination store and calendar (default: inside TALLY_DATA_DIR)
# TALLY_STORE_PATH=data/store.json
# TALLY_CALENDAR_PATH=data/calendar.json

# ====================
# Time
# ====================

# Civil timezone for UTC timestamps (IANA name)
TALLY_TIMEZONE=America/New_York

# Wake-ups after this hour are "Sleep In"
TALLY_WAKE_THRESHOLD=7

# Per-service delay after every external call (milliseconds)
# TALLY_BACKOFF_NOTION_MS=350
# TALLY_BACKOFF_WITHINGS_MS=1000

# ====================
# Destination collections
# ====================

NOTION_SLEEP_DATABASE_ID=
NOTION_WORKOUTS_DATABASE_ID=
NOTION_PRS_DATABASE_ID=
NOTION_VIDEO_GAMES_DATABASE_ID=
NOTION_BODY_WEIGHT_DATABASE_ID=
PERSONAL_WEEK_RECAP_DATABASE_ID=
WORK_WEEK_RECAP_DATABASE_ID=
PERSONAL_MONTHLY_RECAP_DATABASE_ID=
WORK_MONTHLY_RECAP_DATABASE_ID=
WEEKS_DATABASE_ID=
TASKS_DATABASE_ID=

# ====================
# Calendars (one per bucket)
# ====================

NORMAL_WAKE_UP_CALENDAR_ID=
SLEEP_IN_CALENDAR_ID=
WORKOUT_CALENDAR_ID=
SOBER_CALENDAR_ID=
DRINKING_CALENDAR_ID=
READING_CALENDAR_ID=
MEDITATION_CALENDAR_ID=
ART_CALENDAR_ID=
CODING_CALENDAR_ID=
MUSIC_CALENDAR_ID=
VIDEO_GAMES_CALENDAR_ID=
BODY_WEIGHT_CALENDAR_ID=
BLOOD_PRESSURE_CALENDAR_ID=
PERSONAL_PRS_CALENDAR_ID=
WORK_PRS_CALENDAR_ID=
PERSONAL_MAIN_CALENDAR_ID=
WORK_MAIN_CALENDAR_ID=

# ====================
# Logging
# ====================

# Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
TALLY_LOG_LEVEL=INFO

# Directory for JSONL logs (console only if not set)
# TALLY_LOG_DIR=logs
"""

    if output_path:
        output_path.write_text(example, encoding="utf-8")

    return example
