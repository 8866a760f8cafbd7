"""Configuration with JSON file, secrets.yml, and env variable support."""

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pepper_cleanup.enums import CaseRecordPolicy

logger = logging.getLogger(__name__)

# Sentinel values for schedule_expression that turn automatic sweeps off.
DISABLED_SCHEDULE_VALUES = frozenset({"", "disabled"})


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative paths (config.yml, log files) are resolved against the repo root
    so the service can be launched from any working directory.

    Root detection:
    - first directory containing `pyproject.toml`
    - otherwise fall back to the current working directory
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


def _load_secrets(secrets_path: Path) -> dict:
    """Load secrets.yml as a flat mapping.

    Missing or malformed files yield an empty mapping.
    """
    if not secrets_path.exists():
        return {}

    try:
        with secrets_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Cannot read secrets file %s: %s", secrets_path, e)
        return {}

    if not isinstance(raw, dict):
        return {}
    return {str(k).lower(): v for k, v in raw.items()}


class CleanupConfig(BaseSettings):
    """Configuration with JSON file + secrets.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. config.yml - optional repo-root overlay for non-secret values
    3. secrets.yml - sensitive values (JWT secret, database credentials)
    4. Environment variables - runtime overrides

    Prefix: PEPPER_ (e.g., PEPPER_RETENTION_DAYS)
    """

    model_config = SettingsConfigDict(
        env_prefix="PEPPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Retention policy
    retention_days: int = Field(
        default=90,
        ge=0,
        description="Closed cases whose last update is at least this many days old are swept.",
    )
    case_record_policy: CaseRecordPolicy = Field(
        default=CaseRecordPolicy.KEEP,
        description=(
            "What happens to the case record once its folder is removed: "
            "'keep' leaves it untouched (audit history), 'mark_purged' stamps "
            "files_purged_at, 'delete' removes the row."
        ),
    )

    # Scheduling
    schedule_expression: str = Field(
        default="0 2 * * *",
        description="5-field cron expression. 'disabled' or an empty string turns scheduling off.",
    )
    auto_cleanup_enabled: bool = Field(default=True)
    timezone: str = Field(
        default="America/New_York",
        description="Timezone used to evaluate the cron expression (e.g., 'America/New_York', 'UTC')",
    )

    # Sweep bounds
    case_timeout_seconds: float = Field(default=30.0, gt=0)
    run_timeout_seconds: float = Field(default=1800.0, gt=0)

    # Storage
    cases_base_dir: str = Field(default="./cases")
    database_url: str = Field(default="sqlite+aiosqlite:///./pepper.db")
    auto_create_tables: bool = Field(
        default=False,
        description=(
            "If true, the service calls Base.metadata.create_all() on startup. "
            "For production keep this false and rely on Alembic migrations."
        ),
    )

    # Manual trigger authentication
    jwt_secret: str = Field(...)
    jwt_algorithm: str = Field(default="HS256")

    # API settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)

    # Error log file
    error_log_file_enabled: bool = Field(default=True)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    @property
    def scheduling_enabled(self) -> bool:
        """True when the scheduled sweep should be registered at all."""
        if not self.auto_cleanup_enabled:
            return False
        expression = (self.schedule_expression or "").strip().lower()
        return expression not in DISABLED_SCHEDULE_VALUES

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "CleanupConfig":
        """Load config from JSON + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured CleanupConfig instance.
        """
        config_data = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        # Optional config.yml overlay (repo-root), non-secret values only.
        # Precedence: config.json < config.yml < secrets.yml < env
        cfg_yml = _find_repo_root(start=Path(__file__)) / "config.yml"
        if cfg_yml.is_file():
            try:
                with cfg_yml.open("r", encoding="utf-8") as f:
                    yml_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Ignoring unreadable %s: %s", cfg_yml, e)
                yml_data = {}
            if isinstance(yml_data, dict):
                config_data.update(yml_data)

        config_data.update(_load_secrets(Path(secrets_path)))

        # Drop file values that an env var overrides, so pydantic-settings
        # reads the env var instead of the explicit init kwarg.
        env_prefix = cls.model_config.get("env_prefix", "")
        for key in list(config_data):
            if f"{env_prefix}{key.upper()}" in os.environ:
                del config_data[key]

        return cls(**config_data)
