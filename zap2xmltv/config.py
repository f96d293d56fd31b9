from functools import lru_cache
from pathlib import Path
import configparser
import logging
import os

from croniter import croniter
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zap2xmltv.errors import ConfigError


logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-us"
DEFAULT_HISTORY_DAYS = 14

# (section, key) in the INI file -> settings field
INI_FIELDS: dict[tuple[str, str], str] = {
    ("creds", "username"): "username",
    ("creds", "password"): "password",
    ("prefs", "country"): "country",
    ("prefs", "zipCode"): "zip_code",
    ("prefs", "lang"): "language",
    ("prefs", "historicalGuideDays"): "historical_guide_days",
    ("lineup", "lineupId"): "lineup_id",
    ("lineup", "headendId"): "headend_id",
    ("lineup", "device"): "device",
}

REQUIRED_FIELDS = ("username", "password", "lineup_id")


class GuideSettings(BaseSettings):
    """Guide generation settings.

    Values come from ZAP2IT_* environment variables, a .env file, or the INI
    config file handed to load_settings(). INI values take precedence.
    """

    username: str = ""
    password: str = ""
    country: str = "USA"
    zip_code: str = ""
    language: str = DEFAULT_LANGUAGE
    lineup_id: str = ""
    headend_id: str = ""
    device: str = "-"
    historical_guide_days: int = DEFAULT_HISTORY_DAYS

    output_file: str = "xmlguide.xmltv"
    guide_days: int = 14  # Days of listings after now
    window_hours: int = 3  # Width of one grid request
    request_timeout_sec: float = 30.0

    fetch_cron: str = "0 3 * * *"  # Daily at 3 AM
    fetch_misfire_grace_sec: int = 3600
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="ZAP2IT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("language", "device", mode="before")
    @classmethod
    def default_blank_strings(cls, value, info):
        """Treat blank language/device as unset."""
        if isinstance(value, str) and not value.strip():
            return DEFAULT_LANGUAGE if info.field_name == "language" else "-"
        return value

    @field_validator("historical_guide_days", "guide_days")
    @classmethod
    def validate_day_ranges(cls, value: int, info) -> int:
        """Validate day range values are non-negative and reasonable."""
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        if value > 365:
            raise ValueError(f"{info.field_name} must be <= 365 days")
        return value

    @field_validator("window_hours")
    @classmethod
    def validate_window_hours(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("window_hours must be > 0")
        return value

    @field_validator("request_timeout_sec")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Validate HTTP timeout (seconds)."""
        if value <= 0:
            raise ValueError("request_timeout_sec must be > 0")
        return value

    @field_validator("fetch_misfire_grace_sec")
    @classmethod
    def validate_misfire_grace(cls, value: int) -> int:
        """Validate scheduler misfire grace period (seconds)."""
        if value < 0:
            raise ValueError("fetch_misfire_grace_sec must be >= 0")
        return value

    @field_validator("fetch_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    def missing_fields(self) -> list[str]:
        """Names of required fields that are still blank."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name).strip()]

    def require_complete(self) -> None:
        """Raise ConfigError when credentials or lineup are missing."""
        missing = self.missing_fields()
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    def log_summary(self) -> None:
        logger.info("Configuration loaded:")
        logger.info("  Username: %s", self.username or "<unset>")
        logger.info("  Password: %s", "***" if self.password else "<unset>")
        logger.info("  Region: %s %s (lang %s)", self.country, self.zip_code or "-", self.language)
        logger.info(
            "  Lineup: lineupId=%s headendId=%s device=%s",
            self.lineup_id or "<unset>",
            self.headend_id or "-",
            self.device,
        )
        logger.info("  Output: %s", self.output_file)
        logger.info("  Guide Span: %s days in %sh windows", self.guide_days, self.window_hours)
        logger.info("  History Retention: %s days", self.historical_guide_days)
        logger.info("  Fetch Schedule: %s", self.fetch_cron)


def read_ini_settings(config_path: Path | str) -> dict[str, str]:
    """Read recognised keys from an INI config file.

    Raises:
        ConfigError: If the file is missing or cannot be parsed
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigError(f"Config file does not exist: {path}")

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep camelCase keys
    try:
        with path.open(encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, configparser.Error) as exc:
        raise ConfigError(f"Failed to read config {path}: {exc}") from exc

    values: dict[str, str] = {}
    for (section, key), field_name in INI_FIELDS.items():
        if parser.has_option(section, key):
            values[field_name] = parser.get(section, key).strip()
    return values


def load_settings(config_path: Path | str | None = None, **overrides) -> GuideSettings:
    """
    Build settings from environment, optional INI file and explicit overrides.

    Args:
        config_path: Optional INI file with [creds], [prefs] and [lineup] sections
        **overrides: Field values that win over every other source

    Returns:
        Validated GuideSettings

    Raises:
        ConfigError: If the file cannot be read or a value fails validation
    """
    values: dict[str, object] = {}
    if config_path is not None:
        values.update(read_ini_settings(config_path))
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        settings = GuideSettings(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc

    settings.log_summary()
    return settings


@lru_cache
def get_settings() -> GuideSettings:
    """Process-wide settings for the HTTP service; INI path from ZAP2IT_CONFIG_FILE."""
    return load_settings(os.getenv("ZAP2IT_CONFIG_FILE") or None)


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
