"""
Application configuration.

Values come from environment variables (``I2S_ARBITER_*``) / ``.env``,
overlaid by the YAML file at ``config_file``:

    api_port: 8090
    poll_interval_ms: 2000
    default_service: ""
    services:
      - name: usboveri2s
        display_name: USB Media Player
        base_url: http://localhost:8090
        priority: 1

A missing or invalid file (a malformed ``base_url`` included) falls back to
the built-in defaults.
"""

import logging
from pathlib import Path

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from i2s_arbiter.models import ServiceDescriptor

logger = logging.getLogger(__name__)

# spelled as on existing installations
DEFAULT_CONFIG_FILE = "/etc/i2sarbitor/i2sarbitor.yaml"
DEFAULT_POLL_INTERVAL_MS = 2000


def default_services() -> list[ServiceDescriptor]:
    return [
        ServiceDescriptor(
            name="usboveri2s",
            display_name="USB Media Player",
            base_url="http://localhost:8090",
            priority=1,
        ),
        ServiceDescriptor(
            name="usbaudio",
            display_name="USB Audio Bridge",
            base_url="http://localhost:8092",
            priority=2,
        ),
    ]


class Settings(BaseSettings):
    config_file: str = DEFAULT_CONFIG_FILE

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    log_level: str = "INFO"

    # Arbitration
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    request_timeout: float = 2.0
    default_service: str = ""
    services: list[ServiceDescriptor] = Field(default_factory=default_services)

    model_config = SettingsConfigDict(
        env_prefix="I2S_ARBITER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("poll_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            logger.warning(
                "poll_interval_ms=%d is not positive, using %d",
                value,
                DEFAULT_POLL_INTERVAL_MS,
            )
            return DEFAULT_POLL_INTERVAL_MS
        return value

    @field_validator("services")
    @classmethod
    def _unique_services(
        cls, value: list[ServiceDescriptor]
    ) -> list[ServiceDescriptor]:
        if not value:
            return default_services()
        names = [service.name for service in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate service names: {', '.join(duplicates)}")
        return value

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000


def load_settings(path: str | None = None) -> Settings:
    """
    Build ``Settings`` from the environment plus the YAML file at *path*
    (default: ``config_file`` from the environment).
    """
    if path is None:
        path = Settings().config_file

    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("Config file %s not found, using defaults", path)
        return Settings()
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load config %s: %s, using defaults", path, exc)
        return Settings()

    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.warning("Config %s is not a mapping, using defaults", path)
        return Settings()

    overrides = {str(key): value for key, value in data.items()}
    overrides["config_file"] = path
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        logger.warning("Invalid config %s: %s, using defaults", path, exc)
        return Settings()


settings = load_settings()
