"""
Application configuration.

This module loads and validates settings from environment variables, the
.env file and an optional config.yaml (lowest priority).
"""
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from apiserver.utils.exceptions import ConfigurationError


# Get the backend directory (parent of the apiserver package)
BACKEND_DIR = Path(__file__).parent.parent.parent
CONFIG_FILE = BACKEND_DIR / "config.yaml"
ENV_FILE = BACKEND_DIR / ".env"

DEFAULT_PORT = 8000
DEFAULT_ROUTES_DIR = Path(__file__).parent.parent / "api" / "routes"

# config.yaml section/key -> settings field
_YAML_FIELDS = {
    ("api", "title"): "api_title",
    ("api", "version"): "api_version",
    ("api", "description"): "api_description",
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("cors", "client_url"): "client_url",
    ("routes", "directory"): "routes_dir",
    ("routes", "prefix"): "route_prefix",
    ("limits", "max_body_size"): "max_body_size",
    ("database", "url"): "elasticsearch_url",
    ("database", "timeout"): "elasticsearch_timeout",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


def load_config_yaml(path: Optional[Path] = None) -> dict:
    """Load configuration from config.yaml file."""
    path = path or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid config file: {path}",
            {"path": str(path), "error": str(e)},
        ) from e


def flatten_config(config_data: dict) -> dict[str, Any]:
    """Map nested config.yaml sections onto flat settings field names."""
    values = {}
    for (section, key), field_name in _YAML_FIELDS.items():
        section_data = config_data.get(section) or {}
        if key in section_data and section_data[key] is not None:
            values[field_name] = section_data[key]
    return values


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source backed by config.yaml."""

    def __init__(self, settings_cls: type[BaseSettings], path: Optional[Path] = None):
        super().__init__(settings_cls)
        self._values = flatten_config(load_config_yaml(path or CONFIG_FILE))

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._values)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and config.yaml."""

    # API Settings
    api_title: str = "API Server"
    api_version: str = "1.0.0"
    api_description: str = "Backend API with directory-discovered route modules"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    debug: bool = False

    # CORS Settings - single allowed frontend origin
    client_url: Optional[str] = None

    # Environment name, printed at startup when set
    node_env: Optional[str] = None

    # Route discovery
    routes_dir: Path = DEFAULT_ROUTES_DIR
    route_prefix: str = "/api/v1"

    # Request body limit in bytes (JSON and URL-encoded)
    max_body_size: int = 100 * 1024

    # Data store (Elasticsearch) Settings
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_timeout: int = 30

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "env_file": str(ENV_FILE),
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("port", mode="before")
    @classmethod
    def _default_port(cls, value: Any) -> Any:
        # PORT="" behaves like an unset PORT
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PORT
        return value

    @field_validator("client_url", "node_env", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def allowed_origins(self) -> list[str]:
        """Origins allowed to make credentialed cross-origin requests."""
        return [self.client_url] if self.client_url else []

    @property
    def is_production(self) -> bool:
        return (self.node_env or "").lower() == "production"


settings = Settings()
