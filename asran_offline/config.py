"""Configuration management for the ASRAN offline cache service."""

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


DEFAULT_SHELL_URLS = [
    "/",
    "/categories",
    "/products",
    "/blog",
    "/about",
    "/reviews",
    "/support",
    "/manifest.json",
]

DEFAULT_API_URLS = [
    "/api/products",
    "/api/recipes",
    "/api/faq",
]

DEFAULT_STATIC_EXTENSIONS = ["js", "css", "png", "jpg", "jpeg", "gif", "svg", "woff", "woff2"]


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source for TOML configuration files."""

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        config_data = load_toml_config_from_any_path()
        if field_name in config_data:
            return config_data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load all settings from the first TOML file found."""
        config_data = load_toml_config_from_any_path()
        processed_data = {}

        for key, value in config_data.items():
            if key == "cache_db_path":
                processed_data["cache_db_path"] = Path(value)
            else:
                processed_data[key] = value

        return processed_data


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="ASRAN_SW_",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize configuration sources with proper precedence."""
        return (
            init_settings,  # Highest precedence: explicit kwargs
            env_settings,   # Second: environment variables
            dotenv_settings,  # Third: .env file
            file_secret_settings,  # Fourth: file secrets
            TomlConfigSettingsSource(settings_cls),  # Fifth: TOML file (lowest precedence)
        )

    # Cache naming
    cache_prefix: str = Field(default="asran", description="Prefix for cache partition names")
    cache_version: str = Field(default="1.0.0", description="Version embedded in cache partition names")

    # What gets cached
    shell_urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SHELL_URLS),
        description="Application shell routes that must be available offline"
    )
    api_urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_API_URLS),
        description="Read-only API endpoints pre-cached on install"
    )
    api_prefix: str = Field(default="/api/", description="Path prefix routed to the API partition")
    static_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STATIC_EXTENSIONS),
        description="File extensions served cache-first from the static partition"
    )
    home_url: str = Field(default="/", description="URL opened when a notification is viewed")

    # Network settings
    origin: str = Field(
        default="http://localhost:5000",
        description="Storefront origin that requests are fetched from"
    )
    fetch_timeout_sec: float = Field(
        default=30.0,
        description="Upper bound for a single network fetch (seconds)"
    )

    # Lifecycle settings
    skip_waiting_on_install: bool = Field(
        default=True,
        description="Activate a freshly installed controller without waiting for clients to close"
    )
    periodic_sync_interval_sec: int = Field(
        default=12 * 3600,  # 12 hours
        description="How often the API partition is refreshed in the background (seconds)"
    )
    periodic_sync_tag: str = Field(default="content-sync", description="Tag of the periodic sync registration")
    background_sync_tag: str = Field(default="background-sync", description="Tag of the one-off sync registration")

    # Notifications
    notification_title: str = Field(default="ASRAN", description="Title of push notifications")
    notification_body: str = Field(
        default="ASRAN에서 새로운 소식이 있습니다!",
        description="Body used when a push message carries no payload"
    )

    # Storage settings
    cache_backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Where cache partitions are kept"
    )
    cache_db_path: Path = Field(
        default=Path("cache/offline_cache.db"),
        description="Path to the SQLite cache database"
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    @field_validator("shell_urls", "api_urls", "static_extensions", mode="before")
    @classmethod
    def parse_list(cls, v):
        """Parse lists given as JSON or comma-separated strings."""
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except (json.JSONDecodeError, TypeError):
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("static_extensions")
    @classmethod
    def normalize_extensions(cls, v):
        """Strip leading dots and lowercase extensions."""
        return [ext.lstrip(".").lower() for ext in v]

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, v):
        """Make sure the API prefix is an absolute path."""
        if not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("fetch_timeout_sec", "periodic_sync_interval_sec")
    @classmethod
    def validate_positive(cls, v):
        """Validate that timeouts and intervals are positive."""
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v


class NotificationConfig(BaseModel):
    """Immutable notification defaults."""

    model_config = ConfigDict(frozen=True)

    title: str = "ASRAN"
    default_body: str = "ASRAN에서 새로운 소식이 있습니다!"
    icon: str = "/icons/icon-192x192.png"
    badge: str = "/icons/badge-72x72.png"
    tag: str = "asran-notification"


class CacheConfig(BaseModel):
    """Immutable configuration handed to a controller at construction time."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(..., description="Partition version identifier, e.g. 1.0.0")
    static_cache_name: str = Field(..., description="Name of the static partition")
    api_cache_name: str = Field(..., description="Name of the API partition")
    origin: str = Field(default="http://localhost:5000", description="Origin used to resolve relative URLs")
    shell_urls: tuple[str, ...] = Field(default=tuple(DEFAULT_SHELL_URLS))
    api_urls: tuple[str, ...] = Field(default=tuple(DEFAULT_API_URLS))
    api_prefix: str = "/api/"
    static_extensions: tuple[str, ...] = Field(default=tuple(DEFAULT_STATIC_EXTENSIONS))
    home_url: str = "/"
    skip_waiting_on_install: bool = True
    periodic_sync_tag: str = "content-sync"
    background_sync_tag: str = "background-sync"
    notification: NotificationConfig = Field(default_factory=NotificationConfig)

    @classmethod
    def for_version(cls, version: str, prefix: str = "asran", **kwargs: Any) -> "CacheConfig":
        """Build a config whose partition names follow the `name-vX.Y.Z` scheme."""
        return cls(
            version=version,
            static_cache_name=f"{prefix}-v{version}",
            api_cache_name=f"{prefix}-api-v{version}",
            **kwargs,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheConfig":
        """Build the controller config from application settings."""
        return cls.for_version(
            settings.cache_version,
            prefix=settings.cache_prefix,
            origin=settings.origin,
            shell_urls=tuple(settings.shell_urls),
            api_urls=tuple(settings.api_urls),
            api_prefix=settings.api_prefix,
            static_extensions=tuple(settings.static_extensions),
            home_url=settings.home_url,
            skip_waiting_on_install=settings.skip_waiting_on_install,
            periodic_sync_tag=settings.periodic_sync_tag,
            background_sync_tag=settings.background_sync_tag,
            notification=NotificationConfig(
                title=settings.notification_title,
                default_body=settings.notification_body,
            ),
        )

    @property
    def expected_cache_names(self) -> frozenset[str]:
        """Partition names that survive activation."""
        return frozenset({self.static_cache_name, self.api_cache_name})

    def resolve(self, url: str) -> str:
        """Resolve a path against the origin."""
        if url.startswith(("http://", "https://")):
            return url
        return self.origin.rstrip("/") + "/" + url.lstrip("/")


def load_toml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Warning: Could not load TOML config from {config_path}: {e}")
        return {}


def get_config_paths() -> list[Path]:
    """Get list of possible config file paths in order of preference."""
    current_dir = Path.cwd()
    return [
        current_dir / "config.toml",
        current_dir / "config" / "config.toml",
        Path.home() / ".config" / "asran-offline" / "config.toml",
        Path("/etc/asran-offline/config.toml"),
    ]


def load_toml_config_from_any_path() -> dict[str, Any]:
    """Load TOML configuration from the first available path."""
    for path in get_config_paths():
        if path.exists():
            config_data = load_toml_config(path)
            if config_data:
                return config_data
    return {}


def load_config() -> Settings:
    """Load configuration using the custom sources."""
    return Settings()


# Global settings instance
settings = load_config()
