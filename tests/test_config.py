import logging

import pytest
from pydantic import ValidationError

from asran_offline.config import CacheConfig, Settings, load_toml_config
from asran_offline.logging_config import setup_logging


class TestCacheConfig:
    """Immutable controller configuration."""

    def test_partition_names_are_versioned(self):
        config = CacheConfig.for_version("1.0.0")

        assert config.static_cache_name == "asran-v1.0.0"
        assert config.api_cache_name == "asran-api-v1.0.0"
        assert config.expected_cache_names == {"asran-v1.0.0", "asran-api-v1.0.0"}

    def test_defaults_match_storefront(self):
        config = CacheConfig.for_version("1.0.0")

        assert config.shell_urls == (
            "/", "/categories", "/products", "/blog", "/about", "/reviews", "/support", "/manifest.json",
        )
        assert config.api_urls == ("/api/products", "/api/recipes", "/api/faq")
        assert config.api_prefix == "/api/"

    def test_config_is_frozen(self):
        config = CacheConfig.for_version("1.0.0")

        with pytest.raises(ValidationError):
            config.version = "2.0.0"

    def test_injected_enumerations(self):
        config = CacheConfig.for_version("0.1.0", prefix="test", shell_urls=("/only",), api_urls=())

        assert config.static_cache_name == "test-v0.1.0"
        assert config.shell_urls == ("/only",)
        assert config.api_urls == ()

    def test_resolve_against_origin(self):
        config = CacheConfig.for_version("1.0.0", origin="https://asran.kr/")

        assert config.resolve("/products") == "https://asran.kr/products"
        assert config.resolve("https://cdn.asran.kr/a.js") == "https://cdn.asran.kr/a.js"


class TestSettings:
    """Environment and file backed settings."""

    def test_from_settings(self):
        settings = Settings(
            cache_version="2.1.0",
            origin="https://asran.kr",
            api_urls=["/api/products"],
            notification_title="ASRAN 알림",
        )

        config = CacheConfig.from_settings(settings)

        assert config.static_cache_name == "asran-v2.1.0"
        assert config.api_cache_name == "asran-api-v2.1.0"
        assert config.origin == "https://asran.kr"
        assert config.api_urls == ("/api/products",)
        assert config.notification.title == "ASRAN 알림"

    def test_lists_accept_comma_separated_strings(self):
        settings = Settings(shell_urls="/, /products", static_extensions=".JS,css")

        assert settings.shell_urls == ["/", "/products"]
        assert settings.static_extensions == ["js", "css"]

    def test_api_prefix_is_made_absolute(self):
        assert Settings(api_prefix="api/").api_prefix == "/api/"

    def test_environment_variables_use_prefix(self, monkeypatch):
        monkeypatch.setenv("ASRAN_SW_CACHE_VERSION", "9.9.9")
        monkeypatch.setenv("ASRAN_SW_CACHE_BACKEND", "sqlite")

        settings = Settings()

        assert settings.cache_version == "9.9.9"
        assert settings.cache_backend == "sqlite"

    @pytest.mark.parametrize("field", ["fetch_timeout_sec", "periodic_sync_interval_sec"])
    def test_rejects_non_positive_values(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_load_toml_config(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('cache_version = "1.2.3"\napi_urls = ["/api/faq"]\n', encoding="utf-8")

        assert load_toml_config(path) == {"cache_version": "1.2.3", "api_urls": ["/api/faq"]}
        assert load_toml_config(tmp_path / "missing.toml") == {}

    def test_toml_file_is_lowest_precedence(self, tmp_path, monkeypatch):
        (tmp_path / "config.toml").write_text('cache_version = "1.2.3"\norigin = "https://toml.example"\n', encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ASRAN_SW_ORIGIN", "https://env.example")

        settings = Settings()

        assert settings.cache_version == "1.2.3"
        assert settings.origin == "https://env.example"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogging:
    """Logging setup for the gateway."""

    def test_levels_follow_debug_flag(self, tmp_path, restore_root_logger):
        setup_logging(debug=False, logs_dir=tmp_path / "logs")

        assert logging.getLogger("asran_offline").level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
        assert (tmp_path / "logs" / "asran-offline.log").exists()

        setup_logging(debug=True, logs_dir=tmp_path / "logs")

        assert logging.getLogger("asran_offline").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.INFO

    def test_errors_go_to_error_file(self, tmp_path, restore_root_logger):
        setup_logging(debug=False, logs_dir=tmp_path)

        logging.getLogger("asran_offline.partitions").error("disk full")
        logging.getLogger("asran_offline.partitions").info("all good")
        for handler in logging.getLogger().handlers:
            handler.flush()

        errors = (tmp_path / "asran-offline-error.log").read_text(encoding="utf-8")
        assert "disk full" in errors
        assert "all good" not in errors
