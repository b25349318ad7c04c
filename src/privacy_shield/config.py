"""Application configuration via pydantic-settings."""

from importlib.metadata import PackageNotFoundError, version

from pydantic_settings import BaseSettings, SettingsConfigDict


def _installed_version() -> str:
    """Version from the installed distribution metadata (pyproject.toml is the source)."""
    try:
        return version("privacy-shield")
    except PackageNotFoundError:
        # Running from a source checkout that was never installed.
        return "0+unknown"


APP_VERSION = _installed_version()


class Settings(BaseSettings):
    """All runtime configuration, loaded from environment / .env file."""

    # Parameter name -> hostname suffixes on which that parameter is never removed.
    whitelist: dict[str, list[str]] = {}
    poll_interval_ms: int = 500
    poll_duration_ms: int = 2000
    toast_duration_ms: int = 3500
    menu_refresh_ms: int = 10000
    rules_path: str | None = None
    project_url: str = "https://github.com/combined/privacy-shield"
    port: int = 7777
    log_level: str = "INFO"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_prefix="SHIELD_", env_file=".env", env_file_encoding="utf-8"
    )


# Module-level singleton; imported everywhere.
settings = Settings()
