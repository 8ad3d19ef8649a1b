"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with STRATA_ prefix
3. .env file (if STRATA_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .strata/config.yaml (highest)
   - User config: ~/.config/strata/config.yaml
   - Built-in defaults: bundled defaults/config.yaml (lowest)

Nested config uses double underscore delimiter:
  STRATA_OUTPUT__FORMAT=json
  STRATA_LOGGING__LEVEL=debug
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import strata.config.sources as sources
import strata.config.types as types


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit STRATA_ENV_FILE is honoured; a missing file is not
    replaced by any fallback.
    """
    if env_file := _os.environ.get("STRATA_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    Strata configuration settings.

    All settings can be overridden via environment variables with STRATA_ prefix.
    For nested config, use double underscore: STRATA_OUTPUT__INDENT=4

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (STRATA_*)
    3. .env file
    4. Project config (.strata/config.yaml)
    5. User config (~/.config/strata/config.yaml)
    6. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STRATA_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args, highest)
        2. env_settings (STRATA_* env vars)
        3. dotenv_settings (.env file)
        4. layered YAML config files
        5. Field defaults (lowest)
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, _pathlib.Path.cwd()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings without loading any .env file (test isolation, CI)."""
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    version: int = _pydantic.Field(default=1, description="Config schema version")

    layout: types.LayoutConfig = _pydantic.Field(default_factory=types.LayoutConfig)
    """Values directory layout."""

    output: types.OutputConfig = _pydantic.Field(default_factory=types.OutputConfig)
    """Rendered document settings."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    values_dir: str = _pydantic.Field(
        default=".",
        description="Default values directory for 'strata render' and 'strata layers'",
    )

    @property
    def log_level(self) -> str:
        """Log level name for the logging module (alias to logging.level)."""
        return self.logging.level.upper()

    def get_unknown_keys(self) -> dict[str, _typing.Any]:
        """Collect unrecognized keys from all config sections, as dotted paths."""
        result = dict(self.model_extra or {})
        for field_name in ("layout", "output", "logging"):
            section = getattr(self, field_name)
            result.update(section.collect_all_extra_fields(field_name))
        return result
