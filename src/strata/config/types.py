"""Configuration type definitions for Strata settings.

These are the "config section" models nested within the main Settings
class:

- LayoutConfig: where base/environment/instance layers live
- OutputConfig: format and indentation of rendered documents
- LoggingConfig: log level for the CLI

All types use `extra="allow"` so unknown keys in config files are kept
rather than silently dropped, and can be audited with
`collect_all_extra_fields()`.
"""

import typing as _typing

import pydantic as _pydantic

import strata.chain as chain
import strata.constants as constants

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    Unknown fields are preserved (extra="allow") so typos in config files
    can be reported instead of ignored.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"output.indnet": 4}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


# =============================================================================
# Layout Settings
# =============================================================================


def _check_template(value: str, *, required: str, allowed: set[str]) -> str:
    fields = chain.template_fields(value)
    if required not in fields:
        raise ValueError(f"{required} template must contain {{{required}}}")
    unknown = fields - allowed
    if unknown:
        names = ", ".join(f"{{{name}}}" for name in sorted(unknown))
        raise ValueError(f"{required} template has unknown placeholder(s): {names}")
    return value


class LayoutConfig(ConfigBase):
    """
    Values directory layout.

    YAML section: layout.*
    """

    base: str = constants.DEFAULT_BASE_FILE
    """Base layer file, relative to the values directory."""

    environment: str = constants.DEFAULT_ENVIRONMENT_FILE
    """Environment layer template (``{environment}`` is substituted)."""

    instance: str = constants.DEFAULT_INSTANCE_FILE
    """Instance layer template (``{environment}``, ``{instance}``)."""

    @_pydantic.field_validator("environment")
    @classmethod
    def _environment_placeholder(cls, value: str) -> str:
        return _check_template(value, required="environment", allowed={"environment"})

    @_pydantic.field_validator("instance")
    @classmethod
    def _instance_placeholder(cls, value: str) -> str:
        return _check_template(value, required="instance", allowed={"environment", "instance"})

    def to_layout(self) -> chain.Layout:
        """Convert to the Layout used by chain building."""
        return chain.Layout(base=self.base, environment=self.environment, instance=self.instance)


# =============================================================================
# Output Settings
# =============================================================================


class OutputConfig(ConfigBase):
    """
    Rendered document settings.

    YAML section: output.*
    """

    format: _typing.Literal["yaml", "json"] = "yaml"
    """Default output format when it cannot be inferred from the file name."""

    indent: int = _pydantic.Field(default=constants.DEFAULT_INDENT, ge=1, le=8)
    """Indentation width."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    level: _typing.Literal["debug", "info", "warning", "error"] = "warning"
    """Log level for messages written to stderr."""

    @_pydantic.field_validator("level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: _typing.Any) -> _typing.Any:
        # Environment variables are often upper case: DEBUG -> debug
        return value.lower() if isinstance(value, str) else value
