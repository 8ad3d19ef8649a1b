"""Custom pydantic-settings source for Strata's own configuration.

Strata's settings are themselves layered values documents, resolved with
the same overlay rules the tool applies to deployment values.

Sources, highest precedence first:
1. STRATA_* environment variables (pydantic-settings)
2. Project config: .strata/config.yaml in the working directory
3. User config: ~/.config/strata/config.yaml (or STRATA_CONFIG_DIR)
4. Built-in defaults: bundled defaults/config.yaml

Environment variables:
- STRATA_CONFIG_DIR: Override user config directory (default: ~/.config/strata)
"""

import collections.abc as _abc
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings

import strata.documents as documents
import strata.errors as errors
import strata.overlay as overlay

# Points the user config layer at another directory
ENV_CONFIG_DIR = "STRATA_CONFIG_DIR"


class LayeredYamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source that resolves layered YAML config files.

    Flow:
    1. Load each YAML file into a Layer
    2. overlay.resolve_with_provenance merges them (dicts deep, lists replaced)
    3. Return the merged dict to pydantic-settings
    4. Pydantic validates the result; bad values fail at startup

    Layers (lowest to highest precedence):
    1. Built-in defaults (src/strata/config/defaults/config.yaml)
    2. User config (~/.config/strata/config.yaml)
    3. Project config (.strata/config.yaml)
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None = None,
        *,
        user_config_path: _pathlib.Path | None = None,
        builtin_config_path: _pathlib.Path | None = None,
    ) -> None:
        """
        Load and resolve the config layers eagerly.

        Args:
            settings_cls: Settings class this source feeds.
            project_root: Directory holding .strata/config.yaml, if any.
            user_config_path: Replaces the user config location (tests).
            builtin_config_path: Replaces the bundled defaults (tests).
        """
        super().__init__(settings_cls)
        self._project_root = project_root
        self._user_config_path = user_config_path
        self._builtin_config_path = builtin_config_path
        self._chain = self._load_config_layers()
        self._merged, self._provenance = overlay.resolve_with_provenance(self._chain)

    def _load_config_layers(self) -> overlay.OverlayChain:
        """
        Load config files into an OverlayChain, lowest precedence first.

        Raises:
            LayerNotFoundError: If the built-in defaults are missing.
            ParseError: If any config file is malformed, or the built-in
                defaults are empty.
        """
        # Layer 1: Built-in defaults, required
        # Missing or empty defaults mean a broken installation.
        builtin_path = self._get_builtin_config_path()
        builtin = documents.load_document(builtin_path, name="built-in")
        if not builtin.document:
            raise errors.ParseError(
                builtin_path,
                "built-in defaults file is empty (possible installation problem)",
            )
        chain = overlay.OverlayChain((builtin,))

        # Layer 2: User config, optional
        user_path = self._get_user_config_path()
        if user_path.exists():
            chain = chain.then(documents.load_document(user_path, name="user"))

        # Layer 3: Project config, optional
        if self._project_root:
            project_path = get_project_config_path(self._project_root)
            if project_path.exists():
                chain = chain.then(documents.load_document(project_path, name="project"))

        return chain

    @property
    def chain(self) -> overlay.OverlayChain:
        """The loaded config layers, lowest precedence first."""
        return self._chain

    @property
    def provenance(self) -> overlay.Provenance:
        """Leaf path -> index into ``chain`` of the layer that set it."""
        return dict(self._provenance)

    def get_layer_paths(self) -> list[tuple[str, _pathlib.Path, bool]]:
        """
        Get info about all config layers, loaded or not.

        Returns:
            List of (layer_name, path, exists) tuples in precedence order
            (highest first: project, user, built-in).
        """
        layers: list[tuple[str, _pathlib.Path, bool]] = []

        if self._project_root:
            project_path = get_project_config_path(self._project_root)
            layers.append(("project", project_path, project_path.exists()))

        user_path = self._get_user_config_path()
        layers.append(("user", user_path, user_path.exists()))

        builtin_path = self._get_builtin_config_path()
        layers.append(("built-in", builtin_path, builtin_path.exists()))

        return layers

    def _get_builtin_config_path(self) -> _pathlib.Path:
        """Built-in defaults path, or the override given at construction."""
        if self._builtin_config_path is not None:
            return self._builtin_config_path
        return get_builtin_defaults_path()

    def _get_user_config_path(self) -> _pathlib.Path:
        """User config path, or the override given at construction."""
        if self._user_config_path is not None:
            return self._user_config_path
        return get_user_config_path()

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        """
        Get value for a top-level field from the merged config.

        Returns:
            Tuple of (value, field_name, is_complex).
        """
        value = self._merged.get(field_name)
        if value is None:
            return None, field_name, False
        return value, field_name, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        """
        Return the merged config as a plain dict for Pydantic validation.

        Unknown keys are included so Settings.model_extra can report them.
        """
        return overlay.resolve([self._merged])


def get_builtin_defaults_path() -> _pathlib.Path:
    """Bundled defaults/config.yaml shipped inside the package."""
    return _pathlib.Path(__file__).parent / "defaults" / "config.yaml"


def get_user_config_dir() -> _pathlib.Path:
    """
    Directory holding the user config file.

    STRATA_CONFIG_DIR wins when set; otherwise ~/.config/strata.
    """
    config_dir_env = _os.environ.get(ENV_CONFIG_DIR)
    if config_dir_env:
        return _pathlib.Path(config_dir_env)
    return _pathlib.Path.home() / ".config" / "strata"


def get_user_config_path() -> _pathlib.Path:
    """Get the path to the user config file."""
    return get_user_config_dir() / "config.yaml"


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """
    Get the path to the project config file.

    Args:
        project_root: The project root directory.

    Returns:
        Path to .strata/config.yaml within the project.
    """
    return project_root / ".strata" / "config.yaml"
