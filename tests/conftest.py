"""
Shared pytest fixtures for Strata tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import click.testing as _click_testing
import pytest as _pytest
import yaml as _yaml

import strata.config as config


def _write_yaml(path: _pathlib.Path, data: _typing.Any) -> _pathlib.Path:
    """Write ``data`` as YAML, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


# =============================================================================
# Environment isolation
# =============================================================================


@_pytest.fixture(autouse=True)
def restore_strata_logger() -> _typing.Iterator[None]:
    """Undo level and handler changes the CLI makes to the ``strata`` logger."""
    package_logger = _logging.getLogger("strata")
    level = package_logger.level
    handlers = list(package_logger.handlers)
    yield
    package_logger.setLevel(level)
    package_logger.handlers[:] = handlers


@_pytest.fixture
def isolated_env(
    tmp_path: _pathlib.Path,
    monkeypatch: _pytest.MonkeyPatch,
) -> _pathlib.Path:
    """
    Isolate tests from the user's Strata configuration.

    - Removes STRATA_* and NO_COLOR environment variables
    - Points STRATA_CONFIG_DIR at an empty directory
    - Changes into a fresh working directory (no .strata/config.yaml)

    Returns:
        The working directory.
    """
    for key in list(_os.environ):
        if key.startswith("STRATA_") or key == "NO_COLOR":
            monkeypatch.delenv(key, raising=False)

    user_dir = tmp_path / "user-config"
    user_dir.mkdir()
    monkeypatch.setenv("STRATA_CONFIG_DIR", str(user_dir))

    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


@_pytest.fixture
def clean_settings(isolated_env: _pathlib.Path) -> config.Settings:
    """Settings built only from the built-in defaults."""
    return config.Settings.construct_without_dotenv()


@_pytest.fixture
def runner(isolated_env: _pathlib.Path) -> _click_testing.CliRunner:
    """CliRunner running inside the isolated environment."""
    return _click_testing.CliRunner()


# =============================================================================
# Values directories
# =============================================================================


@_pytest.fixture
def write_yaml() -> _typing.Callable[[_pathlib.Path, _typing.Any], _pathlib.Path]:
    """Helper that writes data as YAML to a path."""
    return _write_yaml


@_pytest.fixture
def values_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """
    A values directory with base, environment and instance layers.

    Layout:
        values.yaml
        environments/prod/values.yaml
        environments/prod/eu-1/values.yaml
        environments/dev/values.yaml
    """
    root = tmp_path / "deploy"
    _write_yaml(
        root / "values.yaml",
        {
            "env": "base",
            "replicas": 1,
            "image": {"repository": "registry.example.com/web", "tag": "latest"},
            "db": {"host": "db.internal", "port": 5432},
            "tags": ["x", "y"],
        },
    )
    _write_yaml(
        root / "environments" / "prod" / "values.yaml",
        {
            "env": "prod",
            "replicas": 3,
            "db": {"port": 6543},
        },
    )
    _write_yaml(
        root / "environments" / "prod" / "eu-1" / "values.yaml",
        {
            "region": "eu-west-1",
            "tags": ["z"],
        },
    )
    _write_yaml(
        root / "environments" / "dev" / "values.yaml",
        {"env": "dev", "debug": True},
    )
    return root
