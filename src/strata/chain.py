"""
Building overlay chains from a values directory.

A values directory follows the GitOps layering convention:

    values.yaml                                   base (required)
    environments/<environment>/values.yaml        environment overrides
    environments/<environment>/<instance>/values.yaml   instance overrides

Chain order (lowest to highest precedence):
1. Base layer
2. Environment layer (when an environment is named)
3. Instance layer (when an instance is named)
4. Extra files, in the order given
5. ``--set`` overrides

Named layers are required: asking for environment "prod" when its file is
missing is an error rather than a silent fallback to the base values.
"""

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import re as _re
import string as _string
import typing as _typing

import yaml as _yaml

import strata.constants as constants
import strata.documents as documents
import strata.errors as errors
import strata.overlay as overlay

_logger = _logging.getLogger(__name__)

# Dots separate key segments unless escaped: a\.b.c -> ("a.b", "c")
_KEY_SEPARATOR = _re.compile(r"(?<!\\)\.")


@_dataclasses.dataclass(frozen=True)
class Layout:
    """Where each layer lives, relative to the values directory."""

    base: str = constants.DEFAULT_BASE_FILE
    environment: str = constants.DEFAULT_ENVIRONMENT_FILE
    instance: str = constants.DEFAULT_INSTANCE_FILE


DEFAULT_LAYOUT = Layout()


@_dataclasses.dataclass(frozen=True)
class LayerSpec:
    """A candidate layer file, before loading."""

    name: str
    path: _pathlib.Path

    @property
    def exists(self) -> bool:
        return self.path.exists()


def template_fields(template: str) -> set[str]:
    """
    Names of the ``{placeholders}`` in a layout template.

    Raises:
        ValueError: If the template is not a valid format string.
    """
    return {
        field for _, field, _, _ in _string.Formatter().parse(template) if field is not None
    }


def _expand(template: str, **fields: str | None) -> str:
    """Substitute layer names into a layout template."""
    try:
        return template.format(**fields)
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid layout template {template!r}: {e}") from e


def _check_name(kind: str, value: str) -> None:
    """Reject names that would escape the values directory."""
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"Invalid {kind} name: {value!r}")


def candidate_layers(
    values_dir: _pathlib.Path | str,
    *,
    environment: str | None = None,
    instance: str | None = None,
    layout: Layout = DEFAULT_LAYOUT,
) -> list[LayerSpec]:
    """
    List the directory layers for an environment/instance, lowest first.

    Raises:
        ValueError: If an instance is named without an environment, or a
            name contains path separators.
    """
    root = _pathlib.Path(values_dir)

    if instance is not None and environment is None:
        raise ValueError("An instance requires an environment")

    specs = [LayerSpec(constants.BASE_LAYER, root / layout.base)]

    if environment is not None:
        _check_name("environment", environment)
        specs.append(
            LayerSpec(
                constants.ENVIRONMENT_LAYER,
                root / _expand(layout.environment, environment=environment),
            )
        )

    if instance is not None:
        _check_name("instance", instance)
        specs.append(
            LayerSpec(
                constants.INSTANCE_LAYER,
                root / _expand(layout.instance, environment=environment, instance=instance),
            )
        )

    return specs


def describe_layers(
    values_dir: _pathlib.Path | str,
    *,
    environment: str | None = None,
    instance: str | None = None,
    layout: Layout = DEFAULT_LAYOUT,
) -> list[tuple[str, _pathlib.Path, bool]]:
    """
    Get info about each directory layer without loading it.

    Returns:
        List of (layer_name, path, exists) tuples, lowest precedence first.
    """
    return [
        (spec.name, spec.path, spec.exists)
        for spec in candidate_layers(
            values_dir, environment=environment, instance=instance, layout=layout
        )
    ]


def build_chain(
    values_dir: _pathlib.Path | str,
    *,
    environment: str | None = None,
    instance: str | None = None,
    extra_files: _abc.Iterable[_pathlib.Path | str] = (),
    overrides: _abc.Iterable[str] = (),
    layout: Layout = DEFAULT_LAYOUT,
) -> overlay.OverlayChain:
    """
    Load every layer for a deployment target into an OverlayChain.

    Args:
        values_dir: Root of the values directory.
        environment: Environment name (e.g. "staging"), or None for base only.
        instance: Instance name within the environment.
        extra_files: Additional values files applied above the directory layers.
        overrides: ``dotted.key=value`` assignments applied last.
        layout: Path templates for the directory layers.

    Returns:
        Chain of loaded layers, lowest precedence first.

    Raises:
        LayerNotFoundError: If a required layer file is missing.
        ParseError: If a layer or override is malformed.
        ValueError: If the environment/instance names are invalid.
    """
    chain = overlay.OverlayChain()

    for spec in candidate_layers(
        values_dir, environment=environment, instance=instance, layout=layout
    ):
        if not spec.exists:
            raise errors.LayerNotFoundError(spec.name, spec.path)
        chain = chain.then(documents.load_document(spec.path, name=spec.name))

    for extra in extra_files:
        chain = chain.then(documents.load_document(extra))

    assignments = list(overrides)
    if assignments:
        chain = chain.then(
            overlay.Layer(name=constants.SET_LAYER, document=parse_overrides(assignments))
        )

    _logger.debug("Built overlay chain: %s", " -> ".join(chain.names))
    return chain


def parse_overrides(assignments: _abc.Iterable[str]) -> dict[str, _typing.Any]:
    """
    Turn ``dotted.key=value`` assignments into a nested values document.

    Values are parsed as YAML, so ``replicas=3`` yields an int and
    ``tags=[a, b]`` a list. An empty value is the empty string. Use ``\\.``
    to keep a literal dot inside a key. Later assignments win.

    Example:
        >>> parse_overrides(["image.tag=v2", "replicas=3"])
        {'image': {'tag': 'v2'}, 'replicas': 3}

    Raises:
        ParseError: If an assignment has no ``=``, an empty key segment,
            or a value that is not valid YAML.
    """
    document: dict[str, _typing.Any] = {}

    for assignment in assignments:
        key, sep, raw_value = assignment.partition("=")
        if not sep or not key:
            raise errors.ParseError("--set", f"expected key=value, got {assignment!r}")

        path = [segment.replace("\\.", ".") for segment in _KEY_SEPARATOR.split(key)]
        if any(not segment for segment in path):
            raise errors.ParseError("--set", f"empty key segment in {assignment!r}")

        if raw_value == "":
            value: _typing.Any = ""
        else:
            try:
                value = _yaml.safe_load(raw_value)
            except _yaml.YAMLError as e:
                raise errors.ParseError("--set", f"invalid value in {assignment!r}: {e}") from e

        current = document
        for segment in path[:-1]:
            if not isinstance(current.get(segment), dict):
                current[segment] = {}
            current = current[segment]
        current[path[-1]] = value

    return document
