"""
Loading values documents from YAML and JSON files.

YAML is parsed with a SafeLoader subclass that records the line and column
of every key, so provenance output can point at ``file:line``. JSON files
are parsed with the standard library and carry no line information.

Every document root must be a mapping. An empty file is an empty document.
"""

import collections.abc as _abc
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import yaml as _yaml

import strata.errors as errors
import strata.overlay as overlay

_logger = _logging.getLogger(__name__)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})
JSON_SUFFIXES = frozenset({".json"})


class _LineTrackingLoader(_yaml.SafeLoader):
    """YAML loader that tracks line/column numbers for all keys.

    Mapping construction is intercepted to record where each key is defined,
    while value construction is delegated to SafeLoader so ints, bools and
    dates keep their usual types.
    """

    def __init__(self, stream: _typing.Any) -> None:
        super().__init__(stream)
        self._line_registry: overlay.LineRegistry = {}
        self._path_stack: list[str] = []

    def construct_mapping(
        self, node: _yaml.MappingNode, deep: bool = False
    ) -> dict[str, _typing.Any]:
        """Override to track line numbers for each key."""
        # Resolve "<<" merge keys before walking the pairs
        self.flatten_mapping(node)

        if not self._path_stack:
            self._line_registry[()] = (node.start_mark.line + 1, node.start_mark.column + 1)

        result: dict[str, _typing.Any] = {}
        for key_node, value_node in node.value:
            # deep=True so nested mappings are built while the stack is correct
            key = self.construct_object(key_node, deep=True)
            if not isinstance(key, _abc.Hashable):
                raise _yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    "found unhashable key",
                    key_node.start_mark,
                )

            self._path_stack.append(key)
            key_path = tuple(self._path_stack)
            # Explicit keys follow merged ones, so the last definition wins
            self._line_registry[key_path] = (key_node.start_mark.line + 1, key_node.start_mark.column + 1)

            value = self.construct_object(value_node, deep=True)
            self._path_stack.pop()

            result[key] = value

        return result


def _load_yaml_with_lines(
    content: str,
) -> tuple[_typing.Any, overlay.LineRegistry]:
    """
    Load YAML content and track line numbers for all keys.

    Returns:
        Tuple of (parsed_data, line_registry). A stream with no document
        (empty or comments only) parses as an empty mapping; an explicit
        null root stays None.

    Raises:
        yaml.YAMLError: If YAML is malformed.
    """
    loader = _LineTrackingLoader(content)

    try:
        node = loader.get_single_node()
        data = loader.construct_document(node) if node is not None else {}
    finally:
        loader.dispose()

    return data, loader._line_registry


def _yaml_error_line(error: _yaml.YAMLError) -> int | None:
    mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
    return mark.line + 1 if mark is not None else None


def parse_document(
    content: str,
    *,
    name: str = "document",
    source: _pathlib.Path | None = None,
    fmt: _typing.Literal["yaml", "json"] = "yaml",
) -> overlay.Layer:
    """
    Parse values text into a Layer.

    Args:
        content: YAML or JSON text.
        name: Layer name used in provenance output.
        source: File the text came from, used in error messages.
        fmt: Input format.

    Returns:
        Layer holding the parsed document and its line registry.

    Raises:
        ParseError: If the text is malformed or its root is not a mapping.
    """
    lines: overlay.LineRegistry = {}

    if fmt == "json":
        try:
            parsed = _json.loads(content) if content.strip() else {}
        except _json.JSONDecodeError as e:
            raise errors.ParseError(source, f"invalid JSON: {e.msg}", line=e.lineno) from e
    else:
        try:
            parsed, lines = _load_yaml_with_lines(content)
        except _yaml.YAMLError as e:
            raise errors.ParseError(source, f"invalid YAML: {e}", line=_yaml_error_line(e)) from e

    if not isinstance(parsed, dict):
        type_name = "null" if parsed is None else type(parsed).__name__
        raise errors.ParseError(
            source,
            f"values document must be a mapping, got {type_name}",
        )

    return overlay.Layer(name=name, document=parsed, source=source, lines=lines)


def load_document(
    path: _pathlib.Path | str,
    *,
    name: str | None = None,
) -> overlay.Layer:
    """
    Load a values file into a Layer.

    The format is chosen from the file suffix (.yaml, .yml or .json).

    Args:
        path: File to load.
        name: Layer name; defaults to the file name.

    Returns:
        Layer with the parsed document, its source path and line registry.

    Raises:
        LayerNotFoundError: If the file does not exist.
        ParseError: If the file cannot be read, has an unsupported suffix,
            is malformed, or its root is not a mapping.
    """
    path = _pathlib.Path(path)
    layer_name = name if name is not None else path.name

    if not path.exists():
        raise errors.LayerNotFoundError(layer_name, path)

    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        fmt: _typing.Literal["yaml", "json"] = "yaml"
    elif suffix in JSON_SUFFIXES:
        fmt = "json"
    else:
        raise errors.ParseError(path, f"unsupported format: {path.suffix or '(no suffix)'}")

    try:
        content = path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise errors.ParseError(path, f"permission denied: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise errors.ParseError(path, f"cannot read file: {e}") from e

    layer = parse_document(content, name=layer_name, source=path, fmt=fmt)
    _logger.debug("Loaded %s layer from %s (%d top-level keys)", layer_name, path, len(layer.document))
    return layer
