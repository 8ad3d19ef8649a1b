"""
Serializing resolved documents for the delivery controller.

YAML output keeps the resolved key order (first occurrence across the
chain) so the same inputs always produce byte-identical files.
"""

import collections.abc as _abc
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import yaml as _yaml

import strata.constants as constants
import strata.overlay as overlay

_logger = _logging.getLogger(__name__)

OutputFormat: _typing.TypeAlias = _typing.Literal["yaml", "json"]

_JSON_KEY_TYPES = (str, int, float, bool)


def format_for_path(path: _pathlib.Path | str) -> OutputFormat:
    """Pick the output format from a file suffix (``.json`` or YAML)."""
    return "json" if _pathlib.Path(path).suffix.lower() == ".json" else "yaml"


def dump_document(
    document: overlay.ValueDocument,
    *,
    fmt: OutputFormat = "yaml",
    indent: int = constants.DEFAULT_INDENT,
) -> str:
    """
    Serialize a document to text.

    Args:
        document: The document to serialize.
        fmt: "yaml" (block style, unsorted keys) or "json".
        indent: Indentation width.

    Returns:
        Serialized text ending with a newline.
    """
    if fmt == "json":
        # default=str covers YAML-native scalar values such as dates
        text = _json.dumps(
            stringify_keys(document), indent=indent, ensure_ascii=False, default=str
        )
        return text + "\n"

    if fmt != "yaml":
        raise ValueError(f"Unknown output format: {fmt!r}")

    return _yaml.safe_dump(
        dict(document),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=indent,
    )


def stringify_keys(value: _typing.Any) -> _typing.Any:
    """Copy ``value`` with mapping keys JSON cannot encode (dates) turned into strings."""
    if isinstance(value, _abc.Mapping):
        return {_json_key(key): stringify_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [stringify_keys(item) for item in value]
    return value


def _json_key(key: _typing.Any) -> _typing.Any:
    return key if key is None or isinstance(key, _JSON_KEY_TYPES) else str(key)


def write_document(
    document: overlay.ValueDocument,
    path: _pathlib.Path | str,
    *,
    fmt: OutputFormat | None = None,
    indent: int = constants.DEFAULT_INDENT,
) -> _pathlib.Path:
    """
    Write a document to ``path``, creating parent directories.

    The format is inferred from the suffix unless ``fmt`` is given.

    Returns:
        The path written.
    """
    path = _pathlib.Path(path)
    text = dump_document(document, fmt=fmt or format_for_path(path), indent=indent)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    _logger.debug("Wrote resolved document to %s", path)
    return path
