"""
Deep merge of layered values documents.

Merge rule, applied pairwise from the lowest to the highest precedence layer:

- A key present in only one operand is copied as-is.
- A key present in both: if both values are mappings they are merged
  recursively, otherwise the later (higher precedence) value wins outright.
  Lists are replaced wholesale, never concatenated.
- Type mismatches are not errors: the later value wins.
- Key order follows first occurrence across the chain, so serializing the
  result is reproducible.

The result is always a fresh structure of plain dicts and lists. Inputs are
never mutated and the result shares no containers with them.
"""

from __future__ import annotations

import collections.abc as _abc
import copy as _copy
import logging as _logging
import typing as _typing

import strata.errors as errors
import strata.overlay._types as _types

_logger = _logging.getLogger(__name__)


def resolve(chain: _abc.Iterable[_types.ValueDocument]) -> _types.ResolvedDocument:
    """
    Fold an overlay chain into a single resolved document.

    Args:
        chain: Documents in precedence order, lowest first. Accepts an
            OverlayChain or any iterable of mappings.

    Returns:
        New dict with every key from every layer.

    Raises:
        EmptyChainError: If the chain holds no documents.
        TypeError: If a chain element is not a mapping.
    """
    documents = _checked_documents(chain)

    result = _plain(documents[0])
    for document in documents[1:]:
        _merge_into(result, document)

    _logger.debug("Resolved %d layer(s) into %d top-level key(s)", len(documents), len(result))
    return result


def merge(
    base: _types.ValueDocument,
    override: _types.ValueDocument,
) -> _types.ResolvedDocument:
    """
    Merge two documents, ``override`` taking precedence.

    Equivalent to ``resolve([base, override])``.
    """
    return resolve((base, override))


def resolve_with_provenance(
    chain: _abc.Iterable[_types.ValueDocument],
) -> tuple[_types.ResolvedDocument, _types.Provenance]:
    """
    Resolve a chain and record which layer supplied each leaf value.

    A leaf is any value that is not a non-empty mapping. When a later layer
    replaces a mapping with a scalar or list, the whole subtree collapses
    into one leaf owned by that layer.

    Returns:
        Tuple of (resolved_document, provenance). The document is equal to
        ``resolve(chain)``; provenance maps leaf paths to layer indices,
        0 being the lowest precedence layer.

    Raises:
        EmptyChainError: If the chain holds no documents.
        TypeError: If a chain element is not a mapping.
    """
    documents = _checked_documents(chain)

    result: dict[str, _typing.Any] = {}
    provenance: _types.Provenance = {}
    for index, document in enumerate(documents):
        _merge_tracked(result, document, (), index, provenance)

    return result, provenance


def iter_leaves(
    document: _types.ValueDocument,
    prefix: _types.Path = (),
) -> _typing.Iterator[tuple[_types.Path, _typing.Any]]:
    """
    Yield ``(path, value)`` for every leaf in document order.

    Empty mappings are leaves; lists are leaves (they merge wholesale).
    """
    for key, value in document.items():
        path = (*prefix, key)
        if isinstance(value, _abc.Mapping) and value:
            yield from iter_leaves(value, path)
        else:
            yield path, value


def format_path(path: _types.Path) -> str:
    """Render a key path as ``a.b.c``."""
    return ".".join(str(key) for key in path)


def _checked_documents(
    chain: _abc.Iterable[_types.ValueDocument],
) -> list[_types.ValueDocument]:
    documents = list(chain)
    if not documents:
        raise errors.EmptyChainError()

    for index, document in enumerate(documents):
        if not isinstance(document, _abc.Mapping):
            raise TypeError(
                f"Layer {index} must be a mapping, got {type(document).__name__}"
            )
    return documents


def _plain(value: _typing.Any) -> _typing.Any:
    """Deep copy ``value`` into plain dicts and lists."""
    if isinstance(value, _abc.Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return _copy.deepcopy(value)


def _merge_into(
    target: dict[str, _typing.Any],
    override: _types.ValueDocument,
) -> None:
    """Merge ``override`` into ``target`` in place. ``target`` must be ours."""
    for key, value in override.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, _abc.Mapping):
            _merge_into(existing, value)
        else:
            # Scalar, list or type mismatch: override wins
            target[key] = _plain(value)


def _merge_tracked(
    target: dict[str, _typing.Any],
    override: _types.ValueDocument,
    prefix: _types.Path,
    index: int,
    provenance: _types.Provenance,
) -> None:
    """Same as _merge_into, maintaining leaf provenance."""
    for key, value in override.items():
        path = (*prefix, key)
        existing = target.get(key)

        if isinstance(value, _abc.Mapping):
            if not isinstance(existing, dict):
                if key in target:
                    _forget(provenance, path)
                existing = target[key] = {}
            if value:
                # No longer an empty-mapping leaf
                provenance.pop(path, None)
                _merge_tracked(existing, value, path, index, provenance)
            elif not existing:
                provenance[path] = index
            continue

        if key in target:
            _forget(provenance, path)
        target[key] = _plain(value)
        provenance[path] = index


def _forget(provenance: _types.Provenance, path: _types.Path) -> None:
    """Drop provenance for ``path`` and everything beneath it."""
    depth = len(path)
    stale = [p for p in provenance if p[:depth] == path]
    for p in stale:
        del provenance[p]
