"""
Type aliases and containers for overlay resolution.

- ValueDocument: one layer of configuration values (a mapping)
- Path: tuple of keys addressing a nested value
- Provenance: leaf path -> index of the layer that supplied the value
- Layer / OverlayChain: named documents in precedence order
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing

# A configuration layer. Values are scalars, lists or nested mappings,
# exactly as produced by a YAML/JSON parser.
ValueDocument: _typing.TypeAlias = _abc.Mapping[str, _typing.Any]

# The merged output. Always a fresh, plain dict.
ResolvedDocument: _typing.TypeAlias = dict[str, _typing.Any]

# Example: ("db", "port") addresses document["db"]["port"]
Path: _typing.TypeAlias = tuple[str, ...]

# Maps key path tuples to (line, column), both 1-indexed
LineRegistry: _typing.TypeAlias = dict[Path, tuple[int, int]]

# Leaf path -> layer index (0 = lowest precedence)
Provenance: _typing.TypeAlias = dict[Path, int]


@_dataclasses.dataclass(frozen=True)
class Layer:
    """A single named values document.

    Attributes:
        name: Short label shown in provenance output (e.g. "base", "prod").
        document: The parsed values.
        source: File the document was loaded from, if any.
        lines: Line/column of each key path in ``source``.
    """

    name: str
    document: ValueDocument
    source: _pathlib.Path | None = None
    lines: LineRegistry = _dataclasses.field(default_factory=dict, compare=False, repr=False)

    def line_of(self, path: Path) -> int | None:
        """Return the 1-indexed line where ``path`` is defined, if known."""
        position = self.lines.get(path)
        return position[0] if position is not None else None


@_dataclasses.dataclass(frozen=True)
class OverlayChain(_abc.Sequence[ValueDocument]):
    """Ordered layers, lowest precedence first.

    Behaves as a read-only sequence of documents so it can be passed
    straight to ``resolve``. Use ``layers`` for names and sources.
    """

    layers: tuple[Layer, ...] = ()

    @classmethod
    def of(cls, *documents: ValueDocument) -> OverlayChain:
        """Build an anonymous chain from bare documents."""
        return cls(
            tuple(Layer(name=f"layer{i}", document=doc) for i, doc in enumerate(documents))
        )

    def then(self, layer: Layer) -> OverlayChain:
        """Return a new chain with ``layer`` added at the highest precedence."""
        return OverlayChain((*self.layers, layer))

    @property
    def names(self) -> list[str]:
        return [layer.name for layer in self.layers]

    @_typing.overload
    def __getitem__(self, index: int) -> ValueDocument: ...

    @_typing.overload
    def __getitem__(self, index: slice) -> OverlayChain: ...

    def __getitem__(self, index: int | slice) -> _typing.Any:
        if isinstance(index, slice):
            return OverlayChain(self.layers[index])
        return self.layers[index].document

    def __len__(self) -> int:
        return len(self.layers)
