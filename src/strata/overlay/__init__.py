"""
Values overlay resolution.

Deep-merges layered values documents (base -> environment -> instance)
into one resolved document. Later layers win; nested mappings merge key by
key; lists are replaced wholesale.

Example:
    >>> import strata.overlay as overlay
    >>> overlay.resolve([{"db": {"host": "a", "port": 5432}}, {"db": {"port": 6543}}])
    {'db': {'host': 'a', 'port': 6543}}
"""

from strata.overlay._core import (
    format_path,
    iter_leaves,
    merge,
    resolve,
    resolve_with_provenance,
)
from strata.overlay._types import (
    Layer,
    LineRegistry,
    OverlayChain,
    Path,
    Provenance,
    ResolvedDocument,
    ValueDocument,
)

__all__ = [
    "Layer",
    "LineRegistry",
    "OverlayChain",
    "Path",
    "Provenance",
    "ResolvedDocument",
    "ValueDocument",
    "format_path",
    "iter_leaves",
    "merge",
    "resolve",
    "resolve_with_provenance",
]
