"""
Strata - layered values resolver

Deep-merges configuration values documents (base -> environment ->
instance) into one resolved document for GitOps delivery.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("strata-values")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Strata Contributors"

from strata.errors import (  # noqa: E402
    EmptyChainError,
    LayerNotFoundError,
    ParseError,
    StrataError,
)
from strata.overlay import OverlayChain, resolve  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "EmptyChainError",
    "LayerNotFoundError",
    "OverlayChain",
    "ParseError",
    "StrataError",
    "resolve",
]
