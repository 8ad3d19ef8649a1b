"""
Exception hierarchy for Strata.

All errors raised by the library derive from StrataError so callers (and
the CLI) can catch tool failures without catching programming errors.
"""

import pathlib as _pathlib


class StrataError(Exception):
    """Base class for all Strata errors."""

    pass


class EmptyChainError(StrataError, ValueError):
    """Raised when an overlay chain contains no documents."""

    def __init__(self, message: str = "overlay chain must contain at least one document") -> None:
        super().__init__(message)


class ParseError(StrataError):
    """A values document could not be read or parsed."""

    def __init__(
        self,
        path: _pathlib.Path | str | None,
        message: str,
        *,
        line: int | None = None,
    ) -> None:
        self.path = path
        self.line = line
        self.reason = message
        location = str(path) if path is not None else "<input>"
        if line is not None:
            location = f"{location}:{line}"
        super().__init__(f"Error in values document {location}: {message}")


class LayerNotFoundError(StrataError, FileNotFoundError):
    """A required layer file does not exist."""

    def __init__(self, name: str, path: _pathlib.Path) -> None:
        self.name = name
        self.path = path
        super().__init__(f"{name} layer not found: {path}")

    def __str__(self) -> str:
        # FileNotFoundError formats its own str() from errno/filename
        return f"{self.name} layer not found: {self.path}"
