"""Exception hierarchy for the template engine.

Every failure the engine can report is an ``EngineError`` subclass carrying
a machine-readable ``kind`` and, where one exists, the ``Position`` of the
offending node so a template author can jump straight to it.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Optional


# ---------------------------------------------------------------------------
# Source positions
# ---------------------------------------------------------------------------


class Position(NamedTuple):
    """Location of a node inside template source text (line/column are 1-based)."""

    offset: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------


class ParseErrorKind(str, Enum):
    """Malformed template syntax."""
    UNTERMINATED_BLOCK = "UnterminatedBlock"
    MISMATCHED_BLOCK = "MismatchedBlock"
    MISPLACED_ELSE = "MisplacedElse"
    UNKNOWN_HELPER = "UnknownHelper"
    INVALID_PATH = "InvalidPath"
    UNTERMINATED_TAG = "UnterminatedTag"
    UNKNOWN_BLOCK = "UnknownBlock"


class RenderErrorKind(str, Enum):
    """Valid syntax, invalid data or usage at render time."""
    MISSING_VARIABLE = "MissingVariable"
    COLLECTION_EXPECTED = "CollectionExpected"
    HELPER_ARITY_ERROR = "HelperArityError"
    TYPE_MISMATCH = "TypeMismatch"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EngineError(Exception):
    """Base class for every error raised by the engine."""

    kind: str = "EngineError"

    def __init__(self, message: str, position: Optional[Position] = None) -> None:
        self.message = message
        self.position = position
        super().__init__(message if position is None else f"{message} ({position})")


class ParseError(EngineError):
    """Raised when template source cannot be turned into an AST."""

    def __init__(
        self,
        kind: ParseErrorKind,
        message: str,
        position: Optional[Position] = None,
    ) -> None:
        self.kind = kind.value
        self.parse_kind = kind
        super().__init__(message, position)


class RenderError(EngineError):
    """Raised when a parsed template cannot be evaluated against a Context."""

    def __init__(
        self,
        kind: RenderErrorKind,
        path: str,
        message: str,
        position: Optional[Position] = None,
    ) -> None:
        self.kind = kind.value
        self.render_kind = kind
        self.path = path
        super().__init__(message, position)


class PathSecurityError(EngineError):
    """Raised when a rendered output path would escape the output root."""

    kind = "PathSecurityError"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Unsafe output path {path!r}: {reason}")


class UnknownPatternError(EngineError):
    """Raised only when a caller asks the pattern registry for strict lookup."""

    kind = "UnknownPatternError"

    def __init__(self, pattern_name: str) -> None:
        self.pattern_name = pattern_name
        super().__init__(f"Unknown architecture pattern: {pattern_name!r}")


class GenerationCancelled(EngineError):
    """Raised when a generation run is cancelled or exceeds its timeout.

    No partial output is ever attached to this error.
    """

    kind = "GenerationCancelled"
