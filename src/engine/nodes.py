"""Immutable AST nodes produced by the template parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .errors import Position


class BlockKind(str, Enum):
    IF = "if"
    UNLESS = "unless"
    EACH = "each"


@dataclass(frozen=True)
class Literal:
    """Static text copied to the output unchanged."""
    text: str
    position: Position = field(compare=False)


@dataclass(frozen=True)
class Interpolation:
    """``{{helper2 helper1 a.b.c}}``.

    ``helpers`` keeps the order of appearance; the renderer applies them
    right to left, so ``helper1`` runs first.
    """
    path: tuple[str, ...]
    helpers: tuple[str, ...]
    position: Position = field(compare=False)

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True)
class Block:
    """``{{#kind path}}body{{else}}else_body{{/kind}}``."""
    kind: BlockKind
    path: tuple[str, ...]
    body: tuple["Node", ...]
    else_body: Optional[tuple["Node", ...]]
    position: Position = field(compare=False)

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)


Node = Union[Literal, Interpolation, Block]

# A parsed template is a sequence of top-level nodes.
AST = tuple[Node, ...]
