"""A template: source text plus its lazily parsed, cached AST."""

from __future__ import annotations

from functools import cached_property
from typing import Optional

from .helpers import DEFAULT_HELPERS, HelperRegistry
from .nodes import AST
from .parser import Parser
from .renderer import RenderMode, Renderer
from .values import Context


class Template:
    """Template source bound to a helper registry.

    The AST is parsed on first access and reused for every later render.
    Parsing is pure, so two threads racing on the first access simply
    produce equal ASTs.
    """

    def __init__(
        self,
        source: str,
        name: Optional[str] = None,
        helpers: HelperRegistry = DEFAULT_HELPERS,
    ) -> None:
        self.source = source
        self.name = name or "<string>"
        self.helpers = helpers

    def __repr__(self) -> str:
        return f"Template(name={self.name!r})"

    @cached_property
    def ast(self) -> AST:
        """The parsed AST (raises ``ParseError`` on malformed source)."""
        return Parser(self.helpers).parse(self.source)

    def render(self, context: Context, mode: RenderMode = RenderMode.STRICT) -> str:
        return Renderer(self.helpers, mode).render(self.ast, context)
