"""Template engine: parser, renderer, helper registry and value model.

Quick usage::

    from src.engine import Context, Template

    template = Template("{{#each models}}{{pascalcase this.name}}\\n{{/each}}")
    text = template.render(Context({"models": [{"name": "todo"}]}))
"""

from src.engine.errors import (
    EngineError,
    GenerationCancelled,
    ParseError,
    ParseErrorKind,
    PathSecurityError,
    Position,
    RenderError,
    RenderErrorKind,
    UnknownPatternError,
)
from src.engine.helpers import DEFAULT_HELPERS, Helper, HelperRegistry
from src.engine.nodes import AST, Block, BlockKind, Interpolation, Literal
from src.engine.parser import Parser, parse
from src.engine.renderer import RenderMode, Renderer, render
from src.engine.template import Template
from src.engine.values import MISSING, Context, freeze, is_truthy, thaw

__all__ = [
    "AST",
    "Block",
    "BlockKind",
    "Context",
    "DEFAULT_HELPERS",
    "EngineError",
    "GenerationCancelled",
    "Helper",
    "HelperRegistry",
    "Interpolation",
    "Literal",
    "MISSING",
    "ParseError",
    "ParseErrorKind",
    "Parser",
    "PathSecurityError",
    "Position",
    "RenderError",
    "RenderErrorKind",
    "RenderMode",
    "Renderer",
    "Template",
    "UnknownPatternError",
    "freeze",
    "is_truthy",
    "parse",
    "render",
    "thaw",
]
