"""Architecture patterns and the Context Builder.

Turns a ``PatternConfig`` (pattern name + decision data) into the immutable
Context that project templates render against.
"""

from src.patterns.builder import (
    FALLBACK_PATTERN,
    ContextBuilder,
    PatternRegistry,
    build_context,
)
from src.patterns.generators import BUILTIN_PATTERNS
from src.patterns.models import PatternConfig, ProjectContext

__all__ = [
    "BUILTIN_PATTERNS",
    "ContextBuilder",
    "FALLBACK_PATTERN",
    "PatternConfig",
    "PatternRegistry",
    "ProjectContext",
    "build_context",
]
