"""Context Builder: maps a ``PatternConfig`` to an immutable render Context.

Pattern generators live in a registry keyed by pattern name, so new
architecture archetypes plug in without touching the pipeline::

    registry = PatternRegistry.with_builtins()

    @registry.register("booking")
    def booking(decisions):
        ...

    context = ContextBuilder(registry).build(PatternConfig(patternName="booking"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Optional, Union

from src.engine.errors import UnknownPatternError
from src.engine.values import Context

from .generators import BUILTIN_PATTERNS, Generator
from .models import PatternConfig

FALLBACK_PATTERN = "simple_crud"


class PatternRegistry(Mapping):
    """Mapping of pattern identifier to generator function."""

    def __init__(self, generators: Optional[Mapping[str, Generator]] = None) -> None:
        self._generators: dict[str, Generator] = dict(generators or {})

    @classmethod
    def with_builtins(cls) -> "PatternRegistry":
        """A registry pre-loaded with the five built-in patterns."""
        return cls(BUILTIN_PATTERNS)

    def __getitem__(self, name: str) -> Generator:
        return self._generators[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._generators)

    def __len__(self) -> int:
        return len(self._generators)

    def register(self, name: str) -> Callable[[Generator], Generator]:
        """Decorator registering a generator under *name*."""

        def decorator(func: Generator) -> Generator:
            self._generators[name] = func
            return func

        return decorator

    def get_generator(self, name: str, *, strict: bool = False) -> Optional[Generator]:
        """Look up a generator; with ``strict=True`` unknown names raise.

        Raises:
            UnknownPatternError: If *strict* and *name* is not registered.
        """
        generator = self._generators.get(name)
        if generator is None and strict:
            raise UnknownPatternError(name)
        return generator


class ContextBuilder:
    """Builds the render Context for one generation run.

    Unknown pattern names never fail the run: the fallback generator is used
    and ``unknown_pattern:<name>`` is recorded under ``_warnings``.
    """

    def __init__(
        self,
        registry: Optional[PatternRegistry] = None,
        fallback: str = FALLBACK_PATTERN,
    ) -> None:
        self.registry = registry if registry is not None else PatternRegistry.with_builtins()
        if fallback not in self.registry:
            raise ValueError(f"Fallback pattern {fallback!r} is not registered")
        self.fallback = fallback

    def build(self, config: Union[PatternConfig, Mapping[str, Any]]) -> Context:
        """Run the pattern's generator and freeze the result into a Context.

        Args:
            config: A ``PatternConfig`` or a raw ``{"patternName", "decisions"}``
                mapping (validated into one).

        Raises:
            pydantic.ValidationError: If a raw mapping is not a valid config.
        """
        if not isinstance(config, PatternConfig):
            config = PatternConfig.model_validate(config)

        warnings: list[str] = []
        generator = self.registry.get_generator(config.pattern_name)
        if generator is None:
            warnings.append(f"unknown_pattern:{config.pattern_name}")
            generator = self.registry[self.fallback]

        project = generator(config.decisions)
        project.warnings = [*project.warnings, *warnings]
        return Context(project.to_value())


def build_context(config: Union[PatternConfig, Mapping[str, Any]]) -> Context:
    """Build a Context with the built-in patterns; see ``ContextBuilder.build``."""
    return ContextBuilder().build(config)
