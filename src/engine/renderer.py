"""Evaluates a parsed AST against a Context.

Rendering is a pure function of ``(ast, context, helpers, mode)``: nothing
is mutated, so one ``Renderer`` (and one Context) may serve any number of
threads at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

from .errors import RenderError, RenderErrorKind
from .helpers import DEFAULT_HELPERS, HelperRegistry
from .nodes import AST, Block, BlockKind, Interpolation, Literal, Node
from .values import MISSING, Context, Scope, freeze, is_truthy, type_name


class RenderMode(str, Enum):
    """How unresolved interpolation paths are handled.

    ``strict`` raises ``MissingVariable`` and is used for real generation;
    ``lenient`` substitutes an empty string for draft previews.
    """
    STRICT = "strict"
    LENIENT = "lenient"


class Renderer:
    """Renders ASTs with a fixed helper registry and missing-variable policy."""

    def __init__(
        self,
        helpers: HelperRegistry = DEFAULT_HELPERS,
        mode: RenderMode = RenderMode.STRICT,
    ) -> None:
        self.helpers = helpers
        self.mode = RenderMode(mode)

    @property
    def strict(self) -> bool:
        return self.mode is RenderMode.STRICT

    def render(self, ast: AST, context: Union[Context, Mapping[str, Any]]) -> str:
        """Render *ast* and return the resulting text.

        Raises:
            RenderError: On missing variables (strict mode), non-collection
                ``each`` targets, or helper misuse.
        """
        if not isinstance(context, Context):
            context = Context(context)
        out: list[str] = []
        self._render_nodes(ast, Scope(context), out)
        return "".join(out)

    # -- Node dispatch -------------------------------------------------------

    def _render_nodes(self, nodes: tuple[Node, ...], scope: Scope, out: list[str]) -> None:
        for node in nodes:
            if isinstance(node, Literal):
                out.append(node.text)
            elif isinstance(node, Interpolation):
                out.append(self._interpolate(node, scope))
            elif isinstance(node, Block):
                if node.kind is BlockKind.EACH:
                    self._render_each(node, scope, out)
                else:
                    self._render_conditional(node, scope, out)

    def _interpolate(self, node: Interpolation, scope: Scope) -> str:
        value = scope.resolve(node.path)
        if value is MISSING:
            if self.strict:
                raise RenderError(
                    RenderErrorKind.MISSING_VARIABLE,
                    node.dotted_path,
                    f"Variable {node.dotted_path!r} is not defined",
                    node.position,
                )
            return ""
        for name in reversed(node.helpers):
            value = self._apply_helper(name, value, node)
        return self._to_text(value, node)

    def _render_conditional(self, node: Block, scope: Scope, out: list[str]) -> None:
        truthy = is_truthy(scope.resolve(node.path))
        if node.kind is BlockKind.UNLESS:
            truthy = not truthy
        if truthy:
            self._render_nodes(node.body, scope, out)
        elif node.else_body is not None:
            self._render_nodes(node.else_body, scope, out)

    def _render_each(self, node: Block, scope: Scope, out: list[str]) -> None:
        collection = scope.resolve(node.path)
        if collection is MISSING and not self.strict:
            return
        if isinstance(collection, tuple):
            last = len(collection) - 1
            for index, item in enumerate(collection):
                child = scope.child(item, index=index, first=index == 0, last=index == last)
                self._render_nodes(node.body, child, out)
        elif isinstance(collection, Mapping):
            last = len(collection) - 1
            for index, (key, item) in enumerate(collection.items()):
                child = scope.child(
                    item, key=key, index=index, first=index == 0, last=index == last
                )
                self._render_nodes(node.body, child, out)
        else:
            raise RenderError(
                RenderErrorKind.COLLECTION_EXPECTED,
                node.dotted_path,
                f"{{{{#each {node.dotted_path}}}}} needs a List or Map, "
                f"got {type_name(collection)}",
                node.position,
            )

    # -- Values --------------------------------------------------------------

    def _apply_helper(self, name: str, value: Any, node: Interpolation) -> Any:
        helper = self.helpers.get(name)
        if helper is None:
            raise RenderError(
                RenderErrorKind.MISSING_VARIABLE,
                node.dotted_path,
                f"Helper {name!r} is not registered with this renderer",
                node.position,
            )
        if helper.arity != 1:
            raise RenderError(
                RenderErrorKind.HELPER_ARITY_ERROR,
                node.dotted_path,
                f"Helper {name!r} takes {helper.arity} arguments, "
                f"an interpolation passes exactly 1",
                node.position,
            )
        if not helper.accepts_value(value):
            raise RenderError(
                RenderErrorKind.TYPE_MISMATCH,
                node.dotted_path,
                f"Helper {name!r} cannot be applied to a {type_name(value)} value",
                node.position,
            )
        result = helper.func(value)
        try:
            return freeze(result)
        except TypeError as exc:
            raise RenderError(
                RenderErrorKind.TYPE_MISMATCH,
                node.dotted_path,
                f"Helper {name!r} returned an unsupported value: {exc}",
                node.position,
            ) from exc

    def _to_text(self, value: Any, node: Interpolation) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float, str)):
            return str(value)
        raise RenderError(
            RenderErrorKind.TYPE_MISMATCH,
            node.dotted_path,
            f"Cannot interpolate a {type_name(value)} value; "
            f"use {{{{#each}}}} or the json helper",
            node.position,
        )


def render(
    ast: AST,
    context: Union[Context, Mapping[str, Any]],
    helpers: HelperRegistry = DEFAULT_HELPERS,
    mode: RenderMode = RenderMode.STRICT,
) -> str:
    """Render *ast* against *context*; see ``Renderer.render``."""
    return Renderer(helpers, mode).render(ast, context)
