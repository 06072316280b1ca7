"""Tests for the template renderer (src.engine.renderer) and Template.

Covers:
- Interpolation of scalars, booleans and floats
- Strict vs lenient handling of missing variables
- Conditionals (if / unless / else) and the falsy set
- Each over Lists and Maps with this / @index / @key / @first / @last
- Scoping: named paths always resolve from the root
- Helper application order and helper errors
- Determinism
"""

from __future__ import annotations

import pytest

from src.engine import (
    Context,
    Helper,
    RenderError,
    RenderMode,
    Renderer,
    Template,
    parse,
    render,
)
from src.engine.helpers import DEFAULT_HELPERS

pytestmark = pytest.mark.unit


def _render(source: str, context, mode: RenderMode = RenderMode.STRICT) -> str:
    return Template(source).render(Context(context), mode)


def _error(source: str, context) -> RenderError:
    with pytest.raises(RenderError) as exc_info:
        _render(source, context)
    return exc_info.value


# ---------------------------------------------------------------------------
# Interpolation
# ---------------------------------------------------------------------------


class TestInterpolation:
    def test_string(self):
        assert _render("Hello {{name}}!", {"name": "World"}) == "Hello World!"

    def test_nested_path(self):
        assert _render("{{a.b.c}}", {"a": {"b": {"c": "deep"}}}) == "deep"

    def test_list_index_path(self):
        assert _render("{{xs.1}}", {"xs": ["a", "b"]}) == "b"

    def test_integer_and_float(self):
        assert _render("{{n}} {{f}} {{g}}", {"n": 3, "f": 2.0, "g": 2.5}) == "3 2 2.5"

    def test_booleans_render_lowercase(self):
        assert _render("{{t}}/{{f}}", {"t": True, "f": False}) == "true/false"

    def test_literal_braces_pass_through(self):
        assert _render("const x = { a: 1 };", {}) == "const x = { a: 1 };"

    def test_list_value_is_type_mismatch(self):
        err = _error("{{xs}}", {"xs": ["a"]})
        assert err.kind == "TypeMismatch"
        assert err.path == "xs"

    def test_map_value_is_type_mismatch(self):
        assert _error("{{m}}", {"m": {"a": 1}}).kind == "TypeMismatch"


# ---------------------------------------------------------------------------
# Missing variables
# ---------------------------------------------------------------------------


class TestMissingVariables:
    def test_strict_raises_with_path_and_position(self):
        err = _error("x\n {{project.name}}", {"project": {}})
        assert err.kind == "MissingVariable"
        assert err.path == "project.name"
        assert (err.position.line, err.position.column) == (2, 2)

    def test_lenient_renders_empty(self):
        assert _render("[{{missing}}]", {}, RenderMode.LENIENT) == "[]"

    def test_lenient_skips_helpers_for_missing(self):
        assert _render("[{{upper missing}}]", {}, RenderMode.LENIENT) == "[]"

    def test_none_is_treated_as_absent(self):
        assert _error("{{a}}", {"a": None}).kind == "MissingVariable"

    def test_out_of_range_index_is_missing(self):
        assert _error("{{xs.5}}", {"xs": ["a"]}).kind == "MissingVariable"

    def test_strict_is_the_default(self):
        with pytest.raises(RenderError):
            render(parse("{{nope}}"), {})


# ---------------------------------------------------------------------------
# Conditionals
# ---------------------------------------------------------------------------


class TestConditionals:
    @pytest.mark.parametrize("value", [False, 0, 0.0, "", [], {}])
    def test_falsy_values(self, value):
        assert _render("{{#if v}}yes{{else}}no{{/if}}", {"v": value}) == "no"

    @pytest.mark.parametrize("value", [True, 1, -1, 0.5, "x", ["a"], {"k": "v"}])
    def test_truthy_values(self, value):
        assert _render("{{#if v}}yes{{else}}no{{/if}}", {"v": value}) == "yes"

    def test_missing_path_is_falsy_even_in_strict_mode(self):
        assert _render("{{#if nope}}yes{{else}}no{{/if}}", {}) == "no"

    def test_unless_negates(self):
        source = "{{#unless v}}off{{else}}on{{/unless}}"
        assert _render(source, {"v": False}) == "off"
        assert _render(source, {"v": True}) == "on"

    def test_exactly_one_branch_renders(self):
        source = "{{#if v}}A{{else}}B{{/if}}"
        for value in (True, False):
            out = _render(source, {"v": value})
            assert out in ("A", "B")
            assert len(out) == 1

    def test_if_without_else_renders_nothing_when_false(self):
        assert _render("a{{#if v}}b{{/if}}c", {"v": False}) == "ac"


# ---------------------------------------------------------------------------
# Iteration and scoping
# ---------------------------------------------------------------------------


class TestEach:
    def test_list_with_special_variables(self):
        source = "{{#each xs}}{{@index}}:{{this}}:{{@first}}:{{@last}};{{/each}}"
        assert _render(source, {"xs": ["a", "b", "c"]}) == (
            "0:a:true:false;1:b:false:false;2:c:false:true;"
        )

    def test_map_iteration_binds_key(self):
        source = "{{#each settings}}{{@key}}={{this}} {{/each}}"
        out = _render(source, {"settings": {"region": "eu", "stage": "dev"}})
        assert out == "region=eu stage=dev "

    def test_empty_list_renders_nothing(self):
        assert _render("[{{#each xs}}x{{/each}}]", {"xs": []}) == "[]"

    def test_separator_with_unless_last(self):
        source = "{{#each xs}}{{this}}{{#unless @last}}, {{/unless}}{{/each}}"
        assert _render(source, {"xs": ["a", "b", "c"]}) == "a, b, c"

    def test_nested_each_uses_innermost_this(self, models_context: Context):
        source = (
            "{{#each models}}{{this.name}}({{#each this.fields}}"
            "{{this.name}}{{#unless @last}},{{/unless}}{{/each}}) {{/each}}"
        )
        assert Template(source).render(models_context) == "Todo(title,done) User(email) "

    def test_named_paths_resolve_from_root_inside_loops(self, models_context: Context):
        source = "{{#each models}}{{projectName}}/{{this.name}} {{/each}}"
        assert Template(source).render(models_context) == (
            "My Task App/Todo My Task App/User "
        )

    def test_loop_item_fields_do_not_shadow_root(self):
        context = {"name": "root", "items": [{"name": "item"}]}
        assert _render("{{#each items}}{{name}}|{{this.name}}{{/each}}", context) == "root|item"

    def test_inner_index_is_innermost_loop(self):
        context = {"rows": [["a", "b"], ["c"]]}
        source = "{{#each rows}}{{#each this}}{{@index}}{{/each}}|{{/each}}"
        assert _render(source, context) == "01|0|"

    def test_at_variable_outside_loop_is_missing(self):
        assert _error("{{@index}}", {}).kind == "MissingVariable"

    def test_this_at_root_is_the_context(self):
        assert _render("{{this.name}}", {"name": "top"}) == "top"

    def test_scalar_target_is_collection_expected(self):
        err = _error("{{#each name}}x{{/each}}", {"name": "scalar"})
        assert err.kind == "CollectionExpected"
        assert err.path == "name"

    def test_missing_target_strict_is_collection_expected(self):
        assert _error("{{#each nope}}x{{/each}}", {}).kind == "CollectionExpected"

    def test_missing_target_lenient_renders_nothing(self):
        assert _render("[{{#each nope}}x{{/each}}]", {}, RenderMode.LENIENT) == "[]"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_single_helper(self):
        assert _render("{{kebabcase name}}", {"name": "My Task App"}) == "my-task-app"

    def test_chain_applies_right_to_left(self):
        # pluralize runs first, then upper.
        assert _render("{{upper pluralize name}}", {"name": "category"}) == "CATEGORIES"

    def test_json_helper_on_list(self):
        assert _render("{{json xs}}", {"xs": ["a", 1, True]}) == '["a", 1, true]'

    def test_json_helper_quotes_strings(self):
        assert _render("{{json s}}", {"s": 'say "hi"'}) == '"say \\"hi\\""'

    def test_length_helper(self):
        assert _render("{{length xs}}", {"xs": ["a", "b"]}) == "2"

    def test_type_mismatch_on_wrong_input(self):
        err = _error("{{upper n}}", {"n": 5})
        assert err.kind == "TypeMismatch"
        assert err.path == "n"

    def test_bool_is_not_accepted_by_string_helpers(self):
        assert _error("{{kebabcase b}}", {"b": True}).kind == "TypeMismatch"

    def test_arity_error(self):
        registry = DEFAULT_HELPERS.extend(Helper("join", lambda a, b: a + b, arity=2))
        ast = parse("{{join name}}", registry)
        with pytest.raises(RenderError) as exc_info:
            Renderer(registry).render(ast, {"name": "x"})
        assert exc_info.value.kind == "HelperArityError"

    def test_helper_missing_from_render_registry(self):
        registry = DEFAULT_HELPERS.extend(Helper("shout", str.upper))
        ast = parse("{{shout name}}", registry)
        with pytest.raises(RenderError) as exc_info:
            Renderer(DEFAULT_HELPERS).render(ast, {"name": "x"})
        assert exc_info.value.kind == "MissingVariable"

    def test_helper_returning_unsupported_value(self):
        registry = DEFAULT_HELPERS.extend(Helper("boxed", lambda s: object()))
        ast = parse("{{boxed name}}", registry)
        with pytest.raises(RenderError) as exc_info:
            Renderer(registry).render(ast, {"name": "x"})
        assert exc_info.value.kind == "TypeMismatch"


# ---------------------------------------------------------------------------
# Determinism & Template
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_same_inputs_same_output(self, models_context: Context):
        template = Template(
            "{{#each models}}{{pascalcase this.name}}:{{@index}}\n{{/each}}{{json settings}}"
        )
        first = template.render(models_context)
        for _ in range(5):
            assert template.render(models_context) == first

    def test_context_is_not_mutated(self, models_context: Context):
        before = models_context.to_dict()
        Template("{{#each models}}{{this.name}}{{/each}}").render(models_context)
        assert models_context.to_dict() == before

    def test_template_caches_ast(self):
        template = Template("{{name}}")
        assert template.ast is template.ast

    def test_renderer_accepts_plain_mapping(self):
        assert Renderer().render(parse("{{a}}"), {"a": "b"}) == "b"
