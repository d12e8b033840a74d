"""
Tests for template rendering: interpolation, nested paths, loops and the
errors raised for values that cannot be rendered.
"""

import pytest

from netshell.errors import ErrorCode, TemplateError
from netshell.template.engine import TemplateEngine
from netshell.variables.value import Value


@pytest.fixture
def engine():
    return TemplateEngine()


def test_text_without_tags_is_unchanged(engine):
    source = "echo 'no tags here' && ls -la | grep '{ not a tag }'\n"
    assert engine.render(source, {}) == source


def test_interpolation(engine):
    assert engine.render("Hello, {{ name }}!", {"name": "World"}) == "Hello, World!"


def test_interpolation_without_spaces(engine):
    assert engine.render("{{name}}", {"name": "x"}) == "x"


def test_nested_path(engine):
    variables = {"user": {"name": "Alice", "profile": {"city": "Beijing"}}}
    assert engine.render("{{ user.name }}-{{ user.profile.city }}", variables) == "Alice-Beijing"


def test_array_index_path(engine):
    variables = {"hosts": [{"ip": "10.0.0.1"}, {"ip": "10.0.0.2"}]}
    assert engine.render("{{ hosts.1.ip }}", variables) == "10.0.0.2"


def test_loop(engine):
    assert engine.render("{% for i in items %}{{ i }}{% endfor %}", {"items": ["a", "b", "c"]}) == "abc"


def test_loop_over_empty_array_renders_nothing(engine):
    assert engine.render("[{% for i in items %}{{ i }}{% endfor %}]", {"items": []}) == "[]"


def test_nested_loops_and_shadowing(engine):
    variables = {
        "item": "outer",
        "groups": [{"name": "g1", "members": ["a", "b"]}, {"name": "g2", "members": ["c"]}],
    }
    source = (
        "{% for g in groups %}{{ g.name }}:"
        "{% for item in g.members %}{{ item }}{% endfor %};"
        "{% endfor %}{{ item }}"
    )
    assert engine.render(source, variables) == "g1:ab;g2:c;outer"


def test_loop_with_split(engine):
    source = '{% for h in hosts split "," %}ping {{ h }}\n{% endfor %}'
    assert engine.render(source, {"hosts": "a,b"}) == "ping a\nping b\n"


def test_scalar_stringification(engine):
    variables = {"n": None, "t": True, "f": False, "i": 42, "x": 2.5, "whole": 3.0}
    assert engine.render("{{n}}|{{t}}|{{f}}|{{i}}|{{x}}|{{whole}}", variables) == "|true|false|42|2.5|3"


def test_accepts_value_snapshots(engine):
    snapshot = {"name": Value.string("snap")}
    assert engine.render("{{ name }}", snapshot) == "snap"


def test_custom_delimiters():
    engine = TemplateEngine(var_open="<<", var_close=">>")
    assert engine.render("echo <<name>> {{ name }}", {"name": "x"}) == "echo x {{ name }}"


def test_go_template_and_strftime_syntax_pass_through(engine):
    rendered = engine.render("docker ps --format '{{.Names}}' # {{ app }}", {"app": "web"})
    assert rendered == "docker ps --format '{{.Names}}' # web"
    assert engine.render("date '+{%Y}'", {}) == "date '+{%Y}'"


def test_preserve_loop_newlines_false_trims_blank_lines():
    engine = TemplateEngine(preserve_loop_newlines=False)
    source = "{% for i in items %}\n  echo {{ i }}\n{% endfor %}"
    assert engine.render(source, {"items": ["a", "b"]}) == "  echo a\n  echo b"


class TestRenderErrors:
    def test_missing_variable(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render("{{ missing }}", {})
        assert exc_info.value.code is ErrorCode.TEMPLATE_UNRESOLVED
        assert "Variable 'missing' not found" in exc_info.value.message

    def test_missing_nested_property(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render("{{ user.email }}", {"user": {"name": "Alice"}})
        assert exc_info.value.code is ErrorCode.TEMPLATE_UNRESOLVED
        assert "Property 'email' not found in 'user'" in exc_info.value.message

    def test_composite_interpolation(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render("{{ items }}", {"items": [1, 2]})
        assert exc_info.value.code is ErrorCode.TEMPLATE_TYPE

    def test_loop_over_non_array(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render("{% for i in name %}{{ i }}{% endfor %}", {"name": "abc"})
        assert exc_info.value.code is ErrorCode.TEMPLATE_TYPE

    def test_loop_over_missing_variable(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render("{% for i in nothing %}{{ i }}{% endfor %}", {})
        assert exc_info.value.code is ErrorCode.TEMPLATE_UNRESOLVED

    def test_split_on_non_string(self, engine):
        with pytest.raises(TemplateError) as exc_info:
            engine.render('{% for i in items split "," %}{{ i }}{% endfor %}', {"items": ["a"]})
        assert exc_info.value.code is ErrorCode.TEMPLATE_TYPE

    def test_loop_variable_does_not_leak(self, engine):
        with pytest.raises(TemplateError):
            engine.render("{% for i in items %}{% endfor %}{{ i }}", {"items": ["a"]})


def test_parse_is_cached(engine):
    first = engine.parse("echo {{ a }}")
    second = engine.parse("echo {{ a }}")
    assert first is second
    assert first.render({"a": 1}) == "echo 1"
    assert first.render({"a": 2}) == "echo 2"


def test_render_mapping(engine):
    rendered = engine.render_mapping({"url": "http://{{ host }}:{{ port }}"}, {"host": "h", "port": 80})
    assert rendered == {"url": "http://h:80"}
