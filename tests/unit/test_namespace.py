import pytest

from tmplstack.error.exceptions import TemplateParseError
from tmplstack.templates.namespace import TemplateNamespace, build_shared_namespace
from tmplstack.templates.sources import TemplateFile


@pytest.fixture
def namespace():
    return TemplateNamespace.create(functions={"shout": lambda s: s.upper() + "!"})


def test_parse_and_lookup(namespace):
    namespace.parse("hello.txt", "Hello {{ name }}")
    assert namespace.lookup("hello.txt").render(name="you") == "Hello you"
    assert namespace.lookup("missing.txt") is None


def test_functions_are_globals_and_filters(namespace):
    namespace.parse("f.txt", '{{ shout("a") }} {{ "b"|shout }}')
    assert namespace.lookup("f.txt").render() == "A! B!"


def test_clone_is_isolated(namespace):
    namespace.parse("shared.txt", "shared")
    first = namespace.clone()
    second = namespace.clone()

    first.parse("own.txt", "first")
    second.parse("own.txt", "second")

    assert "own.txt" not in namespace
    assert first.lookup("own.txt").render() == "first"
    assert second.lookup("own.txt").render() == "second"
    assert first.lookup("shared.txt").render() == "shared"


def test_reparse_layers_blocks_last_wins(namespace):
    working = namespace.clone()
    working.parse("page.txt", "[{% block x %}one{% endblock %}|{% block y %}keep{% endblock %}]")
    working.parse("page.txt", "{% block x %}two{% endblock %}")
    template = working.parse("page.txt", "{% block x %}three+{{ super() }}{% endblock %}")
    assert template.render() == "[three+two|keep]"
    assert working.names() == ["page.txt"]


def test_layers_do_not_hide_real_dot_layers_directory(namespace):
    working = namespace.clone()
    working.parse(".layers/0/page.txt", "real")
    working.parse("page.txt", "[{% block x %}one{% endblock %}]")
    working.parse("page.txt", "{% block x %}two{% endblock %}")

    assert working.names() == [".layers/0/page.txt", "page.txt"]
    assert working.lookup(".layers/0/page.txt").render() == "real"
    assert working.lookup("page.txt").render() == "[two]"


def test_parse_error_leaves_namespace_unchanged(namespace):
    namespace.parse("ok.txt", "{% block x %}ok{% endblock %}")
    with pytest.raises(TemplateParseError) as exc_info:
        namespace.parse("ok.txt", "line one\n{{ broken( }}", origin="child.txt")
    assert exc_info.value.name == "child.txt"
    assert "child.txt:2" in str(exc_info.value)
    assert namespace.lookup("ok.txt").render() == "ok"

    with pytest.raises(TemplateParseError):
        namespace.parse("new.txt", "{% if %}")
    assert "new.txt" not in namespace


def test_build_shared_namespace_parses_roots_only(namespace):
    files = {
        "base.txt": TemplateFile.from_bytes("base.txt", b"base"),
        "child.txt": TemplateFile.from_bytes("child.txt", b'{{ extends "base.txt" }}\n{{ broken( }}'),
    }
    shared = build_shared_namespace(namespace, files)
    assert "base.txt" in shared
    assert "child.txt" not in shared
    assert "base.txt" not in namespace


def test_build_shared_namespace_fails_on_root_error(namespace):
    files = {"bad.txt": TemplateFile.from_bytes("bad.txt", b"{% for %}")}
    with pytest.raises(TemplateParseError):
        build_shared_namespace(namespace, files)
    assert namespace.names() == []


def test_custom_delimiters():
    namespace = TemplateNamespace.create(variable_start="[[", variable_end="]]", block_start="<%", block_end="%>")
    namespace.parse("d.txt", "<% if true %>[[ value ]]<% endif %> {{ literal }}")
    assert namespace.lookup("d.txt").render(value=1) == "1 {{ literal }}"
