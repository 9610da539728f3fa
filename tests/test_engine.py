"""
Tests for the render façade: rendering, caching and includes.
"""

import os

import pytest

import smarty
from smarty.cache import LRUTemplateCache
from smarty.compiler import Renderer
from smarty.engine import RenderResult, SmartyEngine, get_default_engine
from smarty.faults import ConfigurationError, RenderError, ResolutionError, TemplateSyntaxError
from smarty.loader import DictLoader


def count_compiles(engine):
    calls = []
    original = engine.compile

    def counting(template, options=None):
        calls.append(template)
        return original(template, options)

    engine.compile = counting
    return calls


class TestRender:
    def test_render_text(self, engine):
        assert engine.render("<%= a %>-<%- b %>", {"a": "<", "b": "<"}) == "&lt;-<"

    def test_render_without_data(self, engine):
        assert engine.render("plain") == "plain"

    def test_deterministic(self, engine):
        text = "<% for i in range(n): %><%= i %>,<% end %>"
        assert engine.render(text, {"n": 3}) == engine.render(text, {"n": 3}) == "0,1,2,"

    def test_options_lifted_from_data(self, engine):
        assert engine.render("<$= x $>", {"x": 1, "delimiter": "$"}) == "1"

    def test_explicit_options_skip_lifting(self, engine):
        result = engine.render("<$= x $>", {"x": 1, "delimiter": "$"}, {})
        assert result == "<$= x $>"

    def test_cache_is_not_lifted_by_render(self, engine, tmp_path):
        path = tmp_path / "page.html"
        path.write_text("page")
        engine.render(None, {"filename": str(path), "cache": True})
        assert len(engine.cache) == 0

    def test_render_filename(self, engine, templates_dir):
        filename = str(templates_dir / "views" / "header.html")
        assert engine.render(None, {"title": "T"}, {"filename": filename}) == "<header>T</header>"

    def test_nothing_to_render(self, engine):
        with pytest.raises(ConfigurationError, match="no template text or filename"):
            engine.render(None, {}, {})

    def test_cache_requires_filename(self, engine):
        with pytest.raises(ConfigurationError, match="cache option requires a filename"):
            engine.render("x", {}, {"cache": True})

    def test_client_mode_cannot_render(self, engine):
        with pytest.raises(ConfigurationError):
            engine.render("x", {}, {"client": True})

    def test_compile_returns_renderer(self, engine):
        renderer = engine.compile("<%= x %>")
        assert isinstance(renderer, Renderer)
        assert renderer({"x": 1}) == "1"

    def test_scope_is_deprecated_alias(self, engine):
        with pytest.warns(DeprecationWarning, match="scope"):
            assert engine.render("<%= this %>", {"scope": "s"}) == "s"


class TestCache:
    def test_compiles_once_per_filename(self, engine, templates_dir):
        calls = count_compiles(engine)
        filename = str(templates_dir / "views" / "header.html")

        first = engine.render_file(filename, {"title": "a"}, {"cache": True})
        second = engine.render_file(filename, {"title": "b"}, {"cache": True})

        assert (first.output, second.output) == ("<header>a</header>", "<header>b</header>")
        assert len(calls) == 1
        assert engine.cache.hits == 1

    def test_cache_option_lifted_by_render_file(self, engine, templates_dir):
        calls = count_compiles(engine)
        filename = str(templates_dir / "views" / "header.html")
        for _ in range(3):
            engine.render_file(filename, {"title": "x", "cache": True})
        assert len(calls) == 1

    def test_without_cache_compiles_every_time(self, engine, templates_dir):
        calls = count_compiles(engine)
        filename = str(templates_dir / "views" / "header.html")
        engine.render_file(filename, {"title": "x"})
        engine.render_file(filename, {"title": "x"})
        assert len(calls) == 2

    def test_cache_key_is_absolute_filename(self, engine, templates_dir):
        filename = templates_dir / "views" / "header.html"
        engine.render_file(str(filename), {"title": "x", "cache": True})
        assert os.path.abspath(str(filename)) in engine.cache

    def test_clear_cache(self, engine, templates_dir):
        calls = count_compiles(engine)
        filename = str(templates_dir / "views" / "header.html")
        engine.render_file(filename, {"title": "x", "cache": True})
        engine.clear_cache()
        engine.render_file(filename, {"title": "x", "cache": True})
        assert len(calls) == 2

    def test_injected_cache(self, templates_dir):
        cache = LRUTemplateCache(capacity=1)
        engine = SmartyEngine(cache=cache)
        views = templates_dir / "views"
        engine.render_file(str(views / "header.html"), {"title": "x", "cache": True})
        engine.render_file(str(views / "footer.html"), {"cache": True})
        assert len(cache) == 1
        assert str(views / "footer.html") in cache


class TestIncludes:
    def test_runtime_include(self, engine, templates_dir):
        result = engine.render_file(str(templates_dir / "views" / "index.html"), {"title": "Home"})
        assert result.unwrap() == (
            "<header>Home</header><main>Home</main><footer>local</footer>"
        )

    def test_include_with_extra_data(self, engine, templates_dir):
        views = templates_dir / "views"
        (views / "card.html").write_text("<%- include('partials/item', {'name': 'given'}) %>")
        assert engine.render_file(str(views / "card.html"), {"name": "x"}).output == "<i>given</i>"

    def test_include_sees_parent_data(self, engine, templates_dir):
        views = templates_dir / "views"
        (views / "card.html").write_text("<%- include('partials/item') %>")
        assert engine.render_file(str(views / "card.html"), {"name": "&"}).output == "<i>&amp;</i>"

    def test_same_directory_wins_over_views(self, engine, templates_dir):
        views = templates_dir / "views"
        shared = str(templates_dir / "shared")
        (views / "page.html").write_text("<%- include('footer') %>")
        result = engine.render_file(str(views / "page.html"), {}, {"views": [shared]})
        assert result.output == "<footer>local</footer>"

    def test_falls_back_to_views(self, engine, templates_dir):
        views = templates_dir / "views"
        (views / "page.html").write_text("<%- include('only_shared') %>")
        result = engine.render_file(
            str(views / "page.html"),
            {"name": "n"},
            {"views": [str(templates_dir / "shared")]},
        )
        assert result.output == "<p>shared n</p>"

    def test_absolute_include_uses_root(self, engine, templates_dir):
        views = templates_dir / "views"
        (views / "abs.html").write_text("<%- include('/shared/footer') %>")
        result = engine.render_file(str(views / "abs.html"), {}, {"root": str(templates_dir)})
        assert result.output == "<footer>shared</footer>"

    def test_legacy_include(self, engine, templates_dir):
        views = templates_dir / "views"
        assert engine.render_file(str(views / "legacy.html"), {"name": "n"}).output == (
            "<div><i>n</i></div>"
        )

    def test_legacy_include_dependencies(self, engine, templates_dir):
        views = templates_dir / "views"
        renderer = engine.compile(
            (views / "legacy.html").read_text(),
            {"filename": str(views / "legacy.html")},
        )
        assert renderer.dependencies == (str(views / "partials" / "item.html"),)

    def test_legacy_include_error_names_included_file(self, engine, templates_dir):
        views = templates_dir / "views"
        (views / "outer.html").write_text("ok\n<% include inner %>")
        (views / "inner.html").write_text("\n\n<%= nope %>")
        result = engine.render_file(str(views / "outer.html"))
        assert isinstance(result.error, RenderError)
        assert result.error.filename == str(views / "inner.html")
        assert result.error.line == 3

    def test_missing_include(self, engine, templates_dir):
        result = engine.render_file(str(templates_dir / "views" / "broken.html"))
        assert not result.ok
        assert isinstance(result.error, ResolutionError)
        assert "Could not find include file 'missing'" in str(result.error)

    def test_missing_legacy_include_raises(self, engine):
        with pytest.raises(ResolutionError):
            engine.compile("<% include nowhere %>", {"views": ["/nonexistent"]})

    def test_resolve_include(self, engine):
        expected = os.path.abspath("/views/partials/item.html")
        assert engine.resolve_include("partials/item", "/views/index.html") == expected
        assert engine.resolve_include("item.txt", "/views", True) == os.path.abspath("/views/item.txt")


class TestDictLoader:
    def test_includes_from_memory(self):
        loader = DictLoader({
            "/app/index.html": "<%- include('nav') %>|<%= title %>",
            "/app/nav.html": "\ufeffnav",
        })
        engine = SmartyEngine(file_loader=loader)
        assert engine.render_file("/app/index.html", {"title": "t"}).output == "nav|t"

    def test_nested_legacy_include_dependencies(self):
        engine = SmartyEngine(file_loader=DictLoader({
            "/app/a.html": "a<% include b %>",
            "/app/b.html": "b<% include c %>",
            "/app/c.html": "c",
        }))
        renderer = engine.compile("a<% include b %>", {"filename": "/app/a.html"})
        assert renderer.dependencies == ("/app/b.html", "/app/c.html")
        assert renderer() == "abc"

    def test_legacy_include_cycle(self):
        engine = SmartyEngine(file_loader=DictLoader({
            "/app/a.html": "<% include b %>",
            "/app/b.html": "<% include a %>",
        }))
        result = engine.render_file("/app/a.html")
        assert isinstance(result.error, TemplateSyntaxError)
        assert "Include cycle detected: /app/a.html -> /app/b.html -> /app/a.html" in str(
            result.error
        )

    def test_legacy_self_include(self):
        engine = SmartyEngine(file_loader=DictLoader({"/app/a.html": "x<% include a %>"}))
        with pytest.raises(TemplateSyntaxError, match="Include cycle"):
            engine.compile("x<% include a %>", {"filename": "/app/a.html"})

    def test_repeated_legacy_include_is_not_a_cycle(self):
        engine = SmartyEngine(file_loader=DictLoader({
            "/app/a.html": "<% include b %><% include b %>",
            "/app/b.html": "b",
        }))
        assert engine.render_file("/app/a.html").output == "bb"

    def test_legacy_include_with_multiline_string(self):
        engine = SmartyEngine(file_loader=DictLoader({
            "/app/a.html": "<% if True: %><% include b %><% end %>",
            "/app/b.html": '<% s = """p\nq""" %><%- s %>',
        }))
        assert engine.render_file("/app/a.html").output == "p\nq"
        result = engine.render_file("/app/a.html", {}, {"compileDebug": False})
        assert result.output == "p\nq"


class TestRenderFile:
    def test_returns_result(self, engine, templates_dir):
        result = engine.render_file(str(templates_dir / "views" / "header.html"), {"title": "x"})
        assert isinstance(result, RenderResult)
        assert result.ok
        assert result.unwrap() == "<header>x</header>"

    def test_callback_success(self, engine, templates_dir):
        received = []
        engine.render_file(
            str(templates_dir / "views" / "header.html"),
            {"title": "x"},
            callback=lambda err, out: received.append((err, out)),
        )
        assert received == [(None, "<header>x</header>")]

    def test_callback_failure(self, engine, templates_dir):
        received = []
        engine.render_file(
            str(templates_dir / "views" / "nope.html"),
            callback=lambda err, out: received.append((err, out)),
        )
        ((err, out),) = received
        assert isinstance(err, ResolutionError)
        assert out is None

    def test_never_raises(self, engine, tmp_path):
        path = tmp_path / "bad.html"
        path.write_text("<%= unterminated")
        result = engine.render_file(str(path))
        assert result.error is not None
        with pytest.raises(Exception):
            result.unwrap()

    def test_failure_is_logged(self, engine, tmp_path, caplog):
        with caplog.at_level("WARNING", logger="smarty.engine"):
            engine.render_file(str(tmp_path / "absent.html"))
        assert "Failed to render" in caplog.text

    @pytest.mark.asyncio
    async def test_async(self, engine, templates_dir):
        result = await engine.render_file_async(
            str(templates_dir / "views" / "header.html"), {"title": "async"}
        )
        assert result.output == "<header>async</header>"

    @pytest.mark.asyncio
    async def test_async_failure(self, engine, tmp_path):
        result = await engine.render_file_async(str(tmp_path / "absent.html"))
        assert isinstance(result.error, ResolutionError)


class TestModuleFunctions:
    def test_render(self):
        assert smarty.render("<%= 1 + 1 %>") == "2"

    def test_compile(self):
        assert smarty.compile("<%= x %>")({"x": "y"}) == "y"

    def test_render_file_uses_default_cache(self, templates_dir):
        filename = str(templates_dir / "views" / "header.html")
        smarty.render_file(filename, {"title": "x", "cache": True})
        assert os.path.abspath(filename) in get_default_engine().cache
        smarty.clear_cache()
        assert os.path.abspath(filename) not in get_default_engine().cache

    def test_set_default_engine(self):
        engine = SmartyEngine(file_loader=DictLoader({"/t.html": "mem"}))
        smarty.set_default_engine(engine)
        assert smarty.render_file("/t.html").output == "mem"

    def test_resolve_include(self):
        assert smarty.resolve_include("a", "/x/b.html") == os.path.abspath("/x/a.html")

    @pytest.mark.asyncio
    async def test_render_file_async(self, templates_dir):
        result = await smarty.render_file_async(str(templates_dir / "shared" / "footer.html"))
        assert result.output == "<footer>shared</footer>"
