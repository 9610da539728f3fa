"""
Shared test fixtures for the Smarty test suite.
"""

import pytest

from smarty.engine import SmartyEngine, set_default_engine
from smarty.options import reset_deprecation_warnings


@pytest.fixture(autouse=True)
def fresh_state():
    """Isolate the process-wide engine and one-time warnings per test."""
    set_default_engine(None)
    reset_deprecation_warnings()
    yield
    set_default_engine(None)


@pytest.fixture
def engine():
    """Engine with its own filesystem loader and empty cache."""
    return SmartyEngine()


@pytest.fixture
def templates_dir(tmp_path):
    """
    Template tree::

        views/
          index.html        includes "header" and "footer"
          header.html
          footer.html       local version, shadows shared/footer.html
          legacy.html       preprocessor-style include
          broken.html       includes a missing file
          partials/item.html
        shared/
          footer.html
          only_shared.html
    """
    views = tmp_path / "views"
    shared = tmp_path / "shared"
    (views / "partials").mkdir(parents=True)
    shared.mkdir()

    (views / "index.html").write_text(
        "<%- include('header') %><main><%= title %></main><%- include('footer') %>"
    )
    (views / "header.html").write_text("<header><%= title %></header>")
    (views / "footer.html").write_text("<footer>local</footer>")
    (views / "legacy.html").write_text("<div><% include partials/item %></div>")
    (views / "partials" / "item.html").write_text("<i><%= name %></i>")
    (views / "broken.html").write_text("before <%- include('missing') %> after")

    (shared / "footer.html").write_text("<footer>shared</footer>")
    (shared / "only_shared.html").write_text("<p>shared <%= name %></p>")

    return tmp_path

