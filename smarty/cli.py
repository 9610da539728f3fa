"""Smarty CLI - render, inspect and check templates.

Commands:
    render - Render a template file to stdout or a file
    source - Print the generated Python source of a template
    check  - Compile templates and report errors
"""

import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import click

from . import __version__
from .engine import SmartyEngine
from .faults import SmartyFault

logger = logging.getLogger("smarty.cli")

_CHECK = "✓"
_CROSS = "✗"


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)


def _build_options(
    filename: str,
    views: Tuple[str, ...],
    root: Optional[str],
    delimiter: str,
    strict: bool,
    rm_whitespace: bool,
    locals_name: str,
) -> Dict[str, Any]:
    return {
        "filename": filename,
        "views": tuple(os.path.abspath(view) for view in views),
        "root": os.path.abspath(root) if root else None,
        "delimiter": delimiter,
        "strict": strict,
        "rm_whitespace": rm_whitespace,
        "locals_name": locals_name,
    }


def template_options(func):
    """Options shared by every command that compiles a template."""
    decorators = [
        click.option("--views", multiple=True, type=click.Path(file_okay=False),
                     help="Include search root (repeatable)"),
        click.option("--root", type=click.Path(file_okay=False),
                     help="Base directory for absolute includes"),
        click.option("--delimiter", default="%", show_default=True,
                     help="Delimiter character"),
        click.option("--strict", is_flag=True, help="No implicit data bindings"),
        click.option("--rm-whitespace", is_flag=True, help="Strip whitespace of every line"),
        click.option("--locals-name", default="locals", show_default=True,
                     help="Name of the data context inside templates"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="smarty")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, verbose: bool):
    """Compile and render embedded templates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["engine"] = SmartyEngine()


@cli.command("render")
@click.argument("template", type=click.Path(exists=True, dir_okay=False))
@click.option("--data", "data_file", type=click.Path(exists=True, dir_okay=False),
              help="JSON file holding the data context")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write output to file")
@template_options
@click.pass_context
def render_cmd(ctx, template: str, data_file: Optional[str], output: Optional[str], **opts):
    """
    Render TEMPLATE with an optional JSON data context.

    Examples:
      smarty render views/index.html --data data.json
      smarty render page.html --views views --root . -o page.out.html
    """
    data: Dict[str, Any] = {}
    if data_file:
        try:
            with open(data_file, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            error(f"{_CROSS} Invalid JSON in {data_file}: {e}")
            sys.exit(1)
        if not isinstance(data, dict):
            error(f"{_CROSS} Data file must contain a JSON object")
            sys.exit(1)

    engine: SmartyEngine = ctx.obj["engine"]
    filename = os.path.abspath(template)
    logger.debug("Rendering %s with %d data key(s)", filename, len(data))
    result = engine.render_file(filename, data, _build_options(filename, **opts))
    if not result.ok:
        error(f"{_CROSS} {result.error}")
        sys.exit(1)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result.output)
        if ctx.obj["verbose"]:
            success(f"{_CHECK} Wrote {output}")
    else:
        click.echo(result.output, nl=False)


@cli.command("source")
@click.argument("template", type=click.Path(exists=True, dir_okay=False))
@click.option("--no-debug", is_flag=True, help="Omit line tracking from the generated code")
@template_options
@click.pass_context
def source_cmd(ctx, template: str, no_debug: bool, **opts):
    """Print the generated Python source of TEMPLATE."""
    engine: SmartyEngine = ctx.obj["engine"]
    filename = os.path.abspath(template)
    options = _build_options(filename, **opts)
    options.update(client=True, compile_debug=not no_debug)
    try:
        source = engine.compile(engine.read_template(filename), options)
    except SmartyFault as e:
        error(f"{_CROSS} {e}")
        sys.exit(1)
    click.echo(source, nl=False)


@cli.command("check")
@click.argument("templates", nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
@template_options
@click.pass_context
def check_cmd(ctx, templates: Tuple[str, ...], **opts):
    """Compile TEMPLATES and report syntax or compile errors."""
    engine: SmartyEngine = ctx.obj["engine"]
    failures = 0
    for template in templates:
        filename = os.path.abspath(template)
        try:
            engine.compile(engine.read_template(filename), _build_options(filename, **opts))
        except SmartyFault as e:
            failures += 1
            error(f"{_CROSS} {template}: {e}")
            continue
        success(f"{_CHECK} {template}")

    if failures:
        error(f"{failures} of {len(templates)} template(s) failed")
        sys.exit(1)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
