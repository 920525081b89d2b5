"""Perch CLI - Main Entry Point.

Commands:
    routes   - List the route table of an application
    version  - Show version information
"""

import importlib
import json
import logging
import os
import sys

import click

from . import __cli_name__
from .. import __version__
from ..app import Application
from ..config import configure_logging
from ..faults.core import Fault


def load_application(path: str) -> Application:
    """
    Import ``module:attribute``. The attribute is an Application or a
    zero-argument callable returning one.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got {path!r}", param_hint="APP_PATH")

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"cannot import {module_name!r}: {exc}", param_hint="APP_PATH") from exc

    try:
        target = getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="APP_PATH") from None

    if not isinstance(target, Application) and callable(target):
        target = target()
    if not isinstance(target, Application):
        raise click.BadParameter(f"{path!r} is not a perch Application", param_hint="APP_PATH")
    return target


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Perch - annotation-driven web routing."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@cli.command('routes')
@click.argument('app_path')
@click.option('--json', 'as_json', is_flag=True, help='Print routes as JSON')
def routes(app_path: str, as_json: bool):
    """
    List the routes registered by an application.

    Examples:
      perch routes myproject.app:app
      perch routes myproject.app:create_app --json
    """
    app = load_application(app_path)
    try:
        app.startup()
    except Fault as fault:
        click.echo(click.style(f"✗ {fault}", fg="red"), err=True)
        sys.exit(1)

    listing = app.router.get_routes()
    if as_json:
        click.echo(json.dumps(listing, indent=2))
        return

    if not listing:
        click.echo(click.style("No routes registered", fg="yellow"))
        return

    width = max(len(r["pattern"]) for r in listing)
    for r in listing:
        methods = click.style("|".join(r["methods"]).ljust(8), fg="green")
        chain = " > ".join(r["middleware"]) or "-"
        name = r["name"] or "-"
        click.echo(f"{methods} {r['pattern'].ljust(width)}  {name}  {r['handler']}  [{chain}]")


@cli.command('version')
def version():
    """Show version information."""
    click.echo(f"{__cli_name__} {__version__}")


def main():
    """Entry point for `perch` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
