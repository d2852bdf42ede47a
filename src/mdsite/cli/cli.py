"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdsite.cli.commands import build_cmd, main_callback, routes_cmd


app = typer.Typer(name="mdsite", no_args_is_help=True, help="Static site builder for Markdown blogs")

app.callback()(main_callback)
app.command(name="build")(build_cmd)
app.command(name="routes")(routes_cmd)
