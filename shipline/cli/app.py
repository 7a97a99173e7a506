from __future__ import annotations

import typer

from shipline import __version__
from shipline.cli.commands.cache_cmd import cache_key_cmd
from shipline.cli.commands.plan_cmd import plan
from shipline.cli.commands.run_cmd import run
from shipline.cli.commands.trigger_cmd import trigger

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(run)
app.command()(trigger)
app.command()(plan)
app.command("cache-key")(cache_key_cmd)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Build and publish a release for every push to the release branch."""


def main() -> None:
    app()
