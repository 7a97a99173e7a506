from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from shipline.core.config import CONFIG_FILENAME, Config, load_config, load_config_or_default
from shipline.core.errors import ExitCode
from shipline.core.result import Err
from shipline.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    base_dir: Path


def build_context(config_path: Path | None = None) -> CLIContext:
    """Load config and set up output.

    An explicit --config must exist; otherwise ./shipline.toml is optional.
    Relative paths in the config resolve against the config's directory.
    """
    if config_path is not None:
        path = config_path.expanduser().resolve()
        result = load_config(path)
    else:
        path = (Path.cwd() / CONFIG_FILENAME).resolve()
        result = load_config_or_default(path)

    if isinstance(result, Err):
        typer.echo(f"error: {result.error.message}", err=True)
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    return CLIContext(
        config=result.value,
        console=RichConsole(),
        base_dir=path.parent,
    )
