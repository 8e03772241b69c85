from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from appcast.core.config import CONFIG_FILENAME, Config, load_config, load_config_or_default
from appcast.core.errors import ErrorCode
from appcast.core.result import Err
from appcast.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    work_dir: Path
    config: Config
    console: ConsoleProtocol


def build_context(config_path: Path | None = None) -> CLIContext:
    """Load config for the current directory.

    An explicit --config must exist; the implicit appcast.toml is optional.
    """
    work_dir = Path.cwd()
    if config_path is not None:
        config_result = load_config(config_path)
    else:
        config_result = load_config_or_default(work_dir / CONFIG_FILENAME)

    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(work_dir=work_dir, config=config_result.value, console=RichConsole())
