from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from appcast import __version__
from appcast.cli.context import build_context
from appcast.core.result import Err
from appcast.output.errors import print_release_error, release_error_exit_code
from appcast.services.archive import Archiver, DittoArchiver, ZipArchiver
from appcast.services.model import ReleaseDescriptor
from appcast.services.release import (
    NIGHTLY,
    STABLE,
    ReleaseMode,
    UploaderFactory,
    generate,
    prepare_release,
)
from appcast.services.upload import GitHubUploader

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="GitHub Appcast Generator: archive, sign and publish a Sparkle release.",
)


def _now() -> datetime:
    return datetime.now().astimezone()


def _github_uploader_for(mode: ReleaseMode, work_dir: Path) -> UploaderFactory:
    def factory(descriptor: ReleaseDescriptor) -> GitHubUploader:
        return GitHubUploader(
            owner=descriptor.owner,
            repo=descriptor.repo,
            tag=mode.release_tag(descriptor.version),
            prerelease=mode.prerelease,
            cwd=work_dir,
        )

    return factory


@app.command()
def main(
    nightly: bool = typer.Option(False, "--nightly", "-n", help="Generate a nightly version"),
    ditto: bool = typer.Option(
        False, "--ditto", help="Compress with macOS ditto instead of the built-in zip writer"
    ),
    config: Path | None = typer.Option(
        None, "--config", help="Release config (default: ./appcast.toml if present)"
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Archive the app bundle, upload it to GitHub and write its appcast."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    ctx = build_context(config)
    mode = NIGHTLY if nightly else STABLE
    if nightly:
        ctx.console.print("Nightly mode")

    prepared = prepare_release(ctx.config, mode, work_dir=ctx.work_dir)
    if isinstance(prepared, Err):
        print_release_error(prepared.error, ctx.console)
        raise typer.Exit(code=release_error_exit_code(prepared.error))
    descriptor, paths = prepared.value

    archiver: Archiver = DittoArchiver(cwd=ctx.work_dir) if ditto else ZipArchiver()

    ctx.console.header("Generating...")
    result = generate(
        descriptor,
        mode,
        paths,
        archiver=archiver,
        uploader_for=_github_uploader_for(mode, ctx.work_dir),
        console=ctx.console,
        now=_now(),
    )
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        raise typer.Exit(code=release_error_exit_code(result.error))

    ctx.console.print("Done!")


def run() -> None:
    app()
