"""Typer CLI entrypoint for intermodal envelope streams."""

from __future__ import annotations

import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from intermodal.codec import decode, decode_header, decode_json, encode, encode_json
from intermodal.config import ConfigError, IntermodalConfig, load_config
from intermodal.content import content_kind
from intermodal.errors import EnvelopeError
from intermodal.stream import BlockReader, BlockWriter, decode_stream, load_envelopes

app = typer.Typer(help="Intermodal envelope tools")
_CONSOLE = Console()
_ERR_CONSOLE = Console(stderr=True)
_LOGGING_CONFIGURED = False

_PATHS_ARGUMENT = typer.Argument(
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    help="Envelope stream files.",
)
_CONFIG_OPTION = typer.Option(
    "--config",
    exists=True,
    dir_okay=False,
    help="YAML or JSON config file.",
)
_VERBOSE_OPTION = typer.Option("--verbose", "-v", help="Enable debug logging.")


class OutputFormat(StrEnum):
    """Single-envelope renderings supported by ``convert``."""

    YAML = "yaml"
    JSON = "json"


def _configure_logging(*, verbose: bool) -> None:
    """Configure Rich-backed logging once for CLI commands."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    _LOGGING_CONFIGURED = True


def _load_config(config_file: Path | None) -> IntermodalConfig:
    """Load config or exit with a readable error.

    Args:
        config_file: Optional config path.

    Returns:
        Parsed config, or defaults when no file was given.
    """
    if config_file is None:
        return IntermodalConfig()
    try:
        return load_config(config_file)
    except ConfigError as exc:
        _ERR_CONSOLE.print(Text(str(exc), style="bold red"))
        raise typer.Exit(code=2) from exc


def _error_text(exc: EnvelopeError) -> Text:
    return Text(f"{exc.code}: {exc}", style="red")


@app.command("validate")
def validate(
    paths: Annotated[list[Path], _PATHS_ARGUMENT],
    config_file: Annotated[Path | None, _CONFIG_OPTION] = None,
    verbose: Annotated[bool, _VERBOSE_OPTION] = False,
) -> None:
    """Decode every block of every stream and report failures.

    Args:
        paths: Stream files to validate.
        config_file: Optional config path.
        verbose: Enable debug logging.
    """
    _configure_logging(verbose=verbose)
    config = _load_config(config_file)
    table = Table(title="Envelope validation")
    for column in ("source", "block", "line", "domain", "scope", "kind", "version"):
        table.add_column(column)
    table.add_column("status")
    total = 0
    failures = 0
    for path in paths:
        with BlockReader.open(path, config.stream) as reader:
            for result in decode_stream(reader):
                total += 1
                row = [path.name, str(result.block.index), str(result.block.line)]
                if result.envelope is not None:
                    manifest = result.envelope.manifest
                    table.add_row(
                        *row,
                        manifest.domain,
                        manifest.scope,
                        manifest.kind,
                        str(manifest.version),
                        Text("ok", style="green"),
                    )
                elif result.error is not None:
                    failures += 1
                    table.add_row(*row, "", "", "", "", _error_text(result.error))
    _CONSOLE.print(table)
    _CONSOLE.print(f"{total} block(s) checked, {failures} failed")
    if failures:
        raise typer.Exit(code=1)


@app.command("headers")
def headers(
    path: Annotated[Path, _PATHS_ARGUMENT],
    config_file: Annotated[Path | None, _CONFIG_OPTION] = None,
    verbose: Annotated[bool, _VERBOSE_OPTION] = False,
) -> None:
    """List the manifest of every block without validating content.

    Args:
        path: Stream file.
        config_file: Optional config path.
        verbose: Enable debug logging.
    """
    _configure_logging(verbose=verbose)
    config = _load_config(config_file)
    table = Table(title=f"Manifests in {path.name}")
    for column in ("block", "domain", "scope", "kind", "version", "origin", "ctime"):
        table.add_column(column)
    table.add_column("labels")
    failures = 0
    with BlockReader.open(path, config.stream) as reader:
        for block in reader:
            try:
                manifest = decode_header(block).manifest
            except EnvelopeError as exc:
                failures += 1
                table.add_row(str(block.index), *([""] * 6), _error_text(exc))
                continue
            wire = manifest.to_wire()
            labels = ", ".join(f"{k}={v}" for k, v in wire.get("labels", {}).items())
            table.add_row(
                str(block.index),
                manifest.domain,
                manifest.scope,
                manifest.kind,
                str(manifest.version),
                manifest.origin,
                wire["ctime"],
                Text(labels),
            )
    _CONSOLE.print(table)
    if failures:
        raise typer.Exit(code=1)


@app.command("normalize")
def normalize(
    path: Annotated[Path, _PATHS_ARGUMENT],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", dir_okay=False, help="Write to this file."),
    ] = None,
    config_file: Annotated[Path | None, _CONFIG_OPTION] = None,
    verbose: Annotated[bool, _VERBOSE_OPTION] = False,
) -> None:
    """Re-encode a stream canonically; stops at the first invalid block.

    Args:
        path: Stream file.
        output: Optional output path; stdout when omitted.
        config_file: Optional config path.
        verbose: Enable debug logging.
    """
    _configure_logging(verbose=verbose)
    config = _load_config(config_file)
    if output is not None:
        writer = BlockWriter.open(output, config)
    else:
        writer = BlockWriter(lambda chunk: typer.echo(chunk, nl=False), config)
    try:
        with writer, BlockReader.open(path, config.stream) as reader:
            for envelope in load_envelopes(reader):
                writer.write(envelope)
    except EnvelopeError as exc:
        _ERR_CONSOLE.print(Text(f"{path.name}: {exc.code}: {exc}", style="bold red"))
        raise typer.Exit(code=1) from exc
    if output is not None:
        _CONSOLE.print(f"Wrote {writer.count} envelope(s) to {output}")


@app.command("convert")
def convert(
    path: Annotated[Path, _PATHS_ARGUMENT],
    to: Annotated[
        OutputFormat, typer.Option("--to", help="Target rendering.")
    ] = OutputFormat.JSON,
    config_file: Annotated[Path | None, _CONFIG_OPTION] = None,
) -> None:
    """Convert one envelope file between YAML and JSON renderings.

    The input rendering is chosen by suffix: ``.json`` is JSON, anything
    else is a YAML block.

    Args:
        path: Single-envelope file.
        to: Target rendering.
        config_file: Optional config path.
    """
    config = _load_config(config_file)
    raw = path.read_text(encoding=config.stream.encoding, errors="surrogateescape")
    try:
        envelope = decode_json(raw) if path.suffix.lower() == ".json" else decode(raw)
    except EnvelopeError as exc:
        _ERR_CONSOLE.print(Text(f"{path.name}: {exc.code}: {exc}", style="bold red"))
        raise typer.Exit(code=1) from exc
    logging.getLogger(__name__).debug(
        "Converting %s envelope content to %s", content_kind(envelope.content), to
    )
    if to is OutputFormat.JSON:
        typer.echo(encode_json(envelope, config.render), nl=False)
    else:
        typer.echo(encode(envelope, config.render), nl=False)


def main() -> None:
    """Run the intermodal CLI."""
    app()


if __name__ == "__main__":
    main()
