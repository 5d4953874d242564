"""Typer CLI application — serve, run and version commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from rsheet.usage import patch_typer_errors

patch_typer_errors()

import rsheet
from rsheet.config import ServerConfig
from rsheet.contracts.common import ERR_USAGE, ConfigError, ErrorDetail, TransportError
from rsheet.engine.dispatcher import (
    EXIT_CODES,
    REPLY_FORMATS,
    error_envelope,
    exit_code_for,
    output_text,
    print_response,
    success_envelope,
)
from rsheet.observe.events import Timer

_MAIN_HELP = """\
In-memory spreadsheet served over a line protocol.

**Protocol** (one command per line, one reply per line):

- `get A1` — current value of A1, or "no value"
- `set B1 A1 * 2 + 1` — evaluate the expression and store the result in B1

Cell names are uppercase letters followed by a row number without a leading zero
(`A1`, `BC12`). Expressions use Python syntax: arithmetic, comparisons,
`and`/`or`/`not`, `x if cond else y`, and the functions abs, min, max, round,
sum, len, str, int, float.

**Exit codes:** 0=success, 10=command/usage, 30=expression, 50=io, 90=internal
"""

_SERVE_EPILOG = """\
**Examples:**

`rsheet serve`  — serve stdin/stdout with JSON replies

`rsheet serve --format text`  — human-readable replies (`A1 = 5`)

`rsheet serve --tcp --port 6991`  — accept one TCP client

`rsheet serve --config rsheet.yaml --events`  — settings from YAML, lifecycle events on stderr

Settings are read from `--config`, else `rsheet.yaml` in the working directory.
Command-line options override file settings.
"""


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(rsheet.__version__)
        raise typer.Exit()


app = typer.Typer(
    name="rsheet",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)


@app.callback(invoke_without_command=True)
def _root(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
) -> None:
    if version:
        _version_callback(True)


FormatOpt = Annotated[Optional[str], typer.Option("--format", help="Reply format: json or text")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None):
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _load_config(config: Optional[str]) -> ServerConfig:
    if config:
        return ServerConfig.load(config)
    return ServerConfig.load_from_dir(Path.cwd()) or ServerConfig()


# ---------------------------------------------------------------------------
# rsheet version
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the rsheet version.

    Example: `rsheet version`
    """
    env = success_envelope("version", {"version": rsheet.__version__})
    _emit(env)


# ---------------------------------------------------------------------------
# rsheet serve
# ---------------------------------------------------------------------------
@app.command("serve", epilog=_SERVE_EPILOG)
def serve_cmd(
    tcp: Annotated[bool, typer.Option("--tcp", help="Accept one TCP client instead of using stdin/stdout")] = False,
    host: Annotated[Optional[str], typer.Option("--host", help="Address to bind with --tcp")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind with --tcp")] = None,
    fmt: FormatOpt = None,
    events: Annotated[Optional[bool], typer.Option("--events/--no-events", help="Emit NDJSON lifecycle events on stderr")] = None,
    trace: Annotated[Optional[str], typer.Option("--trace", help="Write a JSON trace of every command to this path on exit")] = None,
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to an rsheet.yaml settings file")] = None,
):
    """Serve the spreadsheet over one connection until it closes.

    Reads one command per line and writes one reply per line. The server
    stops when the connection reaches end of input; any other transport
    failure exits with code 50.
    """
    from rsheet.engine.dispatcher import Dispatcher
    from rsheet.observe.events import EventEmitter, TraceRecorder
    from rsheet.server.loop import SheetServer
    from rsheet.server.stdio import StdioManager
    from rsheet.server.tcp import TcpManager

    try:
        cfg = _load_config(config).merged(
            transport="tcp" if tcp else None,
            host=host,
            port=port,
            reply_format=fmt,
            events=events,
            trace=trace,
        )
    except ConfigError as e:
        _emit(error_envelope("serve", e.code, str(e)))
        return

    recorder = TraceRecorder() if cfg.trace else None
    server = SheetServer(
        Dispatcher(),
        emitter=EventEmitter(enabled=cfg.events),
        trace=recorder,
    )
    if cfg.transport == "tcp":
        manager = TcpManager(cfg.host, cfg.port, fmt=cfg.reply_format)
    else:
        manager = StdioManager(fmt=cfg.reply_format)

    try:
        server.run(manager)
    except TransportError as e:
        print_response(error_envelope("serve", e.code, str(e)), stream=sys.stderr)
        raise typer.Exit(EXIT_CODES["io"])
    finally:
        if isinstance(manager, TcpManager):
            manager.close()
        if recorder is not None and cfg.trace:
            recorder.save(cfg.trace)


# ---------------------------------------------------------------------------
# rsheet run
# ---------------------------------------------------------------------------
@app.command("run")
def run_cmd(
    script: Annotated[str, typer.Option("--script", "-s", help="File with one command per line (# comments allowed)")],
    fmt: FormatOpt = None,
):
    """Replay a file of commands against a fresh spreadsheet.

    Every line is run in order, even after a failure. With the default JSON
    format the result is one envelope holding every reply; with `--format text`
    each reply is printed on its own line. The exit code comes from the first
    failing command.

    Example: `rsheet run --script commands.txt`
    """
    from rsheet.engine.script import execute_script, load_script

    fmt = fmt or "json"
    if fmt not in REPLY_FORMATS:
        _emit(error_envelope("run", ERR_USAGE, f"Unknown format: {fmt} (expected json or text)"))
        return

    try:
        lines = load_script(script)
    except FileNotFoundError:
        _emit(error_envelope("run", "ERR_IO_SCRIPT_NOT_FOUND", f"File not found: {script}"))
        return
    except (OSError, UnicodeDecodeError) as e:
        _emit(error_envelope("run", "ERR_IO_SCRIPT_UNREADABLE", str(e)))
        return

    with Timer() as t:
        result, replies = execute_script(lines)

    failed = [(i, r) for i, r in enumerate(replies, start=1) if not r.ok]

    if fmt == "text":
        for reply in replies:
            typer.echo(output_text(reply))
        raise typer.Exit(exit_code_for(failed[0][1]) if failed else 0)

    env = success_envelope("run", result, duration_ms=t.elapsed_ms)
    if failed:
        env.ok = False
        for lineno, reply in failed:
            err = reply.errors[0]
            env.errors.append(ErrorDetail(
                code=err.code,
                message=f"Command {lineno} ({lines[lineno - 1]}): {err.message}",
            ))
    _emit(env)


# ---------------------------------------------------------------------------
# Entrypoint (for `python -m rsheet`)
# ---------------------------------------------------------------------------
def main() -> None:
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        # Any unhandled exception still produces a JSON envelope.
        env = error_envelope("unknown", "ERR_INTERNAL", str(exc))
        print_response(env)
        raise SystemExit(EXIT_CODES["internal"]) from exc


if __name__ == "__main__":
    main()
