"""Report command-line usage errors as JSON envelopes, like every other rsheet failure."""

from __future__ import annotations

import click

from rsheet.contracts.common import ERR_USAGE


def usage_error_command(error: click.exceptions.UsageError) -> str:
    """Name of the subcommand a usage error belongs to, or "unknown".

    Errors raised while parsing the top-level group (an unknown command,
    a bad global flag) have no subcommand.
    """
    ctx = error.ctx
    if ctx is None or ctx.parent is None:
        return "unknown"
    return ctx.info_name or "unknown"


def usage_error_message(group: click.Group, error: click.exceptions.UsageError) -> str:
    message = error.format_message()
    if usage_error_command(error) == "unknown" and group.commands:
        message += f" (commands: {', '.join(sorted(group.commands))})"
    return message


def patch_typer_errors() -> None:
    """Patch TyperGroup.invoke so usage errors print an envelope and exit 10."""
    import typer.core

    _orig_invoke = typer.core.TyperGroup.invoke

    def _json_invoke(self, ctx):
        try:
            return _orig_invoke(self, ctx)
        except click.exceptions.UsageError as e:
            from rsheet.engine.dispatcher import error_envelope, exit_code_for, print_response

            env = error_envelope(usage_error_command(e), ERR_USAGE, usage_error_message(self, e))
            print_response(env)
            raise SystemExit(exit_code_for(env)) from e

    typer.core.TyperGroup.invoke = _json_invoke
