"""
tanglecore CLI - order tangles of messages read from JSON or YAML files.

Commands:
    tanglecore sort     Print messages in causal order with their depth
    tanglecore heads    Print the current tips of a tangle
    tanglecore depth    Print hops to root of one message

Input files hold a list of keyed messages:

    - key: "%Ss0eF6zP7l3kVlJQSwvHhqDGYV4Y6YJXaBQSbdlfHjk=.sha256"
      content:
        type: post
        text: hello
        tangles:
          post: {root: null, previous: null}
"""

from __future__ import annotations

import json
from typing import List, Optional

import click
from pydantic import ValidationError

from tanglecore.config import get_config
from tanglecore.errors import InvalidRefError, TangleError
from tanglecore.log import configure_logging
from tanglecore.messages import KeyedMessage, load_messages
from tanglecore.refs import parse_message_ref
from tanglecore.tangle.events import TangleEventLogger
from tanglecore.tangle.sorter import TangleSorter

__all__ = ["main"]

_tangle_option = click.option(
    "--tangle", "-t", "tangle_name", default=None,
    help="Tangle name (defaults to TANGLECORE_DEFAULT_TANGLE)",
)


class TangleCommandError(click.ClickException):
    """A tangle could not be loaded or ordered."""


def _load(path: str) -> List[KeyedMessage]:
    try:
        return load_messages(path)
    except (OSError, ValueError, ValidationError) as e:
        raise TangleCommandError(f"failed to load {path}: {e}") from e


def _sorter(
    path: str,
    tangle_name: Optional[str],
    events: bool,
    tie_break: Optional[str] = None,
) -> TangleSorter:
    messages = _load(path)
    hook = TangleEventLogger(service_name="tanglecore-cli") if events else None
    try:
        return TangleSorter(messages, tangle_name, tie_break=tie_break, on_event=hook)
    except TangleError as e:
        raise TangleCommandError(str(e)) from e


@click.group()
@click.version_option(package_name="tanglecore")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None,
              help="Override TANGLECORE_LOG_LEVEL")
@click.option("--log-format", type=click.Choice(["json", "text"]), default=None,
              help="Override TANGLECORE_LOG_FORMAT")
@click.option("--events/--no-events", default=False, help="Log structured tangle events")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str], log_format: Optional[str], events: bool) -> None:
    """tanglecore - causal ordering for tangles of messages."""
    config = get_config()
    configure_logging(log_level or config.log_level, log_format or config.log_format)
    ctx.ensure_object(dict)
    ctx.obj["events"] = events


@main.command("sort")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@_tangle_option
@click.option("--tie-break", type=click.Choice(["identity", "input"]), default=None,
              help="Order of equal-depth concurrent messages")
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def sort_cmd(
    ctx: click.Context,
    path: str,
    tangle_name: Optional[str],
    tie_break: Optional[str],
    output_format: str,
) -> None:
    """Print the messages of PATH in causal order."""
    sorter = _sorter(path, tangle_name, ctx.obj.get("events", False), tie_break)
    try:
        ordered = sorter.sort()
        tips = sorter.heads()
        depths = sorter.depths()
    except TangleError as e:
        raise TangleCommandError(str(e)) from e

    if output_format == "json":
        payload = {
            "tangle": sorter.tangle,
            "root": sorter.root.ref(),
            "order": [
                {"key": m.key.ref(), "hops": depths[m.key], "text": m.content.text}
                for m in ordered
            ],
            "heads": [h.ref() for h in tips],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for position, msg in enumerate(ordered):
        click.echo(f"{position:>4}  {msg.key.ref()}  hops={depths[msg.key]}")
    click.echo(f"heads: {', '.join(h.ref() for h in tips)}")


@main.command("heads")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@_tangle_option
@click.pass_context
def heads_cmd(ctx: click.Context, path: str, tangle_name: Optional[str]) -> None:
    """Print the heads of the tangle in PATH, one per line."""
    sorter = _sorter(path, tangle_name, ctx.obj.get("events", False))
    for head in sorter.heads():
        click.echo(head.ref())


@main.command("depth")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("ref")
@_tangle_option
@click.pass_context
def depth_cmd(ctx: click.Context, path: str, ref: str, tangle_name: Optional[str]) -> None:
    """Print hops to root of message REF in the tangle in PATH."""
    try:
        key = parse_message_ref(ref)
    except InvalidRefError as e:
        raise click.BadParameter(str(e), param_hint="REF") from e

    sorter = _sorter(path, tangle_name, ctx.obj.get("events", False))
    try:
        click.echo(sorter.hops_to_root(key))
    except KeyError as e:
        raise TangleCommandError(f"{ref} is not part of tangle {sorter.tangle!r}") from e
    except TangleError as e:
        raise TangleCommandError(str(e)) from e


if __name__ == "__main__":
    main()
