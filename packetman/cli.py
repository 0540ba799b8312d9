import asyncio
import json
from typing import Optional, Tuple

import click

from packetman.app import PacketmanApp
from packetman.commands import SendRequest, Workbench
from packetman.errors import WorkspaceError
from packetman.logging_config import setup_logging
from packetman.models import METHODS, RequestSpec, ResponseResult
from packetman.storage.config import load_settings
from packetman.storage.kv import KeyValueStore
from packetman.storage.workspace import WorkspaceStore


def _build_workbench(ctx: click.Context, timeout: Optional[float] = None) -> Workbench:
    settings = load_settings()
    if timeout is not None:
        settings.timeout = timeout
    level = "DEBUG" if ctx.obj.get("debug") else settings.log_level
    setup_logging(level=level, enable_console=ctx.obj.get("debug", False))
    return Workbench(WorkspaceStore(KeyValueStore()), settings)


def _emit(ctx: click.Context, result: ResponseResult) -> None:
    click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    if not result.success:
        ctx.exit(1)


def _parse_header_options(values: Tuple[str, ...]) -> dict:
    headers = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep:
            raise click.BadParameter(
                f"expected 'Name: Value', got {value!r}", param_hint="--header"
            )
        headers[name.strip()] = content.strip()
    return headers


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, debug: bool) -> None:
    """Run the PacketMan TUI application."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    if ctx.invoked_subcommand is None:
        app = PacketmanApp(_build_workbench(ctx))
        app.run()


@main.command()
@click.argument("url")
@click.option(
    "-X",
    "--method",
    default="GET",
    type=click.Choice(METHODS, case_sensitive=False),
    help="HTTP method.",
)
@click.option("-H", "--header", multiple=True, help="Header in 'Name: Value' format.")
@click.option("-d", "--data", help="Request body.")
@click.option("-t", "--timeout", type=float, help="Timeout in seconds.")
@click.pass_context
def send(
    ctx: click.Context,
    url: str,
    method: str,
    header: Tuple[str, ...],
    data: Optional[str],
    timeout: Optional[float],
) -> None:
    """Send a request and print the normalized response as JSON."""
    workbench = _build_workbench(ctx, timeout)
    spec = RequestSpec(
        method=method.upper(),
        url=url,
        headers=_parse_header_options(header),
        body=data,
    )
    _emit(ctx, asyncio.run(workbench.handle(SendRequest(spec))))


@main.command()
@click.pass_context
def collections(ctx: click.Context) -> None:
    """List collections and their saved requests."""
    store = _build_workbench(ctx).store
    found = store.list_collections()
    if not found:
        click.echo("No collections yet.")
        return
    for collection in found:
        saved = store.list_requests(collection.id)
        click.echo(f"{collection.id}  {collection.name} ({len(saved)} request(s))")
        for item in saved:
            click.echo(f"    {item.id}  {item.spec.method:<7} {item.name}  {item.spec.url}")


@main.command()
@click.argument("request_id", type=int)
@click.pass_context
def run(ctx: click.Context, request_id: int) -> None:
    """Send a saved request by id."""
    workbench = _build_workbench(ctx)
    try:
        saved = workbench.store.get_request(request_id)
    except WorkspaceError as exc:
        raise click.ClickException(str(exc)) from exc
    _emit(ctx, asyncio.run(workbench.handle(SendRequest(saved.spec))))


if __name__ == "__main__":
    main()
