"""tempinbox CLI - disposable inbox with a local countdown."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from . import conventions
from .config import config_path, load_config, save_config
from .inbox.catalog import DomainCatalog
from .inbox.client import MailTmClient, MemoryInboxClient
from .inbox.formatter import (
    countdown_badge,
    format_relative,
    header_title,
    message_list_title,
    sender_label,
    subject_label,
)
from .inbox.models import InboxSnapshot, MessageView, SessionStatus
from .inbox.notifications import MemoryNotifier
from .inbox.session import InboxSessionController
from .schema import TempInboxConfig

logger = logging.getLogger(__name__)


class _EpilogGroup(click.Group):
    """Click group that preserves epilog formatting."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if self.epilog:
            formatter.write("\n")
            for line in self.epilog.splitlines():
                formatter.write(f"{line}\n")


EPILOG = """\
Quick-start examples:

  tempinbox watch        Create an inbox and watch it in the terminal
  tempinbox serve        Serve the inbox over HTTP
  tempinbox domains      List the backend's email domains
  tempinbox config       Show the effective configuration"""


@click.group(
    cls=_EpilogGroup,
    epilog=EPILOG,
    help="Disposable email inbox with a local expiry countdown.",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yaml (default: ~/.tempinbox/config.yaml).",
)
@click.option(
    "--simulator", is_flag=True, help="Use the in-memory backend (no network)."
)
@click.version_option(package_name="tempinbox")
@click.pass_context
def main(ctx: click.Context, config_file: Path | None, simulator: bool) -> None:
    """Disposable email inbox with a local expiry countdown."""
    config = load_config(config_file)
    if simulator:
        config.simulator_mode = True
    ctx.obj = {"config": config, "config_file": config_file}


def _make_client(config: TempInboxConfig) -> MailTmClient | MemoryInboxClient:
    if config.simulator_mode:
        return MemoryInboxClient(lifetime_seconds=config.session_lifetime_seconds)
    return MailTmClient(
        base_url=config.api_base_url, timeout=config.request_timeout_seconds
    )


# ── Server ───────────────────────────────────────────────────────


@main.command(help="Serve the inbox session over HTTP.")
@click.option("--host", default=None, help="Bind host (default from config).")
@click.option("--port", type=int, default=None, help="Bind port (default from config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP server in the foreground."""
    import uvicorn

    from . import inbox
    from .server.app import create_app
    from .server.startup import log_startup_info, setup_logging

    config: TempInboxConfig = ctx.obj["config"]
    host = host or config.server.host
    port = port or config.server.port

    setup_logging(level=config.log_level)
    server_logger = logging.getLogger("tempinbox.server")
    log_startup_info(host=host, port=port, config=config, logger=server_logger)

    inbox.initialize(config=config)
    app = create_app()

    click.echo(f"Starting tempinbox server on {host}:{port}")
    click.echo(f"  URL:       http://{host}:{port}/api/inbox/status")
    click.echo(f"  API docs:  http://{host}:{port}/api/docs")

    uvicorn.run(app, host=host, port=port, log_level="info")


# ── Terminal view ────────────────────────────────────────────────


def render_snapshot(snapshot: InboxSnapshot, notices: list[str] | None = None) -> str:
    """Plain-text rendering of the inbox panel."""
    lines = [header_title(snapshot)]
    if snapshot.catalog_error:
        lines.append(f"  {snapshot.catalog_error}")
    if snapshot.account is not None:
        lines.append(f"  Address: {snapshot.account.address}")
    badge = countdown_badge(snapshot)
    if badge and snapshot.tier is not None:
        lines.append(f"  {badge} ({snapshot.progress_percent:.0f}%, {snapshot.tier})")
    elif badge:
        lines.append(f"  {badge}")
    if snapshot.status == SessionStatus.EXPIRED:
        lines.append(f"  {conventions.EXPIRED_BANNER}")
    if snapshot.last_error:
        lines.append(f"  Error: {snapshot.last_error}")
    for notice in notices or []:
        lines.append(f"  * {notice}")

    if snapshot.account is None:
        return "\n".join(lines)

    lines.append("")
    lines.append(message_list_title(snapshot.messages))
    view = snapshot.message_view
    if view == MessageView.LOADING:
        lines.append("  Loading messages...")
    elif view == MessageView.ERROR:
        lines.append(f"  {snapshot.messages_error or 'Failed to load messages'}")
    elif view == MessageView.MALFORMED:
        lines.append("  Messages data is not in expected format")
    elif view == MessageView.EMPTY:
        lines.append("  No messages yet")
    else:
        for m in snapshot.messages:
            marker = " " if m.seen else "*"
            lines.append(
                f"  {marker} {sender_label(m)} - {subject_label(m)} "
                f"({format_relative(m.created_at)})"
            )
            if m.intro:
                lines.append(f"      {m.intro}")
    return "\n".join(lines)


async def _watch(
    config: TempInboxConfig,
    once: bool,
    copy: bool,
    keep: bool,
) -> None:
    client = _make_client(config)
    notifier = MemoryNotifier()
    controller = InboxSessionController(client, config, notifier=notifier)
    try:
        await controller.start()
        if controller.account is not None:
            await controller.refetch_messages()
            if copy:
                # The clipboard tool is a subprocess; keep it off the event loop.
                await asyncio.to_thread(
                    controller.copy_to_clipboard, controller.account.address
                )

        while True:
            notices = [n.message for n in notifier.drain()]
            click.echo(render_snapshot(controller.snapshot(), notices))
            if once:
                break
            click.echo("")
            await asyncio.sleep(config.poll_interval_seconds)
    finally:
        # Closed first so the deletion does not provision a replacement.
        await controller.close()
        if not keep and controller.account is not None:
            await controller.delete_inbox()
        await client.aclose()


@main.command(help="Create an inbox and watch its countdown and messages.")
@click.option("--once", is_flag=True, help="Print one snapshot and exit.")
@click.option("--copy", is_flag=True, help="Copy the address to the clipboard.")
@click.option(
    "--keep", is_flag=True, help="Leave the inbox on the server when exiting."
)
@click.pass_context
def watch(ctx: click.Context, once: bool, copy: bool, keep: bool) -> None:
    """Run the inbox session in the terminal until interrupted."""
    config: TempInboxConfig = ctx.obj["config"]
    config.auto_create = True
    try:
        asyncio.run(_watch(config, once=once, copy=copy, keep=keep))
    except KeyboardInterrupt:
        click.echo("Stopped.")


# ── Domains ──────────────────────────────────────────────────────


async def _load_domains(config: TempInboxConfig) -> DomainCatalog:
    client = _make_client(config)
    try:
        catalog = DomainCatalog(client)
        await catalog.load()
        return catalog
    finally:
        await client.aclose()


@main.command(help="List the backend's email domains and their eligibility.")
@click.option("--json", "as_json", is_flag=True, help="Output machine-readable JSON.")
@click.pass_context
def domains(ctx: click.Context, as_json: bool) -> None:
    config: TempInboxConfig = ctx.obj["config"]
    catalog = asyncio.run(_load_domains(config))

    if catalog.error is not None:
        click.echo(f"Error: {catalog.error.message}", err=True)
        raise SystemExit(1)

    if as_json:
        data = [
            {
                "domain": d.name,
                "is_active": d.is_active,
                "is_private": d.is_private,
                "eligible": d.is_eligible,
            }
            for d in catalog.domains
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not catalog.domains:
        click.echo("No domains returned.")
        return
    for d in catalog.domains:
        state = "eligible" if d.is_eligible else "unavailable"
        click.echo(f"  {d.name:<30} {state}")
    click.echo(f"\n{catalog.eligible_count} of {len(catalog.domains)} eligible.")


# ── Config ───────────────────────────────────────────────────────


@main.command("config", help="Show the effective configuration.")
@click.option("--init", "write", is_flag=True, help="Write it to config.yaml.")
@click.pass_context
def config_cmd(ctx: click.Context, write: bool) -> None:
    config: TempInboxConfig = ctx.obj["config"]
    path = ctx.obj["config_file"] or config_path()

    click.echo(f"Config: {path}{'' if path.exists() else ' (not found)'}")
    for key, value in config.model_dump().items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                click.echo(f"  {key}.{sub_key}: {sub_value}")
        else:
            click.echo(f"  {key}: {value}")

    if write:
        saved = save_config(config, path)
        click.echo(f"\nSaved to {saved}")
