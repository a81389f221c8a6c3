"""
Chat Binder — CLI Entry Point

Usage:
    chatbinder run [--dry-run]
    chatbinder bindings [--json]
    chatbinder bind MASTER SLAVE
    chatbinder unbind SLAVE
    chatbinder check-config
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import asyncio
import json
from typing import Optional

import click

from .commands import CommandHandler
from .config.loader import BotConfig, ConfigError, load_config
from .dispatcher import Dispatcher
from .logging_config import setup_logging
from .mirror.membership import MembershipMirror
from .persistence.bindings import BindingStore
from .persistence.kv_file import StoreLoadError, StoreWriteError
from .transport.base import MembershipActions
from .transport.mock import MockTransport
from .transport.telegram import TelegramTransport

# Initialize logging
setup_logging()

# Room ids are negative for groups; let them through as arguments
_NEGATIVE_ARGS = {"ignore_unknown_options": True}


def _membership_actions(telegram: TelegramTransport, dry_run: bool) -> MembershipActions:
    """Transport the mirror acts through; a dry run still reads real standings."""
    if dry_run:
        return MockTransport(standings=telegram)
    return telegram


def _open_store(config: BotConfig) -> BindingStore:
    """Open the configured store or exit with a message."""
    if config.missing(need_token=False):
        click.secho("❌ No store path: set DB or pass --db", fg="red")
        raise SystemExit(1)
    try:
        return BindingStore.open(config.db_path)
    except StoreLoadError as e:
        click.secho(f"❌ Cannot load store: {e}", fg="red")
        raise SystemExit(1)


@click.group()
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Path to bindings store (overrides DB)")
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[str]) -> None:
    """Chat Binder — Keep slave chat membership in sync with a master chat."""
    ctx.ensure_object(dict)
    try:
        config = load_config()
    except ConfigError as e:
        click.secho(f"❌ Invalid configuration: {e}", fg="red")
        raise SystemExit(1)
    if db_path:
        config.db_path = Path(db_path)
    ctx.obj["config"] = config


@cli.command()
@click.option("--dry-run", is_flag=True, help="Query standings for real but only log kick, unban and promote")
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Start the bot and mirror membership until interrupted."""
    config: BotConfig = ctx.obj["config"]

    missing = config.missing()
    if missing:
        click.secho(f"❌ Missing configuration: {', '.join(missing)}", fg="red")
        raise SystemExit(1)

    store = _open_store(config)
    click.echo(f"Store loaded from {config.db_path}")

    async def _main() -> None:
        telegram = TelegramTransport(config.bot_token, api_base=config.api_base)
        actions = _membership_actions(telegram, dry_run)
        mirror = MembershipMirror(store, actions, policy=config.fanout_policy)
        dispatcher = Dispatcher(
            telegram,
            store,
            mirror,
            CommandHandler(store),
            poll_timeout=config.poll_timeout,
            shutdown_grace_seconds=config.shutdown_grace_seconds,
        )
        await dispatcher.run()

    if dry_run:
        click.secho("(Dry run: kick, unban and promote are only logged)", fg="cyan")
    click.echo(f"Fan-out policy: {config.fanout_policy.value}")
    asyncio.run(_main())


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def bindings(ctx: click.Context, as_json: bool) -> None:
    """List master rooms and their slaves."""
    store = _open_store(ctx.obj["config"])
    current = store.bindings()

    if as_json:
        click.echo(json.dumps({str(m): s for m, s in current.items()}, indent=2))
        return

    if not current:
        click.echo("No bindings.")
        return

    for master, slaves in current.items():
        click.secho(f"{master}", bold=True)
        for slave in slaves:
            click.echo(f"  └─ {slave}")


@cli.command(context_settings=_NEGATIVE_ARGS)
@click.argument("master", type=int)
@click.argument("slave", type=int)
@click.pass_context
def bind(ctx: click.Context, master: int, slave: int) -> None:
    """Bind SLAVE room to MASTER room."""
    if master == slave:
        click.secho("❌ Cannot bind chat to itself", fg="red")
        raise SystemExit(1)

    store = _open_store(ctx.obj["config"])
    try:
        store.bind(master, slave)
    except StoreWriteError as e:
        click.secho(f"❌ Binding not saved: {e}", fg="red")
        raise SystemExit(1)
    click.secho(f"✓ Bound {slave} to {master}", fg="green")


@cli.command(context_settings=_NEGATIVE_ARGS)
@click.argument("slave", type=int)
@click.pass_context
def unbind(ctx: click.Context, slave: int) -> None:
    """Detach SLAVE room from its master."""
    store = _open_store(ctx.obj["config"])
    master = store.get_master(slave)
    try:
        store.unbind(slave)
    except StoreWriteError as e:
        click.secho(f"❌ Unbind not saved: {e}", fg="red")
        raise SystemExit(1)

    if master is None:
        click.echo(f"{slave} was not bound")
    else:
        click.secho(f"✓ Unbound {slave} from {master}", fg="green")


@cli.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Show configuration status."""
    config: BotConfig = ctx.obj["config"]

    def _line(label: str, ok: bool, value: str) -> None:
        icon = "✅" if ok else "❌"
        click.echo(f"  {icon} {label:16} {value}")

    click.echo("Configuration:")
    _line("BOT_TOKEN", config.has_token(), "set" if config.has_token() else "missing")
    _line("DB", config.has_db(), str(config.db_path) if config.has_db() else "missing")
    _line("API base", True, config.api_base)
    _line("Poll timeout", True, f"{config.poll_timeout}s")
    _line("Fan-out policy", True, config.fanout_policy.value)

    if config.missing():
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
