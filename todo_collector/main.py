#!/usr/bin/env python3
"""
Obsidian TODO Collector CLI

Usage:
    # Collect #TODO lines from target directories into TODO.md
    todo-collector --vault ~/Vault collect

    # Collect and group via the classification service
    todo-collector --vault ~/Vault run

    # Watch the vault and sweep completed TODOs as notes are saved
    todo-collector --vault ~/Vault watch --interval 3600

    # Settings
    todo-collector --vault ~/Vault config show
    todo-collector --vault ~/Vault config set target_directories "LINE, Projects"
    todo-collector --vault ~/Vault config set completed_todo_handling delayed

    # Reset the sentinel on a note so it is collected again
    todo-collector metadata remove "~/Vault/LINE/2024-01-01.md" add_todo
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config_loader import get_config_loader
from .document_store import VaultStore
from .metadata_manager import metadata_cli
from .monitor import VaultMonitor
from .notifier import Notifier
from .settings_store import Settings, SettingsStore
from .todo_manager import RunResult, RunStatus, TodoManager

console = Console()

# Settings that are managed by the collector itself
READ_ONLY_SETTINGS = {'completed_todos'}
SECRET_SETTINGS = {'api_key'}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def resolve_vault_path(vault: Optional[Path]) -> Path:
    """--vault option, then vault.path in config.yaml / VAULT_PATH"""
    if vault is not None:
        return vault
    config = get_config_loader()
    errors = config.validate_config()
    if errors:
        for error in errors:
            console.print(f"[red]Error: {error}[/red]")
        sys.exit(1)
    return Path(config.get_vault_path())


def build_manager(vault_path: Path) -> TodoManager:
    return TodoManager(
        VaultStore(vault_path),
        SettingsStore.for_vault(vault_path),
        notifier=Notifier(console),
        config=get_config_loader(),
    )


def get_manager(ctx: click.Context) -> TodoManager:
    if ctx.obj.get('manager') is None:
        ctx.obj['manager'] = build_manager(resolve_vault_path(ctx.obj.get('vault')))
    return ctx.obj['manager']


def exit_for(result: RunResult) -> None:
    if result.status in (RunStatus.FAILED, RunStatus.CONFIG_ERROR):
        sys.exit(1)


@click.group()
@click.option('--vault', type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Path to Obsidian vault (default: vault.path in config.yaml or VAULT_PATH)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.pass_context
def cli(ctx: click.Context, vault: Optional[Path], verbose: bool):
    """Obsidian TODO Collector - gather tagged TODOs into one note"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['vault'] = vault


@cli.command()
@click.pass_context
def collect(ctx: click.Context):
    """Collect new TODOs into the output note (no classification)"""
    result = get_manager(ctx).collect_todos()
    for line in result.new_todos:
        console.print(f"  {line}", markup=False)
    exit_for(result)


@cli.command()
@click.pass_context
def run(ctx: click.Context):
    """Collect new TODOs and classify them into groups"""
    result = asyncio.run(get_manager(ctx).collect_and_classify())
    exit_for(result)


@cli.command()
@click.argument('note')
@click.pass_context
def sweep(ctx: click.Context, note: str):
    """Apply the completed-TODO policy to NOTE (vault-relative path)"""
    manager = get_manager(ctx)
    if not manager.store.exists(note):
        console.print(f"[red]Note not found: {note}[/red]")
        sys.exit(1)
    if manager.handle_change(note):
        console.print(f"[green]✓ Updated {note}[/green]")
    else:
        console.print(f"[yellow]Nothing to do for {note}[/yellow]")


@cli.command()
@click.option('--interval', type=float, default=None,
              help='Also collect and classify every N seconds')
@click.option('--debounce', type=float, default=1.0, show_default=True,
              help='Seconds to wait after the last save before sweeping a note')
@click.pass_context
def watch(ctx: click.Context, interval: Optional[float], debounce: float):
    """Watch the vault and sweep completed TODOs as notes are saved"""
    monitor = VaultMonitor(get_manager(ctx), debounce_delay=debounce, interval=interval)
    monitor.start_monitoring()


@cli.command('test-connection')
@click.pass_context
def test_connection(ctx: click.Context):
    """Check that the classification service answers"""
    if not asyncio.run(get_manager(ctx).test_connection()):
        sys.exit(1)


# ==================== Settings ====================

@cli.group()
def config():
    """Show or change collector settings"""
    pass


@config.command('show')
@click.pass_context
def config_show(ctx: click.Context):
    """Show current settings"""
    manager = get_manager(ctx)
    settings = manager.settings

    table = Table(title=f"Settings ({manager.settings_store.path})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in settings.model_dump(mode='json').items():
        if key in SECRET_SETTINGS:
            value = "Set" if value else "Not set"
        elif key == 'completed_todos':
            value = f"{len(value)} records"
        elif isinstance(value, list):
            value = ", ".join(str(v) for v in value) or "-"
        elif isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items()) or "-"
        table.add_row(key, str(value))

    console.print(table)


@config.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str):
    """Set KEY to VALUE (lists are comma-separated, aliases are from=to pairs)"""
    if key not in Settings.model_fields or key in READ_ONLY_SETTINGS:
        console.print(f"[red]Unknown or read-only setting: {key}[/red]")
        sys.exit(1)

    manager = get_manager(ctx)
    try:
        manager.settings_store.update(**{key: value})
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
        sys.exit(1)
    shown = "***" if key in SECRET_SETTINGS else value
    console.print(f"[green]✓ {key} = {shown}[/green]")


cli.add_command(metadata_cli)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
