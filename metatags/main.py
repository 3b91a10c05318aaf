#!/usr/bin/env python3
"""CLI entry point for the MetaTags template sync."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm
from rich.table import Table

from .core.engine import SyncEngine, SyncResult
from .core.host import HostWriteError
from .core.state import SyncState
from .core.tags import current_tags, reference_names
from .core.vault import VaultHost
from .models.config import CONFIG_FILENAME, MetaTagsSettings

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def get_vault_dir(args: argparse.Namespace) -> Path:
    """Get the vault root directory."""
    return Path(args.vault).resolve() if args.vault else Path.cwd().resolve()


def load_settings(vault_dir: Path) -> MetaTagsSettings:
    """Load settings from the vault's config file (defaults if missing)."""
    settings = MetaTagsSettings.load(vault_dir / CONFIG_FILENAME)
    if settings.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return settings


def _ask(message: str) -> bool:
    console.print(f"\n[bold yellow]{message}[/bold yellow]")
    return Confirm.ask("Proceed", default=False, console=console)


async def _ask_async(message: str) -> bool:
    return await asyncio.to_thread(_ask, message)


def build_engine(vault_dir: Path, settings: MetaTagsSettings, assume_yes: bool = False) -> SyncEngine:
    """Wire the vault host, persisted state and engine together."""

    async def confirm_yes(message: str) -> bool:
        return True

    host = VaultHost(vault_dir, confirm=confirm_yes if assume_yes else _ask_async)
    state = SyncState(settings.resolve_state_file(vault_dir))
    return SyncEngine(host, settings, state=state)


def _to_document_path(vault_dir: Path, value: str) -> str:
    """Accept a vault-relative or filesystem path and return the document path."""
    candidate = Path(value)
    if not candidate.is_absolute():
        candidate = (Path.cwd() / candidate) if (Path.cwd() / candidate).exists() else (vault_dir / candidate)
    try:
        return candidate.resolve().relative_to(vault_dir).as_posix()
    except ValueError:
        raise ValueError(f"{value} is not inside the vault {vault_dir}")


def _print_result(result: SyncResult) -> None:
    if not result.success:
        console.print(f"[red]FAILED: {result.path}")
        console.print(f"        {result.message}")
        for path in result.failed_paths:
            console.print(f"        [red]{path}")
    elif result.declined:
        console.print(f"[yellow]DECLINED: {result.path}[/yellow] {result.message}")
    elif result.skipped:
        console.print(f"[dim]{result.path}: {result.message}[/dim]")
    else:
        console.print(f"[green]{result.path}: {result.message}")
        for path in sorted(result.mutated):
            console.print(f"  [blue]updated[/blue] {path}")


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default config file into the vault."""
    vault_dir = get_vault_dir(args)
    config_path = vault_dir / CONFIG_FILENAME

    if config_path.exists() and not args.force:
        console.print(f"[yellow]{CONFIG_FILENAME} already exists!")
        console.print("Use --force to overwrite")
        return 1

    try:
        settings = MetaTagsSettings(
            tag_base=args.tag_base,
            template_folder=args.template_folder,
            prune_empty_on_remove=args.prune,
        )
        settings.save(config_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Failed to write config: {e}")
        return 1

    console.print(f"[green]Settings saved to: {config_path}")
    return 0


async def _scan(engine: SyncEngine) -> dict[str, tuple[str, int]]:
    templates = await engine.initialize()
    summary = {}
    for name, path in templates.items():
        bound = await engine.registry.bound_documents(name)
        summary[name] = (path, len(bound))
    return summary


def cmd_scan(args: argparse.Namespace) -> int:
    """Scan the vault and record template baselines."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
        engine = build_engine(vault_dir, settings)
        summary = asyncio.run(_scan(engine))
    except (OSError, ValueError) as e:
        console.print(f"[red]Scan failed: {e}")
        return 1

    if not summary:
        console.print("[yellow]No templates found")
        if settings.template_folder:
            console.print(f"Templates are read from: {settings.template_folder}/")
        else:
            console.print(f"Tag a note with #{settings.tag_base} to make it a template")
        return 0

    table = Table(title="Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="green")
    table.add_column("Bound Notes", justify="right")
    for name, (path, count) in sorted(summary.items()):
        table.add_row(name, path, str(count))
    console.print(table)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show sync status."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
    except (OSError, ValueError) as e:
        console.print(f"[red]Configuration error: {e}")
        return 1

    console.print(f"\n[bold]Vault:[/bold] {vault_dir}")
    console.print(f"[bold]Tag Base:[/bold] {settings.tag_base}")
    console.print(f"[bold]Template Folder:[/bold] {settings.template_folder or '[dim]None (tagged templates)[/dim]'}")
    console.print(f"[bold]Prune On Removal:[/bold] {'Yes' if settings.prune_empty_on_remove else 'No'}")

    state_file = settings.resolve_state_file(vault_dir)
    if state_file is None:
        console.print("\n[dim]State persistence is disabled.[/dim]")
        return 0

    status = SyncState(state_file).get_status_summary()
    console.print(f"\n[bold]Tracked Notes:[/bold] {status['tracked_documents']}")

    if status["templates"]:
        table = Table()
        table.add_column("Template")
        table.add_column("Properties")
        for template in status["templates"]:
            table.add_row(template["name"], ", ".join(template["properties"]) or "[dim]none")
        console.print(table)
    else:
        console.print("[dim]No template baselines yet. Run 'scan' to start syncing.[/dim]")

    return 0


async def _apply(engine: SyncEngine, path: str, names: list[str]) -> SyncResult:
    if not names:
        metadata = await engine.host.get_parsed_metadata(path)
        names = reference_names(current_tags(metadata), engine.settings.tag_base)
    result = await engine.apply_template(path, names)
    engine.state.save()
    return result


def cmd_apply(args: argparse.Namespace) -> int:
    """Merge template properties into a note."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
        engine = build_engine(vault_dir, settings)
        path = _to_document_path(vault_dir, args.document)
        result = asyncio.run(_apply(engine, path, args.names or []))
    except (OSError, ValueError, HostWriteError) as e:
        console.print(f"[red]Error: {e}")
        return 1

    _print_result(result)
    return 0 if result.success else 1


async def _propagate(engine: SyncEngine, path: str) -> SyncResult:
    await engine.initialize()
    result = await engine.propagate_template_change(path)
    engine.state.save()
    return result


def cmd_propagate(args: argparse.Namespace) -> int:
    """Push a template's property changes to its notes."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
        engine = build_engine(vault_dir, settings, assume_yes=args.yes)
        path = _to_document_path(vault_dir, args.template)
        result = asyncio.run(_propagate(engine, path))
    except (OSError, ValueError, HostWriteError) as e:
        console.print(f"[red]Error: {e}")
        return 1

    _print_result(result)
    return 0 if result.success else 1


def cmd_prune(args: argparse.Namespace) -> int:
    """Remove empty properties a note got from a template."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
        engine = build_engine(vault_dir, settings)
        path = _to_document_path(vault_dir, args.document)
        result = asyncio.run(engine.prune_on_reference_removed(path, args.name))
    except (OSError, ValueError, HostWriteError) as e:
        console.print(f"[red]Error: {e}")
        return 1

    _print_result(result)
    return 0 if result.success else 1


async def _watch(engine: SyncEngine) -> None:
    # Imported here so the other commands work without a watchdog backend
    from .core.watcher import VaultWatcher

    await engine.initialize()
    watcher = VaultWatcher(engine.host, engine)
    await watcher.run()


def cmd_watch(args: argparse.Namespace) -> int:
    """Watch the vault and sync on every change."""
    vault_dir = get_vault_dir(args)
    try:
        settings = load_settings(vault_dir)
        engine = build_engine(vault_dir, settings, assume_yes=args.yes)
    except (OSError, ValueError) as e:
        console.print(f"[red]Configuration error: {e}")
        return 1

    console.print(f"Watching [bold]{vault_dir}[/bold] (Ctrl+C to stop)", style="blue")
    try:
        asyncio.run(_watch(engine))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metatags",
        description="Keep Markdown notes in sync with the templates they reference",
    )
    parser.add_argument("--vault", help="Vault directory (default: current directory)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init command
    init_parser = subparsers.add_parser("init", help=f"Write a default {CONFIG_FILENAME}")
    init_parser.add_argument("--tag-base", default="mt", help="Base tag (default: mt)")
    init_parser.add_argument("--template-folder", help="Folder holding templates")
    init_parser.add_argument("--prune", action="store_true", help="Prune empty properties when a tag is removed")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing config")

    # scan command
    subparsers.add_parser("scan", help="Find templates and record their baselines")

    # status command
    subparsers.add_parser("status", help="Show sync status")

    # apply command
    apply_parser = subparsers.add_parser("apply", help="Apply templates to a note")
    apply_parser.add_argument("document", help="Note path")
    apply_parser.add_argument("names", nargs="*", help="Template names (default: the note's tags)")

    # propagate command
    propagate_parser = subparsers.add_parser("propagate", help="Push a template change to its notes")
    propagate_parser.add_argument("template", help="Template path")
    propagate_parser.add_argument("--yes", "-y", action="store_true", help="Confirm property removals")

    # prune command
    prune_parser = subparsers.add_parser("prune", help="Remove a template's empty properties from a note")
    prune_parser.add_argument("document", help="Note path")
    prune_parser.add_argument("name", help="Template name")

    # watch command
    watch_parser = subparsers.add_parser("watch", help="Sync continuously while notes change")
    watch_parser.add_argument("--yes", "-y", action="store_true", help="Confirm property removals")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "scan":
        return cmd_scan(args)
    elif args.command == "status":
        return cmd_status(args)
    elif args.command == "apply":
        return cmd_apply(args)
    elif args.command == "propagate":
        return cmd_propagate(args)
    elif args.command == "prune":
        return cmd_prune(args)
    elif args.command == "watch":
        return cmd_watch(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
