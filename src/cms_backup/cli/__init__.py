"""CLI for CMS database backups.

Usage:
    DB_PROFILE=local cms-backup backup
    cms-backup --profile local backup --output /tmp/site.zip
    cms-backup --profile local restore backup-2026-01-01T00-00-00.zip --yes
    cms-backup list
    cms-backup delete backup-2026-01-01T00-00-00.zip
    cms-backup inspect /tmp/site.zip

Commands:
    backup   - Export the database into a new archive
    restore  - Replace database contents from an archive
    list     - List archives in the backup directory
    delete   - Delete archives from the backup directory
    inspect  - Show what an archive contains, without a database
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cms_backup.adapters import DatabaseClient
from cms_backup.backup import (
    BackupError,
    create_local_backup,
    delete_backups,
    format_size,
    inspect_archive,
    list_backups,
    resolve_backup_dir,
    restore_archive,
    write_archive,
)
from cms_backup.backup.models import RestoreSummary
from cms_backup.factory import ProfileNotFoundError, get_adapter

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _open_adapter(args: argparse.Namespace) -> DatabaseClient:
    config_path = Path(args.config) if args.config else None
    return get_adapter(args.profile, config_path=config_path)


def _resolve_archive_path(archive: str, backup_dir: str | None) -> Path:
    """Accept either a path or the name of an archive in the backup directory."""
    path = Path(archive)
    if path.exists():
        return path
    candidate = resolve_backup_dir(backup_dir) / path.name
    if candidate.exists():
        return candidate
    return path


def _print_restore_summary(summary: RestoreSummary) -> None:
    table = Table(title="Restored Tables", show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Decoded", justify="right")
    table.add_column("Inserted", justify="right", style="green")
    table.add_column("Duplicates", justify="right", style="yellow")
    table.add_column("Dropped", justify="right", style="dim")

    for name, stats in summary.tables.items():
        table.add_row(
            name,
            str(stats.decoded),
            str(stats.inserted),
            str(stats.duplicates),
            str(stats.dropped),
        )

    console.print(table)
    if summary.migrated_options:
        console.print(
            f"  Legacy options migrated: [cyan]{', '.join(summary.migrated_options)}[/cyan]"
        )
    if summary.imported_templates:
        console.print(
            f"  Legacy templates imported: [cyan]{', '.join(summary.imported_templates)}[/cyan]"
        )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    adapter = _open_adapter(args)
    try:
        if args.output:
            output = Path(args.output)
            output.parent.mkdir(parents=True, exist_ok=True)
            manifest = await write_archive(adapter, output)
            size = output.stat().st_size
            location = output
            tables = manifest.tables
        else:
            artifact = await create_local_backup(adapter, backup_dir=args.backup_dir)
            size = artifact.size
            location = artifact.path
            tables = None
    finally:
        await adapter.close()

    console.print(
        f"[bold green]v[/bold green] Backup written: [bold cyan]{location}[/bold cyan] "
        f"[dim]({format_size(size)})[/dim]"
    )
    if tables is not None:
        console.print(f"  Tables: {len(tables)}")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success, 1 on failure.
    """
    path = _resolve_archive_path(args.archive, args.backup_dir)
    if not path.is_file():
        console.print(f"[red]Error: archive not found: {args.archive}[/red]")
        return 1

    if not args.yes:
        console.print(f"[yellow]This will restore data from:[/yellow] {path}")
        console.print(
            "  [bold]Every table present in the archive will be emptied and reloaded.[/bold]"
        )
        response = console.input("Continue? [y/N] ")
        if response.strip().lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 0

    adapter = _open_adapter(args)
    try:
        summary = await restore_archive(adapter, path)
    finally:
        await adapter.close()

    console.print()
    _print_restore_summary(summary)
    console.print(
        f"\n[bold green]v[/bold green] Restore committed: "
        f"{summary.inserted_count} row(s) inserted, "
        f"{summary.duplicate_count} duplicate(s) skipped"
    )
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def _run_async(coro) -> int:
    try:
        return asyncio.run(coro)
    except (BackupError, ProfileNotFoundError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    except Exception as e:
        logging.getLogger(__name__).debug("Command failed", exc_info=True)
        console.print(f"[bold red]x[/bold red] Failed: {e}")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Export the database into a new archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run_async(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore the database from an archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run_async(_async_restore(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List archives in the backup directory."""
    backup_dir = resolve_backup_dir(args.backup_dir)
    try:
        items = list_backups(backup_dir)
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not items:
        console.print(f"[dim]No backups in {backup_dir}[/dim]")
        return 0

    table = Table(title=f"Backups in {backup_dir}", show_header=True, header_style="bold")
    table.add_column("Filename", style="cyan")
    table.add_column("Size", justify="right")
    for item in items:
        table.add_row(item.filename, item.size)

    console.print(table)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete archives from the backup directory.

    Returns:
        0 if every named archive was deleted, 1 otherwise.
    """
    deleted = delete_backups(args.files, args.backup_dir)
    for name in deleted:
        console.print(f"[bold green]v[/bold green] Deleted {name}")

    missed = len(args.files) - len(deleted)
    if missed:
        console.print(f"[yellow]{missed} file(s) not deleted[/yellow]")
        return 1
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show what a restore of an archive would import."""
    path = _resolve_archive_path(args.archive, args.backup_dir)
    try:
        inspection = inspect_archive(path)
    except BackupError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    manifest = inspection.manifest
    if manifest is not None:
        console.print(
            f"Format: [bold]{manifest.format}[/bold] v{manifest.version}  "
            f"Engine: [bold]{manifest.engine or '?'}[/bold]  "
            f"Created: {manifest.created_at.isoformat()}"
        )
    else:
        console.print("[dim]No manifest (legacy archive)[/dim]")

    table = Table(title="Tables", show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Entry")
    for name, entry in inspection.tables.items():
        table.add_row(name, entry)
    console.print(table)

    if inspection.legacy_templates:
        console.print(
            f"  Legacy templates: [cyan]{', '.join(inspection.legacy_templates)}[/cyan]"
        )
    if inspection.ignored_entries:
        console.print(f"  Ignored entries: [dim]{len(inspection.ignored_entries)}[/dim]")
        for entry in inspection.ignored_entries:
            console.print(f"    - [dim]{entry}[/dim]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="cms-backup",
        description="Backup and restore the CMS database",
    )

    # Global options
    parser.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Database profile from backup.toml (default: DB_PROFILE env var)",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to backup.toml (default: ./backup.toml)",
    )
    parser.add_argument(
        "--backup-dir",
        default=None,
        help="Local backup directory (default: MX_BACKUP_DIR or ./backups)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Export the database into a new archive",
    )
    p_backup.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the archive here instead of the backup directory",
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Replace database contents from an archive",
    )
    p_restore.add_argument(
        "archive",
        help="Archive path, or filename in the backup directory",
    )
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_restore.set_defaults(func=cmd_restore)

    # list command
    p_list = subparsers.add_parser(
        "list",
        help="List archives in the backup directory",
    )
    p_list.set_defaults(func=cmd_list)

    # delete command
    p_delete = subparsers.add_parser(
        "delete",
        help="Delete archives from the backup directory",
    )
    p_delete.add_argument(
        "files",
        nargs="+",
        help="Archive filename(s) to delete",
    )
    p_delete.set_defaults(func=cmd_delete)

    # inspect command
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Show what an archive contains",
    )
    p_inspect.add_argument(
        "archive",
        help="Archive path, or filename in the backup directory",
    )
    p_inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
