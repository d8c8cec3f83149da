"""CLI for the content store.

Provides commands for inspecting the configuration, checking and repairing
the database schema, and querying content.

Usage:
    contentstore contenttypes
    contentstore check
    contentstore repair
    contentstore query entries --filter lorem --page 2
    contentstore query entry/12
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table as RichTable

from contentstore.contenttypes.loader import load_content_config
from contentstore.contenttypes.models import ContentTypesConfig
from contentstore.core.config import get_settings
from contentstore.core.connections import ConnectionConfig, ConnectionManager
from contentstore.core.logging import configure_logging
from contentstore.storage.content import Content
from contentstore.storage.repository import ContentStorage

app = typer.Typer(
    name="contentstore",
    help="Content Store - schema-aware persistence for configurable content types.",
    no_args_is_help=True,
)
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Directory holding contenttypes.yaml and taxonomy.yaml",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]
DatabaseOption = Annotated[
    str | None,
    typer.Option(
        "--database",
        "-d",
        help="SQLAlchemy database URL (default: CONTENTSTORE_DATABASE_URL)",
    ),
]


def _load_config(config_dir: Path | None) -> ContentTypesConfig:
    directory = config_dir or get_settings().config_path
    result = load_content_config(directory)
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(1)
    return result.unwrap()


def _manager(database_url: str | None) -> ConnectionManager:
    settings = get_settings()
    if database_url:
        return ConnectionManager(ConnectionConfig(database_url=database_url))
    return ConnectionManager(ConnectionConfig.from_settings(settings))


@app.callback()
def setup(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug events"),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    settings = get_settings()
    configure_logging(
        log_level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
    )


@app.command()
def contenttypes(config_dir: ConfigOption = None) -> None:
    """List declared content types and their fields."""
    config = _load_config(config_dir)
    prefix = get_settings().table_prefix

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Table")
    table.add_column("Fields")
    table.add_column("Taxonomy")
    table.add_column("Relations")

    for key, contenttype in config.contenttypes.items():
        fields = ", ".join(f"{name}:{decl.type}" for name, decl in contenttype.fields.items())
        table.add_row(
            key,
            prefix + contenttype.slug,
            fields or "-",
            ", ".join(contenttype.taxonomy) or "-",
            ", ".join(contenttype.relation_fields) or "-",
        )

    console.print(table)


@app.command()
def check(config_dir: ConfigOption = None, database: DatabaseOption = None) -> None:
    """Check whether the database schema matches the configuration.

    Exits with status 1 when a repair is needed.
    """
    config = _load_config(config_dir)
    pending = asyncio.run(_check_async(config, database))

    if not pending:
        console.print("[green]Database schema is up to date.[/green]")
        return

    console.print("[yellow]The database needs to be repaired:[/yellow]")
    for message in pending:
        console.print(f"  - {message}")
    raise typer.Exit(1)


async def _check_async(config: ContentTypesConfig, database: str | None) -> list[str]:
    manager = _manager(database)
    await manager.initialize()
    try:
        storage = ContentStorage(manager, config)
        changes = await storage.pending_changes()
        return [change.message for change in changes if change.structural]
    finally:
        await manager.close()


@app.command()
def repair(config_dir: ConfigOption = None, database: DatabaseOption = None) -> None:
    """Create missing tables and columns, printing every change."""
    config = _load_config(config_dir)
    messages = asyncio.run(_repair_async(config, database))

    if not messages:
        console.print("[green]Nothing to repair.[/green]")
        return
    for structural, message in messages:
        color = "green" if structural else "yellow"
        console.print(f"[{color}]{message}[/{color}]")


async def _repair_async(
    config: ContentTypesConfig, database: str | None
) -> list[tuple[bool, str]]:
    manager = _manager(database)
    await manager.initialize()
    try:
        storage = ContentStorage(manager, config)
        changes = await storage.repair_tables()
        return [(change.structural, change.message) for change in changes]
    finally:
        await manager.close()


@app.command()
def query(
    slug: Annotated[
        str,
        typer.Argument(help="Content type slug or shortcut (entry/12, entries/latest/5)"),
    ],
    search: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Free-text search over text fields"),
    ] = None,
    where: Annotated[
        list[str] | None,
        typer.Option("--where", "-w", help="Field filter as key=value (repeatable)"),
    ] = None,
    order: Annotated[
        str | None,
        typer.Option("--order", "-o", help="Order, e.g. '-datecreated' or 'title ASC'"),
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Page size")] = None,
    page: Annotated[int | None, typer.Option("--page", "-p", help="Page number")] = None,
    config_dir: ConfigOption = None,
    database: DatabaseOption = None,
) -> None:
    """Query content and print it as a table."""
    config = _load_config(config_dir)

    parameters: dict[str, Any] = {}
    for item in where or []:
        key, separator, value = item.partition("=")
        if not separator:
            console.print(f"[red]Invalid --where '{item}', expected key=value[/red]")
            raise typer.Exit(2)
        parameters[key.strip()] = value
    if search:
        parameters["filter"] = search
    if order:
        parameters["order"] = order
    if limit:
        parameters["limit"] = limit
    if page:
        parameters["page"] = page

    result, pager = asyncio.run(_query_async(config, database, slug, parameters))

    if result is None:
        console.print(f"[yellow]No content found for '{slug}'[/yellow]")
        raise typer.Exit(1)

    records = result if isinstance(result, list) else [result]
    _print_records(records)

    if pager is not None:
        console.print(
            f"Showing {pager.showing_from}-{pager.showing_to} of {pager.count} "
            f"(page {pager.current} of {pager.totalpages})"
        )


async def _query_async(
    config: ContentTypesConfig, database: str | None, slug: str, parameters: dict[str, Any]
) -> tuple[Any, Any]:
    manager = _manager(database)
    await manager.initialize()
    try:
        storage = ContentStorage(manager, config)
        return await storage.get_content(slug, parameters)
    finally:
        await manager.close()


def _print_records(records: list[Content]) -> None:
    if not records:
        console.print("[yellow]No records[/yellow]")
        return

    contenttype = records[0].contenttype
    columns = ["id", "slug", "status", *contenttype.fields_of_type("text")[:2]]

    table = RichTable(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column)
    if contenttype.taxonomy:
        table.add_column("Taxonomy")

    for record in records:
        row = [str(record.get(column, "")) for column in columns]
        if contenttype.taxonomy:
            row.append(
                "; ".join(f"{key}: {', '.join(slugs)}" for key, slugs in record.taxonomy.items())
            )
        table.add_row(*row)

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
