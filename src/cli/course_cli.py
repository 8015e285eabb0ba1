"""
Course Builder CLI.

Commands:
- course-builder outline show        : Show sections and activities in order
- course-builder outline move        : Move an item and save the new order
- course-builder status              : Check the content API
"""
from __future__ import annotations

import asyncio
import sys
from typing import Optional

import typer
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table

from config import get_settings
from src.content_api.client import ContentApiClient, ContentApiError
from src.ordering.errors import OrderingError, SyncFailure
from src.ordering.editor import OutlineEditor
from src.ordering.models import TOP_LEVEL, MoveEvent, OutlineView

THEME = {
    "primary": "#00D4FF",
    "success": "#00FF88",
    "warning": "#FFA500",
    "error": "#FF4444",
    "dim": "#666666",
}

console = Console()

# ============================================================================
# TYPER APPS
# ============================================================================

app = typer.Typer(
    name="course-builder",
    help="Course builder - section and activity ordering",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

outline_app = typer.Typer(
    name="outline",
    help="Show and reorder a course outline",
    no_args_is_help=True,
)
app.add_typer(outline_app, name="outline")


def configure_logging() -> None:
    """Route loguru to stderr (and the configured log file)."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def _resolve_group(group: str | None) -> str:
    group_id = group or get_settings().default_group_id
    if not group_id:
        console.print(Panel(
            "[bold red]No course group given.[/bold red]\n"
            "Pass --group or set DEFAULT_GROUP_ID in .env",
            border_style=Style(color=THEME["error"]),
        ))
        raise typer.Exit(1)
    return group_id


def _notify_failure(failure: SyncFailure) -> None:
    console.print(Panel(
        f"[bold yellow]{failure}[/bold yellow]",
        border_style=Style(color=THEME["warning"]),
    ))


def render_outline(views: OutlineView) -> Table:
    table = Table(title="Course Outline", box=box.ROUNDED)
    table.add_column("#", justify="right", style=Style(color=THEME["dim"]))
    table.add_column("Name")
    table.add_column("ID", style=Style(color=THEME["dim"]))
    table.add_column("Status", justify="center")

    for section in views.get(TOP_LEVEL, []):
        table.add_row(
            str(section.sequence + 1),
            f"[bold]{section.name}[/bold]",
            section.id,
            "[yellow]draft[/yellow]" if section.is_draft else "",
        )
        for activity in views.get(section.id, []):
            kind = activity.attributes.get("type", "")
            table.add_row(
                f"{section.sequence + 1}.{activity.sequence + 1}",
                f"  {activity.name} [dim]{kind}[/dim]",
                activity.id,
                "[yellow]draft[/yellow]" if activity.is_draft else "",
            )
    return table


# ============================================================================
# OUTLINE COMMANDS
# ============================================================================

@outline_app.command("show")
def outline_show(
    group: Optional[str] = typer.Option(
        None,
        "--group", "-g",
        help="Course group id (default from DEFAULT_GROUP_ID)",
    ),
):
    """
    Show sections and activities in their saved order.

    Examples:
        course-builder outline show -g 0190c0de-...
    """
    group_id = _resolve_group(group)

    async def _show() -> OutlineView:
        async with ContentApiClient() as client:
            return await OutlineEditor(client, group_id).load()

    try:
        views = asyncio.run(_show())
    except ContentApiError as exc:
        console.print(f"[red]Could not load outline: {exc}[/red]")
        raise typer.Exit(1)

    if not views.get(TOP_LEVEL):
        console.print("[dim]No sections yet.[/dim]")
        return
    console.print(render_outline(views))


@outline_app.command("move")
def outline_move(
    item_id: str = typer.Argument(..., help="Section or activity id to move"),
    to: Optional[str] = typer.Option(
        None,
        "--to", "-t",
        help="Destination section id (omit to reorder within the current list)",
    ),
    index: int = typer.Option(
        ...,
        "--index", "-i",
        help="Zero-based position in the destination list",
    ),
    group: Optional[str] = typer.Option(
        None,
        "--group", "-g",
        help="Course group id (default from DEFAULT_GROUP_ID)",
    ),
    normalize: bool = typer.Option(
        False,
        "--normalize",
        help="Repair gaps/duplicates in stored sequence numbers first",
    ),
):
    """
    Move a section or activity and save the new order.

    Examples:
        course-builder outline move SECTION_ID --index 0
        course-builder outline move ACTIVITY_ID --to OTHER_SECTION_ID --index 2
    """
    group_id = _resolve_group(group)

    async def _move() -> tuple[bool, OutlineView]:
        async with ContentApiClient() as client:
            editor = OutlineEditor(client, group_id, on_failure=_notify_failure)
            await editor.load(normalize=normalize)
            try:
                container_id, old_index = editor.outline.locate(item_id)
            except KeyError:
                console.print(f"[red]Unknown item: {item_id}[/red]")
                raise typer.Exit(1)

            move = MoveEvent(
                item_id=item_id,
                from_container_id=container_id,
                to_container_id=to or container_id,
                old_index=old_index,
                new_index=index,
            )
            with console.status("Saving order..."):
                result = await editor.move(move)
            return result.success, editor.views()

    try:
        saved, views = asyncio.run(_move())
    except OrderingError as exc:
        console.print(f"[red]Invalid move: {exc}[/red]")
        raise typer.Exit(1)
    except ContentApiError as exc:
        console.print(f"[red]Content API error: {exc}[/red]")
        raise typer.Exit(1)

    console.print(render_outline(views))
    if not saved:
        raise typer.Exit(2)
    console.print(f"[{THEME['success']}]Order saved.[/]")


# ============================================================================
# STATUS
# ============================================================================

@app.command("status")
def status():
    """Check that the content API is reachable."""
    settings = get_settings()

    async def _check() -> bool:
        async with ContentApiClient() as client:
            return await client.health_check()

    healthy = asyncio.run(_check())
    color = THEME["success"] if healthy else THEME["error"]
    console.print(Panel(
        f"CONTENT API: {settings.content_api_base_url}\n"
        f"Token: {'configured' if settings.has_api_key() else 'none'}\n"
        f"{'Connected' if healthy else 'Not reachable'}",
        border_style=Style(color=color),
        box=box.HEAVY,
    ))
    if not healthy:
        raise typer.Exit(1)


def run() -> None:
    """Entry point for the CLI."""
    configure_logging()
    app()


if __name__ == "__main__":
    run()
