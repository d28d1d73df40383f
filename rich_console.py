"""
Rich console configuration for the route renderer.

Provides terminal output with progress bars, panels, and styled logging.
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme
from rich.panel import Panel
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
    MofNCompleteColumn,
)

ROUTE_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "highlight": "bold magenta",
    "muted": "dim",
    "pace": "bold cyan",
    "route": "bold red",
    "gps": "green",
})

# Global console instance
console = Console(theme=ROUTE_THEME)


def setup_rich_logging(verbose: bool = False) -> None:
    """
    Route logging through a Rich handler.

    Args:
        verbose: Enable DEBUG level logging with file/line details
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=verbose,
                show_path=verbose,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
                markup=False,
            )
        ],
        force=True,
    )


def create_render_progress() -> Progress:
    """
    Create a progress bar for frame rendering.

    Returns:
        Progress instance; tasks carry a `status` field
    """
    return Progress(
        SpinnerColumn("dots"),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40, style="cyan", complete_style="green"),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TextColumn("[dim]{task.fields[status]}[/]"),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=False,
    )


def print_banner(version: str = "1.0.0") -> None:
    console.print("\n[bold red]Run Route Overlay[/]")
    console.print("[dim]FIT track to route image / video renderer[/]")
    console.print(f"[muted]Version {version}[/]\n")


def print_config_summary(
    mode: str,
    output_file: str,
    source: str = "preset default",
    point_count: Optional[int] = None,
    lap_count: Optional[int] = None,
    scale: float = 0.2,
    offset_x: float = 0.1,
    offset_y: float = 0.1,
    show_route: bool = True,
    show_lap_panel: bool = True,
    show_bottom_bar: bool = True,
) -> None:
    """
    Print a configuration summary panel.

    Args:
        mode: "video" or "image"
        output_file: Output file path
        source: Preset or config file the configuration started from
        point_count: Number of GPS samples (optional)
        lap_count: Number of laps (optional)
        scale: Route scale as a fraction of canvas width
        offset_x: Left offset as a fraction of canvas width
        offset_y: Top offset as a fraction of canvas width
        show_route: Whether the route line is drawn
        show_lap_panel: Whether the lap panel is drawn
        show_bottom_bar: Whether the pace/distance bar is drawn
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Mode", f"[highlight]{mode}[/]")
    table.add_row("Source", source)
    if point_count is not None:
        table.add_row("GPS Points", f"[gps]{point_count:,}[/]")
    if lap_count is not None:
        table.add_row("Laps", str(lap_count))
    table.add_row("Route Scale", f"{scale:.2f} @ ({offset_x:.2f}, {offset_y:.2f})")

    shown = [name for name, on in (("route", show_route), ("lap panel", show_lap_panel),
                                   ("bottom bar", show_bottom_bar)) if on]
    table.add_row("Layers", ", ".join(shown) if shown else "[dim]marker only[/]")
    table.add_row("Output", f"[green]{os.path.basename(output_file) or output_file}[/]")

    panel = Panel(
        table,
        title="[bold]Configuration[/]",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)
    console.print()


def print_phase(phase_num: int, total_phases: int, description: str) -> None:
    """
    Print a phase header for multi-step processing.

    Args:
        phase_num: Current phase number (1-indexed)
        total_phases: Total number of phases
        description: Description of this phase
    """
    console.print(
        f"\n[bold cyan]Step {phase_num}/{total_phases}:[/] [bold]{description}[/]"
    )


def print_completion_summary(
    output_file: str,
    points_processed: int,
    frame_rate: Optional[int] = None,
    canvas_size: Optional[tuple] = None,
    elapsed: Optional[float] = None,
    verified: Optional[bool] = None,
) -> None:
    """
    Print a completion summary.

    Args:
        output_file: Path to output file
        points_processed: Number of track points rendered
        frame_rate: Video frame rate (omitted for images)
        canvas_size: (width, height) of the output
        elapsed: Wall time in seconds
        verified: Whether the output matched what was written (None when unchecked)
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold green")

    table.add_row("Points", f"{points_processed:,}")
    if frame_rate:
        table.add_row("Frame Rate", f"{frame_rate} fps")
    if canvas_size:
        table.add_row("Canvas", f"{canvas_size[0]}x{canvas_size[1]}")
    if elapsed is not None:
        table.add_row("Time", f"{elapsed:.2f}s")
    if verified is not None:
        table.add_row("Verified", "yes" if verified else "[warning]mismatch, see log[/]")
    table.add_row("Output", output_file)

    panel = Panel(
        table,
        title="[bold green]Complete[/]",
        border_style="green",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)


def print_batch_summary(succeeded: int, failed: int) -> None:
    style = "success" if failed == 0 else "warning"
    console.print(f"\n[{style}]{succeeded} job(s) succeeded, {failed} failed[/]")


def print_error(message: str, hint: Optional[str] = None) -> None:
    """
    Print a styled error message.

    Args:
        message: Error message
        hint: Optional hint for resolution
    """
    console.print(f"\n[error]Error:[/] {escape(message)}")
    if hint:
        console.print(f"[muted]Hint: {escape(hint)}[/]")
