import logging
from typing import Any, Dict, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from econfetch.domain.interfaces.user_interface import UserInterface
from econfetch.domain.models.common import CacheStats, Observation

logger = logging.getLogger(__name__)


def _format_value(value: Optional[float]) -> str:
    if value is None:
        return "—"
    return f"{value:,.4f}".rstrip("0").rstrip(".") or "0"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self.console = console or Console()

    def display_series(self, series_id: str, observations: List[Observation], **kwargs: Any) -> None:
        """Renders observations as a two-column table.

        Args:
            series_id: Series identifier shown in the title.
            observations: Points to render.
            **kwargs: ``from_cache`` and ``stale`` flags shown in the caption.
        """
        if kwargs.get("stale"):
            caption = "[yellow]stale cache fallback[/yellow]"
        elif kwargs.get("from_cache"):
            caption = "[green]from cache[/green]"
        else:
            caption = "[cyan]fresh from API[/cyan]"

        table = Table(title=f"[bold]{series_id}[/bold]", caption=caption, box=ROUNDED, border_style="cyan")
        table.add_column("Date", style="dim")
        table.add_column("Value", justify="right")
        for obs in observations:
            table.add_row(obs["date"], _format_value(obs["value"]))
        self.console.print(table)
        logger.debug(f"Displayed {len(observations)} observations for {series_id}")

    def display_search_results(self, query: str, results: List[Dict[str, Any]]) -> None:
        if not results:
            self.display_info(f"No series found for '{query}'.")
            return
        table = Table(title=f"Search: [bold]{query}[/bold]", box=ROUNDED, border_style="cyan")
        table.add_column("ID", style="bold")
        table.add_column("Title")
        table.add_column("Frequency")
        table.add_column("Units")
        table.add_column("Range", style="dim")
        for series in results:
            table.add_row(
                str(series.get("id") or ""),
                str(series.get("title") or ""),
                str(series.get("frequency") or ""),
                str(series.get("units") or ""),
                f"{series.get('observation_start') or '?'} → {series.get('observation_end') or '?'}",
            )
        self.console.print(table)

    def display_cache_stats(self, stats: CacheStats) -> None:
        table = Table(show_header=False, title="Cache statistics", box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Metric", style="bold cyan")
        table.add_column("Value", justify="right")
        table.add_row("Total entries", str(stats["total"]))
        table.add_row("Active", str(stats["active"]))
        table.add_row("Expired", str(stats["expired"]))
        table.add_row("Storage size", f"{stats['storage_size_mb']} MB")
        for source, count in sorted(stats["by_source"].items()):
            table.add_row(f"  {source}", str(count))
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message with enhanced styling.

        Args:
            warning_message: The warning message to display.
        """
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
