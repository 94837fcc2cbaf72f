"""Rich console rendering for the apptivo command line.

Errors, info and warnings are shown as panels; configuration documents,
resolution results and table rows as tables.
"""

import logging
from typing import Iterable, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from apptivo.domain.models.config import ConfigDocument, TableSectionDescriptor
from apptivo.domain.models.record import TableSectionRow
from apptivo.domain.models.resolution import ResolvedAttribute

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Renders configuration documents and resolution results with rich."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, console: Console) -> None:
        self._console = console

    def display_error(self, error_message: str) -> None:
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

    def display_info(self, info_message: str) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_config(self, document: ConfigDocument) -> None:
        """Prints every section of a configuration document as one table.

        Table sections list their columns; ordinary sections list their fields.
        """
        logger.debug(f"Displaying {document!r}")
        table = Table(
            title=f"Configuration for '{document.app_id}'",
            show_header=True,
            box=ROUNDED,
            border_style="cyan",
            padding=(0, 1),
        )
        table.add_column("Section", style="bold cyan")
        table.add_column("Label")
        table.add_column("Attribute ID", style="magenta")
        table.add_column("Type")
        table.add_column("Tag", style="dim")

        for section in document.sections:
            if section.kind == "table":
                table.add_row(section.label, "[italic]table section[/italic]", section.attribute_id, "table", "")
                for column in section.columns:
                    table.add_row("", f"  {column.label}", column.attribute_id, column.type_hint, f"col {column.column_index}")
            else:
                for index, field in enumerate(section.fields):
                    table.add_row(
                        section.label if index == 0 else "",
                        field.label,
                        field.attribute_id,
                        field.type_hint,
                        field.tag_name or "",
                    )
        self.console.print(table)
        if document.default_country:
            self.display_info(f"Default country: {document.default_country.get('country')}")

    def display_resolution(self, label: str, result: ResolvedAttribute) -> None:
        """Shows the outcome of resolving one label."""
        if not result.found:
            self.display_warning(f"'{label}' not found. {result.diagnostic or ''}".strip())
            return
        table = Table(show_header=False, box=SIMPLE, border_style="green", padding=(0, 1))
        table.add_column("Key", style="bold green")
        table.add_column("Value")
        table.add_row("Label", label)
        table.add_row("Attribute ID", str(result.attribute_id))
        if result.descriptor is not None:
            table.add_row("Kind", result.descriptor.kind)
            type_hint = getattr(result.descriptor, "type_hint", None)
            if type_hint:
                table.add_row("Type", type_hint)
        if result.value is not None:
            table.add_row("Value", str(result.value))
        if result.diagnostic:
            table.add_row("Note", result.diagnostic)
        self.console.print(table)

    def display_rows(self, section: TableSectionDescriptor, rows: Iterable[TableSectionRow]) -> None:
        """Prints table-section rows with one column per configured column attribute."""
        table = Table(title=section.label, show_header=True, box=ROUNDED, border_style="cyan")
        table.add_column("#", style="dim")
        for column in section.columns:
            table.add_column(column.label)
        for number, row in enumerate(rows, start=1):
            values = {cell.attribute_id: cell.value for cell in row.cells}
            table.add_row(str(number), *[
                "" if values.get(column.attribute_id) is None else str(values[column.attribute_id])
                for column in section.columns
            ])
        self.console.print(table)
