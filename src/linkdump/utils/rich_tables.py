# ABOUTME: Rich table utilities for import reports, link metadata and logging status
# ABOUTME: Provides pre-configured table generators for common data display patterns

from datetime import datetime
from typing import Any

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table

from linkdump.core.models import Link

STATUS_ICONS = {"ok": "✅", "failed": "❌", "skipped": "⏭️"}


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "—"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def create_key_value_table(
    title: str,
    data: dict[str, str],
    title_style: str = "bold cyan",
    key_style: str = "bold blue",
    value_style: str = "green",
    box_style=ROUNDED,
) -> Table:
    """Create a two-column field/value table.

    Args:
        title: Table title with emoji/styling
        data: Dictionary of key-value pairs to display
        title_style: Style for the table title
        key_style: Style for the key column
        value_style: Style for the value column
        box_style: Border style for the table

    Returns:
        Formatted Rich table ready for printing
    """
    table = Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        box=box_style,
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
        title_justify="left",
        expand=False,
    )

    table.add_column("Field", style=key_style, no_wrap=False)
    table.add_column("Value", style=value_style, no_wrap=False)

    for key, value in data.items():
        table.add_row(key, str(value))

    return table


def create_multi_column_table(
    title: str,
    columns: list[tuple[str, str]],
    rows: list[list[str]],
    title_style: str = "bold cyan",
    header_style: str = "bold magenta",
    alternate_row_styles: list[str] | None = None,
    box_style=ROUNDED,
) -> Table:
    """Create a multi-column table with zebra striping.

    Args:
        title: Table title with emoji/styling
        columns: List of (column_name, column_style) tuples
        rows: List of row data
        title_style: Style for the table title
        header_style: Style for column headers
        alternate_row_styles: Alternating row styles for zebra striping
        box_style: Border style for the table

    Returns:
        Formatted Rich table ready for printing
    """
    table = Table(
        title=f"[{title_style}]{title}[/{title_style}]",
        box=box_style,
        show_header=True,
        header_style=header_style,
        border_style="cyan",
        title_justify="left",
        row_styles=alternate_row_styles or ["", "dim"],
        expand=True,
    )

    for name, style in columns:
        table.add_column(name, style=style)

    for row in rows:
        table.add_row(*row)

    return table


def create_import_report_table(report: Any) -> Table:
    """Per-file results of an import.

    Args:
        report: ImportReport from LinkImportService.import_files
    """
    rows = []
    for file_report in report.files:
        status = f"❌ {file_report.error}" if file_report.error else ("✅" if not file_report.failed else "⚠️")
        rows.append(
            [
                file_report.filename or "<text>",
                str(len(file_report.links)),
                str(file_report.succeeded),
                str(file_report.failed),
                status,
            ]
        )

    return create_multi_column_table(
        title="📥 Import Results",
        columns=[
            ("File", "bold blue"),
            ("Links", "white"),
            ("Stored", "green"),
            ("Failed", "red"),
            ("Status", "white"),
        ],
        rows=rows,
    )


def create_batch_report_table(report: Any) -> Table:
    """Per-link results of a rebuild or refetch."""
    rows = [
        [outcome.url, f"{STATUS_ICONS.get(outcome.status, '')} {outcome.status}", outcome.error or ""]
        for outcome in report.outcomes
    ]
    return create_multi_column_table(
        title=f"🔁 {report.operation.title()} Results",
        columns=[("URL", "bold blue"), ("Status", "white"), ("Error", "red")],
        rows=rows,
    )


def create_link_metadata_table(link: Link) -> Table:
    """Everything known about one link, except its body."""
    data = {
        "🔗 URL": link.url,
        "📛 Title": link.title or "—",
        "📁 From": link.from_filename or "—",
        "🏷️ Tags": ", ".join(sorted(link.tags)) or "—",
        "🙋 Via": str(link.via) if link.via else "—",
        "🔎 Found": format_timestamp(link.found_at),
        "📖 Read": format_timestamp(link.read_at),
        "🗞️ Published": format_timestamp(link.published_at),
        "🌐 Fetched": format_timestamp(link.last_fetched),
        "⚙️ Processed": format_timestamp(link.last_processed),
        "🖼️ Image": link.image or "—",
        "🙈 Hidden": "yes" if link.hidden else "no",
    }
    if link.notes:
        data["📝 Notes"] = link.notes

    return create_key_value_table(title=link.title or link.url, data=data, value_style="white")


def create_mapping_table(title: str, mapping: dict[str, list[str]]) -> Table:
    """Multi-valued meta tags or HTTP headers, sorted by name."""
    rows = [[key, "\n".join(values)] for key, values in sorted(mapping.items())]
    return create_multi_column_table(title=title, columns=[("Name", "bold blue"), ("Values", "white")], rows=rows)


def create_logging_status_table(status: dict[str, Any]) -> Table:
    """Create a logging configuration status table.

    Args:
        status: Logging status dictionary

    Returns:
        Styled logging configuration table
    """
    logging_data = {
        "🔧 Mode": status["mode"].title(),
        "📁 Log Directory": status["log_directory"] or "N/A (production mode)",
        "🔇 Suppressed Libraries": ", ".join(status["third_party_suppressed"]),
    }

    if status["log_files"]["main"]:
        logging_data["📝 Main Log"] = status["log_files"]["main"]
    if status["log_files"]["json"]:
        logging_data["📊 JSON Log"] = status["log_files"]["json"]
    if status["log_files"]["errors"]:
        logging_data["🚨 Error Log"] = status["log_files"]["errors"]

    return create_key_value_table(
        title="🔍 Logging Configuration",
        data=logging_data,
        title_style="bold green",
        key_style="blue",
        value_style="white",
    )


def print_rich_table(console: Console, table: Table) -> None:
    """Print a rich table with consistent spacing and style.

    Args:
        console: Rich console instance
        table: Configured table to print
    """
    console.print()
    console.print(table)
    console.print()
