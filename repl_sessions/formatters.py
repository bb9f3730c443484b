"""
Output formatters for session listings and session details.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .decoder import HISTORY_SENTINEL
from .models import SessionData, SessionSummary

RULE = "─" * 80


class ResultFormatter(ABC):
    """Base formatter protocol."""

    @abstractmethod
    def format(self, data: Any) -> str:
        """Format data for output."""
        pass

    @abstractmethod
    def format_many(self, items: List[Any]) -> str:
        """Format multiple items."""
        pass


class TableFormatter(ResultFormatter):
    """Format session summaries as a Rich table."""

    def __init__(self, title: str = "Saved Sessions"):
        """Initialize with title."""
        self.title = title

    def format(self, data: SessionSummary) -> str:
        """Format single session summary."""
        lines = [
            f"Name:        {data.name}",
            f"Description: {data.description or ''}",
            f"Tags:        {', '.join(data.tags)}",
            f"Commands:    {data.command_count}",
            f"Created:     {data.created_at or 'unknown'}",
            f"Updated:     {data.updated_at or 'unknown'}",
        ]
        return "\n".join(lines)

    def format_many(self, items: List[SessionSummary]) -> str:
        """Format multiple session summaries as table."""
        table = Table(title=f"{self.title} ({len(items)})")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Commands", justify="right", style="magenta")
        table.add_column("Tags", style="green")
        table.add_column("Updated", style="blue")
        table.add_column("Description", style="dim")

        for item in items:
            table.add_row(
                escape(item.name),
                str(item.command_count),
                escape(", ".join(item.tags)),
                item.updated_at or "",
                escape(item.description or ""),
            )

        console = Console()
        with console.capture() as capture:
            console.print(table)
        return capture.get()


class JsonFormatter(ResultFormatter):
    """Format session summaries as JSON."""

    def format(self, data: SessionSummary) -> str:
        """Format single session summary."""
        return json.dumps(data.to_dict(), indent=2)

    def format_many(self, items: List[SessionSummary]) -> str:
        """Format multiple session summaries as JSON array."""
        return json.dumps([item.to_dict() for item in items], indent=2)


class PlainFormatter(ResultFormatter):
    """One line per session: name - created (N commands)."""

    def format(self, data: SessionSummary) -> str:
        """Format single item."""
        line = f"{data.name} - {data.created_at or 'unknown'} ({data.command_count} commands)"
        if data.tags:
            line += f" [{', '.join(data.tags)}]"
        return line

    def format_many(self, items: List[SessionSummary]) -> str:
        """Format multiple items."""
        return "\n".join(self.format(item) for item in items)


def get_formatter(format_type: str, title: str = "Saved Sessions") -> ResultFormatter:
    """Factory function to get formatter by type."""
    formatters = {
        "table": TableFormatter,
        "json": JsonFormatter,
        "plain": PlainFormatter,
    }

    formatter_class = formatters.get(format_type.lower())
    if not formatter_class:
        raise ValueError(f"Unknown format: {format_type}")

    if formatter_class is TableFormatter:
        return formatter_class(title)
    return formatter_class()


def format_variable(snapshot: Dict[str, Any]) -> str:
    """Rich markup for one stored variable snapshot ({type, class, value})."""
    value = snapshot.get("value")
    value_type = snapshot.get("type")
    if snapshot.get("class"):
        return f"[magenta]{escape(snapshot['class'])}[/magenta]"
    if value is None or value_type == "NoneType":
        return "[bright_black]None[/bright_black]"
    if value_type == "bool":
        return "[green]True[/green]" if value == "True" else "[red]False[/red]"
    if value_type == "str":
        return f'"{escape(value)}"'
    if value_type in ("list", "dict", "tuple", "set"):
        return f"[magenta]{value_type}[/magenta] {escape(value)}"
    return escape(str(value))


class SessionFormatter:
    """Render session details, save summaries and replay progress to a console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_metadata(self, session_data: SessionData) -> None:
        metadata = session_data.metadata
        stats = session_data.session_metadata
        out = self.console

        out.print("[yellow]Metadata:[/yellow]")
        out.print()
        if metadata.has_description:
            out.print(f"  [cyan]Description:[/cyan]  {escape(metadata.description.value)}")
        if metadata.has_tags:
            out.print(f"  [cyan]Tags:[/cyan]         {escape(', '.join(metadata.tags.to_list()))}")
        out.print(f"  [cyan]Commands:[/cyan]     {session_data.command_count}")
        if stats.get("project_path"):
            out.print(f"  [cyan]Project:[/cyan]      {escape(str(stats['project_path']))}")
        if metadata.created_at:
            out.print(f"  [cyan]Created:[/cyan]      {metadata.created_at}")
        if metadata.updated_at:
            out.print(f"  [cyan]Updated:[/cyan]      {metadata.updated_at}")
        if metadata.interpreter_version:
            out.print(f"  [cyan]Python:[/cyan]       {metadata.interpreter_version}")
        if stats.get("duration_seconds") is not None:
            out.print(f"  [cyan]Duration:[/cyan]     {round(float(stats['duration_seconds']), 2)}s")

    def display_commands(self, session_data: SessionData, decoder: Optional[Callable[[str], str]] = None) -> None:
        out = self.console
        out.print(f"[yellow]Commands:[/yellow] [bright_black]({session_data.command_count} total)[/bright_black]")
        out.print()
        if not session_data.has_commands:
            out.print("  [yellow]No commands recorded[/yellow]")
            return

        out.print(f"[bright_black]{RULE}[/bright_black]")
        for command in session_data.commands:
            code = decoder(command.code) if decoder else command.code
            if code == HISTORY_SENTINEL:
                continue
            out.print(code, markup=False, highlight=False)
        out.print(f"[bright_black]{RULE}[/bright_black]")

    def display_variables(self, variables: Dict[str, Dict[str, Any]]) -> None:
        out = self.console
        out.print("[yellow]Variables:[/yellow]")
        out.print()
        if not variables:
            out.print("  [yellow]No variables saved[/yellow]")
            return
        for name, snapshot in variables.items():
            out.print(f"  [cyan]{escape(name)}[/cyan]  =  {format_variable(snapshot)}")

    def display_session(self, session_data: SessionData, decoder: Optional[Callable[[str], str]] = None) -> None:
        """Full view: header, metadata, commands and (when present) variables."""
        out = self.console
        out.print()
        out.print(f"[green]Session: {escape(session_data.metadata.name.value)}[/green]")
        out.print()
        self.display_metadata(session_data)
        out.print()
        self.display_commands(session_data, decoder)
        out.print()
        if session_data.has_variables:
            self.display_variables(session_data.variables)
            out.print()

    def display_save_summary(
        self,
        name: str,
        command_count: int,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> None:
        out = self.console
        out.print()
        out.print("[green]✓ Session saved successfully![/green]")
        out.print()
        out.print(f"  [cyan]Name:[/cyan]        {escape(name)}")
        out.print(f"  [cyan]Commands:[/cyan]    {command_count}")
        if description:
            out.print(f"  [cyan]Description:[/cyan] {escape(description)}")
        if tags:
            out.print(f"  [cyan]Tags:[/cyan]        {escape(', '.join(tags))}")
        out.print()

    def display_execution_header(self, session_data: SessionData) -> None:
        out = self.console
        out.print()
        out.print("[green]✓ Executing session...[/green]")
        out.print()
        out.print(f"  [cyan]Name:[/cyan]        {escape(session_data.metadata.name.value)}")
        out.print(f"  [cyan]Commands:[/cyan]    {session_data.command_count}")
        if session_data.metadata.has_description:
            out.print(f"  [cyan]Description:[/cyan] {escape(session_data.metadata.description.value)}")
        out.print()
