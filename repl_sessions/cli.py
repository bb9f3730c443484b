"""
Thin CLI layer - orchestrates library components without business logic.

The same command group serves two callers: the ``replsess`` entry point and
the interactive shell, where the commands are typed as ``session:<command>``.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import json
import sys
from dataclasses import dataclass
from typing import Callable as _Callable, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from .config import (
    CONFIG_ENV,
    CONFIG_INIT_TEMPLATE,
    HISTORY_FILE_ENV,
    SESSIONS_DIR_ENV,
    SessionConfig,
    get_config_file_path,
    load_config,
    load_config_file,
)
from .context import SessionContext, build_context
from .decoder import decode
from .errors import SessionError, SessionNotFoundError, ValidationError
from .formatters import get_formatter
from .logging_config import configure_logging
from .models import SessionData, SessionDescription, SessionMetadata, SessionName, SessionTags
from .shell import SessionShell

app = typer.Typer(
    help=(
        "Save, list, view, replay and update named sessions of an interactive Python shell.\n\n"
        "Start a recording shell with 'replsess shell'. Inside it, the same commands are "
        "available as session:<command>, e.g. 'session:save my-work -t api'.\n\n"
        "Override default paths with environment variables:\n\n"
        f"  {SESSIONS_DIR_ENV}     Directory holding <name>.json session files\n\n"
        f"  {HISTORY_FILE_ENV} History log written by the shell"
    ),
)

config_app = typer.Typer(
    help=(
        "View and manage the repl_sessions config file.\n\n"
        "Config file location (priority order):\n\n"
        "  1. --config CLI flag\n"
        f"  2. {CONFIG_ENV} env var\n"
        "  3. OS default: ~/Library/Application Support/repl_sessions/config.json (macOS)\n"
        "               : ~/.config/repl_sessions/config.json (Linux)"
    ),
)

app.add_typer(config_app, name="config", rich_help_panel="Configuration")

console = Console()
err_console = Console(stderr=True)

# typer may bundle its own click, so take the base error class from what typer raises.
_CLICK_ERROR = next(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "ClickException")


def _register_alias(sub_app: "typer.Typer", func: _Callable, *names: str) -> None:
    """Register func as a command under each name in names on sub_app."""
    for name in names:
        sub_app.command(name)(func)


def _fail(message: str) -> NoReturn:
    """Print one error line on stderr and exit 1."""
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


# ── Root app callback (global options) ────────────────────────────────────────

@dataclass
class CliState:
    """Global options, plus the context built from them on first use."""

    config: SessionConfig
    context: Optional[SessionContext] = None


@app.callback(invoke_without_command=True)
def app_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config",
        help=(
            "Path to the repl_sessions config JSON file. "
            "Default: OS config dir / repl_sessions / config.json."
        ),
        envvar=CONFIG_ENV,
    ),
    sessions_dir: Optional[str] = typer.Option(
        None, "--sessions-dir",
        help="Directory holding session files. Overrides the config file.",
        envvar=SESSIONS_DIR_ENV,
    ),
    history_file: Optional[str] = typer.Option(
        None, "--history-file",
        help="History log written by the shell. Overrides the config file.",
        envvar=HISTORY_FILE_ENV,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    # Inside the shell (or a test) the caller injects a ready SessionContext.
    if not isinstance(ctx.obj, SessionContext):
        cfg = load_config(config, sessions_dir, history_file)
        configure_logging("DEBUG" if verbose else cfg.log_level)
        ctx.obj = CliState(config=cfg)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


def get_context(ctx: typer.Context) -> SessionContext:
    """Return the injected SessionContext, or build one from the global options."""
    obj = ctx.find_root().obj
    if isinstance(obj, SessionContext):
        return obj
    if obj.context is None:
        try:
            obj.context = build_context(obj.config)
        except SessionError as exc:
            _fail(str(exc))
    return obj.context


def _current_config(ctx: typer.Context) -> SessionConfig:
    """Effective config, whether the caller injected a SessionContext or not."""
    return ctx.find_root().obj.config


# ── Helpers ───────────────────────────────────────────────────────────────────

def _generate_session_name() -> str:
    return "session-" + datetime.datetime.now().strftime("%Y-%m-%d-%H%M%S")


def _validated_name(name: str) -> SessionName:
    try:
        return SessionName(name)
    except ValidationError as exc:
        _fail(exc.first_error)


def _load_or_exit(context: SessionContext, name: str) -> SessionData:
    session_name = _validated_name(name)
    try:
        return context.store.load(session_name)
    except SessionNotFoundError as exc:
        _fail(str(exc))
    except SessionError as exc:
        _fail(f"Failed to load session: {exc}")


def _snapshot_variables(context: SessionContext) -> None:
    """Record the shell's user variables in the tracker (PythonInterpreter only)."""
    user_variables = getattr(context.interpreter, "user_variables", None)
    if user_variables is None:
        return
    for name, value in user_variables():
        context.tracker.track_variable(name, value)


def _replay(context: SessionContext, session_data: SessionData) -> None:
    context.formatter.display_execution_header(session_data)
    context.runner.execute_with_summary(context.interpreter, session_data, context.tracker, context.console)


def _run_in_shell(context: SessionContext, args: List[str]) -> None:
    """Dispatch one ``session:*`` line typed in the shell to this command group."""
    command = typer.main.get_command(app)
    try:
        command.main(args, prog_name="session", obj=context, standalone_mode=False)
    except typer.Abort:
        err_console.print("[yellow]Aborted.[/yellow]")
    except _CLICK_ERROR as exc:
        exc.show()


# ── Session commands ──────────────────────────────────────────────────────────

@app.command("list")
def list_sessions(
    ctx: typer.Context,
    tag: Optional[List[str]] = typer.Option(
        None, "--tag", "-t",
        help="Only sessions carrying this tag. Repeat or comma-separate to require several.",
    ),
    fmt: str = typer.Option("table", "--format", "-f", help="Output format: table, json, plain. Default: table"),
) -> None:
    """List saved sessions, most recently updated first.

    Examples:
        replsess list
        replsess list --tag api --tag debug
        replsess list --format json
    """
    try:
        formatter = get_formatter(fmt)
        wanted = SessionTags.parse(tag).to_list()
    except ValidationError as exc:
        _fail(exc.first_error)
    except ValueError as exc:
        _fail(str(exc))

    context = get_context(ctx)
    sessions = context.store.list(wanted)
    if not sessions:
        suffix = f" with tags: {', '.join(wanted)}" if wanted else ""
        console.print(f"[yellow]No sessions found{escape(suffix)}[/yellow]")
        return
    sys.stdout.write(formatter.format_many(sessions).rstrip("\n") + "\n")


@app.command("save")
def save_session(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Session name. Default: session-YYYY-MM-DD-HHMMSS."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing session without asking."),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Session description."),
    tags: Optional[List[str]] = typer.Option(None, "--tags", "-t", help="Tags, comma-separated or repeated."),
) -> None:
    """Save the commands typed in this shell as a named session.

    Examples:
        session:save
        session:save my-work -d "Testing the API" -t api,debug
        session:save my-work --force
    """
    context = get_context(ctx)
    try:
        session_name = SessionName.from_optional(name) or SessionName(_generate_session_name())
        session_description = SessionDescription.from_optional(description)
        session_tags = SessionTags.parse(tags)
    except ValidationError as exc:
        _fail(exc.first_error)

    context.history.capture_into(context.tracker)
    if not context.tracker.has_commands:
        _fail("No commands to save. Execute some commands first.")

    if context.store.exists(session_name) and not force:
        console.print(f"[yellow]Session '{session_name}' already exists.[/yellow]")
        if not typer.confirm("Overwrite existing session?", default=False):
            console.print("Save cancelled.")
            return

    _snapshot_variables(context)
    metadata = SessionMetadata(name=session_name, description=session_description, tags=session_tags)
    try:
        saved = context.store.save(metadata, context.tracker)
    except SessionError as exc:
        _fail(f"Failed to save session: {exc}")

    context.formatter.display_save_summary(
        saved.metadata.name.value,
        saved.command_count,
        session_description.value if session_description else None,
        session_tags.to_list(),
    )


@app.command("view")
def view_session(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Session to show."),
) -> None:
    """Show a session's metadata, commands and saved variables.

    Examples:
        replsess view my-work
    """
    context = get_context(ctx)
    session_data = _load_or_exit(context, name)
    context.formatter.display_session(session_data, decode)


def _execute_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Session to replay."),
) -> None:
    """Replay a saved session's commands in this shell.

    Failing commands are reported and skipped. Afterwards 'session:update'
    appends anything new you type to the same session.

    Examples:
        session:execute my-work
        session:exec my-work
    """
    context = get_context(ctx)
    session_data = _load_or_exit(context, name)
    _replay(context, session_data)


_register_alias(app, _execute_cmd, "execute", "exec")


@app.command("edit")
def edit_session(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Session to edit."),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description (empty clears it)."),
    add_tag: Optional[List[str]] = typer.Option(None, "--add-tag", help="Add tag(s)."),
    remove_tag: Optional[List[str]] = typer.Option(None, "--remove-tag", help="Remove tag(s)."),
    set_tags: Optional[List[str]] = typer.Option(None, "--set-tags", "-t", help="Replace all tags."),
) -> None:
    """Edit a session's description and tags. Commands are left untouched.

    --set-tags wins over --add-tag/--remove-tag; otherwise tags are added, then removed.

    Examples:
        replsess edit my-work -d "Testing REST API endpoints"
        replsess edit my-work --add-tag debug --remove-tag old
        replsess edit my-work --set-tags production,critical
    """
    context = get_context(ctx)
    session_data = _load_or_exit(context, name)
    metadata = session_data.metadata

    try:
        new_description = metadata.description
        changed = False
        if description is not None:
            new_description = SessionDescription.from_optional(description)
            changed = True

        if set_tags:
            new_tags = SessionTags.parse(set_tags)
        else:
            new_tags = metadata.tags
            if add_tag:
                new_tags = new_tags.add(SessionTags.parse(add_tag))
            if remove_tag:
                new_tags = new_tags.remove(SessionTags.parse(remove_tag))
        if new_tags != metadata.tags:
            changed = True
    except ValidationError as exc:
        _fail(exc.first_error)

    if not changed:
        console.print("[yellow]No changes specified. Use --description, --add-tag, --remove-tag, or --set-tags.[/yellow]")
        return

    updated = SessionData(
        metadata=SessionMetadata(
            name=metadata.name,
            description=new_description,
            tags=new_tags,
            created_at=metadata.created_at,
            interpreter_version=metadata.interpreter_version,
            runtime_version=metadata.runtime_version,
        ).with_updated_timestamp(),
        commands=session_data.commands,
        variables=session_data.variables,
        session_metadata=session_data.session_metadata,
    )
    try:
        context.store.update(updated)
    except SessionError as exc:
        _fail(f"Failed to edit session: {exc}")

    console.print()
    console.print("[green]✓ Session updated successfully![/green]")
    console.print()
    console.print(f"  [cyan]Name:[/cyan]        {escape(metadata.name.value)}")
    if new_description:
        console.print(f"  [cyan]Description:[/cyan] {escape(new_description.value)}")
    if len(new_tags):
        console.print(f"  [cyan]Tags:[/cyan]        {escape(', '.join(new_tags.to_list()))}")
    console.print()


@app.command("delete")
def delete_session(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Session to delete."),
    force: bool = typer.Option(False, "--force", "-f", help="Delete without asking."),
) -> None:
    """Delete a saved session.

    Examples:
        replsess delete old-work
        replsess delete old-work --force
    """
    context = get_context(ctx)
    session_name = _validated_name(name)
    if not context.store.exists(session_name):
        _fail(str(SessionNotFoundError(session_name.value)))

    if not force and not typer.confirm(f"Are you sure you want to delete session '{session_name}'?", default=False):
        console.print("Delete cancelled.")
        return

    try:
        context.store.delete(session_name)
    except SessionError as exc:
        _fail(f"Failed to delete session: {exc}")

    console.print()
    console.print(f"[green]✓ Session '{escape(session_name.value)}' deleted successfully![/green]")
    console.print()


@app.command("update")
def update_session(
    ctx: typer.Context,
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Replace the description."),
    tags: Optional[List[str]] = typer.Option(None, "--tags", "-t", help="Replace the tags."),
) -> None:
    """Append the commands typed since the session was loaded to that session.

    Only works in a shell that replayed a session ('replsess shell --session NAME'
    or 'session:execute NAME').

    Examples:
        session:update
        session:update -d "Updated API testing session"
    """
    context = get_context(ctx)
    try:
        new_description = SessionDescription.from_optional(description)
        new_tags = SessionTags.parse(tags) if tags else None
    except ValidationError as exc:
        _fail(exc.first_error)

    if not context.tracker.has_loaded_session:
        err_console.print("[red]No session is currently loaded.[/red]")
        err_console.print("[yellow]Load a session using: replsess shell --session my-work[/yellow]")
        raise typer.Exit(code=1)

    try:
        result = context.updater.update(context.tracker, new_description, new_tags)
    except SessionNotFoundError as exc:
        _fail(str(exc))
    except SessionError as exc:
        _fail(f"Failed to update session: {exc}")

    if not result.has_changes:
        console.print("[yellow]No new commands to add to the session.[/yellow]")
        return
    console.print(f"[green]✓ Session '{escape(result.name)}' updated successfully![/green]")
    console.print(f"  [yellow]Added {result.added} new command(s)[/yellow]")
    console.print(f"  [yellow]Total commands: {result.total}[/yellow]")


@app.command("shell")
def shell(
    ctx: typer.Context,
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Replay this session before the first prompt."),
) -> None:
    """Start the interactive recording shell.

    Examples:
        replsess shell
        replsess shell --session my-work
    """
    context = get_context(ctx)
    if context.in_shell:
        _fail("Already inside a session shell.")

    if session:
        _replay(context, _load_or_exit(context, session))

    SessionShell(context, dispatch=lambda args: _run_in_shell(context, args)).run()


# ── Config app ───────────────────────────────────────────────────────────────

def _config_file(ctx: typer.Context):
    return _current_config(ctx).config_file or get_config_file_path()


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Print the config file path (whether or not the file exists).

    Examples:
        replsess config path
        replsess --config /tmp/my.json config path
    """
    typer.echo(str(_config_file(ctx)))


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    fmt: str = typer.Option("table", "--format", "-f", help="Output format: table, json, plain."),
) -> None:
    """Show the effective configuration and where the config file lives.

    Examples:
        replsess config show
        replsess config show --format json
    """
    config_file = _config_file(ctx)
    settings = _current_config(ctx).to_dict()
    settings.pop("config_file", None)

    if fmt == "json":
        sys.stdout.write(json.dumps({
            "config_file": str(config_file),
            "exists": config_file.exists(),
            "file": load_config_file(config_file),
            "effective": settings,
        }, indent=2) + "\n")
        return

    console.print(f"Config file: [cyan]{escape(str(config_file))}[/cyan]")
    if not config_file.exists():
        console.print("[yellow]File does not exist. Run 'replsess config init' to create it.[/yellow]")

    if fmt == "plain":
        for k, v in settings.items():
            console.print(f"{k}: {v}", markup=False, highlight=False)
        return

    from rich.table import Table
    table = Table(title="Effective configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for k, v in settings.items():
        table.add_row(k, escape(v if isinstance(v, str) else json.dumps(v)))
    console.print(table)


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force",
        help="Overwrite the config file if it already exists.",
    ),
) -> None:
    """Create a starter config.json with documented default values.

    Will NOT overwrite an existing config file unless --force is given.
    Null paths mean "use the default location".

    Examples:
        replsess config init
        replsess config init --force
    """
    config_file = _config_file(ctx)

    if config_file.exists() and not force:
        err_console.print(
            f"[yellow]Config file already exists:[/yellow] {escape(str(config_file))}\n"
            "Use --force to overwrite."
        )
        raise typer.Exit(code=1)

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(CONFIG_INIT_TEMPLATE, indent=2) + "\n", encoding="utf-8")

    console.print(f"[green]Created:[/green] {escape(str(config_file))}")
    console.print(
        "[dim]Edit the file to set the sessions directory, history file and auto-save policy.[/dim]\n"
        "[dim]Run 'replsess config show' to verify the active configuration.[/dim]"
    )


# ── Entry point ───────────────────────────────────────────────────────────────

def cli_main():
    """CLI entry point."""
    app()
