"""Command Line Interface for the Brackit client."""

import io
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from ..config.settings import Settings, get_settings
from ..database.connection import BrackitConnection, open_connection
from ..database.exceptions import BrackitError, QueryError, StateError
from ..database.models import QueryResult
from ..samples import write_sample_documents

# Initialize CLI app
app = typer.Typer(
    name="brackit-client",
    help="Send queries to a Brackit XML query server.",
    add_completion=False
)

# Rich console for beautiful output
console = Console()

HOST_OPTION = typer.Option(None, "--host", "-H", help="Server host (default from BRACKIT_HOST)")
PORT_OPTION = typer.Option(None, "--port", "-p", help="Server port (default from BRACKIT_PORT)")
DEBUG_OPTION = typer.Option(False, "--debug", "-d", help="Enable debug logging")


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('brackit_client.log'),
            logging.StreamHandler(sys.stderr) if debug else logging.NullHandler()
        ]
    )


def run_statement(connection: BrackitConnection, statement: str) -> QueryResult:
    """Execute a statement and collect its output.

    Server-side failures are recorded in the result; transport and state
    errors propagate.
    """
    start_time = time.time()
    buffer = io.StringIO()
    error = None

    try:
        connection.query(statement, buffer)
    except QueryError as e:
        error = e.message

    return QueryResult(
        statement=statement,
        output=buffer.getvalue(),
        execution_time=time.time() - start_time,
        timestamp=datetime.now(),
        error=error
    )


def display_query_result(result: QueryResult, output_format: str = "text") -> None:
    """Display a collected result in the specified format."""
    if not result.is_success:
        console.print(f"[red]Query failed: {escape(result.error)}[/red]")
        return

    if output_format.lower() == "json":
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    if not result.output:
        console.print("[yellow]Empty result.[/yellow]")
    else:
        console.print(Panel(Text(result.output), title="Result", border_style="blue"))

    # Show execution time
    console.print(f"[dim]Executed in {result.execution_time:.3f} seconds[/dim]")


def check_connection(settings: Optional[Settings] = None, host: Optional[str] = None,
                     port: Optional[int] = None) -> bool:
    """Open a connection and run the ping statement."""
    settings = settings or get_settings()

    try:
        with open_connection(settings, host=host, port=port) as connection:
            connection.query(settings.brackit_ping_statement, io.StringIO())
        return True
    except BrackitError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return False


@app.command()
def query(
    statement: Optional[str] = typer.Argument(None, help="Query statement"),
    host: Optional[str] = HOST_OPTION,
    port: Optional[int] = PORT_OPTION,
    pretty: bool = typer.Option(False, "--pretty", help="Collect the result and show it in a panel"),
    output_format: str = typer.Option("text", "--format", "-f", help="Format for --pretty: text, json"),
    debug: bool = DEBUG_OPTION
) -> None:
    """Execute a statement and stream the result to stdout."""
    setup_logging(debug)

    # Get statement from user if not provided
    if not statement:
        statement = Prompt.ask("Enter a query")

    if not statement.strip():
        console.print("[red]Statement cannot be empty.[/red]")
        raise typer.Exit(1)

    try:
        with open_connection(get_settings(), host=host, port=port) as connection:
            if pretty:
                result = run_statement(connection, statement)
                display_query_result(result, output_format)
                if not result.is_success:
                    raise typer.Exit(1)
            else:
                connection.query(statement, sys.stdout)
                sys.stdout.write("\n")
    except QueryError as e:
        console.print(f"[red]Query failed: {escape(e.message)}[/red]")
        raise typer.Exit(1)
    except BrackitError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True,
                                       help="Files holding one statement each"),
    transaction: bool = typer.Option(False, "--transaction", "-t",
                                     help="Run all files in one transaction"),
    host: Optional[str] = HOST_OPTION,
    port: Optional[int] = PORT_OPTION,
    debug: bool = DEBUG_OPTION
) -> None:
    """Execute statements stored in files, e.g. bulk load scripts."""
    setup_logging(debug)
    settings = get_settings()
    failures = 0

    try:
        with open_connection(settings, host=host, port=port) as connection:
            if transaction:
                connection.begin()

            for path in files:
                try:
                    statement = path.read_text(encoding=settings.brackit_encoding)
                    if not statement.strip():
                        console.print(f"[yellow]Skipping empty file {escape(path.name)}[/yellow]")
                        continue

                    console.print(f"[bold]{escape(path.name)}[/bold]")
                    connection.query(statement, sys.stdout)
                    sys.stdout.write("\n")
                except (QueryError, ValueError) as e:
                    # UnicodeDecodeError is a ValueError
                    failures += 1
                    reason = e.message if isinstance(e, QueryError) else str(e)
                    console.print(f"[red]✗ {escape(path.name)}: {escape(reason)}[/red]")
                    if transaction:
                        connection.rollback()
                        console.print("[yellow]Transaction rolled back.[/yellow]")
                        raise typer.Exit(1)

            if transaction:
                connection.commit()
                console.print("[green]✓ Transaction committed[/green]")
    except BrackitError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    if failures:
        console.print(f"[red]{failures} of {len(files)} statements failed[/red]")
        raise typer.Exit(1)


@app.command()
def interactive(
    host: Optional[str] = HOST_OPTION,
    port: Optional[int] = PORT_OPTION,
    debug: bool = DEBUG_OPTION
) -> None:
    """Start interactive mode for continuous querying."""
    setup_logging(debug)
    settings = get_settings()

    try:
        with open_connection(settings, host=host, port=port) as connection:
            console.print(Panel.fit(
                "[bold blue]Brackit Interactive Mode[/bold blue]\n"
                f"Connected to {connection.host}:{connection.port}\n"
                "Commands: /help, /begin, /commit, /rollback, /history, /quit",
                border_style="blue"
            ))
            repl(connection, settings.query_history_size)
    except BrackitError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


def repl(connection: BrackitConnection, history_size: int = 100) -> None:
    """Read statements and slash commands until /quit or end of input.

    Connection errors end the loop by propagating to the caller.
    """
    query_history: List[QueryResult] = []

    while True:
        try:
            prompt = "brackit*>" if connection.in_transaction else "brackit>"
            statement = Prompt.ask(f"\n[bold cyan]{prompt}[/bold cyan]", default="")

            if not statement.strip():
                continue

            # Handle special commands
            if statement.startswith('/'):
                command = statement.strip().lower()
                if command in ('/quit', '/exit'):
                    console.print("[yellow]Goodbye![/yellow]")
                    break
                elif command == '/help':
                    show_help()
                elif command == '/begin':
                    connection.begin()
                    console.print("[green]Transaction started.[/green]")
                elif command == '/commit':
                    connection.commit()
                    console.print("[green]✓ Transaction committed.[/green]")
                elif command == '/rollback':
                    connection.rollback()
                    console.print("[yellow]Transaction rolled back.[/yellow]")
                elif command == '/history':
                    show_history(query_history)
                else:
                    console.print("[red]Unknown command. Type /help for available commands.[/red]")
                continue

            result = run_statement(connection, statement)

            # Store in history
            query_history.append(result)
            del query_history[:-history_size]

            display_query_result(result)

        except (StateError, QueryError) as e:
            console.print(f"[red]{escape(str(e))}[/red]")
        except ValueError as e:
            console.print(f"[red]Invalid statement: {escape(str(e))}[/red]")
        except (KeyboardInterrupt, EOFError):
            console.print("\n[yellow]Goodbye![/yellow]")
            break


def show_help() -> None:
    """Show help information."""
    help_text = """
[bold]Available Commands:[/bold]
  /help     - Show this help message
  /begin    - Start a transaction (disables auto-commit)
  /commit   - Commit the active transaction
  /rollback - Discard the active transaction
  /history  - Show query history
  /quit     - Exit interactive mode

Anything else is sent to the server as a query statement.
A [bold]*[/bold] in the prompt marks an active transaction.
    """
    console.print(Panel(help_text, title="Help", border_style="green"))


def show_history(history: List[QueryResult]) -> None:
    """Show query history."""
    if not history:
        console.print("[yellow]No query history available.[/yellow]")
        return

    table = Table(title="Query History", show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Statement", style="cyan", max_width=60)
    table.add_column("Status", width=8)
    table.add_column("Time", style="dim")

    for i, entry in enumerate(history[-10:], 1):  # Show last 10
        status = "[green]✓[/green]" if entry.is_success else "[red]✗[/red]"
        time_str = entry.timestamp.strftime("%H:%M:%S")
        text = entry.statement[:57] + "..." if len(entry.statement) > 60 else entry.statement

        table.add_row(str(i), escape(text), status, time_str)

    console.print(table)


@app.command()
def test_connection(
    host: Optional[str] = HOST_OPTION,
    port: Optional[int] = PORT_OPTION
) -> None:
    """Test the connection to the server."""
    setup_logging(False)
    settings = get_settings()

    console.print(f"Testing connection to {host or settings.brackit_host}:{port or settings.brackit_port}...")

    if check_connection(settings, host, port):
        console.print("[green]✓ Connection successful![/green]")
    else:
        console.print("[red]✗ Connection failed![/red]")
        raise typer.Exit(1)


@app.command()
def generate_samples(
    directory: Path = typer.Argument(..., file_okay=False, help="Target directory (created if missing)"),
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of documents"),
    prefix: str = typer.Option("sample", "--prefix", help="File name prefix")
) -> None:
    """Write sample log documents for bulk loading."""
    directory.mkdir(parents=True, exist_ok=True)
    paths = write_sample_documents(directory, count=count, prefix=prefix)

    console.print(f"[green]✓ Wrote {len(paths)} documents to {escape(str(directory))}[/green]")


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"Brackit Client v{__version__}")


if __name__ == "__main__":
    app()
