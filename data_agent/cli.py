"""
Data Agent CLI

Command-line interface for asking questions against the configured database.

Usage:
    data-agent ask "What album was released in 2016?"   # Single question
    data-agent chat                                      # Interactive REPL
    data-agent schema                                    # Show loaded tables
    data-agent sanitize "SELECT * FROM album"            # Apply identifier aliases
    data-agent explain "SELECT ttle FROM albm"            # Describe what SQL does
    data-agent serve --port 8000                         # Run the HTTP API
"""

import asyncio
import logging
import sys
import uuid
from typing import Any

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from data_agent import __version__
from data_agent.config import get_settings
from data_agent.models.errors import PipelineError
from data_agent.models.pipeline import PipelineOutcome
from data_agent.pipeline.aliases import load_alias_table
from data_agent.pipeline.orchestrator import QuestionPipeline, create_pipeline
from data_agent.pipeline.sanitizer import sanitize as sanitize_sql

console = Console()

EXIT_COMMANDS = {"exit", "quit", "q", ":q"}


def configure_cli_logging() -> None:
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("data_agent", "httpx", "openai", "asyncio", "asyncpg"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


async def start_pipeline() -> QuestionPipeline:
    """Build the pipeline from settings and load the schema."""
    pipeline = create_pipeline(get_settings())
    try:
        await pipeline.start()
    except Exception:
        await pipeline.close()
        raise
    return pipeline


def format_outcome(outcome: PipelineOutcome, show_sql: bool = True, max_rows: int = 20) -> None:
    """Display answer, SQL and a preview of the rows."""
    console.print(Panel(Markdown(outcome.answer), title="[bold green]Answer[/bold green]"))

    for note in outcome.notes:
        console.print(f"[yellow]{note}[/yellow]")

    if show_sql and outcome.sql:
        console.print("\n[bold cyan]Generated SQL:[/bold cyan]")
        console.print(Panel(outcome.sql, title="SQL", border_style="cyan", highlight=True))

    rows = outcome.result.rows
    if rows:
        console.print(
            f"\n[bold cyan]Results[/bold cyan] "
            f"[dim]({outcome.result.row_count} rows, chart: {outcome.chart_type.value})[/dim]"
        )
        console.print(_rows_table(rows, max_rows))


def _rows_table(rows: list[dict[str, Any]], max_rows: int) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    columns = list(rows[0].keys())
    for col_name in columns:
        table.add_column(str(col_name))
    for row in rows[:max_rows]:
        table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
    if len(rows) > max_rows:
        table.caption = f"{len(rows) - max_rows} more rows not shown"
    return table


@click.group()
@click.version_option(version=__version__, prog_name="data-agent")
def cli():
    """Data Agent - ask questions about a PostgreSQL database in plain language."""
    configure_cli_logging()


@cli.command()
@click.argument("question")
@click.option("--conversation-id", default=None, help="Conversation id for follow-up context")
@click.option("--no-sql", is_flag=True, help="Hide the generated SQL")
def ask(question: str, conversation_id: str | None, no_sql: bool):
    """Ask a single question and exit."""

    async def run_question():
        pipeline = None
        try:
            pipeline = await start_pipeline()
            with console.status("[cyan]Processing question...[/cyan]", spinner="dots"):
                outcome = await pipeline.run(question, conversation_id)
            format_outcome(outcome, show_sql=not no_sql)
        except PipelineError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        finally:
            if pipeline is not None:
                await pipeline.close()

    asyncio.run(run_question())


@cli.command()
def chat():
    """Interactive REPL; follow-up questions share one conversation."""
    console.print(
        Panel.fit(
            "[bold green]Data Agent Interactive Mode[/bold green]\n"
            "Ask questions in natural language. Type 'exit' or 'quit' to leave.",
            border_style="green",
        )
    )
    conversation_id = f"cli_{uuid.uuid4().hex[:12]}"

    async def run_chat():
        pipeline = None
        try:
            pipeline = await start_pipeline()
            console.print("[green]✓ Pipeline initialized[/green]\n")
            while True:
                try:
                    question = console.input("[bold cyan]You:[/bold cyan] ").strip()
                except (EOFError, KeyboardInterrupt):
                    console.print("\n[yellow]Goodbye![/yellow]")
                    break
                if not question:
                    continue
                if question.lower() in EXIT_COMMANDS:
                    console.print("[yellow]Goodbye![/yellow]")
                    break
                try:
                    with console.status("[cyan]Processing...[/cyan]", spinner="dots"):
                        outcome = await pipeline.run(question, conversation_id)
                    format_outcome(outcome)
                    console.print()
                except PipelineError as e:
                    console.print(f"[red]Error: {e.message}[/red]\n")
        except Exception as e:
            console.print(f"[red]Failed to initialize pipeline: {e}[/red]")
            sys.exit(1)
        finally:
            if pipeline is not None:
                await pipeline.close()

    asyncio.run(run_chat())


@cli.command()
def schema():
    """List tables and columns from the database catalog."""

    async def show_schema():
        pipeline = None
        try:
            pipeline = await start_pipeline()
            snapshot = await pipeline.catalog.get()
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        finally:
            if pipeline is not None:
                await pipeline.close()

        table = Table(title="Schema", show_header=True, header_style="bold cyan")
        table.add_column("Table")
        table.add_column("Columns")
        table.add_column("Rows (est.)", justify="right")
        for entry in snapshot.tables:
            hint = entry.row_count_hint
            table.add_row(
                entry.qualified_name,
                ", ".join(entry.column_names),
                "-" if hint is None else str(hint),
            )
        console.print(table)

    asyncio.run(show_schema())


@cli.command()
@click.argument("sql")
@click.option(
    "--aliases",
    "aliases_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML alias table (defaults to the configured one)",
)
def sanitize(sql: str, aliases_path: str | None):
    """Rewrite SQL with the identifier alias table."""
    try:
        aliases = load_alias_table(aliases_path or get_settings().pipeline.aliases_path)
        click.echo(sanitize_sql(sql, aliases))
    except PipelineError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("sql")
def explain(sql: str):
    """Explain what a SQL statement does, without running it."""

    async def run_explain():
        pipeline = None
        try:
            pipeline = await start_pipeline()
            with console.status("[cyan]Explaining query...[/cyan]", spinner="dots"):
                explanation = await pipeline.explain(sql)
            console.print(Panel(Markdown(explanation), title="[bold green]Explanation[/bold green]"))
        except PipelineError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        finally:
            if pipeline is not None:
                await pipeline.close()

    asyncio.run(run_explain())


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API_HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "data_agent.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


if __name__ == "__main__":
    cli()
