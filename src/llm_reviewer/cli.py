"""Command line interface for llm-reviewer."""

import asyncio
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from .config import settings
from .exceptions import ReviewError
from .logging_config import setup_logging
from .services import ReviewService

app = typer.Typer(help="llm-reviewer - LLM agent for code review")
console = Console()
err_console = Console(stderr=True)


@app.command()
def review(
    path: str = typer.Argument(..., help="Path to the project to review"),
    query: str = typer.Argument(..., help="Review instruction or question"),
    persona: str = typer.Option(settings.default_persona, "--persona", help="Reviewer persona"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Review a local project."""
    setup_logging(debug)

    err_console.print(f"[bold blue]Reviewing {path} with persona {persona!r}[/bold blue]")
    try:
        result = asyncio.run(ReviewService().review(path, query, persona))
    except ReviewError as e:
        err_console.print(f"[bold red]Review failed: {e}[/bold red]")
        raise typer.Exit(1)

    console.print(Markdown(result))


@app.command()
def serve() -> None:
    """Start the MCP server on stdio."""
    from .server import run

    run()


@app.command()
def config_check() -> None:
    """Check configuration and local tooling."""
    setup_logging()

    table = Table(title="Configuration Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Value", style="yellow")

    table.add_row(
        "Anthropic API Key",
        "✓" if settings.anthropic_api_key else "✗",
        "Set" if settings.anthropic_api_key else "Not set",
    )
    table.add_row(
        "OpenAI API Key",
        "✓" if settings.openai_api_key else "✗",
        "Set" if settings.openai_api_key else "Not set",
    )

    lsp_binary = settings.lsp_command[0] if settings.lsp_command else ""
    table.add_row(
        "Language Server",
        "✓" if lsp_binary and shutil.which(lsp_binary) else "✗",
        " ".join(settings.lsp_command) or "Not set",
    )
    table.add_row(
        "Git",
        "✓" if shutil.which("git") else "✗",
        shutil.which("git") or "Not found",
    )

    persona_dir = Path(settings.persona_dir).resolve()
    personas = sorted(p.stem for p in persona_dir.glob("*.yaml"))
    table.add_row(
        "Personas",
        "✓" if settings.default_persona in personas else "✗",
        ", ".join(personas) or f"None in {persona_dir}",
    )

    table.add_row("Log Level", "✓", settings.log_level)
    table.add_row("Review Timeout", "✓", f"{settings.review_timeout}s")
    table.add_row("Max Rounds", "✓", str(settings.max_rounds))

    console.print(table)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
