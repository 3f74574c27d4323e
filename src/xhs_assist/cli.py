"""Command-line interface for xhs-assist."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import (
    get_ai_config,
    get_config_path,
    get_content_limits,
    get_stored_ai_config,
    set_ai_config,
)
from .envelope import ContentEnvelope, GenerationResult, Mode, envelopes_from_dicts
from .llm import AIError, ProviderConfig, ProviderKind, StructuredOutput
from .log import configure_logging
from .service import AIService, DegradedReply
from .utils import mask_secret
from .validator import ContentLimits

console = Console()


def _load_history(history_file: str | None) -> list[ContentEnvelope]:
    """Load a conversation saved with --save-history."""
    if not history_file:
        return []
    try:
        records = json.loads(Path(history_file).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"history file is not valid JSON: {e}", param_hint="--history") from e
    if not isinstance(records, list):
        raise click.BadParameter("history file must contain a JSON list of turns", param_hint="--history")
    try:
        return envelopes_from_dicts(records)
    except (KeyError, ValueError) as e:
        raise click.BadParameter(f"invalid turn in history file: {e}", param_hint="--history") from e


def _load_ai_settings() -> tuple[ProviderConfig, ContentLimits]:
    """Read provider settings and length limits, exiting on invalid values."""
    try:
        return get_ai_config(), get_content_limits()
    except ValueError as e:
        console.print(
            f"Invalid configuration in {get_config_path()}: {e}",
            style="red", markup=False, highlight=False, soft_wrap=True,
        )
        raise SystemExit(1)


def _save_history(path: str, history: list[ContentEnvelope]) -> None:
    records = [envelope.to_dict() for envelope in history]
    Path(path).write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")


def _print_result(result: GenerationResult) -> None:
    if result.title:
        console.print("\n[bold cyan]Title[/bold cyan]")
        console.print(result.title, markup=False, highlight=False)
    console.print("\n[bold cyan]Content[/bold cyan]")
    console.print(result.content, markup=False, highlight=False)
    stats = f"{len(result.content)} characters"
    if result.tokens_used is not None:
        stats += f", {result.tokens_used} tokens"
    console.print(f"\n[dim]{stats}[/dim]")


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show info and debug logs on stderr")
@click.option("--log-json", is_flag=True, help="Write logs as JSON lines")
def cli(verbose: bool, log_json: bool):
    """xhs-assist - AI copywriting for Xiaohongshu posts and comments."""
    configure_logging(verbose=verbose, json_output=log_json)


@cli.command()
@click.option("--mode", "-m", type=click.Choice(["post", "comment", "reply"]), default="post",
              show_default=True, help="Generate a post (title + content) or a comment")
@click.option("--title", "-t", help="Title collected from the page")
@click.option("--content", "-c", "body", help="Text collected from the page")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False),
              help="Read the collected text from a file")
@click.option("--image", "-i", "images", multiple=True, type=click.Path(exists=True, dir_okay=False),
              help="Image collected from the page (can specify multiple)")
@click.option("--prompt", "-p", help="Request to send after the collected content")
@click.option("--history", "history_file", type=click.Path(exists=True, dir_okay=False),
              help="Continue a conversation saved with --save-history")
@click.option("--save-history", "save_history_file", type=click.Path(dir_okay=False),
              help="Write the conversation, including the reply, to a JSON file")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def generate(
    mode: str,
    title: str | None,
    body: str | None,
    content_file: str | None,
    images: tuple[str, ...],
    prompt: str | None,
    history_file: str | None,
    save_history_file: str | None,
    as_json: bool,
):
    """Generate a post or comment from collected content."""
    generation_mode = Mode.parse(mode)
    history = _load_history(history_file)

    if content_file:
        body = Path(content_file).read_text(encoding="utf-8")

    if title or body or images:
        history.append(ContentEnvelope.collected_from(
            title=title or "",
            content=body or "",
            images=[Path(p).read_bytes() for p in images],
            mode=generation_mode,
        ))
    if prompt:
        history.append(ContentEnvelope.user_text(prompt, mode=generation_mode))

    if not history:
        console.print("[red]Nothing to generate from.[/red]")
        console.print("[dim]Pass --title/--content/--image, --prompt or --history[/dim]")
        raise SystemExit(1)

    ai_config, limits = _load_ai_settings()
    service = AIService(ai_config, limits=limits)
    if not service.is_configured():
        console.print(f"[red]No API key configured for {service.config.provider.display_name}.[/red]")
        console.print("[dim]Run: xhs-assist config set --api-key YOUR_KEY[/dim]")
        raise SystemExit(1)

    if not as_json:
        console.print(
            f"[dim]Generating {generation_mode.value} with "
            f"{service.config.provider.display_name} ({service.config.model})...[/dim]"
        )

    try:
        outcome = service.generate(history, generation_mode)
    except AIError as e:
        console.print(e.message, style="red", markup=False, highlight=False)
        raise SystemExit(1)

    if isinstance(outcome, DegradedReply):
        history.append(ContentEnvelope.assistant_text(outcome.message, mode=generation_mode))
        if as_json:
            click.echo(json.dumps({
                "mode": outcome.mode.value,
                "error": outcome.kind.value,
                "problems": list(outcome.problems),
                "raw": outcome.raw_text,
            }, ensure_ascii=False, indent=2))
        else:
            console.print(outcome.message, style="yellow", markup=False, highlight=False)
            for problem in outcome.problems:
                console.print(f"[dim]- {problem}[/dim]")
    else:
        history.append(ContentEnvelope.from_result(outcome))
        if as_json:
            click.echo(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
        else:
            _print_result(outcome)

    if save_history_file:
        _save_history(save_history_file, history)
        if not as_json:
            console.print(f"[dim]Conversation saved to {save_history_file}[/dim]")


@cli.group()
def config():
    """Manage xhs-assist configuration."""
    pass


@config.command(name="set")
@click.option("--provider", type=click.Choice([k.value for k in ProviderKind] + ["openai", "claude", "qwen"]),
              help="Provider family")
@click.option("--api-key", help="API key for the provider")
@click.option("--model", help="Model name")
@click.option("--base-url", help="API base URL (for gateways and self-hosted servers)")
@click.option("--temperature", type=float, help="Sampling temperature")
@click.option("--max-tokens", type=int, help="Maximum tokens in the reply")
@click.option("--timeout", type=float, help="Request timeout in seconds")
@click.option("--structured-output", type=click.Choice([s.value for s in StructuredOutput]),
              help="OpenAI-compatible reply constraint")
@click.option("--max-title-length", type=int, help="Longest accepted title, in characters")
@click.option("--max-content-length", type=int, help="Longest accepted content, in characters")
def config_set(**fields):
    """Set provider settings."""
    if not any(value is not None for value in fields.values()):
        console.print("[red]Nothing to set.[/red]")
        console.print("Use: xhs-assist config set --provider openai_compatible --api-key KEY")
        raise SystemExit(1)

    set_ai_config(**fields)
    changed = ", ".join(name for name, value in fields.items() if value is not None)
    console.print(f"[green]Updated {changed}[/green]")


@config.command(name="show")
def config_show():
    """Show current configuration (hides API keys)."""
    stored = get_stored_ai_config()
    ai_config, limits = _load_ai_settings()

    if not stored:
        console.print("No configuration file found, showing defaults.")
        console.print(f"[dim]Config file: {get_config_path()}[/dim]")

    table = Table(title="AI Provider")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Provider", f"{ai_config.provider.value} ({ai_config.provider.display_name})")
    table.add_row("API Key", mask_secret(ai_config.api_key) or "[red]not set[/red]")
    table.add_row("Model", ai_config.model)
    table.add_row("Base URL", ai_config.effective_base_url)
    table.add_row("Temperature", str(ai_config.temperature))
    table.add_row("Max tokens", str(ai_config.max_tokens))
    table.add_row("Timeout", f"{ai_config.timeout}s")
    table.add_row("Structured output", ai_config.structured_output.value)
    table.add_row("Max title length", str(limits.max_title_length))
    table.add_row("Max content length", str(limits.max_content_length))

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
