"""CLI for browsing the OpenRouter model catalog."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from openrouter_models.models.registry import ModelDescriptor

app = typer.Typer(
    name="openrouter-models",
    help="Browse and validate OpenRouter models through the shared model cache.",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from openrouter_models import __version__

        typer.echo(f"openrouter-models v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log at DEBUG level."),
    ] = False,
) -> None:
    """Browse and validate OpenRouter models."""
    from openrouter_models.logging import bind_context, clear_context, configure_logging
    from openrouter_models.settings import settings

    configure_logging(
        json_output=settings.log_json,
        log_level="DEBUG" if verbose else settings.log_level,
    )
    clear_context()
    bind_context(command=ctx.invoked_subcommand)


def _models_table(models: list[ModelDescriptor]) -> Table:
    table = Table()
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Context", justify="right")
    table.add_column("Prompt $/1K", justify="right")
    table.add_column("Completion $/1K", justify="right")
    for model in models:
        table.add_row(
            model.id,
            model.name,
            str(model.context_length),
            model.pricing.prompt,
            model.pricing.completion,
        )
    return table


@app.command()
def info() -> None:
    """Show configuration."""
    from openrouter_models import __version__
    from openrouter_models.settings import settings

    console.print(f"[bold]OpenRouter Models[/bold] v{__version__}")
    console.print()
    console.print("[bold]Configuration:[/bold]")
    console.print(f"  Base URL: {settings.base_url}")
    console.print(f"  Cache TTL: {settings.cache_ttl:.0f}s")
    console.print(
        f"  Backoff: {settings.backoff_base_delay}s doubling to {settings.backoff_max_delay}s,"
        f" {settings.max_attempts} attempts"
    )
    console.print(f"  Default Model: {settings.default_model or '-'}")

    if settings.has_api_key:
        console.print("  OpenRouter API Key: [green]configured[/green]")
    else:
        console.print("  OpenRouter API Key: [yellow]not configured[/yellow]")


@app.command("list")
def list_models(
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Only show models from this provider"),
    ] = None,
) -> None:
    """List all models in the catalog."""
    from openrouter_models.model_cache import get_model_cache

    cache = get_model_cache()
    catalog = asyncio.run(cache.get_catalog())
    if catalog is None:
        error_console.print(f"[red]Failed to fetch models:[/red] {cache.last_error}")
        raise typer.Exit(1)

    models = list(catalog.entries)
    if provider:
        models = [m for m in models if m.provider.lower() == provider.lower()]
    console.print(_models_table(models))
    console.print(f"{len(models)} of {len(catalog.entries)} models")


@app.command()
def show(
    model: Annotated[str, typer.Argument(help="Model id, e.g. anthropic/claude-sonnet-4")],
) -> None:
    """Show details for one model."""
    from openrouter_models.model_cache import get_model_cache

    descriptor = asyncio.run(get_model_cache().get_model_info(model))
    if descriptor is None:
        error_console.print(f"[red]Model not found:[/red] {model}")
        raise typer.Exit(1)

    caps = descriptor.capabilities
    console.print(f"[bold]{descriptor.id}[/bold]  {descriptor.name}")
    console.print(f"  {descriptor.description or 'No description available'}")
    console.print(f"  Context length: {descriptor.context_length}")
    console.print(
        f"  Pricing: ${descriptor.pricing.prompt}/1K prompt,"
        f" ${descriptor.pricing.completion}/1K completion"
    )
    console.print(
        f"  Functions: {caps.functions}  Tools: {caps.tools}"
        f"  Vision: {caps.vision}  JSON mode: {caps.json_mode}"
    )


@app.command()
def validate(
    model: Annotated[str, typer.Argument(help="Model id to check")],
) -> None:
    """Check that a model id exists. Exits 1 if it does not."""
    from openrouter_models.model_cache import get_model_cache

    if asyncio.run(get_model_cache().validate_model(model)):
        console.print(f"[green]valid[/green] {model}")
        return
    error_console.print(f"[red]Model not found:[/red] {model}")
    raise typer.Exit(1)


@app.command()
def search(
    query: Annotated[str | None, typer.Option("--query", "-q", help="Text to search for")] = None,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="Provider prefix")] = None,
    min_context: Annotated[int | None, typer.Option("--min-context")] = None,
    max_context: Annotated[int | None, typer.Option("--max-context")] = None,
    max_prompt_price: Annotated[float | None, typer.Option("--max-prompt-price")] = None,
    max_completion_price: Annotated[float | None, typer.Option("--max-completion-price")] = None,
    tools: Annotated[bool, typer.Option("--tools", help="Require tool calling")] = False,
    vision: Annotated[bool, typer.Option("--vision", help="Require image input")] = False,
    json_mode: Annotated[bool, typer.Option("--json-mode", help="Require JSON mode")] = False,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1)] = 10,
) -> None:
    """Search the catalog."""
    from openrouter_models.errors import FetchError
    from openrouter_models.model_cache import get_model_cache
    from openrouter_models.models.search import CapabilityFilter, SearchFilters
    from openrouter_models.search import ModelSearch

    filters = SearchFilters(
        query=query,
        provider=provider,
        min_context_length=min_context,
        max_context_length=max_context,
        max_prompt_price=max_prompt_price,
        max_completion_price=max_completion_price,
        capabilities=CapabilityFilter(tools=tools, vision=vision, json_mode=json_mode),
        limit=limit,
    )

    try:
        result = asyncio.run(ModelSearch(get_model_cache()).search(filters))
    except FetchError as e:
        error_console.print(f"[red]Failed to fetch models:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(_models_table(result.models))
    console.print(f"{result.filtered_count} shown, {result.total_models} in catalog")


@app.command()
def chat(
    message: Annotated[str, typer.Argument(help="User message to send")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model id, defaults to OPENROUTER_DEFAULT_MODEL"),
    ] = None,
    system: Annotated[str | None, typer.Option("--system", "-s", help="System prompt")] = None,
    temperature: Annotated[float, typer.Option("--temperature", "-t")] = 1.0,
    max_tokens: Annotated[int | None, typer.Option("--max-tokens")] = None,
) -> None:
    """Send one message and print the completion."""
    from openrouter_models.chat import ChatClient
    from openrouter_models.errors import ChatCompletionError
    from openrouter_models.models.chat import ChatCompletionRequest, ChatMessage
    from openrouter_models.settings import settings

    messages = []
    if system:
        messages.append(ChatMessage(role="system", content=system))
    messages.append(ChatMessage(role="user", content=message))
    request = ChatCompletionRequest(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )

    try:
        response = asyncio.run(ChatClient(settings).complete(request))
    except ChatCompletionError as e:
        error_console.print(f"[red]Chat completion failed:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(response.content, markup=False)
    console.print(f"[dim]{response.model}, {response.usage.total_tokens} tokens[/dim]")
