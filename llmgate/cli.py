"""LLMGate Command-Line Interface.

Available Commands:
    - count-tokens: Count the tokens of a text or file
    - schema: Print the model-facing descriptor of a tool
    - chat: Run one exchange against a provider with the demo tools
"""

import asyncio
import importlib
import json
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from llmgate.exceptions import LLMGateError

console = Console()


@click.group()
def cli() -> None:
    """LLMGate CLI - provider calls, tools and token counting from the command line.

    Use --help with any command for more information.
    """
    pass


def get_weather(location: str, unit: str = "celsius") -> str:
    """Get the current weather for a location.

    Args:
        location: The city and country, e.g. "San Francisco, CA"
        unit: Temperature unit, either "celsius" or "fahrenheit"
    """
    # Simulated weather response
    return f"The weather in {location} is 22 degrees {unit} and sunny."


def get_time(timezone: str = "UTC") -> str:
    """Get the current date and time in an IANA timezone, e.g. "Europe/Paris"."""
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {timezone}") from e
    return datetime.now(zone).isoformat(timespec="seconds")


def _load_object(target: str):
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter("expected MODULE:OBJECT", param_hint="TARGET")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="TARGET") from e
    obj = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise click.BadParameter(f"{module_name} has no attribute {attribute}", param_hint="TARGET") from e
    return obj


@cli.command("count-tokens")
@click.argument("text", required=False)
@click.option("--file", "-f", "path", type=click.Path(exists=True, dir_okay=False), help="Read text from a file")
@click.option("--encoding", "-e", default=None, help="Token encoding (defaults to settings.token_encoding)")
def count_tokens_command(text: str | None, path: str | None, encoding: str | None) -> None:
    """Count the tokens of TEXT (or of --file)."""
    from llmgate.config import get_settings
    from llmgate.tokens import count_tokens

    if path is not None:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    if text is None:
        raise click.UsageError("Provide TEXT or --file")

    encoding = encoding or get_settings().token_encoding
    try:
        tokens = count_tokens(text, encoding_name=encoding)
    except LLMGateError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise SystemExit(1) from e

    console.print(f"[bold]Encoding:[/bold] {encoding}")
    console.print(f"[bold]Characters:[/bold] {len(text):,}")
    console.print(f"[bold]Tokens:[/bold] {tokens:,}")


@cli.command()
@click.argument("target")
def schema(target: str) -> None:
    """Print the descriptor of the tool at TARGET (MODULE:OBJECT).

    TARGET may name a tool instance, a tool class, a plain function or a
    pydantic model (printed as a bare input schema).
    """
    from pydantic import BaseModel

    from llmgate.tools import as_tool, describe, generate_schema

    obj = _load_object(target)
    try:
        if isinstance(obj, type) and issubclass(obj, BaseModel):
            document = generate_schema(obj)
        else:
            document = describe(as_tool(obj)).to_function_tool()
    except LLMGateError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise SystemExit(1) from e

    console.print_json(json.dumps(document))


@cli.command()
@click.argument("message")
@click.option("--provider", "-p", default=None, help="Provider name (defaults to settings.default_provider)")
@click.option("--model", "-m", default=None, help="Model name (defaults to settings.default_model)")
@click.option("--max-round-trips", "-r", default=None, type=int, help="Cap on tool round trips")
@click.option("--system", "-s", default=None, help="Optional system prompt")
@click.option("--max-tokens", default=None, type=click.IntRange(min=1), help="Cap on generated tokens per response")
@click.option("--chained", is_flag=True, help="Offer tools through chained_tool instead of full schemas")
@click.option("--stream", is_flag=True, help="Stream the response")
def chat(
    message: str,
    provider: str | None,
    model: str | None,
    max_round_trips: int | None,
    system: str | None,
    max_tokens: int | None,
    chained: bool,
    stream: bool,
) -> None:
    """Send MESSAGE to a model that can call get_weather and get_time."""
    from llmgate.config import ProviderConfig
    from llmgate.models.completion import RequestExtensions
    from llmgate.models.conversation import ConversationBuilder
    from llmgate.orchestrator import CompletionOrchestrator
    from llmgate.providers import PROVIDERS, create_provider
    from llmgate.telemetry import configure_tracing
    from llmgate.tools import ToolSet

    if provider is not None and provider not in PROVIDERS:
        raise click.BadParameter(f"choose from {', '.join(PROVIDERS)}", param_hint="--provider")

    builder = ConversationBuilder()
    if system:
        builder.push_system(system)
    conversation = builder.push_user(message).build()
    extensions = RequestExtensions(max_tokens=max_tokens) if max_tokens else None
    configure_tracing()

    async def run_chat() -> None:
        client = create_provider(ProviderConfig.from_settings(provider=provider, model=model))
        toolset = ToolSet([get_weather, get_time])
        if chained:
            orchestrator = CompletionOrchestrator.chained(client, toolset, max_round_trips=max_round_trips)
        else:
            orchestrator = CompletionOrchestrator(client, toolset, max_round_trips=max_round_trips)
        console.print(f"[bold cyan]Provider:[/bold cyan] {client.name} ({client.config.model})\n")

        if stream:
            async for part in orchestrator.stream(conversation, extensions=extensions):
                if part.kind == "content":
                    console.print(part.content, end="", markup=False)
                elif part.kind == "tool_call":
                    console.print(f"\n[bold]Tool Call:[/bold] {part.tool_call.name} {part.tool_call.arguments_json}")
                elif part.kind == "tool_result":
                    console.print(f"[bold]Tool Result:[/bold] {part.tool_result.content}")
            console.print()
            return

        result = await orchestrator.run(conversation, extensions=extensions)
        if result.tool_execution_history:
            table = Table(title="Tool Calls")
            table.add_column("Tool", style="cyan")
            table.add_column("Arguments")
            table.add_column("Result")
            for entry in result.tool_execution_history:
                arguments = entry["arguments"]
                if not isinstance(arguments, str):
                    arguments = json.dumps(arguments)
                style = "red" if entry["error"] else "green"
                table.add_row(entry["tool_name"], Text(arguments), Text(entry["result"], style=style))
            console.print(table)
        console.print("[bold]Response:[/bold]")
        console.print(result.final_response, markup=False)
        if result.tokens_used:
            console.print(f"\n[bold]Tokens:[/bold] {result.tokens_used.get('total', 0):,}")

    try:
        asyncio.run(run_chat())
    except LLMGateError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    cli()
