"""CLI commands for chatcompact."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from chatcompact import __logo__, __version__
from chatcompact.chat.pipeline import ChatPipeline
from chatcompact.compaction.engine import CompactionEngine
from chatcompact.compaction.types import ConversationMessage
from chatcompact.config.loader import convert_to_camel, load_config
from chatcompact.config.schema import Config
from chatcompact.providers.base import ProviderError
from chatcompact.providers.litellm_provider import LiteLLMProvider
from chatcompact.session.store import JsonlMessageStore, LRUCache

app = typer.Typer(
    name="chatcompact",
    help=f"{__logo__} chatcompact - fit conversations into a model's context budget",
    no_args_is_help=True,
)

console = Console()

config_app = typer.Typer(help="Inspect configuration")
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} chatcompact v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route loguru output to stderr at the requested level."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    """chatcompact - fit conversations into a model's context budget."""
    configure_logging(verbose)


def read_messages(path: Path) -> list[ConversationMessage]:
    """
    Read a conversation from a JSON or JSONL file.

    JSON files hold either a list of messages or an object with a
    "messages" list.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        records = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        data = json.loads(text)
        records = data.get("messages", []) if isinstance(data, dict) else data
    return [ConversationMessage.from_dict(record) for record in records]


def build_provider(config: Config) -> LiteLLMProvider:
    return LiteLLMProvider(
        api_key=config.provider.api_key or None,
        api_base=config.provider.api_base,
        default_model=config.provider.model,
        request_timeout_seconds=config.provider.timeout_seconds,
    )


def build_engine(config: Config, provider: LiteLLMProvider | None = None) -> CompactionEngine:
    """Build the engine; without a provider the summary uses the local digest."""
    return CompactionEngine(
        provider=provider,
        model=config.get_summary_model(),
        config=config.compaction,
        summary_config=config.summary,
    )


def _override(model: Any, **changes: Any) -> Any:
    """Copy a config section with the non-None changes applied and validated."""
    updates = {k: v for k, v in changes.items() if v is not None}
    return type(model)(**{**model.model_dump(), **updates})


@app.command()
def compact(
    file: Path = typer.Argument(..., help="Conversation file (.json or .jsonl)"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Token ceiling"),
    max_messages: Optional[int] = typer.Option(None, "--max-messages", help="Message cap"),
    preserve_recent: Optional[int] = typer.Option(
        None, "--preserve-recent", help="Recent messages that are never dropped"
    ),
    drop_system: bool = typer.Option(
        False, "--drop-system", help="Do not keep the system message"
    ),
    threshold: Optional[int] = typer.Option(
        None, "--threshold", help="Dropped messages needed to add a summary"
    ),
    digest: bool = typer.Option(
        False, "--digest", help="Summarize locally instead of calling the model"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the compacted messages as JSON"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Compact a conversation file and show what would be sent to the model."""
    config = load_config(config_path)

    try:
        compaction = _override(
            config.compaction,
            max_tokens=max_tokens,
            max_messages=max_messages,
            preserve_recent_messages=preserve_recent,
            preserve_system_message=False if drop_system else None,
        )
        summary = _override(
            config.summary,
            drop_threshold=threshold,
            strategy="digest" if digest else None,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid compaction settings:[/red] {e}")
        raise typer.Exit(2)

    try:
        messages = read_messages(file)
    except (OSError, json.JSONDecodeError, ValueError, AttributeError) as e:
        console.print(f"[red]Could not read {file}:[/red] {e}")
        raise typer.Exit(1)

    config.compaction = compaction
    config.summary = summary
    provider = build_provider(config) if summary.strategy == "llm" else None
    engine = build_engine(config, provider)
    result = asyncio.run(engine.compact_with_result(messages))

    if as_json:
        console.print_json(json.dumps([m.to_dict() for m in result.messages]))
        return

    table = Table(title=f"Compacted {file.name}")
    table.add_column("ID", style="cyan")
    table.add_column("Role")
    table.add_column("Created")
    table.add_column("Content")
    for message in result.messages:
        preview = message.content if len(message.content) <= 60 else message.content[:57] + "..."
        table.add_row(message.id, message.role, str(message.created_at), preview)
    console.print(table)

    console.print(
        f"{result.messages_before} -> {result.messages_after} messages, "
        f"{result.tokens_before} -> {result.tokens_after} tokens (estimated), "
        f"{result.dropped_messages} dropped, summary: {result.summary_kind}"
    )


@app.command()
def chat(
    conversation_id: str = typer.Argument(..., help="Conversation to continue"),
    message: str = typer.Argument(..., help="User message"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Send a message in a stored conversation and print the reply."""
    config = load_config(config_path)
    provider = build_provider(config)
    pipeline = ChatPipeline(
        store=JsonlMessageStore(config.sessions_path, LRUCache(config.storage.cache_size)),
        provider=provider,
        engine=build_engine(config, provider),
        model=config.provider.model,
        max_output_tokens=config.chat.max_output_tokens,
        temperature=config.chat.temperature,
    )

    try:
        reply = asyncio.run(pipeline.reply(conversation_id, message))
    except ProviderError as e:
        console.print(f"[red]Model call failed ({e.kind}):[/red] {e}")
        raise typer.Exit(1)

    console.print(reply.content)


@config_app.command("show")
def config_show(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show the effective configuration."""
    config = load_config(config_path)
    data = convert_to_camel(config.model_dump())
    if data.get("provider", {}).get("apiKey"):
        data["provider"]["apiKey"] = "***"

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for section, values in data.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


if __name__ == "__main__":
    app()
