"""
chatrelay CLI: run the proxy, chat from the terminal, manage local state.

Registered as the `chatrelay` console script via pyproject.toml.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import click
import httpx
from pydantic import ValidationError

from .config import get_config, get_state_dir
from .conversation.attachments import read_attachment
from .conversation.store import ConversationNotFoundError, ConversationStore
from .persistence import FileKeyValueStore
from .session import ChatSession
from .settings_store import PRESET_PROMPTS, ChatSettings, SettingsStore

HELP_TEXT = """Commands:
  /new            start a new conversation
  /list           list conversations
  /open ID        switch to a conversation
  /delete ID      delete a conversation
  /attach PATH    attach a file to the next message
  /model ID       change the model
  /quit           exit"""


def _stores() -> tuple[SettingsStore, ConversationStore]:
    storage = FileKeyValueStore(get_state_dir())
    return SettingsStore(storage), ConversationStore(storage)


def format_relative_date(timestamp: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    days = (now - timestamp).days
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if 1 < days < 7:
        return f"{days} days ago"
    return timestamp.date().isoformat()


def _echo_conversations(store: ConversationStore) -> None:
    summaries = store.list()
    if not summaries:
        click.echo("No conversations yet.")
        return
    for s in summaries:
        marker = "*" if s.id == store.active_id else " "
        click.echo(f"{marker} {s.id}  {s.title}  ({format_relative_date(s.timestamp)})")
        click.secho(f"    {s.last_message}", dim=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level.")
def main(verbose: bool):
    """Terminal chat client and proxy for a hosted completions API."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to config).")
@click.option("--port", default=None, type=int, help="Port (defaults to config).")
def serve(host: Optional[str], port: Optional[int]):
    """Run the chat proxy."""
    import uvicorn

    config = get_config()
    uvicorn.run("chatrelay.main:app", host=host or config.host, port=port or config.port)


async def _chat_loop(session: ChatSession) -> None:
    pending = []
    click.echo(HELP_TEXT)
    while True:
        try:
            line = await asyncio.to_thread(
                click.prompt, "", prompt_suffix="> ", default="", show_default=False
            )
        except click.Abort:
            break
        line = line.strip()
        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command == "/quit":
            break
        elif command == "/new":
            summary = session.new_conversation()
            click.echo(f"Started conversation {summary.id}")
        elif command == "/list":
            _echo_conversations(session.conversations)
        elif command in ("/open", "/delete"):
            if not arg:
                click.secho(f"Usage: {command} ID", fg="red", err=True)
                continue
            if command == "/delete":
                if session.delete(arg):
                    click.echo(f"Deleted {arg}")
                else:
                    click.secho(f"No conversation {arg}", fg="red", err=True)
                continue
            try:
                messages = session.select(arg)
            except ConversationNotFoundError:
                click.secho(f"No conversation {arg}", fg="red", err=True)
                continue
            for m in messages:
                click.echo(f"[{m.role}] {m.content}")
        elif command == "/attach":
            if not arg:
                click.secho("Usage: /attach PATH", fg="red", err=True)
                continue
            pending.append(read_attachment(arg))
            click.echo(f"Attached {pending[-1].name}")
        elif command == "/model":
            if arg:
                session.set_model(arg)
            click.echo(f"Model: {session.model}")
        elif command.startswith("/"):
            click.echo(HELP_TEXT)
        else:
            reply = await session.submit(line, pending)
            pending = []
            if reply is not None:
                color = "red" if reply.content.startswith("Error: ") else None
                click.secho(reply.content, fg=color)


@main.command()
@click.option("--server", default=None, help="Proxy base URL (defaults to the local server).")
@click.option("--model", default=None, help="Model id to request.")
def chat(server: Optional[str], model: Optional[str]):
    """Chat interactively through the proxy."""
    config = get_config()
    base_url = server or f"http://{config.host}:{config.port}"
    settings_store, conversations = _stores()

    async def run():
        async with httpx.AsyncClient(base_url=base_url, timeout=None) as client:
            session = ChatSession(
                settings_store,
                conversations,
                client,
                model=model or config.default_model,
            )
            await _chat_loop(session)

    asyncio.run(run())


@main.command()
def conversations():
    """List stored conversations."""
    _, store = _stores()
    _echo_conversations(store)


@main.group()
def settings():
    """Show or change generation settings."""


@settings.command("show")
def settings_show():
    store, _ = _stores()
    click.echo(json.dumps(store.load().model_dump(), indent=2))


@settings.command("set")
@click.argument("key")
@click.argument("value")
def settings_set(key: str, value: str):
    if key not in ChatSettings.model_fields:
        raise click.BadParameter(
            f"unknown setting {key!r}; choose from {', '.join(ChatSettings.model_fields)}",
            param_hint="KEY",
        )
    store, _ = _stores()
    try:
        updated = store.update(**{key: value})
    except ValidationError as e:
        raise click.BadParameter(str(e.errors()[0]["msg"]), param_hint="VALUE")
    click.echo(f"{key} = {getattr(updated, key)!r}")


@settings.command("reset")
def settings_reset():
    store, _ = _stores()
    store.reset()
    click.echo("Settings reset to defaults.")


@settings.command("preset")
@click.argument("name", required=False)
def settings_preset(name: Optional[str]):
    """List the preset system prompts, or apply one by NAME."""
    if name is None:
        for preset, prompt in PRESET_PROMPTS.items():
            click.echo(preset)
            click.secho(f"    {prompt}", dim=True)
        return
    if name not in PRESET_PROMPTS:
        raise click.BadParameter(
            f"unknown preset {name!r}; choose from {', '.join(PRESET_PROMPTS)}",
            param_hint="NAME",
        )
    store, _ = _stores()
    store.apply_preset(name)
    click.echo(f"Applied preset {name!r}.")


if __name__ == "__main__":
    main()
