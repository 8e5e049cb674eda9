"""CLI entry point for storepipe.

Provides commands:
  - ask: Create a File Search store, upload files, ask questions, clean up
  - config: Manage the Gemini API key in the system keyring
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import keyring
import typer
from keyring.errors import KeyringError
from rich.console import Console
from rich.panel import Panel

from storepipe.config import KEY_NAME, SERVICE_NAME, load_client_config
from storepipe.exceptions import MissingCredentialError
from storepipe.models import Message, UploadRequest
from storepipe.text import filter_citations, oxford_join

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="storepipe - run retrieval workflows against a Gemini File Search store",
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Manage configuration (API keys)")
app.add_typer(config_app, name="config")
console = Console()


@app.callback()
def app_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline progress (DEBUG with polling detail)"),
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    if not verbose:
        # keep the SDK's HTTP chatter out of normal runs
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _parse_file_option(value: str) -> UploadRequest:
    label, sep, path = value.partition("=")
    if not sep:
        path = value
        label = Path(value).name
    return UploadRequest(label=label, path=path)


@app.command()
def ask(
    questions: Annotated[
        list[str],
        typer.Argument(help="Questions to ask, in order; each is one turn"),
    ],
    store_name: Annotated[
        str,
        typer.Option("--store", "-s", help="Display name for the temporary File Search store"),
    ] = "storepipe",
    files: Annotated[
        list[str] | None,
        typer.Option("--file", "-f", help="File to upload, as LABEL=PATH or just PATH"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Gemini model (default from config)"),
    ] = None,
    no_wait: Annotated[
        bool,
        typer.Option("--no-wait", help="Attach without waiting, confirm ingestion afterwards"),
    ] = False,
    keep: Annotated[
        bool,
        typer.Option("--keep", help="Do not delete the store and files afterwards"),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to storepipe.json"),
    ] = None,
) -> None:
    """Upload files to a fresh store and ask questions against it.

    The Gemini API key is read from the system keyring (service: storepipe-gemini)
    or the GEMINI_API_KEY environment variable.
    """
    try:
        config = load_client_config(config_path, model=model)
    except MissingCredentialError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    # Import pipeline modules here to keep CLI startup fast for config commands
    from storepipe.api.client import GeminiFileSearchClient
    from storepipe.pipeline import (
        Err,
        Literal,
        Ok,
        UploadOptions,
        chain,
        cleanup_resources,
        confirm_collection_processing,
        create_collection,
        create_turn,
        init_state,
        upload_files,
    )

    requests = [_parse_file_option(value) for value in files or []]
    options = UploadOptions(wait=not no_wait)

    console.print(
        Panel(
            f"Store [bold]{store_name}[/bold]\n"
            f"Files: {oxford_join([r.label for r in requests]) or 'none'}\n"
            f"Questions: {len(questions)}",
            title="storepipe",
        )
    )

    async def _run():
        client = GeminiFileSearchClient(config)
        steps = [
            lambda r: create_collection(r, store_name),
            lambda r: upload_files(r, requests, options),
        ]
        if no_wait:
            steps.append(confirm_collection_processing)
        for question in questions:
            steps.append(
                lambda r, q=question: create_turn(
                    r, Literal([Message("user", q)]), {}, with_file_search=True
                )
            )
        try:
            result = await chain(Ok(init_state(client)), *steps)
            if not keep:
                await cleanup_resources(result)
            return result
        finally:
            await client.close()

    result = asyncio.run(_run())

    for question, answer in zip(questions, result.state.outputs):
        console.print(Panel(filter_citations(answer), title=question))

    if isinstance(result, Err):
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(code=1)


def _mask(secret: str) -> str:
    """Keep only the last four characters visible."""
    if len(secret) <= 8:
        return "*" * len(secret)
    return "*" * (len(secret) - 4) + secret[-4:]


@config_app.command("set-api-key")
def set_api_key(
    key: Annotated[
        str,
        typer.Argument(help="Gemini API key used for File Search stores and turns"),
    ],
) -> None:
    """Save the Gemini API key under the storepipe-gemini keyring entry."""
    if not key.strip():
        console.print("[red]Refusing to save a blank API key.[/red]")
        raise typer.Exit(code=1)

    try:
        keyring.set_password(SERVICE_NAME, KEY_NAME, key.strip())
    except KeyringError as e:
        console.print(f"[red]Keyring rejected the key:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"Saved API key {_mask(key.strip())} to keyring entry [bold]{SERVICE_NAME}[/bold]")


@config_app.command("get-api-key")
def show_api_key() -> None:
    """Show which Gemini API key is saved, with all but the last four characters hidden."""
    api_key = keyring.get_password(SERVICE_NAME, KEY_NAME)
    if not api_key:
        console.print(
            f"[yellow]Keyring entry {SERVICE_NAME} is empty.[/yellow] "
            "Run [bold]storepipe config set-api-key KEY[/bold] or export GEMINI_API_KEY."
        )
        raise typer.Exit(code=1)

    console.print(f"{SERVICE_NAME}: {_mask(api_key)}")


@config_app.command("remove-api-key")
def remove_api_key() -> None:
    """Forget the saved Gemini API key."""
    if not keyring.get_password(SERVICE_NAME, KEY_NAME):
        console.print(f"Keyring entry {SERVICE_NAME} is already empty.")
        return

    keyring.delete_password(SERVICE_NAME, KEY_NAME)
    console.print(f"Removed API key from keyring entry [bold]{SERVICE_NAME}[/bold]")
