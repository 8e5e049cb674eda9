"""Shared pytest fixtures for storepipe tests.

Provides a spec'd mock API collaborator with deterministic happy-path
responses, a zero-delay sleep, and small files on disk to upload.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from storepipe.api.protocol import ApiClient
from storepipe.models import (
    Attachment,
    AttachmentStatus,
    Collection,
    FileDescriptor,
    Message,
    Turn,
)
from storepipe.pipeline import Ok, init_state


def make_turn(text: str, turn_id: str = "turn-1") -> Turn:
    return Turn(id=turn_id, output=[Message("assistant", text)], model="gemini-2.5-flash")


@pytest.fixture
def api() -> MagicMock:
    """Mock ApiClient; every async method is an AsyncMock.

    * ``upload`` -> ``FileDescriptor("file-<basename>", <basename>)``
    * ``create_collection`` -> ``fileSearchStores/store-1``
    * ``attach`` -> in_progress attachment
    * ``poll_attachment_status`` -> completed
    * ``get_attachment`` -> completed attachment with a document name
    * ``create_turn`` -> one assistant reply appended to the history
    """
    client = MagicMock(spec=ApiClient)

    async def _upload(path: str) -> FileDescriptor:
        name = os.path.basename(path)
        return FileDescriptor(id=f"file-{name}", filename=name)

    async def _create_collection(name: str) -> Collection:
        return Collection(id="fileSearchStores/store-1", name=name)

    async def _attach(file_id: str, collection_id: str) -> Attachment:
        return Attachment(file_id, collection_id, AttachmentStatus.IN_PROGRESS)

    async def _get_attachment(file_id: str, collection_id: str) -> Attachment:
        return Attachment(
            file_id, collection_id, AttachmentStatus.COMPLETED, document_name=f"doc-{file_id}"
        )

    async def _create_turn(history, options):
        turn = make_turn("Hello there")
        return turn, [*history, *turn.output]

    client.upload.side_effect = _upload
    client.create_collection.side_effect = _create_collection
    client.attach.side_effect = _attach
    client.poll_attachment_status.return_value = AttachmentStatus.COMPLETED
    client.get_attachment.side_effect = _get_attachment
    client.create_turn.side_effect = _create_turn
    client.delete_collection.return_value = None
    client.delete_file.return_value = None
    client.delete_turn.return_value = None
    return client


@pytest.fixture
def ok(api: MagicMock) -> Ok:
    """A fresh ``Ok`` result around an empty state."""
    return Ok(init_state(api))


@pytest.fixture
def sleeps() -> list[float]:
    """Records every sleep requested through :func:`no_sleep`."""
    return []


@pytest.fixture
def no_sleep(sleeps: list[float]):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def sample_files(tmp_path: Path) -> dict[str, str]:
    """Three small text files keyed by label."""
    paths = {}
    for label in ("alpha", "beta", "gamma"):
        path = tmp_path / f"{label}.md"
        path.write_text(f"# {label}\n\nContent for {label}.\n")
        paths[label] = str(path)
    return paths
