"""Best-effort deletion of every remote resource a run created.

This is the one place where failures do not short-circuit: each deletion
is attempted on its own, failures are logged and the run continues, so a
broken collection delete never strands the files or turns behind it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from storepipe.api.protocol import ApiClient
from storepipe.models import FileDescriptor
from storepipe.pipeline.result import Result

logger = logging.getLogger(__name__)


async def cleanup_resources(result: Result) -> Result:
    """Delete the collection, then every file, then every turn.

    Works on ``Ok`` and ``Err`` alike and returns *result* unchanged.
    """
    state = result.state
    client = state.client

    if state.collection is not None:
        await _attempt("collection", state.collection.id, client.delete_collection)

    await delete_files(client, state.files.values())

    for turn in state.turns:
        await _attempt("turn", turn.id, client.delete_turn)

    return result


async def delete_files(client: ApiClient, files: Iterable[FileDescriptor]) -> int:
    """Delete each file independently; returns how many deletions succeeded."""
    deleted = 0
    for descriptor in files:
        if await _attempt("file", descriptor.id, client.delete_file):
            deleted += 1
    return deleted


async def _attempt(kind: str, resource_id: str, delete: Callable[[str], Awaitable[object]]) -> bool:
    try:
        await delete(resource_id)
    except Exception as exc:
        logger.warning("Failed to delete %s %s: %s", kind, resource_id, exc)
        return False
    return True
