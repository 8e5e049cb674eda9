"""Bounded polling of an attachment's ingestion status.

Transitions, per observed status:

* ``queued``      -- sleep, re-poll with the attempt counter reset to 0
* ``in_progress`` -- sleep and re-poll with ``attempts + 1`` while
  ``attempts < MAX_ATTEMPTS``; otherwise :class:`PollTimeoutError`
* terminal        -- returned to the caller

Resetting on ``queued`` means a server that keeps flipping between
``queued`` and ``in_progress`` is never timed out by the attempt budget
alone; pass ``max_wait_seconds`` to bound the total wait as well.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from storepipe.api.protocol import ApiClient
from storepipe.exceptions import ApiCallError, IngestionError, PollTimeoutError
from storepipe.models import Attachment, AttachmentStatus
from storepipe.pipeline.fsm import AttachmentLifecycle

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10
POLL_INTERVAL_SECONDS = 1.0

Sleep = Callable[[float], Awaitable[object]]

_FAILURE_MESSAGES = {
    AttachmentStatus.FAILED: "Collection file ingestion failed",
    AttachmentStatus.CANCELLED: "Collection file ingestion was cancelled",
    AttachmentStatus.EXPIRED: "Collection file ingestion expired",
}


async def poll_attachment_status(
    client: ApiClient,
    file_id: str,
    collection_id: str,
    attempts: int = 0,
    sleep: Sleep = asyncio.sleep,
    max_wait_seconds: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> AttachmentStatus:
    """Poll until the attachment reaches a terminal status and return it.

    Args:
        client: API collaborator.
        file_id: Remote file id.
        collection_id: Remote collection id.
        attempts: Starting attempt counter.
        sleep: Awaitable sleep; inject a no-op in tests.
        max_wait_seconds: Optional wall-clock bound on the whole loop.
        clock: Monotonic clock used with *max_wait_seconds*.

    Raises:
        PollTimeoutError: Attempt budget or wall-clock bound exhausted.
        ApiCallError: A poll request failed or reported an unknown status.
    """
    lifecycle = AttachmentLifecycle()
    started = clock()

    while True:
        reported = await client.poll_attachment_status(file_id, collection_id, attempts)
        status = _coerce_status(reported, file_id)
        lifecycle.observe(status)

        if lifecycle.terminal:
            return status

        if max_wait_seconds is not None and clock() - started >= max_wait_seconds:
            raise PollTimeoutError(
                f"Timeout waiting for collection file ingestion after {max_wait_seconds}s "
                f"(file {file_id})"
            )

        if status is AttachmentStatus.QUEUED:
            logger.debug("File %s queued for ingestion, resetting attempts", file_id)
            await sleep(POLL_INTERVAL_SECONDS)
            attempts = 0
            continue

        if attempts >= MAX_ATTEMPTS:
            raise PollTimeoutError("Timeout waiting for collection file ingestion")

        logger.debug(
            "Waiting for collection file ingestion to complete, attempt %d", attempts
        )
        await sleep(POLL_INTERVAL_SECONDS)
        attempts += 1


def _coerce_status(value: object, file_id: str) -> AttachmentStatus:
    try:
        return AttachmentStatus(value)
    except ValueError:
        raise ApiCallError(
            f"Unknown attachment status {value!r}", "poll_attachment_status", file_id
        ) from None


async def wait_for_attachment(
    client: ApiClient,
    file_id: str,
    collection_id: str,
    sleep: Sleep = asyncio.sleep,
    max_wait_seconds: float | None = None,
) -> Attachment:
    """Block until ingestion finishes, then fetch the final attachment record.

    Raises:
        IngestionError: Terminal status other than ``completed``.
        PollTimeoutError: See :func:`poll_attachment_status`.
        ApiCallError: Any remote call failed.
    """
    status = await poll_attachment_status(
        client, file_id, collection_id, sleep=sleep, max_wait_seconds=max_wait_seconds
    )
    if status is not AttachmentStatus.COMPLETED:
        raise IngestionError(f"{_FAILURE_MESSAGES[status]}: {file_id}", status=status.value)
    return await client.get_attachment(file_id, collection_id)
