"""Upload stages: single file, parallel batch, sequential optional batch.

The two batch stages fail differently on purpose:

* :func:`upload_files` runs every upload concurrently, waits for all of
  them and keeps every success in the returned state even when it reports
  ``Err``, so :func:`~storepipe.pipeline.cleanup.cleanup_resources` can
  find and delete them later.
* :func:`upload_optional_files` uploads one at a time, stops at the first
  failure and deletes what that batch had already uploaded before
  returning ``Err``, leaving nothing dangling.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, replace

from storepipe.api.protocol import ApiClient
from storepipe.content import cleanup_temp_file, write_temp_file
from storepipe.exceptions import PipelineError, PreconditionError
from storepipe.models import AttachmentStatus, Collection, FileDescriptor, UploadRequest
from storepipe.pipeline.cleanup import delete_files
from storepipe.pipeline.polling import Sleep, wait_for_attachment
from storepipe.pipeline.result import Err, Ok, Result, fail, stage
from storepipe.pipeline.stages import remove_history, remove_outputs
from storepipe.pipeline.state import PipelineState
from storepipe.text import is_blank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadOptions:
    """How an upload treats the run's collection.

    Attributes:
        attach: Attach to the collection; ``None`` means "if one exists".
        wait: Block until ingestion reaches a terminal state. When false the
            stage returns as soon as the attach call is accepted.
        sleep: Sleep used between status polls.
        max_wait_seconds: Optional wall-clock bound on each ingestion wait.
    """

    attach: bool | None = None
    wait: bool = True
    sleep: Sleep = asyncio.sleep
    max_wait_seconds: float | None = None


DEFAULT_UPLOAD_OPTIONS = UploadOptions()


# ----------------------------------------------------------------------
# Single file
# ----------------------------------------------------------------------


@stage
async def upload_file(
    state: PipelineState,
    label: str,
    file_path: str | None,
    options: UploadOptions = DEFAULT_UPLOAD_OPTIONS,
) -> Result:
    """Upload one file under *label*, attaching it to the collection if asked.

    Re-running with a label that is already in ``files`` is a no-op.
    """
    if label in state.files:
        return Ok(state)

    resolved = os.path.abspath(os.path.expanduser(file_path)) if file_path else None
    if resolved is None or not os.path.isfile(resolved):
        raise PreconditionError(f"File does not exist: {file_path}")

    logger.info("Uploading file: %s", label)
    client = state.client
    descriptor = await client.upload(resolved)

    attach = options.attach if options.attach is not None else state.collection is not None
    if attach and state.collection is not None:
        try:
            descriptor = await _attach(client, descriptor, state.collection, options)
        except PipelineError:
            await delete_files(client, [descriptor])
            raise

    return Ok(state.with_file(label, descriptor))


async def _attach(
    client: ApiClient,
    descriptor: FileDescriptor,
    collection: Collection,
    options: UploadOptions,
) -> FileDescriptor:
    attachment = await client.attach(descriptor.id, collection.id)
    if options.wait:
        logger.debug("Waiting for %s to be processed at collection", descriptor.filename)
        attachment = await wait_for_attachment(
            client,
            descriptor.id,
            collection.id,
            sleep=options.sleep,
            max_wait_seconds=options.max_wait_seconds,
        )
    return replace(descriptor, attachment=attachment)


@stage
async def upload_optional_file(
    state: PipelineState,
    label: str,
    file_path: str | None,
    options: UploadOptions = DEFAULT_UPLOAD_OPTIONS,
) -> Result:
    """Like :func:`upload_file`, but a blank path is a successful no-op."""
    if is_blank(file_path):
        logger.info("Optional file %s not provided", label)
        return Ok(state)
    return await upload_file(Ok(state), label, file_path, options)


# ----------------------------------------------------------------------
# Batches
# ----------------------------------------------------------------------


@stage
async def upload_files(
    state: PipelineState,
    requests: Sequence[UploadRequest],
    options: UploadOptions = DEFAULT_UPLOAD_OPTIONS,
) -> Result:
    """Upload every request concurrently and merge the outcomes.

    Every task starts from the same input state and returns its own result;
    nothing is shared while they run. After all have finished, their files
    are merged in request order. If any failed, the result is ``Err``
    carrying all successful uploads and the first failure's reason.
    """
    start = Ok(state)
    outcomes = await asyncio.gather(
        *(_upload_request(start, request, options) for request in requests),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    files = dict(state.files)
    for outcome in outcomes:
        files.update(outcome.state.files)
    merged = replace(state, files=files)

    failures = [outcome for outcome in outcomes if isinstance(outcome, Err)]
    if failures:
        logger.warning("%d of %d uploads failed", len(failures), len(outcomes))
        return fail(merged, failures[0].error)

    logger.info("All files uploaded successfully")
    return Ok(merged)


async def _upload_request(start: Ok, request: UploadRequest, options: UploadOptions) -> Result:
    if request.optional:
        return await upload_optional_file(start, request.label, request.path, options)
    return await upload_file(start, request.label, request.path, options)


@stage
async def upload_optional_files(
    state: PipelineState,
    file_paths: Sequence[str | None],
    options: UploadOptions = DEFAULT_UPLOAD_OPTIONS,
) -> Result:
    """Upload the non-blank, existing paths one at a time, labelled by basename.

    On the first failure every file this call uploaded is deleted and the
    returned ``Err`` carries the files as they were before the call.
    """
    current: Result = Ok(state)
    uploaded: list[FileDescriptor] = []

    for file_path in file_paths:
        if is_blank(file_path) or not os.path.isfile(os.path.expanduser(file_path)):
            logger.info("Optional file %s not provided", file_path)
            continue

        label = os.path.basename(file_path)
        already_present = label in current.state.files
        current = await upload_file(current, label, file_path, options)

        if isinstance(current, Err):
            if uploaded:
                logger.warning("Rolling back %d uploaded files", len(uploaded))
                await delete_files(state.client, uploaded)
            return fail(state, current.error)

        if not already_present:
            uploaded.append(current.state.files[label])

    return current


# ----------------------------------------------------------------------
# Ingestion confirmation
# ----------------------------------------------------------------------


@stage
async def confirm_collection_processing(
    state: PipelineState,
    sleep: Sleep = asyncio.sleep,
    max_wait_seconds: float | None = None,
) -> Result:
    """Wait for every file's ingestion, recording each final attachment.

    Meant to follow uploads made with ``wait=False``. Files already known to
    be ingested are skipped; the first failure halts the stage.
    """
    collection = state.collection
    if collection is None or not state.files:
        return Ok(state)

    current = state
    for label, descriptor in state.files.items():
        if descriptor.attachment is not None and descriptor.attachment.status is AttachmentStatus.COMPLETED:
            continue
        try:
            attachment = await wait_for_attachment(
                state.client,
                descriptor.id,
                collection.id,
                sleep=sleep,
                max_wait_seconds=max_wait_seconds,
            )
        except PipelineError as exc:
            logger.warning("%s failed at collection: %s", label, exc)
            return fail(current, str(exc))
        logger.info("%s processed at collection", label)
        current = current.with_file(label, replace(descriptor, attachment=attachment))

    logger.info("%d files uploaded to collection", len(current.files))
    return Ok(current)


# ----------------------------------------------------------------------
# Outputs as files
# ----------------------------------------------------------------------


@stage
async def upload_output_as_file(
    state: PipelineState,
    file_key: str,
    output_index: int,
    options: UploadOptions = DEFAULT_UPLOAD_OPTIONS,
    *,
    remove_from_history: int | range | None = None,
    remove_output: bool = False,
) -> Result:
    """Upload ``outputs[output_index]`` as a file named and labelled *file_key*.

    *file_key* needs an extension the API accepts (``.md``, ``.txt``,
    ``.json``...). The temp file is removed whether or not the upload works.
    After a successful upload the history entries selected by
    *remove_from_history* and, if *remove_output*, the output itself are
    pruned.
    """
    try:
        content = state.outputs[output_index]
    except IndexError:
        raise PreconditionError(f"Invalid output message index: {output_index}") from None

    try:
        temp_path = write_temp_file(file_key, content)
    except ValueError as exc:
        raise PreconditionError(str(exc)) from exc

    try:
        result = await upload_file(Ok(state), file_key, temp_path, options)
    finally:
        cleanup_temp_file(temp_path)

    if remove_from_history is not None:
        result = await remove_history(result, remove_from_history)
    if remove_output:
        result = await remove_outputs(result, output_index)
    return result
