"""Collection creation and the small state-editing stages."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from storepipe.exceptions import PipelineFailed, PreconditionError
from storepipe.pipeline.result import Err, Ok, Result, stage
from storepipe.pipeline.state import PipelineState

logger = logging.getLogger(__name__)


@stage
async def create_collection(state: PipelineState, name: str) -> Result:
    """Create the run's collection; a run owns at most one."""
    if state.collection is not None:
        raise PreconditionError("Collection already exists")
    collection = await state.client.create_collection(name)
    logger.info("Collection created: %s", collection.name)
    return Ok(replace(state, collection=collection))


@stage
async def remove_outputs(state: PipelineState, index: int) -> Result:
    """Drop ``outputs[index]``; an out-of-range index changes nothing."""
    outputs = list(state.outputs)
    if -len(outputs) <= index < len(outputs):
        del outputs[index]
    return Ok(replace(state, outputs=outputs))


@stage
async def remove_history(state: PipelineState, index: int | range) -> Result:
    """Drop one history entry, or every entry whose index is in a range."""
    if isinstance(index, range):
        history = [m for i, m in enumerate(state.history) if i not in index]
    else:
        history = list(state.history)
        if -len(history) <= index < len(history):
            del history[index]
    return Ok(replace(state, history=history))


@stage
async def update_extra(state: PipelineState, data: dict[str, Any]) -> Result:
    """Merge *data* into ``extra``."""
    return Ok(replace(state, extra={**state.extra, **data}))


def get_output(result: Result) -> list[str]:
    """The run's output texts.

    Raises:
        PipelineFailed: If *result* is ``Err``; the message is the run's error.
    """
    if isinstance(result, Err):
        raise PipelineFailed(result.error)
    return list(result.state.outputs)
