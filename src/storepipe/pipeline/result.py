"""Tagged success/failure envelope and the short-circuiting stage combinator.

Every stage has the shape ``async (Result, *args) -> Result``. Once a stage
returns :class:`Err`, each later stage hands that same object straight back
without touching the API, so remote calls are only made while the run is
healthy.

Usage::

    result = await chain(
        Ok(init_state(client)),
        lambda r: create_collection(r, "handbook"),
        lambda r: upload_files(r, requests),
        lambda r: create_turn(r, Literal([Message("user", "Summarise")]), {}),
    )
    await cleanup_resources(result)
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from storepipe.exceptions import PipelineError
from storepipe.pipeline.state import PipelineState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    state: PipelineState

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failure arm; ``state.error`` holds the reason and the state keeps
    whatever partial progress was made (e.g. files already uploaded)."""

    state: PipelineState

    @property
    def ok(self) -> bool:
        return False

    @property
    def error(self) -> str | None:
        return self.state.error


Result = Union[Ok, Err]

StageFunc = Callable[..., Awaitable[Result]]


def fail(state: PipelineState, error: str) -> Err:
    return Err(state.with_error(error))


def stage(func: StageFunc) -> StageFunc:
    """Turn ``async (state, *args) -> Result`` into a short-circuiting stage.

    An ``Err`` input is returned as-is without calling *func*. A
    :class:`PipelineError` raised by *func* becomes ``Err`` on the input
    state; any other exception is a bug and propagates.
    """

    @functools.wraps(func)
    async def wrapper(result: Result, *args: Any, **kwargs: Any) -> Result:
        if isinstance(result, Err):
            return result
        try:
            return await func(result.state, *args, **kwargs)
        except PipelineError as exc:
            logger.warning("%s failed: %s", func.__name__, exc)
            return fail(result.state, str(exc))

    return wrapper


async def chain(result: Result, *steps: Callable[[Result], Awaitable[Result]]) -> Result:
    """Apply *steps* left to right, each receiving the previous result."""
    for step in steps:
        result = await step(result)
    return result
