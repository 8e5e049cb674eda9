"""The conversation stage: append input to the history and run one turn."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Union

from storepipe.exceptions import PreconditionError
from storepipe.models import Message, Turn
from storepipe.pipeline.result import Ok, Result, stage
from storepipe.pipeline.state import PipelineState
from storepipe.text import log_messages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Literal:
    """Messages appended verbatim to the current history."""

    messages: Sequence[Message]


@dataclass(frozen=True)
class Derived:
    """Builds the complete next history from the current state.

    Lets a follow-up turn depend on earlier outputs, e.g.::

        Derived(lambda s: [*s.history, Message("user", f"Expand on: {s.outputs[-1]}")])
    """

    build: Callable[[PipelineState], Sequence[Message]]


TurnInput = Union[Literal, Derived]


@stage
async def create_turn(
    state: PipelineState,
    next_input: TurnInput,
    request_options: dict[str, Any] | None = None,
    *,
    with_file_search: bool = False,
) -> Result:
    """Issue one request/response turn.

    The collaborator decides how the reply folds back into the history; this
    stage replaces ``history`` with what it returns.
    """
    history = _build_history(state, next_input)
    options = _build_options(request_options or {}, state, with_file_search)

    log_messages(history)
    turn, new_history = await state.client.create_turn(history, options)

    return Ok(
        replace(
            state,
            turns=[*state.turns, turn],
            outputs=[*state.outputs, output_text(turn)],
            history=list(new_history),
        )
    )


def _build_history(state: PipelineState, next_input: TurnInput) -> list[Message]:
    if isinstance(next_input, Literal):
        return [*state.history, *_message_list(next_input.messages)]
    if isinstance(next_input, Derived):
        return _message_list(next_input.build(state))
    raise PreconditionError("Request input must be a Literal or Derived message sequence")


def _message_list(messages: object) -> list[Message]:
    if not isinstance(messages, (list, tuple)):
        raise PreconditionError(f"Conversation must be a list: {messages!r}")
    for message in messages:
        if not isinstance(message, Message):
            raise PreconditionError(
                f"Conversation entries must be messages, got {type(message).__name__}: {message!r}"
            )
    return list(messages)


def _build_options(
    request_options: dict[str, Any], state: PipelineState, with_file_search: bool
) -> dict[str, Any]:
    if not with_file_search or state.collection is None:
        return dict(request_options)
    return {
        **request_options,
        "tools": [{"file_search": {"file_search_store_names": [state.collection.id]}}],
    }


def output_text(turn: Turn) -> str:
    """Content of the first non-empty message in the turn's output ("" if none)."""
    for message in turn.output:
        if message.content:
            return message.content
    return ""
