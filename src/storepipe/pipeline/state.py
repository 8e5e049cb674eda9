"""The aggregate state threaded through every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from storepipe.api.protocol import ApiClient
from storepipe.models import Collection, FileDescriptor, Message, Turn


@dataclass(frozen=True)
class PipelineState:
    """Everything a workflow run has created or produced so far.

    Stages never mutate a state in place; they build the next one with
    :func:`dataclasses.replace` and fresh containers, so a state handed to a
    concurrent branch can never be changed underneath it.
    """

    client: ApiClient
    files: dict[str, FileDescriptor] = field(default_factory=dict)
    collection: Collection | None = None
    turns: list[Turn] = field(default_factory=list)
    history: list[Message] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def with_error(self, error: str) -> PipelineState:
        return replace(self, error=error)

    def with_file(self, label: str, descriptor: FileDescriptor) -> PipelineState:
        return replace(self, files={**self.files, label: descriptor})


def init_state(client: ApiClient) -> PipelineState:
    """Fresh state for one workflow run: no collection, files or turns."""
    return PipelineState(client=client)


def merge_states(base: PipelineState, new: PipelineState) -> PipelineState:
    """Combine two states.

    ``history``, ``outputs`` and ``turns`` are concatenated (base first);
    every other field is taken from *base*.
    """
    return replace(
        base,
        history=[*base.history, *new.history],
        outputs=[*base.outputs, *new.outputs],
        turns=[*base.turns, *new.turns],
    )
