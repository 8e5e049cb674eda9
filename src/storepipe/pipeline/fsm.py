"""Attachment ingestion lifecycle state machine.

One instance per poll loop, fed every status the server reports. It is a
validation tool only: it rejects a report that contradicts what was already
seen (anything after a terminal status) and knows which states are terminal.
It performs no I/O.
"""

from __future__ import annotations

from statemachine import State, StateMachine

from storepipe.models import AttachmentStatus


class AttachmentLifecycle(StateMachine):
    """Seven-state lifecycle for a file attached to a collection.

    States:
        pending     -- Nothing observed yet.
        queued      -- Server accepted the attachment but has not started.
        in_progress -- Server is ingesting.
        completed / failed / cancelled / expired -- Terminal.
    """

    pending = State("pending", initial=True, value="pending")
    queued = State("queued", value="queued")
    in_progress = State("in_progress", value="in_progress")
    completed = State("completed", final=True, value="completed")
    failed = State("failed", final=True, value="failed")
    cancelled = State("cancelled", final=True, value="cancelled")
    expired = State("expired", final=True, value="expired")

    observe_queued = pending.to(queued) | queued.to.itself() | in_progress.to(queued)
    observe_in_progress = (
        pending.to(in_progress) | queued.to(in_progress) | in_progress.to.itself()
    )
    observe_completed = pending.to(completed) | queued.to(completed) | in_progress.to(completed)
    observe_failed = pending.to(failed) | queued.to(failed) | in_progress.to(failed)
    observe_cancelled = pending.to(cancelled) | queued.to(cancelled) | in_progress.to(cancelled)
    observe_expired = pending.to(expired) | queued.to(expired) | in_progress.to(expired)

    def observe(self, status: AttachmentStatus) -> None:
        """Record a reported status; raises ``TransitionNotAllowed`` if impossible."""
        self.send(f"observe_{status.value}")

    @property
    def terminal(self) -> bool:
        return self.current_state.final
