"""Tests for collection creation, state-editing stages and state helpers."""

from __future__ import annotations

from dataclasses import replace

import pytest

from storepipe.exceptions import PipelineFailed
from storepipe.models import Message, Turn
from storepipe.pipeline import (
    Err,
    Ok,
    create_collection,
    get_output,
    init_state,
    merge_states,
    remove_history,
    remove_outputs,
    update_extra,
)


@pytest.fixture
def chatty(ok):
    return Ok(
        replace(
            ok.state,
            outputs=["a", "b", "c"],
            history=[Message("user", str(i)) for i in range(5)],
        )
    )


class TestCreateCollection:
    async def test_creates_once(self, ok, api):
        result = await create_collection(ok, "handbook")

        assert result.state.collection.name == "handbook"
        assert result.state.collection.id == "fileSearchStores/store-1"

    async def test_second_collection_rejected(self, ok, api):
        first = await create_collection(ok, "one")
        second = await create_collection(first, "two")

        assert isinstance(second, Err)
        assert second.error == "Collection already exists"
        assert second.state.collection == first.state.collection
        assert api.create_collection.await_count == 1


class TestEditingStages:
    async def test_remove_outputs(self, chatty):
        result = await remove_outputs(chatty, 1)
        assert result.state.outputs == ["a", "c"]

    async def test_remove_outputs_out_of_range(self, chatty):
        result = await remove_outputs(chatty, 7)
        assert result.state.outputs == ["a", "b", "c"]

    async def test_remove_history_index(self, chatty):
        result = await remove_history(chatty, -1)
        assert [m.content for m in result.state.history] == ["0", "1", "2", "3"]

    async def test_remove_history_range(self, chatty):
        result = await remove_history(chatty, range(1, 3))
        assert [m.content for m in result.state.history] == ["0", "3", "4"]

    async def test_edits_do_not_touch_input_state(self, chatty):
        await remove_outputs(chatty, 0)
        await remove_history(chatty, 0)
        assert chatty.state.outputs == ["a", "b", "c"]
        assert len(chatty.state.history) == 5

    async def test_update_extra(self, ok):
        result = await update_extra(ok, {"ticket": "ABC-1"})
        result = await update_extra(result, {"ticket": "ABC-2", "epic": "E"})
        assert result.state.extra == {"ticket": "ABC-2", "epic": "E"}


class TestGetOutput:
    def test_ok(self, chatty):
        assert get_output(chatty) == ["a", "b", "c"]

    def test_err_raises(self, ok):
        with pytest.raises(PipelineFailed, match="boom"):
            get_output(Err(ok.state.with_error("boom")))


class TestStateHelpers:
    def test_init_state_is_empty(self, api):
        state = init_state(api)
        assert state.client is api
        assert state.files == {}
        assert state.collection is None
        assert state.turns == [] and state.history == [] and state.outputs == []
        assert state.error is None

    def test_merge_concatenates_conversation(self, api):
        base = replace(
            init_state(api),
            history=[Message("user", "1")],
            outputs=["x"],
            turns=[Turn(id="t1")],
            extra={"k": 1},
        )
        new = replace(
            init_state(api),
            history=[Message("user", "2")],
            outputs=["y"],
            turns=[Turn(id="t2")],
            extra={"k": 2},
            error="ignored",
        )

        merged = merge_states(base, new)

        assert [m.content for m in merged.history] == ["1", "2"]
        assert merged.outputs == ["x", "y"]
        assert [t.id for t in merged.turns] == ["t1", "t2"]
        assert merged.extra == {"k": 1}
        assert merged.error is None
