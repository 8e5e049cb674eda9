"""Tests for the conversation stage."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock

from storepipe.exceptions import ApiCallError
from storepipe.models import Collection, Message, Turn
from storepipe.pipeline import Derived, Err, Literal, Ok, chain, create_turn, output_text

from conftest import make_turn


class TestCreateTurn:
    async def test_literal_round_trip(self, ok, api):
        result = await create_turn(ok, Literal([Message("user", "Hi")]), {"temperature": 0})

        assert isinstance(result, Ok)
        assert result.state.history == [Message("user", "Hi"), Message("assistant", "Hello there")]
        assert result.state.outputs == ["Hello there"]
        assert [t.id for t in result.state.turns] == ["turn-1"]
        api.create_turn.assert_awaited_once_with([Message("user", "Hi")], {"temperature": 0})

    async def test_literal_appends_to_existing_history(self, ok, api):
        result = await chain(
            ok,
            lambda r: create_turn(r, Literal([Message("user", "Hi")])),
            lambda r: create_turn(r, Literal([Message("user", "More")])),
        )

        sent = api.create_turn.await_args_list[1].args[0]
        assert [m.content for m in sent] == ["Hi", "Hello there", "More"]
        assert result.state.outputs == ["Hello there", "Hello there"]
        assert len(result.state.turns) == 2

    async def test_derived_builds_full_history(self, ok, api):
        state = replace(ok.state, history=[Message("user", "old")], outputs=["draft"])

        result = await create_turn(
            Ok(state),
            Derived(lambda s: [Message("user", f"Expand on: {s.outputs[-1]}")]),
            {},
        )

        assert api.create_turn.await_args.args[0] == [Message("user", "Expand on: draft")]
        assert result.state.outputs == ["draft", "Hello there"]

    async def test_derived_must_return_a_list(self, ok, api):
        result = await create_turn(ok, Derived(lambda s: "not a list"), {})

        assert isinstance(result, Err)
        assert result.error == "Conversation must be a list: 'not a list'"
        api.create_turn.assert_not_called()

    async def test_literal_string_rejected(self, ok, api):
        result = await create_turn(ok, Literal("Hi"), {})

        assert isinstance(result, Err)
        assert result.error == "Conversation must be a list: 'Hi'"
        api.create_turn.assert_not_called()

    async def test_derived_entries_must_be_messages(self, ok, api):
        result = await create_turn(
            ok, Derived(lambda s: [{"role": "user", "content": "Hi"}]), {}
        )

        assert isinstance(result, Err)
        assert result.error.startswith("Conversation entries must be messages, got dict")
        api.create_turn.assert_not_called()

    async def test_literal_entries_must_be_messages(self, ok, api):
        result = await create_turn(ok, Literal([Message("user", "Hi"), "more"]), {})

        assert isinstance(result, Err)
        api.create_turn.assert_not_called()

    async def test_rejects_other_inputs(self, ok, api):
        result = await create_turn(ok, [Message("user", "Hi")], {})

        assert isinstance(result, Err)
        assert result.error == "Request input must be a Literal or Derived message sequence"
        api.create_turn.assert_not_called()

    async def test_file_search_tool_added_with_collection(self, ok, api):
        state = replace(ok.state, collection=Collection("fileSearchStores/store-1", "s"))

        await create_turn(
            Ok(state), Literal([Message("user", "Hi")]), {"temperature": 0}, with_file_search=True
        )

        options = api.create_turn.await_args.args[1]
        assert options == {
            "temperature": 0,
            "tools": [{"file_search": {"file_search_store_names": ["fileSearchStores/store-1"]}}],
        }

    async def test_file_search_ignored_without_collection(self, ok, api):
        await create_turn(ok, Literal([Message("user", "Hi")]), None, with_file_search=True)

        assert api.create_turn.await_args.args[1] == {}

    async def test_api_error_becomes_err(self, ok, api):
        api.create_turn = AsyncMock(side_effect=ApiCallError("model overloaded"))

        result = await create_turn(ok, Literal([Message("user", "Hi")]), {})

        assert isinstance(result, Err)
        assert result.error == "model overloaded"
        assert result.state.turns == []


class TestOutputText:
    def test_first_non_empty_message(self):
        turn = Turn(id="t", output=[Message("assistant", ""), Message("assistant", "answer")])
        assert output_text(turn) == "answer"

    def test_empty_turn(self):
        assert output_text(Turn(id="t")) == ""

    def test_helper_turn(self):
        assert output_text(make_turn("hello")) == "hello"
