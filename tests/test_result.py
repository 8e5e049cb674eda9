"""Tests for the Ok/Err envelope, the @stage combinator and chain().

The central property: any stage given an ``Err`` returns that exact object
and makes no call on the collaborator.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from storepipe.exceptions import PipelineError, PreconditionError
from storepipe.models import Message, UploadRequest
from storepipe.pipeline import (
    Derived,
    Err,
    Literal,
    Ok,
    chain,
    confirm_collection_processing,
    create_collection,
    create_turn,
    init_state,
    remove_history,
    remove_outputs,
    stage,
    update_extra,
    upload_file,
    upload_files,
    upload_optional_file,
    upload_optional_files,
    upload_output_as_file,
)

STAGE_CALLS = {
    "create_collection": lambda r: create_collection(r, "store"),
    "upload_file": lambda r: upload_file(r, "a", "/tmp/a.md"),
    "upload_optional_file": lambda r: upload_optional_file(r, "a", "/tmp/a.md"),
    "upload_files": lambda r: upload_files(r, [UploadRequest("a", "/tmp/a.md")]),
    "upload_optional_files": lambda r: upload_optional_files(r, ["/tmp/a.md"]),
    "confirm_collection_processing": confirm_collection_processing,
    "upload_output_as_file": lambda r: upload_output_as_file(r, "out.md", 0),
    "create_turn_literal": lambda r: create_turn(r, Literal([Message("user", "Hi")]), {}),
    "create_turn_derived": lambda r: create_turn(r, Derived(lambda s: s.history), {}),
    "remove_outputs": lambda r: remove_outputs(r, 0),
    "remove_history": lambda r: remove_history(r, range(0, 2)),
    "update_extra": lambda r: update_extra(r, {"k": "v"}),
}


class TestShortCircuit:
    @pytest.mark.parametrize("name", sorted(STAGE_CALLS))
    async def test_err_passes_through_untouched(self, name: str, api: MagicMock):
        """Every stage returns the identical Err and never calls the API."""
        err = Err(init_state(api).with_error("earlier failure"))

        result = await STAGE_CALLS[name](err)

        assert result is err
        assert api.mock_calls == []

    async def test_chain_stops_spending_after_first_err(self, ok: Ok, api: MagicMock):
        result = await chain(
            ok,
            lambda r: upload_file(r, "missing", "/nonexistent/file.md"),
            lambda r: create_collection(r, "never"),
            lambda r: create_turn(r, Literal([Message("user", "Hi")]), {}),
        )

        assert isinstance(result, Err)
        assert result.error == "File does not exist: /nonexistent/file.md"
        api.create_collection.assert_not_called()
        api.create_turn.assert_not_called()


class TestStageDecorator:
    async def test_pipeline_error_becomes_err(self, ok: Ok):
        @stage
        async def broken(state):
            raise PreconditionError("nope")

        result = await broken(ok)

        assert isinstance(result, Err)
        assert result.error == "nope"
        assert result.state.files == ok.state.files

    async def test_unexpected_exception_propagates(self, ok: Ok):
        @stage
        async def buggy(state):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await buggy(ok)

    async def test_ok_and_err_flags(self, ok: Ok):
        err = Err(ok.state.with_error("x"))
        assert ok.ok is True
        assert err.ok is False
        assert err.error == "x"
        assert issubclass(PreconditionError, PipelineError)


class TestChain:
    async def test_applies_steps_in_order(self, ok: Ok):
        result = await chain(
            ok,
            lambda r: update_extra(r, {"a": 1}),
            lambda r: update_extra(r, {"b": 2}),
            lambda r: update_extra(r, {"a": 3}),
        )

        assert isinstance(result, Ok)
        assert result.state.extra == {"a": 3, "b": 2}

    async def test_no_steps_returns_input(self, ok: Ok):
        assert await chain(ok) is ok
