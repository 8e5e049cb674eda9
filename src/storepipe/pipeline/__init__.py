"""Short-circuiting workflow stages over a single aggregate state.

Public API
----------
.. autoclass:: PipelineState
.. autoclass:: Ok
.. autoclass:: Err
.. autofunction:: chain
.. autofunction:: upload_files
.. autofunction:: cleanup_resources
"""

from storepipe.pipeline.cleanup import cleanup_resources, delete_files
from storepipe.pipeline.conversation import Derived, Literal, TurnInput, create_turn, output_text
from storepipe.pipeline.polling import (
    MAX_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    poll_attachment_status,
    wait_for_attachment,
)
from storepipe.pipeline.result import Err, Ok, Result, chain, fail, stage
from storepipe.pipeline.stages import (
    create_collection,
    get_output,
    remove_history,
    remove_outputs,
    update_extra,
)
from storepipe.pipeline.state import PipelineState, init_state, merge_states
from storepipe.pipeline.uploads import (
    DEFAULT_UPLOAD_OPTIONS,
    UploadOptions,
    confirm_collection_processing,
    upload_file,
    upload_files,
    upload_optional_file,
    upload_optional_files,
    upload_output_as_file,
)

__all__ = [
    "DEFAULT_UPLOAD_OPTIONS",
    "Derived",
    "Err",
    "Literal",
    "MAX_ATTEMPTS",
    "Ok",
    "POLL_INTERVAL_SECONDS",
    "PipelineState",
    "Result",
    "TurnInput",
    "UploadOptions",
    "chain",
    "cleanup_resources",
    "confirm_collection_processing",
    "create_collection",
    "create_turn",
    "delete_files",
    "fail",
    "get_output",
    "init_state",
    "merge_states",
    "output_text",
    "poll_attachment_status",
    "remove_history",
    "remove_outputs",
    "stage",
    "update_extra",
    "upload_file",
    "upload_files",
    "upload_optional_file",
    "upload_optional_files",
    "upload_output_as_file",
    "wait_for_attachment",
]
