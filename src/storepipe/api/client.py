"""Gemini File Search implementation of the :class:`ApiClient` contract.

Maps the pipeline vocabulary onto the google-genai SDK:

* file upload -> ``client.aio.files.upload()`` then poll until ``ACTIVE``
* collection -> a File Search store
* attach -> ``client.aio.file_search_stores.import_file()``; the returned
  long-running operation is remembered per ``(file, store)`` pair and is
  what :meth:`poll_attachment_status` polls
* turn -> ``client.aio.models.generate_content()``

SDK errors are translated into :mod:`storepipe.exceptions`; rate-limit and
5xx errors are retried a few times before surfacing.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from storepipe.api.options import normalize_generation_options
from storepipe.config import ClientConfig
from storepipe.exceptions import (
    ApiCallError,
    PermanentError,
    PreconditionError,
    RateLimitError,
    TransientError,
)
from storepipe.models import (
    Attachment,
    AttachmentStatus,
    Collection,
    FileDescriptor,
    Message,
    Turn,
)

logger = logging.getLogger(__name__)

# google.rpc.Code values reported on failed operations
_RPC_CANCELLED = 1
_RPC_DEADLINE_EXCEEDED = 4

_ROLE_TO_GEMINI = {"assistant": "model"}
_ROLE_FROM_GEMINI = {"model": "assistant"}


def cache_buster(file_id: str, attempt: int) -> str:
    """Nonce that makes every status poll a distinct request."""
    return f"{file_id}-{attempt}"


def operation_status(operation: Any) -> AttachmentStatus:
    """Translate an import operation into an :class:`AttachmentStatus`."""
    if not getattr(operation, "done", False):
        return AttachmentStatus.IN_PROGRESS

    error = getattr(operation, "error", None)
    if not error:
        return AttachmentStatus.COMPLETED

    code = error.get("code") if isinstance(error, dict) else getattr(error, "code", None)
    if code == _RPC_CANCELLED:
        return AttachmentStatus.CANCELLED
    if code == _RPC_DEADLINE_EXCEEDED:
        return AttachmentStatus.EXPIRED
    return AttachmentStatus.FAILED


class GeminiFileSearchClient:
    """Wrapper around the google-genai SDK for File Search workflows.

    Usage::

        config = load_client_config()
        client = GeminiFileSearchClient(config)
        state = init_state(client)
    """

    def __init__(
        self,
        config: ClientConfig,
        client: genai.Client | None = None,
        max_retries: int = 3,
    ) -> None:
        self._config = config
        self._max_retries = max_retries
        if client is None:
            headers = {"x-goog-user-project": config.project} if config.project else None
            client = genai.Client(
                api_key=config.api_key,
                http_options=genai_types.HttpOptions(
                    timeout=config.timeout_ms, headers=headers
                ),
            )
        self._client = client
        self._imports: dict[tuple[str, str], Any] = {}

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload(self, file_path: str) -> FileDescriptor:
        """Upload a local file and wait until Gemini reports it ACTIVE."""
        display_name = Path(file_path).name[:512]
        file_obj = await self._safe_call(
            "upload",
            file_path,
            self._client.aio.files.upload,
            file=file_path,
            config={"display_name": display_name},
        )
        file_obj = await self._wait_for_active(file_obj)
        logger.debug("Uploaded file %s -> %s", file_path, file_obj.name)
        return FileDescriptor(id=file_obj.name, filename=display_name)

    async def _wait_for_active(self, file_obj: Any, timeout: int = 300) -> Any:
        """Poll until the uploaded file leaves the PROCESSING state.

        Raises:
            ApiCallError: If the file transitions to FAILED state or is still
                processing after *timeout* seconds.
        """
        retrying = AsyncRetrying(
            wait=wait_exponential(min=1, max=10),
            stop=stop_after_delay(timeout),
            retry=retry_if_result(lambda f: getattr(f, "state", None) and f.state.name == "PROCESSING"),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    file_obj = await self._safe_call(
                        "get_file", file_obj.name, self._client.aio.files.get, name=file_obj.name
                    )
                    state = getattr(file_obj, "state", None)
                    if state is not None and state.name == "FAILED":
                        raise ApiCallError(
                            f"File processing failed: {file_obj.name}",
                            operation="upload",
                            resource=file_obj.name,
                        )
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(file_obj)
        except RetryError:
            raise ApiCallError(
                f"File still processing after {timeout}s: {file_obj.name}",
                operation="upload",
                resource=file_obj.name,
            ) from None

        return file_obj

    async def delete_file(self, file_id: str) -> None:
        await self._safe_call("delete_file", file_id, self._client.aio.files.delete, name=file_id)
        logger.info("File deleted - %s", file_id)

    # ------------------------------------------------------------------
    # Collections (File Search stores)
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> Collection:
        store = await self._safe_call(
            "create_collection",
            name,
            self._client.aio.file_search_stores.create,
            config={"display_name": name},
        )
        logger.info("Created store %s (%s)", store.name, name)
        return Collection(id=store.name, name=name)

    async def delete_collection(self, collection_id: str) -> None:
        await self._safe_call(
            "delete_collection",
            collection_id,
            self._client.aio.file_search_stores.delete,
            name=collection_id,
            config={"force": True},
        )
        logger.warning("Collection deleted - %s", collection_id)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    async def attach(self, file_id: str, collection_id: str) -> Attachment:
        operation = await self._safe_call(
            "attach",
            f"{file_id} to {collection_id}",
            self._client.aio.file_search_stores.import_file,
            file_search_store_name=collection_id,
            file_name=file_id,
        )
        self._imports[(file_id, collection_id)] = operation
        logger.debug("Imported %s into store %s", file_id, collection_id)
        return Attachment(file_id=file_id, collection_id=collection_id, status=operation_status(operation))

    async def poll_attachment_status(
        self, file_id: str, collection_id: str, attempt: int
    ) -> AttachmentStatus:
        operation = self._tracked_import(file_id, collection_id)
        nonce = cache_buster(file_id, attempt)
        operation = await self._safe_call(
            "poll_attachment_status",
            f"{file_id} in {collection_id}",
            self._client.aio.operations.get,
            operation,
            config=genai_types.GetOperationConfig(
                http_options=genai_types.HttpOptions(headers={"x-cache-buster": nonce})
            ),
        )
        self._imports[(file_id, collection_id)] = operation
        return operation_status(operation)

    async def get_attachment(self, file_id: str, collection_id: str) -> Attachment:
        operation = self._tracked_import(file_id, collection_id)
        response = getattr(operation, "response", None)
        return Attachment(
            file_id=file_id,
            collection_id=collection_id,
            status=operation_status(operation),
            document_name=getattr(response, "document_name", None),
        )

    def _tracked_import(self, file_id: str, collection_id: str) -> Any:
        try:
            return self._imports[(file_id, collection_id)]
        except KeyError:
            raise ApiCallError(
                f"No import operation tracked for file {file_id} in collection {collection_id}",
                operation="poll_attachment_status",
                resource=file_id,
            ) from None

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def create_turn(
        self, history: list[Message], options: dict[str, Any]
    ) -> tuple[Turn, list[Message]]:
        """Run one ``generate_content`` call over *history*.

        Returns the turn and the history with the model's reply appended.
        """
        model = options.get("model") or self._config.model
        try:
            contents = [
                genai_types.Content(
                    role=_ROLE_TO_GEMINI.get(message.role, message.role),
                    parts=[genai_types.Part(text=message.content)],
                )
                for message in history
            ]
            config = genai_types.GenerateContentConfig(**normalize_generation_options(options))
        except (ValueError, TypeError) as exc:
            # pydantic ValidationError is a ValueError
            raise PreconditionError(f"Invalid request options for {model}: {exc}") from exc

        response = await self._safe_call(
            "create_turn",
            model,
            self._client.aio.models.generate_content,
            model=model,
            contents=contents,
            config=config,
        )

        output = _output_messages(response)
        turn_id = getattr(response, "response_id", None) or f"turn-{uuid.uuid4().hex}"
        turn = Turn(id=turn_id, output=output, model=model, raw=response)
        return turn, [*history, *output]

    async def delete_turn(self, turn_id: str) -> None:
        # generate_content keeps no server-side record to delete
        logger.debug("Turn %s has no stored response to delete", turn_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying genai async client if it supports closing."""
        aclose = getattr(self._client.aio, "aclose", None)
        if callable(aclose):
            await aclose()

    # ------------------------------------------------------------------
    # Internal: error translation + retry
    # ------------------------------------------------------------------

    async def _safe_call(
        self, operation: str, resource: str, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        """Call *func*, translating SDK errors and retrying 429/5xx."""
        async for attempt in AsyncRetrying(
            wait=wait_exponential(min=1, max=10),
            stop=stop_after_attempt(self._max_retries),
            retry=retry_if_exception_type((RateLimitError, TransientError)),
            reraise=True,
        ):
            with attempt:
                return await self._call(operation, resource, func, *args, **kwargs)

    async def _call(
        self, operation: str, resource: str, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        try:
            return await func(*args, **kwargs)
        except genai_errors.APIError as exc:
            message = f"Gemini API call failed: {exc} on {operation} {resource}"
            if exc.code == 429:
                raise RateLimitError(message, operation, resource) from exc
            if exc.code is not None and exc.code >= 500:
                raise TransientError(message, operation, resource) from exc
            raise PermanentError(message, operation, resource) from exc
        except ApiCallError:
            raise
        except Exception as exc:
            raise ApiCallError(
                f"Gemini API call failed: {exc!r} on {operation} {resource}",
                operation,
                resource,
            ) from exc


def _output_messages(response: Any) -> list[Message]:
    """Textual messages from a ``GenerateContentResponse``, first candidate only."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(part.text for part in parts if getattr(part, "text", None))
    if not text:
        return []
    role = _ROLE_FROM_GEMINI.get(getattr(content, "role", None) or "model", "assistant")
    return [Message(role=role, content=text)]
