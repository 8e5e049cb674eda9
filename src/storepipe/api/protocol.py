"""The collaborator contract the pipeline consumes.

Every method raises :class:`~storepipe.exceptions.ApiCallError` (or a
subclass) on failure; the pipeline stages convert that into ``Err``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from storepipe.models import Attachment, AttachmentStatus, Collection, FileDescriptor, Message, Turn


@runtime_checkable
class ApiClient(Protocol):
    """Remote document/response service used by the pipeline stages."""

    async def upload(self, file_path: str) -> FileDescriptor: ...

    async def create_collection(self, name: str) -> Collection: ...

    async def attach(self, file_id: str, collection_id: str) -> Attachment: ...

    async def poll_attachment_status(
        self, file_id: str, collection_id: str, attempt: int
    ) -> AttachmentStatus: ...

    async def get_attachment(self, file_id: str, collection_id: str) -> Attachment: ...

    async def create_turn(
        self, history: list[Message], options: dict[str, Any]
    ) -> tuple[Turn, list[Message]]: ...

    async def delete_collection(self, collection_id: str) -> None: ...

    async def delete_file(self, file_id: str) -> None: ...

    async def delete_turn(self, turn_id: str) -> None: ...
