"""Data models and enums for the storepipe pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AttachmentStatus(str, Enum):
    """Ingestion status of a file attached to a collection."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class Collection:
    """A server-side collection (Gemini File Search store)."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Attachment:
    """The association between an uploaded file and a collection."""

    file_id: str
    collection_id: str
    status: AttachmentStatus
    document_name: str | None = None


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    """A file uploaded to the remote file storage."""

    id: str
    filename: str
    attachment: Attachment | None = None


@dataclass(frozen=True, slots=True)
class Message:
    """One conversational message."""

    role: str
    content: str


@dataclass(frozen=True)
class Turn:
    """One request/response exchange with the conversational endpoint.

    ``output`` holds the messages the model produced, ``raw`` keeps the
    untouched SDK response for callers that need grounding metadata.
    """

    id: str
    output: list[Message] = field(default_factory=list)
    model: str | None = None
    raw: Any = None


@dataclass(frozen=True, slots=True)
class UploadRequest:
    """One entry of a parallel upload batch."""

    label: str
    path: str | None
    optional: bool = False
