"""Gemini File Search workflow pipeline."""

__version__ = "0.1.0"

from storepipe.models import (
    Attachment,
    AttachmentStatus,
    Collection,
    FileDescriptor,
    Message,
    Turn,
    UploadRequest,
)

__all__ = [
    "Attachment",
    "AttachmentStatus",
    "Collection",
    "FileDescriptor",
    "Message",
    "Turn",
    "UploadRequest",
    "__version__",
]
