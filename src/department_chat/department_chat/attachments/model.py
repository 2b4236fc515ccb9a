from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UploadedFile:
    """One file as received by the transport layer, before storage."""

    file_name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoredAttachment:
    """What the attachment store hands back for one blob."""

    url: str
    key: str
    size: int
    mime_type: str


@dataclass(frozen=True)
class NewAttachment:
    """Attachment row to be inserted together with its message."""

    file_name: str
    file_url: str
    file_key: str
    file_size: int
    mime_type: str
