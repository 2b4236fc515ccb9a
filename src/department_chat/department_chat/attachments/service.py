from __future__ import annotations

import logging
from typing import Sequence

from werkzeug.utils import secure_filename

from ..core.constants import DEFAULT_MIME_TYPE, MAX_ATTACHMENT_BYTES, MAX_ATTACHMENTS
from ..core.exceptions import PayloadTooLargeError, TooManyFilesError
from .model import NewAttachment, UploadedFile
from .store import AttachmentStore

logger = logging.getLogger(__name__)


class AttachmentService:
    """Use case: turn uploaded files into stored attachment descriptors."""

    def __init__(
        self,
        store: AttachmentStore,
        *,
        max_files: int = MAX_ATTACHMENTS,
        max_bytes: int = MAX_ATTACHMENT_BYTES,
    ):
        self._store = store
        self._max_files = int(max_files)
        self._max_bytes = int(max_bytes)

    def check_limits(self, files: Sequence[UploadedFile]) -> None:
        if len(files) > self._max_files:
            raise TooManyFilesError(f"Máximo de {self._max_files} arquivos por mensagem")
        for f in files:
            if f.size > self._max_bytes:
                limit_mb = self._max_bytes // (1024 * 1024)
                raise PayloadTooLargeError(f"Arquivo muito grande: {f.file_name}. Tamanho máximo: {limit_mb}MB")

    def upload_all(self, files: Sequence[UploadedFile], *, uploader_id: int) -> list[NewAttachment]:
        """Store every file; on a failure the blobs already written are discarded."""
        self.check_limits(files)

        out: list[NewAttachment] = []
        try:
            for f in files:
                file_name = secure_filename(f.file_name) or "arquivo"
                stored = self._store.store(
                    f.data,
                    file_name=file_name,
                    mime_type=f.mime_type or DEFAULT_MIME_TYPE,
                    owner_id=int(uploader_id),
                )
                out.append(
                    NewAttachment(
                        file_name=f.file_name or file_name,
                        file_url=stored.url,
                        file_key=stored.key,
                        file_size=stored.size,
                        mime_type=stored.mime_type,
                    )
                )
        except Exception:
            self.discard([a.file_key for a in out])
            raise
        return out

    def discard(self, keys: Sequence[str]) -> None:
        """Best-effort removal of blobs that no row points to."""
        for key in keys:
            try:
                self._store.delete(key)
            except Exception:
                logger.warning("Could not discard attachment blob %s", key, exc_info=True)
