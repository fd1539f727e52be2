"""Change-gated persistence for incremental scanning.

Each file is fingerprinted by its raw bytes. When the store already holds a
document with the same (file_name, file_hash) pair the file is skipped without
being parsed; otherwise its document is rebuilt and upserted.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable

from ..storage.document_store import DocumentStore, StorageError, StorageWriteError
from ..storage.encoding import coerce_text
from ..storage.models import DocumentBody, FileDocument, ScanOutcome, UpsertResult

logger = logging.getLogger(__name__)

SuccessHandler = Callable[[FileDocument], None]


def fingerprint(content: bytes) -> str:
    """Compute SHA-256 hash of file content."""
    return hashlib.sha256(content).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeGatedPersister:
    """Writes a file document only when the file content has changed."""

    def __init__(
        self,
        store: DocumentStore,
        observer: SuccessHandler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize persister.

        Args:
            store: Document store keyed by file_name
            observer: Called with every document that was created or modified
            clock: Source of the last_updated timestamp
        """
        self.store = store
        self.observer = observer
        self._clock = clock

    def is_unchanged(self, file_name: str, file_hash: str) -> bool:
        return self.store.find_one({"file_name": file_name, "file_hash": file_hash}) is not None

    def persist(
        self,
        file_name: str,
        content: bytes,
        build_body: Callable[[], DocumentBody | None],
    ) -> ScanOutcome:
        """Fingerprint, check and conditionally write one file.

        Args:
            file_name: Storage key (path relative to the base path)
            content: Raw file bytes
            build_body: Extracts the document body; returns None when the file
                could not be parsed. Only called for changed files.

        Returns:
            "unchanged", "unparsed", "created", "modified", "noop" or "failed"
        """
        file_hash = fingerprint(content)

        try:
            if self.is_unchanged(file_name, file_hash):
                logger.debug(f"Unchanged, skipping: {file_name}")
                return "unchanged"
        except StorageError as e:
            logger.error(f"Failed to look up {file_name}: {e}")
            return "failed"

        body = build_body()
        if body is None:
            logger.debug(f"Not parsed, stored document kept: {file_name}")
            return "unparsed"

        # the observer gets exactly the text that was written
        document = coerce_text(FileDocument.from_body(body, file_name, file_hash, self._clock()))
        try:
            result = self.store.upsert(document.to_dict())
        except StorageWriteError as e:
            logger.error(f"Failed to save data for file {file_name}: {e}")
            return "failed"

        if result is UpsertResult.NOOP:
            logger.debug(f"Stored document already up to date: {file_name}")
            return "noop"

        logger.info(f"Saved data for file: {file_name}")
        if self.observer is not None:
            self.observer(document)
        return "created" if result is UpsertResult.CREATED else "modified"
