"""Code scanner: discovery, extraction and incremental persistence."""

import logging
from pathlib import Path

from ..config import Config
from ..parsers.code import CodeParser
from ..storage.document_store import DocumentStore
from ..storage.models import DocumentBody, ScanOutcome, ScanStats
from .discovery import discover
from .normalizer import normalize
from .persister import ChangeGatedPersister, SuccessHandler

logger = logging.getLogger(__name__)


class CodeScanner:
    """Keeps the document store in sync with a tree of PHP files.

    Files are processed one at a time in discovery order; a failure in one
    file is logged and never stops the scan.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: Config,
        parser: CodeParser | None = None,
    ):
        self.config = config
        self.parser = parser or CodeParser()
        self.persister = ChangeGatedPersister(store)

    def on_success(self, handler: SuccessHandler | None) -> None:
        """Register the handler called for each created or modified document.

        Replaces any previously registered handler; None unregisters.
        """
        self.persister.observer = handler

    def scan_all(
        self,
        scan_root: str | Path | None = None,
        excluded: list[str] | None = None,
    ) -> ScanStats:
        """Discover files under *scan_root* and persist every changed one.

        Args:
            scan_root: Directory or file to scan, defaults to config.scan_path
            excluded: Path substrings to skip, defaults to config.excluded_paths

        Returns:
            Per-outcome counters for this pass
        """
        root = Path(scan_root) if scan_root is not None else self.config.scan_path
        excluded = list(excluded) if excluded is not None else self.config.excluded_paths

        logger.info(f"Starting code scan: {root}")
        files = discover(root, excluded, self.config.extensions)
        logger.info(f"Found {len(files)} PHP files.")

        stats = ScanStats(discovered=len(files))
        for index, file_path in enumerate(files, start=1):
            stats.record(self.process_file(file_path))
            if self.config.progress_every and index % self.config.progress_every == 0:
                logger.info(f"Progress: {index}/{len(files)} files")

        logger.info(
            f"Code scan completed: {stats.created} created, {stats.modified} modified, "
            f"{stats.unchanged} unchanged, {stats.unparsed} unparsed, {stats.failed} failed"
        )
        return stats

    def process_file(self, file_path: Path) -> ScanOutcome:
        """Fingerprint one file and write its document if it changed."""
        file_name = self.config.relative_path(file_path)
        try:
            content = file_path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot read {file_path}: {e}")
            return "failed"

        def build_body() -> DocumentBody | None:
            declarations = self.parser.parse_content(content, file_name)
            return normalize(declarations) if declarations is not None else None

        try:
            return self.persister.persist(file_name, content, build_body)
        except Exception as e:
            logger.error(f"Failed to process file {file_name}: {e}")
            return "failed"
