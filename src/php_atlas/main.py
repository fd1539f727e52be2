"""FastMCP server for PHP codebase metadata.

Scans PHP sources into a document store (one document per file, rewritten only
when the file content changes) and answers structural lookups over it:
get_file, find_class, find_function, stats.
"""

import logging
import threading

from fastmcp import FastMCP

from .config import config
from .indexer import CodeScanner
from .storage.document_store import SQLiteDocumentStore
from .storage.models import FileDocument, ScanStats

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances
store: SQLiteDocumentStore | None = None
scanner: CodeScanner | None = None

_scan_lock = threading.Lock()


def _stats_dict(stats: ScanStats) -> dict:
    return {
        "discovered": stats.discovered,
        "created": stats.created,
        "modified": stats.modified,
        "unchanged": stats.unchanged,
        "noop": stats.noop,
        "unparsed": stats.unparsed,
        "failed": stats.failed,
    }


def _run_scan() -> ScanStats | None:
    """Run one scan pass unless another one is in progress."""
    if not scanner:
        return None
    if not _scan_lock.acquire(blocking=False):
        logger.warning("Scan already running, skipping")
        return None
    try:
        return scanner.scan_all()
    finally:
        _scan_lock.release()


def init_services():
    """Initialize all services."""
    global store, scanner

    # Validate config
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("Configuration errors: " + "; ".join(errors))

    store = SQLiteDocumentStore(db_path=config.db_path, collection=config.collection)
    scanner = CodeScanner(store, config)

    if config.auto_scan:
        logger.info("AUTO_SCAN=true, starting scan in background...")

        def _scan_background():
            try:
                _run_scan()
                logger.info("Background scan complete")
            except Exception as e:
                logger.error(f"Background scan failed: {e}", exc_info=True)

        thread = threading.Thread(target=_scan_background, daemon=True)
        thread.start()
    else:
        existing = store.stats()
        logger.info(f"AUTO_SCAN=false, existing store has {existing.files} files")

    logger.info("Services initialized")


# Create FastMCP app
mcp = FastMCP(
    name="php-atlas",
    instructions="""
    MCP server for structural metadata of a PHP codebase.

    - get_file: Namespace, imports, classes and functions of one file
    - find_class: Find a class, interface, trait or enum by name
    - find_function: Find a function or method by name
    - scan: Rescan the source tree (only changed files are rewritten)
    - stats: Document counts
    """,
)


# ---------------------------------------------------------------------------
# Structural tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_file(file_name: str) -> dict:
    """Get the stored metadata document of one PHP file.

    Args:
        file_name: Path relative to the configured base path

    Returns:
        The file document (namespace, uses, classes, functions, file_hash, last_updated)
    """
    if not store:
        return {"error": "Document store not initialized"}

    document = store.get(file_name)
    if document is None:
        return {"error": f"File '{file_name}' not found in store"}
    return document


@mcp.tool()
def find_class(name: str, exact: bool = True) -> list[dict]:
    """Find a class-like declaration by name across all scanned files.

    Args:
        name: Class name (e.g. "CodeScannerService")
        exact: If True, case-insensitive exact match; if False, substring match

    Returns:
        Matching classes with file name and namespace
    """
    if not store:
        return [{"error": "Document store not initialized"}]

    results = store.find_class(name, exact=exact, limit=config.default_search_limit)
    if not results and exact:
        results = store.find_class(name, exact=False, limit=config.default_search_limit)

    return [
        {
            "name": r.name,
            "namespace": r.namespace,
            "file_name": r.file_name,
            "method_count": r.method_count,
        }
        for r in results
    ]


@mcp.tool()
def find_function(name: str, exact: bool = True) -> list[dict]:
    """Find a free function or a method by name.

    Args:
        name: Function or method name
        exact: If True, case-insensitive exact match; if False, substring match

    Returns:
        Matches with file name, owning class (null for free functions) and parameters
    """
    if not store:
        return [{"error": "Document store not initialized"}]

    results = store.find_function(name, exact=exact, limit=config.default_search_limit)
    return [
        {
            "name": r.name,
            "class_name": r.class_name,
            "file_name": r.file_name,
            "parameters": r.parameters,
        }
        for r in results
    ]


# ---------------------------------------------------------------------------
# Utility tools
# ---------------------------------------------------------------------------


@mcp.tool()
def scan() -> dict:
    """Rescan the PHP source tree.

    Unchanged files are skipped by content hash, so a rescan is cheap.

    Returns:
        Counters per outcome
    """
    if not scanner:
        return {"error": "Scanner not initialized"}

    result = _run_scan()
    if result is None:
        return {"status": "busy"}
    return {"status": "completed", **_stats_dict(result)}


@mcp.tool()
def stats() -> dict:
    """Get statistics about stored documents."""
    if not store:
        return {"error": "Document store not initialized"}

    s = store.stats()
    return {
        "files": s.files,
        "classes": s.classes,
        "functions": s.functions,
        "methods": s.methods,
    }


# ---------------------------------------------------------------------------
# HTTP endpoints
# ---------------------------------------------------------------------------


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request):
    """Health check endpoint."""
    from starlette.responses import JSONResponse

    if not store:
        return JSONResponse({"status": "initializing"}, status_code=503)

    s = store.stats()
    return JSONResponse({"status": "healthy", "files": s.files})


@mcp.custom_route("/scan", methods=["POST"])
async def scan_endpoint(request):
    """Trigger a scan via HTTP."""
    from starlette.background import BackgroundTask
    from starlette.responses import JSONResponse

    if not scanner:
        return JSONResponse({"error": "Services not initialized"}, status_code=503)

    def run_scan():
        try:
            logger.info("Starting background scan...")
            _run_scan()
        except Exception as e:
            logger.error(f"Background scan failed: {e}", exc_info=True)

    return JSONResponse(
        {"status": "started", "message": "Scan started in background"},
        background=BackgroundTask(run_scan),
    )


def _log_saved(document: FileDocument) -> None:
    logger.info(
        f"Successfully saved {document.file_name}: "
        f"{len(document.classes)} classes, {len(document.functions)} functions"
    )


def scan_once():
    """Entry point for a single synchronous scan without the server."""
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise SystemExit(1)

    one_shot_store = SQLiteDocumentStore(db_path=config.db_path, collection=config.collection)
    try:
        one_shot = CodeScanner(one_shot_store, config)
        one_shot.on_success(_log_saved)
        result = one_shot.scan_all()
    finally:
        one_shot_store.close()

    logger.info(f"Scan finished: {_stats_dict(result)}")


def main():
    """Entry point for the MCP server."""
    import uvicorn

    init_services()

    logger.info(f"Starting MCP server on {config.host}:{config.port}")

    uvicorn.run(
        mcp.http_app(),
        host=config.host,
        port=config.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
