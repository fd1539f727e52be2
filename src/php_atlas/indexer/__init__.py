"""Scanning and incremental persistence."""

from .discovery import discover
from .normalizer import normalize
from .persister import ChangeGatedPersister, fingerprint
from .scanner import CodeScanner

__all__ = ["ChangeGatedPersister", "CodeScanner", "discover", "fingerprint", "normalize"]
