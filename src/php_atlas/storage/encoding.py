"""UTF-8 coercion of document fields before they are written."""

import dataclasses
import logging
from typing import Any

import chardet

logger = logging.getLogger(__name__)


def _coerce_bytes(value: bytes) -> str:
    detected = chardet.detect(value).get("encoding") or "utf-8"
    try:
        return value.decode(detected, errors="replace")
    except LookupError:
        return value.decode("utf-8", errors="replace")


def _coerce_str(value: str) -> str:
    try:
        value.encode("utf-8")
        return value
    except UnicodeEncodeError:
        logger.debug("Replacing characters not representable in UTF-8")
        return value.encode("utf-8", errors="replace").decode("utf-8")


def coerce_text(value: Any) -> Any:
    """Return *value* with every text field valid UTF-8.

    Strings that already encode cleanly are returned as-is; bytes are decoded
    with the chardet-detected encoding. Dicts, lists, tuples and dataclass
    instances are walked and rebuilt with the same shape.
    """
    if isinstance(value, str):
        return _coerce_str(value)
    if isinstance(value, bytes):
        return _coerce_bytes(value)
    if isinstance(value, dict):
        return {coerce_text(k): coerce_text(v) for k, v in value.items()}
    if isinstance(value, list):
        return [coerce_text(item) for item in value]
    if isinstance(value, tuple):
        return tuple(coerce_text(item) for item in value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        changes = {
            f.name: coerce_text(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.init
        }
        return dataclasses.replace(value, **changes)
    return value
