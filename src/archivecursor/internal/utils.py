"""
Utility functions for archivecursor.
"""

from __future__ import annotations

import logging
import os
from typing import overload

logger = logging.getLogger(__name__)


@overload
def decode_pathname(raw: None) -> None: ...


@overload
def decode_pathname(raw: bytes) -> str | None: ...


def decode_pathname(raw: bytes | None) -> str | None:
    """Decode a raw engine pathname as UTF-8, or return None if that isn't possible."""
    if raw is None:
        return None

    assert isinstance(raw, bytes), "Expected bytes for pathname"

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Pathname %r is not valid UTF-8", raw)
        return None


def path_to_bytes(path: str | bytes | os.PathLike) -> bytes:
    if isinstance(path, bytes):
        return path
    return os.fsencode(os.fspath(path))

