from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Optional


@dataclass
class ReaderConfig:
    """Configuration for :class:`archivecursor.ReaderBuilder` and :func:`archivecursor.open_archive`."""

    block_size: int = 10240
    "Block size libarchive uses when it reads an archive from a file path."

    stream_buffer_size: int = 8192
    "Size of the scratch buffer handed to libarchive on each pull when reading from a stream."

    read_chunk_size: int = 65536
    "Chunk size used when reading a whole member with read() and no size."

    options: Optional[str] = None
    "A libarchive option string (e.g. ``zip:hdrcharset=CP932``) applied to every new builder."


_default_config_var: contextvars.ContextVar[ReaderConfig] = contextvars.ContextVar(
    "archivecursor_default_config", default=ReaderConfig()
)


def get_default_config() -> ReaderConfig:
    """Return the current default configuration."""
    return _default_config_var.get()


def set_default_config(config: ReaderConfig) -> None:
    """Set the default configuration for new builders."""
    _default_config_var.set(config)


def set_default_config_fields(**kwargs: Any) -> None:
    """Replace some fields of the default configuration."""
    config = get_default_config()
    config = replace(config, **kwargs)
    set_default_config(config)


@contextmanager
def default_config(config: ReaderConfig | None = None, **kwargs: Any):
    """Temporarily use ``config`` as the default configuration."""
    if config is None:
        config = get_default_config()

    if kwargs:
        config = replace(config, **kwargs)

    token = _default_config_var.set(config)
    try:
        yield
    finally:
        _default_config_var.reset(token)
