"""Core functionality for opening archives."""

from __future__ import annotations

import os
from typing import BinaryIO, Union

from archivecursor.builder import ReaderBuilder
from archivecursor.config import ReaderConfig
from archivecursor.session import ReadSession


def open_archive(
    source: Union[BinaryIO, str, bytes, os.PathLike],
    *,
    config: ReaderConfig | None = None,
    passphrase: Union[str, bytes, None] = None,
) -> ReadSession:
    """
    Open an archive in any format and with any filter libarchive supports.

    Args:
        source: Path to the archive file, or a binary file object to read the
            archive from. File objects don't need to be seekable.
        config: Optional ReaderConfig object to customize behavior. If None,
            the default configuration is used.
        passphrase: Optional passphrase for encrypted archives.

    Returns:
        A ReadSession; iterate over it to get the archive's members.

    Raises:
        EngineError: If libarchive can't open the archive.
        SourceIOError: If reading from ``source`` failed.
    """
    builder = ReaderBuilder(config).support_all()
    if passphrase is not None:
        builder.add_passphrase(passphrase)

    if callable(getattr(source, "read", None)):
        return builder.open_stream(source)  # type: ignore[arg-type]
    return builder.open_file(source)  # type: ignore[arg-type]
