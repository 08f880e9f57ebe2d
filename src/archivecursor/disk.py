"""Extraction of a session's members to the filesystem through libarchive's disk writer."""

from __future__ import annotations

import ctypes
import logging
import os
from typing import Optional, Union

from archivecursor.internal import engine
from archivecursor.session import ReadSession
from archivecursor.types import ExtractOption

logger = logging.getLogger(__name__)


def _prefixed(dest: bytes, raw: bytes) -> bytes:
    return os.path.join(dest, raw.lstrip(b"/"))


class DiskWriter:
    """Writes every remaining member of a :class:`ReadSession` below a directory.

    ``options`` controls what metadata is restored (see :class:`ExtractOption`);
    with no options only names, types and content are written.
    """

    def __init__(self, options: ExtractOption = ExtractOption(0)):
        self.options = options

    def set_options(self, options: ExtractOption) -> None:
        self.options = options

    def write(
        self,
        session: ReadSession,
        dest: Optional[Union[str, os.PathLike]] = None,
    ) -> int:
        """Extract the members the session has not reached yet.

        Member paths are made relative to ``dest`` (the current directory if
        None). Returns the number of content bytes written.
        """
        dest_bytes = os.fsencode(os.fspath(dest)) if dest is not None else None
        write_p = engine.call(engine.write_disk_new)

        written = 0
        try:
            engine.call(engine.write_disk_set_options, write_p, self.options.value)
            if ExtractOption.OWNER in self.options:
                engine.call(engine.write_disk_set_standard_lookup, write_p)

            while True:
                header = session.next_header()
                if header is None:
                    break

                entry_p = header.entry_p
                if dest_bytes is not None:
                    pathname = engine.entry_pathname(entry_p)
                    if pathname is not None:
                        engine.entry_copy_pathname(entry_p, _prefixed(dest_bytes, pathname))
                    hardlink = engine.entry_hardlink(entry_p)
                    if hardlink is not None:
                        engine.entry_copy_hardlink(entry_p, _prefixed(dest_bytes, hardlink))

                logger.debug("Extracting %r", header.pathname)
                engine.call(engine.write_header, write_p, entry_p)
                while True:
                    block = session.read_block()
                    if block is None:
                        break
                    if not block.data:
                        continue
                    size = len(block.data)
                    buffer = (ctypes.c_char * size).from_buffer(block.data)
                    engine.call(engine.write_data_block, write_p, buffer, size, block.offset)
                    written += size
                engine.call(engine.write_finish_entry, write_p)

            engine.call(engine.write_close, write_p)
        finally:
            engine.write_free(write_p)

        logger.debug("Extracted %d bytes", written)
        return written
