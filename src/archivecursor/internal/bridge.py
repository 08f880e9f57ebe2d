"""Adapter between libarchive's read callback and an arbitrary byte source."""

from __future__ import annotations

import ctypes
import logging
from typing import Optional, Protocol, runtime_checkable

from archivecursor.exceptions import SourceIOError
from archivecursor.internal import engine

logger = logging.getLogger(__name__)


@runtime_checkable
class ByteSource(Protocol):
    """Any object supporting ``read()`` that returns bytes."""

    def read(self, size: int = -1) -> bytes: ...


class ByteSourceBridge:
    """Feeds a :class:`ByteSource` to libarchive, one scratch buffer at a time.

    The ctypes buffer and the callback thunk live as long as the bridge does;
    libarchive keeps raw pointers to both, so whoever owns the engine handle
    must keep the bridge alive until that handle is freed.
    """

    def __init__(self, source: ByteSource, buffer_size: int = 8192):
        if buffer_size <= 0:
            raise ValueError(f"Invalid buffer size: {buffer_size}")
        self._source = source
        self._buffer = ctypes.create_string_buffer(buffer_size)
        self._buffer_p = ctypes.cast(self._buffer, ctypes.c_void_p)
        self._readinto = getattr(source, "readinto", None)
        self._detached = False
        self.error: Optional[BaseException] = None
        self.bytes_pulled = 0
        self.callback = engine.READ_CALLBACK(self._read_callback)

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    @property
    def detached(self) -> bool:
        return self._detached

    def detach(self) -> None:
        """Stop serving pulls; called when the owning session starts tearing down."""
        self._detached = True
        self._source = None  # type: ignore[assignment]
        self._readinto = None

    def _fill_buffer(self) -> int:
        if self._readinto is not None:
            n = self._readinto(self._buffer)
            return n or 0

        data = self._source.read(len(self._buffer))
        if not data:
            return 0
        if len(data) > len(self._buffer):
            raise ValueError(
                f"Source returned {len(data)} bytes, more than the {len(self._buffer)} requested"
            )
        ctypes.memmove(self._buffer, data, len(data))
        return len(data)

    def _read_callback(self, archive_p, context, buffer_pp) -> int:
        if self._detached:
            engine.set_error(archive_p, 0, b"Byte source used after the session was closed")
            return engine.ARCHIVE_FATAL

        buffer_pp[0] = self._buffer_p
        try:
            n = self._fill_buffer()
        except Exception as e:
            # Exceptions can't cross the C boundary; keep it for take_error().
            self.error = e
            errno = getattr(e, "errno", None) or 0
            message = f"Error reading from source: {e}".replace("%", "%%")
            engine.set_error(archive_p, errno, message.encode("utf-8", errors="replace"))
            logger.debug("Byte source failed after %d bytes: %r", self.bytes_pulled, e)
            return engine.ARCHIVE_FATAL

        self.bytes_pulled += n
        return n

    def take_error(self, cause: Optional[BaseException] = None) -> Optional[SourceIOError]:
        """Turn a recorded source failure into a :class:`SourceIOError`, clearing it.

        ``cause`` is the engine error raised by the call the failure happened in;
        its code, and its errno when the source error has none, are carried over.
        """
        error, self.error = self.error, None
        if error is None:
            return None
        code = getattr(cause, "code", engine.ARCHIVE_FATAL)
        errno = getattr(error, "errno", None) or getattr(cause, "errno", None)
        message = f"Error reading from source: {error}"
        return SourceIOError(message, code, errno, source_error=error)
