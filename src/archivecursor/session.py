"""The live libarchive read handle and its low-level read primitives."""

from __future__ import annotations

import ctypes
import logging
import threading
import weakref
from typing import TYPE_CHECKING, Any, Callable, Optional

from libarchive.exception import ArchiveError as LibArchiveError  # type: ignore[import]

from archivecursor.config import ReaderConfig, get_default_config
from archivecursor.exceptions import AlreadyConsumedError, StaleMemberError
from archivecursor.internal import engine
from archivecursor.internal.bridge import ByteSourceBridge
from archivecursor.internal.utils import decode_pathname
from archivecursor.types import DataBlock, MemberType

if TYPE_CHECKING:
    from archivecursor.members import MemberIterator

logger = logging.getLogger(__name__)


class CurrentMember:
    """The index of the member the engine is positioned on.

    Bumped before every advance of the session's cursor, so views and handles
    produced earlier can tell they no longer describe the current entry.
    """

    __slots__ = ("index",)

    def __init__(self) -> None:
        self.index: Optional[int] = None

    def advance(self) -> int:
        self.index = 0 if self.index is None else self.index + 1
        return self.index


class HeaderView:
    """View of the entry libarchive was positioned on by one advance.

    The entry is owned by the engine and overwritten on every advance, so a
    view can only be read until the session moves on or is closed; after
    that, every property raises :class:`StaleMemberError` or
    ``ValueError("Archive is closed")``.
    """

    def __init__(self, session: "ReadSession", entry_p: int, index: int):
        self._session = session
        self._entry_p = entry_p
        self.index = index

    def is_current(self) -> bool:
        return self._session.current_index == self.index

    def check_current(self) -> None:
        if self._session.closed:
            raise ValueError("Archive is closed")
        if not self.is_current():
            raise StaleMemberError(
                f"Member {self.index} can only be used while it is the current "
                f"member (current is {self._session.current_index})"
            )

    @property
    def entry_p(self) -> int:
        """The engine's entry pointer, valid until the next call on the session."""
        self.check_current()
        return self._entry_p

    @property
    def pathname(self) -> Optional[str]:
        with self._session._lock:
            return decode_pathname(engine.entry_pathname(self.entry_p))

    @property
    def size(self) -> Optional[int]:
        with self._session._lock:
            entry_p = self.entry_p
            if not engine.entry_size_is_set(entry_p):
                return None
            size = engine.entry_size(entry_p)
        return size if size >= 0 else None

    @property
    def type(self) -> MemberType:
        with self._session._lock:
            return MemberType.from_filetype(engine.entry_filetype(self.entry_p))

    def __repr__(self) -> str:
        if self._session.closed or not self.is_current():
            return f"<HeaderView #{self.index} (stale)>"
        return f"HeaderView(pathname={self.pathname!r}, size={self.size}, type={self.type})"


def _release(archive_p: int, bridge: Optional[ByteSourceBridge]) -> None:
    if bridge is not None:
        bridge.detach()
    try:
        engine.read_free(archive_p)
    except LibArchiveError as e:
        logger.error("archive_read_free failed: %s", e)
    else:
        logger.debug("Released archive handle %#x", archive_p)
    # The finalizer drops its reference to the bridge only after this returns.


class ReadSession:
    """Owns an open libarchive read handle for the duration of an archive read.

    Sessions are created by :class:`archivecursor.builder.ReaderBuilder`. The
    handle is freed exactly once, by :meth:`close`, by leaving a ``with`` block,
    or when the session is garbage collected. When the archive is read from a
    stream, the session also keeps the :class:`ByteSourceBridge` alive until
    the handle has been freed.

    Every advance of the engine's cursor, whether through :meth:`next_header`,
    a :class:`MemberIterator` or a :class:`DiskWriter`, invalidates the header
    views and member handles produced before it.

    Engine calls are serialized with a per-session lock; libarchive handles
    are not safe for concurrent use.
    """

    def __init__(
        self,
        archive_p: int,
        bridge: Optional[ByteSourceBridge] = None,
        config: Optional[ReaderConfig] = None,
    ):
        self._archive_p = archive_p
        self._bridge = bridge
        self.config: ReaderConfig = config or get_default_config()
        self._lock = threading.RLock()
        self._current = CurrentMember()
        self._iterated = False
        self._finalizer = weakref.finalize(self, _release, archive_p, bridge)

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def is_stream(self) -> bool:
        return self._bridge is not None

    @property
    def current_index(self) -> Optional[int]:
        """Index of the member the cursor was last advanced to, None before the first advance."""
        return self._current.index

    def _handle(self) -> int:
        if self.closed:
            raise ValueError("Archive is closed")
        return self._archive_p

    def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except LibArchiveError as e:
            error = engine.engine_error(e)
            if self._bridge is not None:
                source_error = self._bridge.take_error(error)
                if source_error is not None:
                    raise source_error from source_error.source_error
            raise error from e

    def next_header(self) -> Optional[HeaderView]:
        """Advance to the next member.

        Returns a view of its header, or None at the end of the archive.
        Raises :class:`EngineError` if the archive is corrupted.
        """
        with self._lock:
            archive_p = self._handle()
            index = self._current.advance()
            entry_p = ctypes.c_void_p()
            code = self._call(engine.read_next_header, archive_p, ctypes.byref(entry_p))
            if code == engine.ARCHIVE_EOF:
                logger.debug("End of archive at position %d", self.header_position())
                return None
            return HeaderView(self, entry_p.value, index)

    def header_position(self) -> int:
        """Number of bytes of the (decompressed) archive consumed before the last header."""
        with self._lock:
            return engine.read_header_position(self._handle())

    def read_block(self, copy: bool = False) -> Optional[DataBlock]:
        """Read the next block of the current member's data, or None at its end.

        Unless ``copy`` is set, the block's data is a view of the engine's own
        buffer, valid only until the next call on this session.
        """
        with self._lock:
            archive_p = self._handle()
            buff = ctypes.c_void_p()
            size = ctypes.c_size_t()
            offset = ctypes.c_longlong()
            code = self._call(
                engine.read_data_block,
                archive_p,
                ctypes.byref(buff),
                ctypes.byref(size),
                ctypes.byref(offset),
            )
            if code == engine.ARCHIVE_EOF:
                return None
            if not size.value:
                return DataBlock(b"", offset.value)
            if copy:
                return DataBlock(ctypes.string_at(buff.value, size.value), offset.value)
            view = (ctypes.c_ubyte * size.value).from_address(buff.value)
            return DataBlock(memoryview(view), offset.value)

    def _read_data(self, archive_p: int, target: Any, length: int) -> int:
        while True:
            n = self._call(engine.read_data, archive_p, target, length)
            # The warning is logged; the engine can carry on with the member.
            if n != engine.ARCHIVE_WARN:
                return n

    def read_data_into(self, b: bytearray | memoryview) -> int:
        """Read current member data into ``b``; returns 0 at the end of the member."""
        length = len(b)
        if length == 0:
            return 0
        with self._lock:
            archive_p = self._handle()
            target = (ctypes.c_char * length).from_buffer(b)
            try:
                return self._read_data(archive_p, target, length)
            finally:
                # Release the export of b before an error can keep this frame alive.
                del target

    def read_data(self, size: int) -> bytes:
        """Read up to ``size`` bytes of the current member; returns b"" at its end."""
        if size <= 0:
            return b""
        with self._lock:
            archive_p = self._handle()
            buffer = ctypes.create_string_buffer(size)
            n = self._read_data(archive_p, buffer, size)
            return buffer.raw[:n]

    def skip_data(self) -> None:
        """Discard whatever is left of the current member's data."""
        with self._lock:
            self._call(engine.read_data_skip, self._handle())

    @property
    def format_name(self) -> Optional[str]:
        """The container format libarchive detected, e.g. ``"POSIX ustar format"``."""
        with self._lock:
            name = engine.format_name(self._handle())
        return name.decode("utf-8", errors="replace") if name is not None else None

    @property
    def filter_names(self) -> list[str]:
        """The filters libarchive applied, outermost first, e.g. ``["gzip", "none"]``."""
        with self._lock:
            return engine.filter_names(self._handle())

    def members(self) -> "MemberIterator":
        """Return the iterator over the archive's members.

        A session can only be iterated once, since all members share the
        engine's single cursor.
        """
        from archivecursor.members import MemberIterator

        with self._lock:
            self._handle()
            if self._iterated:
                raise AlreadyConsumedError("Archive members can only be iterated once")
            self._iterated = True
        return MemberIterator(self)

    def __iter__(self) -> "MemberIterator":
        return self.members()

    def close(self) -> None:
        """Free the engine handle. Safe to call more than once."""
        with self._lock:
            self._finalizer()

    def __enter__(self) -> "ReadSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        source = "stream" if self.is_stream else "file"
        return f"<ReadSession {state} {source}>"
