"""Lazy, forward-only iteration over the members of a :class:`ReadSession`."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, BinaryIO, Iterator, Optional

from archivecursor.types import DataBlock, MemberInfo, MemberType, StrEnum

if TYPE_CHECKING:
    from archivecursor.session import HeaderView, ReadSession

logger = logging.getLogger(__name__)


class IteratorState(StrEnum):
    NOT_STARTED = "not_started"
    POSITIONED = "positioned"
    EXHAUSTED = "exhausted"
    ERRORED = "errored"


class MemberIterator(Iterator["MemberHandle"]):
    """Yields a :class:`MemberHandle` for each member, in archive order.

    Advancing moves the engine's only cursor, which invalidates every handle
    produced earlier. Once the archive ends or the engine reports an error,
    the iterator stays finished.
    """

    def __init__(self, session: "ReadSession"):
        self._session = session
        self.state = IteratorState.NOT_STARTED

    @property
    def session(self) -> "ReadSession":
        return self._session

    @property
    def current_index(self) -> Optional[int]:
        return self._session.current_index

    def header_position(self) -> int:
        return self._session.header_position()

    def __iter__(self) -> "MemberIterator":
        return self

    def __next__(self) -> "MemberHandle":
        if self.state in (IteratorState.EXHAUSTED, IteratorState.ERRORED):
            raise StopIteration

        with self._session._lock:
            try:
                header = self._session.next_header()
            except Exception:
                self.state = IteratorState.ERRORED
                raise

            if header is None:
                self.state = IteratorState.EXHAUSTED
                logger.debug(
                    "Archive exhausted after %d members", self._session.current_index
                )
                raise StopIteration

            self.state = IteratorState.POSITIONED
            return MemberHandle(self._session, header)


class MemberHandle:
    """A view of one member, usable only while it is the current member.

    Every metadata accessor and content read first checks that no other
    member has been reached since this handle was produced, and raises
    :class:`StaleMemberError` otherwise. Content is read from the session's
    cursor; use :meth:`info` to keep the metadata around after advancing.
    """

    def __init__(self, session: "ReadSession", header: "HeaderView"):
        self._session = session
        self._header = header
        self.index = header.index

    def is_current(self) -> bool:
        return self._header.is_current()

    def check_current(self) -> None:
        self._header.check_current()

    @property
    def name(self) -> Optional[str]:
        """The member's path, or None if it is missing or not valid UTF-8."""
        self.check_current()
        return self._header.pathname

    @property
    def size(self) -> Optional[int]:
        """The size of the member's data in bytes, or None if unknown."""
        self.check_current()
        return self._header.size

    @property
    def type(self) -> MemberType:
        self.check_current()
        return self._header.type

    @property
    def is_dir(self) -> bool:
        return self.type == MemberType.DIR

    @property
    def is_file(self) -> bool:
        return self.type == MemberType.FILE

    def info(self) -> MemberInfo:
        """Return a snapshot of the metadata that stays valid after advancing."""
        self.check_current()
        return MemberInfo(
            index=self.index,
            name=self._header.pathname,
            size=self._header.size,
            type=self._header.type,
        )

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes of content, or everything left if ``size`` is negative."""
        self.check_current()
        if size >= 0:
            return self._session.read_data(size)

        chunk_size = self._session.config.read_chunk_size
        chunks = []
        while True:
            self.check_current()
            chunk = self._session.read_data(chunk_size)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    def readinto(self, b: bytearray | memoryview) -> int:
        self.check_current()
        return self._session.read_data_into(b)

    def iter_blocks(self) -> Iterator[DataBlock]:
        """Yield the remaining content as engine-sized blocks."""
        while True:
            self.check_current()
            block = self._session.read_block(copy=True)
            if block is None:
                return
            yield block

    def open(self) -> BinaryIO:
        """Return a non-seekable file object over the remaining content."""
        self.check_current()
        return io.BufferedReader(
            _MemberStream(self), buffer_size=self._session.config.read_chunk_size
        )  # type: ignore[return-value]

    def __repr__(self) -> str:
        if self._session.closed or not self.is_current():
            return f"<MemberHandle #{self.index} (stale)>"
        return f"<MemberHandle #{self.index} {self._header.pathname!r}>"


class _MemberStream(io.RawIOBase, BinaryIO):
    """Wrap a member's content reads as a streaming file-like object."""

    def __init__(self, member: MemberHandle) -> None:
        super().__init__()
        self._member = member

    def readable(self) -> bool:  # pragma: no cover - trivial
        return True

    def writable(self) -> bool:  # pragma: no cover - trivial
        return False

    def seekable(self) -> bool:  # pragma: no cover - trivial
        return False

    def readinto(self, b: bytearray | memoryview) -> int:  # type: ignore[override]
        if self.closed:
            raise ValueError("I/O operation on closed file")
        return self._member.readinto(b)

    def seek(
        self, offset: int, whence: int = io.SEEK_SET
    ) -> int:  # pragma: no cover - trivial
        raise io.UnsupportedOperation("seek")

    def tell(self) -> int:  # pragma: no cover - trivial
        raise io.UnsupportedOperation("tell")
