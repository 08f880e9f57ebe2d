"""Defines the exceptions raised by archivecursor."""

from __future__ import annotations

from typing import Optional


class ArchiveError(Exception):
    """Base exception for all archive-related errors encountered by archivecursor."""

    pass


class EngineError(ArchiveError):
    """
    Raised when libarchive returns a failure status.

    Carries the engine's own return code, the errno it recorded (0 if none)
    and its diagnostic message.
    """

    def __init__(self, message: str, code: int, errno: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.errno = errno

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code}, "
            f"errno={self.errno})"
        )


class SourceIOError(EngineError):
    """
    Raised when the byte source an archive is streamed from failed while the
    engine was pulling data from it.
    """

    def __init__(
        self,
        message: str,
        code: int,
        errno: Optional[int] = None,
        source_error: Optional[BaseException] = None,
    ):
        super().__init__(message, code, errno)
        self.source_error = source_error


class AlreadyConsumedError(ArchiveError):
    """Raised when a builder or session is used again after it was consumed."""

    pass


class StaleMemberError(RuntimeError):
    """
    Raised when a member handle is used after the iterator that produced it
    has advanced. This is a programming error, not an archive problem.
    """

    pass
