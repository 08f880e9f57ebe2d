"""Configuration of a libarchive read handle, up to the point it is opened."""

from __future__ import annotations

import logging
import os
import weakref
from typing import Optional, Union

from libarchive.exception import ArchiveError as LibArchiveError  # type: ignore[import]

from archivecursor.config import ReaderConfig, get_default_config
from archivecursor.exceptions import AlreadyConsumedError, EngineError
from archivecursor.internal import engine
from archivecursor.internal.bridge import ByteSource, ByteSourceBridge
from archivecursor.internal.utils import path_to_bytes
from archivecursor.session import ReadSession
from archivecursor.types import ReadCompression, ReadFilter, ReadFormat

logger = logging.getLogger(__name__)


def _free_unconsumed(archive_p: int) -> None:
    try:
        engine.read_free(archive_p)
    except LibArchiveError as e:
        logger.error("archive_read_free failed: %s", e)
    else:
        logger.debug("Released unused archive handle %#x", archive_p)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class ReaderBuilder:
    """Declares what libarchive should be able to read, then opens one session.

    Every ``support_*`` call registers one format or filter with the engine and
    returns the builder, so calls can be chained; an engine failure raises
    :class:`EngineError` immediately. Once :meth:`open_file` or
    :meth:`open_stream` has produced a session, the builder is consumed and
    any further use raises :class:`AlreadyConsumedError`.

    A builder that never opens anything frees its engine handle on
    :meth:`close` or when it is garbage collected.

    Example::

        with ReaderBuilder().support_all().open_file("sample.tar.gz") as session:
            for member in session:
                print(member.name, member.size)
    """

    def __init__(self, config: Optional[ReaderConfig] = None):
        self.config: ReaderConfig = config or get_default_config()
        archive_p = engine.call(engine.read_new)
        self._archive_p: int = archive_p
        self._consumed = False
        self._finalizer = weakref.finalize(self, _free_unconsumed, archive_p)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _handle(self) -> int:
        if self._consumed:
            raise AlreadyConsumedError("This builder was already used to open an archive")
        return self._archive_p

    def _consume(self) -> None:
        self._consumed = True
        self._finalizer.detach()

    def _call(self, func, *args) -> "ReaderBuilder":
        engine.call(func, *args)
        return self

    def _apply_config_options(self) -> None:
        # Module-scoped options need their format or filter registered first.
        if self.config.options:
            self.set_options(self.config.options)

    def _support(self, kind: str, name: str) -> "ReaderBuilder":
        archive_p = self._handle()
        func = engine.support_function(kind, name)
        if func is None:
            raise EngineError(
                f"libarchive was built without {kind} support for {name!r}",
                engine.ARCHIVE_FATAL,
            )
        logger.debug("Enabling %s %s", kind, name)
        return self._call(func, archive_p)

    def support_format(self, format: Union[ReadFormat, str]) -> "ReaderBuilder":
        return self._support("format", ReadFormat(format).value)

    def support_filter(self, filter: Union[ReadFilter, str]) -> "ReaderBuilder":
        return self._support("filter", ReadFilter(filter).value)

    def support_compression(
        self, compression: Union[ReadCompression, str]
    ) -> "ReaderBuilder":
        name = ReadCompression(compression).value
        # libarchive 4 drops the compression_* aliases of the filter functions.
        if engine.support_function("compression", name) is None:
            return self._support("filter", name)
        return self._support("compression", name)

    def support_filter_program(
        self, command: str, signature: Optional[bytes] = None
    ) -> "ReaderBuilder":
        """Decode data with an external program, optionally only when it starts with ``signature``."""
        archive_p = self._handle()
        if signature:
            return self._call(
                engine.read_support_filter_program_signature,
                archive_p,
                _to_bytes(command),
                signature,
                len(signature),
            )
        return self._call(engine.read_support_filter_program, archive_p, _to_bytes(command))

    def support_compression_program(self, command: str) -> "ReaderBuilder":
        if engine.read_support_compression_program is None:
            return self.support_filter_program(command)
        archive_p = self._handle()
        return self._call(
            engine.read_support_compression_program, archive_p, _to_bytes(command)
        )

    def support_all(self) -> "ReaderBuilder":
        """Enable every format, filter and compression this libarchive knows."""
        return (
            self.support_format(ReadFormat.ALL)
            .support_filter(ReadFilter.ALL)
            .support_compression(ReadCompression.ALL)
        )

    def add_passphrase(self, passphrase: Union[str, bytes]) -> "ReaderBuilder":
        """Register a passphrase to try on encrypted entries."""
        archive_p = self._handle()
        if engine.read_add_passphrase is None:
            raise EngineError(
                "libarchive is too old to support passphrases", engine.ARCHIVE_FATAL
            )
        return self._call(engine.read_add_passphrase, archive_p, _to_bytes(passphrase))

    def set_options(self, options: str) -> "ReaderBuilder":
        """Pass a libarchive option string, e.g. ``"zip:hdrcharset=CP932"``."""
        archive_p = self._handle()
        return self._call(engine.read_set_options, archive_p, _to_bytes(options))

    def open_file(self, path: Union[str, bytes, os.PathLike]) -> ReadSession:
        """Open the archive at ``path``.

        On failure the builder is not consumed, but libarchive usually refuses
        to be reopened after a failed open.
        """
        archive_p = self._handle()
        self._apply_config_options()
        logger.debug("Opening %r with block size %d", path, self.config.block_size)
        engine.call(
            engine.read_open_filename,
            archive_p,
            path_to_bytes(path),
            self.config.block_size,
        )
        self._consume()
        return ReadSession(archive_p, config=self.config)

    def open_stream(self, source: ByteSource) -> ReadSession:
        """Open an archive read from ``source``, any object with a ``read()`` method.

        The builder is consumed even if opening fails; in that case the
        engine handle is released before the error is raised.
        """
        archive_p = self._handle()
        if not callable(getattr(source, "read", None)):
            raise TypeError(f"Expected an object with a read() method, got {type(source)}")
        self._apply_config_options()

        bridge = ByteSourceBridge(source, self.config.stream_buffer_size)
        self._consume()
        session = ReadSession(archive_p, bridge, self.config)

        logger.debug(
            "Opening stream %r with a %d byte buffer", source, bridge.buffer_size
        )
        try:
            session._call(
                engine.read_open,
                archive_p,
                None,
                engine.NO_OPEN_CB,
                bridge.callback,
                engine.NO_CLOSE_CB,
            )
        except EngineError:
            session.close()
            raise
        return session

    def close(self) -> None:
        """Free the engine handle if no session was opened with it."""
        self._consumed = True
        self._finalizer()

    def __enter__(self) -> "ReaderBuilder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._consumed:
            self.close()
