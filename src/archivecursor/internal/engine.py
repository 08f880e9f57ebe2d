"""The libarchive entry points used by archivecursor.

Most functions come straight from libarchive-c's ``ffi`` module, whose
``check_int`` raises :class:`libarchive.exception.ArchiveError` on failure
statuses and logs ``ARCHIVE_WARN``. The few symbols libarchive-c doesn't
declare are declared here the same way, on fresh ctypes function objects.
Use :func:`call` (or the session's own wrapper) to get :class:`EngineError`
instead of libarchive-c's exception.
"""

from __future__ import annotations

import logging
from ctypes import c_char_p, c_int, c_longlong, c_size_t, c_void_p
from typing import Any, Callable, Optional

from libarchive import ffi  # type: ignore[import]
from libarchive.exception import ArchiveError as LibArchiveError  # type: ignore[import]

from archivecursor.exceptions import EngineError

logger = logging.getLogger(__name__)

ARCHIVE_EOF: int = ffi.ARCHIVE_EOF
ARCHIVE_OK: int = ffi.ARCHIVE_OK
ARCHIVE_WARN: int = ffi.ARCHIVE_WARN
ARCHIVE_FATAL: int = ffi.ARCHIVE_FATAL

READ_CALLBACK = ffi.READ_CALLBACK
NO_OPEN_CB = ffi.NO_OPEN_CB
NO_CLOSE_CB = ffi.NO_CLOSE_CB

c_archive_p = ffi.c_archive_p
c_archive_entry_p = ffi.c_archive_entry_p

_lib = ffi.libarchive


def _declare(
    name: str,
    argtypes: list[Any],
    restype: Any,
    errcheck: Optional[Callable[..., Any]] = None,
) -> Callable[..., Any]:
    func = _lib["archive_" + name]
    func.argtypes = argtypes
    func.restype = restype
    if errcheck:
        func.errcheck = errcheck
    return func


def _declare_optional(
    name: str,
    argtypes: list[Any],
    restype: Any,
    errcheck: Optional[Callable[..., Any]] = None,
) -> Optional[Callable[..., Any]]:
    try:
        return _declare(name, argtypes, restype, errcheck)
    except AttributeError:
        logger.debug("libarchive has no archive_%s", name)
        return None


# Declared by libarchive-c
version_number = ffi.version_number
errno = ffi.errno
error_string = ffi.error_string
format_name = ffi.format_name
filter_count = ffi.filter_count
filter_name = ffi.filter_name

read_new = ffi.read_new
read_free = ffi.read_free
read_open = ffi.read_open
read_next_header = ffi.read_next_header
read_data_block = ffi.read_data_block
read_data = ffi.read_data
read_data_skip = ffi.read_data_skip
read_add_passphrase: Optional[Callable[..., Any]] = getattr(
    ffi, "read_add_passphrase", None
)

entry_pathname = ffi.entry_pathname
entry_hardlink = ffi.entry_hardlink
entry_size = ffi.entry_size
entry_size_is_set = ffi.entry_size_is_set
entry_filetype = ffi.entry_filetype
entry_copy_pathname = ffi.entry_copy_pathname

write_disk_new = ffi.write_disk_new
write_disk_set_options = ffi.write_disk_set_options
write_header = ffi.write_header
write_data_block = ffi.write_data_block
write_finish_entry = ffi.write_finish_entry
write_close = ffi.write_close
write_free = ffi.write_free

# Missing from libarchive-c
version_string = _declare("version_string", [], c_char_p)
set_error = _declare("set_error", [c_archive_p, c_int, c_char_p], None)
read_set_options = _declare(
    "read_set_options", [c_archive_p, c_char_p], c_int, ffi.check_int
)
read_open_filename = _declare(
    "read_open_filename", [c_archive_p, c_char_p, c_size_t], c_int, ffi.check_int
)
read_header_position = _declare("read_header_position", [c_archive_p], c_longlong)
read_support_filter_program = _declare(
    "read_support_filter_program", [c_archive_p, c_char_p], c_int, ffi.check_int
)
read_support_filter_program_signature = _declare(
    "read_support_filter_program_signature",
    [c_archive_p, c_char_p, c_void_p, c_size_t],
    c_int,
    ffi.check_int,
)
read_support_compression_program = _declare_optional(
    "read_support_compression_program", [c_archive_p, c_char_p], c_int, ffi.check_int
)
entry_copy_hardlink = _declare(
    "entry_copy_hardlink", [c_archive_entry_p, c_char_p], None
)
write_disk_set_standard_lookup = _declare(
    "write_disk_set_standard_lookup", [c_archive_p], c_int, ffi.check_int
)


_compression_functions: dict[str, Optional[Callable[..., Any]]] = {}


def support_function(kind: str, name: str) -> Optional[Callable[..., Any]]:
    """Return ``archive_read_support_<kind>_<name>``, or None if this libarchive lacks it."""
    if kind == "format":
        getter = ffi.get_read_format_function
    elif kind == "filter":
        getter = ffi.get_read_filter_function
    else:
        key = f"read_support_{kind}_{name}"
        if key not in _compression_functions:
            _compression_functions[key] = _declare_optional(
                key, [c_archive_p], c_int, ffi.check_int
            )
        return _compression_functions[key]

    try:
        return getter(name)
    except ValueError:
        logger.debug("libarchive has no read_support_%s_%s", kind, name)
        return None


def engine_error(error: LibArchiveError) -> EngineError:
    """Convert libarchive-c's exception to an :class:`EngineError`."""
    message = error.msg
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    if not message:
        message = "Unknown libarchive error"
    code = error.retcode if error.retcode is not None else ARCHIVE_FATAL
    return EngineError(message, code, error.errno)


def call(func: Callable[..., Any], *args: Any) -> Any:
    """Call an engine function, raising :class:`EngineError` if it fails."""
    try:
        return func(*args)
    except LibArchiveError as e:
        raise engine_error(e) from e


def filter_names(archive_p: int) -> list[str]:
    names = []
    for i in range(filter_count(archive_p)):
        name = filter_name(archive_p, i)
        if name is not None:
            names.append(name.decode("utf-8", errors="replace"))
    return names
