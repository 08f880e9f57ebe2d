from __future__ import annotations

import stat
import sys
from dataclasses import dataclass
from enum import Flag
from typing import TYPE_CHECKING, NamedTuple, Optional, Union

if TYPE_CHECKING:
    from enum import StrEnum
elif sys.version_info >= (3, 11):
    from enum import StrEnum
else:
    from backports.strenum import StrEnum


class ReadFormat(StrEnum):
    """Container formats libarchive can be asked to detect."""

    SEVENZIP = "7zip"
    ALL = "all"
    AR = "ar"
    CAB = "cab"
    CPIO = "cpio"
    EMPTY = "empty"
    GNUTAR = "gnutar"
    ISO9660 = "iso9660"
    LHA = "lha"
    MTREE = "mtree"
    RAR = "rar"
    RAW = "raw"
    TAR = "tar"
    XAR = "xar"
    ZIP = "zip"


class ReadFilter(StrEnum):
    """Stream filters (compressions and wrappers) libarchive can be asked to detect."""

    ALL = "all"
    BZIP2 = "bzip2"
    COMPRESS = "compress"
    GRZIP = "grzip"
    GZIP = "gzip"
    LRZIP = "lrzip"
    LZIP = "lzip"
    LZMA = "lzma"
    LZOP = "lzop"
    NONE = "none"
    RPM = "rpm"
    UU = "uu"
    XZ = "xz"


class ReadCompression(StrEnum):
    """Legacy compression names, registered through the older libarchive entry points."""

    ALL = "all"
    BZIP2 = "bzip2"
    COMPRESS = "compress"
    GZIP = "gzip"
    LZIP = "lzip"
    LZMA = "lzma"
    NONE = "none"
    RPM = "rpm"
    UU = "uu"
    XZ = "xz"


class MemberType(StrEnum):
    FILE = "file"
    SYMLINK = "symlink"
    SOCKET = "socket"
    CHAR_DEVICE = "char_device"
    DIR = "dir"
    FIFO = "fifo"
    UNKNOWN = "unknown"

    @classmethod
    def from_filetype(cls, filetype: int) -> "MemberType":
        """Map an ``AE_IF*`` file type (same bits as ``stat.S_IF*``) to a member type."""
        return _FILETYPE_TO_MEMBER_TYPE.get(stat.S_IFMT(filetype), cls.UNKNOWN)


_FILETYPE_TO_MEMBER_TYPE = {
    stat.S_IFREG: MemberType.FILE,
    stat.S_IFLNK: MemberType.SYMLINK,
    stat.S_IFSOCK: MemberType.SOCKET,
    stat.S_IFCHR: MemberType.CHAR_DEVICE,
    stat.S_IFDIR: MemberType.DIR,
    stat.S_IFIFO: MemberType.FIFO,
}


class ExtractOption(Flag):
    """Flags passed to ``archive_write_disk_set_options``."""

    OWNER = 0x0001
    PERM = 0x0002
    TIME = 0x0004
    NO_OVERWRITE = 0x0008
    UNLINK = 0x0010
    ACL = 0x0020
    FFLAGS = 0x0040
    XATTR = 0x0080
    SECURE_SYMLINKS = 0x0100
    SECURE_NODOTDOT = 0x0200
    NO_AUTODIR = 0x0400
    NO_OVERWRITE_NEWER = 0x0800
    SPARSE = 0x1000
    MAC_METADATA = 0x2000
    SECURE_NOABSOLUTEPATHS = 0x10000
    CLEAR_NOCHANGE_FFLAGS = 0x20000


class DataBlock(NamedTuple):
    """A chunk of decoded member content and its offset within the member."""

    data: Union[bytes, memoryview]
    offset: int


@dataclass(frozen=True)
class MemberInfo:
    """Metadata of a member, detached from the engine so it stays valid after advancing."""

    index: int
    name: Optional[str]
    """The member's path, or None if the archive has none or it is not valid UTF-8."""

    size: Optional[int]
    """The size of the member's data in bytes, or None if the engine doesn't know it."""

    type: MemberType

    @property
    def is_dir(self) -> bool:
        return self.type == MemberType.DIR

    @property
    def is_file(self) -> bool:
        return self.type == MemberType.FILE
