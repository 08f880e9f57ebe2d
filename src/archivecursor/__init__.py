from archivecursor.builder import ReaderBuilder
from archivecursor.config import (
    ReaderConfig,
    default_config,
    get_default_config,
    set_default_config,
)
from archivecursor.core import open_archive
from archivecursor.disk import DiskWriter
from archivecursor.exceptions import (
    AlreadyConsumedError,
    ArchiveError,
    EngineError,
    SourceIOError,
    StaleMemberError,
)
from archivecursor.members import MemberHandle, MemberIterator
from archivecursor.session import HeaderView, ReadSession
from archivecursor.types import (
    DataBlock,
    ExtractOption,
    MemberInfo,
    MemberType,
    ReadCompression,
    ReadFilter,
    ReadFormat,
)

__all__ = [
    # Core
    "open_archive",
    "ReaderBuilder",
    "ReadSession",
    "HeaderView",
    "MemberIterator",
    "MemberHandle",
    "MemberInfo",
    "DataBlock",
    "DiskWriter",
    # Enums
    "ReadFormat",
    "ReadFilter",
    "ReadCompression",
    "MemberType",
    "ExtractOption",
    # Config
    "ReaderConfig",
    "default_config",
    "get_default_config",
    "set_default_config",
    # Exceptions
    "ArchiveError",
    "EngineError",
    "SourceIOError",
    "AlreadyConsumedError",
    "StaleMemberError",
]

__version__ = "0.1.0"
