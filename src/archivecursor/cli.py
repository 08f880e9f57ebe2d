# Lists the members of archives with their checksums, reading each archive in a single pass.

import argparse
import contextlib
import logging
import zlib
from typing import IO, Optional, Sequence

from tqdm import tqdm

from archivecursor.core import open_archive
from archivecursor.exceptions import ArchiveError
from archivecursor.types import MemberInfo, MemberType

TYPE_CHARS = {
    MemberType.FILE: "-",
    MemberType.DIR: "d",
    MemberType.SYMLINK: "l",
    MemberType.SOCKET: "s",
    MemberType.CHAR_DEVICE: "c",
    MemberType.FIFO: "p",
    MemberType.UNKNOWN: "?",
}


def format_member(info: MemberInfo, crc32: Optional[int] = None) -> str:
    size_str = "?" * 12 if info.size is None else f"{info.size:12d}"
    crc_str = " " * 8 if crc32 is None else f"{crc32:08x}"
    name = info.name if info.name is not None else "<undecodable name>"
    return f"{TYPE_CHARS[info.type]}  {size_str}  {crc_str}  {name}"


def get_member_checksum(member_file: IO[bytes]) -> int:
    """Compute the CRC32 of a member's content."""
    crc32_value = 0
    for block in iter(lambda: member_file.read(65536), b""):
        crc32_value = zlib.crc32(block, crc32_value)
    return crc32_value & 0xFFFFFFFF


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="List contents of archive files with checksums."
    )
    parser.add_argument("files", nargs="+", help="Archive files to process")
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Read the archive through a file object instead of by path",
    )
    parser.add_argument("--info", action="store_true", help="Print the detected format")
    parser.add_argument("--password", help="Password for encrypted archives")
    parser.add_argument("--hide-progress", action="store_true", help="Hide progress bar")
    return parser


def process_archive(path: str, args: argparse.Namespace) -> None:
    with contextlib.ExitStack() as stack:
        source = stack.enter_context(open(path, "rb")) if args.stream else path
        session = stack.enter_context(open_archive(source, passphrase=args.password))

        members = iter(session)
        if args.info:
            print(f"Archive format: {session.format_name} filters: {session.filter_names}")

        for member in tqdm(
            members,
            desc="Computing checksums",
            disable=args.hide_progress,
            unit="member",
        ):
            crc32 = None
            if member.is_file:
                with member.open() as f:
                    crc32 = get_member_checksum(f)
            print(format_member(member.info(), crc32))


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_arg_parser().parse_args(argv)

    status = 0
    for path in args.files:
        print(f"\nProcessing {path}:")
        try:
            process_archive(path, args)
        except (ArchiveError, OSError) as e:
            print(f"Error processing {path}: {e}")
            status = 1
    return status


if __name__ == "__main__":
    raise SystemExit(main())
