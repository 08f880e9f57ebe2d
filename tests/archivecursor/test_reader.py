import io
import tarfile

import pytest

from archivecursor import (
    AlreadyConsumedError,
    EngineError,
    MemberInfo,
    MemberType,
    ReaderBuilder,
    StaleMemberError,
    open_archive,
)
from archivecursor.members import IteratorState
from tests.archivecursor.sample_archives import (
    HELLO_CONTENT,
    HELLO_TAR_GZ,
    HELLO_ZIP,
    LARGE_TAR,
    MIXED_TYPES_TAR,
    FileInfo,
    SampleArchive,
    build_archive,
)


def test_read_single_member(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        members = iter(session)
        member = next(members)
        assert member.name == "hello.txt"
        assert member.size == len(HELLO_CONTENT) == 14
        assert member.type == MemberType.FILE
        assert member.is_file
        assert not member.is_dir
        assert member.read() == HELLO_CONTENT

        with pytest.raises(StopIteration):
            next(members)


def test_handle_is_stale_after_exhaustion(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        members = iter(session)
        member = next(members)
        info = member.info()

        with pytest.raises(StopIteration):
            next(members)

        assert not member.is_current()
        with pytest.raises(StaleMemberError):
            member.name
        with pytest.raises(StaleMemberError):
            member.read()
        with pytest.raises(StaleMemberError):
            member.info()

        assert info == MemberInfo(
            index=0, name="hello.txt", size=14, type=MemberType.FILE
        )


def test_previous_handle_is_stale_after_advancing(write_sample):
    path = write_sample(LARGE_TAR)
    with open_archive(path) as session:
        members = iter(session)
        first = next(members)
        second = next(members)

        with pytest.raises(StaleMemberError):
            first.size
        with pytest.raises(StaleMemberError):
            list(first.iter_blocks())
        assert second.name == "file1.txt"
        assert "stale" in repr(first)


def test_metadata_can_be_read_repeatedly(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        member = next(iter(session))
        assert [member.name for _ in range(3)] == ["hello.txt"] * 3
        assert member.read(5) == HELLO_CONTENT[:5]
        assert member.name == "hello.txt"
        assert member.read() == HELLO_CONTENT[5:]
        assert member.read() == b""


def test_next_header_without_iterator(hello_tar_gz):
    with ReaderBuilder().support_all().open_file(hello_tar_gz) as session:
        header = session.next_header()
        assert header is not None
        assert header.pathname == "hello.txt"
        assert header.size == 14
        assert header.type == MemberType.FILE
        assert session.read_data(100) == HELLO_CONTENT

        assert session.next_header() is None


def test_header_position_on_stream(hello_tar_gz):
    data = hello_tar_gz.read_bytes()
    with ReaderBuilder().support_all().open_stream(io.BytesIO(data)) as session:
        members = session.members()
        assert members.header_position() == 0

        member = next(members)
        assert member.name == "hello.txt"
        assert members.header_position() == 0

        with pytest.raises(StopIteration):
            next(members)
        assert members.header_position() == 1024


def test_header_positions_increase(write_sample):
    path = write_sample(LARGE_TAR)
    with open_archive(path) as session:
        members = session.members()
        positions = []
        indexes = []
        for member in members:
            positions.append(members.header_position())
            indexes.append(member.index)
            assert members.current_index == member.index

        assert indexes == list(range(len(LARGE_TAR.files)))
        assert positions == sorted(set(positions))
        assert members.header_position() > positions[-1]


@pytest.mark.parametrize(
    "sample",
    [HELLO_TAR_GZ, MIXED_TYPES_TAR, LARGE_TAR],
    ids=lambda s: s.filename,
)
def test_path_and_stream_agree(write_sample, sample):
    path = write_sample(sample)

    with open_archive(path) as session:
        from_path = [m.info() for m in session]
    with open(path, "rb") as f, open_archive(f) as session:
        from_stream = [m.info() for m in session]

    assert from_path == from_stream
    assert [(i.name, i.size, i.type) for i in from_path] == sample.expected_members()
    assert [i.index for i in from_path] == list(range(len(sample.files)))


def test_member_contents(write_sample):
    path = write_sample(MIXED_TYPES_TAR)
    expected = {f.name: f.contents for f in MIXED_TYPES_TAR.files if f.contents is not None}

    contents = {}
    with open_archive(path) as session:
        for member in session:
            if member.is_file:
                with member.open() as f:
                    contents[member.name] = f.read()

    assert contents == expected


def test_read_blocks(write_sample):
    path = write_sample(LARGE_TAR)
    with open_archive(path) as session:
        member = next(iter(session))
        blocks = list(member.iter_blocks())

    assert blocks[0].offset == 0
    assert b"".join(block.data for block in blocks) == LARGE_TAR.files[0].contents


def test_readinto(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        member = next(iter(session))
        buffer = bytearray(100)
        n = member.readinto(buffer)
        assert buffer[:n] == HELLO_CONTENT
        assert member.readinto(buffer) == 0


def test_zip_members(write_sample):
    path = write_sample(HELLO_ZIP)
    with open_archive(path) as session:
        result = [(m.name, m.size, m.read()) for m in session]
        assert session.format_name is not None
        assert "zip" in session.format_name.lower()

    assert result == [(f.name, f.expected_size, f.contents) for f in HELLO_ZIP.files]


def test_format_and_filters(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        next(iter(session))
        assert "tar" in session.format_name.lower()
        assert session.filter_names[0] == "gzip"


def test_undecodable_name(tmp_path):
    buffer = io.BytesIO()
    with tarfile.open(
        fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT, encoding="latin-1"
    ) as tf:
        info = tarfile.TarInfo("caf\xe9.txt")
        info.size = 3
        info.mtime = 1_600_000_000
        tf.addfile(info, io.BytesIO(b"abc"))

    with open_archive(io.BytesIO(buffer.getvalue())) as session:
        member = next(iter(session))
        assert member.name is None
        assert member.read() == b"abc"


def test_second_iteration_fails(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        assert [m.name for m in session] == ["hello.txt"]
        with pytest.raises(AlreadyConsumedError):
            iter(session)
        with pytest.raises(AlreadyConsumedError):
            session.members()


def test_use_after_close(hello_tar_gz):
    session = open_archive(hello_tar_gz)
    member = next(iter(session))
    session.close()
    session.close()

    assert session.closed
    with pytest.raises(ValueError, match="Archive is closed"):
        member.read()
    with pytest.raises(ValueError, match="Archive is closed"):
        member.name
    with pytest.raises(ValueError, match="Archive is closed"):
        session.read_data(10)
    with pytest.raises(ValueError, match="Archive is closed"):
        session.header_position()


def test_read_after_exhaustion_fails(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        assert session.next_header() is not None
        assert session.next_header() is None
        with pytest.raises(EngineError) as exc_info:
            session.read_data(10)
        assert exc_info.value.code < 0
        assert exc_info.value.message


def test_iterator_stays_exhausted(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        members = iter(session)
        assert members.state == IteratorState.NOT_STARTED
        next(members)
        assert members.state == IteratorState.POSITIONED

        for _ in range(3):
            with pytest.raises(StopIteration):
                next(members)
        assert members.state == IteratorState.EXHAUSTED
        assert members.header_position() == 1024


def test_corrupted_header_stops_iteration():
    sample = SampleArchive(
        filename="two.tar",
        files=[
            FileInfo("first.txt", contents=b"first\n"),
            FileInfo("second.txt", contents=b"second\n"),
        ],
    )
    data = bytearray(build_archive(sample))
    # The second header starts right after the first header and its data block.
    data[1024] ^= 0xFF

    with open_archive(io.BytesIO(bytes(data))) as session:
        members = iter(session)
        first = next(members)
        assert first.name == "first.txt"
        assert first.read() == b"first\n"

        with pytest.raises(EngineError) as exc_info:
            next(members)
        assert "Damaged" in exc_info.value.message
        assert members.state == IteratorState.ERRORED

        with pytest.raises(StopIteration):
            next(members)
        with pytest.raises(StaleMemberError):
            first.name


def test_read_block_views_engine_buffer(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        assert session.next_header() is not None
        block = session.read_block()
        assert isinstance(block.data, memoryview)
        assert block.offset == 0
        assert bytes(block.data) == HELLO_CONTENT
        assert session.read_block() is None


def test_next_header_invalidates_iterator_handles(write_sample):
    path = write_sample(LARGE_TAR)
    with open_archive(path) as session:
        first = next(iter(session))
        assert first.is_current()

        header = session.next_header()
        assert header.pathname == "file1.txt"
        assert session.current_index == 1
        assert not first.is_current()
        with pytest.raises(StaleMemberError):
            first.name
        with pytest.raises(StaleMemberError):
            first.read()
        assert session.read_data(10) == LARGE_TAR.files[1].contents[:10]


def test_header_view_after_close(hello_tar_gz):
    session = ReaderBuilder().support_all().open_file(hello_tar_gz)
    header = session.next_header()
    assert header.pathname == "hello.txt"
    session.close()

    with pytest.raises(ValueError, match="Archive is closed"):
        header.pathname
    with pytest.raises(ValueError, match="Archive is closed"):
        header.size
    with pytest.raises(ValueError, match="Archive is closed"):
        header.entry_p
    assert "stale" in repr(header)


def test_header_view_is_stale_after_advancing(write_sample):
    path = write_sample(LARGE_TAR)
    with open_archive(path) as session:
        first = session.next_header()
        second = session.next_header()

        assert not first.is_current()
        with pytest.raises(StaleMemberError):
            first.pathname
        with pytest.raises(StaleMemberError):
            first.type
        assert second.pathname == "file1.txt"
        assert second.size == len(LARGE_TAR.files[1].contents)


def test_header_view_is_stale_at_end(hello_tar_gz):
    with open_archive(hello_tar_gz) as session:
        header = session.next_header()
        assert session.next_header() is None
        with pytest.raises(StaleMemberError):
            header.size


def test_read_data_warning_is_not_an_error(hello_tar_gz, monkeypatch):
    from archivecursor.internal import engine

    original = engine.read_data
    calls = []

    def read_data_with_warning(archive_p, buffer, size):
        calls.append(size)
        if len(calls) == 1:
            return engine.ARCHIVE_WARN
        return original(archive_p, buffer, size)

    monkeypatch.setattr(engine, "read_data", read_data_with_warning)
    with open_archive(hello_tar_gz) as session:
        member = next(iter(session))
        assert member.read() == HELLO_CONTENT

    assert len(calls) > 2


def test_readinto_warning_is_not_an_error(hello_tar_gz, monkeypatch):
    from archivecursor.internal import engine

    original = engine.read_data
    warned = []

    def read_data_with_warning(archive_p, buffer, size):
        if not warned:
            warned.append(size)
            return engine.ARCHIVE_WARN
        return original(archive_p, buffer, size)

    monkeypatch.setattr(engine, "read_data", read_data_with_warning)
    with open_archive(hello_tar_gz) as session:
        member = next(iter(session))
        buffer = bytearray(100)
        n = member.readinto(buffer)
        assert buffer[:n] == HELLO_CONTENT
    assert warned
