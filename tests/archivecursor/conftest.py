import pathlib
from typing import Callable

import pytest

from tests.archivecursor.sample_archives import (
    HELLO_TAR,
    HELLO_TAR_GZ,
    SampleArchive,
    build_archive,
)


@pytest.fixture
def write_sample(tmp_path: pathlib.Path) -> Callable[[SampleArchive], pathlib.Path]:
    """Return a function that writes a sample archive below tmp_path."""

    def _write(sample: SampleArchive) -> pathlib.Path:
        path = tmp_path / sample.filename
        path.write_bytes(build_archive(sample))
        return path

    return _write


@pytest.fixture
def hello_tar_gz(write_sample) -> pathlib.Path:
    return write_sample(HELLO_TAR_GZ)


@pytest.fixture
def hello_tar(write_sample) -> pathlib.Path:
    return write_sample(HELLO_TAR)
