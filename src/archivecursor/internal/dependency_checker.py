import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Optional


@dataclass
class DependencyVersions:
    """Versions of the libraries archivecursor runs on."""

    python_version: Optional[str] = None
    libarchive_c_version: Optional[str] = None
    libarchive_version: Optional[str] = None
    tqdm_version: Optional[str] = None
    backports_strenum_version: Optional[str] = None


def get_dependency_versions() -> DependencyVersions:
    """Get versions of all dependencies, including the libarchive shared library.

    Returns:
        DependencyVersions: A dataclass containing version information for all dependencies.
    """
    versions = DependencyVersions()

    versions.python_version = (
        f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    )

    for package, attr in [
        ("libarchive-c", "libarchive_c_version"),
        ("tqdm", "tqdm_version"),
        ("backports.strenum", "backports_strenum_version"),
    ]:
        try:
            setattr(versions, attr, version(package))
        except PackageNotFoundError:
            pass

    try:
        from archivecursor.internal import engine

        versions.libarchive_version = engine.version_string().decode("ascii")
    except (ImportError, OSError, AttributeError):
        versions.libarchive_version = None

    return versions


def format_dependency_versions(versions: DependencyVersions) -> str:
    """Format dependency versions as a string.

    Args:
        versions: The DependencyVersions instance to format

    Returns:
        str: A formatted string showing all dependency versions
    """
    lines = ["Dependency Versions:"]
    for field in versions.__dataclass_fields__:
        value = getattr(versions, field)
        if value is not None:
            lines.append(f"  {field}: {value}")
        else:
            lines.append(f"  {field}: not installed")
    return "\n".join(lines)


if __name__ == "__main__":
    versions = get_dependency_versions()
    print(format_dependency_versions(versions))
