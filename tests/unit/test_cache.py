import os
from pathlib import Path

import pytest

from repocache.core.cache import ArchiveCache
from repocache.core.checksum import ChecksumInfo
from repocache.core.errors import PathOutsideRoot
from repocache.core.repository.models import PackageIdentity
from tests.unit.utils import sha256

CONTENT = b"archive"
CHECKSUM = ChecksumInfo("sha256", sha256(CONTENT))
IDENTITY = PackageIdentity("foo", "1.0")


@pytest.fixture
def cache(tmp_path: Path) -> ArchiveCache:
    archive_cache = ArchiveCache(tmp_path / "cache")
    entry = archive_cache.entry_path(CHECKSUM)
    entry.parent.mkdir(parents=True)
    entry.write_bytes(CONTENT)
    return archive_cache


def test_cache_dir_is_created(tmp_path: Path) -> None:
    ArchiveCache(tmp_path / "a" / "cache")

    assert (tmp_path / "a" / "cache").is_dir()


def test_entry_path(tmp_path: Path) -> None:
    cache = ArchiveCache(tmp_path)
    digest = CHECKSUM.hexdigest

    assert cache.entry_path(CHECKSUM) == tmp_path / "sha256" / digest[:2] / digest


def test_link(cache: ArchiveCache, tmp_path: Path) -> None:
    link_dir = tmp_path / "links"

    link = cache.link(link_dir, IDENTITY, "foo-1.0.tar.gz", CHECKSUM)

    assert link == link_dir.resolve() / "foo.1.0" / "foo-1.0.tar.gz"
    assert link.is_symlink()
    assert not os.path.isabs(os.readlink(link))
    assert link.read_bytes() == CONTENT


def test_link_is_replaced(cache: ArchiveCache, tmp_path: Path) -> None:
    link_dir = tmp_path / "links"
    stale = link_dir / "foo.1.0" / "foo-1.0.tar.gz"
    stale.parent.mkdir(parents=True)
    stale.write_text("stale")

    cache.link(link_dir, IDENTITY, "foo-1.0.tar.gz", CHECKSUM)
    link = cache.link(link_dir, IDENTITY, "foo-1.0.tar.gz", CHECKSUM)

    assert link.is_symlink()
    assert link.read_bytes() == CONTENT


@pytest.mark.parametrize("filename", ["../escape", "sub/file", "..", ""])
def test_link_outside_link_dir(cache: ArchiveCache, tmp_path: Path, filename: str) -> None:
    with pytest.raises(PathOutsideRoot):
        cache.link(tmp_path / "links", IDENTITY, filename, CHECKSUM)
