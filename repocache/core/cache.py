"""Content-addressed archive cache.

Cache structure:
    <cache_dir>/
    └── {algorithm}/
        └── {hexdigest[:2]}/
            └── {hexdigest}  (archive content)

Optional reverse links:
    <link_dir>/
    └── {name}.{version}/
        └── {filename} -> <cache_dir>/{algorithm}/{hexdigest[:2]}/{hexdigest}  (relative symlink)
"""

import logging
import os
from pathlib import Path

from repocache.core.checksum import ChecksumInfo
from repocache.core.errors import PathOutsideRoot
from repocache.core.repository.models import PackageIdentity
from repocache.core.rooted_path import RootedPath

log = logging.getLogger(__name__)


class ArchiveCache:
    """Manager for the content-addressed cache directory."""

    def __init__(self, cache_dir: Path):
        """
        Initialize cache manager.

        :param cache_dir: Root directory of the cache (e.g., <repo>/cache)
        """
        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def entry_path(self, checksum: ChecksumInfo) -> Path:
        """Get the path of the entry addressed by a checksum."""
        return self.cache_dir / checksum.to_path()

    def link(
        self, link_dir: Path, identity: PackageIdentity, filename: str, checksum: ChecksumInfo
    ) -> Path:
        """
        Create (or replace) a human-readable symlink to a cache entry.

        :param link_dir: Root of the link farm
        :param identity: Package the archive belongs to
        :param filename: Name of the link, e.g. the source name or the URL basename
        :param checksum: Checksum addressing the entry
        :return: Path of the created link
        :raises PathOutsideRoot: If filename would place the link outside link_dir
        """
        package_links = RootedPath(link_dir).join_within_root(str(identity))
        # not resolved: an existing link points into the cache, outside of link_dir
        link = package_links.path / filename
        if link.parent != package_links.path or filename in (".", ".."):
            raise PathOutsideRoot(str(package_links.path), filename, str(package_links.root))

        target = self.entry_path(checksum).resolve()
        link.parent.mkdir(parents=True, exist_ok=True)

        if link.exists() or link.is_symlink():
            link.unlink()

        rel_target = os.path.relpath(target, link.parent)
        link.symlink_to(rel_target)
        log.debug(f"Created link: {link} -> {rel_target}")
        return link
