import logging
from os import PathLike
from pathlib import Path
from typing import Any, TypeVar, Union

from repocache.core.errors import PathOutsideRoot

log = logging.getLogger(__name__)

RootedPathT = TypeVar("RootedPathT", bound="RootedPath")
StrPath = Union[str, PathLike[str]]


class RootedPath(PathLike[str]):
    """An absolute path with a root that remembers where it started.

    Joining a subpath that would escape the root (through '..' or symlinks) is refused.

    >>> cache = RootedPath("/srv/repo/cache")
    >>> cache.join_within_root("sha256/de/deadbeef").path
    PosixPath('/srv/repo/cache/sha256/de/deadbeef')
    """

    def __init__(self, path: StrPath) -> None:
        """Create a RootedPath, resolving the path and using it as the root."""
        self._path = Path(path).resolve()
        self._root = self._path

    @classmethod
    def _new(cls: type[RootedPathT], path: Path, root: Path) -> RootedPathT:
        rooted_path = cls(path)
        rooted_path._root = root
        return rooted_path

    @property
    def path(self) -> Path:
        """Get the underlying (absolute, resolved) path."""
        return self._path

    @property
    def root(self) -> Path:
        """Get the root that this path must not leave."""
        return self._root

    def join_within_root(self: RootedPathT, *other: StrPath) -> RootedPathT:
        """Join with the other path(s), making sure the result stays inside the root.

        :raises PathOutsideRoot: if the resulting path would leave the root
        """
        path = self.path.joinpath(*other).resolve()
        if not path.is_relative_to(self.root):
            other_path = Path(*other)
            log.error(
                "The path %s/%s leads outside of %s",
                self.path,
                other_path,
                self.root,
            )
            raise PathOutsideRoot(str(self.path), str(other_path), str(self.root))
        return self._new(path, self.root)

    def __fspath__(self) -> str:
        return str(self.path)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.path)!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RootedPath):
            return NotImplemented
        return self.path == other.path and self.root == other.root

    def __hash__(self) -> int:
        return hash((self.path, self.root))
