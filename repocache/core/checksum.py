"""Checksums and the content-addressed layout derived from them.

A cache entry lives at a path computed purely from a checksum:

    <cache_dir>/
    └── {algorithm}/
        └── {hexdigest[:2]}/
            └── {hexdigest}
"""

import hashlib
import logging
import re
from os import PathLike
from pathlib import PurePosixPath
from typing import Iterable, NamedTuple, Union

from repocache.core.config import get_config
from repocache.core.errors import ChecksumVerificationFailed, InvalidChecksum

log = logging.getLogger(__name__)

# hex digest length per supported algorithm
SUPPORTED_ALGORITHMS: dict[str, int] = {
    "md5": 32,
    "sha256": 64,
    "sha512": 128,
}

_CHECKSUM_PATTERN = re.compile(r"^(?P<algorithm>[a-z0-9]+)[=:](?P<hexdigest>[0-9a-fA-F]+)$")


class ChecksumInfo(NamedTuple):
    """A checksum algorithm and its expected hex digest."""

    algorithm: str
    hexdigest: str

    @classmethod
    def from_string(cls, value: str) -> "ChecksumInfo":
        """Parse a checksum written as 'sha256=<hex>' or 'sha256:<hex>'."""
        match = _CHECKSUM_PATTERN.match(value.strip())
        if not match:
            raise InvalidChecksum(value)

        algorithm = match.group("algorithm")
        hexdigest = match.group("hexdigest").lower()

        expected_length = SUPPORTED_ALGORITHMS.get(algorithm)
        if expected_length is None:
            raise InvalidChecksum(
                value,
                f"Unsupported checksum algorithm {algorithm!r} in {value!r}",
                solution=f"Use one of: {', '.join(SUPPORTED_ALGORITHMS)}",
            )
        if len(hexdigest) != expected_length:
            raise InvalidChecksum(
                value,
                f"A {algorithm} digest must have {expected_length} hex characters, "
                f"got {len(hexdigest)} in {value!r}",
            )

        return cls(algorithm, hexdigest)

    def to_path(self) -> PurePosixPath:
        """Return the location of this checksum's entry, relative to the cache root."""
        return PurePosixPath(self.algorithm, self.hexdigest[:2], self.hexdigest)

    def __str__(self) -> str:
        return f"{self.algorithm}={self.hexdigest}"


def compute_file_checksum(
    file_path: Union[str, PathLike[str]], algorithm: str, chunk_size: int | None = None
) -> str:
    """Compute the hex digest of a file's content.

    :param file_path: Path to the file
    :param algorithm: Name of a hashlib algorithm
    :param chunk_size: How many bytes to read at a time
    :return: Hex digest of the file
    """
    if chunk_size is None:
        chunk_size = get_config().chunk_size

    hasher = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_checksum(file_path: Union[str, PathLike[str]], checksum: ChecksumInfo) -> bool:
    """Check whether a file matches the given checksum."""
    return compute_file_checksum(file_path, checksum.algorithm) == checksum.hexdigest


def must_match_any_checksum(
    file_path: Union[str, PathLike[str]], expected_checksums: Iterable[ChecksumInfo]
) -> ChecksumInfo:
    """Verify that the file matches at least one of the expected checksums.

    Digests are computed at most once per algorithm.

    :param file_path: Path to the file to verify
    :param expected_checksums: Checksums to try, in order
    :return: The first checksum that matched
    :raise ChecksumVerificationFailed: If no checksum matches
    """
    digests: dict[str, str] = {}
    for checksum in expected_checksums:
        if checksum.algorithm not in digests:
            digests[checksum.algorithm] = compute_file_checksum(file_path, checksum.algorithm)

        if digests[checksum.algorithm] == checksum.hexdigest:
            log.debug(f"{file_path}: {checksum.algorithm} checksum matches")
            return checksum

        log.debug(
            f"{file_path}: {checksum.algorithm} checksum does not match "
            f"(expected {checksum.hexdigest}, got {digests[checksum.algorithm]})"
        )

    raise ChecksumVerificationFailed(file_path)
