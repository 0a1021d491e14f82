"""Pydantic models for package definitions and the repository descriptor."""

import functools
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repocache.core.checksum import ChecksumInfo
from repocache.core.errors import InvalidChecksum, InvalidInput

_DIGITS = re.compile(r"^\d*")
_NON_DIGITS = re.compile(r"^\D*")


def _char_order(char: str) -> int:
    # '~' sorts before everything, even the end of the string; letters before other symbols
    if char == "~":
        return -1
    if char.isalpha():
        return ord(char)
    return ord(char) + 256


def _compare_non_digits(a: str, b: str) -> int:
    for i in range(max(len(a), len(b))):
        order_a = _char_order(a[i]) if i < len(a) else 0
        order_b = _char_order(b[i]) if i < len(b) else 0
        if order_a != order_b:
            return -1 if order_a < order_b else 1
    return 0


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings the way Debian and opam do.

    Alternating runs of non-digits and digits are compared in turn: non-digit runs
    character by character, digit runs numerically.

    :return: a negative number, zero or a positive number, like a classic cmp()
    """
    while a or b:
        prefix_a = _NON_DIGITS.match(a).group()  # type: ignore[union-attr]
        prefix_b = _NON_DIGITS.match(b).group()  # type: ignore[union-attr]
        result = _compare_non_digits(prefix_a, prefix_b)
        if result:
            return result
        a, b = a[len(prefix_a) :], b[len(prefix_b) :]

        number_a = _DIGITS.match(a).group()  # type: ignore[union-attr]
        number_b = _DIGITS.match(b).group()  # type: ignore[union-attr]
        value_a, value_b = int(number_a or 0), int(number_b or 0)
        if value_a != value_b:
            return -1 if value_a < value_b else 1
        a, b = a[len(number_a) :], b[len(number_b) :]

    return 0


def _version_key(version: str) -> tuple[tuple[str, int], ...]:
    """Normal form of a version: two versions compare equal iff their keys are equal."""
    runs: list[tuple[str, int]] = []
    while version:
        prefix = _NON_DIGITS.match(version).group()  # type: ignore[union-attr]
        version = version[len(prefix) :]
        number = _DIGITS.match(version).group()  # type: ignore[union-attr]
        version = version[len(number) :]
        runs.append((prefix, int(number or 0)))
    # a missing trailing run compares like an empty prefix followed by 0
    while runs and runs[-1] == ("", 0):
        runs.pop()
    return tuple(runs)


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Name and version of a package, unique within a repository."""

    name: str
    version: str

    @classmethod
    def from_string(cls, value: str) -> "PackageIdentity":
        """Parse 'name.version', splitting at the first dot."""
        name, sep, version = value.partition(".")
        if not name or not sep or not version:
            raise InvalidInput(
                f"{value!r} is not a valid package identity",
                solution="Package directories must be named '<name>.<version>'.",
            )
        return cls(name, version)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.name == other.name and compare_versions(self.version, other.version) == 0

    def __hash__(self) -> int:
        return hash((self.name, _version_key(self.version)))

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        if self.name != other.name:
            return self.name < other.name
        return compare_versions(self.version, other.version) < 0

    def __str__(self) -> str:
        return f"{self.name}.{self.version}"


class UrlSource(BaseModel):
    """
    A downloadable archive: a primary URL, its mirrors and the checksums it must match.

    :param src: Primary URL, always tried first
    :param mirrors: Alternate URLs, tried in the listed order
    :param checksum: Ordered checksums; the first one decides where the archive is cached
    """

    src: str
    mirrors: list[str] = Field(default_factory=list)
    checksum: list[ChecksumInfo] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("checksum", mode="before")
    @classmethod
    def parse_checksums(cls, value: Any) -> Any:
        """Accept a single checksum string or a list of 'algorithm=hexdigest' strings."""
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return value

        checksums = []
        for item in value:
            if isinstance(item, str):
                try:
                    item = ChecksumInfo.from_string(item)
                except InvalidChecksum as e:
                    raise ValueError(str(e)) from e
            checksums.append(item)
        return checksums

    @property
    def urls(self) -> list[str]:
        """Primary URL followed by the mirrors."""
        return [self.src, *self.mirrors]

    @property
    def basename(self) -> str:
        """Last path segment of the primary URL."""
        return PurePosixPath(urlparse(self.src).path).name


class PackageDefinition(BaseModel):
    """The parts of a package definition (package.yaml) that matter for caching."""

    url: UrlSource | None = None
    extra_sources: dict[str, UrlSource] = Field(default_factory=dict, alias="extra-sources")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RepoDescriptor(BaseModel):
    """
    Repository descriptor (repo.yaml).

    :param archive_mirrors: Cache locations clients look into before the upstream URLs
    """

    archive_mirrors: list[str] = Field(default_factory=list, alias="archive-mirrors")

    model_config = ConfigDict(extra="allow", populate_by_name=True)
