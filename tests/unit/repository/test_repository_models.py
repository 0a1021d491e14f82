import pytest
from pydantic import ValidationError

from repocache.core.checksum import ChecksumInfo
from repocache.core.errors import InvalidInput
from repocache.core.repository.models import (
    PackageDefinition,
    PackageIdentity,
    RepoDescriptor,
    UrlSource,
    compare_versions,
)
from tests.unit.utils import md5, sha256

SHA256 = sha256(b"archive")
MD5 = md5(b"archive")


@pytest.mark.parametrize(
    "smaller, bigger",
    [
        ("1.0", "1.1"),
        ("1.9", "1.10"),
        ("1.0~beta", "1.0"),
        ("1.0~alpha", "1.0~beta"),
        ("1.0", "1.0a"),
        ("1.0a", "1.0+fix"),
        ("0.9", "1"),
        ("v1.2", "v1.12"),
    ],
)
def test_compare_versions(smaller: str, bigger: str) -> None:
    assert compare_versions(smaller, bigger) < 0
    assert compare_versions(bigger, smaller) > 0


@pytest.mark.parametrize("a, b", [("1.0", "1.0"), ("1.01", "1.1"), ("", "")])
def test_compare_versions_equal(a: str, b: str) -> None:
    assert compare_versions(a, b) == 0


class TestPackageIdentity:
    """Tests for PackageIdentity."""

    def test_from_string(self) -> None:
        identity = PackageIdentity.from_string("lwt.5.3.0")

        assert identity == PackageIdentity("lwt", "5.3.0")
        assert str(identity) == "lwt.5.3.0"

    @pytest.mark.parametrize("value", ["lwt", "lwt.", ".5.3.0"])
    def test_from_string_invalid(self, value: str) -> None:
        with pytest.raises(InvalidInput, match="not a valid package identity"):
            PackageIdentity.from_string(value)

    def test_ordering(self) -> None:
        identities = [
            PackageIdentity("b", "1.0"),
            PackageIdentity("a", "1.10"),
            PackageIdentity("a", "1.9"),
            PackageIdentity("a", "1.9~rc1"),
        ]

        assert sorted(identities) == [
            PackageIdentity("a", "1.9~rc1"),
            PackageIdentity("a", "1.9"),
            PackageIdentity("a", "1.10"),
            PackageIdentity("b", "1.0"),
        ]

    def test_hashable(self) -> None:
        assert len({PackageIdentity("a", "1"), PackageIdentity("a", "1")}) == 1

    @pytest.mark.parametrize(
        "a, b",
        [("1.0", "1.00"), ("1.01", "1.1"), ("1a", "1a0"), ("0", "00"), ("2~rc01", "2~rc1")],
    )
    def test_equal_versions(self, a: str, b: str) -> None:
        left, right = PackageIdentity("foo", a), PackageIdentity("foo", b)

        assert left == right
        assert not left < right and not right < left
        assert hash(left) == hash(right)
        assert len({left: 1, right: 2}) == 1

    @pytest.mark.parametrize("a, b", [("1.0", "1"), ("1.0", "1.0~"), ("0a", "a"), ("1", "10")])
    def test_different_versions(self, a: str, b: str) -> None:
        assert PackageIdentity("foo", a) != PackageIdentity("foo", b)
        assert PackageIdentity("foo", "1.0") != PackageIdentity("bar", "1.0")


class TestUrlSource:
    """Tests for UrlSource Pydantic model."""

    def test_minimal(self) -> None:
        source = UrlSource(src="https://example.com/foo-1.0.tar.gz")

        assert source.mirrors == []
        assert source.checksum == []
        assert source.urls == ["https://example.com/foo-1.0.tar.gz"]
        assert source.basename == "foo-1.0.tar.gz"

    def test_checksums_keep_order(self) -> None:
        source = UrlSource.model_validate(
            {
                "src": "https://example.com/foo-1.0.tar.gz?raw=1",
                "mirrors": ["https://mirror-a/foo.tgz", "https://mirror-b/foo.tgz"],
                "checksum": [f"md5={MD5}", f"sha256={SHA256}"],
            }
        )

        assert source.checksum == [ChecksumInfo("md5", MD5), ChecksumInfo("sha256", SHA256)]
        assert source.urls == [
            "https://example.com/foo-1.0.tar.gz?raw=1",
            "https://mirror-a/foo.tgz",
            "https://mirror-b/foo.tgz",
        ]
        assert source.basename == "foo-1.0.tar.gz"

    def test_single_checksum_string(self) -> None:
        source = UrlSource.model_validate({"src": "https://x/y", "checksum": f"sha256={SHA256}"})

        assert source.checksum == [ChecksumInfo("sha256", SHA256)]

    def test_invalid_checksum(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported checksum algorithm"):
            UrlSource.model_validate({"src": "https://x/y", "checksum": ["crc32=deadbeef"]})

    def test_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            UrlSource.model_validate({"src": "https://x/y", "archive": "https://x/z"})


def test_package_definition() -> None:
    definition = PackageDefinition.model_validate(
        {
            "name": "ignored",
            "url": {"src": "https://x/foo.tgz", "checksum": [f"sha256={SHA256}"]},
            "extra-sources": {
                "b.patch": {"src": "https://x/b.patch"},
                "a.patch": {"src": "https://x/a.patch", "checksum": [f"md5={MD5}"]},
            },
        }
    )

    assert definition.url is not None
    assert definition.url.src == "https://x/foo.tgz"
    assert list(definition.extra_sources) == ["b.patch", "a.patch"]


def test_package_definition_without_url() -> None:
    definition = PackageDefinition.model_validate({})

    assert definition.url is None
    assert definition.extra_sources == {}


def test_repo_descriptor_keeps_unknown_fields() -> None:
    descriptor = RepoDescriptor.model_validate(
        {"opam-version": "2.0", "archive-mirrors": ["cache"], "announce": ["hello"]}
    )

    assert descriptor.archive_mirrors == ["cache"]
    assert descriptor.model_dump(by_alias=True) == {
        "archive-mirrors": ["cache"],
        "opam-version": "2.0",
        "announce": ["hello"],
    }
