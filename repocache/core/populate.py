"""Main logic for filling the archive cache of a package repository."""

import asyncio
import functools
import hashlib
import logging
from pathlib import Path
from typing import Iterable, Optional

import aiohttp_retry

from repocache.core.cache import ArchiveCache
from repocache.core.config import get_config
from repocache.core.errors import BaseError
from repocache.core.parallel import parallel_reduce
from repocache.core.repository.models import PackageIdentity, UrlSource
from repocache.core.repository.parser import (
    REPO_FILE,
    load_repo_descriptor,
    packages_with_prefixes,
    read_definition,
    write_repo_descriptor,
)
from repocache.core.transport import (
    Fetched,
    NotAvailable,
    create_retry_client,
    fetch_and_validate,
)

log = logging.getLogger(__name__)

ErrorMap = dict[PackageIdentity, list[str]]


async def cache_source(
    session: aiohttp_retry.RetryClient,
    cache: ArchiveCache,
    identity: PackageIdentity,
    source: UrlSource,
    name: Optional[str] = None,
    link_dir: Optional[Path] = None,
) -> Optional[str]:
    """
    Make sure one archive of a package is in the cache.

    :param session: Client used for http(s) URLs
    :param cache: The archive cache to fill
    :param identity: Package the archive belongs to
    :param source: URLs and checksums of the archive
    :param name: Name of an extra source, None for the main archive
    :param link_dir: If set, also link the cached archive from this directory
    :return: None on success (or when there is nothing to cache), else a failure message
    """
    label = f"{identity}/{name}" if name else str(identity)

    if not source.checksum:
        log.warning(f"[{label}] no checksum, not caching")
        return None

    first_checksum = source.checksum[0]
    try:
        result = await fetch_and_validate(
            session, source.urls, source.checksum, cache.entry_path(first_checksum)
        )
    except (BaseError, OSError) as e:
        result = NotAvailable(str(e))

    if isinstance(result, NotAvailable):
        log.error(f"[{label}] {result.reason}")
        return f"{label}: {result.reason}"
    if isinstance(result, Fetched):
        log.info(f"[{label}] fetched from {result.url}")
    else:
        log.debug(f"[{label}] up to date")

    if link_dir is not None:
        try:
            cache.link(link_dir, identity, name or source.basename, first_checksum)
        except (BaseError, OSError) as e:
            return f"{label}: could not create link: {e}"

    return None


async def cache_package(
    session: aiohttp_retry.RetryClient,
    cache: ArchiveCache,
    repo_root: Path,
    identity: PackageIdentity,
    prefix: Optional[str],
    link_dir: Optional[Path] = None,
) -> tuple[PackageIdentity, list[str]]:
    """
    Cache the main archive and then every extra source of one package, in order.

    A package whose definition cannot be read has nothing to cache.

    :return: The package identity and its failure messages (empty on success)
    """
    definition = read_definition(repo_root, prefix, identity)
    if definition is None:
        return identity, []

    sources: list[tuple[Optional[str], UrlSource]] = []
    if definition.url is not None:
        sources.append((None, definition.url))
    sources.extend(definition.extra_sources.items())

    failures = []
    for name, source in sources:
        failure = await cache_source(session, cache, identity, source, name, link_dir)
        if failure is not None:
            failures.append(failure)

    return identity, failures


def _scramble_key(identity: PackageIdentity) -> bytes:
    return hashlib.sha256(str(identity).encode()).digest()[:8]


def schedule_order(identities: Iterable[PackageIdentity]) -> list[PackageIdentity]:
    """
    Order packages pseudo-randomly, but deterministically.

    Neighbouring packages tend to be hosted at the same place, so sorting by a hash of
    the identity avoids hammering one host with all concurrent downloads.
    """
    return sorted(identities, key=lambda identity: (_scramble_key(identity), identity))


def merge_errors(left: ErrorMap, right: ErrorMap) -> ErrorMap:
    """Union of two error maps, sorted by package; the left side wins on duplicate keys."""
    merged = {**right, **left}
    return dict(sorted(merged.items()))


def _add_package_result(errors: ErrorMap, result: tuple[PackageIdentity, list[str]]) -> ErrorMap:
    identity, failures = result
    if not failures:
        return errors
    return merge_errors(errors, {identity: failures})


async def _populate(
    repo_root: Path,
    cache: ArchiveCache,
    packages: dict[PackageIdentity, Optional[str]],
    concurrency: int,
    link_dir: Optional[Path],
) -> ErrorMap:
    async with create_retry_client() as session:
        commands = [
            functools.partial(
                cache_package, session, cache, repo_root, identity, packages[identity], link_dir
            )
            for identity in schedule_order(packages)
        ]
        return await parallel_reduce(concurrency, commands, {}, _add_package_result)


def update_repo_descriptor(repo_root: Path, cache_dir: Path) -> bool:
    """
    Register the cache directory in repo.yaml so that clients look there first.

    :param repo_root: Root of the repository
    :param cache_dir: Cache directory, must be inside repo_root
    :return: True if the descriptor was changed, False if the cache was already registered
    """
    repo_file = repo_root / REPO_FILE
    descriptor = load_repo_descriptor(repo_file)
    cache_dir_url = cache_dir.resolve().relative_to(repo_root.resolve()).as_posix()

    if cache_dir_url in descriptor.archive_mirrors:
        log.debug(f"{cache_dir_url} is already registered in {repo_file}")
        return False

    log.info(f"Adding {cache_dir_url} to {repo_file}")
    descriptor.archive_mirrors.append(cache_dir_url)
    write_repo_descriptor(repo_file, descriptor)
    return True


def format_errors(errors: ErrorMap) -> str:
    """Summarize failures for the operator, grouped by package."""
    lines = [f"Got some errors while processing: {', '.join(str(nv) for nv in errors)}"]
    for identity, failures in errors.items():
        lines.extend(f"  - [{identity}] {failure}" for failure in failures)
    return "\n".join(lines)


def populate_cache(
    repo_root: Path,
    cache_dir: Path,
    concurrency: Optional[int] = None,
    link_dir: Optional[Path] = None,
    update_repo: bool = True,
) -> ErrorMap:
    """
    Download the archives of every package in a repository into a content-addressed cache.

    Failures are collected per package and never stop the run.

    :param repo_root: Root of the package repository (holds packages/ and repo.yaml)
    :param cache_dir: Cache directory to fill
    :param concurrency: Max number of packages processed at once, defaults to the config
    :param link_dir: If set, create DIR/<name>.<version>/<file> links to the cached archives
    :param update_repo: Register the cache directory in repo.yaml once done
    :return: Failure messages by package, empty if everything is cached
    """
    if concurrency is None:
        concurrency = get_config().concurrency_limit

    packages = packages_with_prefixes(repo_root)
    register = update_repo
    if update_repo:
        # fail early on a broken descriptor, before any download
        load_repo_descriptor(repo_root / REPO_FILE)
        if not cache_dir.resolve().is_relative_to(repo_root.resolve()):
            log.warning(
                f"Cache directory {cache_dir} is outside of {repo_root}, "
                f"not registering it in {REPO_FILE}"
            )
            register = False

    log.info(f"Caching archives of {len(packages)} packages into {cache_dir}")
    cache = ArchiveCache(cache_dir)
    errors = asyncio.run(_populate(repo_root, cache, packages, concurrency, link_dir))

    if register:
        update_repo_descriptor(repo_root, cache_dir)

    if errors:
        log.error(format_errors(errors))

    log.info("Done.")
    return errors
