# SPDX-License-Identifier: GPL-3.0-or-later
import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Sequence, Union
from urllib.parse import unquote, urlparse

import aiohttp
import aiohttp_retry

from repocache.core.checksum import ChecksumInfo, must_match_any_checksum, verify_checksum
from repocache.core.config import get_config
from repocache.core.errors import ChecksumVerificationFailed, FetchError, InvalidInput

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpToDate:
    """The destination already held a valid copy, nothing was downloaded."""


@dataclass(frozen=True)
class Fetched:
    """The archive was downloaded from url and verified."""

    url: str


@dataclass(frozen=True)
class NotAvailable:
    """Every URL failed, either to download or to verify."""

    reason: str


FetchResult = Union[UpToDate, Fetched, NotAvailable]


def create_retry_client() -> aiohttp_retry.RetryClient:
    """Create the HTTP client shared by all downloads of a run.

    Must be called from a running event loop.
    """
    trace_config = aiohttp.TraceConfig()
    retry_options = aiohttp_retry.JitterRetry(
        attempts=get_config().retry_attempts, retry_all_server_errors=True
    )
    return aiohttp_retry.RetryClient(
        retry_options=retry_options,
        trace_configs=[trace_config],
        # respect proxy settings and .netrc
        trust_env=True,
    )


async def _async_download_binary_file(
    session: aiohttp_retry.RetryClient,
    url: str,
    download_path: Union[str, PathLike[str]],
    chunk_size: int | None = None,
) -> None:
    """
    Download a binary file (such as a TAR archive) from a URL using asyncio.

    :param aiohttp_retry.RetryClient session: Aiohttp interface for making HTTP requests.
    :param str url: URL for file download
    :param str download_path: File path location
    :param int chunk_size: Chunk size param for Response.content.read()
    :raise FetchError: If download failed
    """
    config = get_config()
    if chunk_size is None:
        chunk_size = config.chunk_size

    try:
        timeout = aiohttp.ClientTimeout(total=config.requests_timeout)

        log.debug(
            f"aiohttp.ClientSession.get(url: {url}, timeout: {timeout}, raise_for_status: True)"
        )
        async with session.get(url, timeout=timeout, raise_for_status=True) as resp:
            with open(download_path, "wb") as f:
                while True:
                    chunk = await resp.content.read(chunk_size)
                    if not chunk:
                        break
                    f.write(chunk)

    except Exception as exception:
        log.debug(f"Unsuccessful download: {url}")
        # "from None" since we have the exception context in the logs
        raise FetchError(
            f"exception_name: {exception.__class__.__name__}, " f"details: {exception}"
        ) from None

    log.debug(f"Download completed - {url}")


def _copy_local_file(url: str, download_path: Union[str, PathLike[str]]) -> None:
    """Copy a file:// URL (or a plain local path) to download_path.

    :raise FetchError: If the file cannot be read
    """
    parsed = urlparse(url)
    source = unquote(parsed.path) if parsed.scheme == "file" else url
    try:
        shutil.copyfile(source, download_path)
    except OSError as e:
        raise FetchError(f"Could not copy {source}: {e}") from None


async def _download(
    session: aiohttp_retry.RetryClient, url: str, download_path: Union[str, PathLike[str]]
) -> None:
    scheme = urlparse(url).scheme
    if scheme in ("http", "https"):
        await _async_download_binary_file(session, url, download_path)
    elif scheme in ("file", ""):
        await asyncio.to_thread(_copy_local_file, url, download_path)
    else:
        raise FetchError(f"Unsupported URL scheme {scheme!r}")


async def fetch_and_validate(
    session: aiohttp_retry.RetryClient,
    urls: Sequence[str],
    checksums: Sequence[ChecksumInfo],
    destination: Path,
) -> FetchResult:
    """
    Make sure destination holds an archive matching the checksums.

    The first checksum is the one an existing destination is checked against. A fresh
    download only has to match any of the checksums. URLs are tried one after the
    other, and each attempt writes to a temporary file in the destination directory that
    is moved into place only once verified, so concurrent writers of the same
    destination never see a partial file. Local copies and hashing run in worker threads
    so that they do not hold up the other downloads.

    :param session: Client used for http(s) URLs
    :param urls: URLs to try, in order
    :param checksums: Expected checksums, must not be empty
    :param destination: Where the verified archive must end up
    :return: UpToDate, Fetched or NotAvailable
    """
    if not checksums:
        raise InvalidInput("Refusing to fetch an archive without any checksum")

    if destination.exists():
        if await asyncio.to_thread(verify_checksum, destination, checksums[0]):
            return UpToDate()
        log.warning(f"{destination} does not match {checksums[0]}, fetching it again")

    destination.parent.mkdir(parents=True, exist_ok=True)

    failures: list[str] = []
    for url in urls:
        fd, tmp_name = tempfile.mkstemp(
            dir=destination.parent, prefix=f".{destination.name}.", suffix=".part"
        )
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            await _download(session, url, tmp_path)
            await asyncio.to_thread(must_match_any_checksum, tmp_path, checksums)
            os.replace(tmp_path, destination)
        except ChecksumVerificationFailed:
            log.warning(f"Checksum mismatch for {url}")
            failures.append(f"{url}: checksum mismatch")
            continue
        except (FetchError, OSError) as e:
            log.warning(f"Could not fetch {url}: {e}")
            failures.append(f"{url}: {e}")
            continue
        finally:
            tmp_path.unlink(missing_ok=True)

        log.debug(f"Stored {url} as {destination}")
        return Fetched(url)

    return NotAvailable(f"no valid source among {len(urls)} URL(s): " + "; ".join(failures))
