"""Reading package repositories: package listing, package definitions and repo.yaml."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from repocache.core.errors import InvalidInput, RepositoryNotFound, UnexpectedFormat
from repocache.core.repository.models import PackageDefinition, PackageIdentity, RepoDescriptor

log = logging.getLogger(__name__)

PACKAGES_DIR = "packages"
DEFINITION_FILE = "package.yaml"
REPO_FILE = "repo.yaml"


def packages_dir(repo_root: Path) -> Path:
    """Return the directory holding the package definitions."""
    return repo_root / PACKAGES_DIR


def package_dir(repo_root: Path, prefix: Optional[str], identity: PackageIdentity) -> Path:
    """Return the directory of one package, e.g. packages/foo/foo.1.0."""
    base = packages_dir(repo_root)
    if prefix:
        base = base / prefix
    return base / str(identity)


def packages_with_prefixes(repo_root: Path) -> dict[PackageIdentity, Optional[str]]:
    """
    List the packages of a repository along with their prefix directory.

    A package is any directory named '<name>.<version>' containing a package.yaml, at any
    depth below packages/. The prefix is the path between packages/ and that directory,
    or None when the package sits directly in packages/.

    :param repo_root: Root of the repository
    :return: Mapping of package identity to prefix, sorted by identity
    :raises RepositoryNotFound: If the repository has no packages/ directory
    """
    root = packages_dir(repo_root)
    if not root.is_dir():
        raise RepositoryNotFound(repo_root)

    packages: dict[PackageIdentity, Optional[str]] = {}
    for definition in sorted(root.rglob(DEFINITION_FILE)):
        pkg_dir = definition.parent
        try:
            identity = PackageIdentity.from_string(pkg_dir.name)
        except InvalidInput:
            log.warning(f"Ignoring {definition}: directory name is not '<name>.<version>'")
            continue

        prefix_path = pkg_dir.parent.relative_to(root)
        prefix = prefix_path.as_posix() if prefix_path.parts else None

        if identity in packages:
            log.warning(
                f"Package {identity} is defined more than once, ignoring {definition}"
            )
            continue
        packages[identity] = prefix

    return dict(sorted(packages.items()))


def read_definition(
    repo_root: Path, prefix: Optional[str], identity: PackageIdentity
) -> Optional[PackageDefinition]:
    """
    Read the definition of one package.

    Unreadable definitions are reported and skipped rather than raised: they are not
    caching failures.

    :return: The parsed definition, or None if it is missing or invalid
    """
    definition_path = package_dir(repo_root, prefix, identity) / DEFINITION_FILE

    try:
        with open(definition_path, "rb") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        log.warning(f"[{identity}] could not read {definition_path}: {e}")
        return None
    except yaml.YAMLError as e:
        log.warning(f"[{identity}] {definition_path} has invalid YAML format: {e}")
        return None

    try:
        return PackageDefinition.model_validate(data or {})
    except ValidationError as e:
        loc = e.errors()[0]["loc"]
        msg = e.errors()[0]["msg"]
        log.warning(f"[{identity}] {definition_path} format is not valid: '{loc}: {msg}'")
        return None


def load_repo_descriptor(repo_file: Path) -> RepoDescriptor:
    """
    Load the repository descriptor.

    :param repo_file: Path to repo.yaml
    :return: The descriptor, empty if the file does not exist
    :raises UnexpectedFormat: If the file exists but cannot be parsed
    """
    if not repo_file.exists():
        log.debug(f"{repo_file} does not exist, starting from an empty descriptor")
        return RepoDescriptor()

    try:
        with open(repo_file, "rb") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise UnexpectedFormat(f"Repository file '{repo_file}' has invalid YAML format: {e}") from e

    try:
        return RepoDescriptor.model_validate(data or {})
    except ValidationError as e:
        loc = e.errors()[0]["loc"]
        msg = e.errors()[0]["msg"]
        raise UnexpectedFormat(
            f"Repository file '{repo_file}' format is not valid: '{loc}: {msg}'"
        ) from e


def write_repo_descriptor(repo_file: Path, descriptor: RepoDescriptor) -> None:
    """Write the repository descriptor back, keeping fields this tool does not know about."""
    data = descriptor.model_dump(by_alias=True)
    with open(repo_file, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
