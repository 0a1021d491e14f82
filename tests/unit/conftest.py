from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import pytest
import yaml

from repocache.core import config


@pytest.fixture(autouse=True)
def reset_config() -> Iterator[None]:
    yield
    config._config = None


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "packages").mkdir(parents=True)
    return root


@pytest.fixture
def upstream(tmp_path: Path) -> Callable[[str, bytes], str]:
    """Create a file standing in for a remote archive, return its file:// URL."""
    upstream_dir = tmp_path / "upstream"
    upstream_dir.mkdir()

    def _make(filename: str, content: bytes) -> str:
        path = upstream_dir / filename
        path.write_bytes(content)
        return path.as_uri()

    return _make


@pytest.fixture
def write_package(repo_root: Path) -> Callable[..., Path]:
    """Write packages/[<prefix>/]<nv>/package.yaml."""

    def _write(nv: str, definition: Any, prefix: Optional[str] = None) -> Path:
        pkg_dir = repo_root / "packages"
        if prefix:
            pkg_dir = pkg_dir / prefix
        pkg_dir = pkg_dir / nv
        pkg_dir.mkdir(parents=True, exist_ok=True)
        definition_file = pkg_dir / "package.yaml"
        if isinstance(definition, bytes):
            definition_file.write_bytes(definition)
        elif isinstance(definition, str):
            definition_file.write_text(definition)
        else:
            definition_file.write_text(yaml.safe_dump(definition, sort_keys=False))
        return definition_file

    return _write
