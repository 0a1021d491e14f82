from pathlib import Path
from typing import Union

import pytest

from repocache.core.config import Config, get_config, set_config
from repocache.core.errors import InvalidInput


def test_defaults() -> None:
    config = get_config()

    assert config.concurrency_limit == 8
    assert config.requests_timeout == 300
    assert get_config() is config


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPOCACHE_CONCURRENCY_LIMIT", "3")

    assert Config().concurrency_limit == 3


def test_set_config(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("concurrency_limit: 2\nrequests_timeout: 10\n")

    set_config(config_file)

    assert get_config().concurrency_limit == 2
    assert get_config().requests_timeout == 10


@pytest.mark.parametrize(
    "content, expected_error",
    [
        pytest.param("concurrency_limit: 0\n", "Invalid configuration", id="not-positive"),
        pytest.param("unknown_option: 1\n", "Invalid configuration", id="unknown-option"),
        pytest.param("- a list\n", "must contain a mapping", id="not-a-mapping"),
        pytest.param("key: [unclosed\n", "Could not read config file", id="bad-yaml"),
        pytest.param(b"chunk_size: \xff\n", "Could not read config file", id="not-utf-8"),
    ],
)
def test_set_config_invalid(
    tmp_path: Path, content: Union[str, bytes], expected_error: str
) -> None:
    config_file = tmp_path / "config.yaml"
    if isinstance(content, bytes):
        config_file.write_bytes(content)
    else:
        config_file.write_text(content)

    with pytest.raises(InvalidInput, match=expected_error):
        set_config(config_file)
