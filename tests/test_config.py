# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

from __future__ import annotations

from pathlib import Path

import pytest

from sfpromote.config import load_config
from sfpromote.constants import DEFAULT_API_VERSION, DEFAULT_MAX_ITERATIONS
from sfpromote.errors import ConfigError


def test_defaults_without_files(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.project_root == tmp_path.resolve()
    assert config.api_version == DEFAULT_API_VERSION
    assert config.resolution.max_iterations == DEFAULT_MAX_ITERATIONS
    assert config.target_org is None
    assert config.output_dir == tmp_path.resolve() / ".sfpromote" / "build"
    assert config.catalog_path.parent == tmp_path.resolve() / ".sfpromote"


def test_layers_merge_in_order(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.sfpromote]\napi_version = "59.0"\ntarget_org = "qa"\n\n[tool.sfpromote.resolution]\nwait_minutes = 5\n',
        encoding="utf-8",
    )
    (tmp_path / ".sfpromote.toml").write_text(
        'target_org = "uat"\n\n[resolution]\nmax_iterations = 3\n',
        encoding="utf-8",
    )

    config = load_config(tmp_path, overrides={"api_version": "61.0", "target_org": None})

    assert config.api_version == "61.0"
    assert config.target_org == "uat"
    assert config.resolution.max_iterations == 3
    assert config.resolution.wait_minutes == 5


def test_explicit_config_file_replaces_project_file(tmp_path: Path) -> None:
    (tmp_path / ".sfpromote.toml").write_text('target_org = "ignored"\n', encoding="utf-8")
    explicit = tmp_path / "custom.toml"
    explicit.write_text('target_org = "prod"\n', encoding="utf-8")

    assert load_config(tmp_path, config_file=explicit).target_org == "prod"


def test_missing_explicit_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, config_file=tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "content",
    [
        'api_version = "latest"\n',
        "[resolution]\nmax_iterations = 0\n",
        '[resolution]\ntest_level = "Sometimes"\n',
        "unknown_key = 1\n",
        "this is not toml",
    ],
)
def test_invalid_configuration_raises(tmp_path: Path, content: str) -> None:
    (tmp_path / ".sfpromote.toml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)
