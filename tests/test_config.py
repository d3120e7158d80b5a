from __future__ import annotations

import pytest

from prdtrack.config import CONFIG_FILENAME, PrdtrackConfig, ensure_prdtrack_dir
from prdtrack.errors import ConfigError


def test_defaults_without_config_file(tmp_path):
    config = PrdtrackConfig.load(tmp_path, env={})
    assert config.store.backend == "filesystem"
    assert config.store.path == ".issues"
    assert config.llm.model == "gpt-4o"
    assert config.filter.min_line_length == 3
    assert config.logging.level == "INFO"
    assert config.generated_label == "generated"
    config.validate()


def test_load_config_file(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("""
store:
  backend: github
  github_repository: acme/widgets
  snapshot_path: .prdtrack/snapshots
llm:
  model: claude-3-5-sonnet
  temperature: 0.0
  json_mode: true
filter:
  min_line_length: 5
  extra_trivial_patterns:
    - "^[+-]\\\\s*owner:"
logging:
  level: debug
  file: .prdtrack/prdtrack.log
generated_label: prd
summary_path: out/summary.json
""")
    config = PrdtrackConfig.load(tmp_path, env={"GITHUB_TOKEN": "ghp_test"})

    assert config.store.backend == "github"
    assert config.store.github_repository == "acme/widgets"
    assert config.store.github_token == "ghp_test"
    assert config.store.snapshot_path == ".prdtrack/snapshots"
    assert config.llm.model == "claude-3-5-sonnet"
    assert config.llm.temperature == 0.0
    assert config.llm.json_mode is True
    assert config.filter.min_line_length == 5
    assert config.filter.extra_trivial_patterns == ["^[+-]\\s*owner:"]
    assert config.logging.level == "DEBUG"
    assert config.logging.file == ".prdtrack/prdtrack.log"
    assert config.generated_label == "prd"
    assert config.summary_path == "out/summary.json"
    config.validate()


def test_empty_config_file(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("")
    assert PrdtrackConfig.load(tmp_path, env={}).store.backend == "filesystem"


def test_environment_overrides_file(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("store:\n  backend: filesystem\n  path: from-file\n")
    config = PrdtrackConfig.load(tmp_path, env={
        "ISSUE_SERVICE_TYPE": "memory",
        "ISSUE_STORAGE_PATH": "from-env",
        "GITHUB_API_URL": "https://github.example.com/api/v3",
        "PRDTRACK_MODEL": "gemini/gemini-1.5-pro",
        "LOG_LEVEL": "warning",
    })
    assert config.store.backend == "memory"
    assert config.store.path == "from-env"
    assert config.store.github_api_url == "https://github.example.com/api/v3"
    assert config.llm.model == "gemini/gemini-1.5-pro"
    assert config.logging.level == "WARNING"


@pytest.mark.parametrize("store_settings", [
    {"backend": "github"},
    {"backend": "github", "github_token": "t"},
    {"backend": "github", "github_repository": "acme/widgets"},
    {"backend": "github", "github_token": "t", "github_repository": "widgets"},
    {"backend": "jira"},
])
def test_validate_rejects_incomplete_backends(store_settings):
    config = PrdtrackConfig._parse_main_config({"store": store_settings})
    with pytest.raises(ConfigError):
        config.validate()


def test_validate_rejects_negative_threshold():
    config = PrdtrackConfig._parse_main_config({"filter": {"min_line_length": -1}})
    with pytest.raises(ConfigError):
        config.validate()


def test_ensure_prdtrack_dir(tmp_path):
    path = ensure_prdtrack_dir(tmp_path)
    assert path == tmp_path / ".prdtrack"
    assert path.is_dir()
