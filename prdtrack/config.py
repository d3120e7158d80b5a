"""
Configuration management for Prdtrack.

Loads and validates:
- prdtrack.yml: Main configuration (store backend, LLM, filter, logging)
- Environment variables, which override file values:
  ISSUE_SERVICE_TYPE, ISSUE_STORAGE_PATH, GITHUB_TOKEN, GITHUB_REPOSITORY,
  GITHUB_API_URL, PRDTRACK_MODEL, LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError


CONFIG_FILENAME = "prdtrack.yml"
BACKENDS = ("filesystem", "github", "memory")


@dataclass
class StoreConfig:
    """Work item store backend settings."""
    backend: str = "filesystem"  # filesystem, github, memory
    path: str = ".issues"  # filesystem backend root
    github_token: str | None = None
    github_repository: str | None = None  # owner/repo
    github_api_url: str = "https://api.github.com"
    # Local snapshot archive for the github backend (disabled when unset)
    snapshot_path: str | None = None


@dataclass
class LLMConfig:
    """LLM configuration using LiteLLM."""
    model: str = "gpt-4o"
    temperature: float = 0.1
    max_tokens: int = 4000
    # Ask the provider for a bare JSON object where supported
    json_mode: bool = False
    # API keys are read from environment (OPENAI_API_KEY, ANTHROPIC_API_KEY, etc.)


@dataclass
class FilterConfig:
    """Change significance filter settings."""
    min_line_length: int = 3
    extra_trivial_patterns: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str | None = None
    json: bool = True  # file records as one JSON object per line


@dataclass
class PrdtrackConfig:
    """Complete Prdtrack configuration, passed explicitly to every component."""
    store: StoreConfig = field(default_factory=StoreConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    generated_label: str = "generated"
    summary_path: str = ".prdtrack/last-run.json"

    @classmethod
    def load(
        cls,
        repo_root: Path,
        env: Mapping[str, str] | None = None,
    ) -> "PrdtrackConfig":
        """Load configuration from repo root directory, then apply env overrides."""
        config = cls()

        main_config_path = repo_root / CONFIG_FILENAME
        if main_config_path.exists():
            with open(main_config_path) as f:
                data = yaml.safe_load(f) or {}
            config = cls._parse_main_config(data)

        config.apply_env(os.environ if env is None else env)
        return config

    @classmethod
    def _parse_main_config(cls, data: dict[str, Any]) -> "PrdtrackConfig":
        """Parse main configuration dictionary."""
        config = cls()

        store_data = data.get("store", {}) or {}
        config.store = StoreConfig(
            backend=store_data.get("backend", "filesystem"),
            path=store_data.get("path", ".issues"),
            github_token=store_data.get("github_token"),
            github_repository=store_data.get("github_repository"),
            github_api_url=store_data.get("github_api_url", "https://api.github.com"),
            snapshot_path=store_data.get("snapshot_path"),
        )

        llm_data = data.get("llm", {}) or {}
        config.llm = LLMConfig(
            model=llm_data.get("model", "gpt-4o"),
            temperature=llm_data.get("temperature", 0.1),
            max_tokens=llm_data.get("max_tokens", 4000),
            json_mode=llm_data.get("json_mode", False),
        )

        filter_data = data.get("filter", {}) or {}
        config.filter = FilterConfig(
            min_line_length=filter_data.get("min_line_length", 3),
            extra_trivial_patterns=list(filter_data.get("extra_trivial_patterns", [])),
        )

        logging_data = data.get("logging", {}) or {}
        config.logging = LoggingConfig(
            level=str(logging_data.get("level", "INFO")).upper(),
            file=logging_data.get("file"),
            json=logging_data.get("json", True),
        )

        config.generated_label = data.get("generated_label", "generated")
        config.summary_path = data.get("summary_path", ".prdtrack/last-run.json")
        return config

    def apply_env(self, env: Mapping[str, str]) -> None:
        """Environment variables win over the file."""
        if env.get("ISSUE_SERVICE_TYPE"):
            self.store.backend = env["ISSUE_SERVICE_TYPE"]
        if env.get("ISSUE_STORAGE_PATH"):
            self.store.path = env["ISSUE_STORAGE_PATH"]
        if env.get("GITHUB_TOKEN"):
            self.store.github_token = env["GITHUB_TOKEN"]
        if env.get("GITHUB_REPOSITORY"):
            self.store.github_repository = env["GITHUB_REPOSITORY"]
        if env.get("GITHUB_API_URL"):
            self.store.github_api_url = env["GITHUB_API_URL"]
        if env.get("PRDTRACK_MODEL"):
            self.llm.model = env["PRDTRACK_MODEL"]
        if env.get("LOG_LEVEL"):
            self.logging.level = env["LOG_LEVEL"].upper()

    def validate(self) -> None:
        """Fail fast on settings the active backend cannot run without."""
        if self.store.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown store backend: {self.store.backend} "
                f"(expected one of: {', '.join(BACKENDS)})"
            )
        if self.store.backend == "github":
            if not self.store.github_token or not self.store.github_repository:
                raise ConfigError(
                    "GitHub backend requires GITHUB_TOKEN and GITHUB_REPOSITORY"
                )
            if self.store.github_repository.count("/") != 1:
                raise ConfigError(
                    f"GITHUB_REPOSITORY must look like owner/repo, got: {self.store.github_repository}"
                )
        if self.filter.min_line_length < 0:
            raise ConfigError("filter.min_line_length must not be negative")


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()


def get_prdtrack_dir(repo_root: Path | None = None) -> Path:
    """Get the .prdtrack directory path."""
    if repo_root is None:
        repo_root = get_repo_root()
    return repo_root / ".prdtrack"


def ensure_prdtrack_dir(repo_root: Path | None = None) -> Path:
    """Ensure .prdtrack directory exists and return its path."""
    prdtrack_dir = get_prdtrack_dir(repo_root)
    prdtrack_dir.mkdir(parents=True, exist_ok=True)
    return prdtrack_dir
