"""Configuration loading from ``.branchgap.yml`` and environment variables."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".branchgap.yml"

SUPPORTED_PROVIDERS = ("openai", "anthropic")

DEFAULT_OPENAI_MODEL = "gpt-5"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


@dataclass
class LLMConfig:
    """LLM provider selection and credentials."""

    provider: str = "openai"
    """Which provider analyses the gaps: ``openai`` or ``anthropic``."""

    openai_api_key: str = ""
    anthropic_api_key: str = ""

    openai_model: str = DEFAULT_OPENAI_MODEL
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL

    base_url: str = ""
    """Custom base URL (useful for proxied endpoints)."""

    temperature: float | None = None
    """Sampling temperature; unset leaves the provider default."""

    max_tokens: int | None = None
    """Completion ceiling; unset uses the provider engine's default."""

    @property
    def model(self) -> str:
        """Model identifier for the selected provider."""
        return self.anthropic_model if self.provider == "anthropic" else self.openai_model

    @property
    def api_key(self) -> str:
        """API key for the selected provider."""
        return self.anthropic_api_key if self.provider == "anthropic" else self.openai_api_key


@dataclass
class GitHubConfig:
    """GitHub access for repository search and cloning."""

    token: str = ""
    """Personal access token. Optional; search works unauthenticated at a lower rate limit."""


@dataclass
class PathsConfig:
    """Where cloned repositories and reports are stored."""

    data_dir: str = "data"

    @property
    def repositories(self) -> Path:
        return Path(self.data_dir) / "repositories"

    @property
    def reports(self) -> Path:
        return Path(self.data_dir) / "reports"


@dataclass
class PipelineConfig:
    """Pipeline scheduling knobs."""

    inter_repo_delay: float = 2.0
    """Seconds to wait between repositories in batch mode."""

    install_timeout: float | None = None
    """Seconds allowed for ``npm install``; unset waits indefinitely."""

    test_timeout: float | None = None
    """Seconds allowed for the test run; unset waits indefinitely."""


@dataclass
class BranchgapConfig:
    """Top-level configuration, assembled once and passed to every component."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    return value if isinstance(value, dict) else {}


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _parse_llm_config(raw: dict[str, Any], env: dict[str, str]) -> LLMConfig:
    return LLMConfig(
        provider=str(raw.get("provider", env.get("LLM_PROVIDER", "openai"))).strip().lower(),
        openai_api_key=str(raw.get("openai_api_key", env.get("OPENAI_API_KEY", ""))),
        anthropic_api_key=str(raw.get("anthropic_api_key", env.get("ANTHROPIC_API_KEY", ""))),
        openai_model=str(raw.get("openai_model", env.get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL))),
        anthropic_model=str(
            raw.get("anthropic_model", env.get("ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL))
        ),
        base_url=str(raw.get("base_url", "")),
        temperature=_optional_float(raw.get("temperature")),
        max_tokens=_optional_int(raw.get("max_tokens")),
    )


def _parse_pipeline_config(raw: dict[str, Any]) -> PipelineConfig:
    return PipelineConfig(
        inter_repo_delay=float(raw.get("inter_repo_delay", 2.0)),
        install_timeout=_optional_float(raw.get("install_timeout")),
        test_timeout=_optional_float(raw.get("test_timeout")),
    )


def build_config(raw: dict[str, Any], env: dict[str, str] | None = None) -> BranchgapConfig:
    """Build a ``BranchgapConfig`` from parsed YAML, falling back to *env*.

    Values in *raw* win over environment variables. ``${VAR}`` placeholders
    in *raw* are expanded.
    """
    env = dict(os.environ) if env is None else env
    resolved = _resolve_dict(raw)

    github_raw = _section(resolved, "github")
    paths_raw = _section(resolved, "paths")

    return BranchgapConfig(
        llm=_parse_llm_config(_section(resolved, "llm"), env),
        github=GitHubConfig(token=str(github_raw.get("token", env.get("GITHUB_TOKEN", "")))),
        paths=PathsConfig(
            data_dir=str(paths_raw.get("data_dir", env.get("BRANCHGAP_DATA_DIR", "data")))
        ),
        pipeline=_parse_pipeline_config(_section(resolved, "pipeline")),
    )


def validate_config(config: BranchgapConfig) -> list[str]:
    """Return a list of configuration problems (empty when valid)."""
    errors: list[str] = []
    llm = config.llm

    if llm.provider not in SUPPORTED_PROVIDERS:
        errors.append(
            f"llm.provider must be one of {', '.join(SUPPORTED_PROVIDERS)}, got {llm.provider!r}"
        )
        return errors

    if not llm.api_key:
        env_name = f"{llm.provider.upper()}_API_KEY"
        errors.append(f"{env_name} is required when LLM_PROVIDER={llm.provider}")
    if not llm.model:
        errors.append(f"No model configured for provider {llm.provider}")
    if config.pipeline.inter_repo_delay < 0:
        errors.append("pipeline.inter_repo_delay must not be negative")

    return errors


def load_config(root: str | Path = ".", env: dict[str, str] | None = None) -> BranchgapConfig:
    """Load ``.branchgap.yml`` from *root* (if present) and validate the result.

    Raises:
        ConfigError: The file is not valid YAML or required settings are missing.
    """
    config_path = Path(root) / CONFIG_FILENAME
    raw: dict[str, Any] = {}
    if config_path.is_file():
        try:
            parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if isinstance(parsed, dict):
            raw = parsed

    try:
        config = build_config(raw, env)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    errors = validate_config(config)
    if errors:
        raise ConfigError("; ".join(errors))

    if not config.github.token:
        logger.warning("GITHUB_TOKEN is not set; repository search is rate-limited")

    logger.info("Using LLM provider: %s (%s)", config.llm.provider.upper(), config.llm.model)
    return config
