"""
Configuration loader for tfpr.
Merges defaults with per-repo .tfpr/config.yaml overrides and TFPR_* env vars.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class TimeoutConfig(BaseModel):
    """Per-stage limits in seconds."""
    init: int = 600
    workspace: int = 120
    plan: int = 1800
    apply: int = 3600


class TerraformConfig(BaseModel):
    binary: str = "terraform"
    default_dir: str = ""
    default_workspace: str = "dev"
    strict_workspace: bool = True
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)


class ReportConfig(BaseModel):
    max_output_chars: int = 60_000


class GitHubConfig(BaseModel):
    gh_binary: str = "gh"
    check_name_prefix: str = "terraform-pr"
    api_timeout: int = 30


class BridgeConfig(BaseModel):
    terraform: TerraformConfig = Field(default_factory=TerraformConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

_ENV_OVERRIDES = {
    "TFPR_DEFAULT_DIR": ("terraform", "default_dir"),
    "TFPR_DEFAULT_WORKSPACE": ("terraform", "default_workspace"),
    "TFPR_TERRAFORM_BIN": ("terraform", "binary"),
    "TFPR_STRICT_WORKSPACE": ("terraform", "strict_workspace"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        if var in environ:
            overrides.setdefault(section, {})[key] = environ[var]
    return overrides


def load_config(repo_path: Path | None = None, environ: dict[str, str] | None = None) -> BridgeConfig:
    """
    Load config by merging:
      1. Built-in defaults (tfpr/config.yaml)
      2. Repo-level overrides (<repo>/.tfpr/config.yaml)
      3. Environment variable overrides (TFPR_*)
    """
    # 1. Built-in defaults
    with open(_DEFAULT_CONFIG_PATH, "r") as f:
        base: dict[str, Any] = yaml.safe_load(f) or {}

    # 2. Repo overrides
    if repo_path:
        repo_config = repo_path / ".tfpr" / "config.yaml"
        if repo_config.exists():
            with open(repo_config, "r") as f:
                overrides: dict[str, Any] = yaml.safe_load(f) or {}
            base = _deep_merge(base, overrides)

    # 3. Env overrides (pydantic coerces "false"/"0" for booleans)
    env = os.environ if environ is None else environ
    base = _deep_merge(base, _env_overrides(dict(env)))

    return BridgeConfig(**base)


def check_github_env() -> dict[str, bool]:
    """Check which GitHub Actions variables are available."""
    return {
        "GITHUB_TOKEN":      bool(os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")),
        "GITHUB_EVENT_PATH": bool(os.environ.get("GITHUB_EVENT_PATH")),
        "GITHUB_REPOSITORY": bool(os.environ.get("GITHUB_REPOSITORY")),
    }
