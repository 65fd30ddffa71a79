"""Configuration loading and runtime directory bootstrapping."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

SYNC_URL_ENV = "DESKTOP_SYNC_URL"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure workspace, cache and database directories exist and return them."""
    paths_cfg = config.get("paths", {})
    workspace_dir = (root / paths_cfg.get("workspace_dir", "workspace")).resolve()
    cache_dir = (root / paths_cfg.get("cache_dir", "workspace/cache")).resolve()
    db_path = (root / paths_cfg.get("db_path", "workspace/desktop.db")).resolve()

    workspace_dir.mkdir(parents=True, exist_ok=True)
    cache_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "workspace_dir": workspace_dir,
        "cache_dir": cache_dir,
        "db_path": db_path,
    }


def load_effective_config(root: Path, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Load and merge ``config/default.yaml``, ``config/apps.yaml`` and overrides."""
    config_dir = root / "config"
    merged = load_yaml(config_dir / "default.yaml")
    apps_cfg = load_yaml(config_dir / "apps.yaml")
    merged["apps"] = list(apps_cfg.get("apps", []))

    sync_url = os.getenv(SYNC_URL_ENV)
    if sync_url:
        merged = merge_dicts(merged, {"sync": {"base_url": sync_url, "enabled": True}})
    if overrides:
        merged = merge_dicts(merged, overrides)
    return merged


def sync_token(config: dict[str, Any]) -> str | None:
    """Bearer token for the sync client, read from the configured env var."""
    env_name = config.get("sync", {}).get("token_env", "DESKTOP_API_TOKEN")
    return os.getenv(env_name) or None
