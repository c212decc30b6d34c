"""Storage helpers for settings overrides."""
from __future__ import annotations

from pathlib import Path
import json
import os
from typing import Any

ENV_VAR = "CATALOG_CHECKER_SETTINGS"
DEFAULT_PATH = Path(__file__).resolve().parents[3] / "catalog_settings.json"


def resolve_path(path: Path | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(ENV_VAR, "").strip()
    return Path(env_path) if env_path else DEFAULT_PATH


def _normalize_overrides(raw: dict[str, Any] | None) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    if not isinstance(raw, dict):
        return normalized
    for key, value in raw.items():
        if key is None:
            continue
        key_str = str(key).strip().lower().replace("-", "_")
        if not key_str or value is None:
            continue
        if isinstance(value, dict):
            value = {str(k).strip().lower(): v for k, v in value.items() if k is not None}
        normalized[key_str] = value
    return normalized


def load_overrides(path: Path | None = None) -> dict[str, Any]:
    override_path = resolve_path(path)
    if not override_path.exists():
        return {}
    try:
        data = json.loads(override_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
    return _normalize_overrides(data)


def save_overrides(overrides: dict[str, Any], path: Path | None = None) -> dict[str, Any]:
    """Merge ``overrides`` into the stored file and return the merged result."""
    override_path = resolve_path(path)
    merged = load_overrides(override_path)
    merged.update(_normalize_overrides(overrides))
    override_path.write_text(
        json.dumps(merged, ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    return merged
