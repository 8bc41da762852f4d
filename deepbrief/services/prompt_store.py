from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

from deepbrief.config import settings

BUNDLED_PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_catalog_cache: dict[str, Any] | None = None
_catalog_key: tuple[str, int] | None = None


def prompts_path() -> Path:
    if settings.prompts_path.strip():
        return Path(settings.prompts_path.strip())
    return BUNDLED_PROMPTS_PATH


def _load_catalog() -> dict[str, Any]:
    """Load the prompt catalog, reloading when the file changes on disk."""
    global _catalog_cache, _catalog_key
    path = prompts_path()
    cache_key = (str(path), path.stat().st_mtime_ns)
    if _catalog_cache is not None and _catalog_key == cache_key:
        return _catalog_cache

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    _catalog_cache = payload
    _catalog_key = cache_key
    return payload


def _lookup(key: str) -> Any:
    node: Any = _load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Prompt key not found: {key}")
        node = node[part]
    return node


def has_prompt(key: str) -> bool:
    try:
        return isinstance(_lookup(key), (str, list))
    except KeyError:
        return False


def render_prompt(key: str, **values: Any) -> str:
    node = _lookup(key)
    if isinstance(node, list):
        # Long prompts are stored one line per list entry.
        node = "\n".join(str(line) for line in node)
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string: {key}")
    try:
        return Template(node).substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    global _catalog_cache, _catalog_key
    _catalog_cache = None
    _catalog_key = None
