from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml


class LoaderError(ValueError):
    pass


_YAML_SUFFIXES = (".yml", ".yaml")


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def load_yaml(path: Path) -> Any:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def load_document(path: str | Path) -> dict[str, Any]:
    """
    Load a template or session document from JSON or YAML.
    The top level must be a mapping; anything else is rejected.
    """
    p = Path(path)
    if not p.exists():
        raise LoaderError(f"File not found: {p}")
    try:
        data = load_yaml(p) if p.suffix.lower() in _YAML_SUFFIXES else load_json(p)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise LoaderError(f"Could not parse {p.name}: {e}") from e
    if not isinstance(data, dict):
        raise LoaderError(f"{p.name}: top level must be an object, got {type(data).__name__}")
    return data
