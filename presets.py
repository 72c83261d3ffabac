from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(__file__)
BASE_PRESETS_PATH = os.path.join(BASE_DIR, "presets.json")
LOCAL_PRESETS_PATH = os.environ.get(
    "QUOTE_PRESETS_OVERRIDE_PATH",
    os.path.join(BASE_DIR, "presets.local.json"),
)


def _load_json(path: str, *, required: bool = False) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        if required:
            raise
        return {}
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Invalid JSON in {path}: {exc}") from exc


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = base.copy()
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(base_value, value)
        else:
            merged[key] = value
    return merged


def load_presets(base_path: str = BASE_PRESETS_PATH, local_path: Optional[str] = None) -> Dict[str, Any]:
    """Base presets with the local override file merged on top."""
    local_path = LOCAL_PRESETS_PATH if local_path is None else local_path
    base = _load_json(base_path, required=True)
    override = _load_json(local_path)
    if override:
        logger.info("Applying preset overrides from %s", local_path)
    return _deep_merge(base, override)


@dataclass(frozen=True)
class CompanyProfile:
    """Fixed identity block printed on every quotation."""

    name: str
    address_lines: Tuple[str, ...]
    phone: str
    email: str

    @classmethod
    def from_presets(cls, presets: Dict[str, Any]) -> "CompanyProfile":
        section = presets.get("company")
        if not isinstance(section, dict):
            raise RuntimeError("company is missing from presets.")
        return cls(
            name=str(section.get("name", "")),
            address_lines=tuple(str(line) for line in section.get("address_lines", [])),
            phone=str(section.get("phone", "")),
            email=str(section.get("email", "")),
        )


@dataclass(frozen=True)
class RenderSettings:
    width: int = 800
    scale: int = 2
    page_divisor: int = 2

    @classmethod
    def from_presets(cls, presets: Dict[str, Any]) -> "RenderSettings":
        section = presets.get("render") or {}
        return cls(
            width=int(section.get("width", cls.width)),
            scale=int(section.get("scale", cls.scale)),
            page_divisor=int(section.get("page_divisor", cls.page_divisor)),
        )
