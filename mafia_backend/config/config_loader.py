from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from mafia_backend.config.config_validator import ConfigValidator

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[2] / "config" / "game_rules.yaml"

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "distribution": {"min_players": 6, "mafia_ratio": 0.3, "min_mafia": 1},
    "room": {"code_length": 6},
    "storage": {"db_path": "./data/mafia.db"},
}


def load_rules(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    raw = _load_rules_file(path or DEFAULT_RULES_PATH)
    merged: Dict[str, Dict[str, Any]] = {}
    for section, defaults in _DEFAULTS.items():
        node = dict(defaults)
        node.update(raw.get(section) or {})
        node.update((overrides or {}).get(section) or {})
        merged[section] = node

    distribution = ConfigValidator.normalize_distribution(merged["distribution"])
    result = ConfigValidator.validate_rules(
        distribution=distribution,
        code_length=int(merged["room"]["code_length"]),
    )
    return {
        "distribution": distribution,
        "room": {"code_length": int(merged["room"]["code_length"])},
        "storage": {"db_path": str(merged["storage"]["db_path"])},
        "warnings": result.warnings,
    }


def _load_rules_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        return {}
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"rules file {config_path} must contain a mapping")
    return raw
