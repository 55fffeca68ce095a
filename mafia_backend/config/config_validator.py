from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass(slots=True)
class ValidationResult:
    ok: bool
    warnings: List[str]


class ConfigValidator:
    MIN_PLAYERS_FLOOR = 6
    CODE_LENGTH_RANGE = (4, 12)

    @staticmethod
    def normalize_distribution(distribution: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "min_players": int(distribution.get("min_players", distribution.get("minimum_players", 6))),
            "mafia_ratio": float(distribution.get("mafia_ratio", distribution.get("mafia_share", 0.3))),
            "min_mafia": int(distribution.get("min_mafia", 1)),
        }

    @classmethod
    def validate_rules(cls, distribution: Dict[str, Any], code_length: int) -> ValidationResult:
        normalized = cls.normalize_distribution(distribution)
        if normalized["min_players"] < cls.MIN_PLAYERS_FLOOR:
            raise ValueError(f"min_players must be >= {cls.MIN_PLAYERS_FLOOR}")

        ratio = normalized["mafia_ratio"]
        if not (0.0 < ratio < 1.0):
            raise ValueError("mafia_ratio must be between 0 and 1 (exclusive)")

        if normalized["min_mafia"] < 1:
            raise ValueError("min_mafia must be >= 1")

        low, high = cls.CODE_LENGTH_RANGE
        if not (low <= code_length <= high):
            raise ValueError(f"room code_length must be between {low} and {high}")

        warnings: List[str] = []
        if ratio > 0.4:
            warnings.append("mafia_ratio above 40% may let mafia win on the first night")
        if ratio < 0.15:
            warnings.append("mafia_ratio below 15% leaves a single mafia for most tables")
        return ValidationResult(ok=True, warnings=warnings)
