import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mafia_backend.config.config_loader import load_rules


@dataclass(slots=True)
class DistributionConfig:
    min_players: int = 6
    mafia_ratio: float = 0.3
    min_mafia: int = 1


@dataclass(slots=True)
class RoomConfig:
    code_length: int = 6


@dataclass(slots=True)
class StorageConfig:
    db_path: str = "./data/mafia.db"


@dataclass(slots=True)
class GameConfig:
    distribution: DistributionConfig = field(default_factory=DistributionConfig)
    room: RoomConfig = field(default_factory=RoomConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    warnings: List[str] = field(default_factory=list)


def default_game_config(overrides: Optional[Dict[str, Any]] = None) -> GameConfig:
    loaded = load_rules(overrides=overrides)
    db_path = os.getenv("MAFIA_DB_PATH") or loaded["storage"]["db_path"]
    return GameConfig(
        distribution=DistributionConfig(**loaded["distribution"]),
        room=RoomConfig(**loaded["room"]),
        storage=StorageConfig(db_path=db_path),
        warnings=loaded.get("warnings", []),
    )
