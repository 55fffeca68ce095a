from __future__ import annotations

import random
from fractions import Fraction
from typing import Dict, List, Optional, Sequence

from mafia_backend.core.errors import InsufficientPlayers, InvalidPlayerId
from mafia_backend.core.game_config import DistributionConfig
from mafia_backend.core.models import Role

RESERVED_ROLES = (Role.MODERATOR, Role.DOCTOR, Role.POLICE, Role.TERRORIST)


def calculate_role_distribution(
    total_players: int,
    config: Optional[DistributionConfig] = None,
) -> Dict[Role, int]:
    """Role multiset for ``total_players`` seats.

    One Moderator, Doctor, Police and Terrorist are reserved. Mafia get the
    floor of ``mafia_ratio`` of the non-moderator seats (never fewer than
    ``min_mafia``) and plain Citizens take whatever is left.
    """
    config = config or DistributionConfig()
    if total_players < config.min_players:
        raise InsufficientPlayers(f"need at least {config.min_players} players to start")

    open_seats = total_players - len(RESERVED_ROLES)
    non_moderator = total_players - 1
    mafia = int(Fraction(str(config.mafia_ratio)) * non_moderator)
    mafia = min(max(config.min_mafia, mafia), open_seats)

    distribution = {role: 1 for role in RESERVED_ROLES}
    distribution[Role.MAFIA] = mafia
    distribution[Role.CITIZEN] = open_seats - mafia
    return distribution


def assign_roles(
    player_ids: Sequence[str],
    config: Optional[DistributionConfig] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Role]:
    _check_player_ids(player_ids)
    distribution = calculate_role_distribution(len(player_ids), config)
    rng = rng or random.Random()

    pool: List[Role] = []
    for role, count in distribution.items():
        if role == Role.MODERATOR:
            continue
        pool.extend([role] * count)
    rng.shuffle(pool)

    moderator_index = rng.randrange(len(player_ids))
    remaining = iter(pool)
    assignments: Dict[str, Role] = {}
    for index, player_id in enumerate(player_ids):
        assignments[player_id] = Role.MODERATOR if index == moderator_index else next(remaining)
    return assignments


def _check_player_ids(player_ids: Sequence[str]) -> None:
    seen = set()
    for player_id in player_ids:
        if player_id is None or not isinstance(player_id, str) or not player_id.strip():
            raise InvalidPlayerId("player ids must be non-empty strings")
        if player_id in seen:
            raise InvalidPlayerId(f"duplicate player id: {player_id}")
        seen.add(player_id)
