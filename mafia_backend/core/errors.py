from __future__ import annotations

from typing import Optional


class GameRuleError(ValueError):
    """A rejected request. Nothing has been mutated when one of these is raised."""

    reason: str = "GameRuleError"
    default_message: str = "request rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class InsufficientPlayers(GameRuleError):
    reason = "InsufficientPlayers"
    default_message = "need at least 6 players to start"


class InvalidPlayerId(GameRuleError):
    reason = "InvalidPlayerId"
    default_message = "player ids must be distinct and non-empty"


class DeadActor(GameRuleError):
    reason = "DeadActor"
    default_message = "dead players cannot act"


class PhaseMismatch(GameRuleError):
    reason = "PhaseMismatch"
    default_message = "action phase does not match the current phase"


class NoActionsThisPhase(GameRuleError):
    reason = "NoActionsThisPhase"
    default_message = "no actions are allowed in this phase"


class AlreadyActed(GameRuleError):
    reason = "AlreadyActed"
    default_message = "player already acted this round"


class AlreadyVoted(GameRuleError):
    reason = "AlreadyVoted"
    default_message = "player already voted this round"


class WrongActionForRole(GameRuleError):
    reason = "WrongActionForRole"
    default_message = "this role cannot perform that action"


class TargetRequired(GameRuleError):
    reason = "TargetRequired"
    default_message = "target required"


class InvalidTarget(GameRuleError):
    reason = "InvalidTarget"
    default_message = "invalid target"


class TargetNotAlive(GameRuleError):
    reason = "TargetNotAlive"
    default_message = "cannot target a dead player"


class CannotTargetSelf(GameRuleError):
    reason = "CannotTargetSelf"
    default_message = "cannot target self"


class SelfProtectLimitExceeded(GameRuleError):
    reason = "SelfProtectLimitExceeded"
    default_message = "doctor can only self-protect once per game"


class TerroristAlreadyUsed(GameRuleError):
    reason = "TerroristAlreadyUsed"
    default_message = "terrorist can only bomb once per game"


class InvalidVoteTarget(GameRuleError):
    reason = "InvalidVoteTarget"
    default_message = "invalid vote target"


class CannotVoteOutModerator(GameRuleError):
    reason = "CannotVoteOutModerator"
    default_message = "cannot vote out the moderator"


# service level


class RoomNotFound(GameRuleError):
    reason = "RoomNotFound"
    default_message = "room not found"


class PlayerNotFound(GameRuleError):
    reason = "PlayerNotFound"
    default_message = "player not found"


class ActionNotFound(GameRuleError):
    reason = "ActionNotFound"
    default_message = "action not found"


class NotModerator(GameRuleError):
    reason = "NotModerator"
    default_message = "only the moderator can do this"


class NotRoomCreator(GameRuleError):
    reason = "NotRoomCreator"
    default_message = "only the room creator can start the game"


class GameAlreadyStarted(GameRuleError):
    reason = "GameAlreadyStarted"
    default_message = "game already in progress"


class GameNotStarted(GameRuleError):
    reason = "GameNotStarted"
    default_message = "game has not been started"


class ActionsPendingConfirmation(GameRuleError):
    reason = "ActionsPendingConfirmation"
    default_message = "please confirm all actions before advancing phase"


class InvalidTransition(GameRuleError):
    reason = "InvalidTransition"
    default_message = "the game cannot advance from this phase"


class StalePhase(GameRuleError):
    reason = "StalePhase"
    default_message = "phase already changed; reload and retry"


NOT_FOUND_REASONS = {RoomNotFound.reason, PlayerNotFound.reason, ActionNotFound.reason}
