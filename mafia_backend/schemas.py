from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mafia_backend.core.models import ActionType, Phase


class CreateRoomRequest(BaseModel):
    nickname: str = Field(min_length=1, max_length=30)


class JoinRoomRequest(BaseModel):
    nickname: str = Field(min_length=1, max_length=30)
    player_id: Optional[str] = None


class OperatorRequest(BaseModel):
    player_id: str


class ActionRequest(BaseModel):
    player_id: str
    action_type: ActionType
    target_id: Optional[str] = None
    phase: Optional[Phase] = None
    round_no: Optional[int] = Field(default=None, ge=1)


class VoteRequest(BaseModel):
    player_id: str
    target_id: Optional[str] = None
    round_no: Optional[int] = Field(default=None, ge=1)


class RoomJoinResponse(BaseModel):
    room_id: str
    player_id: str
    rejoined: bool = False


class ActionView(BaseModel):
    action_id: Optional[int] = None
    player_id: str
    action_type: str
    target_player_id: Optional[str] = None
    phase: str
    round_no: int
    confirmed: bool


class RoomPlayerView(BaseModel):
    player_id: str
    nickname: str
    alive: bool
    role: Optional[str] = None


class RoomStateResponse(BaseModel):
    room_id: str
    creator_id: str
    started: bool
    phase: str
    round_no: int
    winner: Optional[str] = None
    players: List[RoomPlayerView]
    actions: Optional[List[ActionView]] = None
    winning_players: Optional[List[str]] = None
    warnings: List[str] = Field(default_factory=list)


class ConfirmationStatusResponse(BaseModel):
    phase: str
    round_no: int
    advanceable: bool
    pending_count: int
    message: Optional[str] = None
    pending: List[ActionView]


class ConfirmAllResponse(BaseModel):
    confirmed: int


class MissingActionsResponse(BaseModel):
    players: List[Dict[str, str]]


class PhaseTransitionResponse(BaseModel):
    from_phase: str
    to_phase: str
    round_no: int
    night: Optional[Dict[str, Any]] = None
    vote: Optional[Dict[str, Any]] = None
    winner: Optional[str] = None
    reason: Optional[str] = None


class ReportsResponse(BaseModel):
    reports: List[Dict[str, Any]]
