from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from mafia_backend.api.deps import get_room_manager
from mafia_backend.core.errors import NOT_FOUND_REASONS, GameRuleError, StalePhase
from mafia_backend.room.room_manager import RoomManager
from mafia_backend.schemas import (
    ActionRequest,
    ActionView,
    ConfirmAllResponse,
    ConfirmationStatusResponse,
    CreateRoomRequest,
    JoinRoomRequest,
    MissingActionsResponse,
    OperatorRequest,
    PhaseTransitionResponse,
    ReportsResponse,
    RoomJoinResponse,
    RoomStateResponse,
    VoteRequest,
)

router = APIRouter(prefix="/api", tags=["mafia"])


def _http_error(exc: GameRuleError) -> HTTPException:
    if exc.reason in NOT_FOUND_REASONS:
        status_code = 404
    elif isinstance(exc, StalePhase):
        status_code = 409
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def _room_code(room_id: str) -> str:
    return room_id.strip().upper()


@router.post("/rooms", response_model=RoomJoinResponse)
def create_room(req: CreateRoomRequest, manager: RoomManager = Depends(get_room_manager)) -> RoomJoinResponse:
    return RoomJoinResponse(**manager.create_room(req.nickname))


@router.post("/rooms/{room_id}/join", response_model=RoomJoinResponse)
def join_room(
    room_id: str,
    req: JoinRoomRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> RoomJoinResponse:
    try:
        return RoomJoinResponse(**manager.join_room(_room_code(room_id), req.nickname, req.player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/start", response_model=RoomStateResponse)
def start_game(
    room_id: str,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> RoomStateResponse:
    try:
        return RoomStateResponse(**manager.start_game(_room_code(room_id), req.player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.get("/rooms/{room_id}", response_model=RoomStateResponse)
def room_state(
    room_id: str,
    player_id: Optional[str] = None,
    manager: RoomManager = Depends(get_room_manager),
) -> RoomStateResponse:
    try:
        return RoomStateResponse(**manager.state(_room_code(room_id), player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/actions", response_model=ActionView)
def submit_action(
    room_id: str,
    req: ActionRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> ActionView:
    try:
        action = manager.submit_action(
            _room_code(room_id),
            req.player_id,
            req.action_type,
            req.target_id,
            phase=req.phase,
            round_number=req.round_no,
        )
        return ActionView(**RoomManager.action_view(action))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/vote", response_model=ActionView)
def submit_vote(
    room_id: str,
    req: VoteRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> ActionView:
    try:
        action = manager.submit_vote(_room_code(room_id), req.player_id, req.target_id, round_number=req.round_no)
        return ActionView(**RoomManager.action_view(action))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/actions/{action_id}/confirm", response_model=ActionView)
def confirm_action(
    room_id: str,
    action_id: int,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> ActionView:
    try:
        action = manager.confirm_action(_room_code(room_id), req.player_id, action_id)
        return ActionView(**RoomManager.action_view(action))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/confirm-all", response_model=ConfirmAllResponse)
def confirm_all(
    room_id: str,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> ConfirmAllResponse:
    try:
        return ConfirmAllResponse(confirmed=manager.confirm_all(_room_code(room_id), req.player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.get("/rooms/{room_id}/confirmations", response_model=ConfirmationStatusResponse)
def confirmations(room_id: str, manager: RoomManager = Depends(get_room_manager)) -> ConfirmationStatusResponse:
    try:
        return ConfirmationStatusResponse(**manager.pending_confirmations(_room_code(room_id)))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.get("/rooms/{room_id}/missing", response_model=MissingActionsResponse)
def missing_actions(room_id: str, manager: RoomManager = Depends(get_room_manager)) -> MissingActionsResponse:
    try:
        return MissingActionsResponse(players=manager.missing_actions(_room_code(room_id)))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/advance", response_model=PhaseTransitionResponse)
def advance(
    room_id: str,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> PhaseTransitionResponse:
    try:
        transition = manager.advance_phase(_room_code(room_id), req.player_id)
    except GameRuleError as exc:
        raise _http_error(exc) from exc
    return PhaseTransitionResponse(
        from_phase=transition.from_phase.value,
        to_phase=transition.to_phase.value,
        round_no=transition.round_number,
        night=transition.night.to_dict() if transition.night else None,
        vote=transition.vote.to_dict() if transition.vote else None,
        winner=transition.win.winner.value if transition.win and transition.win.winner else None,
        reason=transition.win.reason if transition.win else None,
    )


@router.post("/rooms/{room_id}/reset", response_model=RoomStateResponse)
def reset_to_lobby(
    room_id: str,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> RoomStateResponse:
    try:
        return RoomStateResponse(**manager.reset_to_lobby(_room_code(room_id), req.player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.post("/rooms/{room_id}/restart", response_model=RoomStateResponse)
def restart_with_same_roles(
    room_id: str,
    req: OperatorRequest,
    manager: RoomManager = Depends(get_room_manager),
) -> RoomStateResponse:
    try:
        return RoomStateResponse(**manager.restart_with_same_roles(_room_code(room_id), req.player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc


@router.get("/rooms/{room_id}/reports", response_model=ReportsResponse)
def reports(
    room_id: str,
    player_id: str,
    manager: RoomManager = Depends(get_room_manager),
) -> ReportsResponse:
    try:
        return ReportsResponse(reports=manager.reports(_room_code(room_id), player_id))
    except GameRuleError as exc:
        raise _http_error(exc) from exc
