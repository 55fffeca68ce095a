from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    text,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from mafia_backend.core.errors import AlreadyActed, AlreadyVoted, PlayerNotFound, RoomNotFound, StalePhase
from mafia_backend.core.models import (
    Action,
    ActionType,
    GameSnapshot,
    GameState,
    Participant,
    Phase,
    Role,
    Winner,
)
from mafia_backend.core.results import WriteSet


class Base(DeclarativeBase):
    pass


class GameRow(Base):
    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(64))
    phase: Mapped[str] = mapped_column(String(16), default=Phase.LOBBY.value)
    current_round: Mapped[int] = mapped_column(Integer, default=1)
    winner_team: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class PlayerRow(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("room_id", "player_id", name="uq_player_per_room"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(16), index=True)
    player_id: Mapped[str] = mapped_column(String(64))
    nickname: Mapped[str] = mapped_column(String(30))
    role: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_alive: Mapped[bool] = mapped_column(Boolean, default=True)
    self_protected: Mapped[bool] = mapped_column(Boolean, default=False)
    terrorist_used: Mapped[bool] = mapped_column(Boolean, default=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ActionRow(Base):
    __tablename__ = "actions"
    __table_args__ = (
        # one pending night action per participant, phase and round
        Index(
            "uq_pending_action",
            "room_id",
            "player_id",
            "phase",
            "round_number",
            unique=True,
            sqlite_where=text("confirmed = 0 AND action_type != 'vote'"),
        ),
        # one vote per participant and round
        Index(
            "uq_vote_per_round",
            "room_id",
            "player_id",
            "round_number",
            unique=True,
            sqlite_where=text("action_type = 'vote'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(16), index=True)
    player_id: Mapped[str] = mapped_column(String(64))
    action_type: Mapped[str] = mapped_column(String(32))
    target_player_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    phase: Mapped[str] = mapped_column(String(16))
    round_number: Mapped[int] = mapped_column(Integer)
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ReportRow(Base):
    __tablename__ = "round_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(16), index=True)
    round_number: Mapped[int] = mapped_column(Integer)
    phase: Mapped[str] = mapped_column(String(16))
    payload_json: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class SQLiteRepository:
    def __init__(self, db_path: str = "./data/mafia.db") -> None:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{db_path}", future=True)
        self.session_factory = sessionmaker(bind=self.engine, class_=Session, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def create_game(self, room_id: str, creator_id: str) -> bool:
        with self.session_factory() as session:
            session.add(GameRow(id=room_id, creator_id=creator_id))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def upsert_player(self, room_id: str, player_id: str, nickname: str) -> bool:
        """Insert the player, or refresh the nickname of a known one. True when newly inserted."""
        with self.session_factory() as session:
            row = session.scalar(
                select(PlayerRow).where(PlayerRow.room_id == room_id, PlayerRow.player_id == player_id)
            )
            if row:
                row.nickname = nickname
                session.commit()
                return False
            session.add(PlayerRow(room_id=room_id, player_id=player_id, nickname=nickname))
            session.commit()
            return True

    def load_snapshot(self, room_id: str) -> GameSnapshot:
        with self.session_factory() as session:
            game_row = session.get(GameRow, room_id)
            if not game_row:
                raise RoomNotFound(f"room {room_id} not found")
            player_rows = session.scalars(
                select(PlayerRow).where(PlayerRow.room_id == room_id).order_by(PlayerRow.id)
            ).all()
            action_rows = session.scalars(
                select(ActionRow).where(ActionRow.room_id == room_id).order_by(ActionRow.id)
            ).all()

            game = GameState(
                room_id=game_row.id,
                creator_id=game_row.creator_id,
                phase=Phase(game_row.phase),
                current_round=game_row.current_round,
                winner_team=Winner(game_row.winner_team) if game_row.winner_team else None,
                started_at=game_row.started_at,
            )
            players = {
                row.player_id: Participant(
                    player_id=row.player_id,
                    nickname=row.nickname,
                    role=Role(row.role) if row.role else None,
                    is_alive=row.is_alive,
                    self_protected=row.self_protected,
                    terrorist_used=row.terrorist_used,
                )
                for row in player_rows
            }
            actions = [self._to_action(row) for row in action_rows]
            return GameSnapshot(game=game, players=players, actions=actions)

    def insert_action(self, room_id: str, action: Action) -> Action:
        with self.session_factory() as session:
            row = self._to_row(room_id, action)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise self._duplicate_error(action) from exc
            return self._to_action(row)

    def replace_vote(self, room_id: str, action: Action) -> Action:
        with self.session_factory() as session:
            session.execute(
                delete(ActionRow).where(
                    ActionRow.room_id == room_id,
                    ActionRow.player_id == action.player_id,
                    ActionRow.action_type == ActionType.VOTE.value,
                    ActionRow.round_number == action.round_number,
                )
            )
            row = self._to_row(room_id, action)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise self._duplicate_error(action) from exc
            return self._to_action(row)

    def confirm_action(self, room_id: str, action_id: int) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(ActionRow)
                .where(ActionRow.room_id == room_id, ActionRow.id == action_id)
                .values(confirmed=True)
            )
            session.commit()
            return result.rowcount > 0

    def confirm_pending(self, room_id: str, phase: Phase, round_number: int) -> int:
        with self.session_factory() as session:
            result = session.execute(
                update(ActionRow)
                .where(
                    ActionRow.room_id == room_id,
                    ActionRow.phase == phase.value,
                    ActionRow.round_number == round_number,
                    ActionRow.confirmed == False,  # noqa: E712
                )
                .values(confirmed=True)
            )
            session.commit()
            return result.rowcount

    def apply(
        self,
        room_id: str,
        write_set: WriteSet,
        expected_phase: Optional[Phase] = None,
        expected_round: Optional[int] = None,
    ) -> None:
        """Apply ``write_set`` atomically.

        With ``expected_phase``/``expected_round`` the game row is updated
        only if it still holds those values; otherwise nothing is written and
        StalePhase is raised.
        """
        with self.session_factory() as session:
            stmt = update(GameRow).where(GameRow.id == room_id)
            if expected_phase is not None:
                stmt = stmt.where(GameRow.phase == expected_phase.value)
            if expected_round is not None:
                stmt = stmt.where(GameRow.current_round == expected_round)
            values = {key: _db_value(value) for key, value in write_set.game_updates.items()}
            if values:
                result = session.execute(stmt.values(**values))
                if result.rowcount == 0:
                    session.rollback()
                    if session.get(GameRow, room_id) is None:
                        raise RoomNotFound(f"room {room_id} not found")
                    raise StalePhase()

            for player_id, updates in write_set.player_updates.items():
                result = session.execute(
                    update(PlayerRow)
                    .where(PlayerRow.room_id == room_id, PlayerRow.player_id == player_id)
                    .values(**{key: _db_value(value) for key, value in updates.items()})
                )
                if result.rowcount == 0:
                    session.rollback()
                    raise PlayerNotFound(f"player {player_id} not found")

            if write_set.clear_actions:
                session.execute(delete(ActionRow).where(ActionRow.room_id == room_id))
                session.execute(delete(ReportRow).where(ReportRow.room_id == room_id))

            for report in write_set.reports:
                session.add(
                    ReportRow(
                        room_id=room_id,
                        round_number=int(report["round_number"]),
                        phase=_db_value(report["phase"]),
                        payload_json=json.dumps(report["payload"], ensure_ascii=False),
                    )
                )
            session.commit()

    def list_reports(self, room_id: str) -> List[Dict[str, Any]]:
        with self.session_factory() as session:
            rows = session.scalars(
                select(ReportRow).where(ReportRow.room_id == room_id).order_by(ReportRow.id)
            ).all()
            return [
                {
                    "id": row.id,
                    "round_number": row.round_number,
                    "phase": row.phase,
                    "payload": json.loads(row.payload_json),
                    "created_at": row.created_at.isoformat(),
                }
                for row in rows
            ]

    @staticmethod
    def _duplicate_error(action: Action) -> Exception:
        if action.action_type == ActionType.VOTE:
            return AlreadyVoted()
        return AlreadyActed()

    @staticmethod
    def _to_row(room_id: str, action: Action) -> ActionRow:
        return ActionRow(
            room_id=room_id,
            player_id=action.player_id,
            action_type=action.action_type.value,
            target_player_id=action.target_player_id,
            phase=action.phase.value,
            round_number=action.round_number,
            confirmed=action.confirmed,
        )

    @staticmethod
    def _to_action(row: ActionRow) -> Action:
        return Action(
            action_id=row.id,
            player_id=row.player_id,
            action_type=ActionType(row.action_type),
            target_player_id=row.target_player_id,
            phase=Phase(row.phase),
            round_number=row.round_number,
            confirmed=row.confirmed,
        )
