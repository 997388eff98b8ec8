"""FastAPI application serving single-player games and the multiplayer relay."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

import threading

from fastapi import (
    BackgroundTasks,
    FastAPI,
    HTTPException,
    WebSocket,
    WebSocketDisconnect,
)
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from .ai import HeuristicAI
from .errors import BingoError, MalformedMessage, RoomNotFound
from .game import BingoGame
from .protocol import error_message
from .relay import Delivery, RelayHub
from .rooms import ROOM_TTL_SECONDS, RoomRegistry
from .toss import TossOutcome, TossResolver

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    """Container for a single-process game and its optional computer opponent."""

    game: BingoGame
    ai: Optional[HeuristicAI]
    toss: Optional[TossOutcome] = None
    move_log: List[Dict[str, int]] = field(default_factory=list)
    ai_pending: bool = False
    last_activity: float = field(default_factory=time.time)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def opponent(self) -> str:
        return "computer" if self.ai else "local"


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="Bingo", description="Two-player number-elimination Bingo")


AI_THINK_DELAY: Tuple[float, float] = (0.5, 1.0)
ROOM_IDLE_TTL = float(os.environ.get("BINGO_ROOM_TTL_SECONDS", ROOM_TTL_SECONDS))

HUB = RelayHub(RoomRegistry(ttl_seconds=ROOM_IDLE_TTL))


class ConnectionManager:
    """Per-connection outboxes so each socket sees deliveries in dispatch order."""

    def __init__(self) -> None:
        self.outboxes: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = {}

    def connect(self, handle: str) -> asyncio.Queue:
        outbox: asyncio.Queue = asyncio.Queue()
        self.outboxes[handle] = (asyncio.get_running_loop(), outbox)
        return outbox

    def disconnect(self, handle: str) -> None:
        self.outboxes.pop(handle, None)

    def deliver(self, deliveries: List[Delivery]) -> None:
        for delivery in deliveries:
            for handle in delivery.recipients:
                entry = self.outboxes.get(handle)
                if entry is None:
                    continue
                # The recipient's socket may be served by another loop.
                loop, outbox = entry
                loop.call_soon_threadsafe(outbox.put_nowait, delivery.message)


CONNECTIONS = ConnectionManager()


class NewGameRequest(BaseModel):
    """Request payload for starting a single-process game."""

    opponent: Literal["computer", "local"] = Field(
        default="computer",
        description="Play against the computer or pass-and-play on one screen",
    )
    call: Optional[Literal["head", "tails"]] = Field(
        default=None,
        description="Player 1's call for the opening toss (local games only)",
    )

    @field_validator("call")
    @classmethod
    def ensure_local_toss(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is not None and info.data.get("opponent") != "local":
            raise ValueError("Only local games open with a coin toss")
        return value


class MoveRequest(BaseModel):
    """Request payload for striking a number on an existing game."""

    number: int = Field(ge=1)


def _create_session(opponent: str, call: Optional[str]) -> Tuple[str, GameSession]:
    """Create a new game session and register it for later access."""

    _expire_sessions()
    game = BingoGame.new()
    ai = HeuristicAI(player=2) if opponent == "computer" else None
    toss: Optional[TossOutcome] = None
    if call is not None:
        toss = TossResolver().resolve(1, call)
        game.start(toss.starting_player)
    else:
        game.start(1)
    session = GameSession(game=game, ai=ai, toss=toss)
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    logger.info("Started %s game %s", opponent, session_id)
    return session_id, session


def _expire_sessions(now: Optional[float] = None) -> None:
    """Drop single-player sessions idle for longer than the room TTL."""
    now = time.time() if now is None else now
    stale = [
        game_id
        for game_id, session in list(SESSIONS.items())
        if now - session.last_activity >= ROOM_IDLE_TTL
    ]
    for game_id in stale:
        SESSIONS.pop(game_id, None)
        logger.info("Game %s expired after inactivity", game_id)


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _run_ai_turn(game_id: str) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with session.lock:
        try:
            if not session.ai:
                return
            game = session.game
            if game.winner is not None:
                return
            if game.current_player != session.ai.player:
                return
            number = session.ai.choose(game)
            game.play_number(session.ai.player, number)
            session.move_log.append({"player": session.ai.player, "number": number})
            session.last_activity = time.time()
        finally:
            session.ai_pending = False


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        game = session.game
        boards: List[Dict[str, object]] = []
        for player, board in sorted(game.boards.items()):
            boards.append(
                {
                    "player": player,
                    "numbers": list(board.numbers),
                    "struck": list(board.struck),
                    "lines": sorted(game.struck_lines[player]),
                }
            )

        state: Dict[str, object] = {
            "id": game_id,
            "opponent": session.opponent,
            "currentPlayer": game.current_player,
            "state": game.turns.state.value,
            "winner": game.winner,
            "boards": boards,
            "moveLog": list(session.move_log),
            "aiPending": session.ai_pending,
            "toss": None,
        }
        if session.toss is not None:
            state["toss"] = {
                "playerChoice": session.toss.player_choice,
                "serverChoice": session.toss.server_choice,
                "startingPlayer": session.toss.starting_player,
            }
        if session.move_log:
            state["lastMove"] = session.move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    session: GameSession,
    number: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    should_schedule_ai = False
    with session.lock:
        game = session.game
        if game.winner is not None:
            raise HTTPException(status_code=400, detail="Game already finished")

        if session.ai_pending or (
            session.ai and game.current_player == session.ai.player
        ):
            raise HTTPException(status_code=400, detail="Computer is completing its move")

        player = game.current_player
        try:
            game.play_number(player, number)
        except BingoError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        session.move_log.append({"player": player, "number": number})
        session.last_activity = time.time()

        should_schedule_ai = (
            session.ai
            and game.winner is None
            and game.current_player == session.ai.player
        )
        if should_schedule_ai:
            session.ai_pending = True

    if should_schedule_ai and background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id)


@app.post("/api/game")
def create_game(request: NewGameRequest) -> Dict[str, object]:
    game_id, session = _create_session(request.opponent, request.call)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    _apply_player_move(game_id, session, request.number, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/room/{room_id}")
def inspect_room(room_id: str) -> Dict[str, object]:
    try:
        room = HUB.registry.get(room_id)
    except RoomNotFound as exc:
        raise HTTPException(status_code=404, detail="Room not found") from exc
    with room.lock:
        available_slots = room.free_slots()
        return {
            "roomId": room.room_id,
            "status": room.status.value,
            "available": bool(available_slots),
            "availableSlots": available_slots,
            "players": [p.name for _, p in sorted(room.participants.items())],
        }


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        payload = await outbox.get()
        try:
            await websocket.send_json(payload)
        except Exception as exc:
            # The peer is gone; the reader loop performs the cleanup.
            logger.debug("Dropping outbox after send failure: %r", exc)
            return


@app.websocket("/ws")
async def relay_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    handle = uuid.uuid4().hex
    outbox = CONNECTIONS.connect(handle)
    writer = asyncio.create_task(_pump(websocket, outbox))
    logger.info("Socket connected: %s", handle)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            text = frame.get("text")
            try:
                if text is None:
                    raise ValueError("binary frame")
                payload = json.loads(text)
            except ValueError:
                exc = MalformedMessage("Message is not valid JSON text.")
                CONNECTIONS.deliver(
                    [Delivery((handle,), error_message(exc.code, exc.reason))]
                )
                continue
            CONNECTIONS.deliver(HUB.handle(handle, payload))
    except WebSocketDisconnect:
        pass
    finally:
        CONNECTIONS.deliver(HUB.disconnect(handle))
        CONNECTIONS.disconnect(handle)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
        logger.info("Socket disconnected: %s", handle)
