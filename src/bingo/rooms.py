"""In-memory multiplayer rooms and the registry that owns them."""

from __future__ import annotations

import logging
import random
import string
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .errors import (
    AlreadyInRoom,
    GameNotEnded,
    GameNotInProgress,
    NotTossCaller,
    RoomAllocationError,
    RoomFull,
    RoomNotFound,
)
from .game import DEFAULT_MAX_NUMBER, BingoGame, Board, MoveResult, generate_board
from .toss import TossOutcome, TossResolver
from .turns import PLAYERS, PlayerIndex, TurnState, other_player

logger = logging.getLogger(__name__)

ROOM_CODE_LENGTH = 4
ROOM_CODE_ATTEMPTS = 32
ROOM_TTL_SECONDS = 60 * 30  # 30 minutes

ParticipantHandle = str


class RoomStatus(str, Enum):
    NOT_STARTED = "not-started"
    TOSS_PENDING = "toss-pending"
    IN_PROGRESS = "in-progress"
    ENDED = "ended"


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))


def normalize_room_code(room_id: str) -> str:
    return room_id.strip().upper()


@dataclass
class Participant:
    handle: ParticipantHandle
    name: str
    player_index: PlayerIndex


@dataclass
class Room:
    """One two-seat game session; mutate only while holding ``lock``."""

    room_id: str
    toss: TossResolver = field(default_factory=TossResolver, repr=False)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    max_number: int = DEFAULT_MAX_NUMBER
    participants: Dict[PlayerIndex, Participant] = field(default_factory=dict)
    # Boards dealt to seated players before the toss starts a game.
    boards: Dict[PlayerIndex, Board] = field(default_factory=dict, repr=False)
    game: Optional[BingoGame] = field(default=None, repr=False)
    toss_caller: Optional[PlayerIndex] = None
    restart_requests: Set[PlayerIndex] = field(default_factory=set)
    last_activity: float = field(default_factory=lambda: time.time())
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    # ---- seats ----

    @property
    def is_full(self) -> bool:
        return len(self.participants) == len(PLAYERS)

    @property
    def is_empty(self) -> bool:
        return not self.participants

    def free_slots(self) -> List[PlayerIndex]:
        return [p for p in PLAYERS if p not in self.participants]

    def participant(self, player: PlayerIndex) -> Participant:
        return self.participants[player]

    def player_of(self, handle: ParticipantHandle) -> Optional[PlayerIndex]:
        for index, participant in self.participants.items():
            if participant.handle == handle:
                return index
        return None

    def handles(self) -> Tuple[ParticipantHandle, ...]:
        return tuple(self.participants[p].handle for p in sorted(self.participants))

    def opponent_of(self, player: PlayerIndex) -> Optional[Participant]:
        return self.participants.get(other_player(player))

    def seat(self, handle: ParticipantHandle, name: str) -> Participant:
        free = self.free_slots()
        if not free:
            raise RoomFull(self.room_id)
        participant = Participant(handle=handle, name=name, player_index=free[0])
        self.participants[participant.player_index] = participant
        self.boards[participant.player_index] = self._deal()
        self.touch()
        return participant

    def unseat(self, handle: ParticipantHandle) -> Optional[Participant]:
        """Remove a participant and abandon any game in the room."""
        player = self.player_of(handle)
        if player is None:
            return None
        participant = self.participants.pop(player)
        self.boards.pop(player, None)
        # Whoever stays gets a clean board for the next opponent.
        for remaining in self.participants:
            self.boards[remaining] = self._deal()
        self.game = None
        self.toss_caller = None
        self.restart_requests.clear()
        self.touch()
        return participant

    # ---- lifecycle ----

    @property
    def status(self) -> RoomStatus:
        if not self.is_full or self.game is None:
            return RoomStatus.NOT_STARTED
        state = self.game.turns.state
        if state is TurnState.AWAITING_TOSS:
            return RoomStatus.TOSS_PENDING
        if state is TurnState.ENDED:
            return RoomStatus.ENDED
        return RoomStatus.IN_PROGRESS

    def touch(self) -> None:
        self.last_activity = time.time()

    def _deal(self) -> Board:
        return generate_board(self.rng, self.max_number)

    def begin_toss(self) -> PlayerIndex:
        """Put both seated boards into a new game and designate the toss caller."""
        if not self.is_full:
            raise GameNotInProgress("Waiting for a second player.")
        self.game = BingoGame(boards={p: self.boards[p] for p in PLAYERS})
        self.restart_requests.clear()
        self.toss_caller = self.toss.choose_caller()
        self.touch()
        return self.toss_caller

    def resolve_toss(self, player: PlayerIndex, call: str) -> TossOutcome:
        if self.status is not RoomStatus.TOSS_PENDING or self.game is None:
            raise GameNotInProgress("No toss is pending.")
        if player != self.toss_caller:
            raise NotTossCaller()
        outcome = self.toss.resolve(player, call)
        self.game.start(outcome.starting_player)
        self.toss_caller = None
        self.touch()
        return outcome

    def choose_number(self, player: PlayerIndex, number: int) -> MoveResult:
        if self.game is None or self.status is not RoomStatus.IN_PROGRESS:
            raise GameNotInProgress(
                "Game has ended." if self.status is RoomStatus.ENDED
                else "Game is not in progress."
            )
        result = self.game.play_number(player, number)
        self.touch()
        return result

    def request_restart(self, player: PlayerIndex) -> bool:
        """Record consent; True once both players agreed and a new game began."""
        if self.game is None or self.status is not RoomStatus.ENDED:
            raise GameNotEnded()
        self.restart_requests.add(player)
        self.touch()
        if len(self.restart_requests) < len(PLAYERS):
            return False
        self.restart_requests.clear()
        self.game.reset(self.rng, self.max_number)
        self.game.start(self.toss.random_starter())
        return True

    # ---- views ----

    def board_for(self, player: PlayerIndex) -> Optional[Board]:
        if self.game is not None:
            return self.game.board_for(player)
        return self.boards.get(player)

    def board_numbers(self, player: PlayerIndex) -> List[int]:
        board = self.board_for(player)
        return list(board.numbers) if board is not None else []


class RoomRegistry:
    """Process-wide table of live rooms guarded by a single mutex."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        code_generator: Optional[Callable[[], str]] = None,
        rng_factory: Optional[Callable[[], random.Random]] = None,
        ttl_seconds: float = ROOM_TTL_SECONDS,
        max_number: int = DEFAULT_MAX_NUMBER,
    ):
        self.rng = rng or random.Random()
        self.code_generator = code_generator or (lambda: generate_room_code(self.rng))
        # Each room draws boards and coin flips from its own stream.
        self.rng_factory = rng_factory or (lambda: random.Random(self.rng.getrandbits(64)))
        self.ttl_seconds = ttl_seconds
        self.max_number = max_number
        self._rooms: Dict[str, Room] = {}
        self._by_handle: Dict[ParticipantHandle, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        if not isinstance(room_id, str):
            return False
        with self._lock:
            return normalize_room_code(room_id) in self._rooms

    def get(self, room_id: str) -> Room:
        normalized = normalize_room_code(room_id)
        with self._lock:
            room = self._rooms.get(normalized)
        if room is None:
            raise RoomNotFound(normalized)
        return room

    def room_of(self, handle: ParticipantHandle) -> Optional[Room]:
        with self._lock:
            room_id = self._by_handle.get(handle)
            return self._rooms.get(room_id) if room_id else None

    def create_room(self, handle: ParticipantHandle, name: str) -> Room:
        with self._lock:
            if handle in self._by_handle:
                raise AlreadyInRoom()
            for _ in range(ROOM_CODE_ATTEMPTS):
                room_id = self.code_generator()
                if room_id not in self._rooms:
                    break
            else:
                raise RoomAllocationError()
            room_rng = self.rng_factory()
            room = Room(
                room_id=room_id,
                toss=TossResolver(room_rng),
                rng=room_rng,
                max_number=self.max_number,
            )
            room.seat(handle, name)
            self._rooms[room_id] = room
            self._by_handle[handle] = room_id
        logger.info("Room %s created by %s", room_id, name)
        return room

    def join_room(
        self, handle: ParticipantHandle, name: str, room_id: str
    ) -> Tuple[Room, Participant]:
        normalized = normalize_room_code(room_id)
        with self._lock:
            if handle in self._by_handle:
                raise AlreadyInRoom()
            room = self._rooms.get(normalized)
            if room is None:
                raise RoomNotFound(normalized)
            with room.lock:
                participant = room.seat(handle, name)
            self._by_handle[handle] = normalized
        logger.info(
            "%s joined room %s as Player %d", name, normalized, participant.player_index
        )
        return room, participant

    def leave(
        self, handle: ParticipantHandle
    ) -> Tuple[Optional[Room], Optional[Participant]]:
        """Unseat ``handle``; the room is dropped once nobody is left in it."""
        with self._lock:
            room_id = self._by_handle.pop(handle, None)
            room = self._rooms.get(room_id) if room_id else None
            if room is None:
                return None, None
            with room.lock:
                participant = room.unseat(handle)
                if room.is_empty:
                    self._rooms.pop(room.room_id, None)
        if participant is not None:
            logger.info("%s left room %s", participant.name, room.room_id)
        if room.is_empty:
            logger.info("Room %s deleted", room.room_id)
        return room, participant

    def expire_idle(self, now: Optional[float] = None) -> List[Room]:
        """Drop rooms idle for longer than the TTL and return them."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [
                room
                for room in self._rooms.values()
                if now - room.last_activity >= self.ttl_seconds
            ]
            for room in expired:
                self._rooms.pop(room.room_id, None)
                for h in room.handles():
                    self._by_handle.pop(h, None)
        for room in expired:
            logger.info("Room %s expired after inactivity", room.room_id)
        return expired
