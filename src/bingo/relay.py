"""Authoritative relay that turns participant messages into room updates.

The hub never touches a transport. Callers pass an opaque participant handle
plus the decoded JSON frame, and get back an ordered list of deliveries to
forward. One message is handled to completion (validate, mutate, build the
broadcast) before the next one for the same room.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .errors import AlreadyStruck, BingoError, NotInRoom, RoomExpired
from .game import MoveResult
from .protocol import (
    ChooseNumber,
    CreateRoom,
    InboundMessage,
    JoinRoom,
    LeaveRoom,
    PlayerTossChoice,
    RequestRestart,
    error_message,
    message,
    parse_inbound,
)
from .rooms import ParticipantHandle, Room, RoomRegistry
from .turns import PlayerIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delivery:
    recipients: Tuple[ParticipantHandle, ...]
    message: Dict[str, Any]


def _to(handle: ParticipantHandle, payload: Dict[str, Any]) -> Delivery:
    return Delivery(recipients=(handle,), message=payload)


def _everyone(room: Room, payload: Dict[str, Any]) -> Delivery:
    return Delivery(recipients=room.handles(), message=payload)


class RelayHub:
    def __init__(self, registry: Optional[RoomRegistry] = None):
        self.registry = registry if registry is not None else RoomRegistry()
        self._handlers: Dict[
            Type[InboundMessage],
            Callable[[ParticipantHandle, Any], List[Delivery]],
        ] = {
            CreateRoom: self._create_room,
            JoinRoom: self._join_room,
            PlayerTossChoice: self._toss_choice,
            ChooseNumber: self._choose_number,
            RequestRestart: self._request_restart,
            LeaveRoom: self._leave_room,
        }

    # ---- entry points ----

    def handle(self, handle: ParticipantHandle, payload: Any) -> List[Delivery]:
        try:
            msg = parse_inbound(payload)
            return self._handlers[type(msg)](handle, msg)
        except AlreadyStruck:
            return []
        except BingoError as exc:
            logger.debug("Rejected message from %s: %s", handle, exc)
            return [_to(handle, error_message(exc.code, exc.reason))]

    def disconnect(self, handle: ParticipantHandle) -> List[Delivery]:
        return self._depart(handle)

    # ---- helpers ----

    def _seat(self, handle: ParticipantHandle, room_id: str) -> Tuple[Room, PlayerIndex]:
        room = self.registry.room_of(handle)
        if room is None or room.room_id != room_id:
            raise NotInRoom()
        player = room.player_of(handle)
        if player is None:
            raise NotInRoom()
        return room, player

    @staticmethod
    def _check_claimed(claimed: Optional[int], player: PlayerIndex) -> None:
        if claimed is not None and claimed != player:
            raise NotInRoom(f"You are Player {player}, not Player {claimed}.")

    @staticmethod
    def _boards_payload(room: Room) -> Dict[str, Any]:
        return {
            "player1Board": room.board_numbers(1),
            "player2Board": room.board_numbers(2),
            "player1Name": room.participant(1).name,
            "player2Name": room.participant(2).name,
        }

    @staticmethod
    def _line_counts(room: Room) -> Dict[str, int]:
        game = room.game
        return {str(p): game.line_count(p) for p in (1, 2)} if game else {}

    def _depart(self, handle: ParticipantHandle) -> List[Delivery]:
        room, participant = self.registry.leave(handle)
        if room is None or participant is None or room.is_empty:
            return []
        return [_everyone(room, message("playerLeft", playerName=participant.name))]

    def _expire_idle_rooms(self) -> List[Delivery]:
        deliveries: List[Delivery] = []
        for room in self.registry.expire_idle():
            exc = RoomExpired()
            deliveries.append(_everyone(room, error_message(exc.code, exc.reason)))
        return deliveries

    # ---- handlers ----

    def _create_room(self, handle: ParticipantHandle, msg: CreateRoom) -> List[Delivery]:
        deliveries = self._expire_idle_rooms()
        room = self.registry.create_room(handle, msg.name)
        deliveries.append(
            _to(handle, message("roomCreated", roomId=room.room_id, playerIndex=1))
        )
        return deliveries

    def _join_room(self, handle: ParticipantHandle, msg: JoinRoom) -> List[Delivery]:
        room, joiner = self.registry.join_room(handle, msg.name, msg.room_id)
        with room.lock:
            opponent = room.opponent_of(joiner.player_index)
            deliveries = [
                _to(
                    handle,
                    message(
                        "roomJoined",
                        roomId=room.room_id,
                        playerIndex=joiner.player_index,
                        opponentName=opponent.name if opponent else None,
                    ),
                )
            ]
            if opponent is not None:
                deliveries.append(
                    _to(
                        opponent.handle,
                        message("playerJoined", name=joiner.name, roomId=room.room_id),
                    )
                )
            if room.is_full:
                caller = room.begin_toss()
                caller_name = room.participant(caller).name
                logger.info(
                    "%s (Player %d) chosen to call toss in room %s",
                    caller_name, caller, room.room_id,
                )
                deliveries.append(
                    _everyone(
                        room,
                        message("chooseTossCaller", caller=caller, callerName=caller_name),
                    )
                )
        return deliveries

    def _toss_choice(
        self, handle: ParticipantHandle, msg: PlayerTossChoice
    ) -> List[Delivery]:
        room, player = self._seat(handle, msg.room_id)
        self._check_claimed(msg.player, player)
        with room.lock:
            outcome = room.resolve_toss(player, msg.choice)
            winner_name = room.participant(outcome.toss_winner).name
            caller_name = room.participant(outcome.caller).name
            logger.info(
                "Coin toss in room %s: server chose %s, %s chose %s. %s starts.",
                room.room_id, outcome.server_choice, caller_name,
                outcome.player_choice, winner_name,
            )
            return [
                _everyone(
                    room,
                    message(
                        "tossResult",
                        serverChoice=outcome.server_choice,
                        playerChoice=outcome.player_choice,
                        startingPlayer=outcome.starting_player,
                        tossWinner=outcome.toss_winner,
                        tossWinnerName=winner_name,
                        callingPlayerName=caller_name,
                    ),
                ),
                _everyone(
                    room,
                    message(
                        "bothPlayersReady",
                        startingPlayer=outcome.starting_player,
                        **self._boards_payload(room),
                    ),
                ),
            ]

    def _choose_number(
        self, handle: ParticipantHandle, msg: ChooseNumber
    ) -> List[Delivery]:
        room, player = self._seat(handle, msg.room_id)
        self._check_claimed(msg.player, player)
        with room.lock:
            result = room.choose_number(player, msg.number)
            return self._move_deliveries(room, result)

    def _move_deliveries(self, room: Room, result: MoveResult) -> List[Delivery]:
        mover = room.participant(result.player)
        counts = self._line_counts(room)
        deliveries = [
            _everyone(
                room,
                message(
                    "playerMove",
                    player=result.player,
                    number=result.number,
                    playerName=mover.name,
                    newLines={str(p): sorted(lines) for p, lines in result.new_lines.items()},
                    lineCounts=counts,
                ),
            )
        ]
        if result.winner is not None:
            winner_name = room.participant(result.winner).name
            logger.info(
                "Game in room %s ended. %s (Player %d) won!",
                room.room_id, winner_name, result.winner,
            )
            deliveries.append(
                _everyone(
                    room,
                    message(
                        "gameWinner",
                        winner=result.winner,
                        winnerName=winner_name,
                        lineCounts=counts,
                    ),
                )
            )
        else:
            current = room.game.current_player
            deliveries.append(
                _everyone(
                    room,
                    message(
                        "turnChanged",
                        currentPlayer=current,
                        currentPlayerName=room.participant(current).name,
                    ),
                )
            )
        return deliveries

    def _request_restart(
        self, handle: ParticipantHandle, msg: RequestRestart
    ) -> List[Delivery]:
        room, player = self._seat(handle, msg.room_id)
        with room.lock:
            if not room.request_restart(player):
                partner = room.opponent_of(player)
                return [
                    _to(
                        handle,
                        message(
                            "waitingForRestart",
                            waitingFor=partner.name if partner else "other player",
                        ),
                    )
                ]
            starter = room.game.current_player
            starter_name = room.participant(starter).name
            logger.info(
                "Game restarted in room %s, %s (Player %d) starts",
                room.room_id, starter_name, starter,
            )
            return [
                _everyone(
                    room,
                    message(
                        "gameRestarted",
                        startingPlayer=starter,
                        startingPlayerName=starter_name,
                        **self._boards_payload(room),
                    ),
                )
            ]

    def _leave_room(self, handle: ParticipantHandle, msg: LeaveRoom) -> List[Delivery]:
        self._seat(handle, msg.room_id)
        return self._depart(handle)
