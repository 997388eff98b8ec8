"""Domain errors raised by the Bingo engine, rooms and relay."""

from __future__ import annotations


class BingoError(ValueError):
    """Base class for rejected actions; ``code`` is stable on the wire."""

    code = "BingoError"
    default_message = "Action rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def reason(self) -> str:
        return str(self)


class RoomNotFound(BingoError):
    code = "RoomNotFound"
    default_message = "Room does not exist."

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room '{room_id}' does not exist.")


class RoomFull(BingoError):
    code = "RoomFull"
    default_message = "Room is full."

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room '{room_id}' is full.")


class RoomAllocationError(BingoError):
    code = "RoomAllocationError"
    default_message = "Unable to allocate room"


class RoomExpired(BingoError):
    code = "RoomExpired"
    default_message = "Room expired due to inactivity."


class AlreadyInRoom(BingoError):
    code = "AlreadyInRoom"
    default_message = "You are already seated in a room."


class NotInRoom(BingoError):
    code = "NotInRoom"
    default_message = "You are not seated in that room."


class NotYourTurn(BingoError):
    code = "NotYourTurn"
    default_message = "Not your turn."


class GameNotInProgress(BingoError):
    code = "GameNotInProgress"
    default_message = "Game is not in progress."


class GameNotEnded(BingoError):
    code = "GameNotEnded"
    default_message = "Game has not ended yet."


class AlreadyStruck(BingoError):
    code = "AlreadyStruck"
    default_message = "Number already struck."


class InvalidNumber(BingoError):
    code = "InvalidNumber"
    default_message = "Number is not on your board."


class InvalidTossChoice(BingoError):
    code = "InvalidTossChoice"
    default_message = "Toss choice must be 'head' or 'tails'."


class NotTossCaller(BingoError):
    code = "NotTossCaller"
    default_message = "The other player calls the toss."


class InvalidTransition(BingoError):
    code = "InvalidTransition"
    default_message = "Invalid turn transition"


class MalformedMessage(BingoError):
    code = "MalformedMessage"
    default_message = "Malformed message."
