"""Message contracts exchanged with multiplayer clients over the relay."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .errors import InvalidTossChoice, MalformedMessage

NAME_MAX_LENGTH = 32


class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _RoomScoped(InboundMessage):
    room_id: str = Field(alias="roomId", min_length=1, max_length=16)

    @field_validator("room_id")
    @classmethod
    def normalize_room_id(cls, value: str) -> str:
        return value.strip().upper()


class _Named(InboundMessage):
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank")
        return value


class CreateRoom(_Named):
    type: Literal["createRoom"]


class JoinRoom(_Named, _RoomScoped):
    type: Literal["joinRoom"]


class PlayerTossChoice(_RoomScoped):
    type: Literal["playerTossChoice"]
    player: Optional[int] = Field(default=None, ge=1, le=2)
    choice: Literal["head", "tails"]


class ChooseNumber(_RoomScoped):
    type: Literal["chooseNumber"]
    player: Optional[int] = Field(default=None, ge=1, le=2)
    number: int


class RequestRestart(_RoomScoped):
    type: Literal["requestRestart"]


class LeaveRoom(_RoomScoped):
    type: Literal["leaveRoom"]


Inbound = Annotated[
    Union[CreateRoom, JoinRoom, PlayerTossChoice, ChooseNumber, RequestRestart, LeaveRoom],
    Field(discriminator="type"),
]

_INBOUND = TypeAdapter(Inbound)


def parse_inbound(payload: Any) -> InboundMessage:
    """Validate a decoded JSON frame into one of the inbound message kinds."""
    try:
        return _INBOUND.validate_python(payload)
    except ValidationError as exc:
        for error in exc.errors():
            if error["loc"][-1:] == ("choice",) and error["loc"][:1] == ("playerTossChoice",):
                raise InvalidTossChoice() from exc
        raise MalformedMessage(_describe(exc)) from exc


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first["loc"]) or "message"
    return f"Malformed message: {where}: {first['msg']}"


def message(kind: str, **payload: Any) -> Dict[str, Any]:
    """Build an outbound frame; payload keys are already camelCase."""
    return {"type": kind, **payload}


def error_message(code: str, reason: str) -> Dict[str, Any]:
    return message("errorMessage", code=code, reason=reason)
