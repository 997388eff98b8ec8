"""Tests for the FastAPI Bingo interface."""

from __future__ import annotations

import asyncio
import time

from fastapi.testclient import TestClient

from bingo import ui
from bingo.ui import app

from helpers import make_hub


client = TestClient(app)
ui.AI_THINK_DELAY = (0.0, 0.0)


def test_create_game_and_first_move():
    response = client.post("/api/game", json={})
    assert response.status_code == 200
    payload = response.json()
    assert payload["opponent"] == "computer"
    assert payload["currentPlayer"] == 1
    assert payload["state"] == "player1_turn"
    assert payload["moveLog"] == []
    assert len(payload["boards"]) == 2

    game_id = payload["id"]
    number = payload["boards"][0]["numbers"][0]
    move_response = client.post(f"/api/game/{game_id}/move", json={"number": number})
    assert move_response.status_code == 200
    state = move_response.json()
    assert state["moveLog"][0] == {"player": 1, "number": number}
    assert state["boards"][0]["struck"][0] is True
    computer_board = state["boards"][1]
    assert computer_board["struck"][computer_board["numbers"].index(number)] is True
    assert state["currentPlayer"] == 2
    assert state["aiPending"] is True

    time.sleep(0.01)
    follow_up = client.get(f"/api/game/{game_id}")
    assert follow_up.status_code == 200
    final_state = follow_up.json()
    assert final_state["currentPlayer"] == 1
    assert final_state["moveLog"][-1]["player"] == 2
    assert final_state["aiPending"] is False


def test_struck_number_rejected():
    response = client.post("/api/game", json={"opponent": "computer"})
    game_id = response.json()["id"]
    number = response.json()["boards"][0]["numbers"][5]

    first_move = client.post(f"/api/game/{game_id}/move", json={"number": number})
    assert first_move.status_code == 200

    duplicate_move = client.post(f"/api/game/{game_id}/move", json={"number": number})
    assert duplicate_move.status_code == 400
    assert duplicate_move.json()["detail"]


def test_number_validation():
    game_id = client.post("/api/game", json={}).json()["id"]
    assert client.post(f"/api/game/{game_id}/move", json={"number": 0}).status_code == 422
    off_board = client.post(f"/api/game/{game_id}/move", json={"number": 99})
    assert off_board.status_code == 400


def test_local_game_opens_with_toss():
    response = client.post("/api/game", json={"opponent": "local", "call": "tails"})
    assert response.status_code == 200
    payload = response.json()
    toss = payload["toss"]
    assert toss["playerChoice"] == "tails"
    assert toss["serverChoice"] in ("head", "tails")
    expected = 1 if toss["serverChoice"] == "tails" else 2
    assert toss["startingPlayer"] == expected
    assert payload["currentPlayer"] == expected

    starter = payload["currentPlayer"]
    number = payload["boards"][starter - 1]["numbers"][0]
    moved = client.post(f"/api/game/{payload['id']}/move", json={"number": number})
    assert moved.status_code == 200
    assert moved.json()["currentPlayer"] == 3 - starter
    assert moved.json()["aiPending"] is False


def test_rejects_toss_call_against_computer():
    response = client.post("/api/game", json={"opponent": "computer", "call": "head"})
    assert response.status_code == 422


def test_missing_game_returns_404():
    assert client.get("/api/game/missing").status_code == 404


def test_idle_sessions_expire_when_a_new_game_starts():
    stale_id = client.post("/api/game", json={}).json()["id"]
    ui.SESSIONS[stale_id].last_activity -= ui.ROOM_IDLE_TTL + 1

    fresh_id = client.post("/api/game", json={}).json()["id"]
    assert client.get(f"/api/game/{stale_id}").status_code == 404
    assert client.get(f"/api/game/{fresh_id}").status_code == 200


def test_inspect_room(monkeypatch):
    hub = make_hub()
    monkeypatch.setattr(ui, "HUB", hub)
    hub.handle("a", {"type": "createRoom", "name": "Ann"})

    inspect = client.get("/api/room/wxyz")
    assert inspect.status_code == 200
    details = inspect.json()
    assert details["roomId"] == "WXYZ"
    assert details["status"] == "not-started"
    assert details["available"] is True
    assert details["availableSlots"] == [2]
    assert details["players"] == ["Ann"]


def test_inspect_missing_room_returns_404():
    missing = client.get("/api/room/INVALID")
    assert missing.status_code == 404


def test_websocket_relay_round_trip(monkeypatch):
    monkeypatch.setattr(ui, "HUB", make_hub(choices=[1, "tails"]))

    with TestClient(app) as ws_client:
        with ws_client.websocket_connect("/ws") as alice:
            alice.send_text("not json")
            assert alice.receive_json()["code"] == "MalformedMessage"
            alice.send_bytes(b"\x00\x01")
            assert alice.receive_json()["code"] == "MalformedMessage"

            alice.send_json({"type": "createRoom", "name": "Ann"})
            assert alice.receive_json() == {
                "type": "roomCreated",
                "roomId": "WXYZ",
                "playerIndex": 1,
            }

            with ws_client.websocket_connect("/ws") as bob:
                bob.send_json({"type": "joinRoom", "name": "Ben", "roomId": "wxyz"})
                assert bob.receive_json()["type"] == "roomJoined"
                assert alice.receive_json()["type"] == "playerJoined"
                assert alice.receive_json()["caller"] == 1
                assert bob.receive_json()["caller"] == 1

                alice.send_json(
                    {"type": "playerTossChoice", "roomId": "WXYZ", "choice": "head"}
                )
                for socket in (alice, bob):
                    result = socket.receive_json()
                    assert result["type"] == "tossResult"
                    assert result["startingPlayer"] == 2
                    ready = socket.receive_json()
                    assert ready["type"] == "bothPlayersReady"

                number = ready["player2Board"][0]
                bob.send_json({"type": "chooseNumber", "roomId": "WXYZ", "number": number})
                for socket in (alice, bob):
                    assert socket.receive_json()["type"] == "playerMove"
                    assert socket.receive_json() == {
                        "type": "turnChanged",
                        "currentPlayer": 1,
                        "currentPlayerName": "Ann",
                    }

                bob.send_json({"type": "chooseNumber", "roomId": "WXYZ", "number": number})
                rejected = bob.receive_json()
                assert rejected["type"] == "errorMessage"
                assert rejected["code"] == "NotYourTurn"

            assert alice.receive_json() == {"type": "playerLeft", "playerName": "Ben"}


def test_writer_stops_quietly_when_send_fails():
    class BrokenSocket:
        async def send_json(self, payload):
            raise OSError("connection reset")

    async def run():
        outbox: asyncio.Queue = asyncio.Queue()
        outbox.put_nowait({"type": "turnChanged"})
        await asyncio.wait_for(ui._pump(BrokenSocket(), outbox), timeout=1)

    asyncio.run(run())
