"""Tests for the FastAPI StarXO interface."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from starxo import ui
from starxo.config import Settings
from starxo.ui import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(
        ui,
        "SETTINGS",
        Settings(match_delay=0.05, reveal_delay=0.05, avatar_interval=0.02),
    )
    # One portal for the whole test so timers share the event loop.
    with TestClient(app) as test_client:
        yield test_client
        for client_id in list(ui.CLIENTS):
            ui._close_client(client_id)


def _open(client: TestClient) -> str:
    response = client.post("/api/session")
    assert response.status_code == 200
    return response.json()["id"]


def _wait_for_phase(client: TestClient, session_id: str, phase: str) -> dict:
    deadline = time.monotonic() + 2.0
    while time.monotonic() < deadline:
        state = client.get(f"/api/session/{session_id}").json()
        if state["phase"] == phase:
            return state
        time.sleep(0.02)
    raise AssertionError(f"session never reached {phase}")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_index_serves_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "StarXO" in response.text
    assert "starfield" in response.text


def test_new_session_snapshot(client):
    response = client.post("/api/session")
    assert response.status_code == 200
    payload = response.json()
    assert payload["phase"] == "initial"
    assert payload["board"] == [""] * 9
    assert payload["currentPlayer"] == "X"
    assert payload["gameId"] == ""
    assert payload["players"] == []
    assert payload["stats"] == {"totalMatches": 0, "wins": 0, "losses": 0, "draws": 0}
    assert payload["countdown"] == 6
    assert len(payload["searchingAvatars"]) == 4
    assert payload["matchFound"] is False
    assert payload["showRestartConfirmation"] is False


def test_create_game_and_win(client):
    session_id = _open(client)
    created = client.post(f"/api/session/{session_id}/create").json()
    assert created["phase"] == "mode_selection"
    assert len(created["gameId"]) == 4

    friends = client.post(f"/api/session/{session_id}/mode", json={"mode": "friends"})
    assert friends.json()["phase"] == "enter_friend_id"

    joined = client.post(f"/api/session/{session_id}/join", json={"gameId": "4321"}).json()
    assert joined["phase"] == "playing"
    assert joined["gameId"] == "4321"
    assert [p["symbol"] for p in joined["players"]] == ["X", "O"]

    for index in (0, 4, 1, 7):
        state = client.post(f"/api/session/{session_id}/cell", json={"index": index}).json()
    assert state["currentPlayer"] == "X"

    final = client.post(f"/api/session/{session_id}/cell", json={"index": 2}).json()
    assert final["phase"] == "ended"
    assert final["result"] == "win"
    assert final["winner"] == "X"
    assert final["stats"]["wins"] == 1
    assert final["stats"]["totalMatches"] == 1


def test_short_join_id_is_ignored(client):
    session_id = _open(client)
    response = client.post(f"/api/session/{session_id}/join", json={"gameId": "42"})
    assert response.status_code == 200
    assert response.json()["phase"] == "initial"


def test_occupied_cell_is_ignored(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/join", json={"gameId": "1234"})
    client.post(f"/api/session/{session_id}/cell", json={"index": 4})
    state = client.post(f"/api/session/{session_id}/cell", json={"index": 4}).json()
    assert state["board"][4] == "X"
    assert state["currentPlayer"] == "O"


def test_unknown_mode_rejected(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/create")
    response = client.post(f"/api/session/{session_id}/mode", json={"mode": "solo"})
    assert response.status_code == 422


def test_restart_confirmation_flow(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/join", json={"gameId": "1234"})
    prompted = client.post(f"/api/session/{session_id}/back").json()
    assert prompted["phase"] == "playing"
    assert prompted["showRestartConfirmation"] is True

    cancelled = client.post(f"/api/session/{session_id}/cancel-restart").json()
    assert cancelled["showRestartConfirmation"] is False

    client.post(f"/api/session/{session_id}/back")
    reset = client.post(f"/api/session/{session_id}/confirm-restart").json()
    assert reset["phase"] == "initial"
    assert reset["gameId"] == ""
    assert reset["players"] == []


def test_play_again_after_draw(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/join", json={"gameId": "2468"})
    for index in (0, 1, 2, 4, 3, 5, 7, 6, 8):
        state = client.post(f"/api/session/{session_id}/cell", json={"index": index}).json()
    assert state["phase"] == "ended"
    assert state["result"] == "draw"
    assert state["stats"]["draws"] == 1

    again = client.post(f"/api/session/{session_id}/play-again").json()
    assert again["phase"] == "playing"
    assert again["gameId"] == "2468"
    assert again["board"] == [""] * 9
    assert again["stats"]["draws"] == 1

    # Restart is only offered on the game-over screen.
    still = client.post(f"/api/session/{session_id}/restart").json()
    assert still["phase"] == "playing"


def test_online_matchmaking_completes(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/create")
    searching = client.post(f"/api/session/{session_id}/mode", json={"mode": "online"}).json()
    assert searching["phase"] == "searching"

    state = _wait_for_phase(client, session_id, "playing")
    assert len(state["players"]) == 2
    assert state["players"][0]["avatar"] in state["searchingAvatars"]


def test_stop_matching_returns_to_mode_selection(client):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/create")
    client.post(f"/api/session/{session_id}/mode", json={"mode": "online"})
    stopped = client.post(f"/api/session/{session_id}/stop-matching").json()
    assert stopped["phase"] == "mode_selection"

    time.sleep(0.3)
    state = client.get(f"/api/session/{session_id}").json()
    assert state["phase"] == "mode_selection"
    assert state["players"] == []


def test_websocket_pushes_updates(client):
    session_id = _open(client)
    with client.websocket_connect(f"/ws/session/{session_id}") as websocket:
        initial = websocket.receive_json()
        assert initial["id"] == session_id
        assert initial["phase"] == "initial"

        client.post(f"/api/session/{session_id}/create")
        update = websocket.receive_json()
        assert update["phase"] == "mode_selection"
        assert len(update["gameId"]) == 4


def test_websocket_unknown_session(client):
    with client.websocket_connect("/ws/session/missing") as websocket:
        message = websocket.receive_json()
        assert message["type"] == "error"


def test_close_session(client):
    session_id = _open(client)
    closed = client.post(f"/api/session/{session_id}/close")
    assert closed.json() == {"closed": True}
    assert client.get(f"/api/session/{session_id}").status_code == 404


def test_missing_session_returns_404(client):
    missing = client.post("/api/session/INVALID/create")
    assert missing.status_code == 404
    assert missing.json()["detail"]


def test_idle_sessions_expire(client, monkeypatch):
    stale_id = _open(client)
    client.post(f"/api/session/{stale_id}/create")
    client.post(f"/api/session/{stale_id}/mode", json={"mode": "online"})
    machine = ui.CLIENTS[stale_id].machine

    monkeypatch.setattr(ui, "SETTINGS", Settings(session_ttl=0.0))
    _open(client)
    assert stale_id not in ui.CLIENTS
    # Tearing the session down stops its matchmaking timers.
    assert not machine.matchmaking.searching


@pytest.mark.parametrize("index", ["3", 2.5, None, [3], True])
def test_non_integer_cell_is_ignored(client, index):
    session_id = _open(client)
    client.post(f"/api/session/{session_id}/join", json={"gameId": "1234"})
    response = client.post(f"/api/session/{session_id}/cell", json={"index": index})
    assert response.status_code == 200
    state = response.json()
    assert state["board"] == [""] * 9
    assert state["currentPlayer"] == "X"
    assert state["phase"] == "playing"


@pytest.mark.parametrize("game_id", [1234, None, ["1234"]])
def test_non_string_join_id_is_ignored(client, game_id):
    session_id = _open(client)
    response = client.post(f"/api/session/{session_id}/join", json={"gameId": game_id})
    assert response.status_code == 200
    state = response.json()
    assert state["phase"] == "initial"
    assert state["gameId"] == ""


def test_websocket_accepts_binary_keepalives(client):
    session_id = _open(client)
    with client.websocket_connect(f"/ws/session/{session_id}") as websocket:
        assert websocket.receive_json()["phase"] == "initial"
        websocket.send_bytes(b"ping")
        websocket.send_text("ping")

        client.post(f"/api/session/{session_id}/create")
        assert websocket.receive_json()["phase"] == "mode_selection"
    assert ui.CLIENTS[session_id].subscribers == set()
