"""FastAPI-powered web UI for playing StarXO in the browser."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings, get_settings
from .machine import GameMachine
from .timers import LoopScheduler

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    """State machine for one page load plus the sockets watching it."""

    machine: GameMachine
    last_seen: float = field(default_factory=time.monotonic)
    subscribers: Set["asyncio.Queue[Dict[str, object]]"] = field(
        default_factory=set, repr=False
    )

    def touch(self) -> None:
        self.last_seen = time.monotonic()


CLIENTS: Dict[str, ClientSession] = {}
SETTINGS: Settings = get_settings()
app = FastAPI(title="StarXO", description="Tic-tac-toe under the stars")


class JoinRequest(BaseModel):
    """Request payload for joining a game by its 4-digit id."""

    model_config = ConfigDict(populate_by_name=True)

    # Malformed ids are a no-op in the game flow, not a validation error,
    # so the raw JSON value reaches the machine unconverted.
    game_id: Any = Field(alias="gameId")


class ModeRequest(BaseModel):
    mode: Literal["online", "friends"]


class CellRequest(BaseModel):
    """Cell index as sent; the machine ignores anything but an int in 0..8."""

    index: Any


def _cleanup_clients() -> None:
    """Drop client sessions nobody has touched within the TTL."""

    now = time.monotonic()
    expired = [
        client_id
        for client_id, client in list(CLIENTS.items())
        if not client.subscribers and now - client.last_seen >= SETTINGS.session_ttl
    ]
    for client_id in expired:
        _close_client(client_id)


def _close_client(client_id: str) -> None:
    client = CLIENTS.pop(client_id, None)
    if client is None:
        return
    client.machine.shutdown()
    logger.info("Closed client session %s", client_id)


def _create_client() -> Tuple[str, ClientSession]:
    """Create a new client session and register it for later access."""

    _cleanup_clients()
    machine = GameMachine(LoopScheduler(), settings=SETTINGS)
    client = ClientSession(machine=machine)
    client_id = uuid.uuid4().hex
    CLIENTS[client_id] = client

    def publish(_machine: GameMachine) -> None:
        if not client.subscribers:
            return
        state = _serialize_client(client_id, client)
        for queue in list(client.subscribers):
            queue.put_nowait(state)

    machine.subscribe(publish)
    logger.info("Opened client session %s", client_id)
    return client_id, client


def _get_client(client_id: str) -> ClientSession:
    _cleanup_clients()
    try:
        client = CLIENTS[client_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    client.touch()
    return client


def _serialize_client(client_id: str, client: ClientSession) -> Dict[str, object]:
    machine = client.machine
    stats = machine.stats
    return {
        "id": client_id,
        "phase": machine.phase.value,
        "board": list(machine.board),
        "currentPlayer": machine.current_player,
        "gameId": machine.game_id,
        "players": [
            {"id": p.id, "symbol": p.symbol, "avatar": p.avatar}
            for p in machine.players
        ],
        "result": machine.result.value if machine.result else None,
        "winner": machine.winner,
        "stats": {
            "totalMatches": stats.total_matches,
            "wins": stats.wins,
            "losses": stats.losses,
            "draws": stats.draws,
        },
        "countdown": machine.countdown.remaining,
        "searchingAvatars": list(machine.matchmaking.avatars),
        "matchFound": machine.matchmaking.match_found,
        "showRestartConfirmation": machine.show_restart_confirmation,
    }


def _state(client_id: str) -> Dict[str, object]:
    return _serialize_client(client_id, _get_client(client_id))


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/session")
async def open_session() -> Dict[str, object]:
    client_id, client = _create_client()
    return _serialize_client(client_id, client)


@app.get("/api/session/{client_id}")
async def get_session(client_id: str) -> Dict[str, object]:
    return _state(client_id)


@app.post("/api/session/{client_id}/close")
async def close_session(client_id: str) -> Dict[str, bool]:
    _get_client(client_id)
    _close_client(client_id)
    return {"closed": True}


@app.post("/api/session/{client_id}/create")
async def create_game(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.create_game()
    return _state(client_id)


@app.post("/api/session/{client_id}/join")
async def join_game(client_id: str, request: JoinRequest) -> Dict[str, object]:
    _get_client(client_id).machine.join_game(request.game_id)
    return _state(client_id)


@app.post("/api/session/{client_id}/mode")
async def select_mode(client_id: str, request: ModeRequest) -> Dict[str, object]:
    _get_client(client_id).machine.select_mode(request.mode)
    return _state(client_id)


@app.post("/api/session/{client_id}/cell")
async def cell_click(client_id: str, request: CellRequest) -> Dict[str, object]:
    _get_client(client_id).machine.cell_click(request.index)
    return _state(client_id)


@app.post("/api/session/{client_id}/stop-matching")
async def stop_matching(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.stop_matching()
    return _state(client_id)


@app.post("/api/session/{client_id}/play-again")
async def play_again(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.play_again()
    return _state(client_id)


@app.post("/api/session/{client_id}/restart")
async def restart_game(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.restart_game()
    return _state(client_id)


@app.post("/api/session/{client_id}/confirm-restart")
async def confirm_restart(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.confirm_restart()
    return _state(client_id)


@app.post("/api/session/{client_id}/cancel-restart")
async def cancel_restart(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.cancel_restart()
    return _state(client_id)


@app.post("/api/session/{client_id}/back")
async def go_back(client_id: str) -> Dict[str, object]:
    _get_client(client_id).machine.go_back()
    return _state(client_id)


async def _pump(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, object]]") -> None:
    while True:
        state = await queue.get()
        await websocket.send_json(state)


@app.websocket("/ws/session/{client_id}")
async def session_updates(websocket: WebSocket, client_id: str) -> None:
    await websocket.accept()
    client: Optional[ClientSession] = CLIENTS.get(client_id)
    if client is None:
        await websocket.send_json({"type": "error", "message": "Session not found"})
        await websocket.close()
        return

    client.touch()
    queue: "asyncio.Queue[Dict[str, object]]" = asyncio.Queue()
    client.subscribers.add(queue)
    await websocket.send_json(_serialize_client(client_id, client))
    sender = asyncio.create_task(_pump(websocket, queue))
    try:
        while True:
            # Inbound frames (text or binary) are keepalives only; intents
            # travel over HTTP.
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            client.touch()
    finally:
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect):
            pass
        except RuntimeError as exc:
            logger.warning("Session %s: update socket failed: %s", client_id, exc)
        client.subscribers.discard(queue)
        client.touch()


@app.get("/", response_class=HTMLResponse)
async def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>StarXO</title>
    <style>
      :root {
        color-scheme: dark;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        min-height: 100vh;
        background: #000;
        color: #fff;
        display: flex;
        align-items: center;
        justify-content: center;
        padding: 1rem;
      }
      #starfield {
        position: fixed;
        inset: 0;
        width: 100%;
        height: 100%;
        z-index: 0;
      }
      main {
        position: relative;
        z-index: 1;
        width: min(28rem, 100%);
        padding: 1.5rem;
        border-radius: 32px;
        background: rgba(0, 0, 0, 0.9);
        border: 1px solid rgba(255, 255, 255, 0.1);
        backdrop-filter: blur(12px);
      }
      button,
      input[type='text'] {
        font-size: 1rem;
        padding: 0.55rem 0.95rem;
        border-radius: 10px;
        border: none;
        color: #fff;
        font-family: inherit;
        cursor: pointer;
      }
      button:disabled {
        cursor: default;
        opacity: 0.5;
      }
      input[type='text'] {
        background: rgba(255, 255, 255, 0.2);
        cursor: text;
        letter-spacing: 0.2em;
        flex: 1;
      }
      .blue { background: #3b82f6; }
      .green { background: #22c55e; }
      .red { background: #ef4444; }
      .grey { background: #6b7280; }
      .wide { width: 100%; }
      .big { height: 6rem; font-size: 1.2rem; }
      .online { background: linear-gradient(90deg, #a855f7, #ec4899); }
      .friends { background: linear-gradient(90deg, #facc15, #f97316); }
      .stack > * + * { margin-top: 1rem; }
      .row { display: flex; gap: 0.5rem; }
      .title { font-size: 1.5rem; font-weight: 600; text-align: center; margin-bottom: 1rem; }
      .subtitle { font-size: 1.2rem; font-weight: 600; text-align: center; margin-bottom: 1rem; }
      .hidden { display: none !important; }
      .board {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        aspect-ratio: 1 / 1;
        max-width: 400px;
        margin: 0 auto 1rem;
      }
      .cell {
        background: transparent;
        border-radius: 0;
        font-size: 2.25rem;
        font-weight: 700;
        border-color: #fff;
        border-style: solid;
        border-width: 0;
      }
      .cell:nth-child(-n + 6) { border-bottom-width: 1px; }
      .cell:not(:nth-child(3n)) { border-right-width: 1px; }
      .cell:hover:not(:disabled) { background: rgba(255, 255, 255, 0.05); }
      .players { display: flex; justify-content: space-between; margin-bottom: 1rem; }
      .player { display: flex; align-items: center; gap: 0.5rem; }
      .avatar { width: 2rem; height: 2rem; border-radius: 999px; background: #374151; }
      .searching { display: flex; justify-content: center; gap: 1rem; }
      .searching .avatar { width: 4rem; height: 4rem; animation: pulse 1s ease-in-out infinite; }
      .searching.found .avatar { animation: bounce 0.6s ease-in-out infinite; }
      .match-found { color: #22c55e; font-size: 1.5rem; font-weight: 700; text-align: center; }
      .stats { text-align: center; margin-top: 1rem; }
      #back { position: absolute; left: 0.5rem; bottom: 0.5rem; }
      .dialog {
        position: fixed;
        inset: 0;
        z-index: 2;
        display: flex;
        align-items: center;
        justify-content: center;
        background: rgba(0, 0, 0, 0.6);
      }
      .dialog > div {
        background: rgba(0, 0, 0, 0.9);
        border: 1px solid #374151;
        border-radius: 16px;
        padding: 1.5rem;
        text-align: center;
        width: min(24rem, 90vw);
      }
      .dialog .row { justify-content: center; margin-top: 1rem; }
      @keyframes pulse { 50% { opacity: 0.5; } }
      @keyframes bounce { 50% { transform: translateY(-25%); } }
    </style>
  </head>
  <body>
    <canvas id=\"starfield\" aria-hidden=\"true\"></canvas>
    <main>
      <section id=\"initial\" class=\"stack hidden\">
        <button id=\"create-game\" class=\"blue wide\">+ Create Game</button>
        <div class=\"row\">
          <input id=\"join-id\" type=\"text\" inputmode=\"numeric\" maxlength=\"4\" placeholder=\"Enter 4-digit Game ID\" />
          <button id=\"join-game\" class=\"green\" disabled>Join Game</button>
        </div>
      </section>
      <section id=\"mode_selection\" class=\"stack hidden\">
        <div class=\"title\">Game ID: <span class=\"game-id\"></span></div>
        <button id=\"play-online\" class=\"online wide big\">Play Online</button>
        <button id=\"play-friends\" class=\"friends wide big\">Play with Friends</button>
      </section>
      <section id=\"enter_friend_id\" class=\"stack hidden\">
        <input id=\"friend-id\" type=\"text\" inputmode=\"numeric\" maxlength=\"4\" placeholder=\"Enter friend's 4-digit Game ID\" />
        <button id=\"join-friend\" class=\"green wide\" disabled>Join Friend's Game</button>
      </section>
      <section id=\"searching\" class=\"stack hidden\" style=\"text-align: center\">
        <div class=\"title\">Searching for players...</div>
        <div id=\"search-avatars\" class=\"searching\"></div>
        <div id=\"match-found\" class=\"match-found hidden\">Match Found!</div>
        <button id=\"stop-matching\" class=\"red\">Stop Matching</button>
      </section>
      <section id=\"game\" class=\"hidden\">
        <div class=\"title\">Game ID: <span class=\"game-id\"></span></div>
        <div id=\"status\" class=\"subtitle\"></div>
        <div id=\"board\" class=\"board\"></div>
        <div id=\"players\" class=\"players\"></div>
      </section>
      <div class=\"stats\">
        <div>Total Matches: <span id=\"total\">0</span></div>
        <div>Wins: <span id=\"wins\">0</span> | Losses: <span id=\"losses\">0</span> | Draws: <span id=\"draws\">0</span></div>
      </div>
      <button id=\"back\" class=\"blue hidden\" aria-label=\"Back\">&#8592;</button>
    </main>
    <div id=\"game-over\" class=\"dialog hidden\" role=\"dialog\">
      <div>
        <h2>Game Over</h2>
        <p id=\"winner-message\"></p>
        <p>Game will reset in <span id=\"countdown\"></span> seconds...</p>
        <div class=\"row\">
          <button id=\"play-again\" class=\"blue\">Play Again</button>
          <button id=\"restart\" class=\"green\">Restart</button>
        </div>
      </div>
    </div>
    <div id=\"confirm-restart\" class=\"dialog hidden\" role=\"dialog\">
      <div>
        <h2>Restart Game?</h2>
        <p>Are you sure you want to restart the game? All progress will be lost.</p>
        <div class=\"row\">
          <button id=\"cancel-restart\" class=\"grey\">Cancel</button>
          <button id=\"confirm-restart-button\" class=\"red\">Restart</button>
        </div>
      </div>
    </div>
    <script>
      const sections = ['initial', 'mode_selection', 'enter_friend_id', 'searching'];
      const gameIdPattern = /^[0-9]{4}$/;
      const boardEl = document.getElementById('board');
      const joinIdInput = document.getElementById('join-id');
      const friendIdInput = document.getElementById('friend-id');
      const joinGameButton = document.getElementById('join-game');
      const joinFriendButton = document.getElementById('join-friend');

      let sessionId = null;
      let state = null;
      let socket = null;

      async function send(intent, body) {
        if (!sessionId) return;
        try {
          const response = await fetch(`/api/session/${sessionId}/${intent}`, {
            method: 'POST',
            headers: { 'Content-Type': 'application/json' },
            body: body ? JSON.stringify(body) : undefined,
          });
          if (response.status === 404) {
            await openSession();
            return;
          }
          if (response.ok) {
            render(await response.json());
          }
        } catch (error) {
          console.error('Request failed', error);
        }
      }

      async function openSession() {
        const response = await fetch('/api/session', { method: 'POST' });
        const data = await response.json();
        sessionId = data.id;
        render(data);
        connect();
      }

      function connect() {
        if (socket) socket.close();
        const protocol = window.location.protocol === 'https:' ? 'wss' : 'ws';
        socket = new WebSocket(`${protocol}://${window.location.host}/ws/session/${sessionId}`);
        socket.addEventListener('message', (event) => {
          const data = JSON.parse(event.data);
          if (data.type === 'error') return;
          render(data);
        });
      }

      function avatarEl(src, label, className) {
        const img = document.createElement('img');
        img.src = src;
        img.alt = label;
        img.className = className || 'avatar';
        return img;
      }

      function winnerMessage(data) {
        if (data.result === 'draw') return "It's a draw!";
        const winner = data.players.find((p) => p.symbol === data.winner);
        return winner ? `${winner.id} (${winner.symbol}) won!` : `${data.winner} won!`;
      }

      function render(data) {
        state = data;
        const phase = data.phase;
        sections.forEach((id) => {
          document.getElementById(id).classList.toggle('hidden', id !== phase);
        });
        const inGame = phase === 'playing' || phase === 'ended';
        document.getElementById('game').classList.toggle('hidden', !inGame);
        document.getElementById('back').classList.toggle('hidden', phase === 'initial' || phase === 'ended');
        document.querySelectorAll('.game-id').forEach((el) => {
          el.textContent = data.gameId;
        });

        const searchEl = document.getElementById('search-avatars');
        searchEl.replaceChildren(
          ...data.searchingAvatars.slice(0, 2).map((src, i) => avatarEl(src, `Player ${i + 1}`))
        );
        searchEl.classList.toggle('found', data.matchFound);
        document.getElementById('match-found').classList.toggle('hidden', !data.matchFound);

        document.getElementById('status').textContent =
          phase === 'playing' ? `Current Player: ${data.currentPlayer}` : 'Game Over';
        boardEl.replaceChildren(
          ...data.board.map((value, index) => {
            const cell = document.createElement('button');
            cell.className = 'cell';
            cell.textContent = value;
            cell.disabled = phase !== 'playing';
            cell.addEventListener('click', () => send('cell', { index }));
            return cell;
          })
        );
        document.getElementById('players').replaceChildren(
          ...data.players.map((player) => {
            const el = document.createElement('div');
            el.className = 'player';
            el.append(avatarEl(player.avatar, player.id));
            el.append(`${player.id} (${player.symbol})`);
            return el;
          })
        );

        document.getElementById('total').textContent = data.stats.totalMatches;
        document.getElementById('wins').textContent = data.stats.wins;
        document.getElementById('losses').textContent = data.stats.losses;
        document.getElementById('draws').textContent = data.stats.draws;

        document.getElementById('game-over').classList.toggle('hidden', phase !== 'ended');
        document.getElementById('winner-message').textContent =
          phase === 'ended' ? winnerMessage(data) : '';
        document.getElementById('countdown').textContent = data.countdown;
        document.getElementById('confirm-restart').classList.toggle('hidden', !data.showRestartConfirmation);
      }

      function bindJoin(input, button) {
        input.addEventListener('input', () => {
          button.disabled = !gameIdPattern.test(input.value);
        });
        button.addEventListener('click', () => {
          if (!gameIdPattern.test(input.value)) return;
          send('join', { gameId: input.value });
          input.value = '';
          button.disabled = true;
        });
      }

      bindJoin(joinIdInput, joinGameButton);
      bindJoin(friendIdInput, joinFriendButton);
      document.getElementById('create-game').addEventListener('click', () => send('create'));
      document.getElementById('play-online').addEventListener('click', () => send('mode', { mode: 'online' }));
      document.getElementById('play-friends').addEventListener('click', () => send('mode', { mode: 'friends' }));
      document.getElementById('stop-matching').addEventListener('click', () => send('stop-matching'));
      document.getElementById('back').addEventListener('click', () => send('back'));
      document.getElementById('play-again').addEventListener('click', () => send('play-again'));
      document.getElementById('restart').addEventListener('click', () => send('restart'));
      document.getElementById('cancel-restart').addEventListener('click', () => send('cancel-restart'));
      document.getElementById('confirm-restart-button').addEventListener('click', () => send('confirm-restart'));
      window.addEventListener('pagehide', () => {
        if (sessionId) navigator.sendBeacon(`/api/session/${sessionId}/close`);
      });

      // Decorative starfield.
      (function starfield() {
        const canvas = document.getElementById('starfield');
        const ctx = canvas.getContext('2d');
        const stars = [];
        function resize() {
          canvas.width = window.innerWidth;
          canvas.height = window.innerHeight;
        }
        function spawn(star) {
          star.x = (Math.random() - 0.5) * canvas.width;
          star.y = (Math.random() - 0.5) * canvas.height;
          star.z = Math.random() * canvas.width;
          return star;
        }
        function frame() {
          ctx.fillStyle = '#000';
          ctx.fillRect(0, 0, canvas.width, canvas.height);
          const cx = canvas.width / 2;
          const cy = canvas.height / 2;
          stars.forEach((star) => {
            star.z -= 2;
            if (star.z <= 0) spawn(star);
            const k = 128 / star.z;
            const x = star.x * k + cx;
            const y = star.y * k + cy;
            const size = Math.max(0.5, (1 - star.z / canvas.width) * 2.5);
            ctx.fillStyle = '#fff';
            ctx.fillRect(x, y, size, size);
          });
          window.requestAnimationFrame(frame);
        }
        resize();
        window.addEventListener('resize', resize);
        for (let i = 0; i < 400; i += 1) stars.push(spawn({}));
        frame();
      })();

      openSession().catch((error) => console.error('Unable to start session', error));
    </script>
  </body>
</html>
"""
