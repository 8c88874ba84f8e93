"""ApiClient: HTTP and server-sent-event access to the quiz bowl backend.

Reads return validated snapshots; writes return the decoded JSON body.
Every failure surfaces as ApiError (or its AuthRejected subclass), never
as a raw httpx exception, so callers pick their own degradation policy.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

import httpx

from quizbowl.core.models import BracketState, GameState
from quizbowl.core.schemas import parse_bracket, parse_game

logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-Admin-Token"
BRACKET_EVENT = "bracket"


class ApiError(Exception):
    """Raised on transport failures and non-2xx responses."""

    def __init__(
        self,
        error_type: str,
        endpoint: str,
        details: str = "",
        status: int | None = None,
        message: str | None = None,
    ):
        self.error_type = error_type  # "transport", "http", "decode", "stream"
        self.endpoint = endpoint
        self.details = details
        self.status = status
        self.message = message  # server-provided, user-facing
        super().__init__(f"{error_type} from {endpoint}: {details}")


class AuthRejected(ApiError):
    """The backend refused the admin credential (401/403)."""


@dataclass(frozen=True)
class ServerEvent:
    event: str
    data: str


def parse_sse(lines: Iterable[str]) -> Iterator[ServerEvent]:
    """Turn text/event-stream lines into ServerEvents.

    Multi-line ``data:`` fields are joined with newlines; comments and
    ``id``/``retry`` fields are ignored. An event without data is dropped.
    """
    event = "message"
    data: list[str] = []
    for line in lines:
        if not line:
            if data:
                yield ServerEvent(event=event, data="\n".join(data))
            event = "message"
            data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if data:
        yield ServerEvent(event=event, data="\n".join(data))


class BracketStream:
    """One subscription to the bracket event stream.

    ``events()`` blocks while reading; ``close()`` may be called from any
    thread and makes ``events()`` return quietly.
    """

    def __init__(self, client: httpx.Client, path: str) -> None:
        self._client = client
        self._path = path
        self._lock = threading.Lock()
        self._response: httpx.Response | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def events(self) -> Iterator[ServerEvent]:
        try:
            with self._client.stream(
                "GET",
                self._path,
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(10.0, read=None),
            ) as response:
                with self._lock:
                    if self._closed:
                        return
                    self._response = response
                if response.status_code >= 400:
                    raise ApiError(
                        "http", self._path,
                        f"stream refused with {response.status_code}",
                        status=response.status_code,
                    )
                yield from parse_sse(response.iter_lines())
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._closed:
                return
            raise ApiError("stream", self._path, str(e)) from e
        finally:
            self._closed = True

    def close(self) -> None:
        with self._lock:
            self._closed = True
            response = self._response
        if response is not None:
            response.close()


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


class ApiClient:
    """Thin client for the quiz bowl REST endpoints."""

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None] = lambda: None,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        client_kwargs: dict[str, Any] = {
            "base_url": base_url,
            "timeout": timeout_s,
            "headers": {"Accept": "application/json"},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Transport ────────────────────────────────────────────────

    def _admin_headers(self) -> dict[str, str]:
        token = self._token_provider()
        return {ADMIN_HEADER: token} if token else {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | None = None,
        params: dict | None = None,
        admin: bool = False,
    ) -> Any:
        headers = self._admin_headers() if admin else {}
        try:
            response = self._client.request(
                method, path, json=json_body, params=params, headers=headers,
            )
        except httpx.HTTPError as e:
            raise ApiError("transport", path, str(e)) from e

        if response.status_code >= 400:
            message = _server_message(response)
            error_cls = AuthRejected if response.status_code in (401, 403) else ApiError
            raise error_cls(
                "http", path,
                f"HTTP {response.status_code}",
                status=response.status_code,
                message=message,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError("decode", path, f"response is not JSON: {e}") from e

    # ── Reads ────────────────────────────────────────────────────

    def get_game(self, game_id: str) -> GameState:
        return parse_game(self._request("GET", "/api/game", params={"gameId": game_id}))

    def get_bracket(self) -> BracketState:
        return parse_bracket(self._request("GET", "/api/bracket"))

    def open_bracket_stream(self) -> BracketStream:
        return BracketStream(self._client, "/api/bracket/stream")

    # ── Game mutations (admin) ───────────────────────────────────

    def award_tossup(self, game_id: str, team: str) -> Any:
        return self._request(
            "POST", "/api/game/award-tossup",
            json_body={"team": team}, params={"gameId": game_id}, admin=True,
        )

    def award_bonus(self, game_id: str, points: int = 10) -> Any:
        return self._request(
            "POST", "/api/game/award-bonus",
            json_body={"points": points}, params={"gameId": game_id}, admin=True,
        )

    def next_tossup(self, game_id: str) -> Any:
        return self._request(
            "POST", "/api/game/next-tossup", params={"gameId": game_id}, admin=True,
        )

    def reset_game(self, game_id: str) -> Any:
        return self._request(
            "POST", "/api/game/reset", params={"gameId": game_id}, admin=True,
        )

    def set_team_names(self, game_id: str, team_a_name: str, team_b_name: str) -> Any:
        return self._request(
            "POST", "/api/game/team-names",
            json_body={"teamAName": team_a_name, "teamBName": team_b_name},
            params={"gameId": game_id}, admin=True,
        )

    # ── Bracket mutations (admin) ────────────────────────────────

    def init_bracket(self, team_names: list[str]) -> Any:
        return self._request(
            "POST", "/api/bracket/init",
            json_body={"teamNames": list(team_names)}, admin=True,
        )

    def reset_bracket(self) -> Any:
        return self._request("POST", "/api/bracket/reset", admin=True)

    def set_current_match(self, game_id: str, team_a_id: str, team_b_id: str) -> Any:
        return self._request(
            "POST", "/api/bracket/set-current",
            json_body={"teamAId": team_a_id, "teamBId": team_b_id},
            params={"gameId": game_id}, admin=True,
        )

    def finalize_current_match(self, game_id: str) -> Any:
        return self._request(
            "POST", "/api/bracket/finalize-current",
            params={"gameId": game_id}, admin=True,
        )

    # ── Auth ─────────────────────────────────────────────────────

    def login(self, username: str, password: str) -> dict:
        return self._request(
            "POST", "/api/auth/login",
            json_body={"username": username, "password": password},
        )

    def register(self, username: str, password: str) -> dict:
        return self._request(
            "POST", "/api/auth/register",
            json_body={"username": username, "password": password},
        )

    def update_profile(self, new_username: str | None, new_password: str | None) -> dict:
        return self._request(
            "POST", "/api/auth/update-profile",
            json_body={"newUsername": new_username, "newPassword": new_password},
            admin=True,
        )


def decode_bracket_event(event: ServerEvent) -> BracketState | None:
    """Return the snapshot carried by a bracket event, or None to drop it."""
    if event.event != BRACKET_EVENT:
        return None
    try:
        raw = json.loads(event.data)
    except json.JSONDecodeError:
        logger.debug("Dropping unparseable bracket event")
        return None
    try:
        return parse_bracket(raw)
    except ValueError as e:
        logger.debug("Dropping invalid bracket event: %s", e)
        return None
