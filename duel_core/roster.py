"""Ladder roster, waiting queue and session bootstrap (pure, no store/HTTP).

State is the plain DuelState dict persisted under game["state"]:
- players: id -> player dict (insertion ordered; drives leaderboard tie order)
- stations: list of {index, players, round_id, last_resolved_round}, index 1 = top
- queue: ids waiting for a seat, each routed to a single desired_station
- pending / log: owned by the round engine (see rounds.py)

Transitions (add_player_to_state, start_duel_game, mark_player_ready,
resize_stations) return a new state built on a deepcopy. The seat helpers
marked "in place" mutate a working copy the caller already owns; the round
engine uses them the same way.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List

from .types import DuelGame, DuelPlayer, DuelState, Station

logger = logging.getLogger(__name__)

DUEL_START_DISTANCE = 5
DUEL_MAX_DISTANCE = 10


def utc_now_iso() -> str:
    """Current UTC time in the store's timestamp format (e.g. 2026-01-25T10:00:00.000Z)."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: Any) -> float:
    """Epoch seconds of an ISO timestamp; missing or unparsable values count as 0."""
    if not isinstance(value, str) or not value.strip():
        return 0.0
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _new_station(index: int) -> Station:
    return {"index": index, "players": [], "round_id": 0, "last_resolved_round": 0}


def create_empty_duel_state(station_count: int = 1) -> DuelState:
    """Create an empty ladder with station_count stations numbered from 1."""
    return {
        "players": {},
        "stations": [_new_station(i + 1) for i in range(station_count)],
        "queue": [],
        "pending": {},
        "log": [],
    }


def find_station(state: DuelState, station_index: Any) -> Station | None:
    for station in state.get("stations") or []:
        if station.get("index") == station_index:
            return station
    return None


def add_player_to_state(
    state: DuelState, player: Dict[str, Any], *, now: str | None = None
) -> DuelState:
    """Register a player and put them in the waiting queue.

    Idempotent on player["id"]: a known id returns an unchanged copy.
    """
    new_state: DuelState = deepcopy(state)
    player_id = player["id"]
    if player_id in new_state["players"]:
        return new_state
    new_state["players"][player_id] = {
        "id": player_id,
        "name": player.get("name"),
        "email": player.get("email") or None,
        "joined_at": player.get("joined_at") or now or utc_now_iso(),
        "station_index": None,
        "distance": DUEL_START_DISTANCE,
        "points": 0,
        "wins": 0,
        "losses": 0,
        "ready": False,
        "status": "waiting",
        "desired_station": player.get("desired_station"),
    }
    if player_id not in new_state["queue"]:
        new_state["queue"].append(player_id)
    return new_state


def assign_player_to_station(state: DuelState, player_id: str, station_index: int) -> bool:
    """Seat a player (in place). Returns False when the station is unknown or full.

    A newly seated player starts over at DUEL_START_DISTANCE and must confirm
    readiness again.
    """
    station = find_station(state, station_index)
    if station is None or len(station["players"]) >= 2:
        return False
    if player_id not in station["players"]:
        station["players"].append(player_id)
    player = state["players"].get(player_id)
    if player is not None:
        player["station_index"] = station_index
        player["status"] = "station"
        player["ready"] = False
        player["distance"] = DUEL_START_DISTANCE
        player["desired_station"] = station_index
    return True


def enqueue_player(state: DuelState, player_id: str, desired_station: int | None) -> None:
    """Send a player to the waiting queue (in place), routed to desired_station."""
    player = state["players"].get(player_id)
    if player is not None:
        player["status"] = "waiting"
        player["station_index"] = None
        player["ready"] = False
        player["desired_station"] = desired_station
    if player_id not in state["queue"]:
        state["queue"].append(player_id)


def remove_player_from_station(state: DuelState, player_id: str) -> None:
    """Take a player off their station (in place). No-op when not stationed."""
    player = state["players"].get(player_id)
    if not player or not player.get("station_index"):
        return
    station = find_station(state, player["station_index"])
    if station is not None:
        station["players"] = [pid for pid in station["players"] if pid != player_id]
    player["station_index"] = None


def fill_stations_from_queue(state: DuelState) -> None:
    """Targeted refill (in place).

    Each station with a free seat takes the first queued player whose
    desired_station is that station. Players never fill an arbitrary open
    station, only the one they were routed to.
    """
    for station in state["stations"]:
        while len(station["players"]) < 2:
            candidate = next(
                (
                    pid
                    for pid in state["queue"]
                    if (state["players"].get(pid) or {}).get("desired_station")
                    == station["index"]
                ),
                None,
            )
            if candidate is None:
                break
            state["queue"].remove(candidate)
            assign_player_to_station(state, candidate, station["index"])


def resize_stations(state: DuelState, station_count: int) -> DuelState:
    """Return a copy of state laid out for station_count stations.

    Stations that survive keep their players, rounds and pending records.
    Players seated on removed stations, and queued players routed to them, are
    re-routed to the new bottom station; nobody leaves the ladder.
    """
    new_state: DuelState = deepcopy(state)
    _migrate_stations(new_state, station_count)
    return new_state


def _migrate_stations(state: DuelState, station_count: int) -> None:
    stations = state.get("stations") or []
    if len(stations) == station_count:
        return

    kept: List[Station] = []
    displaced: List[str] = []
    for i in range(station_count):
        existing = find_station(state, i + 1)
        kept.append(existing if existing is not None else _new_station(i + 1))
    for station in stations:
        if station.get("index", 0) > station_count:
            displaced.extend(station.get("players") or [])
            state.get("pending", {}).pop(str(station.get("index")), None)

    state["stations"] = kept
    if displaced:
        logger.warning(
            f"Station count changed to {station_count}; re-queuing {len(displaced)} displaced players"
        )
    for player_id in displaced:
        enqueue_player(state, player_id, station_count)
    for player_id in state["queue"]:
        player = state["players"].get(player_id)
        if player and (player.get("desired_station") or 0) > station_count:
            player["desired_station"] = station_count
    fill_stations_from_queue(state)


def ensure_stations(state: DuelState, station_count: int) -> None:
    """Make the working copy match station_count (in place), migrating players if needed."""
    if not state.get("stations"):
        state["stations"] = [_new_station(i + 1) for i in range(station_count)]
        return
    _migrate_stations(state, station_count)


def initialize_duel_game_state(game: DuelGame) -> DuelState:
    """Fresh ladder for the game with every registered player unassigned and queued.

    Counters are kept; seat-related fields are reset.
    """
    new_state = create_empty_duel_state(game.get("station_count") or 1)
    players = (game.get("state") or {}).get("players") or {}
    for player in players.values():
        entry: DuelPlayer = deepcopy(player)
        entry.update(
            {
                "station_index": None,
                "distance": DUEL_START_DISTANCE,
                "ready": False,
                "status": "waiting",
                "desired_station": None,
            }
        )
        new_state["players"][player["id"]] = entry
        new_state["queue"].append(player["id"])
    return new_state


def start_duel_game(game: DuelGame) -> DuelState:
    """Seed the ladder from the registered players.

    Players are ordered by joined_at (stable on insertion order), seated two per
    station from station 1 down, and the rest queued for the bottom station.
    """
    station_count = game.get("station_count") or 1
    state = initialize_duel_game_state(game)
    ensure_stations(state, station_count)

    player_ids = [
        player["id"]
        for player in sorted(
            state["players"].values(), key=lambda p: parse_timestamp(p.get("joined_at"))
        )
    ]

    state["queue"] = []
    position = 0
    for station in state["stations"]:
        while len(station["players"]) < 2 and position < len(player_ids):
            assign_player_to_station(state, player_ids[position], station["index"])
            position += 1

    for player_id in player_ids[position:]:
        enqueue_player(state, player_id, station_count)

    logger.debug(f"Duel started: {position} seated, {len(state['queue'])} queued")
    return state


def mark_player_ready(state: DuelState, player_id: str) -> DuelState:
    new_state: DuelState = deepcopy(state)
    if player_id in (new_state.get("players") or {}):
        new_state["players"][player_id]["ready"] = True
    return new_state
