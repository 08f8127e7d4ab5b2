"""Round resolution engine for the duel ladder (pure, no store/HTTP).

A round at a station is resolved once both occupants have submitted how many
putts they made:

    idle -> awaiting submissions -> tie            -> idle
                                 -> win (< max)    -> winner steps back, idle
                                 -> win (at max)   -> promotion/demotion + queue refill
                                                      (solo single station: game finished)

Multiplayer ("host") games drop the pending record as soon as a round resolves.
Solo games (one device entering both seats of a single station) keep the
resolved pending record together with a snapshot of both players taken before
the outcome was applied, so a corrected entry can replay the round and undo can
roll it back.

Timestamps come from the optional ``now`` argument, defaulting to the current
UTC time, so replays with a fixed clock are deterministic.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Dict, Union

from .roster import (
    DUEL_MAX_DISTANCE,
    assign_player_to_station,
    create_empty_duel_state,
    enqueue_player,
    ensure_stations,
    fill_stations_from_queue,
    find_station,
    remove_player_from_station,
    utc_now_iso,
)
from .types import DuelGame, DuelState, LogEntry, PendingRound, RoundSnapshot, Station, Submission

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = ("distance", "points", "wins", "losses", "station_index", "status", "ready")


@dataclass(frozen=True)
class Tie:
    station: int
    round_id: int


@dataclass(frozen=True)
class Win:
    station: int
    round_id: int
    winner_id: str
    loser_id: str
    points_awarded: int
    winner_distance: int

    @property
    def at_max_distance(self) -> bool:
        return self.winner_distance >= DUEL_MAX_DISTANCE


RoundOutcome = Union[Tie, Win]


def is_solo_mode(game: DuelGame) -> bool:
    return game.get("mode") == "solo" and (game.get("station_count") or 1) == 1


def points_for_distance(distance: int) -> int:
    return 2 if distance >= DUEL_MAX_DISTANCE else 1


def resolve_round(
    station: int,
    round_id: int,
    player_id: str,
    opponent_id: str,
    submissions: Dict[str, Submission],
) -> RoundOutcome:
    """Compare both submissions of a round. Points depend on the winner's distance at submission."""
    player_made = submissions[player_id]["made"]
    opponent_made = submissions[opponent_id]["made"]
    if player_made == opponent_made:
        return Tie(station=station, round_id=round_id)
    winner_id, loser_id = (
        (player_id, opponent_id) if player_made > opponent_made else (opponent_id, player_id)
    )
    return Win(
        station=station,
        round_id=round_id,
        winner_id=winner_id,
        loser_id=loser_id,
        points_awarded=points_for_distance(submissions[winner_id]["distance"]),
        winner_distance=submissions[winner_id]["distance"],
    )


def round_outcome(entry: LogEntry) -> RoundOutcome:
    """Rebuild the tagged outcome of a persisted log entry."""
    station, round_id = entry["station"], int(str(entry["id"]).rsplit("-", 1)[-1])
    result = entry.get("result")
    if result == "tie":
        return Tie(station=station, round_id=round_id)
    players = entry.get("players") or []
    loser_id = next((pid for pid in players if pid != result), "")
    return Win(
        station=station,
        round_id=round_id,
        winner_id=result,
        loser_id=loser_id,
        points_awarded=entry.get("points") or 1,
        winner_distance=(entry.get("distances") or {}).get(result, 0),
    )


def _capture_snapshot(game: DuelGame, state: DuelState, player_ids) -> RoundSnapshot:
    return {
        "game_status": game.get("status"),
        "winner_id": game.get("winner_id") or None,
        "ended_at": game.get("ended_at") or None,
        "players": {
            pid: {field: state["players"][pid].get(field) for field in _SNAPSHOT_FIELDS}
            for pid in player_ids
        },
    }


def _restore_snapshot(game: DuelGame, state: DuelState, snapshot: RoundSnapshot) -> None:
    """Roll both players and the game status back to the snapshot (in place)."""
    for pid, data in (snapshot.get("players") or {}).items():
        if pid in state["players"]:
            state["players"][pid].update(data)
    game["status"] = snapshot.get("game_status") or game.get("status")
    game["winner_id"] = snapshot.get("winner_id") or None
    game["ended_at"] = snapshot.get("ended_at") or None


def _build_log_entry(
    outcome: RoundOutcome,
    player_id: str,
    opponent_id: str,
    submissions: Dict[str, Submission],
    ts: str,
) -> LogEntry:
    entry: LogEntry = {
        "id": f"{outcome.station}-{outcome.round_id}",
        "ts": ts,
        "station": outcome.station,
        "players": [player_id, opponent_id],
        "scores": {pid: submissions[pid]["made"] for pid in (player_id, opponent_id)},
        "distances": {pid: submissions[pid]["distance"] for pid in (player_id, opponent_id)},
    }
    if isinstance(outcome, Win):
        entry["result"] = outcome.winner_id
        entry["points"] = outcome.points_awarded
    else:
        entry["result"] = "tie"
    return entry


def _append_log(state: DuelState, entry: LogEntry) -> None:
    # A replayed solo round replaces its earlier entry.
    log = [item for item in state.get("log") or [] if item.get("id") != entry["id"]]
    log.append(entry)
    state["log"] = log


def _move_after_max_win(state: DuelState, outcome: Win, station_count: int) -> None:
    winner_target = max(1, outcome.station - 1)
    loser_target = min(station_count, outcome.station + 1)

    remove_player_from_station(state, outcome.winner_id)
    remove_player_from_station(state, outcome.loser_id)

    if not assign_player_to_station(state, outcome.winner_id, winner_target):
        enqueue_player(state, outcome.winner_id, winner_target)
    if not assign_player_to_station(state, outcome.loser_id, loser_target):
        enqueue_player(state, outcome.loser_id, loser_target)

    fill_stations_from_queue(state)


def _apply_outcome(
    game: DuelGame,
    state: DuelState,
    outcome: RoundOutcome,
    *,
    station_count: int,
    solo: bool,
    now: str,
) -> None:
    if isinstance(outcome, Tie):
        return

    winner = state["players"][outcome.winner_id]
    loser = state["players"][outcome.loser_id]
    winner["points"] = (winner.get("points") or 0) + outcome.points_awarded
    winner["wins"] = (winner.get("wins") or 0) + 1
    loser["losses"] = (loser.get("losses") or 0) + 1

    if not outcome.at_max_distance:
        winner["distance"] = min(DUEL_MAX_DISTANCE, winner["distance"] + 1)
        return

    if solo:
        game["status"] = "finished"
        game["ended_at"] = now
        game["winner_id"] = outcome.winner_id
        logger.info(f"Solo duel finished, winner {outcome.winner_id}")
        return

    _move_after_max_win(state, outcome, station_count)


def _acquire_pending(
    game: DuelGame,
    state: DuelState,
    station: Station,
    player_id: str,
    opponent_id: str,
    solo: bool,
) -> PendingRound:
    key = str(station["index"])
    pending: PendingRound = state["pending"].get(key) or {
        "round_id": station["round_id"] + 1,
        "submissions": {},
    }
    pending.setdefault("submissions", {})
    submissions = pending["submissions"]

    # A resolved round whose recorded distances no longer match the players
    # means a new physical round has begun. A tie leaves distances unchanged,
    # so a solo resubmission after a tie replays the tied round instead.
    if pending.get("resolved"):
        changed = any(
            pid in submissions
            and submissions[pid].get("distance") != state["players"][pid].get("distance")
            for pid in (player_id, opponent_id)
        )
        if changed:
            pending = {"round_id": station["round_id"] + 1, "submissions": {}}

    if solo and pending.get("resolved") and pending.get("snapshot"):
        _restore_snapshot(game, state, pending["snapshot"])
        pending["resolved"] = False
        pending.pop("snapshot", None)

    state["pending"][key] = pending
    return pending


def submit_duel_score(
    game: DuelGame, player_id: str, made: int, *, now: str | None = None
) -> DuelGame:
    """Record a player's made-putt count and resolve the round once both sides are in.

    Returns a new game record. Premature calls (player not seated, no opponent,
    either side not ready, stale round) return the game unchanged.
    """
    station_count = game.get("station_count") or 1
    solo = is_solo_mode(game)
    ts = now or utc_now_iso()

    next_game: DuelGame = dict(game)
    state: DuelState = deepcopy(game.get("state") or create_empty_duel_state(station_count))
    state.setdefault("pending", {})
    ensure_stations(state, station_count)

    player = state["players"].get(player_id)
    if not player or not player.get("station_index"):
        logger.debug(f"Ignoring submission from unseated player {player_id}")
        return next_game

    station = find_station(state, player["station_index"])
    if station is None or len(station["players"]) < 2:
        logger.debug(f"Ignoring submission from {player_id}: no opponent yet")
        return next_game

    opponent_id = next(pid for pid in station["players"] if pid != player_id)
    opponent = state["players"].get(opponent_id)
    if not opponent or not player.get("ready") or not opponent.get("ready"):
        logger.debug(f"Ignoring submission from {player_id}: station not ready")
        return next_game

    pending = _acquire_pending(next_game, state, station, player_id, opponent_id, solo)
    submissions = pending["submissions"]
    submissions[player_id] = {
        "made": made,
        "distance": player["distance"],
        "submitted_at": ts,
    }
    next_game["state"] = state

    if opponent_id not in submissions:
        return next_game

    round_id = pending["round_id"]
    if not solo and round_id <= station["last_resolved_round"]:
        logger.debug(f"Station {station['index']} round {round_id} already resolved")
        return dict(game)

    station["round_id"] = round_id
    station["last_resolved_round"] = round_id

    if solo:
        pending["snapshot"] = _capture_snapshot(next_game, state, (player_id, opponent_id))

    outcome = resolve_round(station["index"], round_id, player_id, opponent_id, submissions)
    _append_log(state, _build_log_entry(outcome, player_id, opponent_id, submissions, ts))
    logger.debug(f"Resolved station {station['index']} round {round_id}: {outcome}")

    _apply_outcome(next_game, state, outcome, station_count=station_count, solo=solo, now=ts)

    pending["resolved"] = True
    if not solo:
        state["pending"].pop(str(station["index"]), None)
    return next_game


def undo_submission(game: DuelGame, station_index: int, player_id: str) -> DuelGame:
    """Withdraw a player's submission for the station's pending round.

    No-op when there is nothing to withdraw. In solo mode an already resolved
    round is rolled back from its snapshot first.
    """
    station_count = game.get("station_count") or 1
    next_game: DuelGame = dict(game)
    state: DuelState = deepcopy(game.get("state") or create_empty_duel_state(station_count))
    next_game["state"] = state

    key = str(station_index)
    pending = (state.get("pending") or {}).get(key)
    if not pending or player_id not in (pending.get("submissions") or {}):
        return next_game

    if is_solo_mode(game) and pending.get("resolved") and pending.get("snapshot"):
        _restore_snapshot(next_game, state, pending["snapshot"])

    del pending["submissions"][player_id]
    pending["resolved"] = False
    pending.pop("snapshot", None)

    if not pending["submissions"]:
        del state["pending"][key]
    return next_game
