"""Duel command dispatch (pure, no store/HTTP).

Architecture:
- A game is a plain dict (see types.DuelGame) with the ladder under game["state"]
- Commands are plain dicts with a 'type' field (ADD_PLAYER, MARK_READY, SUBMIT_SCORE, ...)
- apply_duel_command() takes (game, cmd) and returns CommandOutcome with the next game
- The input game is never mutated; the host persists CommandOutcome.game when changed

Key concepts:
- changed: False when the command was a premature no-op (e.g. submitting before
  the opponent is ready). The host can skip the write and keep polling.
- now: optional ISO timestamp on the command; replaces the wall clock so a
  recorded command stream replays to identical games.

State transitions:
- ADD_PLAYER: Registers a player and queues them (idempotent on id)
- START_GAME: Seeds the ladder by join time, status -> active
- MARK_READY: Player confirms they are at their station
- SUBMIT_SCORE: Records made putts; resolves the round when both sides are in
- UNDO_SUBMISSION: Withdraws an unresolved (or solo) submission; raises when nothing to undo
- END_GAME: Host ends the game, status -> finished
- SET_STATION_COUNT: Re-lays the ladder, re-queuing players on removed stations
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .games import end_game, start_game
from .queries import has_pending_submission
from .roster import add_player_to_state, create_empty_duel_state, mark_player_ready, resize_stations
from .rounds import submit_duel_score, undo_submission
from .types import DuelGame
from .validation import DuelGameConfig

logger = logging.getLogger(__name__)


@dataclass
class CommandOutcome:
    """Result of applying a duel command."""

    game: DuelGame
    cmd_payload: Dict[str, Any]
    changed: bool


def _require(cmd: Dict[str, Any], field: str) -> Any:
    value = cmd.get(field)
    if value is None:
        raise ValueError(f"{cmd.get('type')} requires {field}")
    return value


def apply_duel_command(game: DuelGame, cmd: Dict[str, Any]) -> CommandOutcome:
    """Apply one duel command to a game record.

    Args:
        game: Current game record (not mutated)
        cmd: Command dict with 'type' and command-specific fields

    Returns:
        CommandOutcome with the next game, the command payload (enriched with
        resolved fields such as stationIndex) and whether anything changed

    Raises:
        ValueError: unknown command type, missing fields, or undo with nothing to undo
    """
    ctype = cmd.get("type")
    now = cmd.get("now")
    payload = dict(cmd)
    station_count = game.get("station_count") or 1
    state = game.get("state") or create_empty_duel_state(station_count)
    next_game: DuelGame = dict(game)

    if ctype == "ADD_PLAYER":
        player = _require(cmd, "player")
        next_game["state"] = add_player_to_state(state, player, now=now)

    elif ctype == "START_GAME":
        next_game = start_game({**game, "state": state}, now=now)

    elif ctype == "MARK_READY":
        next_game["state"] = mark_player_ready(state, _require(cmd, "playerId"))

    elif ctype == "SUBMIT_SCORE":
        player_id = _require(cmd, "playerId")
        made = _require(cmd, "made")
        if isinstance(made, bool) or not isinstance(made, int):
            raise ValueError("SUBMIT_SCORE made must be an int")
        payload["stationIndex"] = (state.get("players", {}).get(player_id) or {}).get(
            "station_index"
        )
        next_game = submit_duel_score({**game, "state": state}, player_id, made, now=now)

    elif ctype == "UNDO_SUBMISSION":
        player_id = _require(cmd, "playerId")
        station_index = _require(cmd, "stationIndex")
        if not has_pending_submission(state, station_index, player_id):
            raise ValueError("nothing to undo")
        next_game = undo_submission({**game, "state": state}, station_index, player_id)

    elif ctype == "END_GAME":
        next_game = end_game(game, now=now)

    elif ctype == "SET_STATION_COUNT":
        config = DuelGameConfig(
            station_count=_require(cmd, "stationCount"),
            mode=game.get("mode") or "host",
            disc_count=game.get("disc_count") or 3,
        )
        payload["stationCount"] = config.station_count
        next_game["station_count"] = config.station_count
        next_game["state"] = resize_stations(state, config.station_count)

    else:
        raise ValueError(f"Unknown duel command type: {ctype}")

    changed = next_game != game
    if not changed:
        logger.debug(f"{ctype} left game unchanged")
    return CommandOutcome(game=next_game, cmd_payload=payload, changed=changed)
