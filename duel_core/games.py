"""Duel game records: creation, joining, start/end and game lookup helpers.

A game record wraps the ladder state with the host-level fields (PIN, mode,
status, station/disc counts). Like the rest of the core these are pure
functions returning new records; the host persists them.
"""
from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .roster import (
    add_player_to_state,
    create_empty_duel_state,
    parse_timestamp,
    start_duel_game,
    utc_now_iso,
)
from .types import DuelGame, DuelState
from .validation import DuelGameConfig, InputSanitizer

DEFAULT_PLAYER_NAME = "Mängija"


def create_random_duel_pin(rng: random.Random | None = None) -> str:
    """Four-digit join PIN (1000-9999)."""
    return str((rng or random).randint(1000, 9999))


def _normalize_string(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def create_duel_game(
    *,
    pin: str,
    host_user: str | None,
    name: str | None = None,
    disc_count: int = 3,
    station_count: int = 1,
    mode: str = "host",
    now: str | None = None,
) -> DuelGame:
    """Build a lobby game record. Raises ValueError for an invalid mode/disc count."""
    config = DuelGameConfig(station_count=station_count, mode=mode, disc_count=disc_count)
    created_at = now or utc_now_iso()
    game_name = InputSanitizer.sanitize_game_name(name or "")
    if not game_name:
        game_name = f"Sõbraduell {datetime.fromisoformat(created_at).strftime('%d.%m.%Y')}"
    return {
        "name": game_name,
        "pin": pin,
        "disc_count": config.disc_count,
        "station_count": config.station_count,
        "mode": config.mode,
        "status": "lobby",
        "host_user": host_user,
        "created_at": created_at,
        "started_at": None,
        "ended_at": None,
        "winner_id": None,
        "participant_uids": [],
        "participant_emails": [],
        "participant_names": [],
        "state": create_empty_duel_state(config.station_count),
    }


def build_duel_participant_fields(state: DuelState | None) -> Dict[str, List[str]]:
    """Deduplicated ids/emails/names of every player, used by the store for membership queries."""
    players = list(((state or {}).get("players") or {}).values())
    uids = [p.get("id") for p in players if isinstance(p.get("id"), str) and p["id"].strip()]
    emails = [_normalize_string(p.get("email")) for p in players]
    names = [p["name"].strip() if isinstance(p.get("name"), str) else "" for p in players]
    return {
        "participant_uids": list(dict.fromkeys(uids)),
        "participant_emails": list(dict.fromkeys(e for e in emails if e)),
        "participant_names": list(dict.fromkeys(n for n in names if n)),
    }


def join_duel_game(
    game: DuelGame,
    user: Dict[str, Any],
    *,
    display_name: str | None = None,
    now: str | None = None,
) -> DuelGame:
    """Add the user to the game's player list and waiting queue.

    The player id is the account id, falling back to the email. New players
    are routed to the bottom station. Joining a finished game raises ValueError.
    """
    if game.get("status") == "finished":
        raise ValueError("game is finished")
    player_id = user.get("id") or user.get("email")
    if not player_id:
        raise ValueError("user has neither id nor email")

    name = (
        display_name
        or user.get("display_name")
        or user.get("full_name")
        or user.get("email")
        or DEFAULT_PLAYER_NAME
    )
    station_count = game.get("station_count") or 1
    joined_at = now or utc_now_iso()
    state = add_player_to_state(
        game.get("state") or create_empty_duel_state(station_count),
        {
            "id": player_id,
            "name": InputSanitizer.sanitize_player_name(name) or DEFAULT_PLAYER_NAME,
            "email": user.get("email"),
            "joined_at": joined_at,
            "desired_station": station_count,
        },
    )
    next_game: DuelGame = dict(game)
    next_game["state"] = state
    next_game.update(build_duel_participant_fields(state))
    return next_game


def start_game(game: DuelGame, *, now: str | None = None) -> DuelGame:
    next_game: DuelGame = dict(game)
    next_game["status"] = "active"
    next_game["started_at"] = now or utc_now_iso()
    next_game["state"] = start_duel_game(game)
    return next_game


def end_game(game: DuelGame, *, now: str | None = None) -> DuelGame:
    """Host ends (or abandons) the game. The ladder state is left as it is."""
    next_game: DuelGame = dict(game)
    next_game["status"] = "finished"
    next_game["ended_at"] = now or utc_now_iso()
    return next_game


def is_user_in_duel_game(game: DuelGame | None, user: Dict[str, Any] | None) -> bool:
    """Match the user against participant fields, then player ids, emails and names."""
    if not game or not user:
        return False
    user_id = user.get("id")
    user_email = _normalize_string(user.get("email"))
    user_display_name = _normalize_string(user.get("display_name"))
    user_full_name = _normalize_string(user.get("full_name"))

    if user_id and user_id in (game.get("participant_uids") or []):
        return True
    if user_email and user_email in [
        _normalize_string(e) for e in game.get("participant_emails") or []
    ]:
        return True

    for player in ((game.get("state") or {}).get("players") or {}).values():
        player_name = _normalize_string(player.get("name"))
        if user_id and player.get("id") == user_id:
            return True
        if user_email and _normalize_string(player.get("email")) == user_email:
            return True
        if user_display_name and player_name == user_display_name:
            return True
        if user_full_name and player_name == user_full_name:
            return True
    return False


def sort_duel_games_by_newest(games: Iterable[DuelGame]) -> List[DuelGame]:
    """Newest first by created_at (or date); ties by id descending."""
    ordered = sorted(games, key=lambda g: str(g.get("id") or ""), reverse=True)
    return sorted(
        ordered,
        key=lambda g: parse_timestamp(g.get("created_at") or g.get("date")),
        reverse=True,
    )


def pick_joinable_duel_game(games: Iterable[DuelGame]) -> Optional[DuelGame]:
    """Newest unfinished game, else the newest game, else None."""
    ordered = sort_duel_games_by_newest(games)
    for game in ordered:
        if game.get("status") != "finished":
            return game
    return ordered[0] if ordered else None
