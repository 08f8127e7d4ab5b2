"""Read-only views over a DuelState. Nothing here mutates its input."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .roster import find_station
from .types import DuelState


@dataclass(frozen=True)
class LeaderboardRow:
    id: str
    name: str
    points: int
    wins: int
    losses: int
    # Station index, or "-" while the player waits in the queue.
    station: int | str


@dataclass(frozen=True)
class QueueRow:
    id: str
    name: str
    position: int
    desired_station: Optional[int]


def get_station_players(state: DuelState | None, station_index: int) -> List[str]:
    station = find_station(state or {}, station_index)
    if station is None:
        return []
    return list(station.get("players") or [])


def get_opponent_id(state: DuelState | None, player_id: str) -> Optional[str]:
    player = ((state or {}).get("players") or {}).get(player_id)
    if not player or not player.get("station_index"):
        return None
    station = find_station(state, player["station_index"])
    if station is None:
        return None
    return next((pid for pid in station.get("players") or [] if pid != player_id), None)


def has_pending_submission(state: DuelState | None, station_index: int, player_id: str) -> bool:
    pending = ((state or {}).get("pending") or {}).get(str(station_index)) or {}
    return player_id in (pending.get("submissions") or {})


def is_station_ready(state: DuelState | None, station_index: int) -> bool:
    """True only when both seats are taken and both players confirmed readiness."""
    station = find_station(state or {}, station_index)
    if station is None or len(station.get("players") or []) < 2:
        return False
    players = state.get("players") or {}
    return all((players.get(pid) or {}).get("ready") for pid in station["players"])


def get_leaderboard_rows(state: DuelState | None) -> List[LeaderboardRow]:
    """Every player, points descending; equal points keep join (insertion) order."""
    rows = [
        LeaderboardRow(
            id=player["id"],
            name=player.get("name") or "",
            points=player.get("points") or 0,
            wins=player.get("wins") or 0,
            losses=player.get("losses") or 0,
            station=player.get("station_index") or "-",
        )
        for player in ((state or {}).get("players") or {}).values()
    ]
    return sorted(rows, key=lambda row: -row.points)


def get_queue_players(state: DuelState | None) -> List[QueueRow]:
    players = (state or {}).get("players") or {}
    rows: List[QueueRow] = []
    for position, player_id in enumerate((state or {}).get("queue") or [], start=1):
        player = players.get(player_id) or {}
        rows.append(
            QueueRow(
                id=player_id,
                name=player.get("name") or player_id,
                position=position,
                desired_station=player.get("desired_station"),
            )
        )
    return rows
