"""Type definitions for duel ladder documents and commands."""
from __future__ import annotations

from typing import Dict, List, Optional, TypedDict


class DuelPlayer(TypedDict, total=False):
    """A player entry in the players map."""
    id: str
    name: str
    email: Optional[str]
    joined_at: str
    station_index: Optional[int]  # None while queued/unassigned
    distance: int  # Always within [DUEL_START_DISTANCE, DUEL_MAX_DISTANCE]
    points: int
    wins: int
    losses: int
    ready: bool
    status: str  # 'waiting' | 'station'
    desired_station: Optional[int]


class Station(TypedDict):
    """A ladder rung. Index 1 is the top of the ladder."""
    index: int
    players: List[str]  # At most two ids
    round_id: int
    last_resolved_round: int


class Submission(TypedDict):
    made: int
    distance: int
    submitted_at: str


class SnapshotPlayer(TypedDict, total=False):
    distance: int
    points: int
    wins: int
    losses: int
    station_index: Optional[int]
    status: str
    ready: bool


class RoundSnapshot(TypedDict, total=False):
    """Solo-mode copy of both players and game status taken right before a round is applied."""
    game_status: Optional[str]
    winner_id: Optional[str]
    ended_at: Optional[str]
    players: Dict[str, SnapshotPlayer]


class PendingRound(TypedDict, total=False):
    round_id: int
    submissions: Dict[str, Submission]
    resolved: bool
    snapshot: RoundSnapshot


class LogEntry(TypedDict, total=False):
    id: str  # "<station>-<round>"
    ts: str
    station: int
    players: List[str]
    scores: Dict[str, int]
    distances: Dict[str, int]
    result: str  # 'tie' or the winner id
    points: int  # Only present on wins


class DuelState(TypedDict):
    """
    Root aggregate stored under game["state"].

    pending is keyed by str(station_index) so the document survives a JSON
    round trip through the store unchanged.
    """
    players: Dict[str, DuelPlayer]
    stations: List[Station]
    queue: List[str]
    pending: Dict[str, PendingRound]
    log: List[LogEntry]


class DuelGame(TypedDict, total=False):
    """
    Host game record. The engine reads station_count/mode/disc_count from it
    and writes status/winner_id/ended_at back in solo mode.
    """
    id: str
    name: str
    pin: str
    disc_count: int
    station_count: int
    mode: str  # 'solo' | 'host'
    status: str  # 'lobby' | 'active' | 'finished'
    host_user: Optional[str]
    created_at: str
    started_at: Optional[str]
    ended_at: Optional[str]
    winner_id: Optional[str]
    participant_uids: List[str]
    participant_emails: List[str]
    participant_names: List[str]
    state: DuelState


class CommandPayload(TypedDict, total=False):
    """
    TypedDict for command payloads sent to apply_duel_command().

    Fields vary by command type.
    """
    # Common
    type: str
    playerId: Optional[str]

    # ADD_PLAYER
    player: Optional[dict]

    # SUBMIT_SCORE
    made: Optional[int]

    # UNDO_SUBMISSION
    stationIndex: Optional[int]

    # SET_STATION_COUNT
    stationCount: Optional[int]

    # Optional clock override (ISO timestamp) for deterministic replays
    now: Optional[str]
