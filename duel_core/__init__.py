from .commands import CommandOutcome, apply_duel_command
from .games import (
    build_duel_participant_fields,
    create_duel_game,
    create_random_duel_pin,
    end_game,
    is_user_in_duel_game,
    join_duel_game,
    pick_joinable_duel_game,
    sort_duel_games_by_newest,
    start_game,
)
from .queries import (
    LeaderboardRow,
    QueueRow,
    get_leaderboard_rows,
    get_opponent_id,
    get_queue_players,
    get_station_players,
    has_pending_submission,
    is_station_ready,
)
from .roster import (
    DUEL_MAX_DISTANCE,
    DUEL_START_DISTANCE,
    add_player_to_state,
    create_empty_duel_state,
    initialize_duel_game_state,
    mark_player_ready,
    resize_stations,
    start_duel_game,
)
from .rounds import (
    RoundOutcome,
    Tie,
    Win,
    is_solo_mode,
    resolve_round,
    round_outcome,
    submit_duel_score,
    undo_submission,
)
from .types import CommandPayload, DuelGame, DuelPlayer, DuelState, LogEntry, PendingRound, Station
from .validation import DuelGameConfig, InputSanitizer, ValidatedDuelCmd

__all__ = [
    "CommandOutcome",
    "CommandPayload",
    "DuelGame",
    "DuelPlayer",
    "DuelState",
    "LogEntry",
    "PendingRound",
    "Station",
    "apply_duel_command",
    "DUEL_MAX_DISTANCE",
    "DUEL_START_DISTANCE",
    "create_empty_duel_state",
    "add_player_to_state",
    "initialize_duel_game_state",
    "start_duel_game",
    "mark_player_ready",
    "resize_stations",
    "submit_duel_score",
    "undo_submission",
    "is_solo_mode",
    "resolve_round",
    "round_outcome",
    "RoundOutcome",
    "Tie",
    "Win",
    "get_station_players",
    "get_opponent_id",
    "has_pending_submission",
    "is_station_ready",
    "get_leaderboard_rows",
    "get_queue_players",
    "LeaderboardRow",
    "QueueRow",
    "create_duel_game",
    "create_random_duel_pin",
    "join_duel_game",
    "start_game",
    "end_game",
    "build_duel_participant_fields",
    "is_user_in_duel_game",
    "sort_duel_games_by_newest",
    "pick_joinable_duel_game",
    "DuelGameConfig",
    "ValidatedDuelCmd",
    "InputSanitizer",
]
