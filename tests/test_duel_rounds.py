import pytest

from duel_core import (
    DUEL_MAX_DISTANCE,
    DUEL_START_DISTANCE,
    Tie,
    Win,
    add_player_to_state,
    create_empty_duel_state,
    mark_player_ready,
    resolve_round,
    round_outcome,
    start_duel_game,
    submit_duel_score,
    undo_submission,
)

NOW = "2026-01-25T10:00:00.000Z"


def _started_game(player_ids, station_count=1, mode="host"):
    state = create_empty_duel_state(station_count)
    for i, pid in enumerate(player_ids):
        state = add_player_to_state(
            state,
            {"id": pid, "name": pid.upper(), "joined_at": f"2026-01-25T09:00:{i:02d}.000Z"},
        )
    game = {"station_count": station_count, "mode": mode, "status": "active", "state": state}
    game["state"] = start_duel_game(game)
    return game


def _ready(game, *player_ids):
    state = game["state"]
    for pid in player_ids:
        state = mark_player_ready(state, pid)
    return {**game, "state": state}


def _submit_pair(game, first, first_made, second, second_made):
    game = submit_duel_score(game, first, first_made, now=NOW)
    return submit_duel_score(game, second, second_made, now=NOW)


def _station(game, index):
    return next(s for s in game["state"]["stations"] if s["index"] == index)


def _assert_invariants(state):
    seen = set()
    for station in state["stations"]:
        assert len(station["players"]) <= 2
        for pid in station["players"]:
            assert pid not in seen
            seen.add(pid)
            assert state["players"][pid]["station_index"] == station["index"]
    for pid, player in state["players"].items():
        assert DUEL_START_DISTANCE <= player["distance"] <= DUEL_MAX_DISTANCE
        if player["station_index"] is not None:
            assert pid in seen
    assert len(state["queue"]) == len(set(state["queue"]))
    assert not seen.intersection(state["queue"])


def test_first_submission_waits_for_opponent():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    out = submit_duel_score(game, "a", 2, now=NOW)

    pending = out["state"]["pending"]["1"]
    assert pending["round_id"] == 1
    assert pending["submissions"]["a"] == {"made": 2, "distance": 5, "submitted_at": NOW}
    assert out["state"]["log"] == []
    assert "1" not in game["state"]["pending"]  # input untouched


def test_tie_logs_and_clears_pending_without_scoring():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    out = _submit_pair(game, "a", 2, "b", 2)
    state = out["state"]

    assert state["log"][-1]["result"] == "tie"
    assert "points" not in state["log"][-1]
    assert state["pending"] == {}
    for pid in ("a", "b"):
        assert state["players"][pid]["points"] == 0
        assert state["players"][pid]["wins"] == 0
        assert state["players"][pid]["losses"] == 0
        assert state["players"][pid]["distance"] == DUEL_START_DISTANCE
    assert _station(out, 1)["round_id"] == 1
    assert _station(out, 1)["last_resolved_round"] == 1


def test_sub_max_win_steps_winner_back():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    game["state"]["players"]["a"]["distance"] = 7
    out = _submit_pair(game, "a", 3, "b", 1)
    players = out["state"]["players"]

    assert players["a"]["distance"] == 8
    assert players["a"]["points"] == 1
    assert players["a"]["wins"] == 1
    assert players["b"]["losses"] == 1
    assert players["b"]["distance"] == DUEL_START_DISTANCE
    assert _station(out, 1)["players"] == ["a", "b"]
    assert out["state"]["log"][-1]["result"] == "a"
    assert out["state"]["log"][-1]["points"] == 1
    assert out["state"]["log"][-1]["distances"] == {"a": 7, "b": 5}


def test_max_distance_win_with_full_targets_queues_both_players():
    game = _started_game(["a", "b", "c", "d", "e", "f"], station_count=3)
    game = _ready(game, "c", "d")
    game["state"]["players"]["c"]["distance"] = DUEL_MAX_DISTANCE
    out = _submit_pair(game, "c", 3, "d", 0)
    state = out["state"]

    assert state["players"]["c"]["points"] == 2
    assert state["players"]["c"]["wins"] == 1
    assert state["players"]["d"]["losses"] == 1
    assert state["queue"] == ["c", "d"]
    assert state["players"]["c"]["desired_station"] == 1
    assert state["players"]["d"]["desired_station"] == 3
    assert state["players"]["c"]["station_index"] is None
    assert _station(out, 1)["players"] == ["a", "b"]
    assert _station(out, 2)["players"] == []
    assert _station(out, 3)["players"] == ["e", "f"]
    assert state["log"][-1]["points"] == 2
    _assert_invariants(state)


def test_max_distance_win_backfills_freed_station_from_queue():
    game = _started_game(["a", "b", "c", "d", "e"], station_count=2)
    assert game["state"]["queue"] == ["e"]
    game = _ready(game, "c", "d")
    game["state"]["players"]["c"]["distance"] = DUEL_MAX_DISTANCE
    out = _submit_pair(game, "c", 3, "d", 1)
    state = out["state"]

    # Winner could not move up (station 1 full), loser reseated at the bottom
    # and the bottom-routed queued player fills the free seat.
    assert state["queue"] == ["c"]
    assert _station(out, 2)["players"] == ["d", "e"]
    assert state["players"]["d"]["distance"] == DUEL_START_DISTANCE
    assert state["players"]["d"]["ready"] is False
    assert state["players"]["e"]["station_index"] == 2
    _assert_invariants(state)


def test_max_distance_win_at_top_station_keeps_winner_on_top():
    game = _started_game(["a", "b", "c", "d"], station_count=2)
    game = _ready(game, "a", "b")
    game["state"]["players"]["a"]["distance"] = DUEL_MAX_DISTANCE
    out = _submit_pair(game, "a", 1, "b", 0)
    state = out["state"]

    assert _station(out, 1)["players"] == ["a"]
    assert state["players"]["a"]["distance"] == DUEL_START_DISTANCE
    assert state["players"]["a"]["ready"] is False
    assert state["queue"] == ["b"]
    assert state["players"]["b"]["desired_station"] == 2
    _assert_invariants(state)


def test_submission_ignored_until_both_ready():
    game = _started_game(["a", "b"])
    assert submit_duel_score(game, "a", 3, now=NOW) == game

    game = _ready(game, "a")
    assert submit_duel_score(game, "a", 3, now=NOW) == game


def test_submission_ignored_for_queued_or_lonely_players():
    game = _started_game(["a", "b", "c"])
    game = _ready(game, "a", "b", "c")
    assert submit_duel_score(game, "c", 3, now=NOW) == game
    assert submit_duel_score(game, "nobody", 3, now=NOW) == game

    lonely = _ready(_started_game(["a"]), "a")
    assert submit_duel_score(lonely, "a", 3, now=NOW) == lonely


def test_stale_round_is_rejected():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    station = _station(game, 1)
    station["round_id"] = 1
    station["last_resolved_round"] = 1
    game["state"]["pending"]["1"] = {
        "round_id": 1,
        "submissions": {"b": {"made": 1, "distance": 5, "submitted_at": NOW}},
    }

    assert submit_duel_score(game, "a", 3, now=NOW) == game


def test_undo_restores_multiplayer_submission():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    submitted = submit_duel_score(game, "a", 2, now=NOW)
    out = undo_submission(submitted, 1, "a")

    assert out["state"] == game["state"]
    assert "1" not in out["state"]["pending"]


def test_undo_without_submission_is_noop():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    assert undo_submission(game, 1, "a") == game


def test_undo_keeps_opponent_submission():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    game["state"]["pending"]["1"] = {
        "round_id": 1,
        "submissions": {
            "a": {"made": 2, "distance": 5, "submitted_at": NOW},
            "b": {"made": 1, "distance": 5, "submitted_at": NOW},
        },
    }
    out = undo_submission(game, 1, "a")
    assert list(out["state"]["pending"]["1"]["submissions"]) == ["b"]
    assert out["state"]["pending"]["1"]["resolved"] is False


def test_solo_max_distance_win_finishes_game_and_undo_restores_it():
    game = _ready(_started_game(["a", "b"], mode="solo"), "a", "b")
    game["state"]["players"]["a"]["distance"] = DUEL_MAX_DISTANCE
    out = _submit_pair(game, "a", 3, "b", 1)

    assert out["status"] == "finished"
    assert out["winner_id"] == "a"
    assert out["ended_at"] == NOW
    assert out["state"]["players"]["a"]["points"] == 2
    assert _station(out, 1)["players"] == ["a", "b"]
    pending = out["state"]["pending"]["1"]
    assert pending["resolved"] is True
    assert pending["snapshot"]["game_status"] == "active"

    undone = undo_submission(out, 1, "b")
    assert undone["status"] == "active"
    assert undone["winner_id"] is None
    assert undone["ended_at"] is None
    for pid in ("a", "b"):
        for field in ("points", "wins", "losses", "distance"):
            assert undone["state"]["players"][pid][field] == game["state"]["players"][pid][field]
    assert list(undone["state"]["pending"]["1"]["submissions"]) == ["a"]
    assert "snapshot" not in undone["state"]["pending"]["1"]


def test_solo_resubmission_replays_resolved_round():
    game = _ready(_started_game(["a", "b"], mode="solo"), "a", "b")
    game["state"]["players"]["a"]["distance"] = DUEL_MAX_DISTANCE
    finished = _submit_pair(game, "a", 3, "b", 1)

    corrected = submit_duel_score(finished, "b", 3, now=NOW)

    assert corrected["status"] == "active"
    assert corrected["winner_id"] is None
    assert corrected["state"]["players"]["a"]["points"] == 0
    assert corrected["state"]["players"]["b"]["losses"] == 0
    assert len(corrected["state"]["log"]) == 1
    assert corrected["state"]["log"][0]["result"] == "tie"
    assert corrected["state"]["pending"]["1"]["resolved"] is True


def test_solo_new_round_starts_after_distance_change():
    game = _ready(_started_game(["a", "b"], mode="solo"), "a", "b")
    out = _submit_pair(game, "a", 2, "b", 1)
    assert out["state"]["players"]["a"]["distance"] == 6
    assert out["status"] == "active"

    out = submit_duel_score(out, "a", 1, now=NOW)
    pending = out["state"]["pending"]["1"]
    assert pending["round_id"] == 2
    assert list(pending["submissions"]) == ["a"]
    assert pending["submissions"]["a"]["distance"] == 6
    assert "snapshot" not in pending


def test_multi_station_host_game_never_finishes():
    game = _ready(_started_game(["a", "b"], mode="host"), "a", "b")
    game["state"]["players"]["a"]["distance"] = DUEL_MAX_DISTANCE
    out = _submit_pair(game, "a", 3, "b", 1)
    assert out["status"] == "active"
    assert out.get("winner_id") is None


def test_ladder_invariants_hold_over_many_rounds():
    game = _started_game(["a", "b", "c", "d", "e", "f", "g"], station_count=3)
    for round_no in range(60):
        for index in (1, 2, 3):
            seats = _station(game, index)["players"]
            if len(seats) < 2:
                continue
            first, second = seats
            game = _ready(game, first, second)
            game = _submit_pair(game, first, 3, second, round_no % 4)
            _assert_invariants(game["state"])

    points = sum(p["points"] for p in game["state"]["players"].values())
    awarded = sum(entry.get("points", 0) for entry in game["state"]["log"])
    assert points == awarded
    assert any(entry.get("points") == 2 for entry in game["state"]["log"])


def test_resolve_round_and_log_outcome_are_tagged():
    subs = {
        "a": {"made": 3, "distance": 10, "submitted_at": NOW},
        "b": {"made": 1, "distance": 6, "submitted_at": NOW},
    }
    outcome = resolve_round(2, 4, "b", "a", subs)
    assert outcome == Win(
        station=2, round_id=4, winner_id="a", loser_id="b", points_awarded=2, winner_distance=10
    )
    assert outcome.at_max_distance

    subs["b"]["made"] = 3
    assert resolve_round(2, 4, "a", "b", subs) == Tie(station=2, round_id=4)


def test_round_outcome_from_log_entry():
    game = _ready(_started_game(["a", "b"]), "a", "b")
    out = _submit_pair(game, "a", 0, "b", 2)
    outcome = round_outcome(out["state"]["log"][-1])
    assert isinstance(outcome, Win)
    assert outcome.winner_id == "b"
    assert outcome.loser_id == "a"
    assert outcome.points_awarded == 1
    assert outcome.round_id == 1
    assert not outcome.at_max_distance

    tie = _submit_pair(_ready(out, "a", "b"), "a", 1, "b", 1)
    assert round_outcome(tie["state"]["log"][-1]) == Tie(station=1, round_id=2)


@pytest.mark.parametrize("distance,expected", [(5, 1), (9, 1), (10, 2)])
def test_points_awarded_by_winner_distance(distance, expected):
    game = _ready(_started_game(["a", "b"]), "a", "b")
    game["state"]["players"]["b"]["distance"] = distance
    out = _submit_pair(game, "a", 0, "b", 1)
    assert out["state"]["players"]["b"]["points"] == expected
