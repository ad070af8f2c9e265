import pytest

from squares.services.live.snapshot import GameSnapshot, GameStatus, PeriodScore
from squares.services.scoring.engine import (
    UNCLAIMED, EngineState, PayoutTable, PoolScoring, ScoreChangeRecord, ScoringMode, WinEvent, determine_winners,
    replay_ledger,
)
from squares.services.scoring.errors import ConcurrencyInvariantError
from squares.services.scoring.grid import Cell, GridConfig

GAME_ID = 1
ALL_OWNED = {Cell(r, c): f'r{r}c{c}' for r in range(10) for c in range(10)}


def pool(mode, reverse=False, owners=None, **payouts):
    return PoolScoring(
        mode=ScoringMode(mode),
        grid=GridConfig.sequential(),
        reverse_scoring=reverse,
        payouts=PayoutTable(**payouts),
        owners=ALL_OWNED if owners is None else owners,
    )


def snap(home, away, status=GameStatus.IN_PROGRESS, period=1, **period_scores):
    scores = {int(k[1:]): PeriodScore(*v) for k, v in period_scores.items()}
    return GameSnapshot(status=status, home_score=home, away_score=away, period=period, period_scores=scores)


def ledger(*scores):
    return tuple(ScoreChangeRecord(GAME_ID, h, a, seq) for seq, (h, a) in enumerate(scores))


def test_q1_fires_once_period_two_starts():
    result = determine_winners(GAME_ID, snap(7, 3, period=2, p1=(7, 3)), EngineState(), pool('quarter', q1=50))
    assert [(e.win_type, e.cell, e.payout) for e in result.events] == [('q1', Cell(7, 3), 50)]
    assert result.last_scored_period == 1

    again = determine_winners(GAME_ID, snap(10, 3, period=2, p1=(7, 3)),
                              EngineState(last_scored_period=1, status=GameStatus.IN_PROGRESS), pool('quarter'))
    assert again.events == []
    assert again.last_scored_period == 1


def test_quarter_waits_during_first_period():
    result = determine_winners(GAME_ID, snap(7, 0, period=1), EngineState(), pool('quarter'))
    assert result.events == []
    assert result.last_scored_period == 0


def test_final_snapshot_fires_every_remaining_boundary():
    snapshot = snap(24, 17, status=GameStatus.FINAL, period=4, p1=(7, 3), p2=(14, 10), p3=(21, 10))
    result = determine_winners(GAME_ID, snapshot, EngineState(last_scored_period=1), pool('quarter'))
    assert [(e.win_type, e.cell) for e in result.events] == [
        ('halftime', Cell(4, 0)),
        ('q3', Cell(1, 0)),
        ('normal', Cell(4, 7)),
    ]
    assert result.last_scored_period == 4
    assert result.terminal


def test_reverse_scoring_adds_swapped_cell():
    result = determine_winners(GAME_ID, snap(7, 3, period=2, p1=(7, 3)), EngineState(),
                               pool('quarter', reverse=True))
    assert [(e.win_type, e.cell) for e in result.events] == [('q1', Cell(7, 3)), ('q1_reverse', Cell(3, 7))]


def test_reverse_scoring_skips_matching_digits():
    result = determine_winners(GAME_ID, snap(7, 7, period=2, p1=(7, 7)), EngineState(),
                               pool('quarter', reverse=True))
    assert [e.win_type for e in result.events] == ['q1']


def test_unowned_cell_is_unclaimed():
    owners = dict(ALL_OWNED)
    del owners[Cell(7, 3)]
    result = determine_winners(GAME_ID, snap(7, 3, period=2, p1=(7, 3)), EngineState(), pool('quarter', owners=owners))
    event = result.events[0]
    assert event.cell is None
    assert event.participant_label == UNCLAIMED


def test_score_change_kickoff_then_each_change():
    config = pool('score_change', final_bonus=100)

    first = determine_winners(GAME_ID, snap(0, 0), EngineState(status=GameStatus.IN_PROGRESS), config)
    assert [(r.sequence, r.score) for r in first.ledger_appends] == [(0, (0, 0))]
    assert [(e.win_type, e.sequence, e.payout) for e in first.events] == [('score_change', 0, 0)]

    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0)))
    second = determine_winners(GAME_ID, snap(7, 0), state, config)
    assert [(r.sequence, r.score) for r in second.ledger_appends] == [(1, (7, 0))]
    assert [(e.cell, e.payout) for e in second.events] == [(Cell(7, 0), 1)]

    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0), (7, 0)))
    repeat = determine_winners(GAME_ID, snap(7, 0), state, config)
    assert repeat.events == []
    assert repeat.ledger_appends == []


def test_first_snapshot_after_kickoff_gets_both_entries():
    result = determine_winners(GAME_ID, snap(7, 0), EngineState(status=GameStatus.IN_PROGRESS), pool('score_change'))
    assert [r.sequence for r in result.ledger_appends] == [0, 1]
    assert [e.payout for e in result.events] == [0, 1]


def test_score_change_final_bonus():
    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0), (7, 0), (7, 3)))
    result = determine_winners(GAME_ID, snap(7, 3, status=GameStatus.FINAL, period=4), state,
                               pool('score_change', final_bonus=100))
    assert result.ledger_appends == []
    assert [(e.win_type, e.sequence, e.payout) for e in result.events] == [('score_change_final', None, 100)]

    finished = EngineState(status=GameStatus.FINAL, ledger=state.ledger)
    assert determine_winners(GAME_ID, snap(7, 3, status=GameStatus.FINAL, period=4), finished,
                             pool('score_change', final_bonus=100)).events == []


def test_scheduled_game_scores_nothing():
    result = determine_winners(GAME_ID, snap(0, 0, status=GameStatus.SCHEDULED, period=0), EngineState(),
                               pool('score_change'))
    assert result.events == []
    assert result.ledger_appends == []


def test_decreasing_score_is_rejected():
    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0), (7, 0)))
    result = determine_winners(GAME_ID, snap(3, 0), state, pool('score_change'))
    assert result.rejected
    assert result.events == []
    assert not result.terminal


def test_decreasing_score_allowed_as_override():
    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0), (7, 0)))
    result = determine_winners(GAME_ID, snap(3, 0), state, pool('score_change'), allow_score_decrease=True)
    assert [(r.sequence, r.score) for r in result.ledger_appends] == [(2, (3, 0))]


def test_missing_scores_are_rejected():
    snapshot = GameSnapshot(status=GameStatus.IN_PROGRESS, home_score=None, away_score=None, period=2)
    result = determine_winners(GAME_ID, snapshot, EngineState(last_scored_period=0), pool('quarter'))
    assert result.rejected
    assert result.last_scored_period == 0


def test_ledger_gap_raises():
    broken = (ScoreChangeRecord(GAME_ID, 0, 0, 0), ScoreChangeRecord(GAME_ID, 7, 0, 2))
    with pytest.raises(ConcurrencyInvariantError):
        determine_winners(GAME_ID, snap(7, 3), EngineState(status=GameStatus.IN_PROGRESS, ledger=broken),
                          pool('score_change'))


def test_hybrid_runs_both_machines():
    state = EngineState(status=GameStatus.IN_PROGRESS, ledger=ledger((0, 0), (7, 0)))
    result = determine_winners(GAME_ID, snap(7, 3, period=2, p1=(7, 0)), state, pool('hybrid', q1=25))
    assert [(e.win_type, e.payout) for e in result.events] == [('hybrid_q1', 25), ('score_change', 2)]
    assert [r.sequence for r in result.ledger_appends] == [2]


def test_replay_ledger_rebuilds_score_change_wins():
    events = replay_ledger(GAME_ID, ledger((0, 0), (7, 0), (7, 3)), pool('score_change', reverse=True))
    assert [(e.win_type, e.sequence) for e in events] == [
        ('score_change', 0),
        ('score_change', 1),
        ('score_change_reverse', 1),
        ('score_change', 2),
        ('score_change_reverse', 2),
    ]


def test_dedupe_key():
    quarter = WinEvent(GAME_ID, 'q1', Cell(7, 3), 50, 'r7c3', 7, 3)
    change = WinEvent(GAME_ID, 'score_change', Cell(7, 0), 1, 'r7c0', 7, 0, sequence=1)
    assert quarter.dedupe_key == (1, 'q1')
    assert change.dedupe_key_str == '1:score_change:1'


def test_finished_game_ignores_later_provider_scores():
    state = EngineState(status=GameStatus.FINAL, ledger=ledger((0, 0), (7, 0), (7, 3)))
    result = determine_winners(GAME_ID, snap(10, 3, status=GameStatus.FINAL, period=4), state,
                               pool('score_change', final_bonus=100))
    assert result.ledger_appends == []
    assert result.events == []
