import pytest

from squares import db
from squares.models import ScoreChange, Winner
from squares.services.scoring import recorder
from squares.services.scoring.engine import UNCLAIMED, ScoreChangeRecord, WinEvent
from squares.services.scoring.errors import ConcurrencyInvariantError
from squares.services.scoring.grid import Cell


@pytest.fixture()
def game(make_pool, make_game):
    return make_game(make_pool(scoring_mode='score_change'))


def test_record_is_idempotent(game):
    event = WinEvent(game.id, 'score_change', Cell(7, 0), 1, 'r7c0', 7, 0, sequence=1)
    assert recorder.record(event).inserted
    assert not recorder.record(event).inserted
    assert Winner.query.filter_by(game_id=game.id).count() == 1
    assert Winner.query.first().dedupe_key == f'{game.id}:score_change:1'


def test_record_lost_race_is_a_noop(game, monkeypatch):
    event = WinEvent(game.id, 'q1', Cell(7, 3), 50, 'r7c3', 7, 3)
    assert recorder.record(event).inserted

    class _NoPrecheck:
        def filter_by(self, **kwargs):
            return self

        def first(self):
            return None

    # the pre-check misses, so the unique constraint has to catch it
    monkeypatch.setattr(Winner, 'query', _NoPrecheck())
    assert not recorder.record(event).inserted
    monkeypatch.undo()
    assert Winner.query.filter_by(game_id=game.id).count() == 1


def test_unclaimed_win_is_stored_without_cell(game):
    recorder.record(WinEvent(game.id, 'q1', None, 50, UNCLAIMED, 7, 3))
    stored = Winner.query.filter_by(game_id=game.id).one()
    assert stored.to_dict()['cell'] is None
    assert stored.winner_name == 'Unclaimed'
    loaded = recorder.load_win_events([game.id])
    assert loaded[0].cell is None


def test_ledger_append_and_load(game):
    assert recorder.append_score_change(ScoreChangeRecord(game.id, 0, 0, 0, frozenset({'kickoff'}))).inserted
    assert recorder.append_score_change(ScoreChangeRecord(game.id, 7, 0, 1, frozenset({'q1'}))).inserted
    # same entry again is fine
    assert not recorder.append_score_change(ScoreChangeRecord(game.id, 7, 0, 1)).inserted

    ledger = recorder.load_ledger(game.id)
    assert [(r.sequence, r.score) for r in ledger] == [(0, (0, 0)), (1, (7, 0))]
    assert ledger[1].period_markers == frozenset({'q1'})
    assert recorder.latest_entry(game.id).sequence == 1


def test_ledger_rejects_gap(game):
    recorder.append_score_change(ScoreChangeRecord(game.id, 0, 0, 0))
    with pytest.raises(ConcurrencyInvariantError):
        recorder.append_score_change(ScoreChangeRecord(game.id, 7, 3, 2))
    assert ScoreChange.query.filter_by(game_id=game.id).count() == 1


def test_ledger_rejects_conflicting_entry(game):
    recorder.append_score_change(ScoreChangeRecord(game.id, 0, 0, 0))
    recorder.append_score_change(ScoreChangeRecord(game.id, 7, 0, 1))
    with pytest.raises(ConcurrencyInvariantError):
        recorder.append_score_change(ScoreChangeRecord(game.id, 0, 7, 1))


def test_delete_game_winners(game):
    recorder.record(WinEvent(game.id, 'q1', Cell(1, 1), None, 'r1c1', 1, 1))
    recorder.record(WinEvent(game.id, 'q3', Cell(2, 1), None, 'r2c1', 2, 1))
    assert recorder.delete_game_winners(game.id) == 2
    assert db.session.query(Winner).count() == 0
