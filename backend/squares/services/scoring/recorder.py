"""Persistence for win events and the score-change ledger.

Both writes are insert-if-absent. The unique constraints on
``winner.dedupe_key`` and ``(score_change.game_id, sequence)`` are the real
guard when two pollers race; the pre-checks only keep the common path free
of exceptions.
"""
import json
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from squares import db
from squares.models import ScoreChange, Winner
from .engine import ScoreChangeRecord, WinEvent
from .errors import ConcurrencyInvariantError
from .grid import Cell


@dataclass(frozen=True)
class RecordResult:
    inserted: bool


def record(event: WinEvent) -> RecordResult:
    key = event.dedupe_key_str
    if Winner.query.filter_by(dedupe_key=key).first() is not None:
        current_app.logger.info(f'[winner-exists] key={key}')
        return RecordResult(inserted=False)

    winner = Winner(
        game_id=event.game_id,
        dedupe_key=key,
        win_type=event.win_type,
        sequence=event.sequence,
        row_index=event.cell.row_index if event.cell else None,
        col_index=event.cell.col_index if event.cell else None,
        payout=event.payout,
        winner_name=event.participant_label,
        home_score=event.home_score,
        away_score=event.away_score,
    )
    db.session.add(winner)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with another writer for the same milestone
        db.session.rollback()
        current_app.logger.info(f'[winner-conflict] key={key} treated as no-op')
        return RecordResult(inserted=False)
    current_app.logger.info(
        f'[winner] key={key} name={event.participant_label} score={event.home_score}-{event.away_score} payout={event.payout}'
    )
    return RecordResult(inserted=True)


def load_win_events(game_ids: Iterable[int]) -> List[WinEvent]:
    ids = list(game_ids)
    if not ids:
        return []
    rows = Winner.query.filter(Winner.game_id.in_(ids)).order_by(Winner.id.asc()).all()
    return [
        WinEvent(
            game_id=row.game_id,
            win_type=row.win_type,
            cell=Cell(row.row_index, row.col_index) if row.row_index is not None else None,
            payout=row.payout,
            participant_label=row.winner_name,
            home_score=row.home_score,
            away_score=row.away_score,
            sequence=row.sequence,
        )
        for row in rows
    ]


def delete_game_winners(game_id: int) -> int:
    deleted = Winner.query.filter_by(game_id=game_id).delete()
    db.session.commit()
    return deleted


def _to_record(row: ScoreChange) -> ScoreChangeRecord:
    return ScoreChangeRecord(
        game_id=row.game_id,
        home_score=row.home_score,
        away_score=row.away_score,
        sequence=row.sequence,
        period_markers=frozenset(row.markers()),
    )


def load_ledger(game_id: int) -> Tuple[ScoreChangeRecord, ...]:
    rows = ScoreChange.query.filter_by(game_id=game_id).order_by(ScoreChange.sequence.asc()).all()
    return tuple(_to_record(r) for r in rows)


def latest_entry(game_id: int) -> Optional[ScoreChangeRecord]:
    row = ScoreChange.query.filter_by(game_id=game_id).order_by(ScoreChange.sequence.desc()).first()
    return _to_record(row) if row else None


def _existing_matches(entry: ScoreChangeRecord) -> Optional[bool]:
    row = ScoreChange.query.filter_by(game_id=entry.game_id, sequence=entry.sequence).first()
    if row is None:
        return None
    if (row.home_score, row.away_score) == entry.score:
        return True
    raise ConcurrencyInvariantError(
        f'ledger seq={entry.sequence} already holds {row.home_score}-{row.away_score}, '
        f'refusing {entry.home_score}-{entry.away_score}',
        game_id=entry.game_id,
    )


def append_score_change(entry: ScoreChangeRecord) -> RecordResult:
    """Append one ledger entry.

    Re-appending an identical entry is a no-op. A different score at an
    occupied sequence, or a sequence that would leave a gap, raises
    ``ConcurrencyInvariantError``.
    """
    if _existing_matches(entry):
        return RecordResult(inserted=False)

    latest = latest_entry(entry.game_id)
    expected = latest.sequence + 1 if latest else 0
    if entry.sequence != expected:
        raise ConcurrencyInvariantError(
            f'ledger gap: expected seq={expected}, got seq={entry.sequence}', game_id=entry.game_id
        )

    db.session.add(ScoreChange(
        game_id=entry.game_id,
        sequence=entry.sequence,
        home_score=entry.home_score,
        away_score=entry.away_score,
        period_markers=json.dumps(sorted(entry.period_markers)),
    ))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if _existing_matches(entry):
            return RecordResult(inserted=False)
        raise
    return RecordResult(inserted=True)
