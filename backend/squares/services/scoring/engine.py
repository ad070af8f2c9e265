"""Winner determination.

Pure functions: given the latest snapshot, what has already been scored for
the game, and the pool's scoring configuration, work out which win events
and ledger entries the snapshot implies. Nothing here touches the database;
``processor`` persists the result.

Re-feeding a snapshot that was already processed yields the same candidates
at most, never new ones: quarter boundaries are guarded by the watermark and
score changes by the ledger. The recorder's dedupe key catches the rest.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from squares.services.live.snapshot import GameSnapshot, GameStatus, PeriodScore
from .errors import ConcurrencyInvariantError, ValidationError
from .grid import Cell, GridConfig, resolve_cells
from .rounds import reverse_win_type

logger = logging.getLogger(__name__)

UNCLAIMED = 'Unclaimed'


class ScoringMode(str, Enum):
    QUARTER = 'quarter'
    SCORE_CHANGE = 'score_change'
    HYBRID = 'hybrid'


@dataclass(frozen=True)
class PayoutTable:
    q1: Optional[float] = None
    halftime: Optional[float] = None
    q3: Optional[float] = None
    final: Optional[float] = None
    per_change: Optional[float] = None
    final_bonus: Optional[float] = None


@dataclass(frozen=True)
class PoolScoring:
    mode: ScoringMode
    grid: GridConfig
    reverse_scoring: bool = False
    payouts: PayoutTable = field(default_factory=PayoutTable)
    # participant name per owned cell
    owners: Mapping[Cell, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WinEvent:
    game_id: int
    win_type: str
    cell: Optional[Cell]
    payout: Optional[float]
    participant_label: str
    home_score: int
    away_score: int
    sequence: Optional[int] = None

    @property
    def dedupe_key(self) -> Tuple:
        if self.sequence is None:
            return (self.game_id, self.win_type)
        return (self.game_id, self.win_type, self.sequence)

    @property
    def dedupe_key_str(self) -> str:
        return ':'.join(str(part) for part in self.dedupe_key)


@dataclass(frozen=True)
class ScoreChangeRecord:
    game_id: int
    home_score: int
    away_score: int
    sequence: int
    period_markers: FrozenSet[str] = frozenset()

    @property
    def score(self) -> Tuple[int, int]:
        return (self.home_score, self.away_score)


@dataclass(frozen=True)
class EngineState:
    """What has already been scored for a game."""
    last_scored_period: int = 0
    status: GameStatus = GameStatus.SCHEDULED
    ledger: Tuple[ScoreChangeRecord, ...] = ()


@dataclass
class EngineResult:
    events: List[WinEvent] = field(default_factory=list)
    ledger_appends: List[ScoreChangeRecord] = field(default_factory=list)
    last_scored_period: int = 0
    status: GameStatus = GameStatus.SCHEDULED
    rejected: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.rejected is None and self.status == GameStatus.FINAL


# (period, win type, payout attribute); period 4 means the final score
QUARTER_BOUNDARIES = (
    (1, 'q1', 'q1'),
    (2, 'halftime', 'halftime'),
    (3, 'q3', 'q3'),
    (4, 'normal', 'final'),
)

HYBRID_WIN_TYPES = {'q1': 'hybrid_q1', 'halftime': 'hybrid_halftime', 'q3': 'hybrid_q3', 'normal': 'hybrid_final'}


def check_ledger(ledger: Sequence[ScoreChangeRecord], game_id=None) -> None:
    """Sequence numbers must run 0, 1, 2... with no gap or repeat."""
    for expected, record in enumerate(ledger):
        if record.sequence != expected:
            raise ConcurrencyInvariantError(
                f'ledger sequence broken at position {expected}: found {record.sequence}', game_id=game_id
            )


def period_markers(snapshot: GameSnapshot) -> FrozenSet[str]:
    markers = set()
    if 1 <= snapshot.period <= 4:
        markers.add(f'q{snapshot.period}')
    elif snapshot.period > 4:
        markers.add('ot')
    if snapshot.is_halftime:
        markers.add('halftime')
    if snapshot.is_final:
        markers.add('final')
    return frozenset(markers)


def win_events_for_score(game_id: int, pool: PoolScoring, home_score: int, away_score: int,
                         win_type: str, payout: Optional[float], sequence: Optional[int] = None) -> List[WinEvent]:
    """Forward event plus, when enabled and the cells differ, its reverse."""
    forward, reverse = resolve_cells(home_score, away_score, pool.grid)
    events = [_win_event(game_id, pool, forward, win_type, payout, home_score, away_score, sequence)]
    if pool.reverse_scoring and reverse is not None:
        events.append(
            _win_event(game_id, pool, reverse, reverse_win_type(win_type), payout, home_score, away_score, sequence)
        )
    return events


def _win_event(game_id, pool, cell, win_type, payout, home_score, away_score, sequence):
    owner = pool.owners.get(cell)
    return WinEvent(
        game_id=game_id,
        win_type=win_type,
        cell=cell if owner else None,
        payout=payout,
        participant_label=owner or UNCLAIMED,
        home_score=home_score,
        away_score=away_score,
        sequence=sequence,
    )


def _quarter_events(game_id: int, snapshot: GameSnapshot, state: EngineState,
                    pool: PoolScoring, hybrid: bool) -> Tuple[List[WinEvent], int]:
    events = []
    watermark = state.last_scored_period
    for period, win_type, payout_attr in QUARTER_BOUNDARIES:
        if watermark >= period:
            continue
        if period < 4:
            crossed = snapshot.is_final or snapshot.period > period
            score = snapshot.score_at(period)
        else:
            crossed = snapshot.is_final
            score = PeriodScore(snapshot.home_score, snapshot.away_score) if snapshot.has_scores else None
        if not crossed:
            continue
        if score is None:
            logger.info(f'[quarter-skip] game={game_id} period={period} no sub-score in snapshot')
            continue
        tag = HYBRID_WIN_TYPES[win_type] if hybrid else win_type
        logger.info(f'[quarter] game={game_id} {tag} score={score.home}-{score.away}')
        events.extend(
            win_events_for_score(game_id, pool, score.home, score.away, tag, getattr(pool.payouts, payout_attr))
        )
        watermark = period
    return events, watermark


def _score_change_events(game_id: int, snapshot: GameSnapshot, state: EngineState, pool: PoolScoring,
                         allow_score_decrease: bool) -> Tuple[List[WinEvent], List[ScoreChangeRecord]]:
    if snapshot.status == GameStatus.SCHEDULED:
        return [], []
    if state.status == GameStatus.FINAL:
        # a finished game is only changed through recompute
        return [], []
    ledger = state.ledger
    check_ledger(ledger, game_id)
    appends: List[ScoreChangeRecord] = []
    seen = {record.score for record in ledger}
    last = ledger[-1] if ledger else None

    if last is None:
        # the 0-0 kickoff always opens the ledger
        last = ScoreChangeRecord(game_id, 0, 0, 0, frozenset({'kickoff'}))
        appends.append(last)
        seen.add(last.score)

    current = (snapshot.home_score, snapshot.away_score)
    if current not in seen:
        if not allow_score_decrease and (current[0] < last.home_score or current[1] < last.away_score):
            raise ValidationError(
                f'score decreased from {last.home_score}-{last.away_score} to {current[0]}-{current[1]}',
                game_id=game_id,
            )
        appends.append(ScoreChangeRecord(game_id, current[0], current[1], last.sequence + 1, period_markers(snapshot)))

    events = []
    for record in appends:
        logger.info(f'[score-change] game={game_id} seq={record.sequence} score={record.home_score}-{record.away_score}')
        events.extend(win_events_for_score(
            game_id, pool, record.home_score, record.away_score, 'score_change', record.sequence, record.sequence
        ))

    if snapshot.is_final and state.status != GameStatus.FINAL:
        logger.info(f'[score-change-final] game={game_id} score={current[0]}-{current[1]}')
        events.extend(win_events_for_score(
            game_id, pool, current[0], current[1], 'score_change_final', pool.payouts.final_bonus
        ))
    return events, appends


def determine_winners(game_id: int, snapshot: GameSnapshot, state: EngineState, pool: PoolScoring,
                      allow_score_decrease: bool = False) -> EngineResult:
    """Run the pool's scoring state machine(s) against one snapshot.

    A malformed snapshot, or a score that went backwards, produces a rejected
    result with no events; the caller keeps its previous state. A broken
    ledger raises ``ConcurrencyInvariantError``.
    """
    unchanged = EngineResult(last_scored_period=state.last_scored_period, status=state.status)
    try:
        snapshot.validate()
        events, appends = [], []
        if pool.mode in (ScoringMode.SCORE_CHANGE, ScoringMode.HYBRID):
            events, appends = _score_change_events(game_id, snapshot, state, pool, allow_score_decrease)
    except ValidationError as exc:
        logger.warning(f'[engine-reject] game={game_id} {exc.message}')
        unchanged.rejected = exc.message
        return unchanged

    watermark = state.last_scored_period
    if pool.mode in (ScoringMode.QUARTER, ScoringMode.HYBRID):
        quarter_events, watermark = _quarter_events(
            game_id, snapshot, state, pool, hybrid=pool.mode == ScoringMode.HYBRID
        )
        events = quarter_events + events

    return EngineResult(
        events=events,
        ledger_appends=appends,
        last_scored_period=watermark,
        status=snapshot.status,
    )


def replay_ledger(game_id: int, ledger: Sequence[ScoreChangeRecord], pool: PoolScoring) -> List[WinEvent]:
    """Win events for every entry of an existing ledger, in sequence order."""
    check_ledger(ledger, game_id)
    events = []
    for record in ledger:
        events.extend(win_events_for_score(
            game_id, pool, record.home_score, record.away_score, 'score_change', record.sequence, record.sequence
        ))
    return events


def owners_from_squares(squares) -> Dict[Cell, str]:
    return {
        Cell(sq.row_index, sq.col_index): sq.participant_name
        for sq in squares if sq.participant_name
    }
