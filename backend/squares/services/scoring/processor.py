"""Apply snapshots to persisted games.

Every path that changes a game's score ends up in ``process_snapshot``:
provider polls, the batch poller, the commissioner's manual actions, and
``recompute_game``.
"""
import json
import time
from dataclasses import asdict, dataclass
from typing import Optional

from flask import current_app

from squares import db, socketio
from squares.models import Game
from squares.services.live.espn import EspnScoreSource
from squares.services.live.snapshot import GameSnapshot, GameStatus, PeriodScore
from .engine import (
    EngineState, PayoutTable, PoolScoring, ScoringMode, check_ledger, determine_winners, owners_from_squares,
    replay_ledger,
)
from .errors import NotFoundError, TransientProviderError, ValidationError
from .recorder import append_score_change, delete_game_winners, load_ledger, record


@dataclass
class ProcessResult:
    game_id: int
    status: str
    winners_recorded: int = 0
    ledger_entries: int = 0
    terminal: bool = False
    rejected: Optional[str] = None
    skipped: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def get_game_or_404(game_id: int) -> Game:
    game = db.session.get(Game, game_id)
    if game is None:
        raise NotFoundError(f'Game {game_id} not found', game_id=game_id)
    return game


def pool_scoring(pool) -> Optional[PoolScoring]:
    grid = pool.grid
    if grid is None:
        return None
    return PoolScoring(
        mode=ScoringMode(pool.scoring_mode),
        grid=grid,
        reverse_scoring=bool(pool.reverse_scoring),
        payouts=PayoutTable(
            q1=pool.q1_payout,
            halftime=pool.halftime_payout,
            q3=pool.q3_payout,
            final=pool.final_payout,
            per_change=pool.per_change_payout,
            final_bonus=pool.final_bonus_payout,
        ),
        owners=owners_from_squares(pool.squares.all()),
    )


def snapshot_from_game(game: Game) -> GameSnapshot:
    period_scores = {
        period: PeriodScore(int(score['home']), int(score['away']))
        for period, score in game.period_scores_dict().items()
    }
    return GameSnapshot(
        status=GameStatus(game.status or GameStatus.SCHEDULED.value),
        home_score=game.home_score,
        away_score=game.away_score,
        home_team=game.home_team or '',
        away_team=game.away_team or '',
        period=game.current_period or 0,
        clock=game.current_clock or '',
        period_scores=period_scores,
    )


def _sync_game_state(game: Game, snapshot: GameSnapshot, last_scored_period: int) -> None:
    if snapshot.home_score is not None:
        game.home_score = snapshot.home_score
    if snapshot.away_score is not None:
        game.away_score = snapshot.away_score
    if snapshot.home_team:
        game.home_team = snapshot.home_team
    if snapshot.away_team:
        game.away_team = snapshot.away_team
    game.status = snapshot.status.value
    game.current_period = snapshot.period
    game.current_clock = snapshot.clock
    game.period_scores = json.dumps({str(p): s.to_dict() for p, s in snapshot.period_scores.items()})
    game.last_scored_period = last_scored_period
    game.last_synced_at = time.time()
    game.last_error = None
    db.session.add(game)
    db.session.commit()


def _broadcast(game: Game, result: ProcessResult) -> None:
    socketio.emit('score_update', {
        'game_id': game.id,
        'status': game.status,
        'home_score': game.home_score,
        'away_score': game.away_score,
        'winners_recorded': result.winners_recorded,
    }, to=f"game:{game.id}", namespace='/ws')


def record_error(game: Game, message: str) -> None:
    game.last_error = message
    db.session.add(game)
    db.session.commit()


def process_snapshot(game: Game, snapshot: GameSnapshot, allow_score_decrease: bool = False) -> ProcessResult:
    """Run the engine for one game and persist what it found.

    Ledger entries are appended before win events so a crash in between
    leaves a ledger the next poll can continue from.
    """
    scoring = pool_scoring(game.pool)
    if scoring is None:
        current_app.logger.info(f'[process-skip] game={game.id} numbers not locked')
        return ProcessResult(game.id, game.status, terminal=snapshot.is_final, skipped='numbers not locked')

    state = EngineState(
        last_scored_period=game.last_scored_period or 0,
        status=GameStatus(game.status or GameStatus.SCHEDULED.value),
        ledger=load_ledger(game.id),
    )
    result = determine_winners(game.id, snapshot, state, scoring, allow_score_decrease=allow_score_decrease)
    if result.rejected:
        record_error(game, result.rejected)
        return ProcessResult(game.id, game.status, rejected=result.rejected)

    ledger_entries = sum(1 for entry in result.ledger_appends if append_score_change(entry).inserted)
    recorded = sum(1 for event in result.events if record(event).inserted)
    _sync_game_state(game, snapshot, result.last_scored_period)

    outcome = ProcessResult(
        game_id=game.id,
        status=game.status,
        winners_recorded=recorded,
        ledger_entries=ledger_entries,
        terminal=result.terminal,
    )
    current_app.logger.info(
        f'[process] game={game.id} status={game.status} score={game.home_score}-{game.away_score} '
        f'winners={recorded} ledger={ledger_entries}'
    )
    _broadcast(game, outcome)
    return outcome


def score_source_for(game: Game) -> EspnScoreSource:
    cfg = current_app.config
    return EspnScoreSource.from_config(cfg, sport=game.sport, session=cfg.get('SCORE_SOURCE_SESSION'))


def fetch_snapshot(game: Game) -> GameSnapshot:
    """Fetch the provider's view of a game; provider failures land in last_error."""
    if not game.external_id:
        raise ValidationError(f'Game {game.id} has no external id', game_id=game.id)
    try:
        return score_source_for(game).fetch_game(game.external_id)
    except (TransientProviderError, NotFoundError, ValidationError) as exc:
        current_app.logger.warning(f'[sync-error] game={game.id} {exc.message}')
        record_error(game, exc.message)
        raise


def sync_game(game: Game) -> ProcessResult:
    return process_snapshot(game, fetch_snapshot(game))


def recompute_game(game: Game, corrected: GameSnapshot) -> ProcessResult:
    """Wipe every win for the game and replay from the corrected snapshot.

    Quarter boundaries are re-fired from the corrected sub-scores. Continuous
    wins are replayed from the ledger, which stays as it is. This is the one
    path where a lower score than the ledger's last entry is accepted.
    """
    scoring = pool_scoring(game.pool)
    if scoring is None:
        raise ValidationError(f'numbers for game {game.id} are not locked', game_id=game.id)

    # refuse before wiping anything if the ledger cannot be replayed
    check_ledger(load_ledger(game.id), game.id)
    deleted = delete_game_winners(game.id)
    game.last_scored_period = 0
    game.status = GameStatus.SCHEDULED.value
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f'[recompute] game={game.id} deleted={deleted}')

    replayed = 0
    if scoring.mode in (ScoringMode.SCORE_CHANGE, ScoringMode.HYBRID):
        replayed = sum(1 for event in replay_ledger(game.id, load_ledger(game.id), scoring) if record(event).inserted)

    result = process_snapshot(game, corrected, allow_score_decrease=True)
    result.winners_recorded += replayed
    return result


# ---- Commissioner actions ----

def start_game(game: Game, home_team: Optional[str] = None, away_team: Optional[str] = None) -> ProcessResult:
    if game.status != GameStatus.SCHEDULED.value:
        # Idempotent start: already started
        return ProcessResult(game.id, game.status)
    snapshot = GameSnapshot(
        status=GameStatus.IN_PROGRESS,
        home_score=0,
        away_score=0,
        home_team=home_team or game.home_team or '',
        away_team=away_team or game.away_team or '',
        period=1,
        clock='15:00',
    )
    return process_snapshot(game, snapshot)


def validate_score_change(new_home: int, new_away: int, prev_home: int, prev_away: int,
                          home_team: str = 'Home', away_team: str = 'Away') -> None:
    if new_home < prev_home:
        raise ValidationError(f'{home_team} score cannot be less than {prev_home}')
    if new_away < prev_away:
        raise ValidationError(f'{away_team} score cannot be less than {prev_away}')
    if new_home != prev_home and new_away != prev_away:
        raise ValidationError('Only one team can score at a time')


def _require_started(game: Game) -> None:
    if game.status == GameStatus.SCHEDULED.value:
        raise ValidationError('Game not started. Use start_game first.', game_id=game.id)


def record_score(game: Game, home_score: int, away_score: int) -> ProcessResult:
    _require_started(game)
    prev_home, prev_away = game.home_score or 0, game.away_score or 0
    if (home_score, away_score) == (prev_home, prev_away):
        return ProcessResult(game.id, game.status)
    validate_score_change(home_score, away_score, prev_home, prev_away,
                          game.home_team or 'Home', game.away_team or 'Away')
    snapshot = snapshot_from_game(game).with_scores(home_score, away_score)
    return process_snapshot(game, snapshot)


def end_period(game: Game, period: int, home_score: int, away_score: int) -> ProcessResult:
    """Close a period: 1 = Q1, 2 = halftime, 3 = Q3, 4 = final."""
    _require_started(game)
    if period not in (1, 2, 3, 4):
        raise ValidationError(f'Invalid period: {period}', game_id=game.id)
    current = snapshot_from_game(game)
    if period == 4:
        snapshot = current.with_scores(home_score, away_score, status=GameStatus.FINAL, clock='0:00')
    else:
        period_scores = dict(current.period_scores)
        period_scores[period] = PeriodScore(home_score, away_score)
        snapshot = current.with_scores(
            max(current.home_score or 0, home_score),
            max(current.away_score or 0, away_score),
            period=period + 1,
            period_scores=period_scores,
        )
    return process_snapshot(game, snapshot)
