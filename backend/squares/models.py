from squares import db
from squares.services.scoring.errors import ValidationError
from squares.services.scoring.grid import GridConfig, shuffled_digits
import json
import time


class Pool(db.Model):
    __tablename__ = 'pool'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    event_type = db.Column(db.String(32), nullable=False, default='single_game')  # single_game, nfl_playoffs, march_madness
    scoring_mode = db.Column(db.String(32), nullable=False, default='quarter')  # quarter, score_change, hybrid
    reverse_scoring = db.Column(db.Boolean, nullable=False, default=False)
    row_numbers = db.Column(db.Text, nullable=True)  # JSON-encoded digit permutation
    col_numbers = db.Column(db.Text, nullable=True)
    numbers_locked = db.Column(db.Boolean, nullable=False, default=False)
    locked_at = db.Column(db.Float, nullable=True)
    # Payout table
    q1_payout = db.Column(db.Float, nullable=True)
    halftime_payout = db.Column(db.Float, nullable=True)
    q3_payout = db.Column(db.Float, nullable=True)
    final_payout = db.Column(db.Float, nullable=True)
    per_change_payout = db.Column(db.Float, nullable=True)
    final_bonus_payout = db.Column(db.Float, nullable=True)

    squares = db.relationship('Square', back_populates='pool', lazy='dynamic')
    games = db.relationship('Game', back_populates='pool')

    @property
    def grid(self):
        if not self.numbers_locked or not self.row_numbers or not self.col_numbers:
            return None
        return GridConfig(json.loads(self.row_numbers), json.loads(self.col_numbers))

    def lock_numbers(self, rng=None):
        """Assign the random digit permutations. Happens once per pool."""
        if self.numbers_locked:
            raise ValidationError(f'numbers for pool {self.id} are already locked')
        self.row_numbers = json.dumps(shuffled_digits(rng))
        self.col_numbers = json.dumps(shuffled_digits(rng))
        self.numbers_locked = True
        self.locked_at = time.time()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'event_type': self.event_type,
            'scoring_mode': self.scoring_mode,
            'reverse_scoring': self.reverse_scoring,
            'row_numbers': json.loads(self.row_numbers) if self.row_numbers else None,
            'col_numbers': json.loads(self.col_numbers) if self.col_numbers else None,
            'numbers_locked': self.numbers_locked,
            'locked_at': self.locked_at,
            'payouts': {
                'q1': self.q1_payout,
                'halftime': self.halftime_payout,
                'q3': self.q3_payout,
                'final': self.final_payout,
                'per_change': self.per_change_payout,
                'final_bonus': self.final_bonus_payout,
            },
        }


class Square(db.Model):
    __tablename__ = 'square'
    __table_args__ = (db.UniqueConstraint('pool_id', 'row_index', 'col_index', name='uq_square_cell'),)
    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False, index=True)
    row_index = db.Column(db.Integer, nullable=False)
    col_index = db.Column(db.Integer, nullable=False)
    participant_name = db.Column(db.String(128), nullable=True)
    pool = db.relationship('Pool', back_populates='squares')

    def to_dict(self):
        return {
            'id': self.id,
            'row_index': self.row_index,
            'col_index': self.col_index,
            'participant_name': self.participant_name,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('pool.id'), nullable=False, index=True)
    external_id = db.Column(db.String(64), nullable=True, index=True)  # provider (ESPN) event id
    sport = db.Column(db.String(16), nullable=False, default='nfl')
    round = db.Column(db.String(32), nullable=True)  # wild_card, divisional, ... for playoff pools
    home_team = db.Column(db.String(128), nullable=True)
    away_team = db.Column(db.String(128), nullable=True)
    home_score = db.Column(db.Integer, nullable=True)
    away_score = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(32), nullable=False, default='scheduled')  # scheduled, in_progress, final
    current_period = db.Column(db.Integer, nullable=True)
    current_clock = db.Column(db.String(16), nullable=True)
    period_scores = db.Column(db.Text, nullable=True)  # JSON: {"1": {"home":..,"away":..}, ...} cumulative
    last_scored_period = db.Column(db.Integer, nullable=False, default=0)
    last_synced_at = db.Column(db.Float, nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    pool = db.relationship('Pool', back_populates='games')
    winners = db.relationship('Winner', back_populates='game', lazy='dynamic')
    score_changes = db.relationship('ScoreChange', back_populates='game', lazy='dynamic',
                                    order_by='ScoreChange.sequence')

    def period_scores_dict(self):
        try:
            raw = json.loads(self.period_scores) if self.period_scores else {}
        except ValueError:
            raw = {}
        return {int(k): v for k, v in raw.items()}

    def to_dict(self):
        scores = self.period_scores_dict()
        return {
            'id': self.id,
            'pool_id': self.pool_id,
            'external_id': self.external_id,
            'sport': self.sport,
            'round': self.round,
            'home_team': self.home_team,
            'away_team': self.away_team,
            'home_score': self.home_score,
            'away_score': self.away_score,
            'status': self.status,
            'current_period': self.current_period,
            'current_clock': self.current_clock,
            'q1_score': scores.get(1),
            'halftime_score': scores.get(2),
            'q3_score': scores.get(3),
            'last_scored_period': self.last_scored_period,
            'last_synced_at': self.last_synced_at,
            'last_error': self.last_error,
        }


class Winner(db.Model):
    __tablename__ = 'winner'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    # game:win_type[:sequence]; at most one stored win per scoring milestone
    dedupe_key = db.Column(db.String(128), nullable=False, unique=True)
    win_type = db.Column(db.String(64), nullable=False)
    sequence = db.Column(db.Integer, nullable=True)
    row_index = db.Column(db.Integer, nullable=True)
    col_index = db.Column(db.Integer, nullable=True)
    payout = db.Column(db.Float, nullable=True)
    winner_name = db.Column(db.String(128), nullable=False)
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    game = db.relationship('Game', back_populates='winners')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'win_type': self.win_type,
            'sequence': self.sequence,
            'cell': (
                {'row_index': self.row_index, 'col_index': self.col_index}
                if self.row_index is not None else None
            ),
            'payout': self.payout,
            'winner_name': self.winner_name,
            'home_score': self.home_score,
            'away_score': self.away_score,
        }


class ScoreChange(db.Model):
    __tablename__ = 'score_change'
    __table_args__ = (db.UniqueConstraint('game_id', 'sequence', name='uq_score_change_sequence'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)
    period_markers = db.Column(db.Text, nullable=True)  # JSON-encoded list of tags
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    game = db.relationship('Game', back_populates='score_changes')

    def markers(self):
        return sorted(json.loads(self.period_markers)) if self.period_markers else []

    def to_dict(self):
        return {
            'sequence': self.sequence,
            'home_score': self.home_score,
            'away_score': self.away_score,
            'period_markers': self.markers(),
        }
