"""Normalized live game state.

A ``GameSnapshot`` is the provider's full current view of one game. It is
rebuilt on every poll and always replaces the previous one, never merged.

Payloads stored against an event are a tagged union: each variant carries a
``kind`` discriminant and ``parse_event_payload`` dispatches on it.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from squares.services.scoring.errors import ValidationError


class GameStatus(str, Enum):
    SCHEDULED = 'scheduled'
    IN_PROGRESS = 'in_progress'
    FINAL = 'final'


# Cumulative sub-score boundaries: end of Q1, end of Q2, end of Q3
PERIOD_LABELS = {1: 'q1', 2: 'halftime', 3: 'q3'}


@dataclass(frozen=True)
class PeriodScore:
    home: int
    away: int

    def to_dict(self):
        return {'home': self.home, 'away': self.away}


@dataclass(frozen=True)
class GameSnapshot:
    status: GameStatus
    home_score: Optional[int]
    away_score: Optional[int]
    home_team: str = ''
    away_team: str = ''
    period: int = 0
    clock: str = ''
    is_halftime: bool = False
    # keyed by period number, cumulative to the end of that period
    period_scores: Mapping[int, PeriodScore] = field(default_factory=dict)

    @property
    def has_scores(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    @property
    def is_final(self) -> bool:
        return self.status == GameStatus.FINAL

    def score_at(self, period: int) -> Optional[PeriodScore]:
        return self.period_scores.get(period)

    def with_scores(self, home_score: int, away_score: int, **changes) -> 'GameSnapshot':
        return replace(self, home_score=home_score, away_score=away_score, **changes)

    def validate(self) -> None:
        if self.status != GameStatus.SCHEDULED and not self.has_scores:
            raise ValidationError(f'snapshot missing scores while status={self.status.value}')
        for value in (self.home_score, self.away_score):
            if value is not None and value < 0:
                raise ValidationError(f'negative score {value}')
        for period, score in self.period_scores.items():
            if score.home < 0 or score.away < 0:
                raise ValidationError(f'negative sub-score for period {period}')

    def to_dict(self) -> Dict[str, Any]:
        cumulative = {}
        for period, label in PERIOD_LABELS.items():
            score = self.period_scores.get(period)
            cumulative[label] = score.to_dict() if score else None
        return {
            'status': self.status.value,
            'home_score': self.home_score,
            'away_score': self.away_score,
            'home_team': self.home_team,
            'away_team': self.away_team,
            'period': self.period,
            'clock': self.clock,
            'is_halftime': self.is_halftime,
            'per_period_cumulative_scores': cumulative,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'GameSnapshot':
        try:
            status = GameStatus(data.get('status') or GameStatus.SCHEDULED.value)
        except ValueError:
            raise ValidationError(f"unknown status {data.get('status')!r}")
        period_scores = {}
        cumulative = data.get('per_period_cumulative_scores') or {}
        for period, label in PERIOD_LABELS.items():
            entry = cumulative.get(label)
            if entry is None:
                continue
            try:
                period_scores[period] = PeriodScore(int(entry['home']), int(entry['away']))
            except (KeyError, TypeError, ValueError):
                raise ValidationError(f'malformed {label} sub-score')
        snapshot = cls(
            status=status,
            home_score=_optional_int(data.get('home_score'), 'home_score'),
            away_score=_optional_int(data.get('away_score'), 'away_score'),
            home_team=data.get('home_team') or '',
            away_team=data.get('away_team') or '',
            period=_optional_int(data.get('period'), 'period') or 0,
            clock=data.get('clock') or '',
            is_halftime=bool(data.get('is_halftime')),
            period_scores=period_scores,
        )
        snapshot.validate()
        return snapshot


def _optional_int(value, name):
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')


@dataclass(frozen=True)
class TeamGamePayload:
    kind: ClassVar[str] = 'team_game'
    snapshot: GameSnapshot

    def to_dict(self):
        return {'kind': self.kind, **self.snapshot.to_dict()}


@dataclass(frozen=True)
class GolfTournamentPayload:
    kind: ClassVar[str] = 'golf_tournament'
    current_round: int
    round_status: str
    leaderboard: Tuple[Mapping[str, Any], ...] = ()
    cut_line: Optional[int] = None

    def to_dict(self):
        return {
            'kind': self.kind,
            'current_round': self.current_round,
            'round_status': self.round_status,
            'cut_line': self.cut_line,
            'leaderboard': list(self.leaderboard),
        }


EventPayload = Union[TeamGamePayload, GolfTournamentPayload]


def is_team_game(payload: EventPayload) -> bool:
    return payload.kind == TeamGamePayload.kind


def parse_event_payload(data: Mapping[str, Any]) -> EventPayload:
    kind = (data or {}).get('kind')
    if kind == TeamGamePayload.kind:
        return TeamGamePayload(GameSnapshot.from_dict(data))
    if kind == GolfTournamentPayload.kind:
        return GolfTournamentPayload(
            current_round=int(data.get('current_round') or 0),
            round_status=data.get('round_status') or 'not_started',
            leaderboard=tuple(data.get('leaderboard') or ()),
            cut_line=data.get('cut_line'),
        )
    raise ValidationError(f'unknown payload kind {kind!r}')
