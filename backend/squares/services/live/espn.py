"""
ESPN score source adapter
=========================

Fetches the public ESPN scoreboard and normalizes one game into a
``GameSnapshot``. The scoreboard endpoint returns every game of the day, so
a single game is located by its ESPN event id.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from squares.services.scoring.errors import NotFoundError, TransientProviderError, ValidationError
from .snapshot import GameSnapshot, GameStatus, PeriodScore

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://site.api.espn.com/apis/site/v2/sports'

SPORT_PATHS = {
    'nfl': 'football/nfl',
    'ncaa_fb': 'football/college-football',
    'ncaa_bb': 'basketball/mens-college-basketball',
}

IN_PROGRESS_STATUSES = {'STATUS_IN_PROGRESS', 'STATUS_HALFTIME'}
FINAL_STATUSES = {'STATUS_FINAL', 'STATUS_FINAL_OVERTIME'}


def map_status(espn_status: str) -> GameStatus:
    if espn_status in IN_PROGRESS_STATUSES:
        return GameStatus.IN_PROGRESS
    if espn_status in FINAL_STATUSES:
        return GameStatus.FINAL
    return GameStatus.SCHEDULED


class EspnScoreSource:
    """
    ESPN scoreboard client.

    ``session`` only needs a requests-compatible ``get``; tests pass a fake.
    """

    def __init__(self, sport: str = 'nfl', base_url: str = DEFAULT_BASE_URL,
                 season_type: Optional[str] = '3', timeout: float = 10, session=None):
        if sport not in SPORT_PATHS:
            raise ValidationError(f'ESPN not supported for sport: {sport}')
        self.sport = sport
        self.base_url = base_url.rstrip('/')
        self.season_type = season_type
        self.timeout = timeout
        self.session = session or requests.Session()
        if session is None:
            self.session.headers.update({'Accept': 'application/json'})

    @classmethod
    def from_config(cls, config: Mapping[str, Any], sport: Optional[str] = None, session=None) -> 'EspnScoreSource':
        return cls(
            sport=sport or config.get('SCORE_SOURCE_SPORT', 'nfl'),
            base_url=config.get('ESPN_BASE_URL', DEFAULT_BASE_URL),
            season_type=config.get('ESPN_SEASON_TYPE', '3'),
            timeout=float(config.get('ESPN_TIMEOUT_SEC', 10)),
            session=session,
        )

    @property
    def scoreboard_url(self) -> str:
        return f'{self.base_url}/{SPORT_PATHS[self.sport]}/scoreboard'

    def fetch_scoreboard(self) -> Dict[str, Any]:
        params = {}
        if self.season_type:
            params['seasontype'] = self.season_type
        try:
            response = self.session.get(self.scoreboard_url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransientProviderError(f'ESPN unreachable: {exc}')
        if response.status_code < 200 or response.status_code >= 300:
            logger.warning(f'[espn] scoreboard status={response.status_code} sport={self.sport}')
            raise TransientProviderError(f'ESPN API error: {response.status_code}')
        try:
            return response.json()
        except ValueError:
            raise TransientProviderError('ESPN returned a non-JSON body')

    def fetch_game(self, external_id: str) -> GameSnapshot:
        if not external_id:
            raise ValidationError('Missing external game id')
        data = self.fetch_scoreboard()
        for event in data.get('events') or []:
            if str(event.get('id')) == str(external_id):
                snapshot = normalize_event(event)
                logger.info(
                    f'[espn] game={external_id} {snapshot.home_team} {snapshot.home_score} - '
                    f'{snapshot.away_score} {snapshot.away_team} status={snapshot.status.value} period={snapshot.period}'
                )
                return snapshot
        raise NotFoundError(f'Game {external_id} not found in ESPN data')


def _competitor(competitors: List[Mapping[str, Any]], side: str) -> Mapping[str, Any]:
    for competitor in competitors:
        if competitor.get('homeAway') == side:
            return competitor
    raise ValidationError('Could not identify home/away teams')


def _parse_score(value) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _linescore(competitor: Mapping[str, Any], period: int) -> Optional[int]:
    for line in competitor.get('linescores') or []:
        if line.get('period') == period:
            return int(line.get('value') or 0)
    return None


def normalize_event(event: Mapping[str, Any]) -> GameSnapshot:
    competitions = event.get('competitions') or []
    if not competitions:
        raise ValidationError(f"event {event.get('id')} has no competitions")
    competition = competitions[0]
    competitors = competition.get('competitors') or []
    home = _competitor(competitors, 'home')
    away = _competitor(competitors, 'away')

    status_block = competition.get('status') or event.get('status') or {}
    espn_status = (status_block.get('type') or {}).get('name', '')
    status = map_status(espn_status)
    period = int(status_block.get('period') or 0)
    is_final = status == GameStatus.FINAL

    period_scores = {}
    q1_home, q1_away = _linescore(home, 1), _linescore(away, 1)
    if q1_home is not None and q1_away is not None:
        period_scores[1] = PeriodScore(q1_home, q1_away)
    if period >= 2 or is_final:
        half_home = (q1_home or 0) + (_linescore(home, 2) or 0)
        half_away = (q1_away or 0) + (_linescore(away, 2) or 0)
        period_scores[2] = PeriodScore(half_home, half_away)
        if period >= 3 or is_final:
            period_scores[3] = PeriodScore(
                half_home + (_linescore(home, 3) or 0),
                half_away + (_linescore(away, 3) or 0),
            )

    return GameSnapshot(
        status=status,
        home_score=_parse_score(home.get('score')),
        away_score=_parse_score(away.get('score')),
        home_team=(home.get('team') or {}).get('displayName', ''),
        away_team=(away.get('team') or {}).get('displayName', ''),
        period=period,
        clock=status_block.get('displayClock') or '',
        is_halftime=espn_status == 'STATUS_HALFTIME' or period == 2,
        period_scores=period_scores,
    )
