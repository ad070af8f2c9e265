import pytest
import requests

from conftest import FakeEspnSession, espn_event
from squares.services.live.espn import EspnScoreSource, map_status, normalize_event
from squares.services.live.snapshot import GameStatus, PeriodScore
from squares.services.scoring.errors import NotFoundError, TransientProviderError, ValidationError


@pytest.fixture()
def session():
    return FakeEspnSession()


@pytest.fixture()
def source(session):
    return EspnScoreSource(sport='nfl', base_url='https://espn.test/sports', session=session)


def test_map_status():
    assert map_status('STATUS_IN_PROGRESS') == GameStatus.IN_PROGRESS
    assert map_status('STATUS_HALFTIME') == GameStatus.IN_PROGRESS
    assert map_status('STATUS_FINAL_OVERTIME') == GameStatus.FINAL
    assert map_status('STATUS_SCHEDULED') == GameStatus.SCHEDULED
    assert map_status('STATUS_POSTPONED') == GameStatus.SCHEDULED


def test_normalize_builds_cumulative_sub_scores():
    event = espn_event(401, 17, 10, period=3, clock='4:12', home_lines=[7, 3, 7], away_lines=[0, 10, 0])
    snapshot = normalize_event(event)
    assert snapshot.status == GameStatus.IN_PROGRESS
    assert (snapshot.home_score, snapshot.away_score) == (17, 10)
    assert snapshot.period == 3
    assert snapshot.clock == '4:12'
    assert snapshot.period_scores == {1: PeriodScore(7, 0), 2: PeriodScore(10, 10), 3: PeriodScore(17, 10)}
    assert not snapshot.is_halftime


def test_normalize_halftime():
    snapshot = normalize_event(espn_event(401, 7, 3, status='STATUS_HALFTIME', period=2,
                                          home_lines=[7, 0], away_lines=[3, 0]))
    assert snapshot.is_halftime
    assert snapshot.score_at(2) == PeriodScore(7, 3)


def test_normalize_requires_both_sides():
    event = espn_event(401, 7, 3)
    event['competitions'][0]['competitors'].pop()
    with pytest.raises(ValidationError):
        normalize_event(event)


def test_fetch_game_finds_event_by_id(source, session):
    session.events = [espn_event(1, 0, 0), espn_event(2, 14, 7, period=2)]
    snapshot = source.fetch_game('2')
    assert (snapshot.home_score, snapshot.away_score) == (14, 7)
    call = session.calls[0]
    assert call['url'] == 'https://espn.test/sports/football/nfl/scoreboard'
    assert call['params'] == {'seasontype': '3'}


def test_fetch_game_unknown_id(source, session):
    session.events = [espn_event(1, 0, 0)]
    with pytest.raises(NotFoundError):
        source.fetch_game('999')


def test_fetch_game_requires_id(source):
    with pytest.raises(ValidationError):
        source.fetch_game('')


def test_provider_error_status_is_transient(source, session):
    session.status_code = 503
    with pytest.raises(TransientProviderError):
        source.fetch_game('1')


def test_network_failure_is_transient(source, session):
    session.error = requests.ConnectionError('connection refused')
    with pytest.raises(TransientProviderError):
        source.fetch_game('1')


def test_unsupported_sport():
    with pytest.raises(ValidationError):
        EspnScoreSource(sport='curling', session=FakeEspnSession())
