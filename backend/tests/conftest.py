import json
import os
import sys
import pytest

# Ensure the backend root (containing the `squares` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from squares import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    POLL_INTERVAL_SEC = 30
    SCORE_SOURCE_SPORT = 'nfl'
    ESPN_BASE_URL = 'https://espn.test/apis/site/v2/sports'
    ESPN_SEASON_TYPE = '3'
    ESPN_TIMEOUT_SEC = 1


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError('no JSON body')
        return self._payload


class FakeEspnSession:
    """Stands in for requests.Session; serves whatever ``events`` holds."""

    def __init__(self):
        self.events = []
        self.status_code = 200
        self.error = None
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_code, {'events': list(self.events)})


def espn_event(event_id, home_score, away_score, status='STATUS_IN_PROGRESS', period=1, clock='10:00',
               home_lines=(), away_lines=(), home_team='Home Team', away_team='Away Team'):
    def competitor(side, score, team, lines):
        return {
            'homeAway': side,
            'score': str(score),
            'team': {'displayName': team},
            'linescores': [{'period': i + 1, 'value': v} for i, v in enumerate(lines)],
        }

    return {
        'id': str(event_id),
        'competitions': [{
            'competitors': [
                competitor('home', home_score, home_team, home_lines),
                competitor('away', away_score, away_team, away_lines),
            ],
            'status': {'type': {'name': status}, 'period': period, 'displayClock': clock},
        }],
    }


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    application.config['SCORE_SOURCE_SESSION'] = FakeEspnSession()
    with application.app_context():
        # Ensure models are imported so tables are created
        import squares.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def reset_schedulers():
    from squares.services.live import scheduler
    scheduler._schedulers.clear()
    yield
    scheduler._schedulers.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def espn(flask_app):
    return flask_app.config['SCORE_SOURCE_SESSION']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def make_pool(flask_app):
    """Locked pool on the sequential grid (digit d sits at index d).

    Every cell is owned by ``"r<row>c<col>"`` except those in ``unowned``.
    """
    from squares.models import Pool, Square

    def _make(scoring_mode='quarter', reverse_scoring=False, event_type='single_game', locked=True,
              unowned=(), **payouts):
        pool = Pool(name='Test Pool', event_type=event_type, scoring_mode=scoring_mode,
                    reverse_scoring=reverse_scoring, **payouts)
        if locked:
            pool.row_numbers = json.dumps(list(range(10)))
            pool.col_numbers = json.dumps(list(range(10)))
            pool.numbers_locked = True
        db.session.add(pool)
        db.session.flush()
        for row in range(10):
            for col in range(10):
                name = None if (row, col) in unowned else f'r{row}c{col}'
                db.session.add(Square(pool_id=pool.id, row_index=row, col_index=col, participant_name=name))
        db.session.commit()
        return pool

    return _make


@pytest.fixture()
def make_game(flask_app):
    from squares.models import Game

    def _make(pool, external_id=None, round=None, sport='nfl'):
        game = Game(pool_id=pool.id, external_id=external_id, round=round, sport=sport,
                    home_team='Home Team', away_team='Away Team')
        db.session.add(game)
        db.session.commit()
        return game

    return _make
