from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or Config.CORS_ORIGINS

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from squares.main import main
    flask_app.register_blueprint(main)

    from squares.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from squares.api.pools import pools
    flask_app.register_blueprint(pools, url_prefix='/api/pools')

    from squares.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from squares.api.sync import sync
    flask_app.register_blueprint(sync, url_prefix='/api/squares')

    from squares.services.scoring.errors import ScoringError

    @flask_app.errorhandler(ScoringError)
    def handle_scoring_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    from squares.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo pool."""
        from squares.models import Pool, Square, Game
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            pool = Pool(name='Demo Pool', event_type='single_game', scoring_mode='score_change',
                        reverse_scoring=True, per_change_payout=25, final_bonus_payout=100)
            db.session.add(pool)
            db.session.flush()
            names = ['Alice', 'Bob', 'Cara', 'Dan']
            for row in range(10):
                for col in range(10):
                    db.session.add(Square(pool_id=pool.id, row_index=row, col_index=col,
                                          participant_name=names[(row * 10 + col) % len(names)]))
            pool.lock_numbers()
            db.session.add(Game(pool_id=pool.id, sport='nfl', home_team='Home', away_team='Away'))
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('poll-games')
    def poll_games_command():
        """Runs one sync pass over every unfinished game with a provider id."""
        from squares.models import Game
        from squares.services.scoring.errors import ScoringError as _ScoringError
        from squares.services.scoring.processor import sync_game
        with flask_app.app_context():
            pending = Game.query.filter(Game.external_id.isnot(None), Game.status != 'final').all()
            for game in pending:
                try:
                    result = sync_game(game)
                except _ScoringError as exc:
                    print(f'game {game.id}: {type(exc).__name__}: {exc.message}')
                    continue
                print(f'game {game.id}: status={result.status} winners={result.winners_recorded}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(poll_games_command)

    return flask_app
