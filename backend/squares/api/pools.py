from flask import Blueprint, current_app, jsonify

from squares import db
from squares.models import Pool, Square
from squares.services.scoring.aggregator import aggregate, leaderboard
from squares.services.scoring.errors import NotFoundError
from squares.services.scoring.recorder import load_win_events
from squares.services.scoring.rounds import format_round_wins

pools = Blueprint('pools', __name__)


def get_pool_or_404(pool_id):
    pool = db.session.get(Pool, pool_id)
    if pool is None:
        raise NotFoundError(f'Pool {pool_id} not found')
    return pool


def _pool_wins(pool):
    game_rounds = {g.id: g.round for g in pool.games if g.round}
    return load_win_events(g.id for g in pool.games), game_rounds


@pools.route('/<int:pool_id>', methods=['GET'])
def get_pool(pool_id):
    pool = get_pool_or_404(pool_id)
    payload = pool.to_dict()
    payload['squares'] = [s.to_dict() for s in pool.squares.order_by(Square.row_index, Square.col_index).all()]
    payload['games'] = [g.to_dict() for g in pool.games]
    return jsonify(payload)


@pools.route('/<int:pool_id>/lock', methods=['POST'])
def lock_pool(pool_id):
    pool = get_pool_or_404(pool_id)
    pool.lock_numbers()
    db.session.commit()
    current_app.logger.info(f"[pool-locked] pool={pool.id} rows={pool.row_numbers} cols={pool.col_numbers}")
    return jsonify(pool.to_dict())


@pools.route('/<int:pool_id>/board', methods=['GET'])
def get_board(pool_id):
    """One badge per winning cell across every game in the pool."""
    pool = get_pool_or_404(pool_id)
    events, game_rounds = _pool_wins(pool)
    badges = aggregate(events, game_rounds=game_rounds)
    cells = [
        {'row_index': cell.row_index, 'col_index': cell.col_index, 'badge': tag.value}
        for cell, tag in sorted(badges.items())
    ]
    return jsonify({'pool_id': pool.id, 'cells': cells})


@pools.route('/<int:pool_id>/leaderboard', methods=['GET'])
def get_leaderboard(pool_id):
    pool = get_pool_or_404(pool_id)
    events, game_rounds = _pool_wins(pool)
    entries = []
    for entry in leaderboard(events, game_rounds):
        row = entry.to_dict()
        row['round_summary'] = format_round_wins(pool.event_type, entry.round_wins)
        entries.append(row)
    return jsonify({'pool_id': pool.id, 'leaderboard': entries})
