from flask import Blueprint, current_app, jsonify, request

from squares.services.scoring.errors import ValidationError
from squares.services.scoring.processor import end_period, get_game_or_404, record_score, start_game

admin = Blueprint('admin', __name__)

ACTIONS = ('start_game', 'record_score', 'end_period')


def _int_field(data, name):
    value = data.get(name)
    if value is None:
        raise ValidationError(f'Missing {name}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')


@admin.route('/scoring', methods=['POST'])
def manual_scoring():
    """Commissioner scoring for games without a live feed.

    Body: ``{"game_id", "action", ...}`` where action is one of
    start_game, record_score or end_period.
    """
    data = request.get_json(silent=True) or {}
    game_id = data.get('game_id')
    action = data.get('action')
    if not game_id or not action:
        return jsonify({'error': 'Missing game_id or action'}), 400
    if action not in ACTIONS:
        return jsonify({'error': f'Invalid action: {action}'}), 400

    game = get_game_or_404(_int_field(data, 'game_id'))
    current_app.logger.info(f"[manual-scoring] game={game.id} action={action}")

    if action == 'start_game':
        result = start_game(game, data.get('home_team'), data.get('away_team'))
    elif action == 'record_score':
        result = record_score(game, _int_field(data, 'home_score'), _int_field(data, 'away_score'))
    else:
        result = end_period(game, _int_field(data, 'period'),
                            _int_field(data, 'home_score'), _int_field(data, 'away_score'))

    if result.rejected:
        raise ValidationError(result.rejected, game_id=game.id)
    return jsonify({'success': True, 'result': result.to_dict(), 'game': game.to_dict()})
