from flask import Blueprint, current_app, jsonify, request

from squares.models import ScoreChange, Winner
from squares.services.live.scheduler import get_scheduler, start_polling, stop_polling
from squares.services.live.snapshot import GameSnapshot, is_team_game, parse_event_payload
from squares.services.scoring.errors import ValidationError
from squares.services.scoring.processor import get_game_or_404, process_snapshot, recompute_game, sync_game

games = Blueprint('games', __name__)


def _polling_state(game_id):
    scheduler = get_scheduler(game_id)
    return scheduler.to_dict() if scheduler else {'game_id': game_id, 'state': 'idle'}


@games.route('/<int:game_id>/state', methods=['GET'])
def get_game_state(game_id):
    game = get_game_or_404(game_id)
    payload = game.to_dict()
    payload['pool'] = {
        'id': game.pool.id,
        'scoring_mode': game.pool.scoring_mode,
        'reverse_scoring': game.pool.reverse_scoring,
        'numbers_locked': game.pool.numbers_locked,
    }
    payload['polling'] = _polling_state(game.id)
    return jsonify(payload)


@games.route('/<int:game_id>/winners', methods=['GET'])
def get_winners(game_id):
    game = get_game_or_404(game_id)
    winners = Winner.query.filter_by(game_id=game.id).order_by(Winner.id.asc()).all()
    return jsonify([w.to_dict() for w in winners])


@games.route('/<int:game_id>/score-changes', methods=['GET'])
def get_score_changes(game_id):
    game = get_game_or_404(game_id)
    changes = ScoreChange.query.filter_by(game_id=game.id).order_by(ScoreChange.sequence.asc()).all()
    return jsonify([c.to_dict() for c in changes])


@games.route('/<int:game_id>/sync', methods=['POST'])
def sync_now(game_id):
    game = get_game_or_404(game_id)
    result = sync_game(game)
    return jsonify({'result': result.to_dict(), 'game': game.to_dict()})


@games.route('/<int:game_id>/snapshot', methods=['POST'])
def push_snapshot(game_id):
    """Accept an event payload from an external poller process."""
    game = get_game_or_404(game_id)
    payload = parse_event_payload(request.get_json(silent=True) or {})
    if not is_team_game(payload):
        return jsonify({'error': f'{payload.kind} payloads are not scored by squares pools'}), 400
    result = process_snapshot(game, payload.snapshot)
    status = 200 if not result.rejected else 422
    return jsonify({'result': result.to_dict(), 'game': game.to_dict()}), status


@games.route('/<int:game_id>/recompute', methods=['POST'])
def recompute(game_id):
    """Commissioner correction: wipe this game's wins and replay."""
    game = get_game_or_404(game_id)
    data = request.get_json(silent=True)
    if not data:
        raise ValidationError('Corrected snapshot is required', game_id=game.id)
    corrected = GameSnapshot.from_dict(data)
    result = recompute_game(game, corrected)
    current_app.logger.info(f"[recompute-done] game={game.id} winners={result.winners_recorded}")
    return jsonify({'result': result.to_dict(), 'game': game.to_dict()})


@games.route('/<int:game_id>/polling', methods=['GET'])
def polling_status(game_id):
    get_game_or_404(game_id)
    return jsonify(_polling_state(game_id))


@games.route('/<int:game_id>/polling/start', methods=['POST'])
def polling_start(game_id):
    game = get_game_or_404(game_id)
    if not game.external_id:
        raise ValidationError(f'Game {game.id} has no external id', game_id=game.id)
    scheduler = start_polling(current_app._get_current_object(), game.id)
    return jsonify(scheduler.to_dict())


@games.route('/<int:game_id>/polling/stop', methods=['POST'])
def polling_stop(game_id):
    get_game_or_404(game_id)
    stopped = stop_polling(game_id)
    payload = _polling_state(game_id)
    payload['stopped'] = stopped
    return jsonify(payload)
