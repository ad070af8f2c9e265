from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from squares.services.live.espn import EspnScoreSource

sync = Blueprint('sync', __name__)


@sync.route('/sync-score', methods=['GET'])
def sync_score():
    """Stateless live score lookup used by client-side polling.

    Returns the normalized snapshot for one ESPN game. No database writes.
    """
    espn_game_id = request.args.get('espnGameId') or request.args.get('external_id')
    if not espn_game_id:
        return jsonify({'error': 'Missing espnGameId parameter'}), 400

    cfg = current_app.config
    source = EspnScoreSource.from_config(cfg, sport=request.args.get('sport'), session=cfg.get('SCORE_SOURCE_SESSION'))
    snapshot = source.fetch_game(espn_game_id)

    payload = snapshot.to_dict()
    payload.update({
        'success': True,
        'espn_game_id': espn_game_id,
        'last_updated': datetime.now(timezone.utc).isoformat(),
    })
    return jsonify(payload)
