from flask import Blueprint, jsonify
from sqlalchemy import text

from squares import db

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the squares scoring server!'})


@main.route('/health')
def health():
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except Exception as exc:
        db.session.rollback()
        database = f'error: {exc}'
    return jsonify({'status': 'ok', 'database': database})
