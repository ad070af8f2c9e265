"""create pool, square, game, winner and score_change tables

Revision ID: 3c7a9e1f5b20
Revises:
Create Date: 2026-01-10 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7a9e1f5b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'pool' not in existing_tables:
        op.create_table(
            'pool',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('event_type', sa.String(length=32), nullable=False),
            sa.Column('scoring_mode', sa.String(length=32), nullable=False),
            sa.Column('reverse_scoring', sa.Boolean(), nullable=False),
            sa.Column('row_numbers', sa.Text(), nullable=True),
            sa.Column('col_numbers', sa.Text(), nullable=True),
            sa.Column('numbers_locked', sa.Boolean(), nullable=False),
            sa.Column('locked_at', sa.Float(), nullable=True),
            sa.Column('q1_payout', sa.Float(), nullable=True),
            sa.Column('halftime_payout', sa.Float(), nullable=True),
            sa.Column('q3_payout', sa.Float(), nullable=True),
            sa.Column('final_payout', sa.Float(), nullable=True),
            sa.Column('per_change_payout', sa.Float(), nullable=True),
            sa.Column('final_bonus_payout', sa.Float(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )

    if 'square' not in existing_tables:
        op.create_table(
            'square',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('pool_id', sa.Integer(), nullable=False),
            sa.Column('row_index', sa.Integer(), nullable=False),
            sa.Column('col_index', sa.Integer(), nullable=False),
            sa.Column('participant_name', sa.String(length=128), nullable=True),
            sa.ForeignKeyConstraint(['pool_id'], ['pool.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('pool_id', 'row_index', 'col_index', name='uq_square_cell'),
        )
        op.create_index('ix_square_pool_id', 'square', ['pool_id'])

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('pool_id', sa.Integer(), nullable=False),
            sa.Column('external_id', sa.String(length=64), nullable=True),
            sa.Column('sport', sa.String(length=16), nullable=False),
            sa.Column('round', sa.String(length=32), nullable=True),
            sa.Column('home_team', sa.String(length=128), nullable=True),
            sa.Column('away_team', sa.String(length=128), nullable=True),
            sa.Column('home_score', sa.Integer(), nullable=True),
            sa.Column('away_score', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=32), nullable=False),
            sa.Column('current_period', sa.Integer(), nullable=True),
            sa.Column('current_clock', sa.String(length=16), nullable=True),
            sa.Column('period_scores', sa.Text(), nullable=True),
            sa.Column('last_scored_period', sa.Integer(), nullable=False),
            sa.Column('last_synced_at', sa.Float(), nullable=True),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['pool_id'], ['pool.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_game_pool_id', 'game', ['pool_id'])
        op.create_index('ix_game_external_id', 'game', ['external_id'])

    if 'winner' not in existing_tables:
        op.create_table(
            'winner',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('dedupe_key', sa.String(length=128), nullable=False),
            sa.Column('win_type', sa.String(length=64), nullable=False),
            sa.Column('sequence', sa.Integer(), nullable=True),
            sa.Column('row_index', sa.Integer(), nullable=True),
            sa.Column('col_index', sa.Integer(), nullable=True),
            sa.Column('payout', sa.Float(), nullable=True),
            sa.Column('winner_name', sa.String(length=128), nullable=False),
            sa.Column('home_score', sa.Integer(), nullable=False),
            sa.Column('away_score', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('dedupe_key'),
        )
        op.create_index('ix_winner_game_id', 'winner', ['game_id'])

    if 'score_change' not in existing_tables:
        op.create_table(
            'score_change',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('sequence', sa.Integer(), nullable=False),
            sa.Column('home_score', sa.Integer(), nullable=False),
            sa.Column('away_score', sa.Integer(), nullable=False),
            sa.Column('period_markers', sa.Text(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('game_id', 'sequence', name='uq_score_change_sequence'),
        )
        op.create_index('ix_score_change_game_id', 'score_change', ['game_id'])


def downgrade():
    op.drop_index('ix_score_change_game_id', table_name='score_change')
    op.drop_table('score_change')
    op.drop_index('ix_winner_game_id', table_name='winner')
    op.drop_table('winner')
    op.drop_index('ix_game_external_id', table_name='game')
    op.drop_index('ix_game_pool_id', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_square_pool_id', table_name='square')
    op.drop_table('square')
    op.drop_table('pool')
