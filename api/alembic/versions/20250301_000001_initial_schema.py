"""initial tipping schema

Revision ID: 20250301_000001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20250301_000001'
down_revision = None
branch_labels = None
depends_on = None

JSON_PAYLOAD = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    """Fixture, competition and operational tables."""
    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('abbreviation', sa.String(length=10), nullable=True),
        sa.Column('logo', sa.String(length=255), nullable=True),
        sa.Column('primary_colour', sa.String(length=20), nullable=True),
        sa.Column('secondary_colour', sa.String(length=20), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'rounds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('lockout_time', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_number', 'year', name='uq_round_number_year'),
    )
    op.create_index('ix_rounds_year', 'rounds', ['year'])

    op.create_table(
        'games',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('squiggle_game_key', sa.String(length=8), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('home_team', sa.String(length=100), nullable=False),
        sa.Column('away_team', sa.String(length=100), nullable=False),
        sa.Column('home_score', sa.Integer(), nullable=True),
        sa.Column('away_score', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('venue', sa.String(length=100), nullable=True),
        sa.Column('completion', sa.Integer(), nullable=False),
        sa.Column('is_complete', sa.Boolean(), nullable=False),
        sa.Column('winner', sa.String(length=100), nullable=True),
        sa.Column('external_id', sa.Integer(), nullable=True),
        sa.Column('is_final', sa.Boolean(), nullable=False),
        sa.Column('is_grand_final', sa.Boolean(), nullable=False),
        sa.Column('external_payload', JSON_PAYLOAD, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['round_id'], ['rounds.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('year', 'squiggle_game_key', name='uq_game_year_key'),
    )
    op.create_index('ix_games_round_id', 'games', ['round_id'])
    op.create_index('idx_games_start_time', 'games', ['start_time'])

    op.create_table(
        'finals_config',
        sa.Column('round_number', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('requires_margin', sa.Boolean(), nullable=False),
        sa.Column('margin_game_position', sa.String(length=10), nullable=False),
        sa.PrimaryKeyConstraint('round_number'),
    )

    op.create_table(
        'family_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('family_group_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['family_group_id'], ['family_groups.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_users_family_group_id', 'users', ['family_group_id'])

    op.create_table(
        'tips',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('selected_team', sa.String(length=100), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('margin_prediction', sa.Integer(), nullable=True),
        sa.Column('is_margin_game', sa.Boolean(), nullable=False),
        sa.Column('margin_difference', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['game_id'], ['games.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['round_id'], ['rounds.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'game_id', name='uq_tip_user_game'),
    )
    op.create_index('ix_tips_game_id', 'tips', ['game_id'])
    op.create_index('idx_tips_user_round', 'tips', ['user_id', 'round_id'])

    op.create_table(
        'round_winners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('win_type', sa.String(length=20), nullable=False),
        sa.Column('margin_difference', sa.Integer(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['round_id'], ['rounds.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('round_id', 'user_id', 'win_type', name='uq_round_winner'),
    )

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sync_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('summary_data', JSON_PAYLOAD, nullable=True),
        sa.Column('manual', sa.Boolean(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_sync_logs_type_created', 'sync_logs', ['sync_type', 'created_at'])

    op.create_table(
        'scheduler_state',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Drop every tipping table."""
    op.drop_table('scheduler_state')
    op.drop_index('idx_sync_logs_type_created', table_name='sync_logs')
    op.drop_table('sync_logs')
    op.drop_table('round_winners')
    op.drop_index('idx_tips_user_round', table_name='tips')
    op.drop_index('ix_tips_game_id', table_name='tips')
    op.drop_table('tips')
    op.drop_index('ix_users_family_group_id', table_name='users')
    op.drop_table('users')
    op.drop_table('family_groups')
    op.drop_table('finals_config')
    op.drop_index('idx_games_start_time', table_name='games')
    op.drop_index('ix_games_round_id', table_name='games')
    op.drop_table('games')
    op.drop_index('ix_rounds_year', table_name='rounds')
    op.drop_table('rounds')
    op.drop_table('teams')
