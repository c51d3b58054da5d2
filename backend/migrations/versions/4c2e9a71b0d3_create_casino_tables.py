"""create users, game_history and game_settings

Revision ID: 4c2e9a71b0d3
Revises:
Create Date: 2026-09-28 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2e9a71b0d3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=False),
        sa.Column('balance', sa.Numeric(precision=12, scale=2), nullable=False, server_default='1000.00'),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_token', sa.String(length=64), nullable=True),
        sa.Column('reset_token', sa.String(length=64), nullable=True),
        sa.Column('reset_token_expiry', sa.DateTime(), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('ban_reason', sa.Text(), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('verification_token'),
        sa.UniqueConstraint('reset_token'),
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'game_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('bet_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('multiplier', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payout', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_game_history_user_id'), 'game_history', ['user_id'], unique=False)
    op.create_index(op.f('ix_game_history_timestamp'), 'game_history', ['timestamp'], unique=False)

    op.create_table(
        'game_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('rtp', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('house_edge', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('min_bet', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('max_bet', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('max_payout', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('settings', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_by', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_type'),
    )


def downgrade():
    op.drop_table('game_settings')
    op.drop_index(op.f('ix_game_history_timestamp'), table_name='game_history')
    op.drop_index(op.f('ix_game_history_user_id'), table_name='game_history')
    op.drop_table('game_history')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_table('users')
