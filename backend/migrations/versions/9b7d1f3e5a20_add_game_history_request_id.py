"""add request_id to game_history for idempotent settlement

Revision ID: 9b7d1f3e5a20
Revises: 4c2e9a71b0d3
Create Date: 2026-10-06 16:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9b7d1f3e5a20'
down_revision = '4c2e9a71b0d3'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('game_history')}
    with op.batch_alter_table('game_history') as batch_op:
        if 'request_id' not in cols:
            batch_op.add_column(sa.Column('request_id', sa.String(length=64), nullable=True))
        batch_op.create_unique_constraint('uq_game_history_user_request', ['user_id', 'request_id'])


def downgrade():
    with op.batch_alter_table('game_history') as batch_op:
        batch_op.drop_constraint('uq_game_history_user_request', type_='unique')
        batch_op.drop_column('request_id')
