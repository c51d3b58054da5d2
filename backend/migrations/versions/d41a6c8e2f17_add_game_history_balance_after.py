"""add balance_after to game_history so replays return the original balance

Revision ID: d41a6c8e2f17
Revises: 9b7d1f3e5a20
Create Date: 2026-10-19 11:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'd41a6c8e2f17'
down_revision = '9b7d1f3e5a20'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('game_history')}
    if 'balance_after' not in cols:
        with op.batch_alter_table('game_history') as batch_op:
            batch_op.add_column(sa.Column('balance_after', sa.Numeric(precision=12, scale=2), nullable=True))


def downgrade():
    with op.batch_alter_table('game_history') as batch_op:
        batch_op.drop_column('balance_after')
