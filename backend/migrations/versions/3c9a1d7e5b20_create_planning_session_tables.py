"""create planning_session and participant tables

Revision ID: 3c9a1d7e5b20
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a1d7e5b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())
    if 'planning_session' not in tables:
        op.create_table(
            'planning_session',
            sa.Column('id', sa.String(length=16), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('creator', sa.String(length=36), nullable=False),
            sa.Column('is_revealed', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
        )
        op.create_index('ix_planning_session_created_at', 'planning_session', ['created_at'])
    if 'participant' not in tables:
        op.create_table(
            'participant',
            sa.Column('session_id', sa.String(length=16),
                      sa.ForeignKey('planning_session.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('vote', sa.String(length=16), nullable=True),
            sa.Column('is_revealed', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('avatar', sa.String(length=32), nullable=True),
            sa.Column('joined_at', sa.BigInteger(), nullable=False),
        )


def downgrade():
    op.drop_table('participant')
    op.drop_index('ix_planning_session_created_at', table_name='planning_session')
    op.drop_table('planning_session')
