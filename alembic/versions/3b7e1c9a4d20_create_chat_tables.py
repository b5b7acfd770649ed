"""
Create users, matches, likes, passes and messages tables

Only the columns the chat core reads or the preview reset touches are
created here; the account and booking services own the rest of the user
record.

Revision ID: 3b7e1c9a4d20
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3b7e1c9a4d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _pair_table(name: str) -> None:
    op.create_table(name,
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('ambassador_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['brand_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['ambassador_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('brand_id', 'ambassador_id', name=f'uq_{name}_pair'),
        sa.CheckConstraint('brand_id <> ambassador_id', name=f'ck_{name}_distinct'),
    )
    op.create_index(f'idx_{name}_brand', name, ['brand_id'])
    op.create_index(f'idx_{name}_ambassador', name, ['ambassador_id'])


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == 'postgresql'

    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('profile_photo', sa.String(500), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('skills', postgresql.ARRAY(sa.Text()), nullable=True) if is_postgres else sa.Column('skills', sa.Text(), nullable=True),
        sa.Column('is_test', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_preview', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_preview_ambassador', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint("role IN ('brand', 'ambassador')", name='ck_users_role'),
    )
    op.create_index('idx_users_role', 'users', ['role'])
    op.create_index('idx_users_is_preview', 'users', ['is_preview'])
    op.create_index('idx_users_is_preview_ambassador', 'users', ['is_preview_ambassador'])

    _pair_table('matches')
    _pair_table('likes')
    _pair_table('passes')

    op.create_table('messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_messages_match', 'messages', ['match_id'])
    op.create_index('idx_messages_match_created', 'messages', ['match_id', 'created_at', 'id'])
    op.create_index('idx_messages_match_sender', 'messages', ['match_id', 'sender_id'])


def downgrade() -> None:
    op.drop_table('messages')
    op.drop_table('passes')
    op.drop_table('likes')
    op.drop_table('matches')
    op.drop_table('users')
