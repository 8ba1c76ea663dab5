"""create_chat_tables

Revision ID: 3c1f5a7d2b90
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f5a7d2b90'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False, comment='用户名'),
        sa.Column('email', sa.String(length=100), nullable=False, comment='邮箱'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, comment='房间名称'),
        sa.Column('description', sa.Text(), nullable=True, comment='房间描述'),
        sa.Column('creator_id', sa.Integer(), nullable=False, comment='创建者ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], name='fk_rooms_creator_id_users', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_rooms'),
    )
    op.create_index('ix_rooms_id', 'rooms', ['id'])

    op.create_table(
        'room_members',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False, comment='房间ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('role', sa.String(length=20), server_default='member', nullable=False, comment='成员角色'),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='加入时间'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], name='fk_room_members_room_id_rooms', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_room_members_user_id_users', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_room_members'),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_room_members_room_user'),
    )
    op.create_index('ix_room_members_room_id', 'room_members', ['room_id'])
    op.create_index('ix_room_members_user_id', 'room_members', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False, comment='房间ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='发送者ID'),
        sa.Column('content', sa.Text(), nullable=False, comment='消息内容'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='发送时间'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], name='fk_messages_room_id_rooms', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_messages_user_id_users', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_messages'),
    )
    op.create_index('ix_messages_id', 'messages', ['id'])
    op.create_index('ix_messages_room_created', 'messages', ['room_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_messages_room_created', table_name='messages')
    op.drop_index('ix_messages_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_room_members_user_id', table_name='room_members')
    op.drop_index('ix_room_members_room_id', table_name='room_members')
    op.drop_table('room_members')
    op.drop_index('ix_rooms_id', table_name='rooms')
    op.drop_table('rooms')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
