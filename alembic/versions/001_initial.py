"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # Profiles table
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='employee'),
        sa.Column('team_name', sa.String(150), nullable=True),
        sa.Column('can_manage_teams', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('can_be_managed', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    # Login sessions
    op.create_table(
        'user_sessions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('profile_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_user_sessions_profile_id', 'user_sessions', ['profile_id'])
    op.create_index('ix_user_sessions_session_token', 'user_sessions', ['session_token'], unique=True)

    # Invitations
    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('invitation_type', sa.String(20), nullable=False),
        sa.Column('manager_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=True),
        sa.Column('invited_by_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('invited_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index(
        'uq_invitations_pending_email_inviter_type',
        'invitations',
        ['email', 'invited_by_id', 'invitation_type'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # Team membership, one row per occupied slot
    op.create_table(
        'team_members',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('team_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slot', sa.Integer, nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='employee'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('team_id', 'member_id', name='uq_team_members_team_member'),
        sa.UniqueConstraint('team_id', 'slot', name='uq_team_members_team_slot'),
        sa.CheckConstraint('team_id <> member_id', name='ck_team_members_not_self'),
        sa.CheckConstraint('slot >= 1', name='ck_team_members_slot_positive'),
    )
    op.create_index('ix_team_members_team_id', 'team_members', ['team_id'])
    op.create_index('ix_team_members_member_id', 'team_members', ['member_id'])

    # Sharing preferences
    op.create_table(
        'sharing_preferences',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('profile_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('manager_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('share_profile', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('share_insights', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('share_conversations', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('share_ocean_profile', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('share_progress', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('profile_id', 'manager_id', name='uq_sharing_preferences_profile_manager'),
    )
    op.create_index('ix_sharing_preferences_profile_id', 'sharing_preferences', ['profile_id'])
    op.create_index('ix_sharing_preferences_manager_id', 'sharing_preferences', ['manager_id'])

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('profile_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('data', sa.JSON, nullable=True),
        sa.Column('read', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_notifications_profile_id', 'notifications', ['profile_id'])

    # Conversations and their key insights
    op.create_table(
        'conversations',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('profile_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('summary', sa.Text, nullable=True),
        sa.Column('ocean_scores', sa.JSON, nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_conversations_profile_id', 'conversations', ['profile_id'])

    op.create_table(
        'key_insights',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('conversation_id', sa.Integer, sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('profile_id', sa.Integer, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('insights', sa.JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_key_insights_conversation_id', 'key_insights', ['conversation_id'])
    op.create_index('ix_key_insights_profile_id', 'key_insights', ['profile_id'])


def downgrade() -> None:
    op.drop_table('key_insights')
    op.drop_table('conversations')
    op.drop_table('notifications')
    op.drop_table('sharing_preferences')
    op.drop_table('team_members')
    op.drop_table('invitations')
    op.drop_table('user_sessions')
    op.drop_table('profiles')
