"""Chat schema - activities catalog, conversations, messages and recommendations.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Tables:
- activities: read-only catalog the recommender ranks
- chat_conversations: one row per conversation, context stored in "metadata"
- chat_messages: append-only transcript, replayed by per-conversation seq
- chat_recommendations: ranked picks recorded at the end of a conversation
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    conversation_status = sa.Enum('ACTIVE', 'COMPLETED', 'ARCHIVED', name='conversationstatus')
    message_role = sa.Enum('USER', 'ASSISTANT', 'SYSTEM', name='messagerole')
    message_type = sa.Enum('TEXT', 'QUICK_REPLY', 'RECOMMENDATION', 'ACTIVITY_CARD', name='messagetype')

    op.create_table(
        'activities',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('age_min', sa.Integer(), nullable=False),
        sa.Column('age_max', sa.Integer(), nullable=False),
        sa.Column('price_min', sa.Float(), nullable=False),
        sa.Column('price_max', sa.Float(), nullable=False),
        sa.Column('is_free', sa.Boolean(), nullable=False),
        sa.Column('is_indoor', sa.Boolean(), nullable=False),
        sa.Column('is_outdoor', sa.Boolean(), nullable=False),
        sa.Column('average_rating', sa.Float(), nullable=False),
        sa.Column('total_reviews', sa.Integer(), nullable=False),
        sa.Column('location_lat', sa.Float(), nullable=False),
        sa.Column('location_lng', sa.Float(), nullable=False),
    )
    op.create_index('ix_activities_city', 'activities', ['city'])

    op.create_table(
        'chat_conversations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('profile_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', conversation_status, nullable=False),
        sa.Column('metadata', JSONType, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_chat_conversations_profile_id', 'chat_conversations', ['profile_id'])
    op.create_index('ix_chat_conversations_status', 'chat_conversations', ['status'])

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('chat_conversations.id'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('role', message_role, nullable=False),
        sa.Column('content', sa.String(length=10000), nullable=False),
        sa.Column('message_type', message_type, nullable=False),
        sa.Column('payload', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('conversation_id', 'seq'),
    )
    op.create_index('ix_chat_messages_conversation_id', 'chat_messages', ['conversation_id'])

    op.create_table(
        'chat_recommendations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('conversation_id', sa.Uuid(), sa.ForeignKey('chat_conversations.id'), nullable=False),
        sa.Column('activity_id', sa.Uuid(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_chat_recommendations_conversation_id', 'chat_recommendations', ['conversation_id'])
    op.create_index('ix_chat_recommendations_activity_id', 'chat_recommendations', ['activity_id'])


def downgrade() -> None:
    op.drop_table('chat_recommendations')
    op.drop_table('chat_messages')
    op.drop_table('chat_conversations')
    op.drop_table('activities')
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS messagetype")
        op.execute("DROP TYPE IF EXISTS messagerole")
        op.execute("DROP TYPE IF EXISTS conversationstatus")
