"""initial_marketplace_schema

Revision ID: 7d2a41c9e803
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7d2a41c9e803'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False))
    return columns


def upgrade() -> None:
    """Upgrade schema."""

    # Accounts and creator profiles
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('display_name', sa.String(length=200), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('website', sa.Text(), nullable=True),
        sa.Column('social_links', sa.JSON(), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('user_type', sa.String(length=20), nullable=False),
        sa.Column('subscription_tier', sa.String(length=20), nullable=False),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('stripe_customer_id'),
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table(
        'creators',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('specialties', sa.JSON(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('total_earnings', sa.Float(), nullable=False),
        sa.Column('monthly_earnings', sa.Float(), nullable=False),
        sa.Column('lifetime_revenue', sa.Float(), nullable=False),
        sa.Column('total_purchases', sa.Integer(), nullable=False),
        sa.Column('total_videos', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    # Videos stay DRAFT until the thumbnail exists
    op.create_table(
        'videos',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('video_url', sa.Text(), nullable=False),
        sa.Column('storage_key', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=False),
        sa.Column('thumbnail_key', sa.Text(), nullable=True),
        sa.Column('duration', sa.Float(), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('resolution', sa.String(length=20), nullable=True),
        sa.Column('aspect_ratio', sa.String(length=20), nullable=True),
        sa.Column('fps', sa.Float(), nullable=True),
        sa.Column('ai_model', sa.String(length=200), nullable=False),
        sa.Column('prompts', sa.JSON(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('style', sa.String(length=50), nullable=False),
        sa.Column('personal_license', sa.Float(), nullable=True),
        sa.Column('commercial_license', sa.Float(), nullable=True),
        sa.Column('extended_license', sa.Float(), nullable=True),
        sa.Column('exclusive_rights', sa.Float(), nullable=True),
        sa.Column('is_available_for_sale', sa.Boolean(), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('views', sa.Integer(), nullable=False),
        sa.Column('purchases', sa.Integer(), nullable=False),
        sa.Column('revenue', sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_videos_creator_id'), 'videos', ['creator_id'], unique=False)
    op.create_index(op.f('ix_videos_category'), 'videos', ['category'], unique=False)
    op.create_index(op.f('ix_videos_style'), 'videos', ['style'], unique=False)
    op.create_index(op.f('ix_videos_status'), 'videos', ['status'], unique=False)
    op.create_index(op.f('ix_videos_created_at'), 'videos', ['created_at'], unique=False)
    op.create_index('idx_videos_public_listing', 'videos', ['status', 'is_public', 'created_at'], unique=False)

    # Payments; stripe_payment_id is the webhook idempotency key
    op.create_table(
        'purchases',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('video_id', sa.String(length=64), nullable=False),
        sa.Column('license_type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('stripe_payment_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_payment_id'),
    )
    op.create_index(op.f('ix_purchases_user_id'), 'purchases', ['user_id'], unique=False)
    op.create_index(op.f('ix_purchases_video_id'), 'purchases', ['video_id'], unique=False)
    op.create_index(op.f('ix_purchases_status'), 'purchases', ['status'], unique=False)
    op.create_index(op.f('ix_purchases_created_at'), 'purchases', ['created_at'], unique=False)
    # At most one COMPLETED purchase per user, video and license type
    op.create_index(
        'uq_purchases_completed_license',
        'purchases',
        ['user_id', 'video_id', 'license_type'],
        unique=True,
        postgresql_where=sa.text("status = 'COMPLETED'"),
    )

    op.create_table(
        'tips',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('sender_id', sa.String(length=64), nullable=False),
        sa.Column('creator_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('stripe_payment_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_payment_id'),
    )
    op.create_index(op.f('ix_tips_sender_id'), 'tips', ['sender_id'], unique=False)
    op.create_index(op.f('ix_tips_creator_id'), 'tips', ['creator_id'], unique=False)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('tier', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=False),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)

    op.create_table(
        'counter_mutations',
        sa.Column('idempotency_key', sa.String(length=300), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('idempotency_key'),
    )

    # Library and engagement
    op.create_table(
        'collections',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_collections_user_id'), 'collections', ['user_id'], unique=False)

    op.create_table(
        'collection_videos',
        sa.Column('collection_id', sa.String(length=64), nullable=False),
        sa.Column('video_id', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('collection_id', 'video_id'),
    )

    op.create_table(
        'likes',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('video_id', sa.String(length=64), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'video_id', name='uq_likes_user_video'),
    )
    op.create_index(op.f('ix_likes_user_id'), 'likes', ['user_id'], unique=False)
    op.create_index(op.f('ix_likes_video_id'), 'likes', ['video_id'], unique=False)

    op.create_table(
        'follows',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('follower_id', sa.String(length=64), nullable=False),
        sa.Column('following_id', sa.String(length=64), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['follower_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['following_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('follower_id', 'following_id', name='uq_follows_pair'),
    )
    op.create_index(op.f('ix_follows_follower_id'), 'follows', ['follower_id'], unique=False)
    op.create_index(op.f('ix_follows_following_id'), 'follows', ['following_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('follows')
    op.drop_table('likes')
    op.drop_table('collection_videos')
    op.drop_table('collections')
    op.drop_table('counter_mutations')
    op.drop_table('subscriptions')
    op.drop_table('tips')
    op.drop_index('uq_purchases_completed_license', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('idx_videos_public_listing', table_name='videos')
    op.drop_table('videos')
    op.drop_table('creators')
    op.drop_table('users')
