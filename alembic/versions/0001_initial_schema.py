"""initial pre-registration schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from uuid import uuid4

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from prereg.models.reward import DEFAULT_REWARD_TIERS

# revision identifiers
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """사전예약 테이블 생성 및 보상 티어 시드"""

    # 1. users
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, comment='소문자로 저장'),
        sa.Column('nickname', sa.String(50), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('language', sa.String(2), nullable=False, server_default='ko'),
        sa.Column('referral_code', sa.String(8), nullable=False, comment='내 추천 코드'),
        sa.Column('referred_by_code', sa.String(8), nullable=True, comment='가입 시 사용한 추천 코드'),
        sa.Column(
            'referred_by_user_id', sa.String(36),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True, comment='나를 추천한 유저 ID',
        ),
        sa.Column('referral_count_cache', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.UniqueConstraint('nickname', name='uq_users_nickname'),
        sa.UniqueConstraint('referral_code', name='uq_users_referral_code'),
    )
    op.create_index('ix_users_referred_by_user_id', 'users', ['referred_by_user_id'])

    # 2. referrals (2단계까지만 기록)
    op.create_table(
        'referrals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('referrer_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('referee_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('level', sa.SmallInteger, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('referee_id', 'level', name='uq_referrals_referee_level'),
        sa.CheckConstraint('level IN (1, 2)', name='ck_referrals_level'),
        sa.CheckConstraint('referrer_id <> referee_id', name='ck_referrals_not_self'),
    )
    op.create_index(
        'ix_referrals_referrer_level_created', 'referrals',
        ['referrer_id', 'level', 'created_at'],
    )

    # 3. reward_tiers
    reward_tiers = op.create_table(
        'reward_tiers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tier_name', sa.String(50), nullable=False),
        sa.Column('min_referrals', sa.Integer, nullable=False),
        sa.Column('max_referrals', sa.Integer, nullable=True, comment='NULL이면 상한 없음'),
        sa.Column('rewards', JSONType, nullable=False),
        sa.Column('unlocked_episodes', JSONType, nullable=False),
        sa.Column('tier_translations', JSONType, nullable=False),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('tier_name', name='uq_reward_tiers_name'),
        sa.CheckConstraint('min_referrals >= 0', name='ck_reward_tiers_min'),
        sa.CheckConstraint(
            'max_referrals IS NULL OR max_referrals > min_referrals',
            name='ck_reward_tiers_range',
        ),
    )

    # 4. user_rewards
    op.create_table(
        'user_rewards',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tier_id', sa.String(36), sa.ForeignKey('reward_tiers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_claimed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'tier_id', name='uq_user_rewards_user_tier'),
    )
    op.create_index('ix_user_rewards_user_id', 'user_rewards', ['user_id'])

    # 5. pre_registration_stats (일별 1행)
    op.create_table(
        'pre_registration_stats',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('total_registrations', sa.Integer, nullable=False, server_default='0'),
        sa.Column('registrations_today', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('date', name='uq_pre_registration_stats_date'),
    )

    # 6. 기본 보상 티어
    op.bulk_insert(
        reward_tiers,
        [{'id': str(uuid4()), 'is_active': True, **tier} for tier in DEFAULT_REWARD_TIERS],
    )


def downgrade() -> None:
    """사전예약 테이블 제거"""

    op.drop_table('pre_registration_stats')
    op.drop_index('ix_user_rewards_user_id', table_name='user_rewards')
    op.drop_table('user_rewards')
    op.drop_table('reward_tiers')
    op.drop_index('ix_referrals_referrer_level_created', table_name='referrals')
    op.drop_table('referrals')
    op.drop_index('ix_users_referred_by_user_id', table_name='users')
    op.drop_table('users')
