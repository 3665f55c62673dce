"""create affiliate program tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:12:40.118532

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

affiliate_status = sa.Enum('active', 'paused', 'suspended', name='affiliatestatus')
payment_method = sa.Enum('paypal', 'bank_transfer', 'crypto', name='paymentmethod')
referral_status = sa.Enum('pending', 'completed', 'expired', 'cancelled', name='referralstatus')
payout_status = sa.Enum('pending', 'processing', 'completed', 'failed', name='payoutstatus')


def upgrade() -> None:
    op.create_table(
        'affiliates',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('referral_code', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('customer_discount', sa.Integer(), nullable=False),
        sa.Column('affiliate_reward', sa.Integer(), nullable=False),
        sa.Column('total_earnings', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('available_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('pending_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_referrals', sa.Integer(), nullable=False),
        sa.Column('successful_referrals', sa.Integer(), nullable=False),
        sa.Column('status', affiliate_status, nullable=False),
        sa.Column('payout_method', payment_method, nullable=False),
        sa.Column('minimum_payout', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payout_details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('customer_discount + affiliate_reward = 15', name='ck_affiliates_discount_pool'),
        sa.CheckConstraint('available_balance >= 0', name='ck_affiliates_available_balance'),
    )
    op.create_index(op.f('ix_affiliates_user_id'), 'affiliates', ['user_id'], unique=True)
    op.create_index(op.f('ix_affiliates_referral_code'), 'affiliates', ['referral_code'], unique=True)

    op.create_table(
        'referrals',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('referral_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('affiliate_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('referred_user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('referral_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('customer_discount', sa.Integer(), nullable=False),
        sa.Column('affiliate_reward', sa.Integer(), nullable=False),
        sa.Column('status', referral_status, nullable=False),
        sa.Column('discount_applied', sa.Boolean(), nullable=False),
        sa.Column('reward_paid', sa.Boolean(), nullable=False),
        sa.Column('first_order_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column('discount_eligible_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('reward_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('cancel_reason', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column('user_agent', sqlmodel.sql.sqltypes.AutoString(length=512), nullable=True),
        sa.Column('source', sqlmodel.sql.sqltypes.AutoString(length=128), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('customer_discount + affiliate_reward = 15', name='ck_referrals_discount_pool'),
    )
    op.create_index(op.f('ix_referrals_referral_id'), 'referrals', ['referral_id'], unique=True)
    op.create_index(op.f('ix_referrals_affiliate_id'), 'referrals', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_referrals_referred_user_id'), 'referrals', ['referred_user_id'], unique=True)
    op.create_index(op.f('ix_referrals_status'), 'referrals', ['status'], unique=False)
    op.create_index(op.f('ix_referrals_expires_at'), 'referrals', ['expires_at'], unique=False)

    op.create_table(
        'payouts',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('payout_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('affiliate_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('status', payout_status, nullable=False),
        sa.Column('processed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('account_last4', sqlmodel.sql.sqltypes.AutoString(length=4), nullable=True),
        sa.Column('payment_gateway', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column('gateway_payout_id', sqlmodel.sql.sqltypes.AutoString(length=128), nullable=True),
        sa.Column('failure_reason', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_payouts_payout_id'), 'payouts', ['payout_id'], unique=True)
    op.create_index(op.f('ix_payouts_affiliate_id'), 'payouts', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_payouts_status'), 'payouts', ['status'], unique=False)

    op.create_table(
        'earning_credits',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('order_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('affiliate_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('referral_id', sqlmodel.sql.sqltypes.GUID(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.ForeignKeyConstraint(['referral_id'], ['referrals.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_earning_credits_order_id'), 'earning_credits', ['order_id'], unique=True)
    op.create_index(op.f('ix_earning_credits_affiliate_id'), 'earning_credits', ['affiliate_id'], unique=False)
    op.create_index(op.f('ix_earning_credits_created_at'), 'earning_credits', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('earning_credits')
    op.drop_table('payouts')
    op.drop_table('referrals')
    op.drop_table('affiliates')
    for enum_type in (payout_status, referral_status, payment_method, affiliate_status):
        enum_type.drop(op.get_bind(), checkfirst=True)
