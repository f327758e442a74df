"""create_payment_request_tables

Revision ID: 3f2a9c1d7b6e
Revises:
Create Date: 2025-11-06 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b6e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # merchants 由商户管理系统维护，本服务只读
    op.create_table(
        'merchants',
        sa.Column('id', sa.String(length=36), nullable=False, comment='商户ID'),
        sa.Column('slug', sa.String(length=64), nullable=False, comment='URL 标识'),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC', comment='IANA 时区名'),
        sa.Column('default_currency', sa.String(length=3), nullable=False, server_default='USD', comment='默认货币'),
        sa.Column('max_buyer_orders_per_hour', sa.Integer(), nullable=False, server_default='1', comment='单IP每窗口买家下单上限'),
        sa.Column('payment_link_monthly_limit', sa.Integer(), nullable=False, server_default='0', comment='月度创建上限，0 表示不限'),
        sa.Column('default_payment_expiry_minutes', sa.Integer(), nullable=True, comment='默认过期分钟数'),
        sa.Column('allowed_expiry_minutes', sa.JSON(), nullable=True, comment='允许的过期分钟数列表'),
        sa.Column('allow_unsolicited_payments', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否允许买家主动发起'),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True, comment='暂停时间'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_merchants_slug', 'merchants', ['slug'], unique=True)

    op.create_table(
        'payment_requests',
        sa.Column('id', sa.String(length=36), nullable=False, comment='支付请求ID'),
        sa.Column('merchant_id', sa.String(length=36), nullable=False, comment='商户ID'),
        sa.Column('order_date', sa.String(length=8), nullable=False, comment='商户时区日期 YYYYMMDD'),
        sa.Column('order_number', sa.Integer(), nullable=False, comment='当日序号 1-9999'),
        sa.Column('link_id', sa.String(length=128), nullable=False, comment='公开链接标识 slug/date/number'),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False, comment='金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 ISO-4217'),
        sa.Column('expiry_minutes', sa.Integer(), nullable=False, comment='过期分钟数'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, comment='过期时间'),
        sa.Column('created_by', sa.String(length=16), nullable=False, comment='发起方: merchant/buyer'),
        sa.Column('created_by_ip', sa.String(length=64), nullable=True, comment='买家IP'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING', comment='生命周期: PENDING/EXPIRED/CANCELED'),
        sa.Column('settlement_status', sa.String(length=32), nullable=False, server_default='PENDING', comment='结算状态'),
        sa.Column('description', sa.Text(), nullable=True, comment='描述'),
        sa.Column('buyer_note', sa.Text(), nullable=True, comment='买家备注'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id'], name='fk_payment_requests_merchant_id_merchants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('link_id', name='uq_payment_requests_link_id'),
        sa.UniqueConstraint('merchant_id', 'order_date', 'order_number', name='uq_payment_requests_merchant_order'),
    )
    op.create_index('ix_payment_requests_merchant_created', 'payment_requests', ['merchant_id', 'created_at'], unique=False)
    op.create_index('ix_payment_requests_merchant_status', 'payment_requests', ['merchant_id', 'status'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(length=36), nullable=False, comment='事件ID'),
        sa.Column('event_type', sa.String(length=64), nullable=False, comment='事件类型'),
        sa.Column('payment_request_id', sa.String(length=36), nullable=False, comment='支付请求ID'),
        sa.Column('merchant_id', sa.String(length=36), nullable=False, comment='商户ID'),
        sa.Column('actor', sa.String(length=16), nullable=False, comment='操作方'),
        sa.Column('payload', sa.JSON(), nullable=True, comment='事件内容'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, comment='发生时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', name='uq_audit_logs_event_id'),
    )
    op.create_index('ix_audit_logs_payment_request', 'audit_logs', ['payment_request_id', 'occurred_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_audit_logs_payment_request', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_payment_requests_merchant_status', table_name='payment_requests')
    op.drop_index('ix_payment_requests_merchant_created', table_name='payment_requests')
    op.drop_table('payment_requests')
    op.drop_index('ix_merchants_slug', table_name='merchants')
    op.drop_table('merchants')
