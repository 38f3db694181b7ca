"""initial billing schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.engine import Connection


revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(conn: Connection, table_name: str) -> bool:
    return sa.inspect(conn).has_table(table_name)


def _has_index(conn: Connection, table_name: str, index_name: str) -> bool:
    if not _has_table(conn, table_name):
        return False
    return any(index['name'] == index_name for index in sa.inspect(conn).get_indexes(table_name))


def _create_index(conn: Connection, index_name: str, table_name: str, columns: list[str], **kwargs) -> None:
    if not _has_index(conn, table_name, index_name):
        op.create_index(index_name, table_name, columns, **kwargs)


def upgrade() -> None:
    conn = op.get_bind()

    if not _has_table(conn, 'users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('username', sa.String(length=255), nullable=False),
            sa.Column('avatar', sa.String(length=512), nullable=True),
            sa.Column('balance_kopeks', sa.BigInteger(), nullable=False, server_default=sa.text('0')),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint('balance_kopeks >= 0', name='ck_users_balance_non_negative'),
        )
    _create_index(conn, 'ix_users_email', 'users', ['email'], unique=True)

    if not _has_table(conn, 'subscription_plans'):
        op.create_table(
            'subscription_plans',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('price_kopeks', sa.BigInteger(), nullable=False),
            sa.Column('traffic_limit_bytes', sa.BigInteger(), nullable=False),
            sa.Column('duration_days', sa.Integer(), nullable=False),
            sa.Column('features', sa.JSON(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('display_order', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    if not _has_table(conn, 'subscriptions'):
        op.create_table(
            'subscriptions',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column(
                'plan_id',
                sa.Integer(),
                sa.ForeignKey('subscription_plans.id', ondelete='SET NULL'),
                nullable=True,
            ),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('price_kopeks', sa.BigInteger(), nullable=False),
            sa.Column('duration_days', sa.Integer(), nullable=False),
            sa.Column('traffic_limit_bytes', sa.BigInteger(), nullable=False),
            sa.Column('traffic_used_bytes', sa.BigInteger(), nullable=False, server_default=sa.text('0')),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('subscribe_url', sa.String(length=512), nullable=True),
            sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('expired_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint(
                'traffic_used_bytes >= 0 AND traffic_used_bytes <= traffic_limit_bytes',
                name='ck_subscriptions_traffic_within_limit',
            ),
        )
    _create_index(conn, 'ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    _create_index(conn, 'ix_subscriptions_plan_id', 'subscriptions', ['plan_id'])
    _create_index(
        conn,
        'ix_subscriptions_user_status_expired',
        'subscriptions',
        ['user_id', 'status', 'expired_at'],
    )

    if not _has_table(conn, 'orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('order_no', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('type', sa.String(length=20), nullable=False),
            sa.Column(
                'plan_id',
                sa.Integer(),
                sa.ForeignKey('subscription_plans.id', ondelete='SET NULL'),
                nullable=True,
            ),
            sa.Column(
                'subscription_id',
                sa.Integer(),
                sa.ForeignKey('subscriptions.id', ondelete='SET NULL'),
                nullable=True,
            ),
            sa.Column('amount_kopeks', sa.BigInteger(), nullable=False),
            sa.Column('payment_method', sa.String(length=50), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint('order_no', name='uq_orders_order_no'),
        )
    _create_index(conn, 'ix_orders_user_id', 'orders', ['user_id'])

    if not _has_table(conn, 'nodes'):
        op.create_table(
            'nodes',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('location', sa.String(length=255), nullable=True),
            sa.Column('protocol', sa.String(length=50), nullable=True),
            sa.Column('server_address', sa.String(length=255), nullable=True),
            sa.Column('server_port', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='online'),
            sa.Column('latency_ms', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.Column('load_percentage', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.Column('bandwidth', sa.String(length=50), nullable=True),
            sa.Column('max_connections', sa.Integer(), nullable=True),
            sa.Column('current_connections', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.Column('config', sa.JSON(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    if not _has_table(conn, 'user_node_access'):
        op.create_table(
            'user_node_access',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('node_id', sa.Integer(), sa.ForeignKey('nodes.id', ondelete='CASCADE'), nullable=False),
            sa.Column(
                'subscription_id',
                sa.Integer(),
                sa.ForeignKey('subscriptions.id', ondelete='CASCADE'),
                nullable=False,
            ),
            sa.Column('granted_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint('user_id', 'node_id', name='uq_user_node_access_user_node'),
        )

    if not _has_table(conn, 'traffic_logs'):
        op.create_table(
            'traffic_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column(
                'subscription_id',
                sa.Integer(),
                sa.ForeignKey('subscriptions.id', ondelete='CASCADE'),
                nullable=False,
            ),
            sa.Column('node_id', sa.Integer(), sa.ForeignKey('nodes.id', ondelete='CASCADE'), nullable=False),
            sa.Column('upload_bytes', sa.BigInteger(), nullable=False, server_default=sa.text('0')),
            sa.Column('download_bytes', sa.BigInteger(), nullable=False, server_default=sa.text('0')),
            sa.Column('total_bytes', sa.BigInteger(), nullable=False, server_default=sa.text('0')),
            sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
    _create_index(conn, 'ix_traffic_logs_subscription_id', 'traffic_logs', ['subscription_id'])
    _create_index(conn, 'ix_traffic_logs_user_recorded', 'traffic_logs', ['user_id', 'recorded_at'])

    if not _has_table(conn, 'user_notifications'):
        op.create_table(
            'user_notifications',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('notification_type', sa.String(length=50), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('body', sa.Text(), nullable=True),
            sa.Column('payload', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        )
    _create_index(conn, 'ix_user_notifications_user_created', 'user_notifications', ['user_id', 'created_at'])


def downgrade() -> None:
    conn = op.get_bind()

    for table_name in (
        'user_notifications',
        'traffic_logs',
        'user_node_access',
        'nodes',
        'orders',
        'subscriptions',
        'subscription_plans',
        'users',
    ):
        if _has_table(conn, table_name):
            op.drop_table(table_name)
