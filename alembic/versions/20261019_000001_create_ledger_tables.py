"""Create ledger tables

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.DECIMAL(18, 2)
POINTS = sa.DECIMAL(18, 2)


def upgrade() -> None:
    # Accounts
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('usuario', sa.String(length=255), nullable=False),
        sa.Column('patrocinador', sa.String(length=255), nullable=True),
        sa.Column('nombre', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('tipoRegistro', sa.String(length=32), nullable=False),
        sa.Column('rol', sa.String(length=32), nullable=False),
        sa.Column('personalPoints', POINTS, nullable=True),
        sa.Column('puntos', POINTS, nullable=True),
        sa.Column('groupPoints', POINTS, nullable=True),
        sa.Column('puntosGrupales', POINTS, nullable=True),
        sa.Column('balance', MONEY, nullable=False),
        sa.Column('walletBalance', MONEY, nullable=False),
        sa.Column('initialPackBought', sa.Boolean(), nullable=False),
        sa.Column('isMaster', sa.Boolean(), nullable=False),
        sa.Column('quickStartPaid', sa.Boolean(), nullable=False),
        sa.Column('quickStartOrderId', sa.String(length=64), nullable=True),
        sa.Column('quickStartOrderIds', sa.JSON(), nullable=True),
        sa.Column(
            'quickStartPaidAt', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('quickStartTotalPoints', POINTS, nullable=True),
        sa.Column('monthlyCoinsTracker', sa.JSON(), nullable=True),
        sa.Column(
            'lastRecalculation', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'balance >= 0', name='check_account_balance_non_negative'
        ),
        sa.CheckConstraint(
            '"groupPoints" >= 0',
            name='check_account_group_points_non_negative'
        ),
        sa.CheckConstraint(
            '"personalPoints" >= 0',
            name='check_account_personal_points_non_negative'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_accounts_usuario', 'accounts', ['usuario'], unique=True
    )
    op.create_index(
        'ix_accounts_patrocinador', 'accounts', ['patrocinador'], unique=False
    )
    op.create_index(
        'ix_accounts_tipoRegistro', 'accounts', ['tipoRegistro'], unique=False
    )

    # Catalog
    op.create_table(
        'productos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('nombre', sa.String(length=255), nullable=False),
        sa.Column('precioCliente', MONEY, nullable=True),
        sa.Column('precioDistribuidor', MONEY, nullable=True),
        sa.Column('puntos', POINTS, nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('buyerId', sa.Integer(), nullable=False),
        sa.Column('productId', sa.Integer(), nullable=True),
        sa.Column('productName', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('totalPoints', POINTS, nullable=False),
        sa.Column('totalPrice', MONEY, nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('groupPointsDistributed', sa.Boolean(), nullable=False),
        sa.Column(
            'groupPointsDistributedAt', sa.DateTime(timezone=True),
            nullable=True
        ),
        sa.Column('distributionNote', sa.Text(), nullable=True),
        sa.Column('commissionPath', sa.String(length=32), nullable=True),
        sa.Column('quickStartBulkConfirm', sa.Boolean(), nullable=False),
        sa.Column('confirmedAt', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmedBy', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['buyerId'], ['accounts.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['productId'], ['productos.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index(
        'idx_orders_buyer_status', 'orders', ['buyerId', 'status'],
        unique=False
    )

    # History (ledger entries)
    op.create_table(
        'history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=True),
        sa.Column('amount', MONEY, nullable=True),
        sa.Column('points', POINTS, nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('orderId', sa.String(length=64), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=True),
        sa.Column('originMs', sa.BigInteger(), nullable=True),
        sa.Column('date', sa.String(length=64), nullable=True),
        sa.Column('fromUser', sa.String(length=255), nullable=True),
        sa.Column('by', sa.String(length=255), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['account_id'], ['accounts.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'idx_history_account_timestamp', 'history',
        ['account_id', 'timestamp'], unique=False
    )
    op.create_index(
        'idx_history_account_type', 'history',
        ['account_id', 'type'], unique=False
    )
    op.create_index('idx_history_order', 'history', ['orderId'], unique=False)

    # Per-level payout records
    op.create_table(
        'commission_payouts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=64), nullable=False),
        sa.Column('points', POINTS, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['account_id'], ['accounts.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'order_id', 'level', name='uq_commission_payout_order_level'
        )
    )
    op.create_index(
        'ix_commission_payouts_order_id', 'commission_payouts',
        ['order_id'], unique=False
    )
    op.create_index(
        'ix_commission_payouts_account_id', 'commission_payouts',
        ['account_id'], unique=False
    )

    # Audit
    op.create_table(
        'confirmations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('orderId', sa.Integer(), nullable=False),
        sa.Column('buyerId', sa.Integer(), nullable=False),
        sa.Column('buyerUsername', sa.String(length=255), nullable=False),
        sa.Column('points', POINTS, nullable=False),
        sa.Column('commissionPath', sa.String(length=32), nullable=True),
        sa.Column('confirmedBy', sa.String(length=255), nullable=False),
        sa.Column('confirmedAt', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['orderId'], ['orders.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_confirmations_orderId', 'confirmations', ['orderId'],
        unique=False
    )

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('target_account_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_activity_logs_action', 'activity_logs', ['action'], unique=False
    )
    op.create_index(
        'ix_activity_logs_target_account_id', 'activity_logs',
        ['target_account_id'], unique=False
    )

    # Commission purge
    op.create_table(
        'commissionsPurged',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('executedBy', sa.String(length=255), nullable=False),
        sa.Column('totalUsersScanned', sa.Integer(), nullable=False),
        sa.Column('activeUsers', sa.Integer(), nullable=False),
        sa.Column('inactiveUsers', sa.Integer(), nullable=False),
        sa.Column('usersWithCommissionsPurged', sa.Integer(), nullable=False),
        sa.Column('totalAmountPurged', MONEY, nullable=False),
        sa.Column('totalPointsPurged', POINTS, nullable=False),
        sa.Column('purgedUsers', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'monthly_purge_markers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('points', POINTS, nullable=False),
        sa.Column('purged_by', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['account_id'], ['accounts.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'account_id', 'year', 'month',
            name='uq_monthly_purge_marker_account_month'
        )
    )

    # Games
    op.create_table(
        'game_income_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('userId', sa.Integer(), nullable=False),
        sa.Column('gameType', sa.String(length=64), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('coinsRequested', sa.Integer(), nullable=False),
        sa.Column('coinsApproved', sa.Integer(), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('totalThisMonth', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['userId'], ['accounts.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_game_income_logs_userId', 'game_income_logs', ['userId'],
        unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_game_income_logs_userId', table_name='game_income_logs')
    op.drop_table('game_income_logs')
    op.drop_table('monthly_purge_markers')
    op.drop_table('commissionsPurged')
    op.drop_index(
        'ix_activity_logs_target_account_id', table_name='activity_logs'
    )
    op.drop_index('ix_activity_logs_action', table_name='activity_logs')
    op.drop_table('activity_logs')
    op.drop_index('ix_confirmations_orderId', table_name='confirmations')
    op.drop_table('confirmations')
    op.drop_index(
        'ix_commission_payouts_account_id', table_name='commission_payouts'
    )
    op.drop_index(
        'ix_commission_payouts_order_id', table_name='commission_payouts'
    )
    op.drop_table('commission_payouts')
    op.drop_index('idx_history_order', table_name='history')
    op.drop_index('idx_history_account_type', table_name='history')
    op.drop_index('idx_history_account_timestamp', table_name='history')
    op.drop_table('history')
    op.drop_index('idx_orders_buyer_status', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_table('orders')
    op.drop_table('productos')
    op.drop_index('ix_accounts_tipoRegistro', table_name='accounts')
    op.drop_index('ix_accounts_patrocinador', table_name='accounts')
    op.drop_index('ix_accounts_usuario', table_name='accounts')
    op.drop_table('accounts')
