"""initial schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the complete Perla schema:
- users / session_tokens: staff accounts and bearer sessions
- inventory_items / warehouses / stock_levels / stock_movements: stock ledger
- cash_entries / cash_daily_summaries / cash_user_closures: daily cash and closure
- payroll_accruals / payroll_periods / payroll_items / loans / internal_debts: payroll
- activity_events: append-only feed
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP'))
        for name in names
    ]


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('daily_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps('created_at'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        *_timestamps('created_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # inventory
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_inventory_items_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_category', 'inventory_items', ['category'])

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'stock_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps('updated_at'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('item_id', 'warehouse_id', name='uq_stock_levels_item_warehouse'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_levels_quantity_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_levels_item_id', 'stock_levels', ['item_id'])
    op.create_index('ix_stock_levels_warehouse_id', 'stock_levels', ['warehouse_id'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_item_id', 'stock_movements', ['item_id'])
    op.create_index('ix_stock_movements_warehouse_id', 'stock_movements', ['warehouse_id'])
    op.create_index('ix_stock_movements_kind', 'stock_movements', ['kind'])
    op.create_index('ix_stock_movements_item_created', 'stock_movements', ['item_id', 'created_at'])

    # ============================================================================
    # cash
    # ============================================================================
    op.create_table(
        'cash_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_by_name', sa.String(length=255), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_cash_entries_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_entries_entry_date', 'cash_entries', ['entry_date'])
    op.create_index('ix_cash_entries_created_by_id', 'cash_entries', ['created_by_id'])
    op.create_index('ix_cash_entries_date_creator', 'cash_entries', ['entry_date', 'created_by_id'])

    op.create_table(
        'cash_daily_summaries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('summary_date', sa.Date(), nullable=False),
        sa.Column('incomes', sa.Numeric(12, 2), nullable=False),
        sa.Column('expenses', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('closed_by', sa.String(length=255), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('summary_date', name='uq_cash_daily_summaries_date'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'cash_user_closures',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('closure_date', sa.Date(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        *_timestamps('closed_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('closure_date', 'user_id', name='uq_cash_user_closures_date_user'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_user_closures_closure_date', 'cash_user_closures', ['closure_date'])
    op.create_index('ix_cash_user_closures_user_id', 'cash_user_closures', ['user_id'])

    # ============================================================================
    # payroll
    # ============================================================================
    op.create_table(
        'payroll_accruals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('accrual_date', sa.Date(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('cash_closure_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['cash_closure_id'], ['cash_daily_summaries.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('accrual_date', 'user_id', name='uq_payroll_accruals_date_user'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payroll_accruals_accrual_date', 'payroll_accruals', ['accrual_date'])
    op.create_index('ix_payroll_accruals_user_id', 'payroll_accruals', ['user_id'])
    op.create_index('ix_payroll_accruals_cash_closure_id', 'payroll_accruals', ['cash_closure_id'])

    op.create_table(
        'payroll_periods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'payroll_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('employee_name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['period_id'], ['payroll_periods.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payroll_items_period_id', 'payroll_items', ['period_id'])

    op.create_table(
        'loans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_name', sa.String(length=255), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('installments', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'internal_debts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # activity_events: append-only feed
    # ============================================================================
    op.create_table(
        'activity_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('event_category', sa.String(length=32), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('actor', sa.String(length=255), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=True),
        *_timestamps('created_at'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_activity_events_event_type', 'activity_events', ['event_type'])
    op.create_index('ix_activity_events_event_category', 'activity_events', ['event_category'])
    op.create_index('ix_activity_events_actor_user_id', 'activity_events', ['actor_user_id'])
    op.create_index('ix_activity_events_business_date', 'activity_events', ['business_date'])
    op.create_index('ix_activity_events_category_created', 'activity_events', ['event_category', 'created_at'])


def downgrade():
    for table in (
        'activity_events',
        'internal_debts',
        'loans',
        'payroll_items',
        'payroll_periods',
        'payroll_accruals',
        'cash_user_closures',
        'cash_daily_summaries',
        'cash_entries',
        'stock_movements',
        'stock_levels',
        'warehouses',
        'inventory_items',
        'session_tokens',
        'users',
    ):
        op.drop_table(table)
