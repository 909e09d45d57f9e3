"""customers, attendance and tasks

Revision ID: 20261017_field_ops
Revises: 20261017_initial
Create Date: 2026-10-17 12:00:00.000000

Adds the field-operations tables:
- internet_plans / customers / customer_conflicts: subscribers and CSV import review log
- attendance_records / daily_attendance: check-in/out log and daily task tally
- tasks: field jobs per customer, assigned to a worker
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_field_ops'
down_revision = '20261017_initial'
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
    # customers
    # ============================================================================
    op.create_table(
        'internet_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('speed', sa.String(length=64), nullable=True),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('latitude', sa.String(length=32), nullable=True),
        sa.Column('longitude', sa.String(length=32), nullable=True),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['plan_id'], ['internet_plans.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_plan_id', 'customers', ['plan_id'])
    op.create_index('ix_customers_name_address', 'customers', ['name', 'address'])

    op.create_table(
        'customer_conflicts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('latitude', sa.String(length=32), nullable=True),
        sa.Column('longitude', sa.String(length=32), nullable=True),
        sa.Column('plan_name', sa.String(length=128), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('row_data', sa.Text(), nullable=True),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # attendance
    # ============================================================================
    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_attendance_records_name_timestamp', 'attendance_records', ['name', 'timestamp'])

    op.create_table(
        'daily_attendance',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('completed_tasks', sa.Integer(), nullable=False),
        sa.Column('total_tasks', sa.Integer(), nullable=False),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'attendance_date', name='uq_daily_attendance_user_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_daily_attendance_user_id', 'daily_attendance', ['user_id'])
    op.create_index('ix_daily_attendance_attendance_date', 'daily_attendance', ['attendance_date'])

    # ============================================================================
    # tasks
    # ============================================================================
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('contact_phone', sa.String(length=50), nullable=False),
        sa.Column('objection_reason', sa.Text(), nullable=True),
        sa.Column('final_comment', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_tasks_customer_id', 'tasks', ['customer_id'])
    op.create_index('ix_tasks_assignee_status', 'tasks', ['assigned_to_id', 'status'])


def downgrade():
    for table in (
        'tasks',
        'daily_attendance',
        'attendance_records',
        'customer_conflicts',
        'customers',
        'internet_plans',
    ):
        op.drop_table(table)
