"""add_tax_tables

Revision ID: 8c4e2a6b1f03
Revises: 3f9a1c2b7d10
Create Date: 2026-09-28 11:47:03.219845

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '8c4e2a6b1f03'
down_revision: Union[str, Sequence[str], None] = '3f9a1c2b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name):
    """Check if a table exists."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Upgrade schema."""
    if not table_exists('taxes'):
        op.create_table(
            'taxes',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
            sa.Column('year', sa.Integer(), nullable=False),
            sa.Column('total_income', sa.Numeric(14, 2), nullable=False),
            sa.Column('total_deductions', sa.Numeric(14, 2), nullable=False),
            sa.Column('taxable_income', sa.Numeric(14, 2), nullable=False),
            sa.Column('total_tax', sa.Numeric(14, 2), nullable=False),
            sa.Column('total_paid', sa.Numeric(14, 2), nullable=False),
            sa.Column('balance', sa.Numeric(14, 2), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('filing_status', sa.String(length=30), nullable=False),
            sa.Column('state', sa.String(length=50), nullable=False),
            sa.Column('state_tax_rate', sa.Numeric(6, 3), nullable=True),
            sa.Column('state_tax_amount', sa.Numeric(14, 2), nullable=True),
            sa.Column('local_tax_rate', sa.Numeric(6, 3), nullable=True),
            sa.Column('local_tax_amount', sa.Numeric(14, 2), nullable=True),
            sa.Column('self_employment_tax_rate', sa.Numeric(6, 3), nullable=True),
            sa.Column('self_employment_tax_amount', sa.Numeric(14, 2), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.UniqueConstraint('user_id', 'year', name='uq_taxes_user_year'),
        )

    if not table_exists('tax_deductions'):
        op.create_table(
            'tax_deductions',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('tax_id', sa.Integer(), sa.ForeignKey('taxes.id'), nullable=False),
            sa.Column('category', sa.String(length=50), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('amount', sa.Numeric(14, 2), nullable=False),
            sa.Column('date', sa.Date(), nullable=True),
        )

    if not table_exists('tax_payments'):
        op.create_table(
            'tax_payments',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('tax_id', sa.Integer(), sa.ForeignKey('taxes.id'), nullable=False),
            sa.Column('amount', sa.Numeric(14, 2), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('payment_method', sa.String(length=30), nullable=True),
            sa.Column('reference', sa.String(length=100), nullable=True),
        )

    if not table_exists('tax_entries'):
        op.create_table(
            'tax_entries',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
            sa.Column('type', sa.String(length=30), nullable=False),
            sa.Column('amount', sa.Numeric(14, 2), nullable=False),
            sa.Column('rate', sa.Numeric(6, 3), nullable=False),
            sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('year', sa.Integer(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('tax_entries')
    op.drop_table('tax_payments')
    op.drop_table('tax_deductions')
    op.drop_table('taxes')
