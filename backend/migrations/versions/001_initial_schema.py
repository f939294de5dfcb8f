"""
Alembic migration: initial delivery schema.

Creates the tenant table, catalog tables, orders with their items, the
financial ledger with purchase budgets, and priority escalation rules. The
partial unique index on financial_entries guarantees at most one automatic
sale entry per order.

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS_VALUES = (
    'pending', 'em_producao', 'a_caminho', 'entregue', 'cancelado', 'finalizado',
)
ENTRY_TYPE_VALUES = ('income', 'expense')
BUDGET_STATUS_VALUES = ('draft', 'approved', 'rejected')

order_status = postgresql.ENUM(*ORDER_STATUS_VALUES, name='order_status', create_type=False)
entry_type = postgresql.ENUM(*ENTRY_TYPE_VALUES, name='entry_type', create_type=False)
budget_status = postgresql.ENUM(*BUDGET_STATUS_VALUES, name='budget_status', create_type=False)


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    ]


def _tenant_columns() -> list[sa.Column]:
    return _base_columns() + [
        sa.Column(
            'company_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('companies.id', ondelete='CASCADE'),
            nullable=False,
        ),
    ]


def _catalog_columns() -> list[sa.Column]:
    return _tenant_columns() + [
        sa.Column('active', sa.Boolean(), server_default=sa.true(), nullable=False),
    ]


def _money(name: str, nullable: bool = False, default: Union[str, None] = None) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(precision=10, scale=2),
        nullable=nullable,
        server_default=default,
    )


def upgrade() -> None:
    """
    Create the full schema.

    Tables are created parents first so foreign keys resolve; every tenant
    table gets an index on company_id.
    """
    bind = op.get_bind()
    postgresql.ENUM(*ORDER_STATUS_VALUES, name='order_status').create(bind, checkfirst=True)
    postgresql.ENUM(*ENTRY_TYPE_VALUES, name='entry_type').create(bind, checkfirst=True)
    postgresql.ENUM(*BUDGET_STATUS_VALUES, name='budget_status').create(bind, checkfirst=True)

    op.create_table(
        'companies',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('segment', sa.String(length=100), server_default='delivery', nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=True),
    )

    # Catalog
    op.create_table(
        'neighborhoods',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        _money('delivery_fee', default='0'),
        sa.CheckConstraint('delivery_fee >= 0', name='ck_neighborhoods_fee_non_negative'),
    )

    op.create_table(
        'payment_methods',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
    )

    op.create_table(
        'customers',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=False),
        sa.Column(
            'neighborhood_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('neighborhoods.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('last_order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_order_details', sa.Text(), nullable=True),
    )
    op.create_index('ix_customers_company_phone', 'customers', ['company_id', 'phone'])

    op.create_table(
        'products',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _money('price'),
        _money('cost_price', nullable=True),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
    )

    op.create_table(
        'items',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), server_default='geral', nullable=False),
        _money('price', default='0'),
    )

    # Orders
    op.create_table(
        'orders',
        *_tenant_columns(),
        sa.Column(
            'customer_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('customers.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'neighborhood_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('neighborhoods.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column(
            'payment_method_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('payment_methods.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('status', order_status, server_default='pending', nullable=False),
        sa.Column('order_number', sa.Integer(), nullable=False),
        _money('total_amount'),
        _money('delivery_fee', default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('priority_level', sa.Integer(), nullable=True),
        sa.Column('priority_label', sa.String(length=100), nullable=True),
        sa.UniqueConstraint('company_id', 'order_number', name='uq_orders_company_number'),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_amount_non_negative'),
        sa.CheckConstraint('delivery_fee >= 0', name='ck_orders_delivery_fee_non_negative'),
        sa.CheckConstraint(
            "(status = 'cancelado') = (cancellation_reason IS NOT NULL)",
            name='ck_orders_cancellation_reason',
        ),
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_company_status', 'orders', ['company_id', 'status'])
    op.create_index(
        'ix_orders_unprioritized',
        'orders',
        ['status', 'created_at'],
        postgresql_where=sa.text('priority_level IS NULL'),
    )

    op.create_table(
        'order_items',
        *_base_columns(),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'product_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('products.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('quantity', sa.Integer(), server_default='1', nullable=False),
        _money('unit_price'),
        _money('total_price'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    # Financial
    op.create_table(
        'cost_centers',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
    )

    op.create_table(
        'expense_categories',
        *_catalog_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'cost_center_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('cost_centers.id', ondelete='SET NULL'),
            nullable=True,
        ),
    )

    op.create_table(
        'financial_entries',
        *_tenant_columns(),
        sa.Column('entry_type', entry_type, nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        _money('amount'),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('entry_time', sa.Time(), nullable=True),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'cost_center_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('cost_centers.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'expense_category_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('expense_categories.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('amount >= 0', name='ck_financial_entries_amount_non_negative'),
    )
    op.create_index('ix_financial_entries_entry_type', 'financial_entries', ['entry_type'])
    op.create_index('ix_financial_entries_entry_date', 'financial_entries', ['entry_date'])
    op.create_index(
        'ix_financial_entries_company_date',
        'financial_entries',
        ['company_id', 'entry_date'],
    )
    op.create_index(
        'uq_financial_entries_order_income',
        'financial_entries',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text("entry_type = 'income' AND order_id IS NOT NULL"),
    )

    op.create_table(
        'purchase_budgets',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('budget_date', sa.Date(), server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('status', budget_status, server_default='draft', nullable=False),
        _money('total_amount', default='0'),
    )

    op.create_table(
        'purchase_budget_items',
        *_base_columns(),
        sa.Column(
            'budget_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('purchase_budgets.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'item_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('items.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=10, scale=3), nullable=False),
        _money('unit_price'),
        _money('subtotal'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_budget_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_purchase_budget_items_unit_price'),
    )
    op.create_index(
        'ix_purchase_budget_items_budget_id',
        'purchase_budget_items',
        ['budget_id'],
    )

    # Priority escalation rules
    op.create_table(
        'priority_settings',
        *_tenant_columns(),
        sa.Column('status', order_status, nullable=False),
        sa.Column('minutes_threshold', sa.Integer(), nullable=False),
        sa.Column('priority_level', sa.Integer(), nullable=False),
        sa.Column('priority_label', sa.String(length=100), nullable=False),
        sa.Column('color', sa.String(length=20), nullable=True),
        sa.CheckConstraint('minutes_threshold >= 0', name='ck_priority_settings_threshold'),
    )
    op.create_index(
        'ix_priority_settings_company_status',
        'priority_settings',
        ['company_id', 'status'],
    )

    for table in TENANT_TABLES:
        op.create_index(f'ix_{table}_company_id', table, ['company_id'])


TENANT_TABLES = (
    'neighborhoods',
    'payment_methods',
    'customers',
    'products',
    'items',
    'orders',
    'cost_centers',
    'expense_categories',
    'financial_entries',
    'purchase_budgets',
    'priority_settings',
)


def downgrade() -> None:
    """Drop every table, children first, then the enum types."""
    op.drop_table('priority_settings')
    op.drop_table('purchase_budget_items')
    op.drop_table('purchase_budgets')
    op.drop_table('financial_entries')
    op.drop_table('expense_categories')
    op.drop_table('cost_centers')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('items')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('payment_methods')
    op.drop_table('neighborhoods')
    op.drop_table('companies')

    bind = op.get_bind()
    budget_status.drop(bind, checkfirst=True)
    entry_type.drop(bind, checkfirst=True)
    order_status.drop(bind, checkfirst=True)
