"""Initial migration

Revision ID: 001
Revises:
Create Date: 2024-03-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    ]


def upgrade() -> None:
    # Businesses and employees
    op.create_table(
        'businesses',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('status', sa.Enum('ACTIVE', 'DISABLED', name='business_status'), nullable=False, server_default='ACTIVE'),
        *_timestamps(),
    )

    op.create_table(
        'employees',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('business_id', _uuid(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='employee_status'), nullable=False, server_default='ACTIVE'),
        *_timestamps(),
    )

    # Catalog
    op.create_table(
        'components',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('is_active', sa.Boolean(), default=True),
        *_timestamps(),
    )

    op.create_table(
        'variants',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('component_id', _uuid(), sa.ForeignKey('components.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('image_url', sa.String(500)),
        sa.Column('is_active', sa.Boolean(), default=True),
        *_timestamps(),
    )

    op.create_table(
        'packs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('is_active', sa.Boolean(), default=True),
        *_timestamps(),
    )

    op.create_table(
        'pack_components',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('pack_id', _uuid(), sa.ForeignKey('packs.id'), nullable=False),
        sa.Column('component_id', _uuid(), sa.ForeignKey('components.id'), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('pack_id', 'component_id', name='uq_pack_components_pack_component'),
    )

    op.create_table(
        'services',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('order_start_time', sa.String(5)),
        sa.Column('cutoff_time', sa.String(5)),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('is_published', sa.Boolean(), default=False),
        *_timestamps(),
    )

    op.create_table(
        'service_packs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('service_id', _uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('pack_id', _uuid(), sa.ForeignKey('packs.id'), unique=True, nullable=False),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    op.create_table(
        'meals',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('available_date', sa.Date(), nullable=False),
        sa.Column('cutoff_time', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('status', sa.String(20), default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Subscriptions
    op.create_table(
        'business_services',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('business_id', _uuid(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('service_id', _uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        *_timestamps(),
        sa.UniqueConstraint('business_id', 'service_id', name='uq_business_services_business_service'),
    )

    op.create_table(
        'business_service_packs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('business_service_id', _uuid(), sa.ForeignKey('business_services.id'), nullable=False),
        sa.Column('pack_id', _uuid(), sa.ForeignKey('packs.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=False),
        sa.Column('next_pack_id', _uuid(), sa.ForeignKey('packs.id')),
        sa.Column('effective_date', sa.DateTime()),
        *_timestamps(),
        sa.UniqueConstraint('business_service_id', 'pack_id', name='uq_business_service_packs_service_pack'),
    )

    # Daily menus and the stock ledger
    op.create_table(
        'daily_menus',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('date', sa.Date(), unique=True, nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'PUBLISHED', 'LOCKED', name='daily_menu_status'), nullable=False, server_default='DRAFT'),
        sa.Column('cutoff_hour', sa.String(5), server_default='14:00'),
        sa.Column('published_at', sa.DateTime()),
        *_timestamps(),
    )

    op.create_table(
        'daily_menu_packs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('daily_menu_id', _uuid(), sa.ForeignKey('daily_menus.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pack_id', _uuid(), sa.ForeignKey('packs.id'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('daily_menu_id', 'pack_id', name='uq_daily_menu_packs_menu_pack'),
    )

    op.create_table(
        'daily_menu_variants',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('daily_menu_id', _uuid(), sa.ForeignKey('daily_menus.id', ondelete='CASCADE'), nullable=False),
        sa.Column('variant_id', _uuid(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('initial_stock', sa.Integer(), nullable=False, server_default='50'),
        *_timestamps(),
        sa.UniqueConstraint('daily_menu_id', 'variant_id', name='uq_daily_menu_variants_menu_variant'),
        sa.CheckConstraint('initial_stock >= 0', name='ck_daily_menu_variants_stock_non_negative'),
    )

    op.create_table(
        'daily_menu_services',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('daily_menu_id', _uuid(), sa.ForeignKey('daily_menus.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', _uuid(), sa.ForeignKey('services.id'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('daily_menu_id', 'service_id', name='uq_daily_menu_services_menu_service'),
    )

    op.create_table(
        'daily_menu_service_variants',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('daily_menu_service_id', _uuid(), sa.ForeignKey('daily_menu_services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('variant_id', _uuid(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('initial_stock', sa.Integer(), nullable=False, server_default='50'),
        *_timestamps(),
        sa.UniqueConstraint('daily_menu_service_id', 'variant_id', name='uq_daily_menu_service_variants_service_variant'),
        sa.CheckConstraint('initial_stock >= 0', name='ck_daily_menu_service_variants_stock_non_negative'),
    )

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('employee_id', _uuid(), sa.ForeignKey('employees.id'), nullable=False),
        sa.Column('business_id', _uuid(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('daily_menu_id', _uuid(), sa.ForeignKey('daily_menus.id')),
        sa.Column('pack_id', _uuid(), sa.ForeignKey('packs.id')),
        sa.Column('service_id', _uuid(), sa.ForeignKey('services.id')),
        sa.Column('service_scope', sa.String(64), nullable=False, server_default='legacy'),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('CREATED', 'LOCKED', 'CANCELLED', name='order_status'), nullable=False, server_default='CREATED'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        *_timestamps(),
        sa.UniqueConstraint('employee_id', 'order_date', 'service_scope', name='uq_orders_employee_date_scope'),
    )

    op.create_table(
        'order_items',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('order_id', _uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('component_id', _uuid(), sa.ForeignKey('components.id'), nullable=False),
        sa.Column('variant_id', _uuid(), sa.ForeignKey('variants.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Operations
    op.create_table(
        'day_locks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('lock_date', sa.Date(), unique=True, nullable=False),
        sa.Column('locked_by', _uuid()),
        sa.Column('locked_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'ordering_locks',
        sa.Column('lock_date', sa.Date(), primary_key=True),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_by', _uuid()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Invoicing
    op.create_table(
        'invoices',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('business_id', _uuid(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('service_id', _uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('invoice_number', sa.String(32), unique=True, nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'ISSUED', 'PAID', name='invoice_status'), nullable=False, server_default='DRAFT'),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('tax', sa.Numeric(10, 2)),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('issued_at', sa.DateTime()),
        sa.Column('paid_at', sa.DateTime()),
        *_timestamps(),
    )

    op.create_table(
        'invoice_items',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('invoice_id', _uuid(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_id', _uuid(), sa.ForeignKey('orders.id'), unique=True, nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('pack_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('business_id', _uuid(), sa.ForeignKey('businesses.id')),
        sa.Column('actor_id', _uuid()),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_role', sa.String(50)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', _uuid()),
        sa.Column('data_json', postgresql.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_meals_available_date', 'meals', ['available_date'])
    op.create_index('idx_orders_date_status', 'orders', ['order_date', 'status'])
    op.create_index(
        'uq_invoices_live_business_service_period',
        'invoices',
        ['business_id', 'service_id', 'period_start', 'period_end'],
        unique=True,
        postgresql_where=sa.text("status IN ('DRAFT', 'ISSUED')"),
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('ordering_locks')
    op.drop_table('day_locks')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('daily_menu_service_variants')
    op.drop_table('daily_menu_services')
    op.drop_table('daily_menu_variants')
    op.drop_table('daily_menu_packs')
    op.drop_table('daily_menus')
    op.drop_table('business_service_packs')
    op.drop_table('business_services')
    op.drop_table('meals')
    op.drop_table('service_packs')
    op.drop_table('services')
    op.drop_table('pack_components')
    op.drop_table('packs')
    op.drop_table('variants')
    op.drop_table('components')
    op.drop_table('employees')
    op.drop_table('businesses')
    for enum_name in ('invoice_status', 'order_status', 'daily_menu_status', 'employee_status', 'business_status'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
