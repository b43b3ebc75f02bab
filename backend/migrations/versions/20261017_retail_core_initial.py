"""Retail core schema: shifts, sales, settlement payments, purchase orders, stock

Revision ID: 20261017_retail_core
Revises:
Create Date: 2026-10-17

This migration creates:
1. shifts (cash-drawer sessions, one active per cashier+branch)
2. sales and sale_lines (priced snapshot with settlement balance)
3. settlement_payments (payments on credit sales and purchase orders)
4. purchase_orders and purchase_order_lines (ordered vs received)
5. stock_mutations (append-only stock movements)
6. document_sequences (invoice / PO numbering)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_retail_core'
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, default='0'):
    if nullable:
        return sa.Column(name, sa.Numeric(18, 2), nullable=True)
    return sa.Column(name, sa.Numeric(18, 2), nullable=False, server_default=default)


def upgrade():
    # ==========================================================================
    # 1. SHIFTS
    # ==========================================================================
    op.create_table('shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cashier_id', sa.String(length=64), nullable=False),
        sa.Column('cashier_name', sa.String(length=128), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        _money('starting_balance'),
        _money('cash_total'),
        _money('card_total'),
        _money('transfer_total'),
        _money('qris_total'),
        _money('credit_total'),
        _money('total_sales', nullable=True),
        _money('expected_cash', nullable=True),
        _money('actual_cash_counted', nullable=True),
        _money('variance', nullable=True),
        _money('cash_difference', nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shifts_cashier_id'), ['cashier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_branch_id'), ['branch_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_status'), ['status'], unique=False)
        batch_op.create_index('ix_shifts_branch_started', ['branch_id', 'started_at'], unique=False)
        batch_op.create_index(
            'uq_shifts_one_active',
            ['cashier_id', 'branch_id'],
            unique=True,
            sqlite_where=sa.text("status = 'active'"),
            postgresql_where=sa.text("status = 'active'"),
        )

    # ==========================================================================
    # 2. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('cashier_id', sa.String(length=64), nullable=False),
        sa.Column('cashier_name', sa.String(length=128), nullable=True),
        sa.Column('customer_id', sa.String(length=64), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('document_discount_type', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('document_discount_value', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('tax_mode', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('tax_rate', sa.Numeric(9, 4), nullable=False, server_default='0'),
        _money('shipping_cost'),
        sa.Column('voucher_code', sa.String(length=64), nullable=True),
        _money('voucher_discount'),
        _money('subtotal'),
        _money('item_discount_total'),
        _money('document_discount_amount'),
        _money('tax_amount'),
        _money('total_amount'),
        _money('total_cost'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        _money('amount_tendered'),
        _money('change_given'),
        sa.Column('is_credit', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('credit_due_date', sa.Date(), nullable=True),
        _money('outstanding_amount'),
        sa.Column('returned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_reason', sa.String(length=255), nullable=True),
        sa.Column('returned_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'invoice_number', name='uq_sales_branch_invoice'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_branch_id'), ['branch_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_shift_id'), ['shift_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index('ix_sales_branch_status_created', ['branch_id', 'status', 'created_at'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(18, 2), nullable=False),
        _money('unit_cost'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('discount_value', sa.Numeric(18, 4), nullable=False, server_default='0'),
        _money('discount_amount'),
        sa.Column('line_total', sa.Numeric(18, 2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_lines_sale_id'), ['sale_id'], unique=False)

    # ==========================================================================
    # 3. SETTLEMENT PAYMENTS
    # ==========================================================================
    op.create_table('settlement_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='recorded'),
        sa.Column('recorded_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('recorded_by_name', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('edited_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by_user_id', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('settlement_payments', schema=None) as batch_op:
        batch_op.create_index('ix_settlement_payments_document', ['document_type', 'document_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_settlement_payments_status'), ['status'], unique=False)

    # ==========================================================================
    # 4. PURCHASE ORDERS
    # ==========================================================================
    op.create_table('purchase_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('po_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.String(length=64), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('manual_status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('document_discount_type', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('document_discount_value', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('tax_mode', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('tax_rate', sa.Numeric(9, 4), nullable=False, server_default='0'),
        _money('shipping_cost'),
        _money('subtotal'),
        _money('document_discount_amount'),
        _money('tax_amount'),
        _money('total_amount'),
        sa.Column('payment_terms', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('payment_due_date', sa.Date(), nullable=True),
        _money('outstanding_amount'),
        sa.Column('payable_since', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('created_by_name', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'po_number', name='uq_purchase_orders_branch_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_orders_branch_id'), ['branch_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_orders_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_orders_manual_status'), ['manual_status'], unique=False)

    op.create_table('purchase_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('ordered_quantity', sa.Integer(), nullable=False),
        sa.Column('received_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Numeric(18, 2), nullable=False),
        _money('line_total'),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purchase_order_id', 'product_id', name='uq_po_lines_order_product'),
        sa.CheckConstraint('received_quantity >= 0', name='ck_po_lines_received_nonneg'),
        sa.CheckConstraint('received_quantity <= ordered_quantity', name='ck_po_lines_not_over_received'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_order_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_order_lines_purchase_order_id'), ['purchase_order_id'], unique=False)

    # ==========================================================================
    # 5. STOCK MUTATIONS
    # ==========================================================================
    op.create_table('stock_mutations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('reason_code', sa.String(length=32), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('actor_user_id', sa.String(length=64), nullable=True),
        sa.Column('actor_name', sa.String(length=128), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_mutations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_mutations_branch_id'), ['branch_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_mutations_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_mutations_reason_code'), ['reason_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_mutations_reference'), ['reference'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_mutations_occurred_at'), ['occurred_at'], unique=False)
        batch_op.create_index(
            'ix_stock_mutations_branch_product_occurred', ['branch_id', 'product_id', 'occurred_at'], unique=False
        )

    # ==========================================================================
    # 6. DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'document_type', name='uq_doc_sequences_branch_type'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_sequences_branch_id'), ['branch_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_document_sequences_document_type'), ['document_type'], unique=False)


def downgrade():
    # Drop tables in reverse order of creation (respect foreign keys)
    op.drop_table('document_sequences')
    op.drop_table('stock_mutations')
    op.drop_table('purchase_order_lines')
    op.drop_table('purchase_orders')
    op.drop_table('settlement_payments')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('shifts')
