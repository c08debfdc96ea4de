"""Initial ledger schema: catalog, batches, documents, payments, revisions

Revision ID: 0001_ledger
Revises:
Create Date: 2026-10-18

This migration adds:
1. Products, customers, suppliers (collaborator master data)
2. Inventory batches with the 0 <= remaining <= received check
3. Sale and stock-in documents with their line items and landed costs
4. Payments (allocations against one document each)
5. Document revisions and per-type document number sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. CATALOG / PARTNERS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('default_sale_price', sa.Integer(), nullable=True),
        sa.Column('default_cost_price', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'], unique=False)

    for table in ('customers', 'suppliers'):
        op.create_table(table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('phone', sa.String(length=32), nullable=True),
            sa.Column('address', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sqlite_autoincrement=True
        )
        op.create_index(f'ix_{table}_name', table, ['name'], unique=False)

    # ==========================================================================
    # 2. STOCK-IN DOCUMENTS (batches reference them)
    # ==========================================================================
    op.create_table('stock_ins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Integer(), nullable=False),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=64), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount_paid >= 0', name='ck_stock_ins_paid_nonneg'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_stock_ins_docnum'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_ins', schema=None) as batch_op:
        batch_op.create_index('ix_stock_ins_supplier_status_created', ['supplier_id', 'status', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_ins_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_ins_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_ins_payment_status'), ['payment_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_ins_created_at'), ['created_at'], unique=False)

    # ==========================================================================
    # 3. INVENTORY BATCHES
    # ==========================================================================
    op.create_table('inventory_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('stock_in_id', sa.Integer(), nullable=True),
        sa.Column('batch_code', sa.String(length=64), nullable=False),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('quantity_remaining', sa.Integer(), nullable=False),
        sa.Column('cost_price', sa.Integer(), nullable=False),
        sa.Column('manufacture_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity_remaining >= 0', name='ck_batches_remaining_nonneg'),
        sa.CheckConstraint('quantity_remaining <= quantity_received', name='ck_batches_remaining_le_received'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['stock_in_id'], ['stock_ins.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'batch_code', name='uq_batches_product_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory_batches', schema=None) as batch_op:
        batch_op.create_index('ix_batches_product_expiry', ['product_id', 'expiry_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_batches_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_batches_stock_in_id'), ['stock_in_id'], unique=False)

    op.create_table('stock_in_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_in_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('batch_code', sa.String(length=64), nullable=False),
        sa.Column('manufacture_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('cost_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.Column('landed_cost', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_stock_in_items_qty_pos'),
        sa.ForeignKeyConstraint(['stock_in_id'], ['stock_ins.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stock_in_id', 'product_id', 'batch_code', name='uq_stock_in_items_doc_batch'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_in_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_in_items_stock_in_id'), ['stock_in_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_in_items_batch_id'), ['batch_id'], unique=False)

    op.create_table('stock_in_landed_costs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_in_id', sa.Integer(), nullable=False),
        sa.Column('cost_type', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('allocation_method', sa.String(length=16), nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['stock_in_id'], ['stock_ins.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_in_landed_costs_stock_in_id', 'stock_in_landed_costs', ['stock_in_id'], unique=False)

    # ==========================================================================
    # 4. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Integer(), nullable=False),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=64), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount_paid >= 0', name='ck_sales_paid_nonneg'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_sales_docnum'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_customer_status_created', ['customer_id', 'status', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_payment_status'), ['payment_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_created_at'), ['created_at'], unique=False)

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('sale_price', sa.Integer(), nullable=False),
        sa.Column('cost_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_sale_items_qty_pos'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'batch_id', name='uq_sale_items_sale_batch'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_items_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_items_batch_id'), ['batch_id'], unique=False)

    # ==========================================================================
    # 5. PAYMENTS
    # ==========================================================================
    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('source_type', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('voided_at', sa.DateTime(), nullable=True),
        sa.Column('voided_by', sa.String(length=64), nullable=True),
        sa.Column('allocation_ref', sa.String(length=32), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_pos'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.create_index('ix_payments_source', ['source_type', 'source_id'], unique=False)
        batch_op.create_index('ix_payments_created', ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_direction'), ['direction'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_method'), ['method'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_payments_allocation_ref'), ['allocation_ref'], unique=False)

    # ==========================================================================
    # 6. REVISIONS / SEQUENCES
    # ==========================================================================
    op.create_table('document_revisions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=16), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('old_data', sa.JSON(), nullable=False),
        sa.Column('new_data', sa.JSON(), nullable=False),
        sa.Column('changed_by', sa.String(length=64), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'document_id', 'revision_number', name='uq_revisions_doc_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_revisions_doc', 'document_revisions', ['document_type', 'document_id'], unique=False)

    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=16), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_document_sequences_type'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('document_sequences')
    op.drop_index('ix_revisions_doc', table_name='document_revisions')
    op.drop_table('document_revisions')
    op.drop_table('payments')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_index('ix_stock_in_landed_costs_stock_in_id', table_name='stock_in_landed_costs')
    op.drop_table('stock_in_landed_costs')
    op.drop_table('stock_in_items')
    op.drop_table('inventory_batches')
    op.drop_table('stock_ins')
    for table in ('suppliers', 'customers'):
        op.drop_index(f'ix_{table}_name', table_name=table)
        op.drop_table(table)
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')
