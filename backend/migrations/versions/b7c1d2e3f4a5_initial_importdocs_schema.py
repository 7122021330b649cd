"""initial importdocs schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema from scratch:
- users / users_profile / session_tokens: identity, profile store, bearer sessions
- documents / document_history / document_files: import documents, audit trail, attachments
- warehouses / product_categories / products: inventory master data
- stock_balances / stock_movements: per-warehouse balances and the movement ledger
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: authentication identity
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ============================================================================
    # users_profile: one row per user, shares the user's primary key
    # ============================================================================
    op.create_table(
        'users_profile',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('avatar_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['id'], ['users.id'], ondelete='CASCADE',
                                name='fk_users_profile_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_users_profile'),
    )
    op.create_index('ix_users_profile_role', 'users_profile', ['role'])

    # ============================================================================
    # session_tokens: hashed bearer tokens (24h absolute, 2h idle)
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE',
                                name='fk_session_tokens_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_session_tokens'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # documents: import documents with optimistic version counter
    # ============================================================================
    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('document_date', sa.Date(), nullable=False),
        sa.Column('document_value', sa.Numeric(15, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['approver_id'], ['users_profile.id'], ondelete='SET NULL',
                                name='fk_documents_approver_id_users_profile'),
        sa.ForeignKeyConstraint(['created_by'], ['users_profile.id'], ondelete='SET NULL',
                                name='fk_documents_created_by_users_profile'),
        sa.PrimaryKeyConstraint('id', name='pk_documents'),
        sa.UniqueConstraint('document_number', name='uq_documents_document_number'),
        sa.CheckConstraint("status IN ('Draft', 'Pending', 'Approved', 'Rejected', 'Closed')",
                           name='ck_documents_status'),
        sa.CheckConstraint("document_type IN ('Purchase Order', 'Invoice', 'Goods Receipt', 'Delivery Note', 'Packing List')",
                           name='ck_documents_document_type'),
        sa.CheckConstraint("currency IN ('USD', 'EUR', 'GBP', 'JPY', 'CNY')", name='ck_documents_currency'),
        sa.CheckConstraint("priority IN ('Low', 'Medium', 'High', 'Urgent')", name='ck_documents_priority'),
        sa.CheckConstraint('document_value >= 0', name='ck_documents_document_value_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_documents_status', 'documents', ['status'])
    op.create_index('ix_documents_created_by', 'documents', ['created_by'])
    op.create_index('ix_documents_approver_id', 'documents', ['approver_id'])
    op.create_index('ix_documents_created_at', 'documents', ['created_at'])

    # ============================================================================
    # document_history: append-only audit trail
    # ============================================================================
    op.create_table(
        'document_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('old_status', sa.String(length=16), nullable=True),
        sa.Column('new_status', sa.String(length=16), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE',
                                name='fk_document_history_document_id_documents'),
        sa.ForeignKeyConstraint(['performed_by'], ['users_profile.id'], ondelete='SET NULL',
                                name='fk_document_history_performed_by_users_profile'),
        sa.PrimaryKeyConstraint('id', name='pk_document_history'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_history_document', 'document_history', ['document_id'])
    op.create_index('ix_document_history_created', 'document_history', ['created_at'])

    # ============================================================================
    # document_files: attachment metadata (blobs live under UPLOAD_FOLDER)
    # ============================================================================
    op.create_table(
        'document_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('storage_path', sa.String(length=512), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('file_type', sa.String(length=128), nullable=True),
        sa.Column('uploaded_by', sa.Integer(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE',
                                name='fk_document_files_document_id_documents'),
        sa.ForeignKeyConstraint(['uploaded_by'], ['users_profile.id'], ondelete='SET NULL',
                                name='fk_document_files_uploaded_by_users_profile'),
        sa.PrimaryKeyConstraint('id', name='pk_document_files'),
        sa.UniqueConstraint('storage_path', name='uq_document_files_storage_path'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_files_document', 'document_files', ['document_id'])

    # ============================================================================
    # Inventory master data
    # ============================================================================
    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_warehouses'),
        sa.UniqueConstraint('code', name='uq_warehouses_code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'product_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_product_categories'),
        sa.UniqueConstraint('code', name='uq_product_categories_code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('unit_of_measure', sa.String(length=16), nullable=False),
        sa.Column('cost_price', sa.Numeric(15, 2), nullable=False),
        sa.Column('reorder_point', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['product_categories.id'], ondelete='SET NULL',
                                name='fk_products_category_id_product_categories'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_category_active', 'products', ['category_id', 'is_active'])

    # ============================================================================
    # stock_balances: materialized on-hand per (product, warehouse)
    # ============================================================================
    op.create_table(
        'stock_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', sa.Numeric(15, 3), nullable=False),
        sa.Column('reserved_quantity', sa.Numeric(15, 3), nullable=False),
        sa.Column('last_movement_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE',
                                name='fk_stock_balances_product_id_products'),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ondelete='CASCADE',
                                name='fk_stock_balances_warehouse_id_warehouses'),
        sa.PrimaryKeyConstraint('id', name='pk_stock_balances'),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_stock_balances_product_warehouse'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_balances_product_id', 'stock_balances', ['product_id'])
    op.create_index('ix_stock_balances_warehouse', 'stock_balances', ['warehouse_id'])

    # ============================================================================
    # stock_movements: immutable signed ledger
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Numeric(15, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(15, 2), nullable=True),
        sa.Column('source_document_id', sa.Integer(), nullable=True),
        sa.Column('reference_number', sa.String(length=64), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE',
                                name='fk_stock_movements_product_id_products'),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ondelete='CASCADE',
                                name='fk_stock_movements_warehouse_id_warehouses'),
        sa.ForeignKeyConstraint(['source_document_id'], ['documents.id'], ondelete='SET NULL',
                                name='fk_stock_movements_source_document_id_documents'),
        sa.ForeignKeyConstraint(['performed_by'], ['users_profile.id'], ondelete='SET NULL',
                                name='fk_stock_movements_performed_by_users_profile'),
        sa.PrimaryKeyConstraint('id', name='pk_stock_movements'),
        sa.CheckConstraint("movement_type IN ('IN', 'OUT', 'ADJUST')", name='ck_stock_movements_movement_type'),
        sa.CheckConstraint('quantity <> 0', name='ck_stock_movements_quantity_non_zero'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_product', 'stock_movements', ['product_id'])
    op.create_index('ix_stock_movements_warehouse', 'stock_movements', ['warehouse_id'])
    op.create_index('ix_stock_movements_document', 'stock_movements', ['source_document_id'])
    op.create_index('ix_stock_movements_date', 'stock_movements', ['movement_date'])


def downgrade():
    op.drop_table('stock_movements')
    op.drop_table('stock_balances')
    op.drop_table('products')
    op.drop_table('product_categories')
    op.drop_table('warehouses')
    op.drop_table('document_files')
    op.drop_table('document_history')
    op.drop_table('documents')
    op.drop_table('session_tokens')
    op.drop_table('users_profile')
    op.drop_table('users')
