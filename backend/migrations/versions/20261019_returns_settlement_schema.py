"""Returns settlement schema

Revision ID: 20261019_settlement_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_settlement_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=nullable)


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_category_id", ["category_id"], unique=False)

    op.create_table(
        "inventory_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("minimum_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reorder_point", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("available_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", name="uq_inventory_records_product"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("nic", sa.String(32), nullable=True),
        sa.Column("customer_type", sa.String(16), nullable=False, server_default="retail"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_phone", ["phone"], unique=False)
        batch_op.create_index("ix_customers_email", ["email"], unique=False)
        batch_op.create_index("ix_customers_nic", ["nic"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_no", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("cashier_user_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(24), nullable=False, server_default="completed"),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("returned_total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("returned_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_return_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("returned_total_cents <= total_cents", name="ck_sales_returned_le_total"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_no"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_sales_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "sale_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=True),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.create_index("ix_sale_lines_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_lines_product_id", ["product_id"], unique=False)

    op.create_table(
        "return_policies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("return_window_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("extended_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("allow_cash", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("allow_card", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("allow_bank_transfer", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("allow_digital", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("allow_store_credit", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("allow_exchange", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("manager_approval_required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("approval_threshold_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("receipt_required", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("allow_no_receipt_returns", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_returns_enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_returns_count", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("max_returns_period_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("max_return_amount_enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_return_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("1000000")),
        sa.Column("exchange_slip_expiry_days", sa.Integer(), nullable=True),
        sa.Column("auto_restock", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("require_condition_check", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("default_disposition", sa.String(24), nullable=False, server_default="restock"),
        sa.Column("notify_customer_email", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("notify_customer_sms", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("notify_manager", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("applies_to_all_products", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("customer_types", sa.JSON(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("return_policies", schema=None) as batch_op:
        batch_op.create_index("ix_return_policies_active_priority", ["is_active", "priority"], unique=False)

    for table, column, target in (
        ("return_policy_categories", "category_id", "categories.id"),
        ("return_policy_products", "product_id", "products.id"),
        ("return_policy_excluded_categories", "category_id", "categories.id"),
        ("return_policy_excluded_products", "product_id", "products.id"),
    ):
        op.create_table(
            table,
            sa.Column("policy_id", sa.Integer(), nullable=False),
            sa.Column(column, sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["policy_id"], ["return_policies.id"]),
            sa.ForeignKeyConstraint([column], [target]),
            sa.PrimaryKeyConstraint("policy_id", column),
        )

    op.create_table(
        "exchange_slips",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("slip_no", sa.String(32), nullable=False),
        sa.Column("original_sale_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("total_value_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("issued_by_user_id", sa.Integer(), nullable=False),
        sa.Column("redeemed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redemption_sale_id", sa.Integer(), nullable=True),
        sa.Column("cancelled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["original_sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["redemption_sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slip_no"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("exchange_slips", schema=None) as batch_op:
        batch_op.create_index("ix_exchange_slips_original_sale_id", ["original_sale_id"], unique=False)
        batch_op.create_index("ix_exchange_slips_customer_created", ["customer_id", "created_at"], unique=False)
        batch_op.create_index("ix_exchange_slips_status_expiry", ["status", "expiry_date"], unique=False)

    op.create_table(
        "exchange_slip_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("slip_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("original_price_cents", sa.Integer(), nullable=False),
        sa.Column("exchange_value_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["slip_id"], ["exchange_slips.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("exchange_slip_items", schema=None) as batch_op:
        batch_op.create_index("ix_exchange_slip_items_slip_id", ["slip_id"], unique=False)

    op.create_table(
        "customer_overpayments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("balance_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="LKR"),
        sa.Column("source", sa.String(16), nullable=False, server_default="refund"),
        sa.Column("source_reference", sa.String(32), nullable=True),
        sa.Column("original_sale_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("balance_cents >= 0", name="ck_overpayments_balance_nonneg"),
        sa.CheckConstraint("balance_cents <= amount_cents", name="ck_overpayments_balance_le_amount"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["original_sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_overpayments", schema=None) as batch_op:
        batch_op.create_index("ix_overpayments_customer_status", ["customer_id", "status"], unique=False)
        batch_op.create_index("ix_customer_overpayments_original_sale_id", ["original_sale_id"], unique=False)

    op.create_table(
        "overpayment_usages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("overpayment_id", sa.Integer(), nullable=False),
        sa.Column("used_amount_cents", sa.Integer(), nullable=False),
        sa.Column("remaining_balance_cents", sa.Integer(), nullable=False),
        sa.Column("used_in_sale_id", sa.Integer(), nullable=False),
        sa.Column("used_by_user_id", sa.Integer(), nullable=False),
        _timestamp("used_at"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.CheckConstraint("used_amount_cents > 0", name="ck_overpayment_usages_positive"),
        sa.ForeignKeyConstraint(["overpayment_id"], ["customer_overpayments.id"]),
        sa.ForeignKeyConstraint(["used_in_sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("overpayment_usages", schema=None) as batch_op:
        batch_op.create_index("ix_overpayment_usages_overpayment_id", ["overpayment_id"], unique=False)

    op.create_table(
        "return_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_no", sa.String(32), nullable=False),
        sa.Column("original_sale_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("policy_id", sa.Integer(), nullable=True),
        sa.Column("return_type", sa.String(24), nullable=False),
        sa.Column("refund_method", sa.String(24), nullable=False),
        sa.Column("refund_details", sa.JSON(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("exchange_slip_id", sa.Integer(), nullable=True),
        sa.Column("overpayment_id", sa.Integer(), nullable=True),
        sa.Column("approval_required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("approved_by_user_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        sa.Column("returned_by_user_id", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["original_sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["policy_id"], ["return_policies.id"]),
        sa.ForeignKeyConstraint(["exchange_slip_id"], ["exchange_slips.id"]),
        sa.ForeignKeyConstraint(["overpayment_id"], ["customer_overpayments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("return_no"),
        sa.UniqueConstraint("idempotency_key"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("return_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_return_transactions_original_sale_id", ["original_sale_id"], unique=False)
        batch_op.create_index("ix_return_transactions_return_type", ["return_type"], unique=False)
        batch_op.create_index("ix_return_transactions_customer_created", ["customer_id", "created_at"], unique=False)
        batch_op.create_index("ix_return_transactions_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "return_transaction_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_transaction_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("original_price_cents", sa.Integer(), nullable=False),
        sa.Column("return_amount_cents", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(24), nullable=False),
        sa.Column("condition", sa.String(16), nullable=False, server_default="new"),
        sa.Column("disposition", sa.String(24), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_return_lines_quantity_positive"),
        sa.ForeignKeyConstraint(["return_transaction_id"], ["return_transactions.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("return_transaction_lines", schema=None) as batch_op:
        batch_op.create_index("ix_return_transaction_lines_return_transaction_id", ["return_transaction_id"], unique=False)
        batch_op.create_index("ix_return_transaction_lines_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_return_lines_reason", ["reason"], unique=False)

    op.create_table(
        "sale_return_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("return_transaction_id", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(32), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(24), nullable=False),
        sa.Column("processed_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["return_transaction_id"], ["return_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("return_transaction_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_return_records", schema=None) as batch_op:
        batch_op.create_index("ix_sale_return_records_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "sale_return_record_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(24), nullable=False),
        sa.Column("disposition", sa.String(24), nullable=False),
        sa.ForeignKeyConstraint(["record_id"], ["sale_return_records.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_return_record_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_return_record_items_record_id", ["record_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=False, server_default="ReturnTransaction"),
        sa.Column("return_transaction_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(64), nullable=True),
        sa.Column("performed_by_user_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("new_stock = previous_stock + quantity", name="ck_stock_movements_balance"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["return_transaction_id"], ["return_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_movements_movement_type", ["movement_type"], unique=False)
        batch_op.create_index("ix_stock_movements_return_transaction_id", ["return_transaction_id"], unique=False)
        batch_op.create_index("ix_stock_movements_product_created", ["product_id", "created_at"], unique=False)

    op.create_table(
        "unit_barcodes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="generated"),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("warranty_status", sa.String(16), nullable=False, server_default="none"),
        sa.Column("return_transaction_id", sa.Integer(), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_reason", sa.String(24), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["return_transaction_id"], ["return_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("barcode"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("unit_barcodes", schema=None) as batch_op:
        batch_op.create_index("ix_unit_barcodes_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_unit_barcodes_status", ["status"], unique=False)
        batch_op.create_index("ix_unit_barcodes_return_transaction_id", ["return_transaction_id"], unique=False)
        batch_op.create_index("ix_unit_barcodes_sale_product_status", ["sale_id", "product_id", "status"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("prefix", sa.String(8), nullable=False),
        sa.Column("day", sa.String(6), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix", "day", name="uq_document_sequences_prefix_day"),
        sqlite_autoincrement=True,
    )


def downgrade():
    for table in (
        "document_sequences",
        "unit_barcodes",
        "stock_movements",
        "sale_return_record_items",
        "sale_return_records",
        "return_transaction_lines",
        "return_transactions",
        "overpayment_usages",
        "customer_overpayments",
        "exchange_slip_items",
        "exchange_slips",
        "return_policy_excluded_products",
        "return_policy_excluded_categories",
        "return_policy_products",
        "return_policy_categories",
        "return_policies",
        "sale_lines",
        "sales",
        "customers",
        "inventory_records",
        "products",
        "categories",
    ):
        op.drop_table(table)
