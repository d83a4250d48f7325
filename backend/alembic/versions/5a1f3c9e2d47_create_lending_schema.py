"""
Create lending schema: users, books, transactions, fines and fine payments.

Copy counts live on books (available_copies is changed only by conditional
UPDATE). users.fines and users.borrowed_books are denormalized views kept
in sync by the lending engine.

Revision ID: 5a1f3c9e2d47
Revises:
Create Date: 2026-03-02 14:08:31.518204
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


revision: str = "5a1f3c9e2d47"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_status = sa.Enum("active", "blocked", "closed", name="user_status")
transaction_status = sa.Enum("borrowed", "overdue", "returned", name="transaction_status")
book_condition = sa.Enum(
    "excellent", "good", "fair", "poor", "damaged", "lost",
    name="book_condition",
)
fine_status = sa.Enum("outstanding", "overdue", "paid", "waived", name="fine_status")
payment_method = sa.Enum(
    "cash", "credit_card", "debit_card", "online", "check",
    name="payment_method",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all lending tables and their indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("identification_code", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("faculty", sa.String(255), nullable=True),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("qr_code", sa.String(120), nullable=True, unique=True),
        sa.Column("id_expiration", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", user_status, nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("fines", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("borrowed_books", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_identification_code", "users", ["identification_code"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "books",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("isbn", sa.String(32), nullable=False),
        sa.Column("publisher", sa.String(255), nullable=True),
        sa.Column("publication_year", sa.Integer(), nullable=True),
        sa.Column("category", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("shelf", sa.String(50), nullable=True),
        sa.Column("total_copies", sa.Integer(), nullable=False),
        sa.Column("available_copies", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("total_copies >= 1", name="ck_books_total_copies_positive"),
        sa.CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_copies_range",
        ),
    )
    op.create_index("ix_books_isbn", "books", ["isbn"], unique=True)
    op.create_index("ix_books_category", "books", ["category"])
    op.create_index("ix_books_is_active", "books", ["is_active"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("book_id", sa.Uuid(), sa.ForeignKey("books.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("borrow_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", transaction_status, nullable=False),
        sa.Column("fine_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("condition", book_condition, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_book_id", "transactions", ["book_id"])
    op.create_index("ix_transactions_user_open", "transactions", ["user_id", "return_date"])
    op.create_index("ix_transactions_book_open", "transactions", ["book_id", "return_date"])
    op.create_index("ix_transactions_overdue", "transactions", ["due_date", "return_date"])
    op.create_index(
        "uq_transactions_open_pair",
        "transactions",
        ["user_id", "book_id"],
        unique=True,
        postgresql_where=sa.text("return_date IS NULL"),
    )

    op.create_table(
        "fines",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "transaction_id",
            sa.Uuid(),
            sa.ForeignKey("transactions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("status", fine_status, nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", payment_method, nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        sa.Column("waived_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("waived_reason", sa.Text(), nullable=True),
        sa.Column("waived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_fines_user_status", "fines", ["user_id", "status"])
    op.create_index("ix_fines_transaction_id", "fines", ["transaction_id"])
    op.create_index("ix_fines_user_waived_at", "fines", ["user_id", "waived_at"])
    op.create_index("ix_fines_created_at", "fines", ["created_at"])

    op.create_table(
        "fine_payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("receipt_number", sa.String(40), nullable=False, unique=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "payment_method",
            postgresql.ENUM(name="payment_method", create_type=False),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_fine_payments_user_id", "fine_payments", ["user_id"])

    op.create_table(
        "fine_payment_items",
        sa.Column(
            "payment_id",
            sa.Uuid(),
            sa.ForeignKey("fine_payments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "fine_id",
            sa.Uuid(),
            sa.ForeignKey("fines.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
    )


def downgrade() -> None:
    """Drop the lending tables in dependency order, then the enum types."""
    op.drop_table("fine_payment_items")
    op.drop_table("fine_payments")
    op.drop_table("fines")
    op.drop_table("transactions")
    op.drop_table("books")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (payment_method, fine_status, book_condition, transaction_status, user_status):
        enum_type.drop(bind, checkfirst=True)
