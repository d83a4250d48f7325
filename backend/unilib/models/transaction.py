"""
Model de transação de empréstimo.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Index, Numeric, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unilib.core.clock import utcnow
from unilib.db.session import Base
from unilib.models.base import UUIDMixin, TimestampMixin, enum_values
from unilib.models.enums import BookCondition, TransactionStatus

if TYPE_CHECKING:
    from unilib.models.book import Book
    from unilib.models.user import User


class Transaction(Base, UUIDMixin, TimestampMixin):
    """
    Empréstimo de um livro para um usuário.

    Criada no empréstimo e alterada uma única vez na devolução (estado
    terminal). Nunca é removida. Só pode existir uma transação aberta
    (return_date nulo) por par (usuário, livro).

    Attributes:
        id: UUID único da transação
        user_id: FK para o usuário
        book_id: FK para o livro
        borrow_date: Data/hora do empréstimo
        due_date: Data de devolução prevista
        return_date: Data/hora da devolução (null enquanto aberta)
        status: borrowed, overdue ou returned
        fine_amount: Multa total calculada na devolução
        condition: Estado do livro informado na devolução
        notes: Observações da devolução
    """
    __tablename__ = "transactions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("books.id", ondelete="RESTRICT"),
        nullable=False,
    )
    borrow_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    return_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SQLEnum(TransactionStatus, name="transaction_status", values_callable=enum_values),
        nullable=False,
        default=TransactionStatus.BORROWED,
    )
    fine_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    condition: Mapped[Optional[BookCondition]] = mapped_column(
        SQLEnum(BookCondition, name="book_condition", values_callable=enum_values),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        lazy="selectin",
    )
    book: Mapped["Book"] = relationship(
        "Book",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_transactions_user_id", "user_id"),
        Index("ix_transactions_book_id", "book_id"),
        # Empréstimos abertos de um usuário / de um livro
        Index("ix_transactions_user_open", "user_id", "return_date"),
        Index("ix_transactions_book_open", "book_id", "return_date"),
        # Varredura de atrasados
        Index("ix_transactions_overdue", "due_date", "return_date"),
        # No máximo um empréstimo aberto por par (usuário, livro)
        Index(
            "uq_transactions_open_pair",
            "user_id",
            "book_id",
            unique=True,
            postgresql_where=text("return_date IS NULL"),
            sqlite_where=text("return_date IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.id} - {self.status.value}>"
