"""
Models do livro-razão de multas: Fine e FinePayment (recibo).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unilib.db.session import Base
from unilib.models.base import UUIDMixin, TimestampMixin, enum_values
from unilib.models.enums import OPEN_FINE_STATUSES, FineStatus, PaymentMethod

if TYPE_CHECKING:
    from unilib.models.transaction import Transaction


# Multas quitadas por cada recibo
fine_payment_items = Table(
    "fine_payment_items",
    Base.metadata,
    Column(
        "payment_id",
        Uuid(as_uuid=True),
        ForeignKey("fine_payments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "fine_id",
        Uuid(as_uuid=True),
        ForeignKey("fines.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
)


class Fine(Base, UUIDMixin, TimestampMixin):
    """
    Multa individual gerada na devolução.

    Regras:
        - amount >= 0
        - Transições de status: outstanding/overdue -> paid | waived (terminais)
        - O valor só muda depois de criada na divisão de perdão parcial,
          quando a multa original fica com a parte perdoada e uma nova
          multa recebe o restante

    Attributes:
        id: UUID único da multa
        user_id: FK para o usuário multado
        transaction_id: FK para a transação que originou a multa
        amount: Valor
        reason: Motivo (atraso, dano, restante de perdão parcial)
        status: outstanding, overdue, paid ou waived
        due_date: Prazo para pagamento
        paid_date, payment_method, payment_notes: Dados do pagamento
        waived_by, waived_reason, waived_at: Dados do perdão
    """
    __tablename__ = "fines"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("transactions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[FineStatus] = mapped_column(
        SQLEnum(FineStatus, name="fine_status", values_callable=enum_values),
        nullable=False,
        default=FineStatus.OUTSTANDING,
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method", values_callable=enum_values),
        nullable=True,
    )
    payment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    waived_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    waived_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    waived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    transaction: Mapped["Transaction"] = relationship(
        "Transaction",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_fines_user_status", "user_id", "status"),
        Index("ix_fines_transaction_id", "transaction_id"),
        # Contagem de perdões no mês
        Index("ix_fines_user_waived_at", "user_id", "waived_at"),
        Index("ix_fines_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Fine {self.id} {self.amount} - {self.status.value}>"

    @property
    def is_open(self) -> bool:
        """True se a multa ainda compõe o saldo do usuário."""
        return self.status in OPEN_FINE_STATUSES


class FinePayment(Base, UUIDMixin, TimestampMixin):
    """
    Recibo de pagamento de multas. Registro apenas de inserção.

    Attributes:
        id: UUID único do recibo
        receipt_number: Número único do recibo
        user_id: FK para o usuário que pagou
        amount: Valor pago
        payment_method: Forma de pagamento
        notes: Observações
        fines: Multas quitadas por este pagamento (vazio em pagamento avulso)
    """
    __tablename__ = "fine_payments"

    receipt_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method", values_callable=enum_values),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    fines: Mapped[List["Fine"]] = relationship(
        "Fine",
        secondary=fine_payment_items,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<FinePayment {self.receipt_number} {self.amount}>"
