"""
Schemas Pydantic para transações de empréstimo.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from unilib.models.enums import BookCondition, TransactionStatus
from unilib.schemas.base import BaseSchema, Money, TimestampSchema


class BorrowRequest(BaseSchema):
    """
    Pedido de empréstimo.

    Sem `due_date`, o prazo padrão (DEFAULT_LOAN_DAYS) é aplicado.
    `user_id` só é aceito de bibliotecários; estudantes emprestam para si.
    """
    book_id: UUID
    user_id: UUID | None = None
    due_date: datetime | None = None


class ReturnRequest(BaseSchema):
    """Pedido de devolução."""
    transaction_id: UUID
    condition: BookCondition | None = None
    notes: str | None = Field(None, max_length=2000)
    waive_fine: bool = False


class TransactionRead(TimestampSchema):
    """Schema para leitura de transação."""
    id: UUID
    user_id: UUID
    book_id: UUID
    borrow_date: datetime
    due_date: datetime
    return_date: datetime | None
    status: TransactionStatus
    fine_amount: Money
    condition: BookCondition | None
    notes: str | None


class ReturnResult(BaseSchema):
    """
    Resultado da devolução.

    Attributes:
        transaction: Transação já fechada
        fine_amount: Multa total (atraso + dano)
        fine_waived: True se a parte de atraso foi perdoada na devolução
        is_overdue: Devolvido depois do prazo
        damage_fine: Parte da multa referente ao estado do livro
    """
    transaction: TransactionRead
    fine_amount: Money
    fine_waived: bool
    is_overdue: bool
    damage_fine: Money
    message: str


class BulkReturnRequest(BaseSchema):
    """Devolução em lote (balcão)."""
    items: list[ReturnRequest] = Field(..., min_length=1, max_length=100)


class BulkReturnItem(BaseSchema):
    """Resultado individual de uma devolução em lote."""
    transaction_id: UUID
    success: bool
    result: ReturnResult | None = None
    error: str | None = None
    message: str | None = None


class BulkReturnResult(BaseSchema):
    """Resumo da devolução em lote."""
    processed: int
    succeeded: int
    failed: int
    items: list[BulkReturnItem]


class OverdueProcessingResult(BaseSchema):
    """Resultado da varredura de atrasos."""
    transactions_marked: int
    fines_marked: int
