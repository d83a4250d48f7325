"""
Schemas Pydantic para multas, pagamentos e perdões.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from unilib.models.enums import FineStatus, PaymentMethod
from unilib.schemas.base import BaseSchema, Money, TimestampSchema


class FineRead(TimestampSchema):
    """Schema para leitura de multa."""
    id: UUID
    user_id: UUID
    transaction_id: UUID
    amount: Money
    reason: str
    status: FineStatus
    due_date: datetime
    paid_date: datetime | None
    payment_method: PaymentMethod | None
    payment_notes: str | None
    waived_by: UUID | None
    waived_reason: str | None
    waived_at: datetime | None


class FinePaymentRead(TimestampSchema):
    """Recibo de pagamento."""
    id: UUID
    receipt_number: str
    user_id: UUID
    amount: Money
    payment_method: PaymentMethod
    notes: str | None
    fines: list[FineRead]


# ============================================
# Pagamento
# ============================================

class PayFineRequest(BaseSchema):
    """
    Pedido de pagamento.

    Com `fine_ids`, as multas indicadas são quitadas e o valor deve
    cobrir a soma delas. Sem `fine_ids`, o valor apenas abate o saldo.
    """
    amount: Decimal = Field(..., max_digits=10, decimal_places=2, examples=["15.00"])
    payment_method: PaymentMethod
    fine_ids: list[UUID] | None = None
    notes: str | None = Field(None, max_length=2000)
    user_id: UUID | None = None


class PaymentResult(BaseSchema):
    """Resultado do pagamento."""
    remaining: Money
    paid_fines: list[FineRead]
    receipt: FinePaymentRead


# ============================================
# Perdão
# ============================================

class WaiveFineRequest(BaseSchema):
    """
    Pedido de perdão (staff).

    Com `fine_ids`, as multas indicadas são perdoadas integralmente.
    Com apenas `amount`, as multas mais antigas são consumidas primeiro.
    Sem nenhum dos dois, todas as multas em aberto são perdoadas.
    """
    user_id: UUID
    reason: str = Field(..., max_length=1000)
    amount: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    fine_ids: list[UUID] | None = None


class WaiverResult(BaseSchema):
    """Resultado do perdão."""
    amount_waived: Money
    waived_fines: list[FineRead]
    remaining: Money


# ============================================
# Relatório
# ============================================

class FineStatusSummary(BaseSchema):
    """Totais de um status no período."""
    status: FineStatus
    count: int
    amount: Money


class FineReport(BaseSchema):
    """Relatório de multas criadas no período [start, end)."""
    start: datetime
    end: datetime
    total_count: int
    total_amount: Money
    by_status: list[FineStatusSummary]
