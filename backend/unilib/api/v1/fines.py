"""
Endpoints de multas: consulta, pagamento, perdão e relatório.

Contratos:
    - GET /fines: Lista multas
    - POST /fines/pay: Paga multas
    - POST /fines/waive: Perdoa multas (staff)
    - GET /fines/report: Relatório por período (staff)
    - GET /fines/payments: Recibos de pagamento
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from unilib.core.deps import CurrentUser, DbSession, StaffUser
from unilib.core.exceptions import ForbiddenError
from unilib.models.enums import FineStatus
from unilib.models.user import User
from unilib.schemas.base import PaginatedResponse
from unilib.schemas.fine import (
    FinePaymentRead,
    FineRead,
    FineReport,
    PayFineRequest,
    PaymentResult,
    WaiveFineRequest,
    WaiverResult,
)
from unilib.services.fine import FineService

router = APIRouter(prefix="/fines", tags=["Fines"])


def _resolve_user_id(current_user: User, user_id: UUID | None) -> UUID:
    """Staff pode consultar/pagar por outro usuário; estudante apenas por si."""
    if user_id is None or user_id == current_user.id:
        return current_user.id
    if not current_user.is_staff:
        raise ForbiddenError("Você não tem permissão para acessar multas de outro usuário")
    return user_id


@router.get(
    "",
    response_model=PaginatedResponse[FineRead],
    summary="Listar multas",
)
async def list_fines(
    db: DbSession,
    current_user: CurrentUser,
    user_id: UUID | None = Query(None, description="Usuário (apenas staff)"),
    status_filter: FineStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[FineRead]:
    service = FineService(db)
    fines, total = await service.list_fines(
        user_id=_resolve_user_id(current_user, user_id),
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[FineRead.model_validate(fine) for fine in fines],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/pay",
    response_model=PaymentResult,
    summary="Pagar multas",
    description=(
        "Com `fine_ids`, quita as multas indicadas. Sem `fine_ids`, "
        "o valor apenas abate o saldo."
    ),
)
async def pay_fine(
    data: PayFineRequest,
    db: DbSession,
    current_user: CurrentUser,
) -> PaymentResult:
    """
    Raises:
        400: Sem multas, valor inválido, valor acima do saldo ou abaixo das multas indicadas
        404: Multa não encontrada ou já quitada
    """
    service = FineService(db)
    return await service.pay_fine(
        user_id=_resolve_user_id(current_user, data.user_id),
        amount=data.amount,
        payment_method=data.payment_method,
        fine_ids=data.fine_ids,
        notes=data.notes,
    )


@router.post(
    "/waive",
    response_model=WaiverResult,
    summary="Perdoar multas",
    description="Perdoa multas de um usuário. **Requer staff.**",
)
async def waive_fine(
    data: WaiveFineRequest,
    db: DbSession,
    staff: StaffUser,
) -> WaiverResult:
    """
    Raises:
        400: Motivo inválido, sem multas, limite mensal ou valor acima das multas
        404: Usuário ou multa não encontrado
    """
    service = FineService(db)
    return await service.waive_fine(
        user_id=data.user_id,
        reason=data.reason,
        admin_id=staff.id,
        amount=data.amount,
        fine_ids=data.fine_ids,
    )


@router.get(
    "/report",
    response_model=FineReport,
    summary="Relatório de multas",
    description="Totais por status das multas criadas no período. **Requer staff.**",
)
async def fine_report(
    db: DbSession,
    staff: StaffUser,
    start: datetime = Query(..., description="Início do período"),
    end: datetime = Query(..., description="Fim do período (exclusivo)"),
) -> FineReport:
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Fim do período deve ser posterior ao início",
        )
    service = FineService(db)
    return await service.generate_report(start, end)


@router.get(
    "/payments",
    response_model=PaginatedResponse[FinePaymentRead],
    summary="Recibos de pagamento",
)
async def list_payments(
    db: DbSession,
    current_user: CurrentUser,
    user_id: UUID | None = Query(None, description="Usuário (apenas staff)"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[FinePaymentRead]:
    service = FineService(db)
    payments, total = await service.list_payments(
        user_id=_resolve_user_id(current_user, user_id),
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[FinePaymentRead.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
    )
