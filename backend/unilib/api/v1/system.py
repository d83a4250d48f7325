"""
Endpoints de Sistema (staff).

Contratos:
    - POST /system/process-overdue: Marca empréstimos e multas vencidos

Status codes:
    - 200: Sucesso
    - 401: Não autenticado
    - 403: Sem permissão
"""

from fastapi import APIRouter

from unilib.core.deps import DbSession, StaffUser
from unilib.schemas.transaction import OverdueProcessingResult
from unilib.services.fine import FineService
from unilib.services.lending import LendingService

router = APIRouter(prefix="/system", tags=["System (Admin)"])


@router.post(
    "/process-overdue",
    response_model=OverdueProcessingResult,
    summary="Processar atrasos",
    description="Marca como OVERDUE empréstimos e multas com prazo vencido. **Requer staff.**",
)
async def process_overdue(db: DbSession, staff: StaffUser) -> OverdueProcessingResult:
    """
    Varredura de atrasos.

    1. Empréstimos abertos com due_date no passado -> OVERDUE
    2. Multas outstanding com prazo de pagamento vencido -> OVERDUE

    Multas OVERDUE continuam no saldo do usuário.
    """
    transactions_marked = await LendingService(db).mark_overdue_transactions()
    fines_marked = await FineService(db).mark_overdue_fines()
    return OverdueProcessingResult(
        transactions_marked=transactions_marked,
        fines_marked=fines_marked,
    )
