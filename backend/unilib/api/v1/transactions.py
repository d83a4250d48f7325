"""
Endpoints de empréstimo e devolução (Transaction).

Contratos:
    - POST /transactions/borrow: Empresta livro
    - POST /transactions/return: Devolve livro
    - POST /transactions/bulk-return: Devolução em lote (staff)
    - GET /transactions: Lista transações
    - GET /transactions/{id}: Detalhes da transação

Autorização:
    - Estudante: empresta para si e vê/devolve apenas as próprias transações
    - Staff: opera em nome de qualquer usuário

Status codes:
    - 200: Sucesso
    - 201: Empréstimo criado
    - 400: Regra de negócio violada (ver `error` na resposta)
    - 401: Não autenticado
    - 403: Sem permissão
    - 404: Livro, usuário ou transação não encontrado
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from unilib.core.deps import CurrentUser, DbSession, StaffUser
from unilib.core.exceptions import ForbiddenError
from unilib.models.enums import TransactionStatus
from unilib.models.user import User
from unilib.schemas.base import PaginatedResponse
from unilib.schemas.transaction import (
    BorrowRequest,
    BulkReturnRequest,
    BulkReturnResult,
    ReturnRequest,
    ReturnResult,
    TransactionRead,
)
from unilib.services.lending import LendingService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _ensure_can_access(current_user: User, owner_id: UUID) -> None:
    """Estudantes só acessam as próprias transações."""
    if not current_user.is_staff and owner_id != current_user.id:
        raise ForbiddenError("Você não tem permissão para acessar esta transação")


@router.post(
    "/borrow",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Emprestar livro",
    description="Cria um empréstimo. Staff pode informar `user_id` para emprestar em nome do usuário.",
)
async def borrow_book(
    data: BorrowRequest,
    db: DbSession,
    current_user: CurrentUser,
) -> TransactionRead:
    """
    Empresta um livro.

    Raises:
        400: Sem cópias, usuário inativo, carteirinha vencida, multas pendentes,
             limite de empréstimos, livro já emprestado ou prazo inválido
        404: Livro ou usuário não encontrado
    """
    user_id = data.user_id or current_user.id
    _ensure_can_access(current_user, user_id)

    service = LendingService(db)
    transaction = await service.borrow(data.book_id, user_id, data.due_date)
    return TransactionRead.model_validate(transaction)


@router.post(
    "/return",
    response_model=ReturnResult,
    summary="Devolver livro",
    description="Fecha o empréstimo, devolve a cópia à estante e calcula multas.",
)
async def return_book(
    data: ReturnRequest,
    db: DbSession,
    current_user: CurrentUser,
) -> ReturnResult:
    """
    Processa a devolução.

    Perdão da multa de atraso (`waive_fine`) só pode ser pedido por staff.

    Raises:
        400: Transação já devolvida / limite mensal de perdões atingido
        403: Transação de outro usuário ou perdão pedido por estudante
        404: Transação não encontrada
    """
    if data.waive_fine and not current_user.is_staff:
        raise ForbiddenError("Apenas bibliotecários e administradores podem perdoar multas")

    service = LendingService(db)
    transaction = await service.get_transaction(data.transaction_id)
    _ensure_can_access(current_user, transaction.user_id)

    return await service.return_book(
        data.transaction_id,
        condition=data.condition,
        notes=data.notes,
        waive_fine=data.waive_fine,
    )


@router.post(
    "/bulk-return",
    response_model=BulkReturnResult,
    summary="Devolução em lote",
    description="Processa várias devoluções; cada item é independente. **Requer staff.**",
)
async def bulk_return(
    data: BulkReturnRequest,
    db: DbSession,
    staff: StaffUser,
) -> BulkReturnResult:
    service = LendingService(db)
    return await service.bulk_return(data.items)


@router.get(
    "",
    response_model=PaginatedResponse[TransactionRead],
    summary="Listar transações",
    description="Estudante vê apenas as próprias; staff pode filtrar por usuário.",
)
async def list_transactions(
    db: DbSession,
    current_user: CurrentUser,
    user_id: UUID | None = Query(None, description="Filtrar por usuário (apenas staff)"),
    book_id: UUID | None = Query(None, description="Filtrar por livro"),
    status_filter: TransactionStatus | None = Query(None, alias="status"),
    open_only: bool = Query(False, description="Apenas empréstimos não devolvidos"),
    page: int = Query(1, ge=1, description="Número da página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
) -> PaginatedResponse[TransactionRead]:
    effective_user_id = user_id if current_user.is_staff else current_user.id

    service = LendingService(db)
    transactions, total = await service.list_transactions(
        user_id=effective_user_id,
        book_id=book_id,
        status=status_filter,
        open_only=open_only,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[TransactionRead.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionRead,
    summary="Detalhes da transação",
)
async def get_transaction(
    transaction_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> TransactionRead:
    service = LendingService(db)
    transaction = await service.get_transaction(transaction_id)
    _ensure_can_access(current_user, transaction.user_id)
    return TransactionRead.model_validate(transaction)
