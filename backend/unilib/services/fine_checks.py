"""
Verificações somente leitura usadas pelo pagamento e pelo perdão de multas.

Nenhuma função aqui altera estado: podem ser chamadas quantas vezes for
preciso, dentro ou fora de uma unidade de trabalho.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.clock import as_naive_utc
from unilib.core.exceptions import (
    FineNotFound,
    InvalidWaiverReason,
    NoOutstandingFines,
    WaiverAmountExceedsFines,
    WaiverLimitExceeded,
)
from unilib.models.fine import Fine
from unilib.models.user import User
from unilib.repositories.fine import FineRepository

MIN_WAIVER_REASON_LENGTH = 10
PLACEHOLDER_REASONS = frozenset({
    "test", "testing", "teste", "n/a", "na", "none", "null",
    "xxx", "asdf", "qwerty", "placeholder", "reason", "-", ".",
})


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Início do mês de `now` e início do mês seguinte."""
    start = as_naive_utc(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def validate_waiver_reason(reason: Optional[str]) -> str:
    """
    Rejeita motivos vazios, curtos demais ou de preenchimento.

    Returns:
        Motivo normalizado (sem espaços nas pontas)

    Raises:
        InvalidWaiverReason
    """
    cleaned = (reason or "").strip()
    if len(cleaned) < MIN_WAIVER_REASON_LENGTH:
        raise InvalidWaiverReason()
    if cleaned.lower() in PLACEHOLDER_REASONS:
        raise InvalidWaiverReason()
    # "xxxxxxxxxx", "..........": um único caractere repetido
    if len(set(cleaned.lower().replace(" ", ""))) <= 1:
        raise InvalidWaiverReason()
    return cleaned


class FineChecks:
    """Oráculos de pré-condição sobre o livro-razão de multas."""

    def __init__(self, db: AsyncSession, waiver_limit: int):
        self.fine_repo = FineRepository(db)
        self.waiver_limit = waiver_limit

    async def monthly_waiver_count(self, user_id: UUID, now: datetime) -> int:
        """Multas do usuário perdoadas no mês-calendário de `now`."""
        start, end = month_bounds(now)
        return await self.fine_repo.count_waived_between(user_id, start, end)

    async def total_outstanding(self, user_id: UUID) -> Decimal:
        """Soma das multas outstanding/overdue do usuário."""
        return await self.fine_repo.sum_open_by_user(user_id)

    async def owned_open_fines(self, user_id: UUID, fine_ids: list[UUID]) -> list[Fine]:
        """
        Busca as multas indicadas, exigindo que todas sejam do usuário
        e estejam em aberto.

        Raises:
            FineNotFound: Algum ID é de outro usuário, não existe ou já foi quitado
        """
        unique_ids = list(dict.fromkeys(fine_ids))
        fines = await self.fine_repo.get_by_ids_for_user(user_id, unique_ids)
        open_fines = [fine for fine in fines if fine.is_open]
        if len(open_fines) != len(unique_ids):
            found = {fine.id for fine in open_fines}
            missing = [str(fine_id) for fine_id in unique_ids if fine_id not in found]
            raise FineNotFound(payload={"fine_ids": missing})
        return open_fines

    async def validate_waiver_eligibility(
        self,
        user: User,
        now: datetime,
        amount: Optional[Decimal] = None,
        fine_ids: Optional[list[UUID]] = None,
    ) -> list[Fine]:
        """
        Valida se o perdão pode ser aplicado.

        Ordem: saldo em aberto, limite mensal, multas indicadas, valor.

        Returns:
            Multas candidatas ao perdão (as indicadas, ou todas em aberto
            da mais antiga para a mais nova)

        Raises:
            NoOutstandingFines
            WaiverLimitExceeded
            FineNotFound
            WaiverAmountExceedsFines
        """
        if user.fines <= 0:
            raise NoOutstandingFines()

        if await self.monthly_waiver_count(user.id, now) >= self.waiver_limit:
            raise WaiverLimitExceeded(self.waiver_limit)

        if fine_ids:
            candidates = await self.owned_open_fines(user.id, fine_ids)
            available = sum((fine.amount for fine in candidates), Decimal("0"))
        else:
            candidates = await self.fine_repo.get_open_by_user(user.id)
            if not candidates:
                raise NoOutstandingFines()
            # pagamentos avulsos abatem só o saldo
            available = user.fines

        if amount is not None and amount > available:
            raise WaiverAmountExceedsFines(payload={"available": str(available)})

        return candidates
