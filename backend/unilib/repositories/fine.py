"""
Repositories do livro-razão de multas (Fine e FinePayment).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.models.enums import OPEN_FINE_STATUSES, FineStatus
from unilib.models.fine import Fine, FinePayment
from unilib.repositories.base import BaseRepository


class FineRepository(BaseRepository[Fine]):
    """Repository das multas."""

    def __init__(self, db: AsyncSession):
        super().__init__(Fine, db)

    async def get_open_by_user(self, user_id: UUID) -> list[Fine]:
        """
        Lista multas em aberto do usuário, da mais antiga para a mais nova.

        A ordenação por due_date é a ordem de consumo do perdão parcial.
        """
        result = await self.db.execute(
            select(Fine)
            .where(
                Fine.user_id == user_id,
                Fine.status.in_(OPEN_FINE_STATUSES),
            )
            .order_by(Fine.due_date, Fine.created_at)
        )
        return list(result.scalars().all())

    async def get_by_ids_for_user(self, user_id: UUID, fine_ids: list[UUID]) -> list[Fine]:
        """Busca multas pelos IDs, restritas ao usuário (qualquer status)."""
        if not fine_ids:
            return []
        result = await self.db.execute(
            select(Fine)
            .where(
                Fine.user_id == user_id,
                Fine.id.in_(fine_ids),
            )
            .order_by(Fine.due_date, Fine.created_at)
        )
        return list(result.scalars().all())

    async def sum_open_by_user(self, user_id: UUID) -> Decimal:
        """Soma dos valores das multas em aberto do usuário."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(Fine.amount), 0))
            .where(
                Fine.user_id == user_id,
                Fine.status.in_(OPEN_FINE_STATUSES),
            )
        )
        return Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))

    async def count_waived_between(
        self,
        user_id: UUID,
        start: datetime,
        end: datetime,
    ) -> int:
        """Conta multas do usuário perdoadas no intervalo [start, end)."""
        result = await self.db.execute(
            select(func.count(Fine.id))
            .where(
                Fine.user_id == user_id,
                Fine.status == FineStatus.WAIVED,
                Fine.waived_at >= start,
                Fine.waived_at < end,
            )
        )
        return result.scalar_one()

    async def list_by_user(
        self,
        user_id: UUID | None = None,
        status: FineStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Fine], int]:
        """
        Lista multas com filtros e paginação.

        Returns:
            Tupla (lista de multas, total)
        """
        skip = (page - 1) * page_size
        conditions = []
        if user_id:
            conditions.append(Fine.user_id == user_id)
        if status:
            conditions.append(Fine.status == status)

        count_result = await self.db.execute(
            select(func.count(Fine.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(Fine)
            .where(*conditions)
            .order_by(Fine.created_at.desc())
            .offset(skip)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def summarize_between(
        self,
        start: datetime,
        end: datetime,
    ) -> list[tuple[FineStatus, int, Decimal]]:
        """
        Agrupa multas criadas no intervalo por status.

        Returns:
            Lista de (status, quantidade, soma dos valores)
        """
        result = await self.db.execute(
            select(
                Fine.status,
                func.count(Fine.id),
                func.coalesce(func.sum(Fine.amount), 0),
            )
            .where(Fine.created_at >= start, Fine.created_at < end)
            .group_by(Fine.status)
        )
        return [
            (status, count, Decimal(str(total)).quantize(Decimal("0.01")))
            for status, count, total in result.all()
        ]

    async def mark_past_due_overdue(self, now: datetime) -> int:
        """
        Marca como OVERDUE as multas outstanding com prazo de pagamento vencido.

        Returns:
            Número de multas alteradas
        """
        result = await self.db.execute(
            update(Fine)
            .where(
                Fine.status == FineStatus.OUTSTANDING,
                Fine.due_date < now,
            )
            .values(status=FineStatus.OVERDUE)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class FinePaymentRepository(BaseRepository[FinePayment]):
    """Repository dos recibos de pagamento."""

    def __init__(self, db: AsyncSession):
        super().__init__(FinePayment, db)

    async def list_by_user(
        self,
        user_id: UUID | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[FinePayment], int]:
        """Lista recibos (do usuário, se informado) do mais recente ao mais antigo."""
        skip = (page - 1) * page_size
        conditions = []
        if user_id:
            conditions.append(FinePayment.user_id == user_id)

        count_result = await self.db.execute(
            select(func.count(FinePayment.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(FinePayment)
            .where(*conditions)
            .order_by(FinePayment.created_at.desc())
            .offset(skip)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
