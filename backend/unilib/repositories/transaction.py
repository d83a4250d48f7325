"""
Repository para operações de Transaction no banco de dados.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.models.enums import TransactionStatus
from unilib.models.transaction import Transaction
from unilib.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository do log de transações de empréstimo."""

    def __init__(self, db: AsyncSession):
        super().__init__(Transaction, db)

    async def count_open_by_user(self, user_id: UUID) -> int:
        """Conta empréstimos abertos de um usuário."""
        result = await self.db.execute(
            select(func.count(Transaction.id))
            .where(
                Transaction.user_id == user_id,
                Transaction.return_date.is_(None),
            )
        )
        return result.scalar_one()

    async def has_any_for_book(self, book_id: UUID) -> bool:
        """True se o livro já teve algum empréstimo."""
        result = await self.db.execute(
            select(Transaction.id).where(Transaction.book_id == book_id).limit(1)
        )
        return result.first() is not None

    async def get_open(self, user_id: UUID, book_id: UUID) -> Transaction | None:
        """Busca a transação aberta do par (usuário, livro), se houver."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.book_id == book_id,
                Transaction.return_date.is_(None),
            )
        )
        return result.scalars().first()

    async def get_open_by_book(self, book_id: UUID) -> list[Transaction]:
        """Lista empréstimos abertos de um livro com o usuário carregado."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.book_id == book_id,
                Transaction.return_date.is_(None),
            )
            .order_by(Transaction.due_date)
        )
        return list(result.scalars().all())

    async def search(
        self,
        user_id: UUID | None = None,
        book_id: UUID | None = None,
        status: TransactionStatus | None = None,
        open_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Transaction], int]:
        """
        Busca transações com filtros e paginação.

        Returns:
            Tupla (lista de transações, total)
        """
        skip = (page - 1) * page_size
        conditions = []

        if user_id:
            conditions.append(Transaction.user_id == user_id)
        if book_id:
            conditions.append(Transaction.book_id == book_id)
        if status:
            conditions.append(Transaction.status == status)
        if open_only:
            conditions.append(Transaction.return_date.is_(None))

        count_result = await self.db.execute(
            select(func.count(Transaction.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.borrow_date.desc())
            .offset(skip)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def get_past_due_open(self, now: datetime) -> list[Transaction]:
        """Transações ainda com status BORROWED cujo prazo já venceu."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.return_date.is_(None),
                Transaction.status == TransactionStatus.BORROWED,
                Transaction.due_date < now,
            )
            .order_by(Transaction.due_date)
        )
        return list(result.scalars().all())
