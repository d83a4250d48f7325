"""
Repository para operações de Book no banco de dados.
"""

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.models.book import Book
from unilib.repositories.base import BaseRepository


class BookRepository(BaseRepository[Book]):
    """Repository do acervo, incluindo os contadores atômicos de cópias."""

    def __init__(self, db: AsyncSession):
        super().__init__(Book, db)

    async def isbn_exists(self, isbn: str, exclude_id: UUID | None = None) -> bool:
        """Verifica se o ISBN já está cadastrado (ignorando `exclude_id`)."""
        query = select(func.count(Book.id)).where(Book.isbn == isbn)
        if exclude_id:
            query = query.where(Book.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one() > 0

    async def search(
        self,
        search: str | None = None,
        category: str | None = None,
        available_only: bool = False,
        include_inactive: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Book], int]:
        """
        Busca livros com filtros e paginação.

        Args:
            search: Filtro parcial por título ou autor
            category: Filtro parcial por categoria
            available_only: Apenas livros com cópia disponível
            include_inactive: Inclui livros removidos (visão admin)
            page: Número da página
            page_size: Tamanho da página

        Returns:
            Tupla (lista de livros, total)
        """
        skip = (page - 1) * page_size
        conditions = []

        if not include_inactive:
            conditions.append(Book.is_active.is_(True))
        if search:
            conditions.append(
                or_(
                    Book.title.ilike(f"%{search}%"),
                    Book.author.ilike(f"%{search}%"),
                )
            )
        if category:
            conditions.append(Book.category.ilike(f"%{category}%"))
        if available_only:
            conditions.append(Book.available_copies > 0)

        count_result = await self.db.execute(
            select(func.count(Book.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(Book)
            .where(*conditions)
            .order_by(Book.title)
            .offset(skip)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    # ==========================================
    # Contadores atômicos
    # ==========================================

    async def decrement_available(self, book_id: UUID) -> bool:
        """
        Retira uma cópia da estante em um único UPDATE condicional.

        A condição `available_copies >= 1` faz com que, entre dois
        empréstimos concorrentes da última cópia, apenas o primeiro UPDATE
        afete a linha.

        Returns:
            True se a cópia foi reservada, False se não havia cópia
        """
        result = await self.db.execute(
            update(Book)
            .where(
                Book.id == book_id,
                Book.is_active.is_(True),
                Book.available_copies >= 1,
            )
            .values(available_copies=Book.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_available(self, book_id: UUID) -> bool:
        """
        Devolve uma cópia à estante.

        Returns:
            False se o contador já estava no total (inconsistência)
        """
        result = await self.db.execute(
            update(Book)
            .where(
                Book.id == book_id,
                Book.available_copies < Book.total_copies,
            )
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
