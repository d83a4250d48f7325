"""
Service para lógica de negócio do acervo (Book).
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.cache import BookCacheService, book_cache
from unilib.core.exceptions import (
    ActiveBorrowsExist,
    BookHasHistory,
    BookNotFound,
    DuplicateISBN,
    TotalCopiesBelowBorrowed,
)
from unilib.db.session import unit_of_work
from unilib.models.book import Book
from unilib.repositories.book import BookRepository
from unilib.repositories.transaction import TransactionRepository
from unilib.schemas.book import BookCreate, BookRead, BookUpdate

logger = logging.getLogger(__name__)


class BookService:
    """Service para operações do catálogo."""

    def __init__(self, db: AsyncSession, cache: Optional[BookCacheService] = None):
        self.db = db
        self.repo = BookRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.cache = cache or book_cache

    async def get_by_id(self, book_id: UUID, include_inactive: bool = False) -> Book:
        """
        Busca livro por ID.

        Raises:
            BookNotFound: Livro não existe (ou removido, sem include_inactive)
        """
        book = await self.repo.get_by_id(book_id)
        if book is None or (not book.is_active and not include_inactive):
            raise BookNotFound()
        return book

    async def get_snapshot(self, book_id: UUID) -> dict:
        """
        Retorna o livro serializado, usando o cache de disponibilidade.

        Raises:
            BookNotFound
        """
        cached = await self.cache.get_book(book_id)
        if cached is not None:
            return cached

        book = await self.get_by_id(book_id)
        data = BookRead.model_validate(book).model_dump(mode="json")
        await self.cache.set_book(book_id, data)
        return data

    async def create(self, data: BookCreate) -> Book:
        """
        Cadastra livro com todas as cópias disponíveis.

        Raises:
            DuplicateISBN: ISBN já cadastrado
        """
        async with unit_of_work(self.db):
            if await self.repo.isbn_exists(data.isbn):
                raise DuplicateISBN()

            book = await self.repo.add(
                **data.model_dump(),
                available_copies=data.total_copies,
                is_active=True,
            )

        await self.db.refresh(book)
        logger.info(f"Livro cadastrado: {book.isbn} ({book.total_copies} cópias)")
        return book

    async def update(self, book_id: UUID, data: BookUpdate) -> Book:
        """
        Atualiza livro.

        Ao alterar `total_copies`, recalcula `available_copies` mantendo as
        cópias emprestadas no momento.

        Raises:
            BookNotFound
            DuplicateISBN: ISBN pertence a outro livro
            TotalCopiesBelowBorrowed: Novo total menor que as cópias emprestadas
        """
        changes = data.model_dump(exclude_unset=True)

        async with unit_of_work(self.db):
            book = await self.repo.get_for_update(book_id)
            if book is None:
                raise BookNotFound()

            if changes.get("isbn") and changes["isbn"] != book.isbn:
                if await self.repo.isbn_exists(changes["isbn"], exclude_id=book.id):
                    raise DuplicateISBN()

            if changes.get("total_copies") is not None:
                borrowed = book.borrowed_copies
                if changes["total_copies"] < borrowed:
                    raise TotalCopiesBelowBorrowed(borrowed)
                book.available_copies = changes["total_copies"] - borrowed

            for field, value in changes.items():
                if value is not None:
                    setattr(book, field, value)

        await self.db.refresh(book)
        await self.cache.invalidate_book(book.id)
        logger.info(f"Livro atualizado: {book.id} ({', '.join(changes) or 'sem alterações'})")
        return book

    async def deactivate(self, book_id: UUID) -> Book:
        """
        Remoção lógica: o livro some do catálogo público, mas empréstimos
        abertos continuam podendo ser devolvidos.

        Raises:
            BookNotFound
        """
        async with unit_of_work(self.db):
            book = await self.repo.get_for_update(book_id)
            if book is None or not book.is_active:
                raise BookNotFound()
            book.is_active = False

        await self.db.refresh(book)
        await self.cache.invalidate_book(book_id)
        logger.info(f"Livro removido (lógico): {book_id}")
        return book

    async def delete_permanently(self, book_id: UUID) -> None:
        """
        Remove o livro do banco.

        Raises:
            BookNotFound
            ActiveBorrowsExist: Há empréstimos abertos (lista os usuários)
            BookHasHistory: Há empréstimos encerrados referenciando o livro
        """
        async with unit_of_work(self.db):
            book = await self.repo.get_for_update(book_id)
            if book is None:
                raise BookNotFound()

            open_transactions = await self.transaction_repo.get_open_by_book(book.id)
            if open_transactions:
                borrowers = [
                    {
                        "transaction_id": str(t.id),
                        "user_id": str(t.user_id),
                        "identification_code": t.user.identification_code,
                        "full_name": t.user.full_name,
                        "email": t.user.email,
                        "due_date": t.due_date.isoformat(),
                    }
                    for t in open_transactions
                ]
                raise ActiveBorrowsExist(book.id, book.title, borrowers)

            if await self.transaction_repo.has_any_for_book(book.id):
                raise BookHasHistory()

            await self.db.delete(book)

        await self.cache.invalidate_book(book_id)
        logger.info(f"Livro removido permanentemente: {book_id}")

    async def list_books(
        self,
        search: str | None = None,
        category: str | None = None,
        available_only: bool = False,
        include_inactive: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Book], int]:
        """Lista livros com filtros e paginação."""
        return await self.repo.search(
            search=search,
            category=category,
            available_only=available_only,
            include_inactive=include_inactive,
            page=page,
            page_size=page_size,
        )
