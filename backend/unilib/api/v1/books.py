"""
Endpoints do catálogo (Book).

Contratos:
    - GET /books: Lista livros ativos com filtros
    - GET /books/{id}: Detalhes do livro (com cache de disponibilidade)
    - POST /books: Cadastra livro (staff)
    - PUT /books/{id}: Atualiza livro (staff)
    - DELETE /books/{id}: Remoção lógica (staff)
    - DELETE /books/{id}/permanent: Remoção definitiva (staff)
    - GET /admin/books: Lista incluindo removidos (staff)
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from unilib.core.deps import DbSession, StaffUser
from unilib.schemas.base import MessageResponse, PaginatedResponse
from unilib.schemas.book import BookCreate, BookRead, BookUpdate
from unilib.services.book import BookService

router = APIRouter(prefix="/books", tags=["Books"])
admin_router = APIRouter(prefix="/admin/books", tags=["Books (Admin)"])


@router.get(
    "",
    response_model=PaginatedResponse[BookRead],
    summary="Listar livros",
    description="Lista livros ativos com busca por título/autor, categoria e disponibilidade.",
)
async def list_books(
    db: DbSession,
    search: str | None = Query(None, description="Busca parcial por título ou autor"),
    category: str | None = Query(None, description="Filtro por categoria"),
    available: bool = Query(False, description="Apenas livros com cópia disponível"),
    page: int = Query(1, ge=1, description="Número da página"),
    page_size: int = Query(20, ge=1, le=100, description="Itens por página"),
) -> PaginatedResponse[BookRead]:
    """Lista o catálogo público."""
    service = BookService(db)
    books, total = await service.list_books(
        search=search,
        category=category,
        available_only=available,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[BookRead.model_validate(book) for book in books],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{book_id}",
    response_model=BookRead,
    summary="Detalhes do livro",
)
async def get_book(book_id: UUID, db: DbSession) -> BookRead:
    """Retorna o livro com contadores de cópias."""
    service = BookService(db)
    return BookRead.model_validate(await service.get_snapshot(book_id))


@router.post(
    "",
    response_model=BookRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar livro",
    description="Cadastra livro com todas as cópias disponíveis. **Requer staff.**",
)
async def create_book(data: BookCreate, db: DbSession, staff: StaffUser) -> BookRead:
    """
    Raises:
        400: ISBN já cadastrado
    """
    service = BookService(db)
    book = await service.create(data)
    return BookRead.model_validate(book)


@router.put(
    "/{book_id}",
    response_model=BookRead,
    summary="Atualizar livro",
    description="Atualiza dados do livro. Alterar o total recalcula as cópias disponíveis. **Requer staff.**",
)
async def update_book(
    book_id: UUID,
    data: BookUpdate,
    db: DbSession,
    staff: StaffUser,
) -> BookRead:
    """
    Raises:
        400: ISBN duplicado ou total abaixo das cópias emprestadas
        404: Livro não encontrado
    """
    service = BookService(db)
    book = await service.update(book_id, data)
    return BookRead.model_validate(book)


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    summary="Remover livro",
    description="Remoção lógica: o livro sai do catálogo público. **Requer staff.**",
)
async def delete_book(book_id: UUID, db: DbSession, staff: StaffUser) -> MessageResponse:
    service = BookService(db)
    book = await service.deactivate(book_id)
    return MessageResponse(message=f"Livro '{book.title}' removido do catálogo")


@router.delete(
    "/{book_id}/permanent",
    response_model=MessageResponse,
    summary="Remover livro definitivamente",
    description="Falha se houver empréstimos abertos ou histórico. **Requer staff.**",
)
async def delete_book_permanently(
    book_id: UUID,
    db: DbSession,
    staff: StaffUser,
) -> MessageResponse:
    """
    Raises:
        400: Empréstimos abertos (lista os usuários em `details`)
        404: Livro não encontrado
    """
    service = BookService(db)
    await service.delete_permanently(book_id)
    return MessageResponse(message="Livro removido permanentemente")


@admin_router.get(
    "",
    response_model=PaginatedResponse[BookRead],
    summary="Listar todos os livros",
    description="Lista o acervo incluindo livros removidos. **Requer staff.**",
)
async def admin_list_books(
    db: DbSession,
    staff: StaffUser,
    search: str | None = Query(None),
    category: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[BookRead]:
    service = BookService(db)
    books, total = await service.list_books(
        search=search,
        category=category,
        include_inactive=True,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[BookRead.model_validate(book) for book in books],
        total=total,
        page=page,
        page_size=page_size,
    )
