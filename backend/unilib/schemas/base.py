"""
Schemas base reutilizáveis em toda a aplicação.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer

T = TypeVar("T")

# Valores monetários trafegam como string com duas casas ("12.50")
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: f"{v:.2f}", return_type=str, when_used="json"),
]


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class TimestampSchema(BaseSchema):
    """Schema com timestamps."""
    created_at: datetime
    updated_at: datetime


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Resposta paginada genérica.

    Uso nos endpoints:
        @router.get("/books", response_model=PaginatedResponse[BookRead])
    """
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def create(
        cls,
        items: List[T],
        total: int,
        page: int,
        page_size: int,
    ) -> "PaginatedResponse[T]":
        """Factory method para criar resposta paginada."""
        pages = (total + page_size - 1) // page_size if page_size > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
        )


class ErrorResponse(BaseModel):
    """
    Resposta de erro padrão, gerada a partir de um `LibraryError`.

    Exemplo:
        {
            "error": "borrow_limit_reached",
            "message": "Usuário já possui 5 empréstimos abertos...",
            "details": {"limit": 5}
        }
    """
    error: str
    message: str
    details: dict[str, Any] | None = None


class MessageResponse(BaseModel):
    """Resposta simples com mensagem."""
    message: str
