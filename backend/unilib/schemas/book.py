"""
Schemas Pydantic para Book.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from unilib.schemas.base import BaseSchema, TimestampSchema


def _validate_year(v: int | None) -> int | None:
    if v is not None and v > datetime.utcnow().year:
        raise ValueError("Ano de publicação não pode ser no futuro")
    return v


class BookCreate(BaseSchema):
    """
    Schema para cadastro de livro.

    `available_copies` não é informado: no cadastro é igual ao total.
    """
    title: str = Field(..., min_length=1, max_length=500, examples=["Dom Casmurro"])
    author: str = Field(..., min_length=1, max_length=255, examples=["Machado de Assis"])
    isbn: str = Field(..., min_length=10, max_length=32, examples=["9788535910667"])
    publisher: str | None = Field(None, max_length=255)
    publication_year: int | None = Field(None, ge=1000, le=2100, examples=[1899])
    category: str = Field(..., min_length=1, max_length=120, examples=["Literatura"])
    description: str | None = None
    shelf: str | None = Field(None, max_length=50, examples=["A-12"])
    total_copies: int = Field(1, ge=1, le=10000)

    @field_validator("publication_year")
    @classmethod
    def validate_year(cls, v: int | None) -> int | None:
        return _validate_year(v)


class BookUpdate(BaseSchema):
    """
    Schema para atualização de livro.

    Ao alterar `total_copies`, as cópias disponíveis são recalculadas
    a partir das cópias emprestadas no momento.
    """
    title: str | None = Field(None, min_length=1, max_length=500)
    author: str | None = Field(None, min_length=1, max_length=255)
    isbn: str | None = Field(None, min_length=10, max_length=32)
    publisher: str | None = Field(None, max_length=255)
    publication_year: int | None = Field(None, ge=1000, le=2100)
    category: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = None
    shelf: str | None = Field(None, max_length=50)
    total_copies: int | None = Field(None, ge=1, le=10000)
    is_active: bool | None = None

    @field_validator("publication_year")
    @classmethod
    def validate_year(cls, v: int | None) -> int | None:
        return _validate_year(v)


class BookRead(TimestampSchema):
    """Schema para leitura de livro."""
    id: UUID
    title: str
    author: str
    isbn: str
    publisher: str | None
    publication_year: int | None
    category: str
    description: str | None
    shelf: str | None
    total_copies: int
    available_copies: int
    is_active: bool
