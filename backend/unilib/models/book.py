"""
Model do acervo: Book.
"""

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from unilib.db.session import Base
from unilib.models.base import UUIDMixin, TimestampMixin


class Book(Base, UUIDMixin, TimestampMixin):
    """
    Título do acervo com contagem de cópias.

    As cópias não são registros individuais: `available_copies` é um
    contador alterado apenas por UPDATE atômico no empréstimo e na
    devolução, e deve sempre obedecer

        available_copies = total_copies - empréstimos abertos do livro

    Attributes:
        id: UUID único do livro
        title, author, isbn: Identificação bibliográfica (isbn único)
        category: Categoria/assunto
        total_copies: Cópias físicas do acervo (>= 1)
        available_copies: Cópias na estante (0 <= available <= total)
        is_active: False quando removido logicamente (soft delete)
    """
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    isbn: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    publisher: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    publication_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shelf: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("total_copies >= 1", name="ck_books_total_copies_positive"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_copies_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Book {self.isbn} {self.available_copies}/{self.total_copies}>"

    @property
    def borrowed_copies(self) -> int:
        """Cópias atualmente emprestadas."""
        return self.total_copies - self.available_copies
