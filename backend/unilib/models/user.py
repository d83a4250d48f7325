"""
Model de usuário (membro da biblioteca).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from unilib.db.session import Base
from unilib.models.base import UUIDMixin, TimestampMixin, enum_values
from unilib.models.enums import UserRole, UserStatus


class User(Base, UUIDMixin, TimestampMixin):
    """
    Usuário do sistema de biblioteca.

    `fines` e `borrowed_books` são visões desnormalizadas mantidas pelo
    motor de empréstimos na mesma transação que altera os registros
    de origem (Fine e Transaction). Nenhum outro fluxo deve escrevê-los.

    Attributes:
        id: UUID único do usuário
        identification_code: Matrícula/código da carteirinha (único)
        email: Email único
        id_expiration: Validade da carteirinha
        status: active, blocked ou closed
        roles: Lista de papéis (student, librarian, admin)
        fines: Saldo de multas em aberto (outstanding + overdue)
        borrowed_books: Espelho das transações do usuário
    """
    __tablename__ = "users"

    identification_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    faculty: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    qr_code: Mapped[Optional[str]] = mapped_column(String(120), unique=True, nullable=True)
    id_expiration: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus, name="user_status", values_callable=enum_values),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    roles: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: [UserRole.STUDENT.value],
    )
    fines: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    borrowed_books: Mapped[List[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    def __repr__(self) -> str:
        return f"<User {self.identification_code}>"

    def has_role(self, *roles: UserRole) -> bool:
        """Retorna True se o usuário possui algum dos papéis informados."""
        return any(role.value in (self.roles or []) for role in roles)

    @property
    def is_staff(self) -> bool:
        """Bibliotecários e administradores."""
        return self.has_role(UserRole.LIBRARIAN, UserRole.ADMIN)
