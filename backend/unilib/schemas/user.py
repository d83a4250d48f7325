"""
Schemas Pydantic para User.
"""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import EmailStr, Field, field_validator, model_validator

from unilib.models.enums import UserRole, UserStatus
from unilib.schemas.base import BaseSchema, Money, TimestampSchema


class UserCreate(BaseSchema):
    """
    Schema para cadastro de usuário.

    Validações:
        - identification_code: 3-50 caracteres alfanuméricos
        - password: mínimo 8 chars, 1 maiúscula, 1 minúscula, 1 número
        - faculty/department obrigatórios apenas para estudantes
    """
    identification_code: str = Field(..., min_length=3, max_length=50, examples=["2024001234"])
    email: EmailStr = Field(..., examples=["joao@universidade.edu"])
    full_name: str = Field(..., min_length=2, max_length=255, examples=["João Silva"])
    password: str = Field(..., min_length=8, max_length=128, examples=["Senha123!"])
    faculty: str | None = Field(None, max_length=255, examples=["Engenharia"])
    department: str | None = Field(None, max_length=255, examples=["Computação"])
    phone: str | None = Field(None, max_length=40)
    id_expiration: datetime
    roles: list[UserRole] = Field(default_factory=lambda: [UserRole.STUDENT])

    @field_validator("identification_code")
    @classmethod
    def validate_identification_code(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9-]+", v):
            raise ValueError("Código de identificação deve ser alfanumérico")
        return v.upper()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Valida complexidade da senha."""
        if not re.search(r"[A-Z]", v):
            raise ValueError("Senha deve conter pelo menos uma letra maiúscula")
        if not re.search(r"[a-z]", v):
            raise ValueError("Senha deve conter pelo menos uma letra minúscula")
        if not re.search(r"\d", v):
            raise ValueError("Senha deve conter pelo menos um número")
        return v

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v: list[UserRole]) -> list[UserRole]:
        if not v:
            raise ValueError("Informe pelo menos um papel")
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_student_fields(self) -> "UserCreate":
        """Estudantes precisam informar faculdade e departamento."""
        is_staff = UserRole.LIBRARIAN in self.roles or UserRole.ADMIN in self.roles
        if not is_staff and (not self.faculty or not self.department):
            raise ValueError("Faculdade e departamento são obrigatórios para estudantes")
        return self


class UserRead(TimestampSchema):
    """
    Schema para leitura de usuário.

    Nunca expõe password_hash.
    """
    id: UUID
    identification_code: str
    email: EmailStr
    full_name: str
    faculty: str | None
    department: str | None
    phone: str | None
    qr_code: str | None
    id_expiration: datetime
    status: UserStatus
    roles: list[UserRole]
    fines: Money
    borrowed_books: list[dict[str, Any]]


class UserLogin(BaseSchema):
    """Schema para login por código de identificação."""
    identification_code: str
    password: str


class QRVerifyRequest(BaseSchema):
    """Conteúdo lido do QR code da carteirinha."""
    qr_data: str = Field(..., min_length=1)


class UserStatusUpdate(BaseSchema):
    """Schema para alteração de status da conta (staff)."""
    status: UserStatus
    id_expiration: datetime | None = None


class TokenResponse(BaseSchema):
    """Resposta de autenticação com token JWT."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserWithToken(BaseSchema):
    """Usuário com token JWT (retorno do login)."""
    user: UserRead
    token: TokenResponse
