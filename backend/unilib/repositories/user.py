"""
Repository para operações de User no banco de dados.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.models.user import User
from unilib.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository do cadastro de membros."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_email(self, email: str) -> User | None:
        """Busca usuário por email (case insensitive)."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_identification_code(self, code: str) -> User | None:
        """Busca usuário pela matrícula/código da carteirinha."""
        result = await self.db.execute(
            select(User).where(User.identification_code == code.upper())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Verifica se email já está cadastrado."""
        return await self.get_by_email(email) is not None

    async def identification_code_exists(self, code: str) -> bool:
        """Verifica se o código de identificação já está cadastrado."""
        return await self.get_by_identification_code(code) is not None
