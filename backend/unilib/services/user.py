"""
Service para lógica de negócio de User (administração de contas).

Saldo de multas e espelho de empréstimos não são editáveis aqui:
esses campos pertencem ao motor de empréstimos.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.exceptions import UserNotFound
from unilib.db.session import unit_of_work
from unilib.models.user import User
from unilib.repositories.user import UserRepository
from unilib.schemas.user import UserStatusUpdate

logger = logging.getLogger(__name__)


class UserService:
    """Service para operações de User."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = UserRepository(db)

    async def get_by_id(self, user_id: UUID) -> User:
        """
        Busca usuário por ID.

        Raises:
            UserNotFound
        """
        user = await self.repo.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def update_status(self, user_id: UUID, data: UserStatusUpdate) -> User:
        """
        Altera status da conta e, opcionalmente, a validade da carteirinha.

        Raises:
            UserNotFound
        """
        async with unit_of_work(self.db):
            user = await self.repo.get_for_update(user_id)
            if user is None:
                raise UserNotFound()
            user.status = data.status
            if data.id_expiration is not None:
                user.id_expiration = data.id_expiration

        await self.db.refresh(user)
        logger.info(f"Status do usuário {user.identification_code} alterado para {user.status.value}")
        return user
