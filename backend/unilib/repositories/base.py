"""
Repository base com operações genéricas de leitura e escrita.

Os repositories não fazem commit: quem controla a transação é o service,
para que escritas em várias tabelas sejam confirmadas ou desfeitas juntas.
"""

from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from unilib.db.session import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository base.

    Fornece métodos genéricos para:
    - get_by_id: Buscar por ID
    - get_for_update: Buscar por ID com lock de linha
    - add: Incluir registro na sessão (flush, sem commit)
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Busca registro por ID."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, id: UUID) -> ModelType | None:
        """
        Busca registro por ID com SELECT ... FOR UPDATE.

        Recarrega os atributos mesmo que o objeto já esteja na sessão,
        para que a regra de negócio veja o valor travado. No SQLite o
        FOR UPDATE é ignorado.
        """
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, **kwargs: Any) -> ModelType:
        """Cria registro na sessão e faz flush para obter defaults."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        return instance
