"""
Configuração de sessão do banco de dados com SQLAlchemy async.

Este módulo fornece o engine async, session factory e dependency
para injeção de sessão nos endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from unilib.core.config import get_settings
from unilib.core.exceptions import InternalError, LibraryError

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """
    Cria engine async.

    Pool de conexões só é configurado para bancos servidor (PostgreSQL);
    SQLite usa o pool padrão do dialeto.
    """
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10)
    options.update(overrides)
    return create_async_engine(database_url, **options)


engine = build_engine(settings.DATABASE_URL)

# Factory de sessões async
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Classe base para todos os modelos SQLAlchemy."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency que fornece uma sessão de banco de dados.

    A sessão é fechada ao final do request; transações não confirmadas
    são descartadas no close.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Escopo transacional de uma operação de negócio.

    Confirma tudo no final ou desfaz tudo em caso de erro, de modo que
    nenhuma escrita parcial fique visível para leituras seguintes.

    Uso:
        async with unit_of_work(self.db):
            ...

    Raises:
        LibraryError: Regra de negócio violada (repassada após rollback)
        InternalError: Falha do banco (SQLAlchemyError), após rollback
    """
    try:
        yield session
        await session.commit()
    except LibraryError as e:
        await session.rollback()
        logger.warning(f"Operação desfeita: {e.code} - {e.message}")
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Erro de banco, operação desfeita: {type(e).__name__}: {e}")
        raise InternalError(f"Erro ao gravar no banco: {type(e).__name__}") from e
    except Exception:
        await session.rollback()
        logger.exception("Erro inesperado, operação desfeita")
        raise


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Cria as tabelas a partir dos models (desenvolvimento e testes)."""
    import unilib.models  # noqa: F401  registra os models no metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database_connection() -> tuple[bool, str | None]:
    """
    Verifica se a conexão com o banco de dados está funcionando.

    Returns:
        Tupla (sucesso, mensagem_erro)
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True, None
    except Exception as e:
        return False, str(e)
