"""
Módulo de banco de dados - conexões e sessões.

Exports:
    - Base: Classe base para modelos SQLAlchemy
    - engine: Engine async do SQLAlchemy
    - get_db: Dependency para injeção de sessão
    - unit_of_work: Escopo commit/rollback das operações de negócio
"""

from unilib.db.session import Base, engine, get_db, async_session_factory, create_tables, unit_of_work
from unilib.db.redis import init_redis, close_redis, get_redis_client

__all__ = [
    "Base",
    "engine",
    "get_db",
    "async_session_factory",
    "create_tables",
    "unit_of_work",
    "init_redis",
    "close_redis",
    "get_redis_client",
]
