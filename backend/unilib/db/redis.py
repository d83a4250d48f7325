"""
Cliente Redis do cache de disponibilidade de livros.

O cache guarda snapshots `cache:book:<id>` (cópias totais e disponíveis)
e é invalidado após cada empréstimo ou devolução confirmado. O Redis é
opcional: sem cliente, BookCacheService opera em modo fail-open e toda
leitura vai ao banco.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from unilib.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Timeouts curtos: a invalidação roda depois do commit da devolução e não
# deve segurar a resposta se o Redis estiver fora.
SOCKET_TIMEOUT_SECONDS = 2

# Cliente compartilhado; None até o lifespan da aplicação chamar init_redis()
redis_client: Optional[redis.Redis] = None


async def init_redis() -> redis.Redis:
    """
    Cria o cliente do cache de livros a partir de REDIS_URL.

    Não testa a conexão; o lifespan chama check_redis_connection() em
    seguida e apenas registra aviso se o Redis não responder.
    """
    global redis_client
    redis_client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
    )
    return redis_client


async def close_redis() -> None:
    """Encerra o cliente no shutdown; snapshots já gravados expiram pelo TTL."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_redis_client() -> Optional[redis.Redis]:
    """Cliente usado pelo BookCacheService; None desliga o cache."""
    return redis_client


async def check_redis_connection() -> bool:
    """PING usado pelo /health e no startup; falha nunca derruba a API."""
    if redis_client is None:
        return False
    try:
        await redis_client.ping()
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache de livros indisponível: {e}")
        return False
