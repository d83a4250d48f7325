"""
Cache de disponibilidade de livros usando Redis.

Configurável via variáveis de ambiente:
    - CACHE_ENABLED: bool (default: True) - Habilita/desabilita cache
    - CACHE_BOOK_TTL_SECONDS: int (default: 30) - TTL do snapshot do livro

Uso:
    cache = BookCacheService()

    data = await cache.get_book(book_id)
    if data is None:
        data = BookRead.model_validate(book).model_dump(mode="json")
        await cache.set_book(book_id, data)

Invalidação:
    Após cada empréstimo/devolução confirmado e a cada alteração do
    catálogo, o service chama `invalidate_book(book_id)`.

O cache nunca é fonte de verdade: se o Redis estiver fora do ar, todas as
operações devolvem "miss" e seguem pelo banco.
"""

import json
import logging
from typing import Optional
from uuid import UUID

from unilib.core.config import get_settings
from unilib.db.redis import get_redis_client

logger = logging.getLogger(__name__)
settings = get_settings()


class BookCacheService:
    """Snapshots de livro (incluindo contadores de cópias) no Redis."""

    PREFIX_BOOK = "cache:book"

    def __init__(self, ttl: Optional[int] = None, enabled: Optional[bool] = None):
        """
        Args:
            ttl: TTL padrão em segundos (default: config)
            enabled: Liga/desliga o cache (default: CACHE_ENABLED)
        """
        self.ttl = ttl or settings.CACHE_BOOK_TTL_SECONDS
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled

    def _key(self, book_id: UUID) -> str:
        return f"{self.PREFIX_BOOK}:{book_id}"

    async def get_book(self, book_id: UUID) -> Optional[dict]:
        """Busca o snapshot do livro. Retorna None em miss ou erro."""
        client = get_redis_client()
        if not self.enabled or client is None:
            return None

        try:
            data = await client.get(self._key(book_id))
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.warning(f"Erro ao buscar cache do livro {book_id}: {e}")
            return None

    async def set_book(self, book_id: UUID, data: dict, ttl: Optional[int] = None) -> bool:
        """Salva o snapshot do livro. Retorna False se não foi possível."""
        client = get_redis_client()
        if not self.enabled or client is None:
            return False

        try:
            await client.setex(
                self._key(book_id),
                ttl or self.ttl,
                json.dumps(data, default=str),
            )
            return True
        except Exception as e:
            logger.warning(f"Erro ao salvar cache do livro {book_id}: {e}")
            return False

    async def invalidate_book(self, book_id: UUID) -> bool:
        """Remove o snapshot do livro após mudança de contadores ou catálogo."""
        client = get_redis_client()
        if not self.enabled or client is None:
            return False

        try:
            await client.delete(self._key(book_id))
            return True
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache do livro {book_id}: {e}")
            return False


# Instância global para uso nos services
book_cache = BookCacheService()
