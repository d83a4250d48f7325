"""
Configuração de logging da aplicação.

O nível vem de LOG_LEVEL. Cada linha traz timestamp, nível, logger e mensagem,
no formato usado pelos serviços de empréstimo e multas para auditoria.
"""

import logging
import sys
from typing import Optional

from unilib.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configura o logger raiz para stdout.

    Args:
        level: Nível de logging. Se não fornecido, usa LOG_LEVEL do .env
    """
    log_level = (level or get_settings().LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Evita handlers duplicados quando o app é recarregado
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configurado com nível: {log_level}")


def get_logger(name: str) -> logging.Logger:
    """Retorna o logger do módulo (geralmente __name__)."""
    return logging.getLogger(name)
