"""
Relógio da aplicação.

Datas são persistidas como UTC sem timezone; valores lidos do banco podem
voltar com ou sem tzinfo dependendo do driver, por isso toda comparação
passa por `as_naive_utc`.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Data/hora atual em UTC, sem tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normaliza um datetime para UTC sem tzinfo."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
