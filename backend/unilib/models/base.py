"""
Mixins compartilhados pelos models SQLAlchemy.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column


class UUIDMixin:
    """Mixin que adiciona ID do tipo UUID como primary key."""
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """
    Mixin que adiciona timestamps de criação e atualização.

    Os valores são gerados pelo banco e lidos de volta no flush, para
    que o objeto possa ser serializado sem novo acesso ao banco.
    """
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def enum_values(enum_cls) -> list[str]:
    """Persiste enums pelo valor (minúsculo) em vez do nome."""
    return [member.value for member in enum_cls]
