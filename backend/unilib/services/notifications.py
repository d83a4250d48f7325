"""
Notificações enviadas ao usuário após operações de empréstimo.

O envio acontece depois do commit; uma falha aqui é registrada em log
e nunca desfaz a devolução.
"""

import logging
from decimal import Decimal
from typing import Protocol

from unilib.models.transaction import Transaction
from unilib.models.user import User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Canal de notificação (email, push, log)."""

    async def send_return_confirmation(
        self,
        user: User,
        transaction: Transaction,
        fine_amount: Decimal,
    ) -> None:
        ...


class LoggingNotifier:
    """Notificador padrão: escreve a confirmação no log da aplicação."""

    async def send_return_confirmation(
        self,
        user: User,
        transaction: Transaction,
        fine_amount: Decimal,
    ) -> None:
        if fine_amount > 0:
            detail = f"multa de R$ {fine_amount:.2f}"
        else:
            detail = "sem multa"
        logger.info(
            f"Confirmação de devolução para {user.email}: "
            f"transação {transaction.id} ({detail})"
        )
