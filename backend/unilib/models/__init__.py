"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que o metadata conheça todas as tabelas.
"""

from unilib.models.enums import (
    BookCondition,
    FineStatus,
    PaymentMethod,
    TransactionStatus,
    UserRole,
    UserStatus,
)
from unilib.models.book import Book
from unilib.models.user import User
from unilib.models.transaction import Transaction
from unilib.models.fine import Fine, FinePayment, fine_payment_items

__all__ = [
    "BookCondition",
    "FineStatus",
    "PaymentMethod",
    "TransactionStatus",
    "UserRole",
    "UserStatus",
    "Book",
    "User",
    "Transaction",
    "Fine",
    "FinePayment",
    "fine_payment_items",
]
