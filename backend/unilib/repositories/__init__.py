"""
Módulo de repositórios - acesso a dados.
"""

from unilib.repositories.base import BaseRepository
from unilib.repositories.book import BookRepository
from unilib.repositories.user import UserRepository
from unilib.repositories.transaction import TransactionRepository
from unilib.repositories.fine import FinePaymentRepository, FineRepository

__all__ = [
    "BaseRepository",
    "BookRepository",
    "UserRepository",
    "TransactionRepository",
    "FineRepository",
    "FinePaymentRepository",
]
