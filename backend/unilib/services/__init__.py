"""
Services com as regras de negócio da aplicação.
"""

from unilib.services.auth import AuthService
from unilib.services.book import BookService
from unilib.services.fine import FineService
from unilib.services.fine_checks import FineChecks
from unilib.services.fine_policy import FinePolicy
from unilib.services.lending import LendingService
from unilib.services.notifications import LoggingNotifier, Notifier
from unilib.services.user import UserService

__all__ = [
    "AuthService",
    "BookService",
    "FineService",
    "FineChecks",
    "FinePolicy",
    "LendingService",
    "LoggingNotifier",
    "Notifier",
    "UserService",
]
