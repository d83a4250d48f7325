"""
Enums utilizados nos models da aplicação.
"""

import enum


class UserRole(str, enum.Enum):
    """Papéis de usuário. Um usuário pode acumular mais de um."""
    STUDENT = "student"
    LIBRARIAN = "librarian"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    """Situação da conta; apenas ACTIVE pode emprestar."""
    ACTIVE = "active"
    BLOCKED = "blocked"
    CLOSED = "closed"


class TransactionStatus(str, enum.Enum):
    """
    Status de uma transação de empréstimo.

    Fluxo típico:
        BORROWED -> RETURNED (no prazo)
        BORROWED -> OVERDUE (venceu em aberto ou devolvido com atraso)
    """
    BORROWED = "borrowed"
    OVERDUE = "overdue"
    RETURNED = "returned"


class FineStatus(str, enum.Enum):
    """
    Status de uma multa.

    Transições são de mão única:
        OUTSTANDING/OVERDUE -> PAID
        OUTSTANDING/OVERDUE -> WAIVED
    """
    OUTSTANDING = "outstanding"
    OVERDUE = "overdue"
    PAID = "paid"
    WAIVED = "waived"


OPEN_FINE_STATUSES = (FineStatus.OUTSTANDING, FineStatus.OVERDUE)


class PaymentMethod(str, enum.Enum):
    """Formas de pagamento aceitas no balcão."""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    ONLINE = "online"
    CHECK = "check"


class BookCondition(str, enum.Enum):
    """Estado do livro na devolução, usado na multa por dano."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"
    LOST = "lost"
