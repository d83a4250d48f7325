"""
Taxonomia de erros do domínio.

Os serviços levantam estas exceções no ponto em que a regra é violada.
A camada HTTP (ver `unilib.main`) converte o `kind` em status code:

    NOT_FOUND           -> 404
    CONFLICT            -> 400
    PRECONDITION_FAILED -> 400
    UNAUTHORIZED        -> 401
    FORBIDDEN           -> 403
    INTERNAL            -> 500

Erros que precisam devolver contexto estruturado carregam um `payload`
tipado em vez de atributos soltos.
"""

import enum
from decimal import Decimal
from typing import Any
from uuid import UUID


class ErrorKind(str, enum.Enum):
    """Categoria do erro, usada para mapear status HTTP."""
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    PRECONDITION_FAILED = "precondition_failed"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


class LibraryError(Exception):
    """
    Erro base do domínio.

    Attributes:
        kind: Categoria do erro
        code: Identificador estável (ex: "no_copies_available")
        message: Mensagem legível
        payload: Dados adicionais para o cliente
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    code: str = "internal_error"
    default_message: str = "Erro interno do servidor"

    def __init__(self, message: str | None = None, payload: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.payload = payload or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code}: {self.message}>"


# ==========================================
# Categorias
# ==========================================

class NotFoundError(LibraryError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"
    default_message = "Registro não encontrado"


class ConflictError(LibraryError):
    kind = ErrorKind.CONFLICT
    code = "conflict"
    default_message = "Conflito com o estado atual"


class PreconditionFailedError(LibraryError):
    kind = ErrorKind.PRECONDITION_FAILED
    code = "precondition_failed"
    default_message = "Regra de negócio violada"


class ForbiddenError(LibraryError):
    kind = ErrorKind.FORBIDDEN
    code = "forbidden"
    default_message = "Acesso negado"


class InternalError(LibraryError):
    kind = ErrorKind.INTERNAL
    code = "internal_error"


# ==========================================
# NotFound
# ==========================================

class BookNotFound(NotFoundError):
    code = "book_not_found"
    default_message = "Livro não encontrado"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "Usuário não encontrado"


class TransactionNotFound(NotFoundError):
    code = "transaction_not_found"
    default_message = "Transação não encontrada"


class FineNotFound(NotFoundError):
    code = "fine_not_found"
    default_message = "Multa não encontrada ou já quitada"


# ==========================================
# Conflict
# ==========================================

class DuplicateISBN(ConflictError):
    code = "duplicate_isbn"
    default_message = "ISBN já cadastrado"


class DuplicateIdentificationCode(ConflictError):
    code = "duplicate_identification_code"
    default_message = "Código de identificação já cadastrado"


class DuplicateEmail(ConflictError):
    code = "duplicate_email"
    default_message = "Email já cadastrado"


class AlreadyBorrowed(ConflictError):
    code = "already_borrowed"
    default_message = "Usuário já possui este livro emprestado"


class AlreadyReturned(ConflictError):
    code = "already_returned"
    default_message = "Livro já devolvido"


# ==========================================
# PreconditionFailed
# ==========================================

class NoCopiesAvailable(PreconditionFailedError):
    code = "no_copies_available"
    default_message = "Nenhuma cópia disponível para empréstimo"


class UserNotActive(PreconditionFailedError):
    code = "user_not_active"
    default_message = "Conta do usuário não está ativa"


class CredentialExpired(PreconditionFailedError):
    code = "credential_expired"
    default_message = "Carteirinha expirada. Não é possível emprestar livros."


class OutstandingFines(PreconditionFailedError):
    code = "outstanding_fines"
    default_message = "Usuário possui multas pendentes. Não é possível emprestar livros."

    def __init__(self, balance: Decimal):
        super().__init__(payload={"balance": str(balance)})
        self.balance = balance


class BorrowLimitReached(PreconditionFailedError):
    code = "borrow_limit_reached"

    def __init__(self, limit: int):
        super().__init__(
            message=f"Usuário já possui {limit} empréstimos abertos. "
                    f"Devolva um livro antes de pegar outro.",
            payload={"limit": limit},
        )
        self.limit = limit


class InvalidDueDate(PreconditionFailedError):
    code = "invalid_due_date"
    default_message = "Data de devolução inválida"


class NoOutstandingFines(PreconditionFailedError):
    code = "no_outstanding_fines"
    default_message = "Usuário não possui multas pendentes"


class InvalidAmount(PreconditionFailedError):
    code = "invalid_amount"
    default_message = "Valor deve ser maior que zero"


class OverpaymentNotAllowed(PreconditionFailedError):
    code = "overpayment_not_allowed"
    default_message = "Valor do pagamento excede o saldo de multas"


class InsufficientPayment(PreconditionFailedError):
    code = "insufficient_payment"
    default_message = "Valor insuficiente para quitar as multas selecionadas"


class InvalidWaiverReason(PreconditionFailedError):
    code = "invalid_waiver_reason"
    default_message = "Informe um motivo válido para o perdão da multa"


class WaiverLimitExceeded(PreconditionFailedError):
    code = "waiver_limit_exceeded"

    def __init__(self, limit: int):
        super().__init__(
            message=f"Limite de {limit} perdões de multa no mês atingido",
            payload={"limit": limit},
        )
        self.limit = limit


class WaiverAmountExceedsFines(PreconditionFailedError):
    code = "waiver_amount_exceeds_fines"
    default_message = "Valor do perdão excede o total das multas"


class TotalCopiesBelowBorrowed(PreconditionFailedError):
    code = "total_copies_below_borrowed"

    def __init__(self, borrowed: int):
        super().__init__(
            message=f"Não é possível reduzir o total abaixo de {borrowed} "
                    f"(cópias emprestadas no momento)",
            payload={"borrowed": borrowed},
        )
        self.borrowed = borrowed


class ActiveBorrowsExist(PreconditionFailedError):
    """Livro não pode ser removido enquanto houver empréstimos abertos."""
    code = "active_borrows_exist"

    def __init__(self, book_id: UUID, title: str, borrowers: list[dict[str, Any]]):
        super().__init__(
            message=f"Não é possível remover livro com {len(borrowers)} empréstimo(s) aberto(s)",
            payload={
                "book_id": str(book_id),
                "title": title,
                "count": len(borrowers),
                "borrowers": borrowers,
            },
        )
        self.count = len(borrowers)
        self.borrowers = borrowers


class BookHasHistory(PreconditionFailedError):
    """Livro com histórico de empréstimos só pode ser removido logicamente."""
    code = "book_has_history"
    default_message = "Livro possui histórico de empréstimos; use a remoção lógica"


# ==========================================
# Auth
# ==========================================

class InvalidCredentials(LibraryError):
    kind = ErrorKind.UNAUTHORIZED
    code = "invalid_credentials"
    default_message = "Código de identificação ou senha incorretos"


class InvalidQRCode(PreconditionFailedError):
    code = "invalid_qr_code"
    default_message = "QR code inválido ou de carteirinha substituída"
