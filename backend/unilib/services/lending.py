"""
Motor de empréstimos: empréstimo, devolução e varredura de atrasos.

Regras de negócio:
    - Usuário pode ter no máximo MAX_ACTIVE_BORROWS empréstimos abertos
    - Prazo padrão: DEFAULT_LOAN_DAYS; prazo informado não passa de MAX_LOAN_DAYS
    - Qualquer saldo de multa bloqueia novos empréstimos
    - Multa na devolução segue a FinePolicy injetada

Cada operação de escrita roda em uma única unidade de trabalho: Book,
Transaction, User e Fine são confirmados juntos ou nenhum deles é.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.cache import BookCacheService, book_cache
from unilib.core.clock import as_naive_utc, utcnow
from unilib.core.config import Settings, get_settings
from unilib.core.exceptions import (
    AlreadyBorrowed,
    AlreadyReturned,
    BookNotFound,
    BorrowLimitReached,
    CredentialExpired,
    InternalError,
    InvalidDueDate,
    LibraryError,
    NoCopiesAvailable,
    OutstandingFines,
    TransactionNotFound,
    UserNotActive,
    UserNotFound,
    WaiverLimitExceeded,
)
from unilib.db.session import unit_of_work
from unilib.models.enums import (
    BookCondition,
    FineStatus,
    TransactionStatus,
    UserStatus,
)
from unilib.models.transaction import Transaction
from unilib.models.user import User
from unilib.repositories.book import BookRepository
from unilib.repositories.fine import FineRepository
from unilib.repositories.transaction import TransactionRepository
from unilib.repositories.user import UserRepository
from unilib.schemas.transaction import (
    BulkReturnItem,
    BulkReturnResult,
    ReturnRequest,
    ReturnResult,
    TransactionRead,
)
from unilib.services.fine_checks import FineChecks
from unilib.services.fine_policy import CENTS, FinePolicy
from unilib.services.notifications import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

RETURN_WAIVER_REASON = "Waived at return"


def _mirror_entry(transaction: Transaction) -> dict[str, Any]:
    """Entrada de `User.borrowed_books` espelhando a transação."""
    return {
        "transaction_id": str(transaction.id),
        "book_id": str(transaction.book_id),
        "borrow_date": transaction.borrow_date.isoformat(),
        "due_date": transaction.due_date.isoformat(),
        "return_date": (
            transaction.return_date.isoformat() if transaction.return_date else None
        ),
        "status": transaction.status.value,
    }


def _replace_mirror_entry(user: User, transaction: Transaction) -> None:
    """
    Atualiza a entrada da transação em `borrowed_books`.

    A lista é reatribuída (e não alterada in-place) para que o SQLAlchemy
    detecte a mudança na coluna JSON.
    """
    key = str(transaction.id)
    entries = [
        _mirror_entry(transaction) if entry.get("transaction_id") == key else dict(entry)
        for entry in (user.borrowed_books or [])
    ]
    if not any(entry.get("transaction_id") == key for entry in entries):
        entries.append(_mirror_entry(transaction))
    user.borrowed_books = entries


class LendingService:
    """Service para empréstimo e devolução de livros."""

    def __init__(
        self,
        db: AsyncSession,
        policy: Optional[FinePolicy] = None,
        clock: Callable[[], datetime] = utcnow,
        notifier: Optional[Notifier] = None,
        cache: Optional[BookCacheService] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.policy = policy or FinePolicy.from_settings(self.settings)
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()
        self.cache = cache or book_cache
        self.book_repo = BookRepository(db)
        self.user_repo = UserRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.fine_repo = FineRepository(db)
        self.checks = FineChecks(db, waiver_limit=self.settings.WAIVER_LIMIT_PER_MONTH)

    # ==========================================
    # Borrow
    # ==========================================

    async def borrow(
        self,
        book_id: UUID,
        user_id: UUID,
        due_date: Optional[datetime] = None,
    ) -> Transaction:
        """
        Empresta um livro.

        Pré-condições, verificadas nesta ordem:
            1. Livro existe e está ativo
            2. Há cópia disponível
            3. Usuário existe e está ativo
            4. Carteirinha dentro da validade
            5. Usuário sem saldo de multas
            6. Abaixo do limite de empréstimos abertos
            7. Usuário ainda não tem este livro emprestado
            8. Prazo informado no futuro e dentro do limite

        Efeito (atômico):
            - Cria Transaction(borrowed)
            - Decrementa available_copies com UPDATE condicional
            - Acrescenta a entrada em user.borrowed_books

        Args:
            book_id: ID do livro
            user_id: ID do usuário
            due_date: Prazo de devolução (default: agora + DEFAULT_LOAN_DAYS)

        Returns:
            Transação criada

        Raises:
            BookNotFound, NoCopiesAvailable, UserNotFound, UserNotActive,
            CredentialExpired, OutstandingFines, BorrowLimitReached,
            AlreadyBorrowed, InvalidDueDate
        """
        now = self.clock()

        async with unit_of_work(self.db):
            # 1-2. Livro
            book = await self.book_repo.get_by_id(book_id)
            if book is None or not book.is_active:
                raise BookNotFound()
            if book.available_copies < 1:
                raise NoCopiesAvailable()

            # 3-6. Usuário (linha travada até o commit)
            user = await self.user_repo.get_for_update(user_id)
            if user is None:
                raise UserNotFound()
            if user.status != UserStatus.ACTIVE:
                raise UserNotActive()
            if as_naive_utc(user.id_expiration) <= now:
                raise CredentialExpired()
            if user.fines > 0:
                raise OutstandingFines(user.fines)

            max_borrows = self.settings.MAX_ACTIVE_BORROWS
            if await self.transaction_repo.count_open_by_user(user.id) >= max_borrows:
                raise BorrowLimitReached(max_borrows)

            # 7. Par (usuário, livro)
            if await self.transaction_repo.get_open(user.id, book.id) is not None:
                raise AlreadyBorrowed()

            # 8. Prazo
            resolved_due_date = self._resolve_due_date(due_date, now)

            # A leitura acima pode estar desatualizada: quem decide é o UPDATE
            if not await self.book_repo.decrement_available(book.id):
                raise NoCopiesAvailable()

            transaction = await self.transaction_repo.add(
                user_id=user.id,
                book_id=book.id,
                borrow_date=now,
                due_date=resolved_due_date,
                status=TransactionStatus.BORROWED,
                fine_amount=Decimal("0.00"),
            )
            _replace_mirror_entry(user, transaction)

        await self.db.refresh(transaction)
        await self.cache.invalidate_book(book_id)

        logger.info(
            f"Empréstimo {transaction.id}: livro {book_id} para usuário {user_id}, "
            f"devolução até {resolved_due_date:%Y-%m-%d}"
        )
        return transaction

    def _resolve_due_date(self, due_date: Optional[datetime], now: datetime) -> datetime:
        """
        Valida o prazo informado ou aplica o prazo padrão.

        Raises:
            InvalidDueDate: Prazo no passado ou além de MAX_LOAN_DAYS
        """
        if due_date is None:
            return now + timedelta(days=self.settings.DEFAULT_LOAN_DAYS)

        resolved = as_naive_utc(due_date)
        if resolved <= now:
            raise InvalidDueDate("Data de devolução deve estar no futuro")
        if resolved > now + timedelta(days=self.settings.MAX_LOAN_DAYS):
            raise InvalidDueDate(
                f"Data de devolução não pode passar de "
                f"{self.settings.MAX_LOAN_DAYS} dias"
            )
        return resolved

    # ==========================================
    # Return
    # ==========================================

    async def return_book(
        self,
        transaction_id: UUID,
        condition: Optional[BookCondition] = None,
        notes: Optional[str] = None,
        waive_fine: bool = False,
    ) -> ReturnResult:
        """
        Processa a devolução de um empréstimo.

        Fluxo:
            1. Busca a transação (travada) e verifica se ainda está aberta
            2. Calcula multa de atraso e de dano pela FinePolicy
            3. Fecha a transação e devolve a cópia à estante
            4. Atualiza o espelho em user.borrowed_books
            5. Gera as multas e soma a parte cobrada em user.fines
            6. Após o commit, envia a confirmação ao usuário

        Com `waive_fine`, a parte de atraso vira uma multa já perdoada;
        a parte de dano é sempre cobrada, em multa separada.

        Raises:
            TransactionNotFound: Transação não existe
            AlreadyReturned: Transação já devolvida
            WaiverLimitExceeded: Perdão pedido com o limite mensal já atingido
        """
        now = self.clock()

        async with unit_of_work(self.db):
            transaction = await self.transaction_repo.get_for_update(transaction_id)
            if transaction is None:
                raise TransactionNotFound()
            if transaction.return_date is not None or transaction.status == TransactionStatus.RETURNED:
                raise AlreadyReturned()

            user = await self.user_repo.get_for_update(transaction.user_id)
            if user is None:
                raise UserNotFound()

            breakdown = self.policy.assess(transaction.due_date, now, condition)
            late_waived = waive_fine and breakdown.late_fine > 0
            if late_waived and (
                await self.checks.monthly_waiver_count(user.id, now) >= self.checks.waiver_limit
            ):
                raise WaiverLimitExceeded(self.checks.waiver_limit)

            transaction.return_date = now
            transaction.status = (
                TransactionStatus.OVERDUE if breakdown.is_overdue else TransactionStatus.RETURNED
            )
            transaction.fine_amount = breakdown.total
            transaction.condition = condition
            transaction.notes = notes

            if not await self.book_repo.increment_available(transaction.book_id):
                raise InternalError(
                    "Contador de cópias inconsistente: todas as cópias já constam na estante"
                )

            _replace_mirror_entry(user, transaction)

            fine_due_date = self.policy.fine_due_date(now)
            if late_waived:
                await self.fine_repo.add(
                    user_id=user.id,
                    transaction_id=transaction.id,
                    amount=breakdown.late_fine,
                    reason=f"Atraso de {breakdown.days_overdue} dia(s)",
                    status=FineStatus.WAIVED,
                    due_date=fine_due_date,
                    waived_reason=RETURN_WAIVER_REASON,
                    waived_at=now,
                )
                charged = breakdown.damage_fine
                reason = f"Dano na devolução ({condition.value})" if condition else ""
            else:
                charged = breakdown.total
                reason = self._fine_reason(breakdown.days_overdue, breakdown.late_fine, condition)

            if charged > 0:
                await self.fine_repo.add(
                    user_id=user.id,
                    transaction_id=transaction.id,
                    amount=charged,
                    reason=reason,
                    status=FineStatus.OUTSTANDING,
                    due_date=fine_due_date,
                )
                user.fines = (user.fines + charged).quantize(CENTS)

        await self.db.refresh(transaction)
        await self.cache.invalidate_book(transaction.book_id)

        logger.info(
            f"Devolução {transaction.id}: {breakdown.days_overdue} dia(s) de atraso, "
            f"multa R$ {breakdown.total:.2f} (atraso {breakdown.late_fine:.2f}, "
            f"dano {breakdown.damage_fine:.2f}, perdoada={late_waived})"
        )

        try:
            await self.notifier.send_return_confirmation(user, transaction, breakdown.total)
        except Exception as e:
            logger.warning(f"Falha ao notificar devolução {transaction.id}: {e}")

        if breakdown.total > 0:
            message = (
                f"Livro devolvido com {breakdown.days_overdue} dia(s) de atraso. "
                f"Multa: R$ {breakdown.total:.2f}"
            )
        else:
            message = "Livro devolvido com sucesso. Sem multa."

        return ReturnResult(
            transaction=TransactionRead.model_validate(transaction),
            fine_amount=breakdown.total,
            fine_waived=late_waived,
            is_overdue=breakdown.is_overdue,
            damage_fine=breakdown.damage_fine,
            message=message,
        )

    @staticmethod
    def _fine_reason(
        days_overdue: int,
        late_fine: Decimal,
        condition: Optional[BookCondition],
    ) -> str:
        parts = []
        if late_fine > 0:
            parts.append(f"Atraso de {days_overdue} dia(s)")
        if condition is not None and condition not in (BookCondition.EXCELLENT, BookCondition.GOOD):
            parts.append(f"Dano na devolução ({condition.value})")
        return "; ".join(parts)

    async def bulk_return(self, items: list[ReturnRequest]) -> BulkReturnResult:
        """
        Devolve vários empréstimos de uma vez (balcão).

        Cada item roda em sua própria unidade de trabalho: a falha de um
        item não desfaz os demais e aparece no resultado individual.
        """
        results = []
        for item in items:
            try:
                result = await self.return_book(
                    item.transaction_id,
                    condition=item.condition,
                    notes=item.notes,
                    waive_fine=item.waive_fine,
                )
            except LibraryError as e:
                results.append(BulkReturnItem(
                    transaction_id=item.transaction_id,
                    success=False,
                    error=e.code,
                    message=e.message,
                ))
            else:
                results.append(BulkReturnItem(
                    transaction_id=item.transaction_id,
                    success=True,
                    result=result,
                ))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Devolução em lote: {succeeded}/{len(results)} processadas")
        return BulkReturnResult(
            processed=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            items=results,
        )

    # ==========================================
    # Overdue
    # ==========================================

    async def mark_overdue_transactions(self) -> int:
        """
        Marca como OVERDUE os empréstimos abertos com prazo vencido.

        Returns:
            Quantidade de transações marcadas
        """
        now = self.clock()

        async with unit_of_work(self.db):
            transactions = await self.transaction_repo.get_past_due_open(now)
            for transaction in transactions:
                transaction.status = TransactionStatus.OVERDUE
                user = await self.user_repo.get_for_update(transaction.user_id)
                if user is not None:
                    _replace_mirror_entry(user, transaction)

        if transactions:
            logger.info(f"{len(transactions)} empréstimo(s) marcados como atrasados")
        return len(transactions)

    # ==========================================
    # Get / List
    # ==========================================

    async def get_transaction(self, transaction_id: UUID) -> Transaction:
        """
        Busca transação por ID.

        Raises:
            TransactionNotFound
        """
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFound()
        return transaction

    async def list_transactions(
        self,
        user_id: UUID | None = None,
        book_id: UUID | None = None,
        status: TransactionStatus | None = None,
        open_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Transaction], int]:
        """Lista transações com filtros e paginação."""
        return await self.transaction_repo.search(
            user_id=user_id,
            book_id=book_id,
            status=status,
            open_only=open_only,
            page=page,
            page_size=page_size,
        )
