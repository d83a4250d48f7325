"""
Testes do motor de empréstimos (borrow / return) contra SQLite.
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from unilib.core.exceptions import (
    AlreadyBorrowed,
    AlreadyReturned,
    BookNotFound,
    BorrowLimitReached,
    CredentialExpired,
    InvalidDueDate,
    NoCopiesAvailable,
    OutstandingFines,
    TransactionNotFound,
    UserNotActive,
    UserNotFound,
    WaiverLimitExceeded,
)
from unilib.models.book import Book
from unilib.models.enums import BookCondition, FineStatus, TransactionStatus, UserStatus
from unilib.models.fine import Fine
from unilib.models.transaction import Transaction
from unilib.models.user import User
from unilib.schemas.transaction import ReturnRequest
from unilib.services.lending import RETURN_WAIVER_REASON, LendingService


async def count_rows(session_factory, model, *conditions) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model).where(*conditions))
        return result.scalar_one()


# ==========================================
# Borrow
# ==========================================

class TestBorrow:
    """Empréstimo e suas pré-condições."""

    @pytest.mark.anyio
    async def test_borrow_success(self, db, clock, fetch, user_factory, book_factory):
        """Empréstimo cria transação, retira cópia e espelha no usuário."""
        user = await user_factory()
        book = await book_factory(total_copies=3)

        transaction = await LendingService(db, clock=clock).borrow(book.id, user.id)

        assert transaction.status == TransactionStatus.BORROWED
        assert transaction.borrow_date == clock.now
        assert transaction.due_date == clock.now + timedelta(days=14)
        assert transaction.return_date is None
        assert transaction.fine_amount == Decimal("0")

        stored_book = await fetch(Book, book.id)
        assert stored_book.available_copies == 2

        stored_user = await fetch(User, user.id)
        assert len(stored_user.borrowed_books) == 1
        entry = stored_user.borrowed_books[0]
        assert entry["transaction_id"] == str(transaction.id)
        assert entry["book_id"] == str(book.id)
        assert entry["status"] == "borrowed"
        assert entry["return_date"] is None

    @pytest.mark.anyio
    async def test_borrow_with_custom_due_date(self, db, clock, user_factory, book_factory):
        user = await user_factory()
        book = await book_factory()
        due = clock.now + timedelta(days=90)

        transaction = await LendingService(db, clock=clock).borrow(book.id, user.id, due)

        assert transaction.due_date == due

    @pytest.mark.anyio
    async def test_borrow_missing_book(self, db, clock, user_factory):
        user = await user_factory()

        with pytest.raises(BookNotFound):
            await LendingService(db, clock=clock).borrow(uuid.uuid4(), user.id)

    @pytest.mark.anyio
    async def test_borrow_inactive_book(self, db, clock, user_factory, book_factory):
        """Livro removido logicamente se comporta como inexistente."""
        user = await user_factory()
        book = await book_factory(is_active=False)

        with pytest.raises(BookNotFound):
            await LendingService(db, clock=clock).borrow(book.id, user.id)

    @pytest.mark.anyio
    async def test_borrow_no_copies(self, db, clock, user_factory, book_factory):
        user = await user_factory()
        book = await book_factory(total_copies=1, available_copies=0)

        with pytest.raises(NoCopiesAvailable):
            await LendingService(db, clock=clock).borrow(book.id, user.id)

    @pytest.mark.anyio
    async def test_book_checks_come_before_user_checks(self, db, clock, user_factory, book_factory):
        """Sem cópias e usuário bloqueado: o erro reportado é o do livro."""
        user = await user_factory(status=UserStatus.BLOCKED)
        book = await book_factory(total_copies=1, available_copies=0)

        with pytest.raises(NoCopiesAvailable):
            await LendingService(db, clock=clock).borrow(book.id, user.id)

    @pytest.mark.anyio
    async def test_borrow_missing_user(self, db, clock, book_factory):
        book = await book_factory()

        with pytest.raises(UserNotFound):
            await LendingService(db, clock=clock).borrow(book.id, uuid.uuid4())

    @pytest.mark.anyio
    @pytest.mark.parametrize("status", [UserStatus.BLOCKED, UserStatus.CLOSED])
    async def test_borrow_inactive_user(self, db, clock, user_factory, book_factory, status):
        user = await user_factory(status=status)
        book = await book_factory()

        with pytest.raises(UserNotActive):
            await LendingService(db, clock=clock).borrow(book.id, user.id)

    @pytest.mark.anyio
    async def test_borrow_expired_credential(self, db, clock, user_factory, book_factory):
        """Carteirinha vencendo exatamente agora já está expirada."""
        user = await user_factory(id_expiration=clock.now)
        book = await book_factory()

        with pytest.raises(CredentialExpired):
            await LendingService(db, clock=clock).borrow(book.id, user.id)

    @pytest.mark.anyio
    async def test_borrow_blocked_by_any_fine_balance(self, db, clock, fetch, user_factory, book_factory):
        """Um centavo de saldo já bloqueia o empréstimo."""
        user = await user_factory(fines=Decimal("0.01"))
        book = await book_factory()

        with pytest.raises(OutstandingFines) as exc_info:
            await LendingService(db, clock=clock).borrow(book.id, user.id)

        assert exc_info.value.payload == {"balance": "0.01"}
        assert (await fetch(Book, book.id)).available_copies == 1

    @pytest.mark.anyio
    async def test_borrow_limit(self, db, clock, user_factory, book_factory):
        user = await user_factory()
        service = LendingService(db, clock=clock)
        for _ in range(5):
            book = await book_factory()
            await service.borrow(book.id, user.id)

        sixth = await book_factory()
        with pytest.raises(BorrowLimitReached) as exc_info:
            await service.borrow(sixth.id, user.id)

        assert exc_info.value.limit == 5

    @pytest.mark.anyio
    async def test_borrow_same_book_twice(self, db, clock, fetch, user_factory, book_factory):
        user = await user_factory()
        book = await book_factory(total_copies=2)
        service = LendingService(db, clock=clock)
        await service.borrow(book.id, user.id)

        with pytest.raises(AlreadyBorrowed):
            await service.borrow(book.id, user.id)

        assert (await fetch(Book, book.id)).available_copies == 1

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "offset",
        [timedelta(0), timedelta(days=-1), timedelta(days=90, seconds=1)],
    )
    async def test_borrow_invalid_due_date(self, db, clock, session_factory, user_factory, book_factory, offset):
        """Prazo deve estar no futuro e no máximo 90 dias à frente."""
        user = await user_factory()
        book = await book_factory()

        with pytest.raises(InvalidDueDate):
            await LendingService(db, clock=clock).borrow(book.id, user.id, clock.now + offset)

        assert await count_rows(session_factory, Transaction) == 0

    @pytest.mark.anyio
    async def test_failed_borrow_leaves_no_trace(self, db, clock, fetch, session_factory, user_factory, book_factory):
        """Falha na última pré-condição não deixa escrita parcial."""
        user = await user_factory()
        book = await book_factory()

        with pytest.raises(InvalidDueDate):
            await LendingService(db, clock=clock).borrow(book.id, user.id, clock.now - timedelta(days=1))

        assert (await fetch(Book, book.id)).available_copies == 1
        assert (await fetch(User, user.id)).borrowed_books == []
        assert await count_rows(session_factory, Transaction) == 0


class TestConcurrentBorrow:
    """Disputa pela última cópia."""

    @pytest.mark.anyio
    async def test_last_copy_goes_to_first_committed_borrow(
        self, clock, fetch, session_factory, user_factory, book_factory,
    ):
        """
        A primeira sessão leu o livro com 1 cópia antes da segunda concluir
        o empréstimo. A leitura desatualizada passa na pré-condição, mas o
        UPDATE condicional não afeta nenhuma linha.
        """
        book = await book_factory(total_copies=1)
        alice = await user_factory()
        bob = await user_factory()

        async with session_factory() as slow, session_factory() as fast:
            stale = await slow.get(Book, book.id)
            assert stale.available_copies == 1

            await LendingService(fast, clock=clock).borrow(book.id, alice.id)

            with pytest.raises(NoCopiesAvailable):
                await LendingService(slow, clock=clock).borrow(book.id, bob.id)

        stored = await fetch(Book, book.id)
        assert stored.available_copies == 0
        assert await count_rows(session_factory, Transaction, Transaction.book_id == book.id) == 1
        assert (await fetch(User, bob.id)).borrowed_books == []


# ==========================================
# Return
# ==========================================

class TestReturn:
    """Devolução, multas e espelhamento."""

    @pytest.mark.anyio
    async def test_return_on_time(self, db, clock, fetch, session_factory, user_factory, book_factory):
        user = await user_factory()
        book = await book_factory(total_copies=2)
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        clock.advance(days=10)
        result = await service.return_book(transaction.id, condition=BookCondition.GOOD, notes="ok")

        assert result.fine_amount == Decimal("0")
        assert result.is_overdue is False
        assert result.fine_waived is False
        assert result.transaction.status == TransactionStatus.RETURNED
        assert result.transaction.return_date == clock.now
        assert result.transaction.condition == BookCondition.GOOD
        assert result.transaction.notes == "ok"

        assert (await fetch(Book, book.id)).available_copies == 2
        stored_user = await fetch(User, user.id)
        assert stored_user.fines == Decimal("0")
        assert stored_user.borrowed_books[0]["status"] == "returned"
        assert stored_user.borrowed_books[0]["return_date"] is not None
        assert await count_rows(session_factory, Fine) == 0

    @pytest.mark.anyio
    async def test_return_within_grace_period(self, db, clock, session_factory, user_factory, book_factory):
        """3 dias de atraso: status overdue, mas sem multa."""
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        clock.advance(days=17)
        result = await service.return_book(transaction.id)

        assert result.is_overdue is True
        assert result.fine_amount == Decimal("0")
        assert result.transaction.status == TransactionStatus.OVERDUE
        assert await count_rows(session_factory, Fine) == 0

    @pytest.mark.anyio
    async def test_return_late_creates_outstanding_fine(
        self, db, clock, fetch, session_factory, user_factory, book_factory,
    ):
        """4 dias de atraso: primeiro dia cobrado após a carência."""
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        clock.advance(days=18)
        result = await service.return_book(transaction.id)

        assert result.fine_amount == Decimal("5.00")
        assert result.transaction.fine_amount == Decimal("5.00")

        assert (await fetch(User, user.id)).fines == Decimal("5.00")
        async with session_factory() as session:
            fines = (await session.execute(select(Fine))).scalars().all()
        assert len(fines) == 1
        assert fines[0].status == FineStatus.OUTSTANDING
        assert fines[0].amount == Decimal("5.00")
        assert fines[0].transaction_id == transaction.id
        assert fines[0].due_date == clock.now + timedelta(days=30)

    @pytest.mark.anyio
    async def test_return_late_and_damaged(self, db, clock, fetch, user_factory, book_factory):
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        clock.advance(days=19)
        result = await service.return_book(transaction.id, condition=BookCondition.POOR)

        assert result.damage_fine == Decimal("15.00")
        assert result.fine_amount == Decimal("25.00")
        assert (await fetch(User, user.id)).fines == Decimal("25.00")

    @pytest.mark.anyio
    async def test_return_with_waiver_waives_only_late_portion(
        self, db, clock, fetch, session_factory, user_factory, book_factory,
    ):
        """Perdão na devolução cobre o atraso; o dano continua cobrado."""
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        clock.advance(days=19)
        result = await service.return_book(
            transaction.id, condition=BookCondition.POOR, waive_fine=True,
        )

        assert result.fine_waived is True
        assert result.fine_amount == Decimal("25.00")
        assert (await fetch(User, user.id)).fines == Decimal("15.00")

        async with session_factory() as session:
            fines = (await session.execute(select(Fine).order_by(Fine.amount))).scalars().all()
        assert [(f.amount, f.status) for f in fines] == [
            (Decimal("10.00"), FineStatus.WAIVED),
            (Decimal("15.00"), FineStatus.OUTSTANDING),
        ]
        assert fines[0].waived_reason == RETURN_WAIVER_REASON
        assert fines[0].waived_by is None
        assert fines[0].waived_at == clock.now

    @pytest.mark.anyio
    async def test_return_with_waiver_when_not_late(self, db, clock, fetch, user_factory, book_factory):
        """Sem atraso não há o que perdoar."""
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)

        result = await service.return_book(transaction.id, condition=BookCondition.FAIR, waive_fine=True)

        assert result.fine_waived is False
        assert (await fetch(User, user.id)).fines == Decimal("5.00")

    @pytest.mark.anyio
    async def test_return_waiver_respects_monthly_limit(
        self, db, clock, fetch, user_factory, book_factory,
    ):
        """Perdões na devolução contam no limite mensal; o quarto é recusado sem efeito."""
        user = await user_factory()
        books = [await book_factory() for _ in range(4)]
        service = LendingService(db, clock=clock)
        transaction_ids = [(await service.borrow(book.id, user.id)).id for book in books]

        clock.advance(days=19)
        for transaction_id in transaction_ids[:3]:
            result = await service.return_book(transaction_id, waive_fine=True)
            assert result.fine_waived is True

        with pytest.raises(WaiverLimitExceeded) as exc_info:
            await service.return_book(transaction_ids[3], waive_fine=True)
        assert exc_info.value.limit == 3

        stored = await fetch(Transaction, transaction_ids[3])
        assert stored.return_date is None
        assert stored.status == TransactionStatus.BORROWED
        assert (await fetch(Book, books[3].id)).available_copies == 0
        assert (await fetch(User, user.id)).fines == Decimal("0.00")

    @pytest.mark.anyio
    async def test_double_return(self, db, clock, fetch, session_factory, user_factory, book_factory):
        """Segunda devolução falha e não altera nada."""
        user = await user_factory()
        book = await book_factory(total_copies=2)
        service = LendingService(db, clock=clock)
        transaction = await service.borrow(book.id, user.id)
        clock.advance(days=20)
        await service.return_book(transaction.id)

        with pytest.raises(AlreadyReturned):
            await service.return_book(transaction.id, condition=BookCondition.LOST)

        assert (await fetch(Book, book.id)).available_copies == 2
        assert (await fetch(User, user.id)).fines == Decimal("15.00")
        assert await count_rows(session_factory, Fine) == 1

    @pytest.mark.anyio
    async def test_return_unknown_transaction(self, db, clock):

        with pytest.raises(TransactionNotFound):
            await LendingService(db, clock=clock).return_book(uuid.uuid4())

    @pytest.mark.anyio
    async def test_copy_count_matches_open_transactions(
        self, db, clock, fetch, session_factory, user_factory, book_factory,
    ):
        """available_copies = total_copies - empréstimos abertos."""
        book = await book_factory(total_copies=3)
        users = [await user_factory() for _ in range(3)]
        service = LendingService(db, clock=clock)

        transactions = [await service.borrow(book.id, u.id) for u in users]
        await service.return_book(transactions[1].id)

        stored = await fetch(Book, book.id)
        open_count = await count_rows(
            session_factory, Transaction,
            Transaction.book_id == book.id, Transaction.return_date.is_(None),
        )
        assert open_count == 2
        assert stored.available_copies == stored.total_copies - open_count


class TestReturnNotification:
    """Confirmação enviada após o commit."""

    @pytest.mark.anyio
    async def test_notifier_receives_fine_amount(self, db, clock, user_factory, book_factory):
        notifier = AsyncMock()
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock, notifier=notifier)
        transaction = await service.borrow(book.id, user.id)
        clock.advance(days=18)

        await service.return_book(transaction.id)

        notifier.send_return_confirmation.assert_awaited_once()
        args = notifier.send_return_confirmation.await_args.args
        assert args[0].id == user.id
        assert args[1].id == transaction.id
        assert args[2] == Decimal("5.00")

    @pytest.mark.anyio
    async def test_notifier_failure_does_not_undo_return(self, db, clock, fetch, user_factory, book_factory):
        notifier = AsyncMock()
        notifier.send_return_confirmation.side_effect = RuntimeError("smtp indisponível")
        user = await user_factory()
        book = await book_factory()
        service = LendingService(db, clock=clock, notifier=notifier)
        transaction = await service.borrow(book.id, user.id)

        result = await service.return_book(transaction.id)

        assert result.transaction.status == TransactionStatus.RETURNED
        assert (await fetch(Transaction, transaction.id)).return_date is not None


class TestBulkReturn:
    """Devolução em lote com resultado por item."""

    @pytest.mark.anyio
    async def test_failures_do_not_affect_other_items(self, db, clock, fetch, user_factory, book_factory):

        user = await user_factory()
        books = [await book_factory() for _ in range(2)]
        service = LendingService(db, clock=clock)
        transactions = [await service.borrow(b.id, user.id) for b in books]
        await service.return_book(transactions[0].id)

        result = await service.bulk_return([
            ReturnRequest(transaction_id=transactions[0].id),
            ReturnRequest(transaction_id=uuid.uuid4()),
            ReturnRequest(transaction_id=transactions[1].id, condition=BookCondition.FAIR),
        ])

        assert result.processed == 3
        assert result.succeeded == 1
        assert result.failed == 2
        assert [item.error for item in result.items] == [
            "already_returned", "transaction_not_found", None,
        ]
        assert result.items[2].result.damage_fine == Decimal("5.00")
        assert (await fetch(Book, books[1].id)).available_copies == 1


class TestOverdueProcessing:
    """Varredura de empréstimos vencidos."""

    @pytest.mark.anyio
    async def test_marks_only_past_due_open_transactions(self, db, clock, fetch, user_factory, book_factory):
        user = await user_factory()
        service = LendingService(db, clock=clock)
        short = await service.borrow((await book_factory()).id, user.id, clock.now + timedelta(days=2))
        long = await service.borrow((await book_factory()).id, user.id, clock.now + timedelta(days=30))

        clock.advance(days=5)
        marked = await service.mark_overdue_transactions()

        assert marked == 1
        assert (await fetch(Transaction, short.id)).status == TransactionStatus.OVERDUE
        assert (await fetch(Transaction, long.id)).status == TransactionStatus.BORROWED

        entries = {e["transaction_id"]: e for e in (await fetch(User, user.id)).borrowed_books}
        assert entries[str(short.id)]["status"] == "overdue"
        assert entries[str(long.id)]["status"] == "borrowed"

    @pytest.mark.anyio
    async def test_overdue_open_transaction_still_counts_as_open(self, db, clock, user_factory, book_factory):
        """Empréstimo marcado como atrasado continua bloqueando o mesmo livro."""
        user = await user_factory()
        book = await book_factory(total_copies=2)
        service = LendingService(db, clock=clock)
        await service.borrow(book.id, user.id, clock.now + timedelta(days=1))
        clock.advance(days=2)
        await service.mark_overdue_transactions()

        with pytest.raises(AlreadyBorrowed):
            await service.borrow(book.id, user.id)
