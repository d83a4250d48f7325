"""
Testes do livro-razão de multas: pagamento, perdão, verificações e relatório.
"""

import re
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from unilib.core.clock import utcnow
from unilib.core.exceptions import (
    FineNotFound,
    InsufficientPayment,
    InternalError,
    InvalidAmount,
    InvalidWaiverReason,
    NoOutstandingFines,
    OverpaymentNotAllowed,
    UserNotFound,
    WaiverAmountExceedsFines,
    WaiverLimitExceeded,
)
from unilib.models.enums import BookCondition, FineStatus, PaymentMethod
from unilib.models.fine import Fine, FinePayment
from unilib.models.user import User
from unilib.repositories.fine import FineRepository
from unilib.services.fine import FineService
from unilib.services.fine_checks import FineChecks, month_bounds, validate_waiver_reason
from unilib.services.lending import LendingService

REASON = "Aluno comprovou internação hospitalar"


@pytest.fixture
def fined_user(db, clock, user_factory, book_factory):
    """
    Cria um usuário com uma multa por devolução, na ordem informada.

    `late_days` aplica atraso apenas na primeira devolução.
    """
    async def _create(*conditions, late_days: int = 0):
        user = await user_factory()
        lending = LendingService(db, clock=clock)
        transactions = []
        for _ in conditions:
            book = await book_factory()
            transactions.append(await lending.borrow(book.id, user.id))

        if late_days:
            clock.advance(days=14 + late_days)
        for transaction, condition in zip(transactions, conditions):
            await lending.return_book(transaction.id, condition=condition)
            clock.advance(hours=1)

        fines = await FineRepository(db).get_open_by_user(user.id)
        return user, fines

    return _create


# ==========================================
# Pay
# ==========================================

class TestPayFine:
    """Pagamento de multas."""

    @pytest.mark.anyio
    async def test_pay_without_fines(self, db, clock, user_factory):
        user = await user_factory()

        with pytest.raises(NoOutstandingFines):
            await FineService(db, clock=clock).pay_fine(user.id, Decimal("5"), PaymentMethod.CASH)

    @pytest.mark.anyio
    async def test_pay_unknown_user(self, db, clock):
        with pytest.raises(UserNotFound):
            await FineService(db, clock=clock).pay_fine(uuid.uuid4(), Decimal("5"), PaymentMethod.CASH)

    @pytest.mark.anyio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    async def test_pay_invalid_amount(self, db, clock, fined_user, amount):
        user, _ = await fined_user(BookCondition.FAIR)

        with pytest.raises(InvalidAmount):
            await FineService(db, clock=clock).pay_fine(user.id, amount, PaymentMethod.CASH)

    @pytest.mark.anyio
    async def test_overpayment_changes_nothing(self, db, clock, fetch, fined_user):
        user, fines = await fined_user(BookCondition.POOR, BookCondition.FAIR)
        fine_ids = [fine.id for fine in fines]

        with pytest.raises(OverpaymentNotAllowed) as exc_info:
            await FineService(db, clock=clock).pay_fine(user.id, Decimal("20.01"), PaymentMethod.CASH)

        assert exc_info.value.payload == {"balance": "20.00"}
        assert (await fetch(User, user.id)).fines == Decimal("20.00")
        for fine_id in fine_ids:
            assert (await fetch(Fine, fine_id)).status == FineStatus.OUTSTANDING

    @pytest.mark.anyio
    async def test_untargeted_payment_only_reduces_balance(self, db, clock, fetch, fined_user):
        """Pagamento avulso abate o saldo sem quitar nenhuma multa."""
        user, fines = await fined_user(BookCondition.POOR, BookCondition.FAIR)

        result = await FineService(db, clock=clock).pay_fine(
            user.id, Decimal("8"), PaymentMethod.CASH, notes="balcão",
        )

        assert result.remaining == Decimal("12.00")
        assert result.paid_fines == []
        assert result.receipt.amount == Decimal("8.00")
        assert result.receipt.payment_method == PaymentMethod.CASH
        assert result.receipt.fines == []
        assert re.fullmatch(r"RCP-\d{14}-[0-9A-F]{8}", result.receipt.receipt_number)

        assert (await fetch(User, user.id)).fines == Decimal("12.00")
        for fine in fines:
            assert (await fetch(Fine, fine.id)).status == FineStatus.OUTSTANDING

    @pytest.mark.anyio
    async def test_targeted_payment_settles_fines(self, db, clock, fetch, fined_user):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)
        poor = next(f for f in fines if f.amount == Decimal("15.00"))

        result = await FineService(db, clock=clock).pay_fine(
            user.id, Decimal("15"), PaymentMethod.DEBIT_CARD, fine_ids=[poor.id],
        )

        assert result.remaining == Decimal("5.00")
        assert [f.id for f in result.paid_fines] == [poor.id]
        assert [f.id for f in result.receipt.fines] == [poor.id]

        stored = await fetch(Fine, poor.id)
        assert stored.status == FineStatus.PAID
        assert stored.paid_date == clock.now
        assert stored.payment_method == PaymentMethod.DEBIT_CARD

    @pytest.mark.anyio
    async def test_targeted_payment_must_cover_selected_fines(self, db, clock, fetch, fined_user):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)
        poor_id = next(f.id for f in fines if f.amount == Decimal("15.00"))
        user_id = user.id

        with pytest.raises(InsufficientPayment):
            await FineService(db, clock=clock).pay_fine(
                user_id, Decimal("10"), PaymentMethod.CASH, fine_ids=[poor_id],
            )

        assert (await fetch(Fine, poor_id)).status == FineStatus.OUTSTANDING
        assert (await fetch(User, user_id)).fines == Decimal("20.00")

    @pytest.mark.anyio
    async def test_targeted_payment_with_foreign_fine(self, db, clock, fined_user):
        user, _ = await fined_user(BookCondition.FAIR)
        _, other_fines = await fined_user(BookCondition.POOR)
        foreign_id = other_fines[0].id

        with pytest.raises(FineNotFound) as exc_info:
            await FineService(db, clock=clock).pay_fine(
                user.id, Decimal("5"), PaymentMethod.CASH, fine_ids=[foreign_id],
            )

        assert exc_info.value.payload == {"fine_ids": [str(foreign_id)]}

    @pytest.mark.anyio
    async def test_payment_receipts_are_listed(self, db, clock, fined_user):
        user, _ = await fined_user(BookCondition.POOR)
        service = FineService(db, clock=clock)
        await service.pay_fine(user.id, Decimal("5"), PaymentMethod.CASH)
        await service.pay_fine(user.id, Decimal("10"), PaymentMethod.ONLINE)

        payments, total = await service.list_payments(user_id=user.id)

        assert total == 2
        assert {p.amount for p in payments} == {Decimal("5.00"), Decimal("10.00")}
        assert all(isinstance(p, FinePayment) for p in payments)


# ==========================================
# Waive
# ==========================================

class TestWaiverReason:
    """Validação do motivo do perdão."""

    @pytest.mark.parametrize(
        "reason",
        [None, "", "          ", "curto", "placeholder", "..........", "aaaa aaaa aaaa"],
    )
    def test_rejects_placeholder_reasons(self, reason):
        with pytest.raises(InvalidWaiverReason):
            validate_waiver_reason(reason)

    def test_accepts_and_strips_reason(self):
        assert validate_waiver_reason(f"  {REASON}  ") == REASON


class TestWaiveFine:
    """Perdão de multas por staff."""

    @pytest.mark.anyio
    async def test_invalid_reason_is_checked_first(self, db, clock):
        """Motivo inválido falha antes mesmo de buscar o usuário."""
        with pytest.raises(InvalidWaiverReason):
            await FineService(db, clock=clock).waive_fine(uuid.uuid4(), "test", uuid.uuid4())

    @pytest.mark.anyio
    async def test_waive_unknown_user(self, db, clock):
        with pytest.raises(UserNotFound):
            await FineService(db, clock=clock).waive_fine(uuid.uuid4(), REASON, uuid.uuid4())

    @pytest.mark.anyio
    async def test_waive_without_fines(self, db, clock, user_factory, librarian):
        user = await user_factory()

        with pytest.raises(NoOutstandingFines):
            await FineService(db, clock=clock).waive_fine(user.id, REASON, librarian.id)

    @pytest.mark.anyio
    async def test_partial_waiver_splits_single_fine(
        self, db, clock, fetch, fined_user, librarian,
    ):
        """Multa de 20, perdão de 8: 8 perdoado e 12 em aberto."""
        user, fines = await fined_user(None, late_days=7)
        assert [f.amount for f in fines] == [Decimal("20.00")]

        result = await FineService(db, clock=clock).waive_fine(
            user.id, REASON, librarian.id, amount=Decimal("8"),
        )

        assert result.amount_waived == Decimal("8.00")
        assert result.remaining == Decimal("12.00")
        assert [(f.amount, f.status) for f in result.waived_fines] == [
            (Decimal("8.00"), FineStatus.WAIVED),
        ]

        open_fines = await FineRepository(db).get_open_by_user(user.id)
        assert [f.amount for f in open_fines] == [Decimal("12.00")]
        assert open_fines[0].transaction_id == fines[0].transaction_id
        assert open_fines[0].due_date == fines[0].due_date
        assert (await fetch(User, user.id)).fines == Decimal("12.00")

    @pytest.mark.anyio
    async def test_partial_waiver_consumes_oldest_first(self, db, clock, fetch, fined_user, librarian):
        """Multas [5, 15], perdão de 8: a de 5 inteira e 3 da de 15."""
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)
        fair, poor = fines

        result = await FineService(db, clock=clock).waive_fine(
            user.id, REASON, librarian.id, amount=Decimal("8"),
        )

        assert result.amount_waived == Decimal("8.00")
        assert result.remaining == Decimal("12.00")
        assert [(f.id, f.amount) for f in result.waived_fines] == [
            (fair.id, Decimal("5.00")),
            (poor.id, Decimal("3.00")),
        ]

        open_fines = await FineRepository(db).get_open_by_user(user.id)
        assert [f.amount for f in open_fines] == [Decimal("12.00")]
        assert sum(f.amount for f in open_fines) == (await fetch(User, user.id)).fines

    @pytest.mark.anyio
    async def test_waive_selected_fines(self, db, clock, fetch, fined_user, librarian):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)
        poor = fines[1]

        result = await FineService(db, clock=clock).waive_fine(
            user.id, REASON, librarian.id, fine_ids=[poor.id],
        )

        assert result.amount_waived == Decimal("15.00")
        assert result.remaining == Decimal("5.00")

        stored = await fetch(Fine, poor.id)
        assert stored.status == FineStatus.WAIVED
        assert stored.waived_by == librarian.id
        assert stored.waived_reason == REASON
        assert stored.waived_at == clock.now
        assert (await fetch(Fine, fines[0].id)).status == FineStatus.OUTSTANDING

    @pytest.mark.anyio
    async def test_waive_everything(self, db, clock, fetch, fined_user, librarian):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)

        result = await FineService(db, clock=clock).waive_fine(user.id, REASON, librarian.id)

        assert result.amount_waived == Decimal("20.00")
        assert result.remaining == Decimal("0.00")
        assert len(result.waived_fines) == 2
        assert (await fetch(User, user.id)).fines == Decimal("0.00")

    @pytest.mark.anyio
    async def test_waiver_amount_above_open_fines(self, db, clock, fetch, fined_user, librarian):
        user, _ = await fined_user(BookCondition.FAIR, BookCondition.POOR)

        with pytest.raises(WaiverAmountExceedsFines):
            await FineService(db, clock=clock).waive_fine(
                user.id, REASON, librarian.id, amount=Decimal("25"),
            )

        assert (await fetch(User, user.id)).fines == Decimal("20.00")

    @pytest.mark.anyio
    async def test_waiver_amount_limited_by_balance_after_payment(
        self, db, clock, fetch, fined_user, librarian,
    ):
        """Multa de 30 com pagamento avulso de 20: só os 10 do saldo podem ser perdoados."""
        user, _ = await fined_user(BookCondition.DAMAGED)
        service = FineService(db, clock=clock)
        await service.pay_fine(user.id, Decimal("20"), PaymentMethod.CASH)

        with pytest.raises(WaiverAmountExceedsFines) as exc_info:
            await service.waive_fine(user.id, REASON, librarian.id, amount=Decimal("25"))

        assert exc_info.value.payload == {"available": "10.00"}
        assert (await fetch(User, user.id)).fines == Decimal("10.00")

        result = await service.waive_fine(user.id, REASON, librarian.id, amount=Decimal("10"))
        assert result.amount_waived == Decimal("10.00")
        assert result.remaining == Decimal("0.00")

    @pytest.mark.anyio
    async def test_waiver_amount_must_be_positive(self, db, clock, fined_user, librarian):
        user, _ = await fined_user(BookCondition.FAIR)

        with pytest.raises(InvalidAmount):
            await FineService(db, clock=clock).waive_fine(
                user.id, REASON, librarian.id, amount=Decimal("0"),
            )

    @pytest.mark.anyio
    async def test_waive_foreign_fine(self, db, clock, fined_user, librarian):
        user, _ = await fined_user(BookCondition.FAIR)
        _, other_fines = await fined_user(BookCondition.POOR)

        with pytest.raises(FineNotFound):
            await FineService(db, clock=clock).waive_fine(
                user.id, REASON, librarian.id, fine_ids=[other_fines[0].id],
            )

    @pytest.mark.anyio
    async def test_monthly_waiver_limit(self, db, clock, fetch, fined_user, librarian):
        """Quarto perdão no mês é recusado; no mês seguinte volta a ser aceito."""
        user, fines = await fined_user(
            BookCondition.FAIR, BookCondition.FAIR, BookCondition.POOR, BookCondition.DAMAGED,
        )
        fine_ids = [fine.id for fine in fines]
        user_id, librarian_id = user.id, librarian.id
        service = FineService(db, clock=clock)
        for fine_id in fine_ids[:3]:
            await service.waive_fine(user_id, REASON, librarian_id, fine_ids=[fine_id])

        with pytest.raises(WaiverLimitExceeded) as exc_info:
            await service.waive_fine(user_id, REASON, librarian_id, fine_ids=[fine_ids[3]])
        assert exc_info.value.limit == 3
        assert (await fetch(Fine, fine_ids[3])).status == FineStatus.OUTSTANDING

        clock.advance(days=25)
        result = await service.waive_fine(user_id, REASON, librarian_id, fine_ids=[fine_ids[3]])
        assert result.remaining == Decimal("0.00")

    @pytest.mark.anyio
    async def test_failure_mid_waiver_rolls_back(self, db, clock, fetch, fined_user, librarian):
        """Erro de banco no meio do perdão não deixa escrita parcial."""
        user, fines = await fined_user(None, late_days=7)
        fine_id, user_id = fines[0].id, user.id
        service = FineService(db, clock=clock)

        with patch.object(service.fine_repo, "add", side_effect=SQLAlchemyError("conexão perdida")):
            with pytest.raises(InternalError):
                await service.waive_fine(user_id, REASON, librarian.id, amount=Decimal("8"))

        stored = await fetch(Fine, fine_id)
        assert stored.status == FineStatus.OUTSTANDING
        assert stored.amount == Decimal("20.00")
        assert (await fetch(User, user_id)).fines == Decimal("20.00")


# ==========================================
# Checks
# ==========================================

class TestFineChecks:
    """Verificações somente leitura."""

    def test_month_bounds(self):
        assert month_bounds(datetime(2026, 3, 10, 12, 30)) == (
            datetime(2026, 3, 1), datetime(2026, 4, 1),
        )

    def test_month_bounds_december(self):
        assert month_bounds(datetime(2026, 12, 31, 23, 59)) == (
            datetime(2026, 12, 1), datetime(2027, 1, 1),
        )

    @pytest.mark.anyio
    async def test_total_outstanding_and_waiver_count(self, db, clock, fined_user, librarian):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR)
        await FineService(db, clock=clock).waive_fine(
            user.id, REASON, librarian.id, fine_ids=[fines[0].id],
        )

        checks = FineChecks(db, waiver_limit=3)
        assert await checks.total_outstanding(user.id) == Decimal("15.00")
        assert await checks.monthly_waiver_count(user.id, clock.now) == 1
        assert await checks.monthly_waiver_count(user.id, clock.now + timedelta(days=31)) == 0

    @pytest.mark.anyio
    async def test_return_waiver_counts_towards_limit(self, db, clock, user_factory, book_factory):
        """O perdão concedido na devolução também entra na contagem do mês."""
        user = await user_factory()
        lending = LendingService(db, clock=clock)
        transaction = await lending.borrow((await book_factory()).id, user.id)
        clock.advance(days=21)
        await lending.return_book(transaction.id, waive_fine=True)

        checks = FineChecks(db, waiver_limit=3)
        assert await checks.monthly_waiver_count(user.id, clock.now) == 1


# ==========================================
# Overdue / Report
# ==========================================

class TestOverdueFines:
    """Multas não pagas dentro do prazo."""

    @pytest.mark.anyio
    async def test_marks_unpaid_fines_overdue(self, db, clock, fetch, fined_user):
        user, fines = await fined_user(BookCondition.FAIR)
        service = FineService(db, clock=clock)

        assert await service.mark_overdue_fines() == 0

        clock.advance(days=31)
        assert await service.mark_overdue_fines() == 1

        assert (await fetch(Fine, fines[0].id)).status == FineStatus.OVERDUE
        # Multa vencida continua no saldo e pode ser paga
        result = await service.pay_fine(user.id, Decimal("5"), PaymentMethod.CASH, fine_ids=[fines[0].id])
        assert result.remaining == Decimal("0.00")


class TestFineReport:
    """Relatório por status."""

    @pytest.mark.anyio
    async def test_report_groups_by_status(self, db, clock, fined_user, librarian):
        user, fines = await fined_user(BookCondition.FAIR, BookCondition.POOR, BookCondition.DAMAGED)
        service = FineService(db, clock=clock)
        await service.pay_fine(user.id, Decimal("5"), PaymentMethod.CASH, fine_ids=[fines[0].id])
        await service.waive_fine(user.id, REASON, librarian.id, fine_ids=[fines[1].id])

        now = utcnow()
        report = await service.generate_report(now - timedelta(days=1), now + timedelta(days=1))

        by_status = {s.status: s for s in report.by_status}
        assert set(by_status) == set(FineStatus)
        assert report.total_count == 3
        assert report.total_amount == Decimal("50.00")
        assert (by_status[FineStatus.PAID].count, by_status[FineStatus.PAID].amount) == (1, Decimal("5.00"))
        assert by_status[FineStatus.WAIVED].amount == Decimal("15.00")
        assert by_status[FineStatus.OUTSTANDING].amount == Decimal("30.00")
        assert by_status[FineStatus.OVERDUE].count == 0

    @pytest.mark.anyio
    async def test_report_outside_range_is_empty(self, db, clock, fined_user):
        await fined_user(BookCondition.FAIR)
        now = utcnow()

        report = await FineService(db, clock=clock).generate_report(
            now - timedelta(days=30), now - timedelta(days=29),
        )

        assert report.total_count == 0
        assert report.total_amount == Decimal("0")
