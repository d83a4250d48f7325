"""
Service do livro-razão de multas: pagamento, perdão e relatórios.

Regras de negócio:
    - Pagamento nunca excede o saldo do usuário
    - Pagamento com multas indicadas quita essas multas; pagamento avulso
      apenas abate o saldo, sem mudar o status de nenhuma multa
    - Perdão exige motivo real e respeita WAIVER_LIMIT_PER_MONTH
    - Perdão parcial consome as multas mais antigas primeiro e divide a
      multa que ficar parcialmente coberta
"""

import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unilib.core.clock import utcnow
from unilib.core.config import Settings, get_settings
from unilib.core.exceptions import (
    InsufficientPayment,
    InvalidAmount,
    NoOutstandingFines,
    OverpaymentNotAllowed,
    UserNotFound,
)
from unilib.db.session import unit_of_work
from unilib.models.enums import FineStatus, PaymentMethod
from unilib.models.fine import Fine, FinePayment
from unilib.repositories.fine import FinePaymentRepository, FineRepository
from unilib.repositories.user import UserRepository
from unilib.schemas.fine import (
    FinePaymentRead,
    FineRead,
    FineReport,
    FineStatusSummary,
    PaymentResult,
    WaiverResult,
)
from unilib.services.fine_checks import FineChecks, validate_waiver_reason
from unilib.services.fine_policy import CENTS

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def generate_receipt_number(now: datetime) -> str:
    """Número de recibo no formato RCP-<yyyymmddHHMMSS>-<hex>."""
    return f"RCP-{now:%Y%m%d%H%M%S}-{secrets.token_hex(4).upper()}"


class FineService:
    """Service para operações sobre multas."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.user_repo = UserRepository(db)
        self.fine_repo = FineRepository(db)
        self.payment_repo = FinePaymentRepository(db)
        self.checks = FineChecks(db, waiver_limit=self.settings.WAIVER_LIMIT_PER_MONTH)

    # ==========================================
    # Pay
    # ==========================================

    async def pay_fine(
        self,
        user_id: UUID,
        amount: Decimal,
        payment_method: PaymentMethod,
        fine_ids: Optional[list[UUID]] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """
        Registra pagamento de multas.

        Fluxo:
            1. Valida saldo e valor (0 < valor <= saldo)
            2. Com fine_ids: valida as multas e exige valor >= soma delas
            3. Marca as multas indicadas como pagas
            4. Abate o valor de user.fines (mínimo 0)
            5. Emite um recibo (FinePayment)

        Args:
            user_id: Usuário que está pagando
            amount: Valor pago
            payment_method: Forma de pagamento
            fine_ids: Multas a quitar (opcional)
            notes: Observações do recibo

        Returns:
            PaymentResult com saldo restante, multas quitadas e recibo

        Raises:
            UserNotFound, NoOutstandingFines, InvalidAmount,
            OverpaymentNotAllowed, FineNotFound, InsufficientPayment
        """
        now = self.clock()
        amount = Decimal(amount).quantize(CENTS)

        async with unit_of_work(self.db):
            user = await self.user_repo.get_for_update(user_id)
            if user is None:
                raise UserNotFound()
            if user.fines <= 0:
                raise NoOutstandingFines()
            if amount <= 0:
                raise InvalidAmount()
            if amount > user.fines:
                raise OverpaymentNotAllowed(payload={"balance": str(user.fines)})

            paid_fines: list[Fine] = []
            if fine_ids:
                paid_fines = await self.checks.owned_open_fines(user.id, fine_ids)
                targeted = sum((fine.amount for fine in paid_fines), ZERO)
                if amount < targeted:
                    raise InsufficientPayment(payload={"required": str(targeted)})

                for fine in paid_fines:
                    fine.status = FineStatus.PAID
                    fine.paid_date = now
                    fine.payment_method = payment_method
                    fine.payment_notes = notes

            user.fines = max(user.fines - amount, ZERO).quantize(CENTS)
            remaining = user.fines

            receipt = FinePayment(
                receipt_number=generate_receipt_number(now),
                user_id=user.id,
                amount=amount,
                payment_method=payment_method,
                notes=notes,
                fines=paid_fines,
            )
            self.db.add(receipt)

        await self.db.refresh(receipt)
        for fine in paid_fines:
            await self.db.refresh(fine)

        logger.info(
            f"Pagamento {receipt.receipt_number}: usuário {user_id} pagou R$ {amount:.2f} "
            f"({payment_method.value}), {len(paid_fines)} multa(s) quitada(s), "
            f"saldo restante R$ {remaining:.2f}"
        )

        return PaymentResult(
            remaining=remaining,
            paid_fines=[FineRead.model_validate(fine) for fine in paid_fines],
            receipt=FinePaymentRead.model_validate(receipt),
        )

    # ==========================================
    # Waive
    # ==========================================

    async def waive_fine(
        self,
        user_id: UUID,
        reason: str,
        admin_id: UUID,
        amount: Optional[Decimal] = None,
        fine_ids: Optional[list[UUID]] = None,
    ) -> WaiverResult:
        """
        Perdoa multas de um usuário (staff).

        Modos:
            - fine_ids: cada multa indicada é perdoada integralmente
            - amount: multas mais antigas primeiro; a multa parcialmente
              coberta é dividida em uma parte perdoada e um restante em aberto
            - nenhum dos dois: todas as multas em aberto são perdoadas

        Args:
            user_id: Usuário multado
            reason: Motivo do perdão (obrigatório, não trivial)
            admin_id: Staff que concedeu o perdão
            amount: Valor a perdoar (opcional)
            fine_ids: Multas a perdoar (opcional)

        Returns:
            WaiverResult com valor perdoado, multas perdoadas e saldo restante

        Raises:
            InvalidWaiverReason, UserNotFound, NoOutstandingFines,
            WaiverLimitExceeded, FineNotFound, WaiverAmountExceedsFines,
            InvalidAmount
        """
        now = self.clock()
        reason = validate_waiver_reason(reason)
        if amount is not None:
            amount = Decimal(amount).quantize(CENTS)

        async with unit_of_work(self.db):
            user = await self.user_repo.get_for_update(user_id)
            if user is None:
                raise UserNotFound()

            candidates = await self.checks.validate_waiver_eligibility(
                user, now, amount=amount, fine_ids=fine_ids,
            )

            if amount is not None and not fine_ids:
                if amount <= 0:
                    raise InvalidAmount()
                waived_fines = await self._waive_oldest_first(candidates, amount, reason, admin_id, now)
            else:
                waived_fines = candidates
                for fine in waived_fines:
                    self._mark_waived(fine, reason, admin_id, now)

            total_waived = sum((fine.amount for fine in waived_fines), ZERO).quantize(CENTS)
            user.fines = max(user.fines - total_waived, ZERO).quantize(CENTS)
            remaining = user.fines

        for fine in waived_fines:
            await self.db.refresh(fine)

        logger.info(
            f"Perdão de R$ {total_waived:.2f} para usuário {user_id} por {admin_id}: "
            f"{len(waived_fines)} multa(s). Motivo: {reason}"
        )

        return WaiverResult(
            amount_waived=total_waived,
            waived_fines=[FineRead.model_validate(fine) for fine in waived_fines],
            remaining=remaining,
        )

    @staticmethod
    def _mark_waived(fine: Fine, reason: str, admin_id: UUID, now: datetime) -> None:
        fine.status = FineStatus.WAIVED
        fine.waived_by = admin_id
        fine.waived_reason = reason
        fine.waived_at = now

    async def _waive_oldest_first(
        self,
        fines: list[Fine],
        amount: Decimal,
        reason: str,
        admin_id: UUID,
        now: datetime,
    ) -> list[Fine]:
        """
        Consome `amount` sobre as multas, da mais antiga para a mais nova.

        Quando o valor restante não cobre uma multa inteira, cria-se uma
        nova multa em aberto com a diferença e a original fica apenas com
        a parte perdoada. A soma em aberto muda exatamente em `amount`.
        """
        budget = amount
        waived: list[Fine] = []

        for fine in sorted(fines, key=lambda f: f.due_date):
            if budget <= 0:
                break

            if fine.amount > budget:
                remainder = (fine.amount - budget).quantize(CENTS)
                await self.fine_repo.add(
                    user_id=fine.user_id,
                    transaction_id=fine.transaction_id,
                    amount=remainder,
                    reason=fine.reason,
                    status=FineStatus.OUTSTANDING,
                    due_date=fine.due_date,
                )
                fine.amount = budget
                logger.debug(f"Multa {fine.id} dividida: {budget:.2f} perdoado, {remainder:.2f} em aberto")

            self._mark_waived(fine, reason, admin_id, now)
            budget = (budget - fine.amount).quantize(CENTS)
            waived.append(fine)

        return waived

    # ==========================================
    # Overdue / Report
    # ==========================================

    async def mark_overdue_fines(self) -> int:
        """
        Marca como OVERDUE as multas outstanding com prazo de pagamento vencido.

        Multas OVERDUE continuam compondo o saldo do usuário.
        """
        now = self.clock()
        async with unit_of_work(self.db):
            count = await self.fine_repo.mark_past_due_overdue(now)

        if count:
            logger.info(f"{count} multa(s) marcadas como vencidas")
        return count

    async def generate_report(self, start: datetime, end: datetime) -> FineReport:
        """Totais por status das multas criadas em [start, end)."""
        rows = await self.fine_repo.summarize_between(start, end)
        by_status = {status: (count, total) for status, count, total in rows}

        summaries = [
            FineStatusSummary(
                status=status,
                count=by_status.get(status, (0, ZERO))[0],
                amount=by_status.get(status, (0, ZERO))[1],
            )
            for status in FineStatus
        ]
        return FineReport(
            start=start,
            end=end,
            total_count=sum(s.count for s in summaries),
            total_amount=sum((s.amount for s in summaries), ZERO),
            by_status=summaries,
        )

    # ==========================================
    # List
    # ==========================================

    async def list_fines(
        self,
        user_id: UUID | None = None,
        status: FineStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Fine], int]:
        """Lista multas com filtros e paginação."""
        return await self.fine_repo.list_by_user(
            user_id=user_id,
            status=status,
            page=page,
            page_size=page_size,
        )

    async def list_payments(
        self,
        user_id: UUID | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[FinePayment], int]:
        """Lista recibos de pagamento."""
        return await self.payment_repo.list_by_user(
            user_id=user_id,
            page=page,
            page_size=page_size,
        )
