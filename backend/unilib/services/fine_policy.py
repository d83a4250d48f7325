"""
Política de multas da devolução.

Funções puras: não acessam banco nem relógio. O motor de empréstimos
recebe uma instância de `FinePolicy` por injeção, o que permite testar
a regra com valores próprios.

Regra de atraso:
    dias = ceil((devolução - prazo) / 1 dia)
    dias <= carência            -> 0
    efetivos = dias - carência
    multa = min(efetivos * taxa, efetivos * teto_diário), limitada a max_fine

Regra de dano: valor fixo por estado do livro, somado à multa de atraso.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional

from unilib.core.clock import as_naive_utc
from unilib.core.config import Settings, get_settings
from unilib.models.enums import BookCondition

CENTS = Decimal("0.01")

DEFAULT_DAMAGE_FEES: Mapping[BookCondition, Decimal] = MappingProxyType({
    BookCondition.EXCELLENT: Decimal("0"),
    BookCondition.GOOD: Decimal("0"),
    BookCondition.FAIR: Decimal("5"),
    BookCondition.POOR: Decimal("15"),
    BookCondition.DAMAGED: Decimal("30"),
    BookCondition.LOST: Decimal("50"),
})


@dataclass(frozen=True)
class FineBreakdown:
    """Composição da multa calculada na devolução."""
    days_overdue: int
    late_fine: Decimal
    damage_fine: Decimal

    @property
    def total(self) -> Decimal:
        return (self.late_fine + self.damage_fine).quantize(CENTS)

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0


@dataclass(frozen=True)
class FinePolicy:
    """
    Parâmetros da política de multas.

    Attributes:
        rate_per_day: Valor por dia efetivo de atraso
        daily_cap: Teto por dia efetivo de atraso
        max_fine: Teto da multa de atraso
        grace_period_days: Dias de atraso sem multa
        payment_days: Prazo para pagamento da multa
        damage_fees: Valor por estado do livro
    """
    rate_per_day: Decimal = Decimal("5")
    daily_cap: Decimal = Decimal("10")
    max_fine: Decimal = Decimal("50")
    grace_period_days: int = 3
    payment_days: int = 30
    damage_fees: Mapping[BookCondition, Decimal] = field(
        default_factory=lambda: DEFAULT_DAMAGE_FEES
    )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FinePolicy":
        """Monta a política a partir das variáveis FINE_* do ambiente."""
        settings = settings or get_settings()
        return cls(
            rate_per_day=settings.FINE_RATE_PER_DAY,
            daily_cap=settings.FINE_DAILY_CAP,
            max_fine=settings.FINE_MAX,
            grace_period_days=settings.FINE_GRACE_PERIOD_DAYS,
            payment_days=settings.FINE_PAYMENT_DAYS,
        )

    def days_overdue(self, due_date: datetime, returned_at: datetime) -> int:
        """Dias de atraso, arredondados para cima; 0 se devolvido no prazo."""
        delta = as_naive_utc(returned_at) - as_naive_utc(due_date)
        if delta <= timedelta(0):
            return 0
        return math.ceil(delta / timedelta(days=1))

    def late_fine(self, days_overdue: int) -> Decimal:
        """Multa de atraso para a quantidade de dias informada."""
        if days_overdue <= self.grace_period_days:
            return Decimal("0.00")
        effective = Decimal(days_overdue - self.grace_period_days)
        fine = min(effective * self.rate_per_day, effective * self.daily_cap)
        return min(fine, self.max_fine).quantize(CENTS)

    def damage_fine(self, condition: Optional[BookCondition]) -> Decimal:
        """Multa por dano; sem estado informado não há cobrança."""
        if condition is None:
            return Decimal("0.00")
        return self.damage_fees.get(condition, Decimal("0")).quantize(CENTS)

    def assess(
        self,
        due_date: datetime,
        returned_at: datetime,
        condition: Optional[BookCondition] = None,
    ) -> FineBreakdown:
        """Calcula a multa completa de uma devolução."""
        days = self.days_overdue(due_date, returned_at)
        return FineBreakdown(
            days_overdue=days,
            late_fine=self.late_fine(days),
            damage_fine=self.damage_fine(condition),
        )

    def fine_due_date(self, assessed_at: datetime) -> datetime:
        """Prazo de pagamento de uma multa gerada em `assessed_at`."""
        return as_naive_utc(assessed_at) + timedelta(days=self.payment_days)
