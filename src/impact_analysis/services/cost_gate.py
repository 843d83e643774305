"""Pre-flight balance hold and post-run settlement.

The gate holds the estimated cost up front with a single conditional debit,
so two concurrent analyses for the same user cannot both pass a balance
check they could not jointly afford.  After the run the hold is settled
against the real usage: the unused part is refunded, or the overrun is
debited unconditionally since the provider has already been paid.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from impact_analysis.domain.values import UsageRecord
from impact_analysis.infrastructure.balance_store import BalanceStore
from impact_analysis.infrastructure.usage_sink import UsageSink
from impact_analysis.services.usage import total_cost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Funds held for one analysis."""

    user_id: str
    amount: float
    reference_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class CostGate:
    """Balance check, hold and settlement around one analysis.

    Parameters
    ----------
    balance_store:
        Atomic per-user balance.
    usage_sink:
        Long-term sink that receives every record at settlement.
    """

    def __init__(self, balance_store: BalanceStore, usage_sink: UsageSink | None = None) -> None:
        self._balances = balance_store
        self._usage_sink = usage_sink

    @property
    def balance_store(self) -> BalanceStore:
        return self._balances

    def has_sufficient_balance(self, user_id: str, estimated_cost: float) -> bool:
        """Advisory check; only :meth:`reserve` is authoritative."""
        return self._balances.get_balance(user_id) >= estimated_cost

    def reserve(self, user_id: str, estimated_cost: float) -> Reservation:
        """Hold *estimated_cost* from the user's balance.

        Raises
        ------
        InsufficientBalance
            If the balance cannot cover the estimate.
        """
        reservation = Reservation(user_id=user_id, amount=estimated_cost)
        self._balances.debit(
            user_id,
            estimated_cost,
            description="Estimated analysis cost (hold)",
            reference_id=reservation.reference_id,
            conditional=True,
        )
        logger.info("Reserved %.4f for %s (%s)", estimated_cost, user_id, reservation.reference_id)
        return reservation

    def settle(self, reservation: Reservation, records: Sequence[UsageRecord]) -> float:
        """Persist *records* and true the hold up to their real cost.

        Returns the user's balance after settlement.
        """
        if self._usage_sink is not None:
            for record in records:
                self._usage_sink.record(record)

        actual = total_cost(records)
        difference = reservation.amount - actual
        if difference > 0:
            balance = self._balances.credit(
                reservation.user_id,
                difference,
                description="Refund of unused analysis hold",
                reference_id=reservation.reference_id,
            )
        elif difference < 0:
            balance = self._balances.debit(
                reservation.user_id,
                -difference,
                description="Analysis cost above estimate",
                reference_id=reservation.reference_id,
                conditional=False,
            )
        else:
            balance = self._balances.get_balance(reservation.user_id)

        logger.info(
            "Settled %s: %d records, actual %.6f, held %.4f, balance %.6f",
            reservation.reference_id,
            len(records),
            actual,
            reservation.amount,
            balance,
        )
        return balance
