"""Per-user balance ledger.

``BalanceStore`` is the collaborator interface the cost gate talks to;
``InMemoryBalanceStore`` is a thread-safe implementation suitable for tests,
the CLI and single-process deployments.  Every mutation is a single
read-check-write under the store lock, so two concurrent analyses for the
same user can never both spend the same funds.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from impact_analysis.domain.exceptions import InsufficientBalance
from impact_analysis.domain.values import BalanceTransaction

logger = logging.getLogger(__name__)


class BalanceStore(ABC):
    """Atomic per-user balance operations."""

    @abstractmethod
    def get_balance(self, user_id: str) -> float:
        """Current balance for *user_id* (new users receive the initial credit)."""
        ...

    @abstractmethod
    def debit(
        self,
        user_id: str,
        amount: float,
        *,
        description: str = "",
        reference_id: str | None = None,
        conditional: bool = True,
    ) -> float:
        """Subtract *amount* and return the new balance.

        With ``conditional=True`` the debit is refused with
        :class:`InsufficientBalance` when the balance cannot cover it.
        """
        ...

    @abstractmethod
    def credit(
        self,
        user_id: str,
        amount: float,
        *,
        description: str = "",
        reference_id: str | None = None,
    ) -> float:
        """Add *amount* and return the new balance."""
        ...

    @abstractmethod
    def transactions(self, user_id: str) -> list[BalanceTransaction]:
        """All transactions for *user_id*, oldest first."""
        ...


class InMemoryBalanceStore(BalanceStore):
    """Thread-safe in-memory balance store.

    Parameters
    ----------
    initial_credit:
        Balance granted the first time a user is seen.
    balances:
        Optional starting balances keyed by user id.
    """

    def __init__(
        self,
        initial_credit: float = 10.0,
        balances: dict[str, float] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._initial_credit = initial_credit
        self._balances: dict[str, float] = dict(balances or {})
        self._transactions: list[BalanceTransaction] = []

    def _ensure_user(self, user_id: str) -> float:
        # Caller holds the lock.
        if user_id not in self._balances:
            self._balances[user_id] = self._initial_credit
            logger.info(
                "InMemoryBalanceStore: created %s with %.2f credit",
                user_id,
                self._initial_credit,
            )
        return self._balances[user_id]

    def get_balance(self, user_id: str) -> float:
        with self._lock:
            return self._ensure_user(user_id)

    def debit(
        self,
        user_id: str,
        amount: float,
        *,
        description: str = "LLM usage cost",
        reference_id: str | None = None,
        conditional: bool = True,
    ) -> float:
        if amount < 0:
            raise ValueError(f"debit amount must be >= 0, got {amount}")
        with self._lock:
            before = self._ensure_user(user_id)
            if conditional and before < amount:
                raise InsufficientBalance(
                    f"Balance {before:.6f} cannot cover {amount:.6f}",
                    user_id=user_id,
                    balance=before,
                    required=amount,
                )
            after = before - amount
            self._balances[user_id] = after
            self._transactions.append(
                BalanceTransaction(
                    user_id=user_id,
                    amount=-amount,
                    balance_before=before,
                    balance_after=after,
                    transaction_type="debit",
                    description=description,
                    reference_id=reference_id,
                )
            )
            return after

    def credit(
        self,
        user_id: str,
        amount: float,
        *,
        description: str = "Credit added to account",
        reference_id: str | None = None,
    ) -> float:
        if amount < 0:
            raise ValueError(f"credit amount must be >= 0, got {amount}")
        with self._lock:
            before = self._ensure_user(user_id)
            after = before + amount
            self._balances[user_id] = after
            self._transactions.append(
                BalanceTransaction(
                    user_id=user_id,
                    amount=amount,
                    balance_before=before,
                    balance_after=after,
                    transaction_type="credit",
                    description=description,
                    reference_id=reference_id,
                )
            )
            return after

    def transactions(self, user_id: str) -> list[BalanceTransaction]:
        with self._lock:
            return [t for t in self._transactions if t.user_id == user_id]
