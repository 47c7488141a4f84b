"""
Vesting schedule for migrated balances.

Every beneficiary has one allocation. Its clock starts with the first deposit; later
deposits join the same curve. Nothing unlocks before the cliff. After the cliff,
``unlock_percent`` of the principal unlocks per elapsed ``unlock_interval``. The first
claim counts intervals from ``start + cliff - interval``, so the cliff itself pays one
interval. Later claims count from the previous claim, and whatever was already claimed
is subtracted from the ladder amount, so each further payout needs one more elapsed
interval than the last.

The locked remainder earns simple interest at ``annual_interest_percent`` until
``reward_expiry``. Interest is minted fresh on claim and shares the cliff gate with
principal.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from tokenmigration.core import metrics
from tokenmigration.core.atomic import atomic_operation, guarded_call
from tokenmigration.core.config import SECONDS_PER_YEAR, VestingConfig
from tokenmigration.core.exceptions import NoUnlockedTokens, ZeroAmount
from tokenmigration.core.protocols import AccessGate, Snapshottable
from tokenmigration.security.access_gate import DEPOSITOR_ROLE, require_role

logger = logging.getLogger("tokenmigration.vesting.schedule")


@dataclass
class VestingAllocation:
    principal: int
    start_vesting: int
    last_claim: int
    claimed_amount: int = 0

    @property
    def locked(self) -> int:
        return self.principal - self.claimed_amount


@dataclass(frozen=True)
class ClaimResult:
    beneficiary: str
    unlocked: int
    reward: int
    timestamp: int


class VestingSchedule:
    def __init__(
        self,
        address: str,
        token: Any,
        access_gate: Any,
        config: VestingConfig,
        time_provider: Callable[[], int] | None = None,
        lock: Any = None,
    ):
        if not address:
            raise ValueError("Vesting address cannot be empty.")
        self.address = address
        self.token = token
        self.access_gate: AccessGate = access_gate
        self.cliff_period = config.cliff_period
        self.unlock_interval = config.unlock_interval
        self.unlock_percent = config.unlock_percent
        self.annual_interest_percent = config.annual_interest_percent
        self.reward_expiry = config.reward_expiry
        self._time_provider = time_provider or (lambda: int(time.time()))
        self.lock = lock or threading.RLock()
        self.allocations: Dict[str, VestingAllocation] = {}
        logger.info(
            "VestingSchedule initialized: cliff %ss, interval %ss, %s%% per interval, %s%% APR",
            self.cliff_period,
            self.unlock_interval,
            self.unlock_percent,
            self.annual_interest_percent,
        )

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    @require_role(DEPOSITOR_ROLE)
    def allocate(self, caller: str, beneficiary: str, amount: int) -> VestingAllocation:
        """Mint ``amount`` into custody and add it to ``beneficiary``'s principal."""
        if not beneficiary:
            raise ValueError("Beneficiary cannot be empty.")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise ValueError("Allocation amount must be a non-negative integer.")
        if amount == 0:
            raise ZeroAmount("Allocation amount must be greater than zero.")

        with atomic_operation(self.lock, [self], "allocate"):
            now = self._current_time()
            guarded_call("destination token", self.token.mint, self.address, amount)
            allocation = self.allocations.get(beneficiary)
            if allocation is None:
                allocation = VestingAllocation(principal=amount, start_vesting=now, last_claim=now)
                self.allocations[beneficiary] = allocation
            else:
                allocation.principal += amount
            logger.info(
                "Allocated %s to %s by %s (principal now %s)",
                amount,
                beneficiary,
                caller,
                allocation.principal,
                extra={"event": "vesting.allocated", "beneficiary": beneficiary, "amount": amount},
            )
            return replace(allocation)

    def _cliff_end(self, allocation: VestingAllocation) -> int:
        return allocation.start_vesting + self.cliff_period

    def _unlocked(self, allocation: VestingAllocation, now: int) -> int:
        cliff_end = self._cliff_end(allocation)
        if now < cliff_end:
            return 0
        if allocation.claimed_amount == 0:
            # First claim: the cliff itself counts as one elapsed interval
            effective_last_claim = cliff_end - self.unlock_interval
        else:
            effective_last_claim = allocation.last_claim
        intervals = max(0, now - effective_last_claim) // self.unlock_interval
        unlocked = min(allocation.principal * intervals * self.unlock_percent // 100, allocation.principal)
        return max(unlocked - allocation.claimed_amount, 0)

    def _reward(self, allocation: VestingAllocation, now: int) -> int:
        if now < self._cliff_end(allocation):
            return 0
        accrual_end = min(now, self.reward_expiry)
        elapsed = accrual_end - allocation.last_claim
        if elapsed <= 0:
            return 0
        return allocation.locked * self.annual_interest_percent * elapsed // (100 * SECONDS_PER_YEAR)

    def unlocked_at(self, beneficiary: str, now: Optional[int] = None) -> int:
        allocation = self.allocations.get(beneficiary)
        if allocation is None:
            return 0
        return self._unlocked(allocation, self._current_time() if now is None else now)

    def reward_at(self, beneficiary: str, now: Optional[int] = None) -> int:
        allocation = self.allocations.get(beneficiary)
        if allocation is None:
            return 0
        return self._reward(allocation, self._current_time() if now is None else now)

    def claim(self, beneficiary: str) -> ClaimResult:
        """
        Pay ``beneficiary`` everything unlocked plus accrued interest.

        Anyone may trigger a claim; funds always go to the beneficiary.
        """
        with atomic_operation(self.lock, [self], "claim"):
            now = self._current_time()
            allocation = self.allocations.get(beneficiary)
            unlocked = self._unlocked(allocation, now) if allocation else 0
            if unlocked == 0:
                raise NoUnlockedTokens(
                    f"No unlocked tokens for {beneficiary}.",
                    details={"beneficiary": beneficiary, "now": now},
                )
            reward = self._reward(allocation, now)

            allocation.claimed_amount += unlocked
            allocation.last_claim = now
            if reward:
                guarded_call("destination token", self.token.mint, beneficiary, reward)
            guarded_call("destination token", self.token.transfer, self.address, beneficiary, unlocked)

            metrics.record_claim(unlocked, reward)
            logger.info(
                "Claimed %s principal and %s reward for %s",
                unlocked,
                reward,
                beneficiary,
                extra={
                    "event": "vesting.claimed",
                    "beneficiary": beneficiary,
                    "unlocked": unlocked,
                    "reward": reward,
                },
            )
            return ClaimResult(beneficiary=beneficiary, unlocked=unlocked, reward=reward, timestamp=now)

    def allocation_of(self, beneficiary: str) -> Optional[VestingAllocation]:
        allocation = self.allocations.get(beneficiary)
        return replace(allocation) if allocation else None

    def custody_balance(self) -> int:
        return self.token.balance_of(self.address)

    def projection(self, beneficiary: str, until: int, step: Optional[int] = None) -> List[Tuple[int, int, int]]:
        """
        Simulate claiming at every ``step`` seconds from the cliff until ``until``.

        Returns ``(timestamp, unlocked, reward)`` rows for the claims that would pay.
        The live allocation is not touched.
        """
        allocation = self.allocations.get(beneficiary)
        if allocation is None:
            return []
        return project_claims(self, replace(allocation), until, step or self.unlock_interval)

    def snapshot(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {
            "allocations": {key: replace(value) for key, value in self.allocations.items()},
        }
        if isinstance(self.token, Snapshottable):
            state["token"] = self.token.snapshot()
        return state

    def restore(self, state: Dict[str, Any]) -> None:
        self.allocations = {key: replace(value) for key, value in state["allocations"].items()}
        if "token" in state:
            self.token.restore(state["token"])


def project_claims(
    schedule: VestingSchedule, allocation: VestingAllocation, until: int, step: int
) -> List[Tuple[int, int, int]]:
    """Claim ladder for a detached copy of an allocation."""
    if step <= 0:
        raise ValueError("Projection step must be positive.")
    rows: List[Tuple[int, int, int]] = []
    moment = schedule._cliff_end(allocation)
    while moment <= until and allocation.claimed_amount < allocation.principal:
        unlocked = schedule._unlocked(allocation, moment)
        if unlocked:
            reward = schedule._reward(allocation, moment)
            allocation.claimed_amount += unlocked
            allocation.last_claim = moment
            rows.append((moment, unlocked, reward))
        moment += step
    return rows
