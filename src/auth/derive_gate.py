"""
Derive Gate - throttling around API credential creation

Creating L2 credentials is an irreversible exchange call. It is rate
limited upstream and, for some accounts, not allowed at all. The gate keeps
the bot from hammering it in a loop.

Tiers, checked in this order:
1. BLOCKED       - set only after a definitive "could not create api key"
                   refusal, lasts DERIVE_BLOCK_SEC (30 min)
2. RATE_LIMITED  - at most DERIVE_MAX_ATTEMPTS_PER_WINDOW (2) attempts per
                   DERIVE_WINDOW_SEC (60s) window
3. COOLDOWN      - at least DERIVE_COOLDOWN_SEC (10s) between attempts
4. OPEN          - attempt allowed and recorded immediately, whether or not
                   the exchange call later succeeds

State is process-local and never reset except by restart.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config.constants import (
    DERIVE_MAX_ATTEMPTS_PER_WINDOW,
    DERIVE_WINDOW_SEC,
    DERIVE_COOLDOWN_SEC,
    DERIVE_BLOCK_SEC,
)
from utils.exceptions import DeriveGateRejected
from utils.logger import get_logger


logger = get_logger(__name__)


class GateStatus(str, Enum):
    OPEN = "OPEN"
    RATE_LIMITED = "RATE_LIMITED"
    COOLDOWN = "COOLDOWN"
    BLOCKED = "BLOCKED"


@dataclass
class GateDecision:
    status: GateStatus
    reason: str = ""
    retry_after: Optional[float] = None

    @property
    def allowed(self) -> bool:
        return self.status is GateStatus.OPEN


@dataclass
class DeriveGateState:
    blocked_until: float = 0.0
    last_attempt: Optional[float] = None
    window_start: Optional[float] = None
    attempts_in_window: int = 0


class DeriveGate:
    """
    Rate limiter / circuit breaker for credential derivation.

    Example:
        gate = DeriveGate()
        await gate.acquire()   # raises DeriveGateRejected when closed
        creds = await derive()
    """

    def __init__(
        self,
        max_attempts: int = DERIVE_MAX_ATTEMPTS_PER_WINDOW,
        window_sec: float = DERIVE_WINDOW_SEC,
        cooldown_sec: float = DERIVE_COOLDOWN_SEC,
        block_sec: float = DERIVE_BLOCK_SEC,
        clock: Callable[[], float] = time.time
    ):
        self.max_attempts = max_attempts
        self.window_sec = window_sec
        self.cooldown_sec = cooldown_sec
        self.block_sec = block_sec
        self._clock = clock
        self.state = DeriveGateState()
        self._lock = asyncio.Lock()

    def _window_expired(self, now: float) -> bool:
        start = self.state.window_start
        return start is None or now - start > self.window_sec

    def _evaluate(self, now: float) -> GateDecision:
        state = self.state

        if now < state.blocked_until:
            remaining = math.ceil(state.blocked_until - now)
            return GateDecision(
                GateStatus.BLOCKED,
                f"auto-derive temporarily blocked ({remaining}s remaining)",
                retry_after=remaining
            )

        attempts = 0 if self._window_expired(now) else state.attempts_in_window
        if attempts >= self.max_attempts:
            retry_after = math.ceil(state.window_start + self.window_sec - now)
            return GateDecision(
                GateStatus.RATE_LIMITED,
                f"auto-derive rate limit hit (max {self.max_attempts}/"
                f"{int(self.window_sec)}s, retry in {retry_after}s)",
                retry_after=retry_after
            )

        if state.last_attempt is not None and now - state.last_attempt < self.cooldown_sec:
            remaining = math.ceil(self.cooldown_sec - (now - state.last_attempt))
            return GateDecision(
                GateStatus.COOLDOWN,
                f"auto-derive cooldown ({remaining}s remaining)",
                retry_after=remaining
            )

        return GateDecision(GateStatus.OPEN)

    def check(self) -> GateDecision:
        """Inspect the current decision without recording an attempt"""
        return self._evaluate(self._clock())

    def try_acquire(self) -> GateDecision:
        """
        Decide and, when allowed, record the attempt in the same step.

        Returns:
            The decision. Only an OPEN decision consumes a slot.
        """
        now = self._clock()
        if now >= self.state.blocked_until and self._window_expired(now):
            self.state.window_start = now
            self.state.attempts_in_window = 0

        decision = self._evaluate(now)
        if decision.allowed:
            self.state.attempts_in_window += 1
            self.state.last_attempt = now
            logger.debug(
                f"Derive attempt {self.state.attempts_in_window}/{self.max_attempts} recorded"
            )
        return decision

    async def acquire(self) -> GateDecision:
        """
        Atomic check-and-record for concurrent callers.

        Raises:
            DeriveGateRejected: If the gate is not OPEN
        """
        async with self._lock:
            decision = self.try_acquire()
        if not decision.allowed:
            logger.warning(f"Auto-derive skipped: {decision.reason}")
            raise DeriveGateRejected(
                f"Auto-derive skipped: {decision.reason}",
                status=decision.status.value,
                retry_after=decision.retry_after
            )
        return decision

    def block(self) -> float:
        """
        Enter BLOCKED after a permanent refusal.

        Returns:
            Timestamp until which derive attempts are rejected
        """
        self.state.blocked_until = self._clock() + self.block_sec
        logger.error(
            f"Auto-derive blocked for {int(self.block_sec)}s after permanent refusal"
        )
        return self.state.blocked_until

    @property
    def is_blocked(self) -> bool:
        return self._clock() < self.state.blocked_until
