"""Simulated card gateway.

Stands in for a real authorization call: reserved test-card suffixes give
fixed answers, everything else goes through randomized fault and decline
branches. Randomness and the latency sleep are injected so tests can pin
both down.
"""

import asyncio
import random
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from cardpay.common.config import CommonSettings, settings
from cardpay.common.logging import logger
from cardpay.services.payment.schemas import PaymentRequest
from cardpay.services.payment.validation import mask_card_number, normalize_card_number


class DecisionKind(str, Enum):
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    TRANSIENT_ERROR = "TRANSIENT_ERROR"


@dataclass(frozen=True)
class GatewayDecision:
    kind: DecisionKind
    reason: str | None = None

    @classmethod
    def approved(cls) -> "GatewayDecision":
        return cls(DecisionKind.APPROVED)

    @classmethod
    def declined(cls, reason: str) -> "GatewayDecision":
        return cls(DecisionKind.DECLINED, reason)

    @classmethod
    def transient_error(cls, reason: str) -> "GatewayDecision":
        return cls(DecisionKind.TRANSIENT_ERROR, reason)


@dataclass(frozen=True)
class GatewayPolicy:
    """Decision constants. Rates are probabilities in [0, 1]."""

    decline_suffix: str = "0000"
    approve_suffix: str = "1111"
    transient_error_rate: float = 0.05
    high_amount_threshold: Decimal = Decimal("1000")
    high_amount_decline_rate: float = 0.30
    bank_decline_rate: float = 0.15
    insufficient_funds_threshold: Decimal = Decimal("500")
    insufficient_funds_rate: float = 0.20
    min_delay_seconds: float = 1.0
    max_delay_seconds: float = 3.0

    @classmethod
    def from_settings(cls, config: CommonSettings = settings) -> "GatewayPolicy":
        return cls(
            decline_suffix=config.gateway_decline_suffix,
            approve_suffix=config.gateway_approve_suffix,
            transient_error_rate=config.gateway_transient_error_rate,
            high_amount_threshold=config.gateway_high_amount_threshold,
            high_amount_decline_rate=config.gateway_high_amount_decline_rate,
            bank_decline_rate=config.gateway_bank_decline_rate,
            insufficient_funds_threshold=config.gateway_insufficient_funds_threshold,
            insufficient_funds_rate=config.gateway_insufficient_funds_rate,
            min_delay_seconds=config.gateway_min_delay_seconds,
            max_delay_seconds=config.gateway_max_delay_seconds,
        )


class GatewaySimulator:
    """Produces synthetic authorization decisions for validated requests."""

    def __init__(
        self,
        policy: GatewayPolicy | None = None,
        rng: random.Random | None = None,
        sleep=asyncio.sleep,
    ) -> None:
        self.policy = policy or GatewayPolicy()
        self.rng = rng or random.Random()
        self._sleep = sleep

    def _delay_seconds(self) -> float:
        low = max(0.0, self.policy.min_delay_seconds)
        high = max(low, self.policy.max_delay_seconds)
        if high == 0:
            return 0.0
        return self.rng.uniform(low, high)

    async def authorize(self, request: PaymentRequest) -> GatewayDecision:
        """Wait out the simulated network latency, then decide.

        The wait is a plain awaitable, so cancelling the calling task (for
        example through `asyncio.wait_for`) aborts it cleanly.
        """

        delay = self._delay_seconds()
        if delay > 0:
            await self._sleep(delay)
        card_number = normalize_card_number(request.card_number)
        decision = self.decide(card_number, request.amount)
        logger.info(
            "gateway_decision card=%s amount=%s decision=%s reason=%s delay_s=%.3f",
            mask_card_number(card_number),
            request.amount,
            decision.kind.value,
            decision.reason,
            delay,
        )
        return decision

    def decide(self, card_number: str, amount: Decimal) -> GatewayDecision:
        """Apply the decision rules in priority order; first match wins."""

        policy = self.policy
        if policy.decline_suffix and card_number.endswith(policy.decline_suffix):
            return GatewayDecision.declined("Payment declined by bank: test card")
        if policy.approve_suffix and card_number.endswith(policy.approve_suffix):
            return GatewayDecision.approved()

        if self.rng.random() < policy.transient_error_rate:
            return GatewayDecision.transient_error("Network timeout")

        if amount > policy.high_amount_threshold and self.rng.random() < policy.high_amount_decline_rate:
            return GatewayDecision.declined("Payment declined by bank: amount exceeds risk limit")
        if self.rng.random() < policy.bank_decline_rate:
            return GatewayDecision.declined("Payment declined by bank")
        if amount > policy.insufficient_funds_threshold and self.rng.random() < policy.insufficient_funds_rate:
            return GatewayDecision.declined("Insufficient funds")

        return GatewayDecision.approved()
