"""
Simulated broker.

Injects latency, unfavorable slippage, a flat fee and random rejections.
The broker only reports what happened to an order; applying the result to
the portfolio is the portfolio manager's job.
"""

import asyncio
import random

from loguru import logger

from swingtrader.config.settings import BrokerConfig
from swingtrader.core.constants import BROKER_FAILURE_MESSAGE, MIN_FILL_PRICE
from swingtrader.core.enums import TradeAction
from swingtrader.core.models.broker import BrokerExecution, BrokerOrder
from swingtrader.core.utils.decorators import validate_inputs


class MockBroker:
    """Execution venue simulation.

    Randomness comes from a private ``random.Random`` seeded from config,
    so a seeded broker produces the same latencies and rejections for the
    same sequence of orders.
    """

    def __init__(self, config: BrokerConfig | None = None):
        self.config = config or BrokerConfig()
        self._rng = random.Random(self.config.seed)
        self.orders_received = 0
        self.orders_rejected = 0

    async def execute(self, order: BrokerOrder) -> BrokerExecution:
        """Simulate executing an order.

        Args:
            order: Sized order at a reference price

        Returns:
            BrokerExecution; rejections are reported with failed=True
        """
        self.orders_received += 1
        latency_ms = await self._simulate_latency()

        if self._rng.random() < self.config.failure_rate:
            self.orders_rejected += 1
            logger.warning(
                f"Mock broker rejected {order.action} {order.quantity} {order.symbol} "
                f"@ {order.price:.2f} after {latency_ms:.1f}ms"
            )
            return BrokerExecution.rejected(BROKER_FAILURE_MESSAGE, latency_ms)

        fill_price = self.fill_price(order.price, order.action)
        logger.debug(
            f"Mock broker filled {order.action} {order.quantity} {order.symbol} "
            f"@ {fill_price:.4f} (requested {order.price:.4f}, {latency_ms:.1f}ms)"
        )
        return BrokerExecution.filled(fill_price, self.config.fee_per_trade, latency_ms)

    @validate_inputs
    def fill_price(self, price: float, action: TradeAction) -> float:
        """Apply slippage against the trader: up for buys, down for sells."""
        slippage = self.config.slippage_percent / 100
        if action == TradeAction.BUY:
            filled = price * (1 + slippage)
        else:
            filled = price * (1 - slippage)
        return max(MIN_FILL_PRICE, filled)

    def worst_case_fill_price(self, price: float) -> float:
        """Highest price a buy at this reference price can fill at."""
        return self.fill_price(price, TradeAction.BUY)

    async def _simulate_latency(self) -> float:
        """Sleep for the configured latency without blocking the event loop."""
        jitter = self.config.latency_jitter_ms
        latency_ms = self.config.latency_ms
        if jitter > 0:
            latency_ms = self._rng.uniform(latency_ms - jitter, latency_ms + jitter)
        if latency_ms > 0:
            await asyncio.sleep(latency_ms / 1000)
        return latency_ms

    @property
    def rejection_rate(self) -> float:
        """Observed share of rejected orders."""
        if self.orders_received == 0:
            return 0.0
        return self.orders_rejected / self.orders_received
