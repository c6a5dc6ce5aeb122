"""
Rebalance recommendation logic for the off-chain optimizer.

This is a simple rule-based implementation: cooldown, volatility spike,
price-trend shift and slippage checks against recent price samples, with a
confidence floor. Replace it with a real model as needed; the ledger only
ever sees the signed range it produces.
"""
import logging
import statistics
from typing import List, Optional

from optimizer.models import (
    Destination,
    MarketDataSource,
    PriceSample,
    RebalanceRecommendation,
    RecommendedAction,
    Trend,
    VaultMetrics,
)
from protocol.models import RebalanceAction, StrategyParams, VaultInfo
from vault.utils.env import REBALANCE_COOLDOWN

logger = logging.getLogger(__name__)


class HeuristicOptimizer:
    """
    Rule-based rebalance recommender.

    Market data is injected as a callable so tests and demos can feed fixed
    samples instead of a live oracle.
    """

    VOLATILITY_THRESHOLD = 0.05
    HIGH_VOLATILITY = 0.08
    PRICE_CHANGE_THRESHOLD = 0.03
    SLIPPAGE_THRESHOLD = 0.02
    MIN_CONFIDENCE = 0.6
    DEFAULT_VOLATILITY = 0.03
    TREND_SLOPE = 0.001

    def __init__(self, market_data: MarketDataSource, cooldown: int = REBALANCE_COOLDOWN):
        """
        Initialize optimizer.

        Args:
            market_data: Callable returning recent price samples for a token
            cooldown: Minimum seconds between rebalances
        """
        self.market_data = market_data
        self.cooldown = cooldown

    # -----------------------------
    # Metrics
    # -----------------------------

    def calculate_metrics(self, token_a: str, token_b: str) -> VaultMetrics:
        """Metrics for a pair, driven by token_a's price history."""
        history = self.market_data(token_a)
        volume = sum(s.volume for s in history if s.volume is not None)
        has_volume = any(s.volume is not None for s in history)
        return VaultMetrics(
            volatility=self._volatility(history),
            volume_24h=volume,
            price_change_24h=self._price_change(history),
            # No volume data means no evidence of thin liquidity.
            slippage_estimate=self._slippage(volume) if has_volume else 0.0,
            trend=self._trend(history),
        )

    def _volatility(self, history: List[PriceSample]) -> float:
        if len(history) < 2:
            return self.DEFAULT_VOLATILITY
        prices = [s.price for s in history]
        returns = [(b - a) / a for a, b in zip(prices, prices[1:])]
        return statistics.pstdev(returns)

    @staticmethod
    def _price_change(history: List[PriceSample]) -> float:
        if len(history) < 2:
            return 0.0
        oldest, newest = history[0].price, history[-1].price
        return (newest - oldest) / oldest

    @staticmethod
    def _slippage(volume: float) -> float:
        # Lower volume = higher slippage
        if volume < 500_000:
            return 0.025
        if volume < 1_000_000:
            return 0.015
        if volume < 5_000_000:
            return 0.008
        return 0.004

    def _trend(self, history: List[PriceSample]) -> Trend:
        if len(history) < 3:
            return Trend.NEUTRAL
        prices = [s.price for s in history]
        slope, _ = statistics.linear_regression(range(len(prices)), prices)
        if slope > self.TREND_SLOPE:
            return Trend.BULLISH
        if slope < -self.TREND_SLOPE:
            return Trend.BEARISH
        return Trend.NEUTRAL

    # -----------------------------
    # Recommendation
    # -----------------------------

    def get_recommendation(
        self, vault: VaultInfo, strategy: StrategyParams, now: int
    ) -> RebalanceRecommendation:
        """
        Evaluate the rules for one vault.

        Later rules override earlier ones: volatility, then price trend,
        then slippage. Anything under MIN_CONFIDENCE is downgraded to
        "low_confidence" with no rebalance.
        """
        lower, upper = strategy.tick_lower, strategy.tick_upper

        if now - vault.last_rebalance < self.cooldown:
            return RebalanceRecommendation(
                vault_id=vault.vault_id,
                should_rebalance=False,
                reason="cooldown_not_passed",
                confidence=1.0,
                action=RecommendedAction(tick_lower=lower, tick_upper=upper),
                timestamp=now,
            )

        metrics = self.calculate_metrics(vault.token_a, vault.token_b)
        width = upper - lower

        should_rebalance = False
        reason = "no_action_needed"
        confidence = 0.5
        withdraw_pct = 0
        destination = Destination.SAME_POOL
        new_lower, new_upper = lower, upper

        if metrics.volatility >= self.VOLATILITY_THRESHOLD:
            should_rebalance = True
            reason = "volatility_spike"
            confidence = min(0.95, 0.6 + metrics.volatility * 2)
            expansion = int(width * 0.2)
            new_lower, new_upper = lower - expansion, upper + expansion
            if metrics.volatility > self.HIGH_VOLATILITY:
                withdraw_pct = 30
                destination = Destination.STABLE_POOL

        if abs(metrics.price_change_24h) >= self.PRICE_CHANGE_THRESHOLD:
            shift = int(width * 0.1)
            if metrics.price_change_24h > 0 and metrics.trend == Trend.BULLISH:
                should_rebalance = True
                reason = "price_increase_shift"
                confidence = min(0.95, 0.7 + abs(metrics.price_change_24h))
                new_lower, new_upper = lower + shift, upper + shift
            elif metrics.price_change_24h < 0 and metrics.trend == Trend.BEARISH:
                should_rebalance = True
                reason = "price_decrease_shift"
                confidence = min(0.95, 0.7 + abs(metrics.price_change_24h))
                new_lower, new_upper = lower - shift, upper - shift

        if metrics.slippage_estimate >= self.SLIPPAGE_THRESHOLD:
            should_rebalance = True
            reason = "high_slippage"
            confidence = 0.75
            withdraw_pct = 20
            destination = Destination.WIDER_RANGE
            expansion = int(width * 0.3)
            new_lower, new_upper = lower - expansion, upper + expansion

        if confidence < self.MIN_CONFIDENCE:
            should_rebalance = False
            reason = "low_confidence"

        logger.info(
            f"Vault {vault.vault_id}: {reason} (rebalance={should_rebalance}, "
            f"confidence={confidence:.2f}, range=[{new_lower}, {new_upper}])"
        )
        return RebalanceRecommendation(
            vault_id=vault.vault_id,
            should_rebalance=should_rebalance,
            reason=reason,
            confidence=round(confidence, 2),
            action=RecommendedAction(
                withdraw_pct=withdraw_pct,
                destination=destination,
                tick_lower=new_lower,
                tick_upper=new_upper,
            ),
            metrics=metrics,
            timestamp=now,
        )

    @staticmethod
    def to_action(recommendation: RebalanceRecommendation) -> Optional[RebalanceAction]:
        """Action data for a positive recommendation, None otherwise."""
        if not recommendation.should_rebalance:
            return None
        return RebalanceAction(
            tick_lower=recommendation.action.tick_lower,
            tick_upper=recommendation.action.tick_upper,
            reallocate_pct=recommendation.action.withdraw_pct,
        )
