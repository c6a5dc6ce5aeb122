"""
Optimizer-specific data models.

These models are used exclusively by the off-chain optimizer for market
data, metrics and recommendations.
"""
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, Field


class PriceSample(BaseModel):
    """One observed price point."""
    price: float = Field(..., gt=0, description="Price in quote units")
    timestamp: int = Field(..., description="Unix time of the observation")
    volume: Optional[float] = Field(None, ge=0, description="Traded volume since previous sample")


# Injectable market data source: token address -> recent samples, oldest first
MarketDataSource = Callable[[str], List[PriceSample]]


class Trend(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Destination(str, Enum):
    SAME_POOL = "same_pool"
    STABLE_POOL = "stable_pool"
    WIDER_RANGE = "wider_range"


class VaultMetrics(BaseModel):
    """Market metrics for a vault's pair."""
    volatility: float = Field(..., description="Std-dev of sample-to-sample returns")
    volume_24h: float = Field(..., description="Summed sample volume")
    price_change_24h: float = Field(..., description="Relative change oldest -> newest")
    slippage_estimate: float = Field(..., description="Estimated slippage fraction")
    trend: Trend = Field(..., description="Direction of the price regression")


class RecommendedAction(BaseModel):
    """Range and reallocation the optimizer proposes."""
    withdraw_pct: int = Field(0, ge=0, le=100, description="Share of capital to move")
    destination: Destination = Field(Destination.SAME_POOL)
    tick_lower: int = Field(..., description="Proposed lower tick")
    tick_upper: int = Field(..., description="Proposed upper tick")


class RebalanceRecommendation(BaseModel):
    """Optimizer output for one vault."""
    vault_id: int
    should_rebalance: bool
    reason: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    action: RecommendedAction
    metrics: Optional[VaultMetrics] = None
    timestamp: int
