"""
Off-chain optimizer: turns market data into signed rebalance payloads.
"""
from optimizer.models import (
    MarketDataSource,
    PriceSample,
    RebalanceRecommendation,
    RecommendedAction,
    VaultMetrics,
)
from optimizer.signer import PayloadSigner
from optimizer.strategy import HeuristicOptimizer

__all__ = [
    "MarketDataSource",
    "PriceSample",
    "RebalanceRecommendation",
    "RecommendedAction",
    "VaultMetrics",
    "PayloadSigner",
    "HeuristicOptimizer",
]
