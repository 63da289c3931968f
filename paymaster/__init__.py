"""
PayMaster Decision Engines - yield allocation and risk assessment for automated payments

This package provides the two in-process decision engines behind the PayMaster
automated-payment product, plus a small FastAPI service exposing them.

Key Features:
- Risk-adjusted APY ranking of yield protocols
- Weighted percentage allocation of idle funds that always sums to 100%
- Rebalance detection against the recommended allocation
- Liquidity, collateral and liquidation risk scoring with configurable thresholds
- Aggregated overall risk level with recommended actions
- Structured logging via structlog

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import settings
from .risk_engine import RiskAssessmentEngine
from .yield_optimizer import YieldAllocationOptimizer
from .main import app, create_app

__all__ = [
    "app",
    "create_app",
    "settings",
    "RiskAssessmentEngine",
    "YieldAllocationOptimizer",
]
