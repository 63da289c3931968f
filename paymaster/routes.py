from fastapi import APIRouter, Depends, Request
from typing import List, Optional
import structlog
from datetime import datetime
import time

from .config import settings
from .models import (
    AllocationRequest, CollateralRisk, LiquidationRisk, LiquidityRisk, MarketData,
    MarketDataUpdate, ProtocolInfo, ProtocolUpdate, RebalanceRequest, RiskAssessment,
    RiskAssessmentRequest, RiskPreferenceUpdate, RiskThresholds, RiskThresholdsUpdate,
    StrategyRecommendation
)
from .risk_engine import RiskAssessmentEngine
from .yield_optimizer import YieldAllocationOptimizer

logger = structlog.get_logger()

router = APIRouter()


def get_yield_optimizer(request: Request) -> YieldAllocationOptimizer:
    return request.app.state.yield_optimizer


def get_risk_engine(request: Request) -> RiskAssessmentEngine:
    return request.app.state.risk_engine


@router.get("/api/status")
async def get_system_status(request: Request):
    """Get service health, engine state and recent errors"""
    optimizer = request.app.state.yield_optimizer
    engine = request.app.state.risk_engine

    return {
        "status": "operational",
        "version": request.app.version,
        "environment": settings.ENV,
        "uptime_seconds": int(time.time() - request.app.state.started_at),
        "risk_preference": optimizer.risk_preference,
        "tracked_protocols": len(optimizer.protocols),
        "open_positions": len(engine.market_data.positions),
        "pending_payments": len(engine.market_data.payments),
        "errors": request.app.state.error_collector.get_error_summary(hours=1),
        "timestamp": datetime.utcnow().isoformat()
    }

# Yield optimization

@router.get("/api/yield/protocols", response_model=List[ProtocolInfo])
async def get_protocols(optimizer: YieldAllocationOptimizer = Depends(get_yield_optimizer)):
    """List the protocol catalog"""
    return optimizer.get_protocols_info()

@router.patch("/api/yield/protocols/{protocol_id}", response_model=ProtocolInfo)
async def update_protocol(
    protocol_id: int,
    update: ProtocolUpdate,
    optimizer: YieldAllocationOptimizer = Depends(get_yield_optimizer)
):
    """Merge partial fields into one catalog entry"""
    return optimizer.update_protocol_info(protocol_id, update)

@router.put("/api/yield/risk-preference")
async def set_risk_preference(
    update: RiskPreferenceUpdate,
    optimizer: YieldAllocationOptimizer = Depends(get_yield_optimizer)
):
    """Set the user risk preference (1 conservative, 10 aggressive)"""
    optimizer.set_risk_preference(update.risk_preference)
    return {"risk_preference": optimizer.risk_preference}

@router.post("/api/yield/optimize", response_model=List[StrategyRecommendation])
async def optimize_allocation(
    allocation_request: AllocationRequest,
    optimizer: YieldAllocationOptimizer = Depends(get_yield_optimizer)
):
    """Recommend a percentage split of idle funds across protocols"""
    recommendations = optimizer.optimize_allocation(
        allocation_request.available_funds,
        allocation_request.emergency_funds_percentage
    )

    logger.info("Allocation requested",
               available_funds=allocation_request.available_funds,
               recommendations=len(recommendations))
    return recommendations

@router.post("/api/yield/rebalance")
async def check_rebalance(
    rebalance_request: RebalanceRequest,
    optimizer: YieldAllocationOptimizer = Depends(get_yield_optimizer)
):
    """Check whether the current allocation drifted from the recommendation"""
    should_rebalance = optimizer.should_rebalance(
        rebalance_request.current_allocation,
        rebalance_request.reference_funds
    )
    return {
        "should_rebalance": should_rebalance,
        "timestamp": datetime.utcnow().isoformat()
    }

# Risk assessment

@router.get("/api/risk/thresholds", response_model=RiskThresholds)
async def get_risk_thresholds(engine: RiskAssessmentEngine = Depends(get_risk_engine)):
    return engine.get_risk_thresholds()

@router.put("/api/risk/thresholds", response_model=RiskThresholds)
async def set_risk_thresholds(
    update: RiskThresholdsUpdate,
    engine: RiskAssessmentEngine = Depends(get_risk_engine)
):
    """Replace cutoffs for any subset of risk dimensions"""
    engine.set_risk_thresholds(
        liquidity=update.liquidity,
        collateral=update.collateral,
        liquidation=update.liquidation
    )
    return engine.get_risk_thresholds()

@router.get("/api/risk/liquidity", response_model=Optional[LiquidityRisk])
async def get_liquidity_risk(
    available_liquidity: str,
    engine: RiskAssessmentEngine = Depends(get_risk_engine)
):
    return engine.assess_liquidity_risk(available_liquidity)

@router.get("/api/risk/collateral", response_model=Optional[CollateralRisk])
async def get_collateral_risk(engine: RiskAssessmentEngine = Depends(get_risk_engine)):
    return engine.assess_collateral_risk()

@router.get("/api/risk/liquidation", response_model=Optional[LiquidationRisk])
async def get_liquidation_risk(engine: RiskAssessmentEngine = Depends(get_risk_engine)):
    return engine.assess_liquidation_risk()

@router.post("/api/risk/assessment", response_model=RiskAssessment)
async def perform_risk_assessment(
    assessment_request: RiskAssessmentRequest,
    engine: RiskAssessmentEngine = Depends(get_risk_engine)
):
    """Run every risk dimension and aggregate the result"""
    assessment = engine.perform_risk_assessment(assessment_request.available_liquidity)

    logger.info("Risk assessment requested",
               overall_risk_level=assessment.overall_risk_level,
               actions=len(assessment.recommended_actions))
    return assessment

@router.get("/api/risk/market-data", response_model=MarketData)
async def get_market_data(engine: RiskAssessmentEngine = Depends(get_risk_engine)):
    return engine.get_market_data()

@router.patch("/api/risk/market-data", response_model=MarketData)
async def update_market_data(
    update: MarketDataUpdate,
    engine: RiskAssessmentEngine = Depends(get_risk_engine)
):
    """Replace top-level ledger fields (payments, positions, prices, price movements)"""
    engine.update_mock_data(update)
    return engine.get_market_data()
