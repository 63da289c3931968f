from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict

from .config import SECONDS_PER_DAY, settings

# Yield Models
class ProtocolInfo(BaseModel):
    id: int
    name: str
    current_apy: float  # percent
    risk_score: int = Field(ge=1, le=10)  # 1 is lowest risk
    minimum_deposit: str  # numeric string in base asset units
    lockup_period: int = 0  # seconds

class StrategyRecommendation(BaseModel):
    protocol_id: int
    protocol_name: str
    allocation_percentage: int
    expected_apy: float
    risk_level: str
    reason: str

# Ledger Models
class PendingPayment(BaseModel):
    id: int
    recipient: str
    amount: str
    next_payment_time: float  # unix seconds
    coin: str = settings.BASE_COIN_TYPE

class Position(BaseModel):
    protocol: str
    borrowed_asset: str
    borrowed_amount: str
    collateral_asset: str
    collateral_amount: str
    liquidation_threshold: float  # collateral ratio percent

class MarketData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payments: List[PendingPayment] = []
    positions: List[Position] = []
    prices: Dict[str, float] = {}
    price_movements: Dict[str, float] = {}  # daily percent change

# Threshold Models
class RiskThreshold(BaseModel):
    medium: float
    high: float
    critical: float

class RiskThresholds(BaseModel):
    liquidity: RiskThreshold = RiskThreshold(medium=80, high=50, critical=20)
    collateral: RiskThreshold = RiskThreshold(medium=150, high=125, critical=110)
    liquidation: RiskThreshold = RiskThreshold(
        medium=7 * SECONDS_PER_DAY,
        high=3 * SECONDS_PER_DAY,
        critical=1 * SECONDS_PER_DAY
    )

# Risk Assessment Models
class LiquidityRisk(BaseModel):
    required_liquidity: str
    available_liquidity: str
    liquidity_ratio: float  # 0-100
    risk_level: str
    time_until_next_payment: float  # seconds

class CollateralRisk(BaseModel):
    borrowed_amount: str
    collateral_amount: str
    collateral_ratio: float  # percent
    risk_level: str
    liquidation_threshold: float

class LiquidationRisk(BaseModel):
    protocol: str
    position: str
    current_price: str
    liquidation_price: str
    price_gap: float  # percent above liquidation price
    estimated_time_to_liquidation: float  # seconds
    risk_level: str

class RiskAssessment(BaseModel):
    liquidity_risk: Optional[LiquidityRisk] = None
    collateral_risk: Optional[CollateralRisk] = None
    liquidation_risk: Optional[LiquidationRisk] = None
    overall_risk_level: str
    recommended_actions: List[str] = []

# API Request Models
class AllocationRequest(BaseModel):
    available_funds: str
    emergency_funds_percentage: float = settings.DEFAULT_EMERGENCY_FUNDS_PERCENTAGE

class RebalanceRequest(BaseModel):
    current_allocation: Dict[int, float] = {}
    reference_funds: Optional[str] = None

class RiskPreferenceUpdate(BaseModel):
    risk_preference: int

class ProtocolUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    current_apy: Optional[float] = None
    risk_score: Optional[int] = None
    minimum_deposit: Optional[str] = None
    lockup_period: Optional[int] = None

class RiskThresholdsUpdate(BaseModel):
    liquidity: Optional[RiskThreshold] = None
    collateral: Optional[RiskThreshold] = None
    liquidation: Optional[RiskThreshold] = None

class MarketDataUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payments: Optional[List[PendingPayment]] = None
    positions: Optional[List[Position]] = None
    prices: Optional[Dict[str, float]] = None
    price_movements: Optional[Dict[str, float]] = None

class RiskAssessmentRequest(BaseModel):
    available_liquidity: str
