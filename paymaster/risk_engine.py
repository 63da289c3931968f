import math
import time
from typing import Callable, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from .config import settings, RiskLevel, SECONDS_PER_DAY
from .error_handling import InvalidArgumentError, NotFoundError
from .models import (
    CollateralRisk, LiquidationRisk, LiquidityRisk, MarketData, MarketDataUpdate,
    PendingPayment, Position, RiskAssessment, RiskThreshold, RiskThresholds
)
from .thresholds import classify, max_risk_level, validate_threshold_ordering

logger = structlog.get_logger()

ThresholdInput = Optional[Union[RiskThreshold, Dict]]


def default_market_data(now: Optional[float] = None) -> MarketData:
    """Sample ledger of pending payments, borrow positions and prices"""
    now = time.time() if now is None else now
    return MarketData(
        payments=[
            PendingPayment(
                id=1,
                recipient="0x123",
                amount="100",
                next_payment_time=now + 2 * SECONDS_PER_DAY,
                coin=settings.BASE_COIN_TYPE
            ),
            PendingPayment(
                id=2,
                recipient="0x456",
                amount="50",
                next_payment_time=now + 5 * SECONDS_PER_DAY,
                coin="0x1::usdc::USDC"
            ),
        ],
        positions=[
            Position(
                protocol="Aries",
                borrowed_asset="USDC",
                borrowed_amount="1000",
                collateral_asset="APT",
                collateral_amount="50",
                liquidation_threshold=125
            ),
            Position(
                protocol="Momentum",
                borrowed_asset="USDT",
                borrowed_amount="500",
                collateral_asset="APT",
                collateral_amount="35",
                liquidation_threshold=110
            ),
        ],
        prices={"APT": 10, "USDC": 1, "USDT": 1},
        price_movements={"APT": -2.5, "USDC": 0, "USDT": 0}
    )


def format_amount(value: float) -> str:
    """Render a computed amount the way the ledger stores amounts (no trailing .0)"""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def collateral_ratio(collateral_value: float, borrowed_value: float) -> float:
    if borrowed_value == 0:
        return math.inf
    return collateral_value / borrowed_value * 100


def liquidation_price(borrowed_value: float, liquidation_threshold: float, collateral_amount: float) -> float:
    """Collateral spot price at which the position hits its liquidation threshold"""
    if collateral_amount == 0:
        return math.inf
    return borrowed_value * liquidation_threshold / 100 / collateral_amount


def price_gap(current_price: float, liquidation_price_value: float) -> float:
    """Percent the current price sits above the liquidation price"""
    if current_price == 0:
        return -math.inf
    return (current_price - liquidation_price_value) / current_price * 100


def estimate_time_to_liquidation(gap: float, daily_change_percent: float) -> float:
    """Seconds until the price gap closes at the current daily trend"""
    if gap <= 0:
        return 0.0
    if daily_change_percent >= 0:
        return math.inf
    days_to_liquidation = gap / abs(daily_change_percent)
    return days_to_liquidation * SECONDS_PER_DAY


def build_recommendations(
    assessment: RiskAssessment,
    asset_symbol: str = settings.BASE_ASSET_SYMBOL,
    urgency_seconds: float = settings.PAYMENT_URGENCY_SECONDS
) -> List[str]:
    """Turn sub-assessments into an ordered list of suggested actions"""
    recommendations = []

    liquidity = assessment.liquidity_risk
    if liquidity:
        if liquidity.liquidity_ratio < 100:
            shortfall = float(liquidity.required_liquidity) * (1 - liquidity.liquidity_ratio / 100)
            recommendations.append(
                f"Add {shortfall:.2f} {asset_symbol} to cover upcoming payment obligations."
            )

        if liquidity.time_until_next_payment < urgency_seconds and liquidity.liquidity_ratio < 100:
            recommendations.append(
                "Urgent: Payment due in less than 24 hours with insufficient funds."
            )

    collateral = assessment.collateral_risk
    if collateral:
        if collateral.collateral_ratio < collateral.liquidation_threshold * 1.2:
            recommendations.append(
                "Consider adding more collateral to your position to create a safer buffer."
            )

        if collateral.collateral_ratio < collateral.liquidation_threshold * 1.1:
            recommendations.append(
                "Warning: Collateral ratio approaching liquidation threshold. "
                "Add collateral or repay part of the loan."
            )

    liquidation = assessment.liquidation_risk
    if liquidation:
        if liquidation.estimated_time_to_liquidation < 3 * SECONDS_PER_DAY:
            recommendations.append(
                f"Critical: Your {liquidation.protocol} position is at high risk of liquidation "
                f"within 3 days. Add collateral or repay debt immediately."
            )
        elif liquidation.estimated_time_to_liquidation < 7 * SECONDS_PER_DAY:
            recommendations.append(
                f"Warning: Your {liquidation.protocol} position may face liquidation within a week "
                f"if market trends continue. Consider risk mitigation."
            )

        if liquidation.price_gap < 10:
            recommendations.append(
                f"Your collateral price is only {liquidation.price_gap:.1f}% above liquidation price. "
                f"Consider adding more collateral."
            )

    if not recommendations:
        recommendations.append(
            "Your positions appear stable. Continue monitoring for any changes in market conditions."
        )

    return recommendations


class RiskAssessmentEngine:
    """Scores liquidity, collateral and liquidation risk over a market data ledger"""

    def __init__(
        self,
        market_data: Optional[MarketData] = None,
        thresholds: Optional[RiskThresholds] = None,
        clock: Callable[[], float] = time.time
    ):
        self.clock = clock
        self.market_data = market_data.model_copy(deep=True) if market_data is not None else default_market_data(clock())
        self.thresholds = thresholds.model_copy(deep=True) if thresholds is not None else RiskThresholds()
        self.base_coin_type = settings.BASE_COIN_TYPE
        self.base_asset_symbol = settings.BASE_ASSET_SYMBOL

        for name in ("liquidity", "collateral", "liquidation"):
            validate_threshold_ordering(getattr(self.thresholds, name), name=name)

    def set_risk_thresholds(
        self,
        liquidity: ThresholdInput = None,
        collateral: ThresholdInput = None,
        liquidation: ThresholdInput = None
    ):
        """Replace cutoffs for any subset of dimensions; all are validated before any is applied"""
        updates = {}
        for name, value in (("liquidity", liquidity), ("collateral", collateral), ("liquidation", liquidation)):
            if value is None:
                continue
            if isinstance(value, dict):
                try:
                    value = RiskThreshold(**value)
                except ValidationError as e:
                    raise InvalidArgumentError(f"Invalid {name} thresholds: {e}") from e
            updates[name] = validate_threshold_ordering(value.model_copy(), name=name)

        self.thresholds = self.thresholds.model_copy(update=updates)
        if updates:
            logger.info("Risk thresholds updated", dimensions=sorted(updates))

    def get_risk_thresholds(self) -> RiskThresholds:
        return self.thresholds.model_copy(deep=True)

    def get_market_data(self) -> MarketData:
        return self.market_data.model_copy(deep=True)

    def update_mock_data(self, data: Union[Dict, MarketDataUpdate]):
        """Shallow-merge top-level ledger fields (payments, positions, prices, price_movements)"""
        if isinstance(data, MarketDataUpdate):
            data = data.model_dump(exclude_none=True)

        merged = {**self.market_data.model_dump(), **data}
        try:
            self.market_data = MarketData(**merged)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid market data update: {e}") from e

        logger.info("Market data updated", fields=sorted(data))

    def _price(self, asset: str) -> float:
        try:
            return self.market_data.prices[asset]
        except KeyError:
            raise NotFoundError(f"No price available for asset {asset}") from None

    def _position_values(self, position: Position):
        borrowed_value = float(position.borrowed_amount) * self._price(position.borrowed_asset)
        collateral_value = float(position.collateral_amount) * self._price(position.collateral_asset)
        return borrowed_value, collateral_value

    def assess_liquidity_risk(self, available_liquidity: str) -> Optional[LiquidityRisk]:
        """Compare available liquidity with upcoming base-coin payment obligations"""
        available = float(available_liquidity)

        base_payments = [p for p in self.market_data.payments if p.coin == self.base_coin_type]
        required_liquidity = sum(float(p.amount) for p in base_payments)

        if required_liquidity == 0:
            return None

        liquidity_ratio = min(100.0, available / required_liquidity * 100)
        next_payment_time = min(p.next_payment_time for p in base_payments)

        return LiquidityRisk(
            required_liquidity=format_amount(required_liquidity),
            available_liquidity=available_liquidity,
            liquidity_ratio=liquidity_ratio,
            risk_level=classify(liquidity_ratio, self.thresholds.liquidity),
            time_until_next_payment=next_payment_time - self.clock()
        )

    def assess_collateral_risk(self) -> Optional[CollateralRisk]:
        """Classify the position with the lowest collateral ratio"""
        if not self.market_data.positions:
            return None

        riskiest = None
        lowest_ratio = math.inf
        for position in self.market_data.positions:
            borrowed_value, collateral_value = self._position_values(position)
            ratio = collateral_ratio(collateral_value, borrowed_value)
            if riskiest is None or ratio < lowest_ratio:
                riskiest, lowest_ratio = position, ratio

        return CollateralRisk(
            borrowed_amount=riskiest.borrowed_amount,
            collateral_amount=riskiest.collateral_amount,
            collateral_ratio=lowest_ratio,
            risk_level=classify(lowest_ratio, self.thresholds.collateral),
            liquidation_threshold=riskiest.liquidation_threshold
        )

    def assess_liquidation_risk(self) -> Optional[LiquidationRisk]:
        """Classify the position with the shortest estimated time to liquidation"""
        if not self.market_data.positions:
            return None

        riskiest = None
        shortest_time = math.inf
        for position in self.market_data.positions:
            borrowed_value, _ = self._position_values(position)
            current_price = self._price(position.collateral_asset)
            liq_price = liquidation_price(
                borrowed_value,
                position.liquidation_threshold,
                float(position.collateral_amount)
            )
            gap = price_gap(current_price, liq_price)
            daily_change = self.market_data.price_movements.get(position.collateral_asset, 0.0)
            time_to_liquidation = estimate_time_to_liquidation(gap, daily_change)

            if riskiest is None or time_to_liquidation < shortest_time:
                shortest_time = time_to_liquidation
                riskiest = (position, current_price, liq_price, gap)

        position, current_price, liq_price, gap = riskiest
        return LiquidationRisk(
            protocol=position.protocol,
            position=(
                f"{position.borrowed_amount} {position.borrowed_asset} borrowed against "
                f"{position.collateral_amount} {position.collateral_asset}"
            ),
            current_price=format_amount(current_price),
            liquidation_price=format_amount(liq_price),
            price_gap=gap,
            estimated_time_to_liquidation=shortest_time,
            risk_level=classify(shortest_time, self.thresholds.liquidation)
        )

    def perform_risk_assessment(self, available_liquidity: str) -> RiskAssessment:
        """Run every dimension and aggregate into an overall level plus actions"""
        liquidity_risk = self.assess_liquidity_risk(available_liquidity)
        collateral_risk = self.assess_collateral_risk()
        liquidation_risk = self.assess_liquidation_risk()

        assessment = RiskAssessment(
            liquidity_risk=liquidity_risk,
            collateral_risk=collateral_risk,
            liquidation_risk=liquidation_risk,
            overall_risk_level=max_risk_level(
                risk.risk_level if risk else None
                for risk in (liquidity_risk, collateral_risk, liquidation_risk)
            )
        )
        assessment.recommended_actions = build_recommendations(
            assessment,
            asset_symbol=self.base_asset_symbol
        )

        log = logger.warning if assessment.overall_risk_level == RiskLevel.CRITICAL else logger.debug
        log("Risk assessment completed",
            overall_risk_level=assessment.overall_risk_level,
            actions=len(assessment.recommended_actions))
        return assessment
