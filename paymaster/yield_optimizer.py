import math
from typing import Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from .config import settings, SupportedProtocols, SECONDS_PER_DAY
from .error_handling import InvalidArgumentError, NotFoundError
from .models import ProtocolInfo, ProtocolUpdate, StrategyRecommendation

logger = structlog.get_logger()

MIN_RISK_PREFERENCE = 1
MAX_RISK_PREFERENCE = 10


def default_protocol_catalog() -> List[ProtocolInfo]:
    """Built-in protocol reference data"""
    return [
        ProtocolInfo(
            id=SupportedProtocols.THALA,
            name="Thala",
            current_apy=5.2,
            risk_score=3,
            minimum_deposit="1",
            lockup_period=0
        ),
        ProtocolInfo(
            id=SupportedProtocols.ARIES,
            name="Aries",
            current_apy=7.8,
            risk_score=5,
            minimum_deposit="10",
            lockup_period=7 * SECONDS_PER_DAY
        ),
        ProtocolInfo(
            id=SupportedProtocols.MOMENTUM,
            name="Momentum",
            current_apy=12.5,
            risk_score=8,
            minimum_deposit="100",
            lockup_period=30 * SECONDS_PER_DAY
        ),
    ]


def risk_adjusted_apy(apy: float, risk_score: float, risk_preference: int) -> float:
    """Penalize risk harder the more conservative the user is"""
    risk_penalty = risk_score * (11 - risk_preference) / 10
    return apy - risk_penalty


def risk_level_description(risk_score: float) -> str:
    if risk_score <= 3:
        return "Low"
    if risk_score <= 6:
        return "Medium"
    return "High"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def allocate_percentages(adjusted_apys: List[float]) -> List[int]:
    """
    Split 100% across entries already sorted by priority.

    Each entry but the last is weighted by its share of the total adjusted APY,
    rounded half up and clamped to what is still unallocated. The last entry
    takes the remainder so the result always sums to 100.
    """
    total = sum(adjusted_apys)
    remaining = 100
    allocations = []

    for index, adjusted in enumerate(adjusted_apys):
        if index == len(adjusted_apys) - 1:
            allocation = remaining
        else:
            share = round_half_up(adjusted / total * 100) if total > 0 else 0
            allocation = max(0, min(share, remaining))

        remaining -= allocation
        allocations.append(allocation)

    return allocations


def recommendation_reason(protocol: ProtocolInfo, allocation_percentage: int) -> str:
    """Human-readable justification picked by allocation size"""
    risk_level = risk_level_description(protocol.risk_score)
    apy = f"{protocol.current_apy:g}"

    if allocation_percentage > 50:
        return (
            f"Strongly recommended due to {apy}% APY with {risk_level} risk. "
            f"This protocol offers the best risk-adjusted returns for your profile."
        )
    if allocation_percentage > 25:
        return (
            f"Good allocation due to balanced {apy}% APY and {risk_level} risk profile. "
            f"Diversifies your portfolio."
        )
    return (
        f"Small allocation recommended for diversification. "
        f"Offers {apy}% APY with {risk_level} risk."
    )


class YieldAllocationOptimizer:
    """Ranks yield protocols by risk-adjusted APY and splits idle funds across them"""

    def __init__(
        self,
        risk_preference: int = settings.DEFAULT_RISK_PREFERENCE,
        protocols: Optional[List[ProtocolInfo]] = None
    ):
        self._validate_risk_preference(risk_preference)
        self.risk_preference = risk_preference
        self.protocols = [p.model_copy() for p in protocols] if protocols is not None else default_protocol_catalog()

    @staticmethod
    def _validate_risk_preference(risk_preference: int):
        if not MIN_RISK_PREFERENCE <= risk_preference <= MAX_RISK_PREFERENCE:
            raise InvalidArgumentError(
                f"Risk preference must be between {MIN_RISK_PREFERENCE} and {MAX_RISK_PREFERENCE}"
            )

    def set_risk_preference(self, risk_preference: int):
        """Replace the user risk preference (1 = most conservative)"""
        self._validate_risk_preference(risk_preference)
        self.risk_preference = risk_preference
        logger.info("Risk preference updated", risk_preference=risk_preference)

    def update_protocol_info(
        self,
        protocol_id: int,
        updates: Union[Dict, ProtocolUpdate]
    ) -> ProtocolInfo:
        """Merge partial fields into a catalog entry"""
        index = next((i for i, p in enumerate(self.protocols) if p.id == protocol_id), None)
        if index is None:
            raise NotFoundError(f"Protocol with ID {protocol_id} not found")

        if isinstance(updates, ProtocolUpdate):
            updates = updates.model_dump(exclude_unset=True)

        merged = {**self.protocols[index].model_dump(), **updates}
        try:
            updated = ProtocolInfo(**merged)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid update for protocol {protocol_id}: {e}") from e

        self.protocols[index] = updated
        logger.info("Protocol info updated", protocol_id=protocol_id, fields=sorted(updates))
        return updated.model_copy()

    def get_protocols_info(self) -> List[ProtocolInfo]:
        return [p.model_copy() for p in self.protocols]

    def optimize_allocation(
        self,
        available_funds: str,
        emergency_funds_percentage: float = settings.DEFAULT_EMERGENCY_FUNDS_PERCENTAGE
    ) -> List[StrategyRecommendation]:
        """Recommend a percentage split of allocatable funds across eligible protocols"""
        funds = float(available_funds)
        emergency_funds = funds * (emergency_funds_percentage / 100)
        allocatable_funds = funds - emergency_funds

        if allocatable_funds <= 0:
            return []

        eligible = [p for p in self.protocols if float(p.minimum_deposit) <= allocatable_funds]
        if not eligible:
            logger.debug("No eligible protocols", allocatable_funds=allocatable_funds)
            return []

        # sorted() is stable, equal scores keep catalog order
        ranked = sorted(
            ((p, risk_adjusted_apy(p.current_apy, p.risk_score, self.risk_preference)) for p in eligible),
            key=lambda item: item[1],
            reverse=True
        )
        allocations = allocate_percentages([adjusted for _, adjusted in ranked])

        recommendations = []
        for (protocol, _), allocation in zip(ranked, allocations):
            if allocation <= 0:
                continue
            recommendations.append(StrategyRecommendation(
                protocol_id=protocol.id,
                protocol_name=protocol.name,
                allocation_percentage=allocation,
                expected_apy=protocol.current_apy,
                risk_level=risk_level_description(protocol.risk_score),
                reason=recommendation_reason(protocol, allocation)
            ))

        logger.debug(
            "Allocation optimized",
            allocatable_funds=allocatable_funds,
            risk_preference=self.risk_preference,
            allocations={r.protocol_name: r.allocation_percentage for r in recommendations}
        )
        return recommendations

    def should_rebalance(
        self,
        current_allocation: Dict[int, float],
        reference_funds: Optional[str] = None
    ) -> bool:
        """
        Check whether any protocol drifted from the recommended split.

        The recommendation is computed for a fixed reference amount
        (REBALANCE_REFERENCE_FUNDS) unless the caller passes the real amount
        under management. Protocols missing from either side count as 0%.
        """
        funds = reference_funds if reference_funds is not None else settings.REBALANCE_REFERENCE_FUNDS
        recommended = {
            rec.protocol_id: rec.allocation_percentage
            for rec in self.optimize_allocation(funds)
        }

        for protocol_id in set(current_allocation) | set(recommended):
            current = current_allocation.get(protocol_id, 0)
            target = recommended.get(protocol_id, 0)
            if abs(current - target) > settings.REBALANCE_DRIFT_THRESHOLD:
                logger.info(
                    "Rebalance recommended",
                    protocol_id=protocol_id,
                    current=current,
                    recommended=target
                )
                return True

        return False
