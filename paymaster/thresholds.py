"""
Ordered threshold lookup shared by every risk dimension.

A RiskThreshold holds three cutoffs (medium, high, critical). Classification
checks them from most to least severe and the first cutoff the value reaches
wins, so every dimension breaks ties the same way: a value sitting exactly on
a cutoff takes that cutoff's level.
"""
from typing import Iterable, Optional

from .config import RiskLevel
from .error_handling import InvalidArgumentError
from .models import RiskThreshold


def _reaches(value: float, cutoff: float, lower_is_riskier: bool) -> bool:
    if lower_is_riskier:
        return value <= cutoff
    return value >= cutoff


def validate_threshold_ordering(
    threshold: RiskThreshold,
    lower_is_riskier: bool = True,
    name: str = "threshold"
) -> RiskThreshold:
    """Reject cutoffs that would make severity non-monotonic"""
    if lower_is_riskier:
        ordered = threshold.medium > threshold.high > threshold.critical
        expected = "medium > high > critical"
    else:
        ordered = threshold.medium < threshold.high < threshold.critical
        expected = "medium < high < critical"

    if not ordered:
        raise InvalidArgumentError(
            f"Invalid {name} thresholds: expected {expected}, got "
            f"medium={threshold.medium}, high={threshold.high}, critical={threshold.critical}"
        )
    return threshold


def classify(value: float, threshold: RiskThreshold, lower_is_riskier: bool = True) -> str:
    """Map a value onto a risk level using inclusive cutoffs"""
    if _reaches(value, threshold.critical, lower_is_riskier):
        return RiskLevel.CRITICAL
    if _reaches(value, threshold.high, lower_is_riskier):
        return RiskLevel.HIGH
    if _reaches(value, threshold.medium, lower_is_riskier):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def max_risk_level(levels: Iterable[Optional[str]]) -> str:
    """Most severe level among the given ones; Low when nothing is present"""
    present = [level for level in levels if level]
    if not present:
        return RiskLevel.LOW
    return max(present, key=RiskLevel.rank)
