"""Signal validator — scores a proposed signal and approves or rejects it."""

import logging
from datetime import datetime, timezone
from typing import Optional

from tradechain.errors import MissingSignalData
from tradechain.validation.models import (
    APPROVED_RECOMMENDATIONS,
    REJECTED_RECOMMENDATIONS,
    RISK_HIGH,
    RISK_LOW,
    RISK_MEDIUM,
    ValidationResult,
)
from tradechain.validation.policy import ValidationPolicy, WeightedValidationPolicy

logger = logging.getLogger("tradechain")

DEFAULT_APPROVAL_THRESHOLD = 75


def classify_risk_level(score: float) -> str:
    """LOW for ≥ 85, MEDIUM for [70, 85), HIGH below 70."""
    if score >= 85:
        return RISK_LOW
    if score >= 70:
        return RISK_MEDIUM
    return RISK_HIGH


def validate_signal(
    signal_data: Optional[dict],
    technical: Optional[dict] = None,
    policy: Optional[ValidationPolicy] = None,
    threshold: float = DEFAULT_APPROVAL_THRESHOLD,
) -> ValidationResult:
    """Score *signal_data* and decide approval.

    The risk-level bands are fixed regardless of *threshold*.

    Raises:
        MissingSignalData: If no signal object is supplied.
    """
    if not signal_data or not isinstance(signal_data, dict):
        raise MissingSignalData()
    if not isinstance(technical, dict):
        technical = None

    policy = policy or WeightedValidationPolicy()
    conditions, score = policy.assess(signal_data, technical)
    approved = score >= threshold

    result = ValidationResult(
        original_signal=signal_data,
        market_conditions=conditions,
        score=score,
        approved=approved,
        risk_level=classify_risk_level(score),
        threshold=threshold,
        recommendations=APPROVED_RECOMMENDATIONS if approved else REJECTED_RECOMMENDATIONS,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    logger.info(
        "Signal %s %s scored %d (%s) — %s",
        signal_data.get("symbol", "?"),
        signal_data.get("action") or signal_data.get("type") or signal_data.get("signal", "?"),
        score,
        result.risk_level,
        "approved" if approved else "rejected",
    )
    return result
