"""Validation policies — market-condition assessment and scoring.

``WeightedValidationPolicy`` scores a signal with explicit per-factor
weights.  ``RandomValidationPolicy`` reproduces the demo draw.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Protocol, runtime_checkable

import numpy as np

from tradechain.validation.models import MarketConditions

# Score weights (sum to 100 with the base).
BASE_SCORE = 50
WEIGHT_NORMAL_VOLATILITY = 10
WEIGHT_TREND_ALIGNED = 20
WEIGHT_VOLUME = 10
WEIGHT_LOW_NEWS = 10
WEIGHT_CONFIDENCE = 10

HIGH_VOLATILITY_ATR_PCT = 0.15
ABOVE_AVERAGE_VOLUME = 10_000


@runtime_checkable
class ValidationPolicy(Protocol):
    """Interface that every validation policy must satisfy."""

    def assess(
        self, signal_data: dict, technical: Optional[dict] = None,
    ) -> tuple[MarketConditions, int]:
        """Return market conditions and a 0–100 score for the signal."""
        ...


def as_float(value) -> Optional[float]:
    """Parse a loosely-typed numeric field; ``None`` when absent or unreadable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def signal_direction(signal_data: dict, technical: Optional[dict] = None) -> Optional[str]:
    """Extract BUY/SELL from the loosely-shaped signal payloads callers send."""
    for source in (signal_data, technical or {}):
        for key in ("action", "type", "signal", "direction"):
            value = source.get(key)
            if isinstance(value, str) and value.upper() in ("BUY", "SELL"):
                return value.upper()
    return None


def _indicators(technical: Optional[dict]) -> dict:
    if not technical:
        return {}
    indicators = technical.get("indicators")
    return indicators if isinstance(indicators, dict) else {}


def assess_conditions(signal_data: dict, technical: Optional[dict] = None) -> MarketConditions:
    """Derive market conditions from whatever technical context is present.

    Absent or non-numeric readings fall back to the neutral category.
    Trend falls back to the upstream technical direction when moving
    averages are missing.
    """
    ind = _indicators(technical)
    price = as_float(
        (technical or {}).get("entry") or signal_data.get("price") or signal_data.get("entry")
    )

    volatility = "NORMAL"
    atr = as_float(ind.get("atr"))
    if atr and price:
        if atr / price * 100 >= HIGH_VOLATILITY_ATR_PCT:
            volatility = "HIGH"

    ma20, ma50 = as_float(ind.get("ma20")), as_float(ind.get("ma50"))
    if ma20 is not None and ma50 is not None:
        trend = "BULLISH" if ma20 > ma50 else "BEARISH"
    else:
        upstream = signal_direction(technical or {}) or signal_direction(signal_data)
        trend = "BEARISH" if upstream == "SELL" else "BULLISH"

    volume_value = as_float(ind.get("volume"))
    volume = (
        "ABOVE_AVERAGE"
        if volume_value is not None and volume_value >= ABOVE_AVERAGE_VOLUME
        else "NORMAL"
    )

    news = str(signal_data.get("newsImpact", "LOW")).upper()
    news_impact = "HIGH" if news == "HIGH" else "LOW"

    return MarketConditions(
        volatility=volatility, trend=trend, volume=volume, news_impact=news_impact,
    )


class WeightedValidationPolicy:
    """Explicitly weighted scoring.

    ====================  ======
    factor                points
    ====================  ======
    base                  50
    normal volatility     10
    trend aligned         20
    volume above average  10
    low news impact       10
    upstream confidence   0–10 (linear over 70–100)
    ====================  ======
    """

    def assess(
        self, signal_data: dict, technical: Optional[dict] = None,
    ) -> tuple[MarketConditions, int]:
        conditions = assess_conditions(signal_data, technical)
        direction = signal_direction(signal_data, technical)

        score = float(BASE_SCORE)
        if conditions.volatility == "NORMAL":
            score += WEIGHT_NORMAL_VOLATILITY
        if (direction == "BUY" and conditions.trend == "BULLISH") or (
            direction == "SELL" and conditions.trend == "BEARISH"
        ):
            score += WEIGHT_TREND_ALIGNED
        if conditions.volume == "ABOVE_AVERAGE":
            score += WEIGHT_VOLUME
        if conditions.news_impact == "LOW":
            score += WEIGHT_LOW_NEWS

        confidence = as_float(
            (technical or {}).get("confidence", signal_data.get("confidence"))
        )
        if confidence is not None:
            bonus = (confidence - 70) / 30 * WEIGHT_CONFIDENCE
            score += min(max(bonus, 0.0), WEIGHT_CONFIDENCE)

        return conditions, int(round(min(max(score, 0.0), 100.0)))


class RandomValidationPolicy:
    """Demo policy: categories and a score in [60, 99] drawn at random."""

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()

    def assess(
        self, signal_data: dict, technical: Optional[dict] = None,
    ) -> tuple[MarketConditions, int]:
        rng = self._rng
        conditions = MarketConditions(
            volatility="HIGH" if rng.random() > 0.5 else "NORMAL",
            trend="BULLISH" if rng.random() > 0.5 else "BEARISH",
            volume="ABOVE_AVERAGE" if rng.random() > 0.6 else "NORMAL",
            news_impact="HIGH" if rng.random() > 0.8 else "LOW",
        )
        return conditions, int(rng.integers(60, 100))


VALIDATION_POLICY_REGISTRY: dict[str, Callable[[Optional[np.random.Generator]], ValidationPolicy]] = {
    "weighted": lambda rng=None: WeightedValidationPolicy(),
    "random": RandomValidationPolicy,
}


def get_validation_policy(
    name: str, rng: Optional[np.random.Generator] = None,
) -> ValidationPolicy:
    """Look up and instantiate a validation policy by registry key.

    Raises ``KeyError`` if the policy name is not registered.
    """
    if name not in VALIDATION_POLICY_REGISTRY:
        raise KeyError(
            f"Unknown validation policy '{name}'. "
            f"Available: {', '.join(VALIDATION_POLICY_REGISTRY.keys())}"
        )
    return VALIDATION_POLICY_REGISTRY[name](rng)
