"""Signal policies — how an indicator snapshot becomes a direction and confidence.

``IndicatorVotePolicy`` is the production rule.  ``RandomSignalPolicy``
reproduces the demo behaviour and is only meant for the dashboard and tests.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, runtime_checkable

import numpy as np

from tradechain.market.models import IndicatorSnapshot
from tradechain.signals.models import BUY, SELL

MIN_CONFIDENCE = 70
MAX_CONFIDENCE = 100


@runtime_checkable
class SignalPolicy(Protocol):
    """Interface that every signal policy must satisfy."""

    def decide(self, snapshot: IndicatorSnapshot) -> tuple[str, int]:
        """Return ``(direction, confidence)`` for *snapshot*."""
        ...


def indicator_votes(snapshot: IndicatorSnapshot) -> list[str]:
    """Return one BUY/SELL vote per indicator family.

    * RSI: overbought (≥ 70) sells, oversold (≤ 30) buys, otherwise
      momentum side of 50.
    * MACD: the crossover signal.
    * Moving averages: MA20 above MA50 buys.
    * Bollinger: price above the band midline buys.
    * Stochastic: %K above %D buys.
    """
    if snapshot.rsi >= 70:
        rsi_vote = SELL
    elif snapshot.rsi <= 30:
        rsi_vote = BUY
    else:
        rsi_vote = BUY if snapshot.rsi >= 50 else SELL

    return [
        rsi_vote,
        BUY if snapshot.macd_signal == BUY else SELL,
        BUY if snapshot.ma20 > snapshot.ma50 else SELL,
        BUY if snapshot.price > snapshot.bollinger_mid else SELL,
        BUY if snapshot.stochastic_k > snapshot.stochastic_d else SELL,
    ]


class IndicatorVotePolicy:
    """Majority vote across indicator families.

    Confidence maps the winning share linearly from an even split
    (70) to unanimity (100).
    """

    def decide(self, snapshot: IndicatorSnapshot) -> tuple[str, int]:
        votes = indicator_votes(snapshot)
        buys = votes.count(BUY)
        sells = len(votes) - buys
        direction = BUY if buys >= sells else SELL
        share = max(buys, sells) / len(votes)
        confidence = MIN_CONFIDENCE + (MAX_CONFIDENCE - MIN_CONFIDENCE) * (share - 0.5) / 0.5
        return direction, int(round(min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE)))


class RandomSignalPolicy:
    """Demo policy: BUY with probability 0.6, confidence uniform in [70, 99]."""

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()

    def decide(self, snapshot: IndicatorSnapshot) -> tuple[str, int]:
        direction = BUY if self._rng.random() > 0.4 else SELL
        return direction, int(self._rng.integers(MIN_CONFIDENCE, MAX_CONFIDENCE))


# Factories taking an optional numpy Generator.
SIGNAL_POLICY_REGISTRY: dict[str, Callable[[Optional[np.random.Generator]], SignalPolicy]] = {
    "indicator_vote": lambda rng=None: IndicatorVotePolicy(),
    "random": RandomSignalPolicy,
}


def get_signal_policy(name: str, rng: Optional[np.random.Generator] = None) -> SignalPolicy:
    """Look up and instantiate a signal policy by registry key.

    Raises ``KeyError`` if the policy name is not registered.
    """
    if name not in SIGNAL_POLICY_REGISTRY:
        raise KeyError(
            f"Unknown signal policy '{name}'. "
            f"Available: {', '.join(SIGNAL_POLICY_REGISTRY.keys())}"
        )
    return SIGNAL_POLICY_REGISTRY[name](rng)
