"""Technical signal generator — snapshot in, ``TechnicalSignal`` out.

Direction and confidence come from an injected ``SignalPolicy``; stop-loss
and take-profit are fixed percentage offsets from the snapshot price.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from tradechain.market.models import IndicatorSnapshot, get_quote
from tradechain.market.snapshot import SyntheticSnapshotBuilder
from tradechain.risk.sl_tp import DEFAULT_SL_PCT, DEFAULT_TP_PCT, calculate_levels
from tradechain.signals.models import TechnicalSignal
from tradechain.signals.policy import IndicatorVotePolicy, SignalPolicy

logger = logging.getLogger("tradechain")


class SignalGenerator:
    """Builds technical signals for a symbol.

    Args:
        policy: Decides direction and confidence (default majority vote).
        builder: Snapshot source used when the caller supplies none.
        sl_pct: Stop-loss offset as a percentage of entry.
        tp_pct: Take-profit offset as a percentage of entry.
    """

    def __init__(
        self,
        policy: Optional[SignalPolicy] = None,
        builder: Optional[SyntheticSnapshotBuilder] = None,
        sl_pct: float = DEFAULT_SL_PCT,
        tp_pct: float = DEFAULT_TP_PCT,
    ) -> None:
        self._policy = policy or IndicatorVotePolicy()
        self._builder = builder or SyntheticSnapshotBuilder()
        self._sl_pct = sl_pct
        self._tp_pct = tp_pct

    def generate(
        self,
        symbol: str,
        timeframe: str = "1H",
        snapshot: Optional[IndicatorSnapshot] = None,
    ) -> TechnicalSignal:
        """Produce a signal for *symbol*.

        A snapshot is synthesized when none is given.  Raises
        ``UnknownSymbol`` if *symbol* is not a listed instrument.
        """
        if snapshot is None:
            quote = get_quote(symbol)
            snapshot = self._builder.build(quote.symbol, timeframe)

        direction, confidence = self._policy.decide(snapshot)
        levels = calculate_levels(snapshot.price, direction, self._sl_pct, self._tp_pct)

        signal = TechnicalSignal(
            symbol=snapshot.symbol,
            direction=direction,
            confidence=confidence,
            entry=snapshot.price,
            stop_loss=levels.sl,
            take_profit=levels.tp,
            timestamp=datetime.now(timezone.utc).isoformat(),
            snapshot=snapshot,
        )
        logger.info(
            "Technical signal %s %s (confidence %d%%) entry=%.5f",
            signal.direction, signal.symbol, signal.confidence, signal.entry,
        )
        return signal
