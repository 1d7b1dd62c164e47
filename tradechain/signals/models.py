"""Signal data models — typed representations for generator output."""

from dataclasses import dataclass
from typing import Optional

from tradechain.market.models import IndicatorSnapshot

BUY = "BUY"
SELL = "SELL"
DIRECTIONS = (BUY, SELL)


def check_level_order(
    direction: str,
    entry: float,
    stop_loss: float,
    take_profit: float,
) -> None:
    """Raise ``ValueError`` unless the levels sit on the correct sides of entry.

    BUY: ``stop_loss < entry < take_profit``.
    SELL: ``take_profit < entry < stop_loss``.
    """
    if direction == BUY:
        ok = stop_loss < entry < take_profit
    elif direction == SELL:
        ok = take_profit < entry < stop_loss
    else:
        raise ValueError(f"direction must be 'BUY' or 'SELL', got '{direction}'")
    if not ok:
        raise ValueError(
            f"{direction} levels out of order: sl={stop_loss} entry={entry} tp={take_profit}"
        )


@dataclass(frozen=True)
class TechnicalSignal:
    """A directional trade proposal produced from an indicator snapshot."""

    symbol: str
    direction: str  # "BUY" or "SELL"
    confidence: int  # 0–100
    entry: float
    stop_loss: float
    take_profit: float
    timestamp: str
    snapshot: Optional[IndicatorSnapshot] = None

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be 0–100, got {self.confidence}")
        check_level_order(self.direction, self.entry, self.stop_loss, self.take_profit)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "signal": self.direction,
            "type": self.direction,
            "confidence": self.confidence,
            "entry": self.entry,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "timestamp": self.timestamp,
        }
