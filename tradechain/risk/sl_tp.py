"""Stop-loss and take-profit calculation — pure math, no I/O.

Levels are fixed percentage offsets from the entry price:

- **BUY**:  SL = entry × (1 − sl_pct/100), TP = entry × (1 + tp_pct/100)
- **SELL**: SL = entry × (1 + sl_pct/100), TP = entry × (1 − tp_pct/100)
"""

from dataclasses import dataclass

DEFAULT_SL_PCT = 0.5
DEFAULT_TP_PCT = 1.5


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and take-profit for a trade."""

    sl: float
    tp: float


def calculate_levels(
    entry_price: float,
    direction: str,
    sl_pct: float = DEFAULT_SL_PCT,
    tp_pct: float = DEFAULT_TP_PCT,
) -> RiskLevels:
    """Calculate direction-aware SL and TP prices.

    Args:
        entry_price: Trade entry price (must be positive).
        direction: ``"BUY"`` or ``"SELL"`` (case-insensitive).
        sl_pct: Stop-loss distance as a percentage of entry (default 0.5).
        tp_pct: Take-profit distance as a percentage of entry (default 1.5).

    Raises:
        ValueError: If *direction* is not BUY/SELL or an input is non-positive.
    """
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if sl_pct <= 0 or tp_pct <= 0:
        raise ValueError(f"sl_pct and tp_pct must be positive, got {sl_pct}, {tp_pct}")

    sl_dist = entry_price * sl_pct / 100.0
    tp_dist = entry_price * tp_pct / 100.0

    side = direction.upper()
    if side == "BUY":
        return RiskLevels(sl=entry_price - sl_dist, tp=entry_price + tp_dist)
    if side == "SELL":
        return RiskLevels(sl=entry_price + sl_dist, tp=entry_price - tp_dist)
    raise ValueError(f"direction must be 'BUY' or 'SELL', got '{direction}'")
