"""Indicator snapshot builders.

``build_snapshot_from_candles`` evaluates real indicators over candle data.
``SyntheticSnapshotBuilder`` produces demo readings with the same value
ranges the dashboard has always shown, and can also synthesize candles so
the real indicator path runs without a market data feed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np

from tradechain.market.indicators import (
    calculate_atr,
    calculate_bollinger,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_stochastic,
)
from tradechain.market.models import (
    CandleData,
    IndicatorSnapshot,
    get_quote,
    normalize_symbol,
)

logger = logging.getLogger("tradechain")

# EMA(50) needs 50 bars, MACD(12,26,9) needs 34.
MIN_CANDLES = 50


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_snapshot_from_candles(
    symbol: str,
    timeframe: str,
    candles: list[CandleData],
) -> IndicatorSnapshot:
    """Evaluate the standard indicator set over *candles*.

    Raises ``ValueError`` if fewer than ``MIN_CANDLES`` bars are supplied.
    """
    if len(candles) < MIN_CANDLES:
        raise ValueError(
            f"Need at least {MIN_CANDLES} candles for a snapshot, got {len(candles)}"
        )

    upper, _, lower = calculate_bollinger(candles)
    _, histogram = calculate_macd(candles)
    k, d = calculate_stochastic(candles)

    return IndicatorSnapshot(
        symbol=normalize_symbol(symbol),
        timeframe=timeframe,
        price=candles[-1].close,
        rsi=calculate_rsi(candles),
        macd_signal="BUY" if histogram >= 0 else "SELL",
        macd_histogram=histogram,
        ma20=calculate_ema(candles, 20)[-1],
        ma50=calculate_ema(candles, 50)[-1],
        bollinger_upper=upper,
        bollinger_lower=lower,
        stochastic_k=k,
        stochastic_d=d,
        atr=calculate_atr(candles),
        volume=candles[-1].volume,
        timestamp=_now_iso(),
    )


class SyntheticSnapshotBuilder:
    """Demo snapshot source backed by a seedable numpy ``Generator``.

    Args:
        rng: Random generator; a fresh unseeded one is used when omitted.
        from_candles: When ``True``, synthesize a candle series and run
            the real indicators over it instead of drawing readings
            independently.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        from_candles: bool = False,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self._from_candles = from_candles

    def build(self, symbol: str, timeframe: str = "1H") -> IndicatorSnapshot:
        """Return a snapshot for *symbol*.

        Raises ``UnknownSymbol`` if the instrument is not listed.
        """
        quote = get_quote(symbol)
        if self._from_candles:
            candles = generate_candles(quote.symbol, count=120, rng=self._rng)
            return build_snapshot_from_candles(quote.symbol, timeframe, candles)

        rng = self._rng
        # Readings are scaled around the reference EURUSD level so every
        # instrument gets proportionate offsets.
        scale = quote.mid / 1.0850
        return IndicatorSnapshot(
            symbol=quote.symbol,
            timeframe=timeframe,
            price=float((1.0850 + rng.uniform(0, 0.01)) * scale),
            rsi=float(45 + rng.uniform(0, 40)),
            macd_signal="BUY" if rng.random() > 0.5 else "SELL",
            macd_histogram=float((rng.random() - 0.5) * 0.001),
            ma20=float((1.0840 + rng.uniform(0, 0.01)) * scale),
            ma50=float((1.0830 + rng.uniform(0, 0.01)) * scale),
            bollinger_upper=float((1.0870 + rng.uniform(0, 0.005)) * scale),
            bollinger_lower=float((1.0820 + rng.uniform(0, 0.005)) * scale),
            stochastic_k=float(rng.uniform(0, 100)),
            stochastic_d=float(rng.uniform(0, 100)),
            atr=float((0.0015 + rng.uniform(0, 0.0005)) * scale),
            volume=int(rng.integers(5000, 15000)),
            timestamp=_now_iso(),
        )


def generate_candles(
    symbol: str,
    count: int = 120,
    rng: Optional[np.random.Generator] = None,
    interval_minutes: int = 60,
) -> list[CandleData]:
    """Generate a random-walk candle series around the instrument's mid price.

    Per-bar volatility is roughly five pips of the instrument.
    """
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")
    quote = get_quote(symbol)
    rng = rng if rng is not None else np.random.default_rng()

    step = quote.pip_size * 5
    closes = quote.mid + np.cumsum(rng.normal(0.0, step, size=count))
    opens = np.concatenate(([quote.mid], closes[:-1]))
    wicks = np.abs(rng.normal(0.0, step / 2, size=(2, count)))
    highs = np.maximum(opens, closes) + wicks[0]
    lows = np.minimum(opens, closes) - wicks[1]
    volumes = rng.integers(5000, 15000, size=count)

    start = datetime.now(timezone.utc) - timedelta(minutes=interval_minutes * count)
    candles = [
        CandleData(
            time=(start + timedelta(minutes=interval_minutes * i)).isoformat(),
            open=float(opens[i]),
            high=float(highs[i]),
            low=float(lows[i]),
            close=float(closes[i]),
            volume=int(volumes[i]),
        )
        for i in range(count)
    ]
    logger.debug("Generated %d synthetic candles for %s", count, quote.symbol)
    return candles
