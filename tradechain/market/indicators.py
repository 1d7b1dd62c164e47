"""Technical indicators — ATR, EMA, RSI, MACD, Bollinger, Stochastic. Pure functions, no I/O."""

import math

from tradechain.market.models import CandleData


def _require(candles: list[CandleData], needed: int, name: str) -> None:
    if len(candles) < needed:
        raise ValueError(
            f"Need at least {needed} candles for {name}, got {len(candles)}"
        )


def _ema_values(values: list[float], period: int) -> list[float]:
    """EMA over a raw value series, seeded with the SMA of the first *period*.

    Entries before the seed are ``float('nan')``.
    """
    k = 2.0 / (period + 1)
    out: list[float] = [float("nan")] * len(values)
    if len(values) < period:
        return out
    out[period - 1] = sum(values[:period]) / period
    for i in range(period, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1 - k)
    return out


def calculate_atr(candles: list[CandleData], period: int = 14) -> float:
    """Average True Range over the last *period* bars.

    ``TR = max(high - low, |high - prev_close|, |low - prev_close|)``;
    returns the simple average of the last *period* true ranges.
    """
    _require(candles, period + 1, f"ATR({period})")

    true_ranges = [
        max(
            cur.high - cur.low,
            abs(cur.high - prev.close),
            abs(cur.low - prev.close),
        )
        for prev, cur in zip(candles, candles[1:])
    ]
    recent = true_ranges[-period:]
    return sum(recent) / len(recent)


def calculate_ema(candles: list[CandleData], period: int) -> list[float]:
    """EMA of closes, same length as *candles*."""
    _require(candles, period, f"EMA({period})")
    return _ema_values([c.close for c in candles], period)


def calculate_rsi(candles: list[CandleData], period: int = 14) -> float:
    """Wilder-smoothed RSI of the most recent bar.

    Seeds average gain/loss with the SMA of the first *period* deltas,
    then applies ``avg = (prev × (period − 1) + current) / period``.
    """
    _require(candles, period + 1, f"RSI({period})")

    closes = [c.close for c in candles]
    deltas = [b - a for a, b in zip(closes, closes[1:])]
    gains = [max(d, 0.0) for d in deltas]
    losses = [max(-d, 0.0) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def calculate_macd(
    candles: list[CandleData],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[float, float]:
    """Return ``(macd_line, histogram)`` for the most recent bar.

    ``macd_line = EMA(fast) − EMA(slow)``; the signal line is an EMA of
    the MACD line; ``histogram = macd_line − signal_line``.
    """
    _require(candles, slow + signal - 1, f"MACD({fast},{slow},{signal})")

    closes = [c.close for c in candles]
    fast_ema = _ema_values(closes, fast)
    slow_ema = _ema_values(closes, slow)
    macd_line = [f - s for f, s in zip(fast_ema[slow - 1:], slow_ema[slow - 1:])]
    signal_line = _ema_values(macd_line, signal)
    return macd_line[-1], macd_line[-1] - signal_line[-1]


def calculate_bollinger(
    candles: list[CandleData],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[float, float, float]:
    """Return ``(upper, middle, lower)`` bands for the most recent bar."""
    _require(candles, period, f"Bollinger({period})")

    window = [c.close for c in candles[-period:]]
    sma = sum(window) / period
    sigma = math.sqrt(sum((x - sma) ** 2 for x in window) / period)
    return sma + std_dev * sigma, sma, sma - std_dev * sigma


def calculate_stochastic(
    candles: list[CandleData],
    k_period: int = 14,
    d_period: int = 3,
) -> tuple[float, float]:
    """Return ``(%K, %D)`` for the most recent bar.

    ``%K = 100 × (close − lowest_low) / (highest_high − lowest_low)``;
    ``%D`` is the SMA of the last *d_period* %K values.  A flat range
    yields 50.
    """
    _require(candles, k_period + d_period - 1, f"Stochastic({k_period},{d_period})")

    k_values: list[float] = []
    for end in range(len(candles) - d_period + 1, len(candles) + 1):
        window = candles[end - k_period:end]
        lowest = min(c.low for c in window)
        highest = max(c.high for c in window)
        if highest == lowest:
            k_values.append(50.0)
        else:
            k_values.append(100.0 * (window[-1].close - lowest) / (highest - lowest))
    return k_values[-1], sum(k_values) / len(k_values)
