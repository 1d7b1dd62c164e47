"""Market data models — candles, quotes, and indicator snapshots."""

from dataclasses import dataclass

from tradechain.errors import UnknownSymbol


@dataclass(frozen=True)
class CandleData:
    """A single candlestick bar."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True)
class Quote:
    """Demo bid/ask quote for a tradable instrument."""

    symbol: str
    bid: float
    ask: float
    spread: float
    pip_size: float

    @property
    def mid(self) -> float:
        return (self.bid + self.ask) / 2


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Technical indicator readings for one symbol/timeframe at one instant.

    Built fresh for every analysis request and never mutated.
    """

    symbol: str
    timeframe: str
    price: float
    rsi: float
    macd_signal: str  # "BUY" or "SELL"
    macd_histogram: float
    ma20: float
    ma50: float
    bollinger_upper: float
    bollinger_lower: float
    stochastic_k: float
    stochastic_d: float
    atr: float
    volume: int
    timestamp: str

    @property
    def bollinger_mid(self) -> float:
        return (self.bollinger_upper + self.bollinger_lower) / 2

    def indicators_dict(self) -> dict:
        """Return the readings in the nested shape used by the HTTP API."""
        return {
            "rsi": self.rsi,
            "macd": {
                "signal": self.macd_signal,
                "histogram": self.macd_histogram,
            },
            "ma20": self.ma20,
            "ma50": self.ma50,
            "bollinger": {
                "upper": self.bollinger_upper,
                "lower": self.bollinger_lower,
            },
            "stochastic": {
                "k": self.stochastic_k,
                "d": self.stochastic_d,
            },
            "atr": self.atr,
            "volume": self.volume,
        }

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "price": self.price,
            "indicators": self.indicators_dict(),
            "timestamp": self.timestamp,
        }


# ── Instrument metadata ──────────────────────────────────────────────────

INSTRUMENTS: dict[str, Quote] = {
    "EURUSD": Quote("EURUSD", bid=1.0845, ask=1.0847, spread=0.0002, pip_size=0.0001),
    "GBPUSD": Quote("GBPUSD", bid=1.2632, ask=1.2635, spread=0.0003, pip_size=0.0001),
    "USDJPY": Quote("USDJPY", bid=149.83, ask=149.86, spread=0.03, pip_size=0.01),
    "AUDUSD": Quote("AUDUSD", bid=0.6787, ask=0.6789, spread=0.0002, pip_size=0.0001),
    "USDCAD": Quote("USDCAD", bid=1.3456, ask=1.3459, spread=0.0003, pip_size=0.0001),
    "NZDUSD": Quote("NZDUSD", bid=0.6234, ask=0.6236, spread=0.0002, pip_size=0.0001),
    "USDCHF": Quote("USDCHF", bid=0.8765, ask=0.8767, spread=0.0002, pip_size=0.0001),
}


def normalize_symbol(symbol: str) -> str:
    """Upper-case *symbol* and strip separators (``eur/usd`` → ``EURUSD``)."""
    return symbol.upper().replace("/", "").replace("_", "").strip()


def get_quote(symbol: str) -> Quote:
    """Return the demo quote for *symbol*.

    Raises ``UnknownSymbol`` if the instrument is not listed.
    """
    quote = INSTRUMENTS.get(normalize_symbol(symbol))
    if quote is None:
        raise UnknownSymbol(symbol)
    return quote
