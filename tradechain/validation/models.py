"""Validation data models."""

from dataclasses import dataclass, field

RISK_LOW = "LOW"
RISK_MEDIUM = "MEDIUM"
RISK_HIGH = "HIGH"

APPROVED_RECOMMENDATIONS = (
    "Signal approved for execution",
    "Risk/reward ratio acceptable",
    "Market conditions favorable",
)
REJECTED_RECOMMENDATIONS = (
    "Signal requires additional confirmation",
    "Consider reducing position size",
    "Monitor market conditions closely",
)

RISK_FACTORS = (
    "Economic calendar events",
    "Market session overlap",
    "Support/resistance levels",
    "Correlation analysis",
)


@dataclass(frozen=True)
class MarketConditions:
    """Categorical market assessment used for scoring."""

    volatility: str  # "HIGH" or "NORMAL"
    trend: str  # "BULLISH" or "BEARISH"
    volume: str  # "ABOVE_AVERAGE" or "NORMAL"
    news_impact: str  # "HIGH" or "LOW"

    def to_dict(self) -> dict:
        return {
            "volatility": self.volatility,
            "trend": self.trend,
            "volume": self.volume,
            "newsImpact": self.news_impact,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of scoring one signal.  ``approved`` iff ``score >= threshold``."""

    original_signal: dict
    market_conditions: MarketConditions
    score: int
    approved: bool
    risk_level: str
    threshold: float = 75
    recommendations: tuple[str, ...] = field(default_factory=tuple)
    timestamp: str = ""

    def __post_init__(self) -> None:
        if self.approved != (self.score >= self.threshold):
            raise ValueError(
                f"approved={self.approved} inconsistent with score {self.score} "
                f"and threshold {self.threshold}"
            )

    @property
    def next_step(self) -> str:
        if self.approved:
            return "Forward to AI 3 - Strategy Executor"
        return "Request additional analysis"
