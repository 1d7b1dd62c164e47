"""Personal trading assistant (AI 4) — request routing and demo context.

The assistant classifies a free-text message, attaches demo market or news
context, and asks the AI client for commentary.
"""

from datetime import datetime, timezone
from typing import Optional

from tradechain.ai.client import AIService

NEWS_SENTIMENT = "news_sentiment"
MARKET_INSIGHT = "market_insight"
CHAT_ASSISTANCE = "chat_assistance"
GENERAL_ASSISTANCE = "general_assistance"

_KEYWORDS = [
    (NEWS_SENTIMENT, ("news", "sentiment", "berita")),
    (MARKET_INSIGHT, ("market", "analysis", "pasar")),
    (CHAT_ASSISTANCE, ("help", "bantuan", "bagaimana")),
]

DEMO_NEWS = [
    {
        "title": "Fed Maintains Interest Rates, Signals Cautious Approach",
        "source": "Reuters",
        "sentiment": "NEUTRAL",
        "impact": "MEDIUM",
        "relevantPairs": ["EURUSD", "GBPUSD", "USDJPY"],
        "summary": "Federal Reserve keeps rates unchanged, market shows mixed reaction",
    },
    {
        "title": "ECB President Hints at Potential Rate Cuts",
        "source": "Bloomberg",
        "sentiment": "BEARISH_EUR",
        "impact": "HIGH",
        "relevantPairs": ["EURUSD", "EURGBP"],
        "summary": "European Central Bank considers monetary easing amid economic concerns",
    },
    {
        "title": "Strong US Employment Data Boosts Dollar",
        "source": "MarketWatch",
        "sentiment": "BULLISH_USD",
        "impact": "HIGH",
        "relevantPairs": ["EURUSD", "GBPUSD", "USDJPY", "AUDUSD"],
        "summary": "Non-farm payrolls exceed expectations, strengthening USD outlook",
    },
]

DEMO_MARKET = {
    "majorPairs": {
        "EURUSD": {"price": 1.0845, "change": -0.0012, "trend": "BEARISH"},
        "GBPUSD": {"price": 1.2634, "change": 0.0008, "trend": "BULLISH"},
        "USDJPY": {"price": 149.85, "change": 0.45, "trend": "BULLISH"},
        "AUDUSD": {"price": 0.6789, "change": -0.0023, "trend": "BEARISH"},
    },
    "marketSession": "London",
    "volatility": "MEDIUM",
    "volume": "ABOVE_AVERAGE",
    "keyLevels": {
        "EURUSD": {"support": 1.0820, "resistance": 1.0870},
        "GBPUSD": {"support": 1.2600, "resistance": 1.2680},
    },
}


def detect_analysis_type(message: str) -> str:
    """Classify *message* by keyword; first match wins."""
    text = message.lower()
    for analysis_type, keywords in _KEYWORDS:
        if any(k in text for k in keywords):
            return analysis_type
    return GENERAL_ASSISTANCE


class TradingAssistant:
    """Routes assistant requests to a handler per analysis type."""

    def __init__(self, ai: AIService) -> None:
        self._ai = ai

    async def respond(
        self,
        message: str,
        context: Optional[dict] = None,
        analysis_type: Optional[str] = None,
        news_urls: Optional[list[str]] = None,
    ) -> dict:
        kind = analysis_type or detect_analysis_type(message)
        if kind == NEWS_SENTIMENT:
            payload = await self._news_sentiment(news_urls)
        elif kind == MARKET_INSIGHT:
            payload = await self._market_insight(message)
        else:
            reply = await self._ai.assistant_chat(message, context)
            payload = {"type": kind, "analysis": reply.data}
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
        payload["aiLayer"] = "AI 4 - News Assistant"
        return payload

    async def _news_sentiment(self, news_urls: Optional[list[str]]) -> dict:
        reply = await self._ai.assistant_chat(
            f"Analyze market sentiment based on recent news: {DEMO_NEWS}"
        )
        return {
            "type": NEWS_SENTIMENT,
            "analysis": reply.data,
            "newsItems": DEMO_NEWS,
            "sources": news_urls or [],
            "overallSentiment": {
                "market": "CAUTIOUSLY_OPTIMISTIC",
                "usd": "BULLISH",
                "eur": "BEARISH",
                "gbp": "NEUTRAL",
                "confidence": 78,
            },
            "recommendations": [
                "Monitor USD strength across major pairs",
                "Consider EUR weakness in trading decisions",
                "Watch for volatility around economic announcements",
            ],
        }

    async def _market_insight(self, message: str) -> dict:
        reply = await self._ai.assistant_chat(
            f"Provide market insights based on current data: {message}. "
            f"Market context: {DEMO_MARKET}"
        )
        return {
            "type": MARKET_INSIGHT,
            "analysis": reply.data,
            "marketData": DEMO_MARKET,
            "insights": [
                "USD showing strength across major pairs",
                "European currencies under pressure",
            ],
        }
