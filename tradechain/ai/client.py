"""AI chat client for the OpenRouter chat-completions API.

Falls back to canned, keyword-selected responses when no API key is
configured, so every layer of the pipeline works offline.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from tradechain.config import Config

logger = logging.getLogger("tradechain")

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

SYSTEM_PROMPTS = {
    "technical": (
        "You are AI 1 - Technical Analysis Expert. Analyze market data using 10 key "
        "indicators: MA, RSI, MACD, Bollinger Bands, Stochastic, Fibonacci, ATR, "
        "Ichimoku Cloud, Volume, and Parabolic SAR. Provide clear BUY/SELL signals "
        "with confidence levels."
    ),
    "validator": (
        "You are AI 2 - Signal Validator. Cross-check and validate signals from AI 1. "
        "Only approve signals with high probability of success."
    ),
    "executor": (
        "You are AI 3 - Strategy Executor. Calculate SL, TP, pip values, and execute "
        "trades via MT5. Learn from historical performance and optimize strategies."
    ),
    "assistant": (
        "You are AI 4 - Personal Trading Assistant. Analyze news sentiment, provide "
        "market insights, and engage in helpful discussions about trading strategies. "
        "Be conversational and supportive."
    ),
}

# Canned replies, checked in order against the latest user message.
CANNED_RESPONSES: list[tuple[tuple[str, ...], str]] = [
    (("technical", "analysis"), """🔵 AI 1 - Technical Analysis Result:

Based on current market indicators:
- RSI: 65.2 (Neutral to Overbought)
- MACD: Bullish crossover detected
- Moving Average: Price above 20-day MA
- Bollinger Bands: Price near upper band
- Volume: Above average

SIGNAL: BUY with caution
Confidence: 75%
Recommended action: Wait for AI 2 validation"""),
    (("validate", "signal"), """🟡 AI 2 - Signal Validation:

After cross-checking AI 1 analysis:
- Confirmed bullish momentum
- Risk/reward ratio: 1:2.5
- Market sentiment: Positive
- News impact: Neutral

VALIDATION: APPROVED
Forwarding to AI 3 for execution planning"""),
    (("execute", "trade"), """🔴 AI 3 - Strategy Execution:

Trade Setup:
- Entry: Current market price
- Stop Loss: -2.5%
- Take Profit: +6.2%
- Position Size: 2% of portfolio
- Expected Pips: 45-50

STATUS: Ready for MT5 execution
Risk Level: Medium"""),
    (("news", "sentiment"), """🟢 AI 4 - News & Sentiment Analysis:

Market Sentiment Summary:
- Overall sentiment: Cautiously optimistic
- Key news: Fed meeting minutes released
- Economic indicators: Mixed signals
- Social sentiment: 62% bullish

Recommendation: Monitor closely for next 2-4 hours
Impact on current signals: Minimal"""),
]

DEFAULT_RESPONSE = """🟢 AI Assistant: I'm here to help with your trading analysis. I can provide:

- Technical analysis of market indicators
- Signal validation and risk assessment
- Trade execution planning
- News sentiment analysis
- Real-time market insights

What would you like me to analyze for you?"""


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class AIResponse:
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None


def canned_response(messages: list[ChatMessage]) -> AIResponse:
    """Pick a canned reply by keyword match on the latest message."""
    text = messages[-1].content.lower() if messages else ""
    for keywords, reply in CANNED_RESPONSES:
        if any(k in text for k in keywords):
            return AIResponse(success=True, data=reply)
    return AIResponse(success=True, data=DEFAULT_RESPONSE)


class AIService:
    """Async client wrapping the chat-completions API."""

    def __init__(self, config: Config, base_url: str = OPENROUTER_URL) -> None:
        self._enabled = config.ai_enabled
        self._base_url = base_url
        self._model = config.ai_model
        self._headers = {
            "Authorization": f"Bearer {config.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": config.app_url,
            "X-Title": "TradeChain",
        }

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _post_with_retry(self, body: dict) -> httpx.Response:
        """POST with exponential-backoff retry on 429/5xx and transport errors."""
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self._base_url,
                        headers=self._headers,
                        json=body,
                        timeout=30.0,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "AI API returned %d — retry %d/%d in %.1fs",
                        resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    await asyncio.sleep(delay)
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "AI API transport error (%s) — retry %d/%d in %.1fs",
                    exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    # ── Chat ─────────────────────────────────────────────────────────────

    async def chat(self, messages: list[ChatMessage]) -> AIResponse:
        """Send *messages* to the model; never raises."""
        if not self._enabled:
            return canned_response(messages)

        body = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
            "temperature": 0.7,
            "max_tokens": 1000,
        }
        try:
            resp = await self._post_with_retry(body)
            choices = resp.json().get("choices") or [{}]
            content = (choices[0].get("message") or {}).get("content")
            return AIResponse(success=True, data=content or "No response from AI")
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("AI service error: %s", exc)
            return AIResponse(success=False, error=str(exc) or "Unknown AI error")

    async def _layer(self, layer: str, prompt: str) -> AIResponse:
        return await self.chat([
            ChatMessage("system", SYSTEM_PROMPTS[layer]),
            ChatMessage("user", prompt),
        ])

    # ── Layer helpers ────────────────────────────────────────────────────

    async def technical_analysis(self, market_data: dict) -> AIResponse:
        return await self._layer(
            "technical", f"Analyze this market data: {json.dumps(market_data, default=str)}",
        )

    async def validate_signal(self, signal_data: dict) -> AIResponse:
        return await self._layer(
            "validator", f"Validate this signal: {json.dumps(signal_data, default=str)}",
        )

    async def execute_strategy(self, execution_data: dict) -> AIResponse:
        return await self._layer(
            "executor", f"Execute strategy for: {json.dumps(execution_data, default=str)}",
        )

    async def assistant_chat(self, message: str, context: Optional[dict] = None) -> AIResponse:
        messages = [ChatMessage("system", SYSTEM_PROMPTS["assistant"])]
        if context:
            messages.append(
                ChatMessage("assistant", f"Context: {json.dumps(context, default=str)}")
            )
        messages.append(ChatMessage("user", message))
        return await self.chat(messages)
