"""TradingView webhook orchestration.

Authenticates an inbound alert, then drives it through the technical,
validator and executor stages in order.  A stage that errors or times out
degrades the outcome; it never fails the request.
"""

import asyncio
import hmac
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from tradechain.errors import TradeChainError, Unauthorized, UpstreamDegraded, ValidationError
from tradechain.risk.sl_tp import calculate_levels
from tradechain.validation.policy import as_float

logger = logging.getLogger("tradechain")

SOURCE = "TradingView"
STAGE_TECHNICAL = "AI 1"
STAGE_VALIDATOR = "AI 2"
STAGE_EXECUTOR = "AI 3"

STATUS_EXECUTED = "EXECUTED"
STATUS_VALIDATION_ONLY = "VALIDATION_ONLY"
STATUS_REJECTED = "REJECTED"
STATUS_RECEIVED = "RECEIVED"

DEFAULT_STAGE_TIMEOUT = 5.0

TechnicalCall = Callable[[str, Optional[str]], Awaitable[dict]]
ValidatorCall = Callable[[dict, Optional[dict]], Awaitable[dict]]
ExecutorCall = Callable[[dict], Awaitable[dict]]


# ── Payload parsing ──────────────────────────────────────────────────────


def calculate_confidence(indicators: Optional[dict]) -> float:
    """Pre-score an alert from the indicator fields it carries.

    RSI beyond 70/30 scores 20 (beyond 60/40 scores 10), a BUY/SELL MACD
    signal 25, a BULLISH/BEARISH MA trend 15.  The mean score is doubled
    and clamped to [30, 95]; an alert with no indicators scores 50.
    Unreadable fields are ignored.
    """
    if not indicators or not isinstance(indicators, dict):
        return 50

    score = 0
    count = 0

    rsi = as_float(indicators.get("rsi"))
    if rsi:
        if rsi > 70 or rsi < 30:
            score += 20
        elif rsi > 60 or rsi < 40:
            score += 10
        count += 1

    macd_signal = indicators.get("macd_signal")
    if macd_signal:
        if macd_signal in ("BUY", "SELL"):
            score += 25
        count += 1

    ma_trend = indicators.get("ma_trend")
    if ma_trend:
        if ma_trend in ("BULLISH", "BEARISH"):
            score += 15
        count += 1

    if count == 0:
        return 50
    return min(max(score / count * 2, 30), 95)


def parse_webhook_payload(body: dict, expected_secret: str) -> dict:
    """Authenticate *body* and normalize it into a received-signal dict.

    Raises:
        Unauthorized: ``webhook_secret`` does not match (checked first).
        ValidationError: symbol, action or price is missing, or price or
            an explicit level is not a positive number.
    """
    provided = body.get("webhook_secret")
    if not isinstance(provided, str) or not hmac.compare_digest(
        provided.encode(), expected_secret.encode()
    ):
        raise Unauthorized()

    symbol, action, price = body.get("symbol"), body.get("action"), body.get("price")
    if not symbol or not action or not price:
        raise ValidationError("Missing required fields: symbol, action, price")
    try:
        price = float(price)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid price", f"price must be numeric, got {price!r}") from exc
    if not math.isfinite(price) or price <= 0:
        raise ValidationError("Invalid price", f"price must be positive, got {price}")

    levels = {}
    for key in ("stopLoss", "takeProfit"):
        if body.get(key) in (None, ""):
            continue
        value = as_float(body[key])
        if value is None or value <= 0:
            raise ValidationError(f"Invalid {key}", f"{key} must be a positive number")
        levels[key] = value

    now = datetime.now(timezone.utc)
    indicators = body.get("indicators")
    if not isinstance(indicators, dict):
        indicators = {}
    signal = {
        "id": f"TV_{int(time.time() * 1000)}",
        "source": SOURCE,
        "symbol": str(symbol).upper(),
        "action": str(action).upper(),
        "price": price,
        "timestamp": body.get("time") or now.isoformat(),
        "strategy": body.get("strategy") or "Unknown Strategy",
        "indicators": indicators,
        "processed": False,
        "confidence": calculate_confidence(indicators),
        "metadata": {
            "receivedAt": now.isoformat(),
            "webhook": True,
            "version": "1.0",
        },
    }
    signal.update(levels)
    return signal


def execution_signal(signal: dict) -> dict:
    """Build the executor input for a received signal.

    Explicit ``stopLoss``/``takeProfit`` on the alert win; otherwise the
    default percentage levels are derived from the alert price.  Actions
    other than BUY/SELL get no levels.
    """
    out = dict(signal)
    out["entry"] = signal["price"]
    out["type"] = signal["action"]
    if signal.get("stopLoss") is None or signal.get("takeProfit") is None:
        if signal["action"] in ("BUY", "SELL"):
            levels = calculate_levels(signal["price"], signal["action"])
            out.setdefault("stopLoss", levels.sl)
            out.setdefault("takeProfit", levels.tp)
    return out


# ── Outcome ──────────────────────────────────────────────────────────────


@dataclass
class PipelineOutcome:
    """What the pipeline managed to do for one alert."""

    signal: dict
    technical: Optional[dict] = None
    validation: Optional[dict] = None
    execution: Optional[dict] = None
    processing_chain: list[str] = field(default_factory=lambda: [SOURCE])
    final_status: str = STATUS_RECEIVED
    degraded: list[UpstreamDegraded] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.final_status in (STATUS_EXECUTED, STATUS_VALIDATION_ONLY):
            return "TradingView signal processed through full AI chain"
        if self.final_status == STATUS_REJECTED:
            return "TradingView signal processed but not approved for execution"
        return "TradingView signal received and logged"

    def to_dict(self) -> dict:
        if self.final_status == STATUS_RECEIVED:
            out = {
                "signal": self.signal,
                "originalSignal": self.signal,
                "status": STATUS_RECEIVED,
                "nextStep": "Manual review or retry AI processing",
            }
            if self.technical is not None:
                out["technicalAnalysis"] = self.technical
            out["processingChain"] = list(self.processing_chain)
            out["finalStatus"] = STATUS_RECEIVED
            return out
        out = {
            "originalSignal": self.signal,
            "technicalAnalysis": self.technical,
            "validation": self.validation,
        }
        if self.final_status != STATUS_REJECTED:
            out["execution"] = self.execution
        out["processingChain"] = list(self.processing_chain)
        out["finalStatus"] = self.final_status
        return out


# ── Pipeline ─────────────────────────────────────────────────────────────


class SignalPipeline:
    """Runs technical → validator → executor for a received signal.

    Args:
        technical: ``await technical(symbol, timeframe)``.
        validator: ``await validator(signal, technical_payload)``.
        executor: ``await executor(validated_signal)``.
        stage_timeout: Seconds allowed per stage.
    """

    def __init__(
        self,
        technical: TechnicalCall,
        validator: ValidatorCall,
        executor: ExecutorCall,
        stage_timeout: float = DEFAULT_STAGE_TIMEOUT,
    ) -> None:
        self._technical = technical
        self._validator = validator
        self._executor = executor
        self._timeout = stage_timeout

    async def _call(self, stage: str, coro: Awaitable[dict]) -> dict:
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamDegraded(stage, f"timed out after {self._timeout:.1f}s") from exc
        except TradeChainError as exc:
            reason = f"{exc.error}: {exc.details}" if exc.details else exc.error
            raise UpstreamDegraded(stage, reason) from exc
        except Exception as exc:
            logger.exception("Unexpected error in stage %s", stage)
            raise UpstreamDegraded(stage, str(exc) or type(exc).__name__) from exc

    async def _execute(self, signal: dict) -> dict:
        return await self._executor(execution_signal(signal))

    async def run(self, signal: dict) -> PipelineOutcome:
        """Drive *signal* through the stages.  Never raises for stage failures.

        ``processing_chain`` lists the source and every stage that ran to
        completion, plus AI 3 once execution was attempted.
        """
        logger.info(
            "TradingView signal received: %s %s @ %s (%s)",
            signal["action"], signal["symbol"], signal["price"], signal["strategy"],
        )
        outcome = PipelineOutcome(signal=signal)

        try:
            outcome.technical = await self._call(
                STAGE_TECHNICAL, self._technical(signal["symbol"], "1H"),
            )
            outcome.processing_chain.append(STAGE_TECHNICAL)
            outcome.validation = await self._call(
                STAGE_VALIDATOR, self._validator(signal, outcome.technical),
            )
            outcome.processing_chain.append(STAGE_VALIDATOR)
        except UpstreamDegraded as exc:
            logger.warning("Pipeline degraded at %s: %s", exc.stage, exc.reason)
            outcome.degraded.append(exc)
            return outcome

        if not outcome.validation.get("approved"):
            outcome.final_status = STATUS_REJECTED
            logger.info("Signal %s rejected by validator", signal["id"])
            return outcome

        outcome.processing_chain.append(STAGE_EXECUTOR)
        try:
            outcome.execution = await self._call(
                STAGE_EXECUTOR, self._execute(signal),
            )
            outcome.final_status = STATUS_EXECUTED
        except UpstreamDegraded as exc:
            logger.warning("Pipeline degraded at %s: %s", exc.stage, exc.reason)
            outcome.degraded.append(exc)
            outcome.final_status = STATUS_VALIDATION_ONLY

        logger.info("Signal %s finished with status %s", signal["id"], outcome.final_status)
        return outcome
