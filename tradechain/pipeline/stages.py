"""The three AI-layer stages as in-process services.

Each stage combines the deterministic decision logic with commentary from
the AI client and returns the JSON payload its HTTP endpoint serves.  The
webhook pipeline calls the same objects directly.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from tradechain.ai.client import AIService
from tradechain.broker.models import OrderRequest
from tradechain.broker.simulator import SimulatedBroker
from tradechain.config import ExecutionSettings
from tradechain.errors import AIServiceError, ValidationError
from tradechain.risk.position_sizer import (
    AccountSnapshot,
    ExecutionPlan,
    RiskSettings,
    build_execution_plan,
)
from tradechain.signals.generator import SignalGenerator
from tradechain.validation.policy import ValidationPolicy, signal_direction
from tradechain.validation.validator import DEFAULT_APPROVAL_THRESHOLD, validate_signal

logger = logging.getLogger("tradechain")

TECHNICAL_LAYER = "AI 1 - Technical Analysis"
VALIDATOR_LAYER = "AI 2 - Signal Validator"
EXECUTOR_LAYER = "AI 3 - Strategy Executor"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TechnicalStage:
    """AI 1: indicator snapshot → directional signal."""

    def __init__(self, generator: SignalGenerator, ai: AIService) -> None:
        self._generator = generator
        self._ai = ai

    async def run(self, symbol: str, timeframe: Optional[str] = None) -> dict:
        """Raises ``UnknownSymbol`` or ``AIServiceError``."""
        if not symbol:
            raise ValidationError("Symbol is required")
        signal = self._generator.generate(symbol, timeframe or "1H")
        snapshot = signal.snapshot

        analysis = await self._ai.technical_analysis(snapshot.to_dict())
        if not analysis.success:
            raise AIServiceError("Technical analysis failed", analysis.error)

        return {
            "symbol": signal.symbol,
            "timeframe": snapshot.timeframe,
            "analysis": analysis.data,
            "confidence": signal.confidence,
            "signal": signal.direction,
            "entry": signal.entry,
            "stopLoss": signal.stop_loss,
            "takeProfit": signal.take_profit,
            "indicators": snapshot.indicators_dict(),
            "timestamp": signal.timestamp,
            "aiLayer": TECHNICAL_LAYER,
        }


class ValidatorStage:
    """AI 2: score the signal against market conditions."""

    def __init__(
        self,
        ai: AIService,
        policy: Optional[ValidationPolicy] = None,
        threshold: float = DEFAULT_APPROVAL_THRESHOLD,
    ) -> None:
        self._ai = ai
        self._policy = policy
        self._threshold = threshold

    async def run(self, signal_data: Optional[dict], technical: Optional[dict] = None) -> dict:
        """Raises ``MissingSignalData`` or ``AIServiceError``."""
        result = validate_signal(signal_data, technical, self._policy, self._threshold)

        commentary = await self._ai.validate_signal({
            "originalSignal": signal_data,
            "technicalAnalysis": technical,
            "marketConditions": result.market_conditions.to_dict(),
            "validationScore": result.score,
        })
        if not commentary.success:
            raise AIServiceError("Signal validation failed", commentary.error)

        return {
            "originalSignal": signal_data,
            "validation": commentary.data,
            "approved": result.approved,
            "confidence": result.score,
            "riskLevel": result.risk_level,
            "recommendations": list(result.recommendations),
            "marketConditions": result.market_conditions.to_dict(),
            "nextStep": result.next_step,
            "timestamp": result.timestamp,
            "aiLayer": VALIDATOR_LAYER,
        }


def plan_order(
    validated_signal: Optional[dict],
    account_info: Optional[dict] = None,
    risk_settings: Optional[dict] = None,
    settings: Optional[ExecutionSettings] = None,
) -> ExecutionPlan:
    """Size an order for a validated signal payload.

    Raises ``ValidationError`` when the payload is not an object, is
    missing levels, carries non-numeric values or the resulting lot size
    rounds to zero.
    """
    if not validated_signal:
        raise ValidationError("Validated signal data is required for execution")
    if not isinstance(validated_signal, dict):
        raise ValidationError(
            "Validated signal data is required for execution",
            f"Expected an object, got {type(validated_signal).__name__}",
        )
    for name, value in (("accountInfo", account_info), ("riskSettings", risk_settings)):
        if value is not None and not isinstance(value, dict):
            raise ValidationError(
                "Invalid execution parameters", f"{name} must be an object",
            )

    direction = signal_direction(validated_signal)
    missing = [k for k in ("symbol", "entry", "stopLoss", "takeProfit") if validated_signal.get(k) is None]
    if direction is None:
        missing.append("type")
    if missing:
        raise ValidationError(
            "Validated signal is incomplete",
            f"Missing fields: {', '.join(missing)}",
        )

    try:
        plan = build_execution_plan(
            symbol=str(validated_signal["symbol"]).upper(),
            direction=direction,
            entry=float(validated_signal["entry"]),
            stop_loss=float(validated_signal["stopLoss"]),
            take_profit=float(validated_signal["takeProfit"]),
            account=AccountSnapshot.from_dict(account_info),
            risk_settings=RiskSettings.from_dict(risk_settings),
            settings=settings,
        )
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid execution parameters", str(exc)) from exc
    if plan.lot_size <= 0:
        raise ValidationError(
            "Invalid execution parameters", "Calculated lot size rounds to zero",
        )
    return plan


async def execute_plan(plan: ExecutionPlan, broker: SimulatedBroker) -> dict:
    """Send *plan* to the broker and return the executor payload."""
    result = await broker.execute(OrderRequest(
        symbol=plan.symbol,
        action=plan.direction,
        volume=plan.lot_size,
        price=plan.entry,
        sl=plan.stop_loss,
        tp=plan.take_profit,
        comment="AI Trading System v1.0",
    ))
    logger.info(
        "Trade executed: %s %s %.2f lots, risk %.2f",
        plan.symbol, plan.direction, plan.lot_size, plan.risk_amount,
    )
    payload = result.to_dict()
    payload.update({
        "type": plan.direction,
        "lotSize": plan.lot_size,
        "entryPrice": plan.entry,
        "executionTime": result.time,
        "riskManagement": plan.risk_management(),
    })
    return payload


async def plan_and_execute(
    validated_signal: Optional[dict],
    broker: SimulatedBroker,
    account_info: Optional[dict] = None,
    risk_settings: Optional[dict] = None,
    settings: Optional[ExecutionSettings] = None,
) -> dict:
    """Size *validated_signal* and execute it without AI commentary."""
    plan = plan_order(validated_signal, account_info, risk_settings, settings)
    return await execute_plan(plan, broker)


class ExecutorStage:
    """AI 3: size the position and execute it on the broker."""

    def __init__(
        self,
        broker: SimulatedBroker,
        ai: AIService,
        settings: Optional[ExecutionSettings] = None,
    ) -> None:
        self._broker = broker
        self._ai = ai
        self._settings = settings or ExecutionSettings()

    async def run(
        self,
        validated_signal: Optional[dict],
        account_info: Optional[dict] = None,
        risk_settings: Optional[dict] = None,
    ) -> dict:
        """Raises ``ValidationError``, broker domain errors or ``AIServiceError``."""
        plan = plan_order(validated_signal, account_info, risk_settings, self._settings)

        commentary = await self._ai.execute_strategy({
            "signal": validated_signal,
            "account": plan.account.to_dict(),
            "riskSettings": plan.risk_settings.to_dict(),
            "calculatedLotSize": plan.lot_size,
            "riskAmount": plan.risk_amount,
            "stopLossPips": plan.stop_loss_pips,
            "takeProfitPips": plan.take_profit_pips,
            "expectedRR": plan.risk_settings.risk_reward_ratio,
        })
        if not commentary.success:
            raise AIServiceError("Strategy execution failed", commentary.error)

        payload = await execute_plan(plan, self._broker)
        payload.update({
            "aiAnalysis": commentary.data,
            "timestamp": _now_iso(),
            "aiLayer": EXECUTOR_LAYER,
        })
        return payload
