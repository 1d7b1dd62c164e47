"""HTTP routers — AI layer, broker, webhook and auth endpoints.

No decision logic here.  Handlers unpack the request body, delegate to the
stage services and wrap the result in the ``{"success", "data"}`` envelope.
Domain errors propagate to the exception handlers registered in
``tradechain.main``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tradechain.ai.assistant import TradingAssistant
from tradechain.ai.client import AIService
from tradechain.auth.repository import UserRepository
from tradechain.auth.service import AuthService, seeded_repository
from tradechain.broker.models import OrderRequest
from tradechain.broker.simulator import SimulatedBroker
from tradechain.config import Config, load_config
from tradechain.errors import InvalidAction, ValidationError
from tradechain.market.models import INSTRUMENTS
from tradechain.market.snapshot import SyntheticSnapshotBuilder
from tradechain.pipeline.stages import ExecutorStage, TechnicalStage, ValidatorStage
from tradechain.pipeline.webhook import SignalPipeline, parse_webhook_payload
from tradechain.signals.generator import SignalGenerator
from tradechain.signals.policy import get_signal_policy
from tradechain.validation.policy import get_validation_policy

logger = logging.getLogger("tradechain")
router = APIRouter()

# ── Shared services (set via configure_routers) ──────────────────────────

_config: Optional[Config] = None
_broker: Optional[SimulatedBroker] = None
_technical: Optional[TechnicalStage] = None
_validator: Optional[ValidatorStage] = None
_executor: Optional[ExecutorStage] = None
_assistant: Optional[TradingAssistant] = None
_pipeline: Optional[SignalPipeline] = None
_auth: Optional[AuthService] = None


def configure_routers(
    config: Config,
    ai: Optional[AIService] = None,
    broker: Optional[SimulatedBroker] = None,
    rng: Optional[np.random.Generator] = None,
    user_repo: Optional[UserRepository] = None,
) -> None:
    """Build the stage services and inject them into the routers.

    Args:
        config: Application configuration.
        ai: AI client (built from *config* when omitted).
        broker: Simulated broker (built from *config* when omitted).
        rng: Generator shared by demo policies, snapshots and slippage.
        user_repo: User storage; defaults to the seeded in-memory store.
    """
    global _config, _broker, _technical, _validator, _executor  # noqa: PLW0603
    global _assistant, _pipeline, _auth  # noqa: PLW0603

    rng = rng if rng is not None else np.random.default_rng()
    ai = ai or AIService(config)

    _config = config
    _broker = broker or SimulatedBroker(
        settings=config.execution,
        rng=rng,
        login=config.mt5_login,
        server=config.mt5_server,
    )
    _technical = TechnicalStage(
        SignalGenerator(
            policy=get_signal_policy(config.signal_policy, rng),
            builder=SyntheticSnapshotBuilder(rng),
        ),
        ai,
    )
    _validator = ValidatorStage(
        ai,
        policy=get_validation_policy(config.validation_policy, rng),
        threshold=config.approval_threshold,
    )
    _executor = ExecutorStage(_broker, ai, settings=config.execution)
    _assistant = TradingAssistant(ai)
    _pipeline = SignalPipeline(
        technical=_technical.run,
        validator=_validator.run,
        executor=_executor.run,
        stage_timeout=config.stage_timeout_seconds,
    )
    _auth = AuthService(user_repo or seeded_repository(), config.jwt_secret)


def _ensure_configured() -> None:
    if _config is None:
        configure_routers(load_config())


def _ok(data) -> dict:
    return {"success": True, "data": data}


# ── AI 1: technical analysis ─────────────────────────────────────────────


@router.post("/api/ai/technical")
async def post_technical(body: dict):
    _ensure_configured()
    symbol = body.get("symbol")
    if not symbol:
        raise ValidationError("Symbol is required")
    return _ok(await _technical.run(symbol, body.get("timeframe")))


@router.get("/api/ai/technical")
async def get_technical():
    return {
        "message": "AI Technical Analysis endpoint",
        "description": "Analyzes market data using technical indicators",
        "usage": "POST with { symbol, timeframe? }",
        "indicators": [
            "Moving Average (MA20, MA50)",
            "RSI (Relative Strength Index)",
            "MACD (Moving Average Convergence Divergence)",
            "Bollinger Bands",
            "Stochastic Oscillator",
            "ATR (Average True Range)",
            "Volume Analysis",
        ],
        "supportedSymbols": list(INSTRUMENTS),
    }


# ── AI 2: signal validator ───────────────────────────────────────────────


@router.post("/api/ai/validator")
async def post_validator(body: dict):
    _ensure_configured()
    return _ok(await _validator.run(body.get("signalData"), body.get("technicalAnalysis")))


@router.get("/api/ai/validator")
async def get_validator():
    _ensure_configured()
    return {
        "message": "AI Signal Validator endpoint",
        "description": "Validates trading signals from AI 1 Technical Analysis",
        "usage": "POST with { signalData, technicalAnalysis? }",
        "validationCriteria": [
            "Market condition assessment",
            "Trend alignment",
            "Volume and volatility check",
            "News impact",
            "Upstream confidence",
        ],
        "approvalThreshold": f"{_config.approval_threshold:g}% confidence score",
        "riskLevels": ["LOW (85%+)", "MEDIUM (70-84%)", "HIGH (<70%)"],
    }


# ── AI 3: strategy executor ──────────────────────────────────────────────


@router.post("/api/ai/executor")
async def post_executor(body: dict):
    _ensure_configured()
    payload = await _executor.run(
        body.get("validatedSignal"),
        account_info=body.get("accountInfo"),
        risk_settings=body.get("riskSettings"),
    )
    return _ok(payload)


@router.get("/api/ai/executor")
async def get_executor():
    _ensure_configured()
    settings = _config.execution
    return {
        "message": "AI Strategy Executor endpoint",
        "description": "Sizes validated signals and executes them on the simulated broker",
        "usage": "POST with { validatedSignal, accountInfo?, riskSettings? }",
        "riskManagement": {
            "maxRiskPerTrade": "2% of account balance",
            "maxDailyRisk": "6% of account balance",
            "maxOpenTrades": 5,
            "riskRewardRatio": "1:2.5 minimum",
        },
        "execution": {
            "maxLotSize": settings.max_lot_size,
            "pipValuePerLot": settings.pip_value_per_lot,
            "commissionPerLot": settings.commission_per_lot,
            "magicNumber": 12345,
            "comment": "AI Trading System v1.0",
        },
    }


@router.put("/api/ai/executor")
async def put_executor(body: dict):
    _ensure_configured()
    order_id, action = body.get("orderId"), body.get("action")
    if not order_id or not action:
        raise ValidationError("Order ID and action are required")
    result = await _broker.manage_trade(
        order_id,
        action,
        stop_loss=body.get("stopLoss"),
        take_profit=body.get("takeProfit"),
    )
    return _ok(result)


# ── Broker ───────────────────────────────────────────────────────────────


@router.post("/api/mt5/execute")
async def post_mt5_execute(body: dict):
    _ensure_configured()
    if not body.get("symbol") or not body.get("action") or not body.get("volume"):
        raise ValidationError("Missing required fields: symbol, action, volume")
    try:
        order = OrderRequest.from_dict(body)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid order", str(exc)) from exc

    result = await _broker.execute(order)
    data = result.to_dict()
    data["account"] = {
        "login": _config.mt5_login,
        "server": _config.mt5_server,
        "balance": 10000.00,
        "equity": 10000.00,
        "margin": 1500.00,
        "freeMargin": 8500.00,
        "leverage": 100,
        "currency": "USD",
    }
    data["timestamp"] = datetime.now(timezone.utc).isoformat()
    return _ok(data)


@router.get("/api/mt5/execute")
async def get_mt5_execute():
    _ensure_configured()
    return {
        "message": "MetaTrader 5 Execution endpoint",
        "description": "Executes trading orders on the simulated MT5 broker",
        "usage": "POST with order details",
        "requiredFields": [
            "symbol - Trading pair (e.g., EURUSD)",
            "action - BUY, SELL, CLOSE, or MODIFY",
            "volume - Lot size (e.g., 0.1, 1.0)",
        ],
        "optionalFields": [
            "price - Specific execution price (market price if not provided)",
            "sl - Stop Loss level",
            "tp - Take Profit level",
            "orderId - Required for CLOSE and MODIFY actions",
            "comment - Order comment",
            "magicNumber - EA identification number",
        ],
        "supportedSymbols": list(INSTRUMENTS),
        "executionDetails": {
            "commission": f"${_config.execution.commission_per_lot:g} per standard lot",
            "maxSlippage": _config.execution.max_slippage,
            "retcodes": "MT5 standard return codes",
        },
    }


@router.put("/api/mt5/execute")
async def put_mt5_execute(body: dict):
    _ensure_configured()
    action = body.get("action")
    if action == "account_info":
        return _ok(await _broker.account_info())
    if action == "positions":
        return _ok(await _broker.open_positions())
    raise InvalidAction(str(action))


# ── TradingView webhook ──────────────────────────────────────────────────


@router.post("/api/tradingview/webhook")
async def post_webhook(body: dict):
    _ensure_configured()
    signal = parse_webhook_payload(body, _config.webhook_secret)
    outcome = await _pipeline.run(signal)
    return {"success": True, "message": outcome.message, "data": outcome.to_dict()}


@router.get("/api/tradingview/webhook")
async def get_webhook():
    return {
        "message": "TradingView Webhook endpoint",
        "description": "Receives trading signals from TradingView and processes through AI chain",
        "usage": "POST webhook from TradingView with signal data",
        "requiredFields": [
            "symbol - Trading pair (e.g., EURUSD)",
            "action - BUY, SELL, or CLOSE",
            "price - Current market price",
            "webhook_secret - Authentication secret",
        ],
        "optionalFields": [
            "time - Signal timestamp",
            "strategy - Strategy name",
            "indicators - Technical indicator values",
            "stopLoss / takeProfit - Explicit levels",
        ],
        "processingChain": [
            "1. Receive TradingView signal",
            "2. Forward to AI 1 - Technical Analysis",
            "3. Forward to AI 2 - Signal Validator",
            "4. If approved, forward to AI 3 - Strategy Executor",
            "5. Return complete processing result",
        ],
        "examplePayload": {
            "symbol": "EURUSD",
            "action": "BUY",
            "price": 1.0850,
            "time": "2024-01-01T12:00:00Z",
            "strategy": "AI Trend Following",
            "webhook_secret": "your-webhook-secret",
            "indicators": {"rsi": 65, "macd_signal": "BUY", "ma_trend": "BULLISH"},
        },
    }


# ── AI 4: assistant ──────────────────────────────────────────────────────


@router.post("/api/ai/assistant")
async def post_assistant(body: dict):
    _ensure_configured()
    message = body.get("message")
    if not message:
        raise ValidationError("Message is required")
    data = await _assistant.respond(
        message,
        context=body.get("context"),
        analysis_type=body.get("analysisType"),
        news_urls=body.get("newsUrls"),
    )
    return _ok(data)


@router.put("/api/ai/assistant")
async def put_assistant(body: dict):
    if body.get("action") != "subscribe_news":
        raise InvalidAction(str(body.get("action")))
    next_update = datetime.now(timezone.utc) + timedelta(minutes=5)
    return _ok({
        "subscribed": True,
        "preferences": body.get("preferences") or {
            "sources": ["Reuters", "Bloomberg", "MarketWatch"],
            "pairs": ["EURUSD", "GBPUSD", "USDJPY"],
            "impactLevel": "MEDIUM_HIGH",
            "updateFrequency": "5_MINUTES",
        },
        "message": "Subscribed to real-time news updates",
        "nextUpdate": next_update.isoformat(),
    })


# ── Auth ─────────────────────────────────────────────────────────────────


@router.post("/api/auth/login")
def post_login(body: dict):
    _ensure_configured()
    email, password = body.get("email"), body.get("password")
    if not email or not password:
        raise ValidationError("Email and password are required")
    result = _auth.login(email, password)
    return JSONResponse(result.to_dict(), status_code=200 if result.success else 401)


@router.post("/api/auth/register")
def post_register(body: dict):
    _ensure_configured()
    name, email, password = body.get("name"), body.get("email"), body.get("password")
    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")
    result = _auth.register(name, email, password, body.get("phone"))
    return JSONResponse(result.to_dict(), status_code=201 if result.success else 400)
