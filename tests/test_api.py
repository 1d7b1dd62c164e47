"""Tests for the HTTP surface — routers, error envelope and the webhook endpoint."""

import inspect
from unittest.mock import AsyncMock

import numpy as np
import pytest
from fastapi.testclient import TestClient

from tradechain.api import routers
from tradechain.api.routers import configure_routers
from tradechain.config import Config
from tradechain.main import app

SECRET = "api-test-secret"

ALERT = {
    "webhook_secret": SECRET,
    "symbol": "EURUSD",
    "action": "BUY",
    "price": 1.0850,
    "strategy": "AI Trend Following",
    "indicators": {"rsi": 65, "macd_signal": "BUY", "ma_trend": "BULLISH"},
}

VALIDATED = {
    "symbol": "EURUSD",
    "type": "BUY",
    "entry": 1.0850,
    "stopLoss": 1.0800,
    "takeProfit": 1.0950,
}


def _make_config(**overrides) -> Config:
    defaults = dict(
        webhook_secret=SECRET,
        openrouter_api_key="",
        ai_model="test/model",
        app_url="http://localhost:3000",
        jwt_secret="test-jwt",
        approval_threshold=75,
        stage_timeout_seconds=5.0,
        signal_policy="indicator_vote",
        validation_policy="weighted",
        mt5_login="12345",
        mt5_server="Demo-1",
        log_level="WARNING",
        port=8000,
    )
    defaults.update(overrides)
    return Config(**defaults)


@pytest.fixture
def client():
    configure_routers(_make_config(), rng=np.random.default_rng(42))
    return TestClient(app)


# ── Health / error envelope ──────────────────────────────────────────────


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_unexpected_error_returns_500(monkeypatch):
    configure_routers(_make_config(), rng=np.random.default_rng(1))
    monkeypatch.setattr(
        routers._broker, "account_info", AsyncMock(side_effect=RuntimeError("boom")),
    )
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.put("/api/mt5/execute", json={"action": "account_info"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Internal server error"}


# ── TradingView webhook ──────────────────────────────────────────────────


class TestWebhook:
    def test_wrong_secret_never_reaches_stages(self, client, monkeypatch):
        pipeline = AsyncMock()
        monkeypatch.setattr(routers, "_pipeline", pipeline)

        resp = client.post("/api/tradingview/webhook", json=dict(ALERT, webhook_secret="bad"))

        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Invalid webhook secret"}
        pipeline.run.assert_not_awaited()

    def test_missing_fields(self, client):
        body = dict(ALERT)
        del body["price"]
        resp = client.post("/api/tradingview/webhook", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: symbol, action, price"

    @pytest.mark.parametrize("price", [-1.085, 0.0])
    def test_non_positive_price(self, client, monkeypatch, price):
        pipeline = AsyncMock()
        monkeypatch.setattr(routers, "_pipeline", pipeline)

        resp = client.post("/api/tradingview/webhook", json=dict(ALERT, price=price))

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid price"
        pipeline.run.assert_not_awaited()

    @pytest.mark.parametrize("indicators", [{"rsi": "high"}, ["rsi"]])
    def test_unreadable_indicators(self, client, indicators):
        resp = client.post("/api/tradingview/webhook", json=dict(ALERT, indicators=indicators))
        assert resp.status_code == 200
        assert resp.json()["data"]["originalSignal"]["confidence"] == 50

    def test_processes_alert(self, client):
        resp = client.post("/api/tradingview/webhook", json=ALERT)
        body = resp.json()
        data = body["data"]

        assert resp.status_code == 200
        assert body["success"] is True
        assert data["processingChain"][:3] == ["TradingView", "AI 1", "AI 2"]
        assert data["finalStatus"] in ("EXECUTED", "VALIDATION_ONLY", "REJECTED")
        assert data["originalSignal"]["symbol"] == "EURUSD"
        assert data["originalSignal"]["confidence"] == pytest.approx(100 / 3)

    def test_executed_when_validator_approves(self, client, monkeypatch):
        validator = AsyncMock(return_value={"approved": True, "confidence": 90})
        monkeypatch.setattr(routers._pipeline, "_validator", validator)

        data = client.post("/api/tradingview/webhook", json=ALERT).json()["data"]

        assert data["finalStatus"] == "EXECUTED"
        assert data["processingChain"] == ["TradingView", "AI 1", "AI 2", "AI 3"]
        assert data["execution"]["status"] == "OPEN"
        assert data["execution"]["lotSize"] == pytest.approx(0.37)

    def test_degraded_stage_still_returns_200(self, client, monkeypatch):
        technical = AsyncMock(side_effect=RuntimeError("feed down"))
        monkeypatch.setattr(routers._pipeline, "_technical", technical)

        resp = client.post("/api/tradingview/webhook", json=ALERT)
        body = resp.json()

        assert resp.status_code == 200
        assert body["message"] == "TradingView signal received and logged"
        assert body["data"]["status"] == "RECEIVED"
        assert body["data"]["processingChain"] == ["TradingView"]

    def test_descriptor(self, client):
        body = client.get("/api/tradingview/webhook").json()
        assert "webhook_secret - Authentication secret" in body["requiredFields"]


# ── AI layers ────────────────────────────────────────────────────────────


class TestTechnicalEndpoint:
    def test_requires_symbol(self, client):
        resp = client.post("/api/ai/technical", json={})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Symbol is required"}

    def test_unknown_symbol(self, client):
        resp = client.post("/api/ai/technical", json={"symbol": "XAUUSD"})
        assert resp.status_code == 400
        assert resp.json()["details"] == "Symbol XAUUSD not found in market data"

    def test_signal(self, client):
        resp = client.post("/api/ai/technical", json={"symbol": "GBPUSD", "timeframe": "4H"})
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["symbol"] == "GBPUSD"
        assert data["timeframe"] == "4H"
        assert data["aiLayer"] == "AI 1 - Technical Analysis"
        if data["signal"] == "BUY":
            assert data["stopLoss"] < data["entry"] < data["takeProfit"]
        else:
            assert data["takeProfit"] < data["entry"] < data["stopLoss"]

    def test_descriptor(self, client):
        body = client.get("/api/ai/technical").json()
        assert len(body["supportedSymbols"]) == 7


class TestValidatorEndpoint:
    def test_missing_signal(self, client):
        resp = client.post("/api/ai/validator", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Signal data is required for validation"

    def test_scores_signal(self, client):
        resp = client.post("/api/ai/validator", json={
            "signalData": {"symbol": "EURUSD", "action": "SELL"},
        })
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["confidence"] == 90
        assert data["approved"] is True
        assert data["riskLevel"] == "LOW"

    def test_unreadable_technical_fields(self, client):
        resp = client.post("/api/ai/validator", json={
            "signalData": {"symbol": "EURUSD", "action": "SELL"},
            "technicalAnalysis": {
                "confidence": "high",
                "indicators": {"atr": "x", "ma20": "y", "ma50": 1.08, "volume": "z"},
            },
        })
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["confidence"] == 90
        assert data["marketConditions"]["volatility"] == "NORMAL"
        assert data["marketConditions"]["volume"] == "NORMAL"

    def test_text_signal(self, client):
        resp = client.post("/api/ai/validator", json={"signalData": "EURUSD BUY"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Signal data is required for validation"

    def test_text_technical_ignored(self, client):
        resp = client.post("/api/ai/validator", json={
            "signalData": {"symbol": "EURUSD", "action": "SELL"},
            "technicalAnalysis": "bearish",
        })
        assert resp.status_code == 200
        assert resp.json()["data"]["confidence"] == 90

    def test_descriptor_shows_threshold(self, client):
        body = client.get("/api/ai/validator").json()
        assert body["approvalThreshold"] == "75% confidence score"


class TestExecutorEndpoint:
    def test_executes(self, client):
        resp = client.post("/api/ai/executor", json={"validatedSignal": VALIDATED})
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["lotSize"] == pytest.approx(0.40)
        assert data["riskManagement"]["riskAmount"] == pytest.approx(200.0)
        assert data["aiLayer"] == "AI 3 - Strategy Executor"

    def test_requires_signal(self, client):
        resp = client.post("/api/ai/executor", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validated signal data is required for execution"

    def test_text_signal(self, client):
        resp = client.post("/api/ai/executor", json={"validatedSignal": "EURUSD BUY"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validated signal data is required for execution"

    def test_non_numeric_entry(self, client):
        signal = dict(VALIDATED, entry=[1.085])
        resp = client.post("/api/ai/executor", json={"validatedSignal": signal})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid execution parameters"

    def test_rejects_bad_stop(self, client):
        signal = dict(VALIDATED, stopLoss=1.0900)
        resp = client.post("/api/ai/executor", json={"validatedSignal": signal})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid stop loss"

    def test_manage_trade(self, client):
        opened = client.post("/api/ai/executor", json={"validatedSignal": VALIDATED}).json()["data"]
        resp = client.put("/api/ai/executor", json={"orderId": opened["orderId"], "action": "CLOSE"})
        assert resp.status_code == 200
        assert resp.json()["data"]["message"] == "Trade closed successfully"

    def test_manage_requires_fields(self, client):
        resp = client.put("/api/ai/executor", json={"action": "CLOSE"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Order ID and action are required"


class TestAssistantEndpoint:
    def test_requires_message(self, client):
        resp = client.post("/api/ai/assistant", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Message is required"

    def test_news(self, client):
        data = client.post("/api/ai/assistant", json={"message": "latest news"}).json()["data"]
        assert data["type"] == "news_sentiment"
        assert data["aiLayer"] == "AI 4 - News Assistant"

    def test_subscribe(self, client):
        resp = client.put("/api/ai/assistant", json={"action": "subscribe_news"})
        data = resp.json()["data"]
        assert data["subscribed"] is True
        assert data["preferences"]["updateFrequency"] == "5_MINUTES"

    def test_unknown_action(self, client):
        resp = client.put("/api/ai/assistant", json={"action": "unsubscribe"})
        assert resp.status_code == 400


# ── Broker ───────────────────────────────────────────────────────────────


class TestMT5Endpoint:
    def test_requires_fields(self, client):
        resp = client.post("/api/mt5/execute", json={"symbol": "EURUSD", "action": "BUY"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: symbol, action, volume"

    def test_open_order(self, client):
        resp = client.post("/api/mt5/execute", json={
            "symbol": "EURUSD", "action": "BUY", "volume": 0.1, "sl": 1.0800, "tp": 1.0950,
        })
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["status"] == "OPEN"
        assert data["commission"] == pytest.approx(0.7)
        assert data["account"]["login"] == "12345"

    def test_invalid_action(self, client):
        resp = client.post("/api/mt5/execute", json={
            "symbol": "EURUSD", "action": "HEDGE", "volume": 0.1,
        })
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False, "error": "Invalid action", "details": "Action HEDGE not supported",
        }

    def test_close_requires_order_id(self, client):
        resp = client.post("/api/mt5/execute", json={
            "symbol": "EURUSD", "action": "CLOSE", "volume": 0.1,
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Order ID required for close operation"

    def test_account_and_positions(self, client):
        client.post("/api/mt5/execute", json={"symbol": "EURUSD", "action": "SELL", "volume": 0.2})
        info = client.put("/api/mt5/execute", json={"action": "account_info"}).json()["data"]
        positions = client.put("/api/mt5/execute", json={"action": "positions"}).json()["data"]
        assert info["server"] == "Demo-1"
        assert len(positions) == 1
        assert positions[0]["type"] == "SELL"

    def test_put_unknown_action(self, client):
        resp = client.put("/api/mt5/execute", json={"action": "history"})
        assert resp.status_code == 400

    def test_descriptor(self, client):
        body = client.get("/api/mt5/execute").json()
        assert body["executionDetails"]["commission"] == "$7 per standard lot"


# ── Auth ─────────────────────────────────────────────────────────────────


class TestAuthEndpoints:
    def test_password_handlers_run_in_threadpool(self):
        assert not inspect.iscoroutinefunction(routers.post_login)
        assert not inspect.iscoroutinefunction(routers.post_register)

    def test_login(self, client):
        resp = client.post("/api/auth/login", json={"email": "demo@trading.com", "password": "demo123"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["success"] is True
        assert body["user"]["name"] == "Demo User"
        assert body["token"]

    def test_login_wrong_password(self, client):
        resp = client.post("/api/auth/login", json={"email": "demo@trading.com", "password": "nope00"})
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Incorrect password"}

    def test_login_requires_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "demo@trading.com"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Email and password are required"

    def test_register(self, client):
        resp = client.post("/api/auth/register", json={
            "name": "Alice", "email": "alice@example.com", "password": "hunter22",
        })
        assert resp.status_code == 201
        assert resp.json()["message"] == "Registration successful"

    def test_register_duplicate(self, client):
        resp = client.post("/api/auth/register", json={
            "name": "Demo", "email": "demo@trading.com", "password": "hunter22",
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Email already registered"

    def test_register_requires_fields(self, client):
        resp = client.post("/api/auth/register", json={"email": "x@y.z"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Name, email and password are required"
