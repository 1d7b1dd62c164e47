"""Tests for tradechain.ai — chat client with mocked HTTP responses and the assistant."""

import httpx
import pytest

from tradechain.ai import client as client_module
from tradechain.ai.assistant import (
    CHAT_ASSISTANCE,
    GENERAL_ASSISTANCE,
    MARKET_INSIGHT,
    NEWS_SENTIMENT,
    DEMO_NEWS,
    TradingAssistant,
    detect_analysis_type,
)
from tradechain.ai.client import (
    DEFAULT_RESPONSE,
    OPENROUTER_URL,
    AIService,
    ChatMessage,
    canned_response,
)
from tradechain.config import Config


def _make_config(api_key: str = "") -> Config:
    return Config(
        webhook_secret="test-secret",
        openrouter_api_key=api_key,
        ai_model="test/model",
        app_url="http://localhost:3000",
        jwt_secret="test-jwt",
        approval_threshold=75,
        stage_timeout_seconds=5.0,
        signal_policy="indicator_vote",
        validation_policy="weighted",
        mt5_login="demo-account",
        mt5_server="demo-server",
        log_level="INFO",
        port=8000,
    )


MOCK_COMPLETION = {
    "id": "gen-1",
    "choices": [{"message": {"role": "assistant", "content": "EURUSD looks bullish."}}],
}


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(client_module.asyncio, "sleep", _sleep)
    return delays


# ── Canned responses ─────────────────────────────────────────────────────


class TestCannedResponses:
    @pytest.mark.parametrize(
        "text,marker",
        [
            ("Run a technical check", "AI 1 - Technical Analysis Result"),
            ("please validate", "AI 2 - Signal Validation"),
            ("execute it", "AI 3 - Strategy Execution"),
            ("latest news?", "AI 4 - News & Sentiment Analysis"),
        ],
    )
    def test_keyword_selection(self, text, marker):
        reply = canned_response([ChatMessage("user", text)])
        assert reply.success is True
        assert marker in reply.data

    def test_first_keyword_group_wins(self):
        # "analysis" beats "signal"
        reply = canned_response([ChatMessage("user", "signal analysis")])
        assert "AI 1" in reply.data

    def test_default(self):
        assert canned_response([ChatMessage("user", "hello")]).data == DEFAULT_RESPONSE

    def test_empty_messages(self):
        assert canned_response([]).data == DEFAULT_RESPONSE


# ── AIService ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_disabled_service_uses_canned(monkeypatch):
    async def _fail_post(self, *args, **kwargs):
        raise AssertionError("HTTP must not be called without an API key")

    monkeypatch.setattr(httpx.AsyncClient, "post", _fail_post)
    service = AIService(_make_config())

    reply = await service.technical_analysis({"symbol": "EURUSD"})

    assert service.enabled is False
    assert reply.success is True
    assert "AI 1" in reply.data


@pytest.mark.asyncio
async def test_chat_success(monkeypatch):
    captured = {}

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, body=json)
        return httpx.Response(200, json=MOCK_COMPLETION, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    service = AIService(_make_config("sk-or-test"))

    reply = await service.validate_signal({"symbol": "EURUSD", "action": "BUY"})

    assert reply.success is True
    assert reply.data == "EURUSD looks bullish."
    assert captured["url"] == OPENROUTER_URL
    assert captured["headers"]["Authorization"] == "Bearer sk-or-test"
    assert captured["body"]["model"] == "test/model"
    assert captured["body"]["messages"][0]["role"] == "system"
    assert "AI 2 - Signal Validator" in captured["body"]["messages"][0]["content"]
    assert "EURUSD" in captured["body"]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_empty_choices(monkeypatch):
    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        return httpx.Response(200, json={"choices": []}, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    reply = await AIService(_make_config("sk-or-test")).chat([ChatMessage("user", "hi")])
    assert reply.success is True
    assert reply.data == "No response from AI"


@pytest.mark.asyncio
async def test_client_error_returns_failure(monkeypatch, no_sleep):
    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        return httpx.Response(401, json={"error": "bad key"}, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    reply = await AIService(_make_config("sk-or-test")).chat([ChatMessage("user", "hi")])

    assert reply.success is False
    assert "401" in reply.error
    assert no_sleep == []


@pytest.mark.asyncio
async def test_retries_then_succeeds(monkeypatch, no_sleep):
    calls = []

    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        calls.append(url)
        status = 503 if len(calls) < 3 else 200
        body = MOCK_COMPLETION if status == 200 else {"error": "busy"}
        return httpx.Response(status, json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    reply = await AIService(_make_config("sk-or-test")).chat([ChatMessage("user", "hi")])

    assert reply.success is True
    assert len(calls) == 3
    assert no_sleep == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_exhausted(monkeypatch, no_sleep, caplog):
    async def _mock_post(self, url, *, headers=None, json=None, timeout=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)
    with caplog.at_level("WARNING", logger="tradechain"):
        reply = await AIService(_make_config("sk-or-test")).chat([ChatMessage("user", "hi")])

    assert reply.success is False
    assert "connection refused" in reply.error
    assert no_sleep == [1.0, 2.0, 4.0]
    assert "transport error" in caplog.text


# ── Assistant ────────────────────────────────────────────────────────────


class TestDetectAnalysisType:
    @pytest.mark.parametrize(
        "message,kind",
        [
            ("Any news today?", NEWS_SENTIMENT),
            ("berita terbaru", NEWS_SENTIMENT),
            ("How is the market?", MARKET_INSIGHT),
            ("analisa pasar", MARKET_INSIGHT),
            ("I need help", CHAT_ASSISTANCE),
            ("good morning", GENERAL_ASSISTANCE),
        ],
    )
    def test_keywords(self, message, kind):
        assert detect_analysis_type(message) == kind

    def test_news_beats_market(self):
        assert detect_analysis_type("market news") == NEWS_SENTIMENT


@pytest.mark.asyncio
async def test_assistant_news():
    assistant = TradingAssistant(AIService(_make_config()))
    payload = await assistant.respond("What does the news say?", news_urls=["https://example.com/a"])

    assert payload["type"] == NEWS_SENTIMENT
    assert payload["newsItems"] == DEMO_NEWS
    assert payload["sources"] == ["https://example.com/a"]
    assert payload["overallSentiment"]["confidence"] == 78
    assert payload["aiLayer"] == "AI 4 - News Assistant"
    assert payload["timestamp"]


@pytest.mark.asyncio
async def test_assistant_market_insight():
    payload = await TradingAssistant(AIService(_make_config())).respond("market outlook")
    assert payload["type"] == MARKET_INSIGHT
    assert "EURUSD" in payload["marketData"]["majorPairs"]
    assert payload["analysis"]


@pytest.mark.asyncio
async def test_assistant_explicit_type_overrides_detection():
    payload = await TradingAssistant(AIService(_make_config())).respond(
        "market outlook", analysis_type=CHAT_ASSISTANCE,
    )
    assert payload["type"] == CHAT_ASSISTANCE
    assert payload["analysis"] == DEFAULT_RESPONSE
