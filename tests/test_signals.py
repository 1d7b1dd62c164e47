"""Tests for tradechain.signals — policies, level ordering and the generator."""

import numpy as np
import pytest

from tradechain.errors import UnknownSymbol
from tradechain.market.models import IndicatorSnapshot
from tradechain.market.snapshot import SyntheticSnapshotBuilder
from tradechain.signals.generator import SignalGenerator
from tradechain.signals.models import TechnicalSignal, check_level_order
from tradechain.signals.policy import (
    IndicatorVotePolicy,
    RandomSignalPolicy,
    SignalPolicy,
    get_signal_policy,
    indicator_votes,
)


def _snapshot(**overrides) -> IndicatorSnapshot:
    """Snapshot where every indicator family votes BUY unless overridden."""
    fields = dict(
        symbol="EURUSD",
        timeframe="1H",
        price=1.0860,
        rsi=60.0,
        macd_signal="BUY",
        macd_histogram=0.0002,
        ma20=1.0855,
        ma50=1.0840,
        bollinger_upper=1.0870,
        bollinger_lower=1.0830,
        stochastic_k=70.0,
        stochastic_d=60.0,
        atr=0.0015,
        volume=12000,
        timestamp="2025-01-01T00:00:00+00:00",
    )
    fields.update(overrides)
    return IndicatorSnapshot(**fields)


class _FixedPolicy:
    def __init__(self, direction: str, confidence: int) -> None:
        self._decision = (direction, confidence)

    def decide(self, snapshot):
        return self._decision


# ── Level ordering ───────────────────────────────────────────────────────


class TestLevelOrder:
    def test_buy_valid(self):
        check_level_order("BUY", 1.0850, 1.0800, 1.0900)

    def test_sell_valid(self):
        check_level_order("SELL", 1.0850, 1.0900, 1.0800)

    def test_buy_sl_above_entry(self):
        with pytest.raises(ValueError, match="out of order"):
            check_level_order("BUY", 1.0850, 1.0860, 1.0900)

    def test_sell_tp_above_entry(self):
        with pytest.raises(ValueError, match="out of order"):
            check_level_order("SELL", 1.0850, 1.0900, 1.0860)

    def test_unknown_direction(self):
        with pytest.raises(ValueError, match="direction"):
            check_level_order("HOLD", 1.0, 0.9, 1.1)

    def test_signal_rejects_bad_levels(self):
        with pytest.raises(ValueError):
            TechnicalSignal("EURUSD", "BUY", 80, 1.0850, 1.0900, 1.0950, "t")

    def test_signal_rejects_confidence_out_of_range(self):
        with pytest.raises(ValueError, match="confidence"):
            TechnicalSignal("EURUSD", "BUY", 101, 1.0850, 1.0800, 1.0900, "t")

    def test_signal_to_dict(self):
        sig = TechnicalSignal("EURUSD", "SELL", 75, 1.0850, 1.0900, 1.0800, "t")
        data = sig.to_dict()
        assert data["signal"] == "SELL"
        assert data["stopLoss"] == pytest.approx(1.0900)
        assert data["takeProfit"] == pytest.approx(1.0800)


# ── Policies ─────────────────────────────────────────────────────────────


class TestIndicatorVotePolicy:
    def test_unanimous_buy(self):
        direction, confidence = IndicatorVotePolicy().decide(_snapshot())
        assert direction == "BUY"
        assert confidence == 100

    def test_unanimous_sell(self):
        snap = _snapshot(
            rsi=40.0,
            macd_signal="SELL",
            ma20=1.0830,
            ma50=1.0840,
            price=1.0835,
            stochastic_k=30.0,
            stochastic_d=40.0,
        )
        assert IndicatorVotePolicy().decide(snap) == ("SELL", 100)

    def test_three_of_five(self):
        # BUY from RSI, MACD and MA; SELL from Bollinger and stochastic
        snap = _snapshot(price=1.0840, stochastic_k=20.0, stochastic_d=50.0)
        direction, confidence = IndicatorVotePolicy().decide(snap)
        assert direction == "BUY"
        assert confidence == 76

    def test_four_of_five(self):
        snap = _snapshot(stochastic_k=20.0, stochastic_d=50.0)
        assert IndicatorVotePolicy().decide(snap) == ("BUY", 88)

    def test_overbought_rsi_votes_sell(self):
        votes = indicator_votes(_snapshot(rsi=75.0))
        assert votes[0] == "SELL"

    def test_oversold_rsi_votes_buy(self):
        votes = indicator_votes(_snapshot(rsi=25.0))
        assert votes[0] == "BUY"

    def test_confidence_always_in_range(self):
        builder = SyntheticSnapshotBuilder(np.random.default_rng(7))
        policy = IndicatorVotePolicy()
        for _ in range(50):
            _, confidence = policy.decide(builder.build("EURUSD"))
            assert 70 <= confidence <= 100


class TestRandomSignalPolicy:
    def test_confidence_range(self):
        policy = RandomSignalPolicy(np.random.default_rng(0))
        for _ in range(100):
            direction, confidence = policy.decide(_snapshot())
            assert direction in ("BUY", "SELL")
            assert 70 <= confidence <= 99

    def test_seeded_reproducible(self):
        a = RandomSignalPolicy(np.random.default_rng(9))
        b = RandomSignalPolicy(np.random.default_rng(9))
        assert [a.decide(_snapshot()) for _ in range(5)] == [b.decide(_snapshot()) for _ in range(5)]


class TestRegistry:
    def test_lookup(self):
        assert isinstance(get_signal_policy("indicator_vote"), IndicatorVotePolicy)
        assert isinstance(get_signal_policy("random", np.random.default_rng(1)), RandomSignalPolicy)

    def test_satisfies_protocol(self):
        assert isinstance(get_signal_policy("indicator_vote"), SignalPolicy)

    def test_unknown_name(self):
        with pytest.raises(KeyError, match="Unknown signal policy"):
            get_signal_policy("coin_flip")


# ── Generator ────────────────────────────────────────────────────────────


class TestSignalGenerator:
    def test_buy_levels(self):
        gen = SignalGenerator(policy=_FixedPolicy("BUY", 80))
        sig = gen.generate("EURUSD", snapshot=_snapshot(price=1.0850))
        assert sig.direction == "BUY"
        assert sig.entry == pytest.approx(1.0850)
        assert sig.stop_loss == pytest.approx(1.0850 * 0.995)
        assert sig.take_profit == pytest.approx(1.0850 * 1.015)

    def test_sell_levels(self):
        gen = SignalGenerator(policy=_FixedPolicy("SELL", 80))
        sig = gen.generate("EURUSD", snapshot=_snapshot(price=1.0850))
        assert sig.stop_loss == pytest.approx(1.0850 * 1.005)
        assert sig.take_profit == pytest.approx(1.0850 * 0.985)

    def test_synthesizes_snapshot(self):
        gen = SignalGenerator(builder=SyntheticSnapshotBuilder(np.random.default_rng(3)))
        sig = gen.generate("gbpusd", "4H")
        assert sig.symbol == "GBPUSD"
        assert sig.snapshot is not None
        assert sig.snapshot.timeframe == "4H"

    def test_invariant_holds_for_random_policy(self):
        rng = np.random.default_rng(11)
        gen = SignalGenerator(policy=RandomSignalPolicy(rng), builder=SyntheticSnapshotBuilder(rng))
        for _ in range(50):
            sig = gen.generate("EURUSD")
            if sig.direction == "BUY":
                assert sig.stop_loss < sig.entry < sig.take_profit
            else:
                assert sig.take_profit < sig.entry < sig.stop_loss

    def test_unknown_symbol(self):
        with pytest.raises(UnknownSymbol):
            SignalGenerator().generate("XAUUSD")

    def test_logs_signal(self, caplog):
        gen = SignalGenerator(policy=_FixedPolicy("BUY", 80))
        with caplog.at_level("INFO", logger="tradechain"):
            gen.generate("EURUSD", snapshot=_snapshot())
        assert "Technical signal BUY EURUSD" in caplog.text
