"""Position sizing — pure math, no I/O.

Converts account balance, risk percentage and stop-loss distance into a
lot size, and bundles the result into an ``ExecutionPlan``.
"""

from dataclasses import dataclass
from typing import Optional

from tradechain.config import ExecutionSettings


@dataclass(frozen=True)
class AccountSnapshot:
    """Trading account figures used for sizing."""

    balance: float = 10_000.0
    equity: float = 10_000.0
    free_margin: float = 8_500.0
    leverage: int = 100
    currency: str = "USD"

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AccountSnapshot":
        if not data:
            return cls()
        default = cls()
        return cls(
            balance=float(data.get("balance", default.balance)),
            equity=float(data.get("equity", default.equity)),
            free_margin=float(data.get("freeMargin", default.free_margin)),
            leverage=int(data.get("leverage", default.leverage)),
            currency=data.get("currency", default.currency),
        )

    def to_dict(self) -> dict:
        return {
            "balance": self.balance,
            "equity": self.equity,
            "freeMargin": self.free_margin,
            "leverage": self.leverage,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class RiskSettings:
    """Per-account risk limits (percentages are of balance)."""

    max_risk_per_trade: float = 2.0
    max_daily_risk: float = 6.0
    max_open_trades: int = 5
    risk_reward_ratio: float = 2.5

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RiskSettings":
        if not data:
            return cls()
        default = cls()
        return cls(
            max_risk_per_trade=float(data.get("maxRiskPerTrade", default.max_risk_per_trade)),
            max_daily_risk=float(data.get("maxDailyRisk", default.max_daily_risk)),
            max_open_trades=int(data.get("maxOpenTrades", default.max_open_trades)),
            risk_reward_ratio=float(data.get("riskRewardRatio", default.risk_reward_ratio)),
        )

    def to_dict(self) -> dict:
        return {
            "maxRiskPerTrade": self.max_risk_per_trade,
            "maxDailyRisk": self.max_daily_risk,
            "maxOpenTrades": self.max_open_trades,
            "riskRewardRatio": self.risk_reward_ratio,
        }


@dataclass(frozen=True)
class ExecutionPlan:
    """Sized order derived from a validated signal."""

    symbol: str
    direction: str
    entry: float
    stop_loss: float
    take_profit: float
    account: AccountSnapshot
    risk_settings: RiskSettings
    lot_size: float
    risk_amount: float
    stop_loss_pips: float
    take_profit_pips: float

    def risk_management(self) -> dict:
        return {
            "riskAmount": self.risk_amount,
            "riskPercentage": self.risk_settings.max_risk_per_trade,
            "stopLossPips": self.stop_loss_pips,
            "takeProfitPips": self.take_profit_pips,
            "riskRewardRatio": self.risk_settings.risk_reward_ratio,
        }


def calculate_risk_amount(balance: float, max_risk_pct: float) -> float:
    """``balance × (max_risk_pct / 100)``.

    Raises ``ValueError`` if either input is non-positive.
    """
    if balance <= 0:
        raise ValueError(f"balance must be positive, got {balance}")
    if max_risk_pct <= 0:
        raise ValueError(f"max_risk_pct must be positive, got {max_risk_pct}")
    return balance * (max_risk_pct / 100.0)


def calculate_pips(price_a: float, price_b: float, pip_multiplier: float = 10_000.0) -> float:
    """Distance between two prices in pips (``|a − b| × pip_multiplier``).

    The default multiplier assumes a 4-decimal pip for every instrument.
    """
    return abs(price_a - price_b) * pip_multiplier


def calculate_lot_size(
    risk_amount: float,
    stop_loss_pips: float,
    pip_value_per_lot: float = 10.0,
    max_lot_size: float = 1.0,
) -> float:
    """Calculate position size in standard lots.

    Formula::

        lots = min(risk_amount / (stop_loss_pips × pip_value_per_lot), max_lot_size)

    The result is never negative and never exceeds *max_lot_size*.

    Raises:
        ValueError: If *stop_loss_pips* or *pip_value_per_lot* is non-positive.
    """
    if stop_loss_pips <= 0:
        raise ValueError(f"stop_loss_pips must be positive, got {stop_loss_pips}")
    if pip_value_per_lot <= 0:
        raise ValueError(f"pip_value_per_lot must be positive, got {pip_value_per_lot}")

    lots = risk_amount / (stop_loss_pips * pip_value_per_lot)
    return max(0.0, min(lots, max_lot_size))


def build_execution_plan(
    symbol: str,
    direction: str,
    entry: float,
    stop_loss: float,
    take_profit: float,
    account: Optional[AccountSnapshot] = None,
    risk_settings: Optional[RiskSettings] = None,
    settings: Optional[ExecutionSettings] = None,
) -> ExecutionPlan:
    """Size an order for a validated signal.

    Rounding: lot size and risk amount to 2 dp, stop-loss pips to 1 dp.
    """
    account = account or AccountSnapshot()
    risk_settings = risk_settings or RiskSettings()
    settings = settings or ExecutionSettings()

    multiplier = settings.pip_multiplier_for(symbol)
    risk_amount = calculate_risk_amount(account.balance, risk_settings.max_risk_per_trade)
    sl_pips = calculate_pips(entry, stop_loss, multiplier)
    tp_pips = calculate_pips(take_profit, entry, multiplier)
    lot_size = calculate_lot_size(
        risk_amount,
        sl_pips,
        pip_value_per_lot=settings.pip_value_per_lot,
        max_lot_size=settings.max_lot_size,
    )

    return ExecutionPlan(
        symbol=symbol,
        direction=direction,
        entry=entry,
        stop_loss=stop_loss,
        take_profit=take_profit,
        account=account,
        risk_settings=risk_settings,
        lot_size=round(lot_size, 2),
        risk_amount=round(risk_amount, 2),
        stop_loss_pips=round(sl_pips, 1),
        take_profit_pips=tp_pips,
    )
