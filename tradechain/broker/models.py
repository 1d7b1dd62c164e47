"""Broker data models — typed representations of MT5-style orders and fills."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

TRADE_RETCODE_DONE = 10009
DEFAULT_MAGIC_NUMBER = 12345
DEFAULT_COMMENT = "AI Trading System"

ORDER_ACTIONS = ("BUY", "SELL", "CLOSE", "MODIFY")


class OrderStatus(str, Enum):
    """Order lifecycle.  OPEN is the only initial state."""

    OPEN = "OPEN"
    MODIFIED = "MODIFIED"
    CLOSED = "CLOSED"

    def can_transition(self, target: "OrderStatus") -> bool:
        """``OPEN → {CLOSED, MODIFIED}``; a MODIFIED order stays tradable."""
        if self is OrderStatus.CLOSED:
            return False
        return target in (OrderStatus.CLOSED, OrderStatus.MODIFIED)


@dataclass(frozen=True)
class OrderRequest:
    """An order instruction for the broker."""

    symbol: str
    action: str  # BUY, SELL, CLOSE, MODIFY
    volume: float
    price: Optional[float] = None
    sl: Optional[float] = None
    tp: Optional[float] = None
    order_id: Optional[str] = None
    comment: str = DEFAULT_COMMENT
    magic_number: int = DEFAULT_MAGIC_NUMBER

    @classmethod
    def from_dict(cls, data: dict) -> "OrderRequest":
        def _opt_float(key: str) -> Optional[float]:
            value = data.get(key)
            return float(value) if value not in (None, "") else None

        return cls(
            symbol=str(data["symbol"]).upper(),
            action=str(data["action"]).upper(),
            volume=float(data["volume"]),
            price=_opt_float("price"),
            sl=_opt_float("sl"),
            tp=_opt_float("tp"),
            order_id=data.get("orderId") or None,
            comment=data.get("comment") or DEFAULT_COMMENT,
            magic_number=int(data.get("magicNumber") or DEFAULT_MAGIC_NUMBER),
        )


@dataclass(frozen=True)
class BrokerResponse:
    """Echo of the broker's trade-server reply."""

    retcode: int
    order: int
    request_id: int
    comment: str
    deal: Optional[int] = None
    volume: Optional[float] = None
    price: Optional[float] = None
    bid: Optional[float] = None
    ask: Optional[float] = None

    def to_dict(self) -> dict:
        out = {
            "retcode": self.retcode,
            "deal": self.deal,
            "order": self.order,
            "volume": self.volume,
            "price": self.price,
            "bid": self.bid,
            "ask": self.ask,
            "comment": self.comment,
            "request_id": self.request_id,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True)
class ExecutionResult:
    """Result of one broker operation (open, close or modify)."""

    order_id: str
    symbol: str
    action: str
    volume: float
    status: OrderStatus
    time: str
    broker_response: BrokerResponse
    commission: float = 0.0
    requested_price: Optional[float] = None
    execution_price: Optional[float] = None
    slippage: Optional[float] = None
    close_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    spread: Optional[float] = None
    swap: float = 0.0
    profit: float = 0.0
    comment: str = DEFAULT_COMMENT
    magic_number: int = DEFAULT_MAGIC_NUMBER

    def to_dict(self) -> dict:
        out = {
            "orderId": self.order_id,
            "symbol": self.symbol,
            "action": self.action,
            "volume": self.volume,
            "status": self.status.value,
            "commission": self.commission,
            "swap": self.swap,
            "profit": self.profit,
            "mt5Response": self.broker_response.to_dict(),
        }
        if self.status is OrderStatus.OPEN:
            out.update({
                "requestedPrice": self.requested_price,
                "executionPrice": self.execution_price,
                "slippage": self.slippage,
                "stopLoss": self.stop_loss,
                "takeProfit": self.take_profit,
                "spread": self.spread,
                "comment": self.comment,
                "magicNumber": self.magic_number,
                "openTime": self.time,
            })
        elif self.status is OrderStatus.CLOSED:
            out.update({"closePrice": self.close_price, "closeTime": self.time})
        else:
            out.update({
                "newStopLoss": self.stop_loss,
                "newTakeProfit": self.take_profit,
                "modifyTime": self.time,
            })
        return out


@dataclass
class OrderRecord:
    """Broker-side bookkeeping for an order this broker opened."""

    order_id: str
    symbol: str
    action: str
    volume: float
    open_price: float
    sl: Optional[float]
    tp: Optional[float]
    open_time: str
    comment: str
    magic_number: int
    commission: float
    status: OrderStatus = OrderStatus.OPEN

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "symbol": self.symbol,
            "type": self.action,
            "volume": self.volume,
            "openPrice": self.open_price,
            "sl": self.sl,
            "tp": self.tp,
            "commission": -self.commission,
            "openTime": self.open_time,
            "comment": self.comment,
            "magicNumber": self.magic_number,
            "status": self.status.value,
        }
