"""Simulated MT5-style broker.

Fills orders against the demo quote table with random slippage, charges a
fixed per-lot commission, and keeps an in-memory ledger of the orders it
opened so CLOSE and MODIFY follow the order state machine.  Closed
records are kept up to a retention cap, oldest evicted first.
"""

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from tradechain.broker.models import (
    ORDER_ACTIONS,
    TRADE_RETCODE_DONE,
    BrokerResponse,
    ExecutionResult,
    OrderRecord,
    OrderRequest,
    OrderStatus,
)
from tradechain.config import ExecutionSettings
from tradechain.errors import (
    InvalidAction,
    InvalidStopLevels,
    InvalidTakeProfitLevel,
    OrderIdRequired,
    UnknownSymbol,
    ValidationError,
)
from tradechain.market.models import INSTRUMENTS, Quote, normalize_symbol

logger = logging.getLogger("tradechain")

MAX_CLOSED_ORDERS = 1000

TRADE_ACTION_MESSAGES = {
    "CLOSE": "Trade closed successfully",
    "MODIFY_SL": "Stop Loss modified",
    "MODIFY_TP": "Take Profit modified",
    "PARTIAL_CLOSE": "Partial position closed",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_stop_levels(
    action: str,
    fill_price: float,
    sl: Optional[float],
    tp: Optional[float],
) -> None:
    """Reject SL/TP on the wrong side of the fill price.

    BUY needs ``sl < fill < tp``; SELL needs ``tp < fill < sl``.
    Missing levels are not checked.
    """
    if action == "BUY":
        if sl is not None and sl >= fill_price:
            raise InvalidStopLevels("Stop loss must be below entry price for BUY orders")
        if tp is not None and tp <= fill_price:
            raise InvalidTakeProfitLevel("Take profit must be above entry price for BUY orders")
    elif action == "SELL":
        if sl is not None and sl <= fill_price:
            raise InvalidStopLevels("Stop loss must be above entry price for SELL orders")
        if tp is not None and tp >= fill_price:
            raise InvalidTakeProfitLevel("Take profit must be below entry price for SELL orders")


class SimulatedBroker:
    """In-process stand-in for a MetaTrader 5 bridge.

    Args:
        settings: Commission, slippage and pip conventions.
        rng: Random generator for slippage and ticket numbers.
        login: Account login shown in ``account_info``.
        server: Trade server shown in ``account_info``.
        max_closed_orders: Closed records retained in the ledger.
    """

    def __init__(
        self,
        settings: Optional[ExecutionSettings] = None,
        rng: Optional[np.random.Generator] = None,
        login: str = "demo-account",
        server: str = "demo-server",
        max_closed_orders: int = MAX_CLOSED_ORDERS,
    ) -> None:
        self._settings = settings or ExecutionSettings()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._login = login
        self._server = server
        self._orders: dict[str, OrderRecord] = {}
        self._max_closed = max(max_closed_orders, 0)
        self._closed_ids: deque[str] = deque()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _quote(self, symbol: str) -> Quote:
        quote = INSTRUMENTS.get(normalize_symbol(symbol))
        if quote is None:
            raise UnknownSymbol(symbol)
        return quote

    def _ticket(self) -> int:
        return int(self._rng.integers(100_000, 1_100_000))

    def _new_order_id(self) -> str:
        millis = int(datetime.now(timezone.utc).timestamp() * 1000)
        return f"MT5_{millis}_{uuid.uuid4().hex[:9]}"

    def commission(self, volume: float) -> float:
        return round(volume * self._settings.commission_per_lot, 2)

    def _slippage(self) -> float:
        return float((self._rng.random() - 0.5) * self._settings.max_slippage)

    def _tracked(self, order_id: str, target: OrderStatus) -> Optional[OrderRecord]:
        record = self._orders.get(order_id)
        if record is not None and not record.status.can_transition(target):
            raise ValidationError(
                "Invalid order state",
                f"Order {order_id} is {record.status.value} and cannot become {target.value}",
            )
        return record

    def _retire(self, record: OrderRecord) -> None:
        record.status = OrderStatus.CLOSED
        self._closed_ids.append(record.order_id)
        while len(self._closed_ids) > self._max_closed:
            self._orders.pop(self._closed_ids.popleft(), None)

    # ── Orders ───────────────────────────────────────────────────────────

    async def execute(self, order: OrderRequest) -> ExecutionResult:
        """Execute *order* and return the fill/close/modify result.

        Raises:
            UnknownSymbol: Symbol is not in the quote table.
            InvalidAction: Action is not BUY, SELL, CLOSE or MODIFY.
            InvalidStopLevels / InvalidTakeProfitLevel: Levels on the
                wrong side of the fill price (no order is created).
            OrderIdRequired: CLOSE or MODIFY without an order id.
        """
        quote = self._quote(order.symbol)
        action = order.action.upper()
        if action not in ORDER_ACTIONS:
            raise InvalidAction(order.action)

        if action in ("BUY", "SELL"):
            return self._open(order, action, quote)
        if not order.order_id:
            raise OrderIdRequired(action)
        if action == "CLOSE":
            return self._close(order, quote)
        return self._modify(order, quote)

    def _open(self, order: OrderRequest, action: str, quote: Quote) -> ExecutionResult:
        market_price = quote.ask if action == "BUY" else quote.bid
        requested = order.price if order.price else market_price
        slippage = self._slippage()
        fill_price = requested + slippage

        check_stop_levels(action, fill_price, order.sl, order.tp)

        order_id = self._new_order_id()
        now = _now_iso()
        commission = self.commission(order.volume)
        self._orders[order_id] = OrderRecord(
            order_id=order_id,
            symbol=quote.symbol,
            action=action,
            volume=order.volume,
            open_price=round(fill_price, 5),
            sl=order.sl,
            tp=order.tp,
            open_time=now,
            comment=order.comment,
            magic_number=order.magic_number,
            commission=commission,
        )

        logger.info(
            "Opened %s %.2f %s @ %.5f (order %s)",
            action, order.volume, quote.symbol, fill_price, order_id,
        )
        return ExecutionResult(
            order_id=order_id,
            symbol=quote.symbol,
            action=action,
            volume=order.volume,
            status=OrderStatus.OPEN,
            time=now,
            requested_price=order.price,
            execution_price=round(fill_price, 5),
            slippage=round(slippage, 5),
            stop_loss=order.sl,
            take_profit=order.tp,
            spread=quote.spread,
            commission=commission,
            comment=order.comment,
            magic_number=order.magic_number,
            broker_response=BrokerResponse(
                retcode=TRADE_RETCODE_DONE,
                deal=self._ticket(),
                order=self._ticket(),
                volume=order.volume,
                price=fill_price,
                bid=quote.bid,
                ask=quote.ask,
                comment="Request executed",
                request_id=self._ticket(),
            ),
        )

    def _close(self, order: OrderRequest, quote: Quote) -> ExecutionResult:
        record = self._tracked(order.order_id, OrderStatus.CLOSED)
        if record is not None:
            # Longs close on the bid, shorts on the ask.
            close_price = quote.bid if record.action == "BUY" else quote.ask
            side = 1 if record.action == "BUY" else -1
            pips = (close_price - record.open_price) * side * self._settings.pip_multiplier_for(quote.symbol)
            profit = pips * self._settings.pip_value_per_lot * order.volume
            self._retire(record)
        else:
            # Order opened elsewhere: close as a long with a demo P&L.
            close_price = quote.bid
            profit = float((self._rng.random() - 0.3) * 100)

        logger.info("Closed order %s @ %.5f, P&L %.2f", order.order_id, close_price, profit)
        return ExecutionResult(
            order_id=order.order_id,
            symbol=quote.symbol,
            action="CLOSE",
            volume=order.volume,
            status=OrderStatus.CLOSED,
            time=_now_iso(),
            close_price=round(close_price, 5),
            profit=round(profit, 2),
            commission=self.commission(order.volume),
            broker_response=BrokerResponse(
                retcode=TRADE_RETCODE_DONE,
                deal=self._ticket(),
                order=self._ticket(),
                volume=order.volume,
                price=close_price,
                comment="Position closed",
                request_id=self._ticket(),
            ),
        )

    def _modify(self, order: OrderRequest, quote: Quote) -> ExecutionResult:
        record = self._tracked(order.order_id, OrderStatus.MODIFIED)
        if record is not None:
            check_stop_levels(record.action, record.open_price, order.sl, order.tp)
            if order.sl is not None:
                record.sl = order.sl
            if order.tp is not None:
                record.tp = order.tp
            record.status = OrderStatus.MODIFIED

        logger.info("Modified order %s: sl=%s tp=%s", order.order_id, order.sl, order.tp)
        return ExecutionResult(
            order_id=order.order_id,
            symbol=quote.symbol,
            action="MODIFY",
            volume=order.volume,
            status=OrderStatus.MODIFIED,
            time=_now_iso(),
            stop_loss=order.sl,
            take_profit=order.tp,
            broker_response=BrokerResponse(
                retcode=TRADE_RETCODE_DONE,
                order=self._ticket(),
                comment="Order modified",
                request_id=self._ticket(),
            ),
        )

    # ── Trade management ─────────────────────────────────────────────────

    async def manage_trade(
        self,
        order_id: str,
        action: str,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
    ) -> dict:
        """Apply a management action (CLOSE, MODIFY_SL, MODIFY_TP, PARTIAL_CLOSE).

        Tracked orders are updated in the ledger; unknown ids are
        acknowledged as-is.
        """
        if not order_id:
            raise OrderIdRequired(action or "MANAGE")
        action = action.upper()

        record = self._orders.get(order_id)
        if record is not None:
            if action == "CLOSE":
                self._tracked(order_id, OrderStatus.CLOSED)
                self._retire(record)
            elif action.startswith("MODIFY"):
                self._tracked(order_id, OrderStatus.MODIFIED)
                check_stop_levels(
                    record.action,
                    record.open_price,
                    stop_loss if action == "MODIFY_SL" else None,
                    take_profit if action == "MODIFY_TP" else None,
                )
                if action == "MODIFY_SL" and stop_loss is not None:
                    record.sl = stop_loss
                if action == "MODIFY_TP" and take_profit is not None:
                    record.tp = take_profit
                record.status = OrderStatus.MODIFIED

        new_values = None
        if "MODIFY" in action:
            new_values = {"stopLoss": stop_loss, "takeProfit": take_profit}
        return {
            "orderId": order_id,
            "action": action,
            "status": "SUCCESS",
            "message": TRADE_ACTION_MESSAGES.get(action, "Action completed"),
            "timestamp": _now_iso(),
            "newValues": new_values,
        }

    # ── Account ──────────────────────────────────────────────────────────

    async def account_info(self) -> dict:
        """Return the demo trading account summary."""
        return {
            "login": self._login,
            "server": self._server,
            "name": "AI Trading Account",
            "company": "Demo Broker",
            "currency": "USD",
            "balance": 10000.00,
            "equity": 10000.00,
            "profit": 0.00,
            "margin": 1500.00,
            "freeMargin": 8500.00,
            "marginLevel": 666.67,
            "leverage": 100,
            "stopoutLevel": 50,
            "marginCall": 100,
            "connected": True,
            "tradeAllowed": True,
            "lastUpdate": _now_iso(),
        }

    async def open_positions(self) -> list[dict]:
        """Return orders opened by this broker that are not closed."""
        return [
            r.to_dict() for r in self._orders.values()
            if r.status is not OrderStatus.CLOSED
        ]
