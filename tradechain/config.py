"""TradeChain — application configuration.

Loads .env variables into typed config objects.
Validates ranges on startup.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


_PLACEHOLDER_API_KEY = "your-openrouter-api-key-here"

# Per-instrument pip size.  Only consulted when
# ``ExecutionSettings.use_instrument_pip_size`` is enabled.
INSTRUMENT_PIP_SIZES: dict[str, float] = {
    "EURUSD": 0.0001,
    "GBPUSD": 0.0001,
    "USDJPY": 0.01,
    "AUDUSD": 0.0001,
    "USDCAD": 0.0001,
    "NZDUSD": 0.0001,
    "USDCHF": 0.0001,
}


@dataclass(frozen=True)
class ExecutionSettings:
    """Numeric constants used by the position sizer and simulated broker.

    Defaults use a fixed 4-decimal pip (``pip_multiplier=10000``) for
    every instrument, $10 per pip per standard lot, $7 commission per lot
    and a hard 1.0 lot ceiling.
    """

    pip_value_per_lot: float = 10.0
    commission_per_lot: float = 7.0
    max_lot_size: float = 1.0
    max_slippage: float = 0.0001
    pip_multiplier: float = 10_000.0
    use_instrument_pip_size: bool = False
    pip_sizes: dict[str, float] = field(
        default_factory=lambda: dict(INSTRUMENT_PIP_SIZES)
    )

    def pip_multiplier_for(self, symbol: str) -> float:
        """Return the price → pips multiplier for *symbol*.

        Falls back to the fixed ``pip_multiplier`` unless per-instrument
        pip sizes are switched on and *symbol* is listed.
        """
        if self.use_instrument_pip_size and symbol in self.pip_sizes:
            return 1.0 / self.pip_sizes[symbol]
        return self.pip_multiplier


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    webhook_secret: str
    openrouter_api_key: str
    ai_model: str
    app_url: str
    jwt_secret: str
    approval_threshold: float
    stage_timeout_seconds: float
    signal_policy: str
    validation_policy: str
    mt5_login: str
    mt5_server: str
    log_level: str
    port: int
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)

    @property
    def ai_enabled(self) -> bool:
        """Return ``True`` when a usable model provider key is configured."""
        return bool(self.openrouter_api_key) and (
            self.openrouter_api_key != _PLACEHOLDER_API_KEY
        )


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Every variable has a demo default.  Raises ``ValueError`` naming the
    variable when a numeric value is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    approval_threshold = float(os.environ.get("APPROVAL_THRESHOLD", "75"))
    if not 0 <= approval_threshold <= 100:
        raise ValueError(
            f"APPROVAL_THRESHOLD must be 0–100, got {approval_threshold}"
        )

    stage_timeout = float(os.environ.get("STAGE_TIMEOUT_SECONDS", "5.0"))
    if stage_timeout <= 0:
        raise ValueError(
            f"STAGE_TIMEOUT_SECONDS must be positive, got {stage_timeout}"
        )

    max_lot_size = float(os.environ.get("MAX_LOT_SIZE", "1.0"))
    if max_lot_size <= 0:
        raise ValueError(f"MAX_LOT_SIZE must be positive, got {max_lot_size}")

    pip_value = float(os.environ.get("PIP_VALUE_PER_LOT", "10.0"))
    if pip_value <= 0:
        raise ValueError(f"PIP_VALUE_PER_LOT must be positive, got {pip_value}")

    execution = ExecutionSettings(
        pip_value_per_lot=pip_value,
        commission_per_lot=float(os.environ.get("COMMISSION_PER_LOT", "7.0")),
        max_lot_size=max_lot_size,
        max_slippage=float(os.environ.get("MAX_SLIPPAGE", "0.0001")),
        use_instrument_pip_size=_env_bool("USE_INSTRUMENT_PIP_SIZE", "false"),
    )

    return Config(
        webhook_secret=os.environ.get(
            "TRADINGVIEW_WEBHOOK_SECRET", "demo-webhook-secret"
        ),
        openrouter_api_key=os.environ.get("OPENROUTER_API_KEY", ""),
        ai_model=os.environ.get("AI_MODEL", "anthropic/claude-sonnet-4"),
        app_url=os.environ.get("APP_URL", "http://localhost:8000"),
        jwt_secret=os.environ.get("JWT_SECRET", "fallback-secret-key"),
        approval_threshold=approval_threshold,
        stage_timeout_seconds=stage_timeout,
        signal_policy=os.environ.get("SIGNAL_POLICY", "indicator_vote"),
        validation_policy=os.environ.get("VALIDATION_POLICY", "weighted"),
        mt5_login=os.environ.get("MT5_LOGIN", "demo-account"),
        mt5_server=os.environ.get("MT5_SERVER", "demo-server"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        port=int(os.environ.get("PORT", "8000")),
        execution=execution,
    )
