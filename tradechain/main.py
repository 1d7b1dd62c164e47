"""TradeChain — application entry point.

Boots the FastAPI server and provides the CLI entry point.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradechain.api.routers import router
from tradechain.errors import TradeChainError

app = FastAPI(title="TradeChain Signal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("tradechain")


@app.exception_handler(TradeChainError)
async def domain_error_handler(request: Request, exc: TradeChainError):
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method, request.url.path, exc.error, exc.details or "-",
    )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "error": "Internal server error"}, status_code=500,
    )


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def run_cli() -> None:
    """Parse CLI arguments, wire the services and serve the API."""
    import argparse

    import numpy as np
    import uvicorn

    from tradechain.api.routers import configure_routers
    from tradechain.config import load_config

    parser = argparse.ArgumentParser(description="TradeChain signal pipeline server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port (default: PORT from config)")
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for demo randomness (snapshots, random policies, slippage)",
    )
    parser.add_argument("--env-file", help="Path to a .env file")
    args = parser.parse_args()

    config = load_config(args.env_file)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    configure_routers(config, rng=np.random.default_rng(args.seed))

    if not config.ai_enabled:
        logger.info("OPENROUTER_API_KEY not set — AI layers use canned responses")
    logger.info(
        "Signal policy=%s, validation policy=%s, approval threshold=%g",
        config.signal_policy, config.validation_policy, config.approval_threshold,
    )

    uvicorn.run(app, host=args.host, port=args.port or config.port, log_level="info")


if __name__ == "__main__":
    run_cli()
