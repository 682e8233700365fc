import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arbscan.api import router
from arbscan.config import settings
from arbscan.services.market_data import MarketDataClient
from arbscan.services.scanner import ArbitrageScanService
from arbscan.utils.logger import get_logger, setup_logging
from arbscan.utils.utcnow import utcnow

# Setup logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting arbitrage scan service...")

    client = MarketDataClient()
    app.state.scan_service = ArbitrageScanService(client)
    logger.info(
        "Scan service ready",
        gamma_url=client.gamma_url,
        clob_url=client.clob_url,
        **app.state.scan_service.get_config().model_dump(),
    )

    try:
        yield
    finally:
        logger.info("Shutting down...")
        await client.close()
        logger.info("Shutdown complete")


app = FastAPI(
    title="arbscan",
    description="Prediction-market arbitrage detection: multi-outcome, cross-market and settlement lag",
    version="0.1.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        traceback=traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500, content={"detail": "Internal server error", "error": str(exc)}
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API routes
app.include_router(router, prefix="/api")


# Health checks
@app.get("/health")
async def health_check():
    """Basic health check - for load balancers"""
    return {"status": "ok", "timestamp": utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("arbscan.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
