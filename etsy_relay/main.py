"""
Etsy listing relay: OAuth 2.0 + PKCE login against Etsy, session-held tokens,
and read-only shop/listing routes for the browser app.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from etsy_relay.auth_routes import router as auth_router
from etsy_relay.config import FRONTEND_URL, LOG_LEVEL, PORT, REDIRECT_URI, REQUIRED_SETTINGS, STATIC_DIR
from etsy_relay.errors import ApiError, api_error_handler
from etsy_relay.etsy_client import create_http_client
from etsy_relay.logging_config import configure_logging
from etsy_relay.shop_routes import router as shop_router

logger = logging.getLogger(__name__)


def _warn_missing_settings() -> None:
    for name, value in REQUIRED_SETTINGS.items():
        if not value:
            logger.warning("%s is not set; Etsy login or sessions may not work", name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Shared httpx client for upstream calls; closed on shutdown."""
    _warn_missing_settings()
    app.state.http_client = create_http_client()
    logger.info("Etsy OAuth callback: %s", REDIRECT_URI)
    try:
        yield
    finally:
        await app.state.http_client.aclose()


configure_logging(LOG_LEVEL)

app = FastAPI(title="Etsy Relay", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(ApiError, api_error_handler)
app.include_router(auth_router, tags=["auth"])
app.include_router(shop_router, tags=["etsy"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "etsy_relay"}


# Mounted last so API routes take precedence
if STATIC_DIR:
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "etsy_relay.main:app",
        host="127.0.0.1",
        port=PORT,
        reload=True,
    )
