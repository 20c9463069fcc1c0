"""
Main FastAPI application.
Backend-for-frontend over Supabase: catalog, wallet and admin views.

Endpoints:
- /auth/* - Login, signup, logout
- /prompts/* - Catalog, detail, likes, unlock, community upload
- /wallet/* - Credits and reward claims
- /admin/* - Prompt / hero image CRUD and ad analytics (admins only)
"""

from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables
load_dotenv()

from ..core import configure_logging, get_settings
from ..lib import AdBridge, BoundedCache, WalletRegistry

settings = get_settings()
configure_logging(settings.log_level)
logger = structlog.get_logger("dollarprompt.api")

ad_bridge = AdBridge()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await ad_bridge.load()
    logger.info("api_started", app_env=settings.app_env, ads_ready=ad_bridge.is_ready)
    yield
    await app.state.wallets.close()
    await ad_bridge.close()


# Create app
app = FastAPI(
    title="DollarPrompt API",
    description="Prompt marketplace with credits, rewards and unlocks",
    version="1.0.0",
    docs_url="/docs" if settings.app_env == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.state.wallets = WalletRegistry(
    ad_bridge=ad_bridge,
    max_entries=settings.cache_max_entries,
    ttl_seconds=settings.cache_ttl_seconds,
)
app.state.client_states = BoundedCache(settings.cache_max_entries, settings.cache_ttl_seconds)

# CORS - configure for your frontend domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local dev
        "https://dollarprompt.app",  # Production (update this)
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": "1.0.0", "ads_ready": ad_bridge.is_ready}


# Import and include routers
from .routes import admin, auth, prompts, wallet

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(prompts.router, prefix="/prompts", tags=["prompts"])
app.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
