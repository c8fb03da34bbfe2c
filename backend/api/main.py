# backend/api/main.py
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from typing import Optional
from datetime import datetime
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import get_settings
from database.connection import async_session_maker, close_db, get_db, init_db
from database.models import Service
from api.deps import get_groq_service
from api.routers import logs, performance, projects, query_logs, services, settings as settings_router, webhook
from services.groq_service import GroqAIService
from services.service_checker import ServiceChecker
from workers.auto_checker import AutoChecker


settings = get_settings()

# Setup logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global services
auto_checker: Optional[AutoChecker] = None

# ============================================
# LIFESPAN EVENTS
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    global auto_checker

    logger.info("🚀 Starting LogWise AI...")

    try:
        await init_db()

        groq_service = get_groq_service()

        if settings.AUTO_CHECK_ENABLED:
            auto_checker = AutoChecker(async_session_maker, ServiceChecker(groq_service))
            auto_checker.start()

        logger.info("✅ All services initialized")

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("🔌 Shutting down...")

    if auto_checker:
        checker = auto_checker
        auto_checker = None
        checker.stop()
        # In-flight checks finish before the engine goes away
        await checker.wait_idle()

    await close_db()

# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (logs, services, projects, settings_router, performance, webhook, query_logs):
    app.include_router(module.router, prefix="/api")

# ============================================
# ENDPOINTS
# ============================================

@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "running",
        "auto_checker": auto_checker.get_stats() if auto_checker else None,
    }

@app.get("/api/health")
async def api_health():
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}

@app.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    groq: GroqAIService = Depends(get_groq_service),
):
    """Health check"""
    health = {"status": "healthy", "services": {}}

    # Check database
    try:
        await db.execute(select(func.count()).select_from(Service))
        health["services"]["database"] = "connected"
    except Exception as e:
        health["services"]["database"] = f"error: {str(e)}"
        health["status"] = "degraded"

    health["services"]["groq_ai"] = "configured" if groq.is_configured else "not_configured"
    health["services"]["auto_checker"] = "running" if auto_checker and auto_checker.running else "stopped"

    return health


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=settings.PORT)
