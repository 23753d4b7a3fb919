"""
WhatsApp Business Console API - Main Entry Point
Settings, inbox, messaging, statistics, media and webhooks
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

# Import configuration
from whatsapp_console.config import settings

# Import API routers
from whatsapp_console.api import (
    settings as settings_router, messages, conversations, whatsapp, media, jobs_scheduler, webhook, uploads,
    stats, scheduled_messages,
)

# Initialize logger
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup/shutdown)"""
    # Startup
    logger.info("Starting WhatsApp Business Console API...")

    if not settings.is_supabase_configured:
        logger.warning("⚠️  Supabase is not configured, data endpoints will return 503")
    if not settings.is_cron_configured:
        logger.warning("⚠️  CRON_SECRET is not set, cron endpoints will reject every request")

    logger.info(f"Graph API: {settings.whatsapp_api_base_url}")
    logger.info("Application startup complete")
    yield

    # Shutdown
    logger.info("Application shutdown")


# Create FastAPI application
app = FastAPI(
    title="WhatsApp Business Console API",
    description="""
## 📱 WhatsApp Business Console

Operator backend for a single WhatsApp Business phone number: credentials,
inbound message inbox, free text replies, template, bulk and scheduled
sending, statistics, media relay and upload, and the Meta webhook.
""",
    version="1.0.0",
    lifespan=lifespan,
    swagger_ui_parameters={
        "defaultModelsExpandDepth": -1,  # Hide schemas section by default
        "docExpansion": "list",  # Expand only tags, not operations
        "filter": True,  # Enable search
    },
    redoc_url="/redoc",
    docs_url="/docs",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(settings_router.router)  # API credentials (/settings/*)
app.include_router(messages.router)  # Inbox and replies (/messages/*)
app.include_router(conversations.router)  # Conversation list and threads (/conversations/*)
app.include_router(whatsapp.router)  # Template and free text sending, templates, connection test, media relay and upload
app.include_router(scheduled_messages.router)  # Scheduled template sends (/scheduled-messages)
app.include_router(stats.router)  # Message statistics (/stats)
app.include_router(media.router)  # Uploaded media records (/uploaded-media)
app.include_router(uploads.router)  # Recipient import (/parse-excel, /parse-phone-numbers)
app.include_router(webhook.router)  # Meta webhook (/webhooks)
app.include_router(jobs_scheduler.router)  # Scheduled jobs (/cron/*)


# Root endpoint
@app.get(
    "/",
    tags=["health"],
    summary="API Health Check",
    description="Check if the API is running and healthy."
)
def root():
    """
    Health check endpoint

    Returns basic information about the API including:
    - Status: Whether the API is healthy
    - Version: Current API version
    - Configuration: Whether Supabase and the cron secret are set
    """
    return {
        "status": "healthy",
        "message": "WhatsApp Business Console API",
        "version": "1.0.0",
        "supabase_configured": settings.is_supabase_configured,
        "cron_configured": settings.is_cron_configured,
        "docs": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
    )
