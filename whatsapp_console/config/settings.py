"""
Application Configuration
Centralized configuration management using environment variables
"""
import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables"""

    # Supabase Configuration
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")  # Anon key for client
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # WhatsApp Cloud (Graph) API Configuration
    # Credentials themselves live in the api_settings table, not in the environment
    WHATSAPP_GRAPH_API_URL: str = os.getenv("WHATSAPP_GRAPH_API_URL", "https://graph.facebook.com")
    WHATSAPP_API_VERSION: str = os.getenv("WHATSAPP_API_VERSION", "v21.0")
    WHATSAPP_API_TIMEOUT: float = float(os.getenv("WHATSAPP_API_TIMEOUT", "30"))

    # Cron Configuration (shared secret sent by the scheduler as a Bearer token)
    CRON_SECRET: Optional[str] = os.getenv("CRON_SECRET")

    # Media retention
    MEDIA_RETENTION_DAYS: int = int(os.getenv("MEDIA_RETENTION_DAYS", "30"))

    # Bulk sending
    BULK_SEND_BATCH_SIZE: int = 5

    # Phone numbers
    DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "SA")

    # CORS Configuration
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if origin.strip()
    ]

    @property
    def whatsapp_api_base_url(self) -> str:
        """Versioned Graph API base URL"""
        return f"{self.WHATSAPP_GRAPH_API_URL.rstrip('/')}/{self.WHATSAPP_API_VERSION}"

    @property
    def is_supabase_configured(self) -> bool:
        """Check if Supabase configuration is present"""
        return bool(self.SUPABASE_URL and (self.SUPABASE_SERVICE_KEY or self.SUPABASE_KEY))

    @property
    def is_cron_configured(self) -> bool:
        """Check if the cron shared secret is present"""
        return bool(self.CRON_SECRET)


# Global settings instance
settings = Settings()
