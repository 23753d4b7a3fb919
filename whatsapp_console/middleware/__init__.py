"""
Middleware Package
Request guards for the application
"""
from whatsapp_console.middleware.cron_auth import require_cron_secret

__all__ = ['require_cron_secret']
