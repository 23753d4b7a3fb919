"""Business logic services"""
from .settings_service import SettingsService, get_settings_service
from .message_service import MessageService, get_message_service
from .conversation_service import ConversationService, get_conversation_service
from .inbox_service import InboxService, get_inbox_service
from .media_service import MediaService, get_media_service
from .maintenance_service import MaintenanceService, get_maintenance_service
from .scheduled_message_service import ScheduledMessageService, get_scheduled_message_service
from .stats_service import StatsService, get_stats_service
from .webhook_service import WebhookService, get_webhook_service
from .whatsapp_service import WhatsAppService, get_whatsapp_service

__all__ = [
    "SettingsService",
    "get_settings_service",
    "MessageService",
    "get_message_service",
    "ConversationService",
    "get_conversation_service",
    "InboxService",
    "get_inbox_service",
    "MediaService",
    "get_media_service",
    "MaintenanceService",
    "get_maintenance_service",
    "ScheduledMessageService",
    "get_scheduled_message_service",
    "StatsService",
    "get_stats_service",
    "WebhookService",
    "get_webhook_service",
    "WhatsAppService",
    "get_whatsapp_service",
]
