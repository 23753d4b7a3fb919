"""
Webhook Models
Pydantic models for incoming WhatsApp Cloud API webhook events
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class WebhookContactProfile(BaseModel):
    name: Optional[str] = None


class WebhookContact(BaseModel):
    """Sender contact attached to a messages change"""
    wa_id: Optional[str] = Field(None, description="Sender WhatsApp ID")
    profile: Optional[WebhookContactProfile] = None

    class Config:
        extra = "allow"


class WebhookStatus(BaseModel):
    """Delivery status update for a previously sent message"""
    id: str = Field(..., description="WhatsApp message ID (wamid)")
    status: str = Field(..., description="sent, delivered, read or failed")
    timestamp: Optional[str] = Field(None, description="Unix timestamp as string")
    recipient_id: Optional[str] = Field(None, description="Recipient WhatsApp ID")

    class Config:
        extra = "allow"


class WebhookChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, description="display_phone_number and phone_number_id")
    contacts: List[WebhookContact] = Field(default_factory=list)
    # Message objects vary per type (text, button, interactive, image, ...)
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    statuses: List[WebhookStatus] = Field(default_factory=list)

    class Config:
        extra = "allow"


class WebhookChange(BaseModel):
    field: str = Field(..., description="Subscribed field, 'messages' for message events")
    value: WebhookChangeValue = Field(default_factory=WebhookChangeValue)


class WebhookEntry(BaseModel):
    id: Optional[str] = Field(None, description="WhatsApp Business Account ID")
    changes: List[WebhookChange] = Field(default_factory=list)


class WhatsAppWebhookPayload(BaseModel):
    """Top-level webhook event body posted by Meta"""
    object: str = Field(..., description="Always 'whatsapp_business_account' for WhatsApp events")
    entry: List[WebhookEntry] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "object": "whatsapp_business_account",
                "entry": [{
                    "id": "102290129340398",
                    "changes": [{
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"display_phone_number": "15550783881", "phone_number_id": "106540352242922"},
                            "contacts": [{"profile": {"name": "Sara"}, "wa_id": "966512345678"}],
                            "messages": [{
                                "from": "966512345678",
                                "id": "wamid.HBgLOTY2NTEyMzQ1Njc4FQIAEhgg",
                                "timestamp": "1717000000",
                                "type": "text",
                                "text": {"body": "Hello"}
                            }]
                        }
                    }]
                }]
            }
        }


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to Meta"""
    success: bool = Field(..., description="Whether the event was processed without internal errors")
    processed_messages: int = Field(default=0, description="Inbound messages stored")
    processed_statuses: int = Field(default=0, description="Status updates applied")
    error: Optional[str] = Field(None, description="Internal error, if any")
