"""
Scheduled Message Models
Template sends stored for later delivery by the cron job
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class ScheduleMessageRequest(BaseModel):
    """Request model for scheduling a template send"""
    phone_numbers: List[str] = Field(default_factory=list, alias="phoneNumbers", description="Recipient phone numbers")
    template_id: Optional[str] = Field(None, alias="templateId", description="Approved template ID")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Header media URL")
    scheduled_time: Optional[str] = Field(None, alias="scheduledTime", description="ISO timestamp, must be in the future")

    class Config:
        populate_by_name = True


class ScheduleUpdateRequest(BaseModel):
    """
    Request model for editing a pending scheduled send.

    Only supplied fields change. A scheduled time at or before now sends
    the message immediately.
    """
    id: Optional[str] = Field(None, description="Scheduled message ID")
    phone_numbers: Optional[List[str]] = Field(None, alias="phoneNumbers", description="Replacement recipient list")
    template_id: Optional[str] = Field(None, alias="templateId", description="Replacement template ID")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Replacement header media URL")
    scheduled_time: Optional[str] = Field(None, alias="scheduledTime", description="New ISO timestamp")

    class Config:
        populate_by_name = True


class SendNowRequest(BaseModel):
    """Request model for sending a pending scheduled message immediately"""
    message_id: Optional[str] = Field(None, alias="messageId", description="Scheduled message ID")

    class Config:
        populate_by_name = True


class ScheduledDispatchResult(BaseModel):
    """Outcome of delivering one scheduled message"""
    id: str = Field(..., description="Scheduled message ID")
    status: str = Field(..., description="sent, partial or failed")
    total: int = Field(..., description="Number of recipients")
    sent: int = Field(..., description="Messages accepted by the provider")
    failed: int = Field(..., description="Messages rejected")
    errors: List[str] = Field(default_factory=list, description="Per-recipient provider errors")


class ScheduledMessagesResponse(BaseModel):
    """Response model for the scheduled message list"""
    success: bool = Field(..., description="Operation success status")
    messages: List[Dict[str, Any]] = Field(default_factory=list, description="Scheduled message rows, soonest first")
