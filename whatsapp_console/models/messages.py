"""
Inbox and Conversation Models
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional


class MessageStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"


class MessageStatusUpdateRequest(BaseModel):
    """Request model for updating an inbox message status"""
    id: Optional[str] = Field(None, description="webhook_messages row ID")
    status: Optional[str] = Field(None, description="New status: unread or read")

    class Config:
        coerce_numbers_to_str = True


class ConversationUpdateRequest(BaseModel):
    """Request model for recording conversation activity"""
    phone: Optional[str] = Field(None, description="Counterparty phone number, any format")
    contact_name: Optional[str] = Field(None, alias="contactName", description="Contact display name")
    message_text: Optional[str] = Field(None, alias="messageText", description="Latest message text")
    is_outgoing: bool = Field(default=False, alias="isOutgoing", description="True when the operator sent the message")

    class Config:
        populate_by_name = True


class MarkReadRequest(BaseModel):
    """Request model for marking a conversation as read"""
    phone: Optional[str] = Field(None, description="Counterparty phone number, any format")


class PhoneListRequest(BaseModel):
    """Request model for validating a free-text list of phone numbers"""
    text: str = Field(..., description="Numbers separated by newlines, commas or semicolons")
    country_code: str = Field(default="SA", alias="countryCode", description="ISO country code used for formatting")

    class Config:
        populate_by_name = True
