"""
WhatsApp Models
Pydantic models for outbound WhatsApp messaging requests and responses
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List, Literal


# Request Models

class ReplyRequest(BaseModel):
    """Request model for replying to a conversation with free text"""
    to_number: Optional[str] = Field(None, alias="toNumber", description="Recipient phone number (e.g., 966512345678)")
    text: Optional[str] = Field(None, description="Message text content")
    message_id: Optional[str] = Field(None, alias="messageId", description="Inbox message being replied to")

    class Config:
        populate_by_name = True


class TemplateParameters(BaseModel):
    """Template header media and body variables"""
    media_type: Optional[Literal["IMAGE", "VIDEO", "DOCUMENT"]] = Field(
        None, alias="mediaType", description="Header media type"
    )
    media_input_type: Literal["url", "id"] = Field(
        default="url", alias="mediaInputType", description="Whether media_value is a public URL or an uploaded media ID"
    )
    media_value: Optional[str] = Field(None, alias="mediaValue", description="Media URL or media ID")
    body_variables: List[str] = Field(default_factory=list, alias="bodyVariables", description="Values for {{1}}, {{2}}, ...")

    class Config:
        populate_by_name = True


class SendTemplateRequest(BaseModel):
    """Request model for sending a template message to one number"""
    phone_number: Optional[str] = Field(None, alias="phoneNumber", description="Recipient phone number")
    template_id: Optional[str] = Field(None, alias="templateId", description="Approved template ID")
    template_params: Optional[TemplateParameters] = Field(None, alias="templateParams", description="Template parameters")

    class Config:
        populate_by_name = True


class BulkSendRequest(BaseModel):
    """Request model for sending a template message to many numbers"""
    phone_numbers: List[str] = Field(default_factory=list, alias="phoneNumbers", description="Recipient phone numbers")
    template_id: Optional[str] = Field(None, alias="templateId", description="Approved template ID")
    template_params: Optional[TemplateParameters] = Field(None, alias="templateParams", description="Template parameters")

    class Config:
        populate_by_name = True


class FreeBulkSendRequest(BaseModel):
    """Request model for sending free text (optionally with an image) to many numbers"""
    phone_numbers: List[str] = Field(default_factory=list, alias="phoneNumbers", description="Recipient phone numbers")
    message_text: Optional[str] = Field(None, alias="messageText", description="Message text, used as the caption when an image is attached")
    media_input_type: Literal["url", "id"] = Field(
        default="url", alias="mediaInputType", description="Whether the image is a public URL or an uploaded media ID"
    )
    media_url: Optional[str] = Field(None, alias="mediaUrl", description="Public image URL")
    media_value: Optional[str] = Field(None, alias="mediaValue", description="Uploaded media ID, or an image URL")

    class Config:
        populate_by_name = True


# Response Models

class ReplyResponse(BaseModel):
    """Response model for a sent reply"""
    success: bool = Field(..., description="Operation success status")
    message_id: Optional[str] = Field(None, alias="messageId", description="WhatsApp message ID (wamid)")

    class Config:
        populate_by_name = True


class SendTemplateResponse(BaseModel):
    """Response model for a sent template message"""
    success: bool = Field(..., description="Operation success status")
    message_id: Optional[str] = Field(None, alias="messageId", description="WhatsApp message ID (wamid)")
    status: Optional[str] = Field(None, description="Provider message status")
    info: Dict[str, Any] = Field(default_factory=dict, description="Recipient and template details")

    class Config:
        populate_by_name = True


class BulkSendResult(BaseModel):
    """Outcome for one recipient of a bulk send"""
    phone_number: str = Field(..., alias="phoneNumber", description="Normalized recipient")
    success: bool = Field(..., description="Whether the provider accepted the message")
    message_id: Optional[str] = Field(None, alias="messageId", description="WhatsApp message ID")
    error: Optional[str] = Field(None, description="Provider error message")

    class Config:
        populate_by_name = True


class BulkSendResponse(BaseModel):
    """Response model for a bulk send"""
    success: bool = Field(..., description="True when at least one message was sent")
    total: int = Field(..., description="Number of recipients")
    sent: int = Field(..., description="Messages accepted by the provider")
    failed: int = Field(..., description="Messages rejected or not sent")
    results: List[BulkSendResult] = Field(default_factory=list, description="Per-recipient outcomes")


class TemplatesResponse(BaseModel):
    """Response model for the template list"""
    success: bool = Field(..., description="Operation success status")
    templates: List[Dict[str, Any]] = Field(default_factory=list, description="Message templates from the business account")


class MediaFetchResult(BaseModel):
    """
    Result of relaying provider media.

    `expired=True` means the media is no longer retrievable. This is an
    expected outcome, not an error.
    """
    expired: bool = Field(default=False, description="Media no longer retrievable from the provider")
    data_url: Optional[str] = Field(None, alias="dataUrl", description="data:<mime>;base64,<payload>")
    mime_type: Optional[str] = Field(None, alias="mimeType", description="Provider-reported MIME type")

    class Config:
        populate_by_name = True

    @classmethod
    def expired_media(cls) -> "MediaFetchResult":
        return cls(expired=True)


class MediaUploadResponse(BaseModel):
    """Response model for a file uploaded to the provider media store"""
    success: bool = Field(..., description="Operation success status")
    media_id: str = Field(..., alias="mediaId", description="Provider media ID, usable in template headers")
    file_name: str = Field(..., alias="fileName", description="Uploaded file name")
    file_size: int = Field(..., alias="fileSize", description="Size in bytes")
    mime_type: Optional[str] = Field(None, alias="mimeType", description="File MIME type")

    class Config:
        populate_by_name = True
