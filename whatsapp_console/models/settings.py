"""
Settings Models
Pydantic models for the WhatsApp Business API credentials record
"""
from pydantic import BaseModel, Field
from typing import Optional


class ApiSettings(BaseModel):
    """Stored WhatsApp Business API credentials (single row in api_settings)"""
    id: Optional[str] = Field(None, description="Row identifier")
    business_account_id: Optional[str] = Field(None, description="WhatsApp Business Account ID")
    phone_number_id: Optional[str] = Field(None, description="Sender phone number ID")
    access_token: Optional[str] = Field(None, description="Graph API access token")
    webhook_verify_token: Optional[str] = Field(None, description="Token Meta echoes during webhook verification")
    created_at: Optional[str] = Field(None, description="Creation timestamp")
    updated_at: Optional[str] = Field(None, description="Last update timestamp")

    class Config:
        extra = "ignore"
        coerce_numbers_to_str = True


class SettingsSaveRequest(BaseModel):
    """Request model for saving API settings"""
    business_account_id: Optional[str] = Field(None, description="WhatsApp Business Account ID")
    phone_number_id: Optional[str] = Field(None, description="Sender phone number ID")
    access_token: Optional[str] = Field(None, description="Graph API access token")
    webhook_verify_token: Optional[str] = Field(None, description="Optional custom verify token")

    class Config:
        coerce_numbers_to_str = True
        json_schema_extra = {
            "example": {
                "business_account_id": "102290129340398",
                "phone_number_id": "106540352242922",
                "access_token": "EAAG...",
            }
        }


class ConnectionStatusResponse(BaseModel):
    """Response model for the connectivity test"""
    connected: bool = Field(..., description="Whether the Graph API accepted the credentials")
    phone_number_id: str = Field(..., alias="phoneNumberId", description="Configured phone number ID")
    business_account_id: str = Field(..., alias="businessAccountId", description="Configured business account ID")
    phone_number: Optional[str] = Field(None, alias="phoneNumber", description="Display phone number")
    verified_name: Optional[str] = Field(None, alias="verifiedName", description="Verified business name")
    error: Optional[str] = Field(None, description="Provider error message")
    error_code: Optional[int] = Field(None, alias="errorCode", description="Provider error code")
    is_token_expired: bool = Field(default=False, alias="isTokenExpired", description="Access token expired")

    class Config:
        populate_by_name = True
