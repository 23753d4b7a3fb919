"""
Stats Models
Message activity statistics, live and from the daily_statistics rollup
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class MessagesByType(BaseModel):
    """Outbound message counts per history message_type"""
    single: int = Field(default=0, description="Single template sends")
    bulk_instant: int = Field(default=0, alias="bulkInstant", description="Bulk template sends")
    bulk_scheduled: int = Field(default=0, alias="bulkScheduled", description="Sends from scheduled messages")
    reply: int = Field(default=0, description="Free text replies")

    class Config:
        populate_by_name = True


class DailyStats(BaseModel):
    """Statistics for one UTC day"""
    date: str = Field(..., description="Day (YYYY-MM-DD)")
    total_sent: int = Field(default=0, alias="totalSent", description="Outbound messages recorded")
    successful_messages: int = Field(default=0, alias="successfulMessages", description="Status sent, delivered or read")
    failed_messages: int = Field(default=0, alias="failedMessages", description="Status failed")
    templates_count: int = Field(default=0, alias="templatesCount", description="Distinct templates used")
    incoming_messages: int = Field(default=0, alias="incomingMessages", description="Inbound webhook messages")
    messages_by_type: MessagesByType = Field(default_factory=MessagesByType, alias="messagesByType")
    scheduled_messages: Dict[str, int] = Field(default_factory=dict, alias="scheduledMessages", description="completed / failed")
    calculated: bool = Field(default=False, description="True when computed live instead of read from the rollup")

    class Config:
        populate_by_name = True

    @classmethod
    def from_row(cls, row: Dict[str, Any], calculated: bool = False) -> "DailyStats":
        """Build from a daily_statistics row"""
        return cls(
            date=str(row.get("date")),
            total_sent=row.get("total_sent") or 0,
            successful_messages=row.get("successful_messages") or 0,
            failed_messages=row.get("failed_messages") or 0,
            templates_count=row.get("unique_templates") or 0,
            incoming_messages=row.get("incoming_messages") or 0,
            messages_by_type=MessagesByType(
                single=row.get("single_messages") or 0,
                bulk_instant=row.get("bulk_instant_messages") or 0,
                bulk_scheduled=row.get("bulk_scheduled_messages") or 0,
                reply=row.get("reply_messages") or 0,
            ),
            scheduled_messages={
                "completed": row.get("scheduled_completed") or 0,
                "failed": row.get("scheduled_failed") or 0,
            },
            calculated=calculated,
        )


class StatsOverview(BaseModel):
    """All-time totals with today's activity and the scheduled message queue"""
    total_sent: int = Field(default=0, alias="totalSent")
    successful_messages: int = Field(default=0, alias="successfulMessages")
    failed_messages: int = Field(default=0, alias="failedMessages")
    templates_count: int = Field(default=0, alias="templatesCount")
    incoming_messages: int = Field(default=0, alias="incomingMessages")
    messages_by_type: MessagesByType = Field(default_factory=MessagesByType, alias="messagesByType")
    today_stats: Dict[str, int] = Field(default_factory=dict, alias="todayStats", description="sent / successful")
    scheduled_messages: Dict[str, int] = Field(
        default_factory=dict, alias="scheduledMessages", description="pending / today / completed / failed"
    )

    class Config:
        populate_by_name = True


class StatsRange(BaseModel):
    """Sums of daily_statistics rows over an inclusive date range"""
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    total_sent: int = Field(default=0, alias="totalSent")
    successful_messages: int = Field(default=0, alias="successfulMessages")
    failed_messages: int = Field(default=0, alias="failedMessages")
    incoming_messages: int = Field(default=0, alias="incomingMessages")
    messages_by_type: MessagesByType = Field(default_factory=MessagesByType, alias="messagesByType")
    daily_breakdown: List[Dict[str, Any]] = Field(default_factory=list, alias="dailyBreakdown", description="Rows, newest first")

    class Config:
        populate_by_name = True


class StatsHistoryResponse(BaseModel):
    """Response model for the daily_statistics history"""
    success: bool = Field(..., description="Operation success status")
    history: List[Dict[str, Any]] = Field(default_factory=list, description="Rows, newest first")
    count: int = Field(default=0, description="Number of rows returned")


class DailyStatsJobResult(BaseModel):
    """Outcome of the daily statistics cron job"""
    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Human readable outcome")
    date: str = Field(..., description="Day that was rolled up")
    created: bool = Field(..., description="False when the day had already been rolled up")
    stats: Optional[Dict[str, Any]] = Field(None, description="Inserted daily_statistics row")
