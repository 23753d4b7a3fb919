"""
Stats Service
Message activity statistics and the daily_statistics rollup

Days are UTC calendar days. Live figures are computed from message_history,
webhook_messages and scheduled_messages; the cron job freezes yesterday's
figures into daily_statistics once.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Dict, Any, List, Tuple

from postgrest.exceptions import APIError

from whatsapp_console.exceptions import StorageError, ValidationError
from whatsapp_console.models.stats import (
    DailyStats,
    DailyStatsJobResult,
    MessagesByType,
    StatsOverview,
    StatsRange,
)
from whatsapp_console.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

DAILY_TABLE = "daily_statistics"
HISTORY_TABLE = "message_history"
INCOMING_TABLE = "webhook_messages"
SCHEDULED_TABLE = "scheduled_messages"

SUCCESS_STATUSES = ("delivered", "sent", "read")
FAILED_STATUS = "failed"

# message_history.message_type -> daily_statistics column
TYPE_COLUMNS = {
    "single": "single_messages",
    "bulk_instant": "bulk_instant_messages",
    "bulk_scheduled": "bulk_scheduled_messages",
    "reply": "reply_messages",
}


def parse_stats_date(value: Optional[str]) -> date:
    """
    Parse a YYYY-MM-DD query value

    Raises:
        ValidationError: If the value is missing or not a calendar date
    """
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Start of the UTC day and start of the next one"""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _messages_by_type(summary: Dict[str, Any]) -> MessagesByType:
    return MessagesByType(
        single=summary["single_messages"],
        bulk_instant=summary["bulk_instant_messages"],
        bulk_scheduled=summary["bulk_scheduled_messages"],
        reply=summary["reply_messages"],
    )


class StatsService:
    """Service for message statistics"""

    def __init__(self, supabase):
        """
        Initialize Stats Service

        Args:
            supabase: Supabase client instance
        """
        self.supabase = supabase

    # =========================================================
    # QUERIES
    # =========================================================
    def get_overview(self, now: Optional[datetime] = None) -> StatsOverview:
        """
        All-time totals, today's sends and the scheduled message counters

        Raises:
            StorageError: If a query fails
        """
        today_start, today_end = day_bounds((now or utc_now()).date())

        try:
            summary = self._history_summary()
            today = self._history_summary(today_start, today_end)
            incoming = self._count(self.supabase.table(INCOMING_TABLE).select("id", count="exact"))

            scheduled = {
                "pending": self._count(
                    self.supabase.table(SCHEDULED_TABLE).select("id", count="exact").eq("status", "pending")
                ),
                "today": self._count(
                    self.supabase.table(SCHEDULED_TABLE)
                    .select("id", count="exact")
                    .eq("status", "pending")
                    .gte("scheduled_time", today_start.isoformat())
                    .lt("scheduled_time", today_end.isoformat())
                ),
                "completed": self._count(
                    self.supabase.table(SCHEDULED_TABLE).select("id", count="exact").eq("status", "sent")
                ),
                "failed": self._count(
                    self.supabase.table(SCHEDULED_TABLE).select("id", count="exact").eq("status", FAILED_STATUS)
                ),
            }
        except APIError as e:
            logger.error(f"Error calculating statistics: {e.message}")
            raise StorageError("Failed to fetch statistics")

        return StatsOverview(
            total_sent=summary["total_sent"],
            successful_messages=summary["successful_messages"],
            failed_messages=summary["failed_messages"],
            templates_count=summary["unique_templates"],
            incoming_messages=incoming,
            messages_by_type=_messages_by_type(summary),
            today_stats={"sent": today["total_sent"], "successful": today["successful_messages"]},
            scheduled_messages=scheduled,
        )

    def get_day(self, day_value: Optional[str]) -> DailyStats:
        """
        Statistics for one day

        The stored rollup is returned when it exists; otherwise the day is
        computed live and flagged `calculated`.

        Raises:
            ValidationError: Malformed date
            StorageError: If a query fails
        """
        day = parse_stats_date(day_value)

        try:
            stored = self._stored_day(day)
            if stored:
                return DailyStats.from_row(stored)
            return DailyStats.from_row(self._compute_day(day), calculated=True)
        except APIError as e:
            logger.error(f"Error fetching statistics for {day}: {e.message}")
            raise StorageError("Failed to fetch statistics")

    def get_range(self, start_value: Optional[str], end_value: Optional[str]) -> StatsRange:
        """
        Sum the stored rollups between two dates (inclusive)

        Days without a rollup row contribute nothing.

        Raises:
            ValidationError: Malformed dates or start after end
            StorageError: If the query fails
        """
        start_day = parse_stats_date(start_value)
        end_day = parse_stats_date(end_value)
        if start_day > end_day:
            raise ValidationError("startDate must not be after endDate")

        try:
            response = self.supabase.table(DAILY_TABLE) \
                .select("*") \
                .gte("date", start_day.isoformat()) \
                .lte("date", end_day.isoformat()) \
                .order("date", desc=True) \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching statistics range: {e.message}")
            raise StorageError("Failed to fetch statistics")

        rows = response.data or []

        def total(column: str) -> int:
            return sum(row.get(column) or 0 for row in rows)

        return StatsRange(
            start_date=start_day.isoformat(),
            end_date=end_day.isoformat(),
            total_sent=total("total_sent"),
            successful_messages=total("successful_messages"),
            failed_messages=total("failed_messages"),
            incoming_messages=total("incoming_messages"),
            messages_by_type=MessagesByType(
                single=total("single_messages"),
                bulk_instant=total("bulk_instant_messages"),
                bulk_scheduled=total("bulk_scheduled_messages"),
                reply=total("reply_messages"),
            ),
            daily_breakdown=rows,
        )

    def get_history(self, limit: int = 30) -> List[Dict[str, Any]]:
        """Most recent daily_statistics rows, newest first"""
        try:
            response = self.supabase.table(DAILY_TABLE) \
                .select("*") \
                .order("date", desc=True) \
                .limit(limit) \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching statistics history: {e.message}")
            raise StorageError("Failed to fetch statistics history")

        return response.data or []

    # =========================================================
    # DAILY ROLLUP (cron)
    # =========================================================
    def calculate_daily_stats(self, now: Optional[datetime] = None) -> DailyStatsJobResult:
        """
        Roll yesterday's figures into daily_statistics

        Runs at most once per day: an existing row for yesterday is left
        untouched.

        Raises:
            StorageError: If a query or the insert fails
        """
        day = (now or utc_now()).date() - timedelta(days=1)
        logger.info(f"📊 Calculating daily statistics for {day}")

        try:
            if self._stored_day(day):
                logger.info(f"Statistics for {day} already calculated")
                return DailyStatsJobResult(
                    success=True,
                    message="Stats already calculated for this date",
                    date=day.isoformat(),
                    created=False
                )

            row = self._compute_day(day)
            self.supabase.table(DAILY_TABLE).insert(row).execute()
        except APIError as e:
            logger.error(f"Error calculating daily statistics for {day}: {e.message}")
            raise StorageError("Failed to calculate daily statistics")

        logger.info(f"✅ Daily statistics saved for {day}: {row['total_sent']} sent, {row['incoming_messages']} incoming")
        return DailyStatsJobResult(
            success=True,
            message="Daily stats calculated successfully",
            date=day.isoformat(),
            created=True,
            stats=row
        )

    # =========================================================
    # HELPERS
    # =========================================================
    @staticmethod
    def _count(query) -> int:
        response = query.execute()
        return response.count if response.count else 0

    def _stored_day(self, day: date) -> Optional[Dict[str, Any]]:
        response = self.supabase.table(DAILY_TABLE) \
            .select("*") \
            .eq("date", day.isoformat()) \
            .limit(1) \
            .execute()
        return response.data[0] if response.data else None

    def _history_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Bucket message_history rows, optionally limited to [start, end)"""
        query = self.supabase.table(HISTORY_TABLE).select("message_type, status, template_name")
        if start is not None:
            query = query.gte("created_at", start.isoformat())
        if end is not None:
            query = query.lt("created_at", end.isoformat())
        rows = query.execute().data or []

        summary = {
            "total_sent": len(rows),
            "successful_messages": 0,
            "failed_messages": 0,
            **{column: 0 for column in TYPE_COLUMNS.values()},
        }
        templates = set()

        for row in rows:
            status = row.get("status")
            if status in SUCCESS_STATUSES:
                summary["successful_messages"] += 1
            elif status == FAILED_STATUS:
                summary["failed_messages"] += 1

            column = TYPE_COLUMNS.get(row.get("message_type"))
            if column:
                summary[column] += 1

            if row.get("template_name"):
                templates.add(row["template_name"])

        summary["unique_templates"] = len(templates)
        return summary

    def _compute_day(self, day: date) -> Dict[str, Any]:
        """daily_statistics row for one day, computed from the live tables"""
        start, end = day_bounds(day)
        summary = self._history_summary(start, end)

        incoming = self._count(
            self.supabase.table(INCOMING_TABLE)
            .select("id", count="exact")
            .gte("created_at", start.isoformat())
            .lt("created_at", end.isoformat())
        )
        scheduled_completed = self._count(
            self.supabase.table(SCHEDULED_TABLE)
            .select("id", count="exact")
            .eq("status", "sent")
            .gte("processed_at", start.isoformat())
            .lt("processed_at", end.isoformat())
        )
        scheduled_failed = self._count(
            self.supabase.table(SCHEDULED_TABLE)
            .select("id", count="exact")
            .eq("status", FAILED_STATUS)
            .gte("processed_at", start.isoformat())
            .lt("processed_at", end.isoformat())
        )

        return {
            "date": day.isoformat(),
            **summary,
            "incoming_messages": incoming,
            "scheduled_completed": scheduled_completed,
            "scheduled_failed": scheduled_failed,
        }


def get_stats_service(supabase) -> StatsService:
    """
    Create a StatsService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        StatsService instance
    """
    return StatsService(supabase)
