import logging
from datetime import date
from typing import Any, Dict, List, Optional

from services import directory, mailer, memory, order_records
from services.order_records import OrderRecord
from services.order_state import OrderState

logger = logging.getLogger(__name__)

_EMPTY = "-"
_STATE_LABELS = {
    OrderState.IDLE: "did not get a turn",
    OrderState.ACTIVE: "did not answer",
    OrderState.ANSWERING: "did not finish",
    OrderState.DONE: "done",
    OrderState.NOT_AVAILABLE: "not available",
    OrderState.VACATION: "on vacation",
}


def report_recipients(channel_id: int) -> List[str]:
    """Emails of people subscribed to reports who order in this channel."""
    con = memory.get_conn()
    try:
        rows = con.execute(
            """
            SELECT DISTINCT u.email FROM users u
            JOIN order_records o ON o.user_id = u.id
            WHERE o.channel_id = ? AND u.send_report = 1 AND u.is_bot = 0
              AND u.email IS NOT NULL AND TRIM(u.email) != ''
            ORDER BY u.email
            """,
            (int(channel_id),),
        ).fetchall()
    finally:
        con.close()
    return [str(row["email"]) for row in rows]


def report_subject(day: date) -> str:
    return f"Order for {day.strftime('%A, %d %B, %Y')}"


def render_report(records: List[OrderRecord]) -> str:
    blocks = []
    for record in records:
        name = directory.get_participant(record.user_id).full_name
        blocks.append(
            "\n".join([
                f"{name} ({_STATE_LABELS[record.state]})",
                f"  Curry: {record.yesterday or _EMPTY}",
                f"  Rice: {record.today or _EMPTY}",
                f"  Naan: {record.conflicts or _EMPTY}",
            ])
        )
    return "\n\n".join(blocks) + "\n"


def today_report(channel_id: int, day: Optional[date] = None) -> Optional[Dict[str, Any]]:
    """Email the day's orders for a channel. Sends nothing without recipients or records."""
    day = day or date.today()
    emails = report_recipients(channel_id)
    records = order_records.records_for_channel(channel_id, day)
    if not emails or not records:
        logger.info(
            "Skipping report for channel %s on %s: %d recipient(s), %d record(s)",
            channel_id, day.isoformat(), len(emails), len(records),
        )
        return None

    return mailer.send_email(emails, report_subject(day), render_report(records))
