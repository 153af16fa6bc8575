import logging
from datetime import date
from typing import Optional

from services import memory, order_records
from services.order_records import OrderRecord
from services.order_state import INIT, IN_PROGRESS_STATES, OrderState

logger = logging.getLogger(__name__)

TURN_PROMPT = (
    "{who} it's your turn. Type -y to start, -s to skip "
    "or -na if you are not available."
)


def advance(channel_id: int, day: Optional[date] = None) -> Optional[OrderRecord]:
    """Activate the next idle participant when nobody is in progress.

    Returns the newly activated record, or None when someone is already
    taking their turn or the queue is empty.
    """
    with memory.transaction() as con:
        busy = order_records.records_for_channel(channel_id, day, list(IN_PROGRESS_STATES), con=con)
        if busy:
            return None
        idle = order_records.records_for_channel(channel_id, day, [OrderState.IDLE], con=con)
        if not idle:
            return None
        record = order_records.fire_in(con, idle[0].id, INIT)

    logger.info("Channel %s: user %s is up (position %s)", channel_id, record.user_id, record.sequence_position)
    return record


def turn_prompt(handle_mention: str) -> str:
    return TURN_PROMPT.format(who=handle_mention)
