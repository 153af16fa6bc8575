import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Set

from services import memory, order_records
from services.order_records import OrderRecord
from services.order_state import OrderState

logger = logging.getLogger(__name__)

Sender = Callable[[str], object]


def _drop(text: str) -> None:
    logger.debug("No sender bound, dropping message: %s", text)


@dataclass
class Channel:
    """A chat channel as seen by the order flow."""

    id: int
    handle: str
    name: str = ""
    sender: Sender = field(default=_drop, repr=False, compare=False)

    def post_message(self, text: str) -> None:
        if not text:
            return
        self.sender(text)

    def records(self, day: Optional[date] = None) -> List[OrderRecord]:
        return order_records.records_for_channel(self.id, day)

    def pending_participants(self, day: Optional[date] = None) -> Set[int]:
        """User ids still waiting in the queue (idle) for the day."""
        idle = order_records.records_for_channel(self.id, day, [OrderState.IDLE])
        return {record.user_id for record in idle}

    def max_sequence_position(self, day: Optional[date] = None) -> int:
        return order_records.max_sequence_position(self.id, day)


def _from_row(row: sqlite3.Row, sender: Optional[Sender]) -> Channel:
    return Channel(
        id=int(row["id"]),
        handle=str(row["handle"]),
        name=str(row["name"] or ""),
        sender=sender or _drop,
    )


def get_or_create_channel(handle: str, name: str = "", sender: Optional[Sender] = None) -> Channel:
    handle = str(handle).strip()
    if not handle:
        raise ValueError("Channel handle cannot be empty.")

    con = memory.get_conn()
    try:
        con.execute(
            "INSERT OR IGNORE INTO channels (handle, name) VALUES (?, ?)",
            (handle, name or handle),
        )
        if name:
            con.execute("UPDATE channels SET name = ? WHERE handle = ?", (name, handle))
        con.commit()
        row = con.execute("SELECT * FROM channels WHERE handle = ?", (handle,)).fetchone()
        return _from_row(row, sender)
    finally:
        con.close()
