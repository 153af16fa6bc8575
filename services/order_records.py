"""Persistence and mutation of daily order records.

Records are plain snapshots. Every mutation goes through this module, which
re-reads the row inside a write transaction and returns a fresh snapshot, so
callers never rely on a stale copy to decide a transition.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import List, NamedTuple, Optional, Sequence, Tuple

from services import directory, memory
from services.directory import Participant
from services.normalizer import Resolver, replace_mentions
from services.order_state import (
    FINISH,
    MAXIMUM_AUTO_SKIPPED_TIMES,
    SKIP,
    SLOT_COLUMNS,
    InvalidTransition,
    OrderState,
    current_question,
    first_unset_slot,
    is_completed,
    is_in_progress,
    transition_for,
)

logger = logging.getLogger(__name__)


class OrderKey(NamedTuple):
    user_id: int
    channel_id: int
    day: str


@dataclass(frozen=True)
class OrderRecord:
    id: int
    user_id: int
    channel_id: int
    day: str
    state: OrderState
    yesterday: Optional[str] = None
    today: Optional[str] = None
    conflicts: Optional[str] = None
    sequence_position: int = 1
    auto_skipped_times: int = 0
    reason: Optional[str] = None

    @property
    def key(self) -> OrderKey:
        return OrderKey(self.user_id, self.channel_id, self.day)

    @property
    def answers(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.yesterday, self.today, self.conflicts)

    @property
    def completed(self) -> bool:
        return is_completed(self.state)

    @property
    def in_progress(self) -> bool:
        return is_in_progress(self.state)

    @property
    def current_question(self) -> Optional[str]:
        return current_question(self.answers)

    @property
    def auto_skip_exhausted(self) -> bool:
        # Informational only; nothing in the flow acts on it.
        return self.auto_skipped_times > MAXIMUM_AUTO_SKIPPED_TIMES


def day_key(day: Optional[date] = None) -> str:
    if isinstance(day, str):
        return date.fromisoformat(day).isoformat()
    return (day or date.today()).isoformat()


def _from_row(row: sqlite3.Row) -> OrderRecord:
    return OrderRecord(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        channel_id=int(row["channel_id"]),
        day=str(row["day"]),
        state=OrderState(row["state"]),
        yesterday=row["yesterday"],
        today=row["today"],
        conflicts=row["conflicts"],
        sequence_position=int(row["sequence_position"]),
        auto_skipped_times=int(row["auto_skipped_times"]),
        reason=row["reason"],
    )


def _load(con: sqlite3.Connection, record_id: int) -> OrderRecord:
    row = con.execute("SELECT * FROM order_records WHERE id = ?", (int(record_id),)).fetchone()
    if not row:
        raise LookupError(f"Order record {record_id} does not exist")
    return _from_row(row)


def get_record_by_id(record_id: int) -> OrderRecord:
    con = memory.get_conn()
    try:
        return _load(con, record_id)
    finally:
        con.close()


def get_record(user_id: int, channel_id: int, day: Optional[date] = None) -> Optional[OrderRecord]:
    con = memory.get_conn()
    try:
        row = con.execute(
            "SELECT * FROM order_records WHERE user_id = ? AND channel_id = ? AND day = ?",
            (int(user_id), int(channel_id), day_key(day)),
        ).fetchone()
    finally:
        con.close()
    return _from_row(row) if row else None


def create_if_needed(
    participant: Participant, channel_id: int, day: Optional[date] = None
) -> Optional[OrderRecord]:
    """Find or create the participant's record for the day. Bots get nothing."""
    if participant.is_bot:
        return None

    key = day_key(day)
    con = memory.get_conn()
    try:
        cur = con.execute(
            "INSERT OR IGNORE INTO order_records (user_id, channel_id, day) VALUES (?, ?, ?)",
            (participant.id, int(channel_id), key),
        )
        con.commit()
        if cur.rowcount:
            logger.info("Created order record for user=%s channel=%s day=%s", participant.id, channel_id, key)
        row = con.execute(
            "SELECT * FROM order_records WHERE user_id = ? AND channel_id = ? AND day = ?",
            (participant.id, int(channel_id), key),
        ).fetchone()
        return _from_row(row)
    finally:
        con.close()


def fire_in(con: sqlite3.Connection, record_id: int, event: str) -> OrderRecord:
    """Apply `event` using an open write transaction on `con`."""
    current = _load(con, record_id)
    target = transition_for(event, current.state)

    if event == SKIP:
        cur = con.execute(
            """
            UPDATE order_records
            SET state = ?,
                sequence_position = (
                    SELECT COALESCE(MAX(sequence_position), 0) + 1
                    FROM order_records WHERE channel_id = ? AND day = ?
                ),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND state = ?
            """,
            (target.value, current.channel_id, current.day, current.id, current.state.value),
        )
    else:
        cur = con.execute(
            """
            UPDATE order_records SET state = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND state = ?
            """,
            (target.value, current.id, current.state.value),
        )
    if cur.rowcount != 1:
        raise InvalidTransition(event, _load(con, record_id).state)

    logger.debug("Order %s: %s -> %s (%s)", current.id, current.state.value, target.value, event)
    return _load(con, record_id)


def fire(record: OrderRecord, event: str) -> OrderRecord:
    # Fail on the snapshot first so a bad call never opens a write transaction.
    transition_for(event, record.state)
    with memory.transaction() as con:
        return fire_in(con, record.id, event)


def process_answer(
    record: OrderRecord, raw_text: str, resolve: Optional[Resolver] = None
) -> OrderRecord:
    """Store the answer in the first open slot and finish once all three are set."""
    text = replace_mentions(raw_text, resolve or directory.display_name_for_handle)

    with memory.transaction() as con:
        current = _load(con, record.id)
        slot = first_unset_slot(current.answers)
        if slot is None:
            return current

        con.execute(
            f"UPDATE order_records SET {SLOT_COLUMNS[slot]} = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (text, current.id),
        )
        updated = _load(con, current.id)
        if first_unset_slot(updated.answers) is None:
            updated = fire_in(con, current.id, FINISH)
        return updated


def delete_answer(record: OrderRecord, slot: int) -> OrderRecord:
    """Clear exactly one slot. Never changes state."""
    column = SLOT_COLUMNS.get(slot)
    if column is None:
        raise ValueError(f"Answer slot must be 1, 2 or 3, got {slot!r}")

    with memory.transaction() as con:
        con.execute(
            f"UPDATE order_records SET {column} = NULL, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (record.id,),
        )
        return _load(con, record.id)


def records_for_channel(
    channel_id: int,
    day: Optional[date] = None,
    states: Optional[Sequence[OrderState]] = None,
    *,
    con: Optional[sqlite3.Connection] = None,
) -> List[OrderRecord]:
    """Records for a channel-day in queue order."""
    sql = "SELECT * FROM order_records WHERE channel_id = ? AND day = ?"
    params: list = [int(channel_id), day_key(day)]
    if states:
        sql += f" AND state IN ({', '.join('?' for _ in states)})"
        params.extend(OrderState(s).value for s in states)
    sql += " ORDER BY sequence_position, id"

    owns_con = con is None
    db = con or memory.get_conn()
    try:
        return [_from_row(row) for row in db.execute(sql, params).fetchall()]
    finally:
        if owns_con:
            db.close()


def max_sequence_position(channel_id: int, day: Optional[date] = None) -> int:
    con = memory.get_conn()
    try:
        row = con.execute(
            "SELECT COALESCE(MAX(sequence_position), 0) FROM order_records WHERE channel_id = ? AND day = ?",
            (int(channel_id), day_key(day)),
        ).fetchone()
    finally:
        con.close()
    return int(row[0])
